"""
Project Blueprint - projects and their access grants.

  GET    /api/v1/projects                          - visible projects (?status=&client_company_id=)
  POST   /api/v1/projects                          - create
  GET    /api/v1/projects/<id>                     - detail
  PUT    /api/v1/projects/<id>                     - update
  GET    /api/v1/projects/<id>/access              - list grants
  POST   /api/v1/projects/<id>/access              - grant to a user or a company
  DELETE /api/v1/projects/<id>/access/<grant_id>   - revoke
"""

from flask import Blueprint, g, jsonify, request

from portal.middleware.jwt_auth import require_auth
from portal.middleware.permission_required import require_action
from portal.models.project import ACCESS_LEVELS, PROJECT_STATUSES
from portal.services import project_service
from portal.utils.errors import E, api_error
from portal.utils.helpers import parse_date

project_bp = Blueprint("project_bp", __name__, url_prefix="/api/v1/projects")


def _check_dates(data: dict):
    for field in ("start_date", "end_date"):
        if data.get(field) and parse_date(data[field]) is None:
            return api_error(E.VALIDATION_INVALID, f"{field} must be a date (YYYY-MM-DD)")
    return None


@project_bp.route("", methods=["GET"])
@require_auth
@require_action("projects.view")
def list_projects():
    status = request.args.get("status")
    if status and status not in PROJECT_STATUSES:
        return api_error(E.VALIDATION_INVALID, f"Invalid status: {status}")
    projects = project_service.list_projects(
        g.current_user,
        status=status,
        client_company_id=request.args.get("client_company_id"),
    )
    return jsonify([p.to_dict() for p in projects]), 200


@project_bp.route("", methods=["POST"])
@require_auth
@require_action("projects.create")
def create_project():
    """
    Body: { "name", "client_company_id", "description"?, "status"?, "start_date"?, "end_date"?, "settings"? }
    """
    data = request.get_json(silent=True) or {}
    for field in ("name", "client_company_id"):
        if not isinstance(data.get(field), str) or not data[field].strip():
            return api_error(E.VALIDATION_REQUIRED, f"{field} is required")
    if data.get("status") and data["status"] not in PROJECT_STATUSES:
        return api_error(E.VALIDATION_INVALID, f"Invalid status: {data['status']}")
    err = _check_dates(data)
    if err:
        return err

    project = project_service.create_project(g.current_user, data)
    return jsonify(project.to_dict()), 201


@project_bp.route("/<project_id>", methods=["GET"])
@require_auth
def get_project(project_id):
    project = project_service.get_project(g.current_user, project_id)
    return jsonify(project.to_dict()), 200


@project_bp.route("/<project_id>", methods=["PUT", "PATCH"])
@require_auth
@require_action("projects.update")
def update_project(project_id):
    data = request.get_json(silent=True) or {}
    if "name" in data and (not isinstance(data["name"], str) or not data["name"].strip()):
        return api_error(E.VALIDATION_INVALID, "name cannot be empty")
    if "status" in data and data["status"] not in PROJECT_STATUSES:
        return api_error(E.VALIDATION_INVALID, f"Invalid status: {data['status']}")
    err = _check_dates(data)
    if err:
        return err

    project = project_service.update_project(g.current_user, project_id, data)
    return jsonify(project.to_dict()), 200


# ── Access grants ────────────────────────────────────────────────────────

@project_bp.route("/<project_id>/access", methods=["GET"])
@require_auth
@require_action("projects.grant_access")
def list_grants(project_id):
    grants = project_service.list_grants(g.current_user, project_id)
    return jsonify([gr.to_dict() for gr in grants]), 200


@project_bp.route("/<project_id>/access", methods=["POST"])
@require_auth
@require_action("projects.grant_access")
def grant_access(project_id):
    """
    Body: { "user_id" | "company_id", "access_level"? }
    """
    data = request.get_json(silent=True) or {}
    if bool(data.get("user_id")) == bool(data.get("company_id")):
        return api_error(E.VALIDATION_INVALID, "Provide exactly one of user_id or company_id")
    if data.get("access_level") and data["access_level"] not in ACCESS_LEVELS:
        return api_error(E.VALIDATION_INVALID, f"Invalid access_level: {data['access_level']}")

    grant = project_service.grant_access(g.current_user, project_id, data)
    return jsonify(grant.to_dict()), 201


@project_bp.route("/<project_id>/access/<grant_id>", methods=["DELETE"])
@require_auth
@require_action("projects.grant_access")
def revoke_access(project_id, grant_id):
    project_service.revoke_access(g.current_user, project_id, grant_id)
    return jsonify({"message": "Access revoked"}), 200
