"""
Digital Audit Blueprint.

  GET  /api/v1/audits                 - visible audits (?client_company_id=&status=)
  POST /api/v1/audits                 - create
  GET  /api/v1/audits/<id>            - detail (with html_content)
  PUT  /api/v1/audits/<id>            - update
  POST /api/v1/audits/<id>/publish    - publish
"""

from flask import Blueprint, g, jsonify, request

from portal.middleware.jwt_auth import require_auth
from portal.middleware.permission_required import require_action
from portal.models.digital_audit import AUDIT_ACCESS_TYPES, AUDIT_STATUSES
from portal.services import audit_service
from portal.utils.errors import E, api_error
from portal.utils.helpers import parse_datetime

audit_bp = Blueprint("audit_bp", __name__, url_prefix="/api/v1/audits")


def _validate_body(data: dict, *, creating: bool):
    if creating:
        for field in ("title", "client_company_id"):
            if not isinstance(data.get(field), str) or not data[field].strip():
                return api_error(E.VALIDATION_REQUIRED, f"{field} is required")
    elif "title" in data and (not isinstance(data["title"], str) or not data["title"].strip()):
        return api_error(E.VALIDATION_INVALID, "title cannot be empty")

    if data.get("status") and data["status"] not in AUDIT_STATUSES:
        return api_error(E.VALIDATION_INVALID, f"Invalid status: {data['status']}")
    if data.get("access_type") and data["access_type"] not in AUDIT_ACCESS_TYPES:
        return api_error(E.VALIDATION_INVALID, f"Invalid access_type: {data['access_type']}")
    if data.get("access_expires_at"):
        try:
            parse_datetime(data["access_expires_at"])
        except ValueError:
            return api_error(E.VALIDATION_INVALID, "access_expires_at must be an ISO-8601 timestamp")
    return None


@audit_bp.route("", methods=["GET"])
@require_auth
@require_action("audits.view")
def list_audits():
    status = request.args.get("status")
    if status and status not in AUDIT_STATUSES:
        return api_error(E.VALIDATION_INVALID, f"Invalid status: {status}")
    audits = audit_service.list_audits(
        g.current_user,
        client_company_id=request.args.get("client_company_id"),
        status=status,
    )
    return jsonify([a.to_dict(include_content=False) for a in audits]), 200


@audit_bp.route("", methods=["POST"])
@require_auth
@require_action("audits.create")
def create_audit():
    data = request.get_json(silent=True) or {}
    err = _validate_body(data, creating=True)
    if err:
        return err
    audit = audit_service.create_audit(g.current_user, data)
    return jsonify(audit.to_dict()), 201


@audit_bp.route("/<audit_id>", methods=["GET"])
@require_auth
def get_audit(audit_id):
    audit = audit_service.get_audit(g.current_user, audit_id)
    return jsonify(audit.to_dict()), 200


@audit_bp.route("/<audit_id>", methods=["PUT", "PATCH"])
@require_auth
@require_action("audits.update")
def update_audit(audit_id):
    data = request.get_json(silent=True) or {}
    err = _validate_body(data, creating=False)
    if err:
        return err
    audit = audit_service.update_audit(g.current_user, audit_id, data)
    return jsonify(audit.to_dict()), 200


@audit_bp.route("/<audit_id>/publish", methods=["POST"])
@require_auth
@require_action("audits.publish")
def publish_audit(audit_id):
    audit = audit_service.publish_audit(g.current_user, audit_id)
    return jsonify(audit.to_dict()), 200
