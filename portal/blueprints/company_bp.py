"""
Company Blueprint - tenant directory.

  GET  /api/v1/companies                       - visible companies (?type=)
  POST /api/v1/companies                       - create
  GET  /api/v1/companies/<id>                  - detail
  PUT  /api/v1/companies/<id>                  - update
  GET  /api/v1/companies/<id>/sub-companies    - direct children
"""

from flask import Blueprint, g, jsonify, request

from portal.middleware.jwt_auth import require_auth
from portal.middleware.permission_required import require_action
from portal.models.company import COMPANY_TYPES
from portal.services import company_service
from portal.utils.errors import E, api_error

company_bp = Blueprint("company_bp", __name__, url_prefix="/api/v1/companies")

OPTIONAL_STRING_FIELDS = ("domain", "logo_url", "primary_color", "parent_id")


def _optional_strings_error(data: dict):
    for field in OPTIONAL_STRING_FIELDS:
        if field in data and not isinstance(data[field], (str, type(None))):
            return api_error(E.VALIDATION_INVALID, f"{field} must be a string or null")
    if isinstance(data.get("primary_color"), str) and len(data["primary_color"]) > 7:
        return api_error(E.VALIDATION_INVALID, "primary_color must be a hex colour like #1a2b3c")
    return None


@company_bp.route("", methods=["GET"])
@require_auth
@require_action("companies.view")
def list_companies():
    company_type = request.args.get("type")
    if company_type and company_type not in COMPANY_TYPES:
        return api_error(E.VALIDATION_INVALID, f"Invalid company type: {company_type}")
    companies = company_service.list_companies(g.current_user, company_type=company_type)
    return jsonify([c.to_dict() for c in companies]), 200


@company_bp.route("", methods=["POST"])
@require_auth
@require_action("companies.create")
def create_company():
    """
    Body: { "name", "type", "parent_id"?, "domain"?, "logo_url"?, "primary_color"?, "settings"? }
    """
    data = request.get_json(silent=True) or {}
    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        return api_error(E.VALIDATION_REQUIRED, "name is required")
    if data.get("type") not in COMPANY_TYPES:
        return api_error(
            E.VALIDATION_INVALID,
            f"type must be one of {', '.join(COMPANY_TYPES)}",
        )
    if "settings" in data and not isinstance(data["settings"], (dict, type(None))):
        return api_error(E.VALIDATION_INVALID, "settings must be an object")
    err = _optional_strings_error(data)
    if err:
        return err

    company = company_service.create_company(g.current_user, data)
    return jsonify(company.to_dict()), 201


@company_bp.route("/<company_id>", methods=["GET"])
@require_auth
def get_company(company_id):
    company = company_service.get_company(g.current_user, company_id)
    return jsonify(company.to_dict()), 200


@company_bp.route("/<company_id>", methods=["PUT", "PATCH"])
@require_auth
@require_action("companies.update")
def update_company(company_id):
    data = request.get_json(silent=True) or {}
    if "name" in data and (not isinstance(data["name"], str) or not data["name"].strip()):
        return api_error(E.VALIDATION_INVALID, "name cannot be empty")
    if "settings" in data and not isinstance(data["settings"], (dict, type(None))):
        return api_error(E.VALIDATION_INVALID, "settings must be an object")
    err = _optional_strings_error(data)
    if err:
        return err

    company = company_service.update_company(g.current_user, company_id, data)
    return jsonify(company.to_dict()), 200


@company_bp.route("/<company_id>/sub-companies", methods=["GET"])
@require_auth
def list_sub_companies(company_id):
    children = company_service.list_sub_companies(g.current_user, company_id)
    return jsonify([c.to_dict() for c in children]), 200
