"""
Access Request Blueprint.

  POST  /api/v1/access-requests         - public intake
  GET   /api/v1/access-requests         - reviewer queue (?status=, default pending)
  GET   /api/v1/access-requests/<id>    - detail
  PATCH /api/v1/access-requests/<id>    - approve / deny, optional company_id override
"""

from flask import Blueprint, g, jsonify, request

from portal.middleware.jwt_auth import require_auth
from portal.middleware.permission_required import require_action
from portal.models.auth import ACCESS_REQUEST_STATUSES
from portal.services import access_request_service
from portal.services.access_request_service import REVIEW_OUTCOMES
from portal.utils.errors import E, api_error

access_request_bp = Blueprint("access_request_bp", __name__, url_prefix="/api/v1/access-requests")


@access_request_bp.route("", methods=["POST"])
def create_access_request():
    """
    Body: { "requester_email", "requester_name", "requested_role", "company_id"?, "message"? }
    """
    data = request.get_json(silent=True) or {}
    missing = [
        f for f in ("requester_email", "requester_name", "requested_role")
        if not isinstance(data.get(f), str) or not data[f].strip()
    ]
    if missing:
        return api_error(
            E.VALIDATION_REQUIRED,
            f"Missing required fields: {', '.join(missing)}",
            details={f: "required" for f in missing},
        )

    req = access_request_service.create_request(data)
    return jsonify(req.to_dict()), 201


@access_request_bp.route("", methods=["GET"])
@require_auth
@require_action("access_requests.review")
def list_access_requests():
    status = request.args.get("status", "pending")
    if status == "all":
        status = None
    elif status not in ACCESS_REQUEST_STATUSES:
        return api_error(E.VALIDATION_INVALID, f"Invalid status: {status}")
    requests_ = access_request_service.list_requests(g.current_user, status=status)
    return jsonify([r.to_dict() for r in requests_]), 200


@access_request_bp.route("/<request_id>", methods=["GET"])
@require_auth
@require_action("access_requests.review")
def get_access_request(request_id):
    req = access_request_service.get_request(g.current_user, request_id)
    return jsonify(req.to_dict()), 200


@access_request_bp.route("/<request_id>", methods=["PATCH", "PUT"])
@require_auth
@require_action("access_requests.review")
def review_access_request(request_id):
    """
    Body: { "status": "approved" | "denied", "company_id"? }
    """
    data = request.get_json(silent=True) or {}
    status = data.get("status")
    if status not in REVIEW_OUTCOMES:
        return api_error(E.VALIDATION_INVALID, f"status must be one of {', '.join(REVIEW_OUTCOMES)}")
    company_id = data.get("company_id")
    if company_id is not None and not isinstance(company_id, str):
        return api_error(E.VALIDATION_INVALID, "company_id must be a string")

    req, user = access_request_service.review_request(
        g.current_user, request_id, status, company_id=company_id or None,
    )
    body = req.to_dict()
    body["user"] = user.to_dict() if user else None
    return jsonify(body), 200
