"""
Activity Blueprint.

  GET /api/v1/activity   - filtered log (?user_id=&action=&resource_type=&resource_id=&page=&per_page=)
"""

from flask import Blueprint, g, jsonify, request

from portal.middleware.jwt_auth import require_auth
from portal.middleware.permission_required import require_action
from portal.services import activity_service
from portal.utils.helpers import paginate_args

activity_bp = Blueprint("activity_bp", __name__, url_prefix="/api/v1/activity")


@activity_bp.route("", methods=["GET"])
@require_auth
@require_action("activity.view")
def list_activity():
    page, per_page = paginate_args()
    result = activity_service.list_activity(
        g.current_user,
        user_id=request.args.get("user_id"),
        action=request.args.get("action"),
        resource_type=request.args.get("resource_type"),
        resource_id=request.args.get("resource_id"),
        page=page,
        per_page=per_page,
    )
    return jsonify(result), 200
