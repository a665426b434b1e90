"""
User Blueprint - user management.

  GET    /api/v1/users              - visible users (?company_id=&role=)
  POST   /api/v1/users              - create
  POST   /api/v1/users/invite       - invite (creates a pending access request)
  GET    /api/v1/users/<id>         - detail
  PUT    /api/v1/users/<id>         - update
  DELETE /api/v1/users/<id>         - delete
"""

from flask import Blueprint, g, jsonify, request

from portal.middleware.jwt_auth import require_auth
from portal.services import user_service
from portal.services.auth_service import MIN_PASSWORD_LENGTH
from portal.services.role_policy import Role
from portal.utils.errors import E, api_error

user_bp = Blueprint("user_bp", __name__, url_prefix="/api/v1/users")


def _missing(data: dict, fields) -> list[str]:
    return [f for f in fields if not isinstance(data.get(f), str) or not data[f].strip()]


def _password_error(data: dict):
    password = data.get("password")
    if password is None:
        return None
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        return api_error(
            E.VALIDATION_INVALID, f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
        )
    return None


@user_bp.route("", methods=["GET"])
@require_auth
def list_users():
    users = user_service.list_users(
        g.current_user,
        company_id=request.args.get("company_id"),
        role=request.args.get("role"),
    )
    return jsonify([u.to_dict() for u in users]), 200


@user_bp.route("", methods=["POST"])
@require_auth
def create_user():
    """
    Body: { "email", "first_name", "last_name", "role", "company_id", "password"?, "tags"? }
    """
    data = request.get_json(silent=True) or {}
    missing = _missing(data, ("email", "first_name", "last_name", "role", "company_id"))
    if missing:
        return api_error(
            E.VALIDATION_REQUIRED,
            f"Missing required fields: {', '.join(missing)}",
            details={f: "required" for f in missing},
        )
    if Role.parse(data["role"]) is None:
        return api_error(E.VALIDATION_INVALID, f"Invalid role: {data['role']}")
    err = _password_error(data)
    if err:
        return err
    if "tags" in data and not isinstance(data["tags"], list):
        return api_error(E.VALIDATION_INVALID, "tags must be a list")

    user = user_service.create_user(g.current_user, data)
    return jsonify(user.to_dict()), 201


@user_bp.route("/invite", methods=["POST"])
@require_auth
def invite_user():
    """
    Body: { "email", "role", "company_id"?, "name"?, "message"? }
    """
    data = request.get_json(silent=True) or {}
    missing = _missing(data, ("email", "role"))
    if missing:
        return api_error(E.VALIDATION_REQUIRED, f"Missing required fields: {', '.join(missing)}")

    invite = user_service.invite_user(g.current_user, data)
    return jsonify(invite.to_dict()), 201


@user_bp.route("/<user_id>", methods=["GET"])
@require_auth
def get_user(user_id):
    user = user_service.get_user(g.current_user, user_id)
    return jsonify(user.to_dict()), 200


@user_bp.route("/<user_id>", methods=["PUT", "PATCH"])
@require_auth
def update_user(user_id):
    data = request.get_json(silent=True) or {}
    if not data:
        return api_error(E.VALIDATION_REQUIRED, "No fields to update")
    for field in ("first_name", "last_name"):
        if field in data and (not isinstance(data[field], str) or not data[field].strip()):
            return api_error(E.VALIDATION_INVALID, f"{field} cannot be empty")
    if "role" in data and Role.parse(data["role"]) is None:
        return api_error(E.VALIDATION_INVALID, f"Invalid role: {data['role']}")
    if "is_active" in data and not isinstance(data["is_active"], bool):
        return api_error(E.VALIDATION_INVALID, "is_active must be a boolean")
    err = _password_error(data)
    if err:
        return err
    if "tags" in data and not isinstance(data["tags"], list):
        return api_error(E.VALIDATION_INVALID, "tags must be a list")

    user = user_service.update_user(g.current_user, user_id, data)
    return jsonify(user.to_dict()), 200


@user_bp.route("/<user_id>", methods=["DELETE"])
@require_auth
def delete_user(user_id):
    user_service.delete_user(g.current_user, user_id)
    return jsonify({"message": "User deleted"}), 200
