"""
Auth Blueprint - session endpoints.

  POST /api/v1/auth/login       - Email + password → session token
  POST /api/v1/auth/register    - Self-service viewer account → session token
  GET  /api/v1/auth/me          - Current user profile + permitted actions
  POST /api/v1/auth/logout      - Record the logout (tokens are stateless)
  PUT  /api/v1/auth/password    - Change current user's password
"""

from flask import Blueprint, g, jsonify, request

from portal.middleware.jwt_auth import require_auth
from portal.services import auth_service
from portal.services.jwt_service import token_response
from portal.utils.errors import E, api_error

auth_bp = Blueprint("auth_bp", __name__, url_prefix="/api/v1/auth")


# ═══════════════════════════════════════════════════════════════
# POST /api/v1/auth/login
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/login", methods=["POST"])
def login():
    """
    Authenticate with email + password, return a session token.

    Body: { "email": "...", "password": "..." }
    """
    data = request.get_json(silent=True) or {}
    email = data.get("email")
    password = data.get("password")

    if not email or not password:
        return api_error(E.VALIDATION_REQUIRED, "Email and password are required")
    if not isinstance(email, str) or not isinstance(password, str):
        return api_error(E.VALIDATION_INVALID, "Email and password must be strings")
    email = email.strip().lower()

    user, token = auth_service.authenticate(email, password)
    return jsonify({**token_response(token), "user": user.to_dict()}), 200


# ═══════════════════════════════════════════════════════════════
# POST /api/v1/auth/register
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/register", methods=["POST"])
def register():
    """
    Create a viewer account in a company whose domain matches the email.

    Body: { "email", "password", "first_name", "last_name", "company_id" }
    Any "role" in the body is ignored.
    """
    data = request.get_json(silent=True) or {}
    missing = [
        f for f in ("email", "password", "first_name", "last_name", "company_id")
        if not isinstance(data.get(f), str) or not data.get(f).strip()
    ]
    if missing:
        return api_error(
            E.VALIDATION_REQUIRED,
            f"Missing required fields: {', '.join(missing)}",
            details={f: "required" for f in missing},
        )

    user, token = auth_service.register(
        email=data["email"],
        password=data["password"],
        first_name=data["first_name"],
        last_name=data["last_name"],
        company_id=data["company_id"],
    )
    return jsonify({**token_response(token), "user": user.to_dict()}), 201


# ═══════════════════════════════════════════════════════════════
# GET /api/v1/auth/me
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/me", methods=["GET"])
@require_auth
def me():
    """Get current user profile from the session."""
    return jsonify(auth_service.profile(g.current_user)), 200


# ═══════════════════════════════════════════════════════════════
# POST /api/v1/auth/logout
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/logout", methods=["POST"])
@require_auth
def logout():
    auth_service.logout(g.current_user)
    return jsonify({"message": "Logged out successfully"}), 200


# ═══════════════════════════════════════════════════════════════
# PUT /api/v1/auth/password
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/password", methods=["PUT"])
@require_auth
def change_password():
    """
    Change current user's password.

    Body: { "current_password": "...", "new_password": "..." }
    """
    data = request.get_json(silent=True) or {}
    current_pw = data.get("current_password")
    new_pw = data.get("new_password")

    if not current_pw or not new_pw:
        return api_error(E.VALIDATION_REQUIRED, "Both current and new password are required")
    if not isinstance(current_pw, str) or not isinstance(new_pw, str):
        return api_error(E.VALIDATION_INVALID, "Passwords must be strings")
    if len(new_pw) < auth_service.MIN_PASSWORD_LENGTH:
        return api_error(
            E.VALIDATION_INVALID,
            f"New password must be at least {auth_service.MIN_PASSWORD_LENGTH} characters",
        )

    auth_service.change_password(g.current_user, current_pw, new_pw)
    return jsonify({"message": "Password changed successfully"}), 200
