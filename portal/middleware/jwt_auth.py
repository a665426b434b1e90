"""
JWT Auth Middleware - parses the bearer token, then guards routes.

Two pieces:
  1. ``init_jwt_middleware`` registers a before_request hook that reads
     ``Authorization: Bearer <token>`` and sets ``g.jwt_user_id`` (or
     ``g.jwt_error`` = "missing" / "invalid").  It never rejects a request.
  2. ``require_auth`` decorates routes that need a session.  It turns the
     parsed state into 401s, loads the user into ``g.current_user`` and
     appends the request-level activity entry.

401 messages:
  no header / not Bearer          → "No token provided"
  bad signature / expired / type  → "Invalid token"
  unknown or inactive user        → "User not found or inactive"
"""

import functools
import logging

from flask import g, request
from sqlalchemy.exc import SQLAlchemyError

from portal.core.exceptions import NotAuthenticatedError
from portal.models import db
from portal.models.audit import write_activity
from portal.services.auth_service import resolve_session_user
from portal.services.jwt_service import verify_session

logger = logging.getLogger(__name__)


def init_jwt_middleware(app):
    """Register JWT middleware as a before_request hook."""

    @app.before_request
    def _jwt_auth():
        g.jwt_user_id = None
        g.jwt_error = None
        g.current_user = None

        if not request.path.startswith("/api/v1/"):
            return

        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            g.jwt_error = "missing"
            return

        token = auth_header[7:].strip()  # Strip "Bearer "
        if not token:
            g.jwt_error = "missing"
            return

        user_id = verify_session(token)
        if user_id is None:
            g.jwt_error = "invalid"
            return
        g.jwt_user_id = user_id


def _record_request_activity(user) -> None:
    """Append "<METHOD> <path>" for the caller.  Failures are logged, never raised."""
    try:
        write_activity(user_id=user.id, action=f"{request.method} {request.path}")
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.warning("Could not record request activity for user %s", user.id, exc_info=True)


def require_auth(f):
    """Decorator: the route needs a valid session for an active user."""

    @functools.wraps(f)
    def decorated(*args, **kwargs):
        user_id = getattr(g, "jwt_user_id", None)
        if user_id is None:
            if getattr(g, "jwt_error", None) == "invalid":
                raise NotAuthenticatedError("Invalid token")
            raise NotAuthenticatedError("No token provided")

        user = resolve_session_user(user_id)
        g.current_user = user
        _record_request_activity(user)
        return f(*args, **kwargs)

    return decorated
