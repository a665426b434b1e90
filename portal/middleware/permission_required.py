"""
Permission Decorator - role-table check for route protection.

Usage:
    @bp.route("/api/v1/companies", methods=["POST"])
    @require_auth
    @require_action("companies.create")
    def create_company():
        ...

The decorator must sit below ``require_auth``: it reads
``g.current_user``.  Tenant-level checks (which company, which project)
stay in the service layer.
"""

import functools
import logging

from flask import g

from portal.services.role_policy import is_action_permitted
from portal.utils.errors import E, api_error

logger = logging.getLogger(__name__)


def _current_role():
    user = getattr(g, "current_user", None)
    return (user.id, user.role) if user is not None else (None, None)


def require_action(action: str):
    """
    Decorator: require the current user's role to permit ``action``.

    Args:
        action: Action codename, e.g. "projects.create"
    """
    def decorator(f):
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            user_id, role = _current_role()
            if not is_action_permitted(role, action):
                logger.warning(
                    "User %s denied: role '%s' lacks '%s' on %s",
                    user_id, role, action, f.__name__,
                )
                return api_error(E.FORBIDDEN, "Insufficient permissions")
            return f(*args, **kwargs)
        return decorated
    return decorator

