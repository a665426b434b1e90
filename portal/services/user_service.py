"""
User Service - CRUD, invitations, role assignment.

Every mutation runs the role table (``can_manage_user``) and company
visibility before touching the store, then writes exactly one activity
entry in the same transaction.
"""

import logging

from portal.core.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from portal.models import db
from portal.models.audit import write_activity
from portal.models.auth import AccessRequest, User
from portal.models.company import Company
from portal.services import access_service
from portal.services.auth_service import check_password_strength
from portal.services.role_policy import Role, can_manage, is_action_permitted
from portal.utils.crypto import hash_password
from portal.utils.helpers import normalize_email

logger = logging.getLogger(__name__)

SELF_EDITABLE_FIELDS = ("first_name", "last_name")
MANAGED_FIELDS = ("first_name", "last_name", "tags", "is_active")


def _parse_role(value) -> Role:
    role = Role.parse(value)
    if role is None:
        raise ValidationError(f"Invalid role: {value}", details={"role": "invalid"})
    return role


def _forbid(actor: User, action: str, resource_id=None, message: str = "Insufficient permissions"):
    access_service.log_denial(actor.id, action, "user", resource_id)
    return ForbiddenError(message, actor_id=actor.id, resource="user", resource_id=resource_id)


def _sees_everyone(actor: User) -> bool:
    return actor.role in (Role.OWNER.value, Role.ADMIN.value)


def _can_view(actor: User, target: User) -> bool:
    if target.id == actor.id:
        return True
    if actor.role == Role.ADMIN.value and target.role == Role.OWNER.value:
        return False
    if _sees_everyone(actor):
        return True
    return access_service.can_access_company(actor.id, target.company_id)


# ═══════════════════════════════════════════════════════════════
# Reads
# ═══════════════════════════════════════════════════════════════
def list_users(actor: User, company_id: str | None = None, role: str | None = None) -> list[User]:
    """Users visible to ``actor``, ordered by email.

    Owner and admin roles see every user (admins never see owner-role users);
    everyone else sees their own company.  A ``company_id`` filter requires
    visibility of that company.
    """
    if not is_action_permitted(actor.role, "users.view"):
        raise _forbid(actor, "users.view")

    q = User.query
    if company_id:
        if not access_service.can_access_company(actor.id, company_id):
            raise _forbid(actor, "users.view", message="Access denied")
        q = q.filter(User.company_id == company_id)
    elif not _sees_everyone(actor):
        q = q.filter(User.company_id == actor.company_id)

    if actor.role == Role.ADMIN.value:
        q = q.filter(User.role != Role.OWNER.value)
    if role:
        q = q.filter(User.role == role)
    return q.order_by(User.email).all()


def get_user(actor: User, user_id: str) -> User:
    if not is_action_permitted(actor.role, "users.view"):
        raise _forbid(actor, "users.view", user_id)
    target = db.session.get(User, user_id)
    if target is None:
        raise NotFoundError(resource="User", resource_id=user_id)
    if not _can_view(actor, target):
        raise _forbid(actor, "users.view", user_id, message="Access denied")
    return target


# ═══════════════════════════════════════════════════════════════
# Mutations
# ═══════════════════════════════════════════════════════════════
def create_user(actor: User, data: dict) -> User:
    """Create a user in a company the actor can see, with a role the actor may assign."""
    email = normalize_email(data.get("email"))
    role = _parse_role(data.get("role"))
    company_id = data.get("company_id")

    if not access_service.can_manage_user(actor.id, target_role=role):
        raise _forbid(actor, "users.manage")
    if not access_service.can_access_company(actor.id, company_id):
        raise _forbid(actor, "users.manage", message="Access denied")
    if db.session.get(Company, company_id) is None:
        raise NotFoundError(resource="Company", resource_id=company_id)
    if User.query.filter_by(email=email).first():
        raise ConflictError("User", "email", email, message="User already exists")

    password = data.get("password")
    if password is not None:
        check_password_strength(password)
    user = User(
        company_id=company_id,
        email=email,
        password_hash=hash_password(password) if password else None,
        first_name=data["first_name"].strip(),
        last_name=data["last_name"].strip(),
        role=role.value,
        tags=data.get("tags") or [],
        is_active=bool(data.get("is_active", True)),
    )
    db.session.add(user)
    db.session.flush()
    write_activity(
        user_id=actor.id,
        action="CREATE_USER",
        resource_type="user",
        resource_id=user.id,
        details={"email": user.email, "role": user.role, "company_id": company_id},
    )
    db.session.commit()
    logger.info("User %s created by %s with role %s", user.id, actor.id, user.role)
    return user


def update_user(actor: User, user_id: str, data: dict) -> User:
    """Update a user.

    Users may rename themselves.  Anything else needs the role table on the
    target's current role; a new role is checked again and a company move
    needs visibility of the destination.
    """
    target = db.session.get(User, user_id)
    if target is None:
        raise NotFoundError(resource="User", resource_id=user_id)

    is_self = target.id == actor.id
    if is_self and set(data) <= set(SELF_EDITABLE_FIELDS):
        fields = SELF_EDITABLE_FIELDS
    else:
        if not access_service.can_manage_user(actor.id, target_user_id=target.id):
            raise _forbid(actor, "users.manage", user_id)
        if not _can_view(actor, target):
            raise _forbid(actor, "users.manage", user_id, message="Access denied")
        fields = MANAGED_FIELDS

    if data.get("password") is not None and not is_self:
        check_password_strength(data["password"])

    new_role = None
    if "role" in data and not is_self:
        new_role = _parse_role(data["role"])
        if not can_manage(actor.role, new_role):
            raise _forbid(actor, "users.manage", user_id)

    new_company_id = data.get("company_id") if not is_self else None
    if new_company_id and new_company_id != target.company_id:
        if not access_service.can_access_company(actor.id, new_company_id):
            raise _forbid(actor, "users.manage", user_id, message="Access denied")
        if db.session.get(Company, new_company_id) is None:
            raise NotFoundError(resource="Company", resource_id=new_company_id)

    changed = []
    for field in fields:
        if field in data:
            value = data[field]
            if isinstance(value, str):
                value = value.strip()
            setattr(target, field, value)
            changed.append(field)
    if new_role is not None:
        target.role = new_role.value
        changed.append("role")
    if new_company_id and new_company_id != target.company_id:
        target.company_id = new_company_id
        changed.append("company_id")
    if data.get("password") is not None and not is_self:
        target.password_hash = hash_password(data["password"])
        changed.append("password")

    write_activity(
        user_id=actor.id,
        action="UPDATE_USER",
        resource_type="user",
        resource_id=target.id,
        details={"fields": changed},
    )
    db.session.commit()
    return target


def delete_user(actor: User, user_id: str) -> None:
    """Delete a user.

    Order: role table, then self-deletion, then existence.
    """
    if not access_service.can_manage_user(actor.id, target_user_id=user_id):
        raise _forbid(actor, "users.manage", user_id)
    if user_id == actor.id:
        raise ValidationError("Cannot delete your own account")

    target = db.session.get(User, user_id)
    if target is None:
        raise NotFoundError(resource="User", resource_id=user_id)
    if not _can_view(actor, target):
        raise _forbid(actor, "users.manage", user_id, message="Access denied")

    details = {"email": target.email, "role": target.role, "company_id": target.company_id}
    db.session.delete(target)
    db.session.flush()
    write_activity(
        user_id=actor.id,
        action="DELETE_USER",
        resource_type="user",
        resource_id=user_id,
        details=details,
    )
    db.session.commit()
    logger.info("User %s deleted by %s", user_id, actor.id)


def invite_user(actor: User, data: dict) -> AccessRequest:
    """Record a pending access request on behalf of someone the actor invites."""
    email = normalize_email(data.get("email"))
    role = _parse_role(data.get("role"))
    company_id = data.get("company_id") or actor.company_id

    if not access_service.can_manage_user(actor.id, target_role=role):
        raise _forbid(actor, "users.manage")
    if not access_service.can_access_company(actor.id, company_id):
        raise _forbid(actor, "users.manage", message="Access denied")
    if db.session.get(Company, company_id) is None:
        raise NotFoundError(resource="Company", resource_id=company_id)
    if User.query.filter_by(email=email).first():
        raise ConflictError("User", "email", email, message="User already exists")

    invite = AccessRequest(
        requester_email=email,
        requester_name=data.get("name") or email.split("@", 1)[0],
        company_id=company_id,
        requested_role=role.value,
        message=data.get("message") or f"Invited by user {actor.email}",
        status="pending",
    )
    db.session.add(invite)
    db.session.flush()
    write_activity(
        user_id=actor.id,
        action="INVITE_USER",
        resource_type="access_request",
        resource_id=invite.id,
        details={"email": email, "role": role.value, "company_id": company_id},
    )
    db.session.commit()
    return invite
