"""
Auth Service - credential check, session resolution, self-service registration.

Tokens are stateless: logging out only records the event.  Every request
re-resolves the user behind a token so deactivation takes effect at once.
"""

import logging

from portal.core.exceptions import (
    AccountInactiveError,
    ConflictError,
    ForbiddenError,
    InvalidCredentialsError,
    NotFoundError,
    ValidationError,
)
from portal.models import db, utcnow
from portal.models.audit import write_activity
from portal.models.auth import User
from portal.services import tenant_graph
from portal.services.jwt_service import generate_session_token
from portal.services.role_policy import (
    VIEWER_ROLE_BY_COMPANY_TYPE,
    manageable_roles,
    permitted_actions,
)
from portal.utils.crypto import hash_password, verify_password
from portal.utils.helpers import email_domain, normalize_email

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


def check_password_strength(password) -> None:
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
            details={"password": "too_short"},
        )


# ═══════════════════════════════════════════════════════════════
# Credential check
# ═══════════════════════════════════════════════════════════════
def authenticate(email: str, password: str) -> tuple[User, str]:
    """Check credentials and issue a session token.

    Raises:
        InvalidCredentialsError: unknown email, no password set, or wrong password.
        AccountInactiveError: correct password on a deactivated account.
    """
    email = (email or "").strip().lower()
    user = User.query.filter_by(email=email).first()
    if user is None or not verify_password(password, user.password_hash):
        logger.info("Failed login attempt for %s", email)
        raise InvalidCredentialsError()
    if not user.is_active:
        logger.info("Login refused for inactive user %s", user.id)
        raise AccountInactiveError()

    user.last_login = utcnow()
    write_activity(user_id=user.id, action="LOGIN", resource_type="user", resource_id=user.id)
    db.session.commit()
    return user, generate_session_token(user.id)


def resolve_session_user(user_id) -> User:
    """Load the user a verified token points at.

    Missing and inactive users raise the same error so the caller cannot
    tell which one it was.
    """
    user = db.session.get(User, user_id) if user_id else None
    if user is None or not user.is_active:
        raise AccountInactiveError()
    return user


# ═══════════════════════════════════════════════════════════════
# Self-service registration
# ═══════════════════════════════════════════════════════════════
def register(
    email: str,
    password: str,
    first_name: str,
    last_name: str,
    company_id: str,
) -> tuple[User, str]:
    """Create a viewer account in a company whose domain matches the email.

    The role is derived from the company type; nothing the caller sends
    can raise it.
    """
    email = normalize_email(email)
    check_password_strength(password)

    company = tenant_graph.get_company(company_id)
    if company is None:
        raise NotFoundError(resource="Company", resource_id=company_id)
    role = VIEWER_ROLE_BY_COMPANY_TYPE.get(company.type)
    if role is None:
        raise ForbiddenError("Registration is not open for this company")
    if not company.domain or email_domain(email) != company.domain.strip().lower():
        raise ValidationError(
            "Email domain does not match the company domain",
            details={"email": "domain_mismatch"},
        )

    if User.query.filter_by(email=email).first():
        raise ConflictError("User", "email", email, message="User already exists")

    user = User(
        company_id=company.id,
        email=email,
        password_hash=hash_password(password),
        first_name=first_name.strip(),
        last_name=last_name.strip(),
        role=role.value,
        is_active=True,
        last_login=utcnow(),
    )
    db.session.add(user)
    db.session.flush()
    write_activity(
        user_id=user.id,
        action="REGISTER",
        resource_type="user",
        resource_id=user.id,
        details={"company_id": company.id, "role": role.value},
    )
    db.session.commit()
    logger.info("User %s registered in company %s as %s", user.id, company.id, role.value)
    return user, generate_session_token(user.id)


# ═══════════════════════════════════════════════════════════════
# Session housekeeping
# ═══════════════════════════════════════════════════════════════
def logout(user: User) -> None:
    write_activity(user_id=user.id, action="LOGOUT", resource_type="user", resource_id=user.id)
    db.session.commit()


def change_password(user: User, current_password: str, new_password: str) -> None:
    if not verify_password(current_password, user.password_hash):
        raise ForbiddenError("Current password is incorrect", actor_id=user.id)
    check_password_strength(new_password)

    user.password_hash = hash_password(new_password)
    write_activity(
        user_id=user.id, action="CHANGE_PASSWORD", resource_type="user", resource_id=user.id,
    )
    db.session.commit()


def profile(user: User) -> dict:
    """Current-user payload: the user, their company and what they may do."""
    company = tenant_graph.get_company(user.company_id)
    return {
        "user": user.to_dict(),
        "company": company.to_dict() if company else None,
        "permissions": sorted(permitted_actions(user.role)),
        "manageable_roles": [r.value for r in manageable_roles(user.role)],
    }
