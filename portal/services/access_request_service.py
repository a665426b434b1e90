"""
Access Request Service - self-service requests and their one-time review.

Approval mints a user.  The user insert, the status transition and the
activity entry are one transaction: either all three land or none do, so
a request is never ``approved`` without its user and a user never exists
for a request still ``pending``.  The move off ``pending`` is a
conditional update, so two reviewers racing on one request cannot both win.

The reviewer is re-checked against the access engine on every approval:
the resolved target company must be visible to them and the requested
role must be one they may manage.  A caller-supplied company override is
never trusted on its own.
"""

import logging

from portal.core.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from portal.models import db, utcnow
from portal.models.audit import write_activity
from portal.models.auth import ACCESS_REQUEST_STATUSES, AccessRequest, User
from portal.models.company import Company
from portal.services import access_service, tenant_graph
from portal.services.role_policy import Role, can_manage, is_action_permitted
from portal.utils.helpers import normalize_email

logger = logging.getLogger(__name__)

REVIEW_OUTCOMES = ("approved", "denied")


def _require_reviewer(actor: User, request_id=None) -> None:
    if not is_action_permitted(actor.role, "access_requests.review"):
        access_service.log_denial(actor.id, "access_requests.review", "access_request", request_id)
        raise ForbiddenError(actor_id=actor.id, resource="access_request", resource_id=request_id)


def split_name(full_name: str) -> tuple[str, str]:
    """'Ada King Lovelace' → ('Ada', 'King Lovelace'); blanks fall back to 'User' / 'Account'."""
    parts = (full_name or "").split()
    first = parts[0] if parts else "User"
    last = " ".join(parts[1:]) if len(parts) > 1 else "Account"
    return first, last


# ═══════════════════════════════════════════════════════════════
# Intake (unauthenticated)
# ═══════════════════════════════════════════════════════════════
def create_request(data: dict) -> AccessRequest:
    email = normalize_email(data.get("requester_email"))
    role = Role.parse(data.get("requested_role"))
    if role is None:
        raise ValidationError(
            f"Invalid role: {data.get('requested_role')}", details={"requested_role": "invalid"}
        )

    company_id = data.get("company_id") or None
    if company_id and db.session.get(Company, company_id) is None:
        raise NotFoundError(resource="Company", resource_id=company_id)

    if User.query.filter_by(email=email).first():
        raise ConflictError("User", "email", email, message="User already exists")
    if AccessRequest.query.filter_by(requester_email=email, status="pending").first():
        raise ConflictError(
            "AccessRequest", "requester_email", email,
            message="A pending request already exists for this email",
        )

    req = AccessRequest(
        requester_email=email,
        requester_name=data["requester_name"].strip(),
        company_id=company_id,
        requested_role=role.value,
        message=data.get("message"),
        status="pending",
    )
    db.session.add(req)
    db.session.commit()
    logger.info("Access request %s received for %s", req.id, email)
    return req


# ═══════════════════════════════════════════════════════════════
# Review
# ═══════════════════════════════════════════════════════════════
def list_requests(actor: User, status: str | None = "pending") -> list[AccessRequest]:
    _require_reviewer(actor)
    q = AccessRequest.query
    if status:
        if status not in ACCESS_REQUEST_STATUSES:
            raise ValidationError(f"Invalid status: {status}", details={"status": "invalid"})
        q = q.filter(AccessRequest.status == status)
    return q.order_by(AccessRequest.created_at.asc()).all()


def get_request(actor: User, request_id: str) -> AccessRequest:
    _require_reviewer(actor, request_id)
    req = db.session.get(AccessRequest, request_id)
    if req is None:
        raise NotFoundError(resource="Access request", resource_id=request_id)
    return req


def _resolve_target_company(req: AccessRequest, override_company_id) -> Company:
    company_id = override_company_id or req.company_id
    if company_id:
        company = db.session.get(Company, company_id)
        if company is None:
            raise NotFoundError(resource="Company", resource_id=company_id)
        return company

    company = tenant_graph.default_client_company()
    if company is None:
        raise ValidationError("No company available for approval; provide company_id")
    return company


def _mint_user_from_request(req: AccessRequest, company_id: str) -> User:
    first_name, last_name = split_name(req.requester_name)
    user = User(
        company_id=company_id,
        email=req.requester_email,
        first_name=first_name,
        last_name=last_name,
        role=req.requested_role,
        is_active=True,
    )
    db.session.add(user)
    db.session.flush()
    return user


def _mark_reviewed(req: AccessRequest, reviewer: User, status: str) -> None:
    # Compare-and-set on status: only one reviewer can move a request off pending.
    claimed = AccessRequest.query.filter_by(id=req.id, status="pending").update(
        {"status": status, "reviewed_by": reviewer.id, "reviewed_at": utcnow()},
        synchronize_session=False,
    )
    if claimed != 1:
        raise ConflictError(
            "AccessRequest", "status", req.id,
            message="Access request already reviewed",
        )
    db.session.refresh(req)


def review_request(
    reviewer: User,
    request_id: str,
    status: str,
    company_id: str | None = None,
) -> tuple[AccessRequest, User | None]:
    """Approve or deny a pending request exactly once.

    Returns the request and, on approval, the user created for it.
    """
    _require_reviewer(reviewer, request_id)
    if status not in REVIEW_OUTCOMES:
        raise ValidationError(
            f"status must be one of {', '.join(REVIEW_OUTCOMES)}", details={"status": "invalid"}
        )

    req = db.session.get(AccessRequest, request_id)
    if req is None:
        raise NotFoundError(resource="Access request", resource_id=request_id)
    if req.status != "pending":
        raise ConflictError(
            "AccessRequest", "status", req.status,
            message=f"Access request already {req.status}",
        )

    target_company = None
    if status == "approved":
        target_company = _resolve_target_company(req, company_id)
        if not access_service.can_access_company(reviewer.id, target_company.id):
            access_service.log_denial(reviewer.id, "access_requests.review", "company", target_company.id)
            raise ForbiddenError("Access denied", actor_id=reviewer.id, resource="company",
                                 resource_id=target_company.id)
        if not can_manage(reviewer.role, req.requested_role):
            access_service.log_denial(reviewer.id, "access_requests.review", "access_request", req.id)
            raise ForbiddenError(actor_id=reviewer.id, resource="access_request", resource_id=req.id)
        if User.query.filter_by(email=req.requester_email).first():
            raise ConflictError("User", "email", req.requester_email, message="User already exists")

    user = None
    try:
        if target_company is not None:
            user = _mint_user_from_request(req, target_company.id)
        _mark_reviewed(req, reviewer, status)
        write_activity(
            user_id=reviewer.id,
            action="REVIEW_ACCESS_REQUEST",
            resource_type="access_request",
            resource_id=req.id,
            details={
                "status": status,
                "user_id": user.id if user else None,
                "company_id": target_company.id if target_company else None,
            },
        )
        db.session.commit()
    except ConflictError:
        db.session.rollback()
        logger.warning("Access request %s was reviewed concurrently", request_id)
        raise
    except Exception:
        db.session.rollback()
        logger.exception("Review of access request %s failed; rolled back", request_id)
        raise

    logger.info("Access request %s %s by %s", req.id, status, reviewer.id)
    return req, user
