"""
Audit Service - digital audit artifacts delivered to client companies.

An audit is visible to whoever can see its client company.  Temporary
audits disappear for everyone outside the owner company once
``access_expires_at`` has passed.
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
from portal.models.auth import User
from portal.models.company import Company
from portal.models.digital_audit import AUDIT_ACCESS_TYPES, AUDIT_STATUSES, DigitalAudit
from portal.services import access_service, tenant_graph
from portal.services.role_policy import is_action_permitted
from portal.utils.helpers import parse_datetime

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("title", "html_content", "status", "access_type", "access_expires_at")


def _require(actor: User, action: str, audit_id=None) -> None:
    if not is_action_permitted(actor.role, action):
        access_service.log_denial(actor.id, action, "digital_audit", audit_id)
        raise ForbiddenError(actor_id=actor.id, resource="digital_audit", resource_id=audit_id)


def _in_owner_company(actor: User) -> bool:
    company = tenant_graph.get_company(actor.company_id)
    return company is not None and company.type == "owner"


def _load_visible(actor: User, audit_id: str, action: str) -> DigitalAudit:
    audit = db.session.get(DigitalAudit, audit_id)
    if audit is None:
        raise NotFoundError(resource="Audit", resource_id=audit_id)
    if not access_service.can_access_company(actor.id, audit.client_company_id):
        access_service.log_denial(actor.id, action, "digital_audit", audit_id)
        raise ForbiddenError("Access denied", actor_id=actor.id, resource="digital_audit", resource_id=audit_id)
    if audit.is_expired and not _in_owner_company(actor):
        raise NotFoundError(resource="Audit", resource_id=audit_id)
    return audit


def _parse_expiry(value):
    try:
        return parse_datetime(value)
    except ValueError as exc:
        raise ValidationError(str(exc), details={"access_expires_at": "invalid"})


def _check_access_window(access_type, expires_at) -> None:
    if access_type not in AUDIT_ACCESS_TYPES:
        raise ValidationError(f"Invalid access_type: {access_type}", details={"access_type": "invalid"})
    if access_type == "temporary" and expires_at is None:
        raise ValidationError(
            "Temporary audits require access_expires_at",
            details={"access_expires_at": "required"},
        )


# ═══════════════════════════════════════════════════════════════
# Reads
# ═══════════════════════════════════════════════════════════════
def list_audits(actor: User, client_company_id: str | None = None, status: str | None = None) -> list[DigitalAudit]:
    _require(actor, "audits.view")

    q = DigitalAudit.query
    if client_company_id:
        if not access_service.can_access_company(actor.id, client_company_id):
            access_service.log_denial(actor.id, "audits.view", "company", client_company_id)
            raise ForbiddenError("Access denied", actor_id=actor.id, resource="company",
                                 resource_id=client_company_id)
        q = q.filter(DigitalAudit.client_company_id == client_company_id)
    else:
        visible = access_service.accessible_company_ids(actor.id)
        if visible is not None:
            q = q.filter(DigitalAudit.client_company_id.in_(visible))
    if status:
        q = q.filter(DigitalAudit.status == status)

    audits = q.order_by(DigitalAudit.created_at.desc()).all()
    if not _in_owner_company(actor):
        audits = [a for a in audits if not a.is_expired]
    return audits


def get_audit(actor: User, audit_id: str) -> DigitalAudit:
    _require(actor, "audits.view", audit_id)
    return _load_visible(actor, audit_id, "audits.view")


# ═══════════════════════════════════════════════════════════════
# Mutations
# ═══════════════════════════════════════════════════════════════
def create_audit(actor: User, data: dict) -> DigitalAudit:
    _require(actor, "audits.create")
    client_company_id = data["client_company_id"]
    if not access_service.can_access_company(actor.id, client_company_id):
        access_service.log_denial(actor.id, "audits.create", "company", client_company_id)
        raise ForbiddenError("Access denied", actor_id=actor.id, resource="company",
                             resource_id=client_company_id)
    if db.session.get(Company, client_company_id) is None:
        raise NotFoundError(resource="Company", resource_id=client_company_id)

    status = data.get("status") or "draft"
    if status not in AUDIT_STATUSES or status == "published":
        raise ValidationError(f"Invalid status: {status}", details={"status": "invalid"})
    access_type = data.get("access_type") or "permanent"
    expires_at = _parse_expiry(data.get("access_expires_at"))
    _check_access_window(access_type, expires_at)

    audit = DigitalAudit(
        client_company_id=client_company_id,
        title=data["title"].strip(),
        html_content=data.get("html_content"),
        status=status,
        access_type=access_type,
        access_expires_at=expires_at,
        created_by=actor.id,
    )
    db.session.add(audit)
    db.session.flush()
    write_activity(
        user_id=actor.id,
        action="CREATE_AUDIT",
        resource_type="digital_audit",
        resource_id=audit.id,
        details={"title": audit.title, "client_company_id": client_company_id},
    )
    db.session.commit()
    return audit


def update_audit(actor: User, audit_id: str, data: dict) -> DigitalAudit:
    _require(actor, "audits.update", audit_id)
    audit = _load_visible(actor, audit_id, "audits.update")

    if "status" in data and (data["status"] not in AUDIT_STATUSES or data["status"] == "published"):
        raise ValidationError(f"Invalid status: {data['status']}", details={"status": "invalid"})
    access_type = data.get("access_type", audit.access_type)
    expires_at = (
        _parse_expiry(data["access_expires_at"]) if "access_expires_at" in data
        else audit.access_expires_at
    )
    _check_access_window(access_type, expires_at)

    changed = []
    for field in UPDATABLE_FIELDS:
        if field not in data:
            continue
        value = expires_at if field == "access_expires_at" else data[field]
        setattr(audit, field, value)
        changed.append(field)

    write_activity(
        user_id=actor.id,
        action="UPDATE_AUDIT",
        resource_type="digital_audit",
        resource_id=audit.id,
        details={"fields": changed},
    )
    db.session.commit()
    return audit


def publish_audit(actor: User, audit_id: str) -> DigitalAudit:
    _require(actor, "audits.publish", audit_id)
    audit = _load_visible(actor, audit_id, "audits.publish")
    if audit.status == "published":
        raise ConflictError("Audit", "status", audit.status, message="Audit is already published")

    audit.status = "published"
    audit.published_at = utcnow()
    write_activity(
        user_id=actor.id,
        action="PUBLISH_AUDIT",
        resource_type="digital_audit",
        resource_id=audit.id,
    )
    db.session.commit()
    logger.info("Audit %s published by %s", audit.id, actor.id)
    return audit
