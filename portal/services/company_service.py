"""
Company Service - tenant directory CRUD scoped by company visibility.
"""

import logging

from portal.core.exceptions import ForbiddenError, NotFoundError, ValidationError
from portal.models import db
from portal.models.audit import write_activity
from portal.models.auth import User
from portal.models.company import COMPANY_TYPES, Company
from portal.services import access_service
from portal.services.role_policy import is_action_permitted

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("name", "domain", "logo_url", "primary_color", "settings")


def _clean_domain(value) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError("domain must be a string", details={"domain": "invalid"})
    return value.strip().lower() or None


def _require(actor: User, action: str, resource_id=None) -> None:
    if not is_action_permitted(actor.role, action):
        access_service.log_denial(actor.id, action, "company", resource_id)
        raise ForbiddenError(actor_id=actor.id, resource="company", resource_id=resource_id)


def _require_visible(actor: User, company_id) -> None:
    if not access_service.can_access_company(actor.id, company_id):
        access_service.log_denial(actor.id, "companies.view", "company", company_id)
        raise ForbiddenError("Access denied", actor_id=actor.id, resource="company", resource_id=company_id)


def list_companies(actor: User, company_type: str | None = None) -> list[Company]:
    _require(actor, "companies.view")
    q = Company.query
    visible = access_service.accessible_company_ids(actor.id)
    if visible is not None:
        q = q.filter(Company.id.in_(visible))
    if company_type:
        q = q.filter(Company.type == company_type)
    return q.order_by(Company.name).all()


def get_company(actor: User, company_id: str) -> Company:
    _require(actor, "companies.view", company_id)
    _require_visible(actor, company_id)
    company = db.session.get(Company, company_id)
    if company is None:
        raise NotFoundError(resource="Company", resource_id=company_id)
    return company


def list_sub_companies(actor: User, company_id: str) -> list[Company]:
    parent = get_company(actor, company_id)
    return Company.query.filter_by(parent_id=parent.id).order_by(Company.name).all()


def create_company(actor: User, data: dict) -> Company:
    """Create a company.  Sub-companies need an existing, visible parent."""
    _require(actor, "companies.create")

    company_type = data["type"]
    if company_type not in COMPANY_TYPES:
        raise ValidationError(f"Invalid company type: {company_type}", details={"type": "invalid"})

    parent_id = data.get("parent_id")
    if company_type == "sub" and not parent_id:
        raise ValidationError("Sub-companies require parent_id", details={"parent_id": "required"})
    if parent_id:
        if db.session.get(Company, parent_id) is None:
            raise NotFoundError(resource="Company", resource_id=parent_id)
        _require_visible(actor, parent_id)

    company = Company(
        type=company_type,
        parent_id=parent_id,
        name=data["name"].strip(),
        domain=_clean_domain(data.get("domain")),
        logo_url=data.get("logo_url"),
        primary_color=data.get("primary_color"),
        settings=data.get("settings") or {},
    )
    db.session.add(company)
    db.session.flush()
    write_activity(
        user_id=actor.id,
        action="CREATE_COMPANY",
        resource_type="company",
        resource_id=company.id,
        details={"name": company.name, "type": company.type},
    )
    db.session.commit()
    logger.info("Company %s created by %s", company.id, actor.id)
    return company


def update_company(actor: User, company_id: str, data: dict) -> Company:
    _require(actor, "companies.update", company_id)
    _require_visible(actor, company_id)
    company = db.session.get(Company, company_id)
    if company is None:
        raise NotFoundError(resource="Company", resource_id=company_id)

    changed = []
    for field in UPDATABLE_FIELDS:
        if field in data:
            value = data[field]
            if field == "domain":
                value = _clean_domain(value)
            setattr(company, field, value)
            changed.append(field)

    write_activity(
        user_id=actor.id,
        action="UPDATE_COMPANY",
        resource_type="company",
        resource_id=company.id,
        details={"fields": changed},
    )
    db.session.commit()
    return company
