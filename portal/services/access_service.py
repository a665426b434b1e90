"""
Access Decision Engine - who may see which company, project, or user.

Every predicate here is total: it answers True/False (or an empty list)
for any well-formed input and never raises.  They are read-only and hold
no state between calls.

Rules
-----
Company visibility (``can_access_company``):
    owner-type actor company   → every company
    own company                → allowed
    direct sub-company         → allowed (one level only)

Project visibility (``can_access_project``):
    owner-type actor company   → every project
    client-type actor company  → projects whose client company is its own
    anyone                     → projects reachable through a ProjectAccess
                                 row for the actor or the actor's company

``get_user_projects`` enumerates the same visibility set, one row per
project, newest first.
"""

import logging

from sqlalchemy import or_

from portal.models import db
from portal.models.auth import User
from portal.models.company import Company
from portal.models.project import Project, ProjectAccess
from portal.services.role_policy import can_manage

logger = logging.getLogger(__name__)


def _resolve_actor(actor_user_id) -> tuple[User | None, Company | None]:
    if not actor_user_id:
        return None, None
    user = db.session.get(User, actor_user_id)
    if user is None:
        return None, None
    company = db.session.get(Company, user.company_id) if user.company_id else None
    return user, company


# ═══════════════════════════════════════════════════════════════
# Companies
# ═══════════════════════════════════════════════════════════════
def can_access_company(actor_user_id, target_company_id) -> bool:
    user, company = _resolve_actor(actor_user_id)
    if user is None or company is None:
        return False
    if company.type == "owner":
        return True
    if not target_company_id:
        return False
    if target_company_id == user.company_id:
        return True

    target = db.session.get(Company, target_company_id)
    return target is not None and target.parent_id == user.company_id


def accessible_company_ids(actor_user_id) -> list[str] | None:
    """Company ids the actor can see.  ``None`` means unrestricted."""
    user, company = _resolve_actor(actor_user_id)
    if user is None or company is None:
        return []
    if company.type == "owner":
        return None

    child_ids = [
        row.id
        for row in db.session.query(Company.id).filter(Company.parent_id == user.company_id)
    ]
    return [user.company_id, *child_ids]


# ═══════════════════════════════════════════════════════════════
# Projects
# ═══════════════════════════════════════════════════════════════
def can_access_project(actor_user_id, project_id) -> bool:
    user, company = _resolve_actor(actor_user_id)
    if user is None or company is None:
        return False
    if company.type == "owner":
        return True

    project = db.session.get(Project, project_id) if project_id else None
    if project is None:
        return False
    if company.type == "client" and project.client_company_id == user.company_id:
        return True

    grant = db.session.query(
        ProjectAccess.query.filter(
            ProjectAccess.project_id == project_id,
            or_(
                ProjectAccess.user_id == user.id,
                ProjectAccess.company_id == user.company_id,
            ),
        ).exists()
    ).scalar()
    return bool(grant)


def get_user_projects(actor_user_id) -> list[Project]:
    """Projects the actor can see, one entry per project, newest first."""
    user, company = _resolve_actor(actor_user_id)
    if user is None or company is None:
        return []

    q = Project.query
    if company.type == "owner":
        pass
    elif company.type == "client":
        granted = db.session.query(ProjectAccess.project_id).filter(
            or_(
                ProjectAccess.user_id == user.id,
                ProjectAccess.company_id == user.company_id,
            )
        )
        q = q.filter(
            or_(
                Project.client_company_id == user.company_id,
                Project.id.in_(granted),
            )
        )
    else:
        granted = db.session.query(ProjectAccess.project_id).filter(
            or_(
                ProjectAccess.user_id == user.id,
                ProjectAccess.company_id == user.company_id,
            )
        )
        q = q.filter(Project.id.in_(granted))

    return q.order_by(Project.created_at.desc(), Project.id).all()


# ═══════════════════════════════════════════════════════════════
# Users
# ═══════════════════════════════════════════════════════════════
def can_manage_user(actor_user_id, target_user_id=None, target_role=None) -> bool:
    """Role-table check for user management.

    With a concrete ``target_user_id`` the target's stored role is used and
    ``target_role`` is ignored.  Self-deletion is refused by the caller, not
    here.
    """
    actor = db.session.get(User, actor_user_id) if actor_user_id else None
    if actor is None:
        return False

    if target_user_id:
        target = db.session.get(User, target_user_id)
        if target is None:
            return False
        target_role = target.role

    return can_manage(actor.role, target_role)


def log_denial(actor_id, action: str, resource: str, resource_id=None) -> None:
    logger.warning(
        "Access denied: user=%s action=%s resource=%s id=%s",
        actor_id, action, resource, resource_id,
    )
