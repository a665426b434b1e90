"""
Project Service - projects and their explicit access grants.

Visibility always comes from the access engine: listings use
``get_user_projects`` and single-project calls use ``can_access_project``
before the existence check.
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
from portal.models.auth import User
from portal.models.company import Company
from portal.models.project import ACCESS_LEVELS, PROJECT_STATUSES, Project, ProjectAccess
from portal.services import access_service
from portal.services.role_policy import is_action_permitted
from portal.utils.helpers import parse_date

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("name", "description", "status", "settings", "start_date", "end_date")


def _require(actor: User, action: str, project_id=None) -> None:
    if not is_action_permitted(actor.role, action):
        access_service.log_denial(actor.id, action, "project", project_id)
        raise ForbiddenError(actor_id=actor.id, resource="project", resource_id=project_id)


def _require_project(actor: User, project_id: str, action: str) -> Project:
    if not access_service.can_access_project(actor.id, project_id):
        access_service.log_denial(actor.id, action, "project", project_id)
        raise ForbiddenError("Access denied", actor_id=actor.id, resource="project", resource_id=project_id)
    project = db.session.get(Project, project_id)
    if project is None:
        raise NotFoundError(resource="Project", resource_id=project_id)
    return project


def _check_status(status) -> None:
    if status not in PROJECT_STATUSES:
        raise ValidationError(f"Invalid status: {status}", details={"status": "invalid"})


# ═══════════════════════════════════════════════════════════════
# Projects
# ═══════════════════════════════════════════════════════════════
def list_projects(actor: User, status: str | None = None, client_company_id: str | None = None) -> list[Project]:
    _require(actor, "projects.view")
    projects = access_service.get_user_projects(actor.id)
    if status:
        projects = [p for p in projects if p.status == status]
    if client_company_id:
        projects = [p for p in projects if p.client_company_id == client_company_id]
    return projects


def get_project(actor: User, project_id: str) -> Project:
    _require(actor, "projects.view", project_id)
    return _require_project(actor, project_id, "projects.view")


def create_project(actor: User, data: dict) -> Project:
    _require(actor, "projects.create")
    client_company_id = data["client_company_id"]
    if not access_service.can_access_company(actor.id, client_company_id):
        access_service.log_denial(actor.id, "projects.create", "company", client_company_id)
        raise ForbiddenError("Access denied", actor_id=actor.id, resource="company", resource_id=client_company_id)
    if db.session.get(Company, client_company_id) is None:
        raise NotFoundError(resource="Company", resource_id=client_company_id)

    status = data.get("status") or "active"
    _check_status(status)

    project = Project(
        client_company_id=client_company_id,
        name=data["name"].strip(),
        description=data.get("description"),
        status=status,
        created_by=actor.id,
        settings=data.get("settings") or {},
        start_date=parse_date(data.get("start_date")),
        end_date=parse_date(data.get("end_date")),
    )
    db.session.add(project)
    db.session.flush()
    write_activity(
        user_id=actor.id,
        action="CREATE_PROJECT",
        resource_type="project",
        resource_id=project.id,
        details={"name": project.name, "client_company_id": client_company_id},
    )
    db.session.commit()
    logger.info("Project %s created by %s", project.id, actor.id)
    return project


def update_project(actor: User, project_id: str, data: dict) -> Project:
    _require(actor, "projects.update", project_id)
    project = _require_project(actor, project_id, "projects.update")

    if "status" in data:
        _check_status(data["status"])

    changed = []
    for field in UPDATABLE_FIELDS:
        if field not in data:
            continue
        value = data[field]
        if field in ("start_date", "end_date"):
            value = parse_date(value)
        elif field == "name" and isinstance(value, str):
            value = value.strip()
        setattr(project, field, value)
        changed.append(field)

    write_activity(
        user_id=actor.id,
        action="UPDATE_PROJECT",
        resource_type="project",
        resource_id=project.id,
        details={"fields": changed},
    )
    db.session.commit()
    return project


# ═══════════════════════════════════════════════════════════════
# Access grants
# ═══════════════════════════════════════════════════════════════
def list_grants(actor: User, project_id: str) -> list[ProjectAccess]:
    _require(actor, "projects.grant_access", project_id)
    project = _require_project(actor, project_id, "projects.grant_access")
    return project.grants.order_by(ProjectAccess.granted_at.asc()).all()


def grant_access(actor: User, project_id: str, data: dict) -> ProjectAccess:
    """Grant a project to exactly one user or one company."""
    _require(actor, "projects.grant_access", project_id)
    project = _require_project(actor, project_id, "projects.grant_access")

    user_id = data.get("user_id")
    company_id = data.get("company_id")
    if bool(user_id) == bool(company_id):
        raise ValidationError("Provide exactly one of user_id or company_id")

    access_level = data.get("access_level") or "view"
    if access_level not in ACCESS_LEVELS:
        raise ValidationError(f"Invalid access_level: {access_level}", details={"access_level": "invalid"})

    if user_id and db.session.get(User, user_id) is None:
        raise NotFoundError(resource="User", resource_id=user_id)
    if company_id and db.session.get(Company, company_id) is None:
        raise NotFoundError(resource="Company", resource_id=company_id)

    existing = ProjectAccess.query.filter_by(
        project_id=project.id, user_id=user_id, company_id=company_id,
    ).first()
    if existing:
        raise ConflictError(
            "ProjectAccess", "user_id" if user_id else "company_id", user_id or company_id,
            message="Access already granted",
        )

    grant = ProjectAccess(
        project_id=project.id,
        user_id=user_id,
        company_id=company_id,
        access_level=access_level,
        granted_by=actor.id,
    )
    db.session.add(grant)
    db.session.flush()
    write_activity(
        user_id=actor.id,
        action="GRANT_PROJECT_ACCESS",
        resource_type="project",
        resource_id=project.id,
        details={"grant_id": grant.id, "user_id": user_id, "company_id": company_id,
                 "access_level": access_level},
    )
    db.session.commit()
    return grant


def revoke_access(actor: User, project_id: str, grant_id: str) -> None:
    _require(actor, "projects.grant_access", project_id)
    project = _require_project(actor, project_id, "projects.grant_access")

    grant = ProjectAccess.query.filter_by(id=grant_id, project_id=project.id).first()
    if grant is None:
        raise NotFoundError(resource="ProjectAccess", resource_id=grant_id)

    details = {"grant_id": grant.id, "user_id": grant.user_id, "company_id": grant.company_id}
    db.session.delete(grant)
    write_activity(
        user_id=actor.id,
        action="REVOKE_PROJECT_ACCESS",
        resource_type="project",
        resource_id=project.id,
        details=details,
    )
    db.session.commit()
