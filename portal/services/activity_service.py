"""Activity Service - filtered, paginated reads of the activity log."""

from portal.core.exceptions import ForbiddenError
from portal.models.audit import ActivityLog
from portal.models.auth import User
from portal.services import access_service
from portal.services.role_policy import is_action_permitted


def list_activity(
    actor: User,
    *,
    user_id: str | None = None,
    action: str | None = None,
    resource_type: str | None = None,
    resource_id: str | None = None,
    page: int = 1,
    per_page: int = 50,
) -> dict:
    if not is_action_permitted(actor.role, "activity.view"):
        access_service.log_denial(actor.id, "activity.view", "activity_log")
        raise ForbiddenError(actor_id=actor.id, resource="activity_log")

    q = ActivityLog.query
    if user_id:
        q = q.filter(ActivityLog.user_id == user_id)
    if action:
        q = q.filter(ActivityLog.action == action)
    if resource_type:
        q = q.filter(ActivityLog.resource_type == resource_type)
    if resource_id:
        q = q.filter(ActivityLog.resource_id == resource_id)

    paginated = q.order_by(ActivityLog.created_at.desc()).paginate(
        page=page, per_page=per_page, error_out=False,
    )
    return {
        "items": [entry.to_dict() for entry in paginated.items],
        "total": paginated.total,
        "page": paginated.page,
        "per_page": paginated.per_page,
        "pages": paginated.pages,
    }
