"""
Client Portal
Activity log model.

Models:
    - ActivityLog: append-only trail of who did what to which resource.
"""

from portal.models import db, iso, new_id, utcnow


class ActivityLog(db.Model):
    """
    One row per authenticated request or per mutation.

    Request-level rows carry ``"<METHOD> <path>"`` as the action and no
    resource; mutation rows carry an upper-case code such as ``CREATE_USER``
    plus the resource type and id.
    """

    __tablename__ = "activity_log"
    __table_args__ = (
        db.Index("idx_activity_resource", "resource_type", "resource_id"),
        db.Index("idx_activity_action", "action"),
        db.Index("idx_activity_ts", "created_at"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(
        db.String(36),
        db.ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    action = db.Column(db.String(100), nullable=False)
    resource_type = db.Column(db.String(50))
    resource_id = db.Column(db.String(36))
    details = db.Column(db.JSON)
    ip_address = db.Column(db.String(45))
    user_agent = db.Column(db.Text)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "action": self.action,
            "resource_type": self.resource_type,
            "resource_id": self.resource_id,
            "details": self.details or {},
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "created_at": iso(self.created_at),
        }

    def __repr__(self):
        return f"<ActivityLog {self.id}: {self.action} {self.resource_type}/{self.resource_id}>"


# ── Convenience writer ───────────────────────────────────────────────────────

def write_activity(
    *,
    user_id: str | None,
    action: str,
    resource_type: str | None = None,
    resource_id: str | None = None,
    details: dict | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> ActivityLog:
    """
    Append a single activity row.  Uses ``flush`` so callers keep
    transaction control.

    Returns the (flushed) ActivityLog instance.
    """
    if ip_address is None and user_agent is None:
        from flask import has_request_context, request
        if has_request_context():
            ip_address = request.remote_addr
            user_agent = request.headers.get("User-Agent")

    log = ActivityLog(
        user_id=user_id,
        action=action,
        resource_type=resource_type,
        resource_id=str(resource_id) if resource_id is not None else None,
        details=details,
        ip_address=ip_address,
        user_agent=(user_agent or "")[:500] or None,
    )
    db.session.add(log)
    db.session.flush()
    return log
