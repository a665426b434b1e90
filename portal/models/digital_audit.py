"""Digital audit artifacts published to client companies."""

from datetime import timezone

from portal.models import db, iso, new_id, utcnow

AUDIT_STATUSES = ("draft", "review", "published", "archived")
AUDIT_ACCESS_TYPES = ("permanent", "temporary")


class DigitalAudit(db.Model):
    __tablename__ = "digital_audits"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    client_company_id = db.Column(
        db.String(36), db.ForeignKey("companies.id"), nullable=False, index=True
    )
    title = db.Column(db.String(255), nullable=False)
    html_content = db.Column(db.Text)
    status = db.Column(db.String(20), nullable=False, default="draft")
    access_type = db.Column(db.String(20), nullable=False, default="permanent")
    access_expires_at = db.Column(db.DateTime(timezone=True))
    created_by = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    published_at = db.Column(db.DateTime(timezone=True))
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    @property
    def is_expired(self) -> bool:
        """Temporary audits stop being visible once their window closes."""
        if self.access_type != "temporary" or self.access_expires_at is None:
            return False
        expires = self.access_expires_at
        if expires.tzinfo is None:
            expires = expires.replace(tzinfo=timezone.utc)
        return utcnow() > expires

    def to_dict(self, include_content: bool = True) -> dict:
        d = {
            "id": self.id,
            "client_company_id": self.client_company_id,
            "title": self.title,
            "status": self.status,
            "access_type": self.access_type,
            "access_expires_at": iso(self.access_expires_at),
            "created_by": self.created_by,
            "published_at": iso(self.published_at),
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }
        if include_content:
            d["html_content"] = self.html_content
        return d

    def __repr__(self) -> str:
        return f"<DigitalAudit {self.id}: {self.title} ({self.status})>"
