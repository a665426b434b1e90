"""
Auth Models - users and access requests.

A user belongs to exactly one company and carries exactly one role; the
pair (company_id, role) is the whole of their authority.  Access requests
are the self-service path by which a new user gets minted after review.
"""

from portal.models import db, iso, new_id, utcnow

ACCESS_REQUEST_STATUSES = ("pending", "approved", "denied")


# ═══════════════════════════════════════════════════════════════
# 1. USERS
# ═══════════════════════════════════════════════════════════════
class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    company_id = db.Column(
        db.String(36), db.ForeignKey("companies.id"), nullable=False, index=True
    )
    email = db.Column(db.String(255), unique=True, nullable=False)
    password_hash = db.Column(db.String(255))  # NULL until a password is set
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    role = db.Column(db.String(50), nullable=False)
    tags = db.Column(db.JSON, default=list)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    last_login = db.Column(db.DateTime(timezone=True))
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationships
    company = db.relationship("Company", back_populates="users")

    def to_dict(self) -> dict:
        # password_hash never leaves the model.
        return {
            "id": self.id,
            "company_id": self.company_id,
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "role": self.role,
            "tags": self.tags or [],
            "is_active": bool(self.is_active),
            "last_login": iso(self.last_login),
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __repr__(self) -> str:
        return f"<User {self.id}: {self.email} ({self.role})>"


# ═══════════════════════════════════════════════════════════════
# 2. ACCESS_REQUESTS
# ═══════════════════════════════════════════════════════════════
class AccessRequest(db.Model):
    __tablename__ = "access_requests"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    requester_email = db.Column(db.String(255), nullable=False)
    requester_name = db.Column(db.String(255), nullable=False)
    company_id = db.Column(
        db.String(36), db.ForeignKey("companies.id", ondelete="SET NULL"), nullable=True
    )
    requested_role = db.Column(db.String(50), nullable=False)
    message = db.Column(db.Text)
    status = db.Column(db.String(20), nullable=False, default="pending")
    reviewed_by = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    reviewed_at = db.Column(db.DateTime(timezone=True))
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        db.Index("ix_access_requests_status", "status"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "requester_email": self.requester_email,
            "requester_name": self.requester_name,
            "company_id": self.company_id,
            "requested_role": self.requested_role,
            "message": self.message,
            "status": self.status,
            "reviewed_by": self.reviewed_by,
            "reviewed_at": iso(self.reviewed_at),
            "created_at": iso(self.created_at),
        }

    def __repr__(self) -> str:
        return f"<AccessRequest {self.id}: {self.requester_email} {self.status}>"
