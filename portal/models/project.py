"""Project domain model and the explicit project ACL."""

from portal.models import db, iso, new_id, utcnow

PROJECT_STATUSES = ("draft", "active", "completed", "archived")
ACCESS_LEVELS = ("view", "edit")


class Project(db.Model):
    """Engagement run for one client company."""

    __tablename__ = "projects"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    client_company_id = db.Column(
        db.String(36),
        db.ForeignKey("companies.id"),
        nullable=False,
        index=True,
    )
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    status = db.Column(
        db.String(20), nullable=False, default="active",
        comment="draft | active | completed | archived",
    )
    created_by = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    settings = db.Column(db.JSON, default=dict)
    start_date = db.Column(db.Date)
    end_date = db.Column(db.Date)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    grants = db.relationship(
        "ProjectAccess", back_populates="project", lazy="dynamic",
        cascade="all, delete-orphan", passive_deletes=True,
    )

    def to_dict(self) -> dict:
        """Serialize core project fields for API responses."""
        return {
            "id": self.id,
            "client_company_id": self.client_company_id,
            "name": self.name,
            "description": self.description,
            "status": self.status,
            "created_by": self.created_by,
            "settings": self.settings or {},
            "start_date": iso(self.start_date),
            "end_date": iso(self.end_date),
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }

    def __repr__(self) -> str:
        return f"<Project {self.id}: {self.name}>"


class ProjectAccess(db.Model):
    """
    Grant of one project to a single user or to a whole company.

    Exactly one of ``user_id`` / ``company_id`` is set.  ``access_level``
    is recorded for write-gating; reads only need the row to exist.
    """

    __tablename__ = "project_access"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    project_id = db.Column(
        db.String(36), db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    company_id = db.Column(
        db.String(36), db.ForeignKey("companies.id", ondelete="CASCADE"), nullable=True
    )
    user_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), nullable=True
    )
    access_level = db.Column(db.String(10), nullable=False, default="view")
    granted_by = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    granted_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        db.CheckConstraint(
            "(user_id IS NULL) <> (company_id IS NULL)",
            name="ck_project_access_single_grantee",
        ),
        db.Index("ix_project_access_project", "project_id"),
        db.Index("ix_project_access_user", "user_id"),
        db.Index("ix_project_access_company", "company_id"),
    )

    project = db.relationship("Project", back_populates="grants")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "company_id": self.company_id,
            "user_id": self.user_id,
            "access_level": self.access_level,
            "granted_by": self.granted_by,
            "granted_at": iso(self.granted_at),
        }
