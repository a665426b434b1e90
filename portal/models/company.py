"""Company domain model - the nodes of the tenant graph."""

from portal.models import db, iso, new_id, utcnow

COMPANY_TYPES = ("owner", "partner", "client", "sub")


class Company(db.Model):
    """
    A tenant.

    ``parent_id`` links a sub-company to the tenant that owns it.  Exactly
    one owner-type company is expected to sit at the root; that is a
    convention, not a constraint.
    """

    __tablename__ = "companies"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    type = db.Column(db.String(20), nullable=False, comment="owner | partner | client | sub")
    parent_id = db.Column(
        db.String(36),
        db.ForeignKey("companies.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    name = db.Column(db.String(255), nullable=False)
    domain = db.Column(db.String(255))
    logo_url = db.Column(db.Text)
    primary_color = db.Column(db.String(7))
    settings = db.Column(db.JSON, default=dict)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        db.Index("ix_companies_type", "type"),
    )

    users = db.relationship("User", back_populates="company", lazy="dynamic")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "parent_id": self.parent_id,
            "name": self.name,
            "domain": self.domain,
            "logo_url": self.logo_url,
            "primary_color": self.primary_color,
            "settings": self.settings or {},
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }

    def __repr__(self) -> str:
        return f"<Company {self.id}: {self.type} {self.name}>"
