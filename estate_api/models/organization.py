# estate_api/models/organization.py
from datetime import datetime

from estate_api.extensions import db

ORG_ROLES = ("owner", "admin", "manager", "viewer")


class Organization(db.Model):
    """A tenant. Every estate record hangs off exactly one organization."""
    __tablename__ = "organizations"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    slug = db.Column(db.String(120), unique=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class OrganizationMember(db.Model):
    __tablename__ = "organization_members"

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(
        db.Integer,
        db.ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    role = db.Column(db.Enum(*ORG_ROLES, name="org_role_enum"), nullable=False, default="viewer")
    invited_at = db.Column(db.DateTime, default=datetime.utcnow)
    accepted_at = db.Column(db.DateTime)

    __table_args__ = (
        db.UniqueConstraint("organization_id", "user_id", name="uq_org_member_user"),
    )

    organization = db.relationship(
        "Organization", backref=db.backref("members", lazy="dynamic", cascade="all, delete-orphan")
    )
    user = db.relationship("User", lazy="joined")


class Invitation(db.Model):
    __tablename__ = "invitations"

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(
        db.Integer,
        db.ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    email = db.Column(db.String(255), nullable=False)
    role = db.Column(db.Enum(*ORG_ROLES, name="org_role_enum"), nullable=False, default="viewer")
    token = db.Column(db.String(64), unique=True, nullable=False, index=True)
    expires_at = db.Column(db.DateTime, nullable=False)
    invited_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"))
    accepted_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    organization = db.relationship("Organization")

    def is_pending(self, now: datetime | None = None) -> bool:
        now = now or datetime.utcnow()
        return self.accepted_at is None and self.expires_at > now
