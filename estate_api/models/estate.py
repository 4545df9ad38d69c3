# estate_api/models/estate.py
from datetime import datetime

from estate_api.extensions import db

WORKER_ROLES = ("picker", "supervisor", "manager", "quality_controller")
WORKER_STATUSES = ("active", "inactive", "terminated")


class Plantation(db.Model):
    __tablename__ = "plantations"

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(
        db.Integer,
        db.ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = db.Column(db.String(255), nullable=False)
    location = db.Column(db.String(255), nullable=False)
    area_hectares = db.Column(db.Numeric(10, 2), nullable=False)
    tea_variety = db.Column(db.String(100), nullable=False)
    number_of_plants = db.Column(db.Integer)
    established_date = db.Column(db.Date)
    manager_id = db.Column(db.Integer)  # workers.id, not enforced
    # stored by the external file-storage service; we only keep the URL
    image_url = db.Column(db.String(1024))
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Worker(db.Model):
    __tablename__ = "workers"

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(
        db.Integer,
        db.ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    employee_id = db.Column(db.String(50), nullable=False)
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    phone = db.Column(db.String(20))
    role = db.Column(db.Enum(*WORKER_ROLES, name="worker_role_enum"), nullable=False, default="picker")
    plantation_id = db.Column(
        db.Integer,
        db.ForeignKey("plantations.id", ondelete="SET NULL"),
        index=True,
    )
    hire_date = db.Column(db.Date)
    salary = db.Column(db.Numeric(10, 2))
    status = db.Column(db.Enum(*WORKER_STATUSES, name="worker_status_enum"), nullable=False, default="active")
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("organization_id", "employee_id", name="uq_worker_org_employee_id"),
    )

    plantation = db.relationship(
        "Plantation",
        foreign_keys=[plantation_id],
        backref=db.backref("workers", lazy="dynamic"),
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
