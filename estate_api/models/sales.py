# estate_api/models/sales.py
from datetime import datetime

from estate_api.extensions import db


class TeaSale(db.Model):
    __tablename__ = "tea_sales"

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(
        db.Integer,
        db.ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    date = db.Column(db.Date, nullable=False, index=True)
    factory_name = db.Column(db.String(255), nullable=False)
    kg_delivered = db.Column(db.Numeric(10, 2), nullable=False)
    rate_per_kg = db.Column(db.Numeric(10, 2), nullable=False)
    total_income = db.Column(db.Numeric(14, 2), nullable=False)
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class WorkerBonus(db.Model):
    __tablename__ = "worker_bonuses"

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(
        db.Integer,
        db.ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    worker_id = db.Column(
        db.Integer,
        db.ForeignKey("workers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    month = db.Column(db.Date, nullable=False, index=True)  # always the 1st
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    notes = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    worker = db.relationship("Worker", lazy="joined")
