# estate_api/models/plucking.py
from datetime import datetime

from estate_api.extensions import db


class DailyPlucking(db.Model):
    """
    One row of daily labour: either a plucking record or a cash advance.

      is_advance = False -> kg_plucked * rate_per_kg + extra_work_payment
      is_advance = True  -> advance_amount, stored negated in wage_earned

    wage_earned keeps the signed amount so historical totals can be re-summed
    straight from the table.
    """
    __tablename__ = "daily_plucking"

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
    date = db.Column(db.Date, nullable=False, index=True)

    is_advance = db.Column(db.Boolean, nullable=False, default=False)
    kg_plucked = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    rate_per_kg = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    extra_work_items = db.Column(db.JSON)  # [{"description": str, "amount": number}]
    extra_work_payment = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    advance_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    # kg and rate carry 2 places each, so the product needs 4 to be stored exactly
    wage_earned = db.Column(db.Numeric(14, 4), nullable=False, default=0)
    notes = db.Column(db.Text)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    worker = db.relationship("Worker", lazy="joined")
