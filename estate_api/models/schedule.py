# estate_api/models/schedule.py
from datetime import datetime

from estate_api.extensions import db

EVENT_TYPES = ("task", "reminder", "meeting", "harvest", "maintenance")
EVENT_STATUSES = ("pending", "completed", "cancelled")


class ScheduleEvent(db.Model):
    __tablename__ = "schedule_events"

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(
        db.Integer,
        db.ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    event_date = db.Column(db.Date, nullable=False, index=True)
    event_time = db.Column(db.Time)
    event_type = db.Column(db.Enum(*EVENT_TYPES, name="schedule_event_type_enum"), nullable=False, default="task")
    status = db.Column(db.Enum(*EVENT_STATUSES, name="schedule_event_status_enum"), nullable=False, default="pending")
    created_by = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"))
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
