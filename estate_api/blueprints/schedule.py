from datetime import datetime

from flask import Blueprint, request

from estate_api.common.auth import can_read, can_edit
from estate_api.common.errors import not_found
from estate_api.common.http import ok, fail
from estate_api.common.parse import d, t, json_body, month_start
from estate_api.common.tenant import current_tenant
from estate_api.extensions import db
from estate_api.models.schedule import EVENT_STATUSES, EVENT_TYPES, ScheduleEvent
from estate_api.services.finance_service import local_today
from estate_api.services.payroll_policy import month_range

bp = Blueprint("schedule", __name__, url_prefix="/api/v1/schedule")


def _row(e: ScheduleEvent):
    return {
        "id": e.id,
        "title": e.title,
        "description": e.description,
        "event_date": e.event_date.isoformat() if e.event_date else None,
        "event_time": e.event_time.strftime("%H:%M") if e.event_time else None,
        "event_type": e.event_type,
        "status": e.status,
        "created_by": e.created_by,
        "created_at": e.created_at.isoformat() if e.created_at else None,
        "updated_at": e.updated_at.isoformat() if e.updated_at else None,
    }


def _get_or_404(eid: int) -> ScheduleEvent:
    e = ScheduleEvent.query.filter_by(id=eid, organization_id=current_tenant().organization_id).first()
    if not e:
        raise not_found("Event")
    return e


def _apply(e: ScheduleEvent, data: dict):
    if "title" in data:
        title = (data.get("title") or "").strip()
        if not title:
            return "title cannot be empty"
        e.title = title
    if "description" in data:
        e.description = (data.get("description") or "").strip() or None
    if "event_date" in data:
        day = d(data.get("event_date"))
        if not day:
            return "event_date must be YYYY-MM-DD"
        e.event_date = day
    if "event_time" in data:
        raw = data.get("event_time")
        if raw in (None, ""):
            e.event_time = None
        else:
            tm = t(raw)
            if not tm:
                return "event_time must be HH:MM"
            e.event_time = tm
    if "event_type" in data:
        if data.get("event_type") not in EVENT_TYPES:
            return f"event_type must be one of {', '.join(EVENT_TYPES)}"
        e.event_type = data["event_type"]
    if "status" in data:
        if data.get("status") not in EVENT_STATUSES:
            return f"status must be one of {', '.join(EVENT_STATUSES)}"
        e.status = data["status"]
    return None


@bp.get("")
@can_read
def list_events():
    """?month=YYYY-MM (default: current month), ordered by date then time."""
    ctx = current_tenant()
    first = month_start(request.args.get("month")) if request.args.get("month") else local_today().replace(day=1)
    if not first:
        return fail("month must be YYYY-MM", 422)
    rng = month_range(first.year, first.month)
    qry = ScheduleEvent.query.filter(
        ScheduleEvent.organization_id == ctx.organization_id,
        ScheduleEvent.event_date >= rng.start,
        ScheduleEvent.event_date <= rng.end,
    )
    if request.args.get("status"):
        qry = qry.filter(ScheduleEvent.status == request.args["status"])
    rows = qry.order_by(ScheduleEvent.event_date.asc(), ScheduleEvent.event_time.asc(), ScheduleEvent.id.asc()).all()
    return ok([_row(e) for e in rows], month=first.strftime("%Y-%m"), total=len(rows))


@bp.post("")
@can_edit
def create_event():
    ctx = current_tenant()
    data = json_body()
    missing = [k for k in ("title", "event_date") if not data.get(k)]
    if missing:
        return fail(f"Missing fields: {', '.join(missing)}", 422)
    e = ScheduleEvent(organization_id=ctx.organization_id, created_by=ctx.user_id)
    err = _apply(e, data)
    if err:
        return fail(err, 422)
    db.session.add(e)
    db.session.commit()
    return ok(_row(e), 201)


@bp.get("/<int:eid>")
@can_read
def get_event(eid: int):
    return ok(_row(_get_or_404(eid)))


@bp.put("/<int:eid>")
@can_edit
def update_event(eid: int):
    e = _get_or_404(eid)
    err = _apply(e, json_body())
    if err:
        return fail(err, 422)
    e.updated_at = datetime.utcnow()
    db.session.commit()
    return ok(_row(e))


@bp.patch("/<int:eid>/status")
@can_edit
def set_status(eid: int):
    e = _get_or_404(eid)
    status = json_body().get("status")
    if status not in EVENT_STATUSES:
        return fail(f"status must be one of {', '.join(EVENT_STATUSES)}", 422)
    e.status = status
    e.updated_at = datetime.utcnow()
    db.session.commit()
    return ok(_row(e))


@bp.delete("/<int:eid>")
@can_edit
def delete_event(eid: int):
    e = _get_or_404(eid)
    db.session.delete(e)
    db.session.commit()
    return ok({"id": eid, "deleted": True})
