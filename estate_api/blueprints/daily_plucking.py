import logging
from datetime import datetime
from decimal import Decimal

from flask import Blueprint, Response, current_app, request

from estate_api.common.auth import can_read, can_edit, requires_org_role
from estate_api.common.errors import APIError, not_found
from estate_api.common.http import ok
from estate_api.common.paging import search_term
from estate_api.common.parse import json_body, range_args
from estate_api.common.tenant import MANAGE_ROLES, current_tenant
from estate_api.extensions import db
from estate_api.models.estate import Worker
from estate_api.models.plucking import DailyPlucking
from estate_api.services.export_service import export_rows, generate_file
from estate_api.services.finance_service import local_today, strict_classification
from estate_api.services.payroll_policy import aggregate, classify, compute_amount
from estate_api.services.plucking_service import (
    apply_entry,
    entry_from_payload,
    entry_from_row,
    fetch_entries,
    fetch_rows,
    row_dict,
)

log = logging.getLogger(__name__)

bp = Blueprint("daily_plucking", __name__, url_prefix="/api/v1/daily-plucking")


def _default_rate() -> Decimal:
    return Decimal(str(current_app.config.get("DEFAULT_RATE_PER_KG", 150)))


def _get_or_404(rid: int) -> DailyPlucking:
    r = DailyPlucking.query.filter_by(id=rid, organization_id=current_tenant().organization_id).first()
    if not r:
        raise not_found("Record")
    return r


def _check_worker(worker_id: int):
    w = Worker.query.filter_by(id=worker_id, organization_id=current_tenant().organization_id).first()
    if not w:
        raise APIError("INVALID_WORKER", "worker_id not found in this organization", 422,
                       payload={"field": "worker_id"})
    return w


def _range_meta(rng):
    return {"from": rng.start.isoformat(), "to": rng.end.isoformat()}


@bp.get("")
@can_read
def list_records():
    """
    ?date=YYYY-MM-DD (default: today in APP_TIMEZONE)
    ?from=&to=      inclusive range
    ?q=             worker name / employee id
    """
    ctx = current_tenant()
    rng = range_args(local_today())
    rows = fetch_rows(ctx.organization_id, rng, q=search_term())
    return ok([row_dict(r) for r in rows], total=len(rows), **_range_meta(rng))


@bp.get("/summary")
@can_read
def summary():
    ctx = current_tenant()
    rng = range_args(local_today())
    agg = aggregate(fetch_entries(ctx.organization_id, rng), rng, strict=strict_classification())
    return ok(agg.to_dict(), **_range_meta(rng))


@bp.get("/export")
@can_read
def export():
    ctx = current_tenant()
    rng = range_args(local_today())
    fmt = (request.args.get("format") or "csv").lower()
    rows = export_rows(fetch_rows(ctx.organization_id, rng, q=search_term()))

    base = f"daily-plucking-{rng.start.isoformat()}"
    if rng.end != rng.start:
        base += f"_{rng.end.isoformat()}"
    content, filename, mime = generate_file(rows, fmt, base)
    log.info("export org=%s format=%s rows=%d", ctx.organization_id, fmt, len(rows))
    return Response(
        content,
        mimetype=mime,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@bp.post("/preview")
@can_read
def preview():
    """Amount for an unsaved form. Nothing is written."""
    data = dict(json_body())
    data.setdefault("worker_id", 0)
    data.setdefault("date", local_today().isoformat())
    entry = entry_from_payload(data, default_rate=_default_rate())
    return ok({
        "type": classify(entry, strict=strict_classification()).value,
        "extra_work_total": float(entry.extra_work_total),
        "amount": float(compute_amount(entry)),
    })


@bp.post("")
@can_edit
def create_record():
    ctx = current_tenant()
    entry = entry_from_payload(json_body(), default_rate=_default_rate())
    _check_worker(entry.worker_id)

    r = DailyPlucking(organization_id=ctx.organization_id)
    apply_entry(r, entry, strict=strict_classification())
    db.session.add(r)
    db.session.commit()
    return ok(row_dict(r), 201)


@bp.get("/<int:rid>")
@can_read
def get_record(rid: int):
    return ok(row_dict(_get_or_404(rid)))


@bp.put("/<int:rid>")
@can_edit
def update_record(rid: int):
    r = _get_or_404(rid)
    entry = entry_from_payload(json_body(), base=entry_from_row(r), default_rate=_default_rate())
    if entry.worker_id != r.worker_id:
        _check_worker(entry.worker_id)
    apply_entry(r, entry, strict=strict_classification())
    r.updated_at = datetime.utcnow()
    db.session.commit()
    return ok(row_dict(r))


@bp.delete("/<int:rid>")
@requires_org_role(*MANAGE_ROLES)
def delete_record(rid: int):
    r = _get_or_404(rid)
    db.session.delete(r)
    db.session.commit()
    return ok({"id": rid, "deleted": True})
