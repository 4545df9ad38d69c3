from flask import Blueprint, request

from estate_api.common.auth import can_read, can_edit, requires_org_role
from estate_api.common.errors import not_found
from estate_api.common.http import ok, fail
from estate_api.common.paging import paginate
from estate_api.common.parse import dec, flt, json_body, month_start
from estate_api.common.tenant import MANAGE_ROLES, current_tenant
from estate_api.extensions import db
from estate_api.models.estate import Worker
from estate_api.models.sales import WorkerBonus

bp = Blueprint("bonuses", __name__, url_prefix="/api/v1/bonuses")


def _row(b: WorkerBonus):
    w = b.worker
    return {
        "id": b.id,
        "worker_id": b.worker_id,
        "worker_name": w.full_name if w else None,
        "employee_id": w.employee_id if w else None,
        "month": b.month.strftime("%Y-%m") if b.month else None,
        "amount": flt(b.amount),
        "notes": b.notes,
        "created_at": b.created_at.isoformat() if b.created_at else None,
    }


def _get_or_404(bid: int) -> WorkerBonus:
    b = WorkerBonus.query.filter_by(id=bid, organization_id=current_tenant().organization_id).first()
    if not b:
        raise not_found("Bonus")
    return b


def _apply(b: WorkerBonus, data: dict):
    org_id = current_tenant().organization_id
    if "worker_id" in data:
        try:
            wid = int(data.get("worker_id"))
        except (TypeError, ValueError):
            return "worker_id must be integer"
        if not Worker.query.filter_by(id=wid, organization_id=org_id).first():
            return "worker_id not found"
        b.worker_id = wid
    if "month" in data:
        m = month_start(data.get("month"))
        if not m:
            return "month must be YYYY-MM"
        b.month = m
    if "amount" in data:
        amt = dec(data.get("amount"))
        if amt is None or amt < 0:
            return "amount must be a non-negative number"
        b.amount = amt
    if "notes" in data:
        b.notes = (data.get("notes") or "").strip() or None
    return None


@bp.get("")
@can_read
def list_bonuses():
    ctx = current_tenant()
    qry = WorkerBonus.query.filter(WorkerBonus.organization_id == ctx.organization_id)
    if request.args.get("month"):
        m = month_start(request.args.get("month"))
        if not m:
            return fail("month must be YYYY-MM", 422)
        qry = qry.filter(WorkerBonus.month == m)
    if request.args.get("worker_id"):
        try:
            qry = qry.filter(WorkerBonus.worker_id == int(request.args["worker_id"]))
        except ValueError:
            return fail("worker_id must be integer", 422)
    qry = qry.order_by(WorkerBonus.month.desc(), WorkerBonus.id.desc())
    items, meta = paginate(qry)
    return ok([_row(b) for b in items], **meta)


@bp.post("")
@can_edit
def create_bonus():
    data = json_body()
    missing = [k for k in ("worker_id", "month", "amount") if data.get(k) in (None, "")]
    if missing:
        return fail(f"Missing fields: {', '.join(missing)}", 422)
    b = WorkerBonus(organization_id=current_tenant().organization_id)
    err = _apply(b, data)
    if err:
        return fail(err, 422)
    db.session.add(b)
    db.session.commit()
    return ok(_row(b), 201)


@bp.get("/<int:bid>")
@can_read
def get_bonus(bid: int):
    return ok(_row(_get_or_404(bid)))


@bp.put("/<int:bid>")
@can_edit
def update_bonus(bid: int):
    b = _get_or_404(bid)
    err = _apply(b, json_body())
    if err:
        return fail(err, 422)
    db.session.commit()
    return ok(_row(b))


@bp.delete("/<int:bid>")
@requires_org_role(*MANAGE_ROLES)
def delete_bonus(bid: int):
    b = _get_or_404(bid)
    db.session.delete(b)
    db.session.commit()
    return ok({"id": bid, "deleted": True})
