from datetime import date
from decimal import Decimal

from flask import Blueprint, request

from estate_api.common.auth import can_read, can_edit, requires_org_role
from estate_api.common.errors import not_found
from estate_api.common.http import ok, fail
from estate_api.common.paging import paginate
from estate_api.common.parse import d, dec, flt, json_body
from estate_api.common.tenant import MANAGE_ROLES, current_tenant
from estate_api.extensions import db
from estate_api.models.sales import TeaSale
from estate_api.services.finance_service import local_today, sale_entry
from estate_api.services.payroll_policy import SaleEntry

bp = Blueprint("tea_sales", __name__, url_prefix="/api/v1/tea-sales")


def _row(s: TeaSale):
    return {
        "id": s.id,
        "date": s.date.isoformat() if s.date else None,
        "factory_name": s.factory_name,
        "kg_delivered": flt(s.kg_delivered),
        "rate_per_kg": flt(s.rate_per_kg),
        "total_income": flt(s.total_income),
        "notes": s.notes,
        "created_at": s.created_at.isoformat() if s.created_at else None,
        "updated_at": s.updated_at.isoformat() if s.updated_at else None,
    }


def _get_or_404(sid: int) -> TeaSale:
    s = TeaSale.query.filter_by(id=sid, organization_id=current_tenant().organization_id).first()
    if not s:
        raise not_found("Tea sale")
    return s


def _apply(s: TeaSale, data: dict):
    if "date" in data:
        day = d(data.get("date"))
        if not day:
            return "date must be YYYY-MM-DD"
        s.date = day
    if "factory_name" in data:
        name = (data.get("factory_name") or "").strip()
        if not name:
            return "factory_name cannot be empty"
        s.factory_name = name
    for k in ("kg_delivered", "rate_per_kg"):
        if k in data:
            v = dec(data.get(k))
            if v is None or v < 0:
                return f"{k} must be a non-negative number"
            setattr(s, k, v)
    if "notes" in data:
        s.notes = (data.get("notes") or "").strip() or None

    # explicit total wins; otherwise kg * rate
    if data.get("total_income") not in (None, ""):
        total = dec(data.get("total_income"))
        if total is None or total < 0:
            return "total_income must be a non-negative number"
        s.total_income = total
    elif "kg_delivered" in data or "rate_per_kg" in data or s.total_income is None:
        s.total_income = _derived_income(s)
    return None


def _derived_income(s: TeaSale):
    return SaleEntry(
        date=s.date,
        quantity_kg=Decimal(str(s.kg_delivered or 0)),
        rate_per_kg=Decimal(str(s.rate_per_kg or 0)),
    ).income


@bp.get("")
@can_read
def list_sales():
    ctx = current_tenant()
    qry = TeaSale.query.filter(TeaSale.organization_id == ctx.organization_id)
    start, end = d(request.args.get("from")), d(request.args.get("to"))
    if start:
        qry = qry.filter(TeaSale.date >= start)
    if end:
        qry = qry.filter(TeaSale.date <= end)
    qry = qry.order_by(TeaSale.date.desc(), TeaSale.id.desc())
    items, meta = paginate(qry)
    return ok([_row(s) for s in items], **meta)


@bp.post("")
@can_edit
def create_sale():
    data = json_body()
    missing = [k for k in ("date", "factory_name", "kg_delivered", "rate_per_kg") if data.get(k) in (None, "")]
    if missing:
        return fail(f"Missing fields: {', '.join(missing)}", 422)
    s = TeaSale(organization_id=current_tenant().organization_id)
    err = _apply(s, data)
    if err:
        return fail(err, 422)
    db.session.add(s)
    db.session.commit()
    return ok(_row(s), 201)


@bp.get("/<int:sid>")
@can_read
def get_sale(sid: int):
    return ok(_row(_get_or_404(sid)))


@bp.put("/<int:sid>")
@can_edit
def update_sale(sid: int):
    s = _get_or_404(sid)
    err = _apply(s, json_body())
    if err:
        return fail(err, 422)
    db.session.commit()
    return ok(_row(s))


@bp.delete("/<int:sid>")
@requires_org_role(*MANAGE_ROLES)
def delete_sale(sid: int):
    s = _get_or_404(sid)
    db.session.delete(s)
    db.session.commit()
    return ok({"id": sid, "deleted": True})


def _shift_month(first: date, delta: int) -> date:
    idx = first.year * 12 + (first.month - 1) + delta
    return date(idx // 12, idx % 12 + 1, 1)


@bp.get("/monthly-summary")
@can_read
def monthly_summary():
    """Per-month kg and income for the last ?months= (default 6), oldest first."""
    ctx = current_tenant()
    try:
        months = max(1, min(int(request.args.get("months", 6)), 24))
    except ValueError:
        return fail("months must be integer", 422)

    this_month = local_today().replace(day=1)
    first = _shift_month(this_month, -(months - 1))
    rows = (
        TeaSale.query
        .filter(TeaSale.organization_id == ctx.organization_id, TeaSale.date >= first)
        .all()
    )
    buckets = {}
    for i in range(months):
        m = _shift_month(first, i)
        buckets[m] = {"month": m.strftime("%Y-%m"), "label": m.strftime("%b %Y"),
                      "total_kg": 0.0, "total_income": 0.0, "sales": 0}
    for s in rows:
        b = buckets.get(s.date.replace(day=1))
        if b is None:
            continue
        b["total_kg"] += flt(s.kg_delivered) or 0.0
        b["total_income"] += float(sale_entry(s).income)
        b["sales"] += 1
    return ok(list(buckets.values()), months=months)
