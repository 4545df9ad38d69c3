from flask import Blueprint
from sqlalchemy import or_

from estate_api.common.auth import can_read, can_edit, requires_org_role
from estate_api.common.errors import not_found
from estate_api.common.http import ok, fail
from estate_api.common.paging import ordered, paginate, search_term
from estate_api.common.parse import d, dec, flt, json_body
from estate_api.common.tenant import MANAGE_ROLES, current_tenant
from estate_api.extensions import db
from estate_api.models.estate import Plantation
from estate_api.services.finance_service import local_today, plantation_stats

bp = Blueprint("plantations", __name__, url_prefix="/api/v1/plantations")

REQUIRED = ("name", "location", "area_hectares", "tea_variety")


def _row(p: Plantation):
    return {
        "id": p.id,
        "name": p.name,
        "location": p.location,
        "area_hectares": flt(p.area_hectares),
        "tea_variety": p.tea_variety,
        "number_of_plants": p.number_of_plants,
        "established_date": p.established_date.isoformat() if p.established_date else None,
        "manager_id": p.manager_id,
        "image_url": p.image_url,
        "created_at": p.created_at.isoformat() if p.created_at else None,
        "updated_at": p.updated_at.isoformat() if p.updated_at else None,
    }


def _get_or_404(pid: int) -> Plantation:
    p = Plantation.query.filter_by(id=pid, organization_id=current_tenant().organization_id).first()
    if not p:
        raise not_found("Plantation")
    return p


def _apply(p: Plantation, data: dict):
    """Copy known fields from data; returns an error message or None."""
    for k in ("name", "location", "tea_variety", "image_url"):
        if k in data:
            v = (data.get(k) or "").strip() if data.get(k) is not None else None
            if k in REQUIRED and not v:
                return f"{k} cannot be empty"
            setattr(p, k, v or None)
    if "area_hectares" in data:
        area = dec(data.get("area_hectares"))
        if area is None or area < 0:
            return "area_hectares must be a non-negative number"
        p.area_hectares = area
    if "number_of_plants" in data:
        raw = data.get("number_of_plants")
        try:
            p.number_of_plants = int(raw) if raw not in (None, "") else None
        except (TypeError, ValueError):
            return "number_of_plants must be integer"
    if "established_date" in data:
        p.established_date = d(data.get("established_date"))
    if "manager_id" in data:
        raw = data.get("manager_id")
        try:
            p.manager_id = int(raw) if raw not in (None, "") else None
        except (TypeError, ValueError):
            return "manager_id must be integer"
    return None


@bp.get("")
@can_read
def list_plantations():
    ctx = current_tenant()
    qry = Plantation.query.filter(Plantation.organization_id == ctx.organization_id)
    q = search_term()
    if q:
        like = f"%{q}%"
        qry = qry.filter(or_(Plantation.name.ilike(like), Plantation.location.ilike(like)))
    qry = ordered(qry, {"name": Plantation.name, "created_at": Plantation.created_at,
                        "area_hectares": Plantation.area_hectares},
                  Plantation.created_at.desc(), Plantation.id.desc())
    items, meta = paginate(qry)
    return ok([_row(p) for p in items], **meta)


@bp.post("")
@can_edit
def create_plantation():
    data = json_body()
    missing = [k for k in REQUIRED if data.get(k) in (None, "")]
    if missing:
        return fail(f"Missing fields: {', '.join(missing)}", 422)
    p = Plantation(organization_id=current_tenant().organization_id)
    err = _apply(p, data)
    if err:
        return fail(err, 422)
    db.session.add(p)
    db.session.commit()
    return ok(_row(p), 201)


@bp.get("/<int:pid>")
@can_read
def get_plantation(pid: int):
    return ok(_row(_get_or_404(pid)))


@bp.put("/<int:pid>")
@can_edit
def update_plantation(pid: int):
    p = _get_or_404(pid)
    err = _apply(p, json_body())
    if err:
        return fail(err, 422)
    db.session.commit()
    return ok(_row(p))


@bp.delete("/<int:pid>")
@requires_org_role(*MANAGE_ROLES)
def delete_plantation(pid: int):
    p = _get_or_404(pid)
    db.session.delete(p)
    db.session.commit()
    return ok({"id": pid, "deleted": True})


@bp.get("/<int:pid>/stats")
@can_read
def stats(pid: int):
    return ok(plantation_stats(_get_or_404(pid), local_today()))
