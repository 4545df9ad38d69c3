from flask import Blueprint, request
from sqlalchemy import or_

from estate_api.common.auth import can_read, can_edit, requires_org_role
from estate_api.common.errors import not_found
from estate_api.common.http import ok, fail
from estate_api.common.paging import ordered, paginate, search_term
from estate_api.common.parse import d, dec, flt, json_body
from estate_api.common.tenant import MANAGE_ROLES, current_tenant
from estate_api.extensions import db
from estate_api.models.estate import WORKER_ROLES, WORKER_STATUSES, Plantation, Worker

bp = Blueprint("workers", __name__, url_prefix="/api/v1/workers")

REQUIRED = ("employee_id", "first_name", "last_name")


def _row(w: Worker):
    return {
        "id": w.id,
        "employee_id": w.employee_id,
        "first_name": w.first_name,
        "last_name": w.last_name,
        "full_name": w.full_name,
        "phone": w.phone,
        "role": w.role,
        "plantation_id": w.plantation_id,
        "plantation_name": w.plantation.name if w.plantation else None,
        "hire_date": w.hire_date.isoformat() if w.hire_date else None,
        "salary": flt(w.salary),
        "status": w.status,
        "created_at": w.created_at.isoformat() if w.created_at else None,
        "updated_at": w.updated_at.isoformat() if w.updated_at else None,
    }


def _get_or_404(wid: int) -> Worker:
    w = Worker.query.filter_by(id=wid, organization_id=current_tenant().organization_id).first()
    if not w:
        raise not_found("Worker")
    return w


def _apply(w: Worker, data: dict):
    org_id = current_tenant().organization_id
    for k in ("employee_id", "first_name", "last_name", "phone"):
        if k in data:
            v = (str(data.get(k)).strip() if data.get(k) is not None else "")
            if k in REQUIRED and not v:
                return f"{k} cannot be empty"
            setattr(w, k, v or None)
    if "role" in data:
        role = (data.get("role") or "").strip()
        if role not in WORKER_ROLES:
            return f"role must be one of {', '.join(WORKER_ROLES)}"
        w.role = role
    if "status" in data:
        status = (data.get("status") or "").strip()
        if status not in WORKER_STATUSES:
            return f"status must be one of {', '.join(WORKER_STATUSES)}"
        w.status = status
    if "plantation_id" in data:
        raw = data.get("plantation_id")
        if raw in (None, ""):
            w.plantation_id = None
        else:
            try:
                pid = int(raw)
            except (TypeError, ValueError):
                return "plantation_id must be integer"
            if not Plantation.query.filter_by(id=pid, organization_id=org_id).first():
                return "plantation_id not found"
            w.plantation_id = pid
    if "hire_date" in data:
        w.hire_date = d(data.get("hire_date"))
    if "salary" in data:
        raw = data.get("salary")
        if raw in (None, ""):
            w.salary = None
        else:
            sal = dec(raw)
            if sal is None or sal < 0:
                return "salary must be a non-negative number"
            w.salary = sal
    return None


@bp.get("")
@can_read
def list_workers():
    ctx = current_tenant()
    qry = Worker.query.filter(Worker.organization_id == ctx.organization_id)

    q = search_term()
    if q:
        like = f"%{q}%"
        qry = qry.filter(or_(
            Worker.first_name.ilike(like),
            Worker.last_name.ilike(like),
            Worker.employee_id.ilike(like),
            Worker.phone.ilike(like),
        ))
    status = request.args.get("status")
    if status:
        if status not in WORKER_STATUSES:
            return fail(f"status must be one of {', '.join(WORKER_STATUSES)}", 422)
        qry = qry.filter(Worker.status == status)
    pid = request.args.get("plantation_id")
    if pid:
        try:
            qry = qry.filter(Worker.plantation_id == int(pid))
        except ValueError:
            return fail("plantation_id must be integer", 422)

    qry = ordered(qry, {"employee_id": Worker.employee_id, "first_name": Worker.first_name,
                         "last_name": Worker.last_name, "hire_date": Worker.hire_date,
                         "created_at": Worker.created_at},
                  Worker.first_name.asc(), Worker.last_name.asc(), Worker.id.asc())
    items, meta = paginate(qry)
    return ok([_row(w) for w in items], **meta)


@bp.post("")
@can_edit
def create_worker():
    data = json_body()
    missing = [k for k in REQUIRED if not data.get(k)]
    if missing:
        return fail(f"Missing fields: {', '.join(missing)}", 422)
    ctx = current_tenant()
    if Worker.query.filter_by(organization_id=ctx.organization_id,
                              employee_id=str(data["employee_id"]).strip()).first():
        return fail("employee_id already exists", 409)
    w = Worker(organization_id=ctx.organization_id)
    err = _apply(w, data)
    if err:
        return fail(err, 422)
    db.session.add(w)
    db.session.commit()
    return ok(_row(w), 201)


@bp.get("/<int:wid>")
@can_read
def get_worker(wid: int):
    return ok(_row(_get_or_404(wid)))


@bp.put("/<int:wid>")
@can_edit
def update_worker(wid: int):
    w = _get_or_404(wid)
    err = _apply(w, json_body())
    if err:
        return fail(err, 422)
    db.session.commit()
    return ok(_row(w))


@bp.delete("/<int:wid>")
@requires_org_role(*MANAGE_ROLES)
def delete_worker(wid: int):
    w = _get_or_404(wid)
    db.session.delete(w)
    db.session.commit()
    return ok({"id": wid, "deleted": True})
