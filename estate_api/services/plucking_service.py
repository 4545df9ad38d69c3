# estate_api/services/plucking_service.py
from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import or_

from estate_api.models.plucking import DailyPlucking
from estate_api.models.estate import Worker
from estate_api.services.payroll_policy import (
    DateRange,
    EntryKind,
    ExtraWorkItem,
    InvalidInput,
    WorkEntry,
    classify,
    compute_amount,
    normalize_entry,
    to_decimal,
)

log = logging.getLogger(__name__)


def _flt(x):
    try: return float(x) if x is not None else None
    except Exception: return None


SCALE = Decimal("0.01")  # Numeric(.., 2) columns


def _stored(v, field_name: str) -> Decimal:
    """Parse a number and refuse precision the column would round away."""
    d = to_decimal(v, field_name)
    if d != d.quantize(SCALE):
        raise InvalidInput(f"{field_name} allows at most 2 decimal places", field=field_name)
    return d


def _parse_extra_items(raw) -> tuple:
    if raw in (None, ""):
        return ()
    if not isinstance(raw, list):
        raise InvalidInput("extra_work_items must be a list", field="extra_work_items")
    items = []
    for it in raw:
        if not isinstance(it, dict):
            raise InvalidInput("extra_work_items entries must be objects", field="extra_work_items")
        item = ExtraWorkItem.from_dict(it)
        _stored(item.amount, "extra_work_items")
        items.append(item)
    return tuple(items)


def _parse_flag(v) -> bool:
    if isinstance(v, str):
        return v.strip().lower() in ("true", "1", "yes")
    return bool(v)


def entry_from_row(row: DailyPlucking) -> WorkEntry:
    items = tuple(ExtraWorkItem.from_dict(i) for i in (row.extra_work_items or []) if isinstance(i, dict))
    # rows written before itemization carry only the lump sum
    if not items and row.extra_work_payment:
        items = (ExtraWorkItem("Extra work", Decimal(str(row.extra_work_payment))),)
    return WorkEntry(
        worker_id=row.worker_id,
        date=row.date,
        is_advance=row.is_advance,
        quantity_kg=Decimal(str(row.kg_plucked or 0)),
        rate_per_kg=Decimal(str(row.rate_per_kg or 0)),
        extra_work_items=items,
        advance_amount=Decimal(str(row.advance_amount or 0)),
        notes=row.notes,
    )


def entry_from_payload(data: Dict[str, Any], base: Optional[WorkEntry] = None,
                       default_rate: Decimal = Decimal("150")) -> WorkEntry:
    """
    Build a WorkEntry from a request body. With ``base`` (edit mode) only the
    keys present in ``data`` override the stored values.
    """
    if base is None:
        try:
            worker_id = int(data.get("worker_id"))
        except (TypeError, ValueError):
            raise InvalidInput("worker_id is required", field="worker_id")
        try:
            day = date.fromisoformat(str(data.get("date")))
        except (TypeError, ValueError):
            raise InvalidInput("date is required (YYYY-MM-DD)", field="date")
        base = WorkEntry(worker_id=worker_id, date=day, is_advance=None, rate_per_kg=default_rate)

    updates: Dict[str, Any] = {}
    if "worker_id" in data and data.get("worker_id") is not None:
        try:
            updates["worker_id"] = int(data["worker_id"])
        except (TypeError, ValueError):
            raise InvalidInput("worker_id must be an integer", field="worker_id")
    if "date" in data:
        try:
            updates["date"] = date.fromisoformat(str(data["date"]))
        except (TypeError, ValueError):
            raise InvalidInput("date must be YYYY-MM-DD", field="date")
    if "is_advance" in data:
        updates["is_advance"] = _parse_flag(data["is_advance"])
    if "kg_plucked" in data:
        updates["quantity_kg"] = _stored(data["kg_plucked"], "kg_plucked")
    if "rate_per_kg" in data:
        updates["rate_per_kg"] = _stored(data["rate_per_kg"], "rate_per_kg")
    if "extra_work_items" in data:
        updates["extra_work_items"] = _parse_extra_items(data["extra_work_items"])
    if "advance_amount" in data:
        updates["advance_amount"] = _stored(data["advance_amount"], "advance_amount")
    if "notes" in data:
        updates["notes"] = (str(data["notes"]).strip() or None) if data["notes"] is not None else None

    entry = normalize_entry(replace(base, **updates))
    # raises InvalidInput for negatives
    compute_amount(entry)
    return entry


def apply_entry(row: DailyPlucking, entry: WorkEntry, strict: bool = False) -> DailyPlucking:
    """
    Copy a validated entry onto the row; wage_earned always comes from the policy.
    An entry without an advance flag is stored as plucking (warned about when strict).
    """
    row.worker_id = entry.worker_id
    row.date = entry.date
    row.is_advance = classify(entry, strict=strict) is EntryKind.ADVANCE
    row.kg_plucked = entry.quantity_kg
    row.rate_per_kg = entry.rate_per_kg
    row.extra_work_items = [i.to_dict() for i in entry.extra_work_items]
    row.extra_work_payment = entry.extra_work_total
    row.advance_amount = entry.advance_amount
    row.notes = entry.notes
    row.wage_earned = compute_amount(entry)
    log.debug("daily_plucking worker=%s date=%s advance=%s wage_earned=%s",
              row.worker_id, row.date, row.is_advance, row.wage_earned)
    return row


def fetch_rows(organization_id: int, date_range: DateRange, q: Optional[str] = None) -> List[DailyPlucking]:
    qry = (
        DailyPlucking.query
        # outer: rows whose worker is gone still count
        .outerjoin(Worker, Worker.id == DailyPlucking.worker_id)
        .filter(
            DailyPlucking.organization_id == organization_id,
            DailyPlucking.date >= date_range.start,
            DailyPlucking.date <= date_range.end,
        )
    )
    if q:
        like = f"%{q}%"
        qry = qry.filter(or_(
            Worker.first_name.ilike(like),
            Worker.last_name.ilike(like),
            Worker.employee_id.ilike(like),
        ))
    return qry.order_by(DailyPlucking.date.desc(), DailyPlucking.created_at.desc(), DailyPlucking.id.desc()).all()


def fetch_entries(organization_id: int, date_range: DateRange) -> List[WorkEntry]:
    return [entry_from_row(r) for r in fetch_rows(organization_id, date_range)]


def row_dict(r: DailyPlucking) -> Dict[str, Any]:
    w = r.worker
    entry = entry_from_row(r)
    return {
        "id": r.id,
        "worker_id": r.worker_id,
        "worker_name": w.full_name if w else None,
        "employee_id": w.employee_id if w else None,
        "date": r.date.isoformat() if r.date else None,
        "type": "advance" if r.is_advance else "plucking",
        "is_advance": bool(r.is_advance),
        "kg_plucked": _flt(r.kg_plucked),
        "rate_per_kg": _flt(r.rate_per_kg),
        "extra_work_items": [i.to_dict() for i in entry.extra_work_items],
        "extra_work_payment": _flt(r.extra_work_payment),
        "advance_amount": _flt(r.advance_amount),
        "wage_earned": _flt(r.wage_earned),
        "notes": r.notes,
        "created_at": r.created_at.isoformat() if r.created_at else None,
        "updated_at": r.updated_at.isoformat() if r.updated_at else None,
    }
