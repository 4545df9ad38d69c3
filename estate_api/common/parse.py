# estate_api/common/parse.py
from __future__ import annotations

from datetime import date, time
from decimal import Decimal
from typing import Optional

from flask import request

from estate_api.common.errors import APIError
from estate_api.services.payroll_policy import DateRange


def json_body() -> dict:
    data = request.get_json(silent=True, force=True)
    return data if isinstance(data, dict) else {}


def d(s) -> Optional[date]:
    if not s: return None
    try: return date.fromisoformat(str(s)[:10])
    except Exception: return None


def t(s) -> Optional[time]:
    if not s: return None
    try: return time.fromisoformat(str(s))
    except Exception: return None


def dec(x) -> Optional[Decimal]:
    if x is None or x == "": return None
    try:
        v = Decimal(str(x))
    except Exception:
        return None
    return v if v.is_finite() else None


def flt(x):
    try: return float(x) if x is not None else None
    except Exception: return None


def month_start(s) -> Optional[date]:
    """'2025-11' or '2025-11-17' -> date(2025, 11, 1)."""
    if not s: return None
    raw = str(s).strip()
    try:
        if len(raw) == 7:
            y, m = raw.split("-")
            return date(int(y), int(m), 1)
        return date.fromisoformat(raw[:10]).replace(day=1)
    except Exception:
        return None


def range_args(default_day: date) -> DateRange:
    """
    ?date=YYYY-MM-DD          -> that single day
    ?from=...&to=...          -> inclusive range
    nothing                   -> default_day
    """
    a = request.args
    if a.get("from") or a.get("to"):
        start = d(a.get("from"))
        end = d(a.get("to"))
        if not start or not end:
            raise APIError("INVALID_RANGE", "from and to must both be YYYY-MM-DD", 422)
        if end < start:
            raise APIError("INVALID_RANGE", "to must not be before from", 422)
        return DateRange(start, end)
    if a.get("date"):
        day = d(a.get("date"))
        if not day:
            raise APIError("INVALID_DATE", "date must be YYYY-MM-DD", 422)
        return DateRange(day, day)
    return DateRange(default_day, default_day)
