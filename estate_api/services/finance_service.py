# estate_api/services/finance_service.py
from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List
from zoneinfo import ZoneInfo

from flask import current_app
from sqlalchemy import func

from estate_api.extensions import db
from estate_api.models.estate import Plantation, Worker
from estate_api.models.sales import TeaSale, WorkerBonus
from estate_api.services.payroll_policy import (
    BonusEntry,
    DateRange,
    RollupPolicy,
    SaleEntry,
    aggregate,
    compare_periods,
    daily_series,
    month_range,
    percent_change,
    previous_month_range,
    rollup,
    trailing_days,
)
from estate_api.services.plucking_service import fetch_entries

log = logging.getLogger(__name__)

RANGE_DAYS = {"7d": 7, "30d": 30, "90d": 90}


def local_today() -> date:
    """Business date in the estate's timezone (APP_TIMEZONE)."""
    tz = ZoneInfo(current_app.config.get("APP_TIMEZONE", "Asia/Colombo"))
    return datetime.now(tz).date()


def policy_from_config() -> RollupPolicy:
    cfg = current_app.config
    return RollupPolicy(
        include_bonuses=bool(cfg.get("ROLLUP_INCLUDE_BONUSES", True)),
        deduct_advances=bool(cfg.get("ROLLUP_DEDUCT_ADVANCES", True)),
    )


def strict_classification() -> bool:
    return bool(current_app.config.get("STRICT_CLASSIFICATION", False))


# ---------- loaders ----------

def sale_entry(s: TeaSale) -> SaleEntry:
    return SaleEntry(
        date=s.date,
        quantity_kg=Decimal(str(s.kg_delivered or 0)),
        rate_per_kg=Decimal(str(s.rate_per_kg or 0)),
        total_income=Decimal(str(s.total_income)) if s.total_income is not None else None,
    )


def load_sales(organization_id: int, rng: DateRange) -> List[SaleEntry]:
    rows = (
        TeaSale.query
        .filter(
            TeaSale.organization_id == organization_id,
            TeaSale.date >= rng.start,
            TeaSale.date <= rng.end,
        )
        .all()
    )
    return [sale_entry(s) for s in rows]


def load_bonuses(organization_id: int, rng: DateRange) -> List[BonusEntry]:
    months = sorted(rng.months())
    rows = (
        WorkerBonus.query
        .filter(
            WorkerBonus.organization_id == organization_id,
            WorkerBonus.month >= months[0],
            WorkerBonus.month <= months[-1],
        )
        .all()
    )
    return [BonusEntry(month=b.month, amount=Decimal(str(b.amount or 0))) for b in rows]


def _span(*ranges: DateRange) -> DateRange:
    return DateRange(min(r.start for r in ranges), max(r.end for r in ranges))


# ---------- dashboard figures ----------

def section_cards(organization_id: int, today: date) -> Dict[str, Any]:
    """Month-to-date style cards: this calendar month vs the previous one, today vs yesterday."""
    current = month_range(today.year, today.month)
    previous = previous_month_range(today)
    span = _span(current, previous)

    entries = fetch_entries(organization_id, span)
    sales = load_sales(organization_id, span)
    bonuses = load_bonuses(organization_id, span)
    cmp = compare_periods(entries, sales, bonuses, current, previous, policy_from_config())
    log.debug("cards org=%s month=%s entries=%d sales=%d bonuses=%d",
              organization_id, current.start.isoformat(), len(entries), len(sales), len(bonuses))

    yesterday = today - timedelta(days=1)
    strict = strict_classification()
    today_kg = aggregate(entries, DateRange(today, today), strict=strict).total_kg
    yesterday_kg = aggregate(entries, DateRange(yesterday, yesterday), strict=strict).total_kg

    return {
        "period": {"start": current.start.isoformat(), "end": current.end.isoformat()},
        "previous_period": {"start": previous.start.isoformat(), "end": previous.end.isoformat()},
        "monthly_revenue": float(cmp.current.revenue),
        "revenue_change": float(cmp.revenue_change),
        "monthly_expenses": float(cmp.current.expenses),
        "expenses_change": float(cmp.expenses_change),
        "monthly_profit": float(cmp.current.profit),
        "profit_change": float(cmp.profit_change),
        "todays_harvest": float(today_kg),
        "harvest_change": float(percent_change(today_kg, yesterday_kg)),
    }


def financial_overview(organization_id: int, today: date, range_key: str = "30d") -> Dict[str, Any]:
    days = RANGE_DAYS.get(range_key, RANGE_DAYS["30d"])
    rng = trailing_days(today, days)
    policy = policy_from_config()

    entries = fetch_entries(organization_id, rng)
    sales = load_sales(organization_id, rng)
    bonuses = load_bonuses(organization_id, rng)

    summary = rollup(entries, sales, bonuses, rng, policy)
    series = daily_series(entries, sales, rng, policy)
    return {
        "range": range_key if range_key in RANGE_DAYS else "30d",
        "start": rng.start.isoformat(),
        "end": rng.end.isoformat(),
        "summary": summary.to_dict(),
        "series": [p.to_dict() for p in series],
    }


def harvest_trends(organization_id: int, today: date, days: int = 7) -> List[Dict[str, Any]]:
    rng = trailing_days(today, days)
    entries = fetch_entries(organization_id, rng)
    strict = strict_classification()
    out = []
    for d in rng.each_day():
        agg = aggregate(entries, DateRange(d, d), strict=strict)
        out.append({
            "date": d.isoformat(),
            "weekday": d.strftime("%a"),
            "total_kg": float(agg.total_kg),
            "total_earned": float(agg.total_earned),
            "workers": agg.worker_count,
        })
    return out


def overview(organization_id: int, today: date) -> Dict[str, Any]:
    yesterday = today - timedelta(days=1)
    entries = fetch_entries(organization_id, DateRange(yesterday, today))
    today_agg = aggregate(entries, DateRange(today, today))
    yesterday_agg = aggregate(entries, DateRange(yesterday, yesterday))

    plantations = (
        db.session.query(func.count(Plantation.id))
        .filter(Plantation.organization_id == organization_id)
        .scalar()
    ) or 0
    active_workers = (
        db.session.query(func.count(Worker.id))
        .filter(Worker.organization_id == organization_id, Worker.status == "active")
        .scalar()
    ) or 0

    return {
        "total_plantations": plantations,
        "active_workers": active_workers,
        "todays_harvest": float(today_agg.total_kg),
        "yesterdays_harvest": float(yesterday_agg.total_kg),
        "harvest_change": float(percent_change(today_agg.total_kg, yesterday_agg.total_kg)),
        "todays_workers": today_agg.worker_count,
    }


def plantation_stats(plantation: Plantation, today: date) -> Dict[str, Any]:
    """Active workers and month-to-date harvest of one plantation."""
    month_start = today.replace(day=1)
    rng = DateRange(month_start, today)
    worker_ids = {
        w.id for w in Worker.query.filter(
            Worker.organization_id == plantation.organization_id,
            Worker.plantation_id == plantation.id,
        ).all()
    }
    active = Worker.query.filter(
        Worker.plantation_id == plantation.id,
        Worker.status == "active",
    ).count()

    entries = [e for e in fetch_entries(plantation.organization_id, rng) if e.worker_id in worker_ids]
    agg = aggregate(entries, rng)
    return {
        "plantation_id": plantation.id,
        "total_workers": active,
        "monthly_harvest": float(agg.total_kg),
        "avg_daily_output": float(agg.total_kg / today.day),
    }
