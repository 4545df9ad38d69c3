# estate_api/services/payroll_policy.py
"""
Payroll / financial aggregation rules for daily plucking, advances, tea sales
and monthly bonuses.

Everything here is pure: callers fetch rows, convert them into the dataclasses
below and get plain aggregate values back. No database access, no app context.

Sign convention (stored as ``daily_plucking.wage_earned``):

    plucking  ->  kg * rate + sum(extra work)      (>= 0)
    advance   ->  -advance_amount                  (<= 0)

The kind of an entry is carried by the explicit ``is_advance`` flag; the sign
is a consequence of the kind, never its source.
"""
from __future__ import annotations

import calendar
import enum
import logging
import warnings
from dataclasses import dataclass, replace
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

log = logging.getLogger(__name__)

ZERO = Decimal("0")
HUNDRED = Decimal("100")


# ---------- errors ----------

class InvalidInput(ValueError):
    """A negative quantity, rate, extra-work amount or advance amount."""
    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class AmbiguousClassification(UserWarning):
    """Entry has no explicit advance flag; it is treated as plucking."""


# ---------- value types ----------

class EntryKind(str, enum.Enum):
    PLUCKING = "plucking"
    ADVANCE = "advance"


def to_decimal(v, field_name: str = "value") -> Decimal:
    """Coerce ints/floats/strings to Decimal (floats via str to keep 15.5 == 15.5)."""
    if v is None or v == "":
        return ZERO
    if isinstance(v, bool):
        raise InvalidInput(f"{field_name} must be a number", field=field_name)
    try:
        d = v if isinstance(v, Decimal) else Decimal(str(v).strip())
    except Exception:
        raise InvalidInput(f"{field_name} must be a number", field=field_name)
    if not d.is_finite():
        raise InvalidInput(f"{field_name} must be a finite number", field=field_name)
    return d


@dataclass(frozen=True)
class ExtraWorkItem:
    description: str
    amount: Decimal

    def __post_init__(self):
        object.__setattr__(self, "amount", to_decimal(self.amount, "extra_work_items.amount"))

    @classmethod
    def from_dict(cls, d: dict) -> "ExtraWorkItem":
        return cls(
            description=str(d.get("description") or "").strip(),
            amount=to_decimal(d.get("amount"), "extra_work_items.amount"),
        )

    def to_dict(self) -> dict:
        return {"description": self.description, "amount": float(self.amount)}


@dataclass(frozen=True)
class WorkEntry:
    worker_id: object
    date: date
    is_advance: Optional[bool] = False
    quantity_kg: Decimal = ZERO
    rate_per_kg: Decimal = ZERO
    extra_work_items: Tuple[ExtraWorkItem, ...] = ()
    advance_amount: Decimal = ZERO
    notes: Optional[str] = None

    def __post_init__(self):
        # plain ints/floats are accepted; arithmetic below is Decimal-only
        object.__setattr__(self, "quantity_kg", to_decimal(self.quantity_kg, "kg_plucked"))
        object.__setattr__(self, "rate_per_kg", to_decimal(self.rate_per_kg, "rate_per_kg"))
        object.__setattr__(self, "advance_amount", to_decimal(self.advance_amount, "advance_amount"))
        object.__setattr__(self, "extra_work_items", tuple(self.extra_work_items or ()))

    @property
    def kind(self) -> EntryKind:
        return classify(self)

    @property
    def extra_work_total(self) -> Decimal:
        return sum((i.amount for i in self.extra_work_items), ZERO)

    @property
    def computed_amount(self) -> Decimal:
        return compute_amount(self)


@dataclass(frozen=True)
class SaleEntry:
    date: date
    quantity_kg: Decimal = ZERO
    rate_per_kg: Decimal = ZERO
    total_income: Optional[Decimal] = None

    def __post_init__(self):
        object.__setattr__(self, "quantity_kg", to_decimal(self.quantity_kg, "kg_delivered"))
        object.__setattr__(self, "rate_per_kg", to_decimal(self.rate_per_kg, "rate_per_kg"))
        if self.total_income is not None:
            object.__setattr__(self, "total_income", to_decimal(self.total_income, "total_income"))

    @property
    def income(self) -> Decimal:
        # a stored total is authoritative even if it drifted from kg * rate
        if self.total_income is not None:
            return self.total_income
        return self.quantity_kg * self.rate_per_kg


@dataclass(frozen=True)
class BonusEntry:
    month: date
    amount: Decimal = ZERO

    def __post_init__(self):
        object.__setattr__(self, "amount", to_decimal(self.amount, "amount"))


@dataclass(frozen=True)
class DateRange:
    """Inclusive calendar-day range."""
    start: date
    end: date

    def __post_init__(self):
        if self.end < self.start:
            raise InvalidInput("range end is before range start", field="to")

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    def contains(self, d: date) -> bool:
        return self.start <= d <= self.end

    def each_day(self) -> Iterator[date]:
        d = self.start
        while d <= self.end:
            yield d
            d += timedelta(days=1)

    def preceding(self) -> "DateRange":
        """Range of equal length ending the day before this one starts."""
        end = self.start - timedelta(days=1)
        return DateRange(end - timedelta(days=self.days - 1), end)

    def months(self) -> set:
        """First-of-month dates of every month this range touches."""
        out = set()
        y, m = self.start.year, self.start.month
        while (y, m) <= (self.end.year, self.end.month):
            out.add(date(y, m, 1))
            y, m = (y + 1, 1) if m == 12 else (y, m + 1)
        return out


def month_range(year: int, month: int) -> DateRange:
    last = calendar.monthrange(year, month)[1]
    return DateRange(date(year, month, 1), date(year, month, last))


def previous_month_range(d: date) -> DateRange:
    first = d.replace(day=1) - timedelta(days=1)
    return month_range(first.year, first.month)


def trailing_days(end: date, n: int) -> DateRange:
    """Last ``n`` days up to and including ``end``."""
    if n < 1:
        raise InvalidInput("number of days must be at least 1", field="days")
    return DateRange(end - timedelta(days=n - 1), end)


# ---------- classifier ----------

def classify(entry: WorkEntry, strict: bool = False) -> EntryKind:
    if entry.is_advance is None:
        if strict:
            msg = f"work entry for worker {entry.worker_id} on {entry.date} has no advance flag; treating as plucking"
            log.warning(msg)
            warnings.warn(msg, AmbiguousClassification, stacklevel=2)
        return EntryKind.PLUCKING
    return EntryKind.ADVANCE if entry.is_advance is True else EntryKind.PLUCKING


# ---------- wage calculator ----------

def validate_entry(entry: WorkEntry) -> None:
    """Reject negative inputs. Values are never clamped to zero."""
    if classify(entry) is EntryKind.ADVANCE:
        if entry.advance_amount < 0:
            raise InvalidInput("advance_amount cannot be negative", field="advance_amount")
        return
    if entry.quantity_kg < 0:
        raise InvalidInput("kg_plucked cannot be negative", field="kg_plucked")
    if entry.rate_per_kg < 0:
        raise InvalidInput("rate_per_kg cannot be negative", field="rate_per_kg")
    for item in entry.extra_work_items:
        if item.amount < 0:
            raise InvalidInput("extra work amount cannot be negative", field="extra_work_items")


def compute_amount(entry: WorkEntry) -> Decimal:
    validate_entry(entry)
    if classify(entry) is EntryKind.ADVANCE:
        return -entry.advance_amount
    return entry.quantity_kg * entry.rate_per_kg + entry.extra_work_total


def normalize_entry(entry: WorkEntry) -> WorkEntry:
    """Clear the fields that belong to the other kind (edit-mode toggles)."""
    if classify(entry) is EntryKind.ADVANCE:
        return replace(entry, quantity_kg=ZERO, rate_per_kg=ZERO, extra_work_items=())
    return replace(entry, advance_amount=ZERO)


# ---------- aggregator ----------

@dataclass(frozen=True)
class WorkAggregate:
    total_kg: Decimal = ZERO
    total_earned: Decimal = ZERO
    total_advanced: Decimal = ZERO
    total_paid: Decimal = ZERO
    worker_count: int = 0
    avg_kg_per_worker: Decimal = ZERO

    def to_dict(self) -> dict:
        return {
            "total_kg": float(self.total_kg),
            "total_earned": float(self.total_earned),
            "total_advanced": float(self.total_advanced),
            "total_paid": float(self.total_paid),
            "worker_count": self.worker_count,
            "avg_kg_per_worker": float(self.avg_kg_per_worker),
        }


def aggregate(entries: Iterable[WorkEntry], date_range: Optional[DateRange] = None,
              strict: bool = False) -> WorkAggregate:
    total_kg = ZERO
    earned = ZERO
    advanced = ZERO
    paid = ZERO
    workers = set()

    for e in entries:
        if date_range is not None and not date_range.contains(e.date):
            continue
        amount = compute_amount(e)
        workers.add(e.worker_id)
        paid += abs(amount)
        if classify(e, strict=strict) is EntryKind.ADVANCE:
            advanced += abs(amount)
        else:
            total_kg += e.quantity_kg
            earned += amount

    count = len(workers)
    return WorkAggregate(
        total_kg=total_kg,
        total_earned=earned,
        total_advanced=advanced,
        total_paid=paid,
        worker_count=count,
        avg_kg_per_worker=(total_kg / count) if count else ZERO,
    )


# ---------- financial rollup ----------

@dataclass(frozen=True)
class RollupPolicy:
    """
    Which items make up "expenses".

    Default is earnings + bonuses - advances. Advances are prepayments against
    future earnings, so they reduce the period's net expense. Pending product
    confirmation; flip the flags rather than forking the calculation.
    """
    include_bonuses: bool = True
    deduct_advances: bool = True


DEFAULT_POLICY = RollupPolicy()


@dataclass(frozen=True)
class FinancialRollup:
    revenue: Decimal = ZERO
    expenses: Decimal = ZERO
    profit: Decimal = ZERO
    earnings: Decimal = ZERO
    bonuses: Decimal = ZERO
    advances: Decimal = ZERO

    def to_dict(self) -> dict:
        return {k: float(v) for k, v in (
            ("revenue", self.revenue),
            ("expenses", self.expenses),
            ("profit", self.profit),
            ("earnings", self.earnings),
            ("bonuses", self.bonuses),
            ("advances", self.advances),
        )}


def period_revenue(sales: Iterable[SaleEntry], period: DateRange) -> Decimal:
    return sum((s.income for s in sales if period.contains(s.date)), ZERO)


def period_bonuses(bonuses: Iterable[BonusEntry], period: DateRange) -> Decimal:
    months = period.months()
    return sum((b.amount for b in bonuses if b.month.replace(day=1) in months), ZERO)


def rollup(entries: Iterable[WorkEntry], sales: Iterable[SaleEntry], bonuses: Iterable[BonusEntry],
           period: DateRange, policy: RollupPolicy = DEFAULT_POLICY) -> FinancialRollup:
    work = aggregate(entries, period)
    revenue = period_revenue(sales, period)
    bonus_total = period_bonuses(bonuses, period) if policy.include_bonuses else ZERO

    expenses = work.total_earned + bonus_total
    if policy.deduct_advances:
        expenses -= work.total_advanced

    return FinancialRollup(
        revenue=revenue,
        expenses=expenses,
        profit=revenue - expenses,
        earnings=work.total_earned,
        bonuses=bonus_total,
        advances=work.total_advanced,
    )


def percent_change(current, previous) -> Decimal:
    """Change vs ``previous`` in percent; a zero base yields 0 so the figure stays renderable."""
    current = to_decimal(current)
    previous = to_decimal(previous)
    if previous == 0:
        return ZERO
    return (current - previous) / abs(previous) * HUNDRED


@dataclass(frozen=True)
class PeriodComparison:
    current: FinancialRollup
    previous: FinancialRollup
    revenue_change: Decimal
    expenses_change: Decimal
    profit_change: Decimal

    def to_dict(self) -> dict:
        return {
            "current": self.current.to_dict(),
            "previous": self.previous.to_dict(),
            "revenue_change": float(self.revenue_change),
            "expenses_change": float(self.expenses_change),
            "profit_change": float(self.profit_change),
        }


def compare_periods(entries: Sequence[WorkEntry], sales: Sequence[SaleEntry], bonuses: Sequence[BonusEntry],
                    current: DateRange, previous: Optional[DateRange] = None,
                    policy: RollupPolicy = DEFAULT_POLICY) -> PeriodComparison:
    previous = previous or current.preceding()
    cur = rollup(entries, sales, bonuses, current, policy)
    prev = rollup(entries, sales, bonuses, previous, policy)
    return PeriodComparison(
        current=cur,
        previous=prev,
        revenue_change=percent_change(cur.revenue, prev.revenue),
        expenses_change=percent_change(cur.expenses, prev.expenses),
        profit_change=percent_change(cur.profit, prev.profit),
    )


@dataclass(frozen=True)
class DailyPoint:
    date: date
    revenue: Decimal
    expenses: Decimal
    profit: Decimal

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "revenue": float(self.revenue),
            "expenses": float(self.expenses),
            "profit": float(self.profit),
        }


def daily_series(entries: Sequence[WorkEntry], sales: Sequence[SaleEntry], date_range: DateRange,
                 policy: RollupPolicy = DEFAULT_POLICY) -> List[DailyPoint]:
    """
    One point per day of ``date_range``; days without rows are zero.

    Daily expenses are the wages earned that day. Bonuses are monthly and advances
    are prepayments, so neither is spread into days; the period rollup carries both.
    """
    day_policy = replace(policy, include_bonuses=False, deduct_advances=False)
    by_day_entries: dict = {}
    by_day_sales: dict = {}
    for e in entries:
        if date_range.contains(e.date):
            by_day_entries.setdefault(e.date, []).append(e)
    for s in sales:
        if date_range.contains(s.date):
            by_day_sales.setdefault(s.date, []).append(s)

    out = []
    for d in date_range.each_day():
        r = rollup(by_day_entries.get(d, ()), by_day_sales.get(d, ()), (), DateRange(d, d), day_policy)
        out.append(DailyPoint(date=d, revenue=r.revenue, expenses=r.expenses, profit=r.profit))
    return out
