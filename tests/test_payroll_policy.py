import random
import warnings
from datetime import date
from decimal import Decimal

import pytest

from estate_api.services.payroll_policy import (
    AmbiguousClassification,
    BonusEntry,
    DateRange,
    EntryKind,
    ExtraWorkItem,
    InvalidInput,
    RollupPolicy,
    SaleEntry,
    WorkAggregate,
    WorkEntry,
    aggregate,
    classify,
    compare_periods,
    compute_amount,
    daily_series,
    month_range,
    normalize_entry,
    percent_change,
    rollup,
    trailing_days,
)

D = Decimal
DAY = date(2025, 11, 12)


def _pluck(worker, kg, rate="150", extras=(), day=DAY):
    return WorkEntry(worker_id=worker, date=day, is_advance=False, quantity_kg=D(kg), rate_per_kg=D(rate),
                     extra_work_items=tuple(ExtraWorkItem(desc, D(amt)) for desc, amt in extras))


def _advance(worker, amount, day=DAY):
    return WorkEntry(worker_id=worker, date=day, is_advance=True, advance_amount=D(amount))


def _scenario():
    return [
        _pluck("A", "15.5"),
        _pluck("B", "20", extras=[("weeding", "500")]),
        _advance("A", "2000"),
    ]


# ---------- wage calculator ----------

@pytest.mark.parametrize("kg,rate", [("0", "150"), ("15.5", "150"), ("20", "0"), ("123.45", "162.5")])
def test_plucking_amount_is_kg_times_rate(kg, rate):
    assert compute_amount(_pluck("A", kg, rate)) == D(kg) * D(rate)


@pytest.mark.parametrize("amount", ["0", "1", "2000", "1500.75"])
def test_advance_amount_is_negated(amount):
    assert compute_amount(_advance("A", amount)) == -D(amount)


def test_extra_work_added_to_plucking():
    e = _pluck("B", "20", extras=[("weeding", "500"), ("pruning", "250")])
    assert compute_amount(e) == D("3750")
    assert e.computed_amount == D("3750")


def test_advance_ignores_plucking_fields():
    e = WorkEntry(worker_id="A", date=DAY, is_advance=True, quantity_kg=D("10"), rate_per_kg=D("150"),
                  advance_amount=D("500"))
    assert compute_amount(e) == D("-500")


def test_plucking_ignores_advance_field():
    e = WorkEntry(worker_id="A", date=DAY, is_advance=False, quantity_kg=D("10"), rate_per_kg=D("150"),
                  advance_amount=D("500"))
    assert compute_amount(e) == D("1500")


def test_negative_kg_rejected():
    with pytest.raises(InvalidInput) as exc:
        compute_amount(_pluck("A", "-1", "150"))
    assert exc.value.field == "kg_plucked"


def test_negative_rate_extra_and_advance_rejected():
    with pytest.raises(InvalidInput):
        compute_amount(_pluck("A", "1", "-150"))
    with pytest.raises(InvalidInput):
        compute_amount(_pluck("A", "1", extras=[("weeding", "-5")]))
    with pytest.raises(InvalidInput):
        compute_amount(_advance("A", "-10"))


def test_normalize_clears_other_kind():
    toggled = WorkEntry(worker_id="A", date=DAY, is_advance=True, quantity_kg=D("12"), rate_per_kg=D("150"),
                        extra_work_items=(ExtraWorkItem("weeding", D("100")),), advance_amount=D("300"))
    adv = normalize_entry(toggled)
    assert (adv.quantity_kg, adv.rate_per_kg, adv.extra_work_items) == (D("0"), D("0"), ())
    assert adv.advance_amount == D("300")

    back = normalize_entry(WorkEntry(worker_id="A", date=DAY, is_advance=False, quantity_kg=D("12"),
                                     rate_per_kg=D("150"), advance_amount=D("300")))
    assert back.advance_amount == D("0")
    assert compute_amount(back) == D("1800")


# ---------- classifier ----------

def test_classify_uses_flag_not_sign():
    assert classify(_advance("A", "0")) is EntryKind.ADVANCE
    assert classify(_pluck("A", "0")) is EntryKind.PLUCKING


def test_missing_flag_is_plucking():
    e = WorkEntry(worker_id="A", date=DAY, is_advance=None, quantity_kg=D("5"), rate_per_kg=D("100"))
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        assert classify(e) is EntryKind.PLUCKING


def test_missing_flag_warns_in_strict_mode():
    e = WorkEntry(worker_id="A", date=DAY, is_advance=None, quantity_kg=D("5"), rate_per_kg=D("100"))
    with pytest.warns(AmbiguousClassification):
        assert classify(e, strict=True) is EntryKind.PLUCKING
    with pytest.warns(AmbiguousClassification):
        agg = aggregate([e], strict=True)
    assert agg.total_kg == D("5")


# ---------- aggregator ----------

def test_aggregate_concrete_scenario():
    agg = aggregate(_scenario())
    assert agg.total_kg == D("35.5")
    assert agg.total_earned == D("5825")
    assert agg.total_advanced == D("2000")
    assert agg.total_paid == D("7825")
    assert agg.worker_count == 2
    assert agg.avg_kg_per_worker == D("17.75")


def test_aggregate_is_idempotent_and_order_independent():
    entries = _scenario() + [_pluck("C", "7.25", "160"), _advance("C", "300")]
    first = aggregate(entries)
    assert aggregate(entries) == first
    rnd = random.Random(7)
    for _ in range(10):
        shuffled = entries[:]
        rnd.shuffle(shuffled)
        assert aggregate(shuffled) == first


def test_aggregate_empty_is_all_zero():
    agg = aggregate([])
    assert agg == WorkAggregate()
    assert agg.to_dict() == {
        "total_kg": 0.0, "total_earned": 0.0, "total_advanced": 0.0,
        "total_paid": 0.0, "worker_count": 0, "avg_kg_per_worker": 0.0,
    }


def test_aggregate_filters_by_range():
    entries = _scenario() + [_pluck("Z", "100", day=date(2025, 11, 13))]
    agg = aggregate(entries, DateRange(DAY, DAY))
    assert agg.total_kg == D("35.5")
    assert agg.worker_count == 2


def test_advance_only_worker_counts_toward_workers():
    agg = aggregate([_pluck("A", "10"), _advance("B", "100")])
    assert agg.worker_count == 2
    assert agg.avg_kg_per_worker == D("5")


# ---------- financial rollup ----------

NOV = month_range(2025, 11)


def _rollup_inputs():
    entries = [
        _pluck("A", "200", "150", day=date(2025, 11, 3)),                                # 30000
        _pluck("B", "130", "150", extras=[("weeding", "500")], day=date(2025, 11, 4)),  # 20000
        _advance("A", "8000", day=date(2025, 11, 5)),
    ]
    sales = [
        SaleEntry(date(2025, 11, 10), D("400"), D("250")),                         # 100000
        SaleEntry(date(2025, 10, 31), D("400"), D("250"), total_income=D("99999")),  # outside
    ]
    bonuses = [BonusEntry(date(2025, 11, 1), D("5000")), BonusEntry(date(2025, 10, 1), D("700"))]
    return entries, sales, bonuses


def test_rollup_scenario():
    entries, sales, bonuses = _rollup_inputs()
    r = rollup(entries, sales, bonuses, NOV)
    assert r.revenue == D("100000")
    assert r.earnings == D("50000")
    assert r.bonuses == D("5000")
    assert r.advances == D("8000")
    assert r.expenses == D("47000")
    assert r.profit == D("53000")


def test_rollup_policy_flags():
    entries, sales, bonuses = _rollup_inputs()
    no_bonus = rollup(entries, sales, bonuses, NOV, RollupPolicy(include_bonuses=False))
    assert no_bonus.expenses == D("42000")
    keep_adv = rollup(entries, sales, bonuses, NOV, RollupPolicy(deduct_advances=False))
    assert keep_adv.expenses == D("55000")
    assert keep_adv.profit == D("45000")


def test_rollup_profit_can_be_negative():
    r = rollup([_pluck("A", "100", "150", day=date(2025, 11, 2))], [], [], NOV)
    assert r.profit == D("-15000")


def test_sale_total_income_overrides_kg_times_rate():
    assert SaleEntry(DAY, D("10"), D("100"), total_income=D("950")).income == D("950")
    assert SaleEntry(DAY, D("10"), D("100")).income == D("1000")


def test_percent_change_zero_base():
    assert percent_change(D("5000"), D("0")) == D("0")
    assert percent_change(0, 0) == D("0")


def test_percent_change_values():
    assert percent_change(D("150"), D("100")) == D("50")
    assert percent_change(D("50"), D("100")) == D("-50")
    # negative base (a loss) improving reads as positive
    assert percent_change(D("-50"), D("-100")) == D("50")


def test_compare_periods_defaults_to_preceding_range():
    week = DateRange(date(2025, 11, 8), date(2025, 11, 14))
    entries = [_pluck("A", "10", day=date(2025, 11, 3)), _pluck("A", "20", day=date(2025, 11, 10))]
    sales = [SaleEntry(date(2025, 11, 1), total_income=D("1000")),
             SaleEntry(date(2025, 11, 9), total_income=D("1500"))]
    cmp = compare_periods(entries, sales, [], week, policy=RollupPolicy(include_bonuses=False))
    assert cmp.previous.revenue == D("1000")
    assert cmp.current.revenue == D("1500")
    assert cmp.revenue_change == D("50")
    assert cmp.expenses_change == D("100")


def test_daily_series_excludes_bonuses_and_advances():
    entries, sales, bonuses = _rollup_inputs()
    rng = DateRange(date(2025, 11, 3), date(2025, 11, 10))
    series = daily_series(entries, sales, rng)
    assert [p.date for p in series] == list(rng.each_day())
    by_day = {p.date: p for p in series}
    assert by_day[date(2025, 11, 3)].expenses == D("30000")
    # advance-only day: a prepayment, not a daily expense
    assert by_day[date(2025, 11, 5)].expenses == D("0")
    assert by_day[date(2025, 11, 5)].profit == D("0")
    assert by_day[date(2025, 11, 10)].revenue == D("100000")
    assert by_day[date(2025, 11, 7)].profit == D("0")
    assert sum(p.expenses for p in series) == D("50000")


# ---------- ranges ----------

def test_date_range_helpers():
    assert NOV.days == 30
    assert NOV.preceding() == DateRange(date(2025, 10, 2), date(2025, 10, 31))
    assert trailing_days(DAY, 7) == DateRange(date(2025, 11, 6), DAY)
    assert DateRange(date(2025, 12, 30), date(2026, 1, 2)).months() == {date(2025, 12, 1), date(2026, 1, 1)}
    with pytest.raises(InvalidInput):
        DateRange(DAY, date(2025, 11, 1))


# ---------- plain numbers ----------

def test_plain_int_and_float_inputs_are_coerced():
    e = WorkEntry(worker_id="A", date=DAY, is_advance=False, quantity_kg=15.5, rate_per_kg=150)
    assert e.quantity_kg == D("15.5")
    assert compute_amount(e) == D("2325")

    plain = [
        WorkEntry(worker_id="A", date=DAY, is_advance=False, quantity_kg=15.5, rate_per_kg=150),
        WorkEntry(worker_id="B", date=DAY, is_advance=False, quantity_kg=20, rate_per_kg=150.0,
                  extra_work_items=[ExtraWorkItem("weeding", 500)]),
        WorkEntry(worker_id="A", date=DAY, is_advance=True, advance_amount=2000),
    ]
    assert aggregate(plain) == aggregate(_scenario())

    assert SaleEntry(DAY, 10, 100.5).income == D("1005.0")
    assert SaleEntry(DAY, total_income=950).income == D("950")
    assert rollup(plain, [], [BonusEntry(date(2025, 11, 1), 300)], NOV).bonuses == D("300")


def test_non_numeric_input_rejected():
    with pytest.raises(InvalidInput):
        WorkEntry(worker_id="A", date=DAY, quantity_kg="lots")
