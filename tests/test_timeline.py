from datetime import date

from projection.models import YearMonth
from projection.timeline import (
    EventIndex,
    is_active,
    month_offset,
    month_to_date,
    monthly_delta,
)


def test_month_offset(valuation_date):
    assert month_offset(YearMonth(2025, 1), valuation_date) == 0
    assert month_offset(YearMonth(2026, 3), valuation_date) == 14
    assert month_offset(date(2030, 12, 31), valuation_date) == 71


def test_month_offset_past_dates_collapse_to_zero(valuation_date):
    assert month_offset(YearMonth(2019, 6), valuation_date) == 0


def test_month_offset_none(valuation_date):
    assert month_offset(None, valuation_date) is None


def test_month_to_date(valuation_date):
    assert month_to_date(0, valuation_date) == date(2025, 1, 1)
    assert month_to_date(14, valuation_date) == date(2026, 3, 1)


def test_is_active_end_inclusive(valuation_date, make_event):
    ev = make_event("income_change", "2026-01", 500, end="2026-12")
    assert not is_active(ev, 11, valuation_date)
    assert is_active(ev, 12, valuation_date)
    assert is_active(ev, 23, valuation_date)
    assert not is_active(ev, 24, valuation_date)


def test_is_active_open_ended(valuation_date, make_event):
    ev = make_event("expense_change", "2025-04", 100)
    assert not is_active(ev, 2, valuation_date)
    assert is_active(ev, 3, valuation_date)
    assert is_active(ev, 600, valuation_date)


def test_monthly_delta_prefers_monthly_change(make_event):
    assert monthly_delta(make_event("income_change", "2025-01", 300)) == 300
    assert monthly_delta(make_event("income_change", "2025-01", 300, monthly_change=250.0)) == 250


def test_index_skips_disabled_events(valuation_date, make_event):
    events = [
        make_event("one_time_income", "2025-06", 1000),
        make_event("one_time_income", "2025-06", 5000, enabled=False),
        make_event("income_change", "2025-01", 200),
    ]
    index = EventIndex(events, valuation_date)
    assert len(index) == 2
    assert index.one_time_net(5) == 1000
    assert index.one_time_at(4) == []


def test_one_time_net_signs(valuation_date, make_event):
    events = [
        make_event("one_time_income", "2027-01", 1000),
        make_event("one_time_expense", "2027-01", 2500),
    ]
    index = EventIndex(events, valuation_date)
    assert index.one_time_net(24) == -1500


def test_recurring_adjustments_match_brute_force(valuation_date, make_event):
    events = [
        make_event("income_change", "2025-01", 100),
        make_event("income_change", "2026-06", 250, end="2030-05"),
        make_event("expense_change", "2024-01", 75, end="2025-03"),
        make_event("expense_change", "2028-02", 400, end="2028-02"),
        make_event("expense_change", "2031-01", 60),
        make_event("income_change", "2029-01", 999, enabled=False),
    ]
    index = EventIndex(events, valuation_date)

    for month in range(0, 12 * 12):
        income = sum(monthly_delta(e) for e in events
                     if e.enabled and e.type.value == "income_change" and is_active(e, month, valuation_date))
        expense = sum(monthly_delta(e) for e in events
                      if e.enabled and e.type.value == "expense_change" and is_active(e, month, valuation_date))
        assert index.recurring_adjustments(month) == (income, expense), month


def test_starting_and_ending_buckets(valuation_date, make_event):
    ev = make_event("income_change", "2026-01", 500, end="2026-12")
    index = EventIndex([ev], valuation_date)
    assert index.starting_at(12) == [ev]
    assert index.ending_at(23) == [ev]
    assert index.starting_at(13) == []
