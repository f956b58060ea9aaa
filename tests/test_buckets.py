import math

import pytest

from projection.buckets import (
    Buckets,
    allocate,
    bucket_monthly_rates,
    gross_up_factor,
    open_buckets,
    safe_capital_requirement,
)
from projection.decumulation import simulate_decumulation
from projection.models import BucketSettings, PHASE_DECUMULATION
from projection.projector import project
from projection.timeline import EventIndex


def test_debit_takes_safe_first():
    b = Buckets(100.0, 50.0)
    assert b.debit(30.0) == Buckets(70.0, 50.0)
    assert b.debit(120.0) == Buckets(0.0, 30.0)
    assert b.debit(0.0) is b


def test_debit_never_goes_negative():
    assert Buckets(100.0, 50.0).debit(500.0) == Buckets(0.0, 0.0)


def test_accrue_reports_combined_interest():
    grown, interest = Buckets(1000.0, 2000.0).accrue(0.01, 0.02)
    assert grown == Buckets(1010.0, 2040.0)
    assert interest == pytest.approx(50.0)


def test_allocate():
    assert allocate(100.0, 30.0) == Buckets(30.0, 70.0)
    assert allocate(20.0, 30.0) == Buckets(20.0, 0.0)


def test_gross_up_factor():
    assert gross_up_factor(200000.0, 100000.0, 0.25) == pytest.approx(1 / 0.875)
    assert gross_up_factor(0.0, 0.0, 0.25) == 1.0
    assert gross_up_factor(100.0, 150.0, 0.25) == 1.0
    assert math.isinf(gross_up_factor(100.0, 0.0, 1.0))


def test_safe_requirement_at_zero_rate(retiree, valuation_date):
    config = retiree(buckets=BucketSettings(enabled=True, safe_rate=0.0, surplus_rate=5.0))
    index = EventIndex((), valuation_date)
    assert safe_capital_requirement(config, index, 0, 3, 1.0) == pytest.approx(12000)


def test_safe_requirement_skips_months_covered_by_income(retiree, make_event, valuation_date):
    config = retiree(buckets=BucketSettings(enabled=True, safe_rate=0.0))
    index = EventIndex([make_event("income_change", "2025-04", 5000)], valuation_date)
    # months 1 and 2 need 4000 each; from month 3 the income covers everything
    assert safe_capital_requirement(config, index, 0, 12, 1.0) == pytest.approx(8000)


def test_open_buckets_warns_when_underfunded(retiree, valuation_date, capsys):
    config = retiree(buckets=BucketSettings(enabled=True, safe_rate=0.0))
    buckets = open_buckets(config, EventIndex((), valuation_date), 5000.0, 5000.0)
    assert buckets == Buckets(5000.0, 0.0)
    assert "does not cover" in capsys.readouterr().err


def test_withdrawals_drain_safe_while_surplus_grows(retiree, valuation_date):
    config = retiree(
        current_savings=200000.0,
        monthly_net_income_desired=1000.0,
        buckets=BucketSettings(enabled=True, safe_rate=0.0, surplus_rate=12.0),
    )
    dec = simulate_decumulation(config, valuation_date, 200000.0, 200000.0)
    assert dec.safe_bucket_at_retirement == pytest.approx(12000)
    assert dec.surplus_bucket_at_retirement == pytest.approx(188000)

    last = dec.history[-1]
    assert last.safe_bucket == pytest.approx(0.0, abs=1e-9)
    assert last.surplus_bucket == pytest.approx(188000 * 1.01 ** 12)
    assert dec.balance_at_end == pytest.approx(188000 * 1.01 ** 12)


def test_bucket_conservation(example_config, valuation_date):
    config = example_config.replace(
        buckets=BucketSettings(enabled=True, safe_rate=3.0, surplus_rate=7.0))
    result = project(config, valuation_date)

    assert result.safe_bucket_at_retirement + result.surplus_bucket_at_retirement == \
        pytest.approx(result.balance_at_retirement)

    points = [p for p in result.history if p.phase == PHASE_DECUMULATION]
    assert points
    for p in points:
        assert p.safe_bucket >= 0 and p.surplus_bucket >= 0
        assert p.safe_bucket + p.surplus_bucket == pytest.approx(p.balance)


def _bucketed(retiree, **kw):
    values = dict(monthly_net_income_desired=1000.0,
                  buckets=BucketSettings(enabled=True, safe_rate=0.0, surplus_rate=0.0))
    values.update(kw)
    return retiree(**values)


def test_bucket_rates_follow_the_calendar_year_mid_year(retiree):
    config = retiree(
        variable_rates_enabled=True,
        buckets=BucketSettings(enabled=True, safe_rate=2.0, surplus_rate=1.0,
                               safe_variable_rates={2026: 6.0}, surplus_variable_rates={2026: 40.0}),
    )
    # six months to retirement from January 2025: retirement month 7 runs from offset 12
    assert bucket_monthly_rates(config, 2025, 6, 6) == pytest.approx((0.02 / 12, 0.01 / 12))
    assert bucket_monthly_rates(config, 2025, 6, 7) == pytest.approx((0.06 / 12, 0.40 / 12))


def test_bucket_rate_tables_ignored_when_switched_off(retiree):
    config = retiree(buckets=BucketSettings(enabled=True, safe_rate=2.0, surplus_rate=1.0,
                                            surplus_variable_rates={2026: 40.0}))
    assert bucket_monthly_rates(config, 2025, 6, 7) == pytest.approx((0.02 / 12, 0.01 / 12))


def test_surplus_rate_table_applies_from_its_calendar_year(retiree, valuation_date):
    config = _bucketed(
        retiree, current_age=64.5, variable_rates_enabled=True,
        buckets=BucketSettings(enabled=True, safe_rate=0.0, surplus_rate=0.0,
                               surplus_variable_rates={2026: 12.0}),
    )
    dec = simulate_decumulation(config, valuation_date, 100000.0, 100000.0)
    assert dec.safe_bucket_at_retirement == pytest.approx(12000)
    # retirement months 7..12 fall in 2026 and grow at 1% a month
    last = dec.history[-1]
    assert last.safe_bucket == pytest.approx(0.0, abs=1e-9)
    assert last.surplus_bucket == pytest.approx(88000 * 1.01 ** 6)


def test_one_time_income_goes_to_surplus(retiree, make_event, valuation_date):
    config = _bucketed(retiree, life_events=(make_event("one_time_income", "2025-04", 5000),))
    dec = simulate_decumulation(config, valuation_date, 100000.0, 100000.0)
    last = dec.history[-1]
    assert last.safe_bucket == pytest.approx(0.0, abs=1e-9)
    assert last.surplus_bucket == pytest.approx(93000)
    assert last.balance == pytest.approx(93000)


def test_excess_income_goes_to_surplus(retiree, make_event, valuation_date):
    # from month 6 the pension pays 500 a month more than is needed
    config = _bucketed(retiree, life_events=(make_event("income_change", "2025-07", 1500),))
    dec = simulate_decumulation(config, valuation_date, 100000.0, 100000.0)
    assert dec.safe_bucket_at_retirement == pytest.approx(5000)
    last = dec.history[-1]
    assert last.safe_bucket == pytest.approx(0.0, abs=1e-9)
    assert last.surplus_bucket == pytest.approx(95000 + 7 * 500)
    assert dec.balance_at_end == pytest.approx(98500)


def test_one_time_expense_is_paid_from_safe_first(retiree, make_event, valuation_date):
    config = _bucketed(
        retiree,
        life_events=(make_event("one_time_expense", "2025-04", 5000),),
        buckets=BucketSettings(enabled=True, safe_rate=0.0, surplus_rate=12.0),
    )
    dec = simulate_decumulation(config, valuation_date, 100000.0, 100000.0)
    assert dec.surplus_bucket_at_retirement == pytest.approx(88000)
    # safe pays months 1-7 and the expense; surplus pays months 8-12
    expected = 88000 * 1.01 ** 12 - 1000 * sum(1.01 ** k for k in range(5))
    last = dec.history[-1]
    assert last.safe_bucket == pytest.approx(0.0, abs=1e-9)
    assert last.surplus_bucket == pytest.approx(expected)


def test_buckets_conserve_balance_at_depletion(retiree, valuation_date):
    config = _bucketed(retiree, current_savings=5000.0)
    dec = simulate_decumulation(config, valuation_date, 5000.0, 5000.0)
    assert dec.ran_out_at_age == pytest.approx(65 + 6 / 12)
    assert [p.month for p in dec.history] == [5, 12]
    for p in dec.history:
        assert p.safe_bucket + p.surplus_bucket == pytest.approx(p.balance)
        assert p.balance == 0.0
