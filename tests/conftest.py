from datetime import date

import pytest

from projection.models import Config, EventType, LifeEvent, YearMonth
from simdebug import WARNING, set_debug_level

EXAMPLE_INPUTS = dict(
    current_age=30,
    retirement_start_age=50,
    retirement_end_age=70,
    current_savings=100000.0,
    monthly_contribution=1000.0,
    monthly_net_income_desired=4000.0,
    annual_return_rate=5.0,
    tax_rate=25.0,
)


@pytest.fixture(autouse=True)
def _quiet_debug():
    set_debug_level(WARNING)
    yield
    set_debug_level(WARNING)


@pytest.fixture
def valuation_date():
    return date(2025, 1, 1)


@pytest.fixture
def make_config():
    def _make(**overrides):
        values = dict(EXAMPLE_INPUTS)
        values.update(overrides)
        return Config(**values)
    return _make


@pytest.fixture
def example_config(make_config):
    return make_config()


@pytest.fixture
def retiree(make_config):
    """Already at retirement, no growth, no tax: withdrawals are plain subtraction."""
    def _make(**overrides):
        values = dict(
            current_age=65,
            retirement_start_age=65,
            retirement_end_age=66,
            current_savings=100000.0,
            monthly_contribution=0.0,
            annual_return_rate=0.0,
            tax_rate=0.0,
        )
        values.update(overrides)
        return make_config(**values)
    return _make


def event(type_, start, amount=0.0, end=None, **kw):
    return LifeEvent(
        type=EventType(type_),
        start_date=YearMonth.parse(start),
        end_date=YearMonth.parse(end),
        amount=amount,
        **kw,
    )


@pytest.fixture
def make_event():
    return event
