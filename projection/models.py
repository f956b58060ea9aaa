# projection/models.py

from __future__ import annotations

import re
from dataclasses import dataclass, field, asdict, replace as dc_replace
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional

import pandas as pd

from .errors import ConfigError


class EventType(str, Enum):
    ONE_TIME_INCOME = "one_time_income"
    ONE_TIME_EXPENSE = "one_time_expense"
    INCOME_CHANGE = "income_change"
    EXPENSE_CHANGE = "expense_change"


RECURRING_TYPES = {EventType.INCOME_CHANGE, EventType.EXPENSE_CHANGE}
ONE_TIME_TYPES = {EventType.ONE_TIME_INCOME, EventType.ONE_TIME_EXPENSE}


class WithdrawalStrategy(str, Enum):
    FIXED = "fixed"
    FOUR_PERCENT = "four_percent"
    PERCENTAGE = "percentage"
    DYNAMIC = "dynamic"
    INTEREST_ONLY = "interest_only"


PHASE_ACCUMULATION = "accumulation"
PHASE_DECUMULATION = "decumulation"

COMPOUNDING_NOMINAL = "nominal"
COMPOUNDING_EFFECTIVE = "effective"
COMPOUNDING_MODES = (COMPOUNDING_NOMINAL, COMPOUNDING_EFFECTIVE)


# -----------------------------------------------------------------------------
# Calendar months
# -----------------------------------------------------------------------------

@dataclass(frozen=True, order=True)
class YearMonth:
    year: int
    month: int

    def __str__(self):
        return f"{self.year:04d}-{self.month:02d}"

    def as_date(self) -> date:
        return date(self.year, self.month, 1)

    @classmethod
    def parse(cls, value) -> Optional["YearMonth"]:
        """Accept {year, month}, 'YYYY-MM', 'YYYY-MM-DD', a date or a YearMonth."""
        if value is None or value == "":
            return None
        if isinstance(value, YearMonth):
            return value
        if isinstance(value, (date, datetime)):
            return cls(value.year, value.month)
        if isinstance(value, dict):
            try:
                ym = cls(int(value["year"]), int(value["month"]))
            except (KeyError, TypeError, ValueError) as e:
                raise ConfigError(f"Invalid date object {value!r}: {e}") from e
        elif isinstance(value, str):
            m = re.fullmatch(r"\s*(\d{4})-(\d{1,2})(?:-\d{1,2})?\s*", value)
            if not m:
                raise ConfigError(f"Invalid date '{value}'. Expected YYYY-MM or YYYY-MM-DD.")
            ym = cls(int(m.group(1)), int(m.group(2)))
        else:
            raise ConfigError(f"Unsupported date value {value!r}")

        if not 1 <= ym.month <= 12:
            raise ConfigError(f"Invalid month {ym.month} in date {value!r} (expected 1..12)")
        return ym


def parse_valuation_date(value) -> date:
    """Valuation dates are always pinned to the first of their month."""
    ym = YearMonth.parse(value)
    if ym is None:
        raise ConfigError("valuation_date is required")
    return ym.as_date()


# -----------------------------------------------------------------------------
# Input records
# -----------------------------------------------------------------------------

def _first(d: dict, *keys, default=None):
    for k in keys:
        if k in d and d[k] is not None and d[k] != "":
            return d[k]
    return default


def _number(value, name: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"'{name}' must be a number, got {value!r}") from e


def _flag(value) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def _rate_table(raw, name: str) -> dict:
    if not raw:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError(f"'{name}' must be an object mapping year -> rate")
    table = {}
    for year, rate in raw.items():
        if rate is None or rate == "":
            continue
        try:
            table[int(year)] = float(rate)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"'{name}' entry {year!r}: {rate!r} is not a year/rate pair") from e
    return table


@dataclass(frozen=True)
class LifeEvent:
    type: EventType
    start_date: YearMonth
    amount: float = 0.0
    monthly_change: Optional[float] = None
    end_date: Optional[YearMonth] = None
    enabled: bool = True
    name: str = ""
    id: str = ""
    source: str = "profile"

    @property
    def is_recurring(self) -> bool:
        return self.type in RECURRING_TYPES

    @classmethod
    def from_dict(cls, raw: dict, idx: int = 0) -> "LifeEvent":
        if not isinstance(raw, dict):
            raise ConfigError(f"life_events[{idx}] must be an object")

        name = str(_first(raw, "name", "event", default=f"life_events[{idx}]"))
        type_tag = _first(raw, "type")
        try:
            ev_type = EventType(type_tag)
        except ValueError as e:
            allowed = [t.value for t in EventType]
            raise ConfigError(f"{name}: unknown event type {type_tag!r} (expected one of {allowed})") from e

        start = YearMonth.parse(_first(raw, "start_date", "startDate", "date"))
        if start is None:
            raise ConfigError(f"{name}: missing start date")

        change = _first(raw, "monthly_change", "monthlyChange")
        return cls(
            type=ev_type,
            start_date=start,
            end_date=YearMonth.parse(_first(raw, "end_date", "endDate")),
            amount=_number(_first(raw, "amount", default=0.0), f"{name}.amount"),
            monthly_change=None if change is None else _number(change, f"{name}.monthly_change"),
            enabled=_flag(raw.get("enabled", True)),
            name=name,
            id=str(_first(raw, "id", default=idx)),
            source=str(raw.get("source", "profile")),
        )


@dataclass(frozen=True)
class BucketSettings:
    enabled: bool = False
    safe_rate: float = 0.0
    surplus_rate: float = 0.0
    safe_variable_rates: dict = field(default_factory=dict)
    surplus_variable_rates: dict = field(default_factory=dict)


@dataclass(frozen=True)
class DynamicPolicy:
    """Guardrails of the dynamic withdrawal strategy."""
    expected_return: float = 0.07
    tolerance: float = 0.05
    upper_step: float = 1.10
    lower_step: float = 0.90
    cap: float = 1.20
    floor: float = 0.80


# camelCase -> field names accepted by Config.from_dict
_CONFIG_ALIASES = {
    "current_age": ("current_age", "currentAge"),
    "retirement_start_age": ("retirement_start_age", "retirementStartAge"),
    "retirement_end_age": ("retirement_end_age", "retirementEndAge"),
    "current_savings": ("current_savings", "currentSavings"),
    "monthly_contribution": ("monthly_contribution", "monthlyContribution"),
    "monthly_net_income_desired": ("monthly_net_income_desired", "monthlyNetIncomeDesired"),
    "annual_return_rate": ("annual_return_rate", "annualReturnRate"),
    "tax_rate": ("tax_rate", "taxRate"),
}


@dataclass(frozen=True)
class Config:
    current_age: float
    retirement_start_age: float
    retirement_end_age: float
    current_savings: float
    monthly_contribution: float
    monthly_net_income_desired: float
    annual_return_rate: float
    tax_rate: float
    withdrawal_strategy: WithdrawalStrategy = WithdrawalStrategy.FIXED
    withdrawal_percentage: float = 4.0
    life_events: tuple = ()
    variable_rates_enabled: bool = False
    variable_rates: dict = field(default_factory=dict)
    buckets: BucketSettings = field(default_factory=BucketSettings)
    dynamic: DynamicPolicy = field(default_factory=DynamicPolicy)
    compounding: str = COMPOUNDING_NOMINAL

    def __post_init__(self):
        # Built directly (not via from_dict) the strategy may still be a plain tag.
        if not isinstance(self.withdrawal_strategy, WithdrawalStrategy):
            try:
                strategy = WithdrawalStrategy(self.withdrawal_strategy)
            except ValueError as e:
                allowed = [s.value for s in WithdrawalStrategy]
                raise ConfigError(f"unknown withdrawal strategy {self.withdrawal_strategy!r} "
                                  f"(expected one of {allowed})") from e
            object.__setattr__(self, "withdrawal_strategy", strategy)
        if self.compounding not in COMPOUNDING_MODES:
            raise ConfigError(f"compounding must be one of {COMPOUNDING_MODES}, got {self.compounding!r}")
        if not isinstance(self.life_events, tuple):
            object.__setattr__(self, "life_events", tuple(self.life_events))

    @property
    def tax_rate_decimal(self) -> float:
        return self.tax_rate / 100.0

    @property
    def months_to_retirement(self) -> int:
        return int(round((self.retirement_start_age - self.current_age) * 12))

    @property
    def months_in_retirement(self) -> int:
        return int(round((self.retirement_end_age - self.retirement_start_age) * 12))

    def enabled_events(self):
        return [ev for ev in self.life_events if ev.enabled]

    def replace(self, **changes) -> "Config":
        return dc_replace(self, **changes)

    @classmethod
    def from_dict(cls, raw: dict) -> "Config":
        """
        Build a Config from a loosely-typed mapping (a JSON profile, a form
        post). This is the only place where text numbers, camelCase keys and
        missing optionals are tolerated; everything downstream sees floats.
        """
        if not isinstance(raw, dict):
            raise ConfigError("configuration must be an object")

        values = {}
        missing = []
        for fname, aliases in _CONFIG_ALIASES.items():
            v = _first(raw, *aliases)
            if v is None:
                missing.append(fname)
                continue
            values[fname] = _number(v, fname)
        if missing:
            raise ConfigError(f"missing required fields: {missing}")

        strategy_tag = _first(raw, "withdrawal_strategy", "withdrawalStrategy",
                              default=WithdrawalStrategy.FIXED.value)
        try:
            strategy = WithdrawalStrategy(strategy_tag)
        except ValueError as e:
            allowed = [s.value for s in WithdrawalStrategy]
            raise ConfigError(f"unknown withdrawal strategy {strategy_tag!r} (expected one of {allowed})") from e

        events_raw = _first(raw, "life_events", "lifeEvents", default=[])
        if not isinstance(events_raw, list):
            raise ConfigError("life_events must be a list")
        events = tuple(LifeEvent.from_dict(ev, idx) for idx, ev in enumerate(events_raw))

        buckets_raw = raw.get("buckets")
        if isinstance(buckets_raw, dict):
            b_src = buckets_raw
            b_enabled = _flag(b_src.get("enabled", False))
        else:
            b_src = raw
            b_enabled = _flag(_first(raw, "enable_buckets", "enableBuckets", default=False))
        buckets = BucketSettings(
            enabled=b_enabled,
            safe_rate=_number(_first(b_src, "safe_rate", "bucketSafeRate", default=0.0), "safe_rate"),
            surplus_rate=_number(_first(b_src, "surplus_rate", "bucketSurplusRate", default=0.0), "surplus_rate"),
            safe_variable_rates=_rate_table(
                _first(b_src, "safe_variable_rates", "safeVariableRates"), "safe_variable_rates"),
            surplus_variable_rates=_rate_table(
                _first(b_src, "surplus_variable_rates", "surplusVariableRates"), "surplus_variable_rates"),
        )

        dyn_raw = raw.get("dynamic") or {}
        if not isinstance(dyn_raw, dict):
            raise ConfigError("dynamic must be an object")
        dynamic = DynamicPolicy(**{k: _number(v, f"dynamic.{k}") for k, v in dyn_raw.items()
                                   if k in DynamicPolicy.__dataclass_fields__})

        compounding = raw.get("compounding", COMPOUNDING_NOMINAL)
        if compounding not in COMPOUNDING_MODES:
            raise ConfigError(f"compounding must be one of {COMPOUNDING_MODES}, got {compounding!r}")

        return cls(
            withdrawal_strategy=strategy,
            withdrawal_percentage=_number(
                _first(raw, "withdrawal_percentage", "withdrawalPercentage", default=4.0),
                "withdrawal_percentage"),
            life_events=events,
            variable_rates_enabled=_flag(_first(raw, "variable_rates_enabled", "variableRatesEnabled",
                                                default=False)),
            variable_rates=_rate_table(_first(raw, "variable_rates", "variableRates"), "variable_rates"),
            buckets=buckets,
            dynamic=dynamic,
            compounding=compounding,
            **values,
        )


# -----------------------------------------------------------------------------
# Outputs
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class HistoryPoint:
    month: int
    age: float
    balance: float
    phase: str
    contribution: float = 0.0
    withdrawal: float = 0.0
    accumulated_withdrawals: float = 0.0
    safe_bucket: Optional[float] = None
    surplus_bucket: Optional[float] = None
    withdrawal_strategy: Optional[str] = None
    date: Optional[str] = None


@dataclass(frozen=True)
class SimulationRange:
    p25_balance: float
    p75_balance: float
    min_balance: float
    max_balance: float
    iterations: int
    success_rate: float


_SUMMARY_FIELDS = (
    "balance_at_retirement", "principal_at_retirement", "balance_at_end", "ran_out_at_age",
    "required_capital_at_retirement", "required_capital_for_perpetuity", "surplus",
    "pv_of_deficit", "pv_of_capital_preservation",
    "initial_gross_withdrawal", "initial_net_withdrawal",
    "average_gross_withdrawal", "average_net_withdrawal",
    "accumulated_withdrawals", "total_net_withdrawal",
    "safe_bucket_at_retirement", "surplus_bucket_at_retirement",
)


@dataclass
class Result:
    balance_at_retirement: float
    principal_at_retirement: float
    balance_at_end: float
    ran_out_at_age: Optional[float]
    required_capital_at_retirement: float
    required_capital_for_perpetuity: float
    surplus: float
    pv_of_deficit: float
    pv_of_capital_preservation: float
    initial_gross_withdrawal: float
    initial_net_withdrawal: float
    average_gross_withdrawal: float
    average_net_withdrawal: float
    accumulated_withdrawals: float
    total_net_withdrawal: float
    history: list
    safe_bucket_at_retirement: Optional[float] = None
    surplus_bucket_at_retirement: Optional[float] = None
    simulation_range: Optional[SimulationRange] = None
    is_monte_carlo: bool = False
    source: str = "projection"

    def summary(self) -> dict[str, Any]:
        out = {k: getattr(self, k) for k in _SUMMARY_FIELDS}
        out["source"] = self.source
        out["is_monte_carlo"] = self.is_monte_carlo
        if self.simulation_range is not None:
            out.update({f"range_{k}": v for k, v in asdict(self.simulation_range).items()})
        return out

    def to_frame(self) -> pd.DataFrame:
        df = pd.DataFrame([asdict(p) for p in self.history])
        if not df.empty:
            df["age"] = df["age"].round(2)
        return df
