# projection/accumulation.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date

from simdebug import *

from .models import EventType, HistoryPoint, PHASE_ACCUMULATION
from .rates import monthly_rate
from .timeline import EventIndex, month_offset, month_to_date, monthly_delta


@dataclass
class AccumulationResult:
    balance_at_retirement: float
    principal_at_retirement: float
    last_month: int
    history: list = field(default_factory=list)


def _contribution_effect(ev) -> float:
    """How a recurring event moves the monthly contribution while it is active."""
    amount = monthly_delta(ev)
    return amount if ev.type == EventType.INCOME_CHANGE else -amount


def _point(month, age, balance, contribution, valuation_date):
    return HistoryPoint(
        month=month,
        age=age,
        balance=balance,
        contribution=contribution,
        withdrawal=0.0,
        accumulated_withdrawals=0.0,
        phase=PHASE_ACCUMULATION,
        date=month_to_date(month, valuation_date).strftime("%Y-%m"),
    )


def simulate_accumulation(config, valuation_date: date, index: EventIndex = None) -> AccumulationResult:
    """
    Grow savings from today to the retirement start.

    One-time events land on the balance (and the cost basis) in their month;
    recurring income/expense changes permanently move the monthly
    contribution from the month they start until the month they end.
    """
    if index is None:
        index = EventIndex(config.life_events, valuation_date)

    months = config.months_to_retirement
    valuation_year = valuation_date.year

    balance = float(config.current_savings)
    principal = float(config.current_savings)   # cost basis, drives the tax gross-up later
    contribution = float(config.monthly_contribution)

    history = [_point(0, config.current_age, balance, 0.0, valuation_date)]

    # Recurring events already running today. Ones that also ended by today
    # (end offset collapsed to 0) never reach the loop's end check, so skip them.
    for ev in index.active_recurring(0):
        if ev.end_date is not None and month_offset(ev.end_date, valuation_date) == 0:
            continue
        contribution += _contribution_effect(ev)

    debug(VERBOSE, "accumulating {} months from balance={:.2f} contribution={:.2f}",
          months, balance, contribution)

    for m in range(1, months + 1):
        for ev in index.one_time_at(m):
            if ev.type == EventType.ONE_TIME_INCOME:
                balance += ev.amount
                principal += ev.amount
            else:
                balance -= ev.amount
                principal = max(0.0, principal - ev.amount)
            debug(VVERBOSE, "month {}: one-time '{}' {:+.2f}", m, ev.name,
                  ev.amount if ev.type == EventType.ONE_TIME_INCOME else -ev.amount)

        for ev in index.starting_at(m):
            contribution += _contribution_effect(ev)
        for ev in index.ending_at(m):
            contribution -= _contribution_effect(ev)

        rate = monthly_rate(m - 1, config, valuation_year)
        balance += balance * rate

        balance += contribution
        principal += contribution

        if m % 12 == 0:
            history.append(_point(m, config.current_age + m / 12.0, balance,
                                  contribution * 12, valuation_date))

    debug(INFO, "balance at retirement {:.2f} (principal {:.2f})", balance, principal)

    return AccumulationResult(
        balance_at_retirement=balance,
        principal_at_retirement=principal,
        last_month=months,
        history=history,
    )
