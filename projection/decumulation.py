# projection/decumulation.py
#
# Retirement drawdown, written as a fold: decumulation_step() takes the
# previous month's state and returns the next one plus an optional history
# point. simulate_decumulation() runs the fold over every retirement month.
#
# Running out of money is recorded (ran_out_at_age) but never stops the fold:
# later income events can refill the balance, and the need-stream present
# value has to see the whole horizon.

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from typing import Optional

from simdebug import *

from .buckets import EMPTY, Buckets, bucket_monthly_rates, open_buckets
from .models import EventType, HistoryPoint, PHASE_DECUMULATION, WithdrawalStrategy
from .npv import PresentValueAccumulator, effective_monthly_rate
from .rates import monthly_rate, realized_annual_return, to_monthly
from .timeline import EventIndex, month_to_date
from .withdrawal import WithdrawalState, adjust_dynamic, initial_state, net_withdrawal

# Shortfalls smaller than this are float noise, not depletion.
DEPLETION_TOLERANCE = 1e-6


@dataclass(frozen=True)
class DecumulationContext:
    config: object
    index: EventIndex
    valuation_date: date
    months_to_retirement: int
    months_in_retirement: int


@dataclass(frozen=True)
class DecumulationState:
    balance: float
    withdrawal: WithdrawalState
    pv: PresentValueAccumulator
    buckets: Optional[Buckets] = None
    accumulated_withdrawals: float = 0.0
    total_net_withdrawal: float = 0.0
    initial_gross_withdrawal: float = 0.0
    initial_net_withdrawal: float = 0.0
    ran_out_at_age: Optional[float] = None


@dataclass
class DecumulationResult:
    balance_at_end: float
    ran_out_at_age: Optional[float]
    initial_gross_withdrawal: float
    initial_net_withdrawal: float
    accumulated_withdrawals: float
    total_net_withdrawal: float
    required_capital_pv: float
    months_in_retirement: int
    safe_bucket_at_retirement: Optional[float] = None
    surplus_bucket_at_retirement: Optional[float] = None
    history: list = field(default_factory=list)


def _apply_one_time_events(ctx, state, month):
    balance = state.balance
    buckets = state.buckets
    for ev in ctx.index.one_time_at(month):
        if ev.type == EventType.ONE_TIME_INCOME:
            balance += ev.amount
            if buckets is not None:
                buckets = buckets.credit_surplus(ev.amount)
        else:
            balance -= ev.amount
            if buckets is not None:
                buckets = buckets.debit(ev.amount)
        debug(VVERBOSE, "month {}: one-time '{}' ({})", month, ev.name, ev.type.value)
    if buckets is not None:
        balance = buckets.total
    return balance, buckets


def _dynamic_review(ctx, state, i, month):
    """At each retirement-year boundary, re-set the dynamic withdrawal from last year's return."""
    config = ctx.config
    if config.withdrawal_strategy != WithdrawalStrategy.DYNAMIC or i <= 1 or i % 12 != 1:
        return state.withdrawal
    prev_rate = monthly_rate(month - 2, config, ctx.valuation_date.year)
    realized = realized_annual_return(prev_rate)
    ws = adjust_dynamic(state.withdrawal, realized, config.dynamic)
    if ws.dynamic_base != state.withdrawal.dynamic_base:
        debug(VERBOSE, "dynamic withdrawal {:.2f} -> {:.2f} (last year {:.2%})",
              state.withdrawal.dynamic_base, ws.dynamic_base, realized)
    return ws


def _history_point(ctx, state, i, month, gross):
    config = ctx.config
    return HistoryPoint(
        month=month,
        age=config.retirement_start_age + i / 12.0,
        balance=max(0.0, state.balance),
        contribution=0.0,
        withdrawal=gross * 12,
        accumulated_withdrawals=state.accumulated_withdrawals,
        phase=PHASE_DECUMULATION,
        safe_bucket=max(0.0, state.buckets.safe) if state.buckets is not None else None,
        surplus_bucket=max(0.0, state.buckets.surplus) if state.buckets is not None else None,
        withdrawal_strategy=config.withdrawal_strategy.value,
        date=month_to_date(month, ctx.valuation_date).strftime("%Y-%m"),
    )


def decumulation_step(ctx: DecumulationContext, state: DecumulationState, i: int):
    """Advance one retirement month (i is 1-based). Returns (state, HistoryPoint or None)."""
    config = ctx.config
    tax = config.tax_rate_decimal
    month = ctx.months_to_retirement + i
    started_positive = state.balance > 0

    # 1) one-time events land first
    balance, buckets = _apply_one_time_events(ctx, state, month)

    # 2) recurring events, recomputed from scratch every month
    income_adj, expense_adj = ctx.index.recurring_adjustments(month)

    # 3) growth and the tax on it
    if buckets is not None:
        safe_rate, surplus_rate = bucket_monthly_rates(
            config, ctx.valuation_date.year, ctx.months_to_retirement, i)
        buckets, interest = buckets.accrue(safe_rate, surplus_rate)
    else:
        rate = monthly_rate(month - 1, config, ctx.valuation_date.year)
        interest = max(0.0, balance) * rate
    tax_due = max(0.0, interest) * tax

    # 4) what the strategy wants, adjusted by recurring events
    ws = _dynamic_review(ctx, state, i, month)
    net = net_withdrawal(ws, balance, interest, tax_due)
    net += expense_adj - income_adj

    if net < 0:
        # income events cover more than the need: bank the excess
        balance += -net
        if buckets is not None:
            buckets = buckets.credit_surplus(-net)
        net = 0.0

    gross = net + tax_due
    initial_gross = state.initial_gross_withdrawal
    initial_net = state.initial_net_withdrawal
    if i == 1:
        initial_gross, initial_net = gross, net

    # 5) clamp to what is there; remember the first month we came up short
    available = buckets.total if buckets is not None else balance + interest
    ran_out = state.ran_out_at_age
    if available + DEPLETION_TOLERANCE < gross:
        gross = max(0.0, available)
        if ran_out is None:
            ran_out = config.retirement_start_age + i / 12.0
            debug(INFO, "ran out of money at age {:.2f} (month {})", ran_out, month)

    if buckets is not None:
        buckets = buckets.debit(gross)
        balance = buckets.total
    else:
        balance = balance + interest - gross

    # 6) need stream for the required-capital figure
    need = config.monthly_net_income_desired + expense_adj - income_adj - ctx.index.one_time_net(month)
    pv = state.pv.add(need, i)

    state = DecumulationState(
        balance=balance,
        withdrawal=ws,
        pv=pv,
        buckets=buckets,
        accumulated_withdrawals=state.accumulated_withdrawals + gross,
        total_net_withdrawal=state.total_net_withdrawal + net,
        initial_gross_withdrawal=initial_gross,
        initial_net_withdrawal=initial_net,
        ran_out_at_age=ran_out,
    )

    hit_zero = balance <= 0 and started_positive
    point = _history_point(ctx, state, i, month, gross) if (i % 12 == 0 or hit_zero) else None

    if balance <= 0:
        state = replace(state, balance=0.0,
                        buckets=EMPTY if buckets is not None else None)
    return state, point


def discount_rate_for(config):
    """Monthly rate the need stream is discounted at (after tax)."""
    if config.buckets.enabled:
        return to_monthly(config.buckets.safe_rate, config.compounding) * (1.0 - config.tax_rate_decimal)
    return effective_monthly_rate(config.annual_return_rate, config.tax_rate, config.compounding)


def simulate_decumulation(config, valuation_date, balance_at_retirement, principal_at_retirement,
                          index=None, months_to_retirement=None):
    if index is None:
        index = EventIndex(config.life_events, valuation_date)
    if months_to_retirement is None:
        months_to_retirement = config.months_to_retirement

    ctx = DecumulationContext(
        config=config,
        index=index,
        valuation_date=valuation_date,
        months_to_retirement=months_to_retirement,
        months_in_retirement=config.months_in_retirement,
    )

    buckets = None
    if config.buckets.enabled:
        buckets = open_buckets(config, index, balance_at_retirement, principal_at_retirement)

    state = DecumulationState(
        balance=balance_at_retirement,
        withdrawal=initial_state(config, balance_at_retirement),
        pv=PresentValueAccumulator(discount_rate_for(config)),
        buckets=buckets,
    )

    debug(VERBOSE, "decumulating {} months with strategy '{}'",
          ctx.months_in_retirement, config.withdrawal_strategy.value)

    history = []
    for i in range(1, ctx.months_in_retirement + 1):
        state, point = decumulation_step(ctx, state, i)
        if point is not None:
            history.append(point)

    return DecumulationResult(
        balance_at_end=max(0.0, state.balance),
        ran_out_at_age=state.ran_out_at_age,
        initial_gross_withdrawal=state.initial_gross_withdrawal,
        initial_net_withdrawal=state.initial_net_withdrawal,
        accumulated_withdrawals=state.accumulated_withdrawals,
        total_net_withdrawal=state.total_net_withdrawal,
        required_capital_pv=state.pv.total,
        months_in_retirement=ctx.months_in_retirement,
        safe_bucket_at_retirement=buckets.safe if buckets is not None else None,
        surplus_bucket_at_retirement=buckets.surplus if buckets is not None else None,
        history=history,
    )
