# projection/projector.py

from __future__ import annotations

from datetime import date

from simdebug import *

from .accumulation import simulate_accumulation
from .decumulation import simulate_decumulation
from .models import Result
from .npv import (
    effective_monthly_rate,
    perpetuity_capital,
    pv_of_capital_preservation,
    pv_of_deficit,
)
from .rates import to_monthly
from .timeline import EventIndex
from .validation import check_config


def default_valuation_date() -> date:
    today = date.today()
    return date(today.year, today.month, 1)


def compute_statistics(config, balance_at_retirement, required_capital, accumulated_withdrawals,
                       total_net_withdrawal):
    """Summary figures derived from the two phases."""
    effective_rate = effective_monthly_rate(config.annual_return_rate, config.tax_rate, config.compounding)
    accumulation_rate = to_monthly(config.annual_return_rate, config.compounding)
    months_to_retirement = config.months_to_retirement
    months_in_retirement = config.months_in_retirement

    perpetuity = perpetuity_capital(config.monthly_net_income_desired, effective_rate)
    surplus = balance_at_retirement - required_capital

    return {
        "required_capital_for_perpetuity": perpetuity,
        "surplus": surplus,
        "pv_of_deficit": pv_of_deficit(surplus, accumulation_rate, months_to_retirement),
        "pv_of_capital_preservation": pv_of_capital_preservation(
            perpetuity, config.monthly_contribution, accumulation_rate, months_to_retirement),
        "average_gross_withdrawal": accumulated_withdrawals / months_in_retirement if months_in_retirement else 0.0,
        "average_net_withdrawal": total_net_withdrawal / months_in_retirement if months_in_retirement else 0.0,
    }


def run_projection(config, valuation_date: date) -> Result:
    """
    Run both phases without validating the config first.

    project() is the public entry point; this exists for callers that need to
    start directly at retirement (current_age == retirement_start_age).
    """
    index = EventIndex(config.life_events, valuation_date)
    debug(VERBOSE, "projection valued at {} with {} enabled events", valuation_date, len(index))

    acc = simulate_accumulation(config, valuation_date, index)
    dec = simulate_decumulation(
        config, valuation_date,
        balance_at_retirement=acc.balance_at_retirement,
        principal_at_retirement=acc.principal_at_retirement,
        index=index,
        months_to_retirement=acc.last_month,
    )

    stats = compute_statistics(
        config,
        balance_at_retirement=acc.balance_at_retirement,
        required_capital=dec.required_capital_pv,
        accumulated_withdrawals=dec.accumulated_withdrawals,
        total_net_withdrawal=dec.total_net_withdrawal,
    )

    result = Result(
        balance_at_retirement=acc.balance_at_retirement,
        principal_at_retirement=acc.principal_at_retirement,
        balance_at_end=dec.balance_at_end,
        ran_out_at_age=dec.ran_out_at_age,
        required_capital_at_retirement=dec.required_capital_pv,
        initial_gross_withdrawal=dec.initial_gross_withdrawal,
        initial_net_withdrawal=dec.initial_net_withdrawal,
        accumulated_withdrawals=dec.accumulated_withdrawals,
        total_net_withdrawal=dec.total_net_withdrawal,
        safe_bucket_at_retirement=dec.safe_bucket_at_retirement,
        surplus_bucket_at_retirement=dec.surplus_bucket_at_retirement,
        history=acc.history + dec.history,
        **stats,
    )

    debug(INFO, "end balance {:.2f}, required capital {:.2f}, surplus {:.2f}",
          result.balance_at_end, result.required_capital_at_retirement, result.surplus)
    dump_data(result.summary(), label="summary")
    return result


def project(config, valuation_date: date = None, translator=None) -> Result:
    """
    Validate `config` and project it from valuation_date to retirement end.

    Raises ValidationError (listing every violated rule) before any
    simulation work. Without an explicit valuation_date the first of the
    current month is used; that is the only clock read in the engine.
    """
    check_config(config, translator)
    if valuation_date is None:
        valuation_date = default_valuation_date()
    return run_projection(config, valuation_date)
