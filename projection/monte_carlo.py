# projection/monte_carlo.py
#
# Sequence-of-returns risk: re-run a simplified retirement drawdown many
# times, each with its own year-by-year random returns, and report where
# the ending balances fall.

from __future__ import annotations

import math
import time
from concurrent.futures import ProcessPoolExecutor, wait
from dataclasses import dataclass, replace
from datetime import date
from enum import Enum
from typing import Optional

import numpy as np

from simdebug import *

from .decumulation import DEPLETION_TOLERANCE
from .errors import SimulationTimeout
from .models import SimulationRange, WithdrawalStrategy
from .projector import default_valuation_date, run_projection
from .rates import geometric_monthly
from .validation import check_config
from .withdrawal import adjust_dynamic, initial_state, net_withdrawal

DEFAULT_ITERATIONS = 500
DEFAULT_VOLATILITY = 5.0          # annual standard deviation, percent
RETURN_BAND = (-30.0, 50.0)       # realistic annual return band, percent
CHUNKS_PER_WORKER = 16

CONSERVATIVE_SHIFT = -2.0
OPTIMISTIC_SHIFT = 1.5


class SimulationKind(str, Enum):
    STANDARD = "standard"
    MONTE_CARLO = "monte_carlo"
    CONSERVATIVE = "conservative"
    OPTIMISTIC = "optimistic"


@dataclass(frozen=True)
class PathOutcome:
    balance_at_end: float
    ran_out_at_age: Optional[float]


@dataclass(frozen=True)
class MonteCarloSummary:
    outcomes: tuple          # PathOutcome, sorted by ending balance
    p25: PathOutcome
    median: PathOutcome
    p75: PathOutcome

    @property
    def iterations(self):
        return len(self.outcomes)

    @property
    def min_balance(self):
        return self.outcomes[0].balance_at_end

    @property
    def max_balance(self):
        return self.outcomes[-1].balance_at_end

    @property
    def success_rate(self):
        ok = sum(1 for o in self.outcomes if o.ran_out_at_age is None)
        return ok / len(self.outcomes)

    def to_range(self) -> SimulationRange:
        return SimulationRange(
            p25_balance=self.p25.balance_at_end,
            p75_balance=self.p75.balance_at_end,
            min_balance=self.min_balance,
            max_balance=self.max_balance,
            iterations=self.iterations,
            success_rate=self.success_rate,
        )


# -----------------------------------------------------------------------------
# Sampling
# -----------------------------------------------------------------------------

def box_muller(rng, size):
    """Standard normal draws from pairs of uniforms (Box-Muller, cosine branch)."""
    u = 1.0 - rng.random(size)      # (0, 1], keeps log() finite
    v = rng.random(size)
    return np.sqrt(-2.0 * np.log(u)) * np.cos(2.0 * np.pi * v)


def sample_annual_returns(rng, years, mean_pct, volatility_pct=DEFAULT_VOLATILITY, band=RETURN_BAND):
    """One annual return (percent) per year, normal around mean_pct, clipped to band."""
    draws = mean_pct + box_muller(rng, years) * volatility_pct
    return np.clip(draws, band[0], band[1])


# -----------------------------------------------------------------------------
# One path
# -----------------------------------------------------------------------------

def simulate_path(config, balance_at_retirement, annual_returns) -> PathOutcome:
    """
    Drawdown with year-specific returns: no events, no buckets. The
    strategy runs monthly; the dynamic strategy reviews itself at every
    year boundary using the previous year's sampled return.
    """
    tax = config.tax_rate_decimal
    months = config.months_in_retirement
    ws = initial_state(config, balance_at_retirement)
    dynamic = config.withdrawal_strategy == WithdrawalStrategy.DYNAMIC

    balance = float(balance_at_retirement)
    ran_out = None
    rate = 0.0

    for i in range(1, months + 1):
        year = (i - 1) // 12
        if (i - 1) % 12 == 0:
            if dynamic and year > 0:
                ws = adjust_dynamic(ws, annual_returns[year - 1] / 100.0, config.dynamic)
            rate = geometric_monthly(annual_returns[year] / 100.0)

        interest = balance * rate
        tax_due = max(0.0, interest) * tax
        net = max(0.0, net_withdrawal(ws, balance, interest, tax_due))
        gross = net + tax_due

        available = balance + interest
        if available + DEPLETION_TOLERANCE < gross:
            gross = max(0.0, available)
            if ran_out is None:
                ran_out = config.retirement_start_age + i / 12.0

        balance = max(0.0, available - gross)

    return PathOutcome(balance_at_end=balance, ran_out_at_age=ran_out)


def _run_batch(config, balance_at_retirement, seeds, years, volatility):
    """Worker entry point (top level so it pickles)."""
    out = []
    for seed in seeds:
        rng = np.random.default_rng(seed)
        returns = sample_annual_returns(rng, years, config.annual_return_rate, volatility)
        out.append(simulate_path(config, balance_at_retirement, returns))
    return out


def _chunks(items, n):
    size = math.ceil(len(items) / n)
    return [items[k:k + size] for k in range(0, len(items), size)]


def run_monte_carlo(config,
                    balance_at_retirement,
                    iterations=DEFAULT_ITERATIONS,
                    seed=None,
                    volatility=DEFAULT_VOLATILITY,
                    workers=1,
                    deadline=None) -> MonteCarloSummary:
    """
    Run `iterations` independent drawdown paths and summarise them.

    Every iteration gets its own child of SeedSequence(seed), so a given
    seed gives the same multiset of outcomes whatever `workers` is;
    seed=None draws fresh OS entropy through the same path. With
    workers > 1 the batch fans out over a process pool. `deadline` (seconds)
    bounds the whole batch and raises SimulationTimeout when exceeded.
    """
    if iterations < 1:
        raise ValueError("iterations must be >= 1")

    years = max(1, math.ceil(config.months_in_retirement / 12))
    seeds = np.random.SeedSequence(seed).spawn(iterations)
    started = time.monotonic()

    debug(INFO, "Monte Carlo: {} iterations x {} years, mean {}% vol {}%, workers={}",
          iterations, years, config.annual_return_rate, volatility, workers)

    outcomes = []
    if workers is None or workers <= 1:
        for chunk in _chunks(seeds, max(1, iterations // 10)):
            if deadline is not None and time.monotonic() - started > deadline:
                raise SimulationTimeout(
                    f"Monte Carlo stopped after {len(outcomes)} of {iterations} iterations "
                    f"(deadline {deadline}s)")
            outcomes.extend(_run_batch(config, balance_at_retirement, chunk, years, volatility))
    else:
        # Small chunks: on a missed deadline the pending ones are cancelled and
        # only the few already running finish in the background.
        ex = ProcessPoolExecutor(max_workers=workers)
        timed_out = False
        try:
            futs = [ex.submit(_run_batch, config, balance_at_retirement, chunk, years, volatility)
                    for chunk in _chunks(seeds, workers * CHUNKS_PER_WORKER)]
            done, not_done = wait(futs, timeout=deadline)
            if not_done:
                timed_out = True
                raise SimulationTimeout(
                    f"Monte Carlo batch exceeded its {deadline}s deadline "
                    f"({len(not_done)} of {len(futs)} chunks unfinished)")
            for fut in futs:
                outcomes.extend(fut.result())
        finally:
            ex.shutdown(wait=not timed_out, cancel_futures=timed_out)

    return summarize(outcomes)


def summarize(outcomes) -> MonteCarloSummary:
    ordered = tuple(sorted(outcomes, key=lambda o: o.balance_at_end))
    n = len(ordered)
    summary = MonteCarloSummary(
        outcomes=ordered,
        p25=ordered[int(n * 0.25)],
        median=ordered[int(n * 0.5)],
        p75=ordered[int(n * 0.75)],
    )
    debug(INFO, "Monte Carlo: min={:.2f} p25={:.2f} median={:.2f} p75={:.2f} max={:.2f} success={:.1%}",
          summary.min_balance, summary.p25.balance_at_end, summary.median.balance_at_end,
          summary.p75.balance_at_end, summary.max_balance, summary.success_rate)
    return summary


# -----------------------------------------------------------------------------
# Entry point
# -----------------------------------------------------------------------------

def project_simulation(config,
                       kind=SimulationKind.MONTE_CARLO,
                       valuation_date: date = None,
                       translator=None,
                       iterations=DEFAULT_ITERATIONS,
                       seed=None,
                       volatility=DEFAULT_VOLATILITY,
                       workers=1,
                       deadline=None):
    """
    Project `config` under a simulation kind.

    conservative / optimistic shift the annual return and re-project;
    monte_carlo keeps the deterministic result but replaces its ending
    figures with the median random path and attaches the percentile range.
    Unknown kinds fall back to the plain projection.
    """
    check_config(config, translator)
    if valuation_date is None:
        valuation_date = default_valuation_date()

    try:
        kind = SimulationKind(kind)
    except ValueError:
        debug(WARNING, "unknown simulation kind {!r}, running a standard projection", kind)
        kind = SimulationKind.STANDARD

    if kind == SimulationKind.CONSERVATIVE:
        config = config.replace(annual_return_rate=max(0.0, config.annual_return_rate + CONSERVATIVE_SHIFT))
    elif kind == SimulationKind.OPTIMISTIC:
        config = config.replace(annual_return_rate=config.annual_return_rate + OPTIMISTIC_SHIFT)

    result = run_projection(config, valuation_date)
    result.source = "simulation"
    if kind != SimulationKind.MONTE_CARLO:
        return result

    summary = run_monte_carlo(config, result.balance_at_retirement,
                              iterations=iterations, seed=seed, volatility=volatility,
                              workers=workers, deadline=deadline)

    result = replace(
        result,
        balance_at_end=summary.median.balance_at_end,
        ran_out_at_age=summary.median.ran_out_at_age,
        pv_of_deficit=max(0.0, result.pv_of_deficit),
        simulation_range=summary.to_range(),
        is_monte_carlo=True,
    )
    return result
