#!/usr/bin/env python3
"""
Regression validations for the projection engine.

Goals:
  - Re-check the engine's headline properties end to end, outside pytest.
  - Load every shipped profile/scenario pair and make sure it still projects.
  - Provide a repeatable, local, scriptable set of checks that can grow over time.

Run:
  python validations/validate_regressions.py
"""

from __future__ import annotations

import glob
import json
import os
import sys
import tempfile
from dataclasses import dataclass
from datetime import date
from typing import Callable, List


# Ensure project root is on sys.path when run as a script
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)


from projection import Config, ValidationError, project, run_projection  # noqa: E402
from projection.errors import ConfigError  # noqa: E402
from projection.loader import load_config  # noqa: E402
from projection.models import BucketSettings, PHASE_DECUMULATION  # noqa: E402
from projection.monte_carlo import run_monte_carlo  # noqa: E402
from projection.npv import annuity_capital, effective_monthly_rate, perpetuity_capital  # noqa: E402

DATA_DIR = os.path.join(PROJECT_ROOT, "data")
VALUATION_DATE = date(2025, 1, 1)


@dataclass
class TestResult:
    name: str
    ok: bool
    details: str = ""


def _fail(name: str, msg: str) -> TestResult:
    return TestResult(name=name, ok=False, details=msg)


def _pass(name: str, msg: str = "") -> TestResult:
    return TestResult(name=name, ok=True, details=msg)


def _close(a: float, b: float, rel: float = 1e-6, abs_tol: float = 1e-6) -> bool:
    return abs(a - b) <= max(abs_tol, rel * max(abs(a), abs(b)))


def _example(**kw) -> Config:
    values = dict(
        current_age=30, retirement_start_age=50, retirement_end_age=70,
        current_savings=100000.0, monthly_contribution=1000.0,
        monthly_net_income_desired=4000.0, annual_return_rate=5.0, tax_rate=25.0,
    )
    values.update(kw)
    return Config(**values)


def test_data_dir_projects() -> TestResult:
    name = "every data/scenarios/*.json projects on top of the example profile"
    profile = os.path.join(DATA_DIR, "profiles", "example_user.json")
    scenarios = sorted(glob.glob(os.path.join(DATA_DIR, "scenarios", "*.json")))
    if not scenarios:
        return _fail(name, "No scenario files found.")
    errs = []
    for sc in scenarios:
        try:
            loaded = load_config(profile, sc)
            result = project(loaded.config, loaded.valuation_date)
            if result.balance_at_end < 0:
                errs.append(f"{os.path.basename(sc)}: negative end balance {result.balance_at_end}")
        except (ConfigError, ValidationError) as e:
            errs.append(f"{os.path.basename(sc)}: {e}")
    if errs:
        preview = "\n".join(errs[:15])
        return _fail(name, f"Expected 0 errors, got {len(errs)}. First errors:\n{preview}")
    return _pass(name, f"ok={len(scenarios)}")


def test_scenario_wrong_schema_type() -> TestResult:
    name = "loader fails when a scenario's schema_type != 'scenario'"
    profile = os.path.join(DATA_DIR, "profiles", "example_user.json")
    with tempfile.NamedTemporaryFile("w", suffix=".json", delete=False) as tf:
        path = tf.name
        json.dump({"schema_type": "profile", "description": "bad scenario", "life_events": []}, tf, indent=2)
    try:
        load_config(profile, path)
        return _fail(name, "Expected ConfigError but loading succeeded.")
    except ConfigError as e:
        if "schema_type" not in str(e):
            return _fail(name, f"Expected schema_type error. Got:\n{e}")
        return _pass(name, "Got expected schema_type error.")
    finally:
        try:
            os.unlink(path)
        except OSError:
            pass


def test_example_scenario() -> TestResult:
    name = "example 30/50/70 plan: grows, perpetuity > annuity, both phases present"
    r = project(_example(), VALUATION_DATE)
    if not r.balance_at_retirement > 100000:
        return _fail(name, f"balance at retirement {r.balance_at_retirement:.2f}")
    if not r.required_capital_for_perpetuity > r.required_capital_at_retirement:
        return _fail(name, f"perpetuity {r.required_capital_for_perpetuity:.2f} <= "
                           f"annuity {r.required_capital_at_retirement:.2f}")
    phases = {p.phase for p in r.history}
    if len(phases) != 2:
        return _fail(name, f"phases in history: {phases}")
    return _pass(name, f"retirement={r.balance_at_retirement:,.2f} end={r.balance_at_end:,.2f}")


def test_annuity_round_trip() -> TestResult:
    name = "annuity capital is spent to ~0 without depletion"
    capital = annuity_capital(4000.0, effective_monthly_rate(5.0, 25.0), 240)
    cfg = _example(current_age=65, retirement_start_age=65, retirement_end_age=85,
                   current_savings=capital, monthly_contribution=0.0)
    r = run_projection(cfg, VALUATION_DATE)
    if r.balance_at_end > 1e-4 or r.ran_out_at_age is not None:
        return _fail(name, f"end={r.balance_at_end} ran_out={r.ran_out_at_age}")
    return _pass(name)


def test_perpetuity_round_trip() -> TestResult:
    name = "perpetuity capital survives unchanged"
    capital = perpetuity_capital(4000.0, effective_monthly_rate(5.0, 25.0))
    cfg = _example(current_age=65, retirement_start_age=65, retirement_end_age=85,
                   current_savings=capital, monthly_contribution=0.0)
    r = run_projection(cfg, VALUATION_DATE)
    if not _close(r.balance_at_end, capital):
        return _fail(name, f"end={r.balance_at_end:.4f} capital={capital:.4f}")
    return _pass(name)


def test_zero_rate_accumulation() -> TestResult:
    name = "zero-rate accumulation is exact"
    r = project(_example(annual_return_rate=0.0), VALUATION_DATE)
    if r.balance_at_retirement != 340000:
        return _fail(name, f"got {r.balance_at_retirement}")
    return _pass(name)


def test_variable_rates() -> TestResult:
    name = "+50%/-50% rate table gives 1.5x then 0.75x (effective compounding)"
    cfg = _example(retirement_start_age=32, retirement_end_age=40, monthly_contribution=0.0,
                   variable_rates_enabled=True, variable_rates={2025: 50.0, 2026: -50.0},
                   compounding="effective")
    by_month = {p.month: p.balance for p in project(cfg, VALUATION_DATE).history}
    if not (_close(by_month[12], 150000) and _close(by_month[24], 75000)):
        return _fail(name, f"month 12={by_month[12]:.2f} month 24={by_month[24]:.2f}")
    return _pass(name)


def test_bucket_conservation() -> TestResult:
    name = "safe + surplus == balance at every retirement point"
    cfg = _example(buckets=BucketSettings(enabled=True, safe_rate=3.0, surplus_rate=7.0))
    r = project(cfg, VALUATION_DATE)
    bad = [p.month for p in r.history
           if p.phase == PHASE_DECUMULATION and not _close(p.safe_bucket + p.surplus_bucket, p.balance)]
    if bad:
        return _fail(name, f"mismatch at months {bad[:10]}")
    return _pass(name)


def test_monte_carlo_ordering() -> TestResult:
    name = "Monte Carlo min <= p25 <= median <= p75 <= max"
    s = run_monte_carlo(_example(), 900000.0, iterations=200, seed=1)
    seq = [s.min_balance, s.p25.balance_at_end, s.median.balance_at_end, s.p75.balance_at_end, s.max_balance]
    if seq != sorted(seq):
        return _fail(name, f"{seq}")
    return _pass(name, f"success={s.success_rate:.1%}")


def run_all(tests: List[Callable[[], TestResult]]) -> int:
    results: List[TestResult] = []
    for t in tests:
        try:
            results.append(t())
        except Exception as e:
            results.append(_fail(t.__name__, f"Unhandled exception: {e}"))

    # Pretty print
    failed = [r for r in results if not r.ok]
    for r in results:
        status = "PASS" if r.ok else "FAIL"
        print(f"{status}: {r.name}")
        if r.details:
            print(f"  {r.details}".replace("\n", "\n  "))

    print(f"\nSummary: {len(results) - len(failed)} passed, {len(failed)} failed, {len(results)} total")
    return 0 if not failed else 1


def main() -> int:
    tests = [
        test_data_dir_projects,
        test_scenario_wrong_schema_type,
        test_example_scenario,
        test_annuity_round_trip,
        test_perpetuity_round_trip,
        test_zero_rate_accumulation,
        test_variable_rates,
        test_bucket_conservation,
        test_monte_carlo_ordering,
    ]
    return run_all(tests)


if __name__ == "__main__":
    raise SystemExit(main())
