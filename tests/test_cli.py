import os

import pandas as pd

import run_projections
from simdebug import WARNING, get_debug_level

DATA_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "data")
PROFILE = os.path.join(DATA_DIR, "profiles", "example_user.json")
SCENARIO = os.path.join(DATA_DIR, "scenarios", "house_and_pension.json")


def test_run_one_scenario(tmp_path, capsys):
    rc = run_projections.main(["-u", PROFILE, "-f", SCENARIO, "-o", str(tmp_path), "-d", "warn", "-p"])
    assert rc == 0

    out = capsys.readouterr().out
    assert "[OK]   house_and_pension.json" in out
    assert "Balance at retirement" in out

    history = pd.read_csv(tmp_path / "house_and_pension.csv")
    summary = pd.read_csv(tmp_path / "house_and_pension_summary.csv")
    assert set(history["phase"]) == {"accumulation", "decumulation"}
    assert history.iloc[0]["date"] == "2025-01"
    assert len(summary) == 1
    assert summary.iloc[0]["source"] == "projection"
    assert get_debug_level() == WARNING


def test_monte_carlo_kind_and_valuation_date(tmp_path):
    rc = run_projections.main(["-u", PROFILE, "-f", SCENARIO, "-o", str(tmp_path),
                               "-k", "monte_carlo", "-n", "30", "-s", "4",
                               "--valuation-date", "2026-01"])
    assert rc == 0
    history = pd.read_csv(tmp_path / "house_and_pension.csv")
    summary = pd.read_csv(tmp_path / "house_and_pension_summary.csv")
    assert history.iloc[0]["date"] == "2026-01"
    assert summary.iloc[0]["range_iterations"] == 30
    assert bool(summary.iloc[0]["is_monte_carlo"])


def test_events_dump_at_vverbose(tmp_path):
    rc = run_projections.main(["-u", PROFILE, "-f", SCENARIO, "-o", str(tmp_path), "-d", "vvrbs"])
    assert rc == 0
    events = pd.read_csv(tmp_path / "house_and_pension_events.csv")
    assert list(events["name"]) == ["Inheritance", "New roof", "State pension", "Part-time care"]
    assert list(events["source"].unique()) == ["scenario"]


def test_missing_scenario(tmp_path, capsys):
    rc = run_projections.main(["-u", PROFILE, "-f", "nope.json", "-o", str(tmp_path)])
    assert rc == 2
    assert "not found" in capsys.readouterr().out


def test_failure_is_reported(tmp_path, capsys):
    bad = tmp_path / "bad.json"
    bad.write_text('{"schema_type": "scenario", "inputs": {"tax_rate": 150}}')
    rc = run_projections.main(["-u", PROFILE, "-f", str(bad), "-o", str(tmp_path)])
    assert rc == 1
    assert "[FAIL] bad.json" in capsys.readouterr().out
