# projection/loader.py
#
# Profile + scenario JSON files -> Config.
#
#   Profile:  { "schema_type": "profile",  "name": ..., "inputs": {...} }
#   Scenario: { "schema_type": "scenario", "description": ..., "inputs": {...},
#               "life_events": [...] }
#
# The scenario overlays the profile: its "inputs" keys replace the profile's,
# and its life_events are appended after the profile's own.

from __future__ import annotations

import json
import os
from copy import deepcopy
from dataclasses import dataclass
from datetime import date
from json.decoder import JSONDecodeError
from typing import Optional

from simdebug import *

from .errors import ConfigError
from .models import Config, parse_valuation_date

SCHEMA_TYPE_FIELD = "schema_type"
SCHEMA_TYPE_PROFILE = "profile"
SCHEMA_TYPE_SCENARIO = "scenario"


@dataclass
class LoadedConfig:
    config: Config
    valuation_date: Optional[date]
    name: str
    description: str


def read_json(path):
    if not os.path.exists(path):
        raise ConfigError(f"{path}: file does not exist")
    try:
        with open(path, "r") as f:
            return json.load(f)
    except JSONDecodeError as e:
        line = ""
        with open(path, "r") as f:
            lines = f.readlines()
        if 0 < e.lineno <= len(lines):
            line = f"\n--> {lines[e.lineno - 1].rstrip()}"
        raise ConfigError(f"{path}: JSON syntax error on line {e.lineno}: {e.msg}{line}") from e


def _expect_schema(data, expected, path):
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: top level must be an object")
    st = data.get(SCHEMA_TYPE_FIELD)
    if st != expected:
        raise ConfigError(f"{path}: {SCHEMA_TYPE_FIELD} is {st!r}, expected '{expected}'")
    inputs = data.get("inputs", {})
    if not isinstance(inputs, dict):
        raise ConfigError(f"{path}: inputs must be an object")
    events = data.get("life_events", [])
    if not isinstance(events, list):
        raise ConfigError(f"{path}: life_events must be a list")


def merge_profile(profile: dict, scenario: Optional[dict] = None) -> dict:
    """Combine the raw profile and scenario dicts into one Config.from_dict() input."""
    merged = deepcopy(profile.get("inputs", {}))

    base_events = deepcopy(merged.pop("life_events", []) or []) + deepcopy(profile.get("life_events", []) or [])
    for ev in base_events:
        ev.setdefault("source", "profile")

    scen_events = []
    if scenario is not None:
        overrides = deepcopy(scenario.get("inputs", {}) or {})
        scen_events = deepcopy(overrides.pop("life_events", []) or []) + \
            deepcopy(scenario.get("life_events", []) or [])
        for ev in scen_events:
            ev.setdefault("source", "scenario")
        merged.update(overrides)

    merged["life_events"] = base_events + scen_events
    return merged


def load_config(profile_path, scenario_path=None) -> LoadedConfig:
    debug(INFO, "Loading profile {} + scenario {}", profile_path, scenario_path)

    profile = read_json(profile_path)
    _expect_schema(profile, SCHEMA_TYPE_PROFILE, profile_path)

    scenario = None
    if scenario_path:
        scenario = read_json(scenario_path)
        _expect_schema(scenario, SCHEMA_TYPE_SCENARIO, scenario_path)

    raw = merge_profile(profile, scenario)
    config = Config.from_dict(raw)

    vd = profile.get("valuation_date")
    if scenario is not None and scenario.get("valuation_date"):
        vd = scenario.get("valuation_date")
    valuation_date = parse_valuation_date(vd) if vd else None

    description = profile.get("description", "Retirement Projection")
    if scenario is not None:
        description = scenario.get("description", description)

    debug(INFO, "Loaded config: strategy={} events={} buckets={} variable_rates={}",
          config.withdrawal_strategy.value, len(config.life_events),
          config.buckets.enabled, config.variable_rates_enabled)
    dump_data(raw, label="merged inputs")

    return LoadedConfig(
        config=config,
        valuation_date=valuation_date,
        name=profile.get("name", "User"),
        description=description,
    )
