# projection/sensitivity.py
#
# What-if tables built from repeated projections.

from __future__ import annotations

import pandas as pd

from simdebug import *

from .errors import ValidationError
from .projector import project


def _row(config, result):
    return {
        "annual_return_rate": config.annual_return_rate,
        "monthly_net_income_desired": config.monthly_net_income_desired,
        "balance_at_retirement": result.balance_at_retirement,
        "balance_at_end": result.balance_at_end,
        "surplus": result.surplus,
        "ran_out_at_age": result.ran_out_at_age,
    }


def sensitivity_grid(config, valuation_date, rate_step=0.5, income_step=1000.0, steps=7):
    """
    Project every (annual return, desired income) pair on a steps x steps
    grid centred on `config`. Cells whose inputs fail validation (a desired
    income pushed to zero, say) are left out.
    """
    half = steps // 2
    rates = [config.annual_return_rate + (k - half) * rate_step for k in range(steps)]
    incomes = [config.monthly_net_income_desired + (half - k) * income_step for k in range(steps)]

    rows = []
    for income in incomes:
        for rate in rates:
            cell = config.replace(annual_return_rate=rate, monthly_net_income_desired=income)
            try:
                rows.append(_row(cell, project(cell, valuation_date)))
            except ValidationError as e:
                debug(VERBOSE, "grid cell rate={} income={} skipped: {}", rate, income, e)
    return pd.DataFrame(rows)


def sensitivity_sweep(config, valuation_date, field, values):
    """Project `config` once per value of a single numeric field."""
    if field not in config.__dataclass_fields__:
        raise ValueError(f"unknown config field '{field}'")

    rows = []
    for value in values:
        cell = config.replace(**{field: value})
        try:
            result = project(cell, valuation_date)
        except ValidationError as e:
            debug(WARNING, "{}={} skipped: {}", field, value, e)
            continue
        row = _row(cell, result)
        row[field] = value
        rows.append(row)

    df = pd.DataFrame(rows)
    if not df.empty:
        df = df[[field] + [c for c in df.columns if c != field]]
    return df
