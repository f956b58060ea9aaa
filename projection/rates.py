# projection/rates.py

from __future__ import annotations

from .models import COMPOUNDING_EFFECTIVE


def annual_rate_for_month(month, valuation_year, base_rate, table=None, enabled=False):
    """Annual rate (percent) in force for month offset `month`.

    The year is valuation_year + month // 12; a table entry only counts when
    the table is switched on.
    """
    year = valuation_year + month // 12
    if enabled and table and year in table:
        return table[year]
    return base_rate


def geometric_monthly(annual):
    """Monthly rate that compounds to `annual` (decimal) over twelve months."""
    if annual <= -1.0:
        return -1.0
    return (1.0 + annual) ** (1.0 / 12.0) - 1.0


def to_monthly(annual_pct, compounding="nominal"):
    if compounding == COMPOUNDING_EFFECTIVE:
        return geometric_monthly(annual_pct / 100.0)
    return annual_pct / 100.0 / 12.0


def monthly_rate(month, config, valuation_year):
    """Monthly decimal return for the growth period starting at offset `month`."""
    annual = annual_rate_for_month(month, valuation_year, config.annual_return_rate,
                                   config.variable_rates, config.variable_rates_enabled)
    return to_monthly(annual, config.compounding)


def realized_annual_return(monthly):
    """Annual return implied by compounding one monthly rate for a year."""
    return (1.0 + monthly) ** 12 - 1.0
