# projection/npv.py
#
# Present-value helpers. Every function falls back to plain (undiscounted)
# arithmetic when the rate is zero or negative instead of dividing by it.

from __future__ import annotations

from dataclasses import dataclass

from .rates import to_monthly


def effective_monthly_rate(annual_pct, tax_pct, compounding="nominal"):
    """Monthly growth left after the flat tax on gains."""
    return to_monthly(annual_pct, compounding) * (1.0 - tax_pct / 100.0)


def discount(amount, rate, periods):
    if rate <= 0:
        return amount
    return amount / (1.0 + rate) ** periods


def annuity_capital(payment, rate, periods):
    """Capital that pays `payment` for `periods` months and ends at exactly zero."""
    if rate <= 0:
        return payment * periods
    return payment * (1.0 - (1.0 + rate) ** -periods) / rate


def perpetuity_capital(payment, rate):
    """Capital whose after-tax interest alone pays `payment` every month."""
    if rate <= 0:
        return 0.0
    return payment / rate


def pv_of_deficit(surplus, monthly_rate, months):
    """Money needed today to close a shortfall at retirement (0 when there is none)."""
    if surplus >= 0:
        return 0.0
    return discount(abs(surplus), monthly_rate, months)


def pv_of_capital_preservation(perpetuity, monthly_contribution, monthly_rate, months):
    """
    Savings needed today so that savings + contributions grow into the
    perpetuity figure by retirement. Negative means contributions alone
    overshoot it.
    """
    if monthly_rate > 0:
        growth = (1.0 + monthly_rate) ** months
        fv_contributions = monthly_contribution * (growth - 1.0) / monthly_rate
        return (perpetuity - fv_contributions) / growth
    return perpetuity - monthly_contribution * months


@dataclass(frozen=True)
class PresentValueAccumulator:
    """Running PV (at retirement start) of the monthly need stream."""
    rate: float
    total: float = 0.0

    def add(self, need, period) -> "PresentValueAccumulator":
        return PresentValueAccumulator(self.rate, self.total + discount(need, self.rate, period))
