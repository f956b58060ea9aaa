# projection/buckets.py
#
# Two-bucket custody for the retirement balance: a "safe" bucket sized to
# cover the known liability stream at a conservative rate, and a "surplus"
# bucket holding everything else at its own rate.

from __future__ import annotations

from dataclasses import dataclass

from simdebug import *

from .rates import annual_rate_for_month, to_monthly
from .npv import discount


@dataclass(frozen=True)
class Buckets:
    safe: float
    surplus: float

    @property
    def total(self):
        return self.safe + self.surplus

    def accrue(self, safe_rate, surplus_rate):
        """Grow each bucket at its own monthly rate. Returns (buckets, interest)."""
        safe_interest = self.safe * safe_rate
        surplus_interest = self.surplus * surplus_rate
        grown = Buckets(self.safe + safe_interest, self.surplus + surplus_interest)
        return grown, safe_interest + surplus_interest

    def debit(self, amount):
        """Take `amount` from the safe bucket first, then from surplus; never below zero."""
        if amount <= 0:
            return self
        if self.safe >= amount:
            return Buckets(self.safe - amount, self.surplus)
        remaining = amount - self.safe
        return Buckets(0.0, max(0.0, self.surplus - remaining))

    def credit_surplus(self, amount):
        return Buckets(self.safe, self.surplus + amount)


EMPTY = Buckets(0.0, 0.0)


def gross_up_factor(balance, principal, tax_decimal):
    """1 / (1 - effective tax), the effective tax being the gains share of the balance x tax."""
    profit_ratio = (balance - principal) / balance if balance > 0 else 0.0
    effective_tax = max(0.0, profit_ratio * tax_decimal)
    if effective_tax >= 1.0:
        return float("inf")
    return 1.0 / (1.0 - effective_tax)


def safe_capital_requirement(config, index, months_to_retirement, months_in_retirement, factor):
    """
    Dry-run the retirement need stream (desired income +/- recurring events,
    grossed up for tax) and discount it at the after-tax safe rate: the
    capital the safe bucket needs to fund every month on its own.
    """
    safe_monthly = to_monthly(config.buckets.safe_rate, config.compounding) * (1.0 - config.tax_rate_decimal)

    required = 0.0
    for j in range(1, months_in_retirement + 1):
        income, expense = index.recurring_adjustments(months_to_retirement + j)
        net_need = max(0.0, config.monthly_net_income_desired + expense - income)
        if net_need > 0:
            required += discount(net_need * factor, safe_monthly, j)

    debug(VERBOSE, "safe bucket requirement {:.2f} (gross-up {:.4f}, safe rate {:.5f}/mo)",
          required, factor, safe_monthly)
    return required


def allocate(balance_at_retirement, requirement):
    if balance_at_retirement >= requirement:
        return Buckets(requirement, balance_at_retirement - requirement)
    return Buckets(balance_at_retirement, 0.0)


def bucket_monthly_rates(config, valuation_year, months_to_retirement, i):
    """Monthly (safe, surplus) rates for retirement month i (1-based).

    Per-bucket tables are keyed by the calendar year of that retirement
    month, read at the same offset as the main rate (month - 1), and only
    used while variable rates are switched on.
    """
    b = config.buckets
    offset = months_to_retirement + i - 1
    safe = annual_rate_for_month(offset, valuation_year, b.safe_rate,
                                 b.safe_variable_rates, config.variable_rates_enabled)
    surplus = annual_rate_for_month(offset, valuation_year, b.surplus_rate,
                                    b.surplus_variable_rates, config.variable_rates_enabled)
    return to_monthly(safe, config.compounding), to_monthly(surplus, config.compounding)


def open_buckets(config, index, balance_at_retirement, principal_at_retirement):
    """Split the balance at retirement into safe and surplus buckets."""
    factor = gross_up_factor(balance_at_retirement, principal_at_retirement, config.tax_rate_decimal)
    requirement = safe_capital_requirement(
        config, index, config.months_to_retirement, config.months_in_retirement, factor)
    buckets = allocate(balance_at_retirement, requirement)
    if buckets.surplus == 0.0 and balance_at_retirement < requirement:
        debug(WARNING, "balance at retirement {:.2f} does not cover the safe bucket requirement {:.2f}",
              balance_at_retirement, requirement)
    debug(INFO, "buckets opened: safe={:.2f} surplus={:.2f}", buckets.safe, buckets.surplus)
    return buckets
