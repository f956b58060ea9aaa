# projection/validation.py

from __future__ import annotations

import math

from simdebug import *

from .errors import ValidationError
from .models import ONE_TIME_TYPES, WithdrawalStrategy

AGE_MIN = 0
AGE_MAX = 120

# Default English text, keyed the way translators look messages up.
DEFAULT_MESSAGES = {
    "validationCurrentAgeBetween": "Current age must be between 0 and 120",
    "validationRetirementStartAgeBetween": "Retirement start age must be between 0 and 120",
    "validationRetirementEndAgeBetween": "Retirement end age must be between 0 and 120",
    "validationRetirementStartGreater": "Retirement start age must be greater than current age",
    "validationRetirementEndGreater": "Retirement end age must be greater than retirement start age",
    "validationCurrentSavingsNonNegative": "Current savings cannot be negative",
    "validationMonthlyContributionNonNegative": "Monthly contribution cannot be negative",
    "validationMonthlyIncomePositive": "Monthly net income desired must be positive",
    "validationAnnualReturnBetween": "Annual return rate must be between -100% and 100%",
    "validationTaxRateBetween": "Tax rate must be between 0% and 100%",
    "validationWithdrawalPercentageBetween": "Withdrawal percentage must be greater than 0% and at most 100%",
    "validationBucketRatesBetween": "Bucket rates must be between -100% and 100%",
    "validationEventAmountNonNegative": "One-time event amounts cannot be negative",
    "validationEventEndBeforeStart": "Event end date cannot be before its start date",
}


def _bad(x) -> bool:
    return x is None or (isinstance(x, float) and math.isnan(x))


def _between(x, lo, hi) -> bool:
    return not _bad(x) and lo <= x <= hi


def validate_config(config, t=None) -> list[str]:
    """
    Return one message per violated rule (empty == ok). Every rule is
    checked; nothing short-circuits on the first failure.

    `t` is an optional translator callable key -> text. Keys it cannot
    resolve (it returns None, "" or the key itself) fall back to English.
    """
    errors: list[str] = []

    def text(key):
        if t is not None:
            translated = t(key)
            if translated and translated != key:
                return translated
        return DEFAULT_MESSAGES[key]

    cur = config.current_age
    start = config.retirement_start_age
    end = config.retirement_end_age

    # Ages
    if not _between(cur, AGE_MIN, AGE_MAX):
        errors.append(text("validationCurrentAgeBetween"))
    if not _between(start, AGE_MIN, AGE_MAX):
        errors.append(text("validationRetirementStartAgeBetween"))
    if not _between(end, AGE_MIN, AGE_MAX):
        errors.append(text("validationRetirementEndAgeBetween"))

    # Age ordering
    if not _bad(cur) and not _bad(start) and start <= cur:
        errors.append(text("validationRetirementStartGreater"))
    if not _bad(start) and not _bad(end) and end <= start:
        errors.append(text("validationRetirementEndGreater"))

    # Money
    if _bad(config.current_savings) or config.current_savings < 0:
        errors.append(text("validationCurrentSavingsNonNegative"))
    if _bad(config.monthly_contribution) or config.monthly_contribution < 0:
        errors.append(text("validationMonthlyContributionNonNegative"))
    if _bad(config.monthly_net_income_desired) or config.monthly_net_income_desired <= 0:
        errors.append(text("validationMonthlyIncomePositive"))

    # Rates
    if not _between(config.annual_return_rate, -100, 100):
        errors.append(text("validationAnnualReturnBetween"))
    if not _between(config.tax_rate, 0, 100):
        errors.append(text("validationTaxRateBetween"))

    if config.withdrawal_strategy == WithdrawalStrategy.PERCENTAGE:
        p = config.withdrawal_percentage
        if _bad(p) or not 0 < p <= 100:
            errors.append(text("validationWithdrawalPercentageBetween"))

    if config.buckets.enabled:
        if not (_between(config.buckets.safe_rate, -100, 100)
                and _between(config.buckets.surplus_rate, -100, 100)):
            errors.append(text("validationBucketRatesBetween"))

    # Events: report each rule once, however many events break it
    enabled = config.enabled_events()
    if any(ev.type in ONE_TIME_TYPES and ev.amount < 0 for ev in enabled):
        errors.append(text("validationEventAmountNonNegative"))
    if any(ev.end_date is not None and ev.end_date < ev.start_date for ev in enabled):
        errors.append(text("validationEventEndBeforeStart"))

    return errors


def check_config(config, t=None):
    """Raise a single ValidationError carrying every violated rule."""
    errors = validate_config(config, t)
    if errors:
        for e in errors:
            debug(WARNING, "validation: {}", e)
        raise ValidationError(errors)
