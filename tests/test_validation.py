import pytest

from projection.errors import ValidationError
from projection.models import BucketSettings, WithdrawalStrategy
from projection.validation import DEFAULT_MESSAGES, check_config, validate_config


def test_valid_config_has_no_errors(example_config):
    assert validate_config(example_config) == []


def test_every_rule_is_reported(example_config):
    bad = example_config.replace(current_age=130, current_savings=-1.0, monthly_net_income_desired=0.0)
    errors = validate_config(bad)
    assert errors == [
        DEFAULT_MESSAGES["validationCurrentAgeBetween"],
        DEFAULT_MESSAGES["validationRetirementStartGreater"],
        DEFAULT_MESSAGES["validationCurrentSavingsNonNegative"],
        DEFAULT_MESSAGES["validationMonthlyIncomePositive"],
    ]


def test_check_config_aggregates(example_config):
    bad = example_config.replace(retirement_end_age=40, tax_rate=120.0)
    with pytest.raises(ValidationError) as excinfo:
        check_config(bad)
    err = excinfo.value
    assert err.errors == validate_config(bad)
    assert str(err) == "; ".join(err.errors)
    assert isinstance(err, ValueError)


@pytest.mark.parametrize("changes, key", [
    (dict(retirement_start_age=121), "validationRetirementStartAgeBetween"),
    (dict(retirement_end_age=-1), "validationRetirementEndAgeBetween"),
    (dict(monthly_contribution=-5.0), "validationMonthlyContributionNonNegative"),
    (dict(annual_return_rate=101.0), "validationAnnualReturnBetween"),
    (dict(tax_rate=-1.0), "validationTaxRateBetween"),
    (dict(current_savings=float("nan")), "validationCurrentSavingsNonNegative"),
])
def test_single_rules(example_config, changes, key):
    assert DEFAULT_MESSAGES[key] in validate_config(example_config.replace(**changes))


def test_percentage_only_checked_for_percentage_strategy(example_config):
    cfg = example_config.replace(withdrawal_percentage=0.0)
    assert validate_config(cfg) == []
    cfg = cfg.replace(withdrawal_strategy=WithdrawalStrategy.PERCENTAGE)
    assert validate_config(cfg) == [DEFAULT_MESSAGES["validationWithdrawalPercentageBetween"]]


def test_bucket_rates_only_checked_when_enabled(example_config):
    cfg = example_config.replace(buckets=BucketSettings(enabled=False, safe_rate=500.0))
    assert validate_config(cfg) == []
    cfg = cfg.replace(buckets=BucketSettings(enabled=True, safe_rate=500.0))
    assert validate_config(cfg) == [DEFAULT_MESSAGES["validationBucketRatesBetween"]]


def test_event_rules(example_config, make_event):
    cfg = example_config.replace(life_events=(
        make_event("one_time_expense", "2030-01", -10.0),
        make_event("one_time_income", "2030-01", -20.0),
        make_event("income_change", "2031-01", 100, end="2030-06"),
        make_event("one_time_income", "2030-01", -99.0, enabled=False),
    ))
    assert validate_config(cfg) == [
        DEFAULT_MESSAGES["validationEventAmountNonNegative"],
        DEFAULT_MESSAGES["validationEventEndBeforeStart"],
    ]


def test_translator_and_fallback(example_config):
    translations = {"validationCurrentAgeBetween": "La edad actual debe estar entre 0 y 120"}

    def t(key):
        return translations.get(key, key)

    bad = example_config.replace(current_age=130)
    errors = validate_config(bad, t)
    assert errors[0] == translations["validationCurrentAgeBetween"]
    # the key itself coming back means "no translation"
    assert errors[1] == DEFAULT_MESSAGES["validationRetirementStartGreater"]

    assert validate_config(bad, lambda key: None)[0] == DEFAULT_MESSAGES["validationCurrentAgeBetween"]
