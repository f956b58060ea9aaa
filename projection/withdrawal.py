# projection/withdrawal.py
#
# Withdrawal strategies. The strategy is fixed for a whole run; only the
# dynamic strategy carries state from one year to the next.

from __future__ import annotations

from dataclasses import dataclass, replace

from .models import WithdrawalStrategy

FOUR_PERCENT_RULE = 0.04


@dataclass(frozen=True)
class WithdrawalState:
    strategy: WithdrawalStrategy
    desired: float                 # original desired monthly net income
    four_percent_monthly: float    # fixed at retirement start
    dynamic_base: float            # current dynamic withdrawal
    percentage: float = 4.0


def initial_state(config, balance_at_retirement) -> WithdrawalState:
    return WithdrawalState(
        strategy=config.withdrawal_strategy,
        desired=config.monthly_net_income_desired,
        four_percent_monthly=max(0.0, balance_at_retirement) * FOUR_PERCENT_RULE / 12.0,
        dynamic_base=config.monthly_net_income_desired,
        percentage=config.withdrawal_percentage,
    )


def adjust_dynamic(state: WithdrawalState, realized_return, policy) -> WithdrawalState:
    """Year-boundary guardrail step for the dynamic strategy.

    Beating the expected return raises next year's withdrawal, falling more
    than `tolerance` short of it cuts it; both moves stay within
    [floor, cap] x the originally desired income.
    """
    base = state.dynamic_base
    if realized_return > policy.expected_return:
        base = min(base * policy.upper_step, state.desired * policy.cap)
    elif realized_return < policy.expected_return - policy.tolerance:
        base = max(base * policy.lower_step, state.desired * policy.floor)
    if base == state.dynamic_base:
        return state
    return replace(state, dynamic_base=base)


def net_withdrawal(state: WithdrawalState, balance, interest, tax) -> float:
    """Net (after-tax) amount the strategy wants out this month, before events."""
    s = state.strategy
    if s == WithdrawalStrategy.FOUR_PERCENT:
        return state.four_percent_monthly
    if s == WithdrawalStrategy.PERCENTAGE:
        return max(0.0, balance) * (state.percentage / 100.0) / 12.0
    if s == WithdrawalStrategy.DYNAMIC:
        return state.dynamic_base
    if s == WithdrawalStrategy.INTEREST_ONLY:
        return max(0.0, interest - tax)
    return state.desired
