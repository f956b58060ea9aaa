# projection/timeline.py
#
# Resolve life-event calendar dates into month offsets from the valuation date.
# Month 0 is the valuation month; anything dated earlier collapses onto it.

from __future__ import annotations

import bisect
from collections import defaultdict
from datetime import date

from dateutil.relativedelta import relativedelta

from .models import EventType, YearMonth


def month_offset(when, valuation_date: date):
    """Whole calendar months from valuation_date to `when`, floored at zero.

    Returns None when `when` is None so callers can tell "no date" apart
    from "now".
    """
    if when is None:
        return None
    if isinstance(when, YearMonth):
        when = when.as_date()
    delta = relativedelta(date(when.year, when.month, 1),
                          date(valuation_date.year, valuation_date.month, 1))
    return max(0, delta.years * 12 + delta.months)


def month_to_date(month: int, valuation_date: date) -> date:
    """Calendar month (first day) reached `month` months after valuation_date."""
    base = date(valuation_date.year, valuation_date.month, 1)
    return base + relativedelta(months=month)


def is_active(event, month: int, valuation_date: date) -> bool:
    start = month_offset(event.start_date, valuation_date)
    if start is None or month < start:
        return False
    if event.end_date is None:
        return True
    return month <= month_offset(event.end_date, valuation_date)


def monthly_delta(event) -> float:
    """Monthly cash-flow change of a recurring event.

    Older records only carry `amount`; treat it as the monthly figure.
    """
    if event.monthly_change is not None:
        return event.monthly_change
    return event.amount or 0.0


class EventIndex:
    """
    Enabled events pre-sorted by the month they switch on and off.

    recurring_adjustments(month) answers the same question as scanning every
    event with is_active() but in O(log n + active) instead of O(n).
    """

    def __init__(self, events, valuation_date: date):
        self.valuation_date = valuation_date
        self._one_time = defaultdict(list)
        self._starting = defaultdict(list)
        self._ending = defaultdict(list)
        recurring = []

        for ev in events:
            if not ev.enabled:
                continue
            start = month_offset(ev.start_date, valuation_date)
            if ev.is_recurring:
                end = month_offset(ev.end_date, valuation_date)
                recurring.append((start, end, ev))
                self._starting[start].append(ev)
                if end is not None:
                    self._ending[end].append(ev)
            else:
                self._one_time[start].append(ev)

        recurring.sort(key=lambda r: r[0])
        self._recurring = recurring
        self._recurring_starts = [r[0] for r in recurring]

    def __len__(self):
        return len(self._recurring) + sum(len(v) for v in self._one_time.values())

    def one_time_at(self, month: int):
        return self._one_time.get(month, [])

    def starting_at(self, month: int):
        return self._starting.get(month, [])

    def ending_at(self, month: int):
        return self._ending.get(month, [])

    def active_recurring(self, month: int):
        upto = bisect.bisect_right(self._recurring_starts, month)
        return [ev for start, end, ev in self._recurring[:upto] if end is None or month <= end]

    def recurring_adjustments(self, month: int):
        """(income_delta, expense_delta) of every recurring event active at `month`."""
        income = 0.0
        expense = 0.0
        for ev in self.active_recurring(month):
            if ev.type == EventType.INCOME_CHANGE:
                income += monthly_delta(ev)
            else:
                expense += monthly_delta(ev)
        return income, expense

    def one_time_net(self, month: int) -> float:
        """Net one-time cash landing at `month` (income positive, expense negative)."""
        net = 0.0
        for ev in self.one_time_at(month):
            if ev.type == EventType.ONE_TIME_INCOME:
                net += ev.amount
            else:
                net -= ev.amount
        return net
