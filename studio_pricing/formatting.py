"""
Display helpers for currency and schedules.
"""

from __future__ import annotations

import math
from typing import Union


def format_currency(amount: Union[float, int, str], currency_symbol: str = "$") -> str:
    """Whole-unit currency string, e.g. 20000 -> '$20,000'. Strings pass through."""
    if isinstance(amount, str):
        return amount
    value = float(amount)
    if math.isnan(value):
        value = 0.0
    sign = "-" if value < 0 else ""
    return f"{sign}{currency_symbol}{abs(value):,.0f}"


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'' if count == 1 else 's'}"


def format_timeline(weeks: int, average_weeks_per_month: float = 4.33) -> str:
    """
    Human-readable schedule.

    52+ weeks render as years and weeks, 8+ weeks as months and weeks,
    anything shorter as weeks.
    """
    weeks = int(weeks)
    if weeks >= 52:
        years, remaining = divmod(weeks, 52)
        text = _plural(years, "year")
        return f"{text} {_plural(remaining, 'week')}" if remaining else text
    if weeks >= 8:
        months = int(weeks // average_weeks_per_month)
        remaining = int(round(weeks % average_weeks_per_month))
        text = _plural(months, "month")
        return f"{text} {_plural(remaining, 'week')}" if remaining else text
    return _plural(weeks, "week")
