"""
Timeline derivation for development schedules

The base schedule comes from the scope's effort multiplier, expressed in
months of a baseline team and converted to weeks with a flat 4 weeks/month.
Users may stretch or compress it between 50% and 200% of the base.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Tuple

from .reference_data import ScopeDefinition, TimelineCalculator


DEFAULT_CALCULATOR = TimelineCalculator()


@dataclass(frozen=True)
class TimelineAdjustment:
    """
    Derived schedule record

    Attributes:
        base_weeks: Schedule implied by scope and staffing (0 when nobody is staffed)
        adjusted_weeks: Schedule actually used for costing
        multiplier: adjusted_weeks / base_weeks, or 1.0 when base_weeks is 0
    """
    base_weeks: int
    adjusted_weeks: int
    multiplier: float

    @property
    def is_adjusted(self) -> bool:
        return self.adjusted_weeks != self.base_weeks


def total_weekly_hours(roles: Iterable[Any]) -> float:
    return sum(role.weekly_hours for role in roles)


def compute_base_weeks(
    definition: ScopeDefinition,
    weekly_hours: float,
    calculator: TimelineCalculator = DEFAULT_CALCULATOR,
) -> int:
    if weekly_hours <= 0:
        return 0
    return int(math.ceil(definition.development_time_multiplier * calculator.weeks_per_month))


def adjustment_bounds(
    base_weeks: int, calculator: TimelineCalculator = DEFAULT_CALCULATOR
) -> Tuple[int, int]:
    """
    Allowed (min, max) adjusted weeks for a base schedule.

    A zero base has no meaningful range and collapses to (0, 0).
    """
    if base_weeks <= 0:
        return 0, 0
    low = max(int(math.floor(base_weeks * calculator.min_adjustment_factor)), 1)
    high = int(math.ceil(base_weeks * calculator.max_adjustment_factor))
    return low, high


def clamp_weeks(
    weeks: Any, base_weeks: int, calculator: TimelineCalculator = DEFAULT_CALCULATOR
) -> int:
    """Clamp a requested schedule into the allowed range; non-numeric input yields the base."""
    if base_weeks <= 0:
        return 0
    try:
        value = float(weeks)
    except (TypeError, ValueError, OverflowError):
        return base_weeks
    if math.isnan(value):
        return base_weeks
    low, high = adjustment_bounds(base_weeks, calculator)
    if math.isinf(value):
        return high if value > 0 else low
    # half-up, so 10.5 -> 11 and 11.5 -> 12
    return int(min(max(math.floor(value + 0.5), low), high))


def resolve_timeline(
    base_weeks: int,
    requested_weeks: Optional[Any] = None,
    calculator: TimelineCalculator = DEFAULT_CALCULATOR,
) -> TimelineAdjustment:
    if base_weeks <= 0:
        return TimelineAdjustment(base_weeks=0, adjusted_weeks=0, multiplier=1.0)
    if requested_weeks is None:
        adjusted = base_weeks
    else:
        adjusted = clamp_weeks(requested_weeks, base_weeks, calculator)
    return TimelineAdjustment(
        base_weeks=base_weeks,
        adjusted_weeks=adjusted,
        multiplier=adjusted / base_weeks,
    )
