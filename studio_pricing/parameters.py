"""
Calculator parameters and the pure functions that update them.

Parameters is an immutable value. Every user interaction goes through one of
the ``set_*`` / ``add_*`` / ``remove_*`` functions below, each returning a new
Parameters. Derived figures (timeline, infrastructure costs) are never stored
here; the cost engine recomputes them on every read.

Numeric input is clamped on the way in: NaN, None, text and negative numbers
become 0, weekly hours are capped at the working week.
"""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from .reference_data import InfraCategory, ReferenceData, Scope
from .timeline import compute_base_weeks, clamp_weeks, total_weekly_hours


MAX_WEEKLY_HOURS = 40.0


def clamp_non_negative(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return 0.0
    if math.isnan(number) or math.isinf(number) or number < 0:
        return 0.0
    return number


def clamp_count(value: Any) -> int:
    return int(clamp_non_negative(value))


def clamp_weekly_hours(value: Any, limit: float = MAX_WEEKLY_HOURS) -> float:
    return min(clamp_non_negative(value), limit)


@dataclass(frozen=True)
class Role:
    id: str
    title: str
    hourly_rate: float = 0.0
    weekly_hours: float = 0.0

    @property
    def weekly_cost(self) -> float:
        return self.hourly_rate * self.weekly_hours

    def cleaned(self) -> "Role":
        return replace(
            self,
            hourly_rate=clamp_non_negative(self.hourly_rate),
            weekly_hours=clamp_weekly_hours(self.weekly_hours),
        )


@dataclass(frozen=True)
class OtherService:
    """A free-form monthly line item added by the user."""
    id: str
    name: str
    cost: float = 0.0
    description: Optional[str] = None

    def cleaned(self) -> "OtherService":
        return replace(self, cost=clamp_non_negative(self.cost))


@dataclass(frozen=True)
class FreeTierEligibility:
    """One flag per infrastructure category; a set flag zeroes that category."""
    hosting: bool = False
    database: bool = False
    cdn: bool = False
    cicd: bool = False
    storage: bool = False
    authentication: bool = False
    other_services: bool = False

    def is_free(self, category: InfraCategory) -> bool:
        return bool(getattr(self, category.value))

    def with_flag(self, category: InfraCategory, enabled: bool) -> "FreeTierEligibility":
        return replace(self, **{category.value: bool(enabled)})

    def as_dict(self) -> Dict[InfraCategory, bool]:
        return {c: self.is_free(c) for c in InfraCategory}


@dataclass(frozen=True)
class SectionVisibility:
    show_development: bool = True
    show_infrastructure: bool = True
    show_retainer: bool = True
    results_only: bool = False


@dataclass(frozen=True)
class Parameters:
    """
    Complete calculator input state

    Attributes:
        scope: Active project tier
        roles: Staffing lines, unique by id
        user_count: Expected monthly active users
        gb_storage: Stored data in GB
        free_tier: Per-category free tier flags
        providers: Selected provider name per provider-capable category
        other_services: User-added monthly line items, in insertion order
        retainer_hours: Weekly hours of post-launch support
        adjusted_weeks: Timeline override; None means "use the base schedule"
        visibility: Which cost sections count towards totals
    """
    scope: Scope = Scope.MVP
    roles: Tuple[Role, ...] = ()
    user_count: int = 0
    gb_storage: int = 0
    free_tier: FreeTierEligibility = field(default_factory=FreeTierEligibility)
    providers: Mapping[InfraCategory, str] = field(default_factory=dict)
    other_services: Tuple[OtherService, ...] = ()
    retainer_hours: float = 0.0
    adjusted_weeks: Optional[int] = None
    visibility: SectionVisibility = field(default_factory=SectionVisibility)

    def role(self, role_id: str) -> Optional[Role]:
        for role in self.roles:
            if role.id == role_id:
                return role
        return None

    @property
    def total_weekly_hours(self) -> float:
        return total_weekly_hours(unique_roles(self.roles))


def default_parameters(reference: ReferenceData) -> Parameters:
    defaults = reference.defaults
    scope = Scope.parse(defaults.get("scope")) or Scope.MVP
    roles = tuple(
        Role(
            id=t.id,
            title=t.title,
            hourly_rate=t.hourly_rate,
            weekly_hours=clamp_weekly_hours(t.weekly_hours, reference.timeline_calculator.max_weekly_hours),
        )
        for t in reference.default_roles
    )
    return Parameters(
        scope=scope,
        roles=roles,
        user_count=clamp_count(defaults.get("user_count", 0)),
        gb_storage=clamp_count(defaults.get("gb_storage", 0)),
        retainer_hours=clamp_non_negative(defaults.get("retainer_hours", 0)),
    )


def unique_roles(roles: Iterable[Role]) -> Tuple[Role, ...]:
    """Drop repeated role ids, keeping the first occurrence."""
    seen = set()
    unique = []
    for role in roles:
        if role.id in seen:
            continue
        seen.add(role.id)
        unique.append(role)
    return tuple(unique)


def reset_parameters(reference: ReferenceData) -> Parameters:
    return default_parameters(reference)


def normalize_parameters(params: Parameters, reference: ReferenceData) -> Parameters:
    """
    Clamp every field into its valid range.

    Unknown providers are dropped, duplicate role ids keep their first
    occurrence, and a timeline override equal to the base schedule collapses
    to None.
    """
    roles = [r.cleaned() for r in unique_roles(params.roles)]
    providers = {
        category: name
        for category, name in params.providers.items()
        if reference.find_provider(params.scope, category, name) is not None
    }
    normalized = replace(
        params,
        roles=tuple(roles),
        user_count=clamp_count(params.user_count),
        gb_storage=clamp_count(params.gb_storage),
        providers=providers,
        other_services=tuple(s.cleaned() for s in params.other_services),
        retainer_hours=clamp_non_negative(params.retainer_hours),
    )
    return _normalize_override(normalized, params.adjusted_weeks, reference)


def _normalize_override(
    params: Parameters, requested: Optional[Any], reference: ReferenceData
) -> Parameters:
    if requested is None:
        return replace(params, adjusted_weeks=None)
    calculator = reference.timeline_calculator
    base = compute_base_weeks(reference.scope(params.scope), params.total_weekly_hours, calculator)
    weeks = clamp_weeks(requested, base, calculator)
    return replace(params, adjusted_weeks=None if weeks == base else weeks)


# ---------------------------------------------------------------- updates
def set_scope(params: Parameters, scope: Scope, reference: ReferenceData) -> Parameters:
    """Switch tier; resets the timeline and drops providers the tier does not offer."""
    providers = {
        category: name
        for category, name in params.providers.items()
        if reference.find_provider(scope, category, name) is not None
    }
    return replace(params, scope=scope, providers=providers, adjusted_weeks=None)


def set_role_rate(params: Parameters, role_id: str, hourly_rate: Any) -> Parameters:
    rate = clamp_non_negative(hourly_rate)
    roles = tuple(
        replace(r, hourly_rate=rate) if r.id == role_id else r for r in params.roles
    )
    return replace(params, roles=roles)


def set_role_hours(params: Parameters, role_id: str, weekly_hours: Any) -> Parameters:
    """Change a role's weekly hours; resets the timeline to the base schedule."""
    hours = clamp_weekly_hours(weekly_hours)
    roles = tuple(
        replace(r, weekly_hours=hours) if r.id == role_id else r for r in params.roles
    )
    return replace(params, roles=roles, adjusted_weeks=None)


def add_role(params: Parameters, role: Role) -> Parameters:
    """Insert or replace the role with the same id."""
    cleaned = role.cleaned()
    if params.role(role.id) is not None:
        roles = tuple(cleaned if r.id == role.id else r for r in params.roles)
    else:
        roles = params.roles + (cleaned,)
    return replace(params, roles=roles, adjusted_weeks=None)


def remove_role(params: Parameters, role_id: str) -> Parameters:
    roles = tuple(r for r in params.roles if r.id != role_id)
    return replace(params, roles=roles, adjusted_weeks=None)


def set_user_count(params: Parameters, user_count: Any) -> Parameters:
    return replace(params, user_count=clamp_count(user_count))


def set_gb_storage(params: Parameters, gb_storage: Any) -> Parameters:
    return replace(params, gb_storage=clamp_count(gb_storage))


def set_free_tier(params: Parameters, category: InfraCategory, enabled: bool) -> Parameters:
    return replace(params, free_tier=params.free_tier.with_flag(category, enabled))


def select_provider(
    params: Parameters,
    category: InfraCategory,
    name: Optional[str],
    reference: ReferenceData,
) -> Parameters:
    """Select a provider by name, or clear the selection when name is falsy or unknown."""
    providers = dict(params.providers)
    if category.accepts_provider and reference.find_provider(params.scope, category, name):
        providers[category] = name
    else:
        providers.pop(category, None)
    return replace(params, providers=providers)


def add_other_service(
    params: Parameters,
    name: str,
    cost: Any,
    description: Optional[str] = None,
    service_id: Optional[str] = None,
) -> Parameters:
    name = (name or "").strip()
    if not name:
        return params
    service = OtherService(
        id=service_id or uuid.uuid4().hex[:12],
        name=name,
        cost=clamp_non_negative(cost),
        description=description or None,
    )
    return replace(params, other_services=params.other_services + (service,))


def remove_other_service(params: Parameters, service_id: str) -> Parameters:
    services = tuple(s for s in params.other_services if s.id != service_id)
    return replace(params, other_services=services)


def set_retainer_hours(params: Parameters, hours: Any) -> Parameters:
    return replace(params, retainer_hours=clamp_non_negative(hours))


def set_adjusted_weeks(params: Parameters, weeks: Any, reference: ReferenceData) -> Parameters:
    """Override the schedule; the value is clamped to 50%-200% of the base."""
    return _normalize_override(params, weeks, reference)


def set_visibility(params: Parameters, **flags: bool) -> Parameters:
    return replace(params, visibility=replace(params.visibility, **flags))
