"""
Table-driven estimation engine.

Turns calculator Parameters plus static reference data into a Breakdown:
development cost and timeline, monthly infrastructure per category, retainer
cost, and section-aware totals. Every non-zero contribution is also recorded
as a CostLine so the report layer can show how each figure was reached.

The engine never raises on parameter values. Numeric inputs are clamped at
the boundary (NaN/negative -> 0) and anything odd is reported through
``diagnostics`` instead.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .parameters import (
    OtherService,
    Parameters,
    SectionVisibility,
    clamp_count,
    clamp_non_negative,
    unique_roles,
)
from .reference_data import (
    InfraCategory,
    ProviderOption,
    ReferenceData,
    SCALING_CATEGORIES,
    Scope,
)
from .timeline import TimelineAdjustment, compute_base_weeks, resolve_timeline


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CostLine:
    section: str
    key: str
    description: str
    quantity: float
    unit: str
    unit_cost: float
    total: float
    notes: Optional[str] = None


@dataclass(frozen=True)
class RoleCost:
    role_id: str
    title: str
    hourly_rate: float
    weekly_hours: float
    weekly_cost: float
    project_hours: float
    project_cost: float
    reference_hours: float


@dataclass(frozen=True)
class DevelopmentCost:
    roles: Tuple[RoleCost, ...]
    total_weekly_hours: float
    total_weekly_cost: float
    monthly_cost: float
    total_cost: float
    yearly_cost: float

    @property
    def team_size(self) -> int:
        return sum(1 for r in self.roles if r.weekly_hours > 0)


@dataclass(frozen=True)
class CategoryCost:
    """
    How one infrastructure category's monthly figure was reached

    Attributes:
        category: Infrastructure category
        base_cost: Scope base cost, or the selected provider's listed cost
        provider: Selected provider name, if any applied
        usage_quantity: Users, billable GB, billable MAUs or service count
        computed_cost: Cost before free tier (scaled or usage-based)
        final_cost: Monthly contribution after free tier
        free_tier: Whether the free tier zeroed this category
    """
    category: InfraCategory
    base_cost: float
    provider: Optional[str]
    usage_quantity: float
    computed_cost: float
    final_cost: float
    free_tier: bool


@dataclass(frozen=True)
class InfrastructureCost:
    hosting: float = 0.0
    database: float = 0.0
    cdn: float = 0.0
    cicd: float = 0.0
    storage: float = 0.0
    authentication: float = 0.0
    other_services: float = 0.0

    def get(self, category: InfraCategory) -> float:
        return float(getattr(self, category.value))

    @property
    def monthly_total(self) -> float:
        return sum(self.get(c) for c in InfraCategory)

    @property
    def yearly_total(self) -> float:
        return self.monthly_total * 12


@dataclass(frozen=True)
class RetainerCost:
    hours: float
    weighted_hourly_rate: float
    weekly_cost: float
    monthly_cost: float
    yearly_cost: float
    first_year_cost: float


@dataclass(frozen=True)
class Totals:
    """Aggregates honouring section visibility; a hidden section contributes 0 everywhere."""
    initial_investment: float
    monthly_infrastructure: float
    yearly_infrastructure: float
    ongoing_monthly: float
    grand_monthly: float
    first_year_total: float


@dataclass(frozen=True)
class Breakdown:
    scope: Scope
    scope_label: str
    user_count: int
    gb_storage: int
    timeline: TimelineAdjustment
    development: DevelopmentCost
    infrastructure: InfrastructureCost
    infrastructure_lines: Tuple[CategoryCost, ...]
    other_services: Tuple[OtherService, ...]
    retainer: RetainerCost
    totals: Totals
    visibility: SectionVisibility
    provider_catalog: Dict[InfraCategory, List[ProviderOption]] = field(default_factory=dict)
    lines: Tuple[CostLine, ...] = ()
    diagnostics: Dict[str, Any] = field(default_factory=dict)

    def category(self, category: InfraCategory) -> CategoryCost:
        for line in self.infrastructure_lines:
            if line.category is category:
                return line
        raise KeyError(category)


class CostEngine:
    def __init__(self, reference: ReferenceData):
        self.reference = reference
        self.calculator = reference.timeline_calculator
        self.lines: List[CostLine] = []
        self.diagnostics: Dict[str, Any] = {"warnings": [], "errors": []}

    # ------------------------------------------------------------------ public
    def calculate(self, params: Parameters) -> Breakdown:
        self.lines = []
        self.diagnostics = {"warnings": [], "errors": []}

        definition = self.reference.scope(params.scope)
        roles = [r.cleaned() for r in unique_roles(params.roles)]
        user_count = clamp_count(params.user_count)
        gb_storage = clamp_count(params.gb_storage)

        weekly_hours = sum(r.weekly_hours for r in roles)
        base_weeks = compute_base_weeks(definition, weekly_hours, self.calculator)
        timeline = resolve_timeline(base_weeks, params.adjusted_weeks, self.calculator)
        if weekly_hours <= 0:
            self._warn("No weekly hours allocated; development timeline is zero.")
        elif params.adjusted_weeks is not None and timeline.adjusted_weeks != params.adjusted_weeks:
            self._warn(
                "Timeline override clamped to allowed range.",
                {"requested": params.adjusted_weeks, "applied": timeline.adjusted_weeks},
            )

        development = self._development_costs(roles, definition.role_hours, timeline)
        infrastructure_lines = self._infrastructure_costs(params, user_count, gb_storage)
        infrastructure = InfrastructureCost(
            **{line.category.value: line.final_cost for line in infrastructure_lines}
        )
        retainer = self._retainer_costs(roles, params.retainer_hours, timeline)
        totals = self._totals(development, infrastructure, retainer, params.visibility)

        breakdown = Breakdown(
            scope=params.scope,
            scope_label=definition.label,
            user_count=user_count,
            gb_storage=gb_storage,
            timeline=timeline,
            development=development,
            infrastructure=infrastructure,
            infrastructure_lines=tuple(infrastructure_lines),
            other_services=tuple(s.cleaned() for s in params.other_services),
            retainer=retainer,
            totals=totals,
            visibility=params.visibility,
            provider_catalog={
                c: self.reference.providers(params.scope, c)
                for c in InfraCategory
                if c.accepts_provider
            },
            lines=tuple(self.lines),
            diagnostics=self.diagnostics,
        )
        self._validate_breakdown(breakdown)
        logger.debug(
            "Estimated %s: %d weeks, development %.2f, infrastructure %.2f/mo",
            params.scope.value,
            timeline.adjusted_weeks,
            development.total_cost,
            infrastructure.monthly_total,
        )
        return breakdown

    # ---------------------------------------------------------------- utilities
    def _add_cost_line(
        self,
        *,
        section: str,
        key: str,
        description: str,
        quantity: float,
        unit: str,
        unit_cost: float,
        notes: Optional[str] = None,
    ) -> float:
        if quantity <= 0:
            return 0.0
        total = quantity * unit_cost
        if total > 0:
            self.lines.append(
                CostLine(
                    section=section,
                    key=key,
                    description=description,
                    quantity=quantity,
                    unit=unit,
                    unit_cost=unit_cost,
                    total=total,
                    notes=notes,
                )
            )
        return total

    def _warn(self, message: str, detail: Optional[Dict[str, Any]] = None) -> None:
        logger.debug("%s %s", message, detail or "")
        self.diagnostics["warnings"].append({"message": message, "detail": detail or {}})

    # ------------------------------------------------------------ development
    def _development_costs(
        self,
        roles,
        reference_hours: Dict[str, float],
        timeline: TimelineAdjustment,
    ) -> DevelopmentCost:
        weeks = timeline.adjusted_weeks
        role_costs = []
        for role in roles:
            project_cost = self._add_cost_line(
                section="development",
                key=f"role:{role.id}",
                description=role.title,
                quantity=role.weekly_hours * weeks,
                unit="HOUR",
                unit_cost=role.hourly_rate,
                notes=f"{role.weekly_hours:g} hrs/week x {weeks} weeks",
            )
            role_costs.append(
                RoleCost(
                    role_id=role.id,
                    title=role.title,
                    hourly_rate=role.hourly_rate,
                    weekly_hours=role.weekly_hours,
                    weekly_cost=role.weekly_cost,
                    project_hours=role.weekly_hours * weeks,
                    project_cost=project_cost,
                    reference_hours=float(reference_hours.get(role.id, 0.0)),
                )
            )

        total_weekly_hours = sum(r.weekly_hours for r in role_costs)
        total_weekly_cost = sum(r.weekly_cost for r in role_costs)
        monthly_cost = total_weekly_cost * self.calculator.average_weeks_per_month
        total_cost = total_weekly_cost * weeks
        if weeks < self.calculator.weeks_per_year:
            yearly_cost = total_cost
        else:
            yearly_cost = monthly_cost * 12

        return DevelopmentCost(
            roles=tuple(role_costs),
            total_weekly_hours=total_weekly_hours,
            total_weekly_cost=total_weekly_cost,
            monthly_cost=monthly_cost,
            total_cost=total_cost,
            yearly_cost=yearly_cost,
        )

    # --------------------------------------------------------- infrastructure
    def _base_cost(self, params: Parameters, category: InfraCategory) -> Tuple[float, Optional[str]]:
        selected = params.providers.get(category)
        provider = self.reference.find_provider(params.scope, category, selected)
        if selected and provider is None:
            self._warn(
                "Provider not offered for this scope; using scope base cost.",
                {"category": category.value, "provider": selected, "scope": params.scope.value},
            )
        if provider is not None:
            return provider.base_cost, provider.name
        return self.reference.scope(params.scope).base_cost(category), None

    def _infrastructure_costs(
        self, params: Parameters, user_count: int, gb_storage: int
    ) -> List[CategoryCost]:
        lines = [self._scaling_cost(params, c, user_count) for c in SCALING_CATEGORIES]
        lines.append(self._storage_cost(params, gb_storage))
        lines.append(self._authentication_cost(params, user_count))
        lines.append(self._other_services_cost(params))
        return lines

    def _finalize(
        self,
        params: Parameters,
        category: InfraCategory,
        base_cost: float,
        provider: Optional[str],
        usage_quantity: float,
        computed: float,
        notes: str,
    ) -> CategoryCost:
        free = params.free_tier.is_free(category)
        final = 0.0 if free else computed
        self._add_cost_line(
            section="infrastructure",
            key=f"infra:{category.value}",
            description=category.label,
            quantity=1.0,
            unit="MONTH",
            unit_cost=final,
            notes=notes if not provider else f"{provider}; {notes}",
        )
        return CategoryCost(
            category=category,
            base_cost=base_cost,
            provider=provider,
            usage_quantity=usage_quantity,
            computed_cost=computed,
            final_cost=final,
            free_tier=free,
        )

    def _scaling_cost(self, params: Parameters, category: InfraCategory, user_count: int) -> CategoryCost:
        base_cost, provider = self._base_cost(params, category)
        factor = self.reference.user_cost_multiplier.get(category, 0.0)
        scaled = base_cost * (1 + factor * (user_count / 1000))
        return self._finalize(
            params, category, base_cost, provider, user_count, scaled,
            f"base {base_cost:g} scaled {factor:g} per 1,000 users",
        )

    def _storage_cost(self, params: Parameters, gb_storage: int) -> CategoryCost:
        calc = self.reference.storage_calculator
        base_cost, provider = self._base_cost(params, InfraCategory.STORAGE)
        billable_gb = max(0.0, gb_storage - calc.base_free_gb)
        computed = billable_gb * calc.price_per_gb_per_month
        return self._finalize(
            params, InfraCategory.STORAGE, base_cost, provider, billable_gb,
            max(computed, base_cost),
            f"{billable_gb:g} billable GB, floor {base_cost:g}",
        )

    def _authentication_cost(self, params: Parameters, user_count: int) -> CategoryCost:
        calc = self.reference.auth_calculator
        base_cost, provider = self._base_cost(params, InfraCategory.AUTHENTICATION)
        billable_users = max(0.0, user_count - calc.free_maus)
        computed = billable_users * calc.price_per_mau_beyond_free
        return self._finalize(
            params, InfraCategory.AUTHENTICATION, base_cost, provider, billable_users,
            max(computed, base_cost),
            f"{billable_users:g} billable MAU, floor {base_cost:g}",
        )

    def _other_services_cost(self, params: Parameters) -> CategoryCost:
        services = [s.cleaned() for s in params.other_services]
        computed = sum(s.cost for s in services)
        return self._finalize(
            params, InfraCategory.OTHER_SERVICES, 0.0, None, len(services), computed,
            f"{len(services)} services",
        )

    # ---------------------------------------------------------------- retainer
    def _retainer_costs(self, roles, retainer_hours: Any, timeline: TimelineAdjustment) -> RetainerCost:
        hours = clamp_non_negative(retainer_hours)
        total_hours = sum(r.weekly_hours for r in roles)
        if not roles:
            rate = 0.0
        elif total_hours == 0:
            rate = sum(r.hourly_rate for r in roles) / len(roles)
        else:
            rate = sum(r.hourly_rate * (r.weekly_hours / total_hours) for r in roles)

        weekly = rate * hours
        monthly = weekly * self.calculator.average_weeks_per_month
        yearly = monthly * 12
        weeks_per_year = self.calculator.weeks_per_year
        remaining = max(0.0, weeks_per_year - timeline.adjusted_weeks)
        first_year = yearly * remaining / weeks_per_year

        self._add_cost_line(
            section="retainer",
            key="retainer:monthly",
            description="Support Retainer",
            quantity=hours * self.calculator.average_weeks_per_month,
            unit="HOUR",
            unit_cost=rate,
            notes=f"{hours:g} hrs/week at blended rate",
        )
        return RetainerCost(
            hours=hours,
            weighted_hourly_rate=rate,
            weekly_cost=weekly,
            monthly_cost=monthly,
            yearly_cost=yearly,
            first_year_cost=first_year,
        )

    # ------------------------------------------------------------------ totals
    def _totals(
        self,
        development: DevelopmentCost,
        infrastructure: InfrastructureCost,
        retainer: RetainerCost,
        visibility: SectionVisibility,
    ) -> Totals:
        dev = visibility.show_development
        infra = visibility.show_infrastructure
        ret = visibility.show_retainer

        monthly_infrastructure = infrastructure.monthly_total if infra else 0.0
        monthly_retainer = retainer.monthly_cost if ret else 0.0
        ongoing_monthly = monthly_infrastructure + monthly_retainer

        return Totals(
            initial_investment=development.total_cost if dev else 0.0,
            monthly_infrastructure=monthly_infrastructure,
            yearly_infrastructure=monthly_infrastructure * 12,
            ongoing_monthly=ongoing_monthly,
            grand_monthly=(development.monthly_cost if dev else 0.0) + ongoing_monthly,
            first_year_total=(
                (development.yearly_cost if dev else 0.0)
                + monthly_infrastructure * 12
                + (retainer.first_year_cost if ret else 0.0)
            ),
        )

    def _validate_breakdown(self, breakdown: Breakdown) -> None:
        if breakdown.totals.first_year_total <= 0:
            self._warn(
                "First year total calculated as non-positive value.",
                {"first_year_total": breakdown.totals.first_year_total},
            )
