"""
Reference Data Registry - typed access to the static pricing catalog

Provides validated, read-only access to scope definitions, base infrastructure
costs, provider catalogs and global pricing constants.

KEY PRINCIPLE: The engine asks for WHAT it needs (scope, category), not WHERE
it lives in the JSON file. When the file is reorganized only this module changes.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple


DEFAULT_REFERENCE_PATH = Path(__file__).resolve().parent / "data" / "reference_data.json"


class Scope(Enum):
    """Project size tiers"""
    POC = "poc"
    MVP = "mvp"
    PRODUCTION = "production"

    @staticmethod
    def parse(value: Any) -> Optional["Scope"]:
        """Return the Scope for a raw value, or None when it is not a known tier."""
        if isinstance(value, Scope):
            return value
        try:
            return Scope(str(value).strip().lower())
        except ValueError:
            return None


class InfraCategory(Enum):
    """
    Monthly infrastructure cost categories

    Values double as the keys used in the JSON reference file; `url_key` is
    the camelCase spelling used in shareable state.
    """
    HOSTING = "hosting"
    DATABASE = "database"
    CDN = "cdn"
    CICD = "cicd"
    STORAGE = "storage"
    AUTHENTICATION = "authentication"
    OTHER_SERVICES = "other_services"

    @property
    def url_key(self) -> str:
        return "otherServices" if self is InfraCategory.OTHER_SERVICES else self.value

    @property
    def label(self) -> str:
        return CATEGORY_LABELS[self]

    @property
    def is_scaling(self) -> bool:
        """Billed as base cost scaled by user count."""
        return self in SCALING_CATEGORIES

    @property
    def accepts_provider(self) -> bool:
        return self is not InfraCategory.OTHER_SERVICES

    @staticmethod
    def from_url_key(key: str) -> Optional["InfraCategory"]:
        for category in InfraCategory:
            if category.url_key == key or category.value == key:
                return category
        return None


CATEGORY_LABELS = {
    InfraCategory.HOSTING: "Hosting",
    InfraCategory.DATABASE: "Database",
    InfraCategory.CDN: "CDN",
    InfraCategory.CICD: "CI/CD",
    InfraCategory.STORAGE: "Storage",
    InfraCategory.AUTHENTICATION: "Authentication",
    InfraCategory.OTHER_SERVICES: "Other Services",
}

SCALING_CATEGORIES: Tuple[InfraCategory, ...] = (
    InfraCategory.HOSTING,
    InfraCategory.DATABASE,
    InfraCategory.CDN,
    InfraCategory.CICD,
)

PROVIDER_CATEGORIES: Tuple[InfraCategory, ...] = tuple(
    c for c in InfraCategory if c is not InfraCategory.OTHER_SERVICES
)


@dataclass(frozen=True)
class ProviderOption:
    """
    A named service offering that overrides a category's base monthly cost

    Attributes:
        name: Display name, also the value stored in provider selections
        base_cost: Listed monthly price in currency units
        description: Human-readable summary shown next to the option
    """
    name: str
    base_cost: float
    description: str = ""

    def __str__(self) -> str:
        return f"{self.name}: ${self.base_cost:,.2f}/mo"


@dataclass(frozen=True)
class ScopeDefinition:
    """
    Everything the engine needs to know about one project tier

    Attributes:
        scope: The tier this definition belongs to
        label: Display label (e.g. 'Minimum Viable Product')
        description: One-sentence summary
        development_time_multiplier: Effort in months of a baseline team
        role_hours: Reference total hours per role id for this tier
        base_costs: Base monthly cost per provider-capable category
    """
    scope: Scope
    label: str
    description: str
    development_time_multiplier: float
    role_hours: Dict[str, float] = field(default_factory=dict)
    base_costs: Dict[InfraCategory, float] = field(default_factory=dict)

    def base_cost(self, category: InfraCategory) -> float:
        return float(self.base_costs.get(category, 0.0))


@dataclass(frozen=True)
class StorageCalculator:
    base_free_gb: float
    price_per_gb_per_month: float


@dataclass(frozen=True)
class AuthCalculator:
    free_maus: float
    price_per_mau_beyond_free: float


@dataclass(frozen=True)
class TimelineCalculator:
    """Calendar constants used to turn effort into weeks and months."""
    weeks_per_month: float = 4.0
    average_weeks_per_month: float = 4.33
    weeks_per_year: float = 52.0
    team_size: int = 3
    hours_per_week_per_dev: float = 35.0
    max_weekly_hours: float = 40.0
    min_adjustment_factor: float = 0.5
    max_adjustment_factor: float = 2.0


@dataclass(frozen=True)
class RoleTemplate:
    id: str
    title: str
    hourly_rate: float
    weekly_hours: float = 0.0


class ReferenceData:
    """
    Registry of all static pricing inputs with validation

    This is the SINGLE SOURCE OF TRUTH for reference lookups.

    Example:
        reference = load_reference_data()
        mvp = reference.scope(Scope.MVP)
        options = reference.providers(Scope.MVP, InfraCategory.HOSTING)
    """

    def __init__(self, raw: Dict[str, Any]):
        """
        Args:
            raw: Reference document as loaded from JSON
        """
        self._raw = raw
        self._validate()
        self._scopes = self._build_scopes()
        self._providers = self._build_providers()

        self.user_cost_multiplier: Dict[InfraCategory, float] = {
            c: float(raw["user_cost_multiplier"].get(c.value, 0.0)) for c in SCALING_CATEGORIES
        }
        self.storage_calculator = StorageCalculator(**raw["storage_calculator"])
        self.auth_calculator = AuthCalculator(**raw["auth_calculator"])
        self.timeline_calculator = TimelineCalculator(**raw.get("timeline_calculator", {}))
        self.default_roles: List[RoleTemplate] = [
            RoleTemplate(
                id=r["id"],
                title=r["title"],
                hourly_rate=float(r["hourly_rate"]),
                weekly_hours=float(r.get("weekly_hours", 0.0)),
            )
            for r in raw.get("default_roles", [])
        ]
        self.defaults: Dict[str, Any] = dict(raw.get("defaults", {}))
        self.version: str = str(raw.get("version", "unversioned"))
        self.currency: str = str(raw.get("currency", "USD"))

    # ------------------------------------------------------------------ build
    def _validate(self) -> None:
        """Validate that every scope, base cost and constant is present"""
        raw = self._raw
        missing: List[str] = []

        for section in ("scopes", "user_cost_multiplier", "storage_calculator", "auth_calculator"):
            if section not in raw:
                missing.append(section)
        if missing:
            raise ValueError(f"Reference data validation failed. Missing sections: {missing}")

        for scope in Scope:
            definition = raw["scopes"].get(scope.value)
            if definition is None:
                missing.append(f"scopes.{scope.value}")
                continue
            for key in ("label", "development_time_multiplier", "base_costs"):
                if key not in definition:
                    missing.append(f"scopes.{scope.value}.{key}")
            for category in PROVIDER_CATEGORIES:
                if category.value not in definition.get("base_costs", {}):
                    missing.append(f"scopes.{scope.value}.base_costs.{category.value}")
            if float(definition.get("development_time_multiplier", 1)) <= 0:
                missing.append(f"scopes.{scope.value}.development_time_multiplier (must be > 0)")

        for key in ("base_free_gb", "price_per_gb_per_month"):
            if key not in raw["storage_calculator"]:
                missing.append(f"storage_calculator.{key}")
        for key in ("free_maus", "price_per_mau_beyond_free"):
            if key not in raw["auth_calculator"]:
                missing.append(f"auth_calculator.{key}")

        if missing:
            raise ValueError(f"Reference data validation failed. Missing entries: {missing}")

    def _build_scopes(self) -> Dict[Scope, ScopeDefinition]:
        scopes = {}
        for scope in Scope:
            definition = self._raw["scopes"][scope.value]
            scopes[scope] = ScopeDefinition(
                scope=scope,
                label=definition["label"],
                description=definition.get("description", ""),
                development_time_multiplier=float(definition["development_time_multiplier"]),
                role_hours={k: float(v) for k, v in definition.get("role_hours", {}).items()},
                base_costs={
                    c: float(definition["base_costs"][c.value]) for c in PROVIDER_CATEGORIES
                },
            )
        return scopes

    def _build_providers(self) -> Dict[Tuple[Scope, InfraCategory], List[ProviderOption]]:
        catalog: Dict[Tuple[Scope, InfraCategory], List[ProviderOption]] = {}
        for scope_key, categories in self._raw.get("providers", {}).items():
            scope = Scope.parse(scope_key)
            if scope is None:
                continue
            for category_key, options in categories.items():
                category = InfraCategory.from_url_key(category_key)
                if category is None or not category.accepts_provider:
                    continue
                catalog[(scope, category)] = [
                    ProviderOption(
                        name=o["name"],
                        base_cost=float(o["base_cost"]),
                        description=o.get("description", ""),
                    )
                    for o in options
                ]
        return catalog

    # ----------------------------------------------------------------- lookup
    def scope(self, scope: Scope) -> ScopeDefinition:
        return self._scopes[scope]

    def scopes(self) -> List[ScopeDefinition]:
        return [self._scopes[s] for s in Scope]

    def providers(self, scope: Scope, category: InfraCategory) -> List[ProviderOption]:
        """Provider catalog for a scope/category; empty when none is listed."""
        return list(self._providers.get((scope, category), []))

    def find_provider(
        self, scope: Scope, category: InfraCategory, name: Optional[str]
    ) -> Optional[ProviderOption]:
        if not name:
            return None
        for option in self._providers.get((scope, category), []):
            if option.name == name:
                return option
        return None

    def __repr__(self) -> str:
        return f"ReferenceData(version={self.version!r}, {len(self._providers)} provider lists)"


def load_reference_data(path: Optional[Path] = None) -> ReferenceData:
    base = path or DEFAULT_REFERENCE_PATH
    with open(base, "r", encoding="utf-8") as fp:
        return ReferenceData(json.load(fp))
