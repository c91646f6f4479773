"""
Shareable calculator state.

Maps Parameters to a flat ``{key: str}`` dictionary suitable for a URL query
string and back. Scalars are written as decimal strings, booleans as
``"true"``/``"false"`` and structured values as compact JSON with camelCase
field names. Every key is always written.

Decoding is forgiving: each key is parsed on its own, and a bad value for
one key is reported and skipped without touching the others. Only source
fields are read back; the timeline's base weeks and multiplier are
recomputed from scope and staffing.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, List, Mapping, Optional
from urllib.parse import parse_qs, urlencode, urlsplit

from .parameters import (
    FreeTierEligibility,
    OtherService,
    Parameters,
    Role,
    clamp_count,
    clamp_non_negative,
    clamp_weekly_hours,
    default_parameters,
    normalize_parameters,
)
from .reference_data import InfraCategory, ReferenceData, Scope, load_reference_data
from .timeline import compute_base_weeks, resolve_timeline


logger = logging.getLogger(__name__)

KEY_SCOPE = "scope"
KEY_USERS = "users"
KEY_STORAGE = "storage"
KEY_FREE_TIER = "freeTier"
KEY_ROLES = "roles"
KEY_TIMELINE = "timeline"
KEY_SERVICES = "services"
KEY_RETAINER_HOURS = "retainerHours"
KEY_RESULTS_ONLY = "resultsOnly"
KEY_SHOW_RETAINER = "showRetainer"
KEY_SHOW_INFRASTRUCTURE = "showInfrastructure"
KEY_SHOW_DEVELOPMENT = "showDevelopment"
KEY_PROVIDERS = "providers"

STATE_KEYS = (
    KEY_SCOPE,
    KEY_USERS,
    KEY_STORAGE,
    KEY_FREE_TIER,
    KEY_ROLES,
    KEY_TIMELINE,
    KEY_SERVICES,
    KEY_RETAINER_HOURS,
    KEY_RESULTS_ONLY,
    KEY_SHOW_RETAINER,
    KEY_SHOW_INFRASTRUCTURE,
    KEY_SHOW_DEVELOPMENT,
    KEY_PROVIDERS,
)

VISIBILITY_KEYS = {
    KEY_RESULTS_ONLY: "results_only",
    KEY_SHOW_RETAINER: "show_retainer",
    KEY_SHOW_INFRASTRUCTURE: "show_infrastructure",
    KEY_SHOW_DEVELOPMENT: "show_development",
}

_NUMERIC_RE = re.compile(r"^\s*[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?\s*$")


class StateDecodeError(ValueError):
    """A single state key could not be decoded."""

    def __init__(self, key: str, message: str):
        super().__init__(f"{key}: {message}")
        self.key = key


@dataclass
class DecodeResult:
    params: Parameters
    errors: List[StateDecodeError] = field(default_factory=list)
    applied: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


# ------------------------------------------------------------------- encode
def _to_json(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def _format_number(value: Any) -> str:
    number = float(value)
    if number.is_integer():
        return str(int(number))
    return repr(number)


def _format_bool(value: bool) -> str:
    return "true" if value else "false"


def encode_state(params: Parameters, reference: Optional[ReferenceData] = None) -> Dict[str, str]:
    reference = reference or load_reference_data()
    calculator = reference.timeline_calculator
    base_weeks = compute_base_weeks(
        reference.scope(params.scope), params.total_weekly_hours, calculator
    )
    timeline = resolve_timeline(base_weeks, params.adjusted_weeks, calculator)

    state = {
        KEY_SCOPE: params.scope.value,
        KEY_USERS: _format_number(params.user_count),
        KEY_STORAGE: _format_number(params.gb_storage),
        KEY_FREE_TIER: _to_json({c.url_key: params.free_tier.is_free(c) for c in InfraCategory}),
        KEY_ROLES: _to_json(
            [
                {
                    "id": r.id,
                    "title": r.title,
                    "hourlyRate": r.hourly_rate,
                    "weeklyHours": r.weekly_hours,
                }
                for r in params.roles
            ]
        ),
        KEY_TIMELINE: _to_json(
            {
                "baseWeeks": timeline.base_weeks,
                "adjustedWeeks": timeline.adjusted_weeks,
                "multiplier": timeline.multiplier,
            }
        ),
        KEY_SERVICES: _to_json([_service_to_dict(s) for s in params.other_services]),
        KEY_RETAINER_HOURS: _format_number(params.retainer_hours),
        KEY_PROVIDERS: _to_json({c.url_key: name for c, name in params.providers.items()}),
    }
    for key, attr in VISIBILITY_KEYS.items():
        state[key] = _format_bool(getattr(params.visibility, attr))
    return state


def _service_to_dict(service: OtherService) -> Dict[str, Any]:
    data: Dict[str, Any] = {"id": service.id, "name": service.name, "cost": service.cost}
    if service.description:
        data["description"] = service.description
    return data


# ------------------------------------------------------------------- decode
def _parse_number(key: str, raw: Any) -> float:
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        raw = str(raw)
    if not isinstance(raw, str) or not _NUMERIC_RE.match(raw):
        raise StateDecodeError(key, f"not a number: {raw!r}")
    return clamp_non_negative(float(raw))


def _parse_bool(key: str, raw: str) -> bool:
    value = str(raw).strip().lower()
    if value == "true":
        return True
    if value == "false":
        return False
    raise StateDecodeError(key, f"expected 'true' or 'false', got {raw!r}")


def _parse_json(key: str, raw: str, expected: type) -> Any:
    try:
        value = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise StateDecodeError(key, f"malformed JSON ({exc})") from exc
    except RecursionError as exc:
        raise StateDecodeError(key, "JSON nested too deeply") from exc
    if not isinstance(value, expected):
        raise StateDecodeError(key, f"expected JSON {expected.__name__}, got {type(value).__name__}")
    return value


def _json_number(key: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise StateDecodeError(key, f"not a number: {value!r}")
    if isinstance(value, str):
        return _parse_number(key, value)
    return clamp_non_negative(value)


def _decode_roles(raw: str) -> tuple:
    items = _parse_json(KEY_ROLES, raw, list)
    roles = []
    seen = set()
    for item in items:
        if not isinstance(item, dict) or not item.get("id"):
            raise StateDecodeError(KEY_ROLES, f"role entry without id: {item!r}")
        role_id = str(item["id"])
        if role_id in seen:
            continue
        seen.add(role_id)
        title = item.get("title")
        roles.append(
            Role(
                id=role_id,
                title=role_id if title is None else str(title),
                hourly_rate=_json_number(KEY_ROLES, item.get("hourlyRate", 0)),
                weekly_hours=clamp_weekly_hours(_json_number(KEY_ROLES, item.get("weeklyHours", 0))),
            )
        )
    return tuple(roles)


def _decode_services(raw: str) -> tuple:
    items = _parse_json(KEY_SERVICES, raw, list)
    services = []
    for index, item in enumerate(items):
        if not isinstance(item, dict) or not str(item.get("name") or "").strip():
            raise StateDecodeError(KEY_SERVICES, f"service entry without name: {item!r}")
        description = item.get("description")
        services.append(
            OtherService(
                id=str(item.get("id") or index),
                name=str(item["name"]),
                cost=_json_number(KEY_SERVICES, item.get("cost", 0)),
                description=str(description) if description else None,
            )
        )
    return tuple(services)


def _decode_free_tier(raw: str, current: FreeTierEligibility) -> FreeTierEligibility:
    data = _parse_json(KEY_FREE_TIER, raw, dict)
    flags = current
    for key, value in data.items():
        category = InfraCategory.from_url_key(key)
        if category is None:
            continue
        if not isinstance(value, bool):
            raise StateDecodeError(KEY_FREE_TIER, f"{key} must be a boolean, got {value!r}")
        flags = flags.with_flag(category, value)
    return flags


def _decode_providers(raw: str) -> Dict[InfraCategory, str]:
    data = _parse_json(KEY_PROVIDERS, raw, dict)
    providers = {}
    for key, value in data.items():
        category = InfraCategory.from_url_key(key)
        if category is None or not category.accepts_provider:
            continue
        if value:
            providers[category] = str(value)
    return providers


def _decode_timeline(raw: str) -> Optional[float]:
    data = _parse_json(KEY_TIMELINE, raw, dict)
    if data.get("adjustedWeeks") is None:
        return None
    return _json_number(KEY_TIMELINE, data["adjustedWeeks"])


def decode_state(
    query: Optional[Mapping[str, Any]],
    base: Optional[Parameters] = None,
    reference: Optional[ReferenceData] = None,
) -> DecodeResult:
    """
    Rebuild Parameters from a query mapping.

    Args:
        query: Mapping of state keys to string values; unknown keys are ignored
        base: Parameters used for any key that is absent or invalid
            (defaults from the reference data when omitted)
        reference: Reference data; loaded from the packaged file when omitted

    Returns:
        DecodeResult with the rebuilt Parameters, one StateDecodeError per
        rejected key, and the list of keys that were applied
    """
    reference = reference or load_reference_data()
    params = base if base is not None else default_parameters(reference)
    result = DecodeResult(params=params)
    if not query:
        return result

    updates: Dict[str, Any] = {}
    requested_weeks: Optional[float] = None
    providers: Optional[Dict[InfraCategory, str]] = None

    def attempt(key: str, apply: Callable[[str], None]) -> None:
        if key not in query:
            return
        raw = query[key]
        if isinstance(raw, (list, tuple)):
            raw = raw[-1] if raw else ""
        try:
            apply(raw)
        except StateDecodeError as exc:
            logger.warning("Skipping state key %s: %s", key, exc)
            result.errors.append(exc)
        else:
            result.applied.append(key)

    def apply_scope(raw: str) -> None:
        scope = Scope.parse(raw)
        if scope is None:
            raise StateDecodeError(KEY_SCOPE, f"unknown scope {raw!r}")
        updates["scope"] = scope

    def apply_timeline(raw: str) -> None:
        nonlocal requested_weeks
        requested_weeks = _decode_timeline(raw)

    def apply_providers(raw: str) -> None:
        nonlocal providers
        providers = _decode_providers(raw)

    attempt(KEY_SCOPE, apply_scope)
    attempt(KEY_USERS, lambda raw: updates.__setitem__("user_count", clamp_count(_parse_number(KEY_USERS, raw))))
    attempt(KEY_STORAGE, lambda raw: updates.__setitem__("gb_storage", clamp_count(_parse_number(KEY_STORAGE, raw))))
    attempt(KEY_RETAINER_HOURS, lambda raw: updates.__setitem__("retainer_hours", _parse_number(KEY_RETAINER_HOURS, raw)))
    attempt(KEY_FREE_TIER, lambda raw: updates.__setitem__("free_tier", _decode_free_tier(raw, params.free_tier)))
    attempt(KEY_ROLES, lambda raw: updates.__setitem__("roles", _decode_roles(raw)))
    attempt(KEY_SERVICES, lambda raw: updates.__setitem__("other_services", _decode_services(raw)))
    attempt(KEY_PROVIDERS, apply_providers)
    attempt(KEY_TIMELINE, apply_timeline)

    visibility = params.visibility
    for key, attr in VISIBILITY_KEYS.items():
        flags: Dict[str, bool] = {}
        attempt(key, lambda raw, k=key, a=attr: flags.__setitem__(a, _parse_bool(k, raw)))
        if flags:
            visibility = replace(visibility, **flags)
    updates["visibility"] = visibility

    decoded = replace(params, **updates)
    if providers is not None:
        decoded = _apply_providers(decoded, providers, reference, result)
    if KEY_TIMELINE in result.applied:
        decoded = replace(decoded, adjusted_weeks=requested_weeks)
    elif "scope" in updates or "roles" in updates:
        decoded = replace(decoded, adjusted_weeks=None)

    result.params = normalize_parameters(decoded, reference)
    return result


def _apply_providers(
    params: Parameters,
    providers: Dict[InfraCategory, str],
    reference: ReferenceData,
    result: DecodeResult,
) -> Parameters:
    accepted = {}
    for category, name in providers.items():
        if reference.find_provider(params.scope, category, name) is None:
            error = StateDecodeError(
                KEY_PROVIDERS, f"{name!r} is not offered for {category.value} at {params.scope.value}"
            )
            logger.warning("Ignoring provider selection: %s", error)
            result.errors.append(error)
            continue
        accepted[category] = name
    return replace(params, providers=accepted)


# -------------------------------------------------------------- url helpers
def query_string(params: Parameters, reference: Optional[ReferenceData] = None) -> str:
    return urlencode(encode_state(params, reference))


def parse_query_string(text: str) -> Dict[str, str]:
    """Flatten a query string (or full URL) into ``{key: last value}``."""
    if not text:
        return {}
    if "://" in text or text.startswith("/"):
        text = urlsplit(text).query
    parsed = parse_qs(text.lstrip("?"), keep_blank_values=True)
    return {key: values[-1] for key, values in parsed.items() if values}
