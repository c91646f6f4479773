import json

import pytest

from studio_pricing.cost_engine import CostEngine
from studio_pricing.parameters import (
    FreeTierEligibility,
    OtherService,
    Parameters,
    Role,
    SectionVisibility,
    add_other_service,
    default_parameters,
    normalize_parameters,
    set_adjusted_weeks,
)
from studio_pricing.reference_data import InfraCategory, Scope
from studio_pricing.state_codec import (
    STATE_KEYS,
    StateDecodeError,
    decode_state,
    encode_state,
    parse_query_string,
    query_string,
)


def round_trip(params, reference):
    result = decode_state(encode_state(params, reference), reference=reference)
    assert result.ok, result.errors
    return result.params


def _full_params(reference):
    params = Parameters(
        scope=Scope.PRODUCTION,
        roles=(
            Role(id="lead", title="Lead Engineer", hourly_rate=180, weekly_hours=40),
            Role(id="ux", title="UX Designer", hourly_rate=112.5, weekly_hours=12.5),
        ),
        user_count=25000,
        gb_storage=750,
        free_tier=FreeTierEligibility(cdn=True, other_services=True),
        providers={InfraCategory.HOSTING: "Google Cloud Run", InfraCategory.STORAGE: "Azure Blob Storage"},
        other_services=(
            OtherService(id="mail", name="Email Service", cost=20, description="Transactional mail"),
            OtherService(id="mon", name="Monitoring", cost=35.75),
        ),
        retainer_hours=6.5,
        visibility=SectionVisibility(show_retainer=False, results_only=True),
    )
    return set_adjusted_weeks(params, 27, reference)


def test_encode_writes_every_key(reference):
    state = encode_state(default_parameters(reference), reference)
    assert set(state) == set(STATE_KEYS)
    assert all(isinstance(v, str) for v in state.values())


def test_encode_formats(reference):
    state = encode_state(_full_params(reference), reference)
    assert state["scope"] == "production"
    assert state["users"] == "25000"
    assert state["retainerHours"] == "6.5"
    assert state["resultsOnly"] == "true"
    assert state["showRetainer"] == "false"

    free_tier = json.loads(state["freeTier"])
    assert free_tier["cdn"] is True
    assert free_tier["otherServices"] is True
    assert free_tier["hosting"] is False

    roles = json.loads(state["roles"])
    assert roles[1] == {"id": "ux", "title": "UX Designer", "hourlyRate": 112.5, "weeklyHours": 12.5}

    services = json.loads(state["services"])
    assert services[1] == {"id": "mon", "name": "Monitoring", "cost": 35.75}

    assert json.loads(state["providers"]) == {"hosting": "Google Cloud Run", "storage": "Azure Blob Storage"}


def test_encode_writes_derived_timeline(reference):
    params = default_parameters(reference)
    timeline = json.loads(encode_state(params, reference)["timeline"])
    assert timeline == {"baseWeeks": 10, "adjustedWeeks": 10, "multiplier": 1.0}

    adjusted = json.loads(encode_state(set_adjusted_weeks(params, 15, reference), reference)["timeline"])
    assert adjusted == {"baseWeeks": 10, "adjustedWeeks": 15, "multiplier": 1.5}


def test_round_trip_defaults(reference):
    params = default_parameters(reference)
    assert round_trip(params, reference) == params


def test_round_trip_full_state(reference):
    params = _full_params(reference)
    assert params.adjusted_weeks == 27
    assert round_trip(params, reference) == params


def test_round_trip_empty_roles_and_zero_users(reference):
    params = normalize_parameters(Parameters(scope=Scope.POC, user_count=0, gb_storage=0), reference)
    decoded = round_trip(params, reference)
    assert decoded == params
    assert decoded.roles == ()
    assert decoded.adjusted_weeks is None


def test_round_trip_many_services(reference):
    params = default_parameters(reference)
    for i in range(50):
        params = add_other_service(params, f"Service {i}", i * 1.25, service_id=f"svc{i}")
    decoded = round_trip(params, reference)
    assert decoded.other_services == params.other_services


def test_round_trip_preserves_breakdown(reference):
    params = _full_params(reference)
    engine = CostEngine(reference)
    original = engine.calculate(params)
    restored = engine.calculate(round_trip(params, reference))
    assert restored.totals == original.totals
    assert restored.infrastructure == original.infrastructure
    assert restored.timeline == original.timeline


def test_empty_input_returns_base_unchanged(reference):
    base = _full_params(reference)
    result = decode_state({}, base=base, reference=reference)
    assert result.params is base
    assert result.ok
    assert decode_state(None, reference=reference).params == default_parameters(reference)


def test_malformed_free_tier_is_isolated(reference):
    state = encode_state(_full_params(reference), reference)
    state["freeTier"] = "{not json"
    result = decode_state(state, reference=reference)

    assert [e.key for e in result.errors] == ["freeTier"]
    assert "freeTier" not in result.applied
    # every other key still applied
    assert result.params.scope is Scope.PRODUCTION
    assert result.params.user_count == 25000
    assert result.params.free_tier == FreeTierEligibility()


def test_free_tier_merges_onto_base(reference):
    base = Parameters(free_tier=FreeTierEligibility(hosting=True))
    result = decode_state({"freeTier": '{"database": true, "email": true}'}, base=base, reference=reference)
    assert result.params.free_tier == FreeTierEligibility(hosting=True, database=True)


def test_free_tier_rejects_non_boolean(reference):
    result = decode_state({"freeTier": '{"cdn": "yes"}'}, reference=reference)
    assert [e.key for e in result.errors] == ["freeTier"]
    assert result.params.free_tier == FreeTierEligibility()


@pytest.mark.parametrize(
    "raw, expected",
    [("1500", 1500), ("1e3", 1000), ("12.9", 12), ("-40", 0), ("0", 0)],
)
def test_decode_users(reference, raw, expected):
    result = decode_state({"users": raw}, reference=reference)
    assert result.ok
    assert result.params.user_count == expected


@pytest.mark.parametrize("raw", ["abc", "", "NaN", "inf", "12abc"])
def test_bad_number_keeps_base(reference, raw):
    result = decode_state({"users": raw, "storage": "42"}, reference=reference)
    assert [e.key for e in result.errors] == ["users"]
    assert isinstance(result.errors[0], StateDecodeError)
    assert result.params.user_count == default_parameters(reference).user_count
    assert result.params.gb_storage == 42


def test_bad_boolean_keeps_base(reference):
    result = decode_state({"showRetainer": "yes", "showDevelopment": "FALSE"}, reference=reference)
    assert [e.key for e in result.errors] == ["showRetainer"]
    assert result.params.visibility.show_retainer
    assert not result.params.visibility.show_development


def test_unknown_keys_are_ignored(reference):
    result = decode_state({"utm_source": "newsletter", "retainerHours": "4"}, reference=reference)
    assert result.ok
    assert result.applied == ["retainerHours"]
    assert result.params.retainer_hours == 4


def test_unknown_scope_is_rejected(reference):
    result = decode_state({"scope": "enterprise"}, reference=reference)
    assert [e.key for e in result.errors] == ["scope"]
    assert result.params.scope is Scope.MVP


def test_roles_without_id_reject_the_key(reference):
    result = decode_state({"roles": '[{"title": "Ghost", "hourlyRate": 10}]'}, reference=reference)
    assert [e.key for e in result.errors] == ["roles"]
    assert result.params.roles == default_parameters(reference).roles


def test_deeply_nested_json_is_isolated(reference):
    result = decode_state({"roles": "[" * 100000, "users": "500"}, reference=reference)
    assert [e.key for e in result.errors] == ["roles"]
    assert result.params.user_count == 500
    assert result.params.roles == default_parameters(reference).roles


def test_round_trip_keeps_empty_role_title(reference):
    params = normalize_parameters(
        Parameters(roles=(Role(id="dev", title="", hourly_rate=100, weekly_hours=20),)), reference
    )
    assert round_trip(params, reference).roles[0].title == ""
    assert round_trip(params, reference) == params


def test_missing_role_title_falls_back_to_id(reference):
    result = decode_state({"roles": '[{"id": "dev", "hourlyRate": 90}]'}, reference=reference)
    assert result.params.roles[0].title == "dev"


def test_roles_are_deduplicated_and_clamped(reference):
    raw = json.dumps(
        [
            {"id": "dev", "title": "Developer", "hourlyRate": -20, "weeklyHours": 60},
            {"id": "dev", "title": "Copy", "hourlyRate": 500, "weeklyHours": 1},
        ]
    )
    result = decode_state({"roles": raw}, reference=reference)
    assert result.ok
    assert result.params.roles == (Role(id="dev", title="Developer", hourly_rate=0, weekly_hours=40),)


def test_services_default_id_to_position(reference):
    raw = json.dumps([{"name": "CMS", "cost": 29}, {"name": "Search", "cost": "15.5"}])
    services = decode_state({"services": raw}, reference=reference).params.other_services
    assert [s.id for s in services] == ["0", "1"]
    assert services[1].cost == 15.5


def test_unknown_provider_is_dropped(reference):
    raw = json.dumps({"hosting": "Vercel Pro", "database": "Oracle Cloud", "otherServices": "x"})
    result = decode_state({"providers": raw}, reference=reference)
    assert result.params.providers == {InfraCategory.HOSTING: "Vercel Pro"}
    assert [e.key for e in result.errors] == ["providers"]


def test_timeline_from_url_is_clamped(reference):
    result = decode_state({"timeline": '{"baseWeeks": 3, "adjustedWeeks": 100, "multiplier": 9}'}, reference=reference)
    assert result.ok
    # base weeks are recomputed from scope and staffing (mvp -> 10)
    assert result.params.adjusted_weeks == 20


def test_scope_change_without_timeline_resets_override(reference):
    base = set_adjusted_weeks(default_parameters(reference), 15, reference)
    assert decode_state({"scope": "poc"}, base=base, reference=reference).params.adjusted_weeks is None
    assert decode_state({"users": "10"}, base=base, reference=reference).params.adjusted_weeks == 15


def test_list_values_use_last_entry(reference):
    result = decode_state({"users": ["10", "20"]}, reference=reference)
    assert result.params.user_count == 20


def test_query_string_helpers(reference):
    params = _full_params(reference)
    text = query_string(params, reference)
    url = f"https://example.com/calculator?{text}"

    assert parse_query_string(url) == encode_state(params, reference)
    assert parse_query_string("?" + text) == encode_state(params, reference)
    assert parse_query_string("") == {}
    assert decode_state(parse_query_string(url), reference=reference).params == params
