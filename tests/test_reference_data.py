import pytest

from studio_pricing.reference_data import (
    InfraCategory,
    ProviderOption,
    ReferenceData,
    Scope,
    SCALING_CATEGORIES,
)


def test_packaged_reference_loads_every_scope(reference):
    for scope in Scope:
        definition = reference.scope(scope)
        assert definition.development_time_multiplier > 0
        for category in InfraCategory:
            if category.accepts_provider:
                assert definition.base_cost(category) >= 0


def test_mvp_figures(reference):
    mvp = reference.scope(Scope.MVP)
    assert mvp.label == "Minimum Viable Product"
    assert mvp.development_time_multiplier == 2.5
    assert mvp.base_cost(InfraCategory.STORAGE) == 15
    assert mvp.base_cost(InfraCategory.AUTHENTICATION) == 10
    assert mvp.role_hours["seniorDev"] == 50

    assert reference.storage_calculator.base_free_gb == 5
    assert reference.storage_calculator.price_per_gb_per_month == 0.023
    assert reference.auth_calculator.free_maus == 7000
    assert reference.auth_calculator.price_per_mau_beyond_free == 0.0015


def test_user_multiplier_only_for_scaling_categories(reference):
    assert set(reference.user_cost_multiplier) == set(SCALING_CATEGORIES)
    assert reference.user_cost_multiplier[InfraCategory.HOSTING] == 0.2


def test_find_provider(reference):
    option = reference.find_provider(Scope.MVP, InfraCategory.HOSTING, "Vercel Pro")
    assert isinstance(option, ProviderOption)
    assert option.base_cost == 20
    assert reference.find_provider(Scope.MVP, InfraCategory.HOSTING, "No Such Host") is None
    assert reference.find_provider(Scope.MVP, InfraCategory.HOSTING, None) is None


def test_missing_provider_list_is_empty(raw_reference):
    del raw_reference["providers"]["poc"]["cdn"]
    del raw_reference["providers"]["production"]
    reference = ReferenceData(raw_reference)

    assert reference.providers(Scope.POC, InfraCategory.CDN) == []
    assert reference.providers(Scope.PRODUCTION, InfraCategory.HOSTING) == []
    assert reference.providers(Scope.MVP, InfraCategory.OTHER_SERVICES) == []
    assert reference.providers(Scope.POC, InfraCategory.HOSTING)


def test_providers_returns_copy(reference):
    options = reference.providers(Scope.MVP, InfraCategory.DATABASE)
    options.clear()
    assert reference.providers(Scope.MVP, InfraCategory.DATABASE)


def test_validation_lists_missing_entries(raw_reference):
    del raw_reference["scopes"]["poc"]
    del raw_reference["scopes"]["mvp"]["base_costs"]["storage"]
    del raw_reference["auth_calculator"]["free_maus"]

    with pytest.raises(ValueError) as excinfo:
        ReferenceData(raw_reference)
    message = str(excinfo.value)
    assert "scopes.poc" in message
    assert "scopes.mvp.base_costs.storage" in message
    assert "auth_calculator.free_maus" in message


def test_validation_rejects_missing_section(raw_reference):
    del raw_reference["storage_calculator"]
    with pytest.raises(ValueError, match="storage_calculator"):
        ReferenceData(raw_reference)


def test_validation_rejects_non_positive_multiplier(raw_reference):
    raw_reference["scopes"]["mvp"]["development_time_multiplier"] = 0
    with pytest.raises(ValueError, match="development_time_multiplier"):
        ReferenceData(raw_reference)


@pytest.mark.parametrize(
    "raw, expected",
    [("mvp", Scope.MVP), ("POC", Scope.POC), (" production ", Scope.PRODUCTION), ("enterprise", None), (None, None)],
)
def test_scope_parse(raw, expected):
    assert Scope.parse(raw) is expected


def test_category_url_keys():
    assert InfraCategory.OTHER_SERVICES.url_key == "otherServices"
    assert InfraCategory.from_url_key("otherServices") is InfraCategory.OTHER_SERVICES
    assert InfraCategory.from_url_key("other_services") is InfraCategory.OTHER_SERVICES
    assert InfraCategory.from_url_key("cicd") is InfraCategory.CICD
    assert InfraCategory.from_url_key("email") is None
    assert not InfraCategory.OTHER_SERVICES.accepts_provider
    assert InfraCategory.CICD.label == "CI/CD"
