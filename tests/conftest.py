import copy
import json

import pytest

from studio_pricing.parameters import Parameters, Role
from studio_pricing.reference_data import DEFAULT_REFERENCE_PATH, ReferenceData, Scope, load_reference_data


@pytest.fixture(scope="session")
def reference():
    return load_reference_data()


@pytest.fixture
def raw_reference():
    """Fresh, mutable copy of the packaged reference document."""
    with open(DEFAULT_REFERENCE_PATH, "r", encoding="utf-8") as fp:
        return copy.deepcopy(json.load(fp))


@pytest.fixture
def long_project_reference(raw_reference):
    # 13 months of effort -> 52-week base schedule
    raw_reference["scopes"]["production"]["development_time_multiplier"] = 13
    return ReferenceData(raw_reference)


@pytest.fixture
def mvp_params():
    """mvp, one role at $100/h for 20 h/week, no usage."""
    return Parameters(
        scope=Scope.MVP,
        roles=(Role(id="dev", title="Developer", hourly_rate=100, weekly_hours=20),),
        user_count=0,
        gb_storage=0,
        retainer_hours=0,
    )
