"""Unit tests for resource production."""

from __future__ import annotations

import math
from datetime import UTC, datetime, timedelta

import pytest
from hypothesis import given
from hypothesis import strategies as st

from travia.domain import models as dm
from travia.domain import resources
from travia.domain.catalog import default_catalog
from travia.domain.enums import RESOURCE_ORDER, ResourceType
from travia.domain.errors import InvalidArgument
from travia.domain.rules_config import ProductionRules, SimulationConfig

T0 = datetime(2024, 1, 1, tzinfo=UTC)


def _village(
    amount: float = 1000.0,
    *,
    capacity: float = 5000.0,
    rate: float = 10.0,
) -> dm.Village:
    return dm.Village(
        id=dm.VillageID(1),
        owner_id=dm.PlayerID(1),
        name="Capital",
        x=0,
        y=0,
        resources={
            resource: dm.ResourceStock(amount=amount, capacity=capacity, rate_per_hour=rate)
            for resource in RESOURCE_ORDER
        },
        last_updated=T0,
    )


def test_one_hour_of_production():
    village = _village()

    delta = resources.accumulate(village, 3600)

    assert delta.amounts[ResourceType.WOOD] == pytest.approx(1010.0)
    assert delta.gained[ResourceType.CROP] == pytest.approx(10.0)
    assert delta.last_updated == T0 + timedelta(hours=1)
    # accumulate never mutates
    assert village.resources[ResourceType.WOOD].amount == 1000.0


def test_apply_delta_writes_amounts_and_timestamp():
    village = _village()

    resources.apply_delta(village, resources.accumulate(village, 1800))

    assert village.resources[ResourceType.IRON].amount == pytest.approx(1005.0)
    assert village.last_updated == T0 + timedelta(minutes=30)


def test_apply_delta_rejects_other_village():
    village = _village()
    delta = resources.accumulate(village, 60)
    village.id = dm.VillageID(2)

    with pytest.raises(InvalidArgument):
        resources.apply_delta(village, delta)


def test_production_clamps_at_capacity():
    village = _village(4995.0, rate=100.0)

    delta = resources.accumulate(village, 3600)

    assert delta.amounts[ResourceType.WOOD] == 5000.0
    assert delta.gained[ResourceType.WOOD] == pytest.approx(5.0)


def test_amount_above_capacity_is_not_reduced():
    village = _village(6000.0)

    delta = resources.accumulate(village, 3600)

    assert delta.amounts[ResourceType.CLAY] == 6000.0
    assert delta.gained[ResourceType.CLAY] == 0.0


def test_zero_elapsed_is_a_no_op():
    village = _village()

    delta = resources.accumulate(village, 0)

    assert delta.is_empty
    assert delta.last_updated == T0
    assert delta.amounts[ResourceType.WOOD] == 1000.0


@pytest.mark.parametrize("elapsed", [-1.0, math.inf, math.nan])
def test_invalid_elapsed_is_rejected(elapsed):
    with pytest.raises(InvalidArgument):
        resources.accumulate(_village(), elapsed)


def test_negative_rate_is_rejected():
    with pytest.raises(InvalidArgument):
        resources.accumulate(_village(rate=-5.0), 60)


def test_speed_multiplier_scales_production():
    rules = SimulationConfig(production=ProductionRules(speed_multiplier=3.0))

    delta = resources.accumulate(_village(), 3600, rules=rules)

    assert delta.amounts[ResourceType.WOOD] == pytest.approx(1030.0)


@given(
    amount=st.floats(min_value=0, max_value=10_000),
    capacity=st.floats(min_value=0, max_value=10_000),
    rate=st.floats(min_value=0, max_value=5_000),
    elapsed=st.floats(min_value=0, max_value=1_000_000),
)
def test_production_is_monotonic_and_bounded(amount, capacity, rate, elapsed):
    village = _village(amount, capacity=capacity, rate=rate)

    delta = resources.accumulate(village, elapsed)

    for resource in RESOURCE_ORDER:
        new_amount = delta.amounts[resource]
        assert new_amount >= amount
        assert new_amount <= max(capacity, amount)


def test_production_rates_follow_building_levels():
    village = _village()
    village.buildings[1] = dm.BuildingInstance(
        village_id=village.id, building_key=dm.BuildingKey("woodcutter"), level=3, slot=1
    )
    village.buildings[2] = dm.BuildingInstance(
        village_id=village.id, building_key=dm.BuildingKey("crop_field"), level=2, slot=2
    )

    rates = resources.production_rates(village, default_catalog())

    assert rates[ResourceType.WOOD] == 100.0
    assert rates[ResourceType.CROP] == 50.0
    assert rates[ResourceType.CLAY] == 10.0


def test_refresh_production_rates_updates_stocks():
    village = _village(rate=0.0)
    village.buildings[1] = dm.BuildingInstance(
        village_id=village.id, building_key=dm.BuildingKey("iron_mine"), level=1, slot=1
    )

    resources.refresh_production_rates(village, default_catalog())

    assert village.resources[ResourceType.IRON].rate_per_hour == 40.0
    assert village.resources[ResourceType.WOOD].rate_per_hour == 10.0


def test_add_resources_respects_capacity():
    village = _village(4900.0)

    stored = resources.add_resources(village, {ResourceType.WOOD: 300.0, ResourceType.CLAY: 50.0})

    assert stored == {ResourceType.WOOD: 100.0, ResourceType.CLAY: 50.0}
    assert village.resources[ResourceType.WOOD].amount == 5000.0


def test_remove_resources_never_goes_negative():
    village = _village(100.0)

    resources.remove_resources(village, {ResourceType.WOOD: 250.0, ResourceType.IRON: 40.0})

    assert village.resources[ResourceType.WOOD].amount == 0.0
    assert village.resources[ResourceType.IRON].amount == 60.0


def test_negative_transfers_are_rejected():
    village = _village()

    with pytest.raises(InvalidArgument):
        resources.add_resources(village, {ResourceType.WOOD: -1.0})
    with pytest.raises(InvalidArgument):
        resources.remove_resources(village, {ResourceType.WOOD: -1.0})
