"""Unit tests for decoding static unit and building definitions."""

import pytest

from travia.domain import catalog
from travia.domain.enums import ResourceType, Tribe, UnitCategory
from travia.domain.errors import InvalidArgument


def _unit_row(**overrides):
    row = {
        "key": "clubswinger",
        "name": "Clubswinger",
        "tribe": "teuton",
        "attack": 40,
        "defense_infantry": 20,
        "defense_cavalry": 5,
        "speed": 7,
        "carry_capacity": 60,
        "costs": '{"wood": 95, "clay": 75, "iron": 40, "crop": 40}',
        "training_time": 240,
    }
    row.update(overrides)
    return row


def test_unit_rows_decode_json_costs():
    (unit,) = catalog.decode_unit_defs([_unit_row()])

    assert unit.key == "clubswinger"
    assert unit.tribe == Tribe.TEUTON
    assert unit.category == UnitCategory.INFANTRY
    assert unit.costs[ResourceType.WOOD] == 95


def test_building_rows_accept_dicts_and_missing_blobs():
    (building,) = catalog.decode_building_defs(
        [{"key": "granary", "name": "Granary", "costs": {"wood": 80}, "production": None}]
    )

    assert building.production == {}
    assert building.costs == {ResourceType.WOOD: 80}
    assert building.max_level == 20


@pytest.mark.parametrize(
    "overrides",
    [
        {"attack": -1},
        {"speed": 0},
        {"tribe": "martian"},
        {"costs": "{not json"},
        {"costs": '{"gold": 5}'},
    ],
)
def test_malformed_unit_rows_are_rejected(overrides):
    with pytest.raises(InvalidArgument):
        catalog.decode_unit_defs([_unit_row(**overrides)])


def test_duplicate_keys_are_rejected():
    units = catalog.decode_unit_defs([_unit_row(), _unit_row()])

    with pytest.raises(InvalidArgument):
        catalog.build_catalog(units, [])


def test_default_catalog_contains_bundled_rows():
    defaults = catalog.default_catalog()

    assert len(defaults.units) == len(catalog.DEFAULT_UNIT_ROWS)
    assert len(defaults.buildings) == len(catalog.DEFAULT_BUILDING_ROWS)
    assert defaults.units["equites_imperatoris"].category == UnitCategory.CAVALRY
    assert defaults.buildings["wall"].defense_bonus_per_level == pytest.approx(0.02)
