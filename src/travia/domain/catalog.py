"""Static unit and building definitions.

Reference rows arrive from storage with their costs, production and
requirements as JSON blobs. They are validated and decoded exactly once, here,
into the frozen ``UnitTypeDef``/``BuildingTypeDef`` records the rules consume.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from travia.domain.enums import ResourceType, Tribe, UnitCategory
from travia.domain.errors import InvalidArgument
from travia.domain.models import BuildingKey, BuildingTypeDef, Catalog, UnitKey, UnitTypeDef


def _decode_blob(value: Any) -> Any:
    if value is None:
        return {}
    if isinstance(value, str | bytes):
        return json.loads(value)
    return value


class UnitTypeRecord(BaseModel):
    """Raw unit row as stored."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    key: str = Field(min_length=1)
    name: str
    tribe: Tribe
    category: UnitCategory = UnitCategory.INFANTRY
    attack: int = Field(default=0, ge=0)
    defense_infantry: int = Field(default=0, ge=0)
    defense_cavalry: int = Field(default=0, ge=0)
    speed: float = Field(default=1.0, gt=0)
    carry_capacity: int = Field(default=0, ge=0)
    costs: dict[ResourceType, int] = Field(default_factory=dict)
    training_time: int = Field(default=60, gt=0)

    @field_validator("costs", mode="before")
    @classmethod
    def _decode_costs(cls, value: Any) -> Any:
        return _decode_blob(value)

    def to_def(self) -> UnitTypeDef:
        return UnitTypeDef(
            key=UnitKey(self.key),
            name=self.name,
            tribe=self.tribe,
            category=self.category,
            attack=self.attack,
            defense_infantry=self.defense_infantry,
            defense_cavalry=self.defense_cavalry,
            speed=self.speed,
            carry_capacity=self.carry_capacity,
            costs=dict(self.costs),
            training_time=self.training_time,
        )


class BuildingTypeRecord(BaseModel):
    """Raw building row as stored."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    key: str = Field(min_length=1)
    name: str
    max_level: int = Field(default=20, ge=1)
    costs: dict[ResourceType, int] = Field(default_factory=dict)
    construction_time: int = Field(default=60, gt=0)
    production: dict[ResourceType, int] = Field(default_factory=dict)
    defense_bonus_per_level: float = Field(default=0.0, ge=0)
    training_bonus_per_level: float = Field(default=0.0, ge=0)

    @field_validator("costs", "production", mode="before")
    @classmethod
    def _decode_blobs(cls, value: Any) -> Any:
        return _decode_blob(value)

    def to_def(self) -> BuildingTypeDef:
        return BuildingTypeDef(
            key=BuildingKey(self.key),
            name=self.name,
            max_level=self.max_level,
            costs=dict(self.costs),
            construction_time=self.construction_time,
            production=dict(self.production),
            defense_bonus_per_level=self.defense_bonus_per_level,
            training_bonus_per_level=self.training_bonus_per_level,
        )


def decode_unit_defs(rows: Iterable[Mapping[str, Any]]) -> list[UnitTypeDef]:
    """Validate raw unit rows and turn them into definitions."""

    try:
        return [UnitTypeRecord.model_validate(row).to_def() for row in rows]
    except (ValidationError, json.JSONDecodeError) as exc:
        raise InvalidArgument(f"malformed unit definition: {exc}") from exc


def decode_building_defs(rows: Iterable[Mapping[str, Any]]) -> list[BuildingTypeDef]:
    """Validate raw building rows and turn them into definitions."""

    try:
        return [BuildingTypeRecord.model_validate(row).to_def() for row in rows]
    except (ValidationError, json.JSONDecodeError) as exc:
        raise InvalidArgument(f"malformed building definition: {exc}") from exc


def build_catalog(
    units: Iterable[UnitTypeDef],
    buildings: Iterable[BuildingTypeDef],
) -> Catalog:
    """Index definitions by key, rejecting duplicates."""

    unit_map: dict[UnitKey, UnitTypeDef] = {}
    for unit in units:
        if unit.key in unit_map:
            raise InvalidArgument(f"duplicate unit key {unit.key!r}")
        unit_map[unit.key] = unit

    building_map: dict[BuildingKey, BuildingTypeDef] = {}
    for building in buildings:
        if building.key in building_map:
            raise InvalidArgument(f"duplicate building key {building.key!r}")
        building_map[building.key] = building

    return Catalog(units=unit_map, buildings=building_map)


# --- Default reference data -----------------------------------------------------

DEFAULT_UNIT_ROWS: list[dict[str, Any]] = [
    {
        "key": "legionnaire",
        "name": "Legionnaire",
        "tribe": "roman",
        "category": "infantry",
        "attack": 40,
        "defense_infantry": 35,
        "defense_cavalry": 50,
        "speed": 6,
        "carry_capacity": 50,
        "costs": {"wood": 120, "clay": 100, "iron": 150, "crop": 30},
        "training_time": 300,
    },
    {
        "key": "praetorian",
        "name": "Praetorian",
        "tribe": "roman",
        "category": "infantry",
        "attack": 30,
        "defense_infantry": 65,
        "defense_cavalry": 35,
        "speed": 5,
        "carry_capacity": 20,
        "costs": {"wood": 100, "clay": 130, "iron": 160, "crop": 70},
        "training_time": 450,
    },
    {
        "key": "imperian",
        "name": "Imperian",
        "tribe": "roman",
        "category": "infantry",
        "attack": 70,
        "defense_infantry": 40,
        "defense_cavalry": 25,
        "speed": 7,
        "carry_capacity": 50,
        "costs": {"wood": 150, "clay": 160, "iron": 210, "crop": 80},
        "training_time": 480,
    },
    {
        "key": "equites_imperatoris",
        "name": "Equites Imperatoris",
        "tribe": "roman",
        "category": "cavalry",
        "attack": 120,
        "defense_infantry": 65,
        "defense_cavalry": 50,
        "speed": 14,
        "carry_capacity": 100,
        "costs": {"wood": 550, "clay": 440, "iron": 320, "crop": 100},
        "training_time": 600,
    },
    {
        "key": "battering_ram",
        "name": "Battering Ram",
        "tribe": "roman",
        "category": "siege",
        "attack": 60,
        "defense_infantry": 30,
        "defense_cavalry": 75,
        "speed": 4,
        "carry_capacity": 0,
        "costs": {"wood": 900, "clay": 360, "iron": 500, "crop": 70},
        "training_time": 900,
    },
]

DEFAULT_BUILDING_ROWS: list[dict[str, Any]] = [
    {
        "key": "woodcutter",
        "name": "Woodcutter",
        "costs": {"wood": 40, "clay": 100, "iron": 50, "crop": 60},
        "production": {"wood": 30},
    },
    {
        "key": "clay_pit",
        "name": "Clay Pit",
        "costs": {"wood": 80, "clay": 40, "iron": 80, "crop": 50},
        "production": {"clay": 30},
    },
    {
        "key": "iron_mine",
        "name": "Iron Mine",
        "costs": {"wood": 100, "clay": 80, "iron": 30, "crop": 60},
        "production": {"iron": 30},
    },
    {
        "key": "crop_field",
        "name": "Crop Field",
        "costs": {"wood": 70, "clay": 90, "iron": 70, "crop": 20},
        "production": {"crop": 20},
    },
    {
        "key": "main_building",
        "name": "Main Building",
        "costs": {"wood": 70, "clay": 40, "iron": 60, "crop": 20},
    },
    {
        "key": "rally_point",
        "name": "Rally Point",
        "costs": {"wood": 110, "clay": 160, "iron": 90, "crop": 70},
        "defense_bonus_per_level": 0.005,
    },
    {
        "key": "marketplace",
        "name": "Marketplace",
        "costs": {"wood": 80, "clay": 70, "iron": 120, "crop": 70},
    },
    {
        "key": "embassy",
        "name": "Embassy",
        "costs": {"wood": 180, "clay": 130, "iron": 150, "crop": 80},
    },
    {
        "key": "barracks",
        "name": "Barracks",
        "costs": {"wood": 210, "clay": 140, "iron": 260, "crop": 120},
        "training_bonus_per_level": 0.05,
    },
    {
        "key": "wall",
        "name": "City Wall",
        "costs": {"wood": 70, "clay": 90, "iron": 170, "crop": 70},
        "defense_bonus_per_level": 0.02,
    },
    {
        "key": "watchtower",
        "name": "Watchtower",
        "costs": {"wood": 100, "clay": 100, "iron": 100, "crop": 50},
        "defense_bonus_per_level": 0.015,
    },
    {
        "key": "trap",
        "name": "Trapper",
        "costs": {"wood": 80, "clay": 120, "iron": 70, "crop": 90},
        "defense_bonus_per_level": 0.01,
    },
]


def default_catalog() -> Catalog:
    """Catalog built from the bundled reference rows."""

    return build_catalog(
        decode_unit_defs(DEFAULT_UNIT_ROWS),
        decode_building_defs(DEFAULT_BUILDING_ROWS),
    )
