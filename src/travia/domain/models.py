"""Dataclasses describing every entity the simulation core touches.

These are plain in-memory records. Stores translate between them and the
underlying persistence (SQLAlchemy or otherwise); the rule modules only ever
see these types. References between entities are ids, never object links.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import NewType

from .enums import (
    BattleWinner,
    JobCategory,
    JobStatus,
    MovementStatus,
    MovementType,
    ResourceType,
    Tribe,
    UnitCategory,
)

# --- Strongly typed identifiers -------------------------------------------------

PlayerID = NewType("PlayerID", int)
VillageID = NewType("VillageID", int)
BuildingID = NewType("BuildingID", int)
JobID = NewType("JobID", int)
MovementID = NewType("MovementID", int)
BattleID = NewType("BattleID", int)
SpyReportID = NewType("SpyReportID", int)
UnitKey = NewType("UnitKey", str)
BuildingKey = NewType("BuildingKey", str)

ResourceAmounts = dict[ResourceType, float]
Composition = dict[UnitKey, int]


# --- Static reference data ------------------------------------------------------


@dataclass(frozen=True, slots=True)
class UnitTypeDef:
    """Catalog entry for a trainable unit."""

    key: UnitKey
    name: str
    tribe: Tribe
    category: UnitCategory
    attack: int
    defense_infantry: int
    defense_cavalry: int
    speed: float
    carry_capacity: int
    costs: dict[ResourceType, int] = field(default_factory=dict)
    training_time: int = 60


@dataclass(frozen=True, slots=True)
class BuildingTypeDef:
    """Catalog entry for a building."""

    key: BuildingKey
    name: str
    max_level: int = 20
    costs: dict[ResourceType, int] = field(default_factory=dict)
    construction_time: int = 60
    production: dict[ResourceType, int] = field(default_factory=dict)
    defense_bonus_per_level: float = 0.0
    training_bonus_per_level: float = 0.0


@dataclass(frozen=True, slots=True)
class Catalog:
    """All static definitions, keyed for lookup."""

    units: dict[UnitKey, UnitTypeDef] = field(default_factory=dict)
    buildings: dict[BuildingKey, BuildingTypeDef] = field(default_factory=dict)


# --- Mutable world state --------------------------------------------------------


@dataclass(slots=True)
class ResourceStock:
    """Amount, storage cap and hourly production of one resource."""

    amount: float
    capacity: float
    rate_per_hour: float = 0.0


@dataclass(slots=True)
class BuildingInstance:
    """A building standing in a village slot. ``id`` is assigned by the store."""

    village_id: VillageID
    building_key: BuildingKey
    level: int
    slot: int
    id: BuildingID | None = None


@dataclass(slots=True)
class TroopStack:
    """Troops of one unit type owned by or stationed in a village.

    ``in_village`` are home and available, ``in_attack`` are away on an attack
    or raid, ``in_defense`` are reinforcements received from other villages and
    ``in_support`` are own troops stationed elsewhere.
    """

    village_id: VillageID
    unit_key: UnitKey
    count: int = 0
    in_village: int = 0
    in_attack: int = 0
    in_defense: int = 0
    in_support: int = 0


@dataclass(slots=True)
class Village:
    """A village with its resources, buildings (keyed by slot) and troops."""

    id: VillageID
    owner_id: PlayerID
    name: str
    x: int
    y: int
    resources: dict[ResourceType, ResourceStock]
    last_updated: datetime
    buildings: dict[int, BuildingInstance] = field(default_factory=dict)
    troops: dict[UnitKey, TroopStack] = field(default_factory=dict)
    version: int = 0


@dataclass(slots=True)
class QueueJob:
    """A timed building upgrade or unit training order."""

    id: JobID
    village_id: VillageID
    category: JobCategory
    target: str
    status: JobStatus
    started_at: datetime
    completes_at: datetime | None = None
    target_level: int | None = None
    slot: int | None = None
    count: int = 0
    cancel_reason: str | None = None
    version: int = 0


@dataclass(slots=True)
class Movement:
    """Troops or merchants in transit between two villages."""

    id: MovementID
    player_id: PlayerID
    origin_id: VillageID
    destination_id: VillageID
    type: MovementType
    troops: Composition
    started_at: datetime
    arrives_at: datetime
    status: MovementStatus = MovementStatus.TRAVELLING
    resources: ResourceAmounts = field(default_factory=dict)
    returns_at: datetime | None = None
    battle_id: BattleID | None = None
    cancel_reason: str | None = None
    version: int = 0


@dataclass(frozen=True, slots=True)
class BattleResult:
    """Append-only battle report."""

    id: BattleID | None
    movement_id: MovementID
    attacker_village_id: VillageID
    defender_village_id: VillageID
    attacker_troops: Composition
    defender_troops: Composition
    attacker_losses: Composition
    defender_losses: Composition
    loot: dict[ResourceType, int]
    winner: BattleWinner
    attack_power: float
    defense_power: float
    occurred_at: datetime


@dataclass(frozen=True, slots=True)
class SpyReport:
    """Append-only outcome of a spy mission.

    A caught spy learns nothing; otherwise the report holds what the target
    village looked like when the spies arrived.
    """

    id: SpyReportID | None
    movement_id: MovementID
    spy_village_id: VillageID
    target_village_id: VillageID
    caught: bool
    trap_level: int
    occurred_at: datetime
    resources: dict[ResourceType, int] = field(default_factory=dict)
    buildings: dict[BuildingKey, int] = field(default_factory=dict)
    troops: Composition = field(default_factory=dict)
