"""Enumerations used across the simulation domain."""

from __future__ import annotations

from enum import StrEnum


class ResourceType(StrEnum):
    """The four village resources."""

    WOOD = "wood"
    CLAY = "clay"
    IRON = "iron"
    CROP = "crop"


RESOURCE_ORDER: tuple[ResourceType, ...] = (
    ResourceType.WOOD,
    ResourceType.CLAY,
    ResourceType.IRON,
    ResourceType.CROP,
)


class Tribe(StrEnum):
    """Playable tribes (plus the NPC tribe)."""

    ROMAN = "roman"
    TEUTON = "teuton"
    GAUL = "gaul"
    NATARS = "natars"


class UnitCategory(StrEnum):
    """Combat category; decides which defense stat an attack is measured against."""

    INFANTRY = "infantry"
    CAVALRY = "cavalry"
    SIEGE = "siege"


class JobCategory(StrEnum):
    """Queue a job occupies within a village."""

    BUILDING = "building"
    TRAINING = "training"


class JobStatus(StrEnum):
    """Queue job lifecycle."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class MovementType(StrEnum):
    """Purpose of a troop or merchant movement."""

    ATTACK = "attack"
    RAID = "raid"
    REINFORCE = "reinforce"
    TRADE = "trade"
    SPY = "spy"
    RETURN = "return"


class MovementStatus(StrEnum):
    """Movement lifecycle. Transitions only move forward."""

    TRAVELLING = "travelling"
    ARRIVED = "arrived"
    RETURNING = "returning"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class MovementEventKind(StrEnum):
    """Transitions reported by the movement resolver."""

    ARRIVED = "arrived"
    RETURNING = "returning"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class BattleWinner(StrEnum):
    """Side that carried the battle."""

    ATTACKER = "attacker"
    DEFENDER = "defender"
