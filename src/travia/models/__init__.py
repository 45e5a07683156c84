"""SQLAlchemy models for the Travia world schema.

This module exports all database models and provides access to the
declarative base and seed data functions. Only the SQL world store uses them;
the simulation core works on the dataclasses in ``travia.domain.models``.
"""

from .base import Base, TimestampMixin
from .battle import Battle
from .catalog import BuildingType, UnitType
from .movement import Movement
from .queue import QueueJob
from .seed_data import seed_all_catalog_data, seed_building_types, seed_unit_types
from .spy_report import SpyReport
from .village import Building, TroopStack, Village, VillageResource

__all__ = [
    "Base",
    "Battle",
    "Building",
    "BuildingType",
    "Movement",
    "QueueJob",
    "SpyReport",
    "TimestampMixin",
    "TroopStack",
    "UnitType",
    "Village",
    "VillageResource",
    "seed_all_catalog_data",
    "seed_building_types",
    "seed_unit_types",
]
