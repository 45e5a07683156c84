"""Static reference tables for unit and building definitions.

Costs and production are stored as JSON objects keyed by resource name; they
are decoded into typed definitions once, when the engine loads its catalog.
"""

from typing import Any

from sqlalchemy import JSON, Float, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class UnitType(Base):
    """Catalog of trainable units.

    Attributes:
        key: Unique unit identifier (e.g. ``legionnaire``)
        tribe: Tribe that can train the unit
        category: ``infantry``, ``cavalry`` or ``siege``
        speed: Fields per hour
        costs: JSON object of resource costs for one unit
    """

    __tablename__ = "unit_types"

    key: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    tribe: Mapped[str] = mapped_column(String, nullable=False)
    category: Mapped[str] = mapped_column(String, nullable=False)
    attack: Mapped[int] = mapped_column(Integer, nullable=False)
    defense_infantry: Mapped[int] = mapped_column(Integer, nullable=False)
    defense_cavalry: Mapped[int] = mapped_column(Integer, nullable=False)
    speed: Mapped[float] = mapped_column(Float, nullable=False)
    carry_capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    costs: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    training_time: Mapped[int] = mapped_column(Integer, nullable=False)

    def as_row(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "name": self.name,
            "tribe": self.tribe,
            "category": self.category,
            "attack": self.attack,
            "defense_infantry": self.defense_infantry,
            "defense_cavalry": self.defense_cavalry,
            "speed": self.speed,
            "carry_capacity": self.carry_capacity,
            "costs": self.costs,
            "training_time": self.training_time,
        }

    def __repr__(self) -> str:
        return f"<UnitType(key='{self.key}', tribe='{self.tribe}')>"


class BuildingType(Base):
    """Catalog of constructible buildings."""

    __tablename__ = "building_types"

    key: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    max_level: Mapped[int] = mapped_column(Integer, nullable=False, default=20)
    costs: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    construction_time: Mapped[int] = mapped_column(Integer, nullable=False, default=60)
    production: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    defense_bonus_per_level: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    training_bonus_per_level: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    def as_row(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "name": self.name,
            "max_level": self.max_level,
            "costs": self.costs,
            "construction_time": self.construction_time,
            "production": self.production,
            "defense_bonus_per_level": self.defense_bonus_per_level,
            "training_bonus_per_level": self.training_bonus_per_level,
        }

    def __repr__(self) -> str:
        return f"<BuildingType(key='{self.key}', max_level={self.max_level})>"
