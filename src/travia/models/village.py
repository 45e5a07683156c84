"""Village models for the Travia world schema.

This module contains models for:
- Villages (the optimistic-locked aggregate root the tick engine updates)
- VillageResources (stock, capacity and production of one resource)
- Buildings (a building standing in one village slot)
- TroopStacks (troops of one unit type and their whereabouts)
"""

from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin


class Village(Base, TimestampMixin):
    """A village on the world map.

    Attributes:
        id: Primary key
        owner_id: Player owning the village
        name: Display name
        x: Map column
        y: Map row
        last_updated: Instant up to which production has been accrued
        version: Optimistic-lock counter
    """

    __tablename__ = "villages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    owner_id: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    x: Mapped[int] = mapped_column(Integer, nullable=False)
    y: Mapped[int] = mapped_column(Integer, nullable=False)
    last_updated: Mapped[datetime] = mapped_column(nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    resources: Mapped[list["VillageResource"]] = relationship(
        back_populates="village", cascade="all, delete-orphan", lazy="selectin"
    )
    buildings: Mapped[list["Building"]] = relationship(
        back_populates="village", cascade="all, delete-orphan", lazy="selectin"
    )
    troops: Mapped[list["TroopStack"]] = relationship(
        back_populates="village", cascade="all, delete-orphan", lazy="selectin"
    )

    __mapper_args__ = {"version_id_col": version, "version_id_generator": False}

    __table_args__ = (
        UniqueConstraint("x", "y", name="uq_village_coordinates"),
        Index("idx_village_last_updated", "last_updated"),
    )

    def __repr__(self) -> str:
        return f"<Village(id={self.id}, name='{self.name}', x={self.x}, y={self.y})>"


class VillageResource(Base):
    """One resource stock of a village."""

    __tablename__ = "village_resources"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    village_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("villages.id", ondelete="CASCADE"), nullable=False
    )
    resource: Mapped[str] = mapped_column(String, nullable=False)
    amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    capacity: Mapped[float] = mapped_column(Float, nullable=False)
    rate_per_hour: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    village: Mapped[Village] = relationship(back_populates="resources")

    __table_args__ = (
        UniqueConstraint("village_id", "resource", name="uq_village_resource"),
        CheckConstraint("amount >= 0", name="check_resource_amount"),
        CheckConstraint("capacity >= 0", name="check_resource_capacity"),
    )


class Building(Base, TimestampMixin):
    """A building in one slot of a village."""

    __tablename__ = "buildings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    village_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("villages.id", ondelete="CASCADE"), nullable=False
    )
    building_key: Mapped[str] = mapped_column(
        String, ForeignKey("building_types.key"), nullable=False
    )
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    slot: Mapped[int] = mapped_column(Integer, nullable=False)

    village: Mapped[Village] = relationship(back_populates="buildings")

    __table_args__ = (
        UniqueConstraint("village_id", "slot", name="uq_building_slot"),
        CheckConstraint("level >= 1", name="check_building_level"),
    )

    def __repr__(self) -> str:
        return f"<Building(id={self.id}, key='{self.building_key}', level={self.level})>"


class TroopStack(Base):
    """Troops of one unit type belonging to or stationed in a village.

    Attributes:
        count: Total troops tracked by the village
        in_village: Home and available
        in_attack: Away on an attack or raid
        in_defense: Reinforcements received from other villages
        in_support: Own troops stationed elsewhere
    """

    __tablename__ = "troop_stacks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    village_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("villages.id", ondelete="CASCADE"), nullable=False
    )
    unit_key: Mapped[str] = mapped_column(String, ForeignKey("unit_types.key"), nullable=False)
    count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    in_village: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    in_attack: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    in_defense: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    in_support: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    village: Mapped[Village] = relationship(back_populates="troops")

    __table_args__ = (
        UniqueConstraint("village_id", "unit_key", name="uq_troop_stack_unit"),
        CheckConstraint(
            "count >= 0 AND in_village >= 0 AND in_attack >= 0 "
            "AND in_defense >= 0 AND in_support >= 0",
            name="check_troop_counts",
        ),
    )
