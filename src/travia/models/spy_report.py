"""Spy report model."""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, Index, Integer
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


class SpyReport(Base, TimestampMixin):
    """What a spy mission found, written once when the spies arrive.

    Attributes:
        caught: Whether the target's traps stopped the spies
        trap_level: Trap level the spies ran into
        resources: JSON object of resource amounts seen
        buildings: JSON object of building key to highest level seen
        troops: JSON object of defending units seen
    """

    __tablename__ = "spy_reports"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    movement_id: Mapped[int] = mapped_column(Integer, nullable=False)
    spy_village_id: Mapped[int] = mapped_column(Integer, nullable=False)
    target_village_id: Mapped[int] = mapped_column(Integer, nullable=False)
    caught: Mapped[bool] = mapped_column(Boolean, nullable=False)
    trap_level: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    resources: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    buildings: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    troops: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(nullable=False)

    __table_args__ = (Index("idx_spy_report_spy", "spy_village_id"),)

    def __repr__(self) -> str:
        return f"<SpyReport(id={self.id}, movement_id={self.movement_id}, caught={self.caught})>"
