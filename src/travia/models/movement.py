"""Troop and merchant movement models."""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


class Movement(Base, TimestampMixin):
    """Troops or merchants travelling between two villages.

    Village references are plain ids without foreign keys: a movement outlives
    a village that disappears while it is underway, and the tick engine cancels
    or completes it accordingly.

    Attributes:
        type: ``attack``, ``raid``, ``reinforce``, ``trade`` or ``return``
        troops: JSON object of unit key to count
        resources: JSON object of resource name to amount carried
        status: ``travelling``, ``arrived``, ``returning``, ``completed`` or ``cancelled``
        battle_id: Battle fought on arrival, for attacks and raids
    """

    __tablename__ = "movements"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    player_id: Mapped[int] = mapped_column(Integer, nullable=False)
    origin_id: Mapped[int] = mapped_column(Integer, nullable=False)
    destination_id: Mapped[int] = mapped_column(Integer, nullable=False)
    type: Mapped[str] = mapped_column(String, nullable=False)
    troops: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    resources: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False)
    started_at: Mapped[datetime] = mapped_column(nullable=False)
    arrives_at: Mapped[datetime] = mapped_column(nullable=False)
    returns_at: Mapped[datetime | None] = mapped_column(nullable=True)
    battle_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("battles.id"), nullable=True
    )
    cancel_reason: Mapped[str | None] = mapped_column(String, nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version, "version_id_generator": False}

    __table_args__ = (
        Index("idx_movement_status_arrival", "status", "arrives_at"),
        Index("idx_movement_status_return", "status", "returns_at"),
    )

    def __repr__(self) -> str:
        return f"<Movement(id={self.id}, type='{self.type}', status='{self.status}')>"
