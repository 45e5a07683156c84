"""Battle report model."""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Float, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


class Battle(Base, TimestampMixin):
    """An append-only record of one battle.

    Rows are inserted once and never updated.

    Attributes:
        movement_id: Attack or raid that caused the battle
        attacker_troops: JSON snapshot of the attacking units
        defender_troops: JSON snapshot of the defending units
        attacker_losses: JSON object of attacker casualties
        defender_losses: JSON object of defender casualties
        loot: JSON object of resources carried off
        winner: ``attacker`` or ``defender``
    """

    __tablename__ = "battles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    movement_id: Mapped[int] = mapped_column(Integer, nullable=False)
    attacker_village_id: Mapped[int] = mapped_column(Integer, nullable=False)
    defender_village_id: Mapped[int] = mapped_column(Integer, nullable=False)
    attacker_troops: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    defender_troops: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    attacker_losses: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    defender_losses: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    loot: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    winner: Mapped[str] = mapped_column(String, nullable=False)
    attack_power: Mapped[float] = mapped_column(Float, nullable=False)
    defense_power: Mapped[float] = mapped_column(Float, nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(nullable=False)

    __table_args__ = (
        Index("idx_battle_defender", "defender_village_id"),
        Index("idx_battle_attacker", "attacker_village_id"),
    )

    def __repr__(self) -> str:
        return f"<Battle(id={self.id}, movement_id={self.movement_id}, winner='{self.winner}')>"
