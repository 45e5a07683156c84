"""Configuration for the Travia tick runner."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from travia.domain.rules_config import (
    MovementRules,
    ProductionRules,
    QueueRules,
    SimulationConfig,
)


class Settings(BaseSettings):
    """Application settings, read from the environment and ``.env``."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", env_prefix="TRAVIA_"
    )

    database_url: str = Field(
        default="sqlite:///travia.db", description="SQLAlchemy URL of the world database"
    )
    database_echo: bool = Field(default=False, description="Log every SQL statement")
    tick_interval_seconds: float = Field(
        default=60.0,
        description="Real-time seconds between automatic ticks",
        gt=0.0,
    )
    max_workers: int = Field(
        default=4, description="Threads used to process villages in parallel", ge=1
    )
    entity_time_budget_seconds: float = Field(
        default=5.0,
        description="Villages or movements taking longer than this are deferred to the next tick",
        gt=0.0,
    )
    tick_time_budget_seconds: float = Field(
        default=50.0,
        description="No new entity is started once a tick has run this long",
        gt=0.0,
    )
    production_speed_multiplier: float = Field(
        default=1.0, description="Scales resource production", gt=0.0
    )
    build_speed_multiplier: float = Field(
        default=1.0,
        description="Divides building and training times",
        gt=0.0,
    )
    troop_speed_multiplier: float = Field(
        default=1.0, description="Scales troop and merchant speed", gt=0.0
    )
    trade_tax_rate: float = Field(
        default=0.0, description="Fraction of traded goods lost on delivery", ge=0.0, lt=1.0
    )

    def simulation_config(self) -> SimulationConfig:
        """Rules injected into the simulation engine."""

        time_multiplier = 1.0 / self.build_speed_multiplier
        return SimulationConfig(
            production=ProductionRules(speed_multiplier=self.production_speed_multiplier),
            queues=QueueRules(
                building_time_multiplier=time_multiplier,
                training_time_multiplier=time_multiplier,
            ),
            movement=MovementRules(speed_multiplier=self.troop_speed_multiplier),
            tick_time_seconds=int(self.tick_interval_seconds),
            trade_tax_rate=self.trade_tax_rate,
        )


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings instance."""

    return Settings()
