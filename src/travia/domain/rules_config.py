"""Declarative configuration injected into the simulation engine."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ProductionRules:
    """Resource production constants."""

    base_rate_per_hour: float = 10.0
    speed_multiplier: float = 1.0


@dataclass(frozen=True, slots=True)
class QueueRules:
    """Building and training queue constants."""

    parallel_building_jobs: int = 1
    parallel_training_jobs: int = 1
    building_cost_growth: float = 1.5
    building_time_growth: float = 1.2
    building_time_multiplier: float = 1.0
    training_time_multiplier: float = 1.0
    extra_unit_time_fraction: float = 0.1
    minimum_training_factor: float = 0.25
    refund_fraction: float = 0.5

    def parallel_limit(self, category: str) -> int:
        """How many jobs of ``category`` may run at once in one village."""

        if category == "training":
            return self.parallel_training_jobs
        return self.parallel_building_jobs


@dataclass(frozen=True, slots=True)
class CombatRules:
    """Battle resolution constants."""

    winner_loss_dampening: float = 0.2
    raid_loss_multiplier: float = 0.5
    max_defense_bonus: float = 0.5


@dataclass(frozen=True, slots=True)
class MovementRules:
    """Troop movement constants."""

    seconds_per_distance: float = 60.0
    merchant_speed: float = 16.0
    speed_multiplier: float = 1.0
    cancel_window_fraction: float = 0.5
    minimum_travel_seconds: int = 1


@dataclass(frozen=True, slots=True)
class EspionageRules:
    """Spy mission constants.

    Each level of ``trap_building`` adds ``catch_chance_per_level``; spies are
    caught once the total reaches ``catch_threshold``.
    """

    trap_building: str = "trap"
    catch_chance_per_level: float = 0.05
    catch_threshold: float = 0.5


@dataclass(frozen=True, slots=True)
class SimulationConfig:
    """Top-level configuration container passed to the engine."""

    production: ProductionRules = ProductionRules()
    queues: QueueRules = QueueRules()
    combat: CombatRules = CombatRules()
    movement: MovementRules = MovementRules()
    espionage: EspionageRules = EspionageRules()
    tick_time_seconds: int = 60
    trade_tax_rate: float = 0.0


DEFAULT_CONFIG = SimulationConfig()
