"""Spy mission rules.

Whether spies get through is decided by the target's traps alone, so the
same world always produces the same report.
"""

from __future__ import annotations

import math
from dataclasses import replace

from travia.domain import troops
from travia.domain.clock import ensure_aware
from travia.domain.enums import MovementType
from travia.domain.errors import InvalidArgument
from travia.domain.models import BuildingKey, Movement, SpyReport, Village
from travia.domain.rules_config import DEFAULT_CONFIG, SimulationConfig

_EPSILON = 1e-9


def trap_level(village: Village, *, rules: SimulationConfig = DEFAULT_CONFIG) -> int:
    """Highest level among the village's trap buildings, 0 without one."""

    trap = BuildingKey(rules.espionage.trap_building)
    return max(
        (building.level for building in village.buildings.values() if building.building_key == trap),
        default=0,
    )


def catch_chance(village: Village, *, rules: SimulationConfig = DEFAULT_CONFIG) -> float:
    """Share of incoming spies the village's traps would catch, capped at 1."""

    return min(1.0, trap_level(village, rules=rules) * rules.espionage.catch_chance_per_level)


def is_caught(village: Village, *, rules: SimulationConfig = DEFAULT_CONFIG) -> bool:
    return catch_chance(village, rules=rules) + _EPSILON >= rules.espionage.catch_threshold


def scout(
    movement: Movement,
    target: Village,
    *,
    rules: SimulationConfig = DEFAULT_CONFIG,
) -> SpyReport:
    """Report what the spies of ``movement`` saw at ``target``.

    Caught spies bring back nothing but the trap level that stopped them.
    The store assigns the id.
    """

    if movement.type != MovementType.SPY:
        raise InvalidArgument(f"movement {int(movement.id)} is a {movement.type}, not a spy mission")
    if movement.destination_id != target.id:
        raise InvalidArgument(
            f"movement {int(movement.id)} targets village {int(movement.destination_id)}, "
            f"not {int(target.id)}"
        )

    report = SpyReport(
        id=None,
        movement_id=movement.id,
        spy_village_id=movement.origin_id,
        target_village_id=target.id,
        caught=is_caught(target, rules=rules),
        trap_level=trap_level(target, rules=rules),
        occurred_at=ensure_aware(movement.arrives_at),
    )
    if report.caught:
        return report

    buildings: dict[BuildingKey, int] = {}
    for building in target.buildings.values():
        buildings[building.building_key] = max(buildings.get(building.building_key, 0), building.level)
    return replace(
        report,
        resources={
            resource: math.floor(stock.amount) for resource, stock in target.resources.items()
        },
        buildings=dict(sorted(buildings.items())),
        troops=troops.defending_troops(target),
    )
