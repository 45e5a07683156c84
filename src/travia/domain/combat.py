"""Battle resolution rules.

Battles are deterministic: identical compositions always produce identical
outcomes. Power is ``count * attack`` on the attacking side and
``count * defense`` on the defending side, where each defender's defense is
blended between its infantry and cavalry values by the share of attack power
the attacker brings on horseback.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from travia.domain.enums import RESOURCE_ORDER, BattleWinner, ResourceType, UnitCategory
from travia.domain.errors import InvalidArgument, NotFound
from travia.domain.models import BuildingInstance, Catalog, Composition, UnitKey, UnitTypeDef
from travia.domain.rules_config import DEFAULT_CONFIG, SimulationConfig

# Guards floor() against binary fractions such as 0.29999999 * 10.
_FLOOR_EPSILON = 1e-9


@dataclass(frozen=True, slots=True)
class BattleOutcome:
    """Everything computed for one battle."""

    winner: BattleWinner
    attack_power: float
    defense_power: float
    ratio: float
    cavalry_fraction: float
    attacker_loss_fraction: float
    defender_loss_fraction: float
    attacker_losses: Composition
    defender_losses: Composition
    attacker_survivors: Composition
    defender_survivors: Composition
    loot: dict[ResourceType, int] = field(default_factory=dict)

    @property
    def attacker_won(self) -> bool:
        return self.winner == BattleWinner.ATTACKER


def resolve_combat(
    attacker_units: Mapping[UnitKey, int],
    defender_units: Mapping[UnitKey, int],
    unit_defs: Mapping[UnitKey, UnitTypeDef],
    *,
    defender_resources: Mapping[ResourceType, float] | None = None,
    defense_bonus: float = 0.0,
    raid: bool = False,
    rules: SimulationConfig = DEFAULT_CONFIG,
) -> BattleOutcome:
    """Resolve a battle between two troop compositions."""

    _validate_composition(attacker_units, unit_defs, "attacker")
    _validate_composition(defender_units, unit_defs, "defender")
    if not math.isfinite(defense_bonus) or defense_bonus < 0:
        raise InvalidArgument("defense_bonus must be non-negative")
    combat = rules.combat
    defense_bonus = min(defense_bonus, combat.max_defense_bonus)

    attack_power = sum(count * unit_defs[key].attack for key, count in attacker_units.items())
    cavalry_fraction = _cavalry_fraction(attacker_units, unit_defs, attack_power)
    defense_power = sum(
        count * _blended_defense(unit_defs[key], cavalry_fraction)
        for key, count in defender_units.items()
    ) * (1 + defense_bonus)

    ratio = attack_power / max(1.0, defense_power)
    if ratio > 1:
        winner = BattleWinner.ATTACKER
        winner_ratio = ratio
    else:
        winner = BattleWinner.DEFENDER
        winner_ratio = defense_power / max(1.0, attack_power)

    loser_fraction = min(1.0, winner_ratio)
    if raid:
        loser_fraction *= combat.raid_loss_multiplier
    winner_fraction = (
        min(1.0, 1 / winner_ratio) * combat.winner_loss_dampening if winner_ratio > 0 else 0.0
    )

    if winner == BattleWinner.ATTACKER:
        attacker_fraction, defender_fraction = winner_fraction, loser_fraction
    else:
        attacker_fraction, defender_fraction = loser_fraction, winner_fraction

    attacker_losses = apply_loss_fraction(attacker_units, attacker_fraction)
    defender_losses = apply_loss_fraction(defender_units, defender_fraction)
    attacker_survivors = survivors(attacker_units, attacker_losses)
    defender_survivors = survivors(defender_units, defender_losses)

    loot: dict[ResourceType, int] = {}
    if winner == BattleWinner.ATTACKER and defender_resources is not None:
        loot = split_loot(carry_capacity(attacker_survivors, unit_defs), defender_resources)

    return BattleOutcome(
        winner=winner,
        attack_power=float(attack_power),
        defense_power=float(defense_power),
        ratio=ratio,
        cavalry_fraction=cavalry_fraction,
        attacker_loss_fraction=attacker_fraction,
        defender_loss_fraction=defender_fraction,
        attacker_losses=attacker_losses,
        defender_losses=defender_losses,
        attacker_survivors=attacker_survivors,
        defender_survivors=defender_survivors,
        loot=loot,
    )


def apply_loss_fraction(units: Mapping[UnitKey, int], fraction: float) -> Composition:
    """Casualties per unit type, clamped to ``[0, count]``."""

    fraction = min(1.0, max(0.0, fraction))
    return {
        key: min(count, max(0, math.floor(count * fraction + _FLOOR_EPSILON)))
        for key, count in sorted(units.items())
    }


def survivors(units: Mapping[UnitKey, int], losses: Mapping[UnitKey, int]) -> Composition:
    return {key: count - losses.get(key, 0) for key, count in sorted(units.items())}


def carry_capacity(units: Mapping[UnitKey, int], unit_defs: Mapping[UnitKey, UnitTypeDef]) -> int:
    return sum(count * unit_defs[key].carry_capacity for key, count in units.items())


def split_loot(capacity: int, available: Mapping[ResourceType, float]) -> dict[ResourceType, int]:
    """Take up to ``capacity`` resources, proportionally to what is available.

    Shares are floored and the remainder handed out by largest fractional part
    (resource order breaks ties), so no resource is ever over-drawn.
    """

    stock = {
        resource: max(0, math.floor(available.get(resource, 0.0))) for resource in RESOURCE_ORDER
    }
    total = sum(stock.values())
    take = min(max(0, int(capacity)), total)
    if take == 0:
        return {resource: 0 for resource in RESOURCE_ORDER}

    exact = {resource: take * stock[resource] / total for resource in RESOURCE_ORDER}
    loot = {resource: min(stock[resource], math.floor(exact[resource])) for resource in RESOURCE_ORDER}
    remainder = take - sum(loot.values())
    by_fraction = sorted(
        RESOURCE_ORDER,
        key=lambda resource: (-(exact[resource] - loot[resource]), RESOURCE_ORDER.index(resource)),
    )
    for resource in by_fraction:
        if remainder <= 0:
            break
        if loot[resource] < stock[resource]:
            loot[resource] += 1
            remainder -= 1
    return loot


def defensive_bonus(
    buildings: Iterable[BuildingInstance],
    catalog: Catalog,
    *,
    rules: SimulationConfig = DEFAULT_CONFIG,
) -> float:
    """Defense multiplier bonus granted by walls, towers and the like."""

    bonus = 0.0
    for building in buildings:
        definition = catalog.buildings.get(building.building_key)
        if definition is not None:
            bonus += definition.defense_bonus_per_level * building.level
    return min(bonus, rules.combat.max_defense_bonus)


def _cavalry_fraction(
    units: Mapping[UnitKey, int],
    unit_defs: Mapping[UnitKey, UnitTypeDef],
    attack_power: float,
) -> float:
    if attack_power <= 0:
        return 0.0
    cavalry_power = sum(
        count * unit_defs[key].attack
        for key, count in units.items()
        if unit_defs[key].category == UnitCategory.CAVALRY
    )
    return cavalry_power / attack_power


def _blended_defense(unit: UnitTypeDef, cavalry_fraction: float) -> float:
    return (1 - cavalry_fraction) * unit.defense_infantry + cavalry_fraction * unit.defense_cavalry


def _validate_composition(
    units: Mapping[UnitKey, int],
    unit_defs: Mapping[UnitKey, UnitTypeDef],
    side: str,
) -> None:
    for key, count in units.items():
        if count < 0:
            raise InvalidArgument(f"{side} count for {key!r} is negative")
        if key not in unit_defs:
            raise NotFound(f"unit type {key!r} not found")
