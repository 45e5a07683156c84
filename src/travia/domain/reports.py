"""Battle reports built from combat outcomes."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime

from travia.domain.clock import ensure_aware
from travia.domain.combat import BattleOutcome
from travia.domain.enums import BattleWinner, ResourceType
from travia.domain.models import BattleResult, Composition, Movement, UnitKey


def build_battle_result(
    movement: Movement,
    defender_troops: Composition,
    outcome: BattleOutcome,
    occurred_at: datetime,
) -> BattleResult:
    """Freeze a battle into an append-only report. The store assigns the id."""

    return BattleResult(
        id=None,
        movement_id=movement.id,
        attacker_village_id=movement.origin_id,
        defender_village_id=movement.destination_id,
        attacker_troops=dict(sorted(movement.troops.items())),
        defender_troops=dict(sorted(defender_troops.items())),
        attacker_losses=dict(outcome.attacker_losses),
        defender_losses=dict(outcome.defender_losses),
        loot=dict(outcome.loot),
        winner=outcome.winner,
        attack_power=outcome.attack_power,
        defense_power=outcome.defense_power,
        occurred_at=ensure_aware(occurred_at),
    )


def summarize_casualties(losses: Mapping[UnitKey, int]) -> dict[str, object]:
    """Totals and a readable breakdown of casualties."""

    breakdown = [f"{count} {key}" for key, count in sorted(losses.items()) if count > 0]
    total = sum(losses.values())
    return {
        "total": total,
        "breakdown": breakdown,
        "formatted": ", ".join(breakdown) if total > 0 else "No casualties",
    }


def summarize_loot(loot: Mapping[ResourceType, int]) -> dict[str, object]:
    """Totals and a readable breakdown of captured resources."""

    breakdown = [f"{amount} {resource}" for resource, amount in loot.items() if amount > 0]
    total = sum(loot.values())
    return {
        "total": total,
        "breakdown": breakdown,
        "formatted": ", ".join(breakdown) if total > 0 else "No loot",
    }


def report_for(result: BattleResult, perspective: BattleWinner) -> dict[str, object]:
    """Report body as seen by one side of the battle."""

    own_losses = (
        result.attacker_losses if perspective == BattleWinner.ATTACKER else result.defender_losses
    )
    status = "victory" if result.winner == perspective else "defeat"
    return {
        "title": "Victory" if status == "victory" else "Defeat",
        "status": status,
        "attacker_village_id": int(result.attacker_village_id),
        "defender_village_id": int(result.defender_village_id),
        "battle_power": {
            "attacker": result.attack_power,
            "defender": result.defense_power,
        },
        "casualties": summarize_casualties(own_losses),
        "loot": summarize_loot(result.loot),
    }
