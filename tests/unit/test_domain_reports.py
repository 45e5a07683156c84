"""Unit tests for battle reports."""

from datetime import UTC, datetime, timedelta

from travia.domain import models as dm
from travia.domain import reports
from travia.domain.catalog import default_catalog
from travia.domain.combat import resolve_combat
from travia.domain.enums import RESOURCE_ORDER, BattleWinner, MovementType, ResourceType

T0 = datetime(2024, 1, 1, tzinfo=UTC)
LEGIONNAIRE = dm.UnitKey("legionnaire")


def _battle() -> dm.BattleResult:
    movement = dm.Movement(
        id=dm.MovementID(3),
        player_id=dm.PlayerID(1),
        origin_id=dm.VillageID(1),
        destination_id=dm.VillageID(2),
        type=MovementType.ATTACK,
        troops={LEGIONNAIRE: 100},
        started_at=T0,
        arrives_at=T0 + timedelta(minutes=10),
    )
    defenders = {LEGIONNAIRE: 50}
    outcome = resolve_combat(
        movement.troops,
        defenders,
        default_catalog().units,
        defender_resources={resource: 1000.0 for resource in RESOURCE_ORDER},
    )
    return reports.build_battle_result(
        movement, defenders, outcome, movement.arrives_at.replace(tzinfo=None)
    )


def test_battle_result_snapshots_both_sides():
    result = _battle()

    assert result.id is None
    assert result.movement_id == 3
    assert result.attacker_troops == {LEGIONNAIRE: 100}
    assert result.defender_troops == {LEGIONNAIRE: 50}
    assert result.winner == BattleWinner.ATTACKER
    assert result.occurred_at == T0 + timedelta(minutes=10)
    assert result.occurred_at.tzinfo is not None


def test_attacker_report_is_a_victory():
    body = reports.report_for(_battle(), BattleWinner.ATTACKER)

    assert body["title"] == "Victory"
    assert body["casualties"]["formatted"] == "8 legionnaire"
    assert body["loot"]["total"] == 4000
    assert body["battle_power"] == {"attacker": 4000.0, "defender": 1750.0}


def test_defender_report_is_a_defeat():
    body = reports.report_for(_battle(), BattleWinner.DEFENDER)

    assert body["status"] == "defeat"
    assert body["casualties"]["total"] == 50


def test_empty_summaries_say_so():
    assert reports.summarize_casualties({LEGIONNAIRE: 0})["formatted"] == "No casualties"
    assert reports.summarize_loot({ResourceType.WOOD: 0})["formatted"] == "No loot"
