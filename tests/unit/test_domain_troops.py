"""Unit tests for troop stack bookkeeping."""

from datetime import UTC, datetime

import pytest

from travia.domain import models as dm
from travia.domain import troops
from travia.domain.errors import InvalidArgument

LEGIONNAIRE = dm.UnitKey("legionnaire")


def _village(**stacks: dict[str, int]) -> dm.Village:
    village = dm.Village(
        id=dm.VillageID(1),
        owner_id=dm.PlayerID(1),
        name="Capital",
        x=0,
        y=0,
        resources={},
        last_updated=datetime(2024, 1, 1, tzinfo=UTC),
    )
    for key, counts in stacks.items():
        village.troops[dm.UnitKey(key)] = dm.TroopStack(
            village_id=village.id, unit_key=dm.UnitKey(key), **counts
        )
    return village


def test_stack_for_creates_empty_stack():
    village = _village()

    stack = troops.stack_for(village, LEGIONNAIRE)

    assert stack.count == 0
    assert village.troops[LEGIONNAIRE] is stack


def test_check_stack_rejects_oversized_partitions():
    stack = dm.TroopStack(
        village_id=dm.VillageID(1), unit_key=LEGIONNAIRE, count=5, in_village=4, in_attack=2
    )

    with pytest.raises(InvalidArgument):
        troops.check_stack(stack)


def test_check_stack_rejects_negative_counts():
    stack = dm.TroopStack(village_id=dm.VillageID(1), unit_key=LEGIONNAIRE, count=1, in_village=-1)

    with pytest.raises(InvalidArgument):
        troops.check_stack(stack)


def test_check_village_names_the_village_and_stack():
    village = _village(
        legionnaire={"count": 10, "in_village": 10},
        praetorian={"count": 5, "in_village": 1000},
    )

    with pytest.raises(InvalidArgument, match="village 1: troop stack praetorian"):
        troops.check_village(village)


def test_check_village_accepts_consistent_stacks():
    troops.check_village(_village(legionnaire={"count": 10, "in_village": 4, "in_attack": 6}))


def test_trained_units_join_the_garrison():
    village = _village(legionnaire={"count": 3, "in_village": 3})

    troops.add_trained(village, LEGIONNAIRE, 7)

    assert village.troops[LEGIONNAIRE].count == 10
    assert village.troops[LEGIONNAIRE].in_village == 10


def test_defending_troops_include_reinforcements():
    village = _village(
        legionnaire={"count": 20, "in_village": 5, "in_attack": 10, "in_defense": 5},
        praetorian={"count": 4, "in_support": 4},
    )

    assert troops.defending_troops(village) == {LEGIONNAIRE: 10}


def test_defender_losses_hit_garrison_first():
    village = _village(legionnaire={"count": 10, "in_village": 6, "in_defense": 4})

    troops.apply_defender_losses(village, {LEGIONNAIRE: 8})

    stack = village.troops[LEGIONNAIRE]
    assert (stack.count, stack.in_village, stack.in_defense) == (2, 0, 2)
    troops.check_stack(stack)


def test_attacker_losses_come_out_of_the_attack_partition():
    village = _village(legionnaire={"count": 100, "in_attack": 100})

    troops.apply_attacker_losses(village, {LEGIONNAIRE: 8})

    assert village.troops[LEGIONNAIRE].count == 92
    assert village.troops[LEGIONNAIRE].in_attack == 92


def test_survivors_return_home():
    village = _village(legionnaire={"count": 92, "in_attack": 92})

    troops.return_from_attack(village, {LEGIONNAIRE: 92})

    stack = village.troops[LEGIONNAIRE]
    assert (stack.count, stack.in_village, stack.in_attack) == (92, 92, 0)


def test_untracked_survivors_still_come_home():
    village = _village()

    troops.return_from_attack(village, {LEGIONNAIRE: 4})

    assert village.troops[LEGIONNAIRE].count == 4
    assert village.troops[LEGIONNAIRE].in_village == 4


def test_recalled_support_rejoins_garrison():
    village = _village(legionnaire={"count": 10, "in_village": 2, "in_support": 8})

    troops.return_from_support(village, {LEGIONNAIRE: 8})

    assert village.troops[LEGIONNAIRE].in_village == 10
    assert village.troops[LEGIONNAIRE].in_support == 0


def test_reinforcements_are_stationed_as_defense():
    village = _village()

    troops.station_reinforcements(village, {LEGIONNAIRE: 12})

    assert village.troops[LEGIONNAIRE].in_defense == 12
    assert village.troops[LEGIONNAIRE].count == 12
    with pytest.raises(InvalidArgument):
        troops.station_reinforcements(village, {LEGIONNAIRE: -1})
