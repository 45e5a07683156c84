"""Unit tests for spy missions."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from travia.domain import espionage
from travia.domain import models as dm
from travia.domain.enums import RESOURCE_ORDER, MovementType, ResourceType
from travia.domain.errors import InvalidArgument
from travia.domain.rules_config import EspionageRules, SimulationConfig

T0 = datetime(2024, 1, 1, tzinfo=UTC)


def _target(*, trap_level: int = 0) -> dm.Village:
    village = dm.Village(
        id=dm.VillageID(2),
        owner_id=dm.PlayerID(2),
        name="Target",
        x=5,
        y=5,
        resources={
            resource: dm.ResourceStock(amount=99.9, capacity=800.0) for resource in RESOURCE_ORDER
        },
        last_updated=T0,
    )
    village.buildings[1] = dm.BuildingInstance(
        village_id=village.id, building_key=dm.BuildingKey("woodcutter"), level=4, slot=1
    )
    village.buildings[2] = dm.BuildingInstance(
        village_id=village.id, building_key=dm.BuildingKey("woodcutter"), level=7, slot=2
    )
    if trap_level:
        village.buildings[3] = dm.BuildingInstance(
            village_id=village.id, building_key=dm.BuildingKey("trap"), level=trap_level, slot=3
        )
    village.troops[dm.UnitKey("legionnaire")] = dm.TroopStack(
        village_id=village.id,
        unit_key=dm.UnitKey("legionnaire"),
        count=25,
        in_village=10,
        in_defense=5,
        in_attack=10,
    )
    return village


def _spies(movement_type: MovementType = MovementType.SPY) -> dm.Movement:
    return dm.Movement(
        id=dm.MovementID(3),
        player_id=dm.PlayerID(1),
        origin_id=dm.VillageID(1),
        destination_id=dm.VillageID(2),
        type=movement_type,
        troops={dm.UnitKey("equites_imperatoris"): 2},
        started_at=T0,
        arrives_at=T0 + timedelta(minutes=4),
    )


class TestCatchChance:
    """Tests for trap strength."""

    def test_no_trap_catches_nothing(self):
        assert espionage.trap_level(_target()) == 0
        assert espionage.catch_chance(_target()) == 0.0
        assert not espionage.is_caught(_target())

    def test_chance_grows_per_trap_level(self):
        assert espionage.catch_chance(_target(trap_level=4)) == pytest.approx(0.2)

    def test_chance_is_capped(self):
        assert espionage.catch_chance(_target(trap_level=20)) == 1.0

    @pytest.mark.parametrize(("level", "caught"), [(9, False), (10, True), (15, True)])
    def test_threshold_decides_capture(self, level, caught):
        assert espionage.is_caught(_target(trap_level=level)) is caught

    def test_threshold_is_configurable(self):
        rules = SimulationConfig(espionage=EspionageRules(catch_threshold=0.1))

        assert espionage.is_caught(_target(trap_level=2), rules=rules)


class TestScout:
    """Tests for spy reports."""

    def test_successful_mission_sees_the_village(self):
        report = espionage.scout(_spies(), _target(trap_level=3))

        assert report.id is None
        assert not report.caught
        assert report.trap_level == 3
        assert report.occurred_at == T0 + timedelta(minutes=4)
        assert report.resources == {resource: 99 for resource in RESOURCE_ORDER}
        assert report.buildings == {"trap": 3, "woodcutter": 7}
        assert report.troops == {dm.UnitKey("legionnaire"): 15}

    def test_caught_spies_learn_nothing(self):
        report = espionage.scout(_spies(), _target(trap_level=12))

        assert report.caught
        assert report.trap_level == 12
        assert report.resources == {}
        assert report.buildings == {}
        assert report.troops == {}

    def test_same_world_gives_same_report(self):
        assert espionage.scout(_spies(), _target(trap_level=5)) == espionage.scout(
            _spies(), _target(trap_level=5)
        )

    def test_only_spy_missions_scout(self):
        with pytest.raises(InvalidArgument):
            espionage.scout(_spies(MovementType.RAID), _target())

    def test_report_must_match_destination(self):
        movement = _spies()
        movement.destination_id = dm.VillageID(9)

        with pytest.raises(InvalidArgument):
            espionage.scout(movement, _target())

    def test_resources_are_rounded_down(self):
        target = _target()
        target.resources[ResourceType.CROP].amount = 10.99

        report = espionage.scout(_spies(), target)

        assert report.resources[ResourceType.CROP] == 10
