"""End-to-end ticks against a SQLite-backed world."""

from datetime import UTC, datetime, timedelta

import pytest

from travia.config import Settings
from travia.domain import models as dm
from travia.domain.enums import (
    RESOURCE_ORDER,
    BattleWinner,
    JobCategory,
    JobStatus,
    MovementStatus,
    MovementType,
    ResourceType,
)
from travia.factory import create_simulation_engine, create_world_store
from travia.services import SimulationEngine

T0 = datetime(2024, 1, 1, tzinfo=UTC)
LEGIONNAIRE = dm.UnitKey("legionnaire")


@pytest.fixture
def settings(tmp_path):
    return Settings(_env_file=None, database_url=f"sqlite:///{tmp_path / 'world.db'}", max_workers=2)


@pytest.fixture
def store(settings):
    return create_world_store(settings=settings, seed=True)


def _village(village_id: int, *, amount: float, troops: dict[str, int]) -> dm.Village:
    village = dm.Village(
        id=dm.VillageID(village_id),
        owner_id=dm.PlayerID(village_id),
        name=f"Village {village_id}",
        x=village_id * 10,
        y=0,
        resources={
            resource: dm.ResourceStock(amount=amount, capacity=5000.0, rate_per_hour=0.0)
            for resource in RESOURCE_ORDER
        },
        last_updated=T0,
    )
    for key, count in troops.items():
        village.troops[dm.UnitKey(key)] = dm.TroopStack(
            village_id=village.id, unit_key=dm.UnitKey(key), count=count, in_village=count
        )
    return village


def test_attack_cycle_over_sql(store, settings):
    attacker = _village(1, amount=0.0, troops={})
    attacker.troops[LEGIONNAIRE] = dm.TroopStack(
        village_id=attacker.id, unit_key=LEGIONNAIRE, count=100, in_attack=100
    )
    store.save_village(attacker)
    store.save_village(_village(2, amount=1000.0, troops={"legionnaire": 50}))
    store.save_movement(
        dm.Movement(
            id=dm.MovementID(1),
            player_id=dm.PlayerID(1),
            origin_id=dm.VillageID(1),
            destination_id=dm.VillageID(2),
            type=MovementType.ATTACK,
            troops={LEGIONNAIRE: 100},
            started_at=T0,
            arrives_at=T0 + timedelta(minutes=10),
        )
    )
    engine = SimulationEngine.from_settings(store, settings)

    arrival = engine.tick(T0 + timedelta(minutes=10))

    assert arrival.ok
    (battle,) = arrival.battles
    assert battle.winner == BattleWinner.ATTACKER
    assert battle.defender_losses == {LEGIONNAIRE: 50}
    movement = store.load_movement(dm.MovementID(1))
    assert movement.status == MovementStatus.RETURNING
    assert movement.battle_id == battle.id
    assert store.load_village(dm.VillageID(2)).resources[ResourceType.WOOD].amount == 0.0

    # a second run of the same tick finds nothing left to do
    repeat = engine.tick(T0 + timedelta(minutes=10))
    assert repeat.battles == []
    assert len(store.battle_results()) == 1

    engine.tick(T0 + timedelta(minutes=20))

    village = store.load_village(dm.VillageID(1))
    assert village.troops[LEGIONNAIRE].in_village == 92
    assert village.resources[ResourceType.WOOD].amount == 1000.0
    assert store.load_movement(dm.MovementID(1)).status == MovementStatus.COMPLETED


def test_spy_mission_over_sql(store, settings):
    spy_village = _village(1, amount=0.0, troops={})
    spy_village.troops[LEGIONNAIRE] = dm.TroopStack(
        village_id=spy_village.id, unit_key=LEGIONNAIRE, count=3, in_attack=3
    )
    store.save_village(spy_village)
    store.save_village(_village(2, amount=640.0, troops={"legionnaire": 12}))
    store.save_movement(
        dm.Movement(
            id=dm.MovementID(1),
            player_id=dm.PlayerID(1),
            origin_id=dm.VillageID(1),
            destination_id=dm.VillageID(2),
            type=MovementType.SPY,
            troops={LEGIONNAIRE: 3},
            started_at=T0,
            arrives_at=T0 + timedelta(minutes=5),
        )
    )
    engine = SimulationEngine.from_settings(store, settings)

    report = engine.tick(T0 + timedelta(minutes=5))

    assert report.ok
    (spy_report,) = store.spy_reports()
    assert report.spy_reports == [spy_report]
    assert spy_report.resources[ResourceType.IRON] == 640
    assert spy_report.troops == {LEGIONNAIRE: 12}
    assert store.load_movement(dm.MovementID(1)).status == MovementStatus.RETURNING


def test_building_job_completes_over_sql(store, settings):
    store.save_village(_village(1, amount=0.0, troops={}))
    store.save_queue_job(
        dm.QueueJob(
            id=dm.JobID(1),
            village_id=dm.VillageID(1),
            category=JobCategory.BUILDING,
            target="clay_pit",
            status=JobStatus.IN_PROGRESS,
            started_at=T0,
            completes_at=T0 + timedelta(minutes=1),
            slot=2,
        )
    )
    engine = SimulationEngine.from_settings(store, settings)

    report = engine.tick(T0 + timedelta(minutes=1))

    assert report.jobs_completed == 1
    village = store.load_village(dm.VillageID(1))
    assert village.buildings[2].building_key == "clay_pit"
    assert village.resources[ResourceType.CLAY].rate_per_hour == 40.0
    assert store.load_queue_job(dm.JobID(1)).status == JobStatus.COMPLETED


def test_factory_builds_engine_from_settings(settings):
    engine = create_simulation_engine(settings=settings, seed=True)

    assert "legionnaire" in engine.catalog.units
    assert engine.tick(T0).ok
