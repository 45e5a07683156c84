"""Unit tests for the in-memory world store."""

from datetime import UTC, datetime, timedelta

import pytest

from travia.domain import models as dm
from travia.domain.enums import (
    RESOURCE_ORDER,
    BattleWinner,
    JobCategory,
    JobStatus,
    MovementStatus,
    MovementType,
)
from travia.domain.errors import ConcurrentModification, NotFound
from travia.interfaces import ChangeSet
from travia.repository import InMemoryWorldStore

T0 = datetime(2024, 1, 1, tzinfo=UTC)


def _village(village_id: int = 1, *, last_updated: datetime = T0) -> dm.Village:
    return dm.Village(
        id=dm.VillageID(village_id),
        owner_id=dm.PlayerID(1),
        name=f"Village {village_id}",
        x=village_id,
        y=0,
        resources={
            resource: dm.ResourceStock(amount=100.0, capacity=1000.0) for resource in RESOURCE_ORDER
        },
        last_updated=last_updated,
    )


def _job(job_id: int, status: JobStatus, completes_in: int | None) -> dm.QueueJob:
    return dm.QueueJob(
        id=dm.JobID(job_id),
        village_id=dm.VillageID(1),
        category=JobCategory.TRAINING,
        target="legionnaire",
        status=status,
        started_at=T0,
        completes_at=T0 + timedelta(seconds=completes_in) if completes_in is not None else None,
        count=1,
    )


def _movement(movement_id: int, status: MovementStatus = MovementStatus.TRAVELLING) -> dm.Movement:
    return dm.Movement(
        id=dm.MovementID(movement_id),
        player_id=dm.PlayerID(1),
        origin_id=dm.VillageID(1),
        destination_id=dm.VillageID(2),
        type=MovementType.ATTACK,
        troops={dm.UnitKey("legionnaire"): 5},
        started_at=T0,
        arrives_at=T0 + timedelta(minutes=movement_id),
        status=status,
    )


def _battle(movement_id: int) -> dm.BattleResult:
    return dm.BattleResult(
        id=None,
        movement_id=dm.MovementID(movement_id),
        attacker_village_id=dm.VillageID(1),
        defender_village_id=dm.VillageID(2),
        attacker_troops={},
        defender_troops={},
        attacker_losses={},
        defender_losses={},
        loot={},
        winner=BattleWinner.DEFENDER,
        attack_power=0.0,
        defense_power=0.0,
        occurred_at=T0,
    )


def _spy_report(movement_id: int) -> dm.SpyReport:
    return dm.SpyReport(
        id=None,
        movement_id=dm.MovementID(movement_id),
        spy_village_id=dm.VillageID(1),
        target_village_id=dm.VillageID(2),
        caught=True,
        trap_level=10,
        occurred_at=T0,
    )


class TestVersions:
    """Optimistic locking."""

    def test_insert_and_update_bump_version(self):
        store = InMemoryWorldStore()
        village = _village()

        store.save_village(village)
        assert village.version == 1

        village.name = "Renamed"
        store.save_village(village)

        loaded = store.load_village(dm.VillageID(1))
        assert loaded.version == 2
        assert loaded.name == "Renamed"

    def test_stale_copy_is_rejected(self):
        store = InMemoryWorldStore()
        store.save_village(_village())
        first = store.load_village(dm.VillageID(1))
        second = store.load_village(dm.VillageID(1))
        store.save_village(first)

        with pytest.raises(ConcurrentModification) as excinfo:
            store.save_village(second)

        assert excinfo.value.entity == "village"
        assert second.version == 1

    def test_failed_commit_writes_nothing(self):
        store = InMemoryWorldStore()
        store.save_village(_village())
        stale = _village()
        job = _job(1, JobStatus.PENDING, None)

        with pytest.raises(ConcurrentModification):
            store.commit(ChangeSet(villages=[stale], jobs=[job]))

        assert job.version == 0
        with pytest.raises(NotFound):
            store.load_queue_job(dm.JobID(1))

    def test_loaded_records_are_copies(self):
        store = InMemoryWorldStore()
        store.save_village(_village())

        loaded = store.load_village(dm.VillageID(1))
        loaded.name = "Changed locally"

        assert store.load_village(dm.VillageID(1)).name == "Village 1"


class TestQueries:
    """Due-entity queries."""

    def test_villages_behind_now_are_due(self):
        store = InMemoryWorldStore()
        store.save_village(_village(2))
        store.save_village(_village(1))
        store.save_village(_village(3, last_updated=T0 + timedelta(hours=1)))

        due = store.load_villages_due_for_update(T0 + timedelta(minutes=1))

        assert [int(village.id) for village in due] == [1, 2]

    def test_due_jobs_include_pending_ones(self):
        store = InMemoryWorldStore()
        store.save_queue_job(_job(1, JobStatus.IN_PROGRESS, 30))
        store.save_queue_job(_job(2, JobStatus.IN_PROGRESS, 300))
        store.save_queue_job(_job(3, JobStatus.PENDING, None))
        store.save_queue_job(_job(4, JobStatus.COMPLETED, 10))

        due = store.load_due_queue_jobs(T0 + timedelta(seconds=60))

        assert [int(job.id) for job in due] == [1, 3]
        assert len(store.load_open_queue_jobs(dm.VillageID(1))) == 3

    def test_due_movements(self):
        store = InMemoryWorldStore()
        store.save_movement(_movement(1))
        store.save_movement(_movement(30))
        store.save_movement(_movement(2, MovementStatus.ARRIVED))
        returning = _movement(3, MovementStatus.RETURNING)
        returning.returns_at = T0 + timedelta(hours=2)
        store.save_movement(returning)
        store.save_movement(_movement(4, MovementStatus.COMPLETED))

        due = store.load_due_movements(T0 + timedelta(minutes=5))

        assert [int(movement.id) for movement in due] == [1, 2]

    def test_missing_records_raise_not_found(self):
        store = InMemoryWorldStore()

        with pytest.raises(NotFound):
            store.load_village(dm.VillageID(9))
        with pytest.raises(NotFound):
            store.load_movement(dm.MovementID(9))


class TestBattles:
    """Battle report storage."""

    def test_battle_gets_id_and_links_movement(self):
        store = InMemoryWorldStore()
        movement = _movement(7, MovementStatus.ARRIVED)
        store.save_movement(movement)

        inserted = store.commit(ChangeSet(movements=[movement], battles=[_battle(7)]))

        assert inserted[0].id == 1
        assert movement.battle_id == 1
        assert store.load_movement(dm.MovementID(7)).battle_id == 1
        assert store.battle_results() == inserted

    def test_append_assigns_sequential_ids(self):
        store = InMemoryWorldStore()

        first = store.append_battle_result(_battle(1))
        second = store.append_battle_result(_battle(2))

        assert (first.id, second.id) == (1, 2)

    def test_spy_reports_are_returned_on_the_change_set(self):
        store = InMemoryWorldStore()
        movement = _movement(4, MovementStatus.ARRIVED)
        store.save_movement(movement)
        changes = ChangeSet(movements=[movement], spy_reports=[_spy_report(4)])

        battles = store.commit(changes)

        assert battles == []
        (stored,) = changes.spy_reports
        assert stored.id == 1
        assert store.spy_reports() == [stored]
        assert store.append_spy_report(_spy_report(5)).id == 2

    def test_building_ids_are_assigned(self):
        store = InMemoryWorldStore()
        village = _village()
        village.buildings[1] = dm.BuildingInstance(
            village_id=village.id, building_key=dm.BuildingKey("wall"), level=1, slot=1
        )

        store.save_village(village)

        assert village.buildings[1].id == 1

    def test_catalog_defaults_to_bundled_rows(self):
        store = InMemoryWorldStore()

        assert any(unit.key == "legionnaire" for unit in store.load_unit_defs())
        assert any(building.key == "wall" for building in store.load_building_defs())
