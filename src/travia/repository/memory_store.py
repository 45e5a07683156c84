"""In-memory world store used by tests and local development."""

from __future__ import annotations

import copy
import logging
import threading
from collections.abc import Iterable
from dataclasses import replace
from datetime import datetime

from travia.domain.catalog import default_catalog
from travia.domain.clock import ensure_aware
from travia.domain.enums import JobStatus, MovementStatus
from travia.domain.errors import ConcurrentModification, InvalidArgument, NotFound
from travia.domain.models import (
    BattleID,
    BattleResult,
    BuildingID,
    BuildingTypeDef,
    Catalog,
    JobID,
    Movement,
    MovementID,
    QueueJob,
    SpyReport,
    SpyReportID,
    UnitTypeDef,
    Village,
    VillageID,
)
from travia.interfaces.store import ChangeSet

logger = logging.getLogger(__name__)


class InMemoryWorldStore:
    """Keep world records in dictionaries, handing out deep copies.

    Callers never share objects with the store, so a record mutated by the
    engine only becomes visible to others once it is saved with the right
    version.
    """

    def __init__(self, catalog: Catalog | None = None) -> None:
        self._catalog = catalog if catalog is not None else default_catalog()
        self._villages: dict[VillageID, Village] = {}
        self._jobs: dict[JobID, QueueJob] = {}
        self._movements: dict[MovementID, Movement] = {}
        self._battles: dict[BattleID, BattleResult] = {}
        self._spy_reports: dict[SpyReportID, SpyReport] = {}
        self._next_building_id = 1
        self._next_battle_id = 1
        self._next_spy_report_id = 1
        self._lock = threading.RLock()

    # --- Loading --------------------------------------------------------------

    def load_villages_due_for_update(self, now: datetime) -> list[Village]:
        now = ensure_aware(now)
        with self._lock:
            due = [
                village
                for village in self._villages.values()
                if ensure_aware(village.last_updated) < now
            ]
            return [copy.deepcopy(village) for village in sorted(due, key=lambda v: int(v.id))]

    def load_village(self, village_id: VillageID) -> Village:
        with self._lock:
            village = self._villages.get(village_id)
            if village is None:
                raise NotFound(f"village {int(village_id)} not found")
            return copy.deepcopy(village)

    def load_due_queue_jobs(self, now: datetime) -> list[QueueJob]:
        now = ensure_aware(now)
        with self._lock:
            due = [job for job in self._jobs.values() if _job_is_due(job, now)]
            return [copy.deepcopy(job) for job in sorted(due, key=lambda j: int(j.id))]

    def load_open_queue_jobs(self, village_id: VillageID) -> list[QueueJob]:
        with self._lock:
            open_jobs = [
                job
                for job in self._jobs.values()
                if job.village_id == village_id
                and job.status in (JobStatus.PENDING, JobStatus.IN_PROGRESS)
            ]
            return [copy.deepcopy(job) for job in sorted(open_jobs, key=lambda j: int(j.id))]

    def load_queue_job(self, job_id: JobID) -> QueueJob:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                raise NotFound(f"queue job {int(job_id)} not found")
            return copy.deepcopy(job)

    def load_due_movements(self, now: datetime) -> list[Movement]:
        now = ensure_aware(now)
        with self._lock:
            due = [movement for movement in self._movements.values() if _movement_is_due(movement, now)]
            return [copy.deepcopy(movement) for movement in sorted(due, key=lambda m: int(m.id))]

    def load_movement(self, movement_id: MovementID) -> Movement:
        with self._lock:
            movement = self._movements.get(movement_id)
            if movement is None:
                raise NotFound(f"movement {int(movement_id)} not found")
            return copy.deepcopy(movement)

    def battle_results(self) -> list[BattleResult]:
        with self._lock:
            return [self._battles[key] for key in sorted(self._battles, key=int)]

    def spy_reports(self) -> list[SpyReport]:
        with self._lock:
            return [self._spy_reports[key] for key in sorted(self._spy_reports, key=int)]

    def load_unit_defs(self) -> list[UnitTypeDef]:
        return list(self._catalog.units.values())

    def load_building_defs(self) -> list[BuildingTypeDef]:
        return list(self._catalog.buildings.values())

    # --- Saving ---------------------------------------------------------------

    def save_village(self, village: Village) -> None:
        self.commit(ChangeSet(villages=[village]))

    def save_queue_job(self, job: QueueJob) -> None:
        self.commit(ChangeSet(jobs=[job]))

    def save_movement(self, movement: Movement) -> None:
        self.commit(ChangeSet(movements=[movement]))

    def append_battle_result(self, result: BattleResult) -> BattleResult:
        return self.commit(ChangeSet(battles=[result]))[0]

    def append_spy_report(self, report: SpyReport) -> SpyReport:
        changes = ChangeSet(spy_reports=[report])
        self.commit(changes)
        return changes.spy_reports[0]

    def commit(self, changes: ChangeSet) -> list[BattleResult]:
        with self._lock:
            self._check_versions("village", changes.villages, self._villages)
            self._check_versions("queue job", changes.jobs, self._jobs)
            self._check_versions("movement", changes.movements, self._movements)

            inserted: list[BattleResult] = []
            for result in changes.battles:
                if result.id is not None and result.id in self._battles:
                    raise InvalidArgument(f"battle {int(result.id)} already recorded")
                stored = replace(result, id=BattleID(self._next_battle_id))
                self._next_battle_id += 1
                self._battles[stored.id] = copy.deepcopy(stored)
                inserted.append(stored)
            battle_by_movement = {battle.movement_id: battle.id for battle in inserted}

            spies: list[SpyReport] = []
            for report in changes.spy_reports:
                if report.id is not None and report.id in self._spy_reports:
                    raise InvalidArgument(f"spy report {int(report.id)} already recorded")
                stored_report = replace(report, id=SpyReportID(self._next_spy_report_id))
                self._next_spy_report_id += 1
                self._spy_reports[stored_report.id] = copy.deepcopy(stored_report)
                spies.append(stored_report)

            for village in changes.villages:
                for building in village.buildings.values():
                    if building.id is None:
                        building.id = BuildingID(self._next_building_id)
                        self._next_building_id += 1
                    else:
                        self._next_building_id = max(self._next_building_id, int(building.id) + 1)
                village.version += 1
                self._villages[village.id] = copy.deepcopy(village)
            for job in changes.jobs:
                job.version += 1
                self._jobs[job.id] = copy.deepcopy(job)
            for movement in changes.movements:
                if movement.id in battle_by_movement:
                    movement.battle_id = battle_by_movement[movement.id]
                movement.version += 1
                self._movements[movement.id] = copy.deepcopy(movement)
            changes.battles = inserted
            changes.spy_reports = spies

        logger.debug(
            "committed %d villages, %d jobs, %d movements, %d battles, %d spy reports",
            len(changes.villages),
            len(changes.jobs),
            len(changes.movements),
            len(inserted),
            len(changes.spy_reports),
        )
        return inserted

    @staticmethod
    def _check_versions(entity: str, records: Iterable, stored: dict) -> None:
        for record in records:
            current = stored.get(record.id)
            expected = current.version if current is not None else 0
            if record.version != expected:
                raise ConcurrentModification(entity, int(record.id), record.version)


def _job_is_due(job: QueueJob, now: datetime) -> bool:
    if job.status == JobStatus.PENDING:
        return True
    return (
        job.status == JobStatus.IN_PROGRESS
        and job.completes_at is not None
        and ensure_aware(job.completes_at) <= now
    )


def _movement_is_due(movement: Movement, now: datetime) -> bool:
    match movement.status:
        case MovementStatus.TRAVELLING:
            return ensure_aware(movement.arrives_at) <= now
        case MovementStatus.ARRIVED:
            return True
        case MovementStatus.RETURNING:
            return movement.returns_at is not None and ensure_aware(movement.returns_at) <= now
        case _:
            return False
