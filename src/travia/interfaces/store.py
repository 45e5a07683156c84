"""World store protocol.

This module defines the persistence contract the simulation engine relies on.
The engine never sees an ORM session or a file; it loads due entities through
this protocol and writes each unit of work back through it.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

from travia.domain.models import (
    BattleResult,
    BuildingTypeDef,
    JobID,
    Movement,
    MovementID,
    QueueJob,
    SpyReport,
    UnitTypeDef,
    Village,
    VillageID,
)


@dataclass(slots=True)
class ChangeSet:
    """Records that must be persisted together or not at all.

    Battles are inserted first; a movement in the same change set whose id
    matches a battle's ``movement_id`` receives that battle's id. After a
    successful commit ``battles`` and ``spy_reports`` hold the stored reports,
    ids included.
    """

    villages: Sequence[Village] = field(default_factory=list)
    jobs: Sequence[QueueJob] = field(default_factory=list)
    movements: Sequence[Movement] = field(default_factory=list)
    battles: Sequence[BattleResult] = field(default_factory=list)
    spy_reports: Sequence[SpyReport] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (
            self.villages or self.jobs or self.movements or self.battles or self.spy_reports
        )


class WorldStore(Protocol):
    """Protocol defining the persistence operations of the tick engine.

    Every ``save_*`` call and :meth:`commit` performs an optimistic-lock check:
    the record's ``version`` must match the stored one, otherwise
    ``ConcurrentModification`` is raised and nothing is written. On success the
    passed records have their ``version`` bumped and store-assigned ids filled
    in. Records that do not exist yet are inserted when their version is 0.
    Underlying I/O errors surface as ``PersistenceFailure``.
    """

    def load_villages_due_for_update(self, now: datetime) -> list[Village]:
        """Villages whose ``last_updated`` lies before ``now``, ordered by id."""
        ...

    def load_village(self, village_id: VillageID) -> Village:
        """Load one village or raise ``NotFound``."""
        ...

    def load_due_queue_jobs(self, now: datetime) -> list[QueueJob]:
        """In-progress jobs completing by ``now`` plus pending jobs awaiting a slot."""
        ...

    def load_open_queue_jobs(self, village_id: VillageID) -> list[QueueJob]:
        """Every pending or in-progress job of one village."""
        ...

    def load_queue_job(self, job_id: JobID) -> QueueJob:
        """Load one job or raise ``NotFound``."""
        ...

    def load_movement(self, movement_id: MovementID) -> Movement:
        """Load one movement or raise ``NotFound``."""
        ...

    def load_due_movements(self, now: datetime) -> list[Movement]:
        """Movements with a transition due by ``now``.

        That is travelling movements that have arrived, arrived movements still
        waiting for their battle or departure, and returning movements that are
        back home.
        """
        ...

    def save_village(self, village: Village) -> None: ...

    def save_queue_job(self, job: QueueJob) -> None: ...

    def save_movement(self, movement: Movement) -> None: ...

    def append_battle_result(self, result: BattleResult) -> BattleResult:
        """Insert an immutable battle report and return it with its id."""
        ...

    def append_spy_report(self, report: SpyReport) -> SpyReport:
        """Insert an immutable spy report and return it with its id."""
        ...

    def commit(self, changes: ChangeSet) -> list[BattleResult]:
        """Persist a change set atomically; returns the inserted battles."""
        ...

    def load_unit_defs(self) -> list[UnitTypeDef]: ...

    def load_building_defs(self) -> list[BuildingTypeDef]: ...
