"""SQLAlchemy-backed world store."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import and_, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from travia import models as orm
from travia.domain import models as dm
from travia.domain.catalog import decode_building_defs, decode_unit_defs
from travia.domain.clock import ensure_aware
from travia.domain.enums import (
    BattleWinner,
    JobCategory,
    JobStatus,
    MovementStatus,
    MovementType,
    ResourceType,
)
from travia.domain.errors import (
    ConcurrentModification,
    InvalidArgument,
    NotFound,
    PersistenceFailure,
)
from travia.interfaces.store import ChangeSet

logger = logging.getLogger(__name__)

_OPEN_JOB_STATUSES = (str(JobStatus.PENDING), str(JobStatus.IN_PROGRESS))


class SqlWorldStore:
    """Persist the world through SQLAlchemy ORM sessions.

    Each public call runs in its own session; :meth:`commit` writes a whole
    change set in a single transaction. Optimistic locking relies on the
    ``version`` column of villages, jobs and movements (``version_id_col``),
    so a concurrent writer that slipped in between load and save is detected
    both by the explicit version comparison and by the guarded UPDATE.
    """

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        try:
            with self._session_factory() as session:
                yield session
        except SQLAlchemyError as exc:
            logger.warning("world store read failed: %s", exc)
            raise PersistenceFailure(str(exc)) from exc

    # --- Loading --------------------------------------------------------------

    def load_villages_due_for_update(self, now: datetime) -> list[dm.Village]:
        with self._session() as session:
            rows = session.scalars(
                select(orm.Village)
                .where(orm.Village.last_updated < _utc(now))
                .order_by(orm.Village.id)
            ).all()
            return [_village_to_domain(row) for row in rows]

    def load_village(self, village_id: dm.VillageID) -> dm.Village:
        with self._session() as session:
            row = session.get(orm.Village, int(village_id))
            if row is None:
                raise NotFound(f"village {int(village_id)} not found")
            return _village_to_domain(row)

    def load_due_queue_jobs(self, now: datetime) -> list[dm.QueueJob]:
        with self._session() as session:
            rows = session.scalars(
                select(orm.QueueJob)
                .where(
                    or_(
                        orm.QueueJob.status == str(JobStatus.PENDING),
                        and_(
                            orm.QueueJob.status == str(JobStatus.IN_PROGRESS),
                            orm.QueueJob.completes_at <= _utc(now),
                        ),
                    )
                )
                .order_by(orm.QueueJob.id)
            ).all()
            return [_job_to_domain(row) for row in rows]

    def load_open_queue_jobs(self, village_id: dm.VillageID) -> list[dm.QueueJob]:
        with self._session() as session:
            rows = session.scalars(
                select(orm.QueueJob)
                .where(
                    orm.QueueJob.village_id == int(village_id),
                    orm.QueueJob.status.in_(_OPEN_JOB_STATUSES),
                )
                .order_by(orm.QueueJob.id)
            ).all()
            return [_job_to_domain(row) for row in rows]

    def load_queue_job(self, job_id: dm.JobID) -> dm.QueueJob:
        with self._session() as session:
            row = session.get(orm.QueueJob, int(job_id))
            if row is None:
                raise NotFound(f"queue job {int(job_id)} not found")
            return _job_to_domain(row)

    def load_due_movements(self, now: datetime) -> list[dm.Movement]:
        now = _utc(now)
        with self._session() as session:
            rows = session.scalars(
                select(orm.Movement)
                .where(
                    or_(
                        and_(
                            orm.Movement.status == str(MovementStatus.TRAVELLING),
                            orm.Movement.arrives_at <= now,
                        ),
                        orm.Movement.status == str(MovementStatus.ARRIVED),
                        and_(
                            orm.Movement.status == str(MovementStatus.RETURNING),
                            orm.Movement.returns_at <= now,
                        ),
                    )
                )
                .order_by(orm.Movement.id)
            ).all()
            return [_movement_to_domain(row) for row in rows]

    def load_movement(self, movement_id: dm.MovementID) -> dm.Movement:
        with self._session() as session:
            row = session.get(orm.Movement, int(movement_id))
            if row is None:
                raise NotFound(f"movement {int(movement_id)} not found")
            return _movement_to_domain(row)

    def battle_results(self) -> list[dm.BattleResult]:
        with self._session() as session:
            rows = session.scalars(select(orm.Battle).order_by(orm.Battle.id)).all()
            return [_battle_to_domain(row) for row in rows]

    def spy_reports(self) -> list[dm.SpyReport]:
        with self._session() as session:
            rows = session.scalars(select(orm.SpyReport).order_by(orm.SpyReport.id)).all()
            return [_spy_report_to_domain(row) for row in rows]

    def load_unit_defs(self) -> list[dm.UnitTypeDef]:
        with self._session() as session:
            rows = [
                row.as_row()
                for row in session.scalars(select(orm.UnitType).order_by(orm.UnitType.key))
            ]
        return decode_unit_defs(rows)

    def load_building_defs(self) -> list[dm.BuildingTypeDef]:
        with self._session() as session:
            rows = [
                row.as_row()
                for row in session.scalars(select(orm.BuildingType).order_by(orm.BuildingType.key))
            ]
        return decode_building_defs(rows)

    # --- Saving ---------------------------------------------------------------

    def save_village(self, village: dm.Village) -> None:
        self.commit(ChangeSet(villages=[village]))

    def save_queue_job(self, job: dm.QueueJob) -> None:
        self.commit(ChangeSet(jobs=[job]))

    def save_movement(self, movement: dm.Movement) -> None:
        self.commit(ChangeSet(movements=[movement]))

    def append_battle_result(self, result: dm.BattleResult) -> dm.BattleResult:
        return self.commit(ChangeSet(battles=[result]))[0]

    def append_spy_report(self, report: dm.SpyReport) -> dm.SpyReport:
        changes = ChangeSet(spy_reports=[report])
        self.commit(changes)
        return changes.spy_reports[0]

    def commit(self, changes: ChangeSet) -> list[dm.BattleResult]:
        # Domain records only learn their new versions and ids once the
        # transaction has gone through.
        after_commit: list[Callable[[], None]] = []
        inserted: list[dm.BattleResult] = []
        spies: list[dm.SpyReport] = []
        try:
            with self._session_factory.begin() as session:
                battle_by_movement: dict[int, int] = {}
                for result in changes.battles:
                    row = _insert_battle(session, result)
                    battle_by_movement[int(result.movement_id)] = row.id
                    inserted.append(_battle_to_domain(row))
                for report in changes.spy_reports:
                    spies.append(_spy_report_to_domain(_insert_spy_report(session, report)))
                for village in changes.villages:
                    after_commit.append(_write_village(session, village))
                for job in changes.jobs:
                    after_commit.append(_write_job(session, job))
                for movement in changes.movements:
                    after_commit.append(
                        _write_movement(session, movement, battle_by_movement.get(int(movement.id)))
                    )
        except SQLAlchemyError as exc:
            logger.warning("world store commit failed: %s", exc)
            raise PersistenceFailure(str(exc)) from exc

        for apply in after_commit:
            apply()
        changes.battles = inserted
        changes.spy_reports = spies
        return inserted


# --- Row writers ----------------------------------------------------------------


def _utc(moment: datetime) -> datetime:
    return ensure_aware(moment).astimezone(UTC)


def _locked_row(session: Session, model: type[Any], entity: str, record_id: int, version: int) -> Any:
    row = session.get(model, record_id)
    stored_version = row.version if row is not None else 0
    if stored_version != version:
        raise ConcurrentModification(entity, record_id, version)
    return row


def _flush(session: Session, entity: str, record_id: int, version: int) -> None:
    try:
        session.flush()
    except StaleDataError as exc:
        raise ConcurrentModification(entity, record_id, version) from exc


def _write_village(session: Session, village: dm.Village) -> Callable[[], None]:
    row = _locked_row(session, orm.Village, "village", int(village.id), village.version)
    if row is None:
        row = orm.Village(id=int(village.id))
        session.add(row)
    row.version = village.version + 1
    row.owner_id = int(village.owner_id)
    row.name = village.name
    row.x = village.x
    row.y = village.y
    row.last_updated = _utc(village.last_updated)

    resources = {record.resource: record for record in row.resources}
    for resource, stock in village.resources.items():
        record = resources.pop(str(resource), None)
        if record is None:
            record = orm.VillageResource(resource=str(resource))
            row.resources.append(record)
        record.amount = stock.amount
        record.capacity = stock.capacity
        record.rate_per_hour = stock.rate_per_hour
    for record in resources.values():
        row.resources.remove(record)

    buildings = {record.slot: record for record in row.buildings}
    written: list[tuple[dm.BuildingInstance, orm.Building]] = []
    for slot, building in village.buildings.items():
        record = buildings.pop(slot, None)
        if record is None:
            record = orm.Building(slot=slot)
            row.buildings.append(record)
        record.building_key = str(building.building_key)
        record.level = building.level
        written.append((building, record))
    for record in buildings.values():
        row.buildings.remove(record)

    troops = {record.unit_key: record for record in row.troops}
    for unit_key, stack in village.troops.items():
        record = troops.pop(str(unit_key), None)
        if record is None:
            record = orm.TroopStack(unit_key=str(unit_key))
            row.troops.append(record)
        record.count = stack.count
        record.in_village = stack.in_village
        record.in_attack = stack.in_attack
        record.in_defense = stack.in_defense
        record.in_support = stack.in_support
    for record in troops.values():
        row.troops.remove(record)

    _flush(session, "village", int(village.id), village.version)
    new_version = row.version
    building_ids = [(building, dm.BuildingID(record.id)) for building, record in written]

    def apply() -> None:
        village.version = new_version
        for building, building_id in building_ids:
            building.id = building_id

    return apply


def _write_job(session: Session, job: dm.QueueJob) -> Callable[[], None]:
    row = _locked_row(session, orm.QueueJob, "queue job", int(job.id), job.version)
    if row is None:
        row = orm.QueueJob(id=int(job.id))
        session.add(row)
    row.version = job.version + 1
    row.village_id = int(job.village_id)
    row.category = str(job.category)
    row.target = job.target
    row.slot = job.slot
    row.target_level = job.target_level
    row.count = job.count
    row.status = str(job.status)
    row.started_at = _utc(job.started_at)
    row.completes_at = _utc(job.completes_at) if job.completes_at is not None else None
    row.cancel_reason = job.cancel_reason

    _flush(session, "queue job", int(job.id), job.version)
    new_version = row.version

    def apply() -> None:
        job.version = new_version

    return apply


def _write_movement(
    session: Session, movement: dm.Movement, battle_id: int | None
) -> Callable[[], None]:
    row = _locked_row(session, orm.Movement, "movement", int(movement.id), movement.version)
    if row is None:
        row = orm.Movement(id=int(movement.id))
        session.add(row)
    if battle_id is None and movement.battle_id is not None:
        battle_id = int(movement.battle_id)
    row.version = movement.version + 1
    row.player_id = int(movement.player_id)
    row.origin_id = int(movement.origin_id)
    row.destination_id = int(movement.destination_id)
    row.type = str(movement.type)
    row.troops = {str(key): count for key, count in movement.troops.items()}
    row.resources = {str(resource): amount for resource, amount in movement.resources.items()}
    row.status = str(movement.status)
    row.started_at = _utc(movement.started_at)
    row.arrives_at = _utc(movement.arrives_at)
    row.returns_at = _utc(movement.returns_at) if movement.returns_at is not None else None
    row.battle_id = battle_id
    row.cancel_reason = movement.cancel_reason

    _flush(session, "movement", int(movement.id), movement.version)
    new_version = row.version

    def apply() -> None:
        movement.version = new_version
        movement.battle_id = dm.BattleID(battle_id) if battle_id is not None else None

    return apply


def _insert_battle(session: Session, result: dm.BattleResult) -> orm.Battle:
    if result.id is not None and session.get(orm.Battle, int(result.id)) is not None:
        raise InvalidArgument(f"battle {int(result.id)} already recorded")
    row = orm.Battle(
        movement_id=int(result.movement_id),
        attacker_village_id=int(result.attacker_village_id),
        defender_village_id=int(result.defender_village_id),
        attacker_troops={str(key): count for key, count in result.attacker_troops.items()},
        defender_troops={str(key): count for key, count in result.defender_troops.items()},
        attacker_losses={str(key): count for key, count in result.attacker_losses.items()},
        defender_losses={str(key): count for key, count in result.defender_losses.items()},
        loot={str(resource): amount for resource, amount in result.loot.items()},
        winner=str(result.winner),
        attack_power=result.attack_power,
        defense_power=result.defense_power,
        occurred_at=_utc(result.occurred_at),
    )
    session.add(row)
    session.flush()
    return row


def _insert_spy_report(session: Session, report: dm.SpyReport) -> orm.SpyReport:
    if report.id is not None and session.get(orm.SpyReport, int(report.id)) is not None:
        raise InvalidArgument(f"spy report {int(report.id)} already recorded")
    row = orm.SpyReport(
        movement_id=int(report.movement_id),
        spy_village_id=int(report.spy_village_id),
        target_village_id=int(report.target_village_id),
        caught=report.caught,
        trap_level=report.trap_level,
        resources={str(resource): amount for resource, amount in report.resources.items()},
        buildings={str(key): level for key, level in report.buildings.items()},
        troops={str(key): count for key, count in report.troops.items()},
        occurred_at=_utc(report.occurred_at),
    )
    session.add(row)
    session.flush()
    return row


# --- Row readers ----------------------------------------------------------------


def _village_to_domain(row: orm.Village) -> dm.Village:
    village_id = dm.VillageID(row.id)
    return dm.Village(
        id=village_id,
        owner_id=dm.PlayerID(row.owner_id),
        name=row.name,
        x=row.x,
        y=row.y,
        resources={
            ResourceType(record.resource): dm.ResourceStock(
                amount=record.amount,
                capacity=record.capacity,
                rate_per_hour=record.rate_per_hour,
            )
            for record in row.resources
        },
        last_updated=ensure_aware(row.last_updated),
        buildings={
            record.slot: dm.BuildingInstance(
                village_id=village_id,
                building_key=dm.BuildingKey(record.building_key),
                level=record.level,
                slot=record.slot,
                id=dm.BuildingID(record.id),
            )
            for record in sorted(row.buildings, key=lambda record: record.slot)
        },
        troops={
            dm.UnitKey(record.unit_key): dm.TroopStack(
                village_id=village_id,
                unit_key=dm.UnitKey(record.unit_key),
                count=record.count,
                in_village=record.in_village,
                in_attack=record.in_attack,
                in_defense=record.in_defense,
                in_support=record.in_support,
            )
            for record in sorted(row.troops, key=lambda record: record.unit_key)
        },
        version=row.version,
    )


def _job_to_domain(row: orm.QueueJob) -> dm.QueueJob:
    return dm.QueueJob(
        id=dm.JobID(row.id),
        village_id=dm.VillageID(row.village_id),
        category=JobCategory(row.category),
        target=row.target,
        status=JobStatus(row.status),
        started_at=ensure_aware(row.started_at),
        completes_at=ensure_aware(row.completes_at) if row.completes_at is not None else None,
        target_level=row.target_level,
        slot=row.slot,
        count=row.count,
        cancel_reason=row.cancel_reason,
        version=row.version,
    )


def _movement_to_domain(row: orm.Movement) -> dm.Movement:
    return dm.Movement(
        id=dm.MovementID(row.id),
        player_id=dm.PlayerID(row.player_id),
        origin_id=dm.VillageID(row.origin_id),
        destination_id=dm.VillageID(row.destination_id),
        type=MovementType(row.type),
        troops={dm.UnitKey(key): int(count) for key, count in row.troops.items()},
        started_at=ensure_aware(row.started_at),
        arrives_at=ensure_aware(row.arrives_at),
        status=MovementStatus(row.status),
        resources={ResourceType(key): float(amount) for key, amount in row.resources.items()},
        returns_at=ensure_aware(row.returns_at) if row.returns_at is not None else None,
        battle_id=dm.BattleID(row.battle_id) if row.battle_id is not None else None,
        cancel_reason=row.cancel_reason,
        version=row.version,
    )


def _battle_to_domain(row: orm.Battle) -> dm.BattleResult:
    def units(blob: dict) -> dm.Composition:
        return {dm.UnitKey(key): int(count) for key, count in blob.items()}

    return dm.BattleResult(
        id=dm.BattleID(row.id),
        movement_id=dm.MovementID(row.movement_id),
        attacker_village_id=dm.VillageID(row.attacker_village_id),
        defender_village_id=dm.VillageID(row.defender_village_id),
        attacker_troops=units(row.attacker_troops),
        defender_troops=units(row.defender_troops),
        attacker_losses=units(row.attacker_losses),
        defender_losses=units(row.defender_losses),
        loot={ResourceType(key): int(amount) for key, amount in row.loot.items()},
        winner=BattleWinner(row.winner),
        attack_power=row.attack_power,
        defense_power=row.defense_power,
        occurred_at=ensure_aware(row.occurred_at),
    )


def _spy_report_to_domain(row: orm.SpyReport) -> dm.SpyReport:
    return dm.SpyReport(
        id=dm.SpyReportID(row.id),
        movement_id=dm.MovementID(row.movement_id),
        spy_village_id=dm.VillageID(row.spy_village_id),
        target_village_id=dm.VillageID(row.target_village_id),
        caught=row.caught,
        trap_level=row.trap_level,
        occurred_at=ensure_aware(row.occurred_at),
        resources={ResourceType(key): int(amount) for key, amount in row.resources.items()},
        buildings={dm.BuildingKey(key): int(level) for key, level in row.buildings.items()},
        troops={dm.UnitKey(key): int(count) for key, count in row.troops.items()},
    )
