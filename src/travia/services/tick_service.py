"""World tick service for the Travia simulation.

One tick brings the whole world up to a given instant:

1. accrue production for every village that is behind ``now``;
2. complete due building/training jobs and start waiting ones;
3. advance due movements (arrival, battle, spy report, trade delivery, return);
4. persist each village and movement as its own unit of work.

Villages are independent of one another during steps 1-2 and are processed on
a thread pool. Movements can touch two villages at once (attacker and
defender), so they run serially afterwards in arrival order. Running the same
tick twice changes nothing the second time.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from functools import partial

from travia.config import Settings
from travia.domain import troops
from travia.domain.catalog import build_catalog
from travia.domain.clock import elapsed_seconds, ensure_aware
from travia.domain.combat import defensive_bonus, resolve_combat
from travia.domain.enums import (
    BattleWinner,
    JobCategory,
    MovementEventKind,
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
from travia.domain.models import (
    BattleResult,
    Catalog,
    JobID,
    Movement,
    MovementID,
    SpyReport,
    Village,
    VillageID,
)
from travia.domain.espionage import scout
from travia.domain.movement import COMBAT_TYPES, MovementEvent, abort, advance, cancel, validate
from travia.domain.queue import cancel_job, resolve_due
from travia.domain.reports import build_battle_result, report_for
from travia.domain.resources import (
    accumulate,
    add_resources,
    apply_delta,
    refresh_production_rates,
    remove_resources,
)
from travia.domain.rules_config import DEFAULT_CONFIG, SimulationConfig
from travia.interfaces.store import ChangeSet, WorldStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TickError:
    """A failure that stopped one entity from being processed."""

    entity: str
    entity_id: int
    error: str
    message: str


@dataclass(slots=True)
class TickReport:
    """What a tick did, for logging and for callers to inspect."""

    now: datetime
    villages_updated: int = 0
    jobs_completed: int = 0
    jobs_cancelled: int = 0
    jobs_promoted: int = 0
    movements_advanced: int = 0
    battles: list[BattleResult] = field(default_factory=list)
    spy_reports: list[SpyReport] = field(default_factory=list)
    events: list[MovementEvent] = field(default_factory=list)
    deferred: list[tuple[str, int]] = field(default_factory=list)
    errors: list[TickError] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return not self.errors

    def summary(self) -> dict[str, object]:
        return {
            "now": self.now.isoformat(),
            "villages_updated": self.villages_updated,
            "jobs_completed": self.jobs_completed,
            "jobs_cancelled": self.jobs_cancelled,
            "jobs_promoted": self.jobs_promoted,
            "movements_advanced": self.movements_advanced,
            "battles": len(self.battles),
            "spy_reports": len(self.spy_reports),
            "events": len(self.events),
            "deferred": len(self.deferred),
            "errors": len(self.errors),
        }


@dataclass(slots=True)
class _VillageOutcome:
    village_id: int
    saved: bool = False
    village_saved: bool = False
    completed: int = 0
    cancelled: int = 0
    promoted: int = 0
    deferred: bool = False
    error: TickError | None = None


class _BudgetExceeded(Exception):
    """Raised internally when an entity overruns its time budget."""


class SimulationEngine:
    """Advance the persisted world one tick at a time.

    The engine owns no world state between ticks: everything is loaded from
    the store at the start of a tick and written back through it. Static
    definitions are loaded and decoded once, at construction.
    """

    def __init__(
        self,
        store: WorldStore,
        *,
        config: SimulationConfig = DEFAULT_CONFIG,
        catalog: Catalog | None = None,
        max_workers: int = 4,
        entity_time_budget: float | None = None,
        tick_time_budget: float | None = None,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_workers < 1:
            raise InvalidArgument("max_workers must be at least 1")
        self._store = store
        self._config = config
        self._catalog = catalog or build_catalog(store.load_unit_defs(), store.load_building_defs())
        self._max_workers = max_workers
        self._entity_budget = entity_time_budget
        self._tick_budget = tick_time_budget
        self._timer = timer

    @classmethod
    def from_settings(cls, store: WorldStore, settings: Settings) -> SimulationEngine:
        return cls(
            store,
            config=settings.simulation_config(),
            max_workers=settings.max_workers,
            entity_time_budget=settings.entity_time_budget_seconds,
            tick_time_budget=settings.tick_time_budget_seconds,
        )

    @property
    def catalog(self) -> Catalog:
        return self._catalog

    @property
    def config(self) -> SimulationConfig:
        return self._config

    # --- Tick -----------------------------------------------------------------

    def tick(self, now: datetime) -> TickReport:
        """Bring every due village, job and movement up to ``now``."""

        now = ensure_aware(now)
        started = self._timer()
        deadline = started + self._tick_budget if self._tick_budget is not None else None
        report = TickReport(now=now)

        village_ids = self._villages_to_process(now)
        worker = partial(self._process_village, now=now, deadline=deadline)
        with ThreadPoolExecutor(
            max_workers=self._max_workers, thread_name_prefix="travia-tick"
        ) as pool:
            outcomes = list(pool.map(worker, village_ids))
        for outcome in outcomes:
            self._record_village(report, outcome)

        for movement in sorted(self._store.load_due_movements(now), key=_movement_due_key):
            self._process_movement(movement, now, deadline, report)

        report.duration_seconds = self._timer() - started
        logger.info("tick %s finished: %s", now.isoformat(), report.summary())
        return report

    def _villages_to_process(self, now: datetime) -> list[VillageID]:
        ids = {village.id for village in self._store.load_villages_due_for_update(now)}
        ids.update(job.village_id for job in self._store.load_due_queue_jobs(now))
        return sorted(ids, key=int)

    # --- Villages -------------------------------------------------------------

    def _process_village(
        self, village_id: VillageID, *, now: datetime, deadline: float | None
    ) -> _VillageOutcome:
        outcome = _VillageOutcome(village_id=int(village_id))
        started = self._timer()
        if deadline is not None and started > deadline:
            outcome.deferred = True
            return outcome

        try:
            self._update_village(village_id, now, started, outcome)
        except ConcurrentModification as exc:
            logger.warning("village %s changed concurrently, deferring: %s", int(village_id), exc)
            outcome.deferred = True
        except _BudgetExceeded:
            logger.warning("village %s exceeded its time budget, deferring", int(village_id))
            outcome.deferred = True
        except (InvalidArgument, PersistenceFailure) as exc:
            logger.error("village %s could not be processed: %s", int(village_id), exc)
            outcome.error = _error("village", village_id, exc)
        return outcome

    def _update_village(
        self, village_id: VillageID, now: datetime, started: float, outcome: _VillageOutcome
    ) -> None:
        try:
            village: Village | None = self._store.load_village(village_id)
        except NotFound:
            village = None
        jobs = self._store.load_open_queue_jobs(village_id)

        village_changed = False
        if village is not None:
            troops.check_village(village)
            elapsed = elapsed_seconds(village.last_updated, now)
            if elapsed > 0:
                apply_delta(village, accumulate(village, elapsed, rules=self._config))
                village_changed = True

        resolution = resolve_due(jobs, now, village=village, catalog=self._catalog, rules=self._config)
        if village is not None and resolution.completed:
            if any(job.category == JobCategory.BUILDING for job in resolution.completed):
                refresh_production_rates(village, self._catalog, rules=self._config)
            village_changed = True

        if not village_changed and not resolution.changed:
            return
        self._check_budget(started)

        self._store.commit(
            ChangeSet(
                villages=[village] if village is not None and village_changed else [],
                jobs=resolution.changed,
            )
        )
        outcome.saved = True
        outcome.village_saved = village_changed
        outcome.completed = len(resolution.completed)
        outcome.cancelled = len(resolution.cancelled)
        outcome.promoted = len(resolution.promoted)
        for job in resolution.cancelled:
            logger.info("job %s cancelled: %s", int(job.id), job.cancel_reason)

    def _record_village(self, report: TickReport, outcome: _VillageOutcome) -> None:
        if outcome.deferred:
            report.deferred.append(("village", outcome.village_id))
        if outcome.error is not None:
            report.errors.append(outcome.error)
        if outcome.saved:
            report.villages_updated += int(outcome.village_saved)
            report.jobs_completed += outcome.completed
            report.jobs_cancelled += outcome.cancelled
            report.jobs_promoted += outcome.promoted

    # --- Movements ------------------------------------------------------------

    def _process_movement(
        self, movement: Movement, now: datetime, deadline: float | None, report: TickReport
    ) -> None:
        started = self._timer()
        if deadline is not None and started > deadline:
            report.deferred.append(("movement", int(movement.id)))
            return

        try:
            self._advance_movement(movement, now, started, report)
        except ConcurrentModification as exc:
            logger.warning("movement %s changed concurrently, deferring: %s", int(movement.id), exc)
            report.deferred.append(("movement", int(movement.id)))
        except _BudgetExceeded:
            logger.warning("movement %s exceeded its time budget, deferring", int(movement.id))
            report.deferred.append(("movement", int(movement.id)))
        except (InvalidArgument, NotFound, PersistenceFailure) as exc:
            logger.error("movement %s could not be processed: %s", int(movement.id), exc)
            report.errors.append(_error("movement", movement.id, exc))

    def _advance_movement(
        self, movement: Movement, now: datetime, started: float, report: TickReport
    ) -> None:
        validate(movement)
        while True:
            if movement.status == MovementStatus.TRAVELLING and now >= ensure_aware(movement.arrives_at):
                if self._find_village(movement.destination_id) is None:
                    self._check_budget(started)
                    report.events.append(self._abort_lost_movement(movement, now))
                    report.movements_advanced += 1
                    return

            if self._awaits_battle(movement):
                self._check_budget(started)
                battles = self._store.commit(self._fight(movement))
                report.battles.extend(battles)
                continue

            previous = movement.status
            event = advance(movement, now)
            if event is None:
                return
            self._check_budget(started)

            changes = ChangeSet(movements=[movement])
            if event.kind == MovementEventKind.ARRIVED and movement.type in COMBAT_TYPES:
                changes = self._fight(movement)
            elif event.kind == MovementEventKind.ARRIVED and movement.type == MovementType.SPY:
                changes = self._scout(movement)
            elif event.kind == MovementEventKind.ARRIVED:
                changes = self._deliver(movement)
            elif event.kind == MovementEventKind.COMPLETED and previous == MovementStatus.RETURNING:
                changes = self._come_home(movement)

            report.battles.extend(self._store.commit(changes))
            report.spy_reports.extend(changes.spy_reports)
            report.events.append(event)
            report.movements_advanced += 1

    @staticmethod
    def _awaits_battle(movement: Movement) -> bool:
        return (
            movement.status == MovementStatus.ARRIVED
            and movement.type in COMBAT_TYPES
            and movement.battle_id is None
        )

    def _fight(self, movement: Movement) -> ChangeSet:
        defender = self._store.load_village(movement.destination_id)
        if movement.origin_id == movement.destination_id:
            origin: Village | None = defender
        else:
            origin = self._find_village(movement.origin_id)

        troops.check_village(defender)
        if origin is not None and origin is not defender:
            troops.check_village(origin)

        defenders = troops.defending_troops(defender)
        outcome = resolve_combat(
            movement.troops,
            defenders,
            self._catalog.units,
            defender_resources={
                resource: stock.amount for resource, stock in defender.resources.items()
            },
            defense_bonus=defensive_bonus(
                defender.buildings.values(), self._catalog, rules=self._config
            ),
            raid=movement.type == MovementType.RAID,
            rules=self._config,
        )
        result = build_battle_result(movement, defenders, outcome, movement.arrives_at)

        troops.apply_defender_losses(defender, outcome.defender_losses)
        remove_resources(defender, dict(outcome.loot))
        if origin is not None:
            troops.apply_attacker_losses(origin, outcome.attacker_losses)

        movement.troops = {key: count for key, count in outcome.attacker_survivors.items() if count > 0}
        movement.resources = {
            resource: float(amount) for resource, amount in outcome.loot.items() if amount > 0
        }
        attacker_view = report_for(result, BattleWinner.ATTACKER)
        logger.info(
            "battle at village %s: attacker %s (attack %.1f vs defense %.1f), losses %s, loot %s",
            int(defender.id),
            attacker_view["status"],
            outcome.attack_power,
            outcome.defense_power,
            attacker_view["casualties"]["formatted"],
            attacker_view["loot"]["formatted"],
        )
        logger.debug("defender report: %s", report_for(result, BattleWinner.DEFENDER))

        villages = [defender]
        if origin is not None and origin is not defender:
            villages.append(origin)
        return ChangeSet(villages=villages, movements=[movement], battles=[result])

    def _scout(self, movement: Movement) -> ChangeSet:
        target = self._store.load_village(movement.destination_id)
        spy_report = scout(movement, target, rules=self._config)
        if not spy_report.caught:
            logger.info(
                "spies from village %s scouted village %s", int(movement.origin_id), int(target.id)
            )
            return ChangeSet(movements=[movement], spy_reports=[spy_report])

        logger.info(
            "spies from village %s caught by level %d traps at village %s",
            int(movement.origin_id),
            spy_report.trap_level,
            int(target.id),
        )
        origin = self._find_village(movement.origin_id)
        villages: list[Village] = []
        if origin is not None:
            troops.check_village(origin)
            troops.apply_attacker_losses(origin, movement.troops)
            villages.append(origin)
        movement.troops = {}
        return ChangeSet(villages=villages, movements=[movement], spy_reports=[spy_report])

    def _deliver(self, movement: Movement) -> ChangeSet:
        destination = self._store.load_village(movement.destination_id)
        match movement.type:
            case MovementType.REINFORCE:
                troops.station_reinforcements(destination, movement.troops)
            case MovementType.TRADE:
                kept = 1.0 - self._config.trade_tax_rate
                add_resources(
                    destination,
                    {resource: amount * kept for resource, amount in movement.resources.items()},
                )
            case MovementType.RETURN:
                troops.return_from_support(destination, movement.troops)
                add_resources(destination, dict(movement.resources))
            case _:
                raise InvalidArgument(f"movement {int(movement.id)} has no delivery for {movement.type}")
        return ChangeSet(villages=[destination], movements=[movement])

    def _come_home(self, movement: Movement) -> ChangeSet:
        if movement.type == MovementType.TRADE:
            # merchants carry nothing back
            return ChangeSet(movements=[movement])
        origin = self._find_village(movement.origin_id)
        if origin is None:
            logger.warning(
                "movement %s returned to missing village %s; survivors are lost",
                int(movement.id),
                int(movement.origin_id),
            )
            movement.cancel_reason = "origin not found"
            return ChangeSet(movements=[movement])
        troops.return_from_attack(origin, movement.troops)
        add_resources(origin, dict(movement.resources))
        return ChangeSet(villages=[origin], movements=[movement])

    def _abort_lost_movement(self, movement: Movement, now: datetime) -> MovementEvent:
        abort(movement, "destination not found")
        changes = self._send_back(movement)
        self._store.commit(changes)
        logger.warning("movement %s cancelled: destination missing", int(movement.id))
        return MovementEvent(
            movement_id=movement.id,
            movement_type=movement.type,
            kind=MovementEventKind.CANCELLED,
            at=now,
        )

    def _send_back(self, movement: Movement) -> ChangeSet:
        """Put the cargo of a cancelled movement back at its origin."""

        origin = self._find_village(movement.origin_id)
        if origin is None:
            return ChangeSet(movements=[movement])
        match movement.type:
            case MovementType.ATTACK | MovementType.RAID | MovementType.SPY:
                troops.return_from_attack(origin, movement.troops)
            case MovementType.REINFORCE:
                troops.return_from_support(origin, movement.troops)
            case MovementType.TRADE:
                add_resources(origin, dict(movement.resources))
            case MovementType.RETURN:
                pass
        return ChangeSet(villages=[origin], movements=[movement])

    # --- Player actions -------------------------------------------------------

    def cancel_movement(self, movement_id: MovementID, now: datetime) -> MovementEvent:
        """Recall a movement early in its outbound leg and return its cargo."""

        movement = self._store.load_movement(movement_id)
        event = cancel(movement, now, rules=self._config)
        self._store.commit(self._send_back(movement))
        return event

    def cancel_queue_job(self, job_id: JobID, now: datetime) -> dict[ResourceType, int]:
        """Cancel an open job, credit the refund and start the next waiting job."""

        job = self._store.load_queue_job(job_id)
        village = self._store.load_village(job.village_id)
        refund = cancel_job(job, village=village, catalog=self._catalog, rules=self._config)
        add_resources(village, {resource: float(amount) for resource, amount in refund.items()})

        remaining = [
            other
            for other in self._store.load_open_queue_jobs(village.id)
            if other.id != job.id
        ]
        resolution = resolve_due(
            remaining, ensure_aware(now), village=village, catalog=self._catalog, rules=self._config
        )
        self._store.commit(ChangeSet(villages=[village], jobs=[job, *resolution.changed]))
        return refund

    # --- Helpers --------------------------------------------------------------

    def _find_village(self, village_id: VillageID) -> Village | None:
        try:
            return self._store.load_village(village_id)
        except NotFound:
            return None

    def _check_budget(self, started: float) -> None:
        if self._entity_budget is not None and self._timer() - started > self._entity_budget:
            raise _BudgetExceeded


def _movement_due_key(movement: Movement) -> tuple[datetime, int]:
    if movement.status == MovementStatus.RETURNING and movement.returns_at is not None:
        return (ensure_aware(movement.returns_at), int(movement.id))
    return (ensure_aware(movement.arrives_at), int(movement.id))


def _error(entity: str, entity_id: int, exc: Exception) -> TickError:
    return TickError(
        entity=entity,
        entity_id=int(entity_id),
        error=type(exc).__name__,
        message=str(exc),
    )
