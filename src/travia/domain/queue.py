"""Building and training queue rules."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from travia.domain import troops
from travia.domain.clock import ensure_aware
from travia.domain.enums import JobCategory, JobStatus, ResourceType
from travia.domain.errors import InvalidArgument, NotFound
from travia.domain.models import (
    BuildingInstance,
    BuildingKey,
    BuildingTypeDef,
    Catalog,
    QueueJob,
    UnitKey,
    UnitTypeDef,
    Village,
)
from travia.domain.rules_config import DEFAULT_CONFIG, SimulationConfig

OPEN_STATUSES = frozenset({JobStatus.PENDING, JobStatus.IN_PROGRESS})


@dataclass(slots=True)
class QueueResolution:
    """Jobs touched by one pass over a village's queues."""

    completed: list[QueueJob] = field(default_factory=list)
    cancelled: list[QueueJob] = field(default_factory=list)
    promoted: list[QueueJob] = field(default_factory=list)
    still_pending: list[QueueJob] = field(default_factory=list)

    @property
    def changed(self) -> list[QueueJob]:
        return [*self.completed, *self.cancelled, *self.promoted]


# --- Cost and duration curves ---------------------------------------------------


def building_cost(
    definition: BuildingTypeDef,
    level: int,
    *,
    rules: SimulationConfig = DEFAULT_CONFIG,
) -> dict[ResourceType, int]:
    """Resources needed to raise a building to ``level``."""

    _check_level(definition, level)
    growth = rules.queues.building_cost_growth ** (level - 1)
    return {resource: round(base * growth) for resource, base in definition.costs.items()}


def building_duration(
    definition: BuildingTypeDef,
    level: int,
    *,
    rules: SimulationConfig = DEFAULT_CONFIG,
) -> int:
    """Seconds needed to raise a building to ``level``."""

    _check_level(definition, level)
    seconds = (
        definition.construction_time
        * rules.queues.building_time_growth ** (level - 1)
        * rules.queues.building_time_multiplier
    )
    return max(1, int(seconds))


def training_duration(
    definition: UnitTypeDef,
    count: int,
    *,
    village: Village | None = None,
    catalog: Catalog | None = None,
    rules: SimulationConfig = DEFAULT_CONFIG,
) -> int:
    """Seconds needed to train ``count`` units in one batch.

    Each unit beyond the first adds a fraction of the base time; training
    buildings in the village shorten the batch.
    """

    if count <= 0:
        raise InvalidArgument("training count must be positive")
    queues = rules.queues
    seconds = definition.training_time * (1 + (count - 1) * queues.extra_unit_time_fraction)
    seconds *= _training_factor(village, catalog, rules)
    seconds *= queues.training_time_multiplier
    return max(1, int(seconds))


def training_cost(definition: UnitTypeDef, count: int) -> dict[ResourceType, int]:
    """Resources needed to train ``count`` units."""

    if count <= 0:
        raise InvalidArgument("training count must be positive")
    return {resource: cost * count for resource, cost in definition.costs.items()}


def _training_factor(
    village: Village | None,
    catalog: Catalog | None,
    rules: SimulationConfig,
) -> float:
    if village is None or catalog is None:
        return 1.0
    reduction = 0.0
    for building in village.buildings.values():
        definition = catalog.buildings.get(building.building_key)
        if definition is not None:
            reduction += definition.training_bonus_per_level * building.level
    return max(rules.queues.minimum_training_factor, 1.0 - reduction)


def _check_level(definition: BuildingTypeDef, level: int) -> None:
    if level < 1 or level > definition.max_level:
        raise InvalidArgument(
            f"{definition.key} level {level} outside 1..{definition.max_level}"
        )


# --- Resolution -----------------------------------------------------------------


def resolve_due(
    jobs: list[QueueJob],
    now: datetime,
    *,
    village: Village | None,
    catalog: Catalog,
    rules: SimulationConfig = DEFAULT_CONFIG,
) -> QueueResolution:
    """Complete due jobs of one village and promote waiting ones.

    Due jobs are applied in ``(completes_at, id)`` order because a building's
    level feeds later durations and production. Afterwards each category's
    free slots (``rules.queues.parallel_limit``) are filled from pending jobs
    in ``(started_at, id)`` order with ``completes_at = now + duration``.
    Jobs whose village or definition is missing are cancelled and reported.
    """

    now = ensure_aware(now)
    resolution = QueueResolution()
    open_jobs = [job for job in jobs if job.status in OPEN_STATUSES]

    if village is None:
        for job in sorted(open_jobs, key=lambda job: int(job.id)):
            _cancel(job, "village not found", resolution)
        return resolution

    for job in open_jobs:
        if job.village_id != village.id:
            raise InvalidArgument(
                f"job {int(job.id)} belongs to village {int(job.village_id)}, "
                f"not {int(village.id)}"
            )

    due = sorted(
        (job for job in open_jobs if _is_due(job, now)),
        key=lambda job: (ensure_aware(job.completes_at), int(job.id)),  # type: ignore[arg-type]
    )
    for job in due:
        try:
            _complete(job, village, catalog)
        except (NotFound, InvalidArgument) as exc:
            _cancel(job, str(exc), resolution)
        else:
            resolution.completed.append(job)

    for category in JobCategory:
        _promote(open_jobs, category, now, village, catalog, rules, resolution)

    resolution.still_pending = sorted(
        (job for job in open_jobs if job.status == JobStatus.PENDING),
        key=_queue_order,
    )
    return resolution


def _is_due(job: QueueJob, now: datetime) -> bool:
    return (
        job.status == JobStatus.IN_PROGRESS
        and job.completes_at is not None
        and now >= ensure_aware(job.completes_at)
    )


def _queue_order(job: QueueJob) -> tuple[datetime, int]:
    return (ensure_aware(job.started_at), int(job.id))


def _complete(job: QueueJob, village: Village, catalog: Catalog) -> None:
    match job.category:
        case JobCategory.BUILDING:
            _complete_building(job, village, catalog)
        case JobCategory.TRAINING:
            _complete_training(job, village, catalog)
    job.status = JobStatus.COMPLETED


def _complete_building(job: QueueJob, village: Village, catalog: Catalog) -> None:
    definition = catalog.buildings.get(BuildingKey(job.target))
    if definition is None:
        raise NotFound(f"building type {job.target!r} not found")
    if job.slot is None:
        raise InvalidArgument(f"building job {int(job.id)} has no slot")

    instance = village.buildings.get(job.slot)
    if instance is None:
        _check_next_level(job, 1)
        _check_level(definition, 1)
        village.buildings[job.slot] = BuildingInstance(
            village_id=village.id,
            building_key=definition.key,
            level=1,
            slot=job.slot,
        )
        return

    if instance.building_key != definition.key:
        raise InvalidArgument(
            f"slot {job.slot} holds {instance.building_key!r}, not {definition.key!r}"
        )
    _check_next_level(job, instance.level + 1)
    _check_level(definition, instance.level + 1)
    instance.level += 1


def _check_next_level(job: QueueJob, next_level: int) -> None:
    # upgrades go one level at a time
    if job.target_level is not None and job.target_level != next_level:
        raise InvalidArgument(
            f"building job {int(job.id)} targets level {job.target_level}, "
            f"slot {job.slot} can only reach level {next_level}"
        )


def _complete_training(job: QueueJob, village: Village, catalog: Catalog) -> None:
    if UnitKey(job.target) not in catalog.units:
        raise NotFound(f"unit type {job.target!r} not found")
    if job.count <= 0:
        raise InvalidArgument(f"training job {int(job.id)} has no units")
    troops.add_trained(village, UnitKey(job.target), job.count)


def _promote(
    open_jobs: list[QueueJob],
    category: JobCategory,
    now: datetime,
    village: Village,
    catalog: Catalog,
    rules: SimulationConfig,
    resolution: QueueResolution,
) -> None:
    limit = rules.queues.parallel_limit(category)
    running = sum(
        1 for job in open_jobs if job.category == category and job.status == JobStatus.IN_PROGRESS
    )
    waiting = sorted(
        (job for job in open_jobs if job.category == category and job.status == JobStatus.PENDING),
        key=_queue_order,
    )
    for job in waiting:
        if running >= limit:
            break
        try:
            seconds = _duration_for(job, village, catalog, rules)
        except (NotFound, InvalidArgument) as exc:
            _cancel(job, str(exc), resolution)
            continue
        job.status = JobStatus.IN_PROGRESS
        job.started_at = now
        job.completes_at = now + timedelta(seconds=seconds)
        resolution.promoted.append(job)
        running += 1


def _duration_for(job: QueueJob, village: Village, catalog: Catalog, rules: SimulationConfig) -> int:
    match job.category:
        case JobCategory.BUILDING:
            definition = catalog.buildings.get(BuildingKey(job.target))
            if definition is None:
                raise NotFound(f"building type {job.target!r} not found")
            level = job.target_level or _next_level(village, job)
            return building_duration(definition, level, rules=rules)
        case JobCategory.TRAINING:
            unit = catalog.units.get(UnitKey(job.target))
            if unit is None:
                raise NotFound(f"unit type {job.target!r} not found")
            return training_duration(unit, job.count, village=village, catalog=catalog, rules=rules)


def _next_level(village: Village, job: QueueJob) -> int:
    instance = village.buildings.get(job.slot) if job.slot is not None else None
    return 1 if instance is None else instance.level + 1


def _cancel(job: QueueJob, reason: str, resolution: QueueResolution) -> None:
    job.status = JobStatus.CANCELLED
    job.cancel_reason = reason
    resolution.cancelled.append(job)


# --- Player-initiated cancellation ----------------------------------------------


def cancel_job(
    job: QueueJob,
    *,
    village: Village,
    catalog: Catalog,
    rules: SimulationConfig = DEFAULT_CONFIG,
) -> dict[ResourceType, int]:
    """Cancel an open job and return the refund owed to the village.

    The refund is a fixed fraction of what the job cost; the caller credits it.
    """

    if job.status not in OPEN_STATUSES:
        raise InvalidArgument(f"job {int(job.id)} is already {job.status}")

    match job.category:
        case JobCategory.BUILDING:
            definition = catalog.buildings.get(BuildingKey(job.target))
            if definition is None:
                raise NotFound(f"building type {job.target!r} not found")
            cost = building_cost(
                definition, job.target_level or _next_level(village, job), rules=rules
            )
        case JobCategory.TRAINING:
            unit = catalog.units.get(UnitKey(job.target))
            if unit is None:
                raise NotFound(f"unit type {job.target!r} not found")
            cost = training_cost(unit, job.count)

    job.status = JobStatus.CANCELLED
    job.cancel_reason = "cancelled by player"
    fraction = rules.queues.refund_fraction
    return {resource: math.floor(amount * fraction) for resource, amount in cost.items()}
