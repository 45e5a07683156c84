"""Troop and merchant movement rules."""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime

from travia.domain.clock import elapsed_seconds, ensure_aware
from travia.domain.enums import MovementEventKind, MovementStatus, MovementType
from travia.domain.errors import InvalidArgument, NotFound
from travia.domain.models import Movement, MovementID, UnitKey, UnitTypeDef, Village
from travia.domain.rules_config import DEFAULT_CONFIG, SimulationConfig

ALLOWED_TRANSITIONS: dict[MovementStatus, frozenset[MovementStatus]] = {
    MovementStatus.TRAVELLING: frozenset({MovementStatus.ARRIVED, MovementStatus.CANCELLED}),
    MovementStatus.ARRIVED: frozenset({MovementStatus.RETURNING, MovementStatus.COMPLETED}),
    MovementStatus.RETURNING: frozenset({MovementStatus.COMPLETED}),
    MovementStatus.COMPLETED: frozenset(),
    MovementStatus.CANCELLED: frozenset(),
}

COMBAT_TYPES = frozenset({MovementType.ATTACK, MovementType.RAID})

# Movements that head home after arriving; the rest end at their destination.
ROUND_TRIP_TYPES = COMBAT_TYPES | {MovementType.SPY, MovementType.TRADE}


@dataclass(frozen=True, slots=True)
class MovementEvent:
    """A single status transition of a movement."""

    movement_id: MovementID
    movement_type: MovementType
    kind: MovementEventKind
    at: datetime


def advance(movement: Movement, now: datetime) -> MovementEvent | None:
    """Move ``movement`` through at most one transition that is due by ``now``.

    Attacks and raids stay ``arrived`` until their battle has been recorded
    (``battle_id`` set). Survivors of attacks, raids and spy missions then head
    home over the same duration as the outbound leg, as do merchants after a
    trade. Reinforcements and returns end at their destination.
    Callers loop until ``None`` to catch up on overdue movements.
    """

    now = ensure_aware(now)
    match movement.status:
        case MovementStatus.TRAVELLING:
            if now < ensure_aware(movement.arrives_at):
                return None
            _transition(movement, MovementStatus.ARRIVED)
            return _event(movement, MovementEventKind.ARRIVED, movement.arrives_at)
        case MovementStatus.ARRIVED:
            return _leave_destination(movement)
        case MovementStatus.RETURNING:
            if movement.returns_at is None or now < ensure_aware(movement.returns_at):
                return None
            _transition(movement, MovementStatus.COMPLETED)
            return _event(movement, MovementEventKind.COMPLETED, movement.returns_at)
        case MovementStatus.COMPLETED | MovementStatus.CANCELLED:
            return None


def _leave_destination(movement: Movement) -> MovementEvent | None:
    if movement.type in COMBAT_TYPES and movement.battle_id is None:
        return None
    if movement.type in ROUND_TRIP_TYPES and _has_travellers(movement):
        movement.returns_at = return_eta(movement)
        _transition(movement, MovementStatus.RETURNING)
        return _event(movement, MovementEventKind.RETURNING, movement.arrives_at)

    _transition(movement, MovementStatus.COMPLETED)
    return _event(movement, MovementEventKind.COMPLETED, movement.arrives_at)


def _has_travellers(movement: Movement) -> bool:
    # merchants always make the trip back, troops only if some survived
    if movement.type == MovementType.TRADE:
        return True
    return any(count > 0 for count in movement.troops.values())


def return_eta(movement: Movement) -> datetime:
    """The way back takes as long as the way out."""

    arrives_at = ensure_aware(movement.arrives_at)
    return arrives_at + (arrives_at - ensure_aware(movement.started_at))


def cancel(
    movement: Movement,
    now: datetime,
    *,
    rules: SimulationConfig = DEFAULT_CONFIG,
) -> MovementEvent:
    """Recall a movement that is still early in its outbound leg.

    The caller puts the recalled troops (or goods) back at the origin.
    """

    if movement.status != MovementStatus.TRAVELLING:
        raise InvalidArgument(f"movement {int(movement.id)} is {movement.status}, not travelling")
    if movement.type == MovementType.RETURN:
        raise InvalidArgument("returning troops cannot be recalled")

    total = elapsed_seconds(movement.started_at, movement.arrives_at)
    elapsed = elapsed_seconds(movement.started_at, now)
    if elapsed < 0:
        raise InvalidArgument("cannot cancel a movement before it started")
    if total <= 0 or elapsed / total >= rules.movement.cancel_window_fraction:
        raise InvalidArgument(
            f"movement {int(movement.id)} is past its cancellation window"
        )

    abort(movement, "cancelled by player")
    return _event(movement, MovementEventKind.CANCELLED, ensure_aware(now))


def abort(movement: Movement, reason: str) -> None:
    """Cancel a travelling movement outside the player's window (e.g. missing target)."""

    _transition(movement, MovementStatus.CANCELLED)
    movement.cancel_reason = reason


def travel_seconds(
    origin: Village,
    destination: Village,
    troops: Mapping[UnitKey, int],
    unit_defs: Mapping[UnitKey, UnitTypeDef],
    *,
    rules: SimulationConfig = DEFAULT_CONFIG,
) -> int:
    """Travel time between two villages at the pace of the slowest unit.

    A movement without troops travels at merchant speed.
    """

    distance = math.hypot(destination.x - origin.x, destination.y - origin.y)
    speeds: list[float] = []
    for key, count in troops.items():
        if count <= 0:
            continue
        unit = unit_defs.get(key)
        if unit is None:
            raise NotFound(f"unit type {key!r} not found")
        speeds.append(unit.speed)
    slowest = min(speeds) if speeds else rules.movement.merchant_speed
    movement_rules = rules.movement
    seconds = distance * movement_rules.seconds_per_distance / (
        slowest * movement_rules.speed_multiplier
    )
    return max(movement_rules.minimum_travel_seconds, int(seconds))


def validate(movement: Movement) -> None:
    """Reject movements whose schedule or cargo is malformed."""

    if ensure_aware(movement.arrives_at) <= ensure_aware(movement.started_at):
        raise InvalidArgument(f"movement {int(movement.id)} arrives before it starts")
    if any(count < 0 for count in movement.troops.values()):
        raise InvalidArgument(f"movement {int(movement.id)} carries negative troops")
    if any(amount < 0 for amount in movement.resources.values()):
        raise InvalidArgument(f"movement {int(movement.id)} carries negative resources")


def _transition(movement: Movement, status: MovementStatus) -> None:
    if status not in ALLOWED_TRANSITIONS[movement.status]:
        raise InvalidArgument(
            f"movement {int(movement.id)} cannot go from {movement.status} to {status}"
        )
    movement.status = status


def _event(movement: Movement, kind: MovementEventKind, at: datetime) -> MovementEvent:
    return MovementEvent(
        movement_id=movement.id,
        movement_type=movement.type,
        kind=kind,
        at=ensure_aware(at),
    )
