"""Bookkeeping for troop stacks and their partitions."""

from __future__ import annotations

from travia.domain.errors import InvalidArgument
from travia.domain.models import Composition, TroopStack, UnitKey, Village


def stack_for(village: Village, unit_key: UnitKey) -> TroopStack:
    """Return the village's stack for ``unit_key``, creating an empty one."""

    stack = village.troops.get(unit_key)
    if stack is None:
        stack = TroopStack(village_id=village.id, unit_key=unit_key)
        village.troops[unit_key] = stack
    return stack


def check_stack(stack: TroopStack) -> None:
    """Raise if the stack's partitions are negative or exceed its count."""

    parts = (stack.in_village, stack.in_attack, stack.in_defense, stack.in_support)
    if stack.count < 0 or any(part < 0 for part in parts):
        raise InvalidArgument(f"troop stack {stack.unit_key} has negative counts")
    if sum(parts) > stack.count:
        raise InvalidArgument(f"troop stack {stack.unit_key} partitions exceed its count")


def check_village(village: Village) -> None:
    """Run :func:`check_stack` over every stack of the village."""

    for stack in village.troops.values():
        try:
            check_stack(stack)
        except InvalidArgument as exc:
            raise InvalidArgument(f"village {int(village.id)}: {exc}") from exc


def add_trained(village: Village, unit_key: UnitKey, count: int) -> TroopStack:
    """Freshly trained troops join the home garrison."""

    if count < 0:
        raise InvalidArgument("trained count must be non-negative")
    stack = stack_for(village, unit_key)
    stack.count += count
    stack.in_village += count
    return stack


def defending_troops(village: Village) -> Composition:
    """Everything that fights for the village: the garrison plus reinforcements."""

    return {
        key: stack.in_village + stack.in_defense
        for key, stack in sorted(village.troops.items())
        if stack.in_village + stack.in_defense > 0
    }


def apply_defender_losses(village: Village, losses: Composition) -> None:
    """Remove defensive casualties, garrison first, reinforcements second."""

    for unit_key, lost in losses.items():
        if lost <= 0:
            continue
        stack = village.troops.get(unit_key)
        if stack is None:
            continue
        from_home = min(lost, stack.in_village)
        from_guests = min(lost - from_home, stack.in_defense)
        stack.in_village -= from_home
        stack.in_defense -= from_guests
        stack.count = max(0, stack.count - from_home - from_guests)


def apply_attacker_losses(village: Village, losses: Composition) -> None:
    """Casualties of an outgoing attack never come home."""

    for unit_key, lost in losses.items():
        if lost <= 0:
            continue
        stack = village.troops.get(unit_key)
        if stack is None:
            continue
        removed = min(lost, stack.in_attack)
        stack.in_attack -= removed
        stack.count = max(0, stack.count - removed)


def return_from_attack(village: Village, troops: Composition) -> None:
    """Survivors of an attack rejoin the garrison."""

    for unit_key, count in troops.items():
        stack = stack_for(village, unit_key)
        moved = min(count, stack.in_attack)
        stack.in_attack -= moved
        stack.in_village += moved
        # Survivors the origin no longer tracks as away still come home.
        stray = count - moved
        if stray > 0:
            stack.count += stray
            stack.in_village += stray


def return_from_support(village: Village, troops: Composition) -> None:
    """Recalled reinforcements rejoin the garrison."""

    for unit_key, count in troops.items():
        stack = stack_for(village, unit_key)
        moved = min(count, stack.in_support)
        stack.in_support -= moved
        stack.in_village += moved
        stray = count - moved
        if stray > 0:
            stack.count += stray
            stack.in_village += stray


def station_reinforcements(village: Village, troops: Composition) -> None:
    """Reinforcements arriving from another village defend this one."""

    for unit_key, count in troops.items():
        if count < 0:
            raise InvalidArgument("reinforcement counts must be non-negative")
        stack = stack_for(village, unit_key)
        stack.count += count
        stack.in_defense += count
