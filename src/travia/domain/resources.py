"""Resource production rules."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta

from travia.domain.clock import ensure_aware
from travia.domain.enums import RESOURCE_ORDER, ResourceType
from travia.domain.errors import InvalidArgument
from travia.domain.models import Catalog, ResourceAmounts, Village
from travia.domain.rules_config import DEFAULT_CONFIG, SimulationConfig

SECONDS_PER_HOUR = 3600


@dataclass(frozen=True, slots=True)
class ResourceDelta:
    """Result of accruing production for one village."""

    village_id: int
    gained: ResourceAmounts
    amounts: ResourceAmounts
    last_updated: datetime

    @property
    def is_empty(self) -> bool:
        return not any(self.gained.values())


def accumulate(
    village: Village,
    elapsed_seconds: float,
    *,
    rules: SimulationConfig = DEFAULT_CONFIG,
) -> ResourceDelta:
    """Accrue production for ``elapsed_seconds`` without mutating the village.

    Each resource grows by ``rate * elapsed / 3600`` and is clamped at its
    capacity. An amount already above capacity (e.g. after a capacity drop) is
    left as it is rather than reduced.
    """

    if not math.isfinite(elapsed_seconds) or elapsed_seconds < 0:
        raise InvalidArgument("elapsed_seconds must be a finite, non-negative number")
    _validate_stocks(village)

    last_updated = ensure_aware(village.last_updated)
    if elapsed_seconds == 0:
        return ResourceDelta(
            village_id=int(village.id),
            gained={resource: 0.0 for resource in village.resources},
            amounts={resource: stock.amount for resource, stock in village.resources.items()},
            last_updated=last_updated,
        )

    multiplier = rules.production.speed_multiplier
    gained: ResourceAmounts = {}
    amounts: ResourceAmounts = {}
    for resource, stock in village.resources.items():
        produced = stock.rate_per_hour * multiplier * elapsed_seconds / SECONDS_PER_HOUR
        if stock.amount >= stock.capacity:
            new_amount = stock.amount
        else:
            new_amount = min(stock.capacity, stock.amount + produced)
        gained[resource] = new_amount - stock.amount
        amounts[resource] = new_amount

    return ResourceDelta(
        village_id=int(village.id),
        gained=gained,
        amounts=amounts,
        last_updated=last_updated + timedelta(seconds=elapsed_seconds),
    )


def apply_delta(village: Village, delta: ResourceDelta) -> None:
    """Write an accumulated delta back onto the village."""

    if delta.village_id != int(village.id):
        raise InvalidArgument(
            f"delta for village {delta.village_id} applied to village {int(village.id)}"
        )
    for resource, amount in delta.amounts.items():
        village.resources[resource].amount = amount
    village.last_updated = delta.last_updated


def production_rates(
    village: Village,
    catalog: Catalog,
    *,
    rules: SimulationConfig = DEFAULT_CONFIG,
) -> dict[ResourceType, float]:
    """Hourly production per resource derived from the village's buildings.

    Every resource starts from the base rate; each producing building adds its
    per-level production times its level.
    """

    rates = {resource: rules.production.base_rate_per_hour for resource in RESOURCE_ORDER}
    for building in village.buildings.values():
        definition = catalog.buildings.get(building.building_key)
        if definition is None:
            continue
        for resource, per_level in definition.production.items():
            rates[resource] = rates.get(resource, 0.0) + per_level * building.level
    return rates


def refresh_production_rates(
    village: Village,
    catalog: Catalog,
    *,
    rules: SimulationConfig = DEFAULT_CONFIG,
) -> None:
    """Store freshly derived production rates on the village's stocks."""

    for resource, rate in production_rates(village, catalog, rules=rules).items():
        stock = village.resources.get(resource)
        if stock is not None:
            stock.rate_per_hour = rate


def add_resources(village: Village, amounts: dict[ResourceType, float]) -> dict[ResourceType, float]:
    """Add resources up to capacity and return what actually fit."""

    stored: dict[ResourceType, float] = {}
    for resource, amount in amounts.items():
        if amount < 0:
            raise InvalidArgument(f"cannot add a negative amount of {resource}")
        stock = village.resources.get(resource)
        if stock is None:
            continue
        room = max(0.0, stock.capacity - stock.amount)
        accepted = min(room, amount)
        stock.amount += accepted
        stored[resource] = accepted
    return stored


def remove_resources(village: Village, amounts: dict[ResourceType, float]) -> None:
    """Remove resources, never taking a stock below zero."""

    for resource, amount in amounts.items():
        if amount < 0:
            raise InvalidArgument(f"cannot remove a negative amount of {resource}")
        stock = village.resources.get(resource)
        if stock is not None:
            stock.amount = max(0.0, stock.amount - amount)


def _validate_stocks(village: Village) -> None:
    for resource, stock in village.resources.items():
        for label, value in (
            ("amount", stock.amount),
            ("capacity", stock.capacity),
            ("rate", stock.rate_per_hour),
        ):
            if not math.isfinite(value) or value < 0:
                raise InvalidArgument(
                    f"village {int(village.id)} {resource} {label} must be non-negative"
                )
