"""Domain layer of the Travia simulation core.

This package holds every game rule as plain functions over the dataclasses in
:mod:`models`:

* Enumerations and strongly-typed identifiers used across the rules layer.
* Simulation configuration (see :mod:`rules_config`).
* Pure resolvers for production, queues, combat and movements.

Nothing here touches storage or logs; the tick service drives these functions
and persists their results through a store.
"""

from . import (
    catalog,
    clock,
    combat,
    enums,
    errors,
    models,
    movement,
    queue,
    reports,
    resources,
    rules_config,
    troops,
)

__all__ = [
    "catalog",
    "clock",
    "combat",
    "enums",
    "errors",
    "models",
    "movement",
    "queue",
    "reports",
    "resources",
    "rules_config",
    "troops",
]
