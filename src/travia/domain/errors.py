"""Error taxonomy shared by the simulation core and its collaborators."""

from __future__ import annotations


class SimulationError(Exception):
    """Base class for every error raised by the simulation core."""


class InvalidArgument(SimulationError, ValueError):
    """Raised for malformed or negative input, before any state is touched."""


class NotFound(SimulationError, LookupError):
    """Raised when a referenced village, building or unit type does not exist."""


class ConcurrentModification(SimulationError):
    """Raised by a store when an optimistic-lock check fails on save."""

    def __init__(self, entity: str, entity_id: int, expected_version: int) -> None:
        super().__init__(
            f"{entity} {entity_id} was modified concurrently (expected version {expected_version})"
        )
        self.entity = entity
        self.entity_id = entity_id
        self.expected_version = expected_version


class PersistenceFailure(SimulationError):
    """Raised by a store when the underlying I/O fails."""
