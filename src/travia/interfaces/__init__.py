"""Protocol-based interfaces for Travia collaborators.

This module exports the persistence protocol the tick engine depends on,
enabling dependency injection of in-memory and SQL-backed stores.
"""

from travia.interfaces.store import ChangeSet, WorldStore

__all__ = [
    "ChangeSet",
    "WorldStore",
]
