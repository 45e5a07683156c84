"""Persistence adapters implementing the world store protocol."""

from .memory_store import InMemoryWorldStore
from .sql_store import SqlWorldStore

__all__ = ["InMemoryWorldStore", "SqlWorldStore"]
