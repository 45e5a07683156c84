"""Time sources for the tick loop."""

from __future__ import annotations

import math
from datetime import UTC, datetime, timedelta
from typing import Protocol

from travia.domain.errors import InvalidArgument


class Clock(Protocol):
    """Anything that can tell the current simulation time."""

    def now(self) -> datetime: ...


class SystemClock:
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return datetime.now(UTC)


class FixedClock:
    """Manually advanced clock used by tests and replays."""

    def __init__(self, start: datetime) -> None:
        self._now = ensure_aware(start)

    def now(self) -> datetime:
        return self._now

    def advance(self, seconds: float) -> datetime:
        if not math.isfinite(seconds) or seconds < 0:
            raise InvalidArgument("a fixed clock only moves forward")
        self._now += timedelta(seconds=seconds)
        return self._now


def ensure_aware(moment: datetime) -> datetime:
    """Treat naive datetimes as UTC (SQLite drops tzinfo on round trips)."""

    if moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment


def elapsed_seconds(since: datetime, now: datetime) -> float:
    """Seconds from ``since`` to ``now``; negative if ``since`` lies in the future."""

    return (ensure_aware(now) - ensure_aware(since)).total_seconds()
