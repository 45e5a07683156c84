"""Runtime scheduler that ticks the world on a fixed interval."""

from __future__ import annotations

import asyncio
import logging

from travia.domain.clock import Clock, SystemClock
from travia.domain.errors import SimulationError
from travia.services.tick_service import SimulationEngine, TickReport

logger = logging.getLogger(__name__)


class TickScheduler:
    """Background scheduler that advances the world using the simulation engine.

    Ticks run in a worker thread so the event loop stays responsive; only one
    tick runs at a time.
    """

    MIN_INTERVAL_SECONDS = 0.1

    def __init__(
        self,
        engine: SimulationEngine,
        *,
        interval_seconds: float,
        clock: Clock | None = None,
    ) -> None:
        self._engine = engine
        self._interval = max(interval_seconds, self.MIN_INTERVAL_SECONDS)
        self._clock = clock or SystemClock()
        self._task: asyncio.Task[None] | None = None
        self._stop_event = asyncio.Event()
        self._tick_lock = asyncio.Lock()
        self.last_report: TickReport | None = None

    @property
    def interval_seconds(self) -> float:
        return self._interval

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def set_interval(self, seconds: float) -> None:
        self._interval = max(seconds, self.MIN_INTERVAL_SECONDS)

    def start(self) -> None:
        if self.running:
            return
        self._stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._run_loop(), name="travia-tick-loop")

    async def stop(self) -> None:
        task = self._task
        if task is None:
            return
        self._stop_event.set()
        await task
        self._task = None

    async def wait(self) -> None:
        """Block until the loop has been stopped."""

        task = self._task
        if task is not None:
            await task

    async def tick_now(self) -> TickReport | None:
        """Run one tick immediately; ``None`` if it failed."""

        async with self._tick_lock:
            return await asyncio.to_thread(self._tick_sync)

    async def _run_loop(self) -> None:
        try:
            while not self._stop_event.is_set():
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
                    break
                except TimeoutError:
                    pass
                await self.tick_now()
        finally:
            self._task = None

    def _tick_sync(self) -> TickReport | None:
        now = self._clock.now()
        try:
            report = self._engine.tick(now)
        except SimulationError:
            logger.exception("tick at %s failed", now.isoformat())
            return None

        self.last_report = report
        for error in report.errors:
            logger.warning(
                "%s %s failed during tick: %s: %s",
                error.entity,
                error.entity_id,
                error.error,
                error.message,
            )
        if report.deferred:
            logger.info("%d entities deferred to the next tick", len(report.deferred))
        return report
