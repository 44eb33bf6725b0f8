"""Bounded-concurrency executor for request processing."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

WorkUnit = Callable[[], Awaitable[object]]


class WorkQueue:
    """Runs opaque units of work on a fixed number of asyncio workers.

    Units are independent and may finish in any order. A unit that raises is
    logged and discarded; it never stops a worker. ``add_later`` schedules a
    unit after a delay without occupying a worker while it waits, and such
    delayed units count as pending for :meth:`wait_idle`.
    """

    def __init__(self, concurrency: int = 3) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.concurrency = concurrency
        self._queue: asyncio.Queue[WorkUnit] = asyncio.Queue()
        self._workers: list[asyncio.Task[None]] = []
        self._delayed: set[asyncio.Task[None]] = set()
        self._pending = 0
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def pending(self) -> int:
        """Units queued, waiting on a delay, or running."""
        return self._pending

    @property
    def running(self) -> bool:
        return any(not worker.done() for worker in self._workers)

    def start(self) -> None:
        """Start the worker tasks if they are not already running."""
        if self.running:
            return
        self._workers = [
            asyncio.create_task(self._worker(index), name=f"work-queue-{index}")
            for index in range(self.concurrency)
        ]

    def add(self, unit: WorkUnit) -> None:
        """Queue a unit of work."""
        self._mark_pending()
        self._queue.put_nowait(unit)
        self.start()

    def add_later(self, unit: WorkUnit, delay: float) -> None:
        """Queue a unit of work once ``delay`` seconds have passed."""
        self._mark_pending()
        task = asyncio.create_task(self._enqueue_after(unit, delay))
        self._delayed.add(task)
        task.add_done_callback(self._delayed.discard)
        self.start()

    async def wait_idle(self) -> None:
        """Wait until no unit is queued, delayed, or running."""
        await self._idle.wait()

    async def close(self, timeout: float | None = None) -> bool:
        """Drain the queue, then stop the workers.

        Args:
            timeout: Maximum seconds to wait for the drain; ``None`` waits forever.

        Returns:
            True if the queue drained before the workers were stopped.
        """
        drained = True
        try:
            await asyncio.wait_for(self.wait_idle(), timeout)
        except TimeoutError:
            drained = False
            logger.warning("Work queue did not drain in time; %d units abandoned", self._pending)

        for task in list(self._delayed):
            task.cancel()
        for worker in self._workers:
            worker.cancel()
        await asyncio.gather(*self._delayed, *self._workers, return_exceptions=True)
        self._workers = []
        # Units handed over by a delayed task but never picked up.
        while not self._queue.empty():
            self._queue.get_nowait()
            self._queue.task_done()
        self._pending = 0
        self._idle.set()
        return drained

    def _mark_pending(self) -> None:
        self._pending += 1
        self._idle.clear()

    def _mark_done(self) -> None:
        self._pending -= 1
        if self._pending <= 0:
            self._pending = 0
            self._idle.set()

    async def _enqueue_after(self, unit: WorkUnit, delay: float) -> None:
        try:
            await asyncio.sleep(delay)
        except asyncio.CancelledError:
            self._mark_done()
            raise
        self._queue.put_nowait(unit)

    async def _worker(self, index: int) -> None:
        while True:
            unit = await self._queue.get()
            try:
                await unit()
            except Exception:
                logger.exception("Work unit failed in worker %d", index)
            finally:
                self._queue.task_done()
                self._mark_done()
