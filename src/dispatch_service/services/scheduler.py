"""Periodic delivery scheduler with an explicit Stopped/Running state machine."""
from __future__ import annotations

import asyncio
import logging
import threading
from typing import Protocol

logger = logging.getLogger(__name__)


class BatchSender(Protocol):
    async def send_messages(self, batch_size: int) -> object: ...


class Scheduler:
    """Runs one delivery cycle on start and one per tick until stopped.

    The running flag, the loop tasks and the stop signal are guarded by
    ``_lock``. The lock is only held while reading or writing that state,
    never across a cycle. Every run owns its own stop event, so a cycle still
    finishing from a previous run cannot be revived by a later ``start()``.
    A restart waits for the previous run's loop to exit before its first
    cycle, so cycles never overlap across a stop/start.
    """

    def __init__(self, sender: BatchSender, interval_s: float, batch_size: int) -> None:
        if interval_s <= 0:
            raise ValueError("interval_s must be positive")
        self._sender = sender
        self._interval_s = interval_s
        self._batch_size = batch_size
        self._lock = threading.Lock()
        self._running = False
        self._stop_event: asyncio.Event | None = None
        self._task: asyncio.Task[None] | None = None
        self._tasks: set[asyncio.Task[None]] = set()
        self._cycles = 0

    @property
    def cycles(self) -> int:
        """Number of cycles started since construction."""
        with self._lock:
            return self._cycles

    async def start(self) -> None:
        """Start the loop. A second start while running is a no-op."""
        with self._lock:
            if self._running:
                logger.debug("Scheduler already running")
                return
            stop_event = asyncio.Event()
            self._stop_event = stop_event
            self._running = True
            previous = self._task if self._task is not None and not self._task.done() else None

        task = asyncio.create_task(self._run(stop_event, previous), name="delivery-scheduler")
        with self._lock:
            self._task = task
            self._tasks.add(task)
        task.add_done_callback(self._forget_task)
        logger.info(
            "Scheduler started (interval=%.1fs, batch=%d)",
            self._interval_s,
            self._batch_size,
        )

    async def stop(self) -> None:
        """Signal the loop to exit. Does not wait for an in-flight cycle."""
        with self._lock:
            if not self._running:
                return
            if self._stop_event is not None:
                self._stop_event.set()
            self._running = False
        logger.info("Scheduler stopped")

    def is_running(self) -> bool:
        with self._lock:
            return self._running

    async def shutdown(self) -> None:
        """Stop and wait for every loop task to finish its current cycle."""
        await self.stop()
        with self._lock:
            tasks = [t for t in self._tasks if not t.done()]
            self._task = None
        if tasks:
            await asyncio.gather(*tasks)

    def _forget_task(self, task: asyncio.Task[None]) -> None:
        with self._lock:
            self._tasks.discard(task)

    async def _run(
        self, stop_event: asyncio.Event, previous: asyncio.Task[None] | None = None,
    ) -> None:
        loop = asyncio.get_running_loop()
        if previous is not None:
            logger.debug("Waiting for previous scheduler loop to exit")
            await asyncio.wait({previous})
            if stop_event.is_set():
                return
        await self._run_cycle("initial")
        next_tick = loop.time() + self._interval_s

        while not stop_event.is_set():
            timeout = max(0.0, next_tick - loop.time())
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=timeout)
            except asyncio.TimeoutError:
                pass
            if stop_event.is_set():
                break

            await self._run_cycle("scheduled")

            # Ticks missed while the cycle overran are dropped.
            now = loop.time()
            next_tick += self._interval_s
            if next_tick <= now:
                missed = int((now - next_tick) // self._interval_s) + 1
                next_tick += missed * self._interval_s

        logger.debug("Scheduler loop exited")

    async def _run_cycle(self, kind: str) -> None:
        with self._lock:
            self._cycles += 1
        try:
            await self._sender.send_messages(self._batch_size)
        except Exception:
            logger.exception("Error sending %s messages", kind)
