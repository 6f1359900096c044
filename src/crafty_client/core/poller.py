"""Serialized, cancellable polling loop.

Used to keep dashboards and log tails current. At most one refresh is in
flight at a time: manual refreshes wait for the running tick instead of
starting a second request against the panel.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

RefreshFn = Callable[[], Awaitable[T]]
SnapshotCallback = Callable[[T], None]


class PollerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"


class Poller(Generic[T]):
    """Run `refresh_fn` now and then every `interval` seconds until stopped.

    A failing tick is logged and counted; the loop keeps going. Results that
    complete after :meth:`stop` are dropped, never published.
    """

    def __init__(self, name: str = "poller") -> None:
        self.name = name
        self.state = PollerState.IDLE
        self.latest: T | None = None
        self.ticks = 0
        self.failures = 0
        self.last_error: Exception | None = None

        self._lock = asyncio.Lock()
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        self._delayed: set[asyncio.Task[T | None]] = set()
        self._refresh_fn: RefreshFn[T] | None = None
        self._on_snapshot: SnapshotCallback[T] | None = None
        # Bumped on every start/stop; a tick only publishes for its own run.
        self._generation = 0

    @property
    def is_running(self) -> bool:
        return self.state is PollerState.RUNNING

    async def __aenter__(self) -> Poller[T]:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    def start(
        self,
        interval: float,
        refresh_fn: RefreshFn[T],
        on_snapshot: SnapshotCallback[T] | None = None,
    ) -> asyncio.Task[None]:
        """Begin polling. The first refresh runs immediately."""
        if interval <= 0:
            raise ValueError("interval must be > 0")
        if self.is_running:
            raise RuntimeError(f"{self.name} is already running")

        self._refresh_fn = refresh_fn
        self._on_snapshot = on_snapshot
        self._generation += 1
        self._stop_event = asyncio.Event()
        self.state = PollerState.RUNNING

        task = asyncio.create_task(self._run(interval, self._generation), name=self.name)
        task.add_done_callback(self._on_task_done)
        self._task = task
        logger.debug("%s started (interval=%ss)", self.name, interval)
        return task

    async def _run(self, interval: float, generation: int) -> None:
        while not self._stop_event.is_set():
            await self._tick(generation)
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass

    async def _tick(self, generation: int) -> T | None:
        async with self._lock:
            if generation != self._generation or self._refresh_fn is None:
                return None
            try:
                result = await self._refresh_fn()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.failures += 1
                self.last_error = e
                logger.warning("%s: refresh failed: %s", self.name, e)
                logger.debug("%s: refresh traceback", self.name, exc_info=True)
                return None

            self.ticks += 1
            if generation != self._generation:
                logger.debug("%s: dropping result completed after stop", self.name)
                return None

            self.latest = result
            self.last_error = None
            if self._on_snapshot is not None:
                try:
                    self._on_snapshot(result)
                except Exception:
                    logger.exception("%s: snapshot callback failed", self.name)
            return result

    async def refresh_now(self) -> T | None:
        """Refresh immediately, waiting for any in-flight tick first."""
        if not self.is_running:
            raise RuntimeError(f"{self.name} is not running")
        return await self._tick(self._generation)

    def refresh_later(self, delay: float) -> asyncio.Task[T | None]:
        """Schedule a one-shot refresh after `delay` seconds."""
        if not self.is_running:
            raise RuntimeError(f"{self.name} is not running")
        generation = self._generation

        async def _delayed() -> T | None:
            await asyncio.sleep(delay)
            return await self._tick(generation)

        task = asyncio.create_task(_delayed(), name=f"{self.name}-delayed")
        self._delayed.add(task)
        task.add_done_callback(self._delayed.discard)
        return task

    async def stop(self) -> None:
        """Stop polling and cancel any in-flight wait or refresh."""
        if self.state is PollerState.IDLE and self._task is None:
            return
        self._generation += 1
        self.state = PollerState.IDLE
        self._stop_event.set()

        pending = [t for t in (self._task, *self._delayed) if t is not None]
        current = asyncio.current_task()
        for task in pending:
            if task is not current:
                task.cancel()
        await asyncio.gather(*(t for t in pending if t is not current), return_exceptions=True)
        self._task = None
        self._delayed.clear()
        logger.debug("%s stopped", self.name)

    def _on_task_done(self, task: asyncio.Task[None]) -> None:
        # The owning context may cancel the loop task directly.
        if task is self._task:
            self._generation += 1
            self.state = PollerState.IDLE
            self._task = None
