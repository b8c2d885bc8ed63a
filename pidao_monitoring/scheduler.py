"""
PiDAO Monitoring - Scheduling Primitives.

============================================================
PURPOSE
============================================================
- PeriodicTask: background loop driving one component's tick
- KeyedLock: one asyncio.Lock per configuration id

PRINCIPLES:
- A tick is awaited before the next sleep, so ticks of one
  component never overlap
- A failing tick is logged; the loop keeps running
- Locks are scoped per id, never global

============================================================
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional


logger = logging.getLogger(__name__)


# ============================================================
# PERIODIC TASK
# ============================================================

class PeriodicTask:
    """
    Runs an async callable on a fixed interval.

    Runs as a background task.
    """

    def __init__(
        self,
        name: str,
        func: Callable[[], Awaitable[object]],
        interval_seconds: float,
        run_immediately: bool = True,
    ):
        """Initialize periodic task."""
        self.name = name
        self._func = func
        self._interval = interval_seconds
        self._run_immediately = run_immediately
        self._running = False
        self._task: Optional[asyncio.Task] = None
        self.run_count = 0
        self.error_count = 0

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the loop."""
        if self._running:
            return

        self._running = True
        self._task = asyncio.create_task(self._run(), name=f"periodic:{self.name}")
        logger.info(f"Periodic task {self.name} started (interval={self._interval}s)")

    async def stop(self) -> None:
        """Stop the loop, cancelling any in-flight tick."""
        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        logger.info(f"Periodic task {self.name} stopped")

    async def _run(self) -> None:
        """Main run loop."""
        if not self._run_immediately:
            await asyncio.sleep(self._interval)

        while self._running:
            try:
                await self._func()
                self.run_count += 1
            except asyncio.CancelledError:
                break
            except Exception as e:
                self.error_count += 1
                logger.error(f"Periodic task {self.name} failed: {e}")

            await asyncio.sleep(self._interval)


# ============================================================
# KEYED LOCK
# ============================================================

class KeyedLock:
    """
    Map of per-key asyncio locks.

    Usage:
        async with locks.acquire(rule_id):
            ...
    """

    def __init__(self):
        """Initialize keyed lock."""
        self._locks: Dict[str, asyncio.Lock] = {}

    def acquire(self, key: str) -> asyncio.Lock:
        """Get the lock for a key (created on first use)."""
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def locked(self, key: str) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    def discard(self, key: str) -> None:
        """Forget an idle key's lock."""
        lock = self._locks.get(key)
        if lock is not None and not lock.locked():
            del self._locks[key]
