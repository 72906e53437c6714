"""
Concurrency-capped admission gates.

``ConcurrentLimiter`` bounds how many units run at once and can cap the
total number of admissions over its lifetime. ``RateLimitedLimiter`` adds a
minimum start-to-start interval on top of the concurrency cap.
"""

import asyncio
import contextlib
from collections import deque
from typing import Any, TypeVar

import structlog

from ..exceptions import ConfigurationError, LimiterExhaustedError
from .base import ConcurrencyLimiter, Unit, resolve

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class ConcurrentLimiter(ConcurrencyLimiter):
    """
    FIFO admission gate with a concurrency cap.

    Slots are handed directly from a finishing unit to the oldest waiter, so
    a newly submitted unit never overtakes one that is already queued.
    """

    def __init__(self, max_concurrent: int = 1, max_tasks: int = 0):
        """
        Initialize the limiter.

        Args:
            max_concurrent: Maximum number of units running at once
            max_tasks: Maximum lifetime admissions (0 for unlimited)
        """
        if max_concurrent < 1:
            raise ConfigurationError(
                f"max_concurrent must be at least 1, got {max_concurrent}",
                context={"max_concurrent": max_concurrent},
            )
        if max_tasks < 0:
            raise ConfigurationError(
                f"max_tasks must not be negative, got {max_tasks}",
                context={"max_tasks": max_tasks},
            )

        self.max_concurrent = max_concurrent
        self.max_tasks = max_tasks
        self._active = 0
        self._submitted = 0
        self._waiters: deque[asyncio.Future[None]] = deque()

    @property
    def active(self) -> int:
        return self._active

    @property
    def pending(self) -> int:
        return sum(1 for waiter in self._waiters if not waiter.done())

    @property
    def submitted(self) -> int:
        """Lifetime admissions reserved so far."""
        return self._submitted

    @property
    def remaining(self) -> int | None:
        """Admissions left before the cap is hit, or None when uncapped."""
        if not self.max_tasks:
            return None
        return max(0, self.max_tasks - self._submitted)

    async def submit(self, unit: Unit[T]) -> T:
        self._reserve()
        await self._acquire()
        try:
            await self._before_start()
            return await resolve(unit())
        finally:
            self._release()

    async def _before_start(self) -> None:
        """Hook run after a slot is obtained and before the unit starts."""
        return None

    def _reserve(self) -> None:
        if self.max_tasks and self._submitted >= self.max_tasks:
            logger.warning(
                "Limiter admission cap reached",
                max_tasks=self.max_tasks,
                active=self._active,
            )
            raise LimiterExhaustedError(
                f"Limiter accepted its maximum of {self.max_tasks} tasks",
                max_tasks=self.max_tasks,
            )
        self._submitted += 1

    async def _acquire(self) -> None:
        if self._active < self.max_concurrent and not self._waiters:
            self._active += 1
            return

        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            await waiter
        except asyncio.CancelledError:
            if waiter.cancelled():
                with contextlib.suppress(ValueError):
                    self._waiters.remove(waiter)
            else:
                # The slot was already handed over; pass it on.
                self._release()
            raise

    def _release(self) -> None:
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                waiter.set_result(None)
                return
        self._active -= 1

    def get_stats(self) -> dict[str, Any]:
        stats = super().get_stats()
        stats.update(
            {
                "max_concurrent": self.max_concurrent,
                "max_tasks": self.max_tasks,
                "submitted": self._submitted,
            }
        )
        return stats

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(max_concurrent={self.max_concurrent}, "
            f"max_tasks={self.max_tasks})"
        )


class RateLimitedLimiter(ConcurrentLimiter):
    """
    Concurrency-capped gate that also spaces unit starts.

    No unit starts sooner than ``interval_ms`` after the previous unit's
    start, even when slots are free.
    """

    def __init__(self, max_concurrent: int = 1, interval_ms: float = 1000):
        """
        Initialize the limiter.

        Args:
            max_concurrent: Maximum number of units running at once
            interval_ms: Minimum start-to-start spacing in milliseconds
        """
        super().__init__(max_concurrent)
        if interval_ms < 0:
            raise ConfigurationError(
                f"interval_ms must not be negative, got {interval_ms}",
                context={"interval_ms": interval_ms},
            )

        self.interval_ms = interval_ms
        self._interval_seconds = interval_ms / 1000.0
        self._last_start: float | None = None
        self._start_lock = asyncio.Lock()

    async def _before_start(self) -> None:
        if self._interval_seconds <= 0:
            return

        async with self._start_lock:
            loop = asyncio.get_running_loop()
            if self._last_start is not None:
                delay = self._last_start + self._interval_seconds - loop.time()
                if delay > 0:
                    logger.debug("Delaying unit start", delay_seconds=delay)
                    await asyncio.sleep(delay)
            self._last_start = loop.time()

    def get_stats(self) -> dict[str, Any]:
        stats = super().get_stats()
        stats["interval_ms"] = self.interval_ms
        return stats

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(max_concurrent={self.max_concurrent}, "
            f"interval_ms={self.interval_ms})"
        )
