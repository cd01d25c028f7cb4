"""
SingleFlight - one in-flight fetch per cache key within this process.

When several requests miss the same cold key at once, only the first one
calls the upstream; the others await its result (or its exception).
Across processes nothing is coordinated and the store's last write wins.
"""

import asyncio
from typing import Any, Awaitable, Callable, TypeVar

from loguru import logger

T = TypeVar("T")


class SingleFlight:
    """
    Shares one asyncio task per key among concurrent callers.

    Usage:
        flight = SingleFlight()

        payload = await flight.do(cache_key, lambda: fetch_and_store(query))
    """

    def __init__(self, debug: bool = False):
        self._in_flight: dict[str, asyncio.Task[Any]] = {}
        self._lock = asyncio.Lock()
        self._debug = debug
        self._stats = SingleFlightStats()

    async def do(self, key: str, fn: Callable[[], Awaitable[T]]) -> T:
        """
        Run fn for key unless a run for the same key is already in flight.

        Returns:
            Result of fn, shared with every concurrent caller of the same key
        """
        async with self._lock:
            task = self._in_flight.get(key)
            if task is not None:
                self._stats.shared += 1
                self._log(f"SHARED: waiting for in-flight fetch: {key[:50]}")
            else:
                self._stats.executed += 1
                self._log(f"NEW: starting fetch: {key[:50]}")
                task = asyncio.create_task(self._run_and_release(key, fn))
                self._in_flight[key] = task

        # Shield so one cancelled waiter does not cancel the others
        return await asyncio.shield(task)

    async def _run_and_release(self, key: str, fn: Callable[[], Awaitable[T]]) -> T:
        try:
            return await fn()
        finally:
            async with self._lock:
                self._in_flight.pop(key, None)
                self._log(f"DONE: {key[:50]}")

    async def cancel_all(self) -> int:
        """Cancel all in-flight fetches."""
        async with self._lock:
            count = len(self._in_flight)
            for task in self._in_flight.values():
                task.cancel()
            self._in_flight.clear()
            if count:
                self._log(f"CANCEL_ALL: {count} fetches cancelled")
            return count

    def get_in_flight_count(self) -> int:
        return len(self._in_flight)

    def get_stats(self) -> "SingleFlightStats":
        self._stats.in_flight = len(self._in_flight)
        return self._stats

    def _log(self, message: str) -> None:
        """Log debug message if debug mode is enabled."""
        if self._debug:
            logger.debug(f"[SingleFlight] {message}")


class SingleFlightStats:
    """Statistics for shared fetches."""

    def __init__(self):
        self.executed: int = 0  # Fetches actually run
        self.shared: int = 0  # Callers that joined an in-flight fetch
        self.in_flight: int = 0

    @property
    def share_rate(self) -> float:
        total = self.executed + self.shared
        if total == 0:
            return 0.0
        return self.shared / total
