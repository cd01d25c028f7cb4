"""
Cache housekeeping: reclaim expired rows and roll daily metrics into months.

Two triggers share one runner:
- maybe_trigger(): called on the request path, fires a background pass with
  a small probability and never waits for it
- MaintenanceScheduler: APScheduler interval job started with the app
"""

import asyncio
import random
from typing import Callable

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from loguru import logger

from notamproxy.services.store import KeyValueStore
from notamproxy.utils import best_effort


class MaintenanceRunner:
    """Runs housekeeping passes against a KeyValueStore."""

    def __init__(
        self,
        store: KeyValueStore,
        retention_days: int = 30,
        probability: float = 0.01,
        rng: Callable[[], float] = random.random,
    ):
        self._store = store
        self._retention_days = retention_days
        self._probability = probability
        self._rng = rng
        self._tasks: set[asyncio.Task[None]] = set()
        self.passes = 0

    @best_effort
    async def run(self) -> None:
        """One housekeeping pass. Failures are logged, never raised."""
        self.passes += 1
        deleted = await self._store.delete_expired()
        rolled = await self._store.rollup_metrics(self._retention_days)
        logger.info(
            f"Cache maintenance: {deleted} expired entries removed, "
            f"{rolled} daily metric rows rolled up"
        )

    def maybe_trigger(self) -> asyncio.Task[None] | None:
        """Schedule a background pass with the configured probability."""
        if self._probability <= 0 or self._rng() >= self._probability:
            return None

        task = asyncio.create_task(self.run())
        # Keep a reference until done so the task is not garbage collected
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def wait_pending(self) -> None:
        """Wait for background passes still running (used on shutdown)."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)


class MaintenanceScheduler:
    """Periodic maintenance on an AsyncIOScheduler."""

    def __init__(self, runner: MaintenanceRunner, interval_minutes: int):
        self.scheduler = AsyncIOScheduler()
        self.runner = runner
        self.interval_minutes = interval_minutes
        self._is_running = False

    def start(self) -> None:
        if self._is_running:
            logger.warning("Maintenance scheduler is already running")
            return

        self.scheduler.add_job(
            self.runner.run,
            trigger="interval",
            minutes=self.interval_minutes,
            id="cache_maintenance_job",
            name="NOTAM cache maintenance",
            replace_existing=True,
        )
        self.scheduler.start()
        self._is_running = True
        logger.info(
            f"Maintenance scheduler started: running every {self.interval_minutes} minutes"
        )

    def stop(self) -> None:
        if not self._is_running:
            return

        self.scheduler.shutdown(wait=False)
        self._is_running = False
        logger.info("Maintenance scheduler stopped")

    def is_running(self) -> bool:
        return self._is_running
