"""Tests for cache housekeeping."""

import asyncio

import pytest

from notamproxy.services.errors import StoreError
from notamproxy.services.maintenance import MaintenanceRunner, MaintenanceScheduler
from notamproxy.services.store import MemoryKeyValueStore


class FailingStore(MemoryKeyValueStore):
    async def delete_expired(self) -> int:
        raise StoreError("disk I/O error")


class TestMaintenanceRunner:
    @pytest.mark.asyncio
    async def test_pass_removes_expired_and_rolls_up(self, clock):
        store = MemoryKeyValueStore(clock=clock)
        await store.set("old", "x", 1)
        await store.record_metric("hit")
        clock.advance(31 * 86400)

        await MaintenanceRunner(store, retention_days=30).run()

        assert len(store) == 0
        assert store.monthly_metrics(2026, 1) == {"hit": 1}

    @pytest.mark.asyncio
    async def test_failures_are_swallowed(self, clock):
        runner = MaintenanceRunner(FailingStore(clock=clock))

        assert await runner.run() is None
        assert runner.passes == 1

    @pytest.mark.asyncio
    async def test_trigger_respects_probability(self, clock):
        store = MemoryKeyValueStore(clock=clock)
        rolls = iter([0.5, 0.009, 0.01])
        runner = MaintenanceRunner(store, probability=0.01, rng=lambda: next(rolls))

        assert runner.maybe_trigger() is None
        task = runner.maybe_trigger()
        assert task is not None
        assert runner.maybe_trigger() is None

        await runner.wait_pending()
        assert runner.passes == 1

    @pytest.mark.asyncio
    async def test_zero_probability_never_triggers(self, clock):
        runner = MaintenanceRunner(
            MemoryKeyValueStore(clock=clock), probability=0, rng=lambda: 0.0
        )

        assert runner.maybe_trigger() is None

    @pytest.mark.asyncio
    async def test_failed_background_pass_does_not_surface(self, clock):
        runner = MaintenanceRunner(FailingStore(clock=clock), rng=lambda: 0.0)

        task = runner.maybe_trigger()
        await runner.wait_pending()

        assert task.done()
        assert task.exception() is None


class TestMaintenanceScheduler:
    @pytest.mark.asyncio
    async def test_start_and_stop(self, clock):
        runner = MaintenanceRunner(MemoryKeyValueStore(clock=clock))
        scheduler = MaintenanceScheduler(runner, interval_minutes=15)

        scheduler.start()
        scheduler.start()
        assert scheduler.is_running()
        job = scheduler.scheduler.get_job("cache_maintenance_job")
        assert job is not None
        assert job.trigger.interval.total_seconds() == 900

        scheduler.stop()
        await asyncio.sleep(0)
        assert not scheduler.is_running()
