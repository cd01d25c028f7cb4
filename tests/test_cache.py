"""Tests for notamproxy.services.cache.ResponseCache."""

import asyncio
import json

import pytest
from loguru import logger

from conftest import notam_feature
from notamproxy.datasource.base import CanonicalResponse, NotamQuery, UpstreamFetcher
from notamproxy.services.cache import CacheConfig, ResponseCache
from notamproxy.services.errors import StoreError, UpstreamError
from notamproxy.services.maintenance import MaintenanceRunner
from notamproxy.services.store import MemoryKeyValueStore

QUERY = NotamQuery(longitude=8.5622, latitude=50.0379, radius=5, page_size=1000)


class StubFetcher(UpstreamFetcher):
    """Counts fetches and returns a fixed item list (or raises)."""

    def __init__(self, items=None, error: Exception | None = None, namespace="stub"):
        super().__init__(client=None)
        self.items = items if items is not None else [notam_feature("A", "T1")]
        self.error = error
        self.namespace = namespace
        self.calls = 0

    @property
    def service_id(self) -> str:
        return "stub"

    @property
    def cache_namespace(self) -> str:
        return self.namespace

    def is_configured(self) -> bool:
        return True

    async def fetch_all(self, query: NotamQuery) -> CanonicalResponse:
        self.calls += 1
        await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        return CanonicalResponse.from_items(list(self.items), page_size=query.page_size)


class BrokenStore(MemoryKeyValueStore):
    async def get(self, key: str) -> str | None:
        raise StoreError("database is locked")


class FlakyMetricsStore(MemoryKeyValueStore):
    async def record_metric(self, metric: str) -> None:
        raise StoreError("metrics table missing")


def make_cache(fetcher, clock, ttl=3600, **kwargs):
    store = kwargs.pop("store", None)
    if store is None:
        store = MemoryKeyValueStore(clock=clock)
    return ResponseCache(fetcher, store, CacheConfig(ttl_seconds=ttl), **kwargs), store


class TestCacheKey:
    def test_same_query_same_key(self, clock):
        cache, _ = make_cache(StubFetcher(), clock)
        same = NotamQuery(longitude=8.5622, latitude=50.0379, radius=5.0, page_size=1000)
        assert cache.generate_key(QUERY) == cache.generate_key(same)

    @pytest.mark.parametrize(
        "other",
        [
            NotamQuery(longitude=8.5623, latitude=50.0379, radius=5, page_size=1000),
            NotamQuery(longitude=8.5622, latitude=50.0378, radius=5, page_size=1000),
            NotamQuery(longitude=8.5622, latitude=50.0379, radius=6, page_size=1000),
            NotamQuery(longitude=8.5622, latitude=50.0379, radius=5, page_size=999),
            NotamQuery(longitude=8.5622, latitude=50.0379, radius=5, page_size=None),
            NotamQuery(longitude=50.0379, latitude=8.5622, radius=5, page_size=1000),
        ],
    )
    def test_different_query_different_key(self, clock, other):
        cache, _ = make_cache(StubFetcher(), clock)
        assert cache.generate_key(QUERY) != cache.generate_key(other)

    def test_response_format_changes_key(self, clock):
        geojson, _ = make_cache(StubFetcher(namespace="nms:GEOJSON"), clock)
        aixm, _ = make_cache(StubFetcher(namespace="nms:AIXM"), clock)
        assert geojson.generate_key(QUERY) != aixm.generate_key(QUERY)

    def test_key_prefix(self, clock):
        cache, _ = make_cache(StubFetcher(), clock)
        assert cache.generate_key(QUERY).startswith("notam_")


class TestGetOrFetch:
    @pytest.mark.asyncio
    async def test_two_calls_within_ttl_fetch_once(self, clock):
        fetcher = StubFetcher()
        cache, _ = make_cache(fetcher, clock, ttl=3600)

        first = await cache.get_or_fetch(QUERY)
        clock.advance(3599)
        second = await cache.get_or_fetch(QUERY)

        assert first == second
        assert fetcher.calls == 1
        assert cache.get_stats().hits == 1
        assert cache.get_stats().misses == 1
        assert cache.get_stats().hit_rate == 0.5

    @pytest.mark.asyncio
    async def test_expired_entry_is_refetched(self, clock):
        fetcher = StubFetcher()
        cache, _ = make_cache(fetcher, clock, ttl=3600)

        await cache.get_or_fetch(QUERY)
        clock.advance(3600)
        await cache.get_or_fetch(QUERY)

        assert fetcher.calls == 2

    @pytest.mark.asyncio
    async def test_ttl_override(self, clock):
        fetcher = StubFetcher()
        cache, _ = make_cache(fetcher, clock, ttl=3600)

        await cache.get_or_fetch(QUERY, ttl_seconds=10)
        clock.advance(11)
        await cache.get_or_fetch(QUERY, ttl_seconds=10)

        assert fetcher.calls == 2

    @pytest.mark.asyncio
    async def test_hit_returns_stored_value_verbatim(self, clock):
        fetcher = StubFetcher()
        cache, store = make_cache(fetcher, clock)
        await store.set(cache.generate_key(QUERY), '{"stored": true}', 60)

        assert await cache.get_or_fetch(QUERY) == '{"stored": true}'
        assert fetcher.calls == 0

    @pytest.mark.asyncio
    async def test_miss_serializes_canonical_response(self, clock):
        items = [notam_feature("A", "T1"), notam_feature("B", "T2")]
        cache, store = make_cache(StubFetcher(items=items), clock)

        value = await cache.get_or_fetch(QUERY)

        payload = json.loads(value)
        assert payload == {
            "pageSize": 1000,
            "pageNum": 1,
            "totalCount": 2,
            "totalPages": 1,
            "items": items,
        }
        assert await store.get(cache.generate_key(QUERY)) == value

    @pytest.mark.asyncio
    async def test_upstream_failure_propagates_and_is_not_cached(self, clock):
        fetcher = StubFetcher(error=UpstreamError("boom", service_id="stub"))
        cache, store = make_cache(fetcher, clock)

        with pytest.raises(UpstreamError, match="boom"):
            await cache.get_or_fetch(QUERY)

        assert len(store) == 0
        fetcher.error = None
        await cache.get_or_fetch(QUERY)
        assert fetcher.calls == 2

    @pytest.mark.asyncio
    async def test_store_failure_is_fatal(self, clock):
        fetcher = StubFetcher()
        cache, _ = make_cache(fetcher, clock, store=BrokenStore(clock=clock))

        with pytest.raises(StoreError):
            await cache.get_or_fetch(QUERY)
        assert fetcher.calls == 0

    @pytest.mark.asyncio
    async def test_metric_failure_does_not_fail_request(self, clock):
        fetcher = StubFetcher()
        cache, _ = make_cache(fetcher, clock, store=FlakyMetricsStore(clock=clock))

        assert json.loads(await cache.get_or_fetch(QUERY))["totalCount"] == 1

    @pytest.mark.asyncio
    async def test_concurrent_misses_fetch_once(self, clock):
        fetcher = StubFetcher()
        cache, _ = make_cache(fetcher, clock)

        results = await asyncio.gather(*(cache.get_or_fetch(QUERY) for _ in range(10)))

        assert len(set(results)) == 1
        assert fetcher.calls == 1
        assert cache.get_stats().fetches == 1
        assert cache.get_stats().in_flight == 0

    @pytest.mark.asyncio
    async def test_records_daily_metrics(self, clock):
        cache, store = make_cache(StubFetcher(), clock)

        await cache.get_or_fetch(QUERY)
        await cache.get_or_fetch(QUERY)
        await cache.get_or_fetch(QUERY)

        assert store.daily_metrics(clock().date()) == {"miss": 1, "hit": 2}

    @pytest.mark.asyncio
    async def test_maintenance_triggered_by_probability(self, clock):
        store = MemoryKeyValueStore(clock=clock)
        runner = MaintenanceRunner(store, probability=0.01, rng=lambda: 0.0)
        cache, _ = make_cache(StubFetcher(), clock, store=store, maintenance=runner)

        await store.set("stale", "x", 1)
        clock.advance(5)
        await cache.get_or_fetch(QUERY)
        await runner.wait_pending()

        assert runner.passes == 1
        assert await store.get("stale") is None
        assert len(store) == 1

    @pytest.mark.asyncio
    async def test_maintenance_skipped_by_probability(self, clock):
        store = MemoryKeyValueStore(clock=clock)
        runner = MaintenanceRunner(store, probability=0.01, rng=lambda: 0.5)
        cache, _ = make_cache(StubFetcher(), clock, store=store, maintenance=runner)

        await cache.get_or_fetch(QUERY)
        await runner.wait_pending()

        assert runner.passes == 0

    @pytest.mark.asyncio
    async def test_close_logs_hit_rate(self, clock):
        cache, _ = make_cache(StubFetcher(), clock)
        for _ in range(4):
            await cache.get_or_fetch(QUERY)

        messages = []
        sink_id = logger.add(messages.append, format="{message}")
        try:
            await cache.close()
        finally:
            logger.remove(sink_id)

        assert any("3 hits, 1 misses, hit rate 75.0%" in m for m in messages)
