"""
ResponseCache - read-through cache in front of an UpstreamFetcher.

Features:
- Deterministic cache key per effective query
- TTL expiry handled by the KeyValueStore
- Single-flight fetch per key within the process
- Daily hit/miss metrics and probabilistic background maintenance
"""

import hashlib
import json
from dataclasses import dataclass
from typing import Any

from loguru import logger

from notamproxy.datasource.base import NotamQuery, UpstreamFetcher, format_number
from notamproxy.services.deduplicator import SingleFlight
from notamproxy.services.errors import StoreError
from notamproxy.services.maintenance import MaintenanceRunner
from notamproxy.services.store import KeyValueStore


@dataclass
class CacheConfig:
    """Configuration for the response cache."""

    ttl_seconds: int = 3600
    key_prefix: str = "notam_"


class ResponseCache:
    """
    Read-through cache for canonical NOTAM responses.

    Usage:
        cache = ResponseCache(fetcher, store)
        payload = await cache.get_or_fetch(query)   # serialized JSON string

    A hit returns the stored string verbatim, without asking the upstream.
    Upstream failures propagate unchanged and nothing is cached for them.
    """

    def __init__(
        self,
        fetcher: UpstreamFetcher,
        store: KeyValueStore,
        config: CacheConfig | None = None,
        maintenance: MaintenanceRunner | None = None,
        single_flight: SingleFlight | None = None,
        debug: bool = False,
    ):
        self._fetcher = fetcher
        self._store = store
        self._config = config or CacheConfig()
        self._maintenance = maintenance
        self._single_flight = single_flight or SingleFlight(debug=debug)
        self._debug = debug
        self._stats = CacheStats()

    def generate_key(self, query: NotamQuery) -> str:
        """Hash every input that changes the upstream answer."""
        parts = [
            f"variant={self._fetcher.cache_namespace}",
            f"lon={format_number(query.longitude)}",
            f"lat={format_number(query.latitude)}",
            f"radius={format_number(query.radius)}",
            f"pageSize={query.page_size if query.page_size is not None else ''}",
        ]
        digest = hashlib.sha256("&".join(parts).encode()).hexdigest()
        return f"{self._config.key_prefix}{digest}"

    async def get_or_fetch(
        self, query: NotamQuery, ttl_seconds: int | None = None
    ) -> str:
        """
        Return the serialized canonical response for a query.

        Raises:
            UpstreamError / ConfigError: Propagated from the fetcher
            StoreError: If the cache backend is unavailable
        """
        ttl = ttl_seconds if ttl_seconds is not None else self._config.ttl_seconds
        key = self.generate_key(query)

        try:
            cached = await self._store.get(key)
            if cached is not None:
                self._stats.hits += 1
                self._log(f"HIT: {key[:24]}...")
                await self._record("hit")
                return cached

            self._stats.misses += 1
            self._log(f"MISS: {key[:24]}...")
            await self._record("miss")

            return await self._single_flight.do(
                key, lambda: self._fetch_and_store(key, query, ttl)
            )
        finally:
            if self._maintenance is not None:
                self._maintenance.maybe_trigger()

    async def _fetch_and_store(self, key: str, query: NotamQuery, ttl: int) -> str:
        self._stats.fetches += 1
        response = await self._fetcher.fetch_all(query)
        value = serialize(response.to_payload())
        await self._store.set(key, value, ttl)
        logger.info(
            f"Cached {response.total_count} NOTAMs from {self._fetcher.service_id} "
            f"for {ttl}s"
        )
        return value

    async def _record(self, metric: str) -> None:
        # Metrics are observational; a failed counter never fails the request
        try:
            await self._store.record_metric(metric)
        except StoreError as e:
            logger.warning(f"Failed to record cache {metric}: {e}")

    async def close(self) -> None:
        """Cancel fetches still in flight (shutdown)."""
        cancelled = await self._single_flight.cancel_all()
        if cancelled:
            logger.info(f"Cancelled {cancelled} in-flight upstream fetches")
        stats = self.get_stats()
        logger.info(
            f"Response cache: {stats.hits} hits, {stats.misses} misses, "
            f"hit rate {stats.hit_rate:.1%}"
        )

    def get_stats(self) -> "CacheStats":
        self._stats.in_flight = self._single_flight.get_in_flight_count()
        return self._stats

    def _log(self, message: str) -> None:
        """Log debug message if debug mode is enabled."""
        if self._debug:
            logger.debug(f"[ResponseCache] {message}")


def serialize(payload: Any) -> str:
    """Compact JSON, the form responses are stored and served in."""
    return json.dumps(payload, ensure_ascii=False, separators=(",", ":"))


@dataclass
class CacheStats:
    """Cache statistics."""

    hits: int = 0
    misses: int = 0
    fetches: int = 0
    in_flight: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return self.hits / total
