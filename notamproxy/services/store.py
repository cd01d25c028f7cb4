"""
KeyValueStore - expiring key-value storage behind the response and token caches.

Implementations:
- SQLKeyValueStore: SQLAlchemy async table, shared across processes
- MemoryKeyValueStore: in-process dict, for single-process deployments and tests

Both answer get() only while now < expiration; expired rows linger until
delete_expired() reclaims them.
"""

import asyncio
from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Callable

from loguru import logger
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from notamproxy.datastore.repositories import (
    CacheEntryRepository,
    CacheMetricsRepository,
)
from notamproxy.services.errors import StoreError
from notamproxy.utils import utcnow

Clock = Callable[[], datetime]


class KeyValueStore(ABC):
    """Abstract expiring key-value store."""

    def __init__(self, clock: Clock | None = None):
        self._clock = clock or utcnow

    def now(self) -> datetime:
        return self._clock()

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the value if present and unexpired."""
        ...

    @abstractmethod
    async def set(self, key: str, value: str, ttl_seconds: float) -> None:
        """Upsert with expiration = now + ttl_seconds."""
        ...

    @abstractmethod
    async def delete_expired(self) -> int:
        """Remove expired entries. Returns count of removed entries."""
        ...

    @abstractmethod
    async def record_metric(self, metric: str) -> None:
        """Increment today's counter for a metric ('hit' | 'miss')."""
        ...

    @abstractmethod
    async def rollup_metrics(self, retention_days: int = 30) -> int:
        """Fold daily counters older than retention_days into monthly totals."""
        ...


@dataclass
class MemoryEntry:
    """A single in-memory entry."""

    value: str
    expiration: datetime


class MemoryKeyValueStore(KeyValueStore):
    """
    In-process expiring store.

    Usage:
        store = MemoryKeyValueStore()
        await store.set("notam_abc", payload, ttl_seconds=3600)
        cached = await store.get("notam_abc")
    """

    def __init__(self, clock: Clock | None = None, debug: bool = False):
        super().__init__(clock)
        self._entries: dict[str, MemoryEntry] = {}
        self._daily: dict[tuple[date, str], int] = defaultdict(int)
        self._monthly: dict[tuple[int, int, str], int] = defaultdict(int)
        self._lock = asyncio.Lock()
        self._debug = debug

    async def get(self, key: str) -> str | None:
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._log(f"MISS: {key[:50]}")
                return None
            if self.now() >= entry.expiration:
                self._log(f"EXPIRED: {key[:50]}")
                return None
            self._log(f"HIT: {key[:50]}")
            return entry.value

    async def set(self, key: str, value: str, ttl_seconds: float) -> None:
        expiration = self.now() + timedelta(seconds=ttl_seconds)
        async with self._lock:
            self._entries[key] = MemoryEntry(value=value, expiration=expiration)
            self._log(f"SET: {key[:50]} (TTL: {ttl_seconds}s)")

    async def delete_expired(self) -> int:
        now = self.now()
        async with self._lock:
            expired_keys = [k for k, v in self._entries.items() if now >= v.expiration]
            for key in expired_keys:
                del self._entries[key]

            if expired_keys:
                self._log(f"CLEANUP: {len(expired_keys)} expired entries removed")

            return len(expired_keys)

    async def record_metric(self, metric: str) -> None:
        async with self._lock:
            self._daily[(self.now().date(), metric)] += 1

    async def rollup_metrics(self, retention_days: int = 30) -> int:
        cutoff = self.now().date() - timedelta(days=retention_days)
        async with self._lock:
            old = [k for k in self._daily if k[0] < cutoff]
            for day, metric in old:
                self._monthly[(day.year, day.month, metric)] += self._daily.pop(
                    (day, metric)
                )
            return len(old)

    def __len__(self) -> int:
        return len(self._entries)

    def daily_metrics(self, day: date) -> dict[str, int]:
        return {m: c for (d, m), c in self._daily.items() if d == day}

    def monthly_metrics(self, year: int, month: int) -> dict[str, int]:
        return {
            m: c for (y, mo, m), c in self._monthly.items() if (y, mo) == (year, month)
        }

    def _log(self, message: str) -> None:
        """Log debug message if debug mode is enabled."""
        if self._debug:
            logger.debug(f"[MemoryKeyValueStore] {message}")


class SQLKeyValueStore(KeyValueStore):
    """
    Store backed by the notam_cache table.

    Each call runs in its own session and commits before returning.
    Backend failures surface as StoreError; the cache is never bypassed
    silently.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Clock | None = None,
    ):
        super().__init__(clock)
        self._session_factory = session_factory

    async def get(self, key: str) -> str | None:
        try:
            async with self._session_factory() as session:
                return await CacheEntryRepository(session).get_value(key, self.now())
        except SQLAlchemyError as e:
            raise StoreError(f"Cache lookup failed: {e}") from e

    async def set(self, key: str, value: str, ttl_seconds: float) -> None:
        expiration = self.now() + timedelta(seconds=ttl_seconds)
        try:
            try:
                await self._upsert(key, value, expiration)
            except IntegrityError:
                # A concurrent writer inserted the same key first; overwrite it
                logger.debug(f"Concurrent insert for {key[:24]}..., retrying as update")
                await self._upsert(key, value, expiration)
        except SQLAlchemyError as e:
            raise StoreError(f"Cache write failed: {e}") from e

    async def _upsert(self, key: str, value: str, expiration: datetime) -> None:
        async with self._session_factory() as session:
            async with session.begin():
                await CacheEntryRepository(session).upsert(key, value, expiration)

    async def delete_expired(self) -> int:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    return await CacheEntryRepository(session).delete_expired(self.now())
        except SQLAlchemyError as e:
            raise StoreError(f"Cache cleanup failed: {e}") from e

    async def record_metric(self, metric: str) -> None:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    await CacheMetricsRepository(session).increment(
                        metric, self.now().date()
                    )
        except SQLAlchemyError as e:
            raise StoreError(f"Metric update failed: {e}") from e

    async def rollup_metrics(self, retention_days: int = 30) -> int:
        cutoff = self.now().date() - timedelta(days=retention_days)
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    return await CacheMetricsRepository(session).rollup(cutoff)
        except SQLAlchemyError as e:
            raise StoreError(f"Metric roll-up failed: {e}") from e
