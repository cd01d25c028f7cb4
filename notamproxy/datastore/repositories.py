"""
Repository layer - wraps data access for the cache tables.
"""

from collections import defaultdict
from datetime import date, datetime

from loguru import logger
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from notamproxy.datastore.models import (
    CacheMetricDB,
    CacheMetricMonthlyDB,
    NotamCacheDB,
)


class CacheEntryRepository:
    """Expiring key-value rows (responses and tokens)"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_value(self, cache_key: str, now: datetime) -> str | None:
        """Return the stored value if the row exists and has not expired."""
        result = await self.session.execute(
            select(NotamCacheDB.cache_value).where(
                NotamCacheDB.cache_key == cache_key,
                NotamCacheDB.expiration > now,
            )
        )
        return result.scalar_one_or_none()

    async def upsert(self, cache_key: str, value: str, expiration: datetime) -> None:
        """Insert or overwrite a row (last write wins)."""
        existing = await self.session.execute(
            select(NotamCacheDB).where(NotamCacheDB.cache_key == cache_key)
        )
        cached = existing.scalar_one_or_none()

        if cached:
            cached.cache_value = value
            cached.expiration = expiration
            logger.debug(f"Updated cache row: {cache_key[:24]}...")
        else:
            self.session.add(
                NotamCacheDB(cache_key=cache_key, cache_value=value, expiration=expiration)
            )
            logger.debug(f"Created cache row: {cache_key[:24]}...")

    async def delete_expired(self, now: datetime) -> int:
        """Delete every row whose expiration has passed."""
        result = await self.session.execute(
            delete(NotamCacheDB).where(NotamCacheDB.expiration <= now)
        )
        await self.session.flush()
        deleted = result.rowcount or 0
        if deleted > 0:
            logger.debug(f"Cleaned up {deleted} expired cache rows")
        return deleted

    async def count(self) -> int:
        result = await self.session.execute(select(NotamCacheDB.cache_key))
        return len(result.scalars().all())


class CacheMetricsRepository:
    """Daily hit/miss counters and their monthly roll-up"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def increment(self, metric: str, day: date) -> None:
        existing = await self.session.execute(
            select(CacheMetricDB).where(
                CacheMetricDB.day == day,
                CacheMetricDB.metric == metric,
            )
        )
        row = existing.scalar_one_or_none()
        if row:
            row.count += 1
        else:
            self.session.add(CacheMetricDB(day=day, metric=metric, count=1))

    async def rollup(self, before: date) -> int:
        """
        Fold daily counters older than `before` into monthly totals.

        Returns:
            Number of daily rows folded and deleted
        """
        result = await self.session.execute(
            select(CacheMetricDB).where(CacheMetricDB.day < before)
        )
        daily = result.scalars().all()
        if not daily:
            return 0

        totals: dict[tuple[int, int, str], int] = defaultdict(int)
        for row in daily:
            totals[(row.day.year, row.day.month, row.metric)] += row.count

        for (year, month, metric), count in totals.items():
            existing = await self.session.execute(
                select(CacheMetricMonthlyDB).where(
                    CacheMetricMonthlyDB.year == year,
                    CacheMetricMonthlyDB.month == month,
                    CacheMetricMonthlyDB.metric == metric,
                )
            )
            monthly = existing.scalar_one_or_none()
            if monthly:
                monthly.count += count
            else:
                self.session.add(
                    CacheMetricMonthlyDB(year=year, month=month, metric=metric, count=count)
                )

        await self.session.execute(
            delete(CacheMetricDB).where(CacheMetricDB.day < before)
        )
        await self.session.flush()
        logger.debug(f"Rolled {len(daily)} daily metric rows into {len(totals)} monthly rows")
        return len(daily)

    async def get_daily(self, day: date) -> dict[str, int]:
        result = await self.session.execute(
            select(CacheMetricDB).where(CacheMetricDB.day == day)
        )
        return {row.metric: row.count for row in result.scalars().all()}

    async def get_monthly(self, year: int, month: int) -> dict[str, int]:
        result = await self.session.execute(
            select(CacheMetricMonthlyDB).where(
                CacheMetricMonthlyDB.year == year,
                CacheMetricMonthlyDB.month == month,
            )
        )
        return {row.metric: row.count for row in result.scalars().all()}
