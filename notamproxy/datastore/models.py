"""
Database model definitions.
SQLAlchemy 2.0+ declarative mapping.
"""

from datetime import date, datetime

from sqlalchemy import Date, DateTime, Integer, String, Text, UniqueConstraint
from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(AsyncAttrs, DeclarativeBase):
    """Base class for all models"""

    pass


class NotamCacheDB(Base):
    """Expiring key-value table shared by response and token caching."""

    __tablename__ = "notam_cache"

    cache_key: Mapped[str] = mapped_column(String(255), primary_key=True)
    cache_value: Mapped[str] = mapped_column(Text, nullable=False)
    expiration: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<NotamCache(key={self.cache_key}, expiration={self.expiration})>"


class CacheMetricDB(Base):
    """Daily cache hit/miss counters."""

    __tablename__ = "cache_metrics"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    day: Mapped[date] = mapped_column("date", Date, nullable=False, index=True)
    metric: Mapped[str] = mapped_column(String(32), nullable=False)
    count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    __table_args__ = (UniqueConstraint("date", "metric", name="uq_metric_date"),)

    def __repr__(self) -> str:
        return f"<CacheMetric(date={self.day}, metric={self.metric}, count={self.count})>"


class CacheMetricMonthlyDB(Base):
    """Monthly roll-up of daily cache counters."""

    __tablename__ = "cache_metrics_monthly"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    metric: Mapped[str] = mapped_column(String(32), nullable=False)
    count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    __table_args__ = (
        UniqueConstraint("year", "month", "metric", name="uq_metric_month"),
    )

    def __repr__(self) -> str:
        return f"<CacheMetricMonthly({self.year}-{self.month:02d}, metric={self.metric})>"
