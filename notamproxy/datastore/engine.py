"""
Database engine configuration and lifecycle.
Uses SQLAlchemy's async engine (SQLite via aiosqlite by default).
"""

from typing import Any

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from notamproxy.datastore.models import Base
from notamproxy.settings import global_settings

# Global engine instance
engine: AsyncEngine | None = None
AsyncSessionLocal: async_sessionmaker[AsyncSession] | None = None


async def init_db(database_url: str | None = None, echo: bool | None = None) -> None:
    """Initialize the database connection and create tables."""
    global engine, AsyncSessionLocal

    url = database_url or global_settings.database_url
    engine_kwargs: dict[str, Any] = {
        "echo": global_settings.database_echo if echo is None else echo,
    }
    # An in-memory SQLite database only lives as long as its one connection
    if ":memory:" in url:
        engine_kwargs["poolclass"] = StaticPool
        engine_kwargs["connect_args"] = {"check_same_thread": False}

    engine = create_async_engine(url, **engine_kwargs)

    AsyncSessionLocal = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Close database connections."""
    global engine, AsyncSessionLocal
    if engine:
        await engine.dispose()
    engine = None
    AsyncSessionLocal = None


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory for components that open their own sessions."""
    if AsyncSessionLocal is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    return AsyncSessionLocal
