import functools
import sys
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, TypeVar

from loguru import logger

T = TypeVar("T")


def utcnow() -> datetime:
    """Naive UTC timestamp, the form stored in the cache tables."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def configure_logging(level: str = "INFO") -> None:
    """Route loguru output to stderr at the given level."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="{time:YYYY-MM-DD HH:mm:ss} | {level:<8} | {name}:{function} - {message}",
    )


def best_effort(
    func: Callable[..., Awaitable[T]],
) -> Callable[..., Awaitable[T | None]]:
    """
    A decorator for background coroutines whose failure must not propagate.

    Features:
    - Logs function name on entry
    - Catches exceptions, logs them with traceback and returns None
    - Preserves function metadata and return values
    """

    @functools.wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> T | None:
        func_name = func.__name__
        logger.debug(f"Entering {func_name}")

        try:
            return await func(*args, **kwargs)
        except Exception as e:
            logger.opt(exception=e).error(f"{func_name} failed: {type(e).__name__}: {e}")
            return None

    return wrapper
