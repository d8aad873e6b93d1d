"""Database configuration and connection management."""

import asyncio
from collections.abc import AsyncGenerator, Awaitable, Callable
from typing import Any, TypeVar

import structlog
from sqlalchemy import create_engine, pool, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.config import settings
from app.core.exceptions import InternalServerException

logger = structlog.get_logger()

T = TypeVar("T")

# Seconds allowed for the health probe query
HEALTH_CHECK_TIMEOUT = 5.0

# Convert sync PostgreSQL URL to async
DATABASE_URL = settings.database_url.replace("postgresql://", "postgresql+asyncpg://")


def _engine_options(url: str) -> dict[str, Any]:
    """Pool options for the configured backend."""
    if url.startswith("sqlite"):
        return {}

    return {
        "pool_pre_ping": True,
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
        "pool_recycle": 3600,
        "connect_args": {
            "server_settings": {
                "application_name": settings.app_name,
            },
        },
    }


# Create async engine with connection pooling
engine: AsyncEngine = create_async_engine(
    DATABASE_URL,
    echo=settings.debug,
    **_engine_options(DATABASE_URL),
)

# Async session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting async database sessions."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# For Alembic migrations (sync engine)
sync_engine: Engine = create_engine(
    settings.database_url.replace("+asyncpg", "").replace("+aiosqlite", ""),
    poolclass=pool.NullPool,
)


async def execute_with_retry(
    operation: Callable[[], Awaitable[T]],
    max_retries: int | None = None,
    base_delay: float | None = None,
) -> T:
    """
    Run a database coroutine, retrying transient failures.

    Waits base_delay * 2**attempt seconds between attempts.

    Args:
        operation: Zero-argument callable returning the coroutine to run
        max_retries: Number of attempts (defaults to DB_RETRY_ATTEMPTS)
        base_delay: Initial backoff in seconds (defaults to DB_RETRY_BASE_DELAY)

    Returns:
        Result of the operation

    Raises:
        InternalServerException: If every attempt failed
    """
    attempts = max_retries if max_retries is not None else settings.db_retry_attempts
    delay = base_delay if base_delay is not None else settings.db_retry_base_delay
    last_error: Exception | None = None

    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except (OperationalError, DBAPIError, ConnectionError) as e:
            last_error = e
            logger.warning(
                "database_operation_failed",
                attempt=attempt,
                max_retries=attempts,
                error=str(e),
            )
            if attempt < attempts:
                await asyncio.sleep(delay * 2**attempt)

    logger.error("database_operation_exhausted_retries", error=str(last_error))
    raise InternalServerException("Database operation failed")


async def check_database_connection(timeout: float = HEALTH_CHECK_TIMEOUT) -> bool:
    """Check if database connection is healthy."""

    async def probe() -> None:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    try:
        await asyncio.wait_for(probe(), timeout=timeout)
        return True
    except Exception as e:
        logger.warning("database_health_check_failed", error=str(e))
        return False
