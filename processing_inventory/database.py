"""Database connection and session management."""

import asyncio
import logging
from typing import AsyncGenerator, Awaitable, Callable, TypeVar

from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlmodel.ext.asyncio.session import AsyncSession

from processing_inventory.config import settings
from processing_inventory.domain.exceptions import TransactionTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def build_engine(database_url: str) -> AsyncEngine:
    """Create the async engine; pool settings only apply to server databases."""
    if database_url.startswith("sqlite"):
        return create_async_engine(database_url, echo=settings.debug)

    return create_async_engine(
        database_url,
        echo=settings.debug,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_timeout=settings.db_pool_timeout,
        pool_recycle=settings.db_pool_recycle,
        pool_pre_ping=True,  # Verify connections before use
    )


engine = build_engine(settings.database_url)

session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Dependency to provide database session to endpoints."""
    async with session_factory() as session:
        yield session


async def run_in_transaction(
    session: AsyncSession,
    operation: str,
    work: Callable[[], Awaitable[T]],
    timeout_seconds: float | None = None,
) -> T:
    """
    Run ``work`` and commit, as one unit bounded by a timeout.

    Any failure, including the timeout cancelling ``work`` midway, rolls the
    session back so nothing from the unit is persisted.

    Raises:
        TransactionTimeoutError: The unit did not finish within the budget.
    """
    timeout = settings.transaction_timeout_seconds if timeout_seconds is None else timeout_seconds

    async def unit() -> T:
        try:
            result = await work()
            await session.commit()
            return result
        except BaseException:
            await session.rollback()
            raise

    try:
        return await asyncio.wait_for(unit(), timeout=timeout)
    except asyncio.TimeoutError as e:
        logger.error("Transaction '%s' exceeded %ss and was rolled back", operation, timeout)
        raise TransactionTimeoutError(operation=operation, timeout_seconds=timeout) from e
