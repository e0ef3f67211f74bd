"""
Cinedex Backend: Database Engine & Query Deadlines
====================================================

What:  Async SQLAlchemy engine/session factories, the declarative Base, and
       the `bounded` decorator that puts a deadline on every store call.
How:   The engine is built by `create_engine()` when the SQL store is
       constructed (not at import), so importing models or running tests
       against the in-memory store never needs a database driver.
Who:   Used by `cinedex.repositories.sql` and Alembic.

Connection Pooling Strategy:
    pool_size=25, max_overflow=0: hard ceiling of 25 concurrent connections
    pool_timeout:                 how long a request waits for a free connection
    pool_recycle:                 connections idle longer than db_max_idle_time are replaced
    pool_pre_ping:                stale connections are detected before use

Deadlines:
    Each repository method is wrapped in `bounded`, which scopes an
    `asyncio.timeout()` to that single operation (not the whole request).
    A timeout or any unrecognised SQLAlchemy error becomes DatabaseError,
    which the API renders as an opaque 500.
"""

import asyncio
import functools
import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from cinedex.config import settings
from cinedex.exceptions import DatabaseError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    Shares a single metadata object, which Alembic reads for --autogenerate.
    """
    pass


def create_engine(database_url: Optional[str] = None) -> AsyncEngine:
    """Build the pooled async engine from settings."""
    return create_async_engine(
        database_url or settings.database_url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_timeout=settings.db_pool_timeout,
        pool_recycle=settings.db_max_idle_time,
        pool_pre_ping=True,
        echo=settings.log_level == "DEBUG",
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # expire_on_commit=False: entities stay readable after the unit of work commits
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


def bounded(fn: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
    """
    Run a store operation under its own deadline and normalize failures.

    Application errors raised inside `fn` (not-found, edit conflict,
    duplicate email) pass through untouched; timeouts and raw SQLAlchemy
    errors are wrapped in DatabaseError with the operation name in context.
    """

    @functools.wraps(fn)
    async def wrapper(*args: Any, **kwargs: Any) -> T:
        operation = fn.__qualname__
        try:
            async with asyncio.timeout(settings.db_query_timeout):
                return await fn(*args, **kwargs)
        except TimeoutError as exc:
            logger.error("Store operation %s exceeded %.1fs", operation, settings.db_query_timeout)
            raise DatabaseError(context={"operation": operation, "reason": "timeout"}) from exc
        except SQLAlchemyError as exc:
            raise DatabaseError(
                context={"operation": operation, "error_type": type(exc).__name__},
            ) from exc

    return wrapper
