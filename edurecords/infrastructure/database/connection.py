# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Engines and sessions for the records database.

The API process shares one pooled engine created at startup. A Dramatiq
worker thread cannot reuse it, since an asyncpg engine belongs to the
loop that created it, so each thread lazily builds a small engine of its
own (get_worker_session) and forgets it when its loop is replaced.

Example:
    await init_database(settings)
    async with get_session() as session:
        repo = SqlAlchemyAcademicRepository(session)
"""

import logging
import threading
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncIterator, Optional

from sqlalchemy import make_url, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

if TYPE_CHECKING:
    from edurecords.core.config.settings import Settings

logger = logging.getLogger(__name__)

# A worker thread runs one actor at a time
WORKER_POOL_SIZE = 2

_engine: Optional[AsyncEngine] = None
_sessionmaker: Optional[async_sessionmaker[AsyncSession]] = None
_worker = threading.local()


class DatabaseError(Exception):
    """Records database unavailable or a statement failed.

    Attributes:
        message: What was being done.
        original_error: The SQLAlchemy error, when there is one.
    """

    def __init__(self, message: str, original_error: Optional[Exception] = None) -> None:
        super().__init__(message)
        self.message = message
        self.original_error = original_error

    def __str__(self) -> str:
        if self.original_error:
            return f"{self.message}: {self.original_error}"
        return self.message


def _engine_for(settings: "Settings", pool_size: int, max_overflow: int) -> AsyncEngine:
    return create_async_engine(
        settings.db.url,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=True,
        pool_recycle=1800,
        echo=settings.db.echo,
    )


def _sessions_for(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)


async def init_database(settings: "Settings") -> None:
    """Create the API engine. Called once from the application lifespan.

    Raises:
        DatabaseError: If the URL or pool options are rejected.
    """
    global _engine, _sessionmaker

    try:
        _engine = _engine_for(settings, settings.db.pool_size, settings.db.max_overflow)
        _sessionmaker = _sessions_for(_engine)
    except (SQLAlchemyError, ValueError) as e:
        raise DatabaseError("Failed to initialize database connection", e) from e

    safe_url = make_url(settings.db.url).render_as_string(hide_password=True)
    logger.info("Records database pool ready on %s", safe_url)


async def close_database() -> None:
    global _engine, _sessionmaker

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _sessionmaker = None


def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    """The API sessionmaker.

    Raises:
        DatabaseError: Before init_database().
    """
    if _sessionmaker is None:
        raise DatabaseError("Database not initialized. Call init_database() first.")
    return _sessionmaker


@asynccontextmanager
async def get_session() -> AsyncIterator[AsyncSession]:
    """One request's session.

    Services commit where a transition must be durable on its own (year
    closure before consolidation). Whatever is still pending is
    committed on exit, or rolled back if the block raised.

    Raises:
        DatabaseError: If the database is not initialized or a statement
            failed.
    """
    async with get_sessionmaker()() as session:
        try:
            yield session
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            raise DatabaseError("Database operation failed", e) from e
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def get_worker_session() -> AsyncIterator[AsyncSession]:
    """A session on the current worker thread's own engine."""
    sessions = getattr(_worker, "sessionmaker", None)
    if sessions is None:
        from edurecords.core.config import get_settings

        engine = _engine_for(get_settings(), WORKER_POOL_SIZE, 0)
        sessions = _sessions_for(engine)
        _worker.engine = engine
        _worker.sessionmaker = sessions

    async with sessions() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def clear_worker_connections() -> None:
    """Forget this thread's engine; its loop is gone with it."""
    _worker.engine = None
    _worker.sessionmaker = None


async def check_database_connection() -> bool:
    """True if the API engine can run SELECT 1."""
    if _engine is None:
        return False

    try:
        async with _engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except (SQLAlchemyError, OSError):
        return False
