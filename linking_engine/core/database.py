"""Engine, sessions and transactions for the linking worker.

Services only flush. Commits happen in transaction(), one per linking
stage, so a failed stage never leaves half-replaced link rows behind.
"""

import re
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from linking_engine.core.config import Settings, get_settings
from linking_engine.core.logging import db_logger, get_logger

logger = get_logger(__name__)


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""

    pass


def to_async_url(db_url: str) -> str:
    """Rewrite a plain postgres DSN to its asyncpg form."""
    if db_url.startswith("postgres://"):
        return db_url.replace("postgres://", "postgresql+asyncpg://", 1)
    if db_url.startswith("postgresql://"):
        return db_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return db_url


def engine_options(settings: Settings) -> dict[str, Any]:
    """Keyword arguments for create_async_engine.

    Pool sizing only applies to server databases; SQLite uses its own pool.
    """
    options: dict[str, Any] = {"pool_pre_ping": True, "echo": settings.debug}
    if not to_async_url(settings.database_url).startswith("sqlite"):
        options.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_timeout=settings.db_pool_timeout,
        )
    return options


def create_engine(settings: Settings | None = None) -> AsyncEngine:
    settings = settings or get_settings()
    db_url = to_async_url(settings.database_url)
    try:
        engine = create_async_engine(db_url, **engine_options(settings))
    except Exception as e:
        db_logger.connection_error(e, db_url)
        raise
    logger.info("Database engine initialized")
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@asynccontextmanager
async def transaction(
    session: AsyncSession,
    table: str | None = None,
    settings: Settings | None = None,
) -> AsyncGenerator[AsyncSession, None]:
    """Commit on success, roll back and log on SQLAlchemy errors.

    Transactions slower than settings.db_slow_query_threshold_ms are
    logged at WARNING.

    Usage:
        async with transaction(session, table="internal_links", settings=settings):
            await service.generate_internal_links(article)
    """
    threshold_ms = (settings or get_settings()).db_slow_query_threshold_ms
    start_time = time.monotonic()

    try:
        yield session
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        db_logger.transaction_failure(
            e,
            table=table or extract_table_from_error(e),
            context="Explicit transaction rollback",
        )
        raise
    finally:
        duration_ms = (time.monotonic() - start_time) * 1000
        if duration_ms > threshold_ms:
            db_logger.slow_query(
                query=f"transaction on {table or 'unknown'}",
                duration_ms=duration_ms,
                table=table,
            )


_TABLE_PATTERNS = (
    r'relation "([^"]+)"',
    r"UNIQUE constraint failed: ([a-z_]+)\.",
    r'INSERT INTO "?([^\s"(]+)"?',
    r'UPDATE "?([^\s"]+)"?',
    r'DELETE FROM "?([^\s"]+)"?',
)


def extract_table_from_error(error: Exception) -> str | None:
    """Best-effort table name from a driver error message."""
    error_str = str(error)
    for pattern in _TABLE_PATTERNS:
        match = re.search(pattern, error_str, re.IGNORECASE)
        if match:
            return match.group(1)
    return None
