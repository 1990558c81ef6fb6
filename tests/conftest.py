"""Pytest configuration and fixtures.

Provides fixtures for:
- Database with SQLite in-memory (fresh schema per test)
- Settings override for testing
- Article / offer / authority domain factories
"""

from collections.abc import AsyncGenerator, Callable, Coroutine
from typing import Any

import pytest
from sqlalchemy import event
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool
from sqlalchemy.types import JSON, String

from linking_engine.core.config import Settings
from linking_engine.core.database import Base
from linking_engine.models import (
    AffiliateLink,
    Article,
    ArticleStatus,
    AuthorityDomain,
)

# ---------------------------------------------------------------------------
# SQLite Type Compatibility
# ---------------------------------------------------------------------------


def _adapt_postgres_types_for_sqlite() -> None:
    """Adapt PostgreSQL-specific column types and defaults to work with SQLite.

    This allows tests to use SQLite for fast in-memory testing while
    production uses PostgreSQL with its native types.
    """
    for table in Base.metadata.tables.values():
        for column in table.columns:
            # Replace PostgreSQL UUID with String
            if isinstance(column.type, UUID):
                column.type = String(36)
            # Replace JSONB with JSON
            elif isinstance(column.type, JSONB):
                column.type = JSON(none_as_null=column.type.none_as_null)

            # Clear PostgreSQL-specific server defaults that SQLite can't handle
            if column.server_default is not None:
                default_text = str(getattr(column.server_default, "arg", column.server_default))
                postgres_defaults = (
                    "gen_random_uuid()",
                    "::jsonb",
                    "now()",
                )
                if any(pg_default in default_text for pg_default in postgres_defaults):
                    column.server_default = None


# ---------------------------------------------------------------------------
# Settings Fixtures
# ---------------------------------------------------------------------------


def get_test_settings(**overrides: Any) -> Settings:
    """Get test settings with SQLite database."""
    values: dict[str, Any] = {
        "environment": "test",
        "database_url": "sqlite+aiosqlite:///:memory:",
        "log_level": "DEBUG",
        "log_format": "text",
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def test_settings() -> Settings:
    return get_test_settings()


# ---------------------------------------------------------------------------
# Database Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
async def async_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create an async in-memory SQLite engine with all tables.

    StaticPool keeps the single in-memory connection alive for the test.
    The driver's own BEGIN handling is replaced by an explicit BEGIN so
    SAVEPOINTs (begin_nested) nest inside the outer transaction.
    """
    _adapt_postgres_types_for_sqlite()

    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def async_session_factory(
    async_engine: AsyncEngine,
) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def db_session(
    async_session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    async with async_session_factory() as session:
        yield session
        await session.rollback()


# ---------------------------------------------------------------------------
# Content Helpers
# ---------------------------------------------------------------------------

FILLER_SENTENCE = (
    "Expatriates moving abroad need clear guidance on residence permits and "
    "the documents required by local authorities."
)


def long_paragraph(sentences: int = 3, prefix: str = "") -> str:
    """A <p> with several sentences, well above the default word threshold."""
    body = " ".join([FILLER_SENTENCE] * sentences)
    return f"<p>{prefix}{body}</p>"


def make_content(paragraphs: int = 3, sentences: int = 3) -> str:
    return "".join(long_paragraph(sentences) for _ in range(paragraphs))


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------

ArticleFactory = Callable[..., Coroutine[Any, Any, Article]]


@pytest.fixture
def make_article(db_session: AsyncSession) -> ArticleFactory:
    """Create and flush an Article with sensible defaults."""

    async def _make(**kwargs: Any) -> Article:
        values: dict[str, Any] = {
            "platform_id": "expat-fr",
            "country_code": "FR",
            "language_code": "fr",
            "theme": "visa",
            "title": "Visa long séjour en France",
            "content": make_content(),
            "status": ArticleStatus.PUBLISHED.value,
        }
        values.update(kwargs)
        article = Article(**values)
        db_session.add(article)
        await db_session.flush()
        return article

    return _make


@pytest.fixture
def make_offer(db_session: AsyncSession) -> Callable[..., Coroutine[Any, Any, AffiliateLink]]:
    """Create and flush an AffiliateLink with sensible defaults."""

    async def _make(**kwargs: Any) -> AffiliateLink:
        values: dict[str, Any] = {
            "platform_id": "expat-fr",
            "service_name": "Assurance Expat",
            "service_slug": "assurance-expat",
            "tracking_url": "https://partner.example.com/?ref=expat",
            "commission_rate": 10.0,
            "language_codes": ["fr", "en"],
            "themes": [],
            "custom_anchors": {},
            "priority": 50,
        }
        values.update(kwargs)
        offer = AffiliateLink(**values)
        db_session.add(offer)
        await db_session.flush()
        return offer

    return _make


@pytest.fixture
def make_domain(db_session: AsyncSession) -> Callable[..., Coroutine[Any, Any, AuthorityDomain]]:
    """Create and flush an AuthorityDomain with sensible defaults."""

    async def _make(**kwargs: Any) -> AuthorityDomain:
        values: dict[str, Any] = {
            "domain": "france-visas.gouv.fr",
            "name": "France Visas",
            "source_type": "government",
            "country_code": "FR",
            "languages": ["fr", "en"],
            "topics": ["visa"],
            "authority_score": 95.0,
        }
        values.update(kwargs)
        domain = AuthorityDomain(**values)
        db_session.add(domain)
        await db_session.flush()
        return domain

    return _make
