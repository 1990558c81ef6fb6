"""Tests for LinkingOrchestrator.

- All stages run and commit in order
- A failing stage is rolled back and reported; later stages still run
- Stages can be switched off individually
- Links from stacked stages stay one per paragraph across reruns
- process_article_id returns None for unknown articles
"""

from typing import Any
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from linking_engine.models import ArticleAffiliateLink, ExternalLink, InternalLink
from linking_engine.services.link_distribution import validate_distribution
from linking_engine.services.linking_orchestrator import LinkingOrchestrator
from linking_engine.utils.content_structure import analyze_content_structure
from tests.conftest import get_test_settings, make_content


@pytest.fixture
async def linked_world(
    db_session: AsyncSession, make_article: Any, make_offer: Any, make_domain: Any
) -> Any:
    """A French article with link targets of every kind, committed."""
    article = await make_article(content=make_content(6))
    for i in range(3):
        await make_article(title=f"Titre de séjour étape {i}")
    await make_domain()
    await make_offer()
    await db_session.commit()
    return article


@pytest.fixture
def orchestrator(db_session: AsyncSession) -> LinkingOrchestrator:
    return LinkingOrchestrator(db_session, settings=get_test_settings())


async def _count(db: AsyncSession, model: Any) -> int:
    return await db.scalar(select(func.count()).select_from(model)) or 0


class TestProcessArticle:
    async def test_all_stages(
        self, orchestrator: LinkingOrchestrator, linked_world: Any
    ) -> None:
        report = await orchestrator.process_article(linked_world)

        assert report.succeeded is True
        assert report.article_id == linked_world.id
        assert report.internal is not None and report.internal.created == 3
        assert report.external is not None and report.external.created == 1
        assert report.affiliate is not None and report.affiliate.created == 1
        assert 'class="internal-link"' in linked_world.content
        assert 'class="affiliate-link"' in linked_world.content
        assert 'class="external-link"' not in linked_world.content

    async def test_external_injection_opt_in(
        self, orchestrator: LinkingOrchestrator, linked_world: Any
    ) -> None:
        await orchestrator.process_article(linked_world, inject_external=True)

        assert 'class="external-link"' in linked_world.content

    async def test_stages_are_committed(
        self,
        orchestrator: LinkingOrchestrator,
        linked_world: Any,
        async_session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        await orchestrator.process_article(linked_world)

        async with async_session_factory() as other:
            assert await _count(other, InternalLink) == 3
            assert await _count(other, ExternalLink) == 1
            assert await _count(other, ArticleAffiliateLink) == 1

    async def test_rerun_is_stable(
        self, orchestrator: LinkingOrchestrator, linked_world: Any
    ) -> None:
        await orchestrator.process_article(linked_world)
        content = linked_world.content

        report = await orchestrator.process_article(linked_world)

        assert report.succeeded is True
        assert linked_world.content == content
        assert report.affiliate is not None and report.affiliate.created == 0

    async def test_stacked_stages_share_paragraphs_uniformly(
        self,
        db_session: AsyncSession,
        orchestrator: LinkingOrchestrator,
        linked_world: Any,
        make_offer: Any,
    ) -> None:
        await make_offer(service_slug="banque-expat", service_name="Banque Expat")
        await db_session.commit()

        report = await orchestrator.process_article(linked_world)
        structure = analyze_content_structure(linked_world.content)
        distribution = validate_distribution(linked_world.content)

        assert report.internal is not None and report.internal.injected == 3
        assert report.affiliate is not None and report.affiliate.injected == 2
        assert distribution.max_per_paragraph == 1
        assert distribution.is_uniform is True

        await orchestrator.process_article(linked_world)
        rerun = analyze_content_structure(linked_world.content)

        assert [z.link_count for z in rerun.paragraphs] == [
            z.link_count for z in structure.paragraphs
        ]


class TestFailureIsolation:
    async def test_failing_stage_does_not_block_others(
        self,
        db_session: AsyncSession,
        orchestrator: LinkingOrchestrator,
        linked_world: Any,
    ) -> None:
        orchestrator.internal.generate_internal_links = AsyncMock(  # type: ignore[method-assign]
            side_effect=RuntimeError("scoring exploded")
        )

        report = await orchestrator.process_article(linked_world)

        assert report.succeeded is False
        assert report.errors == {"internal": "RuntimeError: scoring exploded"}
        assert report.internal is None
        assert report.external is not None and report.external.created == 1
        assert report.affiliate is not None and report.affiliate.created == 1
        assert await _count(db_session, InternalLink) == 0

    async def test_failed_stage_writes_rolled_back(
        self,
        db_session: AsyncSession,
        orchestrator: LinkingOrchestrator,
        linked_world: Any,
    ) -> None:
        real_generate = orchestrator.external.generate_external_links

        async def generate_then_fail(article: Any, **kwargs: Any) -> Any:
            await real_generate(article, **kwargs)
            raise ValueError("late failure")

        orchestrator.external.generate_external_links = generate_then_fail  # type: ignore[method-assign]

        report = await orchestrator.process_article(linked_world)

        assert set(report.errors) == {"external"}
        assert await _count(db_session, ExternalLink) == 0
        assert await _count(db_session, InternalLink) == 3


class TestStageSelection:
    async def test_only_affiliate(
        self,
        db_session: AsyncSession,
        orchestrator: LinkingOrchestrator,
        linked_world: Any,
    ) -> None:
        report = await orchestrator.process_article(
            linked_world, internal=False, external=False
        )

        assert report.internal is None
        assert report.external is None
        assert report.affiliate is not None
        assert await _count(db_session, InternalLink) == 0


class TestProcessArticleId:
    async def test_unknown_article(self, orchestrator: LinkingOrchestrator) -> None:
        assert await orchestrator.process_article_id("00000000-0000-0000-0000-000000000000") is None

    async def test_known_article(
        self, orchestrator: LinkingOrchestrator, linked_world: Any
    ) -> None:
        report = await orchestrator.process_article_id(linked_world.id, affiliate=False)

        assert report is not None
        assert report.affiliate is None
        assert report.internal is not None
