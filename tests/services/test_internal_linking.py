"""Tests for InternalLinkingService.

Tests cover:
- Full regeneration for a French visa article with ten candidates
- Hard filters: language, status, platform, self
- Idempotent regeneration of rows and content
- Manual links are never touched
- Links beyond the available paragraphs are stored without a position
- Article link statistics
- Anchor type mix and the exact-match over-optimization alert
- Orphan, dead-end and weakly connected articles of a platform
- Platform-wide regeneration
"""

import logging
from typing import Any
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from linking_engine.core.config import Settings
from linking_engine.models import Article, ArticleStatus, InternalLink
from linking_engine.services.internal_linking import InternalLinkingService
from tests.conftest import get_test_settings, make_content


async def _rows(db: AsyncSession, source_id: str) -> list[InternalLink]:
    result = await db.execute(
        select(InternalLink)
        .where(InternalLink.source_article_id == source_id)
        .order_by(InternalLink.target_article_id)
    )
    return list(result.scalars().all())


@pytest.fixture
def settings() -> Settings:
    return get_test_settings(internal_max_links_per_article=5)


@pytest.fixture
def service(db_session: AsyncSession, settings: Settings) -> InternalLinkingService:
    return InternalLinkingService(db_session, settings=settings)


async def _make_candidates(make_article: Any, count: int, **kwargs: Any) -> list[Any]:
    return [
        await make_article(title=f"Guide visa numéro {i}", **kwargs) for i in range(count)
    ]


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------


class TestGenerateInternalLinks:
    async def test_french_visa_article(
        self,
        db_session: AsyncSession,
        service: InternalLinkingService,
        make_article: Any,
    ) -> None:
        source = await make_article(content=make_content(6))
        await _make_candidates(make_article, 10)

        result = await service.generate_internal_links(source)

        assert result.created == 5
        assert result.deleted == 0
        assert result.candidates_found == 10
        assert result.injected == 5

        rows = await _rows(db_session, source.id)
        assert len(rows) == 5
        assert all(row.is_automatic for row in rows)
        assert all(0.0 <= row.relevance_score <= 100.0 for row in rows)
        assert all(row.target_article_id != source.id for row in rows)
        assert len({row.target_article_id for row in rows}) == 5
        assert source.content.count('class="internal-link"') == 5

    async def test_anchor_types_rotate(
        self, service: InternalLinkingService, db_session: AsyncSession, make_article: Any
    ) -> None:
        source = await make_article(content=make_content(6))
        await _make_candidates(make_article, 5)

        await service.generate_internal_links(source)

        types = {row.anchor_type for row in await _rows(db_session, source.id)}
        assert types == {"exact_match", "long_tail", "cta", "question", "generic"}

    async def test_more_relevant_candidates_win(
        self, db_session: AsyncSession, make_article: Any
    ) -> None:
        service = InternalLinkingService(
            db_session, settings=get_test_settings(internal_max_links_per_article=1)
        )
        source = await make_article()
        await make_article(theme="banking", country_code="DE", title="Compte bancaire")
        on_topic = await make_article(title="Visa long séjour étudiant")

        await service.generate_internal_links(source)

        rows = await _rows(db_session, source.id)
        assert [row.target_article_id for row in rows] == [on_topic.id]

    async def test_min_relevance_filters(
        self, db_session: AsyncSession, make_article: Any
    ) -> None:
        service = InternalLinkingService(
            db_session, settings=get_test_settings(internal_min_relevance=60.0)
        )
        source = await make_article()
        await make_article(theme="banking", country_code="DE", title="Konto")

        result = await service.generate_internal_links(source)

        assert result.candidates_found == 1
        assert result.created == 0


class TestHardFilters:
    async def test_only_published_same_language_same_platform(
        self,
        db_session: AsyncSession,
        service: InternalLinkingService,
        make_article: Any,
    ) -> None:
        source = await make_article()
        good = await make_article(title="Visa de travail")
        await make_article(title="Work visa", language_code="en")
        await make_article(title="Brouillon visa", status=ArticleStatus.DRAFT.value)
        await make_article(title="Visa autre site", platform_id="expat-es")

        result = await service.generate_internal_links(source)

        assert result.candidates_found == 1
        assert [r.target_article_id for r in await _rows(db_session, source.id)] == [
            good.id
        ]

    async def test_cross_platform_when_allowed(
        self, db_session: AsyncSession, make_article: Any
    ) -> None:
        service = InternalLinkingService(
            db_session, settings=get_test_settings(internal_same_platform_only=False)
        )
        source = await make_article()
        await make_article(title="Visa autre site", platform_id="expat-es")

        result = await service.generate_internal_links(source)

        assert result.created == 1

    async def test_no_candidates(
        self, service: InternalLinkingService, make_article: Any
    ) -> None:
        source = await make_article()
        original = source.content

        result = await service.generate_internal_links(source)

        assert result.created == 0
        assert result.candidates_found == 0
        assert source.content == original


# ---------------------------------------------------------------------------
# Idempotence
# ---------------------------------------------------------------------------


class TestRegeneration:
    async def test_running_twice_is_stable(
        self,
        db_session: AsyncSession,
        service: InternalLinkingService,
        make_article: Any,
    ) -> None:
        source = await make_article(content=make_content(6))
        await _make_candidates(make_article, 8)

        first = await service.generate_internal_links(source)
        first_rows = [
            (r.target_article_id, r.anchor_text, r.position_in_content)
            for r in await _rows(db_session, source.id)
        ]
        first_content = source.content

        second = await service.generate_internal_links(source)
        second_rows = [
            (r.target_article_id, r.anchor_text, r.position_in_content)
            for r in await _rows(db_session, source.id)
        ]

        assert second.created == first.created
        assert second.deleted == first.created
        assert second_rows == first_rows
        assert source.content == first_content

    async def test_concurrent_regeneration_keeps_caller_work(
        self,
        db_session: AsyncSession,
        service: InternalLinkingService,
        make_article: Any,
    ) -> None:
        source = await make_article(content=make_content(6))
        await _make_candidates(make_article, 3)
        await service.generate_internal_links(source)
        content = source.content
        caller_row = await make_article(
            title="Écrit par l'appelant", status=ArticleStatus.DRAFT.value
        )
        conflict = IntegrityError(
            "INSERT INTO internal_links", {}, Exception("UNIQUE constraint failed")
        )

        with patch.object(db_session, "flush", AsyncMock(side_effect=conflict)):
            result = await service.generate_internal_links(source)

        assert (result.created, result.deleted, result.injected) == (0, 0, 0)
        assert len(await _rows(db_session, source.id)) == 3
        assert source.content == content
        assert await db_session.scalar(
            select(Article.id).where(Article.id == caller_row.id)
        ) == caller_row.id

    async def test_without_injection_content_unchanged(
        self, service: InternalLinkingService, make_article: Any
    ) -> None:
        source = await make_article()
        await _make_candidates(make_article, 2)
        original = source.content

        result = await service.generate_internal_links(source, inject=False)

        assert result.created == 2
        assert result.injected == 0
        assert source.content == original


class TestManualLinks:
    async def test_manual_link_survives_regeneration(
        self,
        db_session: AsyncSession,
        service: InternalLinkingService,
        make_article: Any,
    ) -> None:
        source = await make_article(content=make_content(6))
        candidates = await _make_candidates(make_article, 3)
        manual = InternalLink(
            source_article_id=source.id,
            target_article_id=candidates[0].id,
            anchor_text="notre guide",
            anchor_type="generic",
            relevance_score=0.0,
            is_automatic=False,
        )
        db_session.add(manual)
        await db_session.flush()

        await service.generate_internal_links(source)
        await service.generate_internal_links(source)

        rows = await _rows(db_session, source.id)
        manual_rows = [r for r in rows if not r.is_automatic]
        automatic_targets = {r.target_article_id for r in rows if r.is_automatic}
        assert [r.anchor_text for r in manual_rows] == ["notre guide"]
        assert candidates[0].id not in automatic_targets
        assert len(automatic_targets) == 2


# ---------------------------------------------------------------------------
# Placement
# ---------------------------------------------------------------------------


class TestPlacement:
    async def test_no_eligible_paragraph(
        self,
        db_session: AsyncSession,
        service: InternalLinkingService,
        make_article: Any,
    ) -> None:
        source = await make_article(content="<p>Trop court.</p>")
        await _make_candidates(make_article, 2)

        result = await service.generate_internal_links(source)

        assert result.created == 2
        assert result.injected == 0
        rows = await _rows(db_session, source.id)
        assert all(row.position_in_content is None for row in rows)
        assert source.content == "<p>Trop court.</p>"

    async def test_links_beyond_capacity_have_no_position(
        self,
        db_session: AsyncSession,
        service: InternalLinkingService,
        make_article: Any,
    ) -> None:
        source = await make_article(content=make_content(3))
        await _make_candidates(make_article, 5)

        result = await service.generate_internal_links(source)

        rows = await _rows(db_session, source.id)
        positioned = [r for r in rows if r.position_in_content is not None]
        assert result.created == 5
        assert result.injected == 3
        assert sorted(r.position_in_content for r in positioned) == [0, 1, 2]

    async def test_href_uses_url_or_template(
        self, service: InternalLinkingService, make_article: Any
    ) -> None:
        source = await make_article(content=make_content(4))
        with_url = await make_article(title="Visa A", url="https://expat.example/visa-a")
        without_url = await make_article(title="Visa B")

        await service.generate_internal_links(source)

        assert 'href="https://expat.example/visa-a"' in source.content
        assert f'href="/articles/{without_url.id}"' in source.content
        assert with_url.id != without_url.id


# ---------------------------------------------------------------------------
# Stats
# ---------------------------------------------------------------------------


class TestArticleStats:
    async def test_counts(
        self,
        db_session: AsyncSession,
        service: InternalLinkingService,
        make_article: Any,
    ) -> None:
        source = await make_article(content=make_content(4))
        candidates = await _make_candidates(make_article, 3)
        db_session.add(
            InternalLink(
                source_article_id=candidates[1].id,
                target_article_id=source.id,
                anchor_text="retour",
                anchor_type="generic",
                relevance_score=10.0,
                is_automatic=False,
            )
        )
        await db_session.flush()

        await service.generate_internal_links(source)
        stats = await service.get_article_stats(source)

        assert stats.outgoing_links == 3
        assert stats.automatic_links == 3
        assert stats.manual_links == 0
        assert stats.incoming_links == 1
        assert 0.0 <= stats.average_relevance <= 100.0

    async def test_empty(
        self, service: InternalLinkingService, make_article: Any
    ) -> None:
        stats = await service.get_article_stats(await make_article())

        assert stats.outgoing_links == 0
        assert stats.incoming_links == 0
        assert stats.average_relevance == 0.0


def _link(source: Any, target: Any, anchor_type: str = "generic") -> InternalLink:
    return InternalLink(
        source_article_id=source.id,
        target_article_id=target.id,
        anchor_text="voir le guide",
        anchor_type=anchor_type,
        relevance_score=50.0,
        is_automatic=False,
    )


# ---------------------------------------------------------------------------
# Anchor diversity
# ---------------------------------------------------------------------------


class TestAnchorDiversity:
    async def test_rotation_stays_below_alert(
        self, service: InternalLinkingService, make_article: Any
    ) -> None:
        source = await make_article(content=make_content(6))
        await _make_candidates(make_article, 5)
        await service.generate_internal_links(source)

        report = await service.get_anchor_diversity(source)

        assert report.total_links == 5
        assert set(report.counts.values()) == {1}
        assert report.exact_match_percent == 20.0
        assert report.over_optimized is False

    async def test_exact_match_over_alert(
        self,
        db_session: AsyncSession,
        service: InternalLinkingService,
        make_article: Any,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        source = await make_article()
        targets = await _make_candidates(make_article, 5)
        types = ["exact_match", "exact_match", "generic", "cta", "question"]
        db_session.add_all(
            [_link(source, t, a) for t, a in zip(targets, types, strict=True)]
        )
        await db_session.flush()

        with caplog.at_level(logging.WARNING):
            report = await service.get_anchor_diversity(source)

        assert report.counts["exact_match"] == 2
        assert report.percentages["exact_match"] == 40.0
        assert report.percentages["long_tail"] == 0.0
        assert report.over_optimized is True
        assert "Exact-match anchors over-optimized" in caplog.text

    async def test_alert_level_from_settings(
        self, db_session: AsyncSession, make_article: Any
    ) -> None:
        service = InternalLinkingService(
            db_session, settings=get_test_settings(internal_exact_match_alert_percent=50.0)
        )
        source = await make_article()
        targets = await _make_candidates(make_article, 2)
        db_session.add_all(
            [_link(source, targets[0], "exact_match"), _link(source, targets[1])]
        )
        await db_session.flush()

        report = await service.get_anchor_diversity(source)

        assert report.exact_match_percent == 50.0
        assert report.over_optimized is False

    async def test_platform_scope(
        self,
        db_session: AsyncSession,
        service: InternalLinkingService,
        make_article: Any,
    ) -> None:
        first, second = await _make_candidates(make_article, 2)
        other = await make_article(platform_id="expat-es", title="Visa España")
        other_target = await make_article(platform_id="expat-es", title="Visado")
        db_session.add_all(
            [
                _link(first, second, "long_tail"),
                _link(second, first, "long_tail"),
                _link(other, other_target, "exact_match"),
            ]
        )
        await db_session.flush()

        report = await service.get_platform_anchor_diversity("expat-fr")

        assert report.total_links == 2
        assert report.percentages["long_tail"] == 100.0
        assert report.over_optimized is False

    async def test_no_links(
        self, service: InternalLinkingService, make_article: Any
    ) -> None:
        report = await service.get_anchor_diversity(await make_article())

        assert report.total_links == 0
        assert set(report.percentages.values()) == {0.0}
        assert report.over_optimized is False


# ---------------------------------------------------------------------------
# Link graph health
# ---------------------------------------------------------------------------


@pytest.fixture
async def link_graph(db_session: AsyncSession, make_article: Any) -> dict[str, Any]:
    """a -> b, a -> c, b -> c, plus an unlinked English article."""
    articles = {
        name: await make_article(title=f"Article {name}")
        for name in ("a", "b", "c")
    }
    articles["lonely"] = await make_article(title="Lonely", language_code="en")
    await make_article(title="Brouillon", status=ArticleStatus.DRAFT.value)
    await make_article(title="Autre site", platform_id="expat-es")
    db_session.add_all(
        [
            _link(articles["a"], articles["b"]),
            _link(articles["a"], articles["c"]),
            _link(articles["b"], articles["c"]),
        ]
    )
    await db_session.flush()
    return articles


class TestLinkGraphHealth:
    async def test_orphans(
        self, service: InternalLinkingService, link_graph: dict[str, Any]
    ) -> None:
        orphans = await service.find_orphan_articles("expat-fr")

        assert {o.article_id for o in orphans} == {
            link_graph["a"].id,
            link_graph["lonely"].id,
        }
        by_id = {o.article_id: o for o in orphans}
        assert by_id[link_graph["a"].id].outgoing_links == 2

    async def test_orphans_in_one_language(
        self, service: InternalLinkingService, link_graph: dict[str, Any]
    ) -> None:
        orphans = await service.find_orphan_articles("expat-fr", language_code="fr")

        assert [o.article_id for o in orphans] == [link_graph["a"].id]

    async def test_dead_ends(
        self, service: InternalLinkingService, link_graph: dict[str, Any]
    ) -> None:
        dead_ends = await service.find_dead_end_articles("expat-fr")

        assert {d.article_id for d in dead_ends} == {
            link_graph["c"].id,
            link_graph["lonely"].id,
        }
        by_id = {d.article_id: d for d in dead_ends}
        assert by_id[link_graph["c"].id].incoming_links == 2

    async def test_weakly_connected_least_first(
        self, service: InternalLinkingService, link_graph: dict[str, Any]
    ) -> None:
        weak = await service.find_weakly_connected_articles("expat-fr")

        assert len(weak) == 4
        assert weak[0].article_id == link_graph["lonely"].id
        assert [w.total_links for w in weak] == [0, 2, 2, 2]

    async def test_weakly_connected_threshold(
        self, service: InternalLinkingService, link_graph: dict[str, Any]
    ) -> None:
        weak = await service.find_weakly_connected_articles("expat-fr", min_links=1)

        assert [w.article_id for w in weak] == [link_graph["lonely"].id]


# ---------------------------------------------------------------------------
# Platform regeneration
# ---------------------------------------------------------------------------


class TestRegeneratePlatformLinks:
    async def test_every_published_article_relinked(
        self,
        db_session: AsyncSession,
        service: InternalLinkingService,
        make_article: Any,
    ) -> None:
        articles = await _make_candidates(make_article, 3)
        await make_article(title="Brouillon visa", status=ArticleStatus.DRAFT.value)
        other = await make_article(title="Visa autre site", platform_id="expat-es")

        result = await service.regenerate_platform_links("expat-fr")

        assert (result.total, result.processed) == (3, 3)
        assert result.links_created == 6
        assert result.links_deleted == 0
        assert await service.find_orphan_articles("expat-fr") == []
        for article in articles:
            assert len(await _rows(db_session, article.id)) == 2
        assert await _rows(db_session, other.id) == []

    async def test_rerun_replaces_rows(
        self, service: InternalLinkingService, make_article: Any
    ) -> None:
        await _make_candidates(make_article, 3)
        await service.regenerate_platform_links("expat-fr")

        result = await service.regenerate_platform_links("expat-fr")

        assert result.links_created == 6
        assert result.links_deleted == 6

    async def test_empty_platform(self, service: InternalLinkingService) -> None:
        result = await service.regenerate_platform_links("expat-jp")

        assert result.platform_id == "expat-jp"
        assert (result.total, result.processed, result.links_created) == (0, 0, 0)
