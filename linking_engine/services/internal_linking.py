"""Internal linking service: links between articles of the same language.

generate_internal_links runs the whole pipeline for one source article:
1. Load candidates (published, same language, not self, same platform)
2. Score relevance and keep the top internal_max_links_per_article
3. Spread the selected links over the eligible paragraphs
4. Build localized anchors, rotating anchor types
5. Replace the source's automatic InternalLink rows (manual rows stay)
6. Rewrite the content with the new links

Regeneration is idempotent: earlier automatic rows and earlier injected
markup are replaced, so running twice yields the same rows and content.

The read side reports the anchor type mix (with an over-optimization
flag on exact-match anchors) and the link graph health of a platform:
orphans without incoming links, dead ends without outgoing links and
weakly connected articles.
"""

import time

from sqlalchemy import ColumnElement, case, delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from linking_engine.core.config import Settings, get_settings
from linking_engine.core.logging import get_logger, linking_logger
from linking_engine.models.article import Article, ArticleStatus
from linking_engine.models.internal_link import (
    ANCHOR_TYPE_ROTATION,
    AnchorType,
    InternalLink,
)
from linking_engine.repositories.article import ArticleRepository
from linking_engine.schemas.linking import (
    AnchorDiversityReport,
    ArticleConnectivity,
    ArticleLinkStats,
    InternalLinkResult,
    PlatformRegenerationResult,
)
from linking_engine.services.link_distribution import (
    INTERNAL_LINK_CLASS,
    build_link_html,
    calculate_uniform_distribution,
    inject_links_at_placements,
    strip_engine_links,
)
from linking_engine.services.link_scoring import (
    InternalRelevanceScorer,
    ScoredCandidate,
    rank_candidates,
)
from linking_engine.services.multilingual import MultilingualLinkAdapter
from linking_engine.utils.content_structure import analyze_content_structure

logger = get_logger(__name__)

LINK_KIND = "internal"


class InternalLinkingService:
    """Generates automatic article-to-article links.

    Writes go through the given session and are flushed, not committed;
    wrap calls in core.database.transaction() to commit.
    """

    def __init__(
        self,
        db: AsyncSession,
        settings: Settings | None = None,
        adapter: MultilingualLinkAdapter | None = None,
    ) -> None:
        self.db = db
        self.settings = settings or get_settings()
        self.adapter = adapter or MultilingualLinkAdapter()
        self.articles = ArticleRepository(db)

    async def find_candidate_articles(self, article: Article) -> list[Article]:
        """Articles the source may link to (hard filters only)."""
        return await self.articles.list_link_candidates(
            article, same_platform=self.settings.internal_same_platform_only
        )

    def score_candidates(
        self, article: Article, candidates: list[Article]
    ) -> list[ScoredCandidate[Article]]:
        """Score candidates against the source, best first.

        Raises:
            LinkingConfigError: If the configured weights sum to 0.
        """
        scorer = InternalRelevanceScorer(
            article,
            theme_weight=self.settings.internal_theme_weight,
            country_weight=self.settings.internal_country_weight,
            lexical_weight=self.settings.internal_lexical_weight,
        )
        return rank_candidates(candidates, scorer, tie_key=lambda a: a.id)

    def _target_href(self, target: Article) -> str:
        return target.url or self.settings.internal_url_template.format(id=target.id)

    async def _manual_target_ids(self, article_id: str) -> set[str]:
        result = await self.db.execute(
            select(InternalLink.target_article_id).where(
                InternalLink.source_article_id == article_id,
                InternalLink.is_automatic.is_(False),
            )
        )
        return set(result.scalars().all())

    async def _delete_automatic(self, article_id: str) -> int:
        result = await self.db.execute(
            delete(InternalLink).where(
                InternalLink.source_article_id == article_id,
                InternalLink.is_automatic.is_(True),
            )
        )
        return result.rowcount or 0

    async def generate_internal_links(
        self, article: Article, *, inject: bool = True
    ) -> InternalLinkResult:
        """Regenerate the automatic internal links of one article.

        Args:
            article: Source article.
            inject: Also write the links into article.content.

        Returns:
            InternalLinkResult with created/deleted row counts. No candidates
            is not an error: created is 0.
        """
        start_time = time.monotonic()
        article_id = article.id
        max_links = self.settings.internal_max_links_per_article
        linking_logger.generation_start(
            LINK_KIND, article.id, article.language_code, max_links
        )

        manual_targets = await self._manual_target_ids(article.id)

        candidates = await self.find_candidate_articles(article)
        for candidate in candidates:
            if candidate.id in manual_targets:
                linking_logger.duplicate_skipped(LINK_KIND, article.id, candidate.id)
        candidates = [c for c in candidates if c.id not in manual_targets]

        selected = [
            c
            for c in self.score_candidates(article, candidates)
            if c.score >= self.settings.internal_min_relevance
        ][:max_links]
        if not selected:
            linking_logger.no_candidates(
                LINK_KIND,
                article.id,
                "no published article in the same language"
                if not candidates
                else "no candidate above the relevance threshold",
            )

        content = strip_engine_links(article.content, INTERNAL_LINK_CLASS)
        structure = analyze_content_structure(
            content, min_words=self.settings.min_paragraph_words
        )
        placements = calculate_uniform_distribution(
            len(selected),
            structure.eligible_zones,
            self.settings.max_links_per_paragraph,
        )

        links: list[InternalLink] = []
        link_html: list[str] = []
        for i, candidate in enumerate(selected):
            target = candidate.item
            anchor_type = ANCHOR_TYPE_ROTATION[i % len(ANCHOR_TYPE_ROTATION)]
            anchor_text = self.adapter.generate_localized_anchor(
                target.title, article.language_code, anchor_type
            )
            placement = placements[i] if i < len(placements) else None
            links.append(
                InternalLink(
                    source_article_id=article.id,
                    target_article_id=target.id,
                    anchor_text=anchor_text,
                    anchor_type=anchor_type.value,
                    relevance_score=candidate.score,
                    is_automatic=True,
                    position_in_content=placement.paragraph_index if placement else None,
                )
            )
            if placement is not None:
                link_html.append(
                    build_link_html(
                        self._target_href(target),
                        anchor_text,
                        css_class=INTERNAL_LINK_CLASS,
                    )
                )

        try:
            # Savepoint: a conflict undoes only this replacement
            async with self.db.begin_nested():
                deleted = await self._delete_automatic(article_id)
                self.db.add_all(links)
                await self.db.flush()
        except IntegrityError as e:
            # A concurrent run for the same article already wrote its rows
            logger.warning(
                "Concurrent internal link regeneration detected, keeping existing rows",
                extra={
                    "article_id": article_id,
                    "error_type": type(e).__name__,
                    "error_message": str(e)[:500],
                },
            )
            return InternalLinkResult(candidates_found=len(candidates))

        injected = 0
        if inject:
            new_content = inject_links_at_placements(content, placements, link_html)
            new_content = self.adapter.prepare_content(new_content, article.language_code)
            await self.articles.update_content(article, new_content)
            injected = len(link_html)
            linking_logger.content_injected(
                LINK_KIND, article.id, injected, len(structure.eligible_zones)
            )

        duration_ms = (time.monotonic() - start_time) * 1000
        linking_logger.generation_complete(
            LINK_KIND, article.id, len(links), deleted, duration_ms
        )
        return InternalLinkResult(
            created=len(links),
            deleted=deleted,
            candidates_found=len(candidates),
            injected=injected,
        )

    async def get_article_stats(self, article: Article) -> ArticleLinkStats:
        """Incoming/outgoing link counts of an article."""
        outgoing = await self.db.execute(
            select(
                func.count(InternalLink.id),
                func.sum(case((InternalLink.is_automatic.is_(True), 1), else_=0)),
                func.avg(InternalLink.relevance_score),
            ).where(InternalLink.source_article_id == article.id)
        )
        total, automatic, average = outgoing.one()

        incoming = await self.db.scalar(
            select(func.count(InternalLink.id)).where(
                InternalLink.target_article_id == article.id
            )
        )
        return ArticleLinkStats(
            outgoing_links=total or 0,
            incoming_links=incoming or 0,
            automatic_links=int(automatic or 0),
            manual_links=(total or 0) - int(automatic or 0),
            average_relevance=round(float(average or 0.0), 2),
        )

    async def regenerate_platform_links(
        self, platform_id: str
    ) -> PlatformRegenerationResult:
        """Regenerate the internal links of every published article of a platform.

        Articles are processed in id order through generate_internal_links;
        an error stops the run and propagates.
        """
        start_time = time.monotonic()
        articles = await self.articles.list_published(platform_id)
        result = PlatformRegenerationResult(
            platform_id=platform_id, total=len(articles)
        )

        for article in articles:
            outcome = await self.generate_internal_links(article)
            result.processed += 1
            result.links_created += outcome.created
            result.links_deleted += outcome.deleted

        logger.info(
            "Platform internal links regenerated",
            extra={
                "platform_id": platform_id,
                "articles": result.processed,
                "links_created": result.links_created,
                "duration_ms": round((time.monotonic() - start_time) * 1000, 2),
            },
        )
        return result

    async def get_anchor_diversity(self, article: Article) -> AnchorDiversityReport:
        """Anchor type mix of the links an article makes."""
        return await self._anchor_diversity(
            InternalLink.source_article_id == article.id, scope=article.id
        )

    async def get_platform_anchor_diversity(
        self, platform_id: str
    ) -> AnchorDiversityReport:
        """Anchor type mix of every link whose source is on the platform."""
        return await self._anchor_diversity(
            Article.platform_id == platform_id, scope=platform_id
        )

    async def _anchor_diversity(
        self, condition: ColumnElement[bool], scope: str
    ) -> AnchorDiversityReport:
        result = await self.db.execute(
            select(InternalLink.anchor_type, func.count(InternalLink.id))
            .join(Article, Article.id == InternalLink.source_article_id)
            .where(condition)
            .group_by(InternalLink.anchor_type)
        )
        counts = {anchor_type.value: 0 for anchor_type in AnchorType}
        counts.update({anchor_type: count for anchor_type, count in result.all()})
        total = sum(counts.values())
        percentages = {
            anchor_type: round(count * 100 / total, 1) if total else 0.0
            for anchor_type, count in counts.items()
        }

        exact_match = percentages[AnchorType.EXACT_MATCH.value]
        threshold = self.settings.internal_exact_match_alert_percent
        over_optimized = exact_match > threshold
        if over_optimized:
            logger.warning(
                "Exact-match anchors over-optimized",
                extra={
                    "scope": scope,
                    "exact_match_percent": exact_match,
                    "threshold_percent": threshold,
                    "total_links": total,
                },
            )
        return AnchorDiversityReport(
            total_links=total,
            counts=counts,
            percentages=percentages,
            exact_match_percent=exact_match,
            over_optimized=over_optimized,
        )

    async def _connectivity(
        self, platform_id: str, language_code: str | None = None
    ) -> list[ArticleConnectivity]:
        incoming = (
            select(func.count(InternalLink.id))
            .where(InternalLink.target_article_id == Article.id)
            .correlate(Article)
            .scalar_subquery()
        )
        outgoing = (
            select(func.count(InternalLink.id))
            .where(InternalLink.source_article_id == Article.id)
            .correlate(Article)
            .scalar_subquery()
        )
        stmt = select(
            Article.id,
            Article.title,
            Article.language_code,
            incoming.label("incoming"),
            outgoing.label("outgoing"),
        ).where(
            Article.platform_id == platform_id,
            Article.status == ArticleStatus.PUBLISHED.value,
        )
        if language_code:
            stmt = stmt.where(Article.language_code == language_code)

        result = await self.db.execute(stmt.order_by(Article.id))
        return [
            ArticleConnectivity(
                article_id=row.id,
                title=row.title,
                language_code=row.language_code,
                incoming_links=row.incoming,
                outgoing_links=row.outgoing,
            )
            for row in result.all()
        ]

    async def find_orphan_articles(
        self, platform_id: str, language_code: str | None = None
    ) -> list[ArticleConnectivity]:
        """Published articles no internal link points to."""
        return [
            item
            for item in await self._connectivity(platform_id, language_code)
            if item.incoming_links == 0
        ]

    async def find_dead_end_articles(
        self, platform_id: str, language_code: str | None = None
    ) -> list[ArticleConnectivity]:
        """Published articles without any outgoing internal link."""
        return [
            item
            for item in await self._connectivity(platform_id, language_code)
            if item.outgoing_links == 0
        ]

    async def find_weakly_connected_articles(
        self, platform_id: str, min_links: int | None = None
    ) -> list[ArticleConnectivity]:
        """Published articles with fewer than min_links links in and out.

        Least connected first. min_links defaults to
        settings.internal_weak_connection_min_links.
        """
        if min_links is None:
            min_links = self.settings.internal_weak_connection_min_links
        weak = [
            item
            for item in await self._connectivity(platform_id)
            if item.total_links < min_links
        ]
        return sorted(weak, key=lambda item: (item.total_links, item.article_id))
