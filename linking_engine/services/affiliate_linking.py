"""Affiliate link service: places monetizable offers in articles.

An offer is eligible for an article when it is active, belongs to the
article's platform, covers the article's country (null = all countries)
and language, matches its theme (empty themes = any theme), and the
current instant lies inside [starts_at, expires_at], both ends inclusive.

Eligible offers are ranked by commission, priority and theme relevance;
the top affiliate_max_per_article are associated with the article and
optionally written into its content.
"""

import time
from datetime import UTC, datetime

from sqlalchemy import case, delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from linking_engine.core.config import Settings, get_settings
from linking_engine.core.logging import get_logger, linking_logger
from linking_engine.models.affiliate_link import AffiliateLink, ArticleAffiliateLink
from linking_engine.models.article import Article
from linking_engine.models.internal_link import AnchorType
from linking_engine.repositories.article import ArticleRepository
from linking_engine.schemas.linking import AffiliateInjectionResult, AffiliateStats
from linking_engine.services.link_distribution import (
    AFFILIATE_LINK_CLASS,
    build_link_html,
    calculate_uniform_distribution,
    inject_links_at_placements,
    strip_engine_links,
)
from linking_engine.services.link_scoring import AffiliateScorer, rank_candidates
from linking_engine.services.multilingual import MultilingualLinkAdapter
from linking_engine.utils.content_structure import analyze_content_structure

logger = get_logger(__name__)

LINK_KIND = "affiliate"


def _as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (as returned by some drivers) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def is_offer_live(offer: AffiliateLink, now: datetime) -> bool:
    """True when now lies inside the offer's window, bounds included."""
    now = _as_utc(now)
    if offer.starts_at is not None and now < _as_utc(offer.starts_at):
        return False
    if offer.expires_at is not None and now > _as_utc(offer.expires_at):
        return False
    return True


class AffiliateLinkService:
    """Selects, associates and injects affiliate offers."""

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

    def _matches(self, offer: AffiliateLink, article: Article, language: str) -> bool:
        if offer.country_codes is not None:
            if not article.country_code:
                return False
            allowed = {c.upper() for c in offer.country_codes}
            if article.country_code.upper() not in allowed:
                return False
        languages = {self.adapter.normalize_language_code(c) for c in offer.language_codes or []}
        if language not in languages:
            return False
        if offer.themes:
            theme = (article.theme or "").strip().lower()
            if theme not in {t.strip().lower() for t in offer.themes}:
                return False
        return True

    async def find_relevant_affiliate_links(
        self, article: Article, now: datetime | None = None
    ) -> list[AffiliateLink]:
        """Offers eligible for article at instant now (default: current time)."""
        now = now or datetime.now(UTC)
        language = self.adapter.normalize_language_code(article.language_code)
        result = await self.db.execute(
            select(AffiliateLink)
            .where(
                AffiliateLink.platform_id == article.platform_id,
                AffiliateLink.is_active.is_(True),
            )
            .order_by(AffiliateLink.id)
        )
        return [
            offer
            for offer in result.scalars().all()
            if self._matches(offer, article, language) and is_offer_live(offer, now)
        ]

    def rank_offers(
        self, article: Article, offers: list[AffiliateLink]
    ) -> list[AffiliateLink]:
        """Best offers first, capped at affiliate_max_per_article."""
        scorer = AffiliateScorer(
            article.theme,
            commission_weight=self.settings.affiliate_commission_weight,
            priority_weight=self.settings.affiliate_priority_weight,
            relevance_weight=self.settings.affiliate_relevance_weight,
        )
        ranked = rank_candidates(
            offers,
            scorer,
            limit=self.settings.affiliate_max_per_article,
            tie_key=lambda o: o.id,
        )
        return [candidate.item for candidate in ranked]

    def anchor_for(self, offer: AffiliateLink, language: str | None, index: int) -> str:
        """Custom anchor for the language when configured, else a localized CTA."""
        normalized = self.adapter.normalize_language_code(language)
        custom = (offer.custom_anchors or {}).get(normalized) or []
        if custom:
            return custom[index % len(custom)]
        return self.adapter.generate_localized_anchor(
            offer.service_name, normalized, AnchorType.CTA, variant=index
        )

    async def inject_affiliate_links(
        self,
        article: Article,
        *,
        now: datetime | None = None,
        inject: bool = True,
    ) -> AffiliateInjectionResult:
        """Associate the best offers with an article.

        Existing associations for selected offers are kept, associations
        for offers no longer selected are removed and missing ones are
        inserted, so repeated calls leave the same rows.
        """
        start_time = time.monotonic()
        article_id = article.id
        max_links = self.settings.affiliate_max_per_article
        linking_logger.generation_start(
            LINK_KIND, article_id, article.language_code, max_links
        )

        selected = self.rank_offers(
            article, await self.find_relevant_affiliate_links(article, now)
        )
        if not selected:
            linking_logger.no_candidates(LINK_KIND, article_id, "no eligible offer")

        anchors = {
            offer.id: self.anchor_for(offer, article.language_code, i)
            for i, offer in enumerate(selected)
        }

        try:
            # Savepoint: a conflict undoes only this association update
            async with self.db.begin_nested():
                created, removed = await self._sync_associations(
                    article_id, selected, anchors
                )
                await self.db.flush()
        except IntegrityError as e:
            logger.warning(
                "Concurrent affiliate association detected, keeping existing rows",
                extra={
                    "article_id": article_id,
                    "error_type": type(e).__name__,
                    "error_message": str(e)[:500],
                },
            )
            return AffiliateInjectionResult(selected=len(selected))

        injected = 0
        if inject:
            new_content, injected = self._render_offers(
                article.content, article, selected
            )
            await self.articles.update_content(article, new_content)

        duration_ms = (time.monotonic() - start_time) * 1000
        linking_logger.generation_complete(
            LINK_KIND, article_id, created, removed, duration_ms
        )
        return AffiliateInjectionResult(
            selected=len(selected),
            injected=injected,
            created=created,
            removed=removed,
        )

    async def _sync_associations(
        self, article_id: str, selected: list[AffiliateLink], anchors: dict[str, str]
    ) -> tuple[int, int]:
        """Make the article's association rows match selected. Returns (created, removed)."""
        existing_rows = await self.db.execute(
            select(ArticleAffiliateLink).where(ArticleAffiliateLink.article_id == article_id)
        )
        existing = {row.affiliate_link_id: row for row in existing_rows.scalars().all()}

        removed = 0
        for offer_id, row in existing.items():
            if offer_id not in anchors:
                await self.db.delete(row)
                removed += 1
            elif row.anchor_text != anchors[offer_id]:
                row.anchor_text = anchors[offer_id]

        created = 0
        for offer in selected:
            if offer.id in existing:
                linking_logger.duplicate_skipped(LINK_KIND, article_id, offer.id)
                continue
            self.db.add(
                ArticleAffiliateLink(
                    article_id=article_id,
                    affiliate_link_id=offer.id,
                    anchor_text=anchors[offer.id],
                )
            )
            created += 1
        return created, removed

    async def insert_links_in_content(
        self,
        content: str | None,
        article: Article,
        offers: list[AffiliateLink] | None = None,
    ) -> str:
        """Write offers into the eligible paragraphs of content.

        Args:
            content: HTML to inject into; earlier affiliate links are removed.
            article: Article the content belongs to (language, id).
            offers: Offers in rank order; selected for the article at the
                current time when None.
        """
        if offers is None:
            offers = self.rank_offers(
                article, await self.find_relevant_affiliate_links(article)
            )
        return self._render_offers(content, article, offers)[0]

    def _render_offers(
        self, content: str | None, article: Article, offers: list[AffiliateLink]
    ) -> tuple[str, int]:
        clean = strip_engine_links(content, AFFILIATE_LINK_CLASS)
        structure = analyze_content_structure(
            clean, min_words=self.settings.min_paragraph_words
        )
        placements = calculate_uniform_distribution(
            len(offers), structure.eligible_zones, self.settings.max_links_per_paragraph
        )
        rel = (
            "sponsored noopener"
            if self.settings.affiliate_sponsored_attribute
            else "nofollow noopener"
        )
        markup = [
            build_link_html(
                offer.tracking_url,
                self.anchor_for(offer, article.language_code, i),
                css_class=AFFILIATE_LINK_CLASS,
                rel=rel,
                target_blank=True,
                data={"affiliate": offer.service_slug},
            )
            for i, offer in enumerate(offers[: len(placements)])
        ]
        if markup:
            linking_logger.content_injected(
                LINK_KIND, article.id, len(markup), len(structure.eligible_zones)
            )
        result = inject_links_at_placements(clean, placements, markup)
        return self.adapter.prepare_content(result, article.language_code), len(markup)

    async def remove_affiliate_links(self, article: Article) -> int:
        """Strip injected offers from the content and drop the associations.

        Returns:
            Number of association rows removed.
        """
        await self.articles.update_content(
            article, strip_engine_links(article.content, AFFILIATE_LINK_CLASS)
        )
        result = await self.db.execute(
            delete(ArticleAffiliateLink).where(ArticleAffiliateLink.article_id == article.id)
        )
        removed = result.rowcount or 0
        logger.info(
            "Affiliate links removed",
            extra={"article_id": article.id, "removed": removed},
        )
        return removed

    async def get_affiliate_stats(self, platform_id: str) -> AffiliateStats:
        """Read-only aggregate of a platform's offers and placements."""
        offers = await self.db.execute(
            select(
                func.count(AffiliateLink.id),
                func.sum(case((AffiliateLink.is_active.is_(True), 1), else_=0)),
                func.avg(AffiliateLink.commission_rate),
            ).where(AffiliateLink.platform_id == platform_id)
        )
        total, active, average = offers.one()

        insertions = await self.db.scalar(
            select(func.count(ArticleAffiliateLink.id))
            .join(AffiliateLink, ArticleAffiliateLink.affiliate_link_id == AffiliateLink.id)
            .where(AffiliateLink.platform_id == platform_id)
        )
        return AffiliateStats(
            total_links=total or 0,
            active_links=int(active or 0),
            total_insertions=insertions or 0,
            average_commission=round(float(average or 0.0), 2),
        )
