"""Runs internal, external and affiliate linking for one article.

Each stage commits on its own. A stage that raises is rolled back,
logged and reported in LinkingReport.errors; the remaining stages
still run.

Markup of every selected stage is stripped before the first stage runs,
so paragraphs are only skipped for links that will stay in the content
and a rerun places links exactly where the previous run did.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from linking_engine.core.config import Settings, get_settings
from linking_engine.core.database import transaction
from linking_engine.core.logging import get_logger
from linking_engine.models.article import Article
from linking_engine.repositories.article import ArticleRepository
from linking_engine.schemas.linking import LinkingReport
from linking_engine.services.affiliate_linking import AffiliateLinkService
from linking_engine.services.external_linking import (
    DiscoveryProvider,
    ExternalLinkingService,
    VerificationProvider,
)
from linking_engine.services.internal_linking import InternalLinkingService
from linking_engine.services.link_distribution import (
    AFFILIATE_LINK_CLASS,
    EXTERNAL_LINK_CLASS,
    INTERNAL_LINK_CLASS,
    strip_engine_links,
)
from linking_engine.services.multilingual import MultilingualLinkAdapter

logger = get_logger(__name__)


class LinkingOrchestrator:
    """Entry point used by the article processing worker."""

    def __init__(
        self,
        db: AsyncSession,
        discovery: DiscoveryProvider | None = None,
        verifier: VerificationProvider | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.db = db
        self.settings = settings or get_settings()
        adapter = MultilingualLinkAdapter()
        self.articles = ArticleRepository(db)
        self.internal = InternalLinkingService(db, self.settings, adapter)
        self.external = ExternalLinkingService(
            db,
            discovery=discovery,
            verifier=verifier,
            settings=self.settings,
            adapter=adapter,
        )
        self.affiliate = AffiliateLinkService(db, self.settings, adapter)

    async def process_article(
        self,
        article: Article,
        *,
        internal: bool = True,
        external: bool = True,
        affiliate: bool = True,
        inject_external: bool = False,
    ) -> LinkingReport:
        """Run the selected linking stages in order.

        Args:
            article: Article to link.
            internal: Run internal linking (links are injected).
            external: Run external linking.
            affiliate: Run affiliate linking (offers are injected).
            inject_external: Also write external links into the content.
        """
        article_id = article.id
        report = LinkingReport(article_id=article_id)

        stages = []
        if internal:
            stages.append(
                (
                    "internal",
                    "internal_links",
                    lambda: self.internal.generate_internal_links(article),
                )
            )
        if external:
            stages.append(
                (
                    "external",
                    "external_links",
                    lambda: self.external.generate_external_links(
                        article, inject=inject_external
                    ),
                )
            )
        if affiliate:
            stages.append(
                (
                    "affiliate",
                    "article_affiliate_links",
                    lambda: self.affiliate.inject_affiliate_links(article),
                )
            )

        classes = []
        if internal:
            classes.append(INTERNAL_LINK_CLASS)
        if external and inject_external:
            classes.append(EXTERNAL_LINK_CLASS)
        if affiliate:
            classes.append(AFFILIATE_LINK_CLASS)
        content = article.content
        for css_class in classes:
            content = strip_engine_links(content, css_class)
        # Committed together with the first stage
        await self.articles.update_content(article, content)

        for kind, table, run in stages:
            try:
                async with transaction(self.db, table=table, settings=self.settings):
                    result = await run()
            except Exception as e:
                await self.db.rollback()
                await self.db.refresh(article)
                logger.error(
                    "Linking stage failed",
                    extra={
                        "article_id": article_id,
                        "link_kind": kind,
                        "error_type": type(e).__name__,
                        "error_message": str(e)[:500],
                    },
                    exc_info=True,
                )
                report.errors[kind] = f"{type(e).__name__}: {e}"
                continue
            setattr(report, kind, result)

        logger.info(
            "Article linking finished",
            extra={
                "article_id": article_id,
                "failed_stages": sorted(report.errors),
            },
        )
        return report

    async def process_article_id(self, article_id: str, **options: bool) -> LinkingReport | None:
        """Load an article and process it. None when it does not exist."""
        article = await self.articles.get_by_id(article_id)
        if article is None:
            logger.warning("Article not found", extra={"article_id": article_id})
            return None
        return await self.process_article(article, **options)
