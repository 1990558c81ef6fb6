"""ArticleRepository: the engine's view of the article store.

The engine only reads articles and writes back their content after
injecting links. Creating and publishing articles belongs to the
authoring side.
"""

import time

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from linking_engine.core.logging import db_logger, get_logger
from linking_engine.models.article import Article, ArticleStatus

logger = get_logger(__name__)


class ArticleRepository:
    """Read access to articles plus content write-back."""

    TABLE_NAME = "articles"
    SLOW_OPERATION_THRESHOLD_MS = 1000

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_by_id(self, article_id: str) -> Article | None:
        """Fetch an article by id, or None when it does not exist."""
        try:
            return await self.session.get(Article, article_id)
        except SQLAlchemyError as e:
            logger.error(
                "Failed to fetch article",
                extra={
                    "article_id": article_id,
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                },
                exc_info=True,
            )
            raise

    async def list_link_candidates(
        self, article: Article, same_platform: bool = True
    ) -> list[Article]:
        """Published articles in the same language as article, excluding it.

        Args:
            article: Source article.
            same_platform: Restrict to article.platform_id.

        Returns:
            Candidates ordered by id, so ranking ties resolve the same way
            on every run.
        """
        start_time = time.monotonic()
        stmt = select(Article).where(
            Article.status == ArticleStatus.PUBLISHED.value,
            Article.language_code == article.language_code,
            Article.id != article.id,
        )
        if same_platform:
            stmt = stmt.where(Article.platform_id == article.platform_id)
        stmt = stmt.order_by(Article.id)

        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as e:
            logger.error(
                "Failed to list link candidates",
                extra={
                    "article_id": article.id,
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                },
                exc_info=True,
            )
            raise

        candidates = list(result.scalars().all())
        duration_ms = (time.monotonic() - start_time) * 1000
        if duration_ms > self.SLOW_OPERATION_THRESHOLD_MS:
            db_logger.slow_query(
                query="SELECT link candidates",
                duration_ms=duration_ms,
                table=self.TABLE_NAME,
            )
        logger.debug(
            "Link candidates loaded",
            extra={
                "article_id": article.id,
                "platform_id": article.platform_id,
                "count": len(candidates),
                "duration_ms": round(duration_ms, 2),
            },
        )
        return candidates

    async def update_content(self, article: Article, content: str) -> Article:
        """Replace an article's content. No-op when the content is unchanged."""
        if article.content == content:
            return article
        article.content = content
        await self.session.flush()
        logger.debug(
            "Article content updated",
            extra={"article_id": article.id, "content_length": len(content)},
        )
        return article

    async def list_published(
        self, platform_id: str, language_code: str | None = None
    ) -> list[Article]:
        """Published articles of a platform ordered by id, optionally one language."""
        stmt = select(Article).where(
            Article.platform_id == platform_id,
            Article.status == ArticleStatus.PUBLISHED.value,
        )
        if language_code:
            stmt = stmt.where(Article.language_code == language_code)
        result = await self.session.execute(stmt.order_by(Article.id))
        return list(result.scalars().all())
