"""Article model.

Articles are owned by the authoring side of the product. The linking engine
reads them and only ever writes back the `content` column after injecting
link markup.
"""

from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from sqlalchemy import DateTime, Index, String, Text, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from linking_engine.core.database import Base


class ArticleStatus(str, Enum):
    """Publication status of an article."""

    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class Article(Base):
    """A published (or draft) article on one platform.

    Attributes:
        id: UUID primary key
        platform_id: Platform (site) the article belongs to
        country_code: ISO country the article targets, null for global content
        language_code: Language of the article body
        theme: Editorial theme (e.g. "visa"), nullable
        title: Article title
        content: HTML body
        status: 'draft', 'published' or 'archived'
        url: Public URL used as href when other articles link here
    """

    __tablename__ = "articles"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
        server_default=text("gen_random_uuid()"),
    )

    platform_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        index=True,
    )

    country_code: Mapped[str | None] = mapped_column(
        String(2),
        nullable=True,
    )

    language_code: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
    )

    theme: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    title: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )

    content: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="",
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=ArticleStatus.DRAFT.value,
        server_default=text("'draft'"),
    )

    url: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        server_default=text("now()"),
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        server_default=text("now()"),
        onupdate=lambda: datetime.now(UTC),
    )

    # Candidate lookup: same platform + language, published only
    __table_args__ = (
        Index(
            "ix_articles_platform_language_status",
            "platform_id",
            "language_code",
            "status",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<Article(id={self.id!r}, language={self.language_code!r}, "
            f"status={self.status!r})>"
        )
