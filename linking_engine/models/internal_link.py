"""InternalLink model for storing article-to-article links.

The InternalLink model represents an edge between two Articles:
- source_article_id: The article containing the link
- target_article_id: The article being linked to
- anchor_text: The visible text of the link
- anchor_type: Stylistic category of the anchor phrasing
- is_automatic: True for engine-created edges (replaced on regeneration),
  False for manually curated edges (never touched by the engine)
"""

from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from linking_engine.core.database import Base

if TYPE_CHECKING:
    from linking_engine.models.article import Article


class AnchorType(str, Enum):
    """Stylistic category of an anchor text."""

    EXACT_MATCH = "exact_match"
    LONG_TAIL = "long_tail"
    CTA = "cta"
    GENERIC = "generic"
    QUESTION = "question"


# Rotation order used to diversify anchors across one article's links
ANCHOR_TYPE_ROTATION: tuple[AnchorType, ...] = (
    AnchorType.EXACT_MATCH,
    AnchorType.LONG_TAIL,
    AnchorType.CTA,
    AnchorType.QUESTION,
    AnchorType.GENERIC,
)


class InternalLink(Base):
    """InternalLink model for storing article-to-article links.

    Attributes:
        id: UUID primary key
        source_article_id: Article containing the link
        target_article_id: Article being linked to
        anchor_text: The visible text of the link
        anchor_type: One of AnchorType
        relevance_score: 0-100 relevance of target to source
        is_automatic: Engine-created (True) or manual (False)
        position_in_content: Paragraph index the link was placed in, null
            when the source content had no eligible zone
        created_at: Timestamp when record was created
        updated_at: Timestamp when record was last updated
    """

    __tablename__ = "internal_links"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
        server_default=text("gen_random_uuid()"),
    )

    source_article_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("articles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    target_article_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("articles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    anchor_text: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )

    anchor_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    relevance_score: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        default=0.0,
    )

    is_automatic: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default=text("true"),
    )

    position_in_content: Mapped[int | None] = mapped_column(
        Integer,
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

    __table_args__ = (
        UniqueConstraint(
            "source_article_id",
            "target_article_id",
            name="uq_internal_links_source_target",
        ),
        CheckConstraint(
            "source_article_id <> target_article_id",
            name="ck_internal_links_no_self_link",
        ),
        Index(
            "ix_internal_links_source_automatic",
            "source_article_id",
            "is_automatic",
        ),
    )

    source_article: Mapped["Article"] = relationship(
        "Article",
        foreign_keys=[source_article_id],
    )

    target_article: Mapped["Article"] = relationship(
        "Article",
        foreign_keys=[target_article_id],
    )

    def __repr__(self) -> str:
        return (
            f"<InternalLink(id={self.id!r}, source={self.source_article_id!r}, "
            f"target={self.target_article_id!r}, automatic={self.is_automatic!r})>"
        )
