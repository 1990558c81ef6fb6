"""Affiliate offers and their association with articles.

AffiliateLink rows are monetizable offers configured per platform.
ArticleAffiliateLink records which offers were placed in which article;
(article_id, affiliate_link_id) is unique so re-running injection never
duplicates an association.

Offer expiry is evaluated at selection time from starts_at/expires_at;
rows are never deleted when an offer expires.
"""

from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from linking_engine.core.database import Base

if TYPE_CHECKING:
    from linking_engine.models.article import Article


class AffiliateLink(Base):
    """A monetizable offer.

    Attributes:
        id: UUID primary key
        platform_id: Platform the offer is configured for
        service_name: Display name of the partner service
        service_slug: Stable identifier used in markup (data-affiliate)
        tracking_url: URL carrying the affiliate tracking parameters
        commission_rate: Commission value (percentage or flat, see commission_type)
        commission_type: 'percentage' or 'flat'
        country_codes: Countries the offer is valid in, null for all
        language_codes: Languages the offer may appear in
        themes: Themes the offer matches, empty list matches every theme
        custom_anchors: language code -> list of anchor texts
        priority: Editorial priority, higher wins
        is_active: Inactive offers are never selected
        starts_at: Offer is not selectable before this instant (null = open)
        expires_at: Offer is not selectable after this instant (null = open)
    """

    __tablename__ = "affiliate_links"

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

    service_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    service_slug: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    tracking_url: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )

    commission_rate: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        default=0.0,
    )

    commission_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="percentage",
        server_default=text("'percentage'"),
    )

    country_codes: Mapped[list[str] | None] = mapped_column(
        JSONB(none_as_null=True),
        nullable=True,
    )

    language_codes: Mapped[list[str]] = mapped_column(
        JSONB,
        nullable=False,
        default=list,
        server_default=text("'[]'::jsonb"),
    )

    themes: Mapped[list[str]] = mapped_column(
        JSONB,
        nullable=False,
        default=list,
        server_default=text("'[]'::jsonb"),
    )

    custom_anchors: Mapped[dict[str, list[str]]] = mapped_column(
        JSONB,
        nullable=False,
        default=dict,
        server_default=text("'{}'::jsonb"),
    )

    priority: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=50,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default=text("true"),
    )

    starts_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        server_default=text("now()"),
    )

    def __repr__(self) -> str:
        return (
            f"<AffiliateLink(id={self.id!r}, service={self.service_slug!r}, "
            f"active={self.is_active!r})>"
        )


class ArticleAffiliateLink(Base):
    """Association between an article and an affiliate offer placed in it."""

    __tablename__ = "article_affiliate_links"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
        server_default=text("gen_random_uuid()"),
    )

    article_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("articles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    affiliate_link_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("affiliate_links.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    anchor_text: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        server_default=text("now()"),
    )

    __table_args__ = (
        UniqueConstraint(
            "article_id",
            "affiliate_link_id",
            name="uq_article_affiliate_links_article_offer",
        ),
    )

    article: Mapped["Article"] = relationship("Article")
    affiliate_link: Mapped["AffiliateLink"] = relationship("AffiliateLink")

    def __repr__(self) -> str:
        return (
            f"<ArticleAffiliateLink(article={self.article_id!r}, "
            f"offer={self.affiliate_link_id!r})>"
        )
