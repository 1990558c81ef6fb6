"""ExternalLink model for outbound links from an article.

verification_status follows a small state machine owned by the engine:
pending → verified | broken. Re-checks may move a link between verified
and broken; nothing moves a link back to pending.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
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


class VerificationStatus(str, Enum):
    """Liveness status of an external link."""

    PENDING = "pending"
    VERIFIED = "verified"
    BROKEN = "broken"


# Allowed verification_status transitions
VERIFICATION_TRANSITIONS: dict[str, frozenset[str]] = {
    VerificationStatus.PENDING.value: frozenset(
        {VerificationStatus.VERIFIED.value, VerificationStatus.BROKEN.value}
    ),
    VerificationStatus.VERIFIED.value: frozenset(
        {VerificationStatus.VERIFIED.value, VerificationStatus.BROKEN.value}
    ),
    VerificationStatus.BROKEN.value: frozenset(
        {VerificationStatus.VERIFIED.value, VerificationStatus.BROKEN.value}
    ),
}


class ExternalLink(Base):
    """ExternalLink model.

    Attributes:
        id: UUID primary key
        article_id: Article containing the link
        url: Absolute target URL
        domain: Host of url
        anchor_text: Visible text of the link
        source_type: SourceType of the target site
        authority_score: Authority score at selection time
        is_automatic: Engine-created (True) or manual (False)
        verification_status: 'pending', 'verified' or 'broken'
        last_verified_at: When the verification provider last checked the url
    """

    __tablename__ = "external_links"

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

    url: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )

    domain: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    anchor_text: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )

    source_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    authority_score: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        default=50.0,
    )

    is_automatic: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default=text("true"),
    )

    verification_status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=VerificationStatus.PENDING.value,
        server_default=text("'pending'"),
    )

    last_verified_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        server_default=text("now()"),
    )

    __table_args__ = (
        UniqueConstraint("article_id", "url", name="uq_external_links_article_url"),
        Index("ix_external_links_verification_status", "verification_status"),
    )

    article: Mapped["Article"] = relationship("Article")

    def __repr__(self) -> str:
        return (
            f"<ExternalLink(id={self.id!r}, article={self.article_id!r}, "
            f"url={self.url!r}, status={self.verification_status!r})>"
        )
