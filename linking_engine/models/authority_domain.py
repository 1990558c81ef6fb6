"""AuthorityDomain model: registry of trusted outbound link sources."""

from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, Float, Index, String, Text, text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from linking_engine.core.database import Base


class SourceType(str, Enum):
    """Kind of site an outbound link points to."""

    GOVERNMENT = "government"
    ACADEMIC = "academic"
    NEWS = "news"
    ORGANIZATION = "organization"
    CUSTOM = "custom"


# Default authority score for newly registered domains by source type
DEFAULT_AUTHORITY_SCORES: dict[str, float] = {
    SourceType.GOVERNMENT.value: 90.0,
    SourceType.ORGANIZATION.value: 80.0,
    SourceType.ACADEMIC.value: 75.0,
    SourceType.NEWS.value: 65.0,
    SourceType.CUSTOM.value: 50.0,
}


class AuthorityDomain(Base):
    """A registered external domain with a trust score.

    Attributes:
        id: UUID primary key
        domain: Bare host name (no scheme, no www.)
        name: Human-readable site name, used as anchor text when present
        source_type: One of SourceType
        country_code: Country the domain serves, null for global domains
        languages: Language codes the site publishes in
        topics: Themes the site is authoritative for
        authority_score: 0-100 trust score
        is_active: Inactive domains are never selected
        auto_discovered: Registered from a discovery result rather than curated
    """

    __tablename__ = "authority_domains"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
        server_default=text("gen_random_uuid()"),
    )

    domain: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
    )

    name: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )

    source_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=SourceType.CUSTOM.value,
    )

    country_code: Mapped[str | None] = mapped_column(
        String(2),
        nullable=True,
    )

    languages: Mapped[list[str]] = mapped_column(
        JSONB,
        nullable=False,
        default=list,
        server_default=text("'[]'::jsonb"),
    )

    topics: Mapped[list[str]] = mapped_column(
        JSONB,
        nullable=False,
        default=list,
        server_default=text("'[]'::jsonb"),
    )

    authority_score: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        default=50.0,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default=text("true"),
    )

    auto_discovered: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("false"),
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        server_default=text("now()"),
    )

    __table_args__ = (
        Index("ix_authority_domains_country_active", "country_code", "is_active"),
    )

    @property
    def full_url(self) -> str:
        return f"https://{self.domain}"

    def __repr__(self) -> str:
        return (
            f"<AuthorityDomain(domain={self.domain!r}, type={self.source_type!r}, "
            f"score={self.authority_score!r})>"
        )
