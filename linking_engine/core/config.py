"""Engine configuration loaded from environment variables.

Every tunable of the linking engine is a field here so deployments can
override it per environment. Services receive a Settings instance in their
constructor instead of reading ambient state during a generation call.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LinkingConfigError(ValueError):
    """Raised when a linking call receives an invalid configuration value."""

    def __init__(self, field_name: str, value: object, message: str) -> None:
        self.field_name = field_name
        self.value = value
        super().__init__(f"Invalid {field_name}={value!r}: {message}")


class Settings(BaseSettings):
    """Engine settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="Content Linking Engine")
    app_version: str = Field(default="2.0.0")
    debug: bool = Field(default=False)
    environment: str = Field(default="development")

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./linking.db",
        description="Database connection string (postgres:// is upgraded to asyncpg)",
    )
    db_pool_size: int = Field(default=5, ge=1, description="Database connection pool size")
    db_max_overflow: int = Field(default=10, ge=0, description="Max overflow connections")
    db_pool_timeout: int = Field(default=30, ge=1, description="Pool timeout in seconds")
    db_slow_query_threshold_ms: int = Field(
        default=100, ge=0, description="Threshold for slow transaction warnings (ms)"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Log level")
    log_format: str = Field(default="json", description="Log format: json or text")

    # Content structure
    min_paragraph_words: int = Field(
        default=20, ge=1, description="Minimum words for a paragraph to receive links"
    )
    max_links_per_paragraph: int = Field(
        default=1, ge=1, description="Maximum engine links placed in one paragraph"
    )

    # Internal linking
    internal_max_links_per_article: int = Field(
        default=12, ge=0, description="Maximum automatic internal links per article"
    )
    internal_min_relevance: float = Field(
        default=0.0, ge=0, le=100, description="Candidates below this score are dropped"
    )
    internal_same_platform_only: bool = Field(
        default=True, description="Only link articles of the same platform"
    )
    internal_theme_weight: float = Field(default=0.5, ge=0)
    internal_country_weight: float = Field(default=0.2, ge=0)
    internal_lexical_weight: float = Field(default=0.3, ge=0)
    internal_url_template: str = Field(
        default="/articles/{id}",
        description="Fallback href for targets without a stored url",
    )
    internal_exact_match_alert_percent: float = Field(
        default=20.0,
        ge=0,
        le=100,
        description="Exact-match anchor percent above which anchors are flagged",
    )
    internal_weak_connection_min_links: int = Field(
        default=3,
        ge=1,
        description="Fewer links in and out than this marks an article weak",
    )

    # External linking
    external_max_links_per_article: int = Field(
        default=3, ge=0, description="Maximum automatic external links per article"
    )
    external_government_bonus: float = Field(default=20.0, ge=0)
    external_organization_bonus: float = Field(default=10.0, ge=0)
    external_same_country_bonus: float = Field(default=10.0, ge=0)
    external_max_per_source_type: int = Field(
        default=2, ge=1, description="Cap on selected links sharing a source type"
    )
    external_require_topic_match: bool = Field(
        default=False,
        description="Require article theme in a registry domain's topics",
    )
    external_nofollow: bool = Field(default=False)
    discovery_timeout: float = Field(
        default=15.0, gt=0, description="Discovery provider timeout in seconds"
    )
    discovery_circuit_failure_threshold: int = Field(
        default=5, ge=1, description="Provider failures before discovery is skipped"
    )
    discovery_circuit_recovery_timeout: float = Field(
        default=60.0, ge=0, description="Seconds before discovery is retried"
    )

    # Affiliate linking
    affiliate_max_per_article: int = Field(
        default=3, ge=0, description="Maximum affiliate offers per article"
    )
    affiliate_commission_weight: float = Field(default=1.0, ge=0)
    affiliate_priority_weight: float = Field(default=0.5, ge=0)
    affiliate_relevance_weight: float = Field(default=20.0, ge=0)
    affiliate_sponsored_attribute: bool = Field(
        default=True, description="Mark affiliate anchors with rel=sponsored"
    )

    # Verification
    verification_timeout: float = Field(
        default=10.0, gt=0, description="Link liveness check timeout in seconds"
    )
    verification_valid_status_codes: list[int] = Field(
        default_factory=lambda: [200, 301, 302, 307, 308]
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached engine settings."""
    return Settings()
