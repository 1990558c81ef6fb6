"""Pydantic v2 schemas for linking engine inputs and results.

- DiscoveredLink: candidate returned by a discovery provider
- InternalLinkResult / ExternalLinkResult / AffiliateInjectionResult:
  outcome of one generation call
- DistributionReport: uniformity check of an already-linked document
- VerificationSummary: outcome of verify_article_links
- ArticleLinkStats / ExternalLinkStats / AffiliateStats: read-only aggregates
- AnchorDiversityReport / ArticleConnectivity: anchor mix and link graph health
- PlatformRegenerationResult: outcome of a platform-wide internal rerun
- LinkingReport: combined result of the orchestrator
- InternalLinkResponse / ExternalLinkResponse: row views
"""

from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, model_validator

from linking_engine.models.authority_domain import SourceType

# =============================================================================
# DISCOVERY INPUT
# =============================================================================


class DiscoveredLink(BaseModel):
    """Candidate external URL produced by a discovery provider."""

    url: str = Field(..., description="Absolute URL of the candidate page")
    title: str | None = Field(None, description="Page title reported by the provider")
    domain: str | None = Field(None, description="Host; derived from url when omitted")
    source_type: SourceType = Field(
        SourceType.CUSTOM, description="Kind of site the URL belongs to"
    )
    authority_score: float = Field(50.0, ge=0, le=100)
    name: str | None = Field(None, description="Site name usable as anchor text")
    country_code: str | None = Field(None, description="Country the site serves")
    languages: list[str] | None = Field(
        None, description="Languages the site publishes in, null when unknown"
    )

    @model_validator(mode="after")
    def _fill_domain(self) -> "DiscoveredLink":
        if not self.domain:
            host = urlparse(self.url).hostname or ""
            self.domain = host.removeprefix("www.")
        return self


# =============================================================================
# GENERATION RESULTS
# =============================================================================


class InternalLinkResult(BaseModel):
    """Outcome of InternalLinkingService.generate_internal_links."""

    created: int = Field(0, description="Automatic internal links persisted")
    deleted: int = Field(0, description="Previous automatic links replaced")
    candidates_found: int = Field(0, description="Articles passing the hard filters")
    injected: int = Field(0, description="Links written into the article content")


class ExternalLinkResult(BaseModel):
    """Outcome of ExternalLinkingService.generate_external_links."""

    created: int = 0
    deleted: int = 0
    discovered: int = Field(0, description="Candidates returned by discovery")
    registry_matches: int = Field(0, description="Candidates from the authority registry")
    provider_failed: bool = Field(
        False, description="Discovery failed or timed out and was skipped"
    )
    injected: int = 0


class AffiliateInjectionResult(BaseModel):
    """Outcome of AffiliateLinkService.inject_affiliate_links."""

    selected: int = Field(0, description="Offers selected and associated with the article")
    injected: int = Field(0, description="Offers written into the article content")
    created: int = Field(0, description="New association rows")
    removed: int = Field(0, description="Stale association rows removed")


class DistributionReport(BaseModel):
    """Link density per eligible paragraph of a document."""

    is_uniform: bool
    min_per_paragraph: int
    max_per_paragraph: int
    variance: float
    distribution: dict[int, int] = Field(
        default_factory=dict, description="paragraph index -> link count"
    )


class VerificationSummary(BaseModel):
    """Outcome of verify_article_links."""

    total: int = 0
    verified: int = 0
    broken: int = 0
    pending: int = 0


# =============================================================================
# STATS
# =============================================================================


class ArticleLinkStats(BaseModel):
    outgoing_links: int
    incoming_links: int
    automatic_links: int
    manual_links: int
    average_relevance: float


class AnchorDiversityReport(BaseModel):
    """Share of each anchor type among the internal links of an article or platform."""

    total_links: int
    counts: dict[str, int] = Field(
        default_factory=dict, description="anchor type -> number of links"
    )
    percentages: dict[str, float] = Field(
        default_factory=dict, description="anchor type -> percent of links, 1 decimal"
    )
    exact_match_percent: float = 0.0
    over_optimized: bool = Field(
        False, description="exact_match_percent is above the configured alert level"
    )


class ArticleConnectivity(BaseModel):
    """Internal link degree of one published article."""

    article_id: str
    title: str
    language_code: str
    incoming_links: int
    outgoing_links: int

    @property
    def total_links(self) -> int:
        return self.incoming_links + self.outgoing_links


class PlatformRegenerationResult(BaseModel):
    """Outcome of InternalLinkingService.regenerate_platform_links."""

    platform_id: str
    total: int = Field(0, description="Published articles on the platform")
    processed: int = 0
    links_created: int = 0
    links_deleted: int = 0


class ExternalLinkStats(BaseModel):
    total: int
    by_type: dict[str, int]
    broken: int
    pending: int
    average_authority: float


class AffiliateStats(BaseModel):
    """Read-only aggregate of a platform's affiliate state."""

    total_links: int
    active_links: int
    total_insertions: int
    average_commission: float


class LinkingReport(BaseModel):
    """Combined result of LinkingOrchestrator.process_article.

    A stage that raised has no result and an entry in errors.
    """

    article_id: str
    internal: InternalLinkResult | None = None
    external: ExternalLinkResult | None = None
    affiliate: AffiliateInjectionResult | None = None
    errors: dict[str, str] = Field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return not self.errors


# =============================================================================
# ROW VIEWS
# =============================================================================


class InternalLinkResponse(BaseModel):
    """View of a single internal link row."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    source_article_id: str
    target_article_id: str
    anchor_text: str
    anchor_type: str
    relevance_score: float
    is_automatic: bool
    position_in_content: int | None = None


class ExternalLinkResponse(BaseModel):
    """View of a single external link row."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    article_id: str
    url: str
    domain: str
    anchor_text: str
    source_type: str
    is_automatic: bool
    verification_status: str
