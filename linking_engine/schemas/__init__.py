"""Schemas layer - pydantic models for engine inputs and results."""

from linking_engine.schemas.linking import (
    AffiliateInjectionResult,
    AffiliateStats,
    AnchorDiversityReport,
    ArticleConnectivity,
    ArticleLinkStats,
    DiscoveredLink,
    DistributionReport,
    ExternalLinkResponse,
    ExternalLinkResult,
    ExternalLinkStats,
    InternalLinkResponse,
    InternalLinkResult,
    LinkingReport,
    PlatformRegenerationResult,
    VerificationSummary,
)

__all__ = [
    "AffiliateInjectionResult",
    "AffiliateStats",
    "AnchorDiversityReport",
    "ArticleConnectivity",
    "ArticleLinkStats",
    "DiscoveredLink",
    "DistributionReport",
    "ExternalLinkResponse",
    "ExternalLinkResult",
    "ExternalLinkStats",
    "InternalLinkResponse",
    "InternalLinkResult",
    "LinkingReport",
    "PlatformRegenerationResult",
    "VerificationSummary",
]
