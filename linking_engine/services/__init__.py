"""Services layer - link generation business logic."""

from linking_engine.services.affiliate_linking import AffiliateLinkService
from linking_engine.services.external_linking import (
    AuthorityDomainRegistry,
    DiscoveryProvider,
    ExternalLinkingService,
    VerificationProvider,
    detect_source_type,
)
from linking_engine.services.internal_linking import InternalLinkingService
from linking_engine.services.link_distribution import (
    Placement,
    calculate_uniform_distribution,
    validate_distribution,
)
from linking_engine.services.linking_orchestrator import LinkingOrchestrator
from linking_engine.services.multilingual import MultilingualLinkAdapter

__all__ = [
    "AffiliateLinkService",
    "AuthorityDomainRegistry",
    "DiscoveryProvider",
    "ExternalLinkingService",
    "InternalLinkingService",
    "LinkingOrchestrator",
    "MultilingualLinkAdapter",
    "Placement",
    "VerificationProvider",
    "calculate_uniform_distribution",
    "detect_source_type",
    "validate_distribution",
]
