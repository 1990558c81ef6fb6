"""Models layer - SQLAlchemy ORM models.

All models inherit from the Base class defined in core.database.
"""

from linking_engine.core.database import Base
from linking_engine.models.affiliate_link import AffiliateLink, ArticleAffiliateLink
from linking_engine.models.article import Article, ArticleStatus
from linking_engine.models.authority_domain import (
    DEFAULT_AUTHORITY_SCORES,
    AuthorityDomain,
    SourceType,
)
from linking_engine.models.external_link import (
    VERIFICATION_TRANSITIONS,
    ExternalLink,
    VerificationStatus,
)
from linking_engine.models.internal_link import (
    ANCHOR_TYPE_ROTATION,
    AnchorType,
    InternalLink,
)

__all__ = [
    "ANCHOR_TYPE_ROTATION",
    "DEFAULT_AUTHORITY_SCORES",
    "VERIFICATION_TRANSITIONS",
    "AffiliateLink",
    "AnchorType",
    "Article",
    "ArticleAffiliateLink",
    "ArticleStatus",
    "AuthorityDomain",
    "Base",
    "ExternalLink",
    "InternalLink",
    "SourceType",
    "VerificationStatus",
]
