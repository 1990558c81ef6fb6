"""External linking service: outbound links to authoritative sources.

Candidates come from two places:
- a DiscoveryProvider (network I/O, timeout-bounded, optional)
- the AuthorityDomain registry, filtered by country, language and topic

Candidates are scored by authority with bonuses for government,
organization and same-country sources, then selected with source
diversity (one link per domain, a cap per source type, at least one
government source when one is available).

A failing or slow discovery provider never fails generation: its
candidates are simply missing and the result says provider_failed.
"""

import asyncio
import re
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Protocol
from urllib.parse import urlparse

from sqlalchemy import case, delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from linking_engine.core.circuit_breaker import CircuitBreaker, CircuitBreakerConfig
from linking_engine.core.config import Settings, get_settings
from linking_engine.core.logging import get_logger, linking_logger
from linking_engine.models.article import Article
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
from linking_engine.repositories.article import ArticleRepository
from linking_engine.schemas.linking import (
    DiscoveredLink,
    ExternalLinkResult,
    ExternalLinkStats,
    VerificationSummary,
)
from linking_engine.services.link_distribution import (
    EXTERNAL_LINK_CLASS,
    build_link_html,
    calculate_uniform_distribution,
    inject_links_at_placements,
    strip_engine_links,
)
from linking_engine.services.link_scoring import AuthorityScorer, rank_candidates
from linking_engine.services.multilingual import MultilingualLinkAdapter
from linking_engine.utils.content_structure import analyze_content_structure

logger = get_logger(__name__)

LINK_KIND = "external"


# =============================================================================
# PROVIDER INTERFACES
# =============================================================================


class DiscoveryProvider(Protocol):
    """Finds candidate outbound URLs for an article."""

    async def discover_links(self, article: Article) -> list[DiscoveredLink]: ...


class VerificationProvider(Protocol):
    """Checks whether a URL is alive."""

    async def check_url(self, url: str) -> bool: ...


# =============================================================================
# AUTHORITY DOMAIN REGISTRY
# =============================================================================

_GOVERNMENT_RE = re.compile(r"\.(gov|gouv|gob|gc\.ca|go\.[a-z]{2})(\.[a-z]{2})?$")
_NEWS_RE = re.compile(r"(news|times|post|guardian|bbc|reuters|cnn)")

ORGANIZATION_DOMAINS = (
    "un.org",
    "who.int",
    "unesco.org",
    "ilo.org",
    "worldbank.org",
    "imf.org",
)
ACADEMIC_DOMAINS = ("wikipedia.org", "britannica.com", "investopedia.com")

# Checked in order, longest suffix first
COUNTRY_SUFFIXES: tuple[tuple[str, str], ...] = (
    (".gouv.fr", "FR"),
    (".gov.uk", "GB"),
    (".co.uk", "GB"),
    (".gc.ca", "CA"),
    (".gov.au", "AU"),
    (".fr", "FR"),
    (".de", "DE"),
    (".es", "ES"),
    (".it", "IT"),
    (".uk", "GB"),
    (".ca", "CA"),
    (".au", "AU"),
    (".jp", "JP"),
    (".cn", "CN"),
    (".br", "BR"),
    (".mx", "MX"),
    (".ch", "CH"),
    (".nl", "NL"),
    (".be", "BE"),
    (".at", "AT"),
    (".pt", "PT"),
    (".ru", "RU"),
    (".in", "IN"),
    (".sg", "SG"),
    (".th", "TH"),
    (".ae", "AE"),
    (".sa", "SA"),
)

COUNTRY_LANGUAGES: dict[str, list[str]] = {
    "FR": ["fr"],
    "DE": ["de"],
    "ES": ["es"],
    "IT": ["it"],
    "GB": ["en"],
    "US": ["en"],
    "CA": ["en", "fr"],
    "AU": ["en"],
    "JP": ["ja"],
    "CN": ["zh"],
    "BR": ["pt"],
    "PT": ["pt"],
    "MX": ["es"],
    "CH": ["de", "fr", "it"],
    "BE": ["fr", "nl", "de"],
    "AT": ["de"],
    "RU": ["ru"],
    "IN": ["en", "hi"],
    "SA": ["ar"],
    "AE": ["ar", "en"],
}


def normalize_domain(url_or_domain: str) -> str:
    """Bare lower-case host of a URL or domain, without www."""
    value = url_or_domain.strip().lower()
    host = urlparse(value).hostname if "//" in value else value.split("/")[0]
    return (host or "").removeprefix("www.")


def detect_source_type(domain: str) -> SourceType:
    """Classify a domain from its name."""
    domain = normalize_domain(domain)
    if _GOVERNMENT_RE.search(domain):
        return SourceType.GOVERNMENT
    if domain.endswith(".int") or domain.endswith(ORGANIZATION_DOMAINS):
        return SourceType.ORGANIZATION
    if domain.endswith(ACADEMIC_DOMAINS) or domain.endswith(".edu"):
        return SourceType.ACADEMIC
    if _NEWS_RE.search(domain):
        return SourceType.NEWS
    return SourceType.CUSTOM


def detect_country(domain: str) -> str | None:
    domain = normalize_domain(domain)
    for suffix, country in COUNTRY_SUFFIXES:
        if domain.endswith(suffix):
            return country
    return None


def _name_from_domain(domain: str) -> str:
    name = re.sub(r"\.[a-z]{2,}(\.[a-z]{2})?$", "", domain)
    return re.sub(r"[-_.]", " ", name).title()


class AuthorityDomainRegistry:
    """Queries and registrations against the AuthorityDomain table."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get(self, domain: str) -> AuthorityDomain | None:
        result = await self.db.execute(
            select(AuthorityDomain).where(AuthorityDomain.domain == normalize_domain(domain))
        )
        return result.scalar_one_or_none()

    async def get_many(self, domains: set[str]) -> dict[str, AuthorityDomain]:
        if not domains:
            return {}
        result = await self.db.execute(
            select(AuthorityDomain).where(AuthorityDomain.domain.in_(domains))
        )
        return {row.domain: row for row in result.scalars().all()}

    async def find_for_article(
        self, article: Article, require_topic: bool = False
    ) -> list[AuthorityDomain]:
        """Active domains matching the article's country (or global) and language.

        Articles without a country only match global domains.
        """
        stmt = select(AuthorityDomain).where(AuthorityDomain.is_active.is_(True))
        if article.country_code:
            stmt = stmt.where(
                (AuthorityDomain.country_code == article.country_code.upper())
                | AuthorityDomain.country_code.is_(None)
            )
        else:
            stmt = stmt.where(AuthorityDomain.country_code.is_(None))
        result = await self.db.execute(stmt.order_by(AuthorityDomain.domain))

        language = article.language_code
        theme = (article.theme or "").lower()
        matches = []
        for domain in result.scalars().all():
            if language not in (domain.languages or []):
                continue
            if require_topic and theme not in [t.lower() for t in domain.topics or []]:
                continue
            matches.append(domain)
        return matches

    async def register_domain(self, url: str, **metadata: Any) -> AuthorityDomain | None:
        """Register the domain of url unless it is already known.

        Missing metadata (name, source_type, country_code, languages,
        topics, authority_score) is inferred from the domain name.

        Returns:
            The existing or new AuthorityDomain; None when url has no host.
        """
        domain = normalize_domain(url)
        if not domain:
            return None

        existing = await self.get(domain)
        if existing is not None:
            return existing

        source_type = SourceType(metadata.get("source_type") or detect_source_type(domain))
        country = metadata.get("country_code") or detect_country(domain)
        record = AuthorityDomain(
            domain=domain,
            name=metadata.get("name") or _name_from_domain(domain),
            source_type=source_type.value,
            country_code=country,
            languages=metadata.get("languages") or COUNTRY_LANGUAGES.get(country or "", ["en"]),
            topics=metadata.get("topics") or [],
            authority_score=metadata.get("authority_score")
            or DEFAULT_AUTHORITY_SCORES[source_type.value],
            is_active=True,
            auto_discovered=metadata.get("auto_discovered", True),
        )
        self.db.add(record)
        await self.db.flush()
        logger.info(
            "Authority domain registered",
            extra={"domain": domain, "source_type": source_type.value},
        )
        return record


# =============================================================================
# SERVICE
# =============================================================================


@dataclass
class ExternalCandidate:
    """A scorable outbound link from discovery or the registry."""

    url: str
    domain: str
    source_type: str
    authority_score: float
    country_code: str | None = None
    name: str | None = None
    title: str | None = None
    languages: list[str] | None = None
    origin: str = "discovery"
    topics: list[str] = field(default_factory=list)


class ExternalLinkingService:
    """Generates, injects and verifies automatic outbound links."""

    def __init__(
        self,
        db: AsyncSession,
        discovery: DiscoveryProvider | None = None,
        verifier: VerificationProvider | None = None,
        settings: Settings | None = None,
        adapter: MultilingualLinkAdapter | None = None,
        circuit_breaker: CircuitBreaker | None = None,
    ) -> None:
        self.db = db
        self.discovery = discovery
        self.verifier = verifier
        self.settings = settings or get_settings()
        self.adapter = adapter or MultilingualLinkAdapter()
        self.registry = AuthorityDomainRegistry(db)
        self.articles = ArticleRepository(db)
        self.circuit_breaker = circuit_breaker or CircuitBreaker(
            CircuitBreakerConfig(
                failure_threshold=self.settings.discovery_circuit_failure_threshold,
                recovery_timeout=self.settings.discovery_circuit_recovery_timeout,
            ),
            name="discovery",
        )

    async def detect_source_type(self, domain: str) -> SourceType:
        """Source type of a domain: registry entry first, else name rules."""
        registered = await self.registry.get(domain)
        if registered is not None:
            return SourceType(registered.source_type)
        return detect_source_type(domain)

    async def register_domain(self, url: str, **metadata: Any) -> AuthorityDomain | None:
        return await self.registry.register_domain(url, **metadata)

    async def _discover(self, article: Article) -> tuple[list[DiscoveredLink], bool]:
        """Run the discovery provider. Returns (links, failed)."""
        if self.discovery is None:
            return [], False
        if not await self.circuit_breaker.can_execute():
            linking_logger.provider_failure(
                "discovery", article.id, RuntimeError("circuit open")
            )
            return [], True
        try:
            links = await asyncio.wait_for(
                self.discovery.discover_links(article),
                timeout=self.settings.discovery_timeout,
            )
        except Exception as e:
            await self.circuit_breaker.record_failure()
            linking_logger.provider_failure("discovery", article.id, e)
            return [], True
        await self.circuit_breaker.record_success()
        return list(links or []), False

    async def _collect_candidates(
        self, article: Article, discovered: list[DiscoveredLink]
    ) -> tuple[list[ExternalCandidate], int]:
        language = article.language_code
        registered = await self.registry.get_many(
            {normalize_domain(link.domain or link.url) for link in discovered}
        )

        candidates: list[ExternalCandidate] = []
        for link in discovered:
            domain = normalize_domain(link.domain or link.url)
            entry = registered.get(domain)
            if entry is not None and (
                not entry.is_active or language not in (entry.languages or [])
            ):
                logger.debug(
                    "Discovered link rejected by registry",
                    extra={"article_id": article.id, "domain": domain},
                )
                continue
            if link.languages is not None and language not in link.languages:
                continue
            candidates.append(
                ExternalCandidate(
                    url=link.url,
                    domain=domain,
                    source_type=(entry.source_type if entry else link.source_type.value),
                    authority_score=(
                        entry.authority_score if entry else link.authority_score
                    ),
                    country_code=(entry.country_code if entry else link.country_code),
                    name=link.name or (entry.name if entry else None),
                    title=link.title,
                    languages=link.languages,
                    origin="discovery",
                )
            )

        registry_matches = await self.registry.find_for_article(
            article, require_topic=self.settings.external_require_topic_match
        )
        for entry in registry_matches:
            candidates.append(
                ExternalCandidate(
                    url=entry.full_url,
                    domain=entry.domain,
                    source_type=entry.source_type,
                    authority_score=entry.authority_score,
                    country_code=entry.country_code,
                    name=entry.name,
                    languages=entry.languages,
                    origin="registry",
                    topics=entry.topics or [],
                )
            )
        return candidates, len(registry_matches)

    def select_best_links(
        self,
        candidates: list[ExternalCandidate],
        country_code: str | None,
        max_links: int,
        excluded_urls: set[str] | None = None,
    ) -> list[ExternalCandidate]:
        """Rank candidates and pick a diverse top max_links.

        One link per domain and per url, at most external_max_per_source_type
        links of one source type, and a government source swapped in for
        the weakest pick when none made the cut.
        """
        if max_links <= 0 or not candidates:
            return []
        excluded = excluded_urls or set()
        scorer = AuthorityScorer(
            country_code,
            government_bonus=self.settings.external_government_bonus,
            organization_bonus=self.settings.external_organization_bonus,
            same_country_bonus=self.settings.external_same_country_bonus,
        )
        ranked = rank_candidates(
            [c for c in candidates if c.url not in excluded],
            scorer,
            tie_key=lambda c: (c.domain, c.url),
        )

        selected: list[ExternalCandidate] = []
        used_domains: set[str] = set()
        used_urls: set[str] = set()
        type_counts: dict[str, int] = {}
        cap = self.settings.external_max_per_source_type
        for scored in ranked:
            if len(selected) >= max_links:
                break
            link = scored.item
            if link.domain in used_domains or link.url in used_urls:
                continue
            if type_counts.get(link.source_type, 0) >= cap:
                continue
            selected.append(link)
            used_domains.add(link.domain)
            used_urls.add(link.url)
            type_counts[link.source_type] = type_counts.get(link.source_type, 0) + 1

        government = SourceType.GOVERNMENT.value
        if selected and not any(s.source_type == government for s in selected):
            fallback = next(
                (
                    s.item
                    for s in ranked
                    if s.item.source_type == government
                    and s.item.domain not in used_domains
                ),
                None,
            )
            if fallback is not None:
                if len(selected) >= max_links:
                    selected.pop()
                selected.append(fallback)
        return selected

    def _anchor_text(self, link: ExternalCandidate, language: str, index: int) -> str:
        if link.name:
            return link.name
        if link.source_type == SourceType.GOVERNMENT.value:
            return self.adapter.official_source_label(language, variant=index)
        return self.adapter.localize_external_link_title(link.domain, language)

    async def generate_external_links(
        self, article: Article, *, inject: bool = False
    ) -> ExternalLinkResult:
        """Regenerate the automatic external links of one article.

        Args:
            article: Article to link from.
            inject: Also write the links into article.content.
        """
        start_time = time.monotonic()
        article_id = article.id
        max_links = self.settings.external_max_links_per_article
        linking_logger.generation_start(
            LINK_KIND, article_id, article.language_code, max_links
        )

        manual_urls = set(
            (
                await self.db.execute(
                    select(ExternalLink.url).where(
                        ExternalLink.article_id == article_id,
                        ExternalLink.is_automatic.is_(False),
                    )
                )
            )
            .scalars()
            .all()
        )

        discovered, provider_failed = await self._discover(article)
        candidates, registry_count = await self._collect_candidates(article, discovered)
        for url in manual_urls & {c.url for c in candidates}:
            linking_logger.duplicate_skipped(LINK_KIND, article_id, url)

        selected = self.select_best_links(
            candidates, article.country_code, max_links, excluded_urls=manual_urls
        )
        if not selected:
            linking_logger.no_candidates(
                LINK_KIND,
                article_id,
                "discovery failed and no registry match"
                if provider_failed
                else "no discovered or registered source",
            )

        links = [
            ExternalLink(
                article_id=article_id,
                url=candidate.url,
                domain=candidate.domain,
                anchor_text=self._anchor_text(candidate, article.language_code, i),
                source_type=candidate.source_type,
                authority_score=candidate.authority_score,
                is_automatic=True,
                verification_status=VerificationStatus.PENDING.value,
            )
            for i, candidate in enumerate(selected)
        ]
        try:
            # Savepoint: a conflict undoes only this replacement
            async with self.db.begin_nested():
                deleted_result = await self.db.execute(
                    delete(ExternalLink).where(
                        ExternalLink.article_id == article_id,
                        ExternalLink.is_automatic.is_(True),
                    )
                )
                deleted = deleted_result.rowcount or 0
                self.db.add_all(links)
                await self.db.flush()
        except IntegrityError as e:
            logger.warning(
                "Concurrent external link regeneration detected, keeping existing rows",
                extra={
                    "article_id": article_id,
                    "error_type": type(e).__name__,
                    "error_message": str(e)[:500],
                },
            )
            return ExternalLinkResult(
                discovered=len(discovered),
                registry_matches=registry_count,
                provider_failed=provider_failed,
            )

        injected = 0
        if inject:
            new_content, injected = self._render_links(
                article.content, links, article.language_code
            )
            await self.articles.update_content(article, new_content)

        duration_ms = (time.monotonic() - start_time) * 1000
        linking_logger.generation_complete(
            LINK_KIND, article_id, len(links), deleted, duration_ms
        )
        return ExternalLinkResult(
            created=len(links),
            deleted=deleted,
            discovered=len(discovered),
            registry_matches=registry_count,
            provider_failed=provider_failed,
            injected=injected,
        )

    def insert_links_in_content(
        self, content: str | None, links: list[ExternalLink], language: str | None
    ) -> str:
        """Write outbound links into the eligible paragraphs of content.

        Links injected by an earlier run are removed first. Links that do
        not fit the available zones are left out of the markup.
        """
        return self._render_links(content, links, language)[0]

    def _render_links(
        self, content: str | None, links: list[ExternalLink], language: str | None
    ) -> tuple[str, int]:
        clean = strip_engine_links(content, EXTERNAL_LINK_CLASS)
        structure = analyze_content_structure(
            clean, min_words=self.settings.min_paragraph_words
        )
        placements = calculate_uniform_distribution(
            len(links), structure.eligible_zones, self.settings.max_links_per_paragraph
        )
        rel = "nofollow noopener" if self.settings.external_nofollow else "noopener"
        markup = [
            build_link_html(
                link.url,
                link.anchor_text,
                css_class=EXTERNAL_LINK_CLASS,
                rel=rel,
                title=self.adapter.localize_external_link_title(link.domain, language),
                target_blank=True,
            )
            for link in links[: len(placements)]
        ]
        result = inject_links_at_placements(clean, placements, markup)
        if markup and links:
            linking_logger.content_injected(
                LINK_KIND, links[0].article_id, len(markup), len(structure.eligible_zones)
            )
        return self.adapter.prepare_content(result, language), len(markup)

    async def verify_article_links(self, article: Article) -> VerificationSummary:
        """Re-check every outbound link of an article.

        Without a verifier, statuses are left as they are and only counted.
        A verifier error or timeout marks the link broken.
        """
        result = await self.db.execute(
            select(ExternalLink)
            .where(ExternalLink.article_id == article.id)
            .order_by(ExternalLink.url)
        )
        links = list(result.scalars().all())

        if self.verifier is not None:
            now = datetime.now(UTC)
            for link in links:
                try:
                    alive = await asyncio.wait_for(
                        self.verifier.check_url(link.url),
                        timeout=self.settings.verification_timeout,
                    )
                except Exception as e:
                    linking_logger.provider_failure("verification", article.id, e)
                    alive = False

                previous = link.verification_status
                new_status = (
                    VerificationStatus.VERIFIED.value
                    if alive
                    else VerificationStatus.BROKEN.value
                )
                if new_status not in VERIFICATION_TRANSITIONS.get(previous, frozenset()):
                    logger.error(
                        "Invalid verification transition",
                        extra={"url": link.url, "from": previous, "to": new_status},
                    )
                    continue
                link.verification_status = new_status
                link.last_verified_at = now
                linking_logger.verification_result(link.url, previous, new_status)
            await self.db.flush()

        statuses = [link.verification_status for link in links]
        return VerificationSummary(
            total=len(links),
            verified=statuses.count(VerificationStatus.VERIFIED.value),
            broken=statuses.count(VerificationStatus.BROKEN.value),
            pending=statuses.count(VerificationStatus.PENDING.value),
        )

    async def get_stats(self, platform_id: str) -> ExternalLinkStats:
        """Aggregate outbound link state of a platform."""
        scope = ExternalLink.article_id.in_(
            select(Article.id).where(Article.platform_id == platform_id)
        )
        totals = await self.db.execute(
            select(
                func.count(ExternalLink.id),
                func.sum(
                    case(
                        (ExternalLink.verification_status == VerificationStatus.BROKEN.value, 1),
                        else_=0,
                    )
                ),
                func.sum(
                    case(
                        (ExternalLink.verification_status == VerificationStatus.PENDING.value, 1),
                        else_=0,
                    )
                ),
                func.avg(ExternalLink.authority_score),
            ).where(scope)
        )
        total, broken, pending, average = totals.one()

        by_type_rows = await self.db.execute(
            select(ExternalLink.source_type, func.count(ExternalLink.id))
            .where(scope)
            .group_by(ExternalLink.source_type)
        )
        return ExternalLinkStats(
            total=total or 0,
            by_type={source_type: count for source_type, count in by_type_rows.all()},
            broken=int(broken or 0),
            pending=int(pending or 0),
            average_authority=round(float(average or 0.0), 2),
        )
