"""Candidate scoring shared by the internal, external and affiliate services.

Each service wraps its candidates in a scorer and ranks them with
rank_candidates. Scores are plain floats; higher is better.
"""

import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any, Generic, Protocol, TypeVar

from linking_engine.core.config import LinkingConfigError
from linking_engine.models.affiliate_link import AffiliateLink
from linking_engine.models.article import Article
from linking_engine.models.authority_domain import SourceType
from linking_engine.utils.content_structure import extract_text

T = TypeVar("T")

MIN_TERM_LENGTH = 3

_TERM_RE = re.compile(r"\w+", re.UNICODE)
_UNSPACED_CHAR_RE = re.compile(r"[\u3040-\u30ff\u3400-\u4dbf\u4e00-\u9fff\uac00-\ud7af]")

# Theme relevance of an offer whose theme list is empty (matches everything)
WILDCARD_THEME_RELEVANCE = 0.5


@dataclass
class ScoredCandidate(Generic[T]):
    """A candidate with its score and the components behind it."""

    item: T
    score: float
    breakdown: dict[str, float] = field(default_factory=dict)


class CandidateScorer(Protocol[T]):
    def score(self, item: T) -> ScoredCandidate[T]: ...


def tokenize(text: str | None) -> set[str]:
    """Normalized term set of a text.

    Terms are lower-cased word tokens of at least MIN_TERM_LENGTH
    characters. Characters of unspaced scripts count as terms on their own.
    """
    if not text:
        return set()
    terms: set[str] = set()
    for token in _TERM_RE.findall(text.lower()):
        unspaced = _UNSPACED_CHAR_RE.findall(token)
        if unspaced:
            terms.update(unspaced)
            token = _UNSPACED_CHAR_RE.sub(" ", token)
            terms.update(t for t in token.split() if len(t) >= MIN_TERM_LENGTH)
        elif len(token) >= MIN_TERM_LENGTH:
            terms.add(token)
    return terms


def lexical_overlap(a: str | set[str] | None, b: str | set[str] | None) -> float:
    """Jaccard ratio of the term sets of a and b, 0.0 to 1.0."""
    terms_a = a if isinstance(a, set) else tokenize(a)
    terms_b = b if isinstance(b, set) else tokenize(b)
    if not terms_a or not terms_b:
        return 0.0
    return len(terms_a & terms_b) / len(terms_a | terms_b)


def article_terms(article: Article) -> set[str]:
    """Terms of an article's title and visible body text."""
    return tokenize(f"{article.title or ''} {extract_text(article.content)}")


def _same(a: str | None, b: str | None) -> bool:
    return bool(a and b and a.strip().lower() == b.strip().lower())


class InternalRelevanceScorer:
    """Relevance of a target article to a source article, 0-100.

    score = (wt * theme + wc * country + wl * lexical) / (wt + wc + wl) * 100
    where theme and country are exact matches (0 or 1) and lexical is the
    Jaccard overlap of the two articles' terms.
    """

    def __init__(
        self,
        source: Article,
        theme_weight: float = 0.5,
        country_weight: float = 0.2,
        lexical_weight: float = 0.3,
    ) -> None:
        total = theme_weight + country_weight + lexical_weight
        if total <= 0:
            raise LinkingConfigError(
                "internal weights", total, "theme, country and lexical weights sum to 0"
            )
        self.source = source
        self.theme_weight = theme_weight
        self.country_weight = country_weight
        self.lexical_weight = lexical_weight
        self._total = total
        self._source_terms = article_terms(source)

    def score(self, item: Article) -> ScoredCandidate[Article]:
        theme = 1.0 if _same(self.source.theme, item.theme) else 0.0
        country = 1.0 if _same(self.source.country_code, item.country_code) else 0.0
        lexical = lexical_overlap(self._source_terms, article_terms(item))

        weighted = (
            self.theme_weight * theme
            + self.country_weight * country
            + self.lexical_weight * lexical
        )
        return ScoredCandidate(
            item=item,
            score=round(weighted / self._total * 100, 2),
            breakdown={"theme": theme, "country": country, "lexical": round(lexical, 4)},
        )


class AuthorityScorer:
    """Authority score plus bonuses for official and local sources.

    Items need source_type, authority_score and country_code attributes.
    """

    def __init__(
        self,
        country_code: str | None,
        government_bonus: float = 20.0,
        organization_bonus: float = 10.0,
        same_country_bonus: float = 10.0,
    ) -> None:
        self.country_code = country_code
        self.government_bonus = government_bonus
        self.organization_bonus = organization_bonus
        self.same_country_bonus = same_country_bonus

    def score(self, item: Any) -> ScoredCandidate[Any]:
        source_type = getattr(item.source_type, "value", item.source_type)
        breakdown = {"authority": float(item.authority_score or 0.0)}
        if source_type == SourceType.GOVERNMENT.value:
            breakdown["government_bonus"] = self.government_bonus
        elif source_type == SourceType.ORGANIZATION.value:
            breakdown["organization_bonus"] = self.organization_bonus
        if _same(self.country_code, item.country_code):
            breakdown["same_country_bonus"] = self.same_country_bonus
        return ScoredCandidate(item=item, score=sum(breakdown.values()), breakdown=breakdown)


class AffiliateScorer:
    """Commercial score of an offer for one article.

    score = wc * commission_rate + wp * priority + wr * theme_relevance
    """

    def __init__(
        self,
        theme: str | None,
        commission_weight: float = 1.0,
        priority_weight: float = 0.5,
        relevance_weight: float = 20.0,
    ) -> None:
        self.theme = theme
        self.commission_weight = commission_weight
        self.priority_weight = priority_weight
        self.relevance_weight = relevance_weight

    def theme_relevance(self, offer: AffiliateLink) -> float:
        if not offer.themes:
            return WILDCARD_THEME_RELEVANCE
        return 1.0 if any(_same(self.theme, t) for t in offer.themes) else 0.0

    def score(self, item: AffiliateLink) -> ScoredCandidate[AffiliateLink]:
        relevance = self.theme_relevance(item)
        breakdown = {
            "commission": self.commission_weight * (item.commission_rate or 0.0),
            "priority": self.priority_weight * (item.priority or 0),
            "theme": self.relevance_weight * relevance,
        }
        return ScoredCandidate(
            item=item, score=round(sum(breakdown.values()), 4), breakdown=breakdown
        )


def rank_candidates(
    items: Iterable[T],
    scorer: CandidateScorer[T],
    limit: int | None = None,
    tie_key: Callable[[T], Any] | None = None,
) -> list[ScoredCandidate[T]]:
    """Score items and sort them best first.

    Ties are broken by tie_key (ascending) when given, otherwise by input
    order, so equal inputs always rank the same way.
    """
    scored = [scorer.score(item) for item in items]
    if tie_key is None:
        scored.sort(key=lambda c: -c.score)
    else:
        scored.sort(key=lambda c: (-c.score, tie_key(c.item)))
    return scored if limit is None else scored[: max(limit, 0)]
