"""Uniform link distribution and HTML injection.

calculate_uniform_distribution spreads K links over the eligible paragraph
zones of a document. Zones already holding max_per_zone links are skipped;
over the remaining zones:

- K <= zones: K distinct zones at indices floor(i * stride + 0.5) with
  stride = zones / K, so gaps between chosen zones differ by at most one.
- K > zones: zones are cycled in document order until each holds
  max_per_zone links, existing ones included; links beyond that capacity
  are dropped.

inject_links_at_placements writes link markup into those zones at the
sentence boundary closest to each slot, and strip_engine_links removes
markup injected by an earlier run so regeneration starts from clean text.
"""

import re
from dataclasses import dataclass
from statistics import pvariance

from bs4 import BeautifulSoup, NavigableString, Tag

from linking_engine.core.config import LinkingConfigError
from linking_engine.core.logging import get_logger
from linking_engine.schemas.linking import DistributionReport
from linking_engine.utils.content_structure import (
    DEFAULT_MIN_PARAGRAPH_WORDS,
    ContentZone,
    analyze_content_structure,
)

logger = get_logger(__name__)

# Marker classes of engine-injected anchors
INTERNAL_LINK_CLASS = "internal-link"
EXTERNAL_LINK_CLASS = "external-link"
AFFILIATE_LINK_CLASS = "affiliate-link"

_TAG_RE = re.compile(r"<[^>]*>")
_ANCHOR_RE = re.compile(r"<a\b[^>]*>.*?</a\s*>", re.IGNORECASE | re.DOTALL)
_SENTENCE_END_RE = re.compile(r"[.!?。！？](?=\s|$|<)")


@dataclass(frozen=True)
class Placement:
    """Where one link goes.

    Attributes:
        paragraph_index: Index of the paragraph among all <p> elements
        zone_start: Offset of the paragraph's opening <p
        zone_end: Offset just past the paragraph's closing </p>
        slot: Ordinal of this link within the paragraph (0-based)
        slots_in_zone: Links assigned to the paragraph in total
        inner_start: Offset of the paragraph's inner HTML
        inner_end: Offset of the paragraph's closing </p
    """

    paragraph_index: int
    zone_start: int
    zone_end: int
    slot: int = 0
    slots_in_zone: int = 1
    inner_start: int = 0
    inner_end: int = 0


def _placement(zone: ContentZone, slot: int, slots_in_zone: int) -> Placement:
    return Placement(
        paragraph_index=zone.index,
        zone_start=zone.start,
        zone_end=zone.end,
        slot=slot,
        slots_in_zone=slots_in_zone,
        inner_start=zone.inner_start,
        inner_end=zone.inner_end,
    )


def calculate_uniform_distribution(
    link_count: int,
    zones: list[ContentZone],
    max_per_zone: int = 1,
) -> list[Placement]:
    """Spread link_count links uniformly over zones.

    Args:
        link_count: Number of links to place (K).
        zones: Eligible zones in document order.
        max_per_zone: Cap on links in a single zone, counting the links
            the zone already holds.

    Returns:
        Placements in document order. Shorter than link_count when the
        zones cannot hold every link; empty when there are no open zones.

    Raises:
        LinkingConfigError: If link_count is negative or max_per_zone < 1.
    """
    if link_count < 0:
        raise LinkingConfigError("link_count", link_count, "must be >= 0")
    if max_per_zone < 1:
        raise LinkingConfigError("max_per_zone", max_per_zone, "must be >= 1")

    zones = [zone for zone in zones if zone.link_count < max_per_zone]
    zone_count = len(zones)
    if link_count == 0 or zone_count == 0:
        return []

    if link_count <= zone_count:
        stride = zone_count / link_count
        # Round half up; Python's round() would send 2.5 and 3.5 to the
        # same even neighbour and could reuse a zone
        indices = [int(i * stride + 0.5) for i in range(link_count)]
        return [_placement(zones[idx], 0, 1) for idx in indices]

    room = [max_per_zone - zone.link_count for zone in zones]
    capacity = sum(room)
    placed = min(link_count, capacity)
    if placed < link_count:
        logger.debug(
            "Link count exceeds zone capacity, truncating",
            extra={
                "requested": link_count,
                "capacity": capacity,
                "zone_count": zone_count,
            },
        )

    per_zone = [0] * zone_count
    remaining = placed
    while remaining:
        for i in range(zone_count):
            if remaining and per_zone[i] < room[i]:
                per_zone[i] += 1
                remaining -= 1

    placements: list[Placement] = []
    for zone, count in zip(zones, per_zone):
        placements.extend(_placement(zone, slot, count) for slot in range(count))
    return placements


def validate_distribution(
    content: str | None,
    min_words: int = DEFAULT_MIN_PARAGRAPH_WORDS,
) -> DistributionReport:
    """Measure how evenly links are spread over an already-linked document.

    Counts every <a> in each eligible paragraph. A document without
    eligible paragraphs is reported as uniform with zero counts.
    """
    structure = analyze_content_structure(content, min_words=min_words)
    distribution = {zone.index: zone.link_count for zone in structure.eligible_zones}
    if not distribution:
        return DistributionReport(
            is_uniform=True,
            min_per_paragraph=0,
            max_per_paragraph=0,
            variance=0.0,
            distribution={},
        )

    counts = list(distribution.values())
    low, high = min(counts), max(counts)
    return DistributionReport(
        is_uniform=high - low <= 1,
        min_per_paragraph=low,
        max_per_paragraph=high,
        variance=float(pvariance(counts)),
        distribution=distribution,
    )


def build_link_html(
    href: str,
    anchor_text: str,
    *,
    css_class: str,
    rel: str | None = None,
    title: str | None = None,
    target_blank: bool = False,
    data: dict[str, str] | None = None,
) -> str:
    """Render an <a> element with escaped attributes and text."""
    attrs: dict[str, str] = {"href": href, "class": css_class}
    if title:
        attrs["title"] = title
    if target_blank:
        attrs["target"] = "_blank"
    if rel:
        attrs["rel"] = rel
    for key, value in (data or {}).items():
        attrs[f"data-{key}"] = value

    link = Tag(name="a", attrs=attrs)
    link.string = anchor_text
    return str(link)


def _sentence_boundaries(inner: str) -> list[int]:
    """Offsets inside a paragraph's inner HTML where a link may be inserted.

    A boundary follows sentence-ending punctuation in text that is not
    inside a tag or an existing link. The end of the paragraph is always
    a boundary.
    """
    blocked = [False] * len(inner)
    for pattern in (_TAG_RE, _ANCHOR_RE):
        for match in pattern.finditer(inner):
            for pos in range(match.start(), match.end()):
                blocked[pos] = True

    boundaries = [
        m.end() for m in _SENTENCE_END_RE.finditer(inner) if not blocked[m.start()]
    ]
    end = len(inner.rstrip())
    if end not in boundaries:
        boundaries.append(end)
    return boundaries


def inject_links_at_placements(
    content: str,
    placements: list[Placement],
    link_html: list[str],
) -> str:
    """Insert rendered links into content at their placements.

    placements[i] receives link_html[i]. Each link goes to the sentence
    boundary nearest to its slot's relative position in the paragraph, so
    one link lands mid-paragraph and several are spread across it.
    Insertions run from the end of the document backwards so earlier
    offsets stay valid.

    Placements must come from analyzing this exact content string.
    """
    insertions: list[tuple[int, int, str]] = []
    for placement, markup in zip(placements, link_html):
        inner = content[placement.inner_start : placement.inner_end]
        boundaries = _sentence_boundaries(inner)
        target = len(inner) * (placement.slot + 1) / (placement.slots_in_zone + 1)
        offset = min(boundaries, key=lambda b: (abs(b - target), b))
        insertions.append((placement.inner_start + offset, placement.slot, markup))

    result = content
    for position, _slot, markup in sorted(insertions, reverse=True):
        result = f"{result[:position]} {markup}{result[position:]}"
    return result


def strip_engine_links(html: str | None, css_class: str) -> str:
    """Remove anchors of css_class that an earlier run injected.

    Injected anchors carry their own text (plus one leading space), so
    they are removed entirely rather than unwrapped. Only anchors with
    css_class as one of their class names are removed; manual anchors and
    anchors whose class merely contains the name are left as they are.
    Content without such anchors is returned untouched, otherwise it is
    re-serialized by the parser.
    """
    if not html or css_class not in html:
        return html or ""

    soup = BeautifulSoup(html, "html.parser")

    # Collect first to avoid modifying while iterating
    injected: list[Tag] = list(soup.find_all("a", class_=css_class))
    if not injected:
        return html

    for a_tag in injected:
        previous = a_tag.previous_sibling
        if isinstance(previous, NavigableString) and previous.endswith(" "):
            previous.replace_with(previous[:-1])
        a_tag.decompose()

    return str(soup)
