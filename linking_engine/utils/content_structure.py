"""Content structure analysis for link placement.

Splits an article body into paragraph zones and heading zones. Offsets are
character offsets into the original string and cover the full element
(`<p ...>` through `</p>`); inner_start/inner_end delimit the paragraph's
inner HTML so callers can insert markup without re-parsing.

Pure functions, no I/O. Malformed, empty or tag-less input yields empty
zone lists instead of raising.
"""

import re
from dataclasses import dataclass, field

from bs4 import BeautifulSoup

DEFAULT_MIN_PARAGRAPH_WORDS = 20

_PARAGRAPH_RE = re.compile(r"<p(?:\s[^>]*)?>(.*?)</p\s*>", re.IGNORECASE | re.DOTALL)
_HEADING_RE = re.compile(
    r"<h([1-6])(?:\s[^>]*)?>(.*?)</h\1\s*>", re.IGNORECASE | re.DOTALL
)

# Scripts written without spaces: every character counts as a word
_UNSPACED_SCRIPT_RE = re.compile(r"[\u3040-\u30ff\u3400-\u4dbf\u4e00-\u9fff\uac00-\ud7af]")


@dataclass
class ContentZone:
    """A paragraph of the document.

    Attributes:
        index: Ordinal of the paragraph among all <p> elements
        start: Offset of the opening <p
        end: Offset just past the closing </p>
        inner_start: Offset of the first character inside the paragraph
        inner_end: Offset of the closing </p
        word_count: Words of visible text, markup ignored
        link_count: Number of <a> elements already in the paragraph
    """

    index: int
    start: int
    end: int
    inner_start: int
    inner_end: int
    word_count: int
    link_count: int = 0

    @property
    def has_existing_link(self) -> bool:
        return self.link_count > 0


@dataclass
class HeadingZone:
    level: int
    start: int
    end: int
    text: str


@dataclass
class ContentStructure:
    """Paragraph and heading zones of one document."""

    paragraphs: list[ContentZone] = field(default_factory=list)
    headings: list[HeadingZone] = field(default_factory=list)
    word_count: int = 0
    min_words: int = DEFAULT_MIN_PARAGRAPH_WORDS

    @property
    def eligible_zones(self) -> list[ContentZone]:
        """Paragraphs long enough to receive a link."""
        return [p for p in self.paragraphs if p.word_count >= self.min_words]


def extract_text(html: str | None) -> str:
    """Return the visible text of an HTML fragment."""
    if not html:
        return ""
    return BeautifulSoup(html, "html.parser").get_text(" ")


def count_words(text: str) -> int:
    """Count words in plain text.

    Whitespace-separated tokens count once when they contain a letter or
    digit; characters of unspaced scripts (Chinese, Japanese, Korean) count
    individually.
    """
    count = 0
    for token in text.split():
        unspaced = len(_UNSPACED_SCRIPT_RE.findall(token))
        if unspaced:
            rest = _UNSPACED_SCRIPT_RE.sub("", token)
            count += unspaced + (1 if any(ch.isalnum() for ch in rest) else 0)
        elif any(ch.isalnum() for ch in token):
            count += 1
    return count


def analyze_content_structure(
    html: str | None,
    min_words: int = DEFAULT_MIN_PARAGRAPH_WORDS,
) -> ContentStructure:
    """Analyze an article body into paragraph and heading zones.

    Short paragraphs stay in `paragraphs` (so indexes match the document)
    but are left out of `eligible_zones`.

    Args:
        html: Article body.
        min_words: Minimum word count for a paragraph to be eligible.

    Returns:
        ContentStructure; empty when html has no paragraphs.
    """
    structure = ContentStructure(min_words=min_words)
    if not html:
        return structure

    structure.word_count = count_words(extract_text(html))

    for index, match in enumerate(_PARAGRAPH_RE.finditer(html)):
        soup = BeautifulSoup(match.group(1), "html.parser")
        structure.paragraphs.append(
            ContentZone(
                index=index,
                start=match.start(),
                end=match.end(),
                inner_start=match.start(1),
                inner_end=match.end(1),
                word_count=count_words(soup.get_text(" ")),
                link_count=len(soup.find_all("a")),
            )
        )

    for match in _HEADING_RE.finditer(html):
        structure.headings.append(
            HeadingZone(
                level=int(match.group(1)),
                start=match.start(),
                end=match.end(),
                text=" ".join(extract_text(match.group(2)).split()),
            )
        )

    return structure
