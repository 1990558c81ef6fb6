"""Multilingual anchor adapter.

Produces localized anchor texts, link titles and number formats for the
nine supported languages, detects the language of a text, and prepares
content for right-to-left scripts. Phrase tables are data in
anchor_templates; this module only selects and interpolates.
"""

import re
import zlib

from linking_engine.core.config import LinkingConfigError
from linking_engine.core.logging import get_logger
from linking_engine.models.internal_link import AnchorType
from linking_engine.services.anchor_templates import (
    ANCHOR_TEMPLATES,
    EXTERNAL_TITLE_TEMPLATES,
    LANGUAGE_NAMES,
    LATIN_STOPWORDS,
    NUMBER_FORMATS,
    OFFICIAL_SOURCE_LABELS,
)
from linking_engine.utils.content_structure import extract_text

logger = get_logger(__name__)

DEFAULT_LANGUAGE = "en"

RTL_LANGUAGES: frozenset[str] = frozenset({"ar", "he", "fa", "ur"})

LANGUAGE_ALIASES: dict[str, str] = {
    "cn": "zh",
    "br": "pt",
    "jp": "ja",
}

# Script ranges checked before stopword scoring, in priority order
_SCRIPT_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("zh", re.compile(r"[\u4e00-\u9fff\u3400-\u4dbf]")),
    ("ar", re.compile(r"[\u0600-\u06ff]")),
    ("hi", re.compile(r"[\u0900-\u097f]")),
    ("ru", re.compile(r"[\u0400-\u04ff]")),
)

_WORD_RE = re.compile(r"\w+", re.UNICODE)
_LEADING_DIV_RE = re.compile(r"^(\s*)<div\b([^>]*)>", re.IGNORECASE)
_DIR_ATTR_RE = re.compile(r"""\bdir\s*=\s*(["']?)([a-z]*)\1""", re.IGNORECASE)
_TRAILING_PUNCT = " \t\n?？.!:;"

MIN_STOPWORD_HITS = 3
# Share of letters a script must cover before it decides the language
MIN_SCRIPT_RATIO = 0.2


class MultilingualLinkAdapter:
    """Localizes anchors and link titles.

    Stateless; one instance can be shared by all services.
    """

    @staticmethod
    def normalize_language_code(code: str | None) -> str:
        """Lower-case a language tag and drop its region subtag.

        'fr-FR' -> 'fr', 'pt_BR' -> 'pt', 'cn' -> 'zh'. Empty input
        returns an empty string.
        """
        if not code:
            return ""
        primary = re.split(r"[-_]", code.strip().lower(), maxsplit=1)[0]
        return LANGUAGE_ALIASES.get(primary, primary)

    @property
    def supported_languages(self) -> list[str]:
        return list(ANCHOR_TEMPLATES)

    def is_language_supported(self, code: str | None) -> bool:
        return self.normalize_language_code(code) in ANCHOR_TEMPLATES

    def get_language_name(self, code: str | None) -> str:
        """Endonym of a language, or the normalized code when unknown."""
        normalized = self.normalize_language_code(code)
        return LANGUAGE_NAMES.get(normalized, normalized)

    def _resolve_language(self, code: str | None) -> str:
        normalized = self.normalize_language_code(code)
        if normalized in ANCHOR_TEMPLATES:
            return normalized
        if normalized:
            logger.debug(
                "Unsupported language, using default templates",
                extra={"language_code": normalized, "fallback": DEFAULT_LANGUAGE},
            )
        return DEFAULT_LANGUAGE

    def generate_localized_anchor(
        self,
        base_text: str,
        language: str | None,
        anchor_type: AnchorType | str,
        variant: int | None = None,
    ) -> str:
        """Build an anchor text of the given type in the given language.

        Args:
            base_text: Target title or service name interpolated into the
                template. Returned unchanged for exact_match.
            language: Language code; unsupported codes use English.
            anchor_type: AnchorType or its value.
            variant: Template index (wraps around). None selects a template
                from a stable hash of base_text so reruns agree.

        Raises:
            LinkingConfigError: If anchor_type is not a known AnchorType.
        """
        try:
            kind = AnchorType(anchor_type)
        except ValueError as e:
            raise LinkingConfigError(
                "anchor_type", anchor_type, "unknown anchor type"
            ) from e

        base = (base_text or "").strip()
        if kind is AnchorType.EXACT_MATCH:
            return base

        templates = ANCHOR_TEMPLATES[self._resolve_language(language)][kind.value]
        if variant is None:
            variant = zlib.crc32(base.encode("utf-8"))
        template = templates[variant % len(templates)]
        return template.format(text=base.rstrip(_TRAILING_PUNCT))

    def detect_language(self, text: str | None) -> str | None:
        """Guess the language of a text.

        Non-Latin scripts are recognized by character range. Latin-script
        text is scored against per-language stopword lists and needs more
        than MIN_STOPWORD_HITS hits and a strict winner; otherwise None.
        """
        plain = extract_text(text) if text and "<" in text else (text or "")
        if not plain.strip():
            return None

        letters = sum(1 for ch in plain if ch.isalpha())
        for language, pattern in _SCRIPT_PATTERNS:
            hits = len(pattern.findall(plain))
            if hits and hits >= letters * MIN_SCRIPT_RATIO:
                return language

        words = [w.lower() for w in _WORD_RE.findall(plain)]
        scores = {
            language: sum(1 for w in words if w in stopwords)
            for language, stopwords in LATIN_STOPWORDS.items()
        }
        ranked = sorted(scores.items(), key=lambda item: item[1], reverse=True)
        best_language, best_score = ranked[0]
        runner_up = ranked[1][1] if len(ranked) > 1 else 0
        if best_score > MIN_STOPWORD_HITS and best_score > runner_up:
            return best_language
        return None

    def localize_external_link_title(self, domain: str, language: str | None) -> str:
        """Localized 'Visit {domain}' title for an outbound link."""
        template = EXTERNAL_TITLE_TEMPLATES[self._resolve_language(language)]
        return template.format(domain=domain)

    def official_source_label(self, language: str | None, variant: int = 0) -> str:
        """Localized 'official website' phrasing for government sources."""
        labels = OFFICIAL_SOURCE_LABELS[self._resolve_language(language)]
        return labels[variant % len(labels)]

    def prepare_content(self, html: str, language: str | None) -> str:
        """Mark content as right-to-left for RTL languages.

        Adds dir="rtl" to a leading <div>, or wraps the content in one.
        Content that is already marked is returned unchanged; other
        languages pass through.
        """
        if self.normalize_language_code(language) not in RTL_LANGUAGES or not html:
            return html

        match = _LEADING_DIV_RE.match(html)
        if match is None:
            return f'<div dir="rtl">{html}</div>'

        attrs = match.group(2)
        dir_match = _DIR_ATTR_RE.search(attrs)
        if dir_match is None:
            new_attrs = f' dir="rtl"{attrs}'
        elif dir_match.group(2).lower() == "rtl":
            return html
        else:
            new_attrs = attrs[: dir_match.start()] + 'dir="rtl"' + attrs[dir_match.end() :]
        return f"{match.group(1)}<div{new_attrs}>{html[match.end():]}"

    def format_number(
        self, number: int | float, language: str | None, decimals: int | None = None
    ) -> str:
        """Format a number with the language's separators.

        Args:
            number: Value to format.
            language: Language code; unsupported codes use English.
            decimals: Digits after the decimal separator. Defaults to 0 for
                ints and 2 for floats.
        """
        thousands, decimal_sep, grouping = NUMBER_FORMATS[self._resolve_language(language)]
        if decimals is None:
            decimals = 0 if isinstance(number, int) else 2

        raw = f"{abs(number):.{decimals}f}"
        integer_part, _, fraction = raw.partition(".")
        if grouping == "indian":
            grouped = _group_indian(integer_part, thousands)
        else:
            grouped = _group_western(integer_part, thousands)

        sign = "-" if number < 0 and float(raw) != 0 else ""
        if fraction:
            return f"{sign}{grouped}{decimal_sep}{fraction}"
        return f"{sign}{grouped}"


def _group_western(digits: str, sep: str) -> str:
    groups = []
    while len(digits) > 3:
        groups.insert(0, digits[-3:])
        digits = digits[:-3]
    groups.insert(0, digits)
    return sep.join(groups)


def _group_indian(digits: str, sep: str) -> str:
    """Group as 12,34,567: last three digits, then pairs."""
    if len(digits) <= 3:
        return digits
    head, tail = digits[:-3], digits[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    groups.insert(0, head)
    return sep.join(groups + [tail])
