"""Utility modules."""

from linking_engine.utils.content_structure import (
    DEFAULT_MIN_PARAGRAPH_WORDS,
    ContentStructure,
    ContentZone,
    HeadingZone,
    analyze_content_structure,
    count_words,
    extract_text,
)

__all__ = [
    "DEFAULT_MIN_PARAGRAPH_WORDS",
    "ContentStructure",
    "ContentZone",
    "HeadingZone",
    "analyze_content_structure",
    "count_words",
    "extract_text",
]
