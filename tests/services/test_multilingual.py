"""Tests for MultilingualLinkAdapter.

- Language code normalization and support checks
- Localized anchors per type, deterministic variant selection
- Language detection by script and by stopwords
- External link titles and official-source labels
- RTL preparation (idempotent)
- Locale-aware number formatting
"""

import pytest

from linking_engine.core.config import LinkingConfigError
from linking_engine.models.internal_link import AnchorType
from linking_engine.services.multilingual import MultilingualLinkAdapter


@pytest.fixture
def adapter() -> MultilingualLinkAdapter:
    return MultilingualLinkAdapter()


# ---------------------------------------------------------------------------
# Language codes
# ---------------------------------------------------------------------------


class TestLanguageCodes:
    @pytest.mark.parametrize(
        ("code", "expected"),
        [("fr-FR", "fr"), ("pt_BR", "pt"), ("EN", "en"), ("cn", "zh"), ("", "")],
    )
    def test_normalize(
        self, adapter: MultilingualLinkAdapter, code: str, expected: str
    ) -> None:
        assert adapter.normalize_language_code(code) == expected

    def test_supported_languages(self, adapter: MultilingualLinkAdapter) -> None:
        assert set(adapter.supported_languages) == {
            "fr", "en", "es", "de", "pt", "ru", "zh", "ar", "hi",
        }
        assert adapter.is_language_supported("de-AT") is True
        assert adapter.is_language_supported("it") is False

    def test_language_name(self, adapter: MultilingualLinkAdapter) -> None:
        assert adapter.get_language_name("de-AT") == "Deutsch"
        assert adapter.get_language_name("xx") == "xx"


# ---------------------------------------------------------------------------
# Anchors
# ---------------------------------------------------------------------------


class TestGenerateLocalizedAnchor:
    def test_exact_match_returns_base_text(self, adapter: MultilingualLinkAdapter) -> None:
        anchor = adapter.generate_localized_anchor(
            "Visa étudiant", "fr", AnchorType.EXACT_MATCH
        )
        assert anchor == "Visa étudiant"

    def test_long_tail_interpolates(self, adapter: MultilingualLinkAdapter) -> None:
        anchor = adapter.generate_localized_anchor(
            "Visa étudiant", "fr", AnchorType.LONG_TAIL, variant=0
        )
        assert anchor == "tout savoir sur Visa étudiant"

    def test_generic_ignores_base_text(self, adapter: MultilingualLinkAdapter) -> None:
        anchor = adapter.generate_localized_anchor(
            "Visa étudiant", "fr", "generic", variant=0
        )
        assert anchor == "en savoir plus"

    def test_unsupported_language_uses_english(
        self, adapter: MultilingualLinkAdapter
    ) -> None:
        anchor = adapter.generate_localized_anchor(
            "work permits", "it", AnchorType.CTA, variant=1
        )
        assert anchor == "learn more about work permits"

    def test_variant_wraps_around(self, adapter: MultilingualLinkAdapter) -> None:
        first = adapter.generate_localized_anchor("x", "en", AnchorType.CTA, variant=0)
        wrapped = adapter.generate_localized_anchor("x", "en", AnchorType.CTA, variant=3)
        assert first == wrapped

    def test_default_variant_is_deterministic(
        self, adapter: MultilingualLinkAdapter
    ) -> None:
        runs = {
            adapter.generate_localized_anchor("Assurance santé", "fr", AnchorType.CTA)
            for _ in range(5)
        }
        assert len(runs) == 1

    @pytest.mark.parametrize(
        "language", ["fr", "en", "es", "de", "pt", "ru", "zh", "ar", "hi"]
    )
    def test_questions_end_with_question_mark(
        self, adapter: MultilingualLinkAdapter, language: str
    ) -> None:
        for variant in range(3):
            anchor = adapter.generate_localized_anchor(
                "visa", language, AnchorType.QUESTION, variant=variant
            )
            assert anchor.endswith(("?", "？"))

    def test_question_does_not_double_mark(
        self, adapter: MultilingualLinkAdapter
    ) -> None:
        anchor = adapter.generate_localized_anchor(
            "Comment obtenir un visa ?", "fr", AnchorType.QUESTION, variant=0
        )
        assert anchor.count("?") == 1

    def test_unknown_anchor_type_raises(self, adapter: MultilingualLinkAdapter) -> None:
        with pytest.raises(LinkingConfigError):
            adapter.generate_localized_anchor("visa", "fr", "shouting")


# ---------------------------------------------------------------------------
# Language detection
# ---------------------------------------------------------------------------


class TestDetectLanguage:
    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("签证申请指南", "zh"),
            ("طلب التأشيرة للطلاب", "ar"),
            ("वीज़ा आवेदन प्रक्रिया", "hi"),
            ("Как получить визу", "ru"),
        ],
    )
    def test_scripts(
        self, adapter: MultilingualLinkAdapter, text: str, expected: str
    ) -> None:
        assert adapter.detect_language(text) == expected

    def test_french_by_stopwords(self, adapter: MultilingualLinkAdapter) -> None:
        text = (
            "Le visa est nécessaire pour les étudiants et les travailleurs "
            "qui sont dans la région"
        )
        assert adapter.detect_language(text) == "fr"

    def test_english_by_stopwords(self, adapter: MultilingualLinkAdapter) -> None:
        text = (
            "The visa is required for students and workers who are in the "
            "region with this permit"
        )
        assert adapter.detect_language(text) == "en"

    def test_markup_is_ignored(self, adapter: MultilingualLinkAdapter) -> None:
        html = "<p>Le visa est pour les étudiants et la famille</p>"
        assert adapter.detect_language(html) == "fr"

    @pytest.mark.parametrize("text", ["visa", "hello world", "", None])
    def test_low_confidence_returns_none(
        self, adapter: MultilingualLinkAdapter, text: str | None
    ) -> None:
        assert adapter.detect_language(text) is None


# ---------------------------------------------------------------------------
# External titles
# ---------------------------------------------------------------------------


class TestExternalTitles:
    def test_localized_title(self, adapter: MultilingualLinkAdapter) -> None:
        assert (
            adapter.localize_external_link_title("service-public.fr", "fr")
            == "Visiter service-public.fr"
        )
        assert adapter.localize_external_link_title("bund.de", "de") == "Besuchen Sie bund.de"
        assert adapter.localize_external_link_title("gov.it", "it") == "Visit gov.it"

    def test_official_source_label(self, adapter: MultilingualLinkAdapter) -> None:
        assert adapter.official_source_label("fr") == "site officiel"
        assert adapter.official_source_label("en", variant=1) == "official source"


# ---------------------------------------------------------------------------
# RTL
# ---------------------------------------------------------------------------


class TestPrepareContent:
    def test_wraps_rtl_content(self, adapter: MultilingualLinkAdapter) -> None:
        assert adapter.prepare_content("<p>نص</p>", "ar") == '<div dir="rtl"><p>نص</p></div>'

    def test_idempotent(self, adapter: MultilingualLinkAdapter) -> None:
        once = adapter.prepare_content("<p>טקסט</p>", "he")
        assert adapter.prepare_content(once, "he") == once

    def test_leading_div_gets_attribute(self, adapter: MultilingualLinkAdapter) -> None:
        html = '<div class="body"><p>نص</p></div>'
        assert (
            adapter.prepare_content(html, "ar")
            == '<div dir="rtl" class="body"><p>نص</p></div>'
        )

    def test_ltr_direction_replaced(self, adapter: MultilingualLinkAdapter) -> None:
        html = '<div dir="ltr"><p>نص</p></div>'
        assert adapter.prepare_content(html, "fa") == '<div dir="rtl"><p>نص</p></div>'

    def test_ltr_languages_untouched(self, adapter: MultilingualLinkAdapter) -> None:
        assert adapter.prepare_content("<p>text</p>", "en") == "<p>text</p>"


# ---------------------------------------------------------------------------
# Numbers
# ---------------------------------------------------------------------------


class TestFormatNumber:
    @pytest.mark.parametrize(
        ("number", "language", "expected"),
        [
            (1234567.89, "fr", "1 234 567,89"),
            (1000, "ru", "1 000"),
            (1234567.5, "de", "1.234.567,50"),
            (1234567, "en", "1,234,567"),
            (-1234.5, "en", "-1,234.50"),
            (12345678, "hi", "1,23,45,678"),
            (1234, "hi", "1,234"),
            (999, "zh", "999"),
        ],
    )
    def test_locales(
        self,
        adapter: MultilingualLinkAdapter,
        number: float,
        language: str,
        expected: str,
    ) -> None:
        assert adapter.format_number(number, language) == expected

    def test_explicit_decimals(self, adapter: MultilingualLinkAdapter) -> None:
        assert adapter.format_number(3.14159, "en", decimals=1) == "3.1"
