"""
Unit tests for text normalization.

Run: pytest tests/unit/test_text_utils.py -v
"""

import pytest

from utils.text_utils import fold_accents, normalize_text, slugify


SAMPLES = [
    "Red Mug",
    "The Red Mug (Large)",
    "red-mug-parcel-rate",
    "Blue Bowl-P12",
    "Mug [Clearance] - Set of 6 -parcel-rate",
    "Crème Brûlée Dish",
    "  A   Tea   for  Two  ",
    "snake_case_title",
    "((nested) brackets)",
    "under_the_sea",
    "100% Cotton Towel / 50x90cm",
    "",
    "the a an",
    "Ferrari-P1-P2",
    "Unclosed (bracket title",
    "Красная Кружка (Большая)",
    "红色马克杯",
    "Straße Becher",
]


class TestNormalizeText:
    """Tests for normalize_text()"""

    def test_lowercases_and_collapses_punctuation(self):
        """Should lower-case and collapse non-alphanumeric runs to one space."""
        assert normalize_text("Red  Mug!!  Blue") == "red mug blue"

    def test_strips_parenthetical_and_bracketed_segments(self):
        """Should drop (...) and [...] segments."""
        assert normalize_text("Red Mug (Large) [Clearance]") == "red mug"

    def test_strips_parcel_rate_suffix(self):
        """Should drop a trailing -parcel-rate."""
        assert normalize_text("red-mug-parcel-rate") == "red mug"

    def test_strips_pack_number_suffix(self):
        """Should drop a trailing -P<digits>."""
        assert normalize_text("Blue Bowl-P12") == "blue bowl"

    def test_strips_stacked_suffixes(self):
        """Should drop -pNN exposed by removing -parcel-rate."""
        assert normalize_text("red-mug-p12-parcel-rate") == "red mug"

    def test_keeps_suffix_like_text_mid_string(self):
        """Only trailing suffixes are removed."""
        assert normalize_text("P12 Mug") == "p12 mug"

    def test_removes_stopwords_as_whole_words(self):
        """Should drop articles and prepositions but not words containing them."""
        assert normalize_text("The Theory of Another Mug") == "theory another mug"

    def test_folds_accents(self):
        """Should compare accented and plain titles equally."""
        assert normalize_text("Crème Brûlée") == normalize_text("Creme Brulee")

    def test_title_and_handle_normalize_equally(self):
        """Title and its handle should produce the same key."""
        assert normalize_text("The Red Mug") == normalize_text("the-red-mug")

    def test_keeps_non_latin_titles(self):
        """Cyrillic and CJK titles keep their words instead of collapsing to empty."""
        assert normalize_text("Красная Кружка (Большая)") == "красная кружка"
        assert normalize_text("红色马克杯") == "红色马克杯"

    def test_non_latin_title_matches_its_handle(self):
        assert normalize_text("Красная Кружка") == normalize_text("красная-кружка")

    def test_casefolds(self):
        assert normalize_text("STRASSE Becher") == normalize_text("Straße Becher")

    def test_underscore_is_a_separator(self):
        assert normalize_text("snake_case_title") == "snake case title"

    @pytest.mark.parametrize("value", [None, "", "   ", "(only brackets)"])
    def test_empty_input_returns_empty_string(self, value):
        """Should return "" when nothing survives."""
        assert normalize_text(value) == ""

    @pytest.mark.parametrize("value", SAMPLES)
    def test_is_idempotent(self, value):
        """normalize(normalize(x)) == normalize(x)."""
        once = normalize_text(value)
        assert normalize_text(once) == once


class TestSlugify:
    """Tests for slugify() and fold_accents()"""

    def test_slugify_builds_handle(self):
        assert slugify("Red Mug (Large)") == "red-mug-large"

    def test_slugify_non_latin(self):
        assert slugify("Красная Кружка") == "красная-кружка"

    def test_slugify_empty(self):
        assert slugify(None) == ""

    def test_fold_accents(self):
        assert fold_accents("Crème Brûlée") == "Creme Brulee"
