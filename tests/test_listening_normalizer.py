"""
Tests for answer normalization and pair canonicalization.
"""

from bandscore_app.modules.listening.logics.normalizer import (
    canonicalize_pairs,
    normalize,
    normalize_pairs,
)


class TestNormalize:
    """Whitespace and case folding of free-text answers."""

    def test_trims_and_lowercases(self):
        assert normalize("  Paris ") == normalize("paris") == "paris"

    def test_collapses_internal_whitespace(self):
        assert normalize("New \t  York\nCity") == "new york city"

    def test_keeps_punctuation_and_digits(self):
        """Spelling matters in gap answers, so nothing else is stripped."""
        assert normalize("St. John's 24") == "st. john's 24"

    def test_none_is_empty(self):
        assert normalize(None) == ""

    def test_sharp_s_is_a_distinct_spelling(self):
        """Plain lower-casing: "straße" and "strasse" are different answers."""
        assert normalize("STRASSE") == "strasse"
        assert normalize("Straße") == "straße"
        assert normalize("STRASSE") != normalize("straße")


class TestCanonicalizePairs:

    def test_order_independent(self):
        assert canonicalize_pairs([("A", "1"), ("B", "2")]) == canonicalize_pairs([("B", "2"), ("A", "1")])

    def test_sorts_by_left_then_right(self):
        assert canonicalize_pairs([("b", "1"), ("a", "2"), ("a", "1")]) == [("a", "1"), ("a", "2"), ("b", "1")]

    def test_normalize_pairs_folds_both_sides(self):
        assert normalize_pairs([(" Kitchen ", "C"), ("hall", " a")]) == [("hall", "a"), ("kitchen", "c")]
