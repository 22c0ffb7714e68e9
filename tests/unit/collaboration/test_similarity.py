"""Unit tests for agentdispatch.collaboration.similarity module."""

import pytest

from agentdispatch.collaboration.similarity import (
    levenshtein_distance,
    levenshtein_similarity,
    normalize_output,
)


class TestLevenshtein:
    """Tests for edit distance and similarity."""

    @pytest.mark.parametrize(
        ("a", "b", "distance"),
        [("kitten", "sitting", 3), ("", "abc", 3), ("abc", "abc", 0), ("flaw", "lawn", 2)],
    )
    def test_distance(self, a: str, b: str, distance: int) -> None:
        """Distance counts insertions, deletions and substitutions."""
        assert levenshtein_distance(a, b) == distance
        assert levenshtein_distance(b, a) == distance

    def test_similarity_scaled_by_longest(self) -> None:
        """Similarity is one minus distance over the longer length."""
        assert levenshtein_similarity("kitten", "sitting") == pytest.approx(1 - 3 / 7)

    def test_empty_strings_identical(self) -> None:
        """Two empty strings are fully similar."""
        assert levenshtein_similarity("", "") == 1.0

    def test_disjoint(self) -> None:
        """Strings with nothing in common score 0."""
        assert levenshtein_similarity("abc", "xyz") == 0.0

    def test_short_answer_inside_sentence(self) -> None:
        """A bare answer and a sentence ending in it share only one character."""
        assert levenshtein_similarity("4", "The answer is 4") == pytest.approx(1 / 15)


class TestNormalizeOutput:
    """Tests for normalize_output."""

    def test_normalizes(self) -> None:
        """Case, whitespace runs and trailing punctuation are dropped."""
        assert normalize_output("  The Answer\n\tis  42!! ") == "the answer is 42"

    def test_inner_punctuation_kept(self) -> None:
        """Only trailing punctuation is removed."""
        assert normalize_output("a, b.") == "a, b"
