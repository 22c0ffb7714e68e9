"""Text similarity used to cluster near-duplicate outputs for voting."""

from __future__ import annotations

import re

from rapidfuzz.distance import Levenshtein

_WHITESPACE = re.compile(r"\s+")


def levenshtein_distance(a: str, b: str) -> int:
    """Minimum number of single-character edits turning ``a`` into ``b``."""
    return Levenshtein.distance(a, b)


def levenshtein_similarity(a: str, b: str) -> float:
    """Edit distance scaled by the longer length to [0, 1]; 1.0 means identical.

    Two empty strings are identical.
    """
    return Levenshtein.normalized_similarity(a, b)


def normalize_output(text: str) -> str:
    """Canonical form for comparing outputs: lowercase, single spaces, no trailing punctuation."""
    collapsed = _WHITESPACE.sub(" ", text.strip().lower())
    return collapsed.rstrip(".!?;:, ")
