"""Text normalization for agent selection.

Turns free text into the normalized terms the TF-IDF index works on:

1. Lowercase and split on whitespace and punctuation.
2. Drop English stop words (scikit-learn's list plus request filler) and
   very short tokens, except domain terms ("api", "test", "data", ...) which
   are always kept.
3. Map synonyms to one canonical term ("coding" -> "code").
4. Strip inflectional suffixes ("testing" -> "test", "debugged" -> "debug"),
   then map the stem through the synonym table once more so that
   "developing" lands on the same canonical term as "development".

Every table here is a default; ``TextNormalizer`` accepts overrides.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
import re

from sklearn.feature_extraction.text import ENGLISH_STOP_WORDS

_TOKEN_PATTERN = re.compile(r"[a-z0-9][a-z0-9#+]*")

# Conversational filler common in requests but absent from the base English list
_REQUEST_FILLERS = frozenset({"help", "want", "need", "like"})

ENGLISH_STOPWORDS: frozenset[str] = ENGLISH_STOP_WORDS | _REQUEST_FILLERS

# Short or stop-word-like tokens that carry meaning when routing agents
DOMAIN_EXCEPTIONS: frozenset[str] = frozenset({
    "api", "test", "data", "code", "web", "app", "db", "ui", "ci", "io", "ml", "ai", "qa",
})

# canonical term -> variants
SYNONYM_GROUPS: dict[str, tuple[str, ...]] = {
    "code": (
        "coding", "programming", "program", "programs", "script", "scripting",
        "development", "develop", "developer", "dev", "implement", "implementation",
    ),
    "debug": ("debugging", "debugger", "troubleshoot", "troubleshooting", "bug", "bugs"),
    "test": ("testing", "tester", "tests", "qa", "unittest"),
    "build": ("building", "compile", "compiling", "compilation", "built"),
    "deploy": ("deployment", "deploying", "release", "releasing", "ship", "shipping"),
    "write": ("writing", "create", "creating", "generate", "generating", "wrote", "written"),
    "fix": ("fixing", "repair", "repairing", "resolve", "resolving", "patch"),
    "optimize": ("optimizing", "optimization", "improve", "improving", "performance", "tune"),
    "analyze": ("analyzing", "analysis", "analyses", "examine", "examining", "investigate"),
    "review": ("reviewing", "check", "checking", "inspect", "inspecting", "audit"),
    "refactor": ("refactoring", "restructure", "restructuring", "cleanup"),
    "api": ("endpoint", "endpoints", "webservice", "rest", "graphql"),
    "database": ("db", "datastore", "sql", "postgres", "mysql", "sqlite"),
    "auth": ("authentication", "login", "signin", "oauth"),
    "authz": ("authorization", "permission", "permissions", "rbac"),
    "doc": ("docs", "documentation", "document", "readme", "docstring"),
    "config": ("configuration", "setting", "settings", "configure"),
    "security": ("secure", "encryption", "encrypt", "vulnerability", "vulnerabilities"),
    "data": ("dataset", "datasets", "analytics"),
    "translate": ("translation", "translating", "translator", "localize", "localization"),
}

# Irregular forms the suffix rules cannot reach
STEM_EXCEPTIONS: dict[str, str] = {
    "ran": "run",
    "running": "run",
    "wrote": "write",
    "written": "write",
    "built": "build",
    "began": "begin",
    "children": "child",
    "analyses": "analyze",
    "data": "data",
    "news": "news",
}

_VOWELS = frozenset("aeiou")


def build_synonym_map(groups: Mapping[str, Iterable[str]]) -> dict[str, str]:
    """Invert canonical -> variants groups into a variant -> canonical map.

    Canonical terms map to themselves. When a variant appears in several
    groups the last group wins.
    """
    synonym_map: dict[str, str] = {}
    for canonical, variants in groups.items():
        canonical = canonical.lower()
        synonym_map[canonical] = canonical
        for variant in variants:
            synonym_map[variant.lower()] = canonical
    return synonym_map


def _is_consonant(word: str, i: int) -> bool:
    char = word[i]
    if char in _VOWELS:
        return False
    if char == "y":
        return i == 0 or not _is_consonant(word, i - 1)
    return True


def _measure(stem: str) -> int:
    """Number of vowel-consonant sequences in ``stem`` (Porter's m)."""
    m = 0
    prev_vowel = False
    for i in range(len(stem)):
        consonant = _is_consonant(stem, i)
        if consonant and prev_vowel:
            m += 1
        prev_vowel = not consonant
    return m


def _has_vowel(stem: str) -> bool:
    return any(not _is_consonant(stem, i) for i in range(len(stem)))


def _ends_cvc(stem: str) -> bool:
    if len(stem) < 3:
        return False
    return (
        _is_consonant(stem, len(stem) - 3)
        and not _is_consonant(stem, len(stem) - 2)
        and _is_consonant(stem, len(stem) - 1)
        and stem[-1] not in "wxy"
    )


class SuffixStemmer:
    """Light suffix-stripping stemmer.

    Implements the plural and -ed/-ing rules of the Porter algorithm plus a
    handful of derivational suffixes common in agent descriptions. Stems
    shorter than ``min_stem_length`` are never produced.
    """

    # (suffix, replacement, minimum measure of the remaining stem)
    _DERIVATIONAL: tuple[tuple[str, str, int], ...] = (
        ("ization", "ize", 1),
        ("ational", "ate", 1),
        ("fulness", "ful", 1),
        ("iveness", "ive", 1),
        ("ation", "ate", 1),
        ("ments", "", 2),
        ("ment", "", 2),
        ("ness", "", 2),
    )

    def __init__(
        self,
        exceptions: Mapping[str, str] | None = None,
        min_stem_length: int = 3,
    ) -> None:
        self._exceptions = dict(STEM_EXCEPTIONS if exceptions is None else exceptions)
        self._min_stem_length = min_stem_length

    def stem(self, word: str) -> str:
        """Return the stem of a lowercase word."""
        if word in self._exceptions:
            return self._exceptions[word]
        if len(word) <= self._min_stem_length or not word.isalpha():
            return word

        stem = self._strip_plural(word)
        stem = self._strip_ed_ing(stem)
        stem = self._strip_derivational(stem)
        return stem

    def _strip_plural(self, word: str) -> str:
        if word.endswith("sses"):
            return word[:-2]
        if word.endswith("ies") and len(word) - 2 >= self._min_stem_length:
            return word[:-3] + "y"
        if word.endswith(("ss", "us", "is")):
            return word
        if word.endswith("s") and len(word) - 1 >= self._min_stem_length:
            return word[:-1]
        return word

    def _strip_ed_ing(self, word: str) -> str:
        for suffix in ("ing", "ed"):
            if not word.endswith(suffix):
                continue
            stem = word[: -len(suffix)]
            if len(stem) < self._min_stem_length or not _has_vowel(stem):
                return word
            if stem.endswith(("at", "bl", "iz")):
                return stem + "e"
            if (
                len(stem) >= 2
                and stem[-1] == stem[-2]
                and _is_consonant(stem, len(stem) - 1)
                and stem[-1] not in "lsz"
            ):
                return stem[:-1]
            if _measure(stem) == 1 and _ends_cvc(stem):
                return stem + "e"
            return stem
        return word

    def _strip_derivational(self, word: str) -> str:
        for suffix, replacement, min_measure in self._DERIVATIONAL:
            if word.endswith(suffix):
                stem = word[: -len(suffix)]
                long_enough = len(stem + replacement) >= self._min_stem_length
                if _measure(stem) >= min_measure and long_enough:
                    return stem + replacement
                return word
        return word


class TextNormalizer:
    """Tokenize, filter and canonicalize text into selection terms.

    Args:
        stopwords: Base stop-word set.
        domain_exceptions: Tokens kept even when they are stop words or
            shorter than ``min_token_length``.
        synonyms: canonical -> variants groups.
        stemmer: Stemmer applied to tokens without a synonym entry.
        min_token_length: Shorter tokens are dropped unless exempt.
    """

    def __init__(
        self,
        *,
        stopwords: Iterable[str] = ENGLISH_STOPWORDS,
        domain_exceptions: Iterable[str] = DOMAIN_EXCEPTIONS,
        synonyms: Mapping[str, Iterable[str]] | None = None,
        stemmer: SuffixStemmer | None = None,
        min_token_length: int = 3,
    ) -> None:
        self._stopwords = frozenset(w.lower() for w in stopwords)
        self._exceptions = frozenset(w.lower() for w in domain_exceptions)
        self._synonyms = build_synonym_map(SYNONYM_GROUPS if synonyms is None else synonyms)
        self._stemmer = stemmer or SuffixStemmer()
        self._min_token_length = min_token_length

    @staticmethod
    def tokenize(text: str) -> list[str]:
        """Split text into lowercase word tokens."""
        return _TOKEN_PATTERN.findall(text.lower())

    def keep(self, token: str) -> bool:
        """Return True if a raw token survives stop-word filtering."""
        if token in self._exceptions:
            return True
        if token in self._stopwords:
            return False
        return len(token) >= self._min_token_length

    def normalize(self, token: str) -> str:
        """Canonicalize one token through synonyms and the stemmer."""
        canonical = self._synonyms.get(token)
        if canonical is not None:
            return canonical
        stem = self._stemmer.stem(token)
        return self._synonyms.get(stem, stem)

    def terms(self, text: str) -> list[str]:
        """Return normalized terms of ``text`` in order, with repetitions."""
        return [self.normalize(token) for token in self.tokenize(text) if self.keep(token)]
