"""TF-IDF index over a fixed set of agent descriptors.

An ``IndexSnapshot`` is built once per agent set and never mutated. The
selector swaps the whole snapshot when the agent set changes, so a reader
holding a snapshot always sees a consistent vocabulary, IDF table and
per-field vectors.

IDF is corpus-wide: each agent contributes one document made of all its
fields. Term frequencies are then computed per field, so a query can be
compared to an agent's capabilities, tags, description and name separately.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np
from scipy.sparse import csr_matrix
from sklearn.feature_extraction.text import TfidfVectorizer
from sklearn.metrics.pairwise import cosine_similarity

from agentdispatch.observability.logging import get_logger
from agentdispatch.selection.models import AgentDescriptor, SelectionField
from agentdispatch.selection.text import TextNormalizer

log = get_logger(__name__)


def _identity_analyzer(terms: list[str]) -> list[str]:
    """Documents are already normalized term lists."""
    return terms


@dataclass(frozen=True, slots=True)
class IndexSnapshot:
    """Immutable TF-IDF vectors for one agent set.

    Attributes:
        agents: The descriptors this snapshot was built from, in order.
        generation: Monotonic build counter of the owning selector.
        vectorizer: Fitted vectorizer, or None if the corpus had no terms.
        field_vectors: Per-field TF-IDF matrix, one row per agent.
        field_terms: Per-field normalized term sets, one entry per agent.
    """

    agents: tuple[AgentDescriptor, ...]
    generation: int
    vectorizer: TfidfVectorizer | None
    field_vectors: dict[SelectionField, csr_matrix]
    field_terms: dict[SelectionField, tuple[frozenset[str], ...]]

    @property
    def is_empty(self) -> bool:
        """True when no agent contributed any term."""
        return self.vectorizer is None

    @property
    def vocabulary_size(self) -> int:
        if self.vectorizer is None:
            return 0
        return len(self.vectorizer.vocabulary_)

    def idf(self, term: str) -> float:
        """Return the IDF weight of a normalized term (0.0 if unknown)."""
        if self.vectorizer is None:
            return 0.0
        position = self.vectorizer.vocabulary_.get(term)
        if position is None:
            return 0.0
        return float(self.vectorizer.idf_[position])

    def similarities(self, query_terms: list[str]) -> dict[SelectionField, np.ndarray]:
        """Cosine similarity of the query against every agent, per field.

        Returns:
            Mapping of field to a 1-D array with one similarity per agent.
        """
        n_agents = len(self.agents)
        if self.vectorizer is None or not query_terms:
            return {f: np.zeros(n_agents) for f in SelectionField}

        query_vector = self.vectorizer.transform([query_terms])
        return {
            f: np.clip(cosine_similarity(query_vector, matrix)[0], 0.0, 1.0)
            for f, matrix in self.field_vectors.items()
        }


def build_snapshot(
    agents: Sequence[AgentDescriptor],
    normalizer: TextNormalizer,
    generation: int = 0,
) -> IndexSnapshot:
    """Build a fresh snapshot for ``agents``.

    Args:
        agents: Descriptors to index.
        normalizer: Text normalizer applied to every field.
        generation: Build counter recorded on the snapshot.

    Returns:
        A new IndexSnapshot.
    """
    agents = tuple(agents)
    per_field: dict[SelectionField, list[list[str]]] = {
        f: [normalizer.terms(agent.field_text(f)) for agent in agents] for f in SelectionField
    }
    field_terms = {f: tuple(frozenset(terms) for terms in docs) for f, docs in per_field.items()}

    documents = [
        [term for f in SelectionField for term in per_field[f][i]] for i in range(len(agents))
    ]

    if not any(documents):
        log.debug("selection.index.empty", agent_count=len(agents), generation=generation)
        return IndexSnapshot(
            agents=agents,
            generation=generation,
            vectorizer=None,
            field_vectors={},
            field_terms=field_terms,
        )

    vectorizer = TfidfVectorizer(analyzer=_identity_analyzer, lowercase=False)
    vectorizer.fit(documents)
    field_vectors = {f: vectorizer.transform(docs) for f, docs in per_field.items()}

    log.debug(
        "selection.index.built",
        agent_count=len(agents),
        vocabulary_size=len(vectorizer.vocabulary_),
        generation=generation,
    )

    return IndexSnapshot(
        agents=agents,
        generation=generation,
        vectorizer=vectorizer,
        field_vectors=field_vectors,
        field_terms=field_terms,
    )
