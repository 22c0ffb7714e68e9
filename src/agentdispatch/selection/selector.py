"""Lexical agent selector.

Ranks candidate agents against a free-text request using TF-IDF weighted
cosine similarity per descriptor field:

    composite = capabilities * 0.4 + tags * 0.3 + description * 0.2 + name * 0.1

Composite scores are then normalized by the best candidate, so the top
agent scores 1.0 whenever anything matched at all. The confidence threshold
is applied to the composite (un-normalized) score, because after
normalization the leader is always at 1.0.

The selector never raises for empty or unmatched input. Its only state is
the TF-IDF snapshot of the last agent set it saw; a different agent set
builds a new snapshot and swaps it in whole.

Usage:
    selector = AgentSelector(SelectorOptions(confidence_threshold=0.2))
    result = selector.score("review my pull request", agents)
    if result.selected_agent:
        ...
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
import itertools

from agentdispatch.core.errors import ValidationError
from agentdispatch.observability.logging import get_logger
from agentdispatch.selection.index import IndexSnapshot, build_snapshot
from agentdispatch.selection.models import (
    AgentDescriptor,
    SelectionField,
    SelectionResult,
    SelectionScore,
)
from agentdispatch.selection.text import TextNormalizer

log = get_logger(__name__)

# Field weights: explicit capability declarations outrank free text
WEIGHT_CAPABILITIES = 0.4
WEIGHT_TAGS = 0.3
WEIGHT_DESCRIPTION = 0.2
WEIGHT_NAME = 0.1

DEFAULT_FIELD_WEIGHTS: dict[SelectionField, float] = {
    SelectionField.CAPABILITIES: WEIGHT_CAPABILITIES,
    SelectionField.TAGS: WEIGHT_TAGS,
    SelectionField.DESCRIPTION: WEIGHT_DESCRIPTION,
    SelectionField.NAME: WEIGHT_NAME,
}

DEFAULT_CONFIDENCE_THRESHOLD = 0.3


@dataclass(frozen=True, slots=True)
class SelectorOptions:
    """Tunable selector parameters.

    Attributes:
        confidence_threshold: Minimum composite score for a confident pick.
        fallback_agent: Agent substituted when nothing clears the threshold.
        field_weights: Weight per field. Rescaled to sum to 1.0.
    """

    confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD
    fallback_agent: str | None = None
    field_weights: Mapping[SelectionField, float] = field(
        default_factory=lambda: dict(DEFAULT_FIELD_WEIGHTS)
    )

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence_threshold <= 1.0:
            raise ValidationError(
                "Confidence threshold must be between 0.0 and 1.0",
                field="confidence_threshold",
                value=self.confidence_threshold,
            )
        if any(w < 0 for w in self.field_weights.values()):
            raise ValidationError(
                "Field weights must be non-negative",
                field="field_weights",
                value=dict(self.field_weights),
            )
        if sum(self.field_weights.values()) <= 0:
            raise ValidationError(
                "At least one field weight must be positive",
                field="field_weights",
                value=dict(self.field_weights),
            )

    def normalized_weights(self) -> dict[SelectionField, float]:
        """Weights for every field, rescaled so they sum to 1.0."""
        total = sum(self.field_weights.values())
        return {f: self.field_weights.get(f, 0.0) / total for f in SelectionField}


class AgentSelector:
    """Scores agents against a query and picks the best one.

    Safe for concurrent use: scoring only reads an immutable snapshot, and a
    changed agent set replaces the snapshot reference in one assignment.
    """

    def __init__(
        self,
        options: SelectorOptions | None = None,
        normalizer: TextNormalizer | None = None,
    ) -> None:
        self._options = options or SelectorOptions()
        self._normalizer = normalizer or TextNormalizer()
        self._weights = self._options.normalized_weights()
        self._snapshot: IndexSnapshot | None = None
        self._generations = itertools.count(1)

    @property
    def options(self) -> SelectorOptions:
        return self._options

    @property
    def generation(self) -> int:
        """Generation of the current snapshot (0 before the first query)."""
        snapshot = self._snapshot
        return snapshot.generation if snapshot else 0

    def clear_cache(self) -> None:
        """Drop the cached snapshot; the next query rebuilds it."""
        self._snapshot = None

    def _snapshot_for(self, agents: tuple[AgentDescriptor, ...]) -> IndexSnapshot:
        snapshot = self._snapshot
        if snapshot is not None and snapshot.agents == agents:
            return snapshot

        snapshot = build_snapshot(agents, self._normalizer, next(self._generations))
        self._snapshot = snapshot
        log.debug(
            "selection.cache.rebuilt",
            agent_count=len(agents),
            generation=snapshot.generation,
        )
        return snapshot

    def rank(self, query: str, agents: Sequence[AgentDescriptor]) -> list[SelectionScore]:
        """Score every agent and return them best first."""
        return self.score(query, agents).ranked

    def score(self, query: str, agents: Sequence[AgentDescriptor]) -> SelectionResult:
        """Score ``agents`` against ``query`` and choose one.

        Args:
            query: Free-text request.
            agents: Candidate agent descriptors.

        Returns:
            SelectionResult with one score per agent, in input order.
        """
        threshold = self._options.confidence_threshold
        fallback = self._options.fallback_agent
        agents = tuple(agents)

        if not agents:
            return SelectionResult(
                scores=(),
                selected_agent=fallback,
                threshold=threshold,
                used_fallback=fallback is not None,
                reason="No agents available",
            )

        snapshot = self._snapshot_for(agents)
        query_terms = self._normalizer.terms(query)
        similarities = snapshot.similarities(query_terms)
        query_set = frozenset(query_terms)

        raw_scores: list[float] = []
        contributions: list[dict[str, float]] = []
        matched: list[dict[str, tuple[str, ...]]] = []
        for i in range(len(agents)):
            per_field = {
                f.value: float(self._weights[f] * similarities[f][i]) for f in SelectionField
            }
            contributions.append(per_field)
            raw_scores.append(min(1.0, sum(per_field.values())))
            matched.append({
                f.value: tuple(sorted(query_set & snapshot.field_terms[f][i]))
                for f in SelectionField
            })

        best_raw = max(raw_scores)
        scores = tuple(
            SelectionScore(
                agent_name=agent.name,
                score=raw / best_raw if best_raw > 0 else 0.0,
                raw_score=raw,
                contributions=contributions[i],
                matched_terms=matched[i],
            )
            for i, (agent, raw) in enumerate(zip(agents, raw_scores, strict=True))
        )

        best_index = raw_scores.index(best_raw)
        best = scores[best_index]

        if best_raw > 0 and best_raw >= threshold:
            result = SelectionResult(
                scores=scores,
                selected_agent=best.agent_name,
                confidence=best_raw,
                threshold=threshold,
                reason=f"Matched on: {best.describe()}",
            )
        elif fallback is not None:
            fallback_score = next((s for s in scores if s.agent_name == fallback), None)
            result = SelectionResult(
                scores=scores,
                selected_agent=fallback,
                confidence=fallback_score.raw_score if fallback_score else 0.0,
                threshold=threshold,
                used_fallback=True,
                reason=(
                    f"No confident match (best: {best_raw:.2f}), using fallback agent"
                ),
            )
        else:
            result = SelectionResult(
                scores=scores,
                selected_agent=None,
                confidence=0.0,
                threshold=threshold,
                reason=(
                    f"Low confidence match: {best.agent_name} ({best_raw:.2f})"
                    if best_raw > 0
                    else "No matching agents found"
                ),
            )

        log.info(
            "selection.scored",
            agent_count=len(agents),
            query_terms=len(query_terms),
            selected=result.selected_agent,
            best_score=round(best_raw, 4),
            used_fallback=result.used_fallback,
        )
        return result
