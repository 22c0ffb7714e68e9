"""Data models for agent selection.

All models are immutable and created fresh for every query, except
AgentDescriptor which lives as long as the agent is registered.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum

from agentdispatch.core.errors import SelectionAmbiguousError
from agentdispatch.core.types import Result


class SelectionField(str, Enum):
    """Searchable descriptor fields, in decreasing default weight."""

    CAPABILITIES = "capabilities"
    TAGS = "tags"
    DESCRIPTION = "description"
    NAME = "name"


@dataclass(frozen=True, slots=True)
class AgentDescriptor:
    """Identity and searchable metadata for one agent.

    Attributes:
        name: Unique agent identifier.
        description: Free-text description.
        capabilities: Short capability tags (highest selection weight).
        tags: Secondary short tags.
    """

    name: str
    description: str = ""
    capabilities: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()

    @classmethod
    def create(
        cls,
        name: str,
        description: str = "",
        capabilities: Iterable[str] = (),
        tags: Iterable[str] = (),
    ) -> AgentDescriptor:
        """Build a descriptor from any iterables, de-duplicating tags in order."""
        return cls(
            name=name,
            description=description,
            capabilities=tuple(dict.fromkeys(capabilities)),
            tags=tuple(dict.fromkeys(tags)),
        )

    def field_text(self, selection_field: SelectionField) -> str:
        """Return the raw text of one searchable field."""
        match selection_field:
            case SelectionField.CAPABILITIES:
                return " ".join(self.capabilities)
            case SelectionField.TAGS:
                return " ".join(self.tags)
            case SelectionField.DESCRIPTION:
                return self.description
            case SelectionField.NAME:
                return self.name


@dataclass(frozen=True, slots=True)
class SelectionScore:
    """Score of one agent for one query.

    Attributes:
        agent_name: Scored agent.
        score: Normalized score in [0, 1], relative to the best candidate.
        raw_score: Weighted composite of per-field cosine similarities, in [0, 1].
        contributions: Weighted contribution of each field to ``raw_score``.
        matched_terms: Normalized query terms found in each field.
    """

    agent_name: str
    score: float
    raw_score: float = 0.0
    contributions: dict[str, float] = field(default_factory=dict)
    matched_terms: dict[str, tuple[str, ...]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not 0.0 <= self.score <= 1.0:
            msg = f"Selection score must be between 0.0 and 1.0, got {self.score}"
            raise ValueError(msg)

    def describe(self) -> str:
        """Human-readable summary of matched fields, e.g. 'capabilities(review)'."""
        parts = [
            f"{name}({', '.join(terms)})"
            for name, terms in self.matched_terms.items()
            if terms
        ]
        return ", ".join(parts)


@dataclass(frozen=True, slots=True)
class SelectionResult:
    """All scores for one query plus the chosen agent.

    Attributes:
        scores: One SelectionScore per input agent, in input order.
        selected_agent: Chosen agent name, or None.
        confidence: Raw composite score of the chosen agent (0.0 if none or
            if a fallback outside the candidate set was chosen).
        threshold: Confidence threshold the selection was made against.
        used_fallback: True when the configured fallback was substituted.
        reason: Human-readable explanation of the outcome.
    """

    scores: tuple[SelectionScore, ...]
    selected_agent: str | None
    confidence: float = 0.0
    threshold: float = 0.0
    used_fallback: bool = False
    reason: str = ""

    @property
    def ranked(self) -> list[SelectionScore]:
        """Scores sorted best first; equal scores keep input order."""
        return sorted(self.scores, key=lambda s: s.score, reverse=True)

    @property
    def best(self) -> SelectionScore | None:
        """The highest scoring candidate, or None for an empty agent set."""
        ranked = self.ranked
        return ranked[0] if ranked else None

    @property
    def is_ambiguous(self) -> bool:
        """True when no agent was selected."""
        return self.selected_agent is None

    def score_for(self, agent_name: str) -> SelectionScore | None:
        """Look up the score of one agent by name."""
        for score in self.scores:
            if score.agent_name == agent_name:
                return score
        return None

    def require_selection(self) -> Result[str, SelectionAmbiguousError]:
        """Return the selected agent, or SelectionAmbiguousError if there is none."""
        if self.selected_agent is not None:
            return Result.ok(self.selected_agent)
        best = self.best
        return Result.err(
            SelectionAmbiguousError(
                self.reason or "No agent matched with sufficient confidence",
                best_agent=best.agent_name if best else None,
                best_score=best.raw_score if best else 0.0,
                threshold=self.threshold,
            )
        )
