"""Aggregation strategies for parallel collaboration.

A strategy reduces the succeeded units of a collaboration to one output.
Strategies are plain tagged variants carrying only the data their branch
needs; ``aggregate`` matches on the variant once per call.

Strategies:
    BestOfN: Highest score under a caller-supplied scoring function
    Voting: Largest cluster of equal (or near-equal) outputs
    Ensemble: Caller-supplied combiner over all outputs
    FirstSuccessStrategy: Earliest output that passes validation

Every strategy only sees succeeded units, in completion order, after
``StrategyOptions.result_filter`` and the minimum/maximum bounds are applied.
A collaboration that folds a single unit returns that unit's output
unchanged.

Usage:
    strategy = voting_fuzzy(0.8)
    result = await aggregate(strategy, units, policy=BestEffort())
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
import inspect
import re
from typing import Any, NamedTuple, TypeAlias

from agentdispatch.collaboration.invoker import AgentInvoker, CancellationToken
from agentdispatch.collaboration.models import (
    CollaborationResult,
    ExecutionUnit,
    FailurePolicy,
    FirstSuccess,
)
from agentdispatch.collaboration.similarity import levenshtein_similarity, normalize_output
from agentdispatch.core.errors import StrategyConstraintUnmetError, ValidationError
from agentdispatch.core.types import Result
from agentdispatch.observability.logging import get_logger

log = get_logger(__name__)

DEFAULT_SEPARATOR = "\n\n---\n\n"


class AgentOutput(NamedTuple):
    """One successful output labelled by its originating agent."""

    agent_name: str
    output: str


Combiner: TypeAlias = Callable[[list[AgentOutput]], str | Awaitable[str]]


@dataclass(frozen=True, slots=True)
class StrategyOptions:
    """Constraints shared by every strategy.

    Attributes:
        minimum_results: Fewer usable outputs than this fails the strategy.
        maximum_results: Only the earliest N usable outputs are considered.
        result_filter: Predicate over units; rejected units are ignored.
        ranker: Scores units, higher first. When set, the highest ranked units
            survive the maximum_results cut instead of the earliest, and an
            ensemble combines outputs in rank order.
    """

    minimum_results: int = 1
    maximum_results: int | None = None
    result_filter: Callable[[ExecutionUnit], bool] | None = None
    ranker: Callable[[ExecutionUnit], float] | None = None

    def __post_init__(self) -> None:
        if self.minimum_results < 1:
            raise ValidationError(
                "minimum_results must be at least 1",
                field="minimum_results",
                value=self.minimum_results,
            )
        if self.maximum_results is not None and self.maximum_results < self.minimum_results:
            raise ValidationError(
                "maximum_results must not be below minimum_results",
                field="maximum_results",
                value=self.maximum_results,
            )


# =============================================================================
# Strategy variants
# =============================================================================


@dataclass(frozen=True, slots=True)
class BestOfN:
    """Pick the highest scoring output; ties go to the earliest finisher."""

    scorer: Callable[[ExecutionUnit], float]
    name: str = "best_of_n"
    options: StrategyOptions = field(default_factory=StrategyOptions)


@dataclass(frozen=True, slots=True)
class Voting:
    """Pick the representative of the largest output cluster.

    Attributes:
        similarity_threshold: Levenshtein similarity at or above which two
            outputs join one cluster. None means exact equality.
        key: Transform applied to outputs before comparison.
    """

    similarity_threshold: float | None = None
    key: Callable[[str], str] | None = None
    name: str = "voting"
    options: StrategyOptions = field(default_factory=StrategyOptions)

    def __post_init__(self) -> None:
        if self.similarity_threshold is not None and not 0.0 <= self.similarity_threshold <= 1.0:
            raise ValidationError(
                "Similarity threshold must be between 0.0 and 1.0",
                field="similarity_threshold",
                value=self.similarity_threshold,
            )


@dataclass(frozen=True, slots=True)
class Ensemble:
    """Combine every output with a caller-supplied combiner (sync or async)."""

    combiner: Combiner
    aggregation_timeout: float | None = None
    name: str = "ensemble"
    options: StrategyOptions = field(default_factory=StrategyOptions)


@dataclass(frozen=True, slots=True)
class FirstSuccessStrategy:
    """Pick the earliest output that passes ``validate``."""

    validate: Callable[[str], bool] | None = None
    name: str = "first_success"
    options: StrategyOptions = field(default_factory=StrategyOptions)


AggregationStrategy: TypeAlias = BestOfN | Voting | Ensemble | FirstSuccessStrategy


# =============================================================================
# Aggregation
# =============================================================================


def accepts(strategy: AggregationStrategy, unit: ExecutionUnit) -> bool:
    """True if a succeeded unit is usable by ``strategy``.

    Lets the orchestrator end a first-success race only on a unit the
    strategy would actually pick.
    """
    if not unit.succeeded:
        return False
    result_filter = strategy.options.result_filter
    if result_filter is not None and not result_filter(unit):
        return False
    if isinstance(strategy, FirstSuccessStrategy) and strategy.validate is not None:
        return strategy.validate(unit.output or "")
    return True


def _candidates(
    strategy: AggregationStrategy,
    units: Sequence[ExecutionUnit],
) -> Result[list[ExecutionUnit], StrategyConstraintUnmetError]:
    options = strategy.options
    candidates = sorted((u for u in units if u.succeeded), key=lambda u: u.completion_key)
    if options.result_filter is not None:
        candidates = [u for u in candidates if options.result_filter(u)]

    if len(candidates) < options.minimum_results:
        return Result.err(
            StrategyConstraintUnmetError(
                f"Strategy {strategy.name} needs at least {options.minimum_results} "
                f"results, got {len(candidates)}",
                strategy=strategy.name,
                required=options.minimum_results,
                available=len(candidates),
                units=units,
            )
        )

    if options.maximum_results is not None and len(candidates) > options.maximum_results:
        if options.ranker is None:
            candidates = candidates[: options.maximum_results]
        else:
            # Sorting is stable, so equal ranks keep completion order
            ranked = sorted(candidates, key=options.ranker, reverse=True)
            kept = {id(u) for u in ranked[: options.maximum_results]}
            candidates = [u for u in candidates if id(u) in kept]
    return Result.ok(candidates)


async def aggregate(
    strategy: AggregationStrategy,
    units: Sequence[ExecutionUnit],
    *,
    policy: FailurePolicy,
) -> Result[CollaborationResult, StrategyConstraintUnmetError]:
    """Reduce the succeeded ``units`` to one CollaborationResult.

    Args:
        strategy: Strategy variant.
        units: All units of the collaboration, in any order.
        policy: Failure policy of the call (First-Success confidence depends on it).

    Returns:
        Result with the aggregate, or StrategyConstraintUnmetError.
    """
    units = tuple(units)
    candidates_result = _candidates(strategy, units)
    if candidates_result.is_err:
        log.warning(
            "collaboration.strategy.constraint_unmet",
            strategy=strategy.name,
            required=candidates_result.error.required,
            available=candidates_result.error.available,
        )
        return Result.err(candidates_result.error)
    candidates = candidates_result.value

    match strategy:
        case BestOfN():
            result = _best_of_n(strategy, candidates, units)
        case Voting():
            result = _vote(strategy, candidates, units)
        case Ensemble():
            result = await _ensemble(strategy, candidates, units)
        case FirstSuccessStrategy():
            result = _first_success(strategy, candidates, units, policy)

    if result.is_ok:
        log.info(
            "collaboration.strategy.aggregated",
            strategy=strategy.name,
            result_count=result.value.result_count,
            confidence=round(result.value.confidence_score, 4),
            selected_agent=result.value.selected_agent,
        )
    return result


def _best_of_n(
    strategy: BestOfN,
    candidates: list[ExecutionUnit],
    units: tuple[ExecutionUnit, ...],
) -> Result[CollaborationResult, StrategyConstraintUnmetError]:
    scores = [float(strategy.scorer(unit)) for unit in candidates]

    best_index = 0
    for i, score in enumerate(scores):
        if score > scores[best_index]:
            best_index = i
    winner = candidates[best_index]

    positive = [max(score, 0.0) for score in scores]
    total = sum(positive)
    confidence = positive[best_index] / total if total > 0 else 1.0 / len(candidates)

    return Result.ok(
        CollaborationResult(
            output=winner.output or "",
            strategy_name=strategy.name,
            result_count=len(candidates),
            confidence_score=confidence,
            units=units,
            selected_agent=winner.agent_name,
            metadata={
                "scores": {
                    f"{unit.agent_name}#{unit.sequence}": score
                    for unit, score in zip(candidates, scores, strict=True)
                },
                "selected_agent": winner.agent_name,
            },
        )
    )


def _vote(
    strategy: Voting,
    candidates: list[ExecutionUnit],
    units: tuple[ExecutionUnit, ...],
) -> Result[CollaborationResult, StrategyConstraintUnmetError]:
    key = strategy.key or (lambda text: text)
    threshold = strategy.similarity_threshold

    def same_cluster(a: str, b: str) -> bool:
        if threshold is None:
            return a == b
        return levenshtein_similarity(a, b) >= threshold

    # Each cluster is compared through its representative, its earliest member
    clusters: list[tuple[str, list[ExecutionUnit]]] = []
    for unit in candidates:
        unit_key = key(unit.output or "")
        for representative_key, members in clusters:
            if same_cluster(representative_key, unit_key):
                members.append(unit)
                break
        else:
            clusters.append((unit_key, [unit]))

    winner_members = clusters[0][1]
    for _, members in clusters[1:]:
        if len(members) > len(winner_members):
            winner_members = members
    representative = winner_members[0]

    return Result.ok(
        CollaborationResult(
            output=representative.output or "",
            strategy_name=strategy.name,
            result_count=len(candidates),
            confidence_score=len(winner_members) / len(candidates),
            units=units,
            selected_agent=representative.agent_name,
            metadata={
                "vote_distribution": [
                    {
                        "representative": members[0].output,
                        "votes": len(members),
                        "agents": [m.agent_name for m in members],
                    }
                    for _, members in clusters
                ],
                "selected_agent": representative.agent_name,
            },
        )
    )


async def _ensemble(
    strategy: Ensemble,
    candidates: list[ExecutionUnit],
    units: tuple[ExecutionUnit, ...],
) -> Result[CollaborationResult, StrategyConstraintUnmetError]:
    agents_involved = [unit.agent_name for unit in candidates]
    confidence = len(candidates) / len(units)

    if len(candidates) == 1:
        output = candidates[0].output or ""
    else:
        ranker = strategy.options.ranker
        ordered = sorted(candidates, key=ranker, reverse=True) if ranker else candidates
        outputs = [AgentOutput(unit.agent_name, unit.output or "") for unit in ordered]
        try:
            async with asyncio.timeout(strategy.aggregation_timeout):
                combined = strategy.combiner(outputs)
                output = await combined if inspect.isawaitable(combined) else combined
        except TimeoutError as e:
            error = StrategyConstraintUnmetError(
                f"Strategy {strategy.name} combiner timed out after "
                f"{strategy.aggregation_timeout}s",
                strategy=strategy.name,
                required=len(candidates),
                available=len(candidates),
                units=units,
            )
            error.__cause__ = e
            return Result.err(error)
        except Exception as e:
            log.exception("collaboration.strategy.combiner_failed", strategy=strategy.name)
            error = StrategyConstraintUnmetError(
                f"Strategy {strategy.name} combiner failed: {e}",
                strategy=strategy.name,
                required=len(candidates),
                available=len(candidates),
                units=units,
            )
            error.__cause__ = e
            return Result.err(error)

    return Result.ok(
        CollaborationResult(
            output=output,
            strategy_name=strategy.name,
            result_count=len(candidates),
            confidence_score=confidence,
            units=units,
            selected_agent=candidates[0].agent_name if len(candidates) == 1 else None,
            metadata={"agents_involved": agents_involved},
        )
    )


def _first_success(
    strategy: FirstSuccessStrategy,
    candidates: list[ExecutionUnit],
    units: tuple[ExecutionUnit, ...],
    policy: FailurePolicy,
) -> Result[CollaborationResult, StrategyConstraintUnmetError]:
    validate = strategy.validate
    winner = next(
        (u for u in candidates if validate is None or validate(u.output or "")),
        None,
    )
    if winner is None:
        return Result.err(
            StrategyConstraintUnmetError(
                f"Strategy {strategy.name}: no output passed validation",
                strategy=strategy.name,
                required=1,
                available=0,
                units=units,
            )
        )

    succeeded = sum(1 for u in units if u.succeeded)
    confidence = 1.0 if isinstance(policy, FirstSuccess) else succeeded / len(units)

    return Result.ok(
        CollaborationResult(
            output=winner.output or "",
            strategy_name=strategy.name,
            result_count=1,
            confidence_score=confidence,
            units=units,
            selected_agent=winner.agent_name,
            metadata={"selected_agent": winner.agent_name},
        )
    )


# =============================================================================
# Factories
# =============================================================================


def best_of_n(
    score_fn: Callable[[str], float],
    *,
    options: StrategyOptions | None = None,
) -> BestOfN:
    """Best-of-N over a scoring function of the output text."""
    return BestOfN(
        scorer=lambda unit: score_fn(unit.output or ""),
        options=options or StrategyOptions(),
    )


def best_of_n_by_length(*, options: StrategyOptions | None = None) -> BestOfN:
    """Prefer the longest output."""
    return BestOfN(
        scorer=lambda unit: float(len(unit.output or "")),
        name="best_of_n_by_length",
        options=options or StrategyOptions(),
    )


def best_of_n_by_speed(*, options: StrategyOptions | None = None) -> BestOfN:
    """Prefer the fastest unit."""
    return BestOfN(
        scorer=lambda unit: 1.0 / (1.0 + (unit.duration or 0.0)),
        name="best_of_n_by_speed",
        options=options or StrategyOptions(),
    )


def voting(*, options: StrategyOptions | None = None) -> Voting:
    """Exact-match majority vote."""
    return Voting(options=options or StrategyOptions())


def voting_fuzzy(threshold: float = 0.8, *, options: StrategyOptions | None = None) -> Voting:
    """Vote with near-duplicates merged by Levenshtein similarity."""
    return Voting(
        similarity_threshold=threshold,
        name="voting_fuzzy",
        options=options or StrategyOptions(),
    )


def voting_normalized(*, options: StrategyOptions | None = None) -> Voting:
    """Vote ignoring case, whitespace runs and trailing punctuation."""
    return Voting(
        key=normalize_output,
        name="voting_normalized",
        options=options or StrategyOptions(),
    )


def ensemble(
    combiner: Combiner,
    *,
    aggregation_timeout: float | None = None,
    options: StrategyOptions | None = None,
) -> Ensemble:
    return Ensemble(
        combiner=combiner,
        aggregation_timeout=aggregation_timeout,
        options=options or StrategyOptions(),
    )


def ensemble_concatenate(
    separator: str = DEFAULT_SEPARATOR,
    *,
    with_headers: bool = True,
    options: StrategyOptions | None = None,
) -> Ensemble:
    """Join all outputs, optionally under a '## agent' header each."""

    def combine(outputs: list[AgentOutput]) -> str:
        if with_headers:
            return separator.join(f"## {o.agent_name}\n\n{o.output}" for o in outputs)
        return separator.join(o.output for o in outputs)

    return Ensemble(
        combiner=combine,
        name="ensemble_concatenate",
        options=options or StrategyOptions(),
    )


def extract_section(text: str, section: str) -> str | None:
    """Return the body under a markdown heading named ``section``, if present."""
    pattern = re.compile(
        rf"^#+\s*{re.escape(section)}\s*$\n?(.*?)(?=^#+\s|\Z)",
        re.IGNORECASE | re.MULTILINE | re.DOTALL,
    )
    match = pattern.search(text)
    if match is None:
        return None
    body = match.group(1).strip()
    return body or None


def ensemble_merge_sections(
    sections: Sequence[str],
    *,
    options: StrategyOptions | None = None,
) -> Ensemble:
    """Merge named markdown sections across outputs.

    Each section gathers its body from every output that has it, labelled
    by agent. Outputs with none of the sections are concatenated instead.
    """

    def combine(outputs: list[AgentOutput]) -> str:
        merged: list[str] = []
        for section in sections:
            bodies = [
                (o.agent_name, body)
                for o in outputs
                if (body := extract_section(o.output, section)) is not None
            ]
            if bodies:
                lines = "\n\n".join(f"[{agent}]\n{body}" for agent, body in bodies)
                merged.append(f"## {section}\n\n{lines}")
        if not merged:
            return DEFAULT_SEPARATOR.join(o.output for o in outputs)
        return "\n\n".join(merged)

    return Ensemble(
        combiner=combine,
        name="ensemble_merge_sections",
        options=options or StrategyOptions(),
    )


SYNTHESIS_INSTRUCTION = (
    "Several agents answered the same request. Combine their answers into one "
    "response, keeping what they agree on and resolving contradictions."
)


def ensemble_synthesize(
    invoker: AgentInvoker,
    agent_name: str,
    *,
    instruction: str = SYNTHESIS_INSTRUCTION,
    aggregation_timeout: float | None = None,
    options: StrategyOptions | None = None,
) -> Ensemble:
    """Ask another agent to synthesize the outputs into one answer."""

    async def combine(outputs: list[AgentOutput]) -> str:
        answers = "\n\n".join(f"### {o.agent_name}\n{o.output}" for o in outputs)
        prompt = f"{instruction}\n\n{answers}"
        return await invoker.invoke(agent_name, prompt, CancellationToken())

    return Ensemble(
        combiner=combine,
        aggregation_timeout=aggregation_timeout,
        name="ensemble_synthesize",
        options=options or StrategyOptions(),
    )


def first_success(
    validate: Callable[[str], bool] | None = None,
    *,
    options: StrategyOptions | None = None,
) -> FirstSuccessStrategy:
    return FirstSuccessStrategy(validate=validate, options=options or StrategyOptions())


def first_success_min_length(
    min_length: int, *, options: StrategyOptions | None = None
) -> FirstSuccessStrategy:
    """First output with at least ``min_length`` non-blank characters."""
    return FirstSuccessStrategy(
        validate=lambda text: len(text.strip()) >= min_length,
        name="first_success_min_length",
        options=options or StrategyOptions(),
    )


def first_success_with_keywords(
    keywords: Sequence[str],
    *,
    require_all: bool = False,
    options: StrategyOptions | None = None,
) -> FirstSuccessStrategy:
    """First output mentioning the keywords (case-insensitive)."""
    lowered = [k.lower() for k in keywords]

    def validate(text: str) -> bool:
        text = text.lower()
        hits = [k in text for k in lowered]
        return all(hits) if require_all else any(hits)

    return FirstSuccessStrategy(
        validate=validate,
        name="first_success_with_keywords",
        options=options or StrategyOptions(),
    )


def strategy_summary(strategy: AggregationStrategy) -> dict[str, Any]:
    """Loggable description of a strategy."""
    summary: dict[str, Any] = {
        "strategy": strategy.name,
        "minimum_results": strategy.options.minimum_results,
    }
    if isinstance(strategy, Voting) and strategy.similarity_threshold is not None:
        summary["similarity_threshold"] = strategy.similarity_threshold
    return summary
