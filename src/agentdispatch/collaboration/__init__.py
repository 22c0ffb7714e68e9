"""Parallel collaboration: fan a prompt out to several agents and aggregate.

Typical usage:
    from agentdispatch.collaboration import (
        CollaborationOptions,
        CollaborationOrchestrator,
        RequireMajority,
        voting,
    )

    result = await CollaborationOrchestrator().collaborate(
        prompt, ["a", "b", "c"], invoker, voting(),
        CollaborationOptions(failure_policy=RequireMajority()),
    )
"""

from agentdispatch.collaboration.invoker import (
    AgentInvoker,
    CancellationToken,
    CommandInvoker,
    FunctionInvoker,
)
from agentdispatch.collaboration.models import (
    BestEffort,
    CollaborationOptions,
    CollaborationResult,
    ExecutionUnit,
    FailurePolicy,
    FirstSuccess,
    RequireAll,
    RequireMajority,
    RequireMinimum,
    RetryOptions,
    UnitState,
)
from agentdispatch.collaboration.orchestrator import CollaborationOrchestrator
from agentdispatch.collaboration.policy import parse_policy, policy_satisfied
from agentdispatch.collaboration.similarity import (
    levenshtein_distance,
    levenshtein_similarity,
    normalize_output,
)
from agentdispatch.collaboration.strategies import (
    AgentOutput,
    AggregationStrategy,
    BestOfN,
    Ensemble,
    FirstSuccessStrategy,
    StrategyOptions,
    Voting,
    aggregate,
    best_of_n,
    best_of_n_by_length,
    best_of_n_by_speed,
    ensemble,
    ensemble_concatenate,
    ensemble_merge_sections,
    ensemble_synthesize,
    first_success,
    first_success_min_length,
    first_success_with_keywords,
    voting,
    voting_fuzzy,
    voting_normalized,
)

__all__ = [
    # Orchestrator
    "CollaborationOrchestrator",
    # Invokers
    "AgentInvoker",
    "CancellationToken",
    "CommandInvoker",
    "FunctionInvoker",
    # Models
    "CollaborationOptions",
    "CollaborationResult",
    "ExecutionUnit",
    "RetryOptions",
    "UnitState",
    # Policies
    "FailurePolicy",
    "RequireAll",
    "RequireMajority",
    "RequireMinimum",
    "BestEffort",
    "FirstSuccess",
    "parse_policy",
    "policy_satisfied",
    # Strategies
    "AggregationStrategy",
    "AgentOutput",
    "StrategyOptions",
    "BestOfN",
    "Voting",
    "Ensemble",
    "FirstSuccessStrategy",
    "aggregate",
    "best_of_n",
    "best_of_n_by_length",
    "best_of_n_by_speed",
    "voting",
    "voting_fuzzy",
    "voting_normalized",
    "ensemble",
    "ensemble_concatenate",
    "ensemble_merge_sections",
    "ensemble_synthesize",
    "first_success",
    "first_success_min_length",
    "first_success_with_keywords",
    # Similarity
    "levenshtein_distance",
    "levenshtein_similarity",
    "normalize_output",
]
