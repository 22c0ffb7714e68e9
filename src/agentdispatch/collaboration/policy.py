"""Failure-policy evaluation.

A policy is evaluated once no more units can change state, by counting
succeeded units S out of N.
"""

from __future__ import annotations

from agentdispatch.collaboration.models import (
    BestEffort,
    FailurePolicy,
    FirstSuccess,
    RequireAll,
    RequireMajority,
    RequireMinimum,
)


def policy_satisfied(policy: FailurePolicy, succeeded: int, total: int) -> bool:
    """Return True if ``succeeded`` out of ``total`` units satisfies ``policy``."""
    match policy:
        case RequireAll():
            return total > 0 and succeeded == total
        case RequireMajority():
            return 2 * succeeded > total
        case RequireMinimum(count=count):
            return succeeded >= count
        case BestEffort() | FirstSuccess():
            return succeeded >= 1


def stops_early(policy: FailurePolicy) -> bool:
    """True for policies that cancel the remaining units at the first success."""
    return isinstance(policy, FirstSuccess)


def parse_policy(name: str, minimum: int = 1) -> FailurePolicy:
    """Build a policy from its config name.

    Args:
        name: One of require_all, require_majority, require_minimum,
            best_effort, first_success (dashes are accepted too).
        minimum: Count for require_minimum.

    Raises:
        ValueError: If the name is unknown.
    """
    match name.strip().lower().replace("-", "_"):
        case "require_all":
            return RequireAll()
        case "require_majority":
            return RequireMajority()
        case "require_minimum":
            return RequireMinimum(minimum)
        case "best_effort":
            return BestEffort()
        case "first_success":
            return FirstSuccess()
        case _:
            msg = f"Unknown failure policy: {name}"
            raise ValueError(msg)
