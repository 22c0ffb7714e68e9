"""Data models for parallel collaboration.

All models are frozen dataclasses created fresh for every collaborate()
call. The orchestrator tracks in-flight state privately and only hands out
terminal ExecutionUnit snapshots.

Classes:
    UnitState: Lifecycle state of one execution unit
    ExecutionUnit: One agent execution (all attempts folded together)
    RetryOptions: Per-unit retry settings
    RequireAll, RequireMajority, RequireMinimum, BestEffort, FirstSuccess:
        Failure policy variants
    CollaborationOptions: Options for one fan-out invocation
    CollaborationResult: Aggregated outcome of a successful collaboration
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
import math
from typing import Any, TypeAlias

from agentdispatch.core.errors import UnitError, ValidationError


class UnitState(StrEnum):
    """Lifecycle of an execution unit.

    PENDING -> RUNNING -> {SUCCEEDED | FAILED | CANCELLED | TIMED_OUT}
    """

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"
    TIMED_OUT = "timed_out"

    @property
    def is_terminal(self) -> bool:
        return self not in (UnitState.PENDING, UnitState.RUNNING)


@dataclass(frozen=True, slots=True)
class ExecutionUnit:
    """One agent execution within a collaboration.

    Attributes:
        agent_name: Agent that was invoked.
        state: Terminal (or last observed) state.
        output: Agent output on success.
        error: Failure cause; None on success.
        attempt: 1-based number of the last attempt made.
        started_at: When the first attempt started running.
        finished_at: When the unit reached its terminal state.
        sequence: Completion order within the call (1 = first to finish).
    """

    agent_name: str
    state: UnitState = UnitState.PENDING
    output: str | None = None
    error: UnitError | None = None
    attempt: int = 1
    started_at: datetime | None = None
    finished_at: datetime | None = None
    sequence: int = 0

    def __post_init__(self) -> None:
        if (
            self.started_at is not None
            and self.finished_at is not None
            and self.finished_at < self.started_at
        ):
            msg = f"Unit {self.agent_name} finished before it started"
            raise ValueError(msg)

    @property
    def succeeded(self) -> bool:
        return self.state == UnitState.SUCCEEDED

    @property
    def duration(self) -> float | None:
        """Wall-clock seconds from first start to finish, if both are known."""
        if self.started_at is None or self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()

    @property
    def completion_key(self) -> tuple[float, int]:
        """Sort key for completion order; unfinished units sort last."""
        finished = self.finished_at.timestamp() if self.finished_at else math.inf
        return (finished, self.sequence)


# =============================================================================
# Failure policies
# =============================================================================


@dataclass(frozen=True, slots=True)
class RequireAll:
    """Every unit must succeed."""

    @property
    def name(self) -> str:
        return "require_all"


@dataclass(frozen=True, slots=True)
class RequireMajority:
    """Strictly more than half of the units must succeed."""

    @property
    def name(self) -> str:
        return "require_majority"


@dataclass(frozen=True, slots=True)
class RequireMinimum:
    """At least ``count`` units must succeed."""

    count: int

    def __post_init__(self) -> None:
        if self.count < 1:
            raise ValidationError(
                "RequireMinimum count must be at least 1",
                field="count",
                value=self.count,
            )

    @property
    def name(self) -> str:
        return f"require_minimum({self.count})"


@dataclass(frozen=True, slots=True)
class BestEffort:
    """One success is enough."""

    @property
    def name(self) -> str:
        return "best_effort"


@dataclass(frozen=True, slots=True)
class FirstSuccess:
    """Stop the fan-out at the first success and cancel the rest."""

    @property
    def name(self) -> str:
        return "first_success"


FailurePolicy: TypeAlias = RequireAll | RequireMajority | RequireMinimum | BestEffort | FirstSuccess


# =============================================================================
# Options
# =============================================================================


@dataclass(frozen=True, slots=True)
class RetryOptions:
    """Per-unit retry settings.

    Attributes:
        max_retries: Retries after the first attempt (0 = no retry).
        retry_delay: Fixed delay between attempts, in seconds.
    """

    max_retries: int = 0
    retry_delay: float = 1.0

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValidationError(
                "max_retries must be non-negative", field="max_retries", value=self.max_retries
            )
        if self.retry_delay < 0:
            raise ValidationError(
                "retry_delay must be non-negative", field="retry_delay", value=self.retry_delay
            )

    @property
    def attempts(self) -> int:
        """Total attempts allowed per unit."""
        return self.max_retries + 1


@dataclass(frozen=True, slots=True)
class CollaborationOptions:
    """Options for one collaborate() call.

    Attributes:
        max_concurrency: Bound on simultaneously running units (0 = unbounded).
        overall_timeout: Deadline for the whole call in seconds (None = none).
        per_unit_timeout: Deadline for each attempt in seconds (None = none).
        failure_policy: Rule deciding whether the call itself succeeded.
        continue_on_failure: If False, the first unit failure cancels the rest.
        retry: Per-unit retry settings.
    """

    max_concurrency: int = 0
    overall_timeout: float | None = None
    per_unit_timeout: float | None = None
    failure_policy: FailurePolicy = field(default_factory=BestEffort)
    continue_on_failure: bool = True
    retry: RetryOptions = field(default_factory=RetryOptions)

    def __post_init__(self) -> None:
        if self.max_concurrency < 0:
            raise ValidationError(
                "max_concurrency must be non-negative",
                field="max_concurrency",
                value=self.max_concurrency,
            )
        for name in ("overall_timeout", "per_unit_timeout"):
            value = getattr(self, name)
            if value is not None and value <= 0:
                raise ValidationError(f"{name} must be positive", field=name, value=value)


# =============================================================================
# Result
# =============================================================================


@dataclass(frozen=True, slots=True)
class CollaborationResult:
    """Aggregated outcome of a collaboration whose failure policy passed.

    Attributes:
        output: Aggregated text.
        strategy_name: Name of the aggregation strategy.
        result_count: Number of units folded into the aggregate.
        confidence_score: Strategy-defined confidence in [0, 1].
        units: Every execution unit, successful or not.
        selected_agent: Originating agent when one unit was picked.
        metadata: Strategy diagnostics (scores, vote distribution, ...).
    """

    output: str
    strategy_name: str
    result_count: int
    confidence_score: float
    units: tuple[ExecutionUnit, ...] = ()
    selected_agent: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def successful_units(self) -> tuple[ExecutionUnit, ...]:
        return tuple(u for u in self.units if u.succeeded)

    @property
    def failed_units(self) -> tuple[ExecutionUnit, ...]:
        return tuple(u for u in self.units if not u.succeeded)
