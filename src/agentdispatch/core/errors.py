"""Error hierarchy for agentdispatch.

These exceptions are raised for programming errors (invalid options,
malformed configuration) and travel inside ``Result.err`` for expected
failures of a selection or a collaboration.

Exception Hierarchy:
    DispatchError (base)
    ├── ConfigError                  - Configuration loading and validation
    ├── ValidationError              - Invalid arguments and option values
    ├── SelectionAmbiguousError      - Best score below threshold, no fallback
    ├── UnitError                    - Failure of a single execution unit
    │   ├── InvokerError             - The agent invoker reported a failure
    │   ├── UnitTimeoutError         - Unit exceeded its per-unit timeout
    │   └── UnitCancelledError       - Unit cancelled before finishing
    └── CollaborationError           - A fan-out call produced no result
        ├── PolicyNotSatisfiedError  - Fewer successes than the policy requires
        ├── StrategyConstraintUnmetError - Aggregation constraints not met
        └── OverallTimeoutError      - Overall deadline expired
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from agentdispatch.collaboration.models import ExecutionUnit


class DispatchError(Exception):
    """Base exception for all agentdispatch errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dict with additional context.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (details: {self.details})"
        return self.message


class ConfigError(DispatchError):
    """Error from configuration operations.

    Attributes:
        config_key: The configuration key that caused the error.
        config_file: Path to the config file if applicable.
    """

    def __init__(
        self,
        message: str,
        *,
        config_key: str | None = None,
        config_file: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.config_key = config_key
        self.config_file = config_file


class ValidationError(DispatchError):
    """Error from argument or option validation.

    Attributes:
        field: The field that failed validation.
        value: The invalid value.
    """

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        value: Any | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.field = field
        self.value = value

    def __str__(self) -> str:
        base = self.message
        if self.field:
            base = f"{base} (field: {self.field}, value: {self.value!r})"
        if self.details:
            base = f"{base} (details: {self.details})"
        return base


class SelectionAmbiguousError(DispatchError):
    """No agent scored above the confidence threshold and no fallback exists.

    Not fatal: the caller decides whether to ask for clarification, pick the
    best candidate anyway, or fan out to several agents.

    Attributes:
        best_agent: Name of the highest scoring agent, if any.
        best_score: Its composite score.
        threshold: The configured confidence threshold.
    """

    def __init__(
        self,
        message: str,
        *,
        best_agent: str | None,
        best_score: float,
        threshold: float,
    ) -> None:
        super().__init__(
            message,
            {"best_agent": best_agent, "best_score": best_score, "threshold": threshold},
        )
        self.best_agent = best_agent
        self.best_score = best_score
        self.threshold = threshold


# =============================================================================
# Unit errors (attached to ExecutionUnit.error)
# =============================================================================


class UnitError(DispatchError):
    """Failure of one execution unit, always attributed to one agent.

    Attributes:
        agent_name: Agent the unit was running.
        attempt: 1-based attempt number that produced this error.
    """

    def __init__(
        self,
        message: str,
        *,
        agent_name: str,
        attempt: int = 1,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.agent_name = agent_name
        self.attempt = attempt


class InvokerError(UnitError):
    """The external agent invoker reported a failure."""

    @classmethod
    def from_exception(
        cls, exc: BaseException, *, agent_name: str, attempt: int = 1
    ) -> InvokerError:
        """Wrap an invoker exception, preserving it as ``__cause__``."""
        error = cls(
            f"Agent '{agent_name}' failed: {exc}",
            agent_name=agent_name,
            attempt=attempt,
            details={"original_exception": type(exc).__name__},
        )
        error.__cause__ = exc
        return error


class UnitTimeoutError(UnitError):
    """A unit exceeded its per-unit timeout.

    Attributes:
        timeout: The per-unit timeout in seconds.
    """

    def __init__(self, *, agent_name: str, timeout: float, attempt: int = 1) -> None:
        super().__init__(
            f"Agent '{agent_name}' timed out after {timeout}s",
            agent_name=agent_name,
            attempt=attempt,
        )
        self.timeout = timeout


class UnitCancelledError(UnitError):
    """A unit was cancelled before it could finish."""

    def __init__(self, *, agent_name: str, reason: str, attempt: int = 1) -> None:
        super().__init__(
            f"Agent '{agent_name}' cancelled: {reason}",
            agent_name=agent_name,
            attempt=attempt,
        )
        self.reason = reason


# =============================================================================
# Collaboration errors (returned in Result.err)
# =============================================================================


class CollaborationError(DispatchError):
    """A collaboration call did not produce a result.

    Attributes:
        units: Every execution unit of the call, successful or not.
    """

    def __init__(
        self,
        message: str,
        *,
        units: Sequence[ExecutionUnit] = (),
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.units = tuple(units)

    @property
    def failures(self) -> tuple[ExecutionUnit, ...]:
        """Units that did not succeed."""
        return tuple(u for u in self.units if not u.succeeded)


class PolicyNotSatisfiedError(CollaborationError):
    """Fewer units succeeded than the failure policy requires.

    Attributes:
        policy: Name of the failure policy.
        succeeded: Number of succeeded units.
        total: Number of units.
    """

    def __init__(
        self,
        *,
        policy: str,
        succeeded: int,
        total: int,
        units: Sequence[ExecutionUnit] = (),
    ) -> None:
        failed = [u for u in units if not u.succeeded]
        super().__init__(
            f"Failure policy {policy} not satisfied: {succeeded}/{total} agents succeeded",
            units=units,
            details={
                "failures": [f"{u.agent_name}: {u.error}" for u in failed],
            },
        )
        self.policy = policy
        self.succeeded = succeeded
        self.total = total


class StrategyConstraintUnmetError(CollaborationError):
    """The aggregation strategy could not produce a result.

    Attributes:
        strategy: Strategy name.
        required: Minimum number of results the strategy needed.
        available: Number of results it was given.
    """

    def __init__(
        self,
        message: str,
        *,
        strategy: str,
        required: int = 0,
        available: int = 0,
        units: Sequence[ExecutionUnit] = (),
    ) -> None:
        super().__init__(
            message,
            units=units,
            details={"strategy": strategy, "required": required, "available": available},
        )
        self.strategy = strategy
        self.required = required
        self.available = available


class OverallTimeoutError(CollaborationError):
    """The overall deadline expired before the failure policy was satisfied.

    Attributes:
        timeout: Overall timeout in seconds.
        succeeded: Units that had succeeded before expiry.
        total: Number of units.
    """

    def __init__(
        self,
        *,
        timeout: float,
        succeeded: int,
        total: int,
        units: Sequence[ExecutionUnit] = (),
    ) -> None:
        super().__init__(
            f"Collaboration timed out after {timeout}s with {succeeded}/{total} agents succeeded",
            units=units,
        )
        self.timeout = timeout
        self.succeeded = succeeded
        self.total = total
