"""Unit tests for agentdispatch.core.errors module."""

from agentdispatch.collaboration.models import ExecutionUnit, UnitState
from agentdispatch.core.errors import (
    CollaborationError,
    ConfigError,
    DispatchError,
    InvokerError,
    OverallTimeoutError,
    PolicyNotSatisfiedError,
    SelectionAmbiguousError,
    StrategyConstraintUnmetError,
    UnitCancelledError,
    UnitError,
    UnitTimeoutError,
    ValidationError,
)


def _failed(name: str, message: str = "boom") -> ExecutionUnit:
    return ExecutionUnit(
        agent_name=name,
        state=UnitState.FAILED,
        error=InvokerError(message, agent_name=name),
    )


class TestDispatchError:
    """Tests for the base exception."""

    def test_message_and_details(self) -> None:
        """DispatchError stores message and details."""
        error = DispatchError("failed", details={"key": "value"})

        assert error.message == "failed"
        assert error.details == {"key": "value"}
        assert "details" in str(error)

    def test_str_without_details(self) -> None:
        """str() is the bare message when there are no details."""
        assert str(DispatchError("plain")) == "plain"

    def test_hierarchy(self) -> None:
        """Every error derives from DispatchError."""
        for cls in (
            ConfigError,
            ValidationError,
            SelectionAmbiguousError,
            UnitError,
            CollaborationError,
        ):
            assert issubclass(cls, DispatchError)
        for cls in (InvokerError, UnitTimeoutError, UnitCancelledError):
            assert issubclass(cls, UnitError)
        for cls in (PolicyNotSatisfiedError, StrategyConstraintUnmetError, OverallTimeoutError):
            assert issubclass(cls, CollaborationError)


class TestValidationError:
    """Tests for ValidationError."""

    def test_str_includes_field_and_value(self) -> None:
        """str() names the field and the offending value."""
        error = ValidationError("bad threshold", field="confidence_threshold", value=1.5)

        assert "confidence_threshold" in str(error)
        assert "1.5" in str(error)


class TestUnitErrors:
    """Tests for per-unit errors."""

    def test_invoker_error_from_exception_keeps_cause(self) -> None:
        """from_exception attributes the error and preserves the original cause."""
        original = RuntimeError("connection reset")

        error = InvokerError.from_exception(original, agent_name="coder", attempt=2)

        assert error.agent_name == "coder"
        assert error.attempt == 2
        assert error.__cause__ is original
        assert "connection reset" in error.message
        assert error.details["original_exception"] == "RuntimeError"

    def test_unit_timeout_error(self) -> None:
        """UnitTimeoutError records the timeout."""
        error = UnitTimeoutError(agent_name="slow", timeout=2.5)

        assert error.timeout == 2.5
        assert "slow" in error.message
        assert "2.5" in error.message

    def test_unit_cancelled_error(self) -> None:
        """UnitCancelledError records the reason."""
        error = UnitCancelledError(agent_name="late", reason="another agent succeeded first")

        assert error.reason == "another agent succeeded first"


class TestCollaborationErrors:
    """Tests for collaboration-level errors."""

    def test_policy_not_satisfied_lists_failures(self) -> None:
        """PolicyNotSatisfiedError lists each failed unit with its error."""
        units = [
            ExecutionUnit(agent_name="ok", state=UnitState.SUCCEEDED, output="x"),
            _failed("bad", "exploded"),
        ]

        error = PolicyNotSatisfiedError(
            policy="require_all", succeeded=1, total=2, units=units
        )

        assert error.policy == "require_all"
        assert error.succeeded == 1
        assert error.total == 2
        assert [u.agent_name for u in error.failures] == ["bad"]
        assert len(error.details["failures"]) == 1
        assert "exploded" in error.details["failures"][0]

    def test_strategy_constraint_unmet(self) -> None:
        """StrategyConstraintUnmetError records required and available counts."""
        error = StrategyConstraintUnmetError(
            "not enough", strategy="best_of_n", required=3, available=2
        )

        assert error.required == 3
        assert error.available == 2
        assert error.details["strategy"] == "best_of_n"

    def test_overall_timeout(self) -> None:
        """OverallTimeoutError keeps the units it was given."""
        units = [_failed("a")]

        error = OverallTimeoutError(timeout=1.0, succeeded=0, total=1, units=units)

        assert error.units == tuple(units)
        assert "1.0" in error.message

    def test_selection_ambiguous(self) -> None:
        """SelectionAmbiguousError carries the best candidate."""
        error = SelectionAmbiguousError(
            "low confidence", best_agent="a", best_score=0.1, threshold=0.3
        )

        assert error.best_agent == "a"
        assert error.details["threshold"] == 0.3
