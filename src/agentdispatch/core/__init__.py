"""agentdispatch core module - shared result type and error taxonomy."""

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
from agentdispatch.core.types import Result

__all__ = [
    # Types
    "Result",
    # Errors
    "DispatchError",
    "ConfigError",
    "ValidationError",
    "SelectionAmbiguousError",
    "UnitError",
    "InvokerError",
    "UnitTimeoutError",
    "UnitCancelledError",
    "CollaborationError",
    "PolicyNotSatisfiedError",
    "StrategyConstraintUnmetError",
    "OverallTimeoutError",
]
