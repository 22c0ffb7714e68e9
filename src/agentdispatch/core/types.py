"""Core types for agentdispatch - the Result type.

This module provides:
- Result[T, E]: A generic type for handling expected failures without exceptions

Expected failures (an unsatisfied failure policy, an ambiguous selection)
travel as ``Result.err``. Exceptions are reserved for programming errors.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import cast


@dataclass(frozen=True, slots=True)
class Result[T, E]:
    """A type that represents either success (Ok) or failure (Err).

    Usage:
        result = await orchestrator.collaborate(prompt, agents, invoker, strategy)
        if result.is_ok:
            print(result.value.output)
        else:
            for unit in result.error.units:
                print(unit.agent_name, unit.state)
    """

    _value: T | None
    _error: E | None
    _is_ok: bool

    @classmethod
    def ok(cls, value: T) -> Result[T, E]:
        """Create a successful Result containing the given value."""
        return cls(_value=value, _error=None, _is_ok=True)

    @classmethod
    def err(cls, error: E) -> Result[T, E]:
        """Create a failed Result containing the given error."""
        return cls(_value=None, _error=error, _is_ok=False)

    @property
    def is_ok(self) -> bool:
        """Return True if this Result is Ok (success)."""
        return self._is_ok

    @property
    def is_err(self) -> bool:
        """Return True if this Result is Err (failure)."""
        return not self._is_ok

    def __repr__(self) -> str:
        if self._is_ok:
            return f"Ok({self._value!r})"
        return f"Err({self._error!r})"

    @property
    def value(self) -> T:
        """Return the Ok value.

        Raises:
            ValueError: If this Result is Err.
        """
        if not self._is_ok:
            msg = "Cannot access value on Err result"
            raise ValueError(msg)
        return cast(T, self._value)

    @property
    def error(self) -> E:
        """Return the Err value.

        Raises:
            ValueError: If this Result is Ok.
        """
        if self._is_ok:
            msg = "Cannot access error on Ok result"
            raise ValueError(msg)
        return cast(E, self._error)

    def unwrap(self) -> T:
        """Return the Ok value or raise ValueError carrying the error text."""
        if self._is_ok:
            return cast(T, self._value)
        raise ValueError(str(self._error))

    def unwrap_or(self, default: T) -> T:
        """Return the Ok value or the provided default if Err."""
        if self._is_ok:
            return cast(T, self._value)
        return default

    def map[U](self, fn: Callable[[T], U]) -> Result[U, E]:
        """Transform the Ok value, leaving an Err untouched."""
        if self._is_ok:
            return Result.ok(fn(cast(T, self._value)))
        return Result.err(cast(E, self._error))

    def map_err[F](self, fn: Callable[[E], F]) -> Result[T, F]:
        """Transform the Err value, leaving an Ok untouched."""
        if self._is_ok:
            return Result.ok(cast(T, self._value))
        return Result.err(fn(cast(E, self._error)))
