"""Outcome of a single step: the (error, value) pair a continuation reports."""

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Result of a step.

    An error is present when ``error`` is not None. Unlike a plain result
    type, a failed outcome still carries a value: pipelines hand the last
    good value to error traps alongside the error.
    """

    value: T | None = None
    error: Any = None

    @classmethod
    def success(cls, value: T | None = None) -> "Outcome[T]":
        """Create a successful outcome."""
        return cls(value=value)

    @classmethod
    def fail(cls, error: Any, value: T | None = None) -> "Outcome[T]":
        """Create a failed outcome, keeping the value reported with it."""
        return cls(value=value, error=error)

    @classmethod
    def of(cls, error: Any, value: T | None = None) -> "Outcome[T]":
        """Create an outcome from a raw continuation call."""
        if error is None:
            return cls.success(value)
        return cls.fail(error, value)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def failed(self) -> bool:
        return self.error is not None
