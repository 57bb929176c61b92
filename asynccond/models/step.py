"""Step model: tagged value and trap steps.

A pipeline step is one of two shapes:

- value step: ``fn(value, next)``, runs while no error is pending
- trap step: ``fn(error, value, next)``, runs only while an error is pending

Callers can tag a function explicitly with ``value_step`` / ``trap_step``.
Plain callables are classified once, at build time, by their arity:
the number of positional parameters without a default. ``*args``,
keyword-only parameters and defaulted parameters do not count, and bound
methods do not count ``self``.

Example:
    def recover(error, value, next):
        next(None, value)

    step = Step.from_callable(recover)
    assert step.kind is StepKind.TRAP
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

from .exceptions import StepDefinitionError

TRAP_ARITY = 3


class StepKind(Enum):
    """How the pipeline dispatches a step."""

    VALUE = "value"
    TRAP = "trap"


def arity(fn: Callable[..., Any]) -> int:
    """Count the required positional parameters of a callable."""
    try:
        signature = inspect.signature(fn)
    except (TypeError, ValueError) as e:
        raise StepDefinitionError(
            f"Cannot inspect signature of {fn!r}: {e}",
            suggestion="wrap it with value_step() or trap_step()",
        ) from e

    count = 0
    for param in signature.parameters.values():
        if param.kind not in (param.POSITIONAL_ONLY, param.POSITIONAL_OR_KEYWORD):
            continue
        if param.default is not param.empty:
            # Parameters after the first defaulted one never count
            break
        count += 1
    return count


@dataclass(frozen=True)
class Step:
    """A step with its dispatch kind resolved."""

    fn: Callable[..., Any]
    kind: StepKind = StepKind.VALUE
    name: str = ""

    @property
    def is_trap(self) -> bool:
        return self.kind is StepKind.TRAP

    @property
    def is_value(self) -> bool:
        return self.kind is StepKind.VALUE

    @classmethod
    def from_callable(cls, fn: Any) -> Step:
        """Classify a step, reflecting on its arity unless already tagged."""
        if isinstance(fn, Step):
            return fn
        if not callable(fn):
            raise StepDefinitionError(f"Step {fn!r} is not callable")

        count = arity(fn)
        if count == TRAP_ARITY:
            kind = StepKind.TRAP
        elif count < TRAP_ARITY:
            kind = StepKind.VALUE
        else:
            raise StepDefinitionError(
                f"Step {describe(fn)} declares {count} parameters",
                suggestion="value steps take (value, next), traps take (error, value, next)",
            )
        return cls(fn=fn, kind=kind, name=describe(fn))

    def __call__(self, *args: Any) -> Any:
        return self.fn(*args)


def value_step(fn: Callable[[Any, Callable[..., None]], None]) -> Step:
    """Tag ``fn`` as a value step, skipping arity reflection."""
    if not callable(fn):
        raise StepDefinitionError(f"Step {fn!r} is not callable")
    return Step(fn=fn, kind=StepKind.VALUE, name=describe(fn))


def trap_step(fn: Callable[[Any, Any, Callable[..., None]], None]) -> Step:
    """Tag ``fn`` as an error trap, skipping arity reflection."""
    if not callable(fn):
        raise StepDefinitionError(f"Step {fn!r} is not callable")
    return Step(fn=fn, kind=StepKind.TRAP, name=describe(fn))


def describe(fn: Callable[..., Any]) -> str:
    """Short printable name for a step, task or iterator."""
    return getattr(fn, "__qualname__", None) or getattr(fn, "__name__", None) or repr(fn)
