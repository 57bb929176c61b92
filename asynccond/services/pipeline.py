"""Pipeline composition: sequential steps with error traps and early exit.

``seq`` builds a reusable Pipeline from value steps ``(value, next)`` and
trap steps ``(error, value, next)``. Invoking it threads a running
(error, value) pair through the steps:

- no error pending: value steps run, traps are skipped
- error pending: traps run, value steps are skipped
- ``next(..., exit=True)`` ends the pipeline immediately

A trap clears the error by reporting ``next(None, value)``.
"""

from __future__ import annotations

import functools
from typing import Any, Callable, Iterable

from ..models.outcome import Outcome
from ..models.step import Step
from ..models.tasks import flatten_steps
from .config import FlowSettings
from .events import EventBus
from .runner import FinalCallback, SequentialRun
from .scheduler import to_future


class PipelineRun(SequentialRun):
    """One invocation of a Pipeline: cursor plus running outcome."""

    kind = "seq"

    def __init__(
        self,
        steps: tuple[Step, ...],
        callback: FinalCallback | None = None,
        settings: FlowSettings | None = None,
        bus: EventBus | None = None,
    ) -> None:
        super().__init__(callback, settings, bus)
        self._steps = steps
        self._position = 0
        self._outcome: Outcome[Any] = Outcome.success()
        self._exit = False

    @property
    def outcome(self) -> Outcome[Any]:
        return self._outcome

    def start(self, initial: Any) -> None:
        self._outcome = Outcome.success(initial)
        self._start(len(self._steps))

    def _record(self, error: Any, value: Any, exit: bool) -> None:
        self._outcome = Outcome.of(error, value)
        self._exit = exit

    def _advance(self) -> None:
        outcome = self._outcome
        if self._position >= len(self._steps) or self._exit:
            self._finish(outcome.error, outcome.value, exited=self._exit)
            return

        index = self._position
        step = self._steps[index]
        self._position += 1

        if outcome.failed:
            if step.is_trap:
                self._invoke(index, step.name, step.fn, outcome.error, outcome.value, input_value=outcome.value)
            else:
                self._skip(index, step.name, "error_pending")
        elif step.is_value:
            self._invoke(index, step.name, self._callable(step), outcome.value, input_value=outcome.value)
        else:
            self._skip(index, step.name, "no_error")

    def _callable(self, step: Step) -> Callable[..., Any]:
        """Nested pipelines run with this run's settings and bus."""
        if isinstance(step.fn, Pipeline):
            return functools.partial(step.fn, settings=self._settings, bus=self._bus)
        return step.fn


class Pipeline:
    """Immutable, reentrant chain of steps built by ``seq``.

    Each call starts an independent PipelineRun, so one pipeline can be
    in flight many times at once.
    """

    def __init__(self, steps: Iterable[Any] = ()):
        self._steps: tuple[Step, ...] = tuple(Step.from_callable(s) for s in steps)

    @property
    def steps(self) -> tuple[Step, ...]:
        return self._steps

    def __call__(
        self,
        initial: Any = None,
        callback: Callable[[Any, Any], None] | None = None,
        *,
        settings: FlowSettings | None = None,
        bus: EventBus | None = None,
    ) -> None:
        """Run the pipeline from ``initial``; ``callback(error, value)`` fires once at the end."""
        PipelineRun(self._steps, callback, settings, bus).start(initial)

    async def run_async(
        self,
        initial: Any = None,
        *,
        settings: FlowSettings | None = None,
        bus: EventBus | None = None,
    ) -> Any:
        """Await the pipeline's final value.

        Raises:
            PipelineError: The pipeline ended with an unresolved error
        """
        return await to_future(lambda done: self(initial, done, settings=settings, bus=bus))

    def with_step(self, step: Any) -> Pipeline:
        """
        Return new pipeline with step appended.

        Creates a new pipeline, leaves the original unchanged.
        """
        return Pipeline(self._steps + (Step.from_callable(step),))

    def __len__(self) -> int:
        return len(self._steps)

    def __repr__(self) -> str:
        names = [f"{s.name}:{s.kind.value}" for s in self._steps]
        return f"Pipeline(steps={names})"


def seq(*steps: Any) -> Pipeline:
    """Compose asynchronous steps into a Pipeline.

    Accepts steps as separate arguments, as one list or tuple, or as one
    mapping (values in insertion order, keys discarded). Each step's kind
    is resolved here, once: explicitly tagged steps keep their tag, plain
    callables are traps when they take three positional parameters and
    value steps when they take two or fewer. A Pipeline used as a step
    runs with the enclosing run's settings and event bus.

    Example:
        seq(
            lambda data, next: next(None, data + 1),
            lambda data, next: next("err", data + 1),   # error: skip to the next trap
            lambda data, next: next(None, data + 1),    # skipped
            lambda err, data, next: next(None, data + 10),  # trap clears the error
            lambda data, next: next(None, data + 1, data > 10),  # exits here
            lambda data, next: next(None, data + 1),    # never reached
        )(1, lambda err, result: print(err, result))
        # None 14

    Raises:
        StepDefinitionError: A step is not callable or takes more than three parameters
    """
    return Pipeline(flatten_steps(steps))
