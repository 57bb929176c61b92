"""Sequential runner: run one step, inspect its outcome, decide whether to continue.

Shared driver for series, each_series and seq. Runs are trampolined:
a continuation called while the driver loop is already on the stack only
marks the run as ready, and the loop picks it up. Steps that resolve
synchronously, and steps a pipeline skips, therefore never grow the stack.
"""

from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from typing import Any, Callable

from .config import FlowSettings, resolve_settings
from .continuation import Continuation
from .events import (
    Event,
    EventBus,
    RunFinishedEvent,
    RunStartedEvent,
    StepInvokedEvent,
    StepSkippedEvent,
)

logger = logging.getLogger(__name__)

FinalCallback = Callable[[Any, Any], None]


class SequentialRun(ABC):
    """State of one invocation. Created per call and discarded once finished."""

    kind: str = ""

    def __init__(
        self,
        callback: FinalCallback | None,
        settings: FlowSettings | None = None,
        bus: EventBus | None = None,
    ) -> None:
        self._callback: FinalCallback = callback if callback is not None else (lambda error, result: None)
        self._settings = resolve_settings(settings)
        self._bus = (bus or EventBus.get()) if self._settings.emit_events else None
        self.run_id = uuid.uuid4().hex[:8]
        self._pending = False
        self._driving = False
        self._finished = False
        self._steps_run = 0

    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def steps_run(self) -> int:
        return self._steps_run

    @abstractmethod
    def _advance(self) -> None:
        """Invoke, skip or finish at the cursor. Called once per loop turn."""

    @abstractmethod
    def _record(self, error: Any, value: Any, exit: bool) -> None:
        """Fold a step's reported outcome into the run state."""

    def _emit(self, event_type: type[Event], **fields: Any) -> None:
        """Publish a run event, built only if someone listens for it."""
        if self._bus is not None and self._bus.has_subscribers(event_type):
            self._bus.emit(event_type(run_id=self.run_id, kind=self.kind, **fields))

    def _start(self, step_count: int) -> None:
        logger.debug(f"{self.kind} {self.run_id}: starting with {step_count} steps")
        self._emit(RunStartedEvent, step_count=step_count)
        self._pending = True
        self._drive()

    def _drive(self) -> None:
        if self._driving:
            return
        self._driving = True
        try:
            while self._pending and not self._finished:
                self._pending = False
                self._advance()
        finally:
            self._driving = False

    def _resolve(self, error: Any, value: Any, exit: bool) -> None:
        if self._finished:
            logger.warning(f"{self.kind} {self.run_id}: step reported after the run finished")
            return
        self._record(error, value, exit)
        if not self._finished:
            self._pending = True
            self._drive()

    def _invoke(self, index: int, name: str, fn: Callable[..., Any], *args: Any, input_value: Any = None) -> None:
        """Call a step with a fresh continuation appended to ``args``."""
        label = f"{self.kind} {self.run_id} step {index} ({name})"
        next_ = Continuation(self._resolve, label, strict=bool(self._settings.strict_continuations))
        self._steps_run += 1
        logger.debug(f"{label}: invoking")
        self._emit(StepInvokedEvent, index=index, step_name=name)

        if not self._settings.capture_exceptions:
            fn(*args, next_)
            return
        try:
            fn(*args, next_)
        except Exception as e:
            if next_.called:
                raise
            logger.debug(f"{label}: raised {e!r}, reporting it as the step's error")
            next_(e, input_value)

    def _skip(self, index: int, name: str, reason: str) -> None:
        logger.debug(f"{self.kind} {self.run_id} step {index} ({name}): skipped, {reason}")
        self._emit(StepSkippedEvent, index=index, step_name=name, reason=reason)
        self._pending = True

    def _finish(self, error: Any, result: Any, exited: bool = False) -> None:
        self._finished = True
        logger.debug(
            f"{self.kind} {self.run_id}: finished after {self._steps_run} steps "
            f"(error={error!r}, exited={exited})"
        )
        self._emit(RunFinishedEvent, error=error, exited=exited, steps_run=self._steps_run)
        self._callback(error, result)
