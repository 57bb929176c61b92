"""Continuation: the ``next`` callable handed to every step."""

import logging
from typing import Any, Callable

from ..models.exceptions import ContinuationError

logger = logging.getLogger(__name__)

Resolve = Callable[[Any, Any, bool], None]


class Continuation:
    """Once-only ``next(error=None, value=None, exit=False)`` callback.

    The first call reports the step's outcome to its run. Later calls are
    contract violations: they are logged and ignored, or raise
    ContinuationError when ``strict`` is set.
    """

    __slots__ = ("_resolve", "_label", "_strict", "_called")

    def __init__(self, resolve: Resolve, label: str, strict: bool = False) -> None:
        self._resolve = resolve
        self._label = label
        self._strict = strict
        self._called = False

    @property
    def called(self) -> bool:
        return self._called

    def __call__(self, error: Any = None, value: Any = None, exit: bool = False) -> None:
        if self._called:
            if self._strict:
                raise ContinuationError(
                    f"Continuation for {self._label} called more than once",
                    suggestion="call next exactly once per step",
                )
            logger.warning(f"Ignoring repeated continuation call for {self._label}")
            return
        self._called = True
        self._resolve(error, value, bool(exit))

    def __repr__(self) -> str:
        state = "called" if self._called else "pending"
        return f"Continuation({self._label}, {state})"
