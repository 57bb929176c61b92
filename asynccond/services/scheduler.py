"""Deferred execution for asynchronous steps.

Steps are expected to call their continuation later rather than in a tight
synchronous loop. This module provides the deferral primitives they can
use, and a bridge from callback-style runs to asyncio futures.

Example:
    queue = DeferredQueue()
    step = deferred(lambda value, next: next(None, value + 1), queue)

    seq(step, step)(0, on_done)
    queue.run()  # drains both steps, then on_done(None, 2)
"""

from __future__ import annotations

import asyncio
import functools
import logging
from collections import deque
from typing import Any, Callable, Protocol

from ..models.exceptions import PipelineError
from ..models.step import Step

logger = logging.getLogger(__name__)


class Scheduler(Protocol):
    """Anything that can run a callable on a later tick."""

    def defer(self, fn: Callable[..., Any], *args: Any) -> None:
        ...


class DeferredQueue:
    """FIFO of deferred calls, drained explicitly with ``run()``.

    The synchronous equivalent of a next-tick queue. Calls deferred while
    draining are appended and drained in the same ``run()``.
    """

    def __init__(self) -> None:
        self._queue: deque[tuple[Callable[..., Any], tuple[Any, ...]]] = deque()

    def defer(self, fn: Callable[..., Any], *args: Any) -> None:
        self._queue.append((fn, args))

    def run(self, limit: int | None = None) -> int:
        """Run deferred calls until the queue is empty.

        Args:
            limit: Stop after this many calls, even if more are queued

        Returns:
            Number of calls executed
        """
        count = 0
        while self._queue and (limit is None or count < limit):
            fn, args = self._queue.popleft()
            fn(*args)
            count += 1
        return count

    def __len__(self) -> int:
        return len(self._queue)


class LoopScheduler:
    """Defers calls onto an asyncio event loop with ``call_soon``."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def defer(self, fn: Callable[..., Any], *args: Any) -> None:
        loop = self._loop or asyncio.get_running_loop()
        loop.call_soon(fn, *args)


def deferred(fn: Any, scheduler: Scheduler) -> Any:
    """Wrap a step or task so it reports through ``scheduler``.

    The wrapper keeps the wrapped function's signature, so pipelines
    classify it exactly as they would classify ``fn``.
    """
    if isinstance(fn, Step):
        return Step(fn=deferred(fn.fn, scheduler), kind=fn.kind, name=fn.name)

    @functools.wraps(fn)
    def wrapper(*args: Any) -> Any:
        *head, next_ = args

        def later(error: Any = None, value: Any = None, exit: bool = False) -> None:
            scheduler.defer(next_, error, value, exit)

        return fn(*head, later)

    return wrapper


def to_future(
    start: Callable[[Callable[[Any, Any], None]], None],
    loop: asyncio.AbstractEventLoop | None = None,
) -> asyncio.Future:
    """Adapt a callback-style call into an asyncio future.

    ``start`` receives the final callback. The future resolves with the
    result, or fails with PipelineError when an error is reported.
    Must be called from the loop's thread; the callback may fire from any.
    """
    loop = loop or asyncio.get_running_loop()
    future: asyncio.Future = loop.create_future()

    def settle(error: Any, result: Any) -> None:
        if future.done():
            logger.warning("Final callback fired after the future was settled")
            return
        if error is not None:
            future.set_exception(PipelineError(error, result))
        else:
            future.set_result(result)

    def done(error: Any, result: Any) -> None:
        loop.call_soon_threadsafe(settle, error, result)

    start(done)
    return future
