"""each_series: apply an asynchronous iterator to items one at a time."""

from typing import Any, Callable, Iterable

from ..models.exceptions import StepDefinitionError
from ..models.step import describe
from .config import FlowSettings
from .events import EventBus
from .runner import FinalCallback, SequentialRun


class EachSeriesRun(SequentialRun):
    """One invocation of ``each_series``."""

    kind = "each_series"

    def __init__(
        self,
        items: list[Any],
        iterator: Callable[[Any, Callable[..., None]], None],
        callback: FinalCallback | None = None,
        settings: FlowSettings | None = None,
        bus: EventBus | None = None,
    ) -> None:
        super().__init__(callback, settings, bus)
        self._items = items
        self._iterator = iterator
        self._name = describe(iterator)
        self._index = 0
        self._results: list[Any] = []

    def start(self) -> None:
        self._start(len(self._items))

    def _advance(self) -> None:
        if self._index >= len(self._items):
            self._finish(None, list(self._results))
            return
        index = self._index
        item = self._items[index]
        if self._settings.stop_on_falsy_items and not item:
            self._finish(None, list(self._results))
            return
        self._index += 1
        self._invoke(index, self._name, self._iterator, item, input_value=item)

    def _record(self, error: Any, value: Any, exit: bool) -> None:
        self._results.append(value)
        if error is not None or exit:
            self._finish(error, list(self._results), exited=exit)


def each_series(
    items: Iterable[Any],
    iterator: Callable[[Any, Callable[..., None]], None],
    callback: Callable[[Any, list[Any]], None] | None = None,
    *,
    settings: FlowSettings | None = None,
    bus: EventBus | None = None,
) -> None:
    """Call ``iterator(item, next)`` for each item, in order, one at a time.

    The next item is only visited once the previous call reported through
    ``next(error=None, value=None, exit=False)``. An error or ``exit``
    stops iteration; the final callback then receives the error and the
    values reported so far.

    Items are visited by index, so falsy items such as 0 or "" are
    passed to the iterator. Set ``stop_on_falsy_items`` to stop at the
    first falsy item instead.

    Example:
        each_series(
            [1, 2, 3, 4, 5],
            lambda n, next: next(None, n * 2, n * 2 > 5),
            lambda error, results: print(results),
        )
        # [2, 4, 6]
    """
    if not callable(iterator):
        raise StepDefinitionError(f"Iterator {iterator!r} is not callable")
    EachSeriesRun(list(items), iterator, callback, settings, bus).start()
