"""Series: run independent tasks one after another."""

from typing import Any, Callable

from ..models.step import describe
from ..models.tasks import TaskList
from .config import FlowSettings
from .events import EventBus
from .runner import FinalCallback, SequentialRun


class SeriesRun(SequentialRun):
    """One invocation of ``series``."""

    kind = "series"

    def __init__(
        self,
        tasks: TaskList,
        callback: FinalCallback | None = None,
        settings: FlowSettings | None = None,
        bus: EventBus | None = None,
    ) -> None:
        super().__init__(callback, settings, bus)
        self._tasks = tasks
        self._index = 0
        self._results: list[Any] = []

    def start(self) -> None:
        self._start(len(self._tasks))

    def _advance(self) -> None:
        if self._index >= len(self._tasks):
            self._finish(None, self._tasks.to_results(self._results))
            return
        index = self._index
        self._index += 1
        task = self._tasks.tasks[index]
        self._invoke(index, _task_name(self._tasks, index, task), task)

    def _record(self, error: Any, value: Any, exit: bool) -> None:
        self._results.append(value)
        if error is not None or exit:
            self._finish(error, self._tasks.to_results(self._results), exited=exit)


def _task_name(tasks: TaskList, index: int, task: Any) -> str:
    if tasks.keys is not None:
        return str(tasks.keys[index])
    return describe(task)


def series(
    tasks: Any,
    callback: Callable[[Any, Any], None] | None = None,
    *,
    settings: FlowSettings | None = None,
    bus: EventBus | None = None,
) -> None:
    """Run ``tasks`` in series, each once the previous one has called back.

    Each task is called as ``task(next)`` and reports with
    ``next(error=None, value=None, exit=False)``. An error or ``exit``
    stops the series; the final callback then receives the error and the
    results so far, including the stopping task's value.

    Tasks may be a sequence or a mapping. With a mapping the results
    are a dict with the same keys in the same order.

    Example:
        series({
            "one": lambda next: next(None, 17),
            "two": lambda next: next(None, 27, True),
            "three": lambda next: next(None, 37),
        }, lambda error, results: print(results))
        # {'one': 17, 'two': 27}

    Args:
        tasks: Sequence or mapping of ``task(next)`` callables
        callback: ``callback(error, results)``, optional
        settings: Overrides for the configured FlowSettings
        bus: EventBus to publish run events on (default: the singleton)
    """
    task_list = TaskList.from_collection(tasks)
    task_list.require_callables()
    SeriesRun(task_list, callback, settings, bus).start()
