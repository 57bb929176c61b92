"""Task collections: ordered sequences or keyed mappings of callables."""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable

from .exceptions import StepDefinitionError


@dataclass(frozen=True)
class TaskList:
    """Immutable, ordered view over a task collection.

    ``keys`` is None for ordered sequences. For mappings it holds the keys
    in insertion order, parallel to ``tasks``.
    """

    tasks: tuple[Any, ...]
    keys: tuple[Any, ...] | None = None

    @classmethod
    def from_collection(cls, collection: Any) -> "TaskList":
        """Normalize a mapping, sequence or other iterable of tasks."""
        if isinstance(collection, Mapping):
            return cls(tasks=tuple(collection.values()), keys=tuple(collection.keys()))
        if isinstance(collection, (str, bytes)):
            raise StepDefinitionError(f"Expected a collection of tasks, got {type(collection).__name__}")
        try:
            return cls(tasks=tuple(collection))
        except TypeError as e:
            raise StepDefinitionError(f"Expected a collection of tasks, got {collection!r}") from e

    @property
    def keyed(self) -> bool:
        return self.keys is not None

    def __len__(self) -> int:
        return len(self.tasks)

    def require_callables(self) -> None:
        """Raise if any task cannot be called."""
        for index, task in enumerate(self.tasks):
            if not callable(task):
                label = self.keys[index] if self.keys is not None else index
                raise StepDefinitionError(f"Task {label!r} is not callable: {task!r}")

    def to_results(self, results: list[Any]) -> list[Any] | dict[Any, Any]:
        """Shape accumulated results like the input collection.

        Keyed collections map each attempted task's key to its result,
        preserving key order; tasks never attempted are absent.
        """
        if self.keys is None:
            return list(results)
        return {key: result for key, result in zip(self.keys, results)}


def flatten_steps(steps: tuple[Any, ...]) -> tuple[Callable[..., Any], ...]:
    """Flatten ``seq`` arguments into a step tuple.

    A single sequence or mapping argument is unpacked; mapping keys are
    discarded.
    """
    if len(steps) == 1:
        only = steps[0]
        if isinstance(only, Mapping):
            return tuple(only.values())
        if isinstance(only, (list, tuple)):
            return tuple(only)
    return tuple(steps)
