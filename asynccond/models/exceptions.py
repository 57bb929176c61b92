"""Exception hierarchy for asynccond.

Flow errors reported by steps are opaque values and are never wrapped in
these classes; they exist for misuse of the library itself.
"""

from typing import Any


class AsyncCondError(Exception):
    """Base exception for all asynccond errors.

    Carries an optional suggestion that is appended to the message,
    so callers see how to fix the problem alongside what went wrong.
    """

    def __init__(self, message: str, suggestion: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.suggestion = suggestion

    def __str__(self) -> str:
        if self.suggestion:
            return f"{self.message} ({self.suggestion})"
        return self.message


class StepDefinitionError(AsyncCondError):
    """A step could not be classified when building a run."""

    pass


class ContinuationError(AsyncCondError):
    """A continuation was called more than once under strict mode."""

    pass


class PipelineError(AsyncCondError):
    """A pipeline awaited through the asyncio bridge ended with an error.

    Attributes:
        error: The unresolved error reported by the pipeline
        value: The last value the pipeline reported alongside it
    """

    def __init__(self, error: Any, value: Any = None) -> None:
        super().__init__(f"Pipeline ended with unresolved error: {error!r}")
        self.error = error
        self.value = value


class ConfigError(AsyncCondError):
    """Configuration is invalid or missing."""

    pass
