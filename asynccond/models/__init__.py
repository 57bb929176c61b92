"""Data models for asynccond."""

from .outcome import Outcome
from .step import Step, StepKind, arity, trap_step, value_step
from .tasks import TaskList, flatten_steps
from .exceptions import (
    AsyncCondError,
    StepDefinitionError,
    ContinuationError,
    PipelineError,
    ConfigError,
)

__all__ = [
    # Outcomes and steps
    "Outcome",
    "Step",
    "StepKind",
    "arity",
    "trap_step",
    "value_step",
    # Task collections
    "TaskList",
    "flatten_steps",
    # Exceptions
    "AsyncCondError",
    "StepDefinitionError",
    "ContinuationError",
    "PipelineError",
    "ConfigError",
]
