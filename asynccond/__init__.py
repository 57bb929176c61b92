"""asynccond: sequential control flow for callback-style asynchronous steps.

- series(tasks, callback): run independent tasks one at a time
- each_series(items, iterator, callback): apply an iterator to items in order
- seq(*steps): compose a reusable pipeline with error traps and early exit
"""

from asynccond.models import (
    AsyncCondError,
    ContinuationError,
    ConfigError,
    Outcome,
    PipelineError,
    Step,
    StepDefinitionError,
    StepKind,
    trap_step,
    value_step,
)
from asynccond.services import (
    ConfigManager,
    DeferredQueue,
    FlowSettings,
    LoopScheduler,
    Pipeline,
    deferred,
    each_series,
    seq,
    series,
    to_future,
)
from asynccond.services.events import EventBus

__version__ = "0.1.0"

__all__ = [
    "series",
    "each_series",
    "seq",
    "Pipeline",
    "Step",
    "StepKind",
    "value_step",
    "trap_step",
    "Outcome",
    "FlowSettings",
    "ConfigManager",
    "EventBus",
    "DeferredQueue",
    "LoopScheduler",
    "deferred",
    "to_future",
    "AsyncCondError",
    "StepDefinitionError",
    "ContinuationError",
    "PipelineError",
    "ConfigError",
]
