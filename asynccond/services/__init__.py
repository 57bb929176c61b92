"""Runners and supporting services for asynccond."""

from asynccond.services.each import each_series
from asynccond.services.pipeline import Pipeline, seq
from asynccond.services.series import series
from asynccond.services.config import ConfigManager, FlowSettings
from asynccond.services.scheduler import DeferredQueue, LoopScheduler, deferred, to_future

__all__ = [
    "each_series",
    "series",
    "seq",
    "Pipeline",
    "ConfigManager",
    "FlowSettings",
    "DeferredQueue",
    "LoopScheduler",
    "deferred",
    "to_future",
]
