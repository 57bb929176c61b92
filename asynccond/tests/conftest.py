"""Shared test fixtures for asynccond."""

import pytest
from pathlib import Path

from asynccond.services import config as config_module
from asynccond.services.config import ConfigManager
from asynccond.services.events import EventBus
from asynccond.services.scheduler import DeferredQueue


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path: Path):
    """Keep runs away from the user's config file and environment."""
    config_module._default_manager = ConfigManager(config_dir=tmp_path / "asynccond", environ={})
    yield
    config_module.reset_default_settings()


@pytest.fixture(autouse=True)
def fresh_bus():
    """Fresh event bus for each test."""
    EventBus.reset()
    yield EventBus.get()
    EventBus.reset()


@pytest.fixture
def queue() -> DeferredQueue:
    """Next-tick queue for steps that should resolve asynchronously."""
    return DeferredQueue()


@pytest.fixture
def step(queue: DeferredQueue):
    """Value step that adds one on the next tick."""

    def _step(data, cb):
        queue.defer(cb, None, data + 1)

    return _step


@pytest.fixture
def never_reach():
    """Value step that fails the test if a pipeline ever calls it."""

    def _never_reach(data, cb):
        pytest.fail("Should not reach here")

    return _never_reach


class Recorder:
    """Final callback that records every call."""

    def __init__(self) -> None:
        self.calls: list[tuple] = []

    def __call__(self, error, result) -> None:
        self.calls.append((error, result))

    @property
    def called(self) -> bool:
        return bool(self.calls)

    @property
    def error(self):
        assert len(self.calls) == 1, f"expected one final call, got {self.calls}"
        return self.calls[0][0]

    @property
    def result(self):
        assert len(self.calls) == 1, f"expected one final call, got {self.calls}"
        return self.calls[0][1]


@pytest.fixture
def done() -> Recorder:
    """Recording final callback."""
    return Recorder()
