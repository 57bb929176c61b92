"""EventBus: observe runs without touching their callbacks.

Runners emit lifecycle events; tooling subscribes to what it needs.

Usage:
    bus = EventBus.get()
    bus.subscribe(StepSkippedEvent, self._on_skip)

    # Cleanup
    bus.unsubscribe(StepSkippedEvent, self._on_skip)
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, TypeVar
import logging
import weakref

logger = logging.getLogger(__name__)

E = TypeVar("E", bound="Event")


@dataclass
class Event:
    """Base class for all run events."""

    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class RunStartedEvent(Event):
    """Emitted when a series, each_series or seq run starts."""

    run_id: str = ""
    kind: str = ""  # "series" | "each_series" | "seq"
    step_count: int = 0


@dataclass
class StepInvokedEvent(Event):
    """Emitted just before a step is called."""

    run_id: str = ""
    kind: str = ""
    index: int = 0
    step_name: str = ""


@dataclass
class StepSkippedEvent(Event):
    """Emitted when a pipeline passes over a step without calling it."""

    run_id: str = ""
    kind: str = ""
    index: int = 0
    step_name: str = ""
    reason: str = ""  # "error_pending" | "no_error"


@dataclass
class RunFinishedEvent(Event):
    """Emitted right before the final callback is invoked."""

    run_id: str = ""
    kind: str = ""
    error: Any = None
    exited: bool = False
    steps_run: int = 0


EventHandler = Callable[[Event], None]


class EventBus:
    """Central event bus for run events.

    Singleton pattern ensures one bus per process unless a run is given
    its own. Handlers subscribed to a base class receive every subclass
    event, so subscribing to ``Event`` observes a whole run. Weak
    subscriptions are dropped once their owner is collected.
    """

    _instance: "EventBus | None" = None

    def __init__(self) -> None:
        self._subscribers: dict[type[Event], list[EventHandler]] = {}
        self._weak_subscribers: dict[type[Event], list[weakref.ref]] = {}

    @classmethod
    def get(cls) -> "EventBus":
        """Get the singleton event bus instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset the singleton (for testing)."""
        cls._instance = None

    def subscribe(
        self,
        event_type: type[E],
        handler: Callable[[E], None],
        weak: bool = False,
    ) -> None:
        """Subscribe to an event type and its subclasses.

        Args:
            event_type: The event class to subscribe to
            handler: Callback invoked with each emitted event
            weak: Hold the handler by weak reference
        """
        if weak:
            ref = weakref.WeakMethod(handler) if hasattr(handler, "__func__") else weakref.ref(handler)
            self._weak_subscribers.setdefault(event_type, []).append(ref)
        else:
            handlers = self._subscribers.setdefault(event_type, [])
            if handler not in handlers:
                handlers.append(handler)

    def unsubscribe(
        self,
        event_type: type[E],
        handler: Callable[[E], None],
    ) -> None:
        """Unsubscribe a strong or weak handler from an event type."""
        handlers = self._subscribers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)
        refs = self._weak_subscribers.get(event_type)
        if refs:
            # Dead refs go too; their handlers can never fire again
            self._weak_subscribers[event_type] = [
                ref for ref in refs if ref() is not None and ref() != handler
            ]

    def _handlers_for(self, event_type: type[Event]) -> list[EventHandler]:
        """Live handlers for an event type, walking its base classes."""
        handlers: list[EventHandler] = []
        for cls in event_type.__mro__:
            if not (isinstance(cls, type) and issubclass(cls, Event)):
                continue
            handlers.extend(self._subscribers.get(cls, []))
            refs = self._weak_subscribers.get(cls)
            if refs:
                live = [ref for ref in refs if ref() is not None]
                self._weak_subscribers[cls] = live
                handlers.extend(ref() for ref in live)
        return [h for h in handlers if h is not None]

    def has_subscribers(self, event_type: type[Event] | None = None) -> bool:
        """Whether any live handler would receive events of ``event_type``.

        Without an event type, whether any live handler is registered at all.
        """
        if event_type is not None:
            return bool(self._handlers_for(event_type))
        if any(self._subscribers.values()):
            return True
        return any(ref() is not None for refs in self._weak_subscribers.values() for ref in refs)

    def emit(self, event: Event) -> None:
        """Emit an event to all subscribers.

        Logs errors but doesn't let one subscriber's failure affect others
        or the run that emitted the event.
        """
        event_type = type(event)
        for handler in self._handlers_for(event_type):
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Event handler error for {event_type.__name__}: {e}")
