"""
Event bus for story engine state changes.

Provides decoupled communication between the engine and its observers
(presentation toasts, achievement tracking, analytics). Observers
subscribe to events and react without the engine knowing about them.

Usage:
    from .event_bus import get_event_bus, EngineEventType

    bus = get_event_bus()
    bus.on(EngineEventType.EVENT_LAPSED, my_handler)

    # Engine side
    bus.emit(EngineEventType.EVENT_LAPSED, week=4, event_id="evt_board_call")

    def my_handler(event: EngineEvent):
        print(f"{event.data['event_id']} lapsed in week {event.week}")
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable

logger = logging.getLogger(__name__)


class EngineEventType(Enum):
    """Engine events that can be published."""

    # Queue events
    QUEUE_POPULATED = "queue.populated"
    EVENT_ENQUEUED = "event.enqueued"
    EVENT_RESOLVED = "event.resolved"
    EVENT_LAPSED = "event.lapsed"
    EVENT_CHAINED = "event.chained"
    EVENT_DEFERRED = "event.deferred"
    REFERENCE_DROPPED = "reference.dropped"

    # Arc events
    ARC_ACTIVATED = "arc.activated"
    ARC_ADVANCED = "arc.advanced"
    ARC_COMPLETED = "arc.completed"
    ARC_FAILED = "arc.failed"

    # Flow events
    PHASE_CHANGED = "phase.changed"
    WEEK_ADVANCED = "week.advanced"

    # World events
    FLAG_SET = "flag.set"
    FLAG_CLEARED = "flag.cleared"


@dataclass
class EngineEvent:
    """
    Event payload for the event bus.

    Attributes:
        type: The event type (from EngineEventType enum)
        data: Event-specific payload as dict
        week: In-game week when the event occurred
        timestamp: When the event was emitted
    """

    type: EngineEventType
    data: dict = field(default_factory=dict)
    week: int = 0
    timestamp: datetime = field(default_factory=datetime.now)

    def __str__(self) -> str:
        return f"[{self.type.value}] W{self.week} {self.data}"


# Type alias for event handlers
EventHandler = Callable[[EngineEvent], None]


class EventBus:
    """
    Synchronous event bus.

    Listeners are called immediately on emit(). A failing listener is
    logged and skipped; it never interrupts the engine command that
    emitted the event.
    """

    def __init__(self, history_limit: int = 200):
        self._listeners: dict[EngineEventType, list[EventHandler]] = {}
        self._history: list[EngineEvent] = []
        self._history_limit = history_limit

    def on(self, event_type: EngineEventType, handler: EventHandler) -> None:
        """Subscribe to an event type."""
        if event_type not in self._listeners:
            self._listeners[event_type] = []
        if handler not in self._listeners[event_type]:
            self._listeners[event_type].append(handler)

    def off(self, event_type: EngineEventType, handler: EventHandler) -> None:
        """Unsubscribe from an event type."""
        if event_type in self._listeners and handler in self._listeners[event_type]:
            self._listeners[event_type].remove(handler)

    def emit(self, event_type: EngineEventType, week: int = 0, **data) -> EngineEvent:
        """
        Emit an event to all subscribers.

        Returns:
            The emitted EngineEvent (for chaining/testing)
        """
        event = EngineEvent(type=event_type, data=data, week=week)

        self._history.append(event)
        if len(self._history) > self._history_limit:
            self._history = self._history[-self._history_limit :]

        for handler in list(self._listeners.get(event_type, [])):
            try:
                handler(event)
            except Exception:
                logger.exception(f"Error in handler for {event_type.value}")

        return event

    def clear(self) -> None:
        """Clear all listeners. Useful for testing."""
        self._listeners.clear()

    def get_history(self, event_type: EngineEventType | None = None) -> list[EngineEvent]:
        """Recent events, optionally filtered by type."""
        if event_type is None:
            return list(self._history)
        return [e for e in self._history if e.type == event_type]

    def listener_count(self, event_type: EngineEventType) -> int:
        return len(self._listeners.get(event_type, []))


# Global default instance, used when an engine is not given its own bus
_event_bus: EventBus | None = None


def get_event_bus() -> EventBus:
    """Get the shared event bus instance."""
    global _event_bus
    if _event_bus is None:
        _event_bus = EventBus()
    return _event_bus


def reset_event_bus() -> None:
    """Reset the shared event bus. Useful for testing."""
    global _event_bus
    _event_bus = None
