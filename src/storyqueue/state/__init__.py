"""State management for the story engine."""

from .store import FlagChange, StoryState, WorldFlags
from .event_bus import (
    EngineEvent,
    EngineEventType,
    EventBus,
    get_event_bus,
    reset_event_bus,
)

__all__ = [
    # Store
    "FlagChange",
    "StoryState",
    "WorldFlags",
    # Event Bus
    "EngineEvent",
    "EngineEventType",
    "EventBus",
    "get_event_bus",
    "reset_event_bus",
]
