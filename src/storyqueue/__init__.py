"""
storyqueue: weekly event-queue and story-arc engine.

Decides which narrative events a player faces each in-game week,
enforces the order of the week's beats, resolves choices into
consequences, and moves multi-week story arcs along.
"""

from .config import DEFAULT_CONFIG, EngineConfig, load_config, make_config, save_config
from .content import CatalogError, CatalogIssue, ContentCatalog
from .engine import StoryEngine
from .state import EngineEvent, EngineEventType, EventBus, StoryState, get_event_bus, reset_event_bus
from .state.schemas import (
    AdvanceResult,
    ChoiceResult,
    Eligibility,
    EventQueue,
    FlowStatus,
    NpcState,
    StatDelta,
    StateSnapshot,
    StoryArc,
    StoryEvent,
    WeekPhase,
)
from .systems import InvalidPhaseError, StoryEngineError

__version__ = "0.1.0"

__all__ = [
    "StoryEngine",
    # Content
    "CatalogError",
    "CatalogIssue",
    "ContentCatalog",
    "StoryArc",
    "StoryEvent",
    # Boundary
    "AdvanceResult",
    "ChoiceResult",
    "Eligibility",
    "EventQueue",
    "FlowStatus",
    "NpcState",
    "StatDelta",
    "StateSnapshot",
    "StoryState",
    "WeekPhase",
    # Errors
    "InvalidPhaseError",
    "StoryEngineError",
    # Config
    "DEFAULT_CONFIG",
    "EngineConfig",
    "load_config",
    "make_config",
    "save_config",
    # Events
    "EngineEvent",
    "EngineEventType",
    "EventBus",
    "get_event_bus",
    "reset_event_bus",
]
