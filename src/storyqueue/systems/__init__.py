"""
Rules systems for the story engine.

Each system is handed the StoryState (or a piece of it) explicitly;
none keeps global state. The engine sequences them.
"""

from .requirements import RequirementEvaluator
from .resolver import ChoiceResolver, RandomSource
from .consequences import ConsequenceApplier
from .phases import (
    PENDING_PRIORITY_REASON,
    VALID_TRANSITIONS,
    InvalidPhaseError,
    PhaseMachine,
    StoryEngineError,
)
from .arcs import ArcTracker
from .scheduler import MAX_CHAIN_DEPTH, EventScheduler, SchedulerReport

__all__ = [
    "RequirementEvaluator",
    "ChoiceResolver",
    "RandomSource",
    "ConsequenceApplier",
    # Weekly loop
    "PENDING_PRIORITY_REASON",
    "VALID_TRANSITIONS",
    "InvalidPhaseError",
    "PhaseMachine",
    "StoryEngineError",
    "ArcTracker",
    "MAX_CHAIN_DEPTH",
    "EventScheduler",
    "SchedulerReport",
]
