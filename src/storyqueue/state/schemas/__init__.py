"""
Schema contracts for the story engine.

Three families:
- content: authored, immutable events and arcs
- queue / progress: engine-owned mutable state
- snapshot / results: what crosses the engine boundary

All schemas are Pydantic BaseModel for validation and JSON serialization.
"""

from .content import (
    ArcAdvance,
    ArcRequirement,
    ArcStage,
    ArcState,
    EventCategory,
    EventChoice,
    EventConsequences,
    EventKind,
    EventRequirements,
    FollowUp,
    MarketCondition,
    Notification,
    NotificationSeverity,
    NpcEffect,
    NpcRequirement,
    PlayerRank,
    RANK_ORDER,
    SkillCheck,
    Stakes,
    StoryArc,
    StoryEvent,
)
from .progress import ArcMoment, ArcProgress
from .queue import (
    CompletedEvent,
    EventQueue,
    LapseReason,
    LapsedEvent,
    QueuedEvent,
    QueueSource,
    ScheduledEvent,
    WeekPhase,
)
from .snapshot import EvaluationContext, NpcState, StateSnapshot
from .results import (
    AdvanceResult,
    ChoiceResult,
    Eligibility,
    FlowStatus,
    RelationshipDelta,
    Resolution,
    StatDelta,
    WeeklySummary,
)

__all__ = [
    # Content
    "ArcAdvance",
    "ArcRequirement",
    "ArcStage",
    "ArcState",
    "EventCategory",
    "EventChoice",
    "EventConsequences",
    "EventKind",
    "EventRequirements",
    "FollowUp",
    "MarketCondition",
    "Notification",
    "NotificationSeverity",
    "NpcEffect",
    "NpcRequirement",
    "PlayerRank",
    "RANK_ORDER",
    "SkillCheck",
    "Stakes",
    "StoryArc",
    "StoryEvent",
    # Progress & queue
    "ArcMoment",
    "ArcProgress",
    "CompletedEvent",
    "EventQueue",
    "LapseReason",
    "LapsedEvent",
    "QueuedEvent",
    "QueueSource",
    "ScheduledEvent",
    "WeekPhase",
    # Boundary
    "EvaluationContext",
    "NpcState",
    "StateSnapshot",
    "AdvanceResult",
    "ChoiceResult",
    "Eligibility",
    "FlowStatus",
    "RelationshipDelta",
    "Resolution",
    "StatDelta",
    "WeeklySummary",
]
