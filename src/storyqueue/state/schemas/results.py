"""
Result schemas: what the engine hands back to its caller.

- Eligibility: outcome of a requirement check or a guarded command
- Resolution: the Choice Resolver's decision (no state touched)
- StatDelta: the envelope the external player store understands
- ChoiceResult / AdvanceResult: outcomes of the two mutating commands

Rejections are values, not exceptions: a refused command comes back
with accepted=False and a human-readable reason.
"""

from pydantic import BaseModel, Field

from .content import EventConsequences, FollowUp, Notification
from .progress import ArcProgress
from .queue import LapsedEvent, WeekPhase


class Eligibility(BaseModel):
    """Whether something is allowed, and why not."""
    eligible: bool
    reason: str | None = None

    @classmethod
    def ok(cls) -> "Eligibility":
        return cls(eligible=True)

    @classmethod
    def denied(cls, reason: str) -> "Eligibility":
        return cls(eligible=False, reason=reason)

    def __bool__(self) -> bool:
        return self.eligible


class Resolution(BaseModel):
    """Decision produced by the Choice Resolver."""
    success: bool
    rolled: int | None = None  # Final roll after modifiers
    threshold: int | None = None
    critical: bool = False
    critical_failure: bool = False
    consequences: EventConsequences = Field(default_factory=EventConsequences)
    triggered_events: list[FollowUp] = Field(default_factory=list)


class RelationshipDelta(BaseModel):
    relationship: float = 0
    trust: float = 0
    memories: list[str] = Field(default_factory=list)


class StatDelta(BaseModel):
    """
    Generic change envelope for the external player-state store.

    Deltas from several sources in one turn are summed with merge(),
    never overwritten.
    """
    stats: dict[str, float] = Field(default_factory=dict)
    relationships: dict[str, RelationshipDelta] = Field(default_factory=dict)
    add_flags: list[str] = Field(default_factory=list)
    remove_flags: list[str] = Field(default_factory=list)
    arc_advances: list[str] = Field(default_factory=list)
    arc_failures: list[str] = Field(default_factory=list)
    notifications: list[Notification] = Field(default_factory=list)
    dropped: list[str] = Field(default_factory=list)  # Rejected sub-effects

    @property
    def is_empty(self) -> bool:
        return self == StatDelta()

    def merge(self, other: "StatDelta") -> "StatDelta":
        """Combine two deltas. Numbers add up; a later flag change wins."""
        stats = dict(self.stats)
        for name, value in other.stats.items():
            stats[name] = stats.get(name, 0) + value

        relationships = {
            npc_id: rel.model_copy(deep=True)
            for npc_id, rel in self.relationships.items()
        }
        for npc_id, rel in other.relationships.items():
            current = relationships.get(npc_id)
            if current is None:
                relationships[npc_id] = rel.model_copy(deep=True)
            else:
                relationships[npc_id] = RelationshipDelta(
                    relationship=current.relationship + rel.relationship,
                    trust=current.trust + rel.trust,
                    memories=current.memories + rel.memories,
                )

        add_flags = [f for f in self.add_flags if f not in other.remove_flags]
        add_flags += [f for f in other.add_flags if f not in add_flags]
        remove_flags = [f for f in self.remove_flags if f not in other.add_flags]
        remove_flags += [f for f in other.remove_flags if f not in remove_flags]

        return StatDelta(
            stats=stats,
            relationships=relationships,
            add_flags=add_flags,
            remove_flags=remove_flags,
            arc_advances=self.arc_advances + other.arc_advances,
            arc_failures=self.arc_failures + other.arc_failures,
            notifications=self.notifications + other.notifications,
            dropped=self.dropped + other.dropped,
        )

    def __add__(self, other: "StatDelta") -> "StatDelta":
        return self.merge(other)


class ChoiceResult(BaseModel):
    """
    Outcome of make_choice.

    When accepted, engine-owned state (queue, flags, arcs, phase) has
    already been committed; `delta` is for the caller to forward to the
    external player store.
    """
    accepted: bool
    reason: str | None = None
    event_id: str | None = None
    choice_id: str | None = None

    success: bool = False
    rolled: int | None = None
    threshold: int | None = None
    critical: bool = False
    critical_failure: bool = False
    consequences: EventConsequences | None = None

    delta: StatDelta = Field(default_factory=StatDelta)
    chained_events: list[str] = Field(default_factory=list)
    scheduled_events: list[str] = Field(default_factory=list)
    arc_updates: list[ArcProgress] = Field(default_factory=list)

    phase: WeekPhase | None = None
    week: int | None = None

    @classmethod
    def rejected(cls, reason: str, event_id: str | None = None,
                 choice_id: str | None = None) -> "ChoiceResult":
        return cls(accepted=False, reason=reason, event_id=event_id, choice_id=choice_id)


class WeeklySummary(BaseModel):
    """Recap of a closed week."""
    week: int
    priority_event_id: str | None = None
    priority_choice_id: str | None = None
    optional_events_handled: int = 0
    lapsed_events: list[str] = Field(default_factory=list)
    key_consequences: list[str] = Field(default_factory=list)
    arc_progressions: list[str] = Field(default_factory=list)
    # e.g. ["arc_first_deal: stage 2", "arc_hunter_rivalry: FAILED"]


class AdvanceResult(BaseModel):
    """Outcome of advance_week / end_week."""
    accepted: bool
    reason: str | None = None
    week: int
    phase: WeekPhase
    lapsed: list[LapsedEvent] = Field(default_factory=list)
    delta: StatDelta = Field(default_factory=StatDelta)  # From auto-resolved events
    summary: WeeklySummary | None = None
    dropped: list[str] = Field(default_factory=list)  # Dangling references


class FlowStatus(BaseModel):
    phase: WeekPhase
    week: int
    has_pending_priority: bool
