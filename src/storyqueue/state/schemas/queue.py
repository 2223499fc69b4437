"""
EventQueue schema: the engine's mutable core state.

The queue holds at most one priority event, a bounded list of optional
events, future scheduled activations, and two append-only logs
(completed and lapsed). Only the scheduler mutates it.

Design invariants:
- priority_event is None or exactly one QueuedEvent
- len(optional_events) <= capacity
- optional_events ordered by stakes (desc), then enqueue sequence
- completed_events / lapsed_events never lose entries
"""

from enum import Enum

from pydantic import BaseModel, Field

from .content import Stakes, STAKES_RANK


class WeekPhase(str, Enum):
    """Narrative beats of a single week, in order."""
    MORNING_BRIEFING = "MORNING_BRIEFING"  # Queue being populated
    PRIORITY_EVENT = "PRIORITY_EVENT"      # Mandatory event pending
    OPTIONAL_PHASE = "OPTIONAL_PHASE"      # Free play
    FALLOUT = "FALLOUT"                    # Closing-week bookkeeping
    WEEK_END = "WEEK_END"                  # Ready to roll the week


class QueueSource(str, Enum):
    """How an event entered the queue."""
    WEEKLY = "WEEKLY"        # Weekly selection from the catalog
    SCHEDULED = "SCHEDULED"  # Promoted from scheduled_events
    CHAINED = "CHAINED"      # Injected by a resolved choice


class LapseReason(str, Enum):
    EXPIRED = "EXPIRED"        # Deadline passed unresolved
    DISMISSED = "DISMISSED"    # Player dismissed an optional event
    INELIGIBLE = "INELIGIBLE"  # Requirements no longer met
    BLOCKED = "BLOCKED"        # Closed off by another event's consequence


class QueuedEvent(BaseModel):
    """An event currently available to the player."""
    event_id: str
    enqueued_week: int
    expiry_week: int | None = None
    stakes: Stakes = Stakes.MEDIUM
    source: QueueSource = QueueSource.WEEKLY
    sequence: int = 0  # Monotonic enqueue counter

    def is_expired(self, week: int) -> bool:
        return self.expiry_week is not None and self.expiry_week <= week


class ScheduledEvent(BaseModel):
    """An event pending activation in a future week."""
    event_id: str
    trigger_week: int
    probability: int = 100  # 0-100, rolled on promotion
    source: str = ""  # "choice:evt_first_deal/dig_deeper"


class CompletedEvent(BaseModel):
    """Audit record of a resolved event."""
    event_id: str
    choice_id: str
    week: int
    success: bool
    critical: bool = False
    auto_resolved: bool = False


class LapsedEvent(BaseModel):
    """Audit record of an event removed without a player choice."""
    event_id: str
    week: int
    reason: LapseReason = LapseReason.EXPIRED
    auto_choice_id: str | None = None  # Set when an auto-resolve choice fired


class EventQueue(BaseModel):
    """The weekly queue plus its history."""
    priority_event: QueuedEvent | None = None
    optional_events: list[QueuedEvent] = Field(default_factory=list)
    scheduled_events: dict[int, list[ScheduledEvent]] = Field(default_factory=dict)
    completed_events: list[CompletedEvent] = Field(default_factory=list)
    lapsed_events: list[LapsedEvent] = Field(default_factory=list)
    current_week: int = 1
    current_phase: WeekPhase = WeekPhase.MORNING_BRIEFING
    next_sequence: int = 0

    @property
    def queued(self) -> list[QueuedEvent]:
        """Every queued event, priority first."""
        entries = [self.priority_event] if self.priority_event else []
        return entries + list(self.optional_events)

    @property
    def queued_ids(self) -> set[str]:
        return {q.event_id for q in self.queued}

    @property
    def completed_ids(self) -> set[str]:
        return {c.event_id for c in self.completed_events}

    @property
    def lapsed_ids(self) -> set[str]:
        return {entry.event_id for entry in self.lapsed_events}

    @property
    def scheduled_ids(self) -> set[str]:
        return {
            s.event_id
            for entries in self.scheduled_events.values()
            for s in entries
        }

    def find(self, event_id: str) -> QueuedEvent | None:
        return next((q for q in self.queued if q.event_id == event_id), None)

    def is_priority(self, event_id: str) -> bool:
        return self.priority_event is not None and self.priority_event.event_id == event_id

    def take_sequence(self) -> int:
        seq = self.next_sequence
        self.next_sequence += 1
        return seq

    def insert_optional(self, entry: QueuedEvent, capacity: int) -> bool:
        """Insert keeping stakes/sequence order. Returns False when full."""
        if len(self.optional_events) >= capacity:
            return False
        self.optional_events.append(entry)
        self.optional_events.sort(
            key=lambda q: (-STAKES_RANK[q.stakes], q.sequence)
        )
        return True

    def remove(self, event_id: str) -> QueuedEvent | None:
        """Remove an event from whichever slot holds it."""
        if self.is_priority(event_id):
            entry = self.priority_event
            self.priority_event = None
            return entry
        for i, entry in enumerate(self.optional_events):
            if entry.event_id == event_id:
                return self.optional_events.pop(i)
        return None

    def add_scheduled(self, scheduled: ScheduledEvent) -> None:
        self.scheduled_events.setdefault(scheduled.trigger_week, []).append(scheduled)

    def pop_due(self, week: int) -> list[ScheduledEvent]:
        """Remove and return scheduled entries due at or before week, oldest first."""
        due: list[ScheduledEvent] = []
        for trigger_week in sorted(w for w in self.scheduled_events if w <= week):
            due.extend(self.scheduled_events.pop(trigger_week))
        return due
