"""
Event scheduler and weekly advancer.

Owns every mutation of the EventQueue: which eligible events fill the
priority and optional slots, when scheduled events are promoted, when
stale events lapse, and where chained events land.

Weekly population, in order:
1. Promote scheduled events due this week (probability roll, eligibility)
2. Evaluate catalog events not completed, lapsed, blocked or queued
3. Pick at most one PRIORITY event
       weight desc → lowest remaining expiry → catalog order
4. Fill optional slots up to capacity
       stakes desc → weight desc → catalog order
5. Auto-resolve up to max_background_per_week BACKGROUND events

Design invariants:
- priority_event holds zero or one event; a second candidate is deferred
- len(optional_events) <= optional_capacity
- Selection is deterministic and only runs inside commands, never on reads
- Dangling ids are logged and dropped, never raised
- Chains stop at MAX_CHAIN_DEPTH
- Events chained during FALLOUT or WEEK_END wait for the next week
"""

from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable

from ..config import DEFAULT_CONFIG, EngineConfig
from ..state.schemas.content import EventChoice, EventKind, StoryEvent
from ..state.schemas.progress import ArcProgress
from ..state.schemas.queue import (
    LapseReason,
    LapsedEvent,
    QueuedEvent,
    QueueSource,
    ScheduledEvent,
    WeekPhase,
)
from ..state.schemas.results import StatDelta
from ..state.schemas.snapshot import StateSnapshot
from ..state.store import StoryState
from .requirements import RequirementEvaluator

if TYPE_CHECKING:
    from ..content.catalog import ContentCatalog

logger = logging.getLogger(__name__)


# ─── Configuration ───────────────────────────────────────────

MAX_CHAIN_DEPTH = 5

# Phases after which no event can be played this week
CLOSING_PHASES = frozenset({WeekPhase.FALLOUT, WeekPhase.WEEK_END})


# ─── Data Structures ────────────────────────────────────────

@dataclass
class SchedulerReport:
    """
    What a scheduler pass did to the queue.

    Two consumers: the engine folds `delta` into the command result, and
    publishes the id lists on the event bus once the command commits.
    """
    delta: StatDelta = field(default_factory=StatDelta)
    enqueued: list[str] = field(default_factory=list)
    chained: list[str] = field(default_factory=list)
    scheduled: list[str] = field(default_factory=list)
    deferred: list[str] = field(default_factory=list)
    auto_resolved: list[str] = field(default_factory=list)
    lapsed: list[LapsedEvent] = field(default_factory=list)
    dropped: list[str] = field(default_factory=list)
    arc_updates: list[ArcProgress] = field(default_factory=list)

    def merge(self, other: "SchedulerReport") -> "SchedulerReport":
        """Fold another report into this one. Returns self."""
        self.delta = self.delta.merge(other.delta)
        self.enqueued.extend(other.enqueued)
        self.chained.extend(other.chained)
        self.scheduled.extend(other.scheduled)
        self.deferred.extend(other.deferred)
        self.auto_resolved.extend(other.auto_resolved)
        self.lapsed.extend(other.lapsed)
        self.dropped.extend(other.dropped)
        self.arc_updates.extend(other.arc_updates)
        return self


# Auto-resolver: (state, event, choice, snapshot, depth, record_completion) -> report
# Registered by the engine so background and lapsed events settle through
# the same pipeline as player choices.
AutoResolver = Callable[
    [StoryState, StoryEvent, EventChoice, StateSnapshot, int, bool], SchedulerReport
]


class EventScheduler:
    """
    Populates, expires and chains events on a StoryState.

    Args:
        catalog: Authored content to select from
        evaluator: Requirement evaluator used for every eligibility check
        config: Capacity and pacing knobs
        rng: Random source for scheduled-event probability rolls
    """

    def __init__(
        self,
        catalog: "ContentCatalog",
        evaluator: RequirementEvaluator | None = None,
        config: EngineConfig | None = None,
        rng: random.Random | None = None,
    ):
        self._catalog = catalog
        self._evaluator = evaluator or RequirementEvaluator()
        self._config = config or DEFAULT_CONFIG
        self._rng = rng or random.Random()
        self._auto_resolver: AutoResolver | None = None

    @property
    def capacity(self) -> int:
        return self._config.get("optional_capacity", 5)

    def set_auto_resolver(self, resolver: AutoResolver) -> None:
        """Register the pipeline that settles events nobody chose for."""
        self._auto_resolver = resolver

    # ─── Eligibility ─────────────────────────────────────────────

    def is_eligible(self, state: StoryState, event: StoryEvent, snapshot: StateSnapshot) -> bool:
        return self._evaluator.is_eligible(event.requirements, state.evaluation_context(snapshot))

    def is_closed(self, state: StoryState, event_id: str) -> bool:
        """Already resolved, lapsed or blocked: never offered again."""
        queue = state.queue
        return (
            event_id in queue.completed_ids
            or event_id in queue.lapsed_ids
            or event_id in state.blocked_events
        )

    def candidates(self, state: StoryState, snapshot: StateSnapshot) -> list[StoryEvent]:
        """Eligible events not closed, queued or scheduled, in catalog order."""
        context = state.evaluation_context(snapshot)
        waiting = state.queue.queued_ids | state.queue.scheduled_ids
        return [
            event for event in self._catalog.events
            if event.id not in waiting
            and not self.is_closed(state, event.id)
            and self._evaluator.is_eligible(event.requirements, context)
        ]

    # ─── Weekly Population ───────────────────────────────────────

    def populate_week(self, state: StoryState, snapshot: StateSnapshot) -> SchedulerReport:
        """Fill the queue for the current week's MORNING_BRIEFING."""
        report = self.promote_scheduled(state, snapshot)
        report.merge(self.fill_vacancies(state, snapshot))
        report.merge(self.run_background(state, snapshot))
        logger.info(
            f"Week {state.queue.current_week} populated: "
            f"priority={state.queue.priority_event.event_id if state.queue.priority_event else None} "
            f"optional={[q.event_id for q in state.queue.optional_events]}"
        )
        return report

    def promote_scheduled(self, state: StoryState, snapshot: StateSnapshot) -> SchedulerReport:
        """Move scheduled events due by this week into the queue."""
        report = SchedulerReport()
        week = state.queue.current_week

        for entry in state.queue.pop_due(week):
            event = self._lookup(entry.event_id, report, f"scheduled by {entry.source or 'caller'}")
            if event is None:
                continue
            if entry.probability < 100 and self._rng.randint(1, 100) > entry.probability:
                logger.debug(f"Scheduled {entry.event_id} did not fire ({entry.probability}%)")
                continue
            if self.is_closed(state, event.id) or event.id in state.queue.queued_ids:
                logger.debug(f"Scheduled {event.id} skipped: already handled or queued")
                continue
            if not self.is_eligible(state, event, snapshot):
                logger.info(f"Scheduled {event.id} skipped: requirements not met in week {week}")
                continue
            report.merge(self._place(state, event, snapshot, QueueSource.SCHEDULED, depth=0))

        return report

    def fill_vacancies(self, state: StoryState, snapshot: StateSnapshot) -> SchedulerReport:
        """
        Select into empty slots without disturbing queued events.

        The priority slot is only filled during MORNING_BRIEFING; later in
        the week a new priority event can only arrive through a chain.
        """
        report = SchedulerReport()
        queue = state.queue
        week = queue.current_week
        pool = self.candidates(state, snapshot)

        if queue.priority_event is None and queue.current_phase == WeekPhase.MORNING_BRIEFING:
            priority = [e for e in pool if e.kind == EventKind.PRIORITY]
            if priority:
                chosen = min(priority, key=self._priority_key)
                queue.priority_event = self._entry(state, chosen, QueueSource.WEEKLY)
                report.enqueued.append(chosen.id)
                logger.info(f"Priority event for week {week}: {chosen.id}")

        optional = sorted(
            (e for e in pool if e.kind == EventKind.OPTIONAL),
            key=lambda e: (-e.stakes.rank, -e.weight, self._catalog.order_of(e.id)),
        )
        for event in optional:
            if len(queue.optional_events) >= self.capacity:
                break
            queue.insert_optional(self._entry(state, event, QueueSource.WEEKLY), self.capacity)
            report.enqueued.append(event.id)

        return report

    def run_background(self, state: StoryState, snapshot: StateSnapshot) -> SchedulerReport:
        """Auto-resolve this week's eligible BACKGROUND events."""
        report = SchedulerReport()
        limit = self._config.get("max_background_per_week", 2)
        background = [e for e in self.candidates(state, snapshot) if e.kind == EventKind.BACKGROUND]

        for event in background[:limit]:
            report.merge(self._auto_resolve(state, event, event.auto_choice, snapshot, depth=0))
        return report

    def evict_ineligible(self, state: StoryState, snapshot: StateSnapshot) -> SchedulerReport:
        """Release optional events whose requirements no longer hold."""
        report = SchedulerReport()
        week = state.queue.current_week
        for entry in list(state.queue.optional_events):
            event = self._catalog.get_event(entry.event_id)
            if event is not None and self.is_eligible(state, event, snapshot):
                continue
            state.queue.remove(entry.event_id)
            lapsed = LapsedEvent(event_id=entry.event_id, week=week, reason=LapseReason.INELIGIBLE)
            state.queue.lapsed_events.append(lapsed)
            report.lapsed.append(lapsed)
            logger.info(f"{entry.event_id} released: requirements no longer met")
        return report

    # ─── Expiry ──────────────────────────────────────────────────

    def expire(self, state: StoryState, week: int, snapshot: StateSnapshot) -> SchedulerReport:
        """
        Lapse queued events whose deadline has been reached.

        Lapsed events with an auto-resolve choice settle through it;
        the rest lapse with no consequence.
        """
        report = SchedulerReport()

        for entry in list(state.queue.queued):
            if not entry.is_expired(week):
                continue
            state.queue.remove(entry.event_id)
            event = self._catalog.get_event(entry.event_id)
            auto = event.auto_choice if event is not None and event.auto_resolve_choice_id else None

            lapsed = LapsedEvent(
                event_id=entry.event_id,
                week=week,
                reason=LapseReason.EXPIRED,
                auto_choice_id=auto.id if auto else None,
            )
            state.queue.lapsed_events.append(lapsed)
            report.lapsed.append(lapsed)
            logger.info(f"{entry.event_id} lapsed unresolved in week {week}")

            if auto is not None:
                report.merge(self._auto_resolve(state, event, auto, snapshot, depth=0, record_completion=False))

        return report

    # ─── Chaining and Scheduling ─────────────────────────────────

    def inject(
        self,
        state: StoryState,
        event_id: str,
        snapshot: StateSnapshot,
        source: str = "",
        depth: int = 0,
    ) -> SchedulerReport:
        """Place a chained event directly, bypassing weekly selection."""
        report = SchedulerReport()
        if depth > MAX_CHAIN_DEPTH:
            logger.warning(f"Chain depth exceeded at {event_id} ({source}); dropped")
            report.dropped.append(event_id)
            return report

        event = self._lookup(event_id, report, source)
        if event is None:
            return report
        if self.is_closed(state, event.id) or event.id in state.queue.queued_ids:
            logger.info(f"Chained {event.id} skipped: already handled or queued")
            return report
        if not self.is_eligible(state, event, snapshot):
            logger.info(f"Chained {event.id} skipped: requirements not met")
            return report

        report.merge(self._place(state, event, snapshot, QueueSource.CHAINED, depth))
        if event.kind != EventKind.BACKGROUND and event.id in state.queue.queued_ids:
            report.chained.append(event.id)
        return report

    def schedule(
        self,
        state: StoryState,
        event_id: str,
        trigger_week: int,
        probability: int = 100,
        source: str = "",
    ) -> SchedulerReport:
        """Queue an event for a future week's promotion."""
        report = SchedulerReport()
        if self._lookup(event_id, report, source) is None:
            return report

        trigger_week = max(trigger_week, state.queue.current_week)
        state.queue.add_scheduled(ScheduledEvent(
            event_id=event_id,
            trigger_week=trigger_week,
            probability=probability,
            source=source,
        ))
        report.scheduled.append(event_id)
        logger.debug(f"Scheduled {event_id} for week {trigger_week} ({source})")
        return report

    def block(self, state: StoryState, event_ids: list[str]) -> SchedulerReport:
        """Close events off for the rest of the playthrough."""
        report = SchedulerReport()
        week = state.queue.current_week
        for event_id in event_ids:
            if self._lookup(event_id, report, "block") is None:
                continue
            state.blocked_events.add(event_id)
            if state.queue.remove(event_id) is not None:
                lapsed = LapsedEvent(event_id=event_id, week=week, reason=LapseReason.BLOCKED)
                state.queue.lapsed_events.append(lapsed)
                report.lapsed.append(lapsed)
                logger.info(f"{event_id} removed from the queue: blocked")
        return report

    # ─── Helpers ─────────────────────────────────────────────────

    def _place(
        self,
        state: StoryState,
        event: StoryEvent,
        snapshot: StateSnapshot,
        source: QueueSource,
        depth: int,
    ) -> SchedulerReport:
        """Put an eligible event in its slot, or defer it when the slot is taken."""
        report = SchedulerReport()
        queue = state.queue

        if event.kind == EventKind.BACKGROUND:
            return self._auto_resolve(state, event, event.auto_choice, snapshot, depth)

        # The week is closing; nothing queued now could be played
        if queue.current_phase in CLOSING_PHASES:
            return report.merge(self._defer(state, event, source))

        entry = self._entry(state, event, source)
        if event.kind == EventKind.PRIORITY:
            if queue.priority_event is None:
                queue.priority_event = entry
                report.enqueued.append(event.id)
                return report
        elif queue.insert_optional(entry, self.capacity):
            report.enqueued.append(event.id)
            return report

        return report.merge(self._defer(state, event, source))

    def _defer(self, state: StoryState, event: StoryEvent, source: QueueSource) -> SchedulerReport:
        delay = max(1, self._config.get("defer_overflow_weeks", 1))
        report = self.schedule(
            state,
            event.id,
            state.queue.current_week + delay,
            source=f"deferred:{source.value.lower()}",
        )
        report.deferred.append(event.id)
        logger.info(f"{event.id} deferred {delay} week(s): slot unavailable")
        return report

    def _auto_resolve(
        self,
        state: StoryState,
        event: StoryEvent,
        choice: EventChoice | None,
        snapshot: StateSnapshot,
        depth: int,
        record_completion: bool = True,
    ) -> SchedulerReport:
        if choice is None:
            logger.warning(f"{event.id} has no choice to auto-resolve; dropped")
            report = SchedulerReport()
            report.dropped.append(event.id)
            return report
        if self._auto_resolver is None:
            raise RuntimeError("EventScheduler has no auto-resolver registered")

        report = self._auto_resolver(state, event, choice, snapshot, depth, record_completion)
        report.auto_resolved.append(event.id)
        return report

    def _lookup(self, event_id: str, report: SchedulerReport, source: str) -> StoryEvent | None:
        event = self._catalog.get_event(event_id)
        if event is None:
            logger.warning(f"Dropping unknown event {event_id} ({source or 'no source'})")
            report.dropped.append(event_id)
        return event

    def _entry(self, state: StoryState, event: StoryEvent, source: QueueSource) -> QueuedEvent:
        week = state.queue.current_week
        expiry = week + event.expires_in_weeks if event.expires_in_weeks is not None else None
        return QueuedEvent(
            event_id=event.id,
            enqueued_week=week,
            expiry_week=expiry,
            stakes=event.stakes,
            source=source,
            sequence=state.queue.take_sequence(),
        )

    def _priority_key(self, event: StoryEvent) -> tuple:
        expiry = event.expires_in_weeks if event.expires_in_weeks is not None else math.inf
        return (-event.weight, expiry, self._catalog.order_of(event.id))
