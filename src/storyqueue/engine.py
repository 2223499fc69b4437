"""
Story engine: the command/query surface the presentation layer talks to.

Sequences the weekly loop and delegates every decision:
    RequirementEvaluator → who may see / pick what
    EventScheduler       → what is in the queue
    ChoiceResolver       → did the choice work
    ConsequenceApplier   → what the player store must change
    ArcTracker           → where the story arcs stand
    PhaseMachine         → which beat of the week we are in

Design principles:
- Commands work on a clone of StoryState and swap it in only on success,
  so a choice and everything it causes is applied entirely or not at all.
- Reads never reselect. get_queue() twice returns the same content.
- Refusals are values (accepted=False + reason), never exceptions.
- Bus events are published after the command has committed.

Usage:
    engine = StoryEngine(ContentCatalog.load_default(), seed=7)
    engine.start(snapshot)

    queue = engine.get_queue(snapshot)
    engine.select_event(queue.priority_event.event_id)
    result = engine.make_choice("accept", snapshot)
    player_store.commit(result.delta)

    engine.advance_week(snapshot)
"""

from __future__ import annotations

import logging
import random

from .config import EngineConfig, make_config
from .content.catalog import ContentCatalog
from .state.event_bus import EngineEventType, EventBus, get_event_bus
from .state.schemas.content import (
    ArcState,
    EventChoice,
    EventConsequences,
    EventKind,
    MarketCondition,
    StoryEvent,
)
from .state.schemas.queue import (
    CompletedEvent,
    EventQueue,
    LapseReason,
    LapsedEvent,
    QueuedEvent,
    WeekPhase,
)
from .state.schemas.results import (
    AdvanceResult,
    ChoiceResult,
    Eligibility,
    FlowStatus,
    Resolution,
    StatDelta,
    WeeklySummary,
)
from .state.schemas.snapshot import NpcState, StateSnapshot
from .state.store import StoryState
from .systems.arcs import ArcTracker
from .systems.consequences import ConsequenceApplier
from .systems.phases import PENDING_PRIORITY_REASON, PhaseMachine
from .systems.requirements import RequirementEvaluator
from .systems.resolver import ChoiceResolver, RandomSource
from .systems.scheduler import EventScheduler, SchedulerReport

logger = logging.getLogger(__name__)

# (from, to, week after the move)
Transition = tuple[WeekPhase, WeekPhase, int]


class StoryEngine:
    """
    Owns one playthrough's StoryState and runs the weekly loop.

    Args:
        catalog: Authored events and arcs (defaults to the bundled sample)
        config: Engine tuning (defaults to DEFAULT_CONFIG)
        seed: Seed for a fresh random.Random when rng is not given
        rng: Injected random source shared by resolver and scheduler
        bus: Event bus for observers (defaults to the shared bus)
        state: Existing StoryState to resume from
    """

    def __init__(
        self,
        catalog: ContentCatalog | None = None,
        config: EngineConfig | None = None,
        seed: int | None = None,
        rng: RandomSource | None = None,
        bus: EventBus | None = None,
        state: StoryState | None = None,
    ):
        self._catalog = catalog if catalog is not None else ContentCatalog.load_default()
        self._config = config or make_config()
        self._rng = rng or random.Random(seed)
        self._bus = bus or get_event_bus()

        self._evaluator = RequirementEvaluator()
        self._resolver = ChoiceResolver(self._rng, self._config)
        self._applier = ConsequenceApplier(self._config)
        self._phases = PhaseMachine()
        self._arcs = ArcTracker(self._catalog, self._evaluator)
        self._scheduler = EventScheduler(self._catalog, self._evaluator, self._config, self._rng)
        self._scheduler.set_auto_resolver(self._settle_auto)

        self._state = state or StoryState.for_arcs(self._catalog.arcs)
        self._snapshot = StateSnapshot()

    @property
    def state(self) -> StoryState:
        """The owned store. Treat as read-only; mutate through commands."""
        return self._state

    @property
    def catalog(self) -> ContentCatalog:
        return self._catalog

    @property
    def bus(self) -> EventBus:
        return self._bus

    @property
    def config(self) -> EngineConfig:
        return self._config

    # ─── Queries ─────────────────────────────────────────────────

    def get_available_events(self, snapshot: StateSnapshot) -> list[StoryEvent]:
        """Every catalog event eligible right now, regardless of queue slots."""
        self._remember(snapshot)
        context = self._state.evaluation_context(snapshot)
        return [
            event for event in self._catalog.events
            if not self._scheduler.is_closed(self._state, event.id)
            and self._evaluator.is_eligible(event.requirements, context)
        ]

    def get_queue(self, snapshot: StateSnapshot | None = None) -> EventQueue:
        """
        Current queue as the player should see it.

        Entries whose requirements no longer hold are hidden, not resolved.
        Returns a copy; selection is never re-run here.
        """
        if snapshot is not None:
            self._remember(snapshot)
        snapshot = self._snapshot

        queue = self._state.queue.model_copy(deep=True)
        if queue.priority_event and not self._visible(self._state, queue.priority_event, snapshot):
            queue.priority_event = None
        queue.optional_events = [
            entry for entry in queue.optional_events
            if self._visible(self._state, entry, snapshot)
        ]
        return queue

    def get_flow_status(self) -> FlowStatus:
        queue = self._state.queue
        return FlowStatus(
            phase=queue.current_phase,
            week=queue.current_week,
            has_pending_priority=self._pending_priority(self._state, self._snapshot),
        )

    def get_choice_availability(
        self,
        event_id: str,
        snapshot: StateSnapshot | None = None,
    ) -> dict[str, Eligibility]:
        """Eligibility of each choice of an event, keyed by choice id."""
        event = self._catalog.get_event(event_id)
        if event is None:
            return {}
        if snapshot is not None:
            self._remember(snapshot)
        context = self._state.evaluation_context(self._snapshot)
        return {
            choice.id: self._evaluator.evaluate(choice.requirements, context)
            for choice in event.choices
        }

    def get_next_event(self, snapshot: StateSnapshot | None = None) -> StoryEvent | None:
        """The event the player should look at next: priority first."""
        queue = self.get_queue(snapshot)
        entry = queue.priority_event or (queue.optional_events[0] if queue.optional_events else None)
        return self._catalog.get_event(entry.event_id) if entry else None

    def get_weekly_summary(self, week: int | None = None) -> WeeklySummary:
        """Recap of a week, built from the logs."""
        if week is None:
            week = self._state.queue.current_week
        return self._summarize(self._state, week)

    # ─── Cursor ──────────────────────────────────────────────────

    def select_event(self, event_id: str) -> Eligibility:
        """Point the 'currently viewed' cursor at a queued event."""
        entry = self._state.queue.find(event_id)
        if entry is None:
            return Eligibility.denied(f"Event {event_id} is not in the queue.")
        if not self._visible(self._state, entry, self._snapshot):
            return Eligibility.denied(f"Event {event_id} is not available right now.")
        self._state.viewing_event_id = event_id
        return Eligibility.ok()

    def close_event_modal(self) -> None:
        self._state.viewing_event_id = None

    # ─── Commands ────────────────────────────────────────────────

    def start(self, snapshot: StateSnapshot | None = None) -> AdvanceResult:
        """Populate week 1 and leave MORNING_BRIEFING."""
        if snapshot is not None:
            self._remember(snapshot)
        snapshot = self._snapshot

        if self._state.started:
            return self._refuse_advance("The playthrough has already started.")

        work = self._state.clone()
        transitions: list[Transition] = []
        work.started = True
        report = self._open_week(work, snapshot, transitions)

        self._commit(work, report, transitions)
        logger.info(f"Playthrough started in phase {work.queue.current_phase.value}")
        return AdvanceResult(
            accepted=True,
            week=work.queue.current_week,
            phase=work.queue.current_phase,
            lapsed=report.lapsed,
            delta=report.delta,
            dropped=report.dropped,
        )

    def make_choice(
        self,
        choice: EventChoice | str,
        snapshot: StateSnapshot | None = None,
        npcs: dict[str, NpcState] | None = None,
        event_id: str | None = None,
        confirmed: bool = False,
    ) -> ChoiceResult:
        """
        Resolve a choice on a queued event and commit engine-owned effects.

        Args:
            choice: The choice (or its id) the player picked
            snapshot: Fresh player state; requirements are re-checked against it
            npcs: NPC values overriding the snapshot's
            event_id: Event to resolve (defaults to the selected event)
            confirmed: Required for choices flagged requires_confirmation

        Returns:
            ChoiceResult; `delta` is for the caller to commit to the player store
        """
        if snapshot is not None:
            self._remember(snapshot.with_npcs(npcs))
        elif npcs is not None:
            self._remember(self._snapshot.with_npcs(npcs))
        snapshot = self._snapshot

        event_id = event_id or self._state.viewing_event_id
        choice_id = choice if isinstance(choice, str) else choice.id

        event, picked, refusal = self._check_choice(event_id, choice_id, snapshot, confirmed)
        if refusal is not None:
            logger.info(f"Choice {choice_id} on {event_id} refused: {refusal}")
            return ChoiceResult.rejected(refusal, event_id, choice_id)

        work = self._state.clone()
        transitions: list[Transition] = []
        was_priority = work.queue.is_priority(event.id)

        resolution, report = self._settle(work, event, picked, snapshot, depth=0, auto=False)

        phase = work.queue.current_phase
        if was_priority and work.queue.priority_event is None:
            self._transition(work, WeekPhase.OPTIONAL_PHASE, transitions)
        elif phase == WeekPhase.OPTIONAL_PHASE and work.queue.priority_event is not None:
            self._transition(work, WeekPhase.PRIORITY_EVENT, transitions)
        work.viewing_event_id = None

        self._commit(work, report, transitions)
        self._bus.emit(
            EngineEventType.EVENT_RESOLVED,
            week=work.queue.current_week,
            event_id=event.id,
            choice_id=picked.id,
            success=resolution.success,
            critical=resolution.critical,
            auto=False,
        )

        return ChoiceResult(
            accepted=True,
            event_id=event.id,
            choice_id=picked.id,
            success=resolution.success,
            rolled=resolution.rolled,
            threshold=resolution.threshold,
            critical=resolution.critical,
            critical_failure=resolution.critical_failure,
            consequences=resolution.consequences,
            delta=report.delta,
            chained_events=report.chained,
            scheduled_events=report.scheduled,
            arc_updates=report.arc_updates,
            phase=work.queue.current_phase,
            week=work.queue.current_week,
        )

    def apply_consequences(
        self,
        consequences: EventConsequences,
        npcs: dict[str, NpcState] | None = None,
    ) -> StatDelta:
        """
        Translate a consequence bundle. Touches no engine state.

        NPC effects are checked against `npcs` when given, otherwise against
        the NPCs of the last snapshot the engine saw. A snapshot that lists
        no NPCs at all means the player store does not track them, and NPC
        effects pass unchecked.
        """
        roster = self._snapshot.with_npcs(npcs)
        return self._applier.apply(consequences, _known_npcs(roster))

    def refresh_event_queue(
        self,
        snapshot: StateSnapshot,
        npcs: dict[str, NpcState] | None = None,
        market: MarketCondition | None = None,
    ) -> EventQueue:
        """
        Out-of-cycle re-selection after a major state change.

        Optional events that no longer qualify are released and empty
        slots are refilled. Events still eligible keep their slots.
        """
        self._remember(snapshot.with_npcs(npcs).with_market(market))
        snapshot = self._snapshot

        work = self._state.clone()
        report = self._scheduler.evict_ineligible(work, snapshot)
        report.merge(self._scheduler.fill_vacancies(work, snapshot))
        self._commit(work, report, [])
        return self.get_queue()

    def advance_week(self, snapshot: StateSnapshot | None = None) -> AdvanceResult:
        """
        Close the current week and open the next.

        Refused, with no change at all, while a priority event is pending.
        """
        if snapshot is not None:
            self._remember(snapshot)
        snapshot = self._snapshot

        work = self._state.clone()
        transitions: list[Transition] = []

        refusal = self._prepare_close(work, transitions)
        if refusal is not None:
            return self._refuse_advance(refusal)

        closing, summary = self._close_week(work, snapshot, transitions)
        self._transition(work, WeekPhase.MORNING_BRIEFING, transitions)
        opening = self._open_week(work, snapshot, transitions)
        report = closing.merge(opening)

        self._commit(work, report, transitions)
        logger.info(f"Advanced to week {work.queue.current_week}")
        return AdvanceResult(
            accepted=True,
            week=work.queue.current_week,
            phase=work.queue.current_phase,
            lapsed=report.lapsed,
            delta=report.delta,
            summary=summary,
            dropped=report.dropped,
        )

    def end_week(self, snapshot: StateSnapshot | None = None) -> AdvanceResult:
        """Run FALLOUT and stop at WEEK_END without opening the next week."""
        if snapshot is not None:
            self._remember(snapshot)
        snapshot = self._snapshot

        if self._state.queue.current_phase == WeekPhase.WEEK_END:
            return self._refuse_advance("The week has already ended.")

        work = self._state.clone()
        transitions: list[Transition] = []

        refusal = self._prepare_close(work, transitions)
        if refusal is not None:
            return self._refuse_advance(refusal)

        report, summary = self._close_week(work, snapshot, transitions)
        self._commit(work, report, transitions)
        return AdvanceResult(
            accepted=True,
            week=work.queue.current_week,
            phase=work.queue.current_phase,
            lapsed=report.lapsed,
            delta=report.delta,
            summary=summary,
            dropped=report.dropped,
        )

    def dismiss_event(self, event_id: str) -> Eligibility:
        """Let an optional event go. Priority events cannot be dismissed."""
        queue = self._state.queue
        if queue.is_priority(event_id):
            return Eligibility.denied("Priority events cannot be dismissed.")
        if queue.find(event_id) is None:
            return Eligibility.denied(f"Event {event_id} is not in the queue.")

        work = self._state.clone()
        work.queue.remove(event_id)
        lapsed = LapsedEvent(
            event_id=event_id,
            week=work.queue.current_week,
            reason=LapseReason.DISMISSED,
        )
        work.queue.lapsed_events.append(lapsed)
        if work.viewing_event_id == event_id:
            work.viewing_event_id = None

        self._commit(work, SchedulerReport(lapsed=[lapsed]), [])
        return Eligibility.ok()

    def schedule_event(self, event_id: str, delay_weeks: int = 1, probability: int = 100) -> bool:
        """Schedule an event for a later week. Unknown ids are dropped."""
        work = self._state.clone()
        report = self._scheduler.schedule(
            work,
            event_id,
            work.queue.current_week + max(0, delay_weeks),
            probability=max(0, min(100, probability)),
            source="caller",
        )
        self._commit(work, report, [])
        return bool(report.scheduled)

    def set_world_flag(self, flag: str, source: str = "caller") -> bool:
        """Set a world flag. Returns False when blank or already set."""
        if not flag or not flag.strip():
            logger.warning("Ignoring blank world flag")
            return False
        week = self._state.queue.current_week
        if not self._state.flags.add(flag, week, source):
            return False
        self._bus.emit(EngineEventType.FLAG_SET, week=week, flag=flag, source=source)
        return True

    def clear_world_flag(self, flag: str, source: str = "caller") -> bool:
        week = self._state.queue.current_week
        if not self._state.flags.remove(flag, week, source):
            return False
        self._bus.emit(EngineEventType.FLAG_CLEARED, week=week, flag=flag, source=source)
        return True

    # ─── Resolution Pipeline ─────────────────────────────────────

    def _settle(
        self,
        state: StoryState,
        event: StoryEvent,
        choice: EventChoice,
        snapshot: StateSnapshot,
        depth: int,
        auto: bool,
        record_completion: bool = True,
    ) -> tuple[Resolution, SchedulerReport]:
        """Resolve a choice and apply everything it causes to `state`."""
        week = state.queue.current_week
        source = f"choice:{event.id}/{choice.id}"

        resolution = self._resolver.resolve(choice, snapshot)
        consequences = resolution.consequences
        delta = self._applier.apply(consequences, _known_npcs(snapshot), event.arc_id)

        state.queue.remove(event.id)
        if record_completion:
            state.queue.completed_events.append(CompletedEvent(
                event_id=event.id,
                choice_id=choice.id,
                week=week,
                success=resolution.success,
                critical=resolution.critical,
                auto_resolved=auto,
            ))
        if state.viewing_event_id == event.id:
            state.viewing_event_id = None

        for flag in delta.add_flags:
            state.flags.add(flag, week, source)
        for flag in delta.remove_flags:
            state.flags.remove(flag, week, source)
        state.record_delta(week, delta)

        report = SchedulerReport(delta=delta)
        report.arc_updates.extend(self._arcs.apply_resolution(
            state.arcs, event.id, delta, week, state.evaluation_context(snapshot),
        ))
        if consequences.blocks_events:
            report.merge(self._scheduler.block(state, list(consequences.blocks_events)))
        if consequences.chains_event:
            report.merge(self._scheduler.inject(
                state, consequences.chains_event, snapshot, source, depth + 1,
            ))
        for follow_up in resolution.triggered_events:
            if follow_up.delay_weeks == 0:
                report.merge(self._scheduler.inject(
                    state, follow_up.event_id, snapshot, source, depth + 1,
                ))
            else:
                report.merge(self._scheduler.schedule(
                    state, follow_up.event_id, week + follow_up.delay_weeks, source=source,
                ))

        logger.debug(
            f"Settled {event.id}/{choice.id} (auto={auto}): "
            f"{'success' if resolution.success else 'failure'}"
        )
        return resolution, report

    def _settle_auto(
        self,
        state: StoryState,
        event: StoryEvent,
        choice: EventChoice,
        snapshot: StateSnapshot,
        depth: int,
        record_completion: bool,
    ) -> SchedulerReport:
        _, report = self._settle(
            state, event, choice, snapshot, depth, auto=True, record_completion=record_completion,
        )
        return report

    def _check_choice(
        self,
        event_id: str | None,
        choice_id: str,
        snapshot: StateSnapshot,
        confirmed: bool,
    ) -> tuple[StoryEvent | None, EventChoice | None, str | None]:
        """Everything that can refuse make_choice, in order."""
        if event_id is None:
            return None, None, "No event selected."

        queue = self._state.queue
        if queue.find(event_id) is None:
            return None, None, f"Event {event_id} is not in the queue."
        event = self._catalog.get_event(event_id)
        if event is None:
            return None, None, f"Event {event_id} is not in the catalog."

        phase = queue.current_phase
        if queue.is_priority(event_id):
            if phase != WeekPhase.PRIORITY_EVENT:
                return None, None, f"Cannot resolve the priority event during {phase.value}."
        elif phase == WeekPhase.PRIORITY_EVENT and self._pending_priority(self._state, snapshot):
            return None, None, PENDING_PRIORITY_REASON
        elif phase not in (WeekPhase.OPTIONAL_PHASE, WeekPhase.PRIORITY_EVENT):
            return None, None, f"Cannot resolve events during {phase.value}."

        context = self._state.evaluation_context(snapshot)
        eligibility = self._evaluator.evaluate(event.requirements, context)
        if not eligibility:
            return None, None, eligibility.reason

        choice = event.get_choice(choice_id)
        if choice is None:
            return None, None, f"Choice {choice_id} is not available for event {event_id}."
        eligibility = self._evaluator.evaluate(choice.requirements, context)
        if not eligibility:
            return None, None, eligibility.reason
        if choice.requires_confirmation and not confirmed:
            return None, None, f"Choice {choice_id} requires confirmation."

        return event, choice, None

    # ─── Week Cycle ──────────────────────────────────────────────

    def _open_week(
        self,
        state: StoryState,
        snapshot: StateSnapshot,
        transitions: list[Transition],
    ) -> SchedulerReport:
        """Populate MORNING_BRIEFING and move on to the first playable beat."""
        report = self._scheduler.populate_week(state, snapshot)
        if state.queue.priority_event is not None:
            self._transition(state, WeekPhase.PRIORITY_EVENT, transitions)
        else:
            self._transition(state, WeekPhase.OPTIONAL_PHASE, transitions)
        return report

    def _prepare_close(self, state: StoryState, transitions: list[Transition]) -> str | None:
        """Refusal reason, or None once the week may close."""
        if not state.started:
            return "The playthrough has not started."

        pending = self._pending_priority(state, self._snapshot)
        if state.queue.current_phase == WeekPhase.PRIORITY_EVENT and not pending:
            # The priority event will lapse or is hidden; nothing blocks the week
            self._transition(state, WeekPhase.OPTIONAL_PHASE, transitions)

        check = self._phases.check_advance(state.queue, pending)
        return None if check else check.reason

    def _close_week(
        self,
        state: StoryState,
        snapshot: StateSnapshot,
        transitions: list[Transition],
    ) -> tuple[SchedulerReport, WeeklySummary]:
        """FALLOUT bookkeeping for the closing week, ending at WEEK_END."""
        week = state.queue.current_week
        report = SchedulerReport()

        if state.queue.current_phase == WeekPhase.OPTIONAL_PHASE:
            self._transition(state, WeekPhase.FALLOUT, transitions)

            priority = state.queue.priority_event
            if priority is not None and not self._visible(state, priority, snapshot) \
                    and not priority.is_expired(week):
                state.queue.remove(priority.event_id)
                lapsed = LapsedEvent(event_id=priority.event_id, week=week, reason=LapseReason.INELIGIBLE)
                state.queue.lapsed_events.append(lapsed)
                report.lapsed.append(lapsed)
                logger.info(f"Priority event {priority.event_id} released: requirements no longer met")

            report.merge(self._scheduler.expire(state, week, snapshot))
            self._transition(state, WeekPhase.WEEK_END, transitions)

        return report, self._summarize(state, week)

    def _pending_priority(self, state: StoryState, snapshot: StateSnapshot) -> bool:
        """A priority event the player can and must still resolve this week."""
        entry = state.queue.priority_event
        if entry is None:
            return False
        if entry.is_expired(state.queue.current_week):
            return False
        return self._visible(state, entry, snapshot)

    def _summarize(self, state: StoryState, week: int) -> WeeklySummary:
        summary = WeeklySummary(week=week)

        for record in state.queue.completed_events:
            if record.week != week or record.auto_resolved:
                continue
            event = self._catalog.get_event(record.event_id)
            if event is not None and event.kind == EventKind.PRIORITY and summary.priority_event_id is None:
                summary.priority_event_id = record.event_id
                summary.priority_choice_id = record.choice_id
            else:
                summary.optional_events_handled += 1

        summary.lapsed_events = [e.event_id for e in state.queue.lapsed_events if e.week == week]

        delta = state.ledger.get(week)
        if delta is not None:
            summary.key_consequences = [f"{name} {value:+g}" for name, value in delta.stats.items()]
            summary.key_consequences += [f"+{flag}" for flag in delta.add_flags]
            summary.key_consequences += [f"-{flag}" for flag in delta.remove_flags]
            summary.key_consequences += [n.title for n in delta.notifications]

        for progress in state.arcs.values():
            for moment in progress.history:
                if moment.week != week:
                    continue
                if moment.state == ArcState.ACTIVE:
                    summary.arc_progressions.append(f"{progress.arc_id}: stage {moment.stage_index}")
                else:
                    summary.arc_progressions.append(f"{progress.arc_id}: {moment.state.value}")

        return summary

    # ─── Helpers ─────────────────────────────────────────────────

    def _visible(self, state: StoryState, entry: QueuedEvent, snapshot: StateSnapshot) -> bool:
        event = self._catalog.get_event(entry.event_id)
        if event is None:
            return False
        return self._evaluator.is_eligible(event.requirements, state.evaluation_context(snapshot))

    def _remember(self, snapshot: StateSnapshot) -> None:
        self._snapshot = snapshot

    def _transition(self, state: StoryState, to: WeekPhase, transitions: list[Transition]) -> None:
        previous = self._phases.transition(state.queue, to)
        transitions.append((previous, to, state.queue.current_week))

    def _refuse_advance(self, reason: str) -> AdvanceResult:
        queue = self._state.queue
        logger.info(f"Advance refused in week {queue.current_week}: {reason}")
        return AdvanceResult(
            accepted=False,
            reason=reason,
            week=queue.current_week,
            phase=queue.current_phase,
        )

    def _commit(
        self,
        work: StoryState,
        report: SchedulerReport,
        transitions: list[Transition],
    ) -> None:
        """Swap in the new state, then tell observers what changed."""
        before = self._state
        self._state = work
        self._publish(before, report, transitions)

    def _publish(
        self,
        before: StoryState,
        report: SchedulerReport,
        transitions: list[Transition],
    ) -> None:
        bus = self._bus
        week = self._state.queue.current_week

        for previous, to, at_week in transitions:
            bus.emit(
                EngineEventType.PHASE_CHANGED,
                week=at_week,
                from_phase=previous.value,
                to_phase=to.value,
            )
            if to == WeekPhase.MORNING_BRIEFING:
                bus.emit(EngineEventType.WEEK_ADVANCED, week=at_week)

        if report.enqueued:
            bus.emit(EngineEventType.QUEUE_POPULATED, week=week, event_ids=list(report.enqueued))
        for event_id in report.enqueued:
            bus.emit(EngineEventType.EVENT_ENQUEUED, week=week, event_id=event_id)
        for event_id in report.chained:
            bus.emit(EngineEventType.EVENT_CHAINED, week=week, event_id=event_id)
        for event_id in report.deferred:
            bus.emit(EngineEventType.EVENT_DEFERRED, week=week, event_id=event_id)
        for event_id in report.auto_resolved:
            bus.emit(EngineEventType.EVENT_RESOLVED, week=week, event_id=event_id, auto=True)
        for lapsed in report.lapsed:
            bus.emit(
                EngineEventType.EVENT_LAPSED,
                week=lapsed.week,
                event_id=lapsed.event_id,
                reason=lapsed.reason.value,
            )
        for event_id in report.dropped:
            bus.emit(EngineEventType.REFERENCE_DROPPED, week=week, event_id=event_id)
        for flag in report.delta.add_flags:
            bus.emit(EngineEventType.FLAG_SET, week=week, flag=flag)
        for flag in report.delta.remove_flags:
            bus.emit(EngineEventType.FLAG_CLEARED, week=week, flag=flag)

        for progress in report.arc_updates:
            old = before.arcs.get(progress.arc_id)
            was_inactive = old is None or old.state == ArcState.INACTIVE
            if was_inactive and progress.state != ArcState.INACTIVE:
                bus.emit(EngineEventType.ARC_ACTIVATED, week=week, arc_id=progress.arc_id)
            if progress.state == ArcState.COMPLETE:
                bus.emit(EngineEventType.ARC_COMPLETED, week=week, arc_id=progress.arc_id)
            elif progress.state == ArcState.FAILED:
                bus.emit(EngineEventType.ARC_FAILED, week=week, arc_id=progress.arc_id)
            elif old is None or progress.current_stage_index > old.current_stage_index:
                bus.emit(
                    EngineEventType.ARC_ADVANCED,
                    week=week,
                    arc_id=progress.arc_id,
                    stage_index=progress.current_stage_index,
                )


def _known_npcs(snapshot: StateSnapshot) -> set[str] | None:
    """NPC ids to check effects against; None when the snapshot lists none."""
    return set(snapshot.npcs) or None
