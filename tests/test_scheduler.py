"""Tests for the event scheduler."""

import random

import pytest

from storyqueue.config import make_config
from storyqueue.state import StoryState
from storyqueue.state.schemas import (
    CompletedEvent,
    LapseReason,
    LapsedEvent,
    QueueSource,
    StatDelta,
    StateSnapshot,
    WeekPhase,
)
from storyqueue.systems import MAX_CHAIN_DEPTH, EventScheduler, SchedulerReport

from conftest import make_catalog


def event(event_id, kind="OPTIONAL", **fields):
    data = {"id": event_id, "kind": kind, "choices": [{"id": "ok"}]}
    data.update(fields)
    return data


class RecordingResolver:
    """Stands in for the engine's settle pipeline."""

    def __init__(self):
        self.calls = []

    def __call__(self, state, event, choice, snapshot, depth, record_completion):
        self.calls.append((event.id, choice.id, record_completion))
        state.queue.remove(event.id)
        return SchedulerReport(delta=StatDelta(stats={"stress": 1}))


def build(events, config=None, seed=3):
    catalog = make_catalog(events)
    scheduler = EventScheduler(catalog, config=config, rng=random.Random(seed))
    resolver = RecordingResolver()
    scheduler.set_auto_resolver(resolver)
    return scheduler, StoryState.for_arcs(catalog.arcs), resolver


@pytest.fixture
def snap():
    return StateSnapshot()


class TestPrioritySelection:
    """At most one priority event, picked deterministically."""

    def test_highest_weight_wins(self, snap):
        scheduler, state, _ = build([
            event("evt_low", "PRIORITY", weight=1),
            event("evt_high", "PRIORITY", weight=5),
        ])
        scheduler.populate_week(state, snap)
        assert state.queue.priority_event.event_id == "evt_high"
        assert state.queue.optional_events == []

    def test_sooner_expiry_breaks_weight_tie(self, snap):
        scheduler, state, _ = build([
            event("evt_open", "PRIORITY"),
            event("evt_urgent", "PRIORITY", expires_in_weeks=1),
        ])
        scheduler.populate_week(state, snap)
        assert state.queue.priority_event.event_id == "evt_urgent"

    def test_catalog_order_breaks_remaining_ties(self, snap):
        scheduler, state, _ = build([
            event("evt_first", "PRIORITY"),
            event("evt_second", "PRIORITY"),
        ])
        scheduler.populate_week(state, snap)
        assert state.queue.priority_event.event_id == "evt_first"

    def test_ineligible_priority_skipped(self, snap):
        scheduler, state, _ = build([
            event("evt_gated", "PRIORITY", weight=9, requirements={"required_flags": ["NOPE"]}),
            event("evt_plain", "PRIORITY"),
        ])
        scheduler.populate_week(state, snap)
        assert state.queue.priority_event.event_id == "evt_plain"

    def test_priority_slot_only_filled_in_morning(self, snap):
        scheduler, state, _ = build([event("evt_p", "PRIORITY")])
        state.queue.current_phase = WeekPhase.OPTIONAL_PHASE
        scheduler.fill_vacancies(state, snap)
        assert state.queue.priority_event is None


class TestOptionalSelection:
    """Optional slots up to capacity, stakes first."""

    def test_capacity_respected(self, snap):
        scheduler, state, _ = build(
            [event(f"evt_{i}") for i in range(4)],
            config=make_config(optional_capacity=2),
        )
        scheduler.populate_week(state, snap)
        assert [q.event_id for q in state.queue.optional_events] == ["evt_0", "evt_1"]

    def test_ordered_by_stakes(self, snap):
        scheduler, state, _ = build([
            event("evt_low", stakes="LOW"),
            event("evt_critical", stakes="CRITICAL"),
            event("evt_medium", stakes="MEDIUM"),
        ])
        scheduler.populate_week(state, snap)
        assert [q.event_id for q in state.queue.optional_events] == [
            "evt_critical", "evt_medium", "evt_low",
        ]

    def test_expiry_week_computed(self, snap):
        scheduler, state, _ = build([event("evt_x", expires_in_weeks=2)])
        state.queue.current_week = 3
        scheduler.populate_week(state, snap)
        entry = state.queue.optional_events[0]
        assert entry.enqueued_week == 3
        assert entry.expiry_week == 5

    def test_closed_events_not_reselected(self, snap):
        scheduler, state, _ = build([event("evt_done"), event("evt_gone"), event("evt_blocked")])
        scheduler.populate_week(state, snap)
        state.queue.optional_events = []
        state.queue.completed_events.append(
            CompletedEvent(event_id="evt_done", choice_id="ok", week=1, success=True)
        )
        state.queue.lapsed_events.append(LapsedEvent(event_id="evt_gone", week=1))
        state.blocked_events.add("evt_blocked")
        scheduler.fill_vacancies(state, snap)
        assert state.queue.optional_events == []


class TestBackground:
    """Background events are auto-resolved, never queued."""

    def test_limit_per_week(self, snap):
        scheduler, state, resolver = build(
            [event(f"evt_bg{i}", "BACKGROUND") for i in range(3)],
            config=make_config(max_background_per_week=2),
        )
        report = scheduler.populate_week(state, snap)
        assert [c[0] for c in resolver.calls] == ["evt_bg0", "evt_bg1"]
        assert report.auto_resolved == ["evt_bg0", "evt_bg1"]
        assert report.delta.stats == {"stress": 2}
        assert state.queue.queued == []

    def test_missing_resolver_is_programmer_error(self, snap):
        catalog = make_catalog([event("evt_bg", "BACKGROUND")])
        scheduler = EventScheduler(catalog)
        with pytest.raises(RuntimeError):
            scheduler.populate_week(StoryState(), snap)


class TestExpiry:
    """Deadlines close events at the end of the week."""

    def test_expired_event_lapses(self, snap):
        scheduler, state, _ = build([event("evt_x", expires_in_weeks=0)])
        scheduler.populate_week(state, snap)
        report = scheduler.expire(state, 1, snap)
        assert state.queue.optional_events == []
        assert [l.event_id for l in report.lapsed] == ["evt_x"]
        assert state.queue.lapsed_events[0].reason == LapseReason.EXPIRED

    def test_not_yet_expired_stays(self, snap):
        scheduler, state, _ = build([event("evt_x", expires_in_weeks=1)])
        scheduler.populate_week(state, snap)
        assert scheduler.expire(state, 1, snap).lapsed == []
        assert scheduler.expire(state, 2, snap).lapsed[0].event_id == "evt_x"

    def test_auto_resolve_on_lapse_without_completion(self, snap):
        scheduler, state, resolver = build([
            event("evt_x", "PRIORITY", expires_in_weeks=0, auto_resolve_choice_id="ok"),
        ])
        scheduler.populate_week(state, snap)
        report = scheduler.expire(state, 1, snap)
        assert resolver.calls == [("evt_x", "ok", False)]
        assert report.lapsed[0].auto_choice_id == "ok"
        assert report.delta.stats == {"stress": 1}


class TestChaining:
    """Direct injection of follow-up events."""

    def test_inject_into_optional(self, snap):
        scheduler, state, _ = build([event("evt_next")])
        report = scheduler.inject(state, "evt_next", snap, source="test", depth=1)
        assert report.chained == ["evt_next"]
        assert state.queue.optional_events[0].source == QueueSource.CHAINED

    def test_inject_priority_when_taken_defers(self, snap):
        scheduler, state, _ = build([event("evt_a", "PRIORITY"), event("evt_b", "PRIORITY")])
        scheduler.populate_week(state, snap)
        report = scheduler.inject(state, "evt_b", snap, depth=1)
        assert state.queue.priority_event.event_id == "evt_a"
        assert report.deferred == ["evt_b"]
        assert state.queue.scheduled_events[2][0].event_id == "evt_b"

    def test_inject_when_optional_full_defers(self, snap):
        scheduler, state, _ = build(
            [event("evt_a"), event("evt_b")],
            config=make_config(optional_capacity=1, defer_overflow_weeks=2),
        )
        scheduler.populate_week(state, snap)
        report = scheduler.inject(state, "evt_b", snap, depth=1)
        assert report.deferred == ["evt_b"]
        assert 3 in state.queue.scheduled_events

    def test_depth_limit(self, snap):
        scheduler, state, _ = build([event("evt_next")])
        report = scheduler.inject(state, "evt_next", snap, depth=MAX_CHAIN_DEPTH + 1)
        assert report.dropped == ["evt_next"]
        assert state.queue.queued == []

    def test_unknown_event_dropped(self, snap):
        scheduler, state, _ = build([])
        report = scheduler.inject(state, "evt_missing", snap, depth=1)
        assert report.dropped == ["evt_missing"]

    def test_ineligible_chain_skipped(self, snap):
        scheduler, state, _ = build([event("evt_gated", requirements={"required_flags": ["NOPE"]})])
        report = scheduler.inject(state, "evt_gated", snap, depth=1)
        assert report.chained == []
        assert state.queue.queued == []


class TestScheduling:
    """Future activations."""

    def test_promoted_when_due(self, snap):
        scheduler, state, _ = build([event("evt_later")])
        scheduler.schedule(state, "evt_later", trigger_week=2)
        scheduler.populate_week(state, snap)
        assert state.queue.optional_events == []

        state.queue.current_week = 2
        report = scheduler.populate_week(state, snap)
        assert "evt_later" in report.enqueued
        assert state.queue.optional_events[0].source == QueueSource.SCHEDULED

    def test_scheduled_not_offered_early(self, snap):
        scheduler, state, _ = build([event("evt_later")])
        scheduler.schedule(state, "evt_later", trigger_week=3)
        assert scheduler.candidates(state, snap) == []

    def test_past_week_clamped(self, snap):
        scheduler, state, _ = build([event("evt_x")])
        state.queue.current_week = 4
        scheduler.schedule(state, "evt_x", trigger_week=1)
        assert list(state.queue.scheduled_events) == [4]

    def test_zero_probability_never_fires(self, snap):
        scheduler, state, _ = build([event("evt_x", requirements={"min_week": 5})])
        scheduler.schedule(state, "evt_x", trigger_week=1, probability=0)
        scheduler.promote_scheduled(state, snap)
        assert state.queue.queued == []

    def test_unknown_scheduled_dropped(self, snap):
        scheduler, state, _ = build([])
        report = scheduler.schedule(state, "evt_missing", trigger_week=2)
        assert report.dropped == ["evt_missing"]
        assert state.queue.scheduled_events == {}


class TestBlocking:
    """Blocked events leave the queue for good."""

    def test_block_removes_queued(self, snap):
        scheduler, state, _ = build([event("evt_x")])
        scheduler.populate_week(state, snap)
        report = scheduler.block(state, ["evt_x"])
        assert state.queue.optional_events == []
        assert report.lapsed[0].reason == LapseReason.BLOCKED
        assert "evt_x" in state.blocked_events
        assert scheduler.is_closed(state, "evt_x")


class TestEviction:
    """Refresh releases optional events that stopped qualifying."""

    def test_evict_ineligible(self):
        scheduler, state, _ = build([event("evt_rich", requirements={"min_stats": {"cash": 100}})])
        scheduler.populate_week(state, StateSnapshot(stats={"cash": 500}))
        report = scheduler.evict_ineligible(state, StateSnapshot(stats={"cash": 0}))
        assert state.queue.optional_events == []
        assert report.lapsed[0].reason == LapseReason.INELIGIBLE

