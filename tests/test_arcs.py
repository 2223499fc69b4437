"""Tests for the arc tracker."""

import pytest

from storyqueue.state.schemas import (
    ArcProgress,
    ArcState,
    EvaluationContext,
    StatDelta,
    StateSnapshot,
)
from storyqueue.systems import ArcTracker

from conftest import make_catalog


@pytest.fixture
def tracker(catalog):
    return ArcTracker(catalog)


def advance(arc_id="arc_test"):
    return StatDelta(arc_advances=[arc_id])


class TestActivation:
    """INACTIVE to ACTIVE."""

    def test_stage_zero_event_activates_and_advances(self, tracker, state):
        changed = tracker.apply_resolution(state.arcs, "evt_boss", advance(), week=1)
        progress = state.arcs["arc_test"]
        assert changed == [progress]
        assert progress.state == ArcState.ACTIVE
        assert progress.current_stage_index == 1
        assert progress.started_week == 1
        assert [m.stage_index for m in progress.history] == [0, 1]

    def test_later_stage_event_does_not_activate(self, tracker, state):
        changed = tracker.apply_resolution(state.arcs, "evt_followup", advance(), week=1)
        assert changed == []
        assert state.arcs["arc_test"].state == ArcState.INACTIVE

    def test_inactive_ignores_advance(self, tracker):
        progress = ArcProgress(arc_id="arc_test")
        assert tracker.advance(progress, "evt_boss", week=1) is progress

    def test_arc_requirements_gate_activation(self, snapshot):
        catalog = make_catalog(
            [{"id": "evt_start", "arc_id": "arc_gated", "arc_stage": 0,
              "choices": [{"id": "go"}]}],
            [{"id": "arc_gated", "stages": [{"events": ["evt_start"]}],
              "requirements": {"required_flags": ["READY"]}}],
        )
        tracker = ArcTracker(catalog)
        arcs = {"arc_gated": ArcProgress(arc_id="arc_gated")}
        not_ready = EvaluationContext(snapshot=snapshot)
        ready = EvaluationContext(snapshot=snapshot, flags=frozenset({"READY"}))

        assert tracker.apply_resolution(arcs, "evt_start", advance("arc_gated"), 1, not_ready) == []
        tracker.apply_resolution(arcs, "evt_start", advance("arc_gated"), 1, ready)
        assert arcs["arc_gated"].state == ArcState.COMPLETE


class TestProgression:
    """Stages move forward one at a time."""

    def test_completes_after_last_stage(self, tracker, state):
        tracker.apply_resolution(state.arcs, "evt_boss", advance(), week=1)
        tracker.apply_resolution(state.arcs, "evt_followup", advance(), week=2)
        progress = state.arcs["arc_test"]
        assert progress.state == ArcState.COMPLETE
        assert progress.current_stage_index == 2
        assert progress.ended_week == 2

    def test_non_qualifying_event_does_not_skip(self, tracker, state):
        tracker.apply_resolution(state.arcs, "evt_boss", advance(), week=1)
        tracker.apply_resolution(state.arcs, "evt_lunch", advance(), week=1)
        assert state.arcs["arc_test"].current_stage_index == 1

    def test_stage_never_decreases(self, tracker, state):
        seen = []
        for event_id in ["evt_boss", "evt_lunch", "evt_boss", "evt_followup", "evt_boss"]:
            tracker.apply_resolution(state.arcs, event_id, advance(), week=1)
            seen.append(state.arcs["arc_test"].current_stage_index)
        assert seen == sorted(seen)

    def test_input_progress_not_mutated(self, tracker):
        progress = ArcProgress(arc_id="arc_test", state=ArcState.ACTIVE, current_stage_index=1)
        updated = tracker.advance(progress, "evt_followup", week=3)
        assert progress.current_stage_index == 1
        assert updated.current_stage_index == 2


class TestFailure:
    """Explicit fail markers and terminal states."""

    def test_fail_marker(self, tracker, state):
        tracker.apply_resolution(state.arcs, "evt_boss", advance(), week=1)
        tracker.apply_resolution(state.arcs, "evt_boss", StatDelta(arc_failures=["arc_test"]), week=2)
        progress = state.arcs["arc_test"]
        assert progress.state == ArcState.FAILED
        assert progress.ended_week == 2

    def test_unstarted_arc_can_fail(self, tracker, state):
        """Turning down the opening event closes the arc before it starts."""
        tracker.apply_resolution(state.arcs, "evt_boss", StatDelta(arc_failures=["arc_test"]), week=1)
        progress = state.arcs["arc_test"]
        assert progress.state == ArcState.FAILED
        assert progress.current_stage_index == 0
        assert tracker.activate(progress, "evt_boss", week=2) is progress

    def test_failed_is_terminal(self, tracker):
        failed = ArcProgress(arc_id="arc_test", state=ArcState.FAILED)
        assert tracker.advance(failed, "evt_boss", week=2) is failed
        assert tracker.activate(failed, "evt_boss", week=2) is failed

    def test_complete_cannot_fail(self, tracker):
        done = ArcProgress(arc_id="arc_test", state=ArcState.COMPLETE, current_stage_index=2)
        assert tracker.fail(done, week=5) is done

    def test_unknown_arc_dropped(self, tracker, state):
        changed = tracker.apply_resolution(state.arcs, "evt_boss", advance("arc_nope"), week=1)
        assert changed == []
        assert "arc_nope" not in state.arcs
