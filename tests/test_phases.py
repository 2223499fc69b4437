"""Tests for the weekly phase state machine."""

import pytest

from storyqueue.state.schemas import EventQueue, WeekPhase
from storyqueue.systems import (
    PENDING_PRIORITY_REASON,
    VALID_TRANSITIONS,
    InvalidPhaseError,
    PhaseMachine,
    StoryEngineError,
)


@pytest.fixture
def machine():
    return PhaseMachine()


class TestTransitions:
    """Allowed and refused phase moves."""

    @pytest.mark.parametrize("current,to", [
        (WeekPhase.MORNING_BRIEFING, WeekPhase.PRIORITY_EVENT),
        (WeekPhase.MORNING_BRIEFING, WeekPhase.OPTIONAL_PHASE),
        (WeekPhase.PRIORITY_EVENT, WeekPhase.OPTIONAL_PHASE),
        (WeekPhase.OPTIONAL_PHASE, WeekPhase.FALLOUT),
        (WeekPhase.FALLOUT, WeekPhase.WEEK_END),
        (WeekPhase.WEEK_END, WeekPhase.MORNING_BRIEFING),
    ])
    def test_valid(self, machine, current, to):
        queue = EventQueue(current_phase=current)
        assert machine.transition(queue, to) == current
        assert queue.current_phase == to

    @pytest.mark.parametrize("current,to", [
        (WeekPhase.PRIORITY_EVENT, WeekPhase.FALLOUT),
        (WeekPhase.MORNING_BRIEFING, WeekPhase.WEEK_END),
        (WeekPhase.FALLOUT, WeekPhase.OPTIONAL_PHASE),
        (WeekPhase.WEEK_END, WeekPhase.PRIORITY_EVENT),
    ])
    def test_invalid_raises(self, machine, current, to):
        queue = EventQueue(current_phase=current)
        with pytest.raises(InvalidPhaseError) as exc:
            machine.transition(queue, to)
        assert exc.value.current == current
        assert exc.value.attempted == to
        assert queue.current_phase == current

    def test_invalid_phase_is_engine_error(self):
        assert issubclass(InvalidPhaseError, StoryEngineError)

    def test_every_phase_has_an_exit(self):
        assert set(VALID_TRANSITIONS) == set(WeekPhase)


class TestWeekCounter:
    """Only the wrap to a new morning moves the week."""

    def test_week_end_to_morning_increments(self, machine):
        queue = EventQueue(current_week=3, current_phase=WeekPhase.WEEK_END)
        machine.transition(queue, WeekPhase.MORNING_BRIEFING)
        assert queue.current_week == 4

    def test_other_moves_keep_week(self, machine):
        queue = EventQueue(current_week=3)
        machine.transition(queue, WeekPhase.OPTIONAL_PHASE)
        machine.transition(queue, WeekPhase.FALLOUT)
        machine.transition(queue, WeekPhase.WEEK_END)
        assert queue.current_week == 3


class TestCheckAdvance:
    """Whether the week may be rolled."""

    def test_pending_priority_blocks(self, machine):
        queue = EventQueue(current_phase=WeekPhase.PRIORITY_EVENT)
        result = machine.check_advance(queue, has_pending_priority=True)
        assert not result
        assert result.reason == PENDING_PRIORITY_REASON

    def test_optional_phase_allowed(self, machine):
        queue = EventQueue(current_phase=WeekPhase.OPTIONAL_PHASE)
        assert machine.check_advance(queue, has_pending_priority=False)

    def test_week_end_allowed(self, machine):
        queue = EventQueue(current_phase=WeekPhase.WEEK_END)
        assert machine.check_advance(queue, has_pending_priority=False)

    def test_morning_briefing_refused(self, machine):
        queue = EventQueue()
        result = machine.check_advance(queue, has_pending_priority=False)
        assert result.reason == "Cannot advance the week during MORNING_BRIEFING."
