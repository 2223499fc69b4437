"""
Phase state machine for the story engine's weekly loop.

One week walks through:
    MORNING_BRIEFING → [PRIORITY_EVENT] → OPTIONAL_PHASE → FALLOUT → WEEK_END

Design principles:
- The phase lives on the EventQueue so it is copied and committed with it.
- Illegal transitions raise InvalidPhaseError; they are programmer errors.
- Whether the week may be advanced is a returned Eligibility, not an error.
- Only WEEK_END → MORNING_BRIEFING increments the week.
"""

from __future__ import annotations

from ..state.schemas.queue import EventQueue, WeekPhase
from ..state.schemas.results import Eligibility

PENDING_PRIORITY_REASON = "Resolve the priority event first."


# Valid phase transitions: each phase maps to allowed next phases
VALID_TRANSITIONS: dict[WeekPhase, set[WeekPhase]] = {
    WeekPhase.MORNING_BRIEFING: {WeekPhase.PRIORITY_EVENT, WeekPhase.OPTIONAL_PHASE},
    WeekPhase.PRIORITY_EVENT: {WeekPhase.OPTIONAL_PHASE},
    WeekPhase.OPTIONAL_PHASE: {WeekPhase.FALLOUT, WeekPhase.PRIORITY_EVENT},  # Chained priority
    WeekPhase.FALLOUT: {WeekPhase.WEEK_END},
    WeekPhase.WEEK_END: {WeekPhase.MORNING_BRIEFING},  # Next week
}

# Phases from which the player may ask to roll the week
ADVANCEABLE_PHASES = {WeekPhase.OPTIONAL_PHASE, WeekPhase.WEEK_END}


class StoryEngineError(Exception):
    """Base error for programmer and authoring mistakes."""
    pass


class InvalidPhaseError(StoryEngineError):
    """Attempted phase change not valid from the current phase."""
    def __init__(self, current: WeekPhase, attempted: WeekPhase):
        self.current = current
        self.attempted = attempted
        super().__init__(
            f"Cannot move from {current.value} to {attempted.value}."
        )


class PhaseMachine:
    """
    Enforces VALID_TRANSITIONS on an EventQueue.

    Stateless: the current phase and week are read from and written to
    the queue passed in.
    """

    @staticmethod
    def can_transition(current: WeekPhase, to: WeekPhase) -> bool:
        return to in VALID_TRANSITIONS.get(current, set())

    def transition(self, queue: EventQueue, to: WeekPhase) -> WeekPhase:
        """Move the queue to a new phase. Returns the previous phase."""
        previous = queue.current_phase
        if not self.can_transition(previous, to):
            raise InvalidPhaseError(previous, to)

        queue.current_phase = to
        if previous == WeekPhase.WEEK_END and to == WeekPhase.MORNING_BRIEFING:
            queue.current_week += 1
        return previous

    @staticmethod
    def check_advance(queue: EventQueue, has_pending_priority: bool) -> Eligibility:
        """Whether advance_week may run right now."""
        if has_pending_priority:
            return Eligibility.denied(PENDING_PRIORITY_REASON)
        if queue.current_phase not in ADVANCEABLE_PHASES:
            return Eligibility.denied(
                f"Cannot advance the week during {queue.current_phase.value}."
            )
        return Eligibility.ok()
