"""
Engine-owned state store.

StoryState is the single object every system receives by reference:
the event queue, world flags, arc progress, blocked events and the
"currently viewed" pointer. Nothing here is global; a playthrough owns
exactly one StoryState.

Commands work on a deep copy (StoryState.clone()) and the engine swaps
it in only when the whole command succeeded.
"""

from pydantic import BaseModel, Field

from .schemas.content import StoryArc
from .schemas.progress import ArcProgress
from .schemas.queue import EventQueue
from .schemas.results import StatDelta
from .schemas.snapshot import EvaluationContext, StateSnapshot


class FlagChange(BaseModel):
    """One entry of the world-flag audit trail."""
    flag: str
    week: int
    source: str = ""  # "choice:evt_first_deal/dig_deeper"
    added: bool = True


class WorldFlags(BaseModel):
    """
    Persistent boolean markers unlocking or blocking content.

    Additive by default; a flag is removed only by an explicit clear.
    """
    active: set[str] = Field(default_factory=set)
    history: list[FlagChange] = Field(default_factory=list)

    def __contains__(self, flag: str) -> bool:
        return flag in self.active

    def __len__(self) -> int:
        return len(self.active)

    def add(self, flag: str, week: int, source: str = "") -> bool:
        """Set a flag. Returns False if it was already set."""
        if flag in self.active:
            return False
        self.active.add(flag)
        self.history.append(FlagChange(flag=flag, week=week, source=source))
        return True

    def remove(self, flag: str, week: int, source: str = "") -> bool:
        """Clear a flag. Returns False if it was not set."""
        if flag not in self.active:
            return False
        self.active.discard(flag)
        self.history.append(FlagChange(flag=flag, week=week, source=source, added=False))
        return True

    def frozen(self) -> frozenset[str]:
        return frozenset(self.active)


class StoryState(BaseModel):
    """Everything the engine owns for one playthrough."""
    queue: EventQueue = Field(default_factory=EventQueue)
    flags: WorldFlags = Field(default_factory=WorldFlags)
    arcs: dict[str, ArcProgress] = Field(default_factory=dict)
    blocked_events: set[str] = Field(default_factory=set)
    viewing_event_id: str | None = None
    started: bool = False  # Week 1 has been populated
    ledger: dict[int, StatDelta] = Field(default_factory=dict)  # Deltas produced per week

    @classmethod
    def for_arcs(cls, arcs: list[StoryArc]) -> "StoryState":
        """Fresh state with every arc INACTIVE."""
        return cls(arcs={arc.id: ArcProgress(arc_id=arc.id) for arc in arcs})

    def clone(self) -> "StoryState":
        return self.model_copy(deep=True)

    def record_delta(self, week: int, delta: StatDelta) -> None:
        """Add to the running total for a week."""
        self.ledger[week] = self.ledger.get(week, StatDelta()).merge(delta)

    def evaluation_context(self, snapshot: StateSnapshot) -> EvaluationContext:
        """Combine the caller's snapshot with engine-owned state."""
        return EvaluationContext(
            snapshot=snapshot,
            flags=self.flags.frozen(),
            week=self.queue.current_week,
            completed_events=frozenset(self.queue.completed_ids),
            arcs={arc_id: p.model_copy() for arc_id, p in self.arcs.items()},
        )
