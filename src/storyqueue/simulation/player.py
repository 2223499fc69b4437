"""Scripted player for headless playthroughs."""

from __future__ import annotations

import random

from ..state.schemas.content import EventChoice, PlayerRank, StoryEvent
from ..state.schemas.results import Eligibility, StatDelta
from ..state.schemas.snapshot import NpcState, StateSnapshot

STRATEGIES = {
    "first": {
        "name": "First",
        "description": "Always takes the first available choice.",
    },
    "random": {
        "name": "Random",
        "description": "Picks uniformly among the available choices.",
    },
    "cautious": {
        "name": "Cautious",
        "description": "Avoids dice. Takes the first choice with no skill check or chance roll.",
    },
    "bold": {
        "name": "Bold",
        "description": "Seeks risk. Takes the first gated choice when one is available.",
    },
}

# Relationship and trust live on a 0-100 scale
NPC_MIN, NPC_MAX = 0, 100


def default_snapshot() -> StateSnapshot:
    """A fresh associate on their first Monday."""
    return StateSnapshot(
        stats={
            "reputation": 20,
            "cash": 10000,
            "stress": 10,
            "energy": 80,
            "analystRating": 50,
            "financialEngineering": 10,
            "ethics": 50,
            "score": 0,
            "health": 100,
        },
        rank=PlayerRank.ASSOCIATE,
        npcs={
            "chad": NpcState(name="Chad Morrison", relationship=40, trust=30),
            "sarah": NpcState(name="Sarah Chen", relationship=50, trust=50),
            "hunter": NpcState(name="Hunter Sterling", relationship=35, trust=20),
        },
    )


def apply_delta(snapshot: StateSnapshot, delta: StatDelta) -> StateSnapshot:
    """Commit a StatDelta to an in-memory snapshot, the way a player store would."""
    stats = dict(snapshot.stats)
    for name, value in delta.stats.items():
        stats[name] = stats.get(name, 0) + value

    npcs = dict(snapshot.npcs)
    for npc_id, change in delta.relationships.items():
        current = npcs.get(npc_id, NpcState(name=npc_id))
        npcs[npc_id] = NpcState(
            name=current.name,
            relationship=_clamp(current.relationship + change.relationship),
            trust=_clamp(current.trust + change.trust),
        )

    return snapshot.model_copy(update={"stats": stats, "npcs": npcs})


def _clamp(value: float) -> float:
    return max(NPC_MIN, min(NPC_MAX, value))


class AutoPlayer:
    """Plays the weekly queue with a fixed strategy and its own player store."""

    def __init__(
        self,
        strategy: str = "first",
        snapshot: StateSnapshot | None = None,
        seed: int | None = None,
    ):
        """
        Initialize the player.

        Args:
            strategy: One of: first, random, cautious, bold
            snapshot: Starting player state (defaults to default_snapshot())
            seed: Seed for the random strategy
        """
        if strategy not in STRATEGIES:
            raise ValueError(f"Unknown strategy {strategy!r}; choose from {', '.join(STRATEGIES)}")
        self.strategy_name = strategy
        self.strategy = STRATEGIES[strategy]
        self.snapshot = snapshot or default_snapshot()
        self._rng = random.Random(seed)
        self.decisions: list[str] = []  # "evt_first_deal/dig_deeper"

    def pick(self, event: StoryEvent, availability: dict[str, Eligibility]) -> EventChoice | None:
        """Choose among the choices the engine says are available."""
        open_choices = [c for c in event.choices if availability.get(c.id, Eligibility.ok())]
        if not open_choices:
            return None

        if self.strategy_name == "random":
            choice = self._rng.choice(open_choices)
        elif self.strategy_name == "cautious":
            choice = next((c for c in open_choices if not c.is_gated), open_choices[0])
        elif self.strategy_name == "bold":
            choice = next((c for c in open_choices if c.is_gated), open_choices[0])
        else:
            choice = open_choices[0]

        self.decisions.append(f"{event.id}/{choice.id}")
        return choice

    def commit(self, delta: StatDelta) -> None:
        """Apply an engine delta to this player's store."""
        if not delta.is_empty:
            self.snapshot = apply_delta(self.snapshot, delta)
