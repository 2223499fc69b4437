"""
Read-only views of player and world state.

StateSnapshot is what the caller hands in: player statistics, NPC
relationships and market condition, refreshed before each query.

EvaluationContext is what the engine evaluates requirements against:
the snapshot plus engine-owned state (flags, week, history, arcs).
"""

from pydantic import BaseModel, ConfigDict, Field

from .content import MarketCondition, PlayerRank
from .progress import ArcProgress


class NpcState(BaseModel):
    """Relationship values for one NPC, owned by the external store."""
    model_config = ConfigDict(frozen=True)

    name: str = ""
    relationship: float = 50  # 0-100
    trust: float = 50  # 0-100


class StateSnapshot(BaseModel):
    """
    Snapshot of the external player/NPC store.

    Stats are read by name; anything missing reads as 0.
    """
    model_config = ConfigDict(frozen=True)

    stats: dict[str, float] = Field(default_factory=dict)
    # e.g. {"reputation": 40, "cash": 25000, "financialEngineering": 12}
    rank: PlayerRank = PlayerRank.ASSOCIATE
    npcs: dict[str, NpcState] = Field(default_factory=dict)
    market: MarketCondition = MarketCondition.NORMAL

    def stat(self, name: str) -> float:
        return self.stats.get(name, 0)

    def with_npcs(self, npcs: dict[str, NpcState] | None) -> "StateSnapshot":
        if npcs is None:
            return self
        return self.model_copy(update={"npcs": dict(npcs)})

    def with_market(self, market: MarketCondition | None) -> "StateSnapshot":
        if market is None:
            return self
        return self.model_copy(update={"market": market})


class EvaluationContext(BaseModel):
    """Everything a requirement clause may look at."""
    model_config = ConfigDict(frozen=True)

    snapshot: StateSnapshot = Field(default_factory=StateSnapshot)
    flags: frozenset[str] = frozenset()
    week: int = 1
    completed_events: frozenset[str] = frozenset()
    arcs: dict[str, ArcProgress] = Field(default_factory=dict)
