"""Tests for the requirement evaluator."""

import pytest

from storyqueue.state.schemas import (
    ArcProgress,
    ArcRequirement,
    ArcState,
    EvaluationContext,
    EventRequirements,
    MarketCondition,
    NpcRequirement,
    NpcState,
    PlayerRank,
    StateSnapshot,
)
from storyqueue.systems import RequirementEvaluator


@pytest.fixture
def evaluator():
    return RequirementEvaluator()


def context(**kwargs):
    snapshot = kwargs.pop("snapshot", None) or StateSnapshot(
        stats={"reputation": 20, "stress": 40},
        npcs={"sarah": NpcState(name="Sarah Chen", relationship=50, trust=20)},
    )
    return EvaluationContext(snapshot=snapshot, **kwargs)


class TestEmptyRequirements:
    """Unconstrained requirements."""

    def test_none_is_eligible(self, evaluator):
        """No requirements at all passes."""
        assert evaluator.evaluate(None, context()).eligible

    def test_empty_is_eligible(self, evaluator):
        """Every clause empty passes."""
        result = evaluator.evaluate(EventRequirements(), context())
        assert result.eligible
        assert result.reason is None


class TestStatClauses:
    """Minimum and maximum stat checks."""

    def test_min_stat_fails_with_reason(self, evaluator):
        """Below minimum reports the requirement and current value."""
        result = evaluator.evaluate(EventRequirements(min_stats={"reputation": 30}), context())
        assert not result.eligible
        assert result.reason == "Requires reputation ≥ 30 (current: 20)"

    def test_min_stat_boundary_passes(self, evaluator):
        """Exactly the minimum qualifies."""
        assert evaluator.is_eligible(EventRequirements(min_stats={"reputation": 20}), context())

    def test_missing_stat_reads_as_zero(self, evaluator):
        """Stats absent from the snapshot count as 0."""
        result = evaluator.evaluate(EventRequirements(min_stats={"cash": 1}), context())
        assert result.reason == "Requires cash ≥ 1 (current: 0)"

    def test_max_stat(self, evaluator):
        """Above maximum fails."""
        result = evaluator.evaluate(EventRequirements(max_stats={"stress": 30}), context())
        assert result.reason == "Requires stress ≤ 30 (current: 40)"


class TestFlagClauses:
    """Required and forbidden world flags."""

    def test_required_flag_missing(self, evaluator):
        result = evaluator.evaluate(EventRequirements(required_flags=["MET_SARAH"]), context())
        assert result.reason == "Requires MET_SARAH"

    def test_required_flag_present(self, evaluator):
        ctx = context(flags=frozenset({"MET_SARAH"}))
        assert evaluator.is_eligible(EventRequirements(required_flags=["MET_SARAH"]), ctx)

    def test_forbidden_flag_present(self, evaluator):
        ctx = context(flags=frozenset({"DEAL_BOTCHED"}))
        result = evaluator.evaluate(EventRequirements(forbidden_flags=["DEAL_BOTCHED"]), ctx)
        assert result.reason == "Blocked by DEAL_BOTCHED"


class TestNpcAndRankClauses:
    """NPC standing and career rank."""

    def test_unknown_npc_fails(self, evaluator):
        req = EventRequirements(npc_relationships=[NpcRequirement(npc_id="hunter", min_relationship=10)])
        result = evaluator.evaluate(req, context())
        assert result.reason == "Requires a relationship with hunter"

    def test_relationship_too_low(self, evaluator):
        req = EventRequirements(npc_relationships=[NpcRequirement(npc_id="sarah", min_relationship=60)])
        result = evaluator.evaluate(req, context())
        assert result.reason == "Requires relationship ≥ 60 with Sarah Chen (current: 50)"

    def test_trust_too_low(self, evaluator):
        req = EventRequirements(npc_relationships=[NpcRequirement(npc_id="sarah", min_trust=30)])
        result = evaluator.evaluate(req, context())
        assert "trust ≥ 30" in result.reason

    def test_rank_below_minimum(self, evaluator):
        req = EventRequirements(min_rank=PlayerRank.VICE_PRESIDENT)
        result = evaluator.evaluate(req, context())
        assert result.reason == "Requires Vice President rank"

    def test_rank_above_minimum(self, evaluator):
        snapshot = StateSnapshot(rank=PlayerRank.PRINCIPAL)
        req = EventRequirements(min_rank=PlayerRank.VICE_PRESIDENT)
        assert evaluator.is_eligible(req, context(snapshot=snapshot))


class TestCalendarClauses:
    """Week window and market condition."""

    def test_before_min_week(self, evaluator):
        result = evaluator.evaluate(EventRequirements(min_week=3), context(week=2))
        assert result.reason == "Available from week 3"

    def test_after_max_week(self, evaluator):
        result = evaluator.evaluate(EventRequirements(max_week=3), context(week=4))
        assert result.reason == "Only available until week 3"

    def test_market_not_allowed(self, evaluator):
        req = EventRequirements(allowed_markets=[MarketCondition.PANIC])
        assert not evaluator.is_eligible(req, context())

    def test_market_allowed(self, evaluator):
        snapshot = StateSnapshot(market=MarketCondition.PANIC)
        req = EventRequirements(allowed_markets=[MarketCondition.CREDIT_CRUNCH, MarketCondition.PANIC])
        assert evaluator.is_eligible(req, context(snapshot=snapshot))


class TestHistoryClauses:
    """Completed events and arc state."""

    def test_completed_event_missing(self, evaluator):
        result = evaluator.evaluate(EventRequirements(completed_events=["evt_a"]), context())
        assert result.reason == "Requires evt_a to be resolved first"

    def test_not_completed_event(self, evaluator):
        ctx = context(completed_events=frozenset({"evt_a"}))
        result = evaluator.evaluate(EventRequirements(not_completed_events=["evt_a"]), ctx)
        assert result.reason == "Closed off by evt_a"

    def test_arc_state_and_stage(self, evaluator):
        req = EventRequirements(arc=ArcRequirement(arc_id="arc_x", state=ArcState.ACTIVE, min_stage=2))
        active_early = {"arc_x": ArcProgress(arc_id="arc_x", state=ArcState.ACTIVE, current_stage_index=1)}
        active_late = {"arc_x": ArcProgress(arc_id="arc_x", state=ArcState.ACTIVE, current_stage_index=2)}
        inactive = {"arc_x": ArcProgress(arc_id="arc_x")}

        assert not evaluator.is_eligible(req, context(arcs=active_early))
        assert evaluator.is_eligible(req, context(arcs=active_late))
        assert evaluator.evaluate(req, context(arcs=inactive)).reason == "Requires arc arc_x to be ACTIVE"

    def test_unknown_arc(self, evaluator):
        req = EventRequirements(arc=ArcRequirement(arc_id="arc_missing"))
        assert evaluator.evaluate(req, context()).reason == "Unknown arc arc_missing"


class TestClauseOrder:
    """The first failing clause decides the reason."""

    def test_stat_reported_before_flag(self, evaluator):
        req = EventRequirements(min_stats={"reputation": 99}, required_flags=["NOPE"])
        assert evaluator.evaluate(req, context()).reason.startswith("Requires reputation")

    def test_flag_reported_before_week(self, evaluator):
        req = EventRequirements(required_flags=["NOPE"], min_week=10)
        assert evaluator.evaluate(req, context(week=1)).reason == "Requires NOPE"

    def test_evaluation_is_pure(self, evaluator):
        """Same inputs, same answer, every time."""
        req = EventRequirements(min_stats={"reputation": 30})
        ctx = context()
        assert evaluator.evaluate(req, ctx) == evaluator.evaluate(req, ctx)
