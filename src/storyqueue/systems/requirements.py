"""
Requirement evaluator for the story engine.

Pure function: evaluate(requirements, context) -> Eligibility.
No state mutation, no side effects, no memoization.

Called both when an event is selected into the queue and again when it
is presented or chosen, because player state can move in between.

Clause order is fixed so the reported reason is deterministic:
    stat-min, stat-max, flag-required, flag-forbidden,
    npc-relationship-min, rank-min,
    week window, market, completed events, not-completed events, arc state
The first failing clause wins.
"""

from __future__ import annotations

from typing import Callable

from ..state.schemas.content import EventRequirements
from ..state.schemas.results import Eligibility
from ..state.schemas.snapshot import EvaluationContext

ClauseCheck = Callable[[EventRequirements, EvaluationContext], "str | None"]


class RequirementEvaluator:
    """
    Evaluates EventRequirements against an EvaluationContext.

    This class is stateless; all state comes from the context parameter.
    Each clause method returns a reason string when it fails, else None.
    """

    def __init__(self):
        self._clauses: list[ClauseCheck] = [
            self._check_min_stats,
            self._check_max_stats,
            self._check_required_flags,
            self._check_forbidden_flags,
            self._check_npc_relationships,
            self._check_min_rank,
            self._check_week_window,
            self._check_market,
            self._check_completed_events,
            self._check_not_completed_events,
            self._check_arc,
        ]

    def evaluate(
        self,
        requirements: EventRequirements | None,
        context: EvaluationContext,
    ) -> Eligibility:
        """Return the first failing clause's reason, or eligible."""
        if requirements is None:
            return Eligibility.ok()

        for clause in self._clauses:
            reason = clause(requirements, context)
            if reason is not None:
                return Eligibility.denied(reason)

        return Eligibility.ok()

    def is_eligible(
        self,
        requirements: EventRequirements | None,
        context: EvaluationContext,
    ) -> bool:
        return self.evaluate(requirements, context).eligible

    # ─── Player Stats ────────────────────────────────────────────

    @staticmethod
    def _check_min_stats(req: EventRequirements, ctx: EvaluationContext) -> str | None:
        for name, minimum in req.min_stats.items():
            value = ctx.snapshot.stat(name)
            if value < minimum:
                return f"Requires {name} ≥ {_fmt(minimum)} (current: {_fmt(value)})"
        return None

    @staticmethod
    def _check_max_stats(req: EventRequirements, ctx: EvaluationContext) -> str | None:
        for name, maximum in req.max_stats.items():
            value = ctx.snapshot.stat(name)
            if value > maximum:
                return f"Requires {name} ≤ {_fmt(maximum)} (current: {_fmt(value)})"
        return None

    # ─── World Flags ─────────────────────────────────────────────

    @staticmethod
    def _check_required_flags(req: EventRequirements, ctx: EvaluationContext) -> str | None:
        for flag in req.required_flags:
            if flag not in ctx.flags:
                return f"Requires {flag}"
        return None

    @staticmethod
    def _check_forbidden_flags(req: EventRequirements, ctx: EvaluationContext) -> str | None:
        for flag in req.forbidden_flags:
            if flag in ctx.flags:
                return f"Blocked by {flag}"
        return None

    # ─── NPCs and Rank ───────────────────────────────────────────

    @staticmethod
    def _check_npc_relationships(req: EventRequirements, ctx: EvaluationContext) -> str | None:
        for npc_req in req.npc_relationships:
            npc = ctx.snapshot.npcs.get(npc_req.npc_id)
            if npc is None:
                return f"Requires a relationship with {npc_req.npc_id}"
            name = npc.name or npc_req.npc_id

            if npc_req.min_relationship is not None and npc.relationship < npc_req.min_relationship:
                return (
                    f"Requires relationship ≥ {_fmt(npc_req.min_relationship)} "
                    f"with {name} (current: {_fmt(npc.relationship)})"
                )
            if npc_req.min_trust is not None and npc.trust < npc_req.min_trust:
                return (
                    f"Requires trust ≥ {_fmt(npc_req.min_trust)} "
                    f"with {name} (current: {_fmt(npc.trust)})"
                )
        return None

    @staticmethod
    def _check_min_rank(req: EventRequirements, ctx: EvaluationContext) -> str | None:
        if req.min_rank is None:
            return None
        if ctx.snapshot.rank.order < req.min_rank.order:
            return f"Requires {req.min_rank.value} rank"
        return None

    # ─── Calendar and Market ─────────────────────────────────────

    @staticmethod
    def _check_week_window(req: EventRequirements, ctx: EvaluationContext) -> str | None:
        if req.min_week is not None and ctx.week < req.min_week:
            return f"Available from week {req.min_week}"
        if req.max_week is not None and ctx.week > req.max_week:
            return f"Only available until week {req.max_week}"
        return None

    @staticmethod
    def _check_market(req: EventRequirements, ctx: EvaluationContext) -> str | None:
        if req.allowed_markets and ctx.snapshot.market not in req.allowed_markets:
            allowed = ", ".join(m.value for m in req.allowed_markets)
            return f"Requires market condition {allowed}"
        return None

    # ─── History and Arcs ────────────────────────────────────────

    @staticmethod
    def _check_completed_events(req: EventRequirements, ctx: EvaluationContext) -> str | None:
        for event_id in req.completed_events:
            if event_id not in ctx.completed_events:
                return f"Requires {event_id} to be resolved first"
        return None

    @staticmethod
    def _check_not_completed_events(req: EventRequirements, ctx: EvaluationContext) -> str | None:
        for event_id in req.not_completed_events:
            if event_id in ctx.completed_events:
                return f"Closed off by {event_id}"
        return None

    @staticmethod
    def _check_arc(req: EventRequirements, ctx: EvaluationContext) -> str | None:
        arc_req = req.arc
        if arc_req is None:
            return None

        progress = ctx.arcs.get(arc_req.arc_id)
        if progress is None:
            return f"Unknown arc {arc_req.arc_id}"
        if arc_req.state is not None and progress.state != arc_req.state:
            return f"Requires arc {arc_req.arc_id} to be {arc_req.state.value}"
        if arc_req.min_stage is not None and progress.current_stage_index < arc_req.min_stage:
            return f"Requires arc {arc_req.arc_id} at stage {arc_req.min_stage} or later"
        if arc_req.max_stage is not None and progress.current_stage_index > arc_req.max_stage:
            return f"Arc {arc_req.arc_id} has moved past stage {arc_req.max_stage}"
        return None


def _fmt(value: float) -> str:
    """Render 25.0 as '25' and 2.5 as '2.5'."""
    return f"{value:g}"
