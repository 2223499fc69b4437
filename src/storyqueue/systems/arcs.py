"""
Arc tracker for the story engine.

Moves multi-week story arcs through their stages when resolved events
carry an arc-advance marker, and fails them on an explicit arc-fail
consequence.

Lifecycle:
    INACTIVE ──(stage-0 event advances)──► ACTIVE ──(last stage)──► COMPLETE
       │                                      └──(fails_arc)──────► FAILED
       └──(fails_arc)───────────────────────────────────────────────► FAILED

A fail marker on an arc that never started closes it for good, so an
opening offer the player turns down cannot come back as stage 0 later.

Design invariants:
- current_stage_index of an ACTIVE arc never decreases and never skips
- INACTIVE arcs ignore advance() until activated
- COMPLETE and FAILED are terminal
- Events with no arc are a no-op
- Inputs are never mutated; every method returns a new ArcProgress
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..state.schemas.content import ArcState
from ..state.schemas.progress import ArcMoment, ArcProgress
from ..state.schemas.results import StatDelta
from ..state.schemas.snapshot import EvaluationContext
from .requirements import RequirementEvaluator

if TYPE_CHECKING:
    from ..content.catalog import ContentCatalog

logger = logging.getLogger(__name__)


class ArcTracker:
    """Stage bookkeeping for story arcs. Reads arc definitions from the catalog."""

    def __init__(self, catalog: "ContentCatalog", evaluator: RequirementEvaluator | None = None):
        self._catalog = catalog
        self._evaluator = evaluator or RequirementEvaluator()

    def qualifies(self, arc_id: str, stage_index: int, event_id: str) -> bool:
        return event_id in self._catalog.stage_events(arc_id, stage_index)

    def activate(self, progress: ArcProgress, event_id: str, week: int) -> ArcProgress:
        """INACTIVE → ACTIVE when the event qualifies for the first stage."""
        if progress.state != ArcState.INACTIVE:
            return progress
        if not self.qualifies(progress.arc_id, 0, event_id):
            return progress

        updated = progress.model_copy(deep=True)
        updated.state = ArcState.ACTIVE
        updated.current_stage_index = 0
        updated.started_week = week
        updated.history.append(ArcMoment(
            week=week, event_id=event_id, stage_index=0, state=ArcState.ACTIVE,
        ))
        logger.info(f"Arc {progress.arc_id} activated by {event_id} in week {week}")
        return updated

    def advance(self, progress: ArcProgress, event_id: str, week: int) -> ArcProgress:
        """Step an ACTIVE arc forward by one stage if the event qualifies."""
        if progress.state != ArcState.ACTIVE:
            return progress

        arc = self._catalog.get_arc(progress.arc_id)
        if arc is None:
            logger.warning(f"Arc {progress.arc_id} is not in the catalog; ignoring advance")
            return progress

        index = progress.current_stage_index
        if not self.qualifies(arc.id, index, event_id):
            logger.debug(f"{event_id} does not qualify for {arc.id} stage {index}")
            return progress

        updated = progress.model_copy(deep=True)
        updated.current_stage_index = index + 1
        if updated.current_stage_index >= arc.stage_count:
            updated.state = ArcState.COMPLETE
            updated.ended_week = week
            logger.info(f"Arc {arc.id} complete in week {week}")
        updated.history.append(ArcMoment(
            week=week,
            event_id=event_id,
            stage_index=updated.current_stage_index,
            state=updated.state,
        ))
        return updated

    def fail(self, progress: ArcProgress, week: int, event_id: str = "") -> ArcProgress:
        """Force FAILED from INACTIVE or ACTIVE, unless the arc already finished."""
        if progress.is_finished:
            return progress

        updated = progress.model_copy(deep=True)
        updated.state = ArcState.FAILED
        updated.ended_week = week
        updated.history.append(ArcMoment(
            week=week,
            event_id=event_id,
            stage_index=progress.current_stage_index,
            state=ArcState.FAILED,
        ))
        logger.info(f"Arc {progress.arc_id} failed in week {week}")
        return updated

    def apply_resolution(
        self,
        arcs: dict[str, ArcProgress],
        event_id: str,
        delta: StatDelta,
        week: int,
        context: EvaluationContext | None = None,
    ) -> list[ArcProgress]:
        """
        Apply a resolved event's arc markers to the arc table in place.

        Args:
            arcs: Arc progress keyed by arc id (entries are replaced)
            event_id: The event that was just resolved
            delta: Translated consequences carrying arc_advances / arc_failures
            week: Current week
            context: When given, an arc's own requirements gate activation

        Returns:
            The ArcProgress entries that changed
        """
        changed: dict[str, ArcProgress] = {}

        for arc_id in delta.arc_advances:
            progress = arcs.get(arc_id)
            if progress is None:
                logger.warning(f"{event_id} advances unknown arc {arc_id}; dropped")
                continue

            updated = progress
            if progress.state == ArcState.INACTIVE and self._may_start(arc_id, context):
                updated = self.activate(progress, event_id, week)
            updated = self.advance(updated, event_id, week)

            if updated is not progress:
                arcs[arc_id] = updated
                changed[arc_id] = updated

        for arc_id in delta.arc_failures:
            progress = arcs.get(arc_id)
            if progress is None:
                logger.warning(f"{event_id} fails unknown arc {arc_id}; dropped")
                continue
            updated = self.fail(progress, week, event_id)
            if updated is not progress:
                arcs[arc_id] = updated
                changed[arc_id] = updated

        return list(changed.values())

    def _may_start(self, arc_id: str, context: EvaluationContext | None) -> bool:
        arc = self._catalog.get_arc(arc_id)
        if arc is None or context is None:
            return arc is not None
        eligibility = self._evaluator.evaluate(arc.requirements, context)
        if not eligibility:
            logger.info(f"Arc {arc_id} not started: {eligibility.reason}")
        return eligibility.eligible
