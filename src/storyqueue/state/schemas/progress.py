"""Mutable arc progress, owned by the engine."""

from pydantic import BaseModel, Field

from .content import ArcState


class ArcMoment(BaseModel):
    """A stage transition, kept for recaps."""
    week: int
    event_id: str
    stage_index: int
    state: ArcState


class ArcProgress(BaseModel):
    """Where a playthrough stands in one arc."""
    arc_id: str
    current_stage_index: int = 0
    state: ArcState = ArcState.INACTIVE
    started_week: int | None = None
    ended_week: int | None = None
    history: list[ArcMoment] = Field(default_factory=list)

    @property
    def is_active(self) -> bool:
        return self.state == ArcState.ACTIVE

    @property
    def is_finished(self) -> bool:
        return self.state in (ArcState.COMPLETE, ArcState.FAILED)
