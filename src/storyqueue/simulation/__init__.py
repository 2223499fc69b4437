"""Headless playthroughs for balancing and regression testing."""

from .player import STRATEGIES, AutoPlayer, apply_delta, default_snapshot
from .runner import PlaythroughRunner, PlaythroughTranscript, WeekRecord

__all__ = [
    "STRATEGIES",
    "AutoPlayer",
    "apply_delta",
    "default_snapshot",
    "PlaythroughRunner",
    "PlaythroughTranscript",
    "WeekRecord",
]
