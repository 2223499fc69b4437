"""Headless playthrough runner and transcript management."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from ..engine import StoryEngine
from ..state.schemas.results import WeeklySummary
from .player import AutoPlayer

logger = logging.getLogger(__name__)

# Guard against a queue that never empties
MAX_STEPS_PER_WEEK = 20


@dataclass
class Decision:
    """One resolved event in a playthrough."""

    event_id: str
    title: str
    choice_id: str
    success: bool
    rolled: int | None = None
    threshold: int | None = None
    critical: bool = False


@dataclass
class WeekRecord:
    """Everything that happened in one week."""

    week: int
    decisions: list[Decision] = field(default_factory=list)
    dismissed: list[str] = field(default_factory=list)
    summary: WeeklySummary | None = None
    note: str = ""  # Why the week stalled, if it did


@dataclass
class PlaythroughTranscript:
    """Complete record of a headless playthrough."""

    strategy: str = "first"
    seed: int | None = None
    started_at: datetime = field(default_factory=datetime.now)
    weeks: list[WeekRecord] = field(default_factory=list)
    final_stats: dict[str, float] = field(default_factory=dict)
    flags: list[str] = field(default_factory=list)
    arcs: dict[str, str] = field(default_factory=dict)  # arc_id -> "ACTIVE (stage 2)"

    @property
    def decision_count(self) -> int:
        return sum(len(w.decisions) for w in self.weeks)

    def to_markdown(self) -> str:
        """Convert transcript to markdown format."""
        lines = [
            "# Playthrough Transcript",
            "",
            f"- **Date:** {self.started_at.strftime('%Y-%m-%d %H:%M:%S')}",
            f"- **Strategy:** {self.strategy}",
            f"- **Seed:** {self.seed if self.seed is not None else 'unseeded'}",
            f"- **Weeks:** {len(self.weeks)}",
            f"- **Decisions:** {self.decision_count}",
            "",
            "---",
            "",
        ]

        for record in self.weeks:
            lines.append(f"## Week {record.week}")
            lines.append("")
            for decision in record.decisions:
                outcome = "success" if decision.success else "failure"
                if decision.critical:
                    outcome = "critical success"
                roll = ""
                if decision.rolled is not None:
                    roll = f" (rolled {decision.rolled} vs {decision.threshold})"
                lines.append(f"- **{decision.title or decision.event_id}** → `{decision.choice_id}`: {outcome}{roll}")
            for event_id in record.dismissed:
                lines.append(f"- Dismissed `{event_id}`")
            if not record.decisions and not record.dismissed:
                lines.append("- Quiet week.")

            if record.summary is not None:
                if record.summary.lapsed_events:
                    lines.append(f"- Lapsed: {', '.join(record.summary.lapsed_events)}")
                if record.summary.key_consequences:
                    lines.append(f"- Consequences: {', '.join(record.summary.key_consequences)}")
                if record.summary.arc_progressions:
                    lines.append(f"- Arcs: {', '.join(record.summary.arc_progressions)}")
            if record.note:
                lines.append(f"- *{record.note}*")
            lines.append("")

        lines.append("## Summary")
        lines.append("")
        for name, value in self.final_stats.items():
            lines.append(f"- **{name}:** {value:g}")
        if self.flags:
            lines.append(f"- **Flags:** {', '.join(sorted(self.flags))}")
        for arc_id, status in self.arcs.items():
            lines.append(f"- **{arc_id}:** {status}")
        lines.append("")

        return "\n".join(lines)

    def save(self, output_dir: Path) -> Path:
        """Save transcript to file. Returns the file path."""
        output_dir.mkdir(parents=True, exist_ok=True)

        timestamp = self.started_at.strftime("%Y-%m-%d_%H%M%S")
        filepath = output_dir / f"playthrough_{timestamp}_{self.strategy}.md"
        filepath.write_text(self.to_markdown(), encoding="utf-8")
        return filepath


class PlaythroughRunner:
    """
    Drives a StoryEngine week by week with an AutoPlayer.

    Each week: resolve the priority event, then up to `optional_per_week`
    optional events, then advance. Deltas are committed to the player's
    own snapshot between commands, as a real player store would.
    """

    def __init__(
        self,
        engine: StoryEngine,
        player: AutoPlayer | None = None,
        optional_per_week: int = 2,
        seed: int | None = None,
    ):
        self.engine = engine
        self.player = player or AutoPlayer(seed=seed)
        self.optional_per_week = optional_per_week
        self.seed = seed

    def run(self, weeks: int) -> PlaythroughTranscript:
        """Play `weeks` weeks and return the transcript."""
        transcript = PlaythroughTranscript(strategy=self.player.strategy_name, seed=self.seed)

        if not self.engine.state.started:
            opening = self.engine.start(self.player.snapshot)
            self.player.commit(opening.delta)

        for _ in range(weeks):
            record = self._play_week()
            transcript.weeks.append(record)

            result = self.engine.advance_week(self.player.snapshot)
            if not result.accepted:
                record.note = f"Stalled: {result.reason}"
                logger.warning(f"Playthrough stalled in week {record.week}: {result.reason}")
                break
            self.player.commit(result.delta)
            record.summary = result.summary

        transcript.final_stats = dict(self.player.snapshot.stats)
        transcript.flags = sorted(self.engine.state.flags.active)
        for arc_id, progress in self.engine.state.arcs.items():
            transcript.arcs[arc_id] = f"{progress.state.value} (stage {progress.current_stage_index})"
        return transcript

    def _play_week(self) -> WeekRecord:
        engine, player = self.engine, self.player
        record = WeekRecord(week=engine.state.queue.current_week)
        optional_handled = 0

        for _ in range(MAX_STEPS_PER_WEEK):
            event = engine.get_next_event(player.snapshot)
            if event is None:
                break

            is_priority = engine.state.queue.is_priority(event.id)
            if not is_priority and optional_handled >= self.optional_per_week:
                break

            choice = player.pick(event, engine.get_choice_availability(event.id, player.snapshot))
            if choice is None:
                if is_priority:
                    record.note = f"No available choice for priority event {event.id}"
                    break
                engine.dismiss_event(event.id)
                record.dismissed.append(event.id)
                continue

            engine.select_event(event.id)
            result = engine.make_choice(choice, player.snapshot, event_id=event.id, confirmed=True)
            if not result.accepted:
                logger.info(f"{event.id}/{choice.id} refused: {result.reason}")
                if is_priority:
                    record.note = f"Refused: {result.reason}"
                    break
                engine.dismiss_event(event.id)
                record.dismissed.append(event.id)
                continue

            player.commit(result.delta)
            record.decisions.append(Decision(
                event_id=event.id,
                title=event.title,
                choice_id=choice.id,
                success=result.success,
                rolled=result.rolled,
                threshold=result.threshold,
                critical=result.critical,
            ))
            if not is_priority:
                optional_handled += 1

        return record
