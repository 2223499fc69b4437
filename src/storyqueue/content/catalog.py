"""
Content catalog: the authored library of events and arcs.

Immutable after load. The engine only looks things up; it never writes
back. Authoring order is preserved because it is the final tie-breaker
when choosing between otherwise equal candidates.

Loading:
    catalog = ContentCatalog.load_default()             # bundled sample
    catalog = ContentCatalog.from_yaml("my_content.yaml")
    catalog = ContentCatalog.from_dicts({"events": [...], "arcs": [...]})

Integrity:
    issues = catalog.validate()  # dangling references, unreachable stages
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Iterable

import yaml
from pydantic import ValidationError

from ..state.schemas.content import EventConsequences, EventKind, StoryArc, StoryEvent

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_PATH = Path(__file__).parent.parent / "data" / "sample_content.yaml"


class CatalogError(Exception):
    """Malformed or duplicate content at load time."""
    pass


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


@dataclass
class CatalogIssue:
    """A single integrity problem found by validate()."""

    category: str  # "chain", "arc", "auto_resolve", ...
    severity: Severity
    message: str
    subject: str = ""  # Event or arc id the issue is attached to
    context: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "category": self.category,
            "severity": self.severity.value,
            "message": self.message,
            "subject": self.subject,
            "context": self.context,
        }


class ContentCatalog:
    """Lookup from id to event/arc definition, in authoring order."""

    def __init__(self, events: Iterable[StoryEvent] = (), arcs: Iterable[StoryArc] = ()):
        self._events: dict[str, StoryEvent] = {}
        self._order: dict[str, int] = {}
        self._arcs: dict[str, StoryArc] = {}

        for event in events:
            if event.id in self._events:
                raise CatalogError(f"Duplicate event id: {event.id}")
            self._order[event.id] = len(self._events)
            self._events[event.id] = event

        for arc in arcs:
            if arc.id in self._arcs:
                raise CatalogError(f"Duplicate arc id: {arc.id}")
            self._arcs[arc.id] = arc

    # ─── Loading ─────────────────────────────────────────────────

    @classmethod
    def from_dicts(cls, data: dict[str, Any]) -> "ContentCatalog":
        """Build from plain data: {"events": [...], "arcs": [...]}."""
        if not isinstance(data, dict):
            raise CatalogError("Content must be a mapping with 'events' and 'arcs'")

        events = [cls._parse(StoryEvent, raw, "event") for raw in data.get("events") or []]
        arcs = [cls._parse(StoryArc, raw, "arc") for raw in data.get("arcs") or []]
        return cls(events, arcs)

    @classmethod
    def from_yaml(cls, path: Path | str) -> "ContentCatalog":
        """Load a YAML content file."""
        path = Path(path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise CatalogError(f"Cannot read content file {path}: {e}") from e

        catalog = cls.from_dicts(data)
        logger.info(f"Loaded {len(catalog)} events and {len(catalog.arcs)} arcs from {path}")
        return catalog

    @classmethod
    def load_default(cls) -> "ContentCatalog":
        """The bundled sample content."""
        return cls.from_yaml(DEFAULT_CONTENT_PATH)

    @staticmethod
    def _parse(model: type, raw: Any, label: str):
        try:
            return model.model_validate(raw)
        except ValidationError as e:
            ident = raw.get("id", "?") if isinstance(raw, dict) else "?"
            raise CatalogError(f"Invalid {label} {ident}: {e}") from e

    # ─── Lookup ──────────────────────────────────────────────────

    def __len__(self) -> int:
        return len(self._events)

    def __contains__(self, event_id: str) -> bool:
        return event_id in self._events

    @property
    def events(self) -> list[StoryEvent]:
        return list(self._events.values())

    @property
    def arcs(self) -> list[StoryArc]:
        return list(self._arcs.values())

    def get_event(self, event_id: str) -> StoryEvent | None:
        return self._events.get(event_id)

    def get_arc(self, arc_id: str) -> StoryArc | None:
        return self._arcs.get(arc_id)

    def order_of(self, event_id: str) -> int:
        """Authoring position; unknown ids sort last."""
        return self._order.get(event_id, len(self._order))

    def stage_events(self, arc_id: str, stage_index: int) -> set[str]:
        """
        Events that qualify for one stage of an arc.

        The stage's own list plus any event tagged with this arc and stage.
        """
        arc = self._arcs.get(arc_id)
        qualifying: set[str] = set()
        if arc is not None and 0 <= stage_index < arc.stage_count:
            qualifying.update(arc.stages[stage_index].events)
        qualifying.update(
            e.id for e in self._events.values()
            if e.arc_id == arc_id and e.arc_stage == stage_index
        )
        return qualifying

    # ─── Integrity ───────────────────────────────────────────────

    def validate(self) -> list[CatalogIssue]:
        """Find references to content that does not exist."""
        issues: list[CatalogIssue] = []
        issues.extend(self._check_event_references())
        issues.extend(self._check_arc_references())
        issues.extend(self._check_choices())
        return issues

    def _check_event_references(self) -> list[CatalogIssue]:
        issues = []
        for event in self._events.values():
            for choice in event.choices:
                bundles = [
                    choice.consequences_on_success,
                    choice.consequences_on_failure,
                    choice.consequences_on_critical,
                    choice.consequences_on_critical_failure,
                ]
                for bundle in (b for b in bundles if b is not None):
                    referenced = [(bundle.chains_event, "chains")] if bundle.chains_event else []
                    referenced += [(f.event_id, "queues") for f in bundle.queues_events]
                    referenced += [(b, "blocks") for b in bundle.blocks_events]
                    for target, verb in referenced:
                        if target not in self._events:
                            issues.append(CatalogIssue(
                                category="chain",
                                severity=Severity.ERROR,
                                message=f"{event.id}/{choice.id} {verb} unknown event {target}",
                                subject=event.id,
                                context={"choice": choice.id, "target": target},
                            ))
                    for arc_id in _arc_refs(bundle, event):
                        if arc_id not in self._arcs:
                            issues.append(CatalogIssue(
                                category="arc",
                                severity=Severity.ERROR,
                                message=f"{event.id}/{choice.id} references unknown arc {arc_id}",
                                subject=event.id,
                                context={"choice": choice.id, "arc": arc_id},
                            ))

            if event.arc_id and event.arc_id not in self._arcs:
                issues.append(CatalogIssue(
                    category="arc",
                    severity=Severity.ERROR,
                    message=f"{event.id} belongs to unknown arc {event.arc_id}",
                    subject=event.id,
                ))
            elif event.arc_id and event.arc_stage is None:
                issues.append(CatalogIssue(
                    category="arc",
                    severity=Severity.WARNING,
                    message=f"{event.id} belongs to arc {event.arc_id} but names no stage",
                    subject=event.id,
                ))
        return issues

    def _check_arc_references(self) -> list[CatalogIssue]:
        issues = []
        for arc in self._arcs.values():
            if not arc.stages:
                issues.append(CatalogIssue(
                    category="arc",
                    severity=Severity.WARNING,
                    message=f"Arc {arc.id} has no stages",
                    subject=arc.id,
                ))
            for index, stage in enumerate(arc.stages):
                for event_id in stage.events:
                    if event_id not in self._events:
                        issues.append(CatalogIssue(
                            category="arc",
                            severity=Severity.ERROR,
                            message=f"Arc {arc.id} stage {index} lists unknown event {event_id}",
                            subject=arc.id,
                            context={"stage": index, "event": event_id},
                        ))
                if not self.stage_events(arc.id, index):
                    issues.append(CatalogIssue(
                        category="arc",
                        severity=Severity.WARNING,
                        message=f"Arc {arc.id} stage {index} has no qualifying events",
                        subject=arc.id,
                        context={"stage": index},
                    ))
        return issues

    def _check_choices(self) -> list[CatalogIssue]:
        issues = []
        for event in self._events.values():
            if not event.choices:
                issues.append(CatalogIssue(
                    category="choices",
                    severity=Severity.WARNING if event.kind == EventKind.BACKGROUND else Severity.ERROR,
                    message=f"{event.id} has no choices",
                    subject=event.id,
                ))
            lapses_silently = (
                event.kind == EventKind.PRIORITY
                and event.expires_in_weeks is not None
                and event.auto_resolve_choice_id is None
            )
            if lapses_silently:
                issues.append(CatalogIssue(
                    category="auto_resolve",
                    severity=Severity.WARNING,
                    message=f"Priority event {event.id} can lapse with no auto-resolve choice",
                    subject=event.id,
                ))
        return issues


def _arc_refs(bundle: EventConsequences, event: StoryEvent) -> list[str]:
    refs = []
    if bundle.advances_arc is not None:
        arc_id = bundle.advances_arc.arc_id or event.arc_id
        if arc_id:
            refs.append(arc_id)
    if bundle.fails_arc:
        refs.append(bundle.fails_arc)
    return refs
