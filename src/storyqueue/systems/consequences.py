"""
Consequence applier for the story engine.

Translates a declarative EventConsequences bundle into a StatDelta the
external player store understands. Pure translation: no globals, no
mutation of input, no engine state touched.

Design invariants:
- Malformed sub-effects are dropped and logged; the rest still applies
- Unknown NPC ids are dropped when the known NPC set is given
- Unknown stat names are dropped when known_stats is configured
- Several deltas in one turn are summed (StatDelta.merge), never overwritten
"""

from __future__ import annotations

import logging
import math
from typing import Collection

from ..config import DEFAULT_CONFIG, EngineConfig
from ..state.schemas.content import EventConsequences
from ..state.schemas.results import RelationshipDelta, StatDelta

logger = logging.getLogger(__name__)


class ConsequenceApplier:
    """Builds StatDeltas from consequence bundles."""

    def __init__(self, config: EngineConfig | None = None):
        config = config or DEFAULT_CONFIG
        known = config.get("known_stats")
        self._known_stats: frozenset[str] | None = frozenset(known) if known else None

    def apply(
        self,
        consequences: EventConsequences | None,
        known_npcs: Collection[str] | None = None,
        event_arc_id: str | None = None,
    ) -> StatDelta:
        """
        Translate one bundle.

        Args:
            consequences: The bundle to translate (None yields an empty delta)
            known_npcs: NPC ids present in the player store; None skips the check
            event_arc_id: Arc of the owning event, used by a bare arc-advance marker
        """
        if consequences is None:
            return StatDelta()

        dropped: list[str] = []

        # Stats
        stats: dict[str, float] = {}
        for name, value in consequences.stats.items():
            if not _is_number(value):
                dropped.append(f"stat {name}: non-finite value {value!r}")
                continue
            if self._known_stats is not None and name not in self._known_stats:
                dropped.append(f"stat {name}: unknown stat")
                continue
            stats[name] = stats.get(name, 0) + value

        # Relationships
        relationships: dict[str, RelationshipDelta] = {}
        for effect in consequences.npc_effects:
            if known_npcs is not None and effect.npc_id not in known_npcs:
                dropped.append(f"npc {effect.npc_id}: unknown NPC")
                continue
            if not (_is_number(effect.relationship) and _is_number(effect.trust)):
                dropped.append(f"npc {effect.npc_id}: non-finite value")
                continue
            current = relationships.get(effect.npc_id, RelationshipDelta())
            relationships[effect.npc_id] = RelationshipDelta(
                relationship=current.relationship + effect.relationship,
                trust=current.trust + effect.trust,
                memories=current.memories + ([effect.memory] if effect.memory else []),
            )

        # Flags
        add_flags = self._clean_flags(consequences.sets_flags, "set", dropped)
        remove_flags = [
            f for f in self._clean_flags(consequences.clears_flags, "clear", dropped)
            if f not in add_flags
        ]

        # Arcs
        arc_advances: list[str] = []
        if consequences.advances_arc is not None:
            arc_id = consequences.advances_arc.arc_id or event_arc_id
            if arc_id:
                arc_advances.append(arc_id)
            else:
                dropped.append("arc advance: event belongs to no arc")
        arc_failures = [consequences.fails_arc] if consequences.fails_arc else []

        for item in dropped:
            logger.warning(f"Dropped consequence {item}")

        return StatDelta(
            stats=stats,
            relationships=relationships,
            add_flags=add_flags,
            remove_flags=remove_flags,
            arc_advances=arc_advances,
            arc_failures=arc_failures,
            notifications=[consequences.notification] if consequences.notification else [],
            dropped=dropped,
        )

    @staticmethod
    def _clean_flags(flags: list[str], verb: str, dropped: list[str]) -> list[str]:
        cleaned: list[str] = []
        for flag in flags:
            if not isinstance(flag, str) or not flag.strip():
                dropped.append(f"{verb} flag: blank name")
                continue
            if flag not in cleaned:
                cleaned.append(flag)
        return cleaned


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)
