"""
Choice resolver for the story engine.

Turns a picked choice into a decision: did it work, what was rolled,
and which consequence bundle applies. Never touches state; the caller
applies the returned consequences.

Resolution policy:
1. No skill check and no success chance: always succeeds.
2. Flat success_chance (0-100): draw d100, success iff draw <= chance.
3. Skill check: d100 + skill value + roll bonus, success iff >= threshold.
   A raw die in the top band is a critical; in the bottom band (on a
   failed check) a critical failure.
When a choice carries both gates, both must pass.

Randomness comes from an injected source so resolution is replayable.
"""

from __future__ import annotations

import logging
import math
import random
from typing import Protocol, runtime_checkable

from ..config import DEFAULT_CONFIG, EngineConfig
from ..state.schemas.content import EventChoice, EventConsequences, FollowUp, SkillCheck
from ..state.schemas.results import Resolution
from ..state.schemas.snapshot import StateSnapshot

logger = logging.getLogger(__name__)


@runtime_checkable
class RandomSource(Protocol):
    """Anything with random.Random's randint."""

    def randint(self, a: int, b: int) -> int:
        ...


class ChoiceResolver:
    """
    Resolves choices with an injectable random source.

    Args:
        rng: Source of randomness (defaults to an unseeded random.Random)
        config: Dice range and critical bands
    """

    def __init__(self, rng: RandomSource | None = None, config: EngineConfig | None = None):
        self._rng = rng or random.Random()
        self._config = config or DEFAULT_CONFIG
        self._roll_min = self._config.get("roll_min", 1)
        self._roll_max = self._config.get("roll_max", 100)

    @property
    def rng(self) -> RandomSource:
        return self._rng

    def resolve(self, choice: EventChoice, snapshot: StateSnapshot) -> Resolution:
        """Decide the outcome of a choice. No side effects beyond the RNG."""
        success = True
        rolled: int | None = None
        threshold: int | None = None
        critical = False
        critical_failure = False

        if choice.success_chance is not None:
            draw = self._rng.randint(1, 100)
            success = draw <= choice.success_chance
            rolled, threshold = draw, choice.success_chance

        if choice.skill_check is not None:
            check = choice.skill_check
            die, total = self.roll_skill(check, snapshot)
            passed = total >= check.threshold
            critical = passed and die >= self._critical_success_at(check)
            critical_failure = not passed and die <= self._critical_failure_at(check)
            success = success and passed
            rolled, threshold = total, check.threshold

            logger.debug(
                f"Skill check {check.skill} for {choice.id}: die={die} total={total} "
                f"vs {check.threshold} -> {'pass' if passed else 'fail'}"
            )

        consequences = self._pick_consequences(choice, success, critical, critical_failure)

        return Resolution(
            success=success,
            rolled=rolled,
            threshold=threshold,
            critical=critical,
            critical_failure=critical_failure,
            consequences=consequences,
            triggered_events=self.roll_follow_ups(consequences),
        )

    def roll_skill(self, check: SkillCheck, snapshot: StateSnapshot) -> tuple[int, int]:
        """Roll the die for a skill check. Returns (raw die, modified total)."""
        die = self._rng.randint(self._roll_min, self._roll_max)
        modifier = int(snapshot.stat(check.skill)) + check.roll_bonus
        return die, die + modifier

    def roll_follow_ups(self, consequences: EventConsequences) -> list[FollowUp]:
        """Keep the queued follow-ups whose probability roll passes."""
        triggered: list[FollowUp] = []
        for follow_up in consequences.queues_events:
            if follow_up.probability >= 100 or self._rng.randint(1, 100) <= follow_up.probability:
                triggered.append(follow_up)
        return triggered

    # ─── Helpers ─────────────────────────────────────────────────

    def _band_size(self, percent: int) -> int:
        span = self._roll_max - self._roll_min + 1
        return max(1, math.ceil(span * percent / 100)) if percent > 0 else 0

    def _critical_success_at(self, check: SkillCheck) -> int:
        if check.critical_success_at is not None:
            return check.critical_success_at
        band = self._band_size(self._config.get("critical_success_band", 5))
        if band == 0:
            return self._roll_max + 1  # Never
        return self._roll_max - band + 1

    def _critical_failure_at(self, check: SkillCheck) -> int:
        if check.critical_failure_at is not None:
            return check.critical_failure_at
        band = self._band_size(self._config.get("critical_failure_band", 5))
        return self._roll_min + band - 1

    @staticmethod
    def _pick_consequences(
        choice: EventChoice,
        success: bool,
        critical: bool,
        critical_failure: bool,
    ) -> EventConsequences:
        if success:
            if critical and choice.consequences_on_critical is not None:
                return choice.consequences_on_critical
            return choice.consequences_on_success
        if critical_failure and choice.consequences_on_critical_failure is not None:
            return choice.consequences_on_critical_failure
        return choice.failure_consequences
