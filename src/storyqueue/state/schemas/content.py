"""
Authored content schemas: the events and arcs the engine consumes.

These models describe the static content library. They are created once
when content is loaded and never mutated by the engine (frozen models).

Shape of an event:
    StoryEvent
      ├── requirements: EventRequirements   (who may see it)
      └── choices: [EventChoice]
            ├── requirements: EventRequirements   (who may pick it)
            ├── skill_check / success_chance      (how it can fail)
            └── consequences_on_*: EventConsequences
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


# ─── Enums ───────────────────────────────────────────────────

class EventKind(str, Enum):
    """How an event occupies the weekly queue."""
    PRIORITY = "PRIORITY"      # Mandatory, blocks the week
    OPTIONAL = "OPTIONAL"      # Player may resolve or let lapse
    BACKGROUND = "BACKGROUND"  # Auto-resolved, never presented


class Stakes(str, Enum):
    """How much rides on an event."""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @property
    def rank(self) -> int:
        return STAKES_RANK[self]


STAKES_RANK = {
    Stakes.LOW: 1,
    Stakes.MEDIUM: 2,
    Stakes.HIGH: 3,
    Stakes.CRITICAL: 4,
}


class EventCategory(str, Enum):
    DEAL = "DEAL"
    NPC = "NPC"
    CRISIS = "CRISIS"
    OPPORTUNITY = "OPPORTUNITY"
    PERSONAL = "PERSONAL"
    CAREER = "CAREER"
    MARKET = "MARKET"


class PlayerRank(str, Enum):
    """Career ladder, lowest first."""
    ASSOCIATE = "Associate"
    SENIOR_ASSOCIATE = "Senior Associate"
    VICE_PRESIDENT = "Vice President"
    PRINCIPAL = "Principal"
    PARTNER = "Partner"
    FOUNDER = "Founder"

    @property
    def order(self) -> int:
        return RANK_ORDER.index(self)


RANK_ORDER = [
    PlayerRank.ASSOCIATE,
    PlayerRank.SENIOR_ASSOCIATE,
    PlayerRank.VICE_PRESIDENT,
    PlayerRank.PRINCIPAL,
    PlayerRank.PARTNER,
    PlayerRank.FOUNDER,
]


class MarketCondition(str, Enum):
    NORMAL = "NORMAL"
    BULL_RUN = "BULL_RUN"
    CREDIT_CRUNCH = "CREDIT_CRUNCH"
    PANIC = "PANIC"


class ArcState(str, Enum):
    """Lifecycle of a story arc."""
    INACTIVE = "INACTIVE"
    ACTIVE = "ACTIVE"
    COMPLETE = "COMPLETE"
    FAILED = "FAILED"


class NotificationSeverity(str, Enum):
    """Severity of a toast shown by the presentation layer."""
    SUCCESS = "success"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


# ─── Requirements ────────────────────────────────────────────

class NpcRequirement(BaseModel):
    """Minimum standing with a named NPC."""
    model_config = ConfigDict(frozen=True)

    npc_id: str
    min_relationship: float | None = None
    min_trust: float | None = None


class ArcRequirement(BaseModel):
    """Gate on the progress of a story arc."""
    model_config = ConfigDict(frozen=True)

    arc_id: str
    min_stage: int | None = None
    max_stage: int | None = None
    state: ArcState | None = None


class EventRequirements(BaseModel):
    """
    Conjunction of independently-optional clauses.

    An empty clause (None or empty collection) is unconstrained.
    The same shape gates both events and individual choices.
    """
    model_config = ConfigDict(frozen=True)

    min_stats: dict[str, float] = Field(default_factory=dict)
    max_stats: dict[str, float] = Field(default_factory=dict)
    required_flags: list[str] = Field(default_factory=list)
    forbidden_flags: list[str] = Field(default_factory=list)
    npc_relationships: list[NpcRequirement] = Field(default_factory=list)
    min_rank: PlayerRank | None = None

    # Calendar, market and history gates
    min_week: int | None = None
    max_week: int | None = None
    allowed_markets: list[MarketCondition] = Field(default_factory=list)
    completed_events: list[str] = Field(default_factory=list)
    not_completed_events: list[str] = Field(default_factory=list)
    arc: ArcRequirement | None = None

    @property
    def is_empty(self) -> bool:
        return self == EventRequirements()


# ─── Consequences ────────────────────────────────────────────

class NpcEffect(BaseModel):
    """Relationship change for one NPC."""
    model_config = ConfigDict(frozen=True)

    npc_id: str
    relationship: float = 0
    trust: float = 0
    memory: str = ""  # "Backed me up in the IC meeting"


class Notification(BaseModel):
    """Payload for the presentation layer's toast."""
    model_config = ConfigDict(frozen=True)

    title: str
    message: str = ""
    severity: NotificationSeverity = NotificationSeverity.INFO


class FollowUp(BaseModel):
    """An event queued for a later week by a consequence."""
    model_config = ConfigDict(frozen=True)

    event_id: str
    delay_weeks: int = Field(default=1, ge=0)
    probability: int = Field(default=100, ge=0, le=100)


class ArcAdvance(BaseModel):
    """Marker: this outcome advances an arc. arc_id None means the event's own arc."""
    model_config = ConfigDict(frozen=True)

    arc_id: str | None = None


class EventConsequences(BaseModel):
    """Declarative effect bundle attached to a choice outcome."""
    model_config = ConfigDict(frozen=True)

    stats: dict[str, float] = Field(default_factory=dict)
    npc_effects: list[NpcEffect] = Field(default_factory=list)
    sets_flags: list[str] = Field(default_factory=list)
    clears_flags: list[str] = Field(default_factory=list)
    advances_arc: ArcAdvance | None = None
    fails_arc: str | None = None
    notification: Notification | None = None

    # Narrative flow
    chains_event: str | None = None  # Same-week follow-up, bypasses selection
    queues_events: list[FollowUp] = Field(default_factory=list)
    blocks_events: list[str] = Field(default_factory=list)


class SkillCheck(BaseModel):
    """
    Probabilistic gate against a player attribute.

    Critical thresholds compare against the raw die, before modifiers.
    When unset, the configured top/bottom bands apply.
    """
    model_config = ConfigDict(frozen=True)

    skill: str  # "financialEngineering", "reputation", ...
    threshold: int
    roll_bonus: int = 0
    critical_success_at: int | None = None
    critical_failure_at: int | None = None


class EventChoice(BaseModel):
    """An option the player can pick in response to an event."""
    model_config = ConfigDict(frozen=True)

    id: str
    label: str = ""
    description: str = ""
    requirements: EventRequirements = Field(default_factory=EventRequirements)

    # Risk mechanics
    skill_check: SkillCheck | None = None
    success_chance: int | None = Field(default=None, ge=0, le=100)

    consequences_on_success: EventConsequences = Field(default_factory=EventConsequences)
    consequences_on_failure: EventConsequences | None = None  # None = same as success
    consequences_on_critical: EventConsequences | None = None
    consequences_on_critical_failure: EventConsequences | None = None

    requires_confirmation: bool = False

    @property
    def is_gated(self) -> bool:
        """Whether this choice can fail."""
        return self.skill_check is not None or self.success_chance is not None

    @property
    def failure_consequences(self) -> EventConsequences:
        if self.consequences_on_failure is None:
            return self.consequences_on_success
        return self.consequences_on_failure


# ─── Events and Arcs ─────────────────────────────────────────

class StoryEvent(BaseModel):
    """
    The core unit of narrative gameplay.

    Every week the player faces events that require a choice.
    Text fields are opaque to the engine.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    kind: EventKind = EventKind.OPTIONAL
    stakes: Stakes = Stakes.MEDIUM
    category: EventCategory = EventCategory.DEAL

    title: str = ""
    hook: str = ""
    description: str = ""

    requirements: EventRequirements = Field(default_factory=EventRequirements)
    choices: list[EventChoice] = Field(default_factory=list)

    expires_in_weeks: int | None = Field(default=None, ge=0)
    auto_resolve_choice_id: str | None = None  # Applied on lapse / for BACKGROUND
    source_npc_id: str | None = None

    arc_id: str | None = None
    arc_stage: int | None = None

    weight: int = 0  # Explicit priority weight, higher wins

    @model_validator(mode="after")
    def _check_choices(self) -> "StoryEvent":
        ids = [c.id for c in self.choices]
        if len(ids) != len(set(ids)):
            raise ValueError(f"Event {self.id} has duplicate choice ids")
        if self.auto_resolve_choice_id and self.auto_resolve_choice_id not in ids:
            raise ValueError(
                f"Event {self.id} auto-resolves to unknown choice "
                f"{self.auto_resolve_choice_id}"
            )
        return self

    def get_choice(self, choice_id: str) -> EventChoice | None:
        return next((c for c in self.choices if c.id == choice_id), None)

    @property
    def auto_choice(self) -> EventChoice | None:
        """Choice applied when nobody picks one (lapse or background)."""
        if self.auto_resolve_choice_id:
            return self.get_choice(self.auto_resolve_choice_id)
        if self.kind == EventKind.BACKGROUND and self.choices:
            return self.choices[0]
        return None


class ArcStage(BaseModel):
    """A checkpoint within an arc; any listed event qualifies."""
    model_config = ConfigDict(frozen=True)

    title: str = ""
    events: list[str] = Field(default_factory=list)


class StoryArc(BaseModel):
    """A multi-week narrative made of ordered stages."""
    model_config = ConfigDict(frozen=True)

    id: str
    title: str = ""
    description: str = ""
    stages: list[ArcStage] = Field(default_factory=list)
    requirements: EventRequirements = Field(default_factory=EventRequirements)

    @property
    def stage_count(self) -> int:
        return len(self.stages)
