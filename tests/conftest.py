"""
Pytest fixtures for storyqueue tests.

Provides a small hand-built catalog, the bundled sample catalog, player
snapshots and engines wired to their own event bus.
"""

import random

import pytest

from storyqueue.content import ContentCatalog
from storyqueue.engine import StoryEngine
from storyqueue.simulation.player import default_snapshot
from storyqueue.state import EventBus, StoryState, reset_event_bus
from storyqueue.state.schemas import NpcState, StateSnapshot


SMALL_CONTENT = {
    "events": [
        {
            "id": "evt_boss",
            "kind": "PRIORITY",
            "stakes": "HIGH",
            "arc_id": "arc_test",
            "arc_stage": 0,
            "choices": [
                {
                    "id": "accept",
                    "consequences_on_success": {
                        "stats": {"reputation": 5},
                        "sets_flags": ["ACCEPTED"],
                        "advances_arc": {},
                    },
                },
                {
                    "id": "refuse",
                    "consequences_on_success": {
                        "stats": {"reputation": -5},
                        "fails_arc": "arc_test",
                    },
                },
                {
                    "id": "gamble",
                    "requires_confirmation": True,
                    "consequences_on_success": {"stats": {"cash": 1000}},
                },
            ],
        },
        {
            "id": "evt_followup",
            "kind": "PRIORITY",
            "stakes": "HIGH",
            "arc_id": "arc_test",
            "arc_stage": 1,
            "requirements": {"required_flags": ["ACCEPTED"]},
            "choices": [
                {"id": "finish", "consequences_on_success": {"advances_arc": {}}},
            ],
        },
        {
            "id": "evt_lunch",
            "kind": "OPTIONAL",
            "stakes": "MEDIUM",
            "expires_in_weeks": 1,
            "choices": [
                {"id": "go", "consequences_on_success": {"stats": {"stress": -2}}},
            ],
        },
        {
            "id": "evt_coffee",
            "kind": "OPTIONAL",
            "stakes": "LOW",
            "source_npc_id": "sarah",
            "requirements": {"required_flags": ["ACCEPTED"]},
            "choices": [
                {
                    "id": "chat",
                    "consequences_on_success": {
                        "stats": {"stress": -5},
                        "npc_effects": [{"npc_id": "sarah", "relationship": 5}],
                    },
                },
            ],
        },
        {
            "id": "evt_news",
            "kind": "BACKGROUND",
            "stakes": "LOW",
            "choices": [
                {"id": "read", "consequences_on_success": {"stats": {"analystRating": 1}}},
            ],
        },
    ],
    "arcs": [
        {
            "id": "arc_test",
            "title": "Test Arc",
            "stages": [
                {"title": "Start", "events": ["evt_boss"]},
                {"title": "Finish", "events": ["evt_followup"]},
            ],
        },
    ],
}


def make_catalog(events, arcs=()):
    """Catalog from raw event and arc dicts."""
    return ContentCatalog.from_dicts({"events": list(events), "arcs": list(arcs)})


def make_engine(catalog, **kwargs):
    """Seeded engine on its own bus."""
    kwargs.setdefault("seed", 7)
    kwargs.setdefault("bus", EventBus())
    return StoryEngine(catalog, **kwargs)


@pytest.fixture(autouse=True)
def reset_bus():
    """Keep the shared event bus clean between tests."""
    reset_event_bus()
    yield
    reset_event_bus()


@pytest.fixture
def catalog():
    """Small catalog: two priority events, two optional, one background, one arc."""
    return ContentCatalog.from_dicts(SMALL_CONTENT)


@pytest.fixture
def sample_catalog():
    """The bundled sample content."""
    return ContentCatalog.load_default()


@pytest.fixture
def snapshot():
    """Player snapshot with a few stats and NPCs."""
    return StateSnapshot(
        stats={"reputation": 20, "stress": 10, "financialEngineering": 10},
        npcs={
            "sarah": NpcState(name="Sarah Chen", relationship=50, trust=50),
            "chad": NpcState(name="Chad Morrison", relationship=40, trust=30),
        },
    )


@pytest.fixture
def player_snapshot():
    """Fresh associate used by the sample content."""
    return default_snapshot()


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def engine(catalog, bus):
    """Seeded engine over the small catalog, not yet started."""
    return StoryEngine(catalog, seed=7, bus=bus)


@pytest.fixture
def sample_engine(sample_catalog, bus):
    """Seeded engine over the sample content, not yet started."""
    return StoryEngine(sample_catalog, seed=7, bus=bus)


@pytest.fixture
def state(catalog):
    """Fresh StoryState for the small catalog."""
    return StoryState.for_arcs(catalog.arcs)


@pytest.fixture
def rng():
    return random.Random(42)
