"""
Shared pytest fixtures for the canon engine test suite.

Provides:
    - character_data, location_data, system_data, artifact_data,
      rule_data, event_data: raw camelCase entry dicts as the editor stores them
    - character, location, system, artifact, rule, event: the same entries
      parsed into typed snapshots
    - fixed_moment / fixed_clock: a pinned time source
    - chapters: a short manuscript of ChapterRef values
"""

import copy
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# ---------------------------------------------------------------------------
# Ensure canon_engine/ is importable regardless of where pytest is invoked
# ---------------------------------------------------------------------------

PROJECT_ROOT = Path(__file__).resolve().parent.parent

if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from canon_engine.models import ChapterRef, parse_snapshot  # noqa: E402


# ---------------------------------------------------------------------------
# Raw entry data
# ---------------------------------------------------------------------------

@pytest.fixture
def character_data():
    """Return a valid character entry dict.

    Includes every field the change detector watches:
        role, personality.traits, personality.speechPattern,
        background.upbringing, relationships, arc.endingState,
        storyState.alive, storyState.currentLocation, storyState.knowledgeState
    """
    return {
        "id": "char-elara",
        "projectId": "proj-1",
        "type": "character",
        "name": "Elara Voss",
        "description": "A disgraced archivist hunting a stolen codex.",
        "tags": ["lead"],
        "version": 3,
        "createdAt": "2025-01-01T00:00:00.000Z",
        "updatedAt": "2025-01-02T00:00:00.000Z",
        "character": {
            "fullName": "Elara Anwen Voss",
            "role": "protagonist",
            "personality": {
                "traits": ["stubborn", "curious"],
                "speechPattern": "Clipped, precise, rarely swears.",
            },
            "background": {
                "upbringing": "Raised in the archive cloisters.",
            },
            "relationships": [
                {
                    "characterId": "char-reyes",
                    "characterName": "Captain Reyes",
                    "type": "ally",
                    "dynamic": "wary trust",
                },
            ],
            "arc": {
                "startingState": "Exiled",
                "endingState": "Restored as head archivist",
            },
            "storyState": {
                "alive": True,
                "currentLocation": "Sunken Library",
                "knowledgeState": ["The codex is a forgery"],
            },
        },
    }


@pytest.fixture
def location_data():
    """Return a valid location entry dict."""
    return {
        "id": "loc-library",
        "type": "location",
        "name": "Sunken Library",
        "location": {
            "geography": {"region": "The Drowned Coast"},
            "history": {
                "ownership": [{"owner": "The Archivists' Guild", "period": "400 years"}],
            },
            "storyRelevance": {"accessRules": "Only guild members may enter."},
        },
    }


@pytest.fixture
def system_data():
    """Return a valid system entry dict."""
    return {
        "id": "sys-tide",
        "type": "system",
        "name": "Tide Magic",
        "system": {
            "systemType": "magic",
            "rules": {
                "corePrinciples": ["Power follows the moon"],
                "limitations": ["Useless at low tide"],
                "costs": "A memory per working",
            },
        },
    }


@pytest.fixture
def artifact_data():
    """Return a valid artifact entry dict."""
    return {
        "id": "art-codex",
        "type": "artifact",
        "name": "Ember Codex",
        "artifact": {
            "properties": {
                "abilities": ["Reveals hidden text"],
                "limitations": ["Burns its reader"],
            },
            "history": {
                "currentLocation": "Sunken Library",
                "currentOwner": "Archivists' Guild",
            },
        },
    }


@pytest.fixture
def rule_data():
    """Return a valid rule entry dict."""
    return {
        "id": "rule-oath",
        "type": "rule",
        "name": "The Archivist's Oath",
        "rule": {
            "statement": "No archivist may destroy a book.",
            "canBeBroken": True,
            "hasBeenBroken": False,
        },
    }


@pytest.fixture
def event_data():
    """Return a valid event entry dict."""
    return {
        "id": "evt-flood",
        "type": "event",
        "name": "The Great Flood",
        "event": {
            "date": "Year 312",
            "location": "Sunken Library",
            "participants": [{"name": "Elara Voss", "role": "survivor"}],
        },
    }


# ---------------------------------------------------------------------------
# Typed snapshots
# ---------------------------------------------------------------------------

@pytest.fixture
def character(character_data):
    return parse_snapshot(copy.deepcopy(character_data))


@pytest.fixture
def location(location_data):
    return parse_snapshot(copy.deepcopy(location_data))


@pytest.fixture
def system(system_data):
    return parse_snapshot(copy.deepcopy(system_data))


@pytest.fixture
def artifact(artifact_data):
    return parse_snapshot(copy.deepcopy(artifact_data))


@pytest.fixture
def rule(rule_data):
    return parse_snapshot(copy.deepcopy(rule_data))


@pytest.fixture
def event(event_data):
    return parse_snapshot(copy.deepcopy(event_data))


# ---------------------------------------------------------------------------
# Time and chapters
# ---------------------------------------------------------------------------

@pytest.fixture
def fixed_moment():
    """2025-01-31T12:00:00Z."""
    return datetime(2025, 1, 31, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def fixed_clock(fixed_moment):
    return lambda: fixed_moment


@pytest.fixture
def chapters():
    """Return three chapters; the second has no premise."""
    return [
        ChapterRef(number=1, title="Arrival", purpose="Elara returns to the coast"),
        ChapterRef(number=2, title="The Stacks"),
        ChapterRef(number=3, title="Low Tide", purpose="The codex is found"),
    ]
