"""
canon_engine/models/extraction.py -- Results of conversation extraction.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import Field

from canon_engine.models.base import CanonModel


class CharacterRole(str, Enum):
    """Narrative weight of an extracted character, weakest first."""

    MINOR = "minor"
    SUPPORTING = "supporting"
    ANTAGONIST = "antagonist"
    PROTAGONIST = "protagonist"

    @property
    def priority(self) -> int:
        return _ROLE_PRIORITY[self]


_ROLE_PRIORITY = {
    CharacterRole.MINOR: 0,
    CharacterRole.SUPPORTING: 1,
    CharacterRole.ANTAGONIST: 2,
    CharacterRole.PROTAGONIST: 3,
}


class ExtractedEntityCandidate(CanonModel):
    name: str
    description: str
    role: Optional[CharacterRole] = None


class AutoGeneratedCanon(CanonModel):
    """Candidate canon entries proposed from a planning conversation."""

    characters: list[ExtractedEntityCandidate] = Field(default_factory=list)
    locations: list[ExtractedEntityCandidate] = Field(default_factory=list)
    systems: list[ExtractedEntityCandidate] = Field(default_factory=list)
    artifacts: list[ExtractedEntityCandidate] = Field(default_factory=list)
