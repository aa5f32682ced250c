"""
canon_engine/models/ -- Pydantic v2 models for the canon engine.

Submodules:
    base        Shared configuration (camelCase aliases) and CanonBase.
    entries     Typed canon entry snapshots and ``parse_snapshot``.
    validation  ChangeRecord, ValidationIssue, ImpactReport, Severity.
    extraction  AutoGeneratedCanon and its candidates.
"""

from canon_engine.models.base import CanonBase, CanonModel
from canon_engine.models.entries import (
    ArtifactEntry,
    CharacterEntry,
    EntrySnapshot,
    EventEntry,
    LocationEntry,
    RuleEntry,
    SystemEntry,
    parse_snapshot,
)
from canon_engine.models.extraction import (
    AutoGeneratedCanon,
    CharacterRole,
    ExtractedEntityCandidate,
)
from canon_engine.models.validation import (
    AffectedChapter,
    ChangeRecord,
    ChapterRef,
    ImpactReport,
    IssueType,
    Severity,
    ValidationIssue,
    max_severity,
)

__all__ = [
    "AffectedChapter",
    "ArtifactEntry",
    "AutoGeneratedCanon",
    "CanonBase",
    "CanonModel",
    "ChangeRecord",
    "ChapterRef",
    "CharacterEntry",
    "CharacterRole",
    "EntrySnapshot",
    "EventEntry",
    "ExtractedEntityCandidate",
    "ImpactReport",
    "IssueType",
    "LocationEntry",
    "RuleEntry",
    "Severity",
    "SystemEntry",
    "ValidationIssue",
    "max_severity",
    "parse_snapshot",
]
