"""
canon_engine/models/validation.py -- Change, issue and impact report models.

These are the values that flow out of the continuity pipeline:

    ChangeRecord      one detected field difference (ephemeral)
    ValidationIssue   one narrative consequence of a change (durable)
    ImpactReport      all issues raised by a single edit cycle (durable)

``Severity`` is totally ordered ``info < warning < error < critical``;
use ``Severity.rank`` or ``max_severity`` rather than comparing the raw
strings.
"""

from __future__ import annotations

from enum import Enum
from typing import Iterable, Optional

from pydantic import Field

from canon_engine.models.base import CanonModel, FrozenCanonModel


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    Severity.INFO: 1,
    Severity.WARNING: 2,
    Severity.ERROR: 3,
    Severity.CRITICAL: 4,
}


def max_severity(severities: Iterable[Severity]) -> Severity:
    """Return the most severe value in *severities*.

    Raises ``ValueError`` for an empty iterable, like ``max()``.
    """
    return max(severities, key=lambda s: s.rank)


class IssueType(str, Enum):
    CONTINUITY = "continuity"
    PLOT_HOLE = "plot-hole"
    CHARACTER_INCONSISTENCY = "character-inconsistency"
    TIMELINE = "timeline"
    CANON_CONFLICT = "canon-conflict"
    DEAD_REFERENCE = "dead-reference"
    LOGIC = "logic"


class ChangeRecord(FrozenCanonModel):
    """One field that differs between two snapshots of the same entry."""

    field: str
    old_value: str
    new_value: str

    def describe(self) -> str:
        return f"{self.field}: {self.old_value} → {self.new_value}"


class ValidationIssue(CanonModel):
    """A narrative problem that a canon change may have introduced."""

    id: str
    severity: Severity
    type: IssueType
    title: str
    description: str
    suggestion: str
    canon_entry_id: str
    canon_entry_name: str
    affected_chapter_ids: list[int] = Field(default_factory=list)
    field: str
    old_value: str
    new_value: str
    resolved: bool = False
    overridden: bool = False
    override_reason: Optional[str] = None
    created_at: str

    @property
    def is_open(self) -> bool:
        """True while the issue is neither resolved nor overridden."""
        return not self.resolved and not self.overridden


class ChapterRef(FrozenCanonModel):
    """The caller's view of one chapter of the manuscript."""

    number: int
    title: str = ""
    purpose: str = ""


class AffectedChapter(FrozenCanonModel):
    number: int
    title: str
    severity: Severity


class ImpactReport(CanonModel):
    """Everything one edit of one canon entry put at risk."""

    canon_entry_id: str
    canon_entry_name: str
    change_description: str
    issues: list[ValidationIssue]
    affected_chapters: list[AffectedChapter]
    timestamp: str

    @property
    def worst_severity(self) -> Severity:
        return max_severity(issue.severity for issue in self.issues)

    def format_human(self) -> str:
        """Format the report as plain text for display to the user."""
        lines = [
            f"Impact of editing '{self.canon_entry_name}': "
            f"{len(self.issues)} issue(s), worst severity {self.worst_severity.value}.",
            f"Changes: {self.change_description}",
        ]
        for issue in self.issues:
            lines.append(f"  [{issue.severity.value}] {issue.title}")
            lines.append(f"      {issue.suggestion}")
        if self.affected_chapters:
            lines.append("Affected chapters:")
            for chapter in self.affected_chapters:
                lines.append(
                    f"  Ch {chapter.number}: {chapter.title} ({chapter.severity.value})"
                )
        return "\n".join(lines)
