"""
canon_engine/impact_reporter.py -- One impact report per edit cycle.

Folds the issues raised by a single edit of a single canon entry into an
``ImpactReport``.  Every chapter referenced by any issue appears once,
tagged with the worst severity among the issues that touch it.

The engine keeps no report history.  Callers hold it, most recent first
(see ``prepend_report``).
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from canon_engine.clock import Clock, to_iso, utc_now
from canon_engine.models.base import CanonBase
from canon_engine.models.validation import (
    AffectedChapter,
    ChangeRecord,
    ChapterRef,
    ImpactReport,
    Severity,
    ValidationIssue,
)

logger = logging.getLogger(__name__)


def describe_changes(changes: Sequence[ChangeRecord]) -> str:
    """Join changes as ``"field: old → new"`` separated by ``"; "``."""
    return "; ".join(change.describe() for change in changes)


def chapter_severities(issues: Sequence[ValidationIssue]) -> dict[int, Severity]:
    """Map each referenced chapter number to the worst severity touching it."""
    worst: dict[int, Severity] = {}
    for issue in issues:
        for number in issue.affected_chapter_ids:
            current = worst.get(number)
            if current is None or issue.severity.rank > current.rank:
                worst[number] = issue.severity
    return worst


def build_impact_report(
    entry: CanonBase,
    changes: Sequence[ChangeRecord],
    issues: Sequence[ValidationIssue],
    *,
    chapters: Optional[Sequence[ChapterRef]] = None,
    clock: Optional[Clock] = None,
) -> ImpactReport:
    """Aggregate one edit's issues into an impact report.

    Parameters
    ----------
    entry
        The canon entry as it stands after the edit.
    changes
        The changes that produced *issues*.
    issues
        The issues of this edit cycle.  Must not be empty.
    chapters : sequence of ChapterRef, optional
        Supplies chapter titles; chapters without one are titled
        ``"Chapter N"``.
    clock : callable, optional
        Time source for the report timestamp.

    Raises
    ------
    ValueError
        If *issues* is empty: an edit with no issues has no report.
    """
    if not issues:
        raise ValueError(
            f"Cannot build an impact report for '{entry.name}' without issues."
        )

    titles = {chapter.number: chapter.title for chapter in chapters or ()}
    worst = chapter_severities(issues)
    affected = [
        AffectedChapter(
            number=number,
            title=titles.get(number) or f"Chapter {number}",
            severity=worst[number],
        )
        for number in sorted(worst)
    ]

    report = ImpactReport(
        canon_entry_id=entry.id,
        canon_entry_name=entry.name,
        change_description=describe_changes(changes),
        issues=list(issues),
        affected_chapters=affected,
        timestamp=to_iso((clock or utc_now)()),
    )
    logger.debug(
        "Impact report for '%s': %d issue(s) across %d chapter(s)",
        entry.id, len(issues), len(affected),
    )
    return report


def prepend_report(history: Sequence[ImpactReport], report: ImpactReport) -> list[ImpactReport]:
    """Return a new history with *report* first (most recent first)."""
    return [report, *history]
