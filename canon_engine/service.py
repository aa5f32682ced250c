"""
canon_engine/service.py -- Stateful continuity service for a host application.

The engine functions are pure; this module is where state lives, and only
because the host constructs it.  There are no singletons: the host builds
one ``ContinuityService`` per open project and injects the store that
persists issues and reports.

    ValidationStore          protocol the host's persistence layer implements
    InMemoryValidationStore  thread-safe reference implementation
    ContinuityService        snapshot lifecycle + impact checks

Usage::

    from canon_engine.service import ContinuityService, InMemoryValidationStore

    service = ContinuityService(InMemoryValidationStore())
    service.capture(entry)                  # when the editor opens the entry
    ...
    report = service.check_impact(edited, chapters)
"""

from __future__ import annotations

import logging
import threading
from typing import Optional, Protocol, Sequence

from canon_engine.change_detector import detect_changes
from canon_engine.clock import Clock, utc_now
from canon_engine.config import DEFAULT_SETTINGS, EngineSettings
from canon_engine.errors import UnknownIssueError
from canon_engine.impact_reporter import build_impact_report
from canon_engine.issue_generator import IssueGenerator, RuleBasedIssueGenerator
from canon_engine.models.base import CanonBase
from canon_engine.models.validation import ChapterRef, ImpactReport, ValidationIssue

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

class ValidationStore(Protocol):
    """Persistence boundary for issues and impact reports."""

    def add_issues(self, issues: Sequence[ValidationIssue]) -> None: ...

    def add_report(self, report: ImpactReport) -> None: ...

    def reports(self) -> list[ImpactReport]: ...

    def issues(self) -> list[ValidationIssue]: ...

    def resolve_issue(self, issue_id: str) -> ValidationIssue: ...

    def override_issue(self, issue_id: str, reason: str) -> ValidationIssue: ...

    def dismiss_issue(self, issue_id: str) -> ValidationIssue: ...

    def unresolved_count(self) -> int: ...

    def issues_for_chapter(self, chapter_number: int) -> list[ValidationIssue]: ...

    def issues_for_entry(self, entry_id: str) -> list[ValidationIssue]: ...


class InMemoryValidationStore:
    """Keeps issues and reports in memory behind a re-entrant lock.

    Reports are held most recent first.  Issue updates replace the stored
    issue with an updated copy, so issues handed out earlier are never
    mutated behind the caller's back.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._issues: dict[str, ValidationIssue] = {}
        self._reports: list[ImpactReport] = []

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def add_issues(self, issues: Sequence[ValidationIssue]) -> None:
        with self._lock:
            for issue in issues:
                self._issues[issue.id] = issue

    def add_report(self, report: ImpactReport) -> None:
        with self._lock:
            self._reports.insert(0, report)

    def _update(self, issue_id: str, **changes) -> ValidationIssue:
        with self._lock:
            issue = self._issues.get(issue_id)
            if issue is None:
                raise UnknownIssueError(issue_id)
            updated = issue.model_copy(update=changes)
            self._issues[issue_id] = updated
            return updated

    def resolve_issue(self, issue_id: str) -> ValidationIssue:
        return self._update(issue_id, resolved=True)

    def override_issue(self, issue_id: str, reason: str) -> ValidationIssue:
        """Accept an issue as intentional, recording why."""
        return self._update(issue_id, overridden=True, override_reason=reason)

    def dismiss_issue(self, issue_id: str) -> ValidationIssue:
        with self._lock:
            issue = self._issues.pop(issue_id, None)
            if issue is None:
                raise UnknownIssueError(issue_id)
            return issue

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def reports(self) -> list[ImpactReport]:
        with self._lock:
            return list(self._reports)

    def issues(self) -> list[ValidationIssue]:
        with self._lock:
            return list(self._issues.values())

    def get_issue(self, issue_id: str) -> ValidationIssue:
        with self._lock:
            issue = self._issues.get(issue_id)
        if issue is None:
            raise UnknownIssueError(issue_id)
        return issue

    def unresolved_count(self) -> int:
        return sum(1 for issue in self.issues() if issue.is_open)

    def issues_for_chapter(self, chapter_number: int) -> list[ValidationIssue]:
        """Open issues that put *chapter_number* at risk."""
        return [
            issue for issue in self.issues()
            if issue.is_open and chapter_number in issue.affected_chapter_ids
        ]

    def issues_for_entry(self, entry_id: str) -> list[ValidationIssue]:
        """Open issues raised by edits to the canon entry *entry_id*."""
        return [
            issue for issue in self.issues()
            if issue.is_open and issue.canon_entry_id == entry_id
        ]


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class ContinuityService:
    """Runs impact checks for edits against captured snapshots.

    Parameters
    ----------
    store : ValidationStore
        Where issues and reports are recorded.
    issue_generator : IssueGenerator, optional
        Defaults to a ``RuleBasedIssueGenerator`` sharing this service's
        clock and settings.
    clock : callable, optional
        Time source for issues and reports.
    settings : EngineSettings, optional
    """

    def __init__(
        self,
        store: ValidationStore,
        *,
        issue_generator: Optional[IssueGenerator] = None,
        clock: Optional[Clock] = None,
        settings: Optional[EngineSettings] = None,
    ):
        self.store = store
        self._clock = clock or utc_now
        self._settings = settings or DEFAULT_SETTINGS
        self._generator = issue_generator or RuleBasedIssueGenerator(
            clock=self._clock, settings=self._settings,
        )
        self._lock = threading.RLock()
        self._snapshots: dict[str, CanonBase] = {}

    # ------------------------------------------------------------------
    # Snapshot lifecycle
    # ------------------------------------------------------------------

    def capture(self, entry: CanonBase) -> None:
        """Remember *entry* as the baseline for its next impact check."""
        with self._lock:
            self._snapshots[entry.id] = entry.snapshot()

    def release(self, entry_id: str) -> None:
        """Forget the baseline of *entry_id* (e.g. when its editor closes)."""
        with self._lock:
            self._snapshots.pop(entry_id, None)

    def snapshot_of(self, entry_id: str) -> Optional[CanonBase]:
        with self._lock:
            return self._snapshots.get(entry_id)

    # ------------------------------------------------------------------
    # Impact checks
    # ------------------------------------------------------------------

    def check_impact(
        self,
        entry: CanonBase,
        chapters: Sequence[ChapterRef] = (),
    ) -> Optional[ImpactReport]:
        """Compare *entry* with its baseline and record any resulting issues.

        With no baseline captured yet, *entry* becomes the baseline and
        nothing is reported.  After every check the baseline is replaced by
        *entry*, so the next check only sees newer edits.

        Returns
        -------
        ImpactReport or None
            ``None`` when nothing changed or no change raised an issue.
        """
        with self._lock:
            baseline = self._snapshots.get(entry.id)
            if baseline is None:
                logger.debug("No baseline for '%s'; capturing current state", entry.id)
                self._snapshots[entry.id] = entry.snapshot()
                return None

            changes = detect_changes(baseline, entry)
            self._snapshots[entry.id] = entry.snapshot()

        if not changes:
            return None

        issues = self._generator.generate(entry, changes, len(chapters))
        if not issues:
            logger.debug("%d change(s) on '%s' raised no issues", len(changes), entry.id)
            return None

        report = build_impact_report(
            entry, changes, issues, chapters=chapters, clock=self._clock,
        )
        self.store.add_issues(issues)
        self.store.add_report(report)
        logger.info(
            "Recorded impact report for '%s': %d issue(s), worst %s",
            entry.name, len(issues), report.worst_severity.value,
        )
        return report
