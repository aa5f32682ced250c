"""
canon_engine/issue_generator.py -- Narrative issues from detected changes.

Maps each ``ChangeRecord`` to at most one ``ValidationIssue`` through a
fixed rule table keyed by field label.  A field that is not in the table
is narratively inert and yields nothing.

Each rule fixes the severity, the issue type, three text templates and the
chapters it puts at risk:

    ChapterPolicy.ALL       chapters 1..chapter_count
    ChapterPolicy.FIRST_K   the opening chapters (settings.first_k_chapters)
    ChapterPolicy.NONE      no chapter in particular

Templates are ``str.format`` strings over ``name``, ``old``, ``new`` and
``entry_type``.

The rule-based generator stands in for an AI-backed one.  Anything that
implements the ``IssueGenerator`` protocol can replace it without changing
the output contract.

Usage::

    from canon_engine.issue_generator import generate_validation_issues

    issues = generate_validation_issues(entry, changes, chapter_count=12)
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterator, Mapping, Optional, Protocol, Sequence

from canon_engine.clock import Clock, to_epoch_ms, to_iso, utc_now
from canon_engine.config import DEFAULT_SETTINGS, EngineSettings
from canon_engine.models.base import CanonBase
from canon_engine.models.validation import (
    ChangeRecord,
    IssueType,
    Severity,
    ValidationIssue,
)

logger = logging.getLogger(__name__)


class ChapterPolicy(str, Enum):
    ALL = "all"
    FIRST_K = "first-k"
    NONE = "none"


@dataclass(frozen=True)
class IssueRule:
    """How one changed field turns into a validation issue."""

    severity: Severity
    type: IssueType
    title: str
    description: str
    suggestion: str
    chapters: ChapterPolicy = ChapterPolicy.ALL
    # Optional guard; the rule only fires when it returns True.
    applies: Optional[Callable[[ChangeRecord], bool]] = None


def _became(value: str) -> Callable[[ChangeRecord], bool]:
    return lambda change: change.new_value == value


def _both_sides_set(change: ChangeRecord) -> bool:
    return bool(change.old_value) and bool(change.new_value)


ISSUE_RULES: Mapping[str, IssueRule] = {
    # ---- Character ----
    "alive": IssueRule(
        severity=Severity.CRITICAL,
        type=IssueType.CONTINUITY,
        title="{name} marked as dead",
        description=(
            "{name} has been marked as dead. Any chapters after their death that "
            "include dialogue or actions from this character need to be reviewed."
        ),
        suggestion=(
            "Review all chapters after the death event. Remove or revise any scenes "
            "where {name} appears alive. Check if other characters react to the death."
        ),
        applies=_became("false"),
    ),
    "current_location": IssueRule(
        severity=Severity.WARNING,
        type=IssueType.CONTINUITY,
        title="{name} relocated",
        description=(
            '{name} moved from "{old}" to "{new}". Chapters where they were at the '
            "old location may need travel or transition scenes."
        ),
        suggestion=(
            "Add a transition scene showing the move. Check that no chapters reference "
            '{name} being at "{old}" after this point.'
        ),
        chapters=ChapterPolicy.FIRST_K,
        applies=_both_sides_set,
    ),
    "role": IssueRule(
        severity=Severity.WARNING,
        type=IssueType.CHARACTER_INCONSISTENCY,
        title="{name}'s role changed",
        description=(
            "{name} changed from {old} to {new}. This may affect their motivations, "
            "screen time, and arc across the entire story."
        ),
        suggestion=(
            "Review {name}'s arc and ensure their new role is consistently reflected. "
            "Update chapter premises that feature this character."
        ),
    ),
    "personality.traits": IssueRule(
        severity=Severity.INFO,
        type=IssueType.CHARACTER_INCONSISTENCY,
        title="{name}'s personality updated",
        description=(
            "Core traits changed from [{old}] to [{new}]. Dialogue and internal "
            "monologue may need adjustment to match the new personality."
        ),
        suggestion=(
            "Review dialogue consistency. Look for lines where {name} speaks or thinks "
            "in a way the updated personality no longer supports."
        ),
    ),
    "speech_pattern": IssueRule(
        severity=Severity.WARNING,
        type=IssueType.CHARACTER_INCONSISTENCY,
        title="{name}'s voice changed",
        description=(
            "Speech pattern updated. All existing dialogue for {name} should be "
            "reviewed for consistency with their new voice."
        ),
        suggestion="Do a dialogue pass on all chapters featuring {name} to keep their voice consistent.",
    ),
    "knowledge_state": IssueRule(
        severity=Severity.ERROR,
        type=IssueType.PLOT_HOLE,
        title="{name}'s knowledge updated",
        description=(
            "What {name} knows has changed. This can create plot holes if they "
            "reference knowledge they shouldn't have yet, or fail to act on knowledge "
            "they now possess."
        ),
        suggestion=(
            "Check the timeline of knowledge reveals. Ensure {name} doesn't use this "
            "knowledge before they learn it, and does act on it after."
        ),
    ),
    "background.upbringing": IssueRule(
        severity=Severity.WARNING,
        type=IssueType.CONTINUITY,
        title="{name}'s backstory changed",
        description=(
            "{name}'s upbringing has been modified. Any flashbacks, references to their "
            "past, or motivations rooted in their background may need updating."
        ),
        suggestion=(
            "Search for backstory references in all chapters. Update any dialogue where "
            "{name} discusses their past."
        ),
    ),
    "relationships": IssueRule(
        severity=Severity.WARNING,
        type=IssueType.CONTINUITY,
        title="{name}'s relationships changed",
        description=(
            "Relationship dynamics have been updated. Interactions between affected "
            "characters may need revision across multiple chapters."
        ),
        suggestion=(
            "Review scenes with the affected characters. Ensure dialogue and actions "
            "reflect the updated relationship dynamics."
        ),
    ),
    # ---- Location ----
    "access_rules": IssueRule(
        severity=Severity.ERROR,
        type=IssueType.LOGIC,
        title="Access rules changed for {name}",
        description=(
            "Location access rules have been modified. Characters who previously "
            "entered this location may no longer be able to, creating logic issues."
        ),
        suggestion=(
            "Review all scenes set in {name}. Verify each character present has a "
            "valid reason to access the location under the new rules."
        ),
    ),
    "ownership": IssueRule(
        severity=Severity.INFO,
        type=IssueType.CONTINUITY,
        title="Ownership history of {name} changed",
        description=(
            "The recorded owners of {name} have been updated. References to who holds "
            "or held this place may be out of date."
        ),
        suggestion="Check mentions of who controls {name} against the updated ownership history.",
        chapters=ChapterPolicy.NONE,
    ),
    # ---- System ----
    "rules.limitations": IssueRule(
        severity=Severity.ERROR,
        type=IssueType.LOGIC,
        title="Limits of {name} changed",
        description=(
            "The limitations of {name} changed from [{old}] to [{new}]. Scenes that "
            "relied on the old limits may now be impossible, or too easy."
        ),
        suggestion=(
            "Review every use of {name}. Make sure no character exceeds the new limits "
            "and that earlier obstacles still make sense."
        ),
    ),
    "rules.costs": IssueRule(
        severity=Severity.WARNING,
        type=IssueType.LOGIC,
        title="Cost of using {name} changed",
        description=(
            'Using {name} now costs "{new}" instead of "{old}". Characters who paid '
            "the old price may need their consequences revisited."
        ),
        suggestion="Check scenes where {name} is used and show the new cost being paid.",
    ),
    # ---- Artifact ----
    "properties.abilities": IssueRule(
        severity=Severity.WARNING,
        type=IssueType.LOGIC,
        title="Abilities of {name} changed",
        description=(
            "{name} can now do [{new}] instead of [{old}]. Scenes where it is used "
            "may show powers it no longer has."
        ),
        suggestion="Review every scene that uses {name} against its updated abilities.",
    ),
    "history.current_owner": IssueRule(
        severity=Severity.WARNING,
        type=IssueType.CONTINUITY,
        title="{name} changed hands",
        description=(
            '{name} now belongs to "{new}" instead of "{old}". The hand-over needs '
            "to happen on the page before the new owner uses it."
        ),
        suggestion='Add or locate the scene where "{new}" obtains {name}.',
        chapters=ChapterPolicy.FIRST_K,
        applies=_both_sides_set,
    ),
    # ---- Rule ----
    "can_be_broken": IssueRule(
        severity=Severity.ERROR,
        type=IssueType.CANON_CONFLICT,
        title="Breakability of {name} changed",
        description=(
            "Whether {name} can be broken changed from {old} to {new}. Plot points "
            "that bend or break this rule may now contradict canon."
        ),
        suggestion="Review every scene where this rule is tested, bent, or broken.",
    ),
    "has_been_broken": IssueRule(
        severity=Severity.WARNING,
        type=IssueType.CONTINUITY,
        title="{name} has been broken",
        description=(
            "{name} is now recorded as broken. The story should show the breach "
            "and its consequences."
        ),
        suggestion="Make sure the breach of {name} and its fallout appear in the chapters.",
        applies=_became("true"),
    ),
    # ---- Event ----
    "date": IssueRule(
        severity=Severity.ERROR,
        type=IssueType.TIMELINE,
        title="{name} moved in time",
        description=(
            '{name} now happens at "{new}" instead of "{old}". Anything that depends '
            "on the order of events may be out of sequence."
        ),
        suggestion="Re-check the timeline around {name}: causes must come before it and reactions after.",
    ),
    "participants": IssueRule(
        severity=Severity.WARNING,
        type=IssueType.CONTINUITY,
        title="Participants of {name} changed",
        description=(
            "The list of who took part in {name} has been updated. Characters may "
            "remember or reference the event in ways that no longer fit."
        ),
        suggestion="Check references to {name} by characters who were added or removed.",
        chapters=ChapterPolicy.NONE,
    ),
    # ---- Any type ----
    "name": IssueRule(
        severity=Severity.INFO,
        type=IssueType.CONTINUITY,
        title='Renamed: "{old}" → "{new}"',
        description=(
            "This {entry_type} has been renamed. All references in prose and premises "
            "should be updated."
        ),
        suggestion=(
            'Find and replace "{old}" with "{new}" across all chapters. Review for any '
            "indirect references."
        ),
    ),
}


class IssueGenerator(Protocol):
    """Anything that turns an edit into validation issues."""

    def generate(
        self,
        entry: CanonBase,
        changes: Sequence[ChangeRecord],
        chapter_count: int,
    ) -> list[ValidationIssue]:
        ...


class RuleBasedIssueGenerator:
    """Issue generator driven by the fixed ``ISSUE_RULES`` table.

    Issue ids have the form ``"{prefix}-{epoch_ms}-{n}"`` where ``n`` is drawn
    from *sequence*, so ids never repeat among generators that share one.
    By default each instance counts from zero on its own.

    Parameters
    ----------
    rules : mapping, optional
        Field label -> ``IssueRule``.  Defaults to ``ISSUE_RULES``.
    clock : callable, optional
        Returns the current ``datetime``; stamps ``created_at`` and ids.
    settings : EngineSettings, optional
        Supplies the first-K chapter window and the id prefix.
    sequence : iterator of int, optional
        Source of the per-issue counter ``n``.
    """

    def __init__(
        self,
        *,
        rules: Optional[Mapping[str, IssueRule]] = None,
        clock: Optional[Clock] = None,
        settings: Optional[EngineSettings] = None,
        sequence: Optional[Iterator[int]] = None,
    ):
        self._rules = ISSUE_RULES if rules is None else rules
        self._clock = clock or utc_now
        self._settings = settings or DEFAULT_SETTINGS
        self._sequence = itertools.count() if sequence is None else sequence

    def affected_chapters(self, policy: ChapterPolicy, chapter_count: int) -> list[int]:
        if policy == ChapterPolicy.ALL:
            limit = chapter_count
        elif policy == ChapterPolicy.FIRST_K:
            limit = min(self._settings.first_k_chapters, chapter_count)
        else:
            limit = 0
        return list(range(1, limit + 1))

    def generate(
        self,
        entry: CanonBase,
        changes: Sequence[ChangeRecord],
        chapter_count: int,
    ) -> list[ValidationIssue]:
        """Return one issue per change whose field has a matching rule.

        Raises
        ------
        ValueError
            If *chapter_count* is negative.
        """
        if chapter_count < 0:
            raise ValueError(f"chapter_count must be non-negative, got {chapter_count}")

        now = self._clock()
        created_at = to_iso(now)
        stamp = to_epoch_ms(now)
        prefix = self._settings.issue_id_prefix

        issues: list[ValidationIssue] = []
        for change in changes:
            rule = self._rules.get(change.field)
            if rule is None:
                continue
            if rule.applies is not None and not rule.applies(change):
                continue

            values = {
                "name": entry.name,
                "old": change.old_value,
                "new": change.new_value,
                "entry_type": entry.type,
            }
            issues.append(ValidationIssue(
                id=f"{prefix}-{stamp}-{next(self._sequence)}",
                severity=rule.severity,
                type=rule.type,
                title=rule.title.format(**values),
                description=rule.description.format(**values),
                suggestion=rule.suggestion.format(**values),
                canon_entry_id=entry.id,
                canon_entry_name=entry.name,
                affected_chapter_ids=self.affected_chapters(rule.chapters, chapter_count),
                field=change.field,
                old_value=change.old_value,
                new_value=change.new_value,
                created_at=created_at,
            ))

        logger.debug(
            "Generated %d issue(s) from %d change(s) on '%s'",
            len(issues), len(changes), entry.id,
        )
        return issues


# One id sequence for every call of generate_validation_issues.
_SHARED_SEQUENCE = itertools.count()


def generate_validation_issues(
    entry: CanonBase,
    changes: Sequence[ChangeRecord],
    chapter_count: int,
    *,
    clock: Optional[Clock] = None,
    settings: Optional[EngineSettings] = None,
) -> list[ValidationIssue]:
    """Rule-based issues for one edit; see ``RuleBasedIssueGenerator``.

    Calls share one id sequence, so issue ids are unique across calls even
    when the clock returns the same millisecond.
    """
    generator = RuleBasedIssueGenerator(
        clock=clock, settings=settings, sequence=_SHARED_SEQUENCE,
    )
    return generator.generate(entry, changes, chapter_count)
