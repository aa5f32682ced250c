"""
Tests for canon_engine/issue_generator.py -- Rule table and issue generation.

Validates:
    - Each mapped field produces exactly its rule's issue
    - Guarded rules (death, relocation, hand-over) only fire when they apply
    - Chapter policies: all chapters, opening chapters, none
    - Unmapped fields are narratively inert
    - Issue ids and timestamps come from the injected clock
    - Custom settings and rule tables
"""

import pytest

from canon_engine.change_detector import detect_changes
from canon_engine.config import EngineSettings
from canon_engine.issue_generator import (
    ISSUE_RULES,
    ChapterPolicy,
    IssueRule,
    RuleBasedIssueGenerator,
    generate_validation_issues,
)
from canon_engine.models import ChangeRecord, IssueType, Severity
from canon_engine.models.entries import OwnershipRecord, Participant, Relationship


def _issues_for(old, new, chapter_count=10, **kwargs):
    return generate_validation_issues(new, detect_changes(old, new), chapter_count, **kwargs)


# ---------------------------------------------------------------------------
# One issue per mapped field
# ---------------------------------------------------------------------------

CHARACTER_EDITS = [
    (lambda c: c.with_alive(False), "alive", Severity.CRITICAL,
     IssueType.CONTINUITY, "Elara Voss marked as dead"),
    (lambda c: c.relocated("Glass Harbor"), "current_location", Severity.WARNING,
     IssueType.CONTINUITY, "Elara Voss relocated"),
    (lambda c: c.with_role("supporting"), "role", Severity.WARNING,
     IssueType.CHARACTER_INCONSISTENCY, "Elara Voss's role changed"),
    (lambda c: c.with_traits(["gentle"]), "personality.traits", Severity.INFO,
     IssueType.CHARACTER_INCONSISTENCY, "Elara Voss's personality updated"),
    (lambda c: c.with_speech_pattern("Rambling."), "speech_pattern", Severity.WARNING,
     IssueType.CHARACTER_INCONSISTENCY, "Elara Voss's voice changed"),
    (lambda c: c.with_knowledge([]), "knowledge_state", Severity.ERROR,
     IssueType.PLOT_HOLE, "Elara Voss's knowledge updated"),
    (lambda c: c.with_upbringing("Raised at sea."), "background.upbringing", Severity.WARNING,
     IssueType.CONTINUITY, "Elara Voss's backstory changed"),
    (lambda c: c.with_relationships([Relationship(character_name="Silas Crane")]),
     "relationships", Severity.WARNING, IssueType.CONTINUITY,
     "Elara Voss's relationships changed"),
    (lambda c: c.renamed("Elara Thorne"), "name", Severity.INFO,
     IssueType.CONTINUITY, 'Renamed: "Elara Voss" → "Elara Thorne"'),
]


class TestCharacterRules:
    """Tests that each character edit yields exactly its rule's issue."""

    @pytest.mark.parametrize("edit, field, severity, issue_type, title", CHARACTER_EDITS)
    def test_single_issue(self, character, edit, field, severity, issue_type, title):
        issues = _issues_for(character, edit(character))
        assert len(issues) == 1
        issue = issues[0]
        assert issue.field == field
        assert issue.severity == severity
        assert issue.type == issue_type
        assert issue.title == title

    def test_rename_title_uses_both_names(self, character):
        issue = _issues_for(character, character.renamed("Elara Thorne"))[0]
        assert issue.title == 'Renamed: "Elara Voss" → "Elara Thorne"'
        assert "character has been renamed" in issue.description

    def test_death_spans_every_chapter(self, character):
        issues = _issues_for(character, character.with_alive(False), chapter_count=7)
        assert len(issues) == 1
        assert issues[0].severity == Severity.CRITICAL
        assert issues[0].type == IssueType.CONTINUITY
        assert issues[0].affected_chapter_ids == [1, 2, 3, 4, 5, 6, 7]

    def test_resurrection_raises_nothing(self, character):
        dead = character.with_alive(False)
        assert _issues_for(dead, character) == []

    def test_relocation_touches_opening_chapters(self, character):
        issues = _issues_for(character, character.relocated("Glass Harbor"), chapter_count=12)
        assert issues[0].affected_chapter_ids == [1, 2, 3, 4, 5]

    def test_relocation_window_capped_by_chapter_count(self, character):
        issues = _issues_for(character, character.relocated("Glass Harbor"), chapter_count=3)
        assert issues[0].affected_chapter_ids == [1, 2, 3]

    def test_relocation_from_nowhere_raises_nothing(self, character):
        unplaced = character.relocated("")
        assert _issues_for(unplaced, character) == []

    def test_values_are_interpolated(self, character):
        issue = _issues_for(character, character.relocated("Glass Harbor"))[0]
        assert '"Sunken Library"' in issue.description
        assert '"Glass Harbor"' in issue.description
        assert issue.old_value == "Sunken Library"
        assert issue.new_value == "Glass Harbor"

    def test_unmapped_fields_are_inert(self, character):
        edited = character.with_description("New blurb.").with_ending_state("Dead")
        assert _issues_for(character, edited) == []


class TestOtherRules:
    """Tests for location, system, artifact, rule and event rules."""

    def test_access_rules(self, location):
        issues = _issues_for(location, location.with_access_rules("Anyone may enter."))
        assert [(i.severity, i.type) for i in issues] == [(Severity.ERROR, IssueType.LOGIC)]
        assert issues[0].title == "Access rules changed for Sunken Library"

    def test_ownership_touches_no_chapter(self, location):
        edited = location.with_ownership([OwnershipRecord(owner="The Crown")])
        issues = _issues_for(location, edited)
        assert issues[0].severity == Severity.INFO
        assert issues[0].affected_chapter_ids == []

    def test_region_is_inert(self, location):
        assert _issues_for(location, location.with_region("The Salt Flats")) == []

    def test_system_limitations_and_costs(self, system):
        edited = system.with_limitations([]).with_costs("Nothing at all")
        issues = _issues_for(system, edited)
        assert [(i.field, i.severity) for i in issues] == [
            ("rules.limitations", Severity.ERROR),
            ("rules.costs", Severity.WARNING),
        ]

    def test_artifact_hand_over(self, artifact):
        issues = _issues_for(artifact, artifact.with_owner("Elara Voss"), chapter_count=8)
        assert issues[0].title == "Ember Codex changed hands"
        assert issues[0].affected_chapter_ids == [1, 2, 3, 4, 5]

    def test_artifact_abilities(self, artifact):
        issues = _issues_for(artifact, artifact.with_abilities(["Speaks"]))
        assert [(i.severity, i.type) for i in issues] == [(Severity.WARNING, IssueType.LOGIC)]

    def test_rule_breakability(self, rule):
        issues = _issues_for(rule, rule.with_breakable(False))
        assert [(i.severity, i.type) for i in issues] == [
            (Severity.ERROR, IssueType.CANON_CONFLICT),
        ]

    def test_rule_broken(self, rule):
        issues = _issues_for(rule, rule.marked_broken("Elara Voss"))
        assert issues[0].field == "has_been_broken"
        assert issues[0].severity == Severity.WARNING
        assert issues[0].title == "The Archivist's Oath has been broken"

    def test_reverted_breach_raises_nothing(self, rule):
        broken = rule.marked_broken("Elara Voss")
        assert _issues_for(broken, rule) == []

    def test_event_date(self, event):
        issues = _issues_for(event, event.with_date("Year 300"))
        assert [(i.severity, i.type) for i in issues] == [(Severity.ERROR, IssueType.TIMELINE)]

    def test_event_participants(self, event):
        issues = _issues_for(event, event.with_participants([Participant(name="Silas Crane")]))
        assert issues[0].affected_chapter_ids == []


# ---------------------------------------------------------------------------
# Generator behaviour
# ---------------------------------------------------------------------------

class TestGenerator:
    """Tests for RuleBasedIssueGenerator itself."""

    def test_ids_and_timestamps_from_clock(self, character, fixed_clock):
        changes = detect_changes(character, character.with_alive(False))
        issues = RuleBasedIssueGenerator(clock=fixed_clock).generate(character, changes, 3)
        assert issues[0].id == "val-1738324800000-0"
        assert issues[0].created_at == "2025-01-31T12:00:00.000Z"

    def test_ids_unique_across_calls(self, character, fixed_clock):
        generator = RuleBasedIssueGenerator(clock=fixed_clock)
        changes = detect_changes(character, character.with_alive(False).renamed("X"))
        first = generator.generate(character, changes, 3)
        second = generator.generate(character, changes, 3)
        ids = [issue.id for issue in first + second]
        assert len(ids) == len(set(ids)) == 4

    def test_ids_unique_across_function_calls(self, character, fixed_clock):
        dead = character.with_alive(False)
        first = _issues_for(character, dead, clock=fixed_clock)
        second = _issues_for(character, dead, clock=fixed_clock)
        assert first[0].id.startswith("val-1738324800000-")
        assert first[0].id != second[0].id

    def test_shared_sequence(self, character, fixed_clock):
        sequence = iter(range(100, 200))
        changes = detect_changes(character, character.with_alive(False))
        generator = RuleBasedIssueGenerator(clock=fixed_clock, sequence=sequence)
        assert generator.generate(character, changes, 1)[0].id == "val-1738324800000-100"
        assert generator.generate(character, changes, 1)[0].id == "val-1738324800000-101"

    def test_deterministic_for_fixed_clock(self, character, fixed_clock):
        changes = detect_changes(character, character.with_alive(False))
        first = RuleBasedIssueGenerator(clock=fixed_clock).generate(character, changes, 3)
        second = RuleBasedIssueGenerator(clock=fixed_clock).generate(character, changes, 3)
        assert first == second

    def test_zero_chapters(self, character):
        issues = _issues_for(character, character.with_alive(False), chapter_count=0)
        assert issues[0].affected_chapter_ids == []

    def test_negative_chapter_count_rejected(self, character):
        with pytest.raises(ValueError):
            _issues_for(character, character.with_alive(False), chapter_count=-1)

    def test_issues_start_open(self, character):
        issue = _issues_for(character, character.with_alive(False))[0]
        assert issue.resolved is False
        assert issue.overridden is False
        assert issue.override_reason is None
        assert issue.is_open

    def test_custom_settings(self, character):
        settings = EngineSettings(first_k_chapters=2, issue_id_prefix="chk")
        issues = _issues_for(character, character.relocated("Glass Harbor"), settings=settings)
        assert issues[0].affected_chapter_ids == [1, 2]
        assert issues[0].id.startswith("chk-")

    def test_custom_rule_table(self, character):
        rules = {
            "description": IssueRule(
                severity=Severity.INFO,
                type=IssueType.CONTINUITY,
                title="{name} blurb changed",
                description="Was: {old}",
                suggestion="Reread chapter blurbs.",
                chapters=ChapterPolicy.NONE,
            ),
        }
        generator = RuleBasedIssueGenerator(rules=rules)
        changes = [ChangeRecord(field="description", old_value="a", new_value="b")]
        issues = generator.generate(character, changes, 5)
        assert [i.title for i in issues] == ["Elara Voss blurb changed"]
        assert issues[0].description == "Was: a"

    def test_affected_chapters_policies(self):
        generator = RuleBasedIssueGenerator()
        assert generator.affected_chapters(ChapterPolicy.ALL, 3) == [1, 2, 3]
        assert generator.affected_chapters(ChapterPolicy.FIRST_K, 9) == [1, 2, 3, 4, 5]
        assert generator.affected_chapters(ChapterPolicy.NONE, 9) == []


class TestRuleTable:
    """Sanity checks on ISSUE_RULES."""

    def test_every_template_formats(self):
        values = {"name": "N", "old": "o", "new": "n", "entry_type": "character"}
        for rule in ISSUE_RULES.values():
            rule.title.format(**values)
            rule.description.format(**values)
            rule.suggestion.format(**values)

    def test_every_rule_field_is_watched(self):
        from canon_engine.change_detector import WATCHED_FIELDS, watched_fields_for
        labels = {w.label for t in WATCHED_FIELDS for w in watched_fields_for(t)}
        assert set(ISSUE_RULES) <= labels
