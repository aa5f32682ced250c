"""
canon_engine/models/entries.py -- Typed canon entry snapshots.

One frozen model per canon type.  Each variant carries its sub-schema under
a key named after the type (``character``, ``location``, ...), matching the
record layout the editor stores.

Nested objects and leaf fields that the change detector compares are
declared **without defaults**: a snapshot missing one of them must fail
validation instead of being quietly filled in, otherwise corrupted data
upstream would look like a legitimate edit.

Entries are immutable.  Edits are expressed through named setters that
return updated copies::

    dead = entry.with_alive(False)
    moved = entry.relocated("The Sunken Library")
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Mapping, Union

from pydantic import Field, TypeAdapter, ValidationError

from canon_engine.errors import SnapshotValidationError
from canon_engine.models.base import CanonBase, FrozenCanonModel

CharacterStoryRole = Literal["protagonist", "antagonist", "supporting", "minor", "mentioned"]


# ======================================================================
# Character
# ======================================================================

class Appearance(FrozenCanonModel):
    physical: str = ""
    distinguishing_features: str = ""
    style: str = ""


class Personality(FrozenCanonModel):
    traits: list[str]
    strengths: list[str] = Field(default_factory=list)
    flaws: list[str] = Field(default_factory=list)
    fears: list[str] = Field(default_factory=list)
    desires: list[str] = Field(default_factory=list)
    values: list[str] = Field(default_factory=list)
    quirks: list[str] = Field(default_factory=list)
    speech_pattern: str
    inner_voice: str = ""


class FamilyMember(FrozenCanonModel):
    name: str = ""
    relation: str = ""
    alive: bool = True
    description: str = ""


class FormativeEvent(FrozenCanonModel):
    age: str = ""
    event: str = ""
    impact: str = ""


class Background(FrozenCanonModel):
    birthplace: str = ""
    upbringing: str
    family: list[FamilyMember] = Field(default_factory=list)
    education: str = ""
    formative_events: list[FormativeEvent] = Field(default_factory=list)
    secrets: list[str] = Field(default_factory=list)
    trauma: str = ""
    proudest_moment: str = ""


class Relationship(FrozenCanonModel):
    character_id: str = ""
    character_name: str = ""
    type: str = ""
    dynamic: str = ""
    history: str = ""
    tension: str = ""
    current_state: str = ""


class WantVsNeed(FrozenCanonModel):
    want: str = ""
    need: str = ""


class Arc(FrozenCanonModel):
    starting_state: str = ""
    internal_conflict: str = ""
    external_conflict: str = ""
    want_vs_need: WantVsNeed = Field(default_factory=WantVsNeed)
    growth_direction: str = ""
    current_state: str = ""
    ending_state: str


class StoryState(FrozenCanonModel):
    alive: bool
    current_location: str
    knowledge_state: list[str]
    emotional_state: str = ""
    allegiance: str = ""
    last_seen_chapter: int = 0


class CharacterDetails(FrozenCanonModel):
    full_name: str = ""
    aliases: list[str] = Field(default_factory=list)
    age: str = ""
    gender: str = ""
    pronouns: str = ""
    species: str = ""
    occupation: str = ""
    role: CharacterStoryRole
    appearance: Appearance = Field(default_factory=Appearance)
    personality: Personality
    background: Background
    relationships: list[Relationship]
    arc: Arc
    story_state: StoryState


class CharacterEntry(CanonBase):
    """A person (or person-like being) in the story world."""

    type: Literal["character"] = "character"
    character: CharacterDetails

    def _with_character(self, **changes: Any) -> CharacterEntry:
        details = self.character.model_copy(update=changes)
        return self.model_copy(update={"character": details})

    def _with_story_state(self, **changes: Any) -> CharacterEntry:
        state = self.character.story_state.model_copy(update=changes)
        return self._with_character(story_state=state)

    def with_alive(self, alive: bool) -> CharacterEntry:
        return self._with_story_state(alive=alive)

    def relocated(self, location: str) -> CharacterEntry:
        return self._with_story_state(current_location=location)

    def with_knowledge(self, knowledge: list[str]) -> CharacterEntry:
        return self._with_story_state(knowledge_state=list(knowledge))

    def with_role(self, role: CharacterStoryRole) -> CharacterEntry:
        return self._with_character(role=role)

    def with_traits(self, traits: list[str]) -> CharacterEntry:
        personality = self.character.personality.model_copy(update={"traits": list(traits)})
        return self._with_character(personality=personality)

    def with_speech_pattern(self, speech_pattern: str) -> CharacterEntry:
        personality = self.character.personality.model_copy(
            update={"speech_pattern": speech_pattern}
        )
        return self._with_character(personality=personality)

    def with_upbringing(self, upbringing: str) -> CharacterEntry:
        background = self.character.background.model_copy(update={"upbringing": upbringing})
        return self._with_character(background=background)

    def with_relationships(self, relationships: list[Relationship]) -> CharacterEntry:
        return self._with_character(relationships=list(relationships))

    def with_ending_state(self, ending_state: str) -> CharacterEntry:
        arc = self.character.arc.model_copy(update={"ending_state": ending_state})
        return self._with_character(arc=arc)


# ======================================================================
# Location
# ======================================================================

class Geography(FrozenCanonModel):
    region: str
    country: str = ""
    area: str = ""
    coordinates: str = ""
    climate: str = ""
    terrain: str = ""
    size: str = ""


class MajorEvent(FrozenCanonModel):
    year: str = ""
    event: str = ""


class OwnershipRecord(FrozenCanonModel):
    owner: str = ""
    period: str = ""
    how_acquired: str = ""
    how_lost: str = ""


class LocationHistory(FrozenCanonModel):
    founded: str = ""
    founder: str = ""
    major_events: list[MajorEvent] = Field(default_factory=list)
    ownership: list[OwnershipRecord]
    cultural_significance: str = ""
    legends: str = ""


class SensoryDetails(FrozenCanonModel):
    sights: str = ""
    sounds: str = ""
    smells: str = ""
    textures: str = ""


class LocationState(FrozenCanonModel):
    condition: str = ""
    population: str = ""
    governance: str = ""
    economy: str = ""
    atmosphere: str = ""
    sensory_details: SensoryDetails = Field(default_factory=SensoryDetails)


class LocationRelevance(FrozenCanonModel):
    first_appearance: int = 0
    significance: str = ""
    secrets_hidden: list[str] = Field(default_factory=list)
    danger_level: str = ""
    access_rules: str
    connected_locations: list[str] = Field(default_factory=list)


class LocationDetails(FrozenCanonModel):
    geography: Geography
    full_name: str = ""
    aliases: list[str] = Field(default_factory=list)
    location_type: str = ""
    history: LocationHistory
    current_state: LocationState = Field(default_factory=LocationState)
    story_relevance: LocationRelevance


class LocationEntry(CanonBase):
    """A place in the story world."""

    type: Literal["location"] = "location"
    location: LocationDetails

    def _with_location(self, **changes: Any) -> LocationEntry:
        details = self.location.model_copy(update=changes)
        return self.model_copy(update={"location": details})

    def with_region(self, region: str) -> LocationEntry:
        geography = self.location.geography.model_copy(update={"region": region})
        return self._with_location(geography=geography)

    def with_access_rules(self, access_rules: str) -> LocationEntry:
        relevance = self.location.story_relevance.model_copy(
            update={"access_rules": access_rules}
        )
        return self._with_location(story_relevance=relevance)

    def with_ownership(self, ownership: list[OwnershipRecord]) -> LocationEntry:
        history = self.location.history.model_copy(update={"ownership": list(ownership)})
        return self._with_location(history=history)


# ======================================================================
# System (magic, technology, politics, ...)
# ======================================================================

SystemType = Literal[
    "magic", "technology", "political", "economic",
    "religious", "social", "biological", "other",
]


class SystemRules(FrozenCanonModel):
    core_principles: list[str]
    limitations: list[str]
    costs: str
    exceptions: list[str] = Field(default_factory=list)


class SystemStructure(FrozenCanonModel):
    hierarchy: str = ""
    components: list[str] = Field(default_factory=list)
    interactions: str = ""
    history: str = ""
    who_controls: str = ""
    who_is_affected: str = ""


class SystemImpact(FrozenCanonModel):
    conflicts_created: list[str] = Field(default_factory=list)
    powers_enabled: list[str] = Field(default_factory=list)
    social_consequences: str = ""
    vulnerabilities: list[str] = Field(default_factory=list)


class SystemDetails(FrozenCanonModel):
    system_type: SystemType = "other"
    rules: SystemRules
    structure: SystemStructure = Field(default_factory=SystemStructure)
    story_impact: SystemImpact = Field(default_factory=SystemImpact)


class SystemEntry(CanonBase):
    """A world system: magic, technology, politics, religion, ..."""

    type: Literal["system"] = "system"
    system: SystemDetails

    def _with_rules(self, **changes: Any) -> SystemEntry:
        rules = self.system.rules.model_copy(update=changes)
        details = self.system.model_copy(update={"rules": rules})
        return self.model_copy(update={"system": details})

    def with_limitations(self, limitations: list[str]) -> SystemEntry:
        return self._with_rules(limitations=list(limitations))

    def with_costs(self, costs: str) -> SystemEntry:
        return self._with_rules(costs=costs)

    def with_core_principles(self, principles: list[str]) -> SystemEntry:
        return self._with_rules(core_principles=list(principles))


# ======================================================================
# Artifact
# ======================================================================

class ArtifactPhysical(FrozenCanonModel):
    appearance: str = ""
    material: str = ""
    size: str = ""
    weight: str = ""
    condition: str = ""
    distinguishing_marks: str = ""


class ArtifactProperties(FrozenCanonModel):
    abilities: list[str]
    limitations: list[str]
    activation_method: str = ""
    side_effects: str = ""
    power: str = ""


class PreviousOwner(FrozenCanonModel):
    name: str = ""
    period: str = ""
    fate: str = ""


class ArtifactHistory(FrozenCanonModel):
    creator: str = ""
    creation_date: str = ""
    purpose: str = ""
    previous_owners: list[PreviousOwner] = Field(default_factory=list)
    legends: str = ""
    current_location: str
    current_owner: str


class ArtifactRelevance(FrozenCanonModel):
    first_appearance: int = 0
    significance: str = ""
    who_seeks_it: list[str] = Field(default_factory=list)
    prophecy: str = ""


class ArtifactDetails(FrozenCanonModel):
    artifact_type: str = ""
    physical: ArtifactPhysical = Field(default_factory=ArtifactPhysical)
    properties: ArtifactProperties
    history: ArtifactHistory
    story_relevance: ArtifactRelevance = Field(default_factory=ArtifactRelevance)


class ArtifactEntry(CanonBase):
    """A named object: weapon, book, relic, device, ..."""

    type: Literal["artifact"] = "artifact"
    artifact: ArtifactDetails

    def _with_history(self, **changes: Any) -> ArtifactEntry:
        history = self.artifact.history.model_copy(update=changes)
        details = self.artifact.model_copy(update={"history": history})
        return self.model_copy(update={"artifact": details})

    def with_owner(self, owner: str) -> ArtifactEntry:
        return self._with_history(current_owner=owner)

    def relocated(self, location: str) -> ArtifactEntry:
        return self._with_history(current_location=location)

    def with_abilities(self, abilities: list[str]) -> ArtifactEntry:
        properties = self.artifact.properties.model_copy(update={"abilities": list(abilities)})
        details = self.artifact.model_copy(update={"properties": properties})
        return self.model_copy(update={"artifact": details})


# ======================================================================
# Rule
# ======================================================================

RuleType = Literal["immutable", "bendable", "social", "physical", "magical"]


class RuleDetails(FrozenCanonModel):
    rule_type: RuleType = "physical"
    scope: str = ""
    statement: str
    enforcement: str = ""
    consequences: str = ""
    exceptions: list[str] = Field(default_factory=list)
    origin: str = ""
    known_by: list[str] = Field(default_factory=list)
    can_be_broken: bool
    has_been_broken: bool
    broken_by: str = ""
    broken_consequences: str = ""


class RuleEntry(CanonBase):
    """A law of the world that the story must respect."""

    type: Literal["rule"] = "rule"
    rule: RuleDetails

    def _with_rule(self, **changes: Any) -> RuleEntry:
        return self.model_copy(update={"rule": self.rule.model_copy(update=changes)})

    def with_statement(self, statement: str) -> RuleEntry:
        return self._with_rule(statement=statement)

    def with_breakable(self, can_be_broken: bool) -> RuleEntry:
        return self._with_rule(can_be_broken=can_be_broken)

    def marked_broken(self, broken_by: str = "") -> RuleEntry:
        return self._with_rule(has_been_broken=True, broken_by=broken_by)


# ======================================================================
# Event
# ======================================================================

EventType = Literal["historical", "political", "natural", "personal", "supernatural", "military"]


class Participant(FrozenCanonModel):
    name: str = ""
    role: str = ""


class EventImpact(FrozenCanonModel):
    immediate: str = ""
    long_term: str = ""
    cultural_memory: str = ""
    still_relevant: bool = False
    triggered_events: list[str] = Field(default_factory=list)


class StoryConnection(FrozenCanonModel):
    chapter_references: list[int] = Field(default_factory=list)
    foreshadowed: bool = False
    revealed_in_chapter: int = 0
    known_by_characters: list[str] = Field(default_factory=list)


class EventDetails(FrozenCanonModel):
    event_type: EventType = "historical"
    date: str
    duration: str = ""
    location: str
    summary: str = ""
    cause: str = ""
    consequences: list[str] = Field(default_factory=list)
    participants: list[Participant]
    casualties: str = ""
    winners: str = ""
    losers: str = ""
    impact: EventImpact = Field(default_factory=EventImpact)
    story_connection: StoryConnection = Field(default_factory=StoryConnection)


class EventEntry(CanonBase):
    """A major happening in the world's history or the story's timeline."""

    type: Literal["event"] = "event"
    event: EventDetails

    def _with_event(self, **changes: Any) -> EventEntry:
        return self.model_copy(update={"event": self.event.model_copy(update=changes)})

    def with_date(self, date: str) -> EventEntry:
        return self._with_event(date=date)

    def moved_to(self, location: str) -> EventEntry:
        return self._with_event(location=location)

    def with_participants(self, participants: list[Participant]) -> EventEntry:
        return self._with_event(participants=list(participants))


# ======================================================================
# Tagged union and parsing
# ======================================================================

EntrySnapshot = Annotated[
    Union[CharacterEntry, LocationEntry, SystemEntry, ArtifactEntry, RuleEntry, EventEntry],
    Field(discriminator="type"),
]

_SNAPSHOT_ADAPTER: TypeAdapter = TypeAdapter(EntrySnapshot)

CANON_TYPES = ("character", "location", "system", "artifact", "rule", "event")


def parse_snapshot(data: Mapping[str, Any]) -> CanonBase:
    """Validate raw entry data into the matching typed snapshot.

    Accepts camelCase (as stored by the editor) or snake_case keys.

    Raises
    ------
    SnapshotValidationError
        If the data is not a known canon type or any required nested field
        is absent or malformed.  Every offending dotted path is named.
    """
    try:
        return _SNAPSHOT_ADAPTER.validate_python(dict(data))
    except ValidationError as exc:
        entry_type = data.get("type")
        paths: list[str] = []
        messages: list[str] = []
        for err in exc.errors():
            loc = list(err.get("loc", ()))
            # Discriminated unions prefix the location with the tag value.
            if loc and loc[0] == entry_type:
                loc = loc[1:]
            paths.append(".".join(str(part) for part in loc))
            messages.append(err.get("msg", "invalid value"))
        raise SnapshotValidationError(paths, messages) from exc
