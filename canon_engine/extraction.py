"""
canon_engine/extraction.py -- Canon candidates from a planning conversation.

Scans the messages of a planning chat and proposes characters, locations,
systems and artifacts for the story bible.  The scan is heuristic and
pattern based:

    1. Harvest raw names per class from independent regex families
       (explicit naming, type-suffix nouns, prepositional place cues).
    2. Filter each raw match: it must look like a name (1-4 capitalised
       tokens) and must not be a stop word, time word or chat meta-noun.
       Class priority is artifact > system > location > character; a name
       claimed by a higher class never appears in a lower one.
    3. Harvest characters from role labels ("the villain is ..."), named
       cues ("follows ...") and person-like subjects ("Maya Chen
       investigates ...").  Names that share a character key merge; the
       better name wins and the role is only ever upgraded.
    4. Drop bare role names ("Captain") that most likely alias a named
       character.
    5. Drop single surnames that trail an accepted full name ("Voss"
       beside "Mara Voss").
    6. Fall back to one placeholder character and one placeholder
       location when nothing survives.

All patterns bound both the number and the length of name tokens so that
the scan stays linear on arbitrary input.  Output order is first-seen order.

Usage::

    from canon_engine.extraction import extract_canon_from_conversation

    canon = extract_canon_from_conversation(["The hero is Elara Voss."])
    canon.characters[0].name   # "Elara Voss"
"""

from __future__ import annotations

import logging
import re
from typing import Callable, Iterable, Optional, Sequence

from canon_engine.config import DEFAULT_SETTINGS, EngineSettings
from canon_engine.models.extraction import (
    AutoGeneratedCanon,
    CharacterRole,
    ExtractedEntityCandidate,
)
from canon_engine.normalization import (
    TIME_WORDS,
    get_generic_role_token,
    get_leading_role_token,
    is_alias_prone_role_token,
    is_generic_role_character_name,
    is_likely_character_noise,
    is_likely_entity_noise,
    normalize_character_key,
    normalize_entity_key,
    sanitize_entity_name,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Vocabulary
# ---------------------------------------------------------------------------

# Capitalised words that start sentences or address the assistant.
STOP_NAMES = frozenset({
    "Story", "Novel", "Chapter", "Book", "AI", "Assistant",
    "Tell", "What", "How", "When", "Where", "Why", "I", "You", "We", "My", "Our", "Your",
    "Plan", "Project", "Create", "Ready", "Settings", "Proposed", "Conversation", "Metadata",
    "Title", "Length", "Tone", "Pacing", "Character", "Location", "Artifact", "Rule", "Event",
    "Systems", "Based", "Current", "Primary", "Setting", "Protagonist",
    "The",
})

ARTIFACT_SUFFIXES = (
    "Codex", "Amulet", "Sword", "Key", "Crown", "Orb", "Tome",
    "Artifact", "Relic", "Device", "Book",
)
SYSTEM_SUFFIXES = ("System", "Protocol", "Order", "Law", "Magic")
LOCATION_SUFFIXES = (
    "City", "Town", "Kingdom", "Realm", "World", "Planet", "Station", "District",
    "Valley", "Forest", "Island", "Province", "Country", "Harbor", "Bay",
    "Mountain", "River",
)

ARTIFACT_DESCRIPTION = "Artifact/object identified from planning chat."
SYSTEM_DESCRIPTION = "World/system concept identified from planning chat."
LOCATION_DESCRIPTION = "Location identified from planning chat."
PRIMARY_CHARACTER_DESCRIPTION = "Primary character identified from planning chat."
CHARACTER_DESCRIPTION = "Character identified from planning chat."

PLACEHOLDER_CHARACTER = ExtractedEntityCandidate(
    name="Protagonist",
    description="The main character of the story.",
    role=CharacterRole.PROTAGONIST,
)
PLACEHOLDER_LOCATION = ExtractedEntityCandidate(
    name="Primary Setting",
    description="Main setting identified from planning chat.",
)

# ---------------------------------------------------------------------------
# Patterns
# ---------------------------------------------------------------------------

# A capitalised word of at most 40 characters.  The lookahead stops a match
# from ending inside a longer word, so backtracking per start is bounded.
_TOKEN = r"[A-Z][A-Za-z'-]{0,39}(?![A-Za-z'-])"
_MULTI_CHAR_TOKEN = r"[A-Z][A-Za-z'-]{1,39}(?![A-Za-z'-])"


def _name(max_extra_tokens: int) -> str:
    return rf"{_TOKEN}(?:\s+{_TOKEN}){{0,{max_extra_tokens}}}"


def _alternation(words: Iterable[str]) -> str:
    return "|".join(words)


_NAME_UP_TO_4 = _name(3)
_NAME_UP_TO_3 = _name(2)

_ARTIFACT_NAMED = re.compile(
    rf"\b(?:artifact|relic|object|item)\s+(?:is|called|named)\s+(?:the\s+)?({_NAME_UP_TO_4})\b"
)
_ARTIFACT_SUFFIXED = re.compile(
    rf"\b(?:the\s+)?({_NAME_UP_TO_4}\s(?:{_alternation(ARTIFACT_SUFFIXES)}))\b"
)
_SYSTEM_NAMED = re.compile(
    rf"\b(?:system|magic|protocol|order|law)\s+(?:is|called|named)\s+(?:the\s+)?({_NAME_UP_TO_4})\b"
)
_SYSTEM_SUFFIXED = re.compile(
    rf"\b(?:the\s+)?({_NAME_UP_TO_4}\s(?:{_alternation(SYSTEM_SUFFIXES)}))\b"
)
_LOCATION_PREPOSITION = re.compile(
    r"\b(?:in|at|from|to|inside|within|under|near|across|throughout)\s+"
    rf"(?:the\s+)?({_NAME_UP_TO_4})\b"
)
_LOCATION_SET_IN = re.compile(rf"\bset\s+in\s+(?:the\s+)?({_NAME_UP_TO_4})\b")
_LOCATION_KIND_OF = re.compile(
    r"\b(?:[Cc]ity|[Tt]own|[Kk]ingdom|[Rr]ealm|[Ww]orld|[Pp]lanet|[Ss]tation|"
    r"[Dd]istrict|[Vv]alley|[Ff]orest|[Ii]sland|[Pp]rovince|[Cc]ountry)\s+of\s+"
    rf"({_NAME_UP_TO_4})\b"
)
_LOCATION_SUFFIXED = re.compile(
    rf"\b(?:the\s+)?({_NAME_UP_TO_4}\s(?:{_alternation(LOCATION_SUFFIXES)}))\b"
)

_ROLE_LABELED = re.compile(
    r"\b([Pp]rotagonist|[Hh]ero|[Hh]eroine|[Vv]illain|[Aa]ntagonist|[Mm]entor|"
    r"[Dd]etective|[Cc]aptain|[Kk]ing|[Qq]ueen|[Cc]haracter)\b"
    rf"\s*(?:is|named|called)?\s*(?:the\s+)?({_NAME_UP_TO_3})\b"
)
_NAMED_CUE = re.compile(
    rf"\b(?:named|name is|about|follows|following|with)\s+({_NAME_UP_TO_3})\b"
)
_PERSON_SUBJECT = re.compile(
    rf"\b({_MULTI_CHAR_TOKEN}\s+{_MULTI_CHAR_TOKEN})\s+"
    r"(?:is|was|has|had|feels|wants|needs|discovers|investigates|hunts|seeks|"
    r"leads|fights|meets|finds)\b"
)

_NAME_SHAPE = re.compile(rf"^{_NAME_UP_TO_4}$")
_ARTIFACT_LIKE = re.compile(rf"\b(?:{_alternation(ARTIFACT_SUFFIXES)})$")
_SYSTEM_LIKE = re.compile(rf"\b(?:{_alternation(SYSTEM_SUFFIXES)})$")
_PLACE_LIKE = re.compile(rf"\b(?:{_alternation(LOCATION_SUFFIXES)})$")

_LEADING_PREPOSITION = re.compile(
    r"^(?:in|at|from|to|with|under|over|near|across|throughout)\s+", re.IGNORECASE
)
_TRAILING_CONNECTOR = re.compile(
    r"\s+(?:from|in|at|to|with|and|is|named|called)$", re.IGNORECASE
)
_WHITESPACE = re.compile(r"\s+")

_ROLE_LABELS = {
    "protagonist": CharacterRole.PROTAGONIST,
    "hero": CharacterRole.PROTAGONIST,
    "heroine": CharacterRole.PROTAGONIST,
    "villain": CharacterRole.ANTAGONIST,
    "antagonist": CharacterRole.ANTAGONIST,
    "mentor": CharacterRole.SUPPORTING,
    "detective": CharacterRole.SUPPORTING,
    "captain": CharacterRole.SUPPORTING,
    "king": CharacterRole.SUPPORTING,
    "queen": CharacterRole.SUPPORTING,
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _sanitize_candidate(raw: str) -> str:
    name = sanitize_entity_name(raw)
    name = _LEADING_PREPOSITION.sub("", name)
    name = _TRAILING_CONNECTOR.sub("", name)
    return name.strip()


def _is_name_shaped(name: str) -> bool:
    return bool(_NAME_SHAPE.match(name))


def _is_time_like(name: str) -> bool:
    return any(part.lower() in TIME_WORDS for part in name.split())


def _is_artifact_like(name: str) -> bool:
    return bool(_ARTIFACT_LIKE.search(name))


def _is_system_like(name: str) -> bool:
    return bool(_SYSTEM_LIKE.search(name))


def _is_place_like(name: str) -> bool:
    return bool(_PLACE_LIKE.search(name))


def _infer_role(label: str) -> CharacterRole:
    return _ROLE_LABELS.get(label.lower(), CharacterRole.MINOR)


def _harvest(text: str, *patterns: re.Pattern) -> list[str]:
    """Return group 1 of every match of every pattern, pattern by pattern."""
    return [match.group(1) for pattern in patterns for match in pattern.finditer(text)]


def _clean_candidates(raw_names: Iterable[str]) -> list[str]:
    cleaned = []
    for raw in raw_names:
        name = _sanitize_candidate(raw)
        if not name or not _is_name_shaped(name):
            continue
        if name in STOP_NAMES or _is_time_like(name) or is_likely_entity_noise(name):
            continue
        cleaned.append(name)
    return cleaned


def _unique(names: Iterable[str], key: Callable[[str], str] = normalize_entity_key) -> list[str]:
    seen: set[str] = set()
    result = []
    for name in names:
        k = key(name)
        if k in seen:
            continue
        seen.add(k)
        result.append(name)
    return result


def _character_name_score(name: str) -> float:
    """Rank two spellings of the same character; higher is the better name.

    Multi-token beats single-token, a real name beats a bare role, and
    length breaks remaining ties.
    """
    multi_token = len(sanitize_entity_name(name).split()) > 1
    score = 2.0 if multi_token else 0.0
    if not is_generic_role_character_name(name):
        score += 2.0
    return score + min(len(name) / 100, 0.5)


# ---------------------------------------------------------------------------
# Character collection
# ---------------------------------------------------------------------------

class _CharacterCollector:
    """Merges character mentions by character key, first-seen order."""

    def __init__(self, blocked_keys: set[str]):
        self._blocked = blocked_keys
        self._by_key: dict[str, tuple[str, CharacterRole]] = {}
        self.bound_role_tokens: set[str] = set()

    def add(self, raw: str, role: CharacterRole) -> None:
        name = _sanitize_candidate(raw)
        if not name or not _is_name_shaped(name):
            return
        if name in STOP_NAMES or _is_time_like(name) or is_likely_character_noise(name):
            return
        if _is_artifact_like(name) or _is_system_like(name) or _is_place_like(name):
            return
        if normalize_entity_key(name) in self._blocked:
            logger.debug("Skipping character %r already claimed by another class", name)
            return

        key = normalize_character_key(name) or normalize_entity_key(name)
        existing = self._by_key.get(key)
        if existing is None:
            self._by_key[key] = (name, role)
            return

        existing_name, existing_role = existing
        if _character_name_score(name) > _character_name_score(existing_name):
            existing_name = name
        if role.priority > existing_role.priority:
            existing_role = role
        self._by_key[key] = (existing_name, existing_role)

    def bind_role(self, role_token: str) -> None:
        """Record that a role word was seen naming a specific character."""
        self.bound_role_tokens.add(role_token)

    def entries(self) -> list[tuple[str, CharacterRole]]:
        return list(self._by_key.values())


def _suppress_role_aliases(
    characters: list[tuple[str, CharacterRole]],
    bound_role_tokens: set[str],
) -> list[tuple[str, CharacterRole]]:
    """Drop bare role names ("Captain") that likely alias a named character."""
    titled_roles = {
        token for token in (get_leading_role_token(name) for name, _ in characters) if token
    }
    has_named_character = any(
        " " in name and not is_generic_role_character_name(name) for name, _ in characters
    )

    kept = []
    for name, role in characters:
        role_token = get_generic_role_token(name)
        if role_token is not None and (
            role_token in titled_roles
            or role_token in bound_role_tokens
            or (has_named_character and is_alias_prone_role_token(role_token))
        ):
            logger.debug("Dropping role alias %r", name)
            continue
        kept.append((name, role))
    return kept


def _drop_trailing_surnames(
    characters: list[tuple[str, CharacterRole]],
) -> list[tuple[str, CharacterRole]]:
    """Drop single-token names equal to the last word of a full name."""
    trailing = {
        normalize_entity_key(name.split()[-1]) for name, _ in characters if " " in name
    }
    return [
        (name, role)
        for name, role in characters
        if " " in name or normalize_entity_key(name) not in trailing
    ]


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def extract_canon_from_conversation(
    messages: Sequence[str],
    *,
    settings: Optional[EngineSettings] = None,
) -> AutoGeneratedCanon:
    """Propose canon entries from the messages of a planning conversation.

    Parameters
    ----------
    messages : sequence of str
        Chat messages in order.  They are joined with single spaces.
    settings : EngineSettings, optional
        Supplies the per-category caps (defaults 8/8/6/6).

    Returns
    -------
    AutoGeneratedCanon
        Never empty of characters or locations: placeholders stand in when
        nothing is found.  Systems and artifacts may be empty.
    """
    settings = settings or DEFAULT_SETTINGS
    text = _WHITESPACE.sub(" ", " ".join(messages)).strip()

    # ---- Artifacts (highest priority) ----
    artifact_names = _unique(
        _clean_candidates(_harvest(text, _ARTIFACT_NAMED, _ARTIFACT_SUFFIXED))
    )[: settings.max_artifacts]
    artifact_keys = {normalize_entity_key(name) for name in artifact_names}

    # ---- Systems ----
    system_names = [
        name if _is_system_like(name) else f"{name} System"
        for name in _clean_candidates(_harvest(text, _SYSTEM_NAMED, _SYSTEM_SUFFIXED))
    ]
    system_names = _unique(
        name for name in system_names if normalize_entity_key(name) not in artifact_keys
    )[: settings.max_systems]
    system_keys = {normalize_entity_key(name) for name in system_names}

    # ---- Locations ----
    location_names = [
        name
        for name in _clean_candidates(_harvest(
            text,
            _LOCATION_PREPOSITION,
            _LOCATION_SET_IN,
            _LOCATION_KIND_OF,
            _LOCATION_SUFFIXED,
        ))
        if not _is_artifact_like(name) and not _is_system_like(name)
    ]
    location_names = _unique(
        name
        for name in location_names
        if normalize_entity_key(name) not in artifact_keys
        and normalize_entity_key(name) not in system_keys
    )[: settings.max_locations]
    location_keys = {normalize_entity_key(name) for name in location_names}

    # ---- Characters ----
    collector = _CharacterCollector(artifact_keys | system_keys | location_keys)

    for match in _ROLE_LABELED.finditer(text):
        label, raw_name = match.group(1), match.group(2)
        collector.add(raw_name, _infer_role(label))
        role_token = get_generic_role_token(label)
        if role_token and _sanitize_candidate(raw_name):
            collector.bind_role(role_token)

    for raw_name in _harvest(text, _NAMED_CUE):
        collector.add(raw_name, CharacterRole.SUPPORTING)

    for raw_name in _harvest(text, _PERSON_SUBJECT):
        collector.add(raw_name, CharacterRole.SUPPORTING)

    characters = _suppress_role_aliases(collector.entries(), collector.bound_role_tokens)
    characters = _drop_trailing_surnames(characters)[: settings.max_characters]

    canon = AutoGeneratedCanon(
        characters=[
            ExtractedEntityCandidate(
                name=name,
                description=PRIMARY_CHARACTER_DESCRIPTION if idx == 0 else CHARACTER_DESCRIPTION,
                role=role,
            )
            for idx, (name, role) in enumerate(characters)
        ],
        locations=[
            ExtractedEntityCandidate(name=name, description=LOCATION_DESCRIPTION)
            for name in location_names
        ],
        systems=[
            ExtractedEntityCandidate(name=name, description=SYSTEM_DESCRIPTION)
            for name in system_names
        ],
        artifacts=[
            ExtractedEntityCandidate(name=name, description=ARTIFACT_DESCRIPTION)
            for name in artifact_names
        ],
    )

    if not canon.characters:
        canon.characters.append(PLACEHOLDER_CHARACTER.model_copy())
    if not canon.locations:
        canon.locations.append(PLACEHOLDER_LOCATION.model_copy())

    logger.debug(
        "Extracted %d characters, %d locations, %d systems, %d artifacts from %d messages",
        len(canon.characters), len(canon.locations),
        len(canon.systems), len(canon.artifacts), len(messages),
    )
    return canon
