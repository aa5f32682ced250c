"""
canon_engine/normalization.py -- Entity name normalization.

Turns free-text names into stable keys used everywhere for deduplication:

    sanitize_entity_name("“the Ember Codex,”")   -> "Ember Codex"
    normalize_entity_key("Mara Voss's")          -> "mara voss"
    normalize_character_key("Detective Mara Voss") -> "mara voss"

Also holds the fixed vocabularies the extractor filters against:

    TIME_WORDS                 calendar and seasonal words
    GENERIC_ROLE_TOKENS        title-like nouns ("captain", "doctor")
    ALIAS_PRONE_ROLE_TOKENS    roles that usually alias a named character
    NON_ENTITY_SINGLE_TOKENS   meta-nouns of a planning chat ("outline")
    NON_ENTITY_TAIL_TOKENS     trailing meta-nouns ("Mara's notes")

Everything here is a pure function of its input.
"""

from __future__ import annotations

import re
from typing import Optional

TIME_WORDS = frozenset({
    "january", "february", "march", "april", "may", "june", "july", "august",
    "september", "october", "november", "december",
    "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday",
    "spring", "summer", "autumn", "fall", "winter",
    "today", "tomorrow", "yesterday", "midnight", "noon",
})

GENERIC_ROLE_TOKENS = frozenset({
    "detective", "inspector", "officer", "agent", "captain", "commander",
    "doctor", "dr", "professor", "teacher", "king", "queen", "prince", "princess",
    "lord", "lady", "sir", "madam", "duke", "duchess", "chief", "guard", "guardian",
    "hunter", "warden", "pilot", "narrator", "witness", "gardener", "archivist",
    "priest", "monk",
})

ALIAS_PRONE_ROLE_TOKENS = frozenset({
    "detective", "inspector", "officer", "agent", "captain", "commander",
    "doctor", "dr", "professor", "chief", "warden", "pilot",
})

NON_ENTITY_SINGLE_TOKENS = frozenset({
    "ai", "assistant",
    "story", "novel", "book", "chapter", "chapters",
    "project", "plan", "outline", "outlines", "metadata",
    "settings", "conversation",
    "title", "premise", "length", "tone", "pacing",
    "character", "characters", "location", "locations", "system", "systems",
    "artifact", "artifacts", "event", "events",
    "question", "questions", "notes", "note",
}) | TIME_WORDS

NON_ENTITY_TAIL_TOKENS = frozenset({
    "question", "questions", "note", "notes",
    "outline", "outlines", "plan", "plans",
    "metadata", "detail", "details", "info", "information",
    "prompt", "prompts",
    "draft", "drafts",
    "chapter", "chapters",
    "scene", "scenes",
})

_ARTICLE_PREFIX = re.compile(r"^(?:the|a|an)\s+", re.IGNORECASE)
_EDGE_PUNCTUATION = re.compile(r"^[\s\"'`(\[{]+|[\s\"'`)\]}.,!?;:]+$")
_WHITESPACE = re.compile(r"\s+")
_TOKEN_EDGES = re.compile(r"^[^a-z-]+|[^a-z-]+$")
_POSSESSIVE = re.compile(r"(?:'s|s')$")
_POSSESSIVE_META = re.compile(
    r"(?:'s|s')\s+(?:question|questions|note|notes|outline|outlines|plan|plans|"
    r"metadata|chapter|chapters|scene|scenes|draft|drafts)\b",
    re.IGNORECASE,
)
_NUMBERED_PART = re.compile(r"^(?:chapter|book|novel)\s+\d+$", re.IGNORECASE)

# Typographic quotes are folded to their ASCII forms before anything else.
_QUOTE_FOLD = str.maketrans({"’": "'", "‘": "'", "“": '"', "”": '"'})


# ------------------------------------------------------------------
# Core normalization
# ------------------------------------------------------------------

def sanitize_entity_name(raw: Optional[str]) -> str:
    """Strip surrounding quotes/brackets/punctuation and one leading article.

    Internal whitespace is collapsed to single spaces.  ``None`` and the
    empty string both sanitize to ``""``.
    """
    text = str(raw or "").translate(_QUOTE_FOLD)
    text = _EDGE_PUNCTUATION.sub("", text)
    text = _WHITESPACE.sub(" ", text)
    text = _ARTICLE_PREFIX.sub("", text, count=1)
    return text.strip()


def _normalize_token(raw: str) -> str:
    token = _TOKEN_EDGES.sub("", raw.lower())
    return _POSSESSIVE.sub("", token)


def _normalized_tokens(name: Optional[str]) -> list[str]:
    tokens = (_normalize_token(part) for part in sanitize_entity_name(name).split())
    return [token for token in tokens if token]


def normalize_entity_key(name: Optional[str]) -> str:
    """Return the canonical dedup key: lowercase, de-possessed tokens."""
    return " ".join(_normalized_tokens(name))


def normalize_character_key(name: Optional[str]) -> str:
    """Like ``normalize_entity_key`` but drops one leading generic role.

    The role is only dropped when another token follows it, so
    ``"Detective Mara Voss"`` and ``"Mara Voss"`` share a key while a bare
    ``"Detective"`` keeps its own.
    """
    tokens = _normalized_tokens(name)
    if len(tokens) > 1 and tokens[0] in GENERIC_ROLE_TOKENS:
        tokens = tokens[1:]
    return " ".join(tokens)


def normalize_entity_key_for_type(entity_type: str, name: Optional[str]) -> str:
    if entity_type == "character":
        return normalize_character_key(name) or normalize_entity_key(name)
    return normalize_entity_key(name)


# ------------------------------------------------------------------
# Role helpers
# ------------------------------------------------------------------

def is_generic_role_character_name(name: Optional[str]) -> bool:
    """True when *name* is nothing but a generic role ("Captain")."""
    return get_generic_role_token(name) is not None


def get_generic_role_token(name: Optional[str]) -> Optional[str]:
    tokens = _normalized_tokens(name)
    if len(tokens) == 1 and tokens[0] in GENERIC_ROLE_TOKENS:
        return tokens[0]
    return None


def get_leading_role_token(name: Optional[str]) -> Optional[str]:
    """Return the role prefix of a role-titled name ("Captain Reyes" -> "captain")."""
    tokens = _normalized_tokens(name)
    if len(tokens) > 1 and tokens[0] in GENERIC_ROLE_TOKENS:
        return tokens[0]
    return None


def is_alias_prone_role_token(role: str) -> bool:
    return role.lower() in ALIAS_PRONE_ROLE_TOKENS


# ------------------------------------------------------------------
# Noise detection
# ------------------------------------------------------------------

def is_likely_entity_noise(name: Optional[str]) -> bool:
    """True for strings that look like chat meta-talk rather than entities.

    Catches bare meta-nouns ("Outline"), calendar words ("March"),
    possessive meta phrases ("Mara's notes") and numbered parts
    ("Chapter 3").
    """
    sanitized = sanitize_entity_name(name)
    if not sanitized:
        return True

    key = normalize_entity_key(sanitized)
    if not key:
        return True
    if key in NON_ENTITY_SINGLE_TOKENS:
        return True

    tail = key.split(" ")[-1]
    if tail in NON_ENTITY_TAIL_TOKENS:
        return True

    if _POSSESSIVE_META.search(sanitized):
        return True
    if _NUMBERED_PART.match(sanitized):
        return True

    return False


def is_likely_character_noise(name: Optional[str]) -> bool:
    if is_likely_entity_noise(name):
        return True
    tokens = normalize_entity_key(name).split()
    if not tokens:
        return True
    return tokens[-1] in NON_ENTITY_TAIL_TOKENS
