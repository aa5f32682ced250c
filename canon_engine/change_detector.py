"""
canon_engine/change_detector.py -- Field-level diff of two canon snapshots.

Only narratively significant fields are compared.  Each canon type has an
explicit allowlist of watched fields; bookkeeping fields (``version``,
``updated_at``, image metadata, ...) never produce a change.

Comparison is structural equality.  Lists compare as ordered sequences,
so reordering the same items *is* a change: order carries meaning in
fields like a character's knowledge list.

Usage::

    from canon_engine.change_detector import detect_changes

    changes = detect_changes(snapshot, current_entry)
    for change in changes:
        print(change.describe())
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Union

from canon_engine.errors import MissingSnapshotFieldError, SnapshotTypeMismatchError
from canon_engine.models.base import CanonBase
from canon_engine.models.entries import parse_snapshot
from canon_engine.models.validation import ChangeRecord

logger = logging.getLogger(__name__)

# How a watched value is rendered into a ChangeRecord.
RENDER_VALUE = "value"      # str(value); booleans as "true"/"false"
RENDER_LIST = "list"        # items joined with ", "
RENDER_OPAQUE = "opaque"    # "previous" -> "updated"


@dataclass(frozen=True)
class WatchedField:
    """One allowlisted field: its change label and where it lives."""

    label: str
    path: str
    render: str = RENDER_VALUE


_COMMON_FIELDS = (
    WatchedField("name", "name"),
    WatchedField("description", "description"),
)

WATCHED_FIELDS: dict[str, tuple[WatchedField, ...]] = {
    "character": (
        WatchedField("alive", "character.story_state.alive"),
        WatchedField("current_location", "character.story_state.current_location"),
        WatchedField("role", "character.role"),
        WatchedField("arc.ending_state", "character.arc.ending_state"),
        WatchedField("personality.traits", "character.personality.traits", RENDER_LIST),
        WatchedField("relationships", "character.relationships", RENDER_OPAQUE),
        WatchedField("speech_pattern", "character.personality.speech_pattern"),
        WatchedField("background.upbringing", "character.background.upbringing"),
        WatchedField("knowledge_state", "character.story_state.knowledge_state", RENDER_LIST),
    ),
    "location": (
        WatchedField("geography.region", "location.geography.region"),
        WatchedField("ownership", "location.history.ownership", RENDER_OPAQUE),
        WatchedField("access_rules", "location.story_relevance.access_rules"),
    ),
    "system": (
        WatchedField("rules.core_principles", "system.rules.core_principles", RENDER_LIST),
        WatchedField("rules.limitations", "system.rules.limitations", RENDER_LIST),
        WatchedField("rules.costs", "system.rules.costs"),
    ),
    "artifact": (
        WatchedField("properties.abilities", "artifact.properties.abilities", RENDER_LIST),
        WatchedField("properties.limitations", "artifact.properties.limitations", RENDER_LIST),
        WatchedField("history.current_owner", "artifact.history.current_owner"),
        WatchedField("history.current_location", "artifact.history.current_location"),
    ),
    "rule": (
        WatchedField("statement", "rule.statement"),
        WatchedField("can_be_broken", "rule.can_be_broken"),
        WatchedField("has_been_broken", "rule.has_been_broken"),
    ),
    "event": (
        WatchedField("date", "event.date"),
        WatchedField("location", "event.location"),
        WatchedField("participants", "event.participants", RENDER_OPAQUE),
    ),
}

_MISSING = object()

Snapshot = Union[CanonBase, Mapping[str, Any]]


def watched_fields_for(entry_type: str) -> tuple[WatchedField, ...]:
    """Return the allowlist for *entry_type*, common fields first."""
    return _COMMON_FIELDS + WATCHED_FIELDS.get(entry_type, ())


def _resolve(entry: CanonBase, path: str, which: str) -> Any:
    value: Any = entry
    for part in path.split("."):
        value = getattr(value, part, _MISSING)
        if value is _MISSING or value is None:
            raise MissingSnapshotFieldError(path, which)
    return value


def _render(value: Any, render: str) -> str:
    if render == RENDER_LIST:
        return ", ".join(str(item) for item in value)
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _coerce(snapshot: Snapshot) -> CanonBase:
    if isinstance(snapshot, CanonBase):
        return snapshot
    return parse_snapshot(snapshot)


def detect_changes(old: Snapshot, new: Snapshot) -> list[ChangeRecord]:
    """List the watched fields that differ between two snapshots of one entry.

    Parameters
    ----------
    old, new
        Typed snapshots of the same canon entry, or raw entry mappings
        (validated with ``parse_snapshot``).

    Returns
    -------
    list[ChangeRecord]
        In allowlist order.  Empty when the snapshots are equal on every
        watched field.

    Raises
    ------
    SnapshotTypeMismatchError
        If the snapshots are of different canon types.
    MissingSnapshotFieldError
        If a watched field is absent from either snapshot.
    SnapshotValidationError
        If a raw mapping fails validation.
    """
    old_entry = _coerce(old)
    new_entry = _coerce(new)
    if old_entry.type != new_entry.type:
        raise SnapshotTypeMismatchError(old_entry.type, new_entry.type)

    changes: list[ChangeRecord] = []
    for watched in watched_fields_for(new_entry.type):
        old_value = _resolve(old_entry, watched.path, "old")
        new_value = _resolve(new_entry, watched.path, "new")
        if old_value == new_value:
            continue

        if watched.render == RENDER_OPAQUE:
            rendered_old, rendered_new = "previous", "updated"
        else:
            rendered_old = _render(old_value, watched.render)
            rendered_new = _render(new_value, watched.render)

        changes.append(ChangeRecord(
            field=watched.label,
            old_value=rendered_old,
            new_value=rendered_new,
        ))

    logger.debug(
        "Detected %d change(s) on %s '%s'", len(changes), new_entry.type, new_entry.id
    )
    return changes
