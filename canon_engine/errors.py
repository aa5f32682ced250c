"""
canon_engine/errors.py -- Exception hierarchy for the canon engine.

Every error raised on purpose by the engine derives from
``CanonEngineError`` so that callers can catch engine failures without
also swallowing programming errors.
"""

from __future__ import annotations


class CanonEngineError(Exception):
    """Base class for all canon engine errors."""


# ------------------------------------------------------------------
# Snapshot errors
# ------------------------------------------------------------------

class SnapshotError(CanonEngineError):
    """A canon entry snapshot is unusable for comparison."""


class MissingSnapshotFieldError(SnapshotError):
    """A nested field the change detector needs is absent.

    Parameters
    ----------
    path : str
        Dotted path of the missing field, e.g. ``"character.story_state.alive"``.
    which : str
        ``"old"`` or ``"new"`` -- the snapshot the field is missing from.
    """

    def __init__(self, path: str, which: str = ""):
        self.path = path
        self.which = which
        where = f" on the {which} snapshot" if which else ""
        super().__init__(
            f"Snapshot field '{path}' is missing{where}. The entry data is "
            f"incomplete or corrupted and cannot be compared."
        )


class SnapshotTypeMismatchError(SnapshotError, ValueError):
    """The two snapshots passed to the change detector have different types."""

    def __init__(self, old_type: str, new_type: str):
        self.old_type = old_type
        self.new_type = new_type
        super().__init__(
            f"Cannot compare a '{old_type}' snapshot with a '{new_type}' snapshot."
        )


class SnapshotValidationError(SnapshotError, ValueError):
    """Raw entry data failed validation against the snapshot models.

    ``paths`` lists every offending dotted path in the order pydantic
    reported them.
    """

    def __init__(self, paths: list[str], messages: list[str]):
        self.paths = paths
        self.messages = messages
        details = "; ".join(
            f"{path}: {msg}" if path else msg
            for path, msg in zip(paths, messages)
        )
        super().__init__(f"Invalid canon entry snapshot ({details})")


# ------------------------------------------------------------------
# Store and configuration errors
# ------------------------------------------------------------------

class UnknownIssueError(CanonEngineError, KeyError):
    """No validation issue with the given id exists in the store."""

    def __init__(self, issue_id: str):
        self.issue_id = issue_id
        super().__init__(issue_id)

    def __str__(self) -> str:
        return f"No validation issue with id '{self.issue_id}'."


class ConfigError(CanonEngineError):
    """Engine settings could not be read or are invalid."""
