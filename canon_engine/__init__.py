"""
canon_engine -- Canon continuity checks and entity extraction.

Keeps a story bible consistent with the manuscript built on it:

    detect_changes                    which watched fields an edit touched
    generate_validation_issues        what those changes put at risk
    build_impact_report               one report per edit cycle
    extract_canon_from_conversation   canon candidates from a planning chat
    ContinuityService                 snapshot lifecycle for a host app

Everything except ``ContinuityService`` and its store is a pure function.
"""

from canon_engine.change_detector import detect_changes
from canon_engine.config import DEFAULT_SETTINGS, EngineSettings, load_settings
from canon_engine.errors import (
    CanonEngineError,
    ConfigError,
    MissingSnapshotFieldError,
    SnapshotError,
    SnapshotTypeMismatchError,
    SnapshotValidationError,
    UnknownIssueError,
)
from canon_engine.extraction import extract_canon_from_conversation
from canon_engine.impact_reporter import build_impact_report, prepend_report
from canon_engine.issue_generator import RuleBasedIssueGenerator, generate_validation_issues
from canon_engine.normalization import (
    normalize_character_key,
    normalize_entity_key,
    sanitize_entity_name,
)
from canon_engine.prompt_builder import build_validation_prompt
from canon_engine.service import ContinuityService, InMemoryValidationStore

__version__ = "0.1.0"

__all__ = [
    "CanonEngineError",
    "ConfigError",
    "ContinuityService",
    "DEFAULT_SETTINGS",
    "EngineSettings",
    "InMemoryValidationStore",
    "MissingSnapshotFieldError",
    "RuleBasedIssueGenerator",
    "SnapshotError",
    "SnapshotTypeMismatchError",
    "SnapshotValidationError",
    "UnknownIssueError",
    "build_impact_report",
    "build_validation_prompt",
    "detect_changes",
    "extract_canon_from_conversation",
    "generate_validation_issues",
    "load_settings",
    "normalize_character_key",
    "normalize_entity_key",
    "prepend_report",
    "sanitize_entity_name",
]
