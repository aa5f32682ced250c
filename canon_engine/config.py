"""
canon_engine/config.py -- Engine settings.

The engine's tunable limits live in one pydantic model so callers can
override them from a JSON file without touching code.  Defaults match the
documented behaviour; an absent settings file simply means defaults.

Usage::

    from canon_engine.config import load_settings

    settings = load_settings()                  # user config dir, or defaults
    settings = load_settings("my-settings.json")
"""

from __future__ import annotations

import json
import logging
import os
from typing import Optional

from platformdirs import user_config_dir
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from canon_engine.errors import ConfigError

logger = logging.getLogger(__name__)

_APP_NAME = "CanonEngine"
_APP_AUTHOR = "CanonEngine"
SETTINGS_FILENAME = "settings.json"


class EngineSettings(BaseModel):
    """Tunable limits of the extraction and issue pipelines."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_characters: int = Field(default=8, ge=1)
    max_locations: int = Field(default=8, ge=1)
    max_systems: int = Field(default=6, ge=0)
    max_artifacts: int = Field(default=6, ge=0)
    # Window used by rules that only touch the opening chapters.
    first_k_chapters: int = Field(default=5, ge=0)
    issue_id_prefix: str = Field(default="val", min_length=1)


DEFAULT_SETTINGS = EngineSettings()


def default_settings_path() -> str:
    """Return the platform-appropriate location of ``settings.json``."""
    return os.path.join(user_config_dir(_APP_NAME, _APP_AUTHOR), SETTINGS_FILENAME)


def load_settings(path: Optional[str] = None) -> EngineSettings:
    """Load settings from *path*, or from the user config dir.

    Parameters
    ----------
    path : str, optional
        Explicit settings file.  When given, the file must exist.

    Returns
    -------
    EngineSettings

    Raises
    ------
    ConfigError
        If an explicit file is missing, or any file is not UTF-8 JSON or
        contains unknown or out-of-range settings.
    """
    explicit = path is not None
    path = path if explicit else default_settings_path()

    if not os.path.exists(path):
        if explicit:
            raise ConfigError(f"Settings file not found: {path}")
        logger.debug("No settings file at %s, using defaults", path)
        return DEFAULT_SETTINGS

    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = json.load(fh)
    except (json.JSONDecodeError, UnicodeDecodeError, OSError) as exc:
        raise ConfigError(f"Could not read settings file {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError(f"Settings file {path} must contain a JSON object.")

    try:
        settings = EngineSettings.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid settings in {path}: {exc}") from exc

    logger.debug("Loaded settings from %s", path)
    return settings
