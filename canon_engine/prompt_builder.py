"""
canon_engine/prompt_builder.py -- Continuity-judge prompt construction.

Builds the prompt an AI-backed issue generator would send after a canon
edit.  This module does NOT call a model; it only assembles text.  The
rule-based generator is used in the meantime, and both consume the same
``ChangeRecord`` list so either can be swapped in.
"""

from __future__ import annotations

import logging
from typing import Sequence

from canon_engine.models.base import CanonBase
from canon_engine.models.validation import ChangeRecord, ChapterRef, Severity

logger = logging.getLogger(__name__)

PROMPT_VERSION = "1.0"

_JUDGE_ROLE = (
    "You are a continuity judge for a novel in progress. A canon entry in the "
    "story bible has been modified. Analyze the changes for potential continuity "
    "issues across the story."
)

_RESPONSE_FORMAT = (
    "For each issue found, return:\n"
    "- severity: {severities}\n"
    "- chapter(s) affected\n"
    "- specific sentence or passage that conflicts\n"
    "- suggested fix\n"
    "\n"
    "If the changes are safe and create no continuity issues, return an empty array."
)


def build_validation_prompt(
    entry: CanonBase,
    changes: Sequence[ChangeRecord],
    chapters: Sequence[ChapterRef],
    *,
    project_title: str,
) -> str:
    """Build the continuity-check prompt for one edit.

    Parameters
    ----------
    entry
        The canon entry after the edit.
    changes
        The detected changes.
    chapters
        Chapters that reference the entry or may be affected.
    project_title : str
        Title of the manuscript, for context.

    Returns
    -------
    str
        A complete prompt string.
    """
    severities = " | ".join(s.value for s in sorted(Severity, key=lambda s: -s.rank))

    parts = [
        _JUDGE_ROLE,
        "",
        f'Project: "{project_title}"',
        f"Canon entry: {entry.name} ({entry.type})",
        f"PROMPT VERSION: {PROMPT_VERSION}",
        "",
        "Changes made:",
    ]
    for change in changes:
        parts.append(f'- {change.field}: "{change.old_value}" → "{change.new_value}"')

    parts.append("")
    parts.append("Chapters that reference this entry or may be affected:")
    if chapters:
        for chapter in chapters:
            purpose = chapter.purpose or "no premise"
            parts.append(f"Ch {chapter.number}: {chapter.title} -- {purpose}")
    else:
        parts.append("(no chapters written yet)")

    parts.append("")
    parts.append(_RESPONSE_FORMAT.format(severities=severities))

    prompt = "\n".join(parts)
    logger.debug("Built validation prompt for '%s' (%d chars)", entry.id, len(prompt))
    return prompt
