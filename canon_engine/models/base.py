"""
canon_engine/models/base.py -- Shared pydantic base for every canon model.

``CanonModel`` fixes the configuration all engine models share:

    - camelCase aliases so JSON produced by the editor front end validates
      directly, while Python code uses snake_case attribute names.
    - ``populate_by_name`` so either spelling is accepted on input.
    - Unknown keys are ignored; bookkeeping fields the engine does not
      model (UI state, image metadata) should not break validation.

``CanonBase`` holds the fields common to all six canon entry types.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CanonModel(BaseModel):
    """Base model with camelCase aliases and name population."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_dict(self) -> dict[str, Any]:
        """Return the camelCase JSON-ready dict used on the wire."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class FrozenCanonModel(CanonModel):
    """A ``CanonModel`` whose instances cannot be reassigned after creation."""

    model_config = ConfigDict(frozen=True)


class CanonBase(FrozenCanonModel):
    """Fields shared by all canon entries.

    The ``type`` field is narrowed to a single ``Literal`` by each concrete
    entry class and acts as the discriminator of ``EntrySnapshot``.
    """

    id: str
    project_id: str = ""
    type: str
    name: str
    description: str = ""
    image_url: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    notes: str = ""
    version: int = 1
    linked_canon_ids: list[str] = Field(default_factory=list)
    created_at: str = ""
    updated_at: str = ""

    def renamed(self, name: str):
        """Return a copy of this entry with a new display name."""
        return self.model_copy(update={"name": name})

    def with_description(self, description: str):
        """Return a copy of this entry with a new description."""
        return self.model_copy(update={"description": description})

    def snapshot(self):
        """Return an independent deep copy suitable for later comparison."""
        return self.model_copy(deep=True)
