from __future__ import annotations

from datetime import datetime  # noqa: TCH003
from typing import Any

from pydantic import Field, field_validator

from scrappr.utils.validation import coerce_tags

from .base import AppBaseModel, epoch_millis


def notes_collection(owner: str) -> str:
    return f"users/{owner}/notes"


def note_path(owner: str, note_id: str) -> str:
    return f"{notes_collection(owner)}/{note_id}"


class Note(AppBaseModel):
    """Note domain model.

    Stored at ``users/{owner}/notes/{id}`` with the wire field names
    ``content``, ``tagList``, ``createdAt`` and ``timestamp``.
    """

    id: str = Field(description="Store assigned identifier")
    owner: str = Field(description="Owner of the note")
    content: str = Field(default="", description="Note text")
    tags: list[str] = Field(default_factory=list, alias="tagList", description="Normalized tags")
    created_at: datetime | None = Field(
        default=None, alias="createdAt", description="Store assigned creation marker"
    )
    timestamp: int = Field(default_factory=epoch_millis, description="Client modification epoch (ms)")

    @field_validator("tags", mode="before")
    @classmethod
    def validate_tags(cls, v: Any) -> list[str]:
        """Stored tag lists are read leniently: no empties, no duplicates."""
        if not v or not isinstance(v, list):
            return []
        return coerce_tags(v)

    @field_validator("timestamp", mode="before")
    @classmethod
    def default_timestamp(cls, v: Any) -> Any:
        # Older documents were written without a timestamp
        return epoch_millis() if v is None else v

    @classmethod
    def from_document(cls, path: str, data: dict[str, Any]) -> Note:
        """Build a note from a ``users/{owner}/notes/{id}`` document."""
        parts = path.split("/")
        if len(parts) != 4 or parts[0] != "users" or parts[2] != "notes":
            raise ValueError(f"Not a note document path: {path}")
        return cls.model_validate(
            {
                "id": parts[3],
                "owner": parts[1],
                "content": data.get("content") or "",
                "tagList": data.get("tagList"),
                "createdAt": data.get("createdAt"),
                "timestamp": data.get("timestamp"),
            }
        )

    def has_any_tag(self, tags: frozenset[str] | set[str]) -> bool:
        return not tags.isdisjoint(self.tags)
