from __future__ import annotations

from datetime import datetime  # noqa: TCH003

from pydantic import Field, field_validator

from scrappr.core.models.base import AppBaseModel
from scrappr.utils.links import Segment  # noqa: TCH001
from scrappr.utils.validation import normalize_tags, validate_content


class NoteWrite(AppBaseModel):
    """Body of create and update requests; content and tags are replaced as a whole."""

    content: str = Field(..., max_length=10000, description="Note content")
    tags: list[str] = Field(default_factory=list, description="Tags for filtering")

    @field_validator("content")
    @classmethod
    def check_content(cls, v: str) -> str:
        return validate_content(v)

    @field_validator("tags")
    @classmethod
    def check_tags(cls, v: list[str]) -> list[str]:
        return normalize_tags(v)


class NoteRead(AppBaseModel):
    id: str
    content: str
    tags: list[str]
    created_at: datetime | None
    timestamp: int
    segments: list[Segment] = Field(default_factory=list, description="Content split into text and links")


class NoteDeleteResult(AppBaseModel):
    deleted: bool
