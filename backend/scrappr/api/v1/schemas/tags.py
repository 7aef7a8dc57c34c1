from __future__ import annotations

from pydantic import Field

from scrappr.core.models.base import AppBaseModel


class TagIndexRead(AppBaseModel):
    """Every tag the user has used, sorted for display."""

    tags: list[str] = Field(default_factory=list)


class TagsAdd(AppBaseModel):
    tags: list[str] = Field(..., min_length=1)


class TagDeleteResult(AppBaseModel):
    tag: str
    notes_updated: int
