from __future__ import annotations

from typing import Any

from pydantic import Field, field_validator

from scrappr.utils.validation import coerce_tags

from .base import AppBaseModel


def tag_index_path(owner: str) -> str:
    return f"users/{owner}/metadata/tags"


class TagIndex(AppBaseModel):
    """Every tag an owner has used, stored at ``users/{owner}/metadata/tags``.

    - tags: unique, normalized tags (wire field ``list``); treated as a set,
      the stored order carries no meaning
    """

    owner: str
    tags: list[str] = Field(default_factory=list, alias="list")

    @field_validator("tags", mode="before")
    @classmethod
    def validate_tags(cls, v: Any) -> list[str]:
        if not v or not isinstance(v, list):
            return []
        return coerce_tags(v)

    @classmethod
    def from_document(cls, owner: str, data: dict[str, Any] | None) -> TagIndex:
        """A missing document is an empty index; it is created lazily on first use."""
        return cls.model_validate({"owner": owner, "list": (data or {}).get("list")})

    def sorted_tags(self) -> list[str]:
        """Display order for the filter bar."""
        return sorted(self.tags)
