from __future__ import annotations

from typing import TYPE_CHECKING

from scrappr.core.errors import ValidationError

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence


def normalize_tag(tag: str) -> str:
    """Return the canonical form of a tag (trimmed, lowercase).

    Raises:
        ValidationError: if nothing is left after trimming
    """
    normalized = (tag or "").strip().lower()
    if not normalized:
        raise ValidationError("Tag must be non-empty")
    return normalized


def normalize_tags(tags: Iterable[str] | None) -> list[str]:
    """Normalize a tag list supplied by a caller, rejecting bad input.

    Keeps first-seen order. An empty entry or a duplicate (after
    normalization) raises ValidationError so nothing reaches the store.
    """
    normalized: list[str] = []
    for tag in tags or []:
        value = normalize_tag(tag)
        if value in normalized:
            raise ValidationError(f"Duplicate tag: {value}")
        normalized.append(value)
    return normalized


def coerce_tags(tags: Iterable[object] | None) -> list[str]:
    """Lenient normalization for stored data: drop empties and duplicates."""
    normalized: list[str] = []
    for tag in tags or []:
        if not isinstance(tag, str):
            continue
        value = tag.strip().lower()
        if value and value not in normalized:
            normalized.append(value)
    return normalized


def parse_tags(value: str | Sequence[str] | None) -> list[str]:
    """Parse tags arriving from a route or form parameter.

    Navigation parameters carry tags either as a single comma separated
    string or as a list of strings; both end up as one canonical list here
    so nothing downstream has to look at the input type.
    """
    if value is None:
        return []
    if isinstance(value, str):
        items: Iterable[str] = value.split(",")
    else:
        items = (part for item in value for part in str(item).split(","))
    return coerce_tags(items)


def validate_content(content: str | None) -> str:
    """Return content unchanged if it has any non-whitespace text."""
    if content is None or not content.strip():
        raise ValidationError("Note content must be non-empty")
    return content
