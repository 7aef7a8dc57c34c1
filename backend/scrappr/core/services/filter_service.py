from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from scrappr.core.models.note import Note


def toggle_filter(filter_set: frozenset[str], tag: str) -> frozenset[str]:
    """Return ``filter_set`` with ``tag`` removed if present, added otherwise."""
    if tag in filter_set:
        return filter_set - {tag}
    return filter_set | {tag}


def visible(notes: Sequence[Note], filter_set: Iterable[str]) -> list[Note]:
    """Notes carrying at least one filtered tag, in input order.

    An empty filter set means no filter: every note is visible.
    """
    active = frozenset(filter_set)
    if not active:
        return list(notes)
    return [note for note in notes if note.has_any_tag(active)]
