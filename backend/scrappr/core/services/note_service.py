from __future__ import annotations

from typing import TYPE_CHECKING

from scrappr.core.models.base import epoch_millis
from scrappr.core.models.note import Note, note_path, notes_collection
from scrappr.core.repositories.document_store import SERVER_TIMESTAMP, LiveSnapshots, Query
from scrappr.core.services.tag_index_service import TagIndexService
from scrappr.utils.logging import get_logger
from scrappr.utils.validation import normalize_tags, validate_content

if TYPE_CHECKING:
    from collections.abc import Iterable

    from scrappr.core.repositories.document_store import DocumentSnapshot, DocumentStore


logger = get_logger(__name__)


class NoteService:
    """Service for managing an owner's notes.

    Content and tags are validated before anything is sent to the store.
    Writes are not retried: a StoreError reaches the caller, who decides
    whether to save again.
    """

    def __init__(self, store: DocumentStore, tag_index: TagIndexService | None = None) -> None:
        self._store = store
        self._tag_index = tag_index or TagIndexService(store)

    def _query(self, owner: str) -> Query:
        return Query(notes_collection(owner)).order("createdAt", descending=True)

    async def create_note(self, owner: str, content: str, tags: Iterable[str] | None = None) -> str:
        """Create a note and return its id.

        The note and the union of its tags into the owner's tag index are
        written in the same batch.
        """
        validate_content(content)
        normalized = normalize_tags(tags)

        note_id = self._store.new_id()
        batch = self._store.batch()
        batch.set(
            note_path(owner, note_id),
            {
                "content": content,
                "tagList": normalized,
                "timestamp": epoch_millis(),
                "createdAt": SERVER_TIMESTAMP,
            },
        )
        self._tag_index.stage_add(batch, owner, normalized)
        await batch.commit()

        logger.info("Created note %s (owner: %s, tags: %d)", note_id, owner, len(normalized))
        return note_id

    async def update_note(
        self, owner: str, note_id: str, content: str, tags: Iterable[str] | None = None
    ) -> None:
        """Overwrite content, tags and timestamp of an existing note.

        ``createdAt`` is left alone. Raises NotFoundError if the note is gone.
        """
        validate_content(content)
        normalized = normalize_tags(tags)

        batch = self._store.batch()
        batch.update(
            note_path(owner, note_id),
            {
                "content": content,
                "tagList": normalized,
                "timestamp": epoch_millis(),
            },
        )
        self._tag_index.stage_add(batch, owner, normalized)
        await batch.commit()
        logger.info("Updated note %s (owner: %s)", note_id, owner)

    async def delete_note(self, owner: str, note_id: str) -> bool:
        """Delete a note. Returns False when there was nothing to delete."""
        path = note_path(owner, note_id)
        if await self._store.get(path) is None:
            return False
        await self._store.delete(path)
        logger.info("Deleted note %s (owner: %s)", note_id, owner)
        return True

    async def get_note(self, owner: str, note_id: str) -> Note | None:
        doc = await self._store.get(note_path(owner, note_id))
        if doc is None:
            return None
        return Note.from_document(doc.path, doc.data)

    async def list_notes(self, owner: str) -> list[Note]:
        """List notes for the given owner, newest first."""
        return _to_notes(await self._store.query(self._query(owner)))

    def subscribe(self, owner: str) -> LiveSnapshots[list[Note]]:
        """Live, newest-first view of the owner's notes.

        Yields the current list first, then a new list after every change.
        Each call starts a fresh subscription; close it to release it.
        """
        query = self._query(owner)
        return LiveSnapshots(
            lambda on_next, on_error: self._store.on_snapshot(query, on_next, on_error),
            _to_notes,
            name=f"notes of {owner}",
        )


def _to_notes(docs: list[DocumentSnapshot]) -> list[Note]:
    return [Note.from_document(d.path, d.data) for d in docs]
