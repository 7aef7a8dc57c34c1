from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from scrappr.core.services.filter_service import toggle_filter, visible
from scrappr.core.services.note_service import NoteService
from scrappr.core.services.tag_index_service import TagIndexService
from scrappr.utils.logging import get_logger
from scrappr.utils.validation import normalize_tag

if TYPE_CHECKING:
    from scrappr.core.models.note import Note
    from scrappr.core.repositories.document_store import DocumentStore, LiveSnapshots


logger = get_logger(__name__)


class NotesSession:
    """Live state of one owner's notes list.

    Owns the note and tag-index subscriptions between :meth:`start` and
    :meth:`stop`; the filter bar and the visible list are derived from the
    latest snapshots. When a subscription fails, the last snapshot stays in
    place until the session is restarted.
    """

    def __init__(
        self,
        store: DocumentStore,
        owner: str,
        *,
        notes: NoteService | None = None,
        tag_index: TagIndexService | None = None,
    ) -> None:
        self.owner = owner
        self._tag_index = tag_index or TagIndexService(store)
        self._notes = notes or NoteService(store, self._tag_index)
        self.notes: list[Note] = []
        self.all_tags: list[str] = []
        self.filter_tags: frozenset[str] = frozenset()
        self._subscriptions: list[LiveSnapshots[Any]] = []
        self._tasks: list[asyncio.Task[None]] = []
        self._notes_ready = asyncio.Event()

    @property
    def active(self) -> bool:
        return bool(self._subscriptions)

    @property
    def loading(self) -> bool:
        """True until the first notes snapshot arrived."""
        return not self._notes_ready.is_set()

    @property
    def visible_notes(self) -> list[Note]:
        return visible(self.notes, self.filter_tags)

    async def start(self) -> None:
        if self.active:
            return
        notes_live = self._notes.subscribe(self.owner)
        try:
            tags_live = self._tag_index.subscribe(self.owner)
        except Exception:
            notes_live.close()
            raise
        self._subscriptions = [notes_live, tags_live]
        self._tasks = [
            asyncio.create_task(self._consume_notes(notes_live)),
            asyncio.create_task(self._consume_tags(tags_live)),
        ]
        logger.info("Notes session started for %s", self.owner)

    async def stop(self) -> None:
        """Tear down both subscriptions; no state changes after this returns."""
        if not self.active:
            return
        for live in self._subscriptions:
            live.close()
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._subscriptions = []
        self._tasks = []
        self._notes_ready.clear()
        logger.info("Notes session stopped for %s", self.owner)

    async def wait_ready(self) -> None:
        await self._notes_ready.wait()

    async def _consume_notes(self, live: LiveSnapshots[list[Note]]) -> None:
        async for notes in live:
            self.notes = notes
            self._notes_ready.set()

    async def _consume_tags(self, live: LiveSnapshots[Any]) -> None:
        async for index in live:
            self.all_tags = index.sorted_tags()

    def toggle_filter(self, tag: str) -> frozenset[str]:
        self.filter_tags = toggle_filter(self.filter_tags, tag)
        return self.filter_tags

    def clear_filter(self) -> None:
        self.filter_tags = frozenset()

    async def delete_note(self, note_id: str) -> bool:
        return await self._notes.delete_note(self.owner, note_id)

    async def delete_tag(self, tag: str) -> int:
        """Delete a tag from every note and from the index."""
        count = await self._tag_index.delete_tag_globally(self.owner, tag)
        self.filter_tags = self.filter_tags - {normalize_tag(tag)}
        return count

    async def __aenter__(self) -> NotesSession:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()
