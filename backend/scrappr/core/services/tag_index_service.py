from __future__ import annotations

from typing import TYPE_CHECKING

from scrappr.core.models.note import notes_collection
from scrappr.core.models.tag_index import TagIndex, tag_index_path
from scrappr.core.repositories.document_store import ArrayRemove, ArrayUnion, LiveSnapshots, Query
from scrappr.utils.logging import get_logger
from scrappr.utils.validation import coerce_tags, normalize_tag, normalize_tags

if TYPE_CHECKING:
    from collections.abc import Iterable

    from scrappr.core.repositories.document_store import DocumentStore, WriteBatch


logger = get_logger(__name__)


class TagIndexService:
    """Maintains each owner's index of every tag they have used.

    Additions are set unions resolved by the store (no read-modify-write), so
    they are idempotent and commutative and need no locking. The one
    transactional operation is :meth:`delete_tag_globally`.
    """

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    def stage_add(self, batch: WriteBatch, owner: str, tags: Iterable[str]) -> None:
        """Queue a union-add of already normalized tags onto an existing batch."""
        values = list(tags)
        if values:
            batch.set(tag_index_path(owner), {"list": ArrayUnion(values)}, merge=True)

    async def add_tags(self, owner: str, tags: Iterable[str]) -> list[str]:
        """Union ``tags`` into the owner's index and return the normalized tags added."""
        normalized = normalize_tags(tags)
        if not normalized:
            return []
        batch = self._store.batch()
        self.stage_add(batch, owner, normalized)
        await batch.commit()
        logger.debug("Added %d tags to index of %s", len(normalized), owner)
        return normalized

    async def get_tag_index(self, owner: str) -> TagIndex:
        doc = await self._store.get(tag_index_path(owner))
        return TagIndex.from_document(owner, doc.data if doc else None)

    async def delete_tag_globally(self, owner: str, tag: str) -> int:
        """Remove ``tag`` from the index and from every note carrying it.

        The index update and every note update commit as one batch: either
        all of them land or, on any failure (including the lookup of the
        affected notes), nothing changes. Returns the number of notes that
        lost the tag.

        A save that re-adds the same tag concurrently wins if its batch
        commits last.
        """
        value = normalize_tag(tag)
        affected = await self._store.query(
            Query(notes_collection(owner)).where("tagList", "array-contains", value)
        )

        batch = self._store.batch()
        batch.set(tag_index_path(owner), {"list": ArrayRemove([value])}, merge=True)
        for doc in affected:
            batch.update(doc.path, {"tagList": ArrayRemove([value])})
        await batch.commit()

        logger.info(
            "Deleted tag globally",
            extra={"owner": owner, "tag": value, "notes": len(affected)},
        )
        return len(affected)

    async def rebuild_tag_index(self, owner: str) -> TagIndex:
        """Union every tag currently on the owner's notes into the index.

        Repairs the index after writes that bypassed this service; tags the
        index already holds are kept.
        """
        docs = await self._store.query(Query(notes_collection(owner)))
        tag_set: set[str] = set()
        for doc in docs:
            tag_set.update(coerce_tags(doc.data.get("tagList")))

        if tag_set:
            batch = self._store.batch()
            self.stage_add(batch, owner, sorted(tag_set))
            await batch.commit()
        logger.info("Rebuilt tag index for %s from %d notes", owner, len(docs))
        return await self.get_tag_index(owner)

    def subscribe(self, owner: str) -> LiveSnapshots[TagIndex]:
        """Live view of the owner's index; a missing document reads as empty."""
        return LiveSnapshots(
            lambda on_next, on_error: self._store.on_document_snapshot(
                tag_index_path(owner), on_next, on_error
            ),
            lambda doc: TagIndex.from_document(owner, doc.data if doc else None),
            name=f"tag index of {owner}",
        )
