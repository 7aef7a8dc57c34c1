"""Tests for the per-owner tag index."""

import asyncio
import itertools

import pytest

from scrappr.core.errors import NotFoundError, StoreError, ValidationError
from scrappr.core.models.note import note_path
from scrappr.core.models.tag_index import tag_index_path
from scrappr.core.repositories.implementations.memory.document_store import MemoryDocumentStore
from scrappr.core.services.tag_index_service import TagIndexService
from tests.conftest import OTHER_OWNER, OWNER
from tests.helpers import next_snapshot


@pytest.mark.asyncio
async def test_missing_index_reads_empty(tag_index):
    index = await tag_index.get_tag_index(OWNER)
    assert index.tags == []


@pytest.mark.asyncio
async def test_add_tags_normalizes(tag_index):
    assert await tag_index.add_tags(OWNER, [" Work", "home"]) == ["work", "home"]
    assert sorted((await tag_index.get_tag_index(OWNER)).tags) == ["home", "work"]


@pytest.mark.asyncio
async def test_add_tags_rejects_bad_input(store, tag_index):
    with pytest.raises(ValidationError):
        await tag_index.add_tags(OWNER, ["a", " A "])
    assert store.commit_count == 0


@pytest.mark.asyncio
async def test_add_nothing_is_noop(store, tag_index):
    assert await tag_index.add_tags(OWNER, []) == []
    assert store.commit_count == 0


@pytest.mark.asyncio
async def test_add_is_idempotent(tag_index):
    await tag_index.add_tags(OWNER, ["a", "b"])
    await tag_index.add_tags(OWNER, ["b", "a"])
    assert sorted((await tag_index.get_tag_index(OWNER)).tags) == ["a", "b"]


@pytest.mark.asyncio
async def test_add_is_order_independent():
    batches = [["a"], ["b", "c"], ["c", "d"]]
    results = set()
    for order in itertools.permutations(batches):
        service = TagIndexService(MemoryDocumentStore())
        for tags in order:
            await service.add_tags(OWNER, tags)
        results.add(frozenset((await service.get_tag_index(OWNER)).tags))
    assert results == {frozenset("abcd")}


@pytest.mark.asyncio
async def test_concurrent_adds_lose_nothing(tag_index):
    await asyncio.gather(*(tag_index.add_tags(OWNER, [f"t{i}"]) for i in range(10)))
    assert len((await tag_index.get_tag_index(OWNER)).tags) == 10


@pytest.mark.asyncio
async def test_delete_tag_globally(notes, tag_index):
    first = await notes.create_note(OWNER, "one", ["x", "y"])
    second = await notes.create_note(OWNER, "two", ["x"])
    third = await notes.create_note(OWNER, "three", ["y"])

    assert await tag_index.delete_tag_globally(OWNER, " X ") == 2

    assert (await notes.get_note(OWNER, first)).tags == ["y"]
    assert (await notes.get_note(OWNER, second)).tags == []
    assert (await notes.get_note(OWNER, third)).tags == ["y"]
    assert (await tag_index.get_tag_index(OWNER)).tags == ["y"]


@pytest.mark.asyncio
async def test_delete_tag_is_one_commit(store, notes, tag_index):
    for i in range(3):
        await notes.create_note(OWNER, f"note {i}", ["gone"])
    before = store.commit_count
    await tag_index.delete_tag_globally(OWNER, "gone")
    assert store.commit_count == before + 1


@pytest.mark.asyncio
async def test_delete_tag_only_touches_owner(notes, tag_index):
    await notes.create_note(OWNER, "mine", ["shared"])
    theirs = await notes.create_note(OTHER_OWNER, "theirs", ["shared"])

    await tag_index.delete_tag_globally(OWNER, "shared")

    assert (await notes.get_note(OTHER_OWNER, theirs)).tags == ["shared"]
    assert (await tag_index.get_tag_index(OTHER_OWNER)).tags == ["shared"]


@pytest.mark.asyncio
async def test_delete_unknown_tag_touches_no_notes(notes, tag_index):
    await notes.create_note(OWNER, "note", ["a"])
    assert await tag_index.delete_tag_globally(OWNER, "zzz") == 0
    assert (await tag_index.get_tag_index(OWNER)).tags == ["a"]


@pytest.mark.asyncio
async def test_delete_empty_tag_rejected(store, tag_index):
    with pytest.raises(ValidationError):
        await tag_index.delete_tag_globally(OWNER, "  ")
    assert store.commit_count == 0


async def _state(store):
    return {path: snap.data for path in list(store._docs) if (snap := await store.get(path))}


@pytest.mark.asyncio
async def test_failed_lookup_changes_nothing(store, notes, tag_index):
    await notes.create_note(OWNER, "one", ["x"])
    before = await _state(store)

    store.fail_next_query()
    with pytest.raises(StoreError):
        await tag_index.delete_tag_globally(OWNER, "x")
    assert await _state(store) == before


@pytest.mark.asyncio
async def test_failed_commit_changes_nothing(store, notes, tag_index):
    await notes.create_note(OWNER, "one", ["x"])
    await notes.create_note(OWNER, "two", ["x", "y"])
    before = await _state(store)

    store.fail_next_commit()
    with pytest.raises(StoreError):
        await tag_index.delete_tag_globally(OWNER, "x")
    assert await _state(store) == before


@pytest.mark.asyncio
async def test_note_vanishing_mid_cascade_aborts_whole_batch(store, notes, tag_index):
    keep = await notes.create_note(OWNER, "one", ["x"])
    vanish = await notes.create_note(OWNER, "two", ["x"])

    real_query = store.query

    async def query_then_delete(query):
        result = await real_query(query)
        store._docs.pop(note_path(OWNER, vanish))
        return result

    store.query = query_then_delete
    with pytest.raises(NotFoundError):
        await tag_index.delete_tag_globally(OWNER, "x")

    assert (await notes.get_note(OWNER, keep)).tags == ["x"]
    assert (await tag_index.get_tag_index(OWNER)).tags == ["x"]


@pytest.mark.asyncio
async def test_rebuild_unions_note_tags(store, notes, tag_index):
    await notes.create_note(OWNER, "one", ["a"])
    # Written behind the service's back
    await store.set(note_path(OWNER, "raw"), {"content": "raw", "tagList": ["B", "c"]})
    await store.set(tag_index_path(OWNER), {"list": ["a", "old"]})

    index = await tag_index.rebuild_tag_index(OWNER)
    assert index.sorted_tags() == ["a", "b", "c", "old"]


@pytest.mark.asyncio
async def test_live_index(tag_index):
    live = tag_index.subscribe(OWNER)
    assert (await next_snapshot(live)).tags == []
    await tag_index.add_tags(OWNER, ["z", "a"])
    assert (await next_snapshot(live)).sorted_tags() == ["a", "z"]
    live.close()
