from __future__ import annotations

import asyncio
import copy
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

from scrappr.core.errors import NotFoundError, StoreError
from scrappr.core.repositories.document_store import (
    SERVER_TIMESTAMP,
    ArrayRemove,
    ArrayUnion,
    DocumentSnapshot,
    DocumentStore,
    ListenerRegistration,
    Query,
)
from scrappr.utils.logging import get_logger

logger = get_logger(__name__)

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from scrappr.core.repositories.document_store import WriteOp


class _Listener(ListenerRegistration):
    def __init__(
        self,
        store: MemoryDocumentStore,
        *,
        query: Query | None,
        path: str | None,
        on_next: Callable[[Any], None],
        on_error: Callable[[StoreError], None] | None,
    ) -> None:
        self._store = store
        self.query = query
        self.path = path
        self._on_next = on_next
        self._on_error = on_error
        self.active = True
        self.stalled = False

    def watches(self, changed: set[str]) -> bool:
        if self.path is not None:
            return self.path in changed
        return any(p.rsplit("/", 1)[0] == self.query.collection for p in changed)

    def snapshot(self) -> Any:
        if self.path is not None:
            return self._store._read(self.path)
        return self._store._run_query(self.query)

    def deliver(self, payload: Any) -> None:
        # Checked at delivery time so nothing fires after remove()
        if self.active and not self.stalled:
            self._on_next(payload)

    def fail(self, err: StoreError) -> None:
        if not self.active or self.stalled:
            return
        self.stalled = True
        if self._on_error is not None:
            self._on_error(err)

    def remove(self) -> None:
        self.active = False
        self._store._listeners.discard(self)


class MemoryDocumentStore(DocumentStore):
    """In-process document store.

    Used for tests and local development. Batches are applied to a staged
    copy and swapped in only when every write succeeded, so a failing batch
    leaves nothing behind. Snapshot callbacks are scheduled on the running
    event loop, never invoked from inside a write.
    """

    def __init__(self) -> None:
        self._docs: dict[str, dict[str, Any]] = {}
        self._listeners: set[_Listener] = set()
        self._last_server_time: datetime | None = None
        self._commit_error: StoreError | None = None
        self._query_error: StoreError | None = None
        self.commit_count = 0

    # -- failure injection -------------------------------------------------

    def fail_next_commit(self, error: StoreError | None = None) -> None:
        self._commit_error = error or StoreError("Injected commit failure")

    def fail_next_query(self, error: StoreError | None = None) -> None:
        self._query_error = error or StoreError("Injected query failure")

    def break_subscriptions(self, error: StoreError | None = None) -> None:
        """Fail every live listener; they deliver nothing more."""
        err = error or StoreError("Injected subscription failure")
        for listener in list(self._listeners):
            listener.fail(err)

    # -- reads ---------------------------------------------------------------

    async def get(self, path: str) -> DocumentSnapshot | None:
        await asyncio.sleep(0)
        return self._read(path)

    async def query(self, query: Query) -> list[DocumentSnapshot]:
        await asyncio.sleep(0)
        if self._query_error is not None:
            err, self._query_error = self._query_error, None
            raise err
        return self._run_query(query)

    def _read(self, path: str) -> DocumentSnapshot | None:
        data = self._docs.get(path)
        if data is None:
            return None
        return DocumentSnapshot(path, copy.deepcopy(data))

    def _run_query(self, query: Query) -> list[DocumentSnapshot]:
        matches = [
            DocumentSnapshot(path, copy.deepcopy(data))
            for path, data in self._docs.items()
            if path.rsplit("/", 1)[0] == query.collection
            and all(f.matches(data) for f in query.filters)
        ]
        if query.order_by is not None:
            # Documents without the ordering field are not part of an ordered query
            matches = [m for m in matches if m.data.get(query.order_by) is not None]
            matches.sort(key=lambda m: m.data[query.order_by], reverse=query.descending)
        return matches

    # -- writes --------------------------------------------------------------

    async def commit(self, ops: Sequence[WriteOp]) -> None:
        await asyncio.sleep(0)
        if self._commit_error is not None:
            err, self._commit_error = self._commit_error, None
            logger.warning("Batch of %d writes rejected: %s", len(ops), err)
            raise err

        now = self._server_time()
        staged = dict(self._docs)
        for op in ops:
            if op.kind == "delete":
                staged.pop(op.path, None)
            elif op.kind == "update":
                if op.path not in staged:
                    raise NotFoundError(f"No document to update: {op.path}")
                staged[op.path] = _apply_fields(staged[op.path], op.data, now)
            else:
                base = staged.get(op.path, {}) if op.merge else {}
                staged[op.path] = _apply_fields(base, op.data, now)

        self._docs = staged
        self.commit_count += 1
        logger.debug("Committed batch of %d writes", len(ops))
        self._notify({op.path for op in ops})

    def _server_time(self) -> datetime:
        now = datetime.now(UTC)
        if self._last_server_time is not None and now <= self._last_server_time:
            now = self._last_server_time + timedelta(microseconds=1)
        self._last_server_time = now
        return now

    # -- subscriptions -------------------------------------------------------

    def on_snapshot(
        self,
        query: Query,
        on_next: Callable[[list[DocumentSnapshot]], None],
        on_error: Callable[[StoreError], None] | None = None,
    ) -> ListenerRegistration:
        return self._listen(_Listener(self, query=query, path=None, on_next=on_next, on_error=on_error))

    def on_document_snapshot(
        self,
        path: str,
        on_next: Callable[[DocumentSnapshot | None], None],
        on_error: Callable[[StoreError], None] | None = None,
    ) -> ListenerRegistration:
        return self._listen(_Listener(self, query=None, path=path, on_next=on_next, on_error=on_error))

    def _listen(self, listener: _Listener) -> _Listener:
        loop = asyncio.get_running_loop()
        self._listeners.add(listener)
        loop.call_soon(listener.deliver, listener.snapshot())
        return listener

    def _notify(self, changed: set[str]) -> None:
        if not self._listeners:
            return
        loop = asyncio.get_running_loop()
        for listener in list(self._listeners):
            if listener.watches(changed):
                # Point-in-time snapshot, delivered on the next loop iteration
                loop.call_soon(listener.deliver, listener.snapshot())


def _apply_fields(existing: dict[str, Any], data: dict[str, Any], now: datetime) -> dict[str, Any]:
    result = dict(existing)
    for key, value in data.items():
        if value is SERVER_TIMESTAMP:
            result[key] = now
        elif isinstance(value, ArrayUnion):
            current = list(result.get(key) or []) if isinstance(result.get(key), list) else []
            for item in value.values:
                if item not in current:
                    current.append(item)
            result[key] = current
        elif isinstance(value, ArrayRemove):
            current = result.get(key) if isinstance(result.get(key), list) else []
            result[key] = [v for v in current if v not in value.values]
        else:
            result[key] = copy.deepcopy(value)
    return result
