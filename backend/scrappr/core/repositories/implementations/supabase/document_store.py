from __future__ import annotations

import asyncio
import json
from datetime import datetime
from typing import TYPE_CHECKING, Any
from uuid import uuid4

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
    from collections.abc import Awaitable, Callable, Sequence

    from supabase import AsyncClient, Client

    from scrappr.core.repositories.document_store import WriteOp


# Postgres "no_data_found", raised by commit_batch for an update without a row
NOT_FOUND_SQLSTATE = "P0002"


class SupabaseDocumentStore(DocumentStore):
    """Supabase implementation of the DocumentStore.

    Documents live in one table (``path``, ``parent``, ``owner``, ``data``
    jsonb, ``created_at``). Every write goes through the ``commit_batch``
    Postgres function, which applies the whole list in one transaction and
    resolves the field transforms server side. Reads use PostgREST; live
    subscriptions use Supabase Realtime ``postgres_changes`` and re-run the
    query on each change.
    """

    COMMIT_RPC = "commit_batch"
    ORDER_COLUMNS = {"createdAt": "created_at"}

    def __init__(
        self,
        client: Client,
        *,
        realtime: AsyncClient | None = None,
        table: str = "documents",
    ) -> None:
        self._client: Client = client
        self._realtime = realtime
        self._table = table

    async def get(self, path: str) -> DocumentSnapshot | None:
        resp = await self._run(
            lambda: self._client.table(self._table)
            .select("path,data")
            .eq("path", path)
            .limit(1)
            .execute()
        )
        items = resp.data or []
        if not items:
            return None
        return self._row_to_snapshot(items[0])

    async def query(self, query: Query) -> list[DocumentSnapshot]:
        def _query():
            q = self._client.table(self._table).select("path,data").eq("parent", query.collection)
            for f in query.filters:
                if f.op == "array-contains":
                    q = q.filter(f"data->{f.field}", "cs", json.dumps([f.value]))
                else:
                    q = q.eq(f"data->>{f.field}", str(f.value))
            if query.order_by is not None:
                column = self.ORDER_COLUMNS.get(query.order_by, f"data->>{query.order_by}")
                q = q.order(column, desc=query.descending)
            return q.execute()

        resp = await self._run(_query)
        return [self._row_to_snapshot(r) for r in (resp.data or [])]

    async def commit(self, ops: Sequence[WriteOp]) -> None:
        writes = [self._op_to_write(op) for op in ops]
        await self._run(lambda: self._client.rpc(self.COMMIT_RPC, {"writes": writes}).execute())
        logger.debug("Committed batch of %d writes", len(writes))

    def on_snapshot(
        self,
        query: Query,
        on_next: Callable[[list[DocumentSnapshot]], None],
        on_error: Callable[[StoreError], None] | None = None,
    ) -> ListenerRegistration:
        return self._listen(f"parent=eq.{query.collection}", lambda: self.query(query), on_next, on_error)

    def on_document_snapshot(
        self,
        path: str,
        on_next: Callable[[DocumentSnapshot | None], None],
        on_error: Callable[[StoreError], None] | None = None,
    ) -> ListenerRegistration:
        return self._listen(f"path=eq.{path}", lambda: self.get(path), on_next, on_error)

    def _listen(
        self,
        row_filter: str,
        fetch: Callable[[], Awaitable[Any]],
        on_next: Callable[[Any], None],
        on_error: Callable[[StoreError], None] | None,
    ) -> ListenerRegistration:
        if self._realtime is None:
            raise StoreError("Realtime client is not configured", code="failed-precondition")
        registration = _RealtimeListener(self._realtime, fetch, on_next, on_error)
        registration.start(self._table, row_filter)
        return registration

    @staticmethod
    async def _run(func: Callable[[], Any]) -> Any:
        try:
            return await asyncio.to_thread(func)
        except StoreError:
            raise
        except Exception as err:
            code = getattr(err, "code", None)
            message = getattr(err, "message", None) or str(err)
            logger.warning(
                "Supabase request failed",
                extra={"error_type": type(err).__name__, "code": code},
            )
            if code == NOT_FOUND_SQLSTATE:
                raise NotFoundError(message) from err
            raise StoreError(message) from err

    @staticmethod
    def _row_to_snapshot(row: dict[str, Any]) -> DocumentSnapshot:
        return DocumentSnapshot(row["path"], dict(row.get("data") or {}))

    @staticmethod
    def _op_to_write(op: WriteOp) -> dict[str, Any]:
        parent, _, _ = op.path.rpartition("/")
        parts = op.path.split("/")
        return {
            "op": op.kind,
            "path": op.path,
            "parent": parent,
            "owner": parts[1] if len(parts) > 1 and parts[0] == "users" else None,
            "merge": op.merge,
            "data": {k: _encode_value(v) for k, v in op.data.items()},
        }


class _RealtimeListener(ListenerRegistration):
    """One Realtime channel feeding one snapshot callback."""

    def __init__(
        self,
        client: AsyncClient,
        fetch: Callable[[], Awaitable[Any]],
        on_next: Callable[[Any], None],
        on_error: Callable[[StoreError], None] | None,
    ) -> None:
        self._client = client
        self._fetch = fetch
        self._on_next = on_next
        self._on_error = on_error
        self._loop = asyncio.get_running_loop()
        self._tasks: set[asyncio.Task[Any]] = set()
        self._refresh_lock = asyncio.Lock()
        self._channel: Any = None
        self.active = True
        self.stalled = False

    def start(self, table: str, row_filter: str) -> None:
        self._spawn(self._open(table, row_filter))

    def _spawn(self, coro: Awaitable[Any]) -> None:
        task = self._loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _open(self, table: str, row_filter: str) -> None:
        try:
            channel = self._client.channel(f"{table}:{uuid4().hex}")
            channel.on_postgres_changes(
                "*",
                schema="public",
                table=table,
                filter=row_filter,
                callback=self._on_change,
            )
            await channel.subscribe()
        except Exception as err:
            self._fail(StoreError(f"Realtime subscription failed: {err}"))
            return
        self._channel = channel
        if not self.active:
            await self._client.remove_channel(channel)
            return
        await self._refresh()

    def _on_change(self, payload: Any) -> None:
        _ = payload  # the changed row is re-read through the query
        self._loop.call_soon_threadsafe(self._schedule_refresh)

    def _schedule_refresh(self) -> None:
        if self.active and not self.stalled:
            self._spawn(self._refresh())

    async def _refresh(self) -> None:
        async with self._refresh_lock:
            try:
                result = await self._fetch()
            except StoreError as err:
                self._fail(err)
                return
            if self.active and not self.stalled:
                self._on_next(result)

    def _fail(self, err: StoreError) -> None:
        if not self.active or self.stalled:
            return
        self.stalled = True
        if self._on_error is not None:
            self._on_error(err)

    def remove(self) -> None:
        if not self.active:
            return
        self.active = False
        for task in list(self._tasks):
            task.cancel()
        if self._channel is not None:
            self._spawn(self._client.remove_channel(self._channel))


def _encode_value(value: Any) -> Any:
    if value is SERVER_TIMESTAMP:
        return {"__transform": "serverTimestamp"}
    if isinstance(value, ArrayUnion):
        return {"__transform": "arrayUnion", "values": list(value.values)}
    if isinstance(value, ArrayRemove):
        return {"__transform": "arrayRemove", "values": list(value.values)}
    if isinstance(value, datetime):
        return value.isoformat()
    return value
