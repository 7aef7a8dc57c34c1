from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Generic, Literal, TypeVar
from uuid import uuid4

from scrappr.core.errors import StoreError
from scrappr.utils.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

logger = get_logger(__name__)

T = TypeVar("T")


class _ServerTimestamp:
    """Sentinel replaced by the store's own clock when the write commits."""

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()


@dataclass(frozen=True)
class ArrayUnion:
    """Field transform: add values missing from the stored array."""

    values: tuple[Any, ...]

    def __init__(self, values: Sequence[Any]) -> None:
        object.__setattr__(self, "values", tuple(values))


@dataclass(frozen=True)
class ArrayRemove:
    """Field transform: drop every occurrence of values from the stored array."""

    values: tuple[Any, ...]

    def __init__(self, values: Sequence[Any]) -> None:
        object.__setattr__(self, "values", tuple(values))


@dataclass(frozen=True)
class DocumentSnapshot:
    path: str
    data: dict[str, Any]

    @property
    def id(self) -> str:
        return self.path.rsplit("/", 1)[-1]

    @property
    def parent(self) -> str:
        return self.path.rsplit("/", 1)[0]


@dataclass(frozen=True)
class FieldFilter:
    field: str
    op: Literal["==", "array-contains"]
    value: Any

    def matches(self, data: dict[str, Any]) -> bool:
        current = data.get(self.field)
        if self.op == "==":
            return current == self.value
        return isinstance(current, list) and self.value in current


@dataclass(frozen=True)
class Query:
    """Documents directly under ``collection``, optionally filtered and ordered."""

    collection: str
    filters: tuple[FieldFilter, ...] = ()
    order_by: str | None = None
    descending: bool = False

    def where(self, field_name: str, op: Literal["==", "array-contains"], value: Any) -> Query:
        return Query(
            self.collection,
            (*self.filters, FieldFilter(field_name, op, value)),
            self.order_by,
            self.descending,
        )

    def order(self, field_name: str, *, descending: bool = False) -> Query:
        return Query(self.collection, self.filters, field_name, descending)


@dataclass(frozen=True)
class WriteOp:
    kind: Literal["set", "update", "delete"]
    path: str
    data: dict[str, Any] = field(default_factory=dict)
    merge: bool = False


class WriteBatch:
    """Collects writes and commits them through the store as one unit."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store
        self._ops: list[WriteOp] = []
        self._committed = False

    @property
    def ops(self) -> list[WriteOp]:
        return list(self._ops)

    def set(self, path: str, data: dict[str, Any], *, merge: bool = False) -> WriteBatch:
        self._ops.append(WriteOp("set", path, dict(data), merge))
        return self

    def update(self, path: str, data: dict[str, Any]) -> WriteBatch:
        self._ops.append(WriteOp("update", path, dict(data)))
        return self

    def delete(self, path: str) -> WriteBatch:
        self._ops.append(WriteOp("delete", path))
        return self

    def __len__(self) -> int:
        return len(self._ops)

    async def commit(self) -> None:
        if self._committed:
            raise StoreError("Batch already committed", code="failed-precondition")
        self._committed = True
        if not self._ops:
            return
        await self._store.commit(self._ops)


class ListenerRegistration(ABC):
    """Handle returned by a snapshot subscription."""

    @abstractmethod
    def remove(self) -> None:  # pragma: no cover - interface only
        """Stop the listener. No callback runs after this returns."""


class DocumentStore(ABC):
    """Remote document database contract.

    Implementations perform I/O and therefore expose async methods. Every
    write goes through :meth:`commit`, which applies a list of writes as a
    single all-or-nothing unit.
    """

    def new_id(self) -> str:
        """Client generated identifier for a document about to be written."""
        return uuid4().hex

    @abstractmethod
    async def get(self, path: str) -> DocumentSnapshot | None:  # pragma: no cover
        """Fetch a document or return None if it does not exist."""

    @abstractmethod
    async def query(self, query: Query) -> list[DocumentSnapshot]:  # pragma: no cover
        """Run a one-shot query."""

    @abstractmethod
    async def commit(self, ops: Sequence[WriteOp]) -> None:  # pragma: no cover
        """Apply every write or none of them.

        Raises:
            StoreError: on any failure; no write is visible afterwards
        """

    @abstractmethod
    def on_snapshot(
        self,
        query: Query,
        on_next: Callable[[list[DocumentSnapshot]], None],
        on_error: Callable[[StoreError], None] | None = None,
    ) -> ListenerRegistration:  # pragma: no cover
        """Deliver the query result now and after every change to it."""

    @abstractmethod
    def on_document_snapshot(
        self,
        path: str,
        on_next: Callable[[DocumentSnapshot | None], None],
        on_error: Callable[[StoreError], None] | None = None,
    ) -> ListenerRegistration:  # pragma: no cover
        """Deliver the document (None while missing) now and after every change."""

    def batch(self) -> WriteBatch:
        return WriteBatch(self)

    async def set(self, path: str, data: dict[str, Any], *, merge: bool = False) -> None:
        await self.commit([WriteOp("set", path, dict(data), merge)])

    async def update(self, path: str, data: dict[str, Any]) -> None:
        await self.commit([WriteOp("update", path, dict(data))])

    async def delete(self, path: str) -> None:
        await self.commit([WriteOp("delete", path)])


class LiveSnapshots(Generic[T]):
    """Async iterator over the snapshots of one store subscription.

    The sequence never ends on its own: it yields until :meth:`close` is
    called. A subscription error is logged and stalls the sequence, so the
    last snapshot a consumer received stays its working state.
    """

    _CLOSED = object()

    def __init__(
        self,
        subscribe: Callable[[Callable[[Any], None], Callable[[StoreError], None]], ListenerRegistration],
        transform: Callable[[Any], T],
        *,
        name: str = "subscription",
    ) -> None:
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self._transform = transform
        self._name = name
        self._closed = False
        self.last_error: StoreError | None = None
        self._registration = subscribe(self._on_next, self._on_error)

    def _on_next(self, raw: Any) -> None:
        if self._closed:
            return
        self._queue.put_nowait(self._transform(raw))

    def _on_error(self, err: StoreError) -> None:
        self.last_error = err
        logger.warning("Live %s stalled: %s", self._name, err, extra={"code": err.code})

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._registration.remove()
        self._queue.put_nowait(self._CLOSED)

    def __aiter__(self) -> LiveSnapshots[T]:
        return self

    async def __anext__(self) -> T:
        if self._closed and self._queue.empty():
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is self._CLOSED:
            raise StopAsyncIteration
        if self._closed:
            # Drop anything queued before close()
            raise StopAsyncIteration
        return item

    async def __aenter__(self) -> LiveSnapshots[T]:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()
