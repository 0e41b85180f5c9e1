import asyncio
import logging
from collections.abc import Callable
from typing import Any, Generic, TypeVar

from .base import SyncedField
from .queue import PendingWrite, PendingWriteQueue
from .state import _CURRENT_TRANSACTION
from .store.base import RemoteStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

_MISSING: Any = object()


class SyncedProperty(Generic[T]):
    """Lazy cache and write buffer for one store key.

    ``read()`` fetches the key the first time and memoizes the outcome, a
    ``None`` (absent) outcome included. ``write()`` updates the cache at once
    and queues the store write for the next flush, so the owner always reads
    its own writes.

    Concurrent reads of a cold property share a single fetch. A write made
    while that fetch is in flight takes precedence over the fetched value.
    """

    def __init__(
        self,
        key: str,
        queue: PendingWriteQueue,
        store: Callable[[], RemoteStore],
    ):
        self.key = key
        self._queue = queue
        self._store = store
        self._value: Any = _MISSING
        self._inflight: asyncio.Future | None = None

    @property
    def is_cached(self) -> bool:
        return self._value is not _MISSING

    def peek(self, default: Any = None) -> T | None:
        """Return the cached value without touching the store."""
        return default if self._value is _MISSING else self._value

    async def read(self) -> T | None:
        if self._value is not _MISSING:
            return self._value

        if self._inflight is None:
            self._inflight = asyncio.ensure_future(self._fetch())
        return await asyncio.shield(self._inflight)

    async def _fetch(self) -> T | None:
        txn = _CURRENT_TRANSACTION.get()
        logger.debug(
            "fetching %s (%s)",
            self.key,
            f"transaction {txn.id}" if txn else "no transaction",
        )
        try:
            value = await self._store().fetch(self.key)
        finally:
            self._inflight = None

        # a write landed while the fetch was in flight
        if self._value is _MISSING:
            self._value = value
        return self._value

    def write(self, value: T) -> None:
        txn = _CURRENT_TRANSACTION.get()
        self._value = value
        self._queue.append(
            PendingWrite(self.key, value, transaction_id=txn.id if txn else None)
        )
        logger.debug(
            "buffered %s = %r (%s)",
            self.key,
            value,
            f"transaction {txn.id}" if txn else "no transaction",
        )

    def __await__(self):
        return self.read().__await__()

    def __repr__(self) -> str:
        state = repr(self._value) if self.is_cached else "<not loaded>"
        return f"SyncedProperty(key={self.key!r}, value={state})"


class SyncedDescriptor:
    """Class attribute that hands out an instance's SyncedProperty for a field."""

    def __init__(self, field_name: str, metadata: SyncedField):
        self.field_name = field_name
        self.metadata = metadata

    def __get__(self, instance, owner):
        if instance is None:
            return self
        return instance._synced_property(self.field_name)

    def __repr__(self) -> str:
        return f"SyncedDescriptor({self.field_name!r}, key={self.metadata.key!r})"
