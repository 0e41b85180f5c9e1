"""Buffer deferred writes until a transaction commits them"""

import asyncio
import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from .exceptions import FlushError
from .store.base import RemoteStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class PendingWrite:
    """One buffered write, closed over its key and value at write time.

    Attributes:
        key: Store key the value goes to.
        value: Value captured when the field was written.
        transaction_id: Id of the transaction that made the write, if any.
        enqueued_at: When the write was buffered.
    """

    key: str
    value: Any
    transaction_id: str | None = None
    enqueued_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    async def apply(self, store: RemoteStore) -> None:
        await store.put(self.key, self.value)


class PendingWriteQueue:
    """Ordered writes waiting for a flush.

    Every write is kept, including repeated writes to the same key. A flush
    applies them one at a time in the order they were queued, and removes
    each one, along with any older write to the same key, as soon as the
    store accepts it.
    """

    def __init__(self):
        self._entries: list[PendingWrite] = []
        self._lock = asyncio.Lock()

    def append(self, write: PendingWrite) -> None:
        self._entries.append(write)

    def snapshot(self) -> tuple[PendingWrite, ...]:
        return tuple(self._entries)

    def keys(self) -> list[str]:
        """Return the key of every queued write, in queue order."""
        return [write.key for write in self._entries]

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[PendingWrite]:
        return iter(tuple(self._entries))

    def __repr__(self) -> str:
        return f"PendingWriteQueue({self.keys()!r})"

    async def flush(
        self, store: RemoteStore, skip: Callable[[PendingWrite], bool] | None = None
    ) -> int:
        """Apply queued writes to ``store`` in queue order.

        Applying a write to a key also drops every earlier write to that key
        still in the queue, skipped or not, so the store never goes back to
        an older value.

        Args:
            store: Store receiving the writes.
            skip: Predicate for writes that must stay queued. It is evaluated
                once the flush holds the queue lock.

        Returns:
            int: Number of writes applied.

        Raises:
            FlushError: A write failed. Writes before it were applied and
                removed; it and every later write are still queued.
        """
        async with self._lock:
            batch = [w for w in self._entries if skip is None or not skip(w)]
            logger.debug("flush: applying %d of %d pending write(s)", len(batch), len(self._entries))

            for applied, write in enumerate(batch):
                try:
                    await write.apply(store)
                except Exception as e:
                    remaining = len(batch) - applied
                    logger.warning(
                        "flush: write to '%s' failed, %d write(s) left pending: %s",
                        write.key,
                        remaining,
                        e,
                    )
                    raise FlushError(write.key, applied, remaining, e) from e
                self._discard_through(write)

            return len(batch)

    def _discard_through(self, write: PendingWrite) -> None:
        position = next(i for i, w in enumerate(self._entries) if w is write)
        superseded = [
            w for w in self._entries[:position] if w.key == write.key
        ]
        if superseded:
            logger.debug(
                "flush: dropping %d superseded write(s) to '%s'",
                len(superseded),
                write.key,
            )
        self._entries = [
            w
            for i, w in enumerate(self._entries)
            if i > position or (i < position and w.key != write.key)
        ]
