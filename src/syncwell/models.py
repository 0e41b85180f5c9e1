import logging
from typing import Any, ClassVar, Self

from pydantic import BaseModel, ConfigDict, PrivateAttr

from .base import SyncedField
from .exceptions import StoreNotConnectedError
from .metaclass import SyncedModelMetaclass
from .properties import SyncedProperty
from .queue import PendingWrite, PendingWriteQueue
from .state import _ACTIVE_TRANSACTIONS, _ENGINE
from .store.base import RemoteStore
from .transactions import current_transaction

logger = logging.getLogger(__name__)


class SyncedModel(BaseModel, metaclass=SyncedModelMetaclass):
    """
    Base class for objects whose fields live in a remote store.

    Ordinary annotated fields behave like any Pydantic field. Fields declared
    with ``SyncedField`` are loaded lazily from the store, cached per
    instance, and written back only when ``flush()`` runs, usually from a
    ``@transactional`` method.

    Copies (``copy.copy``, ``model_copy``) start with an empty cache and an
    empty write queue and keep the original's store binding.

    Example:
        >>> class Person(SyncedModel):
        ...     name: Annotated[str | None, SyncedField()]
        ...
        ...     @transactional
        ...     async def rename(self, name: str) -> None:
        ...         self.name.write(name)
    """

    model_config = ConfigDict(use_attribute_docstrings=True)

    synced_fields: ClassVar[dict[str, SyncedField]] = {}

    _pending: PendingWriteQueue = PrivateAttr(default_factory=PendingWriteQueue)
    _properties: dict[str, SyncedProperty] = PrivateAttr(default_factory=dict)
    _store: RemoteStore | None = PrivateAttr(default=None)

    def bind(self, store: RemoteStore) -> Self:
        """Use ``store`` for this instance instead of the connected default."""
        self._store = store
        return self

    @property
    def store(self) -> RemoteStore:
        """The store this instance reads from and flushes to."""
        store = self._store if self._store is not None else _ENGINE["store"]
        if store is None:
            raise StoreNotConnectedError(self.__class__.__name__)
        return store

    @property
    def pending_writes(self) -> tuple[PendingWrite, ...]:
        """Writes buffered on this instance and not yet flushed."""
        return self._pending.snapshot()

    def __copy__(self) -> Self:
        copied = super().__copy__()
        copied._pending = PendingWriteQueue()
        copied._properties = {}
        return copied

    def __deepcopy__(self, memo: dict[int, Any] | None = None) -> Self:
        # Fresh sync state for the copy; the store binding is shared.
        memo = {} if memo is None else memo
        memo[id(self._pending)] = PendingWriteQueue()
        memo[id(self._properties)] = {}
        if self._store is not None:
            memo[id(self._store)] = self._store
        return super().__deepcopy__(memo)

    def _synced_property(self, field_name: str) -> SyncedProperty:
        prop = self._properties.get(field_name)
        if prop is None:
            metadata = self.__class__.synced_fields[field_name]
            prop = SyncedProperty(
                metadata.resolve_key(self), self._pending, lambda: self.store
            )
            self._properties[field_name] = prop
        return prop

    async def flush(self) -> int:
        """
        Apply this instance's buffered writes to the store, in write order.

        Writes owned by other transactions that are still running (an
        enclosing transaction included) stay queued for their own commit.
        Whether a write belongs to a running transaction is decided once the
        queue lock is held.
        Applying a write also retires older queued writes to the same key,
        whichever transaction made them.

        Returns:
            int: Number of writes applied.

        Raises:
            FlushError: If the store rejects a write. Writes after it stay
                queued.
        """
        txn = current_transaction()
        own_id = txn.id if txn is not None else None

        def owned_elsewhere(write: PendingWrite) -> bool:
            return (
                write.transaction_id != own_id
                and write.transaction_id in _ACTIVE_TRANSACTIONS
            )

        if all(owned_elsewhere(w) for w in self._pending):
            return 0

        applied = await self._pending.flush(self.store, skip=owned_elsewhere)
        logger.debug(
            "%s: flushed %d write(s), %d still pending",
            self.__class__.__name__,
            applied,
            len(self._pending),
        )
        return applied

    def __repr_args__(self):
        yield from super().__repr_args__()
        for field_name in self.__class__.synced_fields:
            prop = self._properties.get(field_name)
            if prop is not None and prop.is_cached:
                yield field_name, prop.peek()

