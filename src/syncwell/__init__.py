"""
syncwell: transaction-scoped synchronization between objects and a remote store.

Fields declared with ``SyncedField`` are fetched lazily, cached per object,
and buffered on write. A ``@transactional`` method flushes the buffered
writes when it succeeds and keeps them queued when it fails.
"""

import logging

from .base import SyncedField
from .exceptions import (
    FlushError,
    StoreConfigurationError,
    StoreError,
    StoreNotConnectedError,
    SyncError,
)
from .models import SyncedModel
from .properties import SyncedProperty
from .queue import PendingWrite, PendingWriteQueue
from .state import _ENGINE
from .store import (
    FileStore,
    MemoryStore,
    RemoteStore,
    open_store,
    register_store_scheme,
)
from .transactions import (
    Flushable,
    TransactionContext,
    TransactionStatus,
    active_transactions,
    current_transaction,
    transaction,
    transactional,
)

__version__ = "0.1.0"

# Set up the syncwell logger
_logger = logging.getLogger("syncwell")
# Only add a handler if none exists (to avoid duplicate logs)
if not _logger.handlers:
    _handler = logging.StreamHandler()
    _handler.setFormatter(logging.Formatter("%(name)s: %(levelname)s: %(message)s"))
    _logger.addHandler(_handler)
    _logger.setLevel(logging.INFO)
    # Prevent propagation to root logger to avoid duplicate messages
    _logger.propagate = False


async def connect(target: str | RemoteStore = "memory://") -> RemoteStore:
    """
    Open a store and make it the default for every synced object.

    Args:
        target: A store URL (e.g., "memory://", "file:./data") or a store instance.

    Returns:
        RemoteStore: The connected store.
    """
    store = open_store(target) if isinstance(target, str) else target
    await store.open()
    _ENGINE["store"] = store
    _logger.debug("connected to %r", store)
    return store


def get_store() -> RemoteStore:
    """Return the default store installed by ``connect``."""
    store = _ENGINE["store"]
    if store is None:
        raise StoreNotConnectedError()
    return store


def reset_engine() -> None:
    """Forget the default store."""
    _ENGINE["store"] = None


__all__ = [
    "connect",
    "get_store",
    "reset_engine",
    "SyncedModel",
    "SyncedField",
    "SyncedProperty",
    "PendingWrite",
    "PendingWriteQueue",
    "RemoteStore",
    "MemoryStore",
    "FileStore",
    "open_store",
    "register_store_scheme",
    "Flushable",
    "TransactionContext",
    "TransactionStatus",
    "active_transactions",
    "current_transaction",
    "transaction",
    "transactional",
    "SyncError",
    "StoreError",
    "StoreNotConnectedError",
    "StoreConfigurationError",
    "FlushError",
]
