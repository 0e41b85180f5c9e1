from contextvars import ContextVar
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .store.base import RemoteStore
    from .transactions import TransactionContext

# Context variable to store the active transaction for the current task
_CURRENT_TRANSACTION: "ContextVar[TransactionContext | None]" = ContextVar(
    "current_transaction", default=None
)

# Transactions currently running in this process, keyed by id
_ACTIVE_TRANSACTIONS: "dict[str, TransactionContext]" = {}

# Default store installed by connect()
_ENGINE: "dict[str, RemoteStore | None]" = {"store": None}

# Store URL schemes -> factories taking the parsed URL
_STORE_SCHEMES: dict[str, Any] = {}
