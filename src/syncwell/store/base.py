"""Define the interface syncwell expects from a remote key-value store"""

from abc import ABC, abstractmethod
from typing import Any


class RemoteStore(ABC):
    """Key-addressed storage backing synchronized fields.

    A store is a capability, not a protocol: syncwell only ever asks it to
    fetch one key or put one key. Durability, consistency and atomicity are
    whatever the concrete store provides.
    """

    async def open(self) -> None:
        """Prepare the store for use. Called by ``connect``."""

    async def close(self) -> None:
        """Release resources held by the store."""

    @abstractmethod
    async def fetch(self, key: str) -> Any | None:
        """Return the value stored under ``key``, or None if it is absent."""

    @abstractmethod
    async def put(self, key: str, value: Any) -> None:
        """Store ``value`` under ``key``. Raise on failure."""
