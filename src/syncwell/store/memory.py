import asyncio
import copy
import logging
from typing import Any

from .base import RemoteStore

logger = logging.getLogger(__name__)


class MemoryStore(RemoteStore):
    """In-process store backed by a dict.

    Values are deep-copied in both directions, so mutating a value read from
    the store does not change what the store holds.

    Attributes:
        latency: Seconds awaited before every fetch and put.
        fetch_count: Number of fetch calls served.
        put_count: Number of put calls served.
    """

    def __init__(self, data: dict[str, Any] | None = None, latency: float = 0.0):
        self._data: dict[str, Any] = copy.deepcopy(data) if data else {}
        self.latency = latency
        self.fetch_count = 0
        self.put_count = 0

    async def fetch(self, key: str) -> Any | None:
        if self.latency:
            await asyncio.sleep(self.latency)
        self.fetch_count += 1
        value = copy.deepcopy(self._data.get(key))
        logger.debug("fetch %s = %r", key, value)
        return value

    async def put(self, key: str, value: Any) -> None:
        if self.latency:
            await asyncio.sleep(self.latency)
        self.put_count += 1
        self._data[key] = copy.deepcopy(value)
        logger.debug("put %s = %r", key, value)

    def snapshot(self) -> dict[str, Any]:
        """Return a copy of everything the store holds."""
        return copy.deepcopy(self._data)

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def __repr__(self) -> str:
        return f"MemoryStore(keys={len(self._data)})"
