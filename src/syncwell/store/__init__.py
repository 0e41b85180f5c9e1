"""Remote store adapters and the URL-based store factory"""

from collections.abc import Callable
from urllib.parse import SplitResult, urlsplit

from ..exceptions import StoreConfigurationError
from ..state import _STORE_SCHEMES
from .base import RemoteStore
from .file import FileStore
from .memory import MemoryStore


def register_store_scheme(scheme: str, factory: Callable[[SplitResult], RemoteStore]) -> None:
    """Make ``open_store`` build stores for URLs starting with ``scheme:``.

    Args:
        scheme: URL scheme, matched case-insensitively.
        factory: Callable receiving the parsed URL and returning a store.
    """
    _STORE_SCHEMES[scheme.lower()] = factory


def open_store(url: str) -> RemoteStore:
    """Build a store from a URL.

    Examples:
        >>> open_store("memory://")
        MemoryStore(keys=0)
        >>> open_store("file:./data")
        FileStore('data')
    """
    parts = urlsplit(url)
    if not parts.scheme:
        raise StoreConfigurationError(url, "missing URL scheme")
    factory = _STORE_SCHEMES.get(parts.scheme.lower())
    if factory is None:
        raise StoreConfigurationError(url, f"unknown scheme '{parts.scheme}'")
    return factory(parts)


def _file_store(parts: SplitResult) -> FileStore:
    path = parts.netloc + parts.path
    if not path:
        raise StoreConfigurationError(parts.geturl(), "file store needs a directory path")
    return FileStore(path)


register_store_scheme("memory", lambda parts: MemoryStore())
register_store_scheme("file", _file_store)


__all__ = [
    "RemoteStore",
    "MemoryStore",
    "FileStore",
    "open_store",
    "register_store_scheme",
]
