"""
Exceptions raised by syncwell.

Errors coming from a store during a plain read are not wrapped; they reach
the caller unchanged. These types cover configuration mistakes, adapter I/O
and failed flushes.
"""


class SyncError(RuntimeError):
    """Base exception for all syncwell errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class StoreNotConnectedError(SyncError):
    """Raised when an object needs a store and none is bound or connected."""

    def __init__(self, owner: str | None = None):
        details = {"owner": owner} if owner else {}
        super().__init__(
            "No store available. Call 'await syncwell.connect(...)' or bind one "
            "with 'obj.bind(store)'.",
            details,
        )


class StoreConfigurationError(SyncError):
    """Raised when a store URL cannot be turned into a store."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"Cannot open store '{url}': {reason}", {"url": url})
        self.url = url


class StoreError(SyncError):
    """Raised when a store adapter fails to read or write a key."""

    def __init__(self, operation: str, key: str | None = None, cause: Exception | None = None):
        details = {"operation": operation}
        if key is not None:
            details["key"] = key
        if cause:
            details["cause"] = str(cause)
        message = f"Store operation '{operation}' failed"
        if key is not None:
            message += f" for key '{key}'"
        if cause:
            message += f": {cause}"
        super().__init__(message, details)
        self.operation = operation
        self.key = key
        self.cause = cause


class FlushError(SyncError):
    """Raised when a queued write fails to apply during a flush.

    Writes applied before the failure are gone from the queue; the failing
    write and everything queued after it are still pending.
    """

    def __init__(self, key: str, applied: int, remaining: int, cause: Exception):
        super().__init__(
            f"Flush failed on key '{key}' after {applied} applied write(s), "
            f"{remaining} still pending: {cause}",
            {"key": key, "applied": applied, "remaining": remaining, "cause": str(cause)},
        )
        self.key = key
        self.applied = applied
        self.remaining = remaining
        self.cause = cause
