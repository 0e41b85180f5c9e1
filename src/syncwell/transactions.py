"""
Ambient transaction contexts and the transactional boundary.

The active transaction lives in a ContextVar, so it follows a call chain
through awaits and into tasks spawned from it, and never leaks into
unrelated tasks. A boundary runs its unit of work once, flushes the host
object if the work succeeds, and leaves buffered writes alone if it fails.
"""

import functools
import inspect
import logging
import uuid
from collections.abc import Awaitable, Callable
from contextlib import asynccontextmanager, contextmanager
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, Field

from .state import _ACTIVE_TRANSACTIONS, _CURRENT_TRANSACTION

logger = logging.getLogger(__name__)


class TransactionStatus(str, Enum):
    RUNNING = "running"
    COMMITTED = "committed"
    FAILED = "failed"


class TransactionContext(BaseModel):
    """Record of one transaction attempt.

    Attributes:
        id: Unique id of this attempt.
        start_time: When the attempt started (UTC).
        method_name: Name of the boundary that opened it.
        parent_id: Id of the enclosing transaction, if nested.
        status: Where the attempt is in its lifecycle.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    start_time: datetime = Field(default_factory=lambda: datetime.now(UTC))
    method_name: str
    parent_id: str | None = None
    status: TransactionStatus = TransactionStatus.RUNNING


@runtime_checkable
class Flushable(Protocol):
    """An object that can apply its buffered writes."""

    def flush(self) -> Any: ...


def current_transaction() -> TransactionContext | None:
    """Return the transaction active for the calling task, if any."""
    return _CURRENT_TRANSACTION.get()


def active_transactions() -> list[TransactionContext]:
    """Return every transaction currently running in this process."""
    return list(_ACTIVE_TRANSACTIONS.values())


def _begin(method_name: str) -> TransactionContext:
    parent = current_transaction()
    txn = TransactionContext(
        method_name=method_name, parent_id=parent.id if parent else None
    )
    _register(txn)
    logger.debug("%s: starting transaction %s", method_name, txn.id)
    return txn


def _register(txn: TransactionContext) -> None:
    _ACTIVE_TRANSACTIONS[txn.id] = txn


def _unregister(txn: TransactionContext) -> None:
    _ACTIVE_TRANSACTIONS.pop(txn.id, None)


def _end(txn: TransactionContext, status: TransactionStatus) -> None:
    txn.status = status
    _unregister(txn)


@contextmanager
def _activate(txn: TransactionContext):
    token = _CURRENT_TRANSACTION.set(txn)
    try:
        yield txn
    finally:
        _CURRENT_TRANSACTION.reset(token)


def _flush_of(host: Any) -> Callable[[], Any] | None:
    if host is not None and isinstance(host, Flushable) and callable(host.flush):
        return host.flush
    return None


async def _commit(host: Any, txn: TransactionContext) -> None:
    flush = _flush_of(host)
    if flush is None:
        return
    logger.debug("%s: flushing transaction %s", txn.method_name, txn.id)
    outcome = flush()
    if inspect.isawaitable(outcome):
        await outcome


async def _run(hosts: tuple, txn: TransactionContext, call: Callable[[], Any]) -> Any:
    """Run ``call`` as ``txn`` and commit ``hosts`` if it succeeds."""
    _register(txn)
    with _activate(txn):
        try:
            result = call()
            if inspect.isawaitable(result):
                result = await result
            for host in hosts:
                await _commit(host, txn)
        except Exception as e:
            logger.debug("%s: transaction %s failed: %s", txn.method_name, txn.id, e)
            raise
        else:
            _end(txn, TransactionStatus.COMMITTED)
            logger.debug("%s: transaction %s committed", txn.method_name, txn.id)
        finally:
            if txn.status is TransactionStatus.RUNNING:
                _end(txn, TransactionStatus.FAILED)
    return result


def transactional(func: Callable | None = None, *, name: str | None = None):
    """
    Mark a method as a transactional boundary.

    Each call opens a new TransactionContext for its whole dynamic extent.
    When the method succeeds, ``self.flush()`` runs (if ``self`` has one)
    before the call completes; when it raises, nothing is flushed and the
    error propagates unchanged.

    ``async def`` methods stay coroutines. A plain method completes
    synchronously unless it returns an awaitable or its host's ``flush`` is a
    coroutine function, in which case the call returns an awaitable that
    finishes the commit.

    Usage:
        class Account(SyncedModel):
            balance: Annotated[int | None, SyncedField()]

            @transactional
            async def deposit(self, amount: int) -> None:
                self.balance.write((await self.balance.read() or 0) + amount)
    """
    if func is None:
        return functools.partial(transactional, name=name)

    method_name = name or func.__name__

    if inspect.iscoroutinefunction(func):

        @functools.wraps(func)
        async def async_boundary(self, *args, **kwargs):
            txn = _begin(method_name)
            return await _run(
                (self,), txn, functools.partial(func, self, *args, **kwargs)
            )

        return async_boundary

    @functools.wraps(func)
    def boundary(self, *args, **kwargs):
        txn = _begin(method_name)
        with _activate(txn):
            try:
                result = func(self, *args, **kwargs)
            except Exception as e:
                _end(txn, TransactionStatus.FAILED)
                logger.debug("%s: transaction %s failed: %s", method_name, txn.id, e)
                raise

            flush = _flush_of(self)
            if inspect.isawaitable(result) or inspect.iscoroutinefunction(flush):
                # _run registers it again when awaited.
                _unregister(txn)
                return _run((self,), txn, lambda: result)

            try:
                if flush is not None:
                    flush()
            except Exception:
                _end(txn, TransactionStatus.FAILED)
                raise
            _end(txn, TransactionStatus.COMMITTED)
            return result

    return boundary


@asynccontextmanager
async def transaction(*participants: Any, name: str = "transaction"):
    """
    Asynchronous context manager for an ad-hoc unit of work.

    Every participant with a ``flush`` capability is flushed, in the order
    given, when the block exits normally. If the block raises, nothing is
    flushed.

    Usage:
        async with syncwell.transaction(account, ledger) as txn:
            account.balance.write(10)
            ledger.last_entry.write(txn.id)
    """
    txn = _begin(name)
    with _activate(txn):
        try:
            yield txn
            for participant in participants:
                await _commit(participant, txn)
        except Exception as e:
            logger.debug("%s: transaction %s failed: %s", name, txn.id, e)
            raise
        else:
            _end(txn, TransactionStatus.COMMITTED)
            logger.debug("%s: transaction %s committed", name, txn.id)
        finally:
            if txn.status is TransactionStatus.RUNNING:
                _end(txn, TransactionStatus.FAILED)


__all__ = [
    "Flushable",
    "TransactionContext",
    "TransactionStatus",
    "active_transactions",
    "current_transaction",
    "transaction",
    "transactional",
]
