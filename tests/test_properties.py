import asyncio

import pytest

from syncwell import MemoryStore, PendingWriteQueue, SyncedProperty


class FailingStore(MemoryStore):
    """Store whose fetches fail a set number of times."""

    def __init__(self, failures: int = 1):
        super().__init__({"name": "stored"})
        self.failures = failures

    async def fetch(self, key):
        if self.failures:
            self.failures -= 1
            raise ConnectionError("store unavailable")
        return await super().fetch(key)


def make_property(store, key="name"):
    queue = PendingWriteQueue()
    return SyncedProperty(key, queue, lambda: store), queue


@pytest.mark.asyncio
async def test_first_read_fetches_and_memoizes():
    store = MemoryStore({"name": "John"})
    prop, _ = make_property(store)

    assert not prop.is_cached
    assert await prop.read() == "John"

    await store.put("name", "Changed")
    assert await prop.read() == "John"
    assert store.fetch_count == 1


@pytest.mark.asyncio
async def test_absent_value_is_memoized(store):
    prop, _ = make_property(store)

    assert await prop.read() is None
    assert await prop.read() is None
    assert prop.is_cached
    assert store.fetch_count == 1


@pytest.mark.asyncio
async def test_write_is_read_back_without_fetch(store):
    prop, queue = make_property(store)

    prop.write("Jane")

    assert await prop.read() == "Jane"
    assert store.fetch_count == 0
    assert len(queue) == 1
    assert store.snapshot() == {}


@pytest.mark.asyncio
async def test_every_write_is_queued(store):
    prop, queue = make_property(store)

    prop.write(1)
    prop.write(2)
    prop.write(3)

    assert [w.value for w in queue] == [1, 2, 3]
    assert queue.keys() == ["name", "name", "name"]
    assert await prop.read() == 3


@pytest.mark.asyncio
async def test_await_property_reads_it():
    prop, _ = make_property(MemoryStore({"name": "Ada"}))

    assert await prop == "Ada"


@pytest.mark.asyncio
async def test_concurrent_reads_share_one_fetch():
    store = MemoryStore({"name": "John"}, latency=0.01)
    prop, _ = make_property(store)

    results = await asyncio.gather(prop.read(), prop.read(), prop.read())

    assert results == ["John", "John", "John"]
    assert store.fetch_count == 1


@pytest.mark.asyncio
async def test_write_during_fetch_wins():
    store = MemoryStore({"name": "old"}, latency=0.01)
    prop, _ = make_property(store)

    reader = asyncio.create_task(prop.read())
    await asyncio.sleep(0)
    prop.write("new")

    assert await reader == "new"
    assert await prop.read() == "new"


@pytest.mark.asyncio
async def test_failed_fetch_is_not_memoized():
    store = FailingStore(failures=1)
    prop, _ = make_property(store)

    with pytest.raises(ConnectionError, match="store unavailable"):
        await prop.read()
    assert not prop.is_cached

    assert await prop.read() == "stored"


@pytest.mark.asyncio
async def test_failed_fetch_reaches_every_waiting_reader():
    store = FailingStore(failures=1)
    prop, _ = make_property(store)

    results = await asyncio.gather(prop.read(), prop.read(), return_exceptions=True)

    assert all(isinstance(r, ConnectionError) for r in results)


def test_peek_does_not_fetch(store):
    prop, _ = make_property(store)

    assert prop.peek() is None
    assert prop.peek("fallback") == "fallback"
    prop.write("set")
    assert prop.peek() == "set"
    assert "set" in repr(prop)
