import asyncio
from typing import Annotated

import pytest

from syncwell import (
    MemoryStore,
    PendingWrite,
    StoreNotConnectedError,
    SyncedField,
    SyncedModel,
    SyncedProperty,
    TransactionContext,
    transactional,
)
from syncwell.state import _ACTIVE_TRANSACTIONS


class GatedStore(MemoryStore):
    """Store whose writes wait until the gate opens."""

    def __init__(self):
        super().__init__()
        self.entered = asyncio.Event()
        self.gate = asyncio.Event()

    async def put(self, key, value):
        self.entered.set()
        await self.gate.wait()
        await super().put(key, value)


class Person(SyncedModel):
    name: Annotated[str | None, SyncedField()]
    age: int | None = SyncedField(key="person_age")


class Profile(SyncedModel):
    user_id: int
    display_name: str | None = SyncedField(key="user:{user_id}:display_name")
    nickname: str = "anon"

    @transactional
    async def rename(self, display_name: str) -> None:
        self.display_name.write(display_name)


class Employee(Person):
    title: Annotated[str | None, SyncedField()]


def test_model_registration():
    """Test that synced fields are hidden from pydantic and tracked separately."""
    assert set(Person.synced_fields) == {"name", "age"}
    assert Person.synced_fields["name"].key == "name"
    assert Person.synced_fields["age"].key == "person_age"
    assert "name" not in Person.model_fields
    assert set(Profile.model_fields) == {"user_id", "nickname"}


def test_synced_fields_are_not_serialized():
    profile = Profile(user_id=7)

    assert profile.model_dump() == {"user_id": 7, "nickname": "anon"}
    assert "display_name" not in Profile.model_json_schema()["properties"]


def test_descriptor_returns_one_property_per_instance():
    first, second = Person(), Person()

    assert isinstance(first.name, SyncedProperty)
    assert first.name is first.name
    assert first.name is not second.name


def test_synced_field_cannot_be_assigned():
    person = Person()

    with pytest.raises(AttributeError):
        person.name = "John"


def test_inherited_synced_fields():
    assert set(Employee.synced_fields) == {"name", "age", "title"}
    assert Employee().age.key == "person_age"


@pytest.mark.asyncio
async def test_key_template_uses_instance_fields(store):
    await Profile(user_id=1).bind(store).rename("Ada")
    await Profile(user_id=2).bind(store).rename("Grace")

    assert store.snapshot() == {
        "user:1:display_name": "Ada",
        "user:2:display_name": "Grace",
    }
    assert await Profile(user_id=2).bind(store).display_name.read() == "Grace"


@pytest.mark.asyncio
async def test_read_without_store_fails():
    with pytest.raises(StoreNotConnectedError):
        await Person().name.read()


@pytest.mark.asyncio
async def test_write_without_store_is_buffered():
    person = Person()
    person.name.write("offline")

    assert await person.name.read() == "offline"
    assert len(person.pending_writes) == 1


@pytest.mark.asyncio
async def test_flush_outside_transaction(store):
    person = Person().bind(store)
    person.name.write("John")
    person.age.write(41)

    assert await person.flush() == 2
    assert store.snapshot() == {"name": "John", "person_age": 41}
    assert person.pending_writes == ()


@pytest.mark.asyncio
async def test_flush_with_nothing_pending_needs_no_store():
    assert await Person().flush() == 0


@pytest.mark.asyncio
async def test_bind_overrides_default_engine(store):
    import syncwell

    other = MemoryStore()
    await syncwell.connect(other)
    person = Person().bind(store)

    person.name.write("bound")
    await person.flush()

    assert store.snapshot() == {"name": "bound"}
    assert other.snapshot() == {}


def test_repr_shows_loaded_values():
    person = Person()
    person.name.write("Lin")

    assert "name='Lin'" in repr(person)
    assert "age" not in repr(person)


@pytest.mark.asyncio
async def test_waiting_flush_sees_transactions_that_ended_meanwhile():
    store = GatedStore()
    person = Person().bind(store)
    person.name.write("first")

    first = asyncio.create_task(person.flush())
    await store.entered.wait()

    late = TransactionContext(method_name="late")
    _ACTIVE_TRANSACTIONS[late.id] = late
    person._pending.append(PendingWrite("person_age", 52, transaction_id=late.id))
    second = asyncio.create_task(person.flush())
    await asyncio.sleep(0)
    await asyncio.sleep(0)

    del _ACTIVE_TRANSACTIONS[late.id]
    store.gate.set()

    assert await first == 1
    assert await second == 1
    assert store.snapshot() == {"name": "first", "person_age": 52}


def test_copies_do_not_share_sync_state(store):
    person = Person().bind(store)
    person.name.write("original")

    for copied in (person.model_copy(), person.model_copy(deep=True)):
        assert copied.pending_writes == ()
        assert not copied.name.is_cached
        assert copied.store is store

        copied.name.write("copy")

        assert person.name.peek() == "original"
        assert [w.value for w in person.pending_writes] == ["original"]
