import pytest

from syncwell import MemoryStore, reset_engine
from syncwell.state import _ACTIVE_TRANSACTIONS


@pytest.fixture
def store():
    """A fresh in-memory store for each test."""
    return MemoryStore()


@pytest.fixture(autouse=True)
def cleanup_engine():
    """Drop the default store and any leaked transaction between tests."""
    yield
    reset_engine()
    _ACTIVE_TRANSACTIONS.clear()
