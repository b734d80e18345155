"""
Shared fixtures
"""

import pytest
import pytest_asyncio

from budget_tracker.config import BudgetTrackerConfig
from budget_tracker.storage import InMemoryStorage
from budget_tracker.store import Collections, RecordStore


@pytest.fixture
def config():
    return BudgetTrackerConfig(
        storage_backend="memory",
        database_path=":memory:",
        process_on_start=False,
        seed_on_create=False,
    )


@pytest_asyncio.fixture
async def store():
    """Open, empty store at the current schema version"""
    record_store = RecordStore(InMemoryStorage(), seed=False)
    await record_store.open()
    yield record_store
    await record_store.close()


@pytest_asyncio.fixture
async def seeded_store():
    """Open store with the first-run demo accounts and default categories"""
    record_store = RecordStore(InMemoryStorage(), seed=True)
    await record_store.open()
    yield record_store
    await record_store.close()


@pytest.fixture
def make_account(store):
    """Async helper that adds an account to the store"""
    async def _make(name="Everyday", type="bank", balance="1000", **extra):
        return await store.add(Collections.ACCOUNTS, dict(
            {"name": name, "type": type, "balance": balance, "currency": "AUD"}, **extra
        ))
    return _make
