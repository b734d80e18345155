"""
Tests for the schema migration system
"""

import pytest

from budget_tracker.errors import OpenFailed
from budget_tracker.migrations import (
    MIGRATIONS, SCHEMA_VERSION, Migration, MigrationManager, collections_for_version
)
from budget_tracker.storage import InMemoryStorage


class TestMigrationDefinitions:
    """Test the declared schema"""

    def test_versions_are_sequential(self):
        assert [m.version for m in MIGRATIONS] == list(range(1, SCHEMA_VERSION + 1))

    def test_collections_by_version(self):
        assert collections_for_version(1) == [
            "accounts", "categories", "transactions", "budgets",
            "bills", "recurringTransactions", "meta",
        ]
        assert "loans" in collections_for_version(2)
        assert "properties" not in collections_for_version(2)
        assert len(collections_for_version(SCHEMA_VERSION)) == 14

    def test_checksum_is_stable(self):
        a = Migration(1, "a", {"x": ("b", "a")})
        b = Migration(1, "renamed", {"x": ("a", "b")})
        assert a.checksum == b.checksum
        assert a.checksum != Migration(1, "a", {"x": ("a",)}).checksum


class TestMigrationManager:
    """Test applying migrations to a backend"""

    def test_fresh_database_upgrade(self):
        storage = InMemoryStorage()
        manager = MigrationManager(storage)
        assert manager.get_current_version() == 0

        old_version, applied = manager.upgrade()

        assert old_version == 0
        assert len(applied) == SCHEMA_VERSION
        assert manager.get_current_version() == SCHEMA_VERSION
        assert "updatedAt" in storage.list_indexes("accounts")
        assert storage.list_indexes("transactions") == sorted([
            "updatedAt", "date", "type", "categoryId", "accountId",
            "propertyId", "billId", "maintenanceId"
        ])
        assert manager.validate_migrations()

    def test_upgrade_is_idempotent(self):
        storage = InMemoryStorage()
        manager = MigrationManager(storage)
        manager.upgrade()
        storage.save("accounts", "acc_1", {"id": "acc_1", "name": "Keep me"})

        old_version, applied = manager.upgrade()

        assert old_version == SCHEMA_VERSION
        assert applied == []
        assert storage.load("accounts", "acc_1")["name"] == "Keep me"
        assert len(manager.get_applied_migrations()) == SCHEMA_VERSION

    def test_incremental_upgrade_keeps_data(self):
        """Upgrading v2 -> latest only adds collections"""
        storage = InMemoryStorage()
        manager = MigrationManager(storage)
        manager.upgrade(target_version=2)
        storage.save("loans", "loan_1", {"id": "loan_1", "name": "Car"})
        assert not storage.has_table("properties")

        old_version, applied = manager.upgrade()

        assert old_version == 2
        assert [m.version for m in applied] == list(range(3, SCHEMA_VERSION + 1))
        assert storage.load("loans", "loan_1") == {"id": "loan_1", "name": "Car"}
        assert storage.has_table("properties")

    def test_seed_runs_only_on_creation(self):
        storage = InMemoryStorage()
        manager = MigrationManager(storage)
        calls = []

        manager.upgrade(target_version=1, seed=lambda s: calls.append(s))
        manager.upgrade(seed=lambda s: calls.append(s))

        assert calls == [storage]

    def test_failed_seed_rolls_back_schema(self):
        storage = InMemoryStorage()
        manager = MigrationManager(storage)

        def broken_seed(s):
            raise RuntimeError("seed failed")

        with pytest.raises(RuntimeError):
            manager.upgrade(seed=broken_seed)

        assert manager.get_current_version() == 0
        assert storage.list_tables() == []

    def test_downgrade_rejected(self):
        storage = InMemoryStorage()
        MigrationManager(storage).upgrade()

        with pytest.raises(OpenFailed):
            MigrationManager(storage).upgrade(target_version=2)

    def test_migration_status(self):
        storage = InMemoryStorage()
        manager = MigrationManager(storage)
        manager.upgrade(target_version=3)

        status = manager.get_migration_status()
        assert status["current_version"] == 3
        assert status["pending_count"] == SCHEMA_VERSION - 3
        assert status["needs_migration"] is True
