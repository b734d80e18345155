"""
Schema Migration System

Declarative, additive-only schema versions for the record store. Each
migration names the collections it introduces and the secondary indexes
they need; applying a migration only ever creates missing tables and
indexes, it never drops or renames anything.
"""

from typing import Callable, Dict, List, Optional, Tuple, Any
from datetime import datetime, timezone
import hashlib
import json
import logging

from .errors import OpenFailed
from .storage import StorageInterface


logger = logging.getLogger(__name__)


class Migration:
    """Represents a single schema version"""

    def __init__(self, version: int, name: str, collections: Dict[str, Tuple[str, ...]]):
        self.version = version
        self.name = name
        self.collections = collections
        self.applied_at: Optional[datetime] = None

    @property
    def checksum(self) -> str:
        """Checksum of the declared collections and indexes"""
        canonical = json.dumps(
            {name: sorted(indexes) for name, indexes in self.collections.items()},
            sort_keys=True
        )
        return hashlib.md5(canonical.encode()).hexdigest()

    def __str__(self) -> str:
        return f"Migration v{self.version:03d}: {self.name}"

    def __repr__(self) -> str:
        return f"Migration(version={self.version}, name='{self.name}')"


# Every collection is indexed on updatedAt in addition to what is listed here
BASE_INDEXES = ("updatedAt",)

MIGRATIONS: List[Migration] = [
    Migration(1, "Create core collections", {
        "accounts": ("type",),
        "categories": ("type", "parentId"),
        "transactions": ("date", "type", "categoryId", "accountId"),
        "budgets": ("categoryId",),
        "bills": ("dueDate",),
        "recurringTransactions": (),
        "meta": (),
    }),
    Migration(2, "Create loan collections", {
        "loans": ("type",),
        "loanTransactions": ("loanId", "date"),
    }),
    Migration(3, "Create property manager collections", {
        "properties": ("name",),
        "tenants": ("propertyId",),
        "expenses": ("propertyId", "date"),
        "maintenance": ("propertyId", "date"),
    }),
    Migration(4, "Create cost base collection", {
        "costbase": ("propertyId", "date", "type"),
    }),
    Migration(5, "Index transaction provenance links", {
        "transactions": ("propertyId", "billId", "maintenanceId"),
    }),
]

SCHEMA_VERSION = max(m.version for m in MIGRATIONS)


def collections_for_version(version: int, migrations: Optional[List[Migration]] = None) -> List[str]:
    """Collection names that exist once the schema is at `version`"""
    names: List[str] = []
    for migration in migrations or MIGRATIONS:
        if migration.version <= version:
            for name in migration.collections:
                if name not in names:
                    names.append(name)
    return names


class MigrationManager:
    """Applies pending schema versions to a storage backend"""

    def __init__(self, storage: StorageInterface, migrations: Optional[List[Migration]] = None):
        self.storage = storage
        self.migrations: List[Migration] = sorted(migrations or MIGRATIONS, key=lambda m: m.version)
        self._migration_table = "schema_migrations"

    @property
    def latest_version(self) -> int:
        return max((m.version for m in self.migrations), default=0)

    def get_current_version(self) -> int:
        """Get the current schema version (0 for a brand new database)"""
        if not self.storage.has_table(self._migration_table):
            return 0
        applied = self.storage.load_all(self._migration_table)
        versions = [m["version"] for m in applied if isinstance(m.get("version"), int)]
        return max(versions) if versions else 0

    def get_pending_migrations(self, target_version: Optional[int] = None) -> List[Migration]:
        """Get list of pending migrations"""
        current_version = self.get_current_version()
        max_version = target_version or self.latest_version
        return [m for m in self.migrations if current_version < m.version <= max_version]

    def get_applied_migrations(self) -> List[Dict[str, Any]]:
        """Get list of applied migrations"""
        if not self.storage.has_table(self._migration_table):
            return []
        return sorted(self.storage.load_all(self._migration_table), key=lambda m: m["version"])

    def upgrade(
        self,
        target_version: Optional[int] = None,
        seed: Optional[Callable[[StorageInterface], None]] = None
    ) -> Tuple[int, List[Migration]]:
        """
        Bring the schema up to target_version.

        All pending migrations, and the one-time seed for a brand new
        database, run inside a single atomic block.

        Returns:
            (old_version, applied migrations)

        Raises:
            OpenFailed: the stored version is newer than the target
        """
        target = target_version or self.latest_version
        current = self.get_current_version()

        if current > target:
            raise OpenFailed(
                f"Stored schema version {current} is newer than supported version {target}"
            )
        if current == target:
            logger.debug(f"Schema already at v{current}")
            return current, []

        applied: List[Migration] = []
        with self.storage.atomic():
            self.storage.create_table(self._migration_table)
            # Re-read under the write lock in case another handle upgraded first
            old_version = self.get_current_version()
            pending = [m for m in self.migrations if old_version < m.version <= target]

            logger.info(f"Upgrading schema from v{old_version} to v{target}")
            for migration in pending:
                self._apply(migration)
                applied.append(migration)

            if old_version == 0 and seed is not None:
                logger.info("Seeding initial data")
                seed(self.storage)

        now = datetime.now(timezone.utc)
        for migration in applied:
            migration.applied_at = now
        return old_version, applied

    def _apply(self, migration: Migration) -> None:
        logger.info(f"Applying {migration}")
        for collection, indexes in migration.collections.items():
            if self.storage.create_table(collection):
                logger.info(f"Created collection {collection}")
            for field in BASE_INDEXES + tuple(indexes):
                self.storage.create_index(collection, field)

        self.storage.save(self._migration_table, f"v{migration.version:03d}", {
            "version": migration.version,
            "name": migration.name,
            "applied_at": datetime.now(timezone.utc).isoformat(),
            "checksum": migration.checksum
        })

    def validate_migrations(self) -> bool:
        """Validate that applied migrations match expected checksums"""
        for applied_migration in self.get_applied_migrations():
            version = applied_migration["version"]
            migration = next((m for m in self.migrations if m.version == version), None)
            if not migration:
                logger.warning(f"Applied migration v{version} not found in definitions")
                continue

            if applied_migration.get("checksum", "") != migration.checksum:
                logger.error(f"Checksum mismatch for v{version}")
                return False

        return True

    def get_migration_status(self) -> Dict[str, Any]:
        """Get detailed migration status"""
        current_version = self.get_current_version()
        pending = self.get_pending_migrations()

        return {
            "current_version": current_version,
            "latest_version": self.latest_version,
            "pending_count": len(pending),
            "applied_count": len(self.get_applied_migrations()),
            "pending_migrations": [
                {"version": m.version, "name": m.name} for m in pending
            ],
            "needs_migration": len(pending) > 0
        }
