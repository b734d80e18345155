"""
Record Store Module

Schema-versioned, keyed record collections over a storage backend. The
store is an explicit handle: create one, `await store.open()` once, and pass
it to every service that needs persistence.

Timestamps (`createdAt` / `updatedAt`) are owned by the store; callers never
set `updatedAt` themselves.
"""

from datetime import datetime, timezone
from enum import Enum
from functools import partial
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union
import asyncio
import logging
import sqlite3

from pydantic import BaseModel, ValidationError

from .async_storage import AsyncStorage
from .errors import (
    DuplicateKey, InvalidSnapshot, OpenBlocked, OpenFailed,
    StoreNotOpen, UnknownCollection
)
from .ids import generate_id
from .migrations import MigrationManager, Migration, collections_for_version
from .defaults import seed_initial_data
from .storage import StorageInterface


logger = logging.getLogger(__name__)


class Collections:
    """Collection names of the current schema"""
    ACCOUNTS = "accounts"
    CATEGORIES = "categories"
    TRANSACTIONS = "transactions"
    BUDGETS = "budgets"
    BILLS = "bills"
    RECURRING = "recurringTransactions"
    META = "meta"
    LOANS = "loans"
    LOAN_TRANSACTIONS = "loanTransactions"
    PROPERTIES = "properties"
    TENANTS = "tenants"
    EXPENSES = "expenses"
    MAINTENANCE = "maintenance"
    COSTBASE = "costbase"


# Children removed (best effort) when a property is deleted
PROPERTY_DEPENDENTS = (Collections.TENANTS, Collections.MAINTENANCE)


class StoreState(Enum):
    """Lifecycle of a store handle"""
    UNOPENED = "unopened"
    OPENING = "opening"
    OPEN = "open"
    FAILED = "failed"
    CLOSED = "closed"


class Snapshot(BaseModel):
    """Backup file shape: {timestamp, data: {collection: [record, ...]}}"""
    timestamp: Optional[str] = None
    data: Dict[str, List[Dict[str, Any]]]


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class RecordStore:
    """
    Keyed, indexed record collections with additive schema upgrades.

    State machine: UNOPENED -> OPENING -> OPEN, OPENING -> FAILED (open()
    may be retried), OPEN -> CLOSED on close().
    """

    def __init__(
        self,
        storage: StorageInterface,
        target_version: Optional[int] = None,
        seed: bool = True,
        migrations: Optional[List[Migration]] = None,
        currency: str = "AUD"
    ):
        self._backend = storage
        self._storage = AsyncStorage(storage)
        self._migrations = MigrationManager(storage, migrations)
        self.target_version = target_version or self._migrations.latest_version
        self._seed = seed
        self.currency = currency
        self._open_task: Optional[asyncio.Future] = None
        self.state = StoreState.UNOPENED
        self.collections: List[str] = []
        self.old_version: Optional[int] = None

    async def __aenter__(self) -> 'RecordStore':
        return await self.open()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @property
    def is_open(self) -> bool:
        return self.state == StoreState.OPEN

    # ------------------------------------------------------------------
    # Open / close
    # ------------------------------------------------------------------

    async def open(self) -> 'RecordStore':
        """
        Open the store, upgrading the schema if needed.

        Concurrent callers share the same in-flight open.

        Raises:
            OpenBlocked: another handle holds the database during upgrade
            OpenFailed: any other storage or upgrade failure
        """
        if self.state == StoreState.OPEN:
            return self
        if self.state == StoreState.CLOSED:
            raise StoreNotOpen("Store has been closed")

        if self._open_task is None:
            self.state = StoreState.OPENING
            self._open_task = asyncio.ensure_future(self._do_open())

        await asyncio.shield(self._open_task)
        return self

    async def _do_open(self) -> None:
        seed = partial(seed_initial_data, currency=self.currency) if self._seed else None
        try:
            old_version, applied = await self._storage.run(
                self._migrations.upgrade, self.target_version, seed
            )
        except (OpenBlocked, OpenFailed):
            self._fail()
            raise
        except sqlite3.OperationalError as e:
            self._fail()
            message = str(e).lower()
            if "locked" in message or "busy" in message:
                logger.warning(f"Schema upgrade blocked by another open handle: {e}")
                raise OpenBlocked("Database upgrade blocked by another open handle") from e
            logger.error(f"Store open failed: {e}")
            raise OpenFailed(str(e)) from e
        except Exception as e:
            self._fail()
            logger.error(f"Store open failed: {e}")
            raise OpenFailed(str(e)) from e

        self.old_version = old_version
        self.collections = collections_for_version(self.target_version, self._migrations.migrations)
        self.state = StoreState.OPEN
        self._open_task = None
        if applied:
            logger.info(f"Store opened, upgraded v{old_version} -> v{self.target_version}")
        else:
            logger.info(f"Store opened at v{self.target_version}")

    def _fail(self) -> None:
        self.state = StoreState.FAILED
        self._open_task = None

    async def close(self) -> None:
        """Explicit teardown"""
        if self.state == StoreState.CLOSED:
            return
        await self._storage.close()
        self.state = StoreState.CLOSED

    def _check(self, collection: str) -> None:
        if self.state != StoreState.OPEN:
            raise StoreNotOpen(f"Store is {self.state.value}")
        if collection not in self.collections:
            raise UnknownCollection(collection)

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def _insert(self, collection: str, record: Dict[str, Any]) -> None:
        if self._backend.exists(collection, record["id"]):
            raise DuplicateKey(collection, record["id"])
        self._backend.save(collection, record["id"], record)

    def _upsert(self, collection: str, record: Dict[str, Any]) -> None:
        if not record.get("createdAt"):
            existing = self._backend.load(collection, record["id"])
            record["createdAt"] = (existing or {}).get("createdAt") or record["updatedAt"]
        self._backend.save(collection, record["id"], record)

    async def add(self, collection: str, record: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Insert a new record.

        Assigns an id when absent and stamps createdAt/updatedAt.

        Raises:
            DuplicateKey: a record with this id already exists
        """
        self._check(collection)
        item = dict(record)
        if not item.get("id"):
            item["id"] = generate_id()
        now = utc_now()
        item["createdAt"] = item.get("createdAt") or now
        item["updatedAt"] = now

        await self._storage.run(self._insert, collection, item)
        logger.debug(f"Added {collection}/{item['id']}")
        return item

    async def update(self, collection: str, record: Mapping[str, Any]) -> Dict[str, Any]:
        """Replace a record by id, refreshing updatedAt (upsert semantics)"""
        self._check(collection)
        item = dict(record)
        if not item.get("id"):
            raise ValueError(f"Cannot update a {collection} record without an id")
        item["updatedAt"] = utc_now()

        await self._storage.run(self._upsert, collection, item)
        logger.debug(f"Updated {collection}/{item['id']}")
        return item

    async def put(self, collection: str, record: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Write a record as given (restore/import path).

        Existing timestamps are kept; only missing ones are stamped.
        """
        self._check(collection)
        item = dict(record)
        if not item.get("id"):
            raise ValueError(f"Cannot put a {collection} record without an id")
        item["updatedAt"] = item.get("updatedAt") or utc_now()

        await self._storage.run(self._upsert, collection, item)
        return item

    async def get(self, collection: str, record_id: str) -> Optional[Dict[str, Any]]:
        self._check(collection)
        return await self._storage.load(collection, record_id)

    async def get_all(self, collection: str) -> List[Dict[str, Any]]:
        """Every record in the collection (order unspecified)"""
        self._check(collection)
        return await self._storage.load_all(collection)

    async def find(self, collection: str, **filters: Any) -> List[Dict[str, Any]]:
        """Records whose fields equal the given values"""
        self._check(collection)
        return await self._storage.find(collection, filters)

    async def count(self, collection: str) -> int:
        self._check(collection)
        return await self._storage.count(collection)

    async def delete(self, collection: str, record_id: str) -> bool:
        """
        Delete a record. Returns False if it did not exist.

        Deleting a property also deletes its tenants and maintenance rows.
        That cascade is best effort and not atomic with the primary delete:
        failures are logged and the primary delete stands.
        """
        self._check(collection)
        deleted = await self._storage.delete(collection, record_id)
        logger.info(f"Deleted {collection}/{record_id}" if deleted else
                    f"Delete of missing {collection}/{record_id}")

        if collection == Collections.PROPERTIES:
            await self._cascade_property_delete(record_id)

        return deleted

    async def _cascade_property_delete(self, property_id: str) -> None:
        for dependent in PROPERTY_DEPENDENTS:
            if dependent not in self.collections:
                continue
            try:
                rows = await self._storage.find(dependent, {"propertyId": property_id})
                for row in rows:
                    await self._storage.delete(dependent, row["id"])
                logger.info(f"Removed {len(rows)} {dependent} linked to property {property_id}")
            except Exception:
                logger.exception(f"Cascade delete of {dependent} for property {property_id} failed")

    # ------------------------------------------------------------------
    # Bulk operations
    # ------------------------------------------------------------------

    async def clear_all(self) -> None:
        """Empty every collection (full application reset)"""
        if self.state != StoreState.OPEN:
            raise StoreNotOpen(f"Store is {self.state.value}")
        for collection in self.collections:
            await self._storage.clear_table(collection)
        logger.warning("All collections cleared")

    async def export_all(self) -> Dict[str, List[Dict[str, Any]]]:
        """Full snapshot of every collection"""
        if self.state != StoreState.OPEN:
            raise StoreNotOpen(f"Store is {self.state.value}")
        return {
            collection: await self._storage.load_all(collection)
            for collection in self.collections
        }

    async def import_all(self, data: Mapping[str, Iterable[Mapping[str, Any]]]) -> int:
        """
        Upsert every record of every known collection in `data`.

        Unknown collections are skipped. Returns the number of records written.

        Raises:
            InvalidSnapshot: a record is not a mapping with an id
        """
        if self.state != StoreState.OPEN:
            raise StoreNotOpen(f"Store is {self.state.value}")
        _validate_records(data)

        written = 0
        for collection, items in data.items():
            if collection not in self.collections:
                logger.warning(f"Skipping unknown collection in import: {collection}")
                continue
            for item in items:
                await self.put(collection, item)
                written += 1

        logger.info(f"Import complete: {written} records")
        return written

    async def export_snapshot(self) -> Dict[str, Any]:
        """Backup document: {timestamp, data}"""
        return {"timestamp": utc_now(), "data": await self.export_all()}

    async def import_snapshot(
        self,
        snapshot: Union[str, bytes, Mapping[str, Any]],
        overwrite: bool = False
    ) -> int:
        """
        Restore a backup document.

        With overwrite every collection is cleared first; otherwise records
        are upserted on top of existing data.

        Raises:
            InvalidSnapshot: malformed JSON or missing/invalid `data`
        """
        parsed = parse_snapshot(snapshot)
        _validate_records(parsed.data)

        if overwrite:
            await self.clear_all()
        return await self.import_all(parsed.data)


def parse_snapshot(snapshot: Union[str, bytes, Mapping[str, Any]]) -> Snapshot:
    """Validate a backup document, raising InvalidSnapshot"""
    try:
        if isinstance(snapshot, (str, bytes)):
            return Snapshot.model_validate_json(snapshot)
        return Snapshot.model_validate(snapshot)
    except ValidationError as e:
        raise InvalidSnapshot(f"Invalid backup file: {e.error_count()} validation error(s)") from e


def _validate_records(data: Mapping[str, Any]) -> None:
    for collection, items in data.items():
        if isinstance(items, (str, bytes, Mapping)) or not isinstance(items, Iterable):
            raise InvalidSnapshot(f"Collection {collection} is not a list of records")
        for item in items:
            if not isinstance(item, Mapping) or not isinstance(item.get("id"), str) or not item["id"]:
                raise InvalidSnapshot(f"Record without an id in {collection}")
