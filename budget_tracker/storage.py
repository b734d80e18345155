"""
Storage Backend Module

Provides the abstract storage interface and implementations for in-memory
(testing) and SQLite (persistence). Records are JSON documents keyed by id;
monetary values are stored as Decimal strings.

Tables and secondary indexes are only created through the schema operations
(`create_table`, `create_index`), which the migration manager drives. Writing
to a table that does not exist raises UnknownCollection.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Any, Union, Set
from datetime import datetime, timezone
import copy
import sqlite3
import json
import re
import threading
from pathlib import Path
from contextlib import contextmanager

from .errors import UnknownCollection


_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _check_identifier(name: str) -> str:
    """Table and field names are interpolated into SQL, so restrict them"""
    if not _IDENTIFIER.match(name or ""):
        raise ValueError(f"Invalid identifier: {name!r}")
    return name


def _json_copy(data: Any) -> Any:
    """Round-trip through JSON, which is also how records are persisted"""
    return json.loads(json.dumps(data, default=str))


class StorageInterface(ABC):
    """Abstract interface for storage backends"""

    @abstractmethod
    def create_table(self, table: str) -> bool:
        """Create a table if missing. Returns True if it was created"""
        pass

    @abstractmethod
    def create_index(self, table: str, field: str) -> bool:
        """Create a secondary index on a record field. Returns True if created"""
        pass

    @abstractmethod
    def list_tables(self) -> List[str]:
        """Names of all existing tables"""
        pass

    @abstractmethod
    def list_indexes(self, table: str) -> List[str]:
        """Indexed field names of a table"""
        pass

    @abstractmethod
    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        """Save (insert or replace) a record"""
        pass

    @abstractmethod
    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        """Load a record from storage"""
        pass

    @abstractmethod
    def load_all(self, table: str) -> List[Dict[str, Any]]:
        """Load all records from a table"""
        pass

    @abstractmethod
    def delete(self, table: str, record_id: str) -> bool:
        """Delete a record from storage"""
        pass

    @abstractmethod
    def exists(self, table: str, record_id: str) -> bool:
        """Check if a record exists"""
        pass

    @abstractmethod
    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Find records whose fields equal the given values"""
        pass

    @abstractmethod
    def count(self, table: str) -> int:
        """Count records in table"""
        pass

    @abstractmethod
    def clear_table(self, table: str) -> None:
        """Clear all records from a table"""
        pass

    @abstractmethod
    def close(self) -> None:
        """Close storage connection"""
        pass

    def has_table(self, table: str) -> bool:
        return table in self.list_tables()

    def begin_transaction(self) -> None:
        """Start a database transaction (default no-op)"""
        pass

    def commit(self) -> None:
        """Commit current transaction (default no-op)"""
        pass

    def rollback(self) -> None:
        """Rollback current transaction (default no-op)"""
        pass

    @contextmanager
    def atomic(self):
        """Context manager for atomic operations"""
        self.begin_transaction()
        try:
            yield
            self.commit()
        except Exception:
            self.rollback()
            raise


class InMemoryStorage(StorageInterface):
    """In-memory storage implementation for testing"""

    def __init__(self):
        self._data: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._indexes: Dict[str, Set[str]] = {}
        self._lock = threading.RLock()
        self._snapshot = None

    def _table(self, table: str) -> Dict[str, Dict[str, Any]]:
        if table not in self._data:
            raise UnknownCollection(table)
        return self._data[table]

    def create_table(self, table: str) -> bool:
        with self._lock:
            _check_identifier(table)
            if table in self._data:
                return False
            self._data[table] = {}
            self._indexes[table] = set()
            return True

    def create_index(self, table: str, field: str) -> bool:
        with self._lock:
            self._table(table)
            _check_identifier(field)
            if field in self._indexes[table]:
                return False
            self._indexes[table].add(field)
            return True

    def list_tables(self) -> List[str]:
        with self._lock:
            return list(self._data.keys())

    def list_indexes(self, table: str) -> List[str]:
        with self._lock:
            self._table(table)
            return sorted(self._indexes[table])

    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        """Save a record to memory"""
        with self._lock:
            # Deep copy to prevent external mutation
            self._table(table)[record_id] = _json_copy(data)

    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        """Load a record from memory"""
        with self._lock:
            record = self._table(table).get(record_id)
            if record is not None:
                return _json_copy(record)
            return None

    def load_all(self, table: str) -> List[Dict[str, Any]]:
        """Load all records from a table"""
        with self._lock:
            return [_json_copy(record) for record in self._table(table).values()]

    def delete(self, table: str, record_id: str) -> bool:
        """Delete a record from memory"""
        with self._lock:
            rows = self._table(table)
            if record_id in rows:
                del rows[record_id]
                return True
            return False

    def exists(self, table: str, record_id: str) -> bool:
        """Check if a record exists"""
        with self._lock:
            return record_id in self._table(table)

    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Find records matching filters"""
        with self._lock:
            wanted = _json_copy(filters)
            results = []
            for record in self._table(table).values():
                if all(record.get(key) == value for key, value in wanted.items()):
                    results.append(_json_copy(record))
            return results

    def count(self, table: str) -> int:
        """Count records in table"""
        with self._lock:
            return len(self._table(table))

    def clear_table(self, table: str) -> None:
        """Clear all records from a table"""
        with self._lock:
            self._table(table).clear()

    def close(self) -> None:
        """Close storage (no-op for in-memory)"""
        pass

    def begin_transaction(self) -> None:
        """Snapshot tables and indexes so rollback can restore them"""
        with self._lock:
            if self._snapshot is None:
                self._snapshot = (copy.deepcopy(self._data), copy.deepcopy(self._indexes))

    def commit(self) -> None:
        with self._lock:
            self._snapshot = None

    def rollback(self) -> None:
        with self._lock:
            if self._snapshot is not None:
                self._data, self._indexes = self._snapshot
                self._snapshot = None


class SQLiteStorage(StorageInterface):
    """SQLite storage implementation for persistence.

    Each table holds the JSON document in `data`; secondary indexes are
    expression indexes over json_extract(data, '$.<field>').
    """

    _INDEX_PREFIX = "idx_"

    def __init__(self, db_path: Union[str, Path] = ":memory:", timeout: float = 5.0):
        self.db_path = str(db_path)
        self.timeout = timeout
        self._connection: Optional[sqlite3.Connection] = None
        self._lock = threading.RLock()
        self._in_transaction = False
        self._tables: Optional[Set[str]] = None

    @property
    def connection(self) -> sqlite3.Connection:
        """Connect on first use so open errors surface from the caller's open()"""
        with self._lock:
            if self._connection is None:
                # Autocommit mode; multi-statement work goes through begin_transaction()
                connection = sqlite3.connect(
                    self.db_path, timeout=self.timeout, check_same_thread=False, isolation_level=None
                )
                connection.row_factory = sqlite3.Row
                # Enable WAL mode for better concurrent access
                if self.db_path != ":memory:":
                    try:
                        connection.execute("PRAGMA journal_mode = WAL")
                        connection.execute("PRAGMA synchronous = NORMAL")
                    except sqlite3.Error:
                        connection.close()
                        raise
                self._connection = connection
            return self._connection

    def _known_tables(self) -> Set[str]:
        if self._tables is None:
            cursor = self.connection.execute(
                "SELECT name FROM sqlite_master WHERE type = 'table' AND name NOT LIKE 'sqlite_%'"
            )
            self._tables = {row['name'] for row in cursor.fetchall()}
        return self._tables

    def _require_table(self, table: str) -> str:
        if table not in self._known_tables():
            raise UnknownCollection(table)
        return table

    def create_table(self, table: str) -> bool:
        with self._lock:
            _check_identifier(table)
            if table in self._known_tables():
                return False
            self.connection.execute(f"""
                CREATE TABLE IF NOT EXISTS "{table}" (
                    id TEXT PRIMARY KEY,
                    data TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            self._known_tables().add(table)
            return True

    def create_index(self, table: str, field: str) -> bool:
        with self._lock:
            self._require_table(table)
            _check_identifier(field)
            if field in self.list_indexes(table):
                return False
            self.connection.execute(f"""
                CREATE INDEX IF NOT EXISTS "{self._INDEX_PREFIX}{table}_{field}"
                ON "{table}"(json_extract(data, '$.{field}'))
            """)
            return True

    def list_tables(self) -> List[str]:
        with self._lock:
            return sorted(self._known_tables())

    def list_indexes(self, table: str) -> List[str]:
        with self._lock:
            self._require_table(table)
            prefix = f"{self._INDEX_PREFIX}{table}_"
            cursor = self.connection.execute(
                "SELECT name FROM sqlite_master WHERE type = 'index' AND tbl_name = ?", (table,)
            )
            return sorted(
                row['name'][len(prefix):] for row in cursor.fetchall()
                if row['name'].startswith(prefix)
            )

    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        """Save a record to SQLite"""
        with self._lock:
            self._require_table(table)
            now = datetime.now(timezone.utc).isoformat()
            data_json = json.dumps(data, default=str)

            # Use INSERT OR REPLACE to handle updates, keeping the first created_at
            self.connection.execute(f"""
                INSERT OR REPLACE INTO "{table}" (id, data, created_at, updated_at)
                VALUES (?, ?,
                    COALESCE((SELECT created_at FROM "{table}" WHERE id = ?), ?),
                    ?)
            """, (record_id, data_json, record_id, now, now))

    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        """Load a record from SQLite"""
        with self._lock:
            self._require_table(table)
            cursor = self.connection.execute(f"""
                SELECT data FROM "{table}" WHERE id = ?
            """, (record_id,))
            row = cursor.fetchone()
            if row:
                return json.loads(row['data'])
            return None

    def load_all(self, table: str) -> List[Dict[str, Any]]:
        """Load all records from a table"""
        with self._lock:
            self._require_table(table)
            cursor = self.connection.execute(f"""
                SELECT data FROM "{table}" ORDER BY created_at
            """)
            return [json.loads(row['data']) for row in cursor.fetchall()]

    def delete(self, table: str, record_id: str) -> bool:
        """Delete a record from SQLite"""
        with self._lock:
            self._require_table(table)
            cursor = self.connection.execute(f"""
                DELETE FROM "{table}" WHERE id = ?
            """, (record_id,))
            return cursor.rowcount > 0

    def exists(self, table: str, record_id: str) -> bool:
        """Check if a record exists"""
        with self._lock:
            self._require_table(table)
            cursor = self.connection.execute(f"""
                SELECT 1 FROM "{table}" WHERE id = ? LIMIT 1
            """, (record_id,))
            return cursor.fetchone() is not None

    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Find records by field equality using json_extract (indexed fields hit the index)"""
        with self._lock:
            self._require_table(table)
            conditions = []
            params = []
            for key, value in _json_copy(filters).items():
                _check_identifier(key)
                conditions.append(f"json_extract(data, '$.{key}') IS ?")
                params.append(value)

            where_clause = " AND ".join(conditions) if conditions else "1 = 1"
            cursor = self.connection.execute(f"""
                SELECT data FROM "{table}" WHERE {where_clause} ORDER BY created_at
            """, params)
            return [json.loads(row['data']) for row in cursor.fetchall()]

    def count(self, table: str) -> int:
        """Count records in table"""
        with self._lock:
            self._require_table(table)
            cursor = self.connection.execute(f"""
                SELECT COUNT(*) as count FROM "{table}"
            """)
            return cursor.fetchone()['count']

    def clear_table(self, table: str) -> None:
        """Clear all records from a table"""
        with self._lock:
            self._require_table(table)
            self.connection.execute(f'DELETE FROM "{table}"')

    def begin_transaction(self) -> None:
        """Start a write transaction; raises sqlite3.OperationalError if locked"""
        with self._lock:
            if not self._in_transaction:
                self.connection.execute("BEGIN IMMEDIATE")
                self._in_transaction = True

    def commit(self) -> None:
        """Commit current transaction"""
        with self._lock:
            if self._in_transaction:
                self.connection.execute("COMMIT")
                self._in_transaction = False

    def rollback(self) -> None:
        """Rollback current transaction"""
        with self._lock:
            if self._in_transaction:
                self.connection.execute("ROLLBACK")
                self._in_transaction = False
                # DDL inside the transaction was undone too
                self._tables = None

    def close(self) -> None:
        """Close SQLite connection"""
        with self._lock:
            if self._connection:
                self._connection.close()
                self._connection = None


def create_storage(backend: str = "sqlite", database_path: Union[str, Path] = ":memory:") -> StorageInterface:
    """Factory for the configured storage backend"""
    if backend == "memory":
        return InMemoryStorage()
    if backend == "sqlite":
        return SQLiteStorage(database_path)
    raise ValueError(f"Unknown storage backend: {backend}")
