"""
Async Storage Module

Async facade over any synchronous StorageInterface. Each call runs in a
worker thread under an asyncio lock, so operations issued by one caller are
applied in call order and never overlap.
"""

from typing import Any, Callable, Dict, List, Optional, TypeVar
from contextlib import asynccontextmanager
import asyncio

from .storage import StorageInterface


T = TypeVar("T")


class AsyncStorage:
    """Async wrapper around a sync storage backend"""

    def __init__(self, storage: StorageInterface):
        self._sync_storage = storage
        self._lock = asyncio.Lock()

    @property
    def backend(self) -> StorageInterface:
        return self._sync_storage

    async def run(self, func: Callable[..., T], *args: Any) -> T:
        """Run a callable against the backend as one serialized unit"""
        async with self._lock:
            return await asyncio.to_thread(func, *args)

    async def list_tables(self) -> List[str]:
        return await self.run(self._sync_storage.list_tables)

    async def list_indexes(self, table: str) -> List[str]:
        return await self.run(self._sync_storage.list_indexes, table)

    async def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        """Save a record"""
        await self.run(self._sync_storage.save, table, record_id, data)

    async def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        """Load a record"""
        return await self.run(self._sync_storage.load, table, record_id)

    async def load_all(self, table: str) -> List[Dict[str, Any]]:
        """Load all records from a table"""
        return await self.run(self._sync_storage.load_all, table)

    async def delete(self, table: str, record_id: str) -> bool:
        """Delete a record"""
        return await self.run(self._sync_storage.delete, table, record_id)

    async def exists(self, table: str, record_id: str) -> bool:
        """Check if a record exists"""
        return await self.run(self._sync_storage.exists, table, record_id)

    async def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Find records matching filters"""
        return await self.run(self._sync_storage.find, table, filters)

    async def count(self, table: str) -> int:
        """Count records in table"""
        return await self.run(self._sync_storage.count, table)

    async def clear_table(self, table: str) -> None:
        """Clear all records from a table"""
        await self.run(self._sync_storage.clear_table, table)

    async def close(self) -> None:
        """Close storage connection"""
        await self.run(self._sync_storage.close)

    async def begin_transaction(self) -> None:
        await self.run(self._sync_storage.begin_transaction)

    async def commit(self) -> None:
        await self.run(self._sync_storage.commit)

    async def rollback(self) -> None:
        await self.run(self._sync_storage.rollback)

    @asynccontextmanager
    async def atomic(self):
        """Context manager for atomic operations"""
        await self.begin_transaction()
        try:
            yield
            await self.commit()
        except Exception:
            await self.rollback()
            raise
