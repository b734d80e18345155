"""
Compensating Writes

A multi-collection write is a sequence of independent store calls. WriteSaga
records how to undo each applied step; if a later step raises, the applied
steps are undone in reverse order and the original error propagates.
"""

from functools import partial
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Tuple
import logging

from .store import RecordStore


logger = logging.getLogger(__name__)


class WriteSaga:
    """
    Usage:
        async with WriteSaga(store, "loan payment") as saga:
            await saga.update("loans", loan)
            await saga.add("transactions", txn)
    """

    def __init__(self, store: RecordStore, name: str):
        self.store = store
        self.name = name
        self._compensations: List[Tuple[str, Callable[[], Awaitable[Any]]]] = []

    async def __aenter__(self) -> 'WriteSaga':
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        if exc_type is None:
            self._compensations.clear()
            return False
        logger.error(f"{self.name} failed after {len(self._compensations)} step(s): {exc}")
        await self.compensate()
        return False

    @property
    def steps(self) -> int:
        return len(self._compensations)

    async def add(self, collection: str, record: Mapping[str, Any]) -> Dict[str, Any]:
        created = await self.store.add(collection, record)
        self._compensations.append((
            f"delete {collection}/{created['id']}",
            partial(self.store.delete, collection, created["id"])
        ))
        return created

    async def update(self, collection: str, record: Mapping[str, Any]) -> Dict[str, Any]:
        previous = await self.store.get(collection, record["id"])
        updated = await self.store.update(collection, record)
        if previous is None:
            undo = partial(self.store.delete, collection, record["id"])
        else:
            undo = partial(self.store.put, collection, previous)
        self._compensations.append((f"restore {collection}/{record['id']}", undo))
        return updated

    async def delete(self, collection: str, record_id: str) -> bool:
        previous = await self.store.get(collection, record_id)
        deleted = await self.store.delete(collection, record_id)
        if previous is not None:
            self._compensations.append((
                f"reinsert {collection}/{record_id}",
                partial(self.store.put, collection, previous)
            ))
        return deleted

    async def compensate(self) -> None:
        """Undo applied steps, newest first. Undo failures are logged."""
        while self._compensations:
            label, undo = self._compensations.pop()
            try:
                await undo()
                logger.info(f"{self.name}: compensated ({label})")
            except Exception:
                logger.exception(f"{self.name}: compensation failed ({label})")
