"""
Budget Tracker System

Wires one RecordStore handle into every service that needs persistence.
"""

from typing import Optional
import logging

from .budgets import budget_overview
from .categories import CategoryManager
from .config import BudgetTrackerConfig, get_config
from .loans import LoanManager
from .properties import PropertyManager
from .recurring import RecurringJob
from .storage import create_storage
from .store import RecordStore


logger = logging.getLogger(__name__)


class BudgetTracker:
    """Store handle plus the services built on it"""

    def __init__(self, store: RecordStore, config: Optional[BudgetTrackerConfig] = None):
        self.config = config or get_config()
        self.store = store
        self.loans = LoanManager(store, self.config)
        self.jobs = RecurringJob(store, self.config)
        self.categories = CategoryManager(store)
        self.properties = PropertyManager(store)

    @classmethod
    def from_config(cls, config: Optional[BudgetTrackerConfig] = None) -> 'BudgetTracker':
        config = config or get_config()
        storage = create_storage(config.storage_backend, config.database_path)
        store = RecordStore(storage, seed=config.seed_on_create, currency=config.default_currency)
        return cls(store, config)

    async def start(self) -> None:
        """Open the store and, if configured, run the posting job"""
        await self.store.open()
        if self.config.process_on_start:
            await self.jobs.run()

    async def stop(self) -> None:
        await self.store.close()

    async def budget_overview(self, view_mode: str = "monthly"):
        return await budget_overview(self.store, view_mode)
