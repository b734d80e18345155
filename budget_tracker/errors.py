"""
Error Taxonomy

Exceptions raised by the record store and the services built on it. Every
failure is terminal for the call that raised it; nothing here is retried.
"""

from typing import Optional


class StoreError(Exception):
    """Base class for record store failures"""


class OpenBlocked(StoreError):
    """Another open handle holds the database while an upgrade is needed"""


class OpenFailed(StoreError):
    """The underlying storage could not be opened or upgraded"""


class StoreNotOpen(StoreError):
    """An operation was attempted before open() completed"""


class UnknownCollection(StoreError):
    """The collection is not part of the current schema"""

    def __init__(self, collection: str):
        super().__init__(f"Unknown collection: {collection}")
        self.collection = collection


class DuplicateKey(StoreError):
    """A record with the same id already exists in the collection"""

    def __init__(self, collection: str, record_id: str):
        super().__init__(f"Record {record_id} already exists in {collection}")
        self.collection = collection
        self.record_id = record_id


class NotFound(StoreError):
    """A referenced record does not exist"""

    def __init__(self, collection: str, record_id: Optional[str]):
        super().__init__(f"Record {record_id} not found in {collection}")
        self.collection = collection
        self.record_id = record_id


class InvalidSnapshot(StoreError):
    """An import payload is not a valid backup snapshot"""


class InsufficientFunds(Exception):
    """Account balance does not cover an automatic payment.

    Used as a skip signal by the due bill pass, never surfaced to callers.
    """

    def __init__(self, account_id: str, balance, amount):
        super().__init__(f"Account {account_id} balance {balance} does not cover {amount}")
        self.account_id = account_id
        self.balance = balance
        self.amount = amount
