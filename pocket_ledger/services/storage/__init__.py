"""
Storage Services Package

Provides the abstract store interface, the error taxonomy and the SQLite
implementations of every entity store.
"""

from pocket_ledger.services.storage.interface import (
    ConnectionError,
    EntityStore,
    LedgerError,
    NotFoundError,
    NotPersistedError,
    StorageError,
    ValidationError,
)
from pocket_ledger.services.storage.database import Database
from pocket_ledger.services.storage.accounts import AccountStore
from pocket_ledger.services.storage.budgets import BudgetStore
from pocket_ledger.services.storage.categories import CategoryStore
from pocket_ledger.services.storage.goals import GoalStore
from pocket_ledger.services.storage.users import UserStore

__all__ = [
    # Interface
    "EntityStore",
    # Exceptions
    "ConnectionError",
    "LedgerError",
    "NotFoundError",
    "NotPersistedError",
    "StorageError",
    "ValidationError",
    # SQLite implementation
    "AccountStore",
    "BudgetStore",
    "CategoryStore",
    "Database",
    "GoalStore",
    "UserStore",
]
