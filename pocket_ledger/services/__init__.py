"""Services package."""

from pocket_ledger.services.storage import (
    AccountStore,
    BudgetStore,
    CategoryStore,
    ConnectionError,
    Database,
    EntityStore,
    GoalStore,
    LedgerError,
    NotFoundError,
    NotPersistedError,
    StorageError,
    UserStore,
    ValidationError,
)

__all__ = [
    "AccountStore",
    "BudgetStore",
    "CategoryStore",
    "ConnectionError",
    "Database",
    "EntityStore",
    "GoalStore",
    "LedgerError",
    "NotFoundError",
    "NotPersistedError",
    "StorageError",
    "UserStore",
    "ValidationError",
]
