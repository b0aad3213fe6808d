"""
Abstract Storage Interface

Every entity store (categories, accounts, budgets, goals) implements the
same small contract. This allows us to:
1. Keep callers independent of the SQL underneath
2. Swap the local SQLite file for another relational store later
3. Test stores and the ledger against the same expectations

The interface is intentionally simple - we're not building a full ORM.
Balance-changing operations are NOT part of it; those belong to the
transaction ledger.
"""

from abc import ABC, abstractmethod
from typing import Generic, Optional, TypeVar

from pocket_ledger.exceptions import (  # noqa: F401 - re-exported
    ConnectionError,
    LedgerError,
    NotFoundError,
    NotPersistedError,
    StorageError,
    ValidationError,
)
from pocket_ledger.models.entities import OwnedEntity


T = TypeVar("T", bound=OwnedEntity)


class EntityStore(ABC, Generic[T]):
    """
    Abstract interface for single-table CRUD scoped by owning user.

    Any storage implementation must implement these methods.
    """

    @abstractmethod
    async def create(self, entity: T) -> T:
        """
        Insert a new entity.

        Args:
            entity: The entity to insert. ``synced`` is stored as given
                    (False, i.e. "needs sync", unless the caller says so).

        Returns:
            The stored entity

        Raises:
            ValidationError: If id or user_id is missing
            StorageError: If the insert fails
        """
        pass

    @abstractmethod
    async def get_by_id(self, entity_id: str, user_id: str) -> Optional[T]:
        """
        Retrieve an entity owned by ``user_id``.

        Returns:
            The entity if found, None otherwise (including when the id
            exists but belongs to another user)
        """
        pass

    @abstractmethod
    async def list_by_user(self, user_id: str) -> list[T]:
        """
        List all entities owned by a user.
        """
        pass

    @abstractmethod
    async def update(self, entity: T) -> bool:
        """
        Update an existing entity and mark it as needing sync.

        Returns:
            True if a row matched. A missing row is not an error, so
            retried updates are safe.
        """
        pass

    @abstractmethod
    async def delete(self, entity_id: str, user_id: str) -> bool:
        """
        Delete an entity owned by ``user_id``.

        Returns:
            True if a row was deleted, False if there was nothing to delete
        """
        pass

