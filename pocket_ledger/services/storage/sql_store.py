"""
SQL implementation of the entity store interface.

Each concrete store names its table, model and the columns an update is
allowed to write; everything else (ownership filters, dirty bit, money
conversion, audit logging) is shared here.

The ``*_with(conn, ...)`` helpers run inside a caller's open transaction.
The transaction ledger uses them to combine several stores' writes into a
single atomic unit.
"""

from enum import Enum
from typing import Any, ClassVar, Optional, TypeVar

import structlog
from sqlalchemy import Table, delete, insert, select, update
from sqlalchemy.engine import Connection, RowMapping
from sqlalchemy.exc import SQLAlchemyError

from pocket_ledger.audit import AuditLogger
from pocket_ledger.models.audit import AuditEventBuilder, AuditEventType
from pocket_ledger.models.entities import OwnedEntity
from pocket_ledger.models.money import from_minor_units, to_minor_units
from pocket_ledger.services.storage.database import Database
from pocket_ledger.services.storage.interface import (
    EntityStore,
    NotFoundError,
    StorageError,
)
from pocket_ledger.validation.validator import LedgerValidator


T = TypeVar("T", bound=OwnedEntity)

logger = structlog.get_logger(__name__)


class SqlEntityStore(EntityStore[T]):
    """
    Single-table CRUD scoped by owning user.

    Subclasses set:
        table: the SQLAlchemy table
        model: the pydantic model rows map to
        entity_type: name used in logs and errors
        mutable_columns: columns ``update`` writes (``synced`` is always reset)
        money_columns: columns stored as integer minor units
    """

    table: ClassVar[Table]
    model: ClassVar[type]
    entity_type: ClassVar[str]
    mutable_columns: ClassVar[tuple[str, ...]] = ()
    money_columns: ClassVar[tuple[str, ...]] = ()

    def __init__(
        self,
        database: Database,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[LedgerValidator] = None,
    ):
        self._db = database
        self._audit = audit_logger or AuditLogger()
        self._validator = validator or LedgerValidator()

    # -------------------------------------------------------------------------
    # Row mapping
    # -------------------------------------------------------------------------

    def to_row(self, entity: T) -> dict[str, Any]:
        """Convert an entity to column values."""
        row = entity.model_dump()
        for key, value in row.items():
            if isinstance(value, Enum):
                row[key] = value.value
        for column in self.money_columns:
            row[column] = to_minor_units(row[column])
        return row

    def from_row(self, row: RowMapping) -> T:
        """Convert a stored row back to an entity."""
        data = dict(row)
        for column in self.money_columns:
            data[column] = from_minor_units(data[column])
        return self.model.model_validate(data)

    def _owned(self, entity_id: str, user_id: str):
        return (self.table.c.id == entity_id) & (self.table.c.user_id == user_id)

    def _order_by(self) -> list:
        return [self.table.c.id]

    # -------------------------------------------------------------------------
    # Helpers for use inside an open transaction
    # -------------------------------------------------------------------------

    def insert_with(self, conn: Connection, entity: T) -> None:
        conn.execute(insert(self.table).values(**self.to_row(entity)))

    def fetch_with(self, conn: Connection, entity_id: str, user_id: str) -> Optional[T]:
        row = conn.execute(
            select(self.table).where(self._owned(entity_id, user_id))
        ).mappings().first()
        return self.from_row(row) if row is not None else None

    def delete_with(self, conn: Connection, entity_id: str, user_id: str) -> bool:
        result = conn.execute(delete(self.table).where(self._owned(entity_id, user_id)))
        return result.rowcount > 0

    def _update_values(self, entity: T) -> dict[str, Any]:
        row = self.to_row(entity)
        values = {column: row[column] for column in self.mutable_columns}
        values["synced"] = False
        return values

    # -------------------------------------------------------------------------
    # EntityStore
    # -------------------------------------------------------------------------

    def _check_create(self, entity: T) -> None:
        self._validator.check_identity(entity, f"create {self.entity_type}")

    def _check_update(self, entity: T) -> None:
        self._validator.check_identity(entity, f"update {self.entity_type}")

    async def create(self, entity: T) -> T:
        """Insert a new entity."""
        self._check_create(entity)
        try:
            with self._db.transaction() as conn:
                self.insert_with(conn, entity)
        except SQLAlchemyError as e:
            logger.error(
                "entity_create_failed",
                entity_type=self.entity_type,
                entity_id=entity.id,
                error=str(e),
            )
            raise StorageError(f"Failed to create {self.entity_type}: {e}") from e

        await self._audit.log(AuditEventBuilder.entity_changed(
            AuditEventType.ENTITY_CREATED, self.entity_type, entity.id, entity.user_id,
        ))
        return entity

    async def get_by_id(self, entity_id: str, user_id: str) -> Optional[T]:
        """Retrieve an entity by its ID, scoped to its owner."""
        try:
            with self._db.connect() as conn:
                return self.fetch_with(conn, entity_id, user_id)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to get {self.entity_type}: {e}") from e

    async def require(self, entity_id: str, user_id: str) -> T:
        """Like ``get_by_id`` but raises NotFoundError when absent."""
        entity = await self.get_by_id(entity_id, user_id)
        if entity is None:
            raise NotFoundError(f"{self.entity_type.capitalize()} not found: {entity_id}")
        return entity

    async def list_by_user(self, user_id: str) -> list[T]:
        """List a user's entities."""
        try:
            with self._db.connect() as conn:
                rows = conn.execute(
                    select(self.table)
                    .where(self.table.c.user_id == user_id)
                    .order_by(*self._order_by())
                ).mappings().all()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to list {self.entity_type}s: {e}") from e
        return [self.from_row(row) for row in rows]

    async def update(self, entity: T) -> bool:
        """Update an entity and flag it for sync. A missing row is a no-op."""
        self._check_update(entity)
        try:
            with self._db.transaction() as conn:
                result = conn.execute(
                    update(self.table)
                    .where(self._owned(entity.id, entity.user_id))
                    .values(**self._update_values(entity))
                )
                matched = result.rowcount > 0
        except SQLAlchemyError as e:
            logger.error(
                "entity_update_failed",
                entity_type=self.entity_type,
                entity_id=entity.id,
                error=str(e),
            )
            raise StorageError(f"Failed to update {self.entity_type}: {e}") from e

        await self._audit.log(AuditEventBuilder.entity_changed(
            AuditEventType.ENTITY_UPDATED, self.entity_type, entity.id, entity.user_id, matched,
        ))
        return matched

    async def delete(self, entity_id: str, user_id: str) -> bool:
        """Delete an entity. A missing row is a no-op."""
        try:
            with self._db.transaction() as conn:
                removed = self.delete_with(conn, entity_id, user_id)
        except SQLAlchemyError as e:
            logger.error(
                "entity_delete_failed",
                entity_type=self.entity_type,
                entity_id=entity_id,
                error=str(e),
            )
            raise StorageError(f"Failed to delete {self.entity_type}: {e}") from e

        await self._audit.log(AuditEventBuilder.entity_changed(
            AuditEventType.ENTITY_DELETED, self.entity_type, entity_id, user_id, removed,
        ))
        return removed
