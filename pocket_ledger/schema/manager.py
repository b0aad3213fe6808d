"""
Schema Manager

Runs once per process, before any store is built:

1. Create every table that does not exist yet (current shape)
2. Apply the ordered migrations to tables written by older releases
3. Create any missing indexes

All of it happens in ONE transaction. If anything fails the database is
left exactly as it was and FatalStartupError is raised; the process must
not continue with tables in an unknown shape.

The manager also seeds each user's starter categories the first time the
application runs against a fresh database.
"""

from typing import Optional

import structlog
from sqlalchemy import insert, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError

from pocket_ledger.audit import AuditLogger, create_correlation_id
from pocket_ledger.exceptions import FatalStartupError, NotPersistedError
from pocket_ledger.models.audit import AuditEventBuilder
from pocket_ledger.models.entities import Category, CategoryType
from pocket_ledger.schema.migrations import MIGRATIONS, Migration
from pocket_ledger.services.storage import tables
from pocket_ledger.services.storage.categories import CategoryStore
from pocket_ledger.services.storage.database import Database


logger = structlog.get_logger(__name__)


# (id, name, type, icon, color) of the categories every user starts with.
DEFAULT_CATEGORIES: list[tuple[str, str, CategoryType, str, str]] = [
    ("food_1", "Food & Dining", CategoryType.EXPENSE, "🍞", "#FF6B6B"),
    ("transport_1", "Transportation", CategoryType.EXPENSE, "🚗", "#4ECDC4"),
    ("shopping_1", "Shopping", CategoryType.EXPENSE, "🛒", "#45B7D1"),
    ("salary_1", "Salary", CategoryType.INCOME, "💰", "#2ECC71"),
    ("freelance_1", "Freelance", CategoryType.INCOME, "💻", "#3498DB"),
    ("transfer_1", "Transfer", CategoryType.TRANSFER, "↔️", "#9B59B6"),
]


def default_categories(user_id: str) -> list[Category]:
    return [
        Category(id=id_, user_id=user_id, name=name, type=type_, icon=icon, color=color)
        for id_, name, type_, icon, color in DEFAULT_CATEGORIES
    ]


class SchemaManager:
    """Owns the on-disk shape of the ledger database."""

    def __init__(
        self,
        database: Database,
        audit_logger: Optional[AuditLogger] = None,
        migrations: Optional[list[Migration]] = None,
    ):
        self._db = database
        self._audit = audit_logger or AuditLogger()
        self._migrations = MIGRATIONS if migrations is None else migrations

    def schema_version(self) -> int:
        """Number of migration steps this code knows about."""
        return len(self._migrations)

    async def ensure_schema(self) -> list[str]:
        """
        Bring the database to the current shape.

        Returns:
            Names of the migrations that changed something (empty when the
            database was already current)

        Raises:
            FatalStartupError: If any step fails. Nothing is changed.
        """
        applied: list[str] = []
        current: Optional[Migration] = None
        correlation_id = create_correlation_id()
        try:
            with self._db.transaction() as conn:
                tables.metadata.create_all(conn, checkfirst=True)
                for migration in self._migrations:
                    current = migration
                    if migration.apply(conn):
                        applied.append(migration.name)
                        logger.info("migration_applied", migration=migration.name)
                current = None
                for table in tables.metadata.sorted_tables:
                    for index in table.indexes:
                        index.create(conn, checkfirst=True)
        except Exception as e:
            failed_step = current.name if current is not None else "create tables"
            logger.critical(
                "schema_migration_failed",
                step=failed_step,
                error=str(e),
                error_type=type(e).__name__,
            )
            await self._audit.log(AuditEventBuilder.system_error(
                "schema_migration_failed",
                str(e),
                {"step": failed_step},
                correlation_id,
            ))
            raise FatalStartupError(f"Schema migration failed at '{failed_step}': {e}") from e

        for name in applied:
            await self._audit.log(AuditEventBuilder.migration_applied(name, correlation_id))
        await self._audit.log(AuditEventBuilder.schema_ensured(
            applied, self.schema_version(), correlation_id,
        ))
        logger.info(
            "schema_ready",
            version=self.schema_version(),
            applied=len(applied),
            correlation_id=str(correlation_id),
        )
        return applied

    async def seed_defaults_if_first_run(self, user_id: str) -> bool:
        """
        Insert the starter categories on first run.

        The "initialized" marker and the categories are written in one
        transaction, so a crash never leaves the marker set without the
        categories, and a retry never seeds twice.

        Returns:
            True if the categories were seeded by this call
        """
        categories = default_categories(user_id)
        store = CategoryStore(self._db, self._audit)
        correlation_id = create_correlation_id()
        try:
            with self._db.transaction() as conn:
                initialized = conn.execute(
                    select(tables.app_initialized.c.initialized).limit(1)
                ).scalar()
                if initialized:
                    return False

                for category in categories:
                    conn.execute(
                        sqlite_insert(tables.categories)
                        .values(**store.to_row(category))
                        .on_conflict_do_nothing()
                    )
                conn.execute(insert(tables.app_initialized).values(initialized=1))
        except SQLAlchemyError as e:
            logger.error("seed_defaults_failed", user_id=user_id, error=str(e))
            await self._audit.log(AuditEventBuilder.save_failed(
                "seed defaults", str(e), user_id, correlation_id,
            ))
            raise NotPersistedError(f"Failed to seed default categories: {e}") from e

        await self._audit.log(AuditEventBuilder.defaults_seeded(
            user_id, [category.id for category in categories], correlation_id,
        ))
        logger.info("defaults_seeded", user_id=user_id, count=len(categories))
        return True
