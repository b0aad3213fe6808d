"""
Tests for schema creation, migrations and first-run seeding.
"""

import pytest
from sqlalchemy import inspect, text
from sqlalchemy.engine import Connection

from pocket_ledger.models import AuditEventType
from pocket_ledger.schema import (
    DEFAULT_CATEGORIES,
    MIGRATIONS,
    AddColumn,
    FatalStartupError,
    Migration,
    SchemaManager,
)
from pocket_ledger.services.storage import CategoryStore

from tests.conftest import OTHER_USER, USER, RecordingAuditLogger


# Tables as an early release of the app wrote them.
LEGACY_DDL = [
    """CREATE TABLE users (
        id TEXT PRIMARY KEY, user_id TEXT NOT NULL UNIQUE, first_name TEXT,
        last_name TEXT, phone_number TEXT, created_at DATETIME,
        updated_at DATETIME, synced BOOLEAN NOT NULL DEFAULT 0)""",
    """CREATE TABLE categories (
        id TEXT NOT NULL, user_id TEXT NOT NULL, name TEXT NOT NULL,
        type TEXT NOT NULL, icon TEXT, color TEXT, created_at DATETIME,
        synced BOOLEAN NOT NULL DEFAULT 0, PRIMARY KEY (id, user_id))""",
    """CREATE TABLE transactions (
        id TEXT NOT NULL, user_id TEXT NOT NULL, type TEXT NOT NULL,
        category_id TEXT, sub_category_id TEXT, amount INTEGER NOT NULL,
        account_id TEXT NOT NULL, date DATE NOT NULL, notes TEXT,
        synced BOOLEAN NOT NULL DEFAULT 0, PRIMARY KEY (id, user_id))""",
    """CREATE TABLE budgets (
        id TEXT NOT NULL, user_id TEXT NOT NULL, category_id TEXT NOT NULL,
        month INTEGER NOT NULL, year INTEGER NOT NULL, created_at DATETIME,
        synced BOOLEAN NOT NULL DEFAULT 0, PRIMARY KEY (id, user_id))""",
    """CREATE TABLE goals (
        id TEXT NOT NULL, user_id TEXT NOT NULL, title TEXT NOT NULL,
        emoji TEXT, target_amount INTEGER NOT NULL, target_date DATE NOT NULL,
        account_id TEXT NOT NULL, include_balance BOOLEAN NOT NULL DEFAULT 1,
        monthly_contribution INTEGER NOT NULL DEFAULT 0, created_at DATETIME,
        synced BOOLEAN NOT NULL DEFAULT 0, PRIMARY KEY (id, user_id))""",
    "CREATE TABLE subcategories (id TEXT PRIMARY KEY, name TEXT)",
    """INSERT INTO transactions
        (id, user_id, type, category_id, sub_category_id, amount, account_id, date, notes, synced)
        VALUES ('t1', 'user-1', 'expense', 'food_1', 'sub-9', 5000, 'a1', '2024-03-02', 'lunch', 1)""",
    """INSERT INTO goals
        (id, user_id, title, emoji, target_amount, target_date, account_id, created_at)
        VALUES ('g1', 'user-1', 'Bike', '', 1000000, '2030-01-01', 'a2', '2024-01-01 10:00:00')""",
]


def create_legacy_tables(db) -> None:
    with db.transaction() as conn:
        for statement in LEGACY_DDL:
            conn.execute(text(statement))


def columns(db, table: str) -> set[str]:
    return {col["name"] for col in inspect(db.engine).get_columns(table)}


class FailingMigration(Migration):
    name = "always fails"

    def apply(self, conn: Connection) -> bool:
        raise RuntimeError("boom")


class TestEnsureSchema:
    """Tests for SchemaManager.ensure_schema."""

    async def test_fresh_database_gets_every_table(self, db):
        """Test that a new database ends up with the full layout."""
        await SchemaManager(db).ensure_schema()
        names = set(inspect(db.engine).get_table_names())
        assert {
            "users", "user_interests", "categories", "accounts",
            "transactions", "budgets", "goals", "app_initialized",
        } <= names

    async def test_fresh_database_needs_no_migrations(self, db):
        """Test that current-shape tables are left alone by migrations."""
        applied = await SchemaManager(db).ensure_schema()
        assert applied == []

    async def test_running_twice_is_harmless(self, db):
        """Test idempotency: the second run changes nothing."""
        create_legacy_tables(db)
        manager = SchemaManager(db)
        first = await manager.ensure_schema()
        second = await manager.ensure_schema()
        assert first
        assert second == []

    async def test_upgrades_legacy_database(self, db):
        """Test that every migration step is applied to an old database."""
        create_legacy_tables(db)
        applied = await SchemaManager(db).ensure_schema()

        assert set(applied) == {m.name for m in MIGRATIONS} - {"create user_interests"}
        assert {"avatar", "date_of_birth", "occupation"} <= columns(db, "users")
        assert "description" in columns(db, "categories")
        assert "budget_limit" in columns(db, "budgets")
        assert "status" in columns(db, "goals")

        txn_columns = columns(db, "transactions")
        assert {"title", "linked_transaction_id"} <= txn_columns
        assert "sub_category_id" not in txn_columns

        table_names = set(inspect(db.engine).get_table_names())
        assert "subcategories" not in table_names
        assert "transactions__new" not in table_names
        assert "user_interests" in table_names

    async def test_rebuild_keeps_rows(self, db):
        """Test that the transactions rebuild copies every surviving column."""
        create_legacy_tables(db)
        await SchemaManager(db).ensure_schema()

        with db.connect() as conn:
            row = conn.execute(text("SELECT * FROM transactions WHERE id = 't1'")).mappings().one()
        assert row["amount"] == 5000
        assert row["category_id"] == "food_1"
        assert row["notes"] == "lunch"
        assert row["title"] is None
        assert row["linked_transaction_id"] is None

    async def test_indexes_exist_after_rebuild(self, db):
        create_legacy_tables(db)
        await SchemaManager(db).ensure_schema()
        index_names = {ix["name"] for ix in inspect(db.engine).get_indexes("transactions")}
        assert "ix_transactions_user_account" in index_names

    async def test_added_column_uses_default(self, db):
        """Test that existing goals read as active after goals.status is added."""
        create_legacy_tables(db)
        await SchemaManager(db).ensure_schema()
        with db.connect() as conn:
            status = conn.execute(text("SELECT status FROM goals WHERE id = 'g1'")).scalar()
        assert status == "active"

    async def test_failure_is_fatal_and_rolls_back(self, db):
        """Test that a failed migration leaves the database untouched."""
        create_legacy_tables(db)
        manager = SchemaManager(db, migrations=[AddColumn("users", "avatar"), FailingMigration()])

        with pytest.raises(FatalStartupError) as exc:
            await manager.ensure_schema()

        assert "always fails" in str(exc.value)
        assert "avatar" not in columns(db, "users")
        assert "accounts" not in inspect(db.engine).get_table_names()

    def test_schema_version_counts_migrations(self, db):
        assert SchemaManager(db).schema_version() == len(MIGRATIONS)

    async def test_upgrade_events_share_one_correlation_id(self, db):
        """Test that every event of one upgrade carries the same correlation id."""
        create_legacy_tables(db)
        audit = RecordingAuditLogger()
        await SchemaManager(db, audit).ensure_schema()

        applied = audit.of_type(AuditEventType.MIGRATION_APPLIED)
        [ensured] = audit.of_type(AuditEventType.SCHEMA_ENSURED)
        assert applied
        assert ensured.correlation_id is not None
        assert {e.correlation_id for e in applied} == {ensured.correlation_id}

    async def test_failure_event_carries_correlation_id(self, db):
        audit = RecordingAuditLogger()
        with pytest.raises(FatalStartupError):
            await SchemaManager(db, audit, migrations=[FailingMigration()]).ensure_schema()

        [error] = audit.of_type(AuditEventType.SYSTEM_ERROR)
        assert error.correlation_id is not None
        assert error.details == {"step": "always fails"}


class TestSeeding:
    """Tests for first-run default data."""

    async def test_seeds_starter_categories_once(self, app):
        """Test that the six starter categories are inserted on first run only."""
        assert await app.schema.seed_defaults_if_first_run(USER) is True
        assert await app.schema.seed_defaults_if_first_run(USER) is False

        categories = await app.categories.list_by_user(USER)
        assert sorted(c.id for c in categories) == sorted(row[0] for row in DEFAULT_CATEGORIES)

    async def test_seeded_values(self, app):
        await app.schema.seed_defaults_if_first_run(USER)
        food = await app.categories.get_by_id("food_1", USER)
        assert food.name == "Food & Dining"
        assert food.type.value == "expense"
        assert food.color == "#FF6B6B"
        transfer = await app.categories.get_by_id("transfer_1", USER)
        assert transfer.type.value == "transfer"

    async def test_marker_is_global(self, app):
        """Test that the initialized marker is shared by every user."""
        await app.schema.seed_defaults_if_first_run(USER)
        assert await app.schema.seed_defaults_if_first_run(OTHER_USER) is False
        assert await CategoryStore(app.database).list_by_user(OTHER_USER) == []

    async def test_start_session_seeds(self, app):
        assert await app.start_session(USER) is True
        assert len(await app.categories.list_by_user(USER)) == len(DEFAULT_CATEGORIES)
