"""
Relational layout of the local ledger database.

These are the CURRENT table shapes. Older databases are brought up to
them by the migrations in ``pocket_ledger.schema.migrations``.

Conventions:
- Every owned row is keyed by (id, user_id); ids are unique per user.
- Money columns hold integer minor units (see ``models.money``).
- Cross-table references are plain text columns without foreign keys.
  Referential integrity is kept by the ledger, and reads use outer joins
  so a vanished row never breaks a query.
- ``synced`` is the dirty bit: False means "needs external sync".
"""

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Index,
    Integer,
    MetaData,
    PrimaryKeyConstraint,
    String,
    Table,
    Text,
    case,
    text,
)
from sqlalchemy.sql.elements import ColumnElement


metadata = MetaData()


def _synced_column() -> Column:
    return Column("synced", Boolean, nullable=False, server_default=text("0"))


users = Table(
    "users",
    metadata,
    Column("id", String, primary_key=True),
    Column("user_id", String, nullable=False, unique=True),
    Column("first_name", String),
    Column("last_name", String),
    Column("phone_number", String),
    Column("avatar", String),
    Column("date_of_birth", Date),
    Column("occupation", String),
    Column("created_at", DateTime),
    Column("updated_at", DateTime),
    _synced_column(),
)

user_interests = Table(
    "user_interests",
    metadata,
    Column("id", String, primary_key=True),
    Column("user_id", String, nullable=False),
    Column("interest", String, nullable=False),
    _synced_column(),
)

categories = Table(
    "categories",
    metadata,
    Column("id", String, nullable=False),
    Column("user_id", String, nullable=False),
    Column("name", String, nullable=False),
    Column("type", String, nullable=False),
    Column("icon", String),
    Column("color", String),
    Column("description", Text),
    Column("created_at", DateTime),
    _synced_column(),
    PrimaryKeyConstraint("id", "user_id"),
)

accounts = Table(
    "accounts",
    metadata,
    Column("id", String, nullable=False),
    Column("user_id", String, nullable=False),
    Column("name", String, nullable=False),
    Column("balance", Integer, nullable=False, server_default=text("0")),
    Column("icon", String),
    Column("created_at", DateTime),
    Column("updated_at", DateTime),
    _synced_column(),
    PrimaryKeyConstraint("id", "user_id"),
)

transactions = Table(
    "transactions",
    metadata,
    Column("id", String, nullable=False),
    Column("user_id", String, nullable=False),
    Column("type", String, nullable=False),
    Column("title", String),
    Column("category_id", String),
    Column("amount", Integer, nullable=False),
    Column("account_id", String, nullable=False),
    Column("date", Date, nullable=False),
    Column("notes", Text),
    Column("linked_transaction_id", String),
    _synced_column(),
    PrimaryKeyConstraint("id", "user_id"),
    Index("ix_transactions_user_account", "user_id", "account_id"),
    Index("ix_transactions_user_category", "user_id", "category_id"),
    Index("ix_transactions_user_date", "user_id", "date"),
)

budgets = Table(
    "budgets",
    metadata,
    Column("id", String, nullable=False),
    Column("user_id", String, nullable=False),
    Column("category_id", String, nullable=False),
    Column("budget_limit", Integer, nullable=False, server_default=text("0")),
    Column("month", Integer, nullable=False),
    Column("year", Integer, nullable=False),
    Column("created_at", DateTime),
    _synced_column(),
    PrimaryKeyConstraint("id", "user_id"),
)

goals = Table(
    "goals",
    metadata,
    Column("id", String, nullable=False),
    Column("user_id", String, nullable=False),
    Column("title", String, nullable=False),
    Column("emoji", String),
    Column("target_amount", Integer, nullable=False),
    Column("target_date", Date, nullable=False),
    Column("account_id", String, nullable=False),
    Column("include_balance", Boolean, nullable=False, server_default=text("1")),
    Column("monthly_contribution", Integer, nullable=False, server_default=text("0")),
    Column("status", String, nullable=False, server_default=text("'active'")),
    Column("created_at", DateTime),
    _synced_column(),
    PrimaryKeyConstraint("id", "user_id"),
)

# Singleton marker: one row once the starter data has been written.
app_initialized = Table(
    "app_initialized",
    metadata,
    Column("initialized", Integer, nullable=False, server_default=text("0")),
)


def signed_amount_expr() -> ColumnElement:
    """SQL expression for a transaction's signed amount (minor units)."""
    return case(
        (transactions.c.type.in_(("income", "credit")), transactions.c.amount),
        else_=-transactions.c.amount,
    )
