"""
Forward-only schema migrations.

Databases written by older releases are brought up to the table shapes in
``services.storage.tables``. Each migration inspects the live schema,
changes it only when needed, and can be run again without effect.

Migrations run inside the schema manager's single transaction; none of
them commits on its own.
"""

from abc import ABC, abstractmethod

import structlog
from sqlalchemy import Column, MetaData, Table, column, insert, inspect, select, table
from sqlalchemy.engine import Connection
from sqlalchemy.schema import CreateTable, DropTable

from pocket_ledger.services.storage import tables


logger = structlog.get_logger(__name__)

SHADOW_SUFFIX = "__new"


def _column_names(conn: Connection, table_name: str) -> set[str]:
    return {col["name"] for col in inspect(conn).get_columns(table_name)}


def _table_names(conn: Connection) -> set[str]:
    return set(inspect(conn).get_table_names())


class Migration(ABC):
    """One schema change. ``apply`` returns True if it changed anything."""

    name: str

    @abstractmethod
    def apply(self, conn: Connection) -> bool:
        pass

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


class AddColumn(Migration):
    """
    Add a column that the current table definition has and the live table
    lacks. Type and default come from ``tables``.
    """

    def __init__(self, table_name: str, column_name: str):
        self.table_name = table_name
        self.column_name = column_name
        self.name = f"add {table_name}.{column_name}"

    def _ddl(self, conn: Connection) -> str:
        col: Column = tables.metadata.tables[self.table_name].c[self.column_name]
        preparer = conn.dialect.identifier_preparer
        ddl = (
            f"ALTER TABLE {preparer.quote(self.table_name)} "
            f"ADD COLUMN {preparer.quote(self.column_name)} "
            f"{col.type.compile(dialect=conn.dialect)}"
        )
        if col.server_default is not None:
            # server defaults in ``tables`` are literal SQL text()
            ddl += f" DEFAULT {col.server_default.arg}"
            if not col.nullable:
                ddl += " NOT NULL"
        return ddl

    def apply(self, conn: Connection) -> bool:
        if self.table_name not in _table_names(conn):
            return False
        if self.column_name in _column_names(conn, self.table_name):
            return False
        conn.exec_driver_sql(self._ddl(conn))
        return True


class CreateTableIfMissing(Migration):
    def __init__(self, table_name: str):
        self.table_name = table_name
        self.name = f"create {table_name}"

    def apply(self, conn: Connection) -> bool:
        if self.table_name in _table_names(conn):
            return False
        tables.metadata.tables[self.table_name].create(conn)
        return True


class DropTableIfPresent(Migration):
    def __init__(self, table_name: str):
        self.table_name = table_name
        self.name = f"drop {table_name}"

    def apply(self, conn: Connection) -> bool:
        if self.table_name not in _table_names(conn):
            return False
        conn.execute(DropTable(Table(self.table_name, MetaData())))
        return True


class RebuildTable(Migration):
    """
    Remove columns SQLite cannot drop in place.

    Builds ``<table>__new`` with the current column set, copies every row's
    surviving columns, drops the old table and renames the new one into
    place. Indexes are recreated afterwards under their usual names.
    """

    def __init__(self, table_name: str, removed_columns: tuple[str, ...]):
        self.table_name = table_name
        self.removed_columns = removed_columns
        self.name = f"rebuild {table_name} without {', '.join(removed_columns)}"

    def apply(self, conn: Connection) -> bool:
        if self.table_name not in _table_names(conn):
            return False
        live = _column_names(conn, self.table_name)
        if not live & set(self.removed_columns):
            return False

        current = tables.metadata.tables[self.table_name]
        shadow_name = self.table_name + SHADOW_SUFFIX
        shadow = current.to_metadata(MetaData(), name=shadow_name)
        if shadow_name in _table_names(conn):
            conn.execute(DropTable(shadow))

        # CreateTable only; the indexes keep their names and are created
        # once the old table (and its indexes) are gone
        conn.execute(CreateTable(shadow))

        surviving = [c.name for c in current.columns if c.name in live]
        old = table(self.table_name, *[column(name) for name in surviving])
        conn.execute(
            insert(shadow).from_select(
                surviving,
                select(*[old.c[name] for name in surviving]),
            )
        )

        conn.execute(DropTable(Table(self.table_name, MetaData())))
        preparer = conn.dialect.identifier_preparer
        conn.exec_driver_sql(
            f"ALTER TABLE {preparer.quote(shadow_name)} "
            f"RENAME TO {preparer.quote(self.table_name)}"
        )
        for index in current.indexes:
            index.create(conn, checkfirst=True)

        logger.info(
            "table_rebuilt",
            table=self.table_name,
            removed=list(self.removed_columns),
            copied_columns=surviving,
        )
        return True


# Order matters: later steps assume the earlier ones have run.
MIGRATIONS: list[Migration] = [
    AddColumn("users", "avatar"),
    AddColumn("users", "date_of_birth"),
    AddColumn("users", "occupation"),
    CreateTableIfMissing("user_interests"),
    AddColumn("categories", "description"),
    AddColumn("transactions", "title"),
    AddColumn("budgets", "budget_limit"),
    AddColumn("transactions", "linked_transaction_id"),
    DropTableIfPresent("subcategories"),
    RebuildTable("transactions", ("sub_category_id",)),
    AddColumn("goals", "status"),
]
