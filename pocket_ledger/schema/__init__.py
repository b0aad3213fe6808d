"""
Schema Package

Creates and migrates the local database and seeds first-run data.
"""

from pocket_ledger.exceptions import FatalStartupError
from pocket_ledger.schema.manager import DEFAULT_CATEGORIES, SchemaManager
from pocket_ledger.schema.migrations import (
    MIGRATIONS,
    AddColumn,
    CreateTableIfMissing,
    DropTableIfPresent,
    Migration,
    RebuildTable,
)

__all__ = [
    "AddColumn",
    "CreateTableIfMissing",
    "DEFAULT_CATEGORIES",
    "DropTableIfPresent",
    "FatalStartupError",
    "MIGRATIONS",
    "Migration",
    "RebuildTable",
    "SchemaManager",
]
