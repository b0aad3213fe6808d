"""Category storage."""

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from pocket_ledger.models.entities import Category, CategoryType
from pocket_ledger.services.storage import tables
from pocket_ledger.services.storage.interface import StorageError
from pocket_ledger.services.storage.sql_store import SqlEntityStore


class CategoryStore(SqlEntityStore[Category]):
    """
    Categories are deleted outright. Deleting one does not touch its
    transactions; callers clear or re-point them with
    ``TransactionLedger.reassign_category``.
    """

    table = tables.categories
    model = Category
    entity_type = "category"
    mutable_columns = ("name", "type", "icon", "color", "description")

    def _order_by(self) -> list:
        return [self.table.c.type, self.table.c.name, self.table.c.id]

    async def list_by_type(self, user_id: str, category_type: CategoryType) -> list[Category]:
        """List a user's categories of one type."""
        try:
            with self._db.connect() as conn:
                rows = conn.execute(
                    select(self.table)
                    .where(
                        (self.table.c.user_id == user_id)
                        & (self.table.c.type == CategoryType(category_type).value)
                    )
                    .order_by(self.table.c.name, self.table.c.id)
                ).mappings().all()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to list categories: {e}") from e
        return [self.from_row(row) for row in rows]
