"""
Budget storage.

Uniqueness of (user, category, month, year) is not enforced here;
callers must not create duplicates.
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from pocket_ledger.models.entities import Budget
from pocket_ledger.services.storage import tables
from pocket_ledger.services.storage.interface import StorageError
from pocket_ledger.services.storage.sql_store import SqlEntityStore


class BudgetStore(SqlEntityStore[Budget]):
    table = tables.budgets
    model = Budget
    entity_type = "budget"
    mutable_columns = ("category_id", "budget_limit", "month", "year")
    money_columns = ("budget_limit",)

    def _order_by(self) -> list:
        return [
            self.table.c.year.desc(),
            self.table.c.month.desc(),
            self.table.c.category_id,
            self.table.c.id,
        ]

    def _check_create(self, budget: Budget) -> None:
        self._validator.check_budget(budget)

    def _check_update(self, budget: Budget) -> None:
        self._validator.check_budget(budget)

    async def list_for_month(
        self,
        user_id: str,
        month: int,
        year: int,
        category_id: Optional[str] = None,
    ) -> list[Budget]:
        """List a user's budgets for one month (0-based), optionally for one category."""
        condition = (
            (self.table.c.user_id == user_id)
            & (self.table.c.month == month)
            & (self.table.c.year == year)
        )
        if category_id is not None:
            condition = condition & (self.table.c.category_id == category_id)

        try:
            with self._db.connect() as conn:
                rows = conn.execute(
                    select(self.table).where(condition).order_by(*self._order_by())
                ).mappings().all()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to list budgets: {e}") from e
        return [self.from_row(row) for row in rows]
