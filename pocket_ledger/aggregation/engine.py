"""
Aggregation Engine

Read-only figures derived from the ledger: what a budget has spent, how far
a goal has come, and per-category totals. Nothing computed here is stored;
every call recomputes from the current rows.

Goal projection:
    current   = balance of the goal's account (0 if include_balance is off)
    percent   = clamp(current / target * 100, 0, 100)
    days      = max(target_date - today, 0)
    months    = whole calendar months until target_date, at least 1
    needed    = ceil((target - current) / months), never below 0
"""

import datetime as dt
from decimal import ROUND_CEILING, ROUND_HALF_UP, Decimal
from typing import Optional

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from pocket_ledger.exceptions import StorageError
from pocket_ledger.ledger.transactions import TransactionLedger
from pocket_ledger.models.entities import Budget, Goal, TransactionType
from pocket_ledger.models.money import from_minor_units, quantize
from pocket_ledger.models.views import BudgetSpending, CategoryTotal, GoalProgress
from pocket_ledger.services.storage import tables
from pocket_ledger.services.storage.accounts import AccountStore
from pocket_ledger.services.storage.budgets import BudgetStore
from pocket_ledger.services.storage.database import Database


logger = structlog.get_logger(__name__)

HUNDRED = Decimal(100)


def month_bounds(month: int, year: int) -> tuple[dt.date, dt.date]:
    """First day of a 0-based month and first day of the month after it."""
    start = dt.date(year, month + 1, 1)
    if month == 11:
        return start, dt.date(year + 1, 1, 1)
    return start, dt.date(year, month + 2, 1)


def months_between(today: dt.date, target: dt.date) -> int:
    """
    Whole calendar months from ``today`` to ``target``, at least 1.

    A month only counts once its day-of-month has been reached, so
    Jan 15 -> Oct 15 is 9 and Jan 15 -> Oct 14 is 8. Past targets give 1.
    """
    months = (target.year - today.year) * 12 + (target.month - today.month)
    if target.day < today.day:
        months -= 1
    return max(months, 1)


class AggregationEngine:
    """Derived views over budgets, goals and transactions."""

    def __init__(
        self,
        database: Database,
        ledger: TransactionLedger,
        accounts: AccountStore,
        budgets: BudgetStore,
    ):
        self._db = database
        self._ledger = ledger
        self._accounts = accounts
        self._budgets = budgets

    # -------------------------------------------------------------------------
    # Budgets
    # -------------------------------------------------------------------------

    def _spent(self, budget: Budget) -> Decimal:
        transactions = tables.transactions
        start, end = month_bounds(budget.month, budget.year)
        stmt = select(func.coalesce(func.sum(transactions.c.amount), 0)).where(
            (transactions.c.user_id == budget.user_id)
            & (transactions.c.category_id == budget.category_id)
            & (transactions.c.type == TransactionType.EXPENSE.value)
            & (transactions.c.date >= start)
            & (transactions.c.date < end)
        )
        try:
            with self._db.connect() as conn:
                total = conn.execute(stmt).scalar()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to compute budget spending: {e}") from e
        return from_minor_units(total)

    async def budget_spent(self, budget: Budget) -> BudgetSpending:
        """
        Expenses in the budget's category during its month.

        ``available`` may be negative; that means the budget is overspent.
        """
        spent = self._spent(budget)
        return BudgetSpending(
            budget=budget,
            spent=spent,
            available=quantize(budget.budget_limit - spent),
        )

    async def budgets_with_spending(
        self,
        user_id: str,
        month: Optional[int] = None,
        year: Optional[int] = None,
    ) -> list[BudgetSpending]:
        """Spending for each of a user's budgets, optionally for one month or year."""
        if month is not None and year is not None:
            budgets = await self._budgets.list_for_month(user_id, month, year)
        else:
            budgets = [
                budget for budget in await self._budgets.list_by_user(user_id)
                if (month is None or budget.month == month)
                and (year is None or budget.year == year)
            ]
        return [await self.budget_spent(budget) for budget in budgets]

    # -------------------------------------------------------------------------
    # Goals
    # -------------------------------------------------------------------------

    async def goal_progress(self, goal: Goal, today: Optional[dt.date] = None) -> GoalProgress:
        """
        Progress of a goal from its dedicated account's balance.

        The balance counts as 0 when ``include_balance`` is off or the
        account is gone.

        Rounding:
            percent_complete: clamped to 0..100, then rounded half-up to
                0.01. An overdrawn account reads 0 and an overfunded one
                reads 100.
            monthly_contribution_needed: the shortfall over
                ``months_remaining`` (at least 1), rounded UP to a whole
                currency unit and never below 0. A funded goal needs 0.
        """
        today = today or dt.date.today()

        current = Decimal("0")
        if goal.include_balance and goal.account_id:
            account = await self._accounts.get_by_id(goal.account_id, goal.user_id)
            if account is not None:
                current = account.balance
            else:
                logger.warning("goal_account_missing", goal_id=goal.id, account_id=goal.account_id)

        target = goal.target_amount
        if target > 0:
            percent = current / target * HUNDRED
        else:
            percent = HUNDRED
        percent = min(max(percent, Decimal(0)), HUNDRED).quantize(
            Decimal("0.01"), rounding=ROUND_HALF_UP,
        )

        months = months_between(today, goal.target_date)
        needed = ((target - current) / months).to_integral_value(rounding=ROUND_CEILING)

        return GoalProgress(
            goal_id=goal.id,
            current_amount=current,
            target_amount=target,
            percent_complete=percent,
            days_remaining=max((goal.target_date - today).days, 0),
            months_remaining=months,
            monthly_contribution_needed=quantize(max(needed, Decimal(0))),
        )

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    async def category_totals(
        self,
        user_id: str,
        start_date: dt.date,
        end_date: dt.date,
    ) -> list[CategoryTotal]:
        """Signed total per category for ``start_date <= date < end_date``."""
        return await self._ledger.get_category_totals(user_id, start_date, end_date)
