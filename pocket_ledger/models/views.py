"""
Read models returned by the ledger and the aggregation engine.

None of these are persisted. They are recomputed from stored rows on
every call.
"""

import datetime as dt
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from pocket_ledger.models.entities import Budget, Transaction, TransactionType


class TransferPair(BaseModel):
    """The two legs written by one transfer."""

    debit: Transaction
    credit: Transaction


class TransactionDetail(BaseModel):
    """
    A transaction with its references resolved for display.

    Missing accounts or categories resolve to the configured "Unknown"
    label instead of failing the read.
    """

    id: str
    type: TransactionType
    title: Optional[str] = None
    amount: Decimal
    signed_amount: Decimal
    date: dt.date
    notes: Optional[str] = None
    account_id: str
    account_name: str
    category_id: Optional[str] = None
    category_name: str
    linked_transaction_id: Optional[str] = None


class CategoryTotal(BaseModel):
    """Signed sum of a category's transactions over a date range."""

    category_id: Optional[str] = Field(
        default=None,
        description="None for transactions whose category was cleared"
    )
    category_name: str
    total: Decimal
    transaction_count: int = Field(ge=0)


class BudgetSpending(BaseModel):
    """A budget together with what has been spent against it."""

    budget: Budget
    spent: Decimal
    available: Decimal = Field(
        ...,
        description="budget_limit - spent; negative when overspent"
    )

    @property
    def is_over_budget(self) -> bool:
        return self.available < 0


class GoalProgress(BaseModel):
    """Derived progress figures for a goal."""

    goal_id: str
    current_amount: Decimal
    target_amount: Decimal
    percent_complete: Decimal = Field(ge=0, le=100)
    days_remaining: int = Field(ge=0)
    months_remaining: int = Field(ge=1)
    monthly_contribution_needed: Decimal


class BalanceDrift(BaseModel):
    """An account whose cached balance disagrees with its transactions."""

    account_id: str
    cached_balance: Decimal
    computed_balance: Decimal

    @property
    def difference(self) -> Decimal:
        return self.cached_balance - self.computed_balance
