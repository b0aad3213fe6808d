"""
Core Data Models for Pocket Ledger

These models define the schemas for everything the ledger persists:
users, categories, accounts, transactions, budgets and goals.

Models check structure (types, enums, value ranges). Business rules such
as "amount must be positive" or "account must belong to the user" live in
the validation package so that they can be reported as ValidationError
before any write.
"""

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


def new_id() -> str:
    """Generate an opaque identifier. Identifiers are never reused."""
    return uuid4().hex


def utc_now() -> dt.datetime:
    """Current UTC time as a naive datetime (the storage format)."""
    return dt.datetime.now(dt.timezone.utc).replace(tzinfo=None)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class CategoryType(str, Enum):
    """What kind of money movement a category describes."""
    INCOME = "income"
    EXPENSE = "expense"
    TRANSFER = "transfer"


class TransactionType(str, Enum):
    """
    Transaction types.

    INCOME/EXPENSE are single-leg. DEBIT/CREDIT are the two legs of a
    transfer and always exist as a linked pair.
    """
    INCOME = "income"
    EXPENSE = "expense"
    DEBIT = "debit"
    CREDIT = "credit"

    @property
    def sign(self) -> int:
        """+1 for money coming into the account, -1 for money leaving it."""
        if self in (TransactionType.INCOME, TransactionType.CREDIT):
            return 1
        return -1

    @property
    def is_transfer_leg(self) -> bool:
        return self in (TransactionType.DEBIT, TransactionType.CREDIT)


class GoalStatus(str, Enum):
    """Goal lifecycle status."""
    ACTIVE = "active"
    COMPLETED = "completed"


# =============================================================================
# OWNED ENTITIES
# =============================================================================

class OwnedEntity(BaseModel):
    """
    Fields shared by every row that belongs to a user.

    ``synced`` is the dirty bit read by an external sync collaborator:
    False means the row has local changes not yet reflected remotely.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(
        default_factory=new_id,
        description="Opaque identifier, unique per user"
    )
    user_id: str = Field(
        ...,
        description="Owning user"
    )
    synced: bool = Field(
        default=False,
        description="True once an external sync has picked up this row"
    )


class Category(OwnedEntity):
    """A user-defined grouping for transactions."""

    name: str = Field(
        ...,
        max_length=100,
        description="Display name"
    )
    type: CategoryType = Field(
        ...,
        description="income, expense or transfer"
    )
    icon: str = Field(default="", max_length=20)
    color: str = Field(default="", max_length=20)
    description: Optional[str] = Field(
        default=None,
        max_length=500
    )
    created_at: dt.datetime = Field(default_factory=utc_now)


class Account(OwnedEntity):
    """
    A place money is held (cash, bank, card, goal pot).

    ``balance`` is a cached value maintained by the transaction ledger.
    It must always equal the signed sum of the account's transactions.
    """

    name: str = Field(
        ...,
        max_length=100,
        description="Display name"
    )
    balance: Decimal = Field(
        default=Decimal("0"),
        description="Signed balance, maintained by the ledger only"
    )
    icon: str = Field(default="", max_length=20)
    created_at: dt.datetime = Field(default_factory=utc_now)
    updated_at: dt.datetime = Field(default_factory=utc_now)


class Transaction(OwnedEntity):
    """
    A single recorded money movement.

    Amount is always stored positive; the sign comes from the type.
    """

    type: TransactionType
    title: Optional[str] = Field(default=None, max_length=200)
    category_id: Optional[str] = Field(
        default=None,
        description="Cleared to None when the category is removed"
    )
    amount: Decimal = Field(
        ...,
        description="Positive amount"
    )
    account_id: str = Field(
        ...,
        description="Account the money moves in or out of"
    )
    date: dt.date = Field(
        default_factory=dt.date.today,
        description="When the money moved"
    )
    notes: Optional[str] = Field(default=None, max_length=1000)
    linked_transaction_id: Optional[str] = Field(
        default=None,
        description="The other leg of a transfer"
    )

    @property
    def signed_amount(self) -> Decimal:
        """Amount with the sign implied by the transaction type."""
        return self.amount * self.type.sign


class Budget(OwnedEntity):
    """
    A monthly spending limit for one category.

    ``month`` is 0-based (January = 0). What has been spent is never
    stored; the aggregation engine derives it from transactions.
    """

    category_id: str
    budget_limit: Decimal = Field(
        ...,
        description="Spending limit for the month"
    )
    month: int = Field(..., ge=0, le=11)
    year: int = Field(..., ge=1900, le=9999)
    created_at: dt.datetime = Field(default_factory=utc_now)


class Goal(OwnedEntity):
    """
    A savings goal backed by a dedicated account.

    The current amount is the balance of that account (when
    ``include_balance`` is set); it is never stored on the goal itself.
    """

    title: str = Field(..., max_length=200)
    emoji: str = Field(default="", max_length=20)
    target_amount: Decimal
    target_date: dt.date
    account_id: str = Field(
        default="",
        description="Dedicated account, assigned when the goal is created"
    )
    include_balance: bool = Field(default=True)
    monthly_contribution: Decimal = Field(default=Decimal("0"))
    status: GoalStatus = Field(default=GoalStatus.ACTIVE)
    created_at: dt.datetime = Field(default_factory=utc_now)


# =============================================================================
# USER PROFILE
# =============================================================================

class User(BaseModel):
    """Local profile for an authenticated user."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    user_id: str = Field(
        ...,
        description="Identifier issued by the external auth provider"
    )
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone_number: Optional[str] = None
    avatar: Optional[str] = None
    date_of_birth: Optional[dt.date] = None
    occupation: Optional[str] = None
    created_at: dt.datetime = Field(default_factory=utc_now)
    updated_at: dt.datetime = Field(default_factory=utc_now)
    synced: bool = False


class UserInterest(BaseModel):
    """A single interest tag on a user profile."""

    id: str = Field(default_factory=new_id)
    user_id: str
    interest: str = Field(..., min_length=1, max_length=100)
    synced: bool = False
