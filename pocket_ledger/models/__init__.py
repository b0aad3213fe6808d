"""
Data Models Package

This package contains all Pydantic models used by Pocket Ledger.
Everything the ledger stores or returns conforms to these schemas.
"""

from pocket_ledger.models.entities import (
    Account,
    Budget,
    Category,
    CategoryType,
    Goal,
    GoalStatus,
    OwnedEntity,
    Transaction,
    TransactionType,
    User,
    UserInterest,
    new_id,
    utc_now,
)
from pocket_ledger.models.views import (
    BalanceDrift,
    BudgetSpending,
    CategoryTotal,
    GoalProgress,
    TransactionDetail,
    TransferPair,
)
from pocket_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Entities
    "Account",
    "Budget",
    "Category",
    "CategoryType",
    "Goal",
    "GoalStatus",
    "OwnedEntity",
    "Transaction",
    "TransactionType",
    "User",
    "UserInterest",
    "new_id",
    "utc_now",
    # Read models
    "BalanceDrift",
    "BudgetSpending",
    "CategoryTotal",
    "GoalProgress",
    "TransactionDetail",
    "TransferPair",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
