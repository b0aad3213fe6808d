"""
Audit Models for Pocket Ledger

Every ledger mutation and every schema change produces an audit event.
Events are written to the structured log so that a balance can be traced
back to the operations that produced it.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from pocket_ledger.models.entities import utc_now


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Ledger
    TRANSACTION_RECORDED = "transaction_recorded"
    TRANSFER_RECORDED = "transfer_recorded"
    TRANSACTION_DELETED = "transaction_deleted"
    CATEGORY_REASSIGNED = "category_reassigned"
    ACCOUNT_OPENED = "account_opened"
    GOAL_CREATED = "goal_created"
    GOAL_DELETED = "goal_deleted"

    # Entity stores
    ENTITY_CREATED = "entity_created"
    ENTITY_UPDATED = "entity_updated"
    ENTITY_DELETED = "entity_deleted"

    # Failures
    VALIDATION_FAILED = "validation_failed"
    SAVE_FAILED = "save_failed"

    # Schema
    SCHEMA_ENSURED = "schema_ensured"
    MIGRATION_APPLIED = "migration_applied"
    DEFAULTS_SEEDED = "defaults_seeded"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of the audit trail.
    """

    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    event_type: AuditEventType
    severity: AuditSeverity = Field(default=AuditSeverity.INFO)

    # What entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'account', 'schema')"
    )
    entity_id: Optional[str] = None
    user_id: Optional[str] = None

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = None

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    error_code: Optional[str] = None
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "user_id": self.user_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transfer_recorded(debit_id, credit_id, ...)
        event = AuditEventBuilder.migration_applied("add transactions.title")
    """

    @staticmethod
    def transaction_recorded(
        transaction_id: str,
        user_id: str,
        transaction_type: str,
        account_id: str,
        amount: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            correlation_id=correlation_id,
            event_type=AuditEventType.TRANSACTION_RECORDED,
            entity_type="transaction",
            entity_id=transaction_id,
            user_id=user_id,
            description=f"Recorded {transaction_type} of {amount} on account {account_id}",
            details={
                "type": transaction_type,
                "account_id": account_id,
                "amount": str(amount),
            },
        )

    @staticmethod
    def transfer_recorded(
        debit_id: str,
        credit_id: str,
        user_id: str,
        from_account_id: str,
        to_account_id: str,
        amount: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            correlation_id=correlation_id,
            event_type=AuditEventType.TRANSFER_RECORDED,
            entity_type="transaction",
            entity_id=debit_id,
            user_id=user_id,
            description=f"Transferred {amount} from {from_account_id} to {to_account_id}",
            details={
                "debit_id": debit_id,
                "credit_id": credit_id,
                "from_account_id": from_account_id,
                "to_account_id": to_account_id,
                "amount": str(amount),
            },
        )

    @staticmethod
    def transaction_deleted(
        transaction_ids: list[str],
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            correlation_id=correlation_id,
            event_type=AuditEventType.TRANSACTION_DELETED,
            entity_type="transaction",
            entity_id=transaction_ids[0],
            user_id=user_id,
            description=f"Deleted {len(transaction_ids)} transaction row(s) and reversed balances",
            details={"transaction_ids": transaction_ids},
        )

    @staticmethod
    def category_reassigned(
        user_id: str,
        from_category_id: str,
        to_category_id: Optional[str],
        count: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            correlation_id=correlation_id,
            event_type=AuditEventType.CATEGORY_REASSIGNED,
            entity_type="category",
            entity_id=from_category_id,
            user_id=user_id,
            description=f"Moved {count} transaction(s) off category {from_category_id}",
            details={
                "to_category_id": to_category_id,
                "count": count,
            },
        )

    @staticmethod
    def account_opened(
        account_id: str,
        user_id: str,
        opening_balance: Decimal,
        transaction_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            correlation_id=correlation_id,
            event_type=AuditEventType.ACCOUNT_OPENED,
            entity_type="account",
            entity_id=account_id,
            user_id=user_id,
            description=f"Account opened with balance {opening_balance}",
            details={
                "opening_balance": str(opening_balance),
                "transaction_id": transaction_id,
            },
        )

    @staticmethod
    def goal_created(goal_id: str, user_id: str, account_id: str, correlation_id: Optional[UUID] = None) -> AuditEvent:
        return AuditEvent(
            correlation_id=correlation_id,
            event_type=AuditEventType.GOAL_CREATED,
            entity_type="goal",
            entity_id=goal_id,
            user_id=user_id,
            description="Goal created with its dedicated account",
            details={"account_id": account_id},
        )

    @staticmethod
    def goal_deleted(
        goal_id: str,
        user_id: str,
        account_id: str,
        transaction_ids: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            correlation_id=correlation_id,
            event_type=AuditEventType.GOAL_DELETED,
            entity_type="goal",
            entity_id=goal_id,
            user_id=user_id,
            description=f"Goal deleted with {len(transaction_ids)} transaction row(s)",
            details={
                "account_id": account_id,
                "transaction_ids": transaction_ids,
            },
        )

    @staticmethod
    def entity_changed(
        event_type: AuditEventType,
        entity_type: str,
        entity_id: str,
        user_id: str,
        matched: bool = True,
    ) -> AuditEvent:
        verb = event_type.value.split("_")[-1]
        return AuditEvent(
            event_type=event_type,
            severity=AuditSeverity.DEBUG,
            entity_type=entity_type,
            entity_id=entity_id,
            user_id=user_id,
            description=f"{entity_type.capitalize()} {verb}",
            details={"matched": matched},
        )

    @staticmethod
    def validation_failed(
        operation: str,
        issues: list[dict],
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            correlation_id=correlation_id,
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="operation",
            entity_id=operation,
            user_id=user_id,
            description=f"{operation} rejected with {len(issues)} issue(s)",
            details={"issues": issues},
        )

    @staticmethod
    def save_failed(
        operation: str,
        error_message: str,
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            correlation_id=correlation_id,
            event_type=AuditEventType.SAVE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="operation",
            entity_id=operation,
            user_id=user_id,
            description=f"{operation} rolled back",
            error_message=error_message,
        )

    @staticmethod
    def migration_applied(name: str, correlation_id: Optional[UUID] = None) -> AuditEvent:
        return AuditEvent(
            correlation_id=correlation_id,
            event_type=AuditEventType.MIGRATION_APPLIED,
            entity_type="schema",
            entity_id=name,
            description=f"Migration applied: {name}",
        )

    @staticmethod
    def schema_ensured(applied: list[str], version: int, correlation_id: Optional[UUID] = None) -> AuditEvent:
        return AuditEvent(
            correlation_id=correlation_id,
            event_type=AuditEventType.SCHEMA_ENSURED,
            entity_type="schema",
            description=f"Schema at version {version} ({len(applied)} migration(s) applied)",
            details={"applied": applied, "version": version},
        )

    @staticmethod
    def defaults_seeded(user_id: str, category_ids: list[str], correlation_id: Optional[UUID] = None) -> AuditEvent:
        return AuditEvent(
            correlation_id=correlation_id,
            event_type=AuditEventType.DEFAULTS_SEEDED,
            entity_type="category",
            user_id=user_id,
            description=f"Seeded {len(category_ids)} starter categories",
            details={"category_ids": category_ids},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            correlation_id=correlation_id,
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.CRITICAL,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
        )
