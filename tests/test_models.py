"""
Tests for Pocket Ledger models

Test strategy:
1. Unit tests for models, money conversion and validation rules
2. Storage-backed tests live in the other test modules
"""

import datetime as dt
from decimal import Decimal

import pytest

from pocket_ledger.exceptions import ValidationError
from pocket_ledger.models import (
    Account,
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
    BalanceDrift,
    Budget,
    BudgetSpending,
    Category,
    CategoryType,
    Goal,
    GoalStatus,
    Transaction,
    TransactionType,
)
from pocket_ledger.models.money import from_minor_units, quantize, to_minor_units
from pocket_ledger.audit import create_correlation_id
from pocket_ledger.validation import LedgerValidator, build


class TestEntityModels:
    """Tests for the persisted Pydantic models."""

    def test_ids_are_generated_and_unique(self):
        """Test that new entities get distinct opaque ids."""
        a = Account(user_id="u", name="Cash")
        b = Account(user_id="u", name="Cash")
        assert a.id and b.id
        assert a.id != b.id

    def test_new_entities_need_sync(self):
        """Test that the dirty bit starts as 'needs sync'."""
        category = Category(user_id="u", name="Food", type=CategoryType.EXPENSE)
        assert category.synced is False

    def test_strips_whitespace(self):
        """Test that whitespace is stripped from names."""
        account = Account(user_id="u", name="  Wallet  ")
        assert account.name == "Wallet"

    def test_budget_month_is_zero_based(self):
        """Test that month accepts 0-11 only."""
        Budget(user_id="u", category_id="c", budget_limit=Decimal("10"), month=0, year=2024)
        Budget(user_id="u", category_id="c", budget_limit=Decimal("10"), month=11, year=2024)
        with pytest.raises(ValueError):
            Budget(user_id="u", category_id="c", budget_limit=Decimal("10"), month=12, year=2024)

    def test_goal_defaults(self):
        """Test goal defaults."""
        goal = Goal(
            user_id="u",
            title="Bike",
            target_amount=Decimal("5000"),
            target_date=dt.date(2030, 1, 1),
        )
        assert goal.status == GoalStatus.ACTIVE
        assert goal.include_balance is True
        assert goal.monthly_contribution == Decimal("0")


class TestSignedAmounts:
    """The sign of an amount comes from the transaction type."""

    @pytest.mark.parametrize("type_,sign", [
        (TransactionType.INCOME, 1),
        (TransactionType.CREDIT, 1),
        (TransactionType.EXPENSE, -1),
        (TransactionType.DEBIT, -1),
    ])
    def test_signed_amount(self, type_, sign):
        txn = Transaction(user_id="u", type=type_, amount=Decimal("12.50"), account_id="a")
        assert txn.signed_amount == Decimal("12.50") * sign

    def test_transfer_leg_flags(self):
        assert TransactionType.DEBIT.is_transfer_leg
        assert TransactionType.CREDIT.is_transfer_leg
        assert not TransactionType.INCOME.is_transfer_leg


class TestMoney:
    """Tests for minor-unit conversion."""

    def test_to_minor_units(self):
        assert to_minor_units(Decimal("12.34")) == 1234
        assert to_minor_units("-0.5") == -50

    def test_rounds_half_up(self):
        assert quantize(Decimal("0.125")) == Decimal("0.13")

    def test_from_minor_units(self):
        assert from_minor_units(1234) == Decimal("12.34")
        assert from_minor_units(None) == Decimal("0.00")


class TestValidator:
    """Tests for ledger rules checked before any write."""

    def setup_method(self):
        self.validator = LedgerValidator()

    def test_rejects_non_positive_amount(self):
        txn = Transaction(user_id="u", type=TransactionType.EXPENSE, amount=Decimal("0"), account_id="a")
        with pytest.raises(ValidationError) as exc:
            self.validator.check_simple(txn)
        assert exc.value.issues[0].field == "amount"

    def test_rejects_transfer_leg_as_simple(self):
        txn = Transaction(user_id="u", type=TransactionType.DEBIT, amount=Decimal("5"), account_id="a")
        with pytest.raises(ValidationError):
            self.validator.check_simple(txn)

    def test_reports_every_issue(self):
        """Test that all problems are reported together, not just the first."""
        with pytest.raises(ValidationError) as exc:
            self.validator.check_transfer("", "a", "a", Decimal("-1"))
        fields = {issue.field for issue in exc.value.issues}
        assert fields == {"user_id", "to_account_id", "amount"}

    def test_new_account_must_start_at_zero(self):
        with pytest.raises(ValidationError):
            self.validator.check_new_account(
                Account(user_id="u", name="Cash", balance=Decimal("10"))
            )

    def test_goal_needs_positive_target(self):
        goal = Goal(user_id="u", title="x", target_amount=Decimal("0"), target_date=dt.date(2030, 1, 1))
        with pytest.raises(ValidationError):
            self.validator.check_goal(goal)

    def test_build_reports_field_errors(self):
        """Test that model field errors come back as ledger validation issues."""
        with pytest.raises(ValidationError) as exc:
            build(
                Transaction,
                "record transfer",
                user_id="u",
                type="sideways",
                title="x" * 300,
                amount=Decimal("5"),
                account_id="a",
            )
        assert {issue.field for issue in exc.value.issues} == {"type", "title"}
        assert str(exc.value).startswith("record transfer rejected")

    def test_build_returns_the_model(self):
        account = build(Account, "open account", user_id="u", name="Cash")
        assert account.name == "Cash"


class TestViews:
    """Tests for read models."""

    def test_over_budget(self):
        budget = Budget(user_id="u", category_id="c", budget_limit=Decimal("100"), month=0, year=2024)
        spending = BudgetSpending(budget=budget, spent=Decimal("120"), available=Decimal("-20"))
        assert spending.is_over_budget

    def test_balance_drift_difference(self):
        drift = BalanceDrift(account_id="a", cached_balance=Decimal("10"), computed_balance=Decimal("7"))
        assert drift.difference == Decimal("3")


class TestAuditModels:
    """Tests for audit event models."""

    def test_audit_event_creation(self):
        """Test AuditEvent creation."""
        event = AuditEvent(
            event_type=AuditEventType.SCHEMA_ENSURED,
            description="Schema ready",
        )
        assert event.event_id is not None
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to a structured log dict."""
        event = AuditEventBuilder.transfer_recorded(
            "d1", "c1", "u", "from", "to", Decimal("40.00"),
        )
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "transfer_recorded"
        assert log_dict["details"]["amount"] == "40.00"
        assert isinstance(log_dict["event_id"], str)

    def test_save_failed_is_an_error(self):
        event = AuditEventBuilder.save_failed("record transfer", "disk I/O error", "u")
        assert event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL)
        assert event.error_message == "disk I/O error"

    def test_correlation_id_reaches_log_dict(self):
        correlation_id = create_correlation_id()
        event = AuditEventBuilder.goal_deleted("g1", "u", "a1", [], correlation_id)
        assert event.to_log_dict()["correlation_id"] == str(correlation_id)

    def test_correlation_id_is_optional(self):
        event = AuditEventBuilder.migration_applied("add goals.status")
        assert event.to_log_dict()["correlation_id"] is None
