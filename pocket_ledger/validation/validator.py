"""
Input Validation

Validation happens before anything is written:

STAGE 1 - STRUCTURE (pydantic models):
- Types, enums, value ranges

STAGE 2 - LEDGER RULES (this module):
- Identity fields present
- Amounts positive
- Transfers between two different accounts
- Transaction types routed to the right ledger operation

Reference checks (does the account exist, is it the caller's) need
storage and are made by the ledger inside its unit of work, before its
first write.

Validation NEVER silently fixes issues. Every problem found is reported
in the raised ValidationError.
"""

from decimal import Decimal
from typing import Iterable, Optional, TypeVar

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from pocket_ledger.models.entities import (
    Account,
    Budget,
    Goal,
    OwnedEntity,
    Transaction,
)
from pocket_ledger.exceptions import ValidationError


class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'not_owned')"
    )
    message: str


def missing(field: str, message: Optional[str] = None) -> ValidationIssue:
    return ValidationIssue(
        field=field,
        issue_type="missing",
        message=message or f"{field} is required",
    )


def invalid(field: str, message: str) -> ValidationIssue:
    return ValidationIssue(field=field, issue_type="invalid_value", message=message)


def raise_if_issues(operation: str, issues: Iterable[ValidationIssue]) -> None:
    """Raise a ValidationError listing every issue, if there are any."""
    issues = list(issues)
    if issues:
        summary = "; ".join(issue.message for issue in issues)
        raise ValidationError(f"{operation} rejected: {summary}", issues)


ModelT = TypeVar("ModelT", bound=BaseModel)


def build(model: type[ModelT], operation: str, **data) -> ModelT:
    """
    Construct a model, reporting field errors as a ledger ValidationError.

    Used for rows the ledger assembles from loose arguments, so an
    over-long title or a bad enum fails the same way a rule check does.
    """
    try:
        return model(**data)
    except PydanticValidationError as e:
        raise_if_issues(operation, [
            invalid(".".join(str(part) for part in error["loc"]) or "input", error["msg"])
            for error in e.errors()
        ])
        raise


def _positive(field: str, value: Optional[Decimal]) -> list[ValidationIssue]:
    if value is None:
        return [missing(field)]
    if value <= 0:
        return [invalid(field, f"{field} must be greater than zero")]
    return []


class LedgerValidator:
    """Checks ledger rules that can be decided without touching storage."""

    def identity_issues(self, entity: OwnedEntity) -> list[ValidationIssue]:
        issues = []
        if not entity.id:
            issues.append(missing("id"))
        if not entity.user_id:
            issues.append(missing("user_id"))
        return issues

    def check_identity(self, entity: OwnedEntity, operation: str) -> None:
        raise_if_issues(operation, self.identity_issues(entity))

    def check_new_account(self, account: Account) -> None:
        issues = self.identity_issues(account)
        if account.balance != 0:
            issues.append(invalid(
                "balance",
                "New accounts start at zero; record an opening balance through the ledger",
            ))
        raise_if_issues("create account", issues)

    def check_simple(self, transaction: Transaction) -> None:
        issues = self.identity_issues(transaction)
        if transaction.type.is_transfer_leg:
            issues.append(invalid(
                "type",
                f"{transaction.type.value} legs are only written by a transfer",
            ))
        if transaction.linked_transaction_id:
            issues.append(invalid(
                "linked_transaction_id",
                "Single-leg transactions cannot be linked",
            ))
        issues.extend(_positive("amount", transaction.amount))
        if not transaction.account_id:
            issues.append(missing("account_id"))
        raise_if_issues("record transaction", issues)

    def check_transfer(
        self,
        user_id: str,
        from_account_id: str,
        to_account_id: str,
        amount: Decimal,
    ) -> None:
        issues = []
        if not user_id:
            issues.append(missing("user_id"))
        if not from_account_id:
            issues.append(missing("from_account_id"))
        if not to_account_id:
            issues.append(missing("to_account_id"))
        if from_account_id and from_account_id == to_account_id:
            issues.append(invalid(
                "to_account_id",
                "Cannot transfer between an account and itself",
            ))
        issues.extend(_positive("amount", amount))
        raise_if_issues("record transfer", issues)

    def check_budget(self, budget: Budget) -> None:
        issues = self.identity_issues(budget)
        if not budget.category_id:
            issues.append(missing("category_id"))
        issues.extend(_positive("budget_limit", budget.budget_limit))
        raise_if_issues("save budget", issues)

    def check_goal(self, goal: Goal) -> None:
        issues = self.identity_issues(goal)
        issues.extend(_positive("target_amount", goal.target_amount))
        if goal.monthly_contribution < 0:
            issues.append(invalid(
                "monthly_contribution",
                "monthly_contribution cannot be negative",
            ))
        raise_if_issues("save goal", issues)

