"""Validation package."""

from pocket_ledger.validation.validator import (
    LedgerValidator,
    ValidationIssue,
    build,
    raise_if_issues,
)

__all__ = ["LedgerValidator", "ValidationIssue", "build", "raise_if_issues"]
