"""
Error taxonomy for Pocket Ledger.

Every error the core raises derives from LedgerError. Errors are logged
where they happen and always propagated to the caller; how a failure is
shown to the user is the caller's business.
"""

from typing import Optional


class LedgerError(Exception):
    """Base exception for everything the ledger core raises."""
    pass


class ValidationError(LedgerError):
    """
    Input was malformed or semantically invalid.

    Raised before any write, so nothing has changed when it is seen.
    ``issues`` holds the individual problems found.
    """

    def __init__(self, message: str, issues: Optional[list] = None):
        super().__init__(message)
        self.issues = issues or []


class NotFoundError(LedgerError):
    """Entity not found in storage."""
    pass


class StorageError(LedgerError):
    """Base exception for storage operations."""
    pass


class NotPersistedError(StorageError):
    """An atomic unit failed and was rolled back; no partial state survives."""
    pass


class ConnectionError(StorageError):
    """Could not open the storage backend."""
    pass


class FatalStartupError(LedgerError):
    """
    The schema could not be brought to the expected shape.

    The process must not continue: stores would disagree with the code.
    """
    pass
