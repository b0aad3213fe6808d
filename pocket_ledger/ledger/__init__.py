"""
Ledger Package

The transaction ledger: the only place account balances change.
"""

from pocket_ledger.ledger.transactions import TransactionLedger, TransactionRows

__all__ = [
    "TransactionLedger",
    "TransactionRows",
]
