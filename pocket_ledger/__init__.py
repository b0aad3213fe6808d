"""
Pocket Ledger - Core Package

The bookkeeping engine of a personal finance tracker: accounts,
categories, transactions (including linked transfer pairs), budgets and
goals, kept in a local SQLite database.

DESIGN PRINCIPLES:
1. Balances change only through the transaction ledger
2. Every multi-step change is one atomic unit
3. Fail loudly: errors are logged and always propagated
4. Dangling references read as "Unknown", never as a crash
5. Every mutation is auditable
"""

__version__ = "1.0.0"
