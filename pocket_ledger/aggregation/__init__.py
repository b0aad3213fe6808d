"""Derived, read-only figures over the ledger."""

from pocket_ledger.aggregation.engine import (
    AggregationEngine,
    month_bounds,
    months_between,
)

__all__ = [
    "AggregationEngine",
    "month_bounds",
    "months_between",
]
