"""Reports over the ledger: totals, reconciliation, rankings and integrity checks."""

from ledger.queries.analytics import (
    DEFAULT_EPSILON,
    DEFAULT_TOP_LIMIT,
    AnalyticsEngine,
    find_dangling_references,
)

__all__ = [
    "DEFAULT_EPSILON",
    "DEFAULT_TOP_LIMIT",
    "AnalyticsEngine",
    "find_dangling_references",
]
