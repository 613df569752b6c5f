"""Query package."""

from assetledger.queries.executor import CSV_HEADER, LedgerQueries

__all__ = [
    "CSV_HEADER",
    "LedgerQueries",
]
