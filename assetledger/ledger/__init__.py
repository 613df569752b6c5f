"""Ledger consistency engine."""

from assetledger.ledger.engine import (
    InvalidRuleError,
    InvalidTransactionError,
    LedgerEngine,
    LedgerError,
)
from assetledger.ledger.migration import run_migration, seed_default_categories
from assetledger.ledger.recurring import next_recurring_date

__all__ = [
    "InvalidRuleError",
    "InvalidTransactionError",
    "LedgerEngine",
    "LedgerError",
    "next_recurring_date",
    "run_migration",
    "seed_default_categories",
]
