"""Validation package."""

from assetledger.validation.validator import RuleValidator, TransactionValidator

__all__ = [
    "RuleValidator",
    "TransactionValidator",
]
