"""
Data Models Package

This package contains all Pydantic models used by the ledger core.
All data flowing through the system must conform to these schemas.
"""

from assetledger.models.ledger import (
    AssetKind,
    Category,
    CategoryTotal,
    CategoryType,
    ConvertedTotal,
    RecurrenceFrequency,
    RecurringRunReport,
    RecurringTransactionRule,
    Transaction,
    TransactionDraft,
    TransactionType,
    ValidationIssue,
    ValidationResult,
    Wallet,
    WalletFolder,
    ensure_aware,
    utc_now,
)
from assetledger.models.rates import (
    AssetClass,
    RateSnapshot,
)
from assetledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "AssetKind",
    "Category",
    "CategoryTotal",
    "CategoryType",
    "ConvertedTotal",
    "RecurrenceFrequency",
    "RecurringRunReport",
    "RecurringTransactionRule",
    "Transaction",
    "TransactionDraft",
    "TransactionType",
    "ValidationIssue",
    "ValidationResult",
    "Wallet",
    "WalletFolder",
    "ensure_aware",
    "utc_now",
    # Rate models
    "AssetClass",
    "RateSnapshot",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
