"""
Storage Services Package

Provides abstract interfaces and concrete implementations for the rate
cache, the ledger records and the audit trail.
"""

from assetledger.services.storage.interface import (
    AuditStorageInterface,
    CacheCorruptedError,
    LedgerRepositoryInterface,
    NotFoundError,
    RateCacheInterface,
    StorageError,
)
from assetledger.services.storage.json_file import JSONFileRateCache
from assetledger.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryLedgerRepository,
    InMemoryRateCache,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "LedgerRepositoryInterface",
    "RateCacheInterface",
    # Exceptions
    "CacheCorruptedError",
    "NotFoundError",
    "StorageError",
    # Implementations
    "InMemoryAuditStorage",
    "InMemoryLedgerRepository",
    "InMemoryRateCache",
    "JSONFileRateCache",
]
