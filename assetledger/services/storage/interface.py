"""
Abstract Storage Interfaces

DESIGN DECISION: We define abstract interfaces for everything the core
persists. This allows us to:
1. Keep the surrounding app's database out of the core
2. Use in-memory storage for testing
3. Swap the on-disk rate cache without touching the aggregator

The ledger interface is intentionally simple - we're not building a full ORM.
Save/delete are assumed transactional at the single-record level.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from assetledger.models.audit import AuditEvent
from assetledger.models.ledger import (
    Category,
    RecurringTransactionRule,
    Transaction,
    Wallet,
    WalletFolder,
)
from assetledger.models.rates import RateSnapshot


class RateCacheInterface(ABC):
    """
    Persisted snapshot of last-known rates.

    Read once at startup, overwritten wholesale after each refresh merge.
    """

    @abstractmethod
    def load(self) -> Optional[RateSnapshot]:
        """
        Load the persisted snapshot.

        Returns:
            The snapshot, or None if nothing usable is stored
        """
        pass

    @abstractmethod
    def save(self, snapshot: RateSnapshot) -> None:
        """
        Replace the persisted snapshot.

        Raises:
            StorageError: If the write fails
        """
        pass


class LedgerRepositoryInterface(ABC):
    """
    Abstract interface for ledger records.

    Getters return detached copies: a change is durable only once the
    matching save_* method is called.
    """

    # Wallets

    @abstractmethod
    def get_wallet(self, wallet_id: UUID) -> Optional[Wallet]:
        pass

    @abstractmethod
    def list_wallets(self) -> list[Wallet]:
        pass

    @abstractmethod
    def save_wallet(self, wallet: Wallet) -> None:
        """Insert or replace a wallet."""
        pass

    @abstractmethod
    def delete_wallet(self, wallet_id: UUID) -> None:
        """
        Raises:
            NotFoundError: If the wallet doesn't exist
        """
        pass

    # Folders

    @abstractmethod
    def get_folder(self, folder_id: UUID) -> Optional[WalletFolder]:
        pass

    @abstractmethod
    def save_folder(self, folder: WalletFolder) -> None:
        pass

    @abstractmethod
    def delete_folder(self, folder_id: UUID) -> None:
        pass

    # Categories

    @abstractmethod
    def get_category(self, category_id: UUID) -> Optional[Category]:
        pass

    @abstractmethod
    def list_categories(self) -> list[Category]:
        pass

    @abstractmethod
    def save_category(self, category: Category) -> None:
        pass

    @abstractmethod
    def delete_category(self, category_id: UUID) -> None:
        pass

    # Transactions

    @abstractmethod
    def get_transaction(self, transaction_id: UUID) -> Optional[Transaction]:
        pass

    @abstractmethod
    def list_transactions(self) -> list[Transaction]:
        """All transactions, newest first."""
        pass

    @abstractmethod
    def save_transaction(self, transaction: Transaction) -> None:
        pass

    @abstractmethod
    def delete_transaction(self, transaction_id: UUID) -> None:
        pass

    # Recurring rules

    @abstractmethod
    def get_recurring_rule(self, rule_id: UUID) -> Optional[RecurringTransactionRule]:
        pass

    @abstractmethod
    def list_recurring_rules(self) -> list[RecurringTransactionRule]:
        """All rules, ordered by next run date."""
        pass

    @abstractmethod
    def save_recurring_rule(self, rule: RecurringTransactionRule) -> None:
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """Events for one entity in chronological order."""
        pass

    @abstractmethod
    def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        """Most recent events, newest first."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class CacheCorruptedError(StorageError):
    """Persisted rate cache could not be decoded."""
    pass
