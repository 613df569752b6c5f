"""
In-memory storage backends.

Used by tests and by hosts that keep their own persistence and only
hand records to the core. Every getter returns a deep copy so callers
cannot change stored state without going through a save.
"""

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
from assetledger.services.storage.interface import (
    AuditStorageInterface,
    LedgerRepositoryInterface,
    NotFoundError,
    RateCacheInterface,
)


class InMemoryRateCache(RateCacheInterface):
    """Rate cache that lives as long as the process."""

    def __init__(self, snapshot: Optional[RateSnapshot] = None):
        self._snapshot = snapshot
        self.save_count = 0

    def load(self) -> Optional[RateSnapshot]:
        return self._snapshot

    def save(self, snapshot: RateSnapshot) -> None:
        self._snapshot = snapshot
        self.save_count += 1


class InMemoryLedgerRepository(LedgerRepositoryInterface):
    """Dictionary-backed ledger store."""

    def __init__(self):
        self._wallets: dict[UUID, Wallet] = {}
        self._folders: dict[UUID, WalletFolder] = {}
        self._categories: dict[UUID, Category] = {}
        self._transactions: dict[UUID, Transaction] = {}
        self._rules: dict[UUID, RecurringTransactionRule] = {}

    @staticmethod
    def _copy(record):
        return record.model_copy(deep=True) if record is not None else None

    @staticmethod
    def _remove(table: dict, record_id: UUID, label: str) -> None:
        if record_id not in table:
            raise NotFoundError(f"{label} not found: {record_id}")
        del table[record_id]

    # Wallets

    def get_wallet(self, wallet_id: UUID) -> Optional[Wallet]:
        return self._copy(self._wallets.get(wallet_id))

    def list_wallets(self) -> list[Wallet]:
        return [self._copy(w) for w in self._wallets.values()]

    def save_wallet(self, wallet: Wallet) -> None:
        self._wallets[wallet.id] = self._copy(wallet)

    def delete_wallet(self, wallet_id: UUID) -> None:
        self._remove(self._wallets, wallet_id, "Wallet")

    # Folders

    def get_folder(self, folder_id: UUID) -> Optional[WalletFolder]:
        return self._copy(self._folders.get(folder_id))

    def save_folder(self, folder: WalletFolder) -> None:
        self._folders[folder.id] = self._copy(folder)

    def delete_folder(self, folder_id: UUID) -> None:
        self._remove(self._folders, folder_id, "Folder")

    # Categories

    def get_category(self, category_id: UUID) -> Optional[Category]:
        return self._copy(self._categories.get(category_id))

    def list_categories(self) -> list[Category]:
        return [self._copy(c) for c in self._categories.values()]

    def save_category(self, category: Category) -> None:
        self._categories[category.id] = self._copy(category)

    def delete_category(self, category_id: UUID) -> None:
        self._remove(self._categories, category_id, "Category")

    # Transactions

    def get_transaction(self, transaction_id: UUID) -> Optional[Transaction]:
        return self._copy(self._transactions.get(transaction_id))

    def list_transactions(self) -> list[Transaction]:
        ordered = sorted(self._transactions.values(), key=lambda t: t.date, reverse=True)
        return [self._copy(t) for t in ordered]

    def save_transaction(self, transaction: Transaction) -> None:
        self._transactions[transaction.id] = self._copy(transaction)

    def delete_transaction(self, transaction_id: UUID) -> None:
        self._remove(self._transactions, transaction_id, "Transaction")

    # Recurring rules

    def get_recurring_rule(self, rule_id: UUID) -> Optional[RecurringTransactionRule]:
        return self._copy(self._rules.get(rule_id))

    def list_recurring_rules(self) -> list[RecurringTransactionRule]:
        ordered = sorted(self._rules.values(), key=lambda r: r.next_run_date)
        return [self._copy(r) for r in ordered]

    def save_recurring_rule(self, rule: RecurringTransactionRule) -> None:
        self._rules[rule.id] = self._copy(rule)


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        return [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]

    def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return list(reversed(self._events))[:limit]
