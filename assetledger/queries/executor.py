"""
Ledger Queries

DESIGN DECISION: Queries are read-only and DETERMINISTIC.
They read the repository and the current rate snapshot; they never
refresh rates and never touch a balance.

A value that cannot be converted is left out of a total and reported,
never counted as zero. A total over partly unconvertible data is
therefore visibly incomplete instead of silently wrong.
"""

import csv
import io
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, Optional
from uuid import UUID

from assetledger.models.ledger import (
    AssetKind,
    CategoryTotal,
    ConvertedTotal,
    Transaction,
    TransactionType,
    ensure_aware,
)
from assetledger.rates.conversion import ConversionEngine
from assetledger.services.storage import LedgerRepositoryInterface

CSV_HEADER = ["Date", "Type", "Amount", "Currency", "Category", "Wallet", "Note"]

UNCATEGORIZED = "Uncategorized"


class LedgerQueries:
    """
    Totals and exports over stored ledger data.

    GUARANTEES:
    - Only sums what could actually be converted
    - Lists every wallet or transaction it had to leave out
    """

    def __init__(
        self,
        repository: LedgerRepositoryInterface,
        converter: ConversionEngine,
    ):
        self._repository = repository
        self._converter = converter

    def total_for_currency(self, target: str) -> ConvertedTotal:
        """Sum of every wallet balance, converted into `target`."""
        target = target.strip().upper()
        result = ConvertedTotal(currency_code=target)

        for wallet in self._repository.list_wallets():
            converted = self._converter.convert(
                wallet.balance, wallet.asset_code, wallet.kind, target,
            )
            if converted is None:
                result.omitted_ids.append(wallet.id)
                continue
            result.total += converted
            result.included_count += 1

        return result

    def _expenses(
        self,
        start: Optional[datetime],
        end: Optional[datetime],
    ) -> list[Transaction]:
        start = ensure_aware(start) if start else None
        end = ensure_aware(end) if end else None
        expenses = []
        for transaction in self._repository.list_transactions():
            if transaction.resolved_type != TransactionType.EXPENSE:
                continue
            when = ensure_aware(transaction.date)
            if start and when < start:
                continue
            if end and when >= end:
                continue
            expenses.append(transaction)
        return expenses

    def _convert_transaction(self, transaction: Transaction, target: str) -> Optional[Decimal]:
        code = transaction.currency_code
        if not code:
            return None
        kind = transaction.wallet_kind_snapshot or AssetKind.FIAT
        return self._converter.convert(transaction.amount, code, kind, target)

    def expense_total(
        self,
        target: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> ConvertedTotal:
        """
        Expenses with `start <= date < end`, converted into `target`.

        Either bound may be omitted.
        """
        target = target.strip().upper()
        result = ConvertedTotal(currency_code=target)
        for transaction in self._expenses(start, end):
            converted = self._convert_transaction(transaction, target)
            if converted is None:
                result.omitted_ids.append(transaction.id)
                continue
            result.total += converted
            result.included_count += 1
        return result

    def expenses_by_category(
        self,
        target: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[CategoryTotal]:
        """Per-category expense totals, largest first. Unconvertible rows are skipped."""
        target = target.strip().upper()
        names = {c.id: c.name for c in self._repository.list_categories()}
        totals: dict[Optional[UUID], CategoryTotal] = {}

        for transaction in self._expenses(start, end):
            converted = self._convert_transaction(transaction, target)
            if converted is None:
                continue
            category_id = transaction.category_id if transaction.category_id in names else None
            entry = totals.get(category_id)
            if entry is None:
                entry = CategoryTotal(
                    category_id=category_id,
                    category_name=names.get(category_id, UNCATEGORIZED),
                    currency_code=target,
                )
                totals[category_id] = entry
            entry.total += converted
            entry.transaction_count += 1

        return sorted(totals.values(), key=lambda e: e.total, reverse=True)

    def transactions_csv(self, transactions: Optional[Iterable[Transaction]] = None) -> str:
        """
        Export transactions as CSV.

        Defaults to every stored transaction, newest first. Wallet names
        come from the live wallet, or the recorded snapshot once detached.
        """
        if transactions is None:
            transactions = self._repository.list_transactions()
        categories = {c.id: c.name for c in self._repository.list_categories()}
        wallets = {w.id: w.name for w in self._repository.list_wallets()}

        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(CSV_HEADER)
        for transaction in transactions:
            when = ensure_aware(transaction.date).astimezone(timezone.utc)
            writer.writerow([
                when.strftime("%Y-%m-%dT%H:%M:%SZ"),
                transaction.resolved_type.value.capitalize(),
                format(transaction.amount, "f"),
                transaction.currency_code,
                categories.get(transaction.category_id, ""),
                wallets.get(transaction.wallet_id) or transaction.wallet_name_snapshot or "",
                transaction.note or "",
            ])
        return buffer.getvalue()
