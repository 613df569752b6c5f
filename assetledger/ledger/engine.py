"""
Ledger Engine

Keeps every wallet balance equal to its opening balance plus the summed
effect of the transactions that reference it.

DESIGN DECISION: Balances are only ever moved here, by effect:
- expense:  -amount on the source wallet
- income:   +amount on the source wallet
- transfer: -amount on the source, +transfer_amount on the destination

Create applies an effect. Edit reverses the original effect, then
applies the new one (always both, even when nothing changed). Delete
reverses. A wallet that no longer exists makes its side a no-op.

IMPORTANT: Drafts are validated before anything is touched. An invalid
draft raises InvalidTransactionError with every wallet unchanged.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

import structlog

from assetledger.audit import AuditLogger
from assetledger.config import LedgerSettings, get_settings
from assetledger.ledger.recurring import next_recurring_date
from assetledger.models.audit import AuditEvent, AuditEventBuilder
from assetledger.models.ledger import (
    AssetKind,
    Category,
    CategoryType,
    RecurringRunReport,
    RecurringTransactionRule,
    Transaction,
    TransactionDraft,
    TransactionType,
    ValidationResult,
    Wallet,
    WalletFolder,
    ensure_aware,
    utc_now,
)
from assetledger.services.storage import LedgerRepositoryInterface, NotFoundError
from assetledger.validation import RuleValidator, TransactionValidator

logger = structlog.get_logger(__name__)


class LedgerError(Exception):
    """Base exception for ledger operations."""
    pass


class InvalidTransactionError(LedgerError):
    """Draft failed validation; nothing was changed."""

    def __init__(self, result: ValidationResult):
        self.result = result
        message = "; ".join(issue.message for issue in result.errors)
        super().__init__(message or "invalid transaction")


class InvalidRuleError(LedgerError):
    """Recurring rule failed validation; nothing was saved."""

    def __init__(self, result: ValidationResult):
        self.result = result
        message = "; ".join(issue.message for issue in result.errors)
        super().__init__(message or "invalid recurring rule")


class _BalanceBook:
    """
    Wallets loaded for one ledger operation.

    Both sides of a reverse-then-apply see the same wallet objects, and
    touched wallets are written back once, at commit.
    """

    def __init__(self, repository: LedgerRepositoryInterface):
        self._repository = repository
        self._wallets: dict[UUID, Optional[Wallet]] = {}
        self._touched: set[UUID] = set()

    def wallet(self, wallet_id: Optional[UUID]) -> Optional[Wallet]:
        if wallet_id is None:
            return None
        if wallet_id not in self._wallets:
            self._wallets[wallet_id] = self._repository.get_wallet(wallet_id)
        return self._wallets[wallet_id]

    def find_by_snapshot(self, name: Optional[str], asset_code: Optional[str]) -> Optional[Wallet]:
        """First wallet with the recorded name and asset code."""
        if not name or not asset_code:
            return None
        code = asset_code.strip().upper()
        for candidate in self._repository.list_wallets():
            if candidate.name == name and candidate.asset_code == code:
                return self.wallet(candidate.id)
        return None

    def adjust(self, wallet: Optional[Wallet], delta: Decimal) -> None:
        if wallet is None:
            return
        wallet.balance += delta
        self._touched.add(wallet.id)

    def commit(self, now: datetime) -> None:
        for wallet_id in self._touched:
            wallet = self._wallets[wallet_id]
            wallet.updated_at = now
            self._repository.save_wallet(wallet)
        self._touched.clear()


def _apply_effect(
    book: _BalanceBook,
    transaction_type: TransactionType,
    amount: Decimal,
    transfer_amount: Decimal,
    source: Optional[Wallet],
    destination: Optional[Wallet],
    direction: int,
) -> None:
    """Apply (direction=1) or reverse (direction=-1) one transaction's effect."""
    sign = Decimal(direction)
    if transaction_type == TransactionType.EXPENSE:
        book.adjust(source, -amount * sign)
    elif transaction_type == TransactionType.INCOME:
        book.adjust(source, amount * sign)
    else:
        book.adjust(source, -amount * sign)
        book.adjust(destination, transfer_amount * sign)


def _summary(transaction: Transaction) -> dict:
    return {
        "type": transaction.resolved_type.value,
        "amount": str(transaction.amount),
        "currency_code": transaction.currency_code,
        "wallet_id": str(transaction.wallet_id) if transaction.wallet_id else None,
        "transfer_wallet_id": (
            str(transaction.transfer_wallet_id) if transaction.transfer_wallet_id else None
        ),
        "transfer_amount": (
            str(transaction.transfer_amount) if transaction.transfer_amount is not None else None
        ),
    }


class LedgerEngine:
    """
    The only writer of wallet balances.

    Synchronous: every operation reads and writes through the repository
    and returns when the repository holds the new state.
    """

    def __init__(
        self,
        repository: LedgerRepositoryInterface,
        settings: Optional[LedgerSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._repository = repository
        self._settings = settings or get_settings().ledger
        self._audit = audit_logger
        self._validator = TransactionValidator(repository)
        self._rule_validator = RuleValidator(repository)

    @property
    def repository(self) -> LedgerRepositoryInterface:
        return self._repository

    def _record(self, event: AuditEvent) -> None:
        if self._audit:
            self._audit.log(event)

    # =========================================================================
    # TRANSACTIONS
    # =========================================================================

    def validate(self, draft: TransactionDraft) -> ValidationResult:
        return self._validator.validate(draft)

    def _require_valid(self, draft: TransactionDraft) -> None:
        result = self._validator.validate(draft)
        if result.has_errors:
            raise InvalidTransactionError(result)
        for issue in result.warnings:
            logger.warning("draft_warning", field=issue.field, message=issue.message)

    @staticmethod
    def _fill_from_draft(
        transaction: Transaction,
        draft: TransactionDraft,
        source: Optional[Wallet],
        destination: Optional[Wallet],
    ) -> None:
        """Copy the draft onto a transaction and take fresh wallet snapshots."""
        currency = draft.currency_code or (source.asset_code if source else "")

        transaction.amount = draft.amount
        transaction.type = draft.type
        transaction.currency_code = currency.strip().upper()
        transaction.date = draft.date
        transaction.note = draft.note
        transaction.photo_data = draft.photo_data

        transaction.wallet_id = draft.wallet_id
        transaction.wallet_name_snapshot = source.name if source else None
        transaction.wallet_kind_snapshot = source.kind if source else None
        transaction.wallet_color_snapshot = source.color_hex if source else None

        if draft.type == TransactionType.TRANSFER:
            transaction.category_id = None
            transaction.transfer_wallet_id = draft.transfer_wallet_id
            transaction.transfer_amount = (
                draft.transfer_amount if draft.transfer_amount is not None else draft.amount
            )
            transaction.transfer_wallet_name_snapshot = destination.name if destination else None
            transaction.transfer_wallet_currency_code = destination.asset_code if destination else None
            transaction.transfer_wallet_kind_snapshot = destination.kind if destination else None
            transaction.transfer_wallet_color_snapshot = destination.color_hex if destination else None
        else:
            transaction.category_id = draft.category_id
            transaction.transfer_wallet_id = None
            transaction.transfer_amount = None
            transaction.transfer_wallet_name_snapshot = None
            transaction.transfer_wallet_currency_code = None
            transaction.transfer_wallet_kind_snapshot = None
            transaction.transfer_wallet_color_snapshot = None

    def create_transaction(
        self,
        draft: TransactionDraft,
        now: Optional[datetime] = None,
    ) -> Transaction:
        """
        Validate, record and apply a new transaction.

        Raises:
            InvalidTransactionError: If the draft has error-level issues
        """
        self._require_valid(draft)
        now = ensure_aware(now or utc_now())

        book = _BalanceBook(self._repository)
        source = book.wallet(draft.wallet_id)
        destination = (
            book.wallet(draft.transfer_wallet_id)
            if draft.type == TransactionType.TRANSFER else None
        )

        transaction = Transaction(amount=draft.amount, created_at=now, updated_at=now)
        self._fill_from_draft(transaction, draft, source, destination)
        _apply_effect(
            book,
            transaction.resolved_type,
            transaction.amount,
            transaction.effective_transfer_amount,
            source,
            destination,
            direction=1,
        )

        self._repository.save_transaction(transaction)
        book.commit(now)

        self._record(AuditEventBuilder.transaction_created(
            transaction.id,
            transaction.resolved_type.value,
            str(transaction.amount),
            transaction.currency_code,
        ))
        return transaction

    def edit_transaction(
        self,
        transaction_id: UUID,
        draft: TransactionDraft,
        now: Optional[datetime] = None,
    ) -> Transaction:
        """
        Reverse the saved effect, then apply the edited one.

        The reversal uses the values captured before the edit. It does not
        convert if the wallet's asset code changed since the transaction
        was recorded; that case is logged.

        Raises:
            NotFoundError: If the transaction doesn't exist
            InvalidTransactionError: If the draft has error-level issues
        """
        transaction = self._repository.get_transaction(transaction_id)
        if transaction is None:
            raise NotFoundError(f"transaction {transaction_id} not found")
        self._require_valid(draft)
        now = ensure_aware(now or utc_now())

        before = _summary(transaction)
        original_type = transaction.resolved_type
        original_amount = transaction.amount
        original_transfer_amount = transaction.effective_transfer_amount

        book = _BalanceBook(self._repository)

        old_source = book.wallet(transaction.wallet_id)
        if old_source is not None:
            if transaction.currency_code and old_source.asset_code != transaction.currency_code:
                logger.warning(
                    "reversal_asset_mismatch",
                    transaction_id=str(transaction.id),
                    wallet_id=str(old_source.id),
                    recorded=transaction.currency_code,
                    current=old_source.asset_code,
                )
            old_destination = (
                book.wallet(transaction.transfer_wallet_id)
                if original_type == TransactionType.TRANSFER else None
            )
            _apply_effect(
                book,
                original_type,
                original_amount,
                original_transfer_amount,
                old_source,
                old_destination,
                direction=-1,
            )

        new_source = book.wallet(draft.wallet_id)
        new_destination = (
            book.wallet(draft.transfer_wallet_id)
            if draft.type == TransactionType.TRANSFER else None
        )
        self._fill_from_draft(transaction, draft, new_source, new_destination)
        transaction.updated_at = now

        if new_source is not None:
            _apply_effect(
                book,
                transaction.resolved_type,
                transaction.amount,
                transaction.effective_transfer_amount,
                new_source,
                new_destination,
                direction=1,
            )

        self._repository.save_transaction(transaction)
        book.commit(now)

        self._record(AuditEventBuilder.transaction_edited(
            transaction.id, before, _summary(transaction),
        ))
        return transaction

    def delete_transaction(
        self,
        transaction_id: UUID,
        now: Optional[datetime] = None,
    ) -> None:
        """
        Reverse a transaction's effect and remove it.

        A detached transaction finds its wallets by the recorded name and
        asset code.

        Raises:
            NotFoundError: If the transaction doesn't exist
        """
        transaction = self._repository.get_transaction(transaction_id)
        if transaction is None:
            raise NotFoundError(f"transaction {transaction_id} not found")
        now = ensure_aware(now or utc_now())

        book = _BalanceBook(self._repository)
        used_snapshot = False

        source = book.wallet(transaction.wallet_id)
        if source is None:
            source = book.find_by_snapshot(
                transaction.wallet_name_snapshot, transaction.currency_code,
            )
            used_snapshot = used_snapshot or source is not None

        destination = None
        if transaction.resolved_type == TransactionType.TRANSFER:
            destination = book.wallet(transaction.transfer_wallet_id)
            if destination is None:
                destination = book.find_by_snapshot(
                    transaction.transfer_wallet_name_snapshot,
                    transaction.transfer_wallet_currency_code,
                )
                used_snapshot = used_snapshot or destination is not None

        _apply_effect(
            book,
            transaction.resolved_type,
            transaction.amount,
            transaction.effective_transfer_amount,
            source,
            destination,
            direction=-1,
        )

        self._repository.delete_transaction(transaction.id)
        book.commit(now)

        self._record(AuditEventBuilder.transaction_deleted(transaction.id, used_snapshot))

    # =========================================================================
    # RECURRING RULES
    # =========================================================================

    def _recurring_note(self, rule: RecurringTransactionRule) -> str:
        note = (rule.note or "").strip()
        if note:
            return note
        return f"{self._settings.recurring_note_prefix}: {rule.title}"

    def _deactivate(
        self,
        rule: RecurringTransactionRule,
        reason: str,
        now: datetime,
        report: RecurringRunReport,
    ) -> None:
        rule.is_active = False
        rule.updated_at = now
        self._repository.save_recurring_rule(rule)
        report.deactivated.append(rule.id)
        logger.warning("recurring_rule_deactivated", rule_id=str(rule.id), reason=reason)
        self._record(AuditEventBuilder.recurring_rule_deactivated(rule.id, reason))

    def process_recurring_rules(self, now: Optional[datetime] = None) -> RecurringRunReport:
        """
        Generate every due transaction of every active rule.

        A rule without a live wallet, or with transfer type, is deactivated
        instead. A rule generates at most the configured cap per pass; the
        rest is picked up by the next pass.
        """
        now = ensure_aware(now or utc_now())
        cap = self._settings.max_recurring_generations_per_rule
        report = RecurringRunReport()

        for rule in self._repository.list_recurring_rules():
            if not rule.is_active:
                continue

            book = _BalanceBook(self._repository)
            wallet = book.wallet(rule.wallet_id)
            if wallet is None:
                self._deactivate(rule, "wallet missing", now, report)
                continue
            if rule.type == TransactionType.TRANSFER:
                self._deactivate(rule, "transfers cannot recur", now, report)
                continue

            generated = 0
            while rule.next_run_date <= now and generated < cap:
                scheduled = rule.next_run_date
                transaction = Transaction(
                    amount=rule.amount,
                    currency_code=wallet.asset_code,
                    date=scheduled,
                    note=self._recurring_note(rule),
                    type=rule.type,
                    category_id=rule.category_id,
                    wallet_id=wallet.id,
                    wallet_name_snapshot=wallet.name,
                    wallet_kind_snapshot=wallet.kind,
                    wallet_color_snapshot=wallet.color_hex,
                    created_at=now,
                    updated_at=now,
                )
                _apply_effect(
                    book,
                    rule.type,
                    rule.amount,
                    rule.amount,
                    wallet,
                    None,
                    direction=1,
                )
                self._repository.save_transaction(transaction)
                report.transaction_ids.append(transaction.id)

                rule.next_run_date = next_recurring_date(scheduled, rule.frequency, rule.interval)
                rule.updated_at = now
                generated += 1

            if not generated:
                continue

            rule.currency_code = wallet.asset_code
            self._repository.save_recurring_rule(rule)
            book.commit(now)

            report.generated[rule.id] = generated
            if rule.next_run_date <= now:
                report.capped.append(rule.id)
                logger.info("recurring_catch_up_capped", rule_id=str(rule.id), cap=cap)
            self._record(AuditEventBuilder.recurring_rule_fired(rule.id, generated))

        return report

    def create_recurring_rule(self, rule: RecurringTransactionRule) -> RecurringTransactionRule:
        """
        Raises:
            InvalidRuleError: If the rule could never fire
        """
        result = self._rule_validator.validate(rule)
        if result.has_errors:
            raise InvalidRuleError(result)
        wallet = self._repository.get_wallet(rule.wallet_id)
        rule.currency_code = wallet.asset_code
        self._repository.save_recurring_rule(rule)
        return rule

    def update_recurring_rule(
        self,
        rule: RecurringTransactionRule,
        now: Optional[datetime] = None,
    ) -> RecurringTransactionRule:
        """
        Save changes to an existing rule.

        Setting `is_active` back to True is how a deactivated rule is
        reactivated; an active rule must pass validation.

        Raises:
            NotFoundError: If the rule doesn't exist
            InvalidRuleError: If an active rule could never fire
        """
        if self._repository.get_recurring_rule(rule.id) is None:
            raise NotFoundError(f"recurring rule {rule.id} not found")
        if rule.is_active:
            result = self._rule_validator.validate(rule)
            if result.has_errors:
                raise InvalidRuleError(result)
            rule.currency_code = self._repository.get_wallet(rule.wallet_id).asset_code
        rule.updated_at = ensure_aware(now or utc_now())
        self._repository.save_recurring_rule(rule)
        return rule

    # =========================================================================
    # WALLETS, FOLDERS, CATEGORIES
    # =========================================================================

    def create_wallet(
        self,
        name: str,
        asset_code: str,
        kind: AssetKind = AssetKind.FIAT,
        balance: Decimal = Decimal("0"),
        color_hex: Optional[str] = None,
        folder_id: Optional[UUID] = None,
    ) -> Wallet:
        """Create a wallet with an opening balance."""
        if folder_id is not None and self._repository.get_folder(folder_id) is None:
            raise NotFoundError(f"folder {folder_id} not found")
        wallet = Wallet(
            name=name,
            asset_code=asset_code,
            kind=kind,
            balance=balance,
            color_hex=color_hex or self._settings.default_wallet_color,
            folder_id=folder_id,
        )
        self._repository.save_wallet(wallet)
        self._record(AuditEventBuilder.wallet_created(wallet.id, wallet.name, wallet.asset_code))
        return wallet

    def update_wallet(
        self,
        wallet_id: UUID,
        name: Optional[str] = None,
        color_hex: Optional[str] = None,
        kind: Optional[AssetKind] = None,
        asset_code: Optional[str] = None,
        folder_id: Optional[UUID] = None,
        detach_folder: bool = False,
        now: Optional[datetime] = None,
    ) -> Wallet:
        """
        Change a wallet's descriptive fields. The balance is not editable here.

        Existing transactions keep their snapshots. Changing the asset code
        does not convert anything already recorded against the wallet.
        """
        wallet = self._repository.get_wallet(wallet_id)
        if wallet is None:
            raise NotFoundError(f"wallet {wallet_id} not found")

        if name is not None:
            wallet.name = name.strip()
        if color_hex is not None:
            wallet.color_hex = color_hex
        if kind is not None:
            wallet.kind = kind
        if detach_folder:
            wallet.folder_id = None
        elif folder_id is not None:
            if self._repository.get_folder(folder_id) is None:
                raise NotFoundError(f"folder {folder_id} not found")
            wallet.folder_id = folder_id

        if asset_code is not None:
            new_code = asset_code.strip().upper()
            if new_code != wallet.asset_code:
                referencing = sum(
                    1 for t in self._repository.list_transactions()
                    if wallet_id in (t.wallet_id, t.transfer_wallet_id)
                )
                logger.warning(
                    "wallet_asset_changed",
                    wallet_id=str(wallet_id),
                    old_code=wallet.asset_code,
                    new_code=new_code,
                    referencing_transactions=referencing,
                )
                self._record(AuditEventBuilder.wallet_asset_changed(
                    wallet_id, wallet.asset_code, new_code, referencing,
                ))
                wallet.asset_code = new_code

        wallet.updated_at = ensure_aware(now or utc_now())
        self._repository.save_wallet(wallet)
        return wallet

    def delete_wallet(self, wallet_id: UUID, now: Optional[datetime] = None) -> None:
        """
        Delete a wallet, detaching everything that references it.

        Transactions recorded against it keep their snapshots; rules lose
        their wallet and are deactivated on the next firing pass.
        """
        wallet = self._repository.get_wallet(wallet_id)
        if wallet is None:
            raise NotFoundError(f"wallet {wallet_id} not found")
        now = ensure_aware(now or utc_now())

        detached_transactions = 0
        for transaction in self._repository.list_transactions():
            changed = False
            if transaction.wallet_id == wallet.id:
                transaction.wallet_id = None
                changed = True
            if transaction.transfer_wallet_id == wallet.id:
                transaction.transfer_wallet_id = None
                changed = True
            if changed:
                transaction.updated_at = now
                self._repository.save_transaction(transaction)
                detached_transactions += 1

        detached_rules = 0
        for rule in self._repository.list_recurring_rules():
            if rule.wallet_id == wallet.id:
                rule.wallet_id = None
                rule.updated_at = now
                self._repository.save_recurring_rule(rule)
                detached_rules += 1

        self._repository.delete_wallet(wallet.id)
        self._record(AuditEventBuilder.wallet_deleted(
            wallet.id, detached_transactions, detached_rules,
        ))

    def create_folder(self, name: str) -> WalletFolder:
        folder = WalletFolder(name=name)
        self._repository.save_folder(folder)
        return folder

    def delete_folder(self, folder_id: UUID) -> None:
        """Delete a folder; its wallets stay, ungrouped."""
        if self._repository.get_folder(folder_id) is None:
            raise NotFoundError(f"folder {folder_id} not found")

        detached = 0
        for wallet in self._repository.list_wallets():
            if wallet.folder_id == folder_id:
                wallet.folder_id = None
                self._repository.save_wallet(wallet)
                detached += 1

        self._repository.delete_folder(folder_id)
        self._record(AuditEventBuilder.folder_deleted(folder_id, detached))

    def create_category(
        self,
        name: str,
        category_type: CategoryType,
        color_hex: Optional[str] = None,
    ) -> Category:
        category = Category(
            name=name,
            type=category_type,
            color_hex=color_hex or self._settings.default_category_color,
        )
        self._repository.save_category(category)
        return category

    def delete_category(self, category_id: UUID) -> None:
        """Delete a category and clear it from transactions and rules."""
        if self._repository.get_category(category_id) is None:
            raise NotFoundError(f"category {category_id} not found")

        for transaction in self._repository.list_transactions():
            if transaction.category_id == category_id:
                transaction.category_id = None
                self._repository.save_transaction(transaction)
        for rule in self._repository.list_recurring_rules():
            if rule.category_id == category_id:
                rule.category_id = None
                self._repository.save_recurring_rule(rule)

        self._repository.delete_category(category_id)
        self._record(AuditEventBuilder.category_deleted(category_id))
