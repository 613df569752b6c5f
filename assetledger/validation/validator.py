"""
Draft and Rule Validation

DESIGN DECISION: Validation runs BEFORE any balance is touched.
The ledger engine refuses a draft with error-level issues, so a
rejected save leaves every wallet exactly as it was.

Two kinds of issue:
- error: the draft cannot be saved (missing wallet, bad transfer, ...)
- warning: the draft can be saved but something looks off

IMPORTANT: Validation NEVER silently fixes issues.
It reports them; the caller decides.
"""

from typing import Optional

from assetledger.models.ledger import (
    CategoryType,
    RecurringTransactionRule,
    TransactionDraft,
    TransactionType,
    ValidationIssue,
    ValidationResult,
    Wallet,
)
from assetledger.services.storage import LedgerRepositoryInterface


def _error(field: str, issue_type: str, message: str) -> ValidationIssue:
    return ValidationIssue(field=field, issue_type=issue_type, message=message, severity="error")


def _warning(field: str, issue_type: str, message: str) -> ValidationIssue:
    return ValidationIssue(field=field, issue_type=issue_type, message=message, severity="warning")


class TransactionValidator:
    """
    Checks a TransactionDraft against the current wallets and categories.

    Checks:
    - Source wallet selected and known
    - Transfers: destination selected, known, different from the source,
      and an explicit destination amount when the assets differ
    - Non-transfers: category selected, known, of the matching type
    - Currency code matching the source wallet (warning only)
    """

    def __init__(self, repository: LedgerRepositoryInterface):
        self._repository = repository

    def validate(self, draft: TransactionDraft) -> ValidationResult:
        issues: list[ValidationIssue] = []

        source = self._check_source(draft, issues)

        if draft.type == TransactionType.TRANSFER:
            self._check_transfer(draft, source, issues)
        else:
            self._check_category(draft, issues)

        if (
            source is not None
            and draft.currency_code
            and draft.currency_code.strip().upper() != source.asset_code
        ):
            issues.append(_warning(
                "currency_code",
                "mismatch",
                f"Currency {draft.currency_code.upper()} differs from wallet "
                f"asset {source.asset_code}",
            ))

        return ValidationResult(issues=issues)

    def _check_source(
        self,
        draft: TransactionDraft,
        issues: list[ValidationIssue],
    ) -> Optional[Wallet]:
        if draft.wallet_id is None:
            issues.append(_error("wallet_id", "missing", "Select a wallet"))
            return None
        source = self._repository.get_wallet(draft.wallet_id)
        if source is None:
            issues.append(_error(
                "wallet_id",
                "unknown_reference",
                f"Wallet {draft.wallet_id} does not exist",
            ))
        return source

    def _check_transfer(
        self,
        draft: TransactionDraft,
        source: Optional[Wallet],
        issues: list[ValidationIssue],
    ) -> None:
        if draft.transfer_wallet_id is None:
            issues.append(_error(
                "transfer_wallet_id",
                "missing",
                "Select a destination wallet for the transfer",
            ))
            return
        if draft.transfer_wallet_id == draft.wallet_id:
            issues.append(_error(
                "transfer_wallet_id",
                "same_wallet",
                "Transfer destination must differ from the source wallet",
            ))
            return

        destination = self._repository.get_wallet(draft.transfer_wallet_id)
        if destination is None:
            issues.append(_error(
                "transfer_wallet_id",
                "unknown_reference",
                f"Wallet {draft.transfer_wallet_id} does not exist",
            ))
            return

        if (
            source is not None
            and (source.kind, source.asset_code) != (destination.kind, destination.asset_code)
            and draft.transfer_amount is None
        ):
            issues.append(_error(
                "transfer_amount",
                "missing",
                f"Enter the amount received in {destination.asset_code}",
            ))

    def _check_category(
        self,
        draft: TransactionDraft,
        issues: list[ValidationIssue],
    ) -> None:
        if draft.category_id is None:
            issues.append(_error("category_id", "missing", "Select a category"))
            return
        category = self._repository.get_category(draft.category_id)
        if category is None:
            issues.append(_error(
                "category_id",
                "unknown_reference",
                f"Category {draft.category_id} does not exist",
            ))
            return

        expected = (
            CategoryType.INCOME if draft.type == TransactionType.INCOME
            else CategoryType.EXPENSE
        )
        if category.type != expected:
            issues.append(_error(
                "category_id",
                "mismatch",
                f"Category '{category.name}' is an {category.type.value} category",
            ))


class RuleValidator:
    """Checks that a recurring rule can fire."""

    def __init__(self, repository: LedgerRepositoryInterface):
        self._repository = repository

    def validate(self, rule: RecurringTransactionRule) -> ValidationResult:
        issues: list[ValidationIssue] = []

        if rule.type == TransactionType.TRANSFER:
            issues.append(_error(
                "type",
                "unsupported",
                "Recurring transfers are not supported",
            ))

        if rule.wallet_id is None:
            issues.append(_error("wallet_id", "missing", "Select a wallet"))
        elif self._repository.get_wallet(rule.wallet_id) is None:
            issues.append(_error(
                "wallet_id",
                "unknown_reference",
                f"Wallet {rule.wallet_id} does not exist",
            ))

        if rule.category_id is not None and self._repository.get_category(rule.category_id) is None:
            issues.append(_warning(
                "category_id",
                "unknown_reference",
                f"Category {rule.category_id} does not exist",
            ))

        return ValidationResult(issues=issues)
