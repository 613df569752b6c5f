"""
Core Ledger Models

These models define the schemas for everything the ledger stores:
wallets, folders, categories, transactions and recurring rules.

DESIGN DECISION: Transactions carry denormalized snapshots of their
wallets (name, kind, color, and for transfers the destination's asset
code). History must render correctly after a wallet is renamed or
deleted, so these copies are kept on purpose and never normalized away.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_aware(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class AssetKind(str, Enum):
    """What a wallet holds. Only fiat is converted through the FX table."""
    FIAT = "fiat"
    CRYPTO = "crypto"
    METAL = "metal"
    STOCK = "stock"


class TransactionType(str, Enum):
    """Balance effect of a transaction."""
    EXPENSE = "expense"
    INCOME = "income"
    TRANSFER = "transfer"


class CategoryType(str, Enum):
    EXPENSE = "expense"
    INCOME = "income"


class RecurrenceFrequency(str, Enum):
    """Calendar unit a recurring rule advances by."""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


# =============================================================================
# ORGANISATION
# =============================================================================

class WalletFolder(BaseModel):
    """
    A named group of wallets.

    Folders reference wallets, they do not own them: deleting a folder
    only detaches its wallets.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(..., min_length=1, max_length=100)
    created_at: datetime = Field(default_factory=utc_now)


class Category(BaseModel):
    """Expense or income category."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(..., min_length=1, max_length=100)
    type: CategoryType
    color_hex: str = Field(default="2F80EDFF", max_length=8)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


# =============================================================================
# WALLET
# =============================================================================

class Wallet(BaseModel):
    """
    A balance held in one asset.

    CRITICAL: `balance` is written only by the LedgerEngine, as the side
    effect of transaction create/edit/delete and recurring rule firing.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(..., min_length=1, max_length=100)
    kind: AssetKind = AssetKind.FIAT
    asset_code: str = Field(
        ...,
        min_length=1,
        max_length=20,
        description="ISO currency code, or ticker for crypto/metal/stock"
    )
    balance: Decimal = Field(default=Decimal("0"))
    color_hex: Optional[str] = Field(default="FFFFFFFF", max_length=8)
    folder_id: Optional[UUID] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator('asset_code')
    @classmethod
    def normalize_asset_code(cls, v: str) -> str:
        return v.strip().upper()


# =============================================================================
# TRANSACTION
# =============================================================================

class Transaction(BaseModel):
    """
    A recorded movement of value.

    `amount` is always a non-negative magnitude; the sign of the effect
    comes from `type`. For transfers, `transfer_amount` is the value
    credited to the destination in its own asset.

    `type` is optional only so that legacy rows can be loaded and
    migrated; the engine never writes a transaction without one.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    amount: Decimal = Field(..., ge=0)
    currency_code: str = Field(default="", max_length=20)
    date: datetime = Field(default_factory=utc_now)
    note: Optional[str] = Field(default=None, max_length=1000)
    type: Optional[TransactionType] = TransactionType.EXPENSE
    category_id: Optional[UUID] = None

    # Opaque attachment, never interpreted by the core
    photo_data: Optional[bytes] = None

    # Source side
    wallet_id: Optional[UUID] = None
    wallet_name_snapshot: Optional[str] = None
    wallet_kind_snapshot: Optional[AssetKind] = None
    wallet_color_snapshot: Optional[str] = None

    # Destination side (transfers only)
    transfer_wallet_id: Optional[UUID] = None
    transfer_amount: Optional[Decimal] = Field(default=None, ge=0)
    transfer_wallet_name_snapshot: Optional[str] = None
    transfer_wallet_currency_code: Optional[str] = None
    transfer_wallet_kind_snapshot: Optional[AssetKind] = None
    transfer_wallet_color_snapshot: Optional[str] = None

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator('date')
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        return ensure_aware(v)

    @property
    def resolved_type(self) -> TransactionType:
        """Type used for balance effects; legacy rows count as expenses."""
        return self.type or TransactionType.EXPENSE

    @property
    def effective_transfer_amount(self) -> Decimal:
        if self.transfer_amount is None:
            return self.amount
        return self.transfer_amount


class TransactionDraft(BaseModel):
    """
    The user-supplied state of a transaction being created or edited.

    Snapshots are not part of the draft: the engine takes them from the
    live wallets when the draft is saved.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    amount: Decimal = Field(..., ge=0)
    type: TransactionType = TransactionType.EXPENSE
    currency_code: Optional[str] = Field(
        default=None,
        description="Defaults to the source wallet's asset code"
    )
    date: datetime = Field(default_factory=utc_now)
    note: Optional[str] = Field(default=None, max_length=1000)
    category_id: Optional[UUID] = None
    wallet_id: Optional[UUID] = None
    transfer_wallet_id: Optional[UUID] = None
    transfer_amount: Optional[Decimal] = Field(default=None, ge=0)
    photo_data: Optional[bytes] = None

    @field_validator('date')
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        return ensure_aware(v)

    @classmethod
    def from_transaction(cls, transaction: Transaction) -> "TransactionDraft":
        """Start an edit from the saved state, keeping any saved transfer amount."""
        return cls(
            amount=transaction.amount,
            type=transaction.resolved_type,
            currency_code=transaction.currency_code or None,
            date=transaction.date,
            note=transaction.note,
            category_id=transaction.category_id,
            wallet_id=transaction.wallet_id,
            transfer_wallet_id=transaction.transfer_wallet_id,
            transfer_amount=transaction.transfer_amount,
            photo_data=transaction.photo_data,
        )


# =============================================================================
# RECURRING RULE
# =============================================================================

class RecurringTransactionRule(BaseModel):
    """
    A schedule that generates transactions.

    `next_run_date` only moves forward, by a calendar-aware step of
    `interval` days, weeks or months. Transfer rules are invalid and get
    deactivated on the next firing pass.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    title: str = Field(..., min_length=1, max_length=200)
    amount: Decimal = Field(..., ge=0)
    currency_code: str = Field(default="", max_length=20)
    type: TransactionType = TransactionType.EXPENSE
    frequency: RecurrenceFrequency = RecurrenceFrequency.MONTHLY
    interval: int = 1
    next_run_date: datetime = Field(default_factory=utc_now)
    note: Optional[str] = Field(default=None, max_length=1000)
    is_active: bool = True
    category_id: Optional[UUID] = None
    wallet_id: Optional[UUID] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator('interval')
    @classmethod
    def clamp_interval(cls, v: int) -> int:
        return max(1, v)

    @field_validator('next_run_date')
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        return ensure_aware(v)


class RecurringRunReport(BaseModel):
    """What one recurring firing pass did."""

    generated: dict[UUID, int] = Field(
        default_factory=dict,
        description="Rule id -> transactions generated in this pass"
    )
    transaction_ids: list[UUID] = Field(default_factory=list)
    deactivated: list[UUID] = Field(default_factory=list)
    capped: list[UUID] = Field(
        default_factory=list,
        description="Rules that hit the catch-up cap and are still due"
    )

    @property
    def total_generated(self) -> int:
        return sum(self.generated.values())


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single problem found with a draft or rule."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'unknown_reference', 'mismatch')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning)$",
        description="Errors block the save; warnings don't"
    )


class ValidationResult(BaseModel):
    """Outcome of validating a draft or rule."""

    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.has_errors

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def errors(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity == "error"]

    @property
    def warnings(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity == "warning"]


# =============================================================================
# QUERY MODELS
# =============================================================================

class ConvertedTotal(BaseModel):
    """
    A sum converted into one currency.

    Items that could not be converted are left out of `total` and listed
    in `omitted_ids`, never counted as zero.
    """

    currency_code: str
    total: Decimal = Decimal("0")
    included_count: int = 0
    omitted_ids: list[UUID] = Field(default_factory=list)

    @property
    def is_complete(self) -> bool:
        return not self.omitted_ids


class CategoryTotal(BaseModel):
    """Converted expense total of one category."""

    category_id: Optional[UUID] = None
    category_name: str
    currency_code: str
    total: Decimal = Decimal("0")
    transaction_count: int = 0
