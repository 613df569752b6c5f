"""
Audit Models

Every balance mutation and every rate refresh outcome is recorded.
This provides:
1. Traceability of how a wallet reached its balance
2. Debugging information when a provider misbehaves
3. A visible trail for rules that were deactivated automatically

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Ledger mutations
    TRANSACTION_CREATED = "transaction_created"
    TRANSACTION_EDITED = "transaction_edited"
    TRANSACTION_DELETED = "transaction_deleted"
    WALLET_CREATED = "wallet_created"
    WALLET_UPDATED = "wallet_updated"
    WALLET_DELETED = "wallet_deleted"
    FOLDER_DELETED = "folder_deleted"
    CATEGORY_DELETED = "category_deleted"

    # Recurring rules
    RECURRING_RULE_FIRED = "recurring_rule_fired"
    RECURRING_RULE_DEACTIVATED = "recurring_rule_deactivated"

    # Maintenance
    MIGRATION_APPLIED = "migration_applied"

    # Rates
    RATES_REFRESHED = "rates_refreshed"
    RATE_REFRESH_FAILED = "rate_refresh_failed"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    event_id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'wallet', 'transaction', 'rule')"
    )
    entity_id: Optional[UUID] = None

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "description": self.description,
            "details": self.details,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transaction_created(tx_id, "expense", "30.00", "USD")
    """

    @staticmethod
    def transaction_created(
        transaction_id: UUID,
        transaction_type: str,
        amount: str,
        currency_code: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_CREATED,
            entity_type="transaction",
            entity_id=transaction_id,
            description=f"Transaction created: {transaction_type} {amount} {currency_code}",
            details={
                "type": transaction_type,
                "amount": amount,
                "currency_code": currency_code,
            },
        )

    @staticmethod
    def transaction_edited(
        transaction_id: UUID,
        before: dict,
        after: dict,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_EDITED,
            entity_type="transaction",
            entity_id=transaction_id,
            description="Transaction edited",
            details={"before": before, "after": after},
        )

    @staticmethod
    def transaction_deleted(
        transaction_id: UUID,
        used_snapshot_lookup: bool,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            entity_type="transaction",
            entity_id=transaction_id,
            description="Transaction deleted",
            details={"used_snapshot_lookup": used_snapshot_lookup},
        )

    @staticmethod
    def wallet_created(wallet_id: UUID, name: str, asset_code: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.WALLET_CREATED,
            entity_type="wallet",
            entity_id=wallet_id,
            description=f"Wallet created: {name} ({asset_code})",
        )

    @staticmethod
    def wallet_asset_changed(
        wallet_id: UUID,
        old_code: str,
        new_code: str,
        referencing_transactions: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.WALLET_UPDATED,
            severity=AuditSeverity.WARNING,
            entity_type="wallet",
            entity_id=wallet_id,
            description=f"Wallet asset code changed from {old_code} to {new_code}",
            details={
                "old_code": old_code,
                "new_code": new_code,
                "referencing_transactions": referencing_transactions,
            },
        )

    @staticmethod
    def wallet_deleted(
        wallet_id: UUID,
        detached_transactions: int,
        detached_rules: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.WALLET_DELETED,
            entity_type="wallet",
            entity_id=wallet_id,
            description="Wallet deleted",
            details={
                "detached_transactions": detached_transactions,
                "detached_rules": detached_rules,
            },
        )

    @staticmethod
    def folder_deleted(folder_id: UUID, detached_wallets: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FOLDER_DELETED,
            entity_type="folder",
            entity_id=folder_id,
            description="Folder deleted",
            details={"detached_wallets": detached_wallets},
        )

    @staticmethod
    def category_deleted(category_id: UUID) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_DELETED,
            entity_type="category",
            entity_id=category_id,
            description="Category deleted",
        )

    @staticmethod
    def recurring_rule_fired(rule_id: UUID, generated: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECURRING_RULE_FIRED,
            entity_type="rule",
            entity_id=rule_id,
            description=f"Recurring rule generated {generated} transaction(s)",
            details={"generated": generated},
        )

    @staticmethod
    def recurring_rule_deactivated(rule_id: UUID, reason: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECURRING_RULE_DEACTIVATED,
            severity=AuditSeverity.WARNING,
            entity_type="rule",
            entity_id=rule_id,
            description=f"Recurring rule deactivated: {reason}",
            details={"reason": reason},
        )

    @staticmethod
    def migration_applied(counts: dict[str, int]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MIGRATION_APPLIED,
            description="Legacy data migration applied",
            details=dict(counts),
        )

    @staticmethod
    def rates_refreshed(asset_class: str, symbols: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RATES_REFRESHED,
            entity_type="rates",
            description=f"Rates refreshed: {asset_class}",
            details={"asset_class": asset_class, "symbols": symbols},
        )

    @staticmethod
    def rate_refresh_failed(asset_class: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RATE_REFRESH_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="rates",
            description=f"Rate refresh failed: {asset_class}",
            details={"asset_class": asset_class, "error": error_message},
        )
