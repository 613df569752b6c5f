"""
Legacy data migration.

Older stores hold transactions without a type or currency and
categories without a color. run_migration() fills those gaps in place.
Running it again changes nothing.
"""

from typing import Optional

import structlog

from assetledger.audit import AuditLogger
from assetledger.config import get_settings
from assetledger.models.audit import AuditEventBuilder
from assetledger.models.ledger import Category, CategoryType, TransactionType
from assetledger.services.storage import LedgerRepositoryInterface

logger = structlog.get_logger(__name__)

DEFAULT_CATEGORIES = [
    ("Groceries", CategoryType.EXPENSE, "4CAF50FF"),
    ("Transport", CategoryType.EXPENSE, "2196F3FF"),
    ("Housing", CategoryType.EXPENSE, "FF9800FF"),
    ("Restaurants", CategoryType.EXPENSE, "E91E63FF"),
    ("Shopping", CategoryType.EXPENSE, "9C27B0FF"),
    ("Health", CategoryType.EXPENSE, "00BCD4FF"),
    ("Entertainment", CategoryType.EXPENSE, "FFC107FF"),
    ("Subscriptions", CategoryType.EXPENSE, "607D8BFF"),
    ("Salary", CategoryType.INCOME, "2E7D32FF"),
    ("Freelance", CategoryType.INCOME, "00897BFF"),
    ("Gifts", CategoryType.INCOME, "1565C0FF"),
]


def run_migration(
    repository: LedgerRepositoryInterface,
    base_currency: str,
    audit_logger: Optional[AuditLogger] = None,
) -> dict[str, int]:
    """
    Fill legacy gaps.

    - A transaction without a type becomes income if its category is an
      income category, otherwise an expense
    - A blank transaction currency becomes `base_currency`
    - A blank category color becomes the default category color

    Returns:
        How many records of each kind were changed
    """
    counts = {"transaction_types": 0, "transaction_currencies": 0, "category_colors": 0}
    base_currency = base_currency.strip().upper()
    if not base_currency:
        logger.warning("migration_skipped", reason="no base currency")
        return counts

    category_types = {c.id: c.type for c in repository.list_categories()}

    for transaction in repository.list_transactions():
        changed = False
        if transaction.type is None:
            category_type = category_types.get(transaction.category_id)
            transaction.type = (
                TransactionType.INCOME if category_type == CategoryType.INCOME
                else TransactionType.EXPENSE
            )
            counts["transaction_types"] += 1
            changed = True
        if not transaction.currency_code.strip():
            transaction.currency_code = base_currency
            counts["transaction_currencies"] += 1
            changed = True
        if changed:
            repository.save_transaction(transaction)

    default_color = get_settings().ledger.default_category_color
    for category in repository.list_categories():
        if not category.color_hex.strip():
            category.color_hex = default_color
            repository.save_category(category)
            counts["category_colors"] += 1

    if any(counts.values()):
        logger.info("migration_applied", **counts)
        if audit_logger:
            audit_logger.log(AuditEventBuilder.migration_applied(counts))
    return counts


def seed_default_categories(repository: LedgerRepositoryInterface) -> list[Category]:
    """Create the default categories, only if the store has none yet."""
    if repository.list_categories():
        return []
    seeded = []
    for name, category_type, color in DEFAULT_CATEGORIES:
        category = Category(name=name, type=category_type, color_hex=color)
        repository.save_category(category)
        seeded.append(category)
    logger.info("default_categories_seeded", count=len(seeded))
    return seeded
