"""
Shared fixtures.

No test talks to the network: HTTP providers run against
httpx.MockTransport and the aggregator against FakeProvider.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional, Sequence

import pytest

from assetledger.audit import AuditLogger
from assetledger.config import LedgerSettings, ProviderSettings, RateSettings
from assetledger.ledger import LedgerEngine
from assetledger.models.ledger import AssetKind, CategoryType
from assetledger.services.providers import ProviderError, QuoteProvider
from assetledger.services.storage import (
    InMemoryAuditStorage,
    InMemoryLedgerRepository,
)

T0 = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeProvider(QuoteProvider):
    """
    Scripted quote provider.

    `quotes` are returned filtered to the requested symbols (all of them
    when none are requested). `error` is raised instead, and `delay`
    makes the call sleep first.
    """

    def __init__(
        self,
        name: str,
        quotes: Optional[dict[str, float]] = None,
        error: Optional[Exception] = None,
        anchor: Optional[str] = None,
        delay: float = 0.0,
    ):
        self.name = name
        self.anchor = anchor
        self.quotes = dict(quotes or {})
        self.error = error
        self.delay = delay
        self.calls: list[tuple[list[str], str]] = []

    async def fetch(self, symbols: Sequence[str], base: str) -> dict[str, float]:
        self.calls.append((list(symbols), base))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if not symbols:
            return dict(self.quotes)
        return {s: self.quotes[s] for s in symbols if s in self.quotes}


def failing(name: str) -> FakeProvider:
    return FakeProvider(name, error=ProviderError(name, "unavailable"))


class Clock:
    """Settable clock for TTL tests."""

    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def rate_settings() -> RateSettings:
    return RateSettings(
        provider_timeout_seconds=0.5,
        retry_attempts=1,
        retry_min_wait_seconds=0,
        retry_max_wait_seconds=0,
        fx_fallback_codes="UAH,RUB",
        cache_path="unused.json",
    )


@pytest.fixture
def provider_settings() -> ProviderSettings:
    return ProviderSettings(
        alpha_vantage_api_key="demo-key",
        finnhub_api_key="demo-token",
    )


@pytest.fixture
def ledger_settings() -> LedgerSettings:
    return LedgerSettings(max_recurring_generations_per_rule=120)


@pytest.fixture
def audit_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage) -> AuditLogger:
    return AuditLogger(audit_storage)


@pytest.fixture
def repository() -> InMemoryLedgerRepository:
    return InMemoryLedgerRepository()


@pytest.fixture
def engine(repository, ledger_settings, audit_logger) -> LedgerEngine:
    return LedgerEngine(repository, settings=ledger_settings, audit_logger=audit_logger)


@pytest.fixture
def expense_category(engine):
    return engine.create_category("Groceries", CategoryType.EXPENSE)


@pytest.fixture
def income_category(engine):
    return engine.create_category("Salary", CategoryType.INCOME)


@pytest.fixture
def usd_wallet(engine):
    return engine.create_wallet("Cash", "usd", balance=Decimal("100"))


@pytest.fixture
def eur_wallet(engine):
    return engine.create_wallet("Bank", "EUR", balance=Decimal("500"))


@pytest.fixture
def btc_wallet(engine):
    return engine.create_wallet("Cold storage", "BTC", kind=AssetKind.CRYPTO, balance=Decimal("0.5"))
