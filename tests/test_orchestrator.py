"""Tests for the LedgerApp flows."""

from decimal import Decimal

import httpx
import pytest

from assetledger.config import Settings
from assetledger.models.ledger import (
    AssetKind,
    RecurringTransactionRule,
    Transaction,
    TransactionDraft,
    TransactionType,
)
from assetledger.models.rates import AssetClass
from assetledger.orchestrator import LedgerApp, create_app
from assetledger.rates import ProviderSet
from assetledger.services.storage import InMemoryRateCache

from conftest import T0, FakeProvider, failing


def fake_providers(**overrides) -> ProviderSet:
    providers = {
        "fx_primary": FakeProvider("fx", {"USD": 1.1, "UAH": 44.0, "RUB": 100.0}),
        "fx_fallbacks": [],
        "crypto": [FakeProvider("crypto", {"BTC": 60000.0})],
        "metal": [FakeProvider("metal", {"XAU": 2300.0})],
        "stock": [FakeProvider("stocks", {"AAPL": 190.0})],
    }
    providers.update(overrides)
    return ProviderSet(**providers)


@pytest.fixture
def app(repository, audit_logger, clock) -> LedgerApp:
    return LedgerApp(
        repository=repository,
        rate_cache=InMemoryRateCache(),
        providers=fake_providers(),
        audit_logger=audit_logger,
        base_currency="eur",
        settings=Settings(),
        clock=clock,
    )


@pytest.fixture
def cash(app):
    return app.engine.create_wallet("Cash", "USD", balance=Decimal("110"))


@pytest.fixture
def bank(app):
    return app.engine.create_wallet("Bank", "EUR", balance=Decimal("0"))


class TestRefresh:
    """Tests for LedgerApp.refresh."""

    @pytest.mark.asyncio
    async def test_fires_rules_then_refreshes_rates(self, app, cash, expense_category):
        rule = app.engine.create_recurring_rule(RecurringTransactionRule(
            title="Phone",
            amount=Decimal("10"),
            wallet_id=cash.id,
            category_id=expense_category.id,
            next_run_date=T0,
        ))
        app.engine.create_wallet("Cold", "BTC", kind=AssetKind.CRYPTO, balance=Decimal("1"))

        report = await app.refresh()

        assert report.generated == {rule.id: 1}
        assert app.repository.get_wallet(cash.id).balance == Decimal("100")
        snapshot = app.aggregator.snapshot
        assert snapshot.fx_base == "EUR"
        assert snapshot.fx_rates["USD"] == 1.1
        assert snapshot.crypto_usd_prices == {"BTC": 60000.0}
        assert snapshot.last_update(AssetClass.METAL) is None

    @pytest.mark.asyncio
    async def test_rate_failures_do_not_block_recurring(self, repository, audit_logger, clock, expense_category):
        app = LedgerApp(
            repository=repository,
            rate_cache=InMemoryRateCache(),
            providers=fake_providers(fx_primary=failing("fx")),
            audit_logger=audit_logger,
            base_currency="EUR",
            settings=Settings(),
            clock=clock,
        )
        wallet = app.engine.create_wallet("Cash", "USD", balance=Decimal("50"))
        app.engine.create_recurring_rule(RecurringTransactionRule(
            title="Phone",
            amount=Decimal("10"),
            wallet_id=wallet.id,
            category_id=expense_category.id,
            next_run_date=T0,
        ))

        report = await app.refresh()

        assert report.total_generated == 1
        assert app.aggregator.fx_rates == {}

    @pytest.mark.asyncio
    async def test_base_change_refetches_fx(self, app):
        await app.refresh()
        app.set_base_currency("usd")

        await app.refresh()

        assert app.base_currency == "USD"
        assert app.aggregator.fx_base == "USD"
        assert app.aggregator.fx_rates["USD"] == 1.0


class TestReporting:
    """Tests for totals and transfer suggestions."""

    @pytest.mark.asyncio
    async def test_total_balance_in_base(self, app, cash, bank):
        await app.refresh()

        total = app.total_balance()

        assert total.currency_code == "EUR"
        assert total.total == Decimal("100")
        assert total.is_complete

    def test_total_before_any_refresh_is_incomplete(self, app, cash, bank):
        total = app.total_balance()

        assert total.total == Decimal("0")
        assert total.omitted_ids == [cash.id]

    @pytest.mark.asyncio
    async def test_suggest_transfer_amount(self, app, cash, bank):
        await app.refresh()
        draft = TransactionDraft(
            amount=Decimal("110"),
            type=TransactionType.TRANSFER,
            wallet_id=cash.id,
            transfer_wallet_id=bank.id,
        )

        suggested = app.suggest_transfer_amount(draft)

        assert suggested == Decimal("100")
        draft.transfer_amount = suggested
        app.engine.create_transaction(draft)
        assert app.repository.get_wallet(bank.id).balance == Decimal("100")

    def test_same_asset_suggestion_is_the_amount(self, app, cash):
        savings = app.engine.create_wallet("Savings", "USD")
        draft = TransactionDraft(
            amount=Decimal("7.25"),
            type=TransactionType.TRANSFER,
            wallet_id=cash.id,
            transfer_wallet_id=savings.id,
        )
        assert app.suggest_transfer_amount(draft) == Decimal("7.25")

    def test_no_suggestion_without_rates_or_for_expenses(self, app, cash, bank):
        transfer = TransactionDraft(
            amount=Decimal("1"),
            type=TransactionType.TRANSFER,
            wallet_id=cash.id,
            transfer_wallet_id=bank.id,
        )
        expense = TransactionDraft(amount=Decimal("1"), wallet_id=cash.id)

        assert app.suggest_transfer_amount(transfer) is None
        assert app.suggest_transfer_amount(expense) is None


class TestMaintenance:
    """Tests for migration and app wiring."""

    def test_migrate_uses_base_currency(self, app):
        legacy = Transaction(amount=Decimal("1"), type=None)
        app.repository.save_transaction(legacy)

        counts = app.migrate()

        assert counts["transaction_currencies"] == 1
        assert app.repository.get_transaction(legacy.id).currency_code == "EUR"

    @pytest.mark.asyncio
    async def test_create_app_wires_a_shared_client(self, tmp_path, monkeypatch):
        monkeypatch.setenv("RATES_CACHE_PATH", str(tmp_path / "cache.json"))

        app = create_app()
        try:
            assert isinstance(app._http_client, httpx.AsyncClient)
            assert app.audit_logger.storage is not None
            assert app.engine.repository is app.repository
        finally:
            await app.aclose()
        assert app._http_client.is_closed
