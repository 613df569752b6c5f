"""Tests for converted totals and CSV export."""

import csv
import io
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from assetledger.models.ledger import AssetKind, CategoryType, TransactionDraft, TransactionType
from assetledger.models.rates import RateSnapshot
from assetledger.queries import CSV_HEADER, LedgerQueries
from assetledger.rates import ConversionEngine

MARCH = datetime(2025, 3, 1, tzinfo=timezone.utc)
APRIL = datetime(2025, 4, 1, tzinfo=timezone.utc)


@pytest.fixture
def queries(repository) -> LedgerQueries:
    snapshot = RateSnapshot(
        fx_base="USD",
        fx_rates={"USD": 1.0, "EUR": 0.5},
        crypto_usd_prices={"BTC": 60000.0},
    )
    return LedgerQueries(repository, ConversionEngine.from_snapshot(snapshot))


def spend(engine, wallet, category, amount: str, when: datetime, note=None):
    return engine.create_transaction(TransactionDraft(
        amount=Decimal(amount),
        type=TransactionType.EXPENSE,
        wallet_id=wallet.id,
        category_id=category.id,
        date=when,
        note=note,
    ))


class TestTotalForCurrency:
    """Tests for the converted balance total."""

    def test_sums_every_convertible_wallet(self, queries, usd_wallet, eur_wallet, btc_wallet):
        total = queries.total_for_currency("usd")

        assert total.currency_code == "USD"
        assert total.total == Decimal("31100")
        assert total.included_count == 3
        assert total.is_complete

    def test_unpriced_wallet_is_omitted_not_zeroed(self, queries, engine, usd_wallet):
        tesla = engine.create_wallet("Broker", "TSLA", kind=AssetKind.STOCK, balance=Decimal("3"))

        total = queries.total_for_currency("USD")

        assert total.total == Decimal("100")
        assert total.omitted_ids == [tesla.id]
        assert not total.is_complete

    def test_other_target(self, queries, usd_wallet, eur_wallet):
        assert queries.total_for_currency("EUR").total == Decimal("550")

    def test_empty_ledger(self, queries):
        total = queries.total_for_currency("USD")
        assert total.total == Decimal("0")
        assert total.is_complete


class TestExpenseTotals:
    """Tests for expense sums over a date range."""

    @pytest.fixture
    def ledger(self, engine, usd_wallet, eur_wallet, expense_category, income_category):
        yen = engine.create_wallet("Travel", "JPY", balance=Decimal("10000"))
        transport = engine.create_category("Transport", CategoryType.EXPENSE)
        return {
            "march_usd": spend(engine, usd_wallet, expense_category, "30", MARCH),
            "march_eur": spend(engine, eur_wallet, transport, "10", MARCH + timedelta(days=14)),
            "march_yen": spend(engine, yen, transport, "1500", MARCH + timedelta(days=2)),
            "april_usd": spend(engine, usd_wallet, expense_category, "5", APRIL),
            "income": engine.create_transaction(TransactionDraft(
                amount=Decimal("1000"),
                type=TransactionType.INCOME,
                wallet_id=usd_wallet.id,
                category_id=income_category.id,
                date=MARCH,
            )),
            "transport": transport,
        }

    def test_range_is_half_open(self, queries, ledger):
        total = queries.expense_total("USD", start=MARCH, end=APRIL)

        assert total.total == Decimal("50")
        assert total.included_count == 2
        assert total.omitted_ids == [ledger["march_yen"].id]

    def test_open_bounds(self, queries, ledger):
        assert queries.expense_total("USD").total == Decimal("55")
        assert queries.expense_total("USD", start=APRIL).total == Decimal("5")
        assert queries.expense_total("USD", end=MARCH).total == Decimal("0")

    def test_naive_bounds_are_utc(self, queries, ledger):
        total = queries.expense_total("USD", start=datetime(2025, 4, 1))
        assert total.total == Decimal("5")

    def test_by_category_largest_first(self, queries, ledger, expense_category):
        rows = queries.expenses_by_category("USD", start=MARCH, end=APRIL)

        assert [(r.category_name, r.total, r.transaction_count) for r in rows] == [
            ("Groceries", Decimal("30"), 1),
            ("Transport", Decimal("20"), 1),
        ]
        assert rows[0].category_id == expense_category.id
        assert rows[0].currency_code == "USD"

    def test_deleted_category_is_uncategorized(self, queries, engine, ledger):
        engine.delete_category(ledger["transport"].id)

        rows = queries.expenses_by_category("USD", start=MARCH, end=APRIL)

        assert [(r.category_name, r.category_id) for r in rows] == [
            ("Groceries", rows[0].category_id),
            ("Uncategorized", None),
        ]


class TestCSVExport:
    """Tests for transactions_csv."""

    def test_header_and_rows(self, queries, engine, usd_wallet, expense_category):
        spend(engine, usd_wallet, expense_category, "12.50", datetime(2025, 3, 2, 8, 15, 30, tzinfo=timezone.utc))

        lines = queries.transactions_csv().splitlines()

        assert lines[0] == ",".join(CSV_HEADER)
        assert lines[1] == "2025-03-02T08:15:30Z,Expense,12.50,USD,Groceries,Cash,"

    def test_quotes_special_characters(self, queries, engine, usd_wallet, expense_category):
        note = 'Lunch, "quick"\nwith team'
        spend(engine, usd_wallet, expense_category, "9", MARCH, note=note)

        rows = list(csv.reader(io.StringIO(queries.transactions_csv())))

        assert rows[1][-1] == note
        assert '"Lunch, ""quick""' in queries.transactions_csv()

    def test_dates_are_rendered_in_utc(self, queries, engine, usd_wallet, expense_category):
        kyiv = timezone(timedelta(hours=2))
        spend(engine, usd_wallet, expense_category, "1", datetime(2025, 3, 2, 1, 0, tzinfo=kyiv))

        rows = list(csv.reader(io.StringIO(queries.transactions_csv())))

        assert rows[1][0] == "2025-03-01T23:00:00Z"

    def test_detached_wallet_uses_snapshot(self, queries, engine, usd_wallet, eur_wallet):
        engine.create_transaction(TransactionDraft(
            amount=Decimal("10"),
            type=TransactionType.TRANSFER,
            wallet_id=usd_wallet.id,
            transfer_wallet_id=eur_wallet.id,
            transfer_amount=Decimal("5"),
            date=MARCH,
        ))
        engine.update_wallet(eur_wallet.id, name="Renamed")
        engine.delete_wallet(usd_wallet.id)

        rows = list(csv.reader(io.StringIO(queries.transactions_csv())))

        assert rows[1][1:6] == ["Transfer", "10", "USD", "", "Cash"]

    def test_explicit_selection(self, queries, engine, usd_wallet, expense_category):
        kept = spend(engine, usd_wallet, expense_category, "1", MARCH)
        spend(engine, usd_wallet, expense_category, "2", APRIL)

        rows = list(csv.reader(io.StringIO(queries.transactions_csv([kept]))))

        assert len(rows) == 2
        assert rows[1][2] == "1"
