"""Tests for recurring rule stepping and firing."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from assetledger.config import LedgerSettings
from assetledger.ledger import InvalidRuleError, LedgerEngine, next_recurring_date
from assetledger.models.audit import AuditEventType
from assetledger.models.ledger import (
    RecurrenceFrequency,
    RecurringTransactionRule,
    TransactionType,
)
from assetledger.services.storage import NotFoundError

from conftest import T0

UTC = timezone.utc


def monthly_rule(wallet, category, **kwargs) -> RecurringTransactionRule:
    fields = dict(
        title="Gym",
        amount=Decimal("10"),
        wallet_id=wallet.id,
        category_id=category.id,
        frequency=RecurrenceFrequency.MONTHLY,
        next_run_date=datetime(2025, 1, 1, 12, 0, tzinfo=UTC),
    )
    fields.update(kwargs)
    return RecurringTransactionRule(**fields)


class TestNextRecurringDate:
    """Tests for calendar-aware stepping."""

    def test_month_end_is_clamped(self):
        jan_31 = datetime(2025, 1, 31, 9, 30, tzinfo=UTC)

        feb = next_recurring_date(jan_31, RecurrenceFrequency.MONTHLY)
        mar = next_recurring_date(feb, RecurrenceFrequency.MONTHLY)

        assert feb == datetime(2025, 2, 28, 9, 30, tzinfo=UTC)
        assert mar == datetime(2025, 3, 28, 9, 30, tzinfo=UTC)

    def test_leap_february(self):
        result = next_recurring_date(datetime(2024, 1, 31, tzinfo=UTC), RecurrenceFrequency.MONTHLY)
        assert result == datetime(2024, 2, 29, tzinfo=UTC)

    def test_year_rollover(self):
        result = next_recurring_date(datetime(2025, 11, 15, tzinfo=UTC), RecurrenceFrequency.MONTHLY, 3)
        assert result == datetime(2026, 2, 15, tzinfo=UTC)

    @pytest.mark.parametrize("frequency,interval,expected", [
        (RecurrenceFrequency.DAILY, 1, timedelta(days=1)),
        (RecurrenceFrequency.DAILY, 10, timedelta(days=10)),
        (RecurrenceFrequency.WEEKLY, 2, timedelta(weeks=2)),
    ])
    def test_fixed_steps(self, frequency, interval, expected):
        assert next_recurring_date(T0, frequency, interval) == T0 + expected

    def test_interval_below_one_steps_once(self):
        assert next_recurring_date(T0, RecurrenceFrequency.DAILY, 0) == T0 + timedelta(days=1)

    def test_timezone_is_kept(self):
        kyiv = timezone(timedelta(hours=2))
        start = datetime(2025, 3, 31, 23, 0, tzinfo=kyiv)

        result = next_recurring_date(start, RecurrenceFrequency.MONTHLY)

        assert result == datetime(2025, 4, 30, 23, 0, tzinfo=kyiv)
        assert result.tzinfo is kyiv


class TestProcessRecurringRules:
    """Tests for LedgerEngine.process_recurring_rules."""

    def test_catches_up_every_missed_occurrence(self, engine, repository, usd_wallet, expense_category):
        rule = engine.create_recurring_rule(monthly_rule(usd_wallet, expense_category))

        report = engine.process_recurring_rules(now=T0)

        assert report.generated == {rule.id: 3}
        assert report.total_generated == 3
        assert repository.get_wallet(usd_wallet.id).balance == Decimal("70")
        dates = sorted(t.date for t in repository.list_transactions())
        assert dates == [
            datetime(2025, 1, 1, 12, 0, tzinfo=UTC),
            datetime(2025, 2, 1, 12, 0, tzinfo=UTC),
            datetime(2025, 3, 1, 12, 0, tzinfo=UTC),
        ]
        assert repository.get_recurring_rule(rule.id).next_run_date == datetime(2025, 4, 1, 12, 0, tzinfo=UTC)

    def test_second_pass_generates_nothing(self, engine, usd_wallet, expense_category):
        engine.create_recurring_rule(monthly_rule(usd_wallet, expense_category))
        engine.process_recurring_rules(now=T0)

        report = engine.process_recurring_rules(now=T0)

        assert report.total_generated == 0
        assert report.transaction_ids == []

    def test_generated_transactions_carry_snapshots(self, engine, repository, usd_wallet, expense_category):
        engine.create_recurring_rule(monthly_rule(
            usd_wallet, expense_category, next_run_date=T0,
        ))

        report = engine.process_recurring_rules(now=T0)

        tx = repository.get_transaction(report.transaction_ids[0])
        assert tx.note == "Recurring: Gym"
        assert tx.currency_code == "USD"
        assert tx.wallet_name_snapshot == "Cash"
        assert tx.category_id == expense_category.id
        assert tx.type == TransactionType.EXPENSE

    def test_own_note_is_kept(self, engine, repository, usd_wallet, expense_category):
        engine.create_recurring_rule(monthly_rule(
            usd_wallet, expense_category, next_run_date=T0, note="Membership",
        ))

        report = engine.process_recurring_rules(now=T0)

        assert repository.get_transaction(report.transaction_ids[0]).note == "Membership"

    def test_income_rule_credits_wallet(self, engine, repository, usd_wallet, income_category):
        engine.create_recurring_rule(monthly_rule(
            usd_wallet, income_category,
            type=TransactionType.INCOME,
            amount=Decimal("1000"),
            next_run_date=T0,
        ))

        engine.process_recurring_rules(now=T0)

        assert repository.get_wallet(usd_wallet.id).balance == Decimal("1100")

    def test_catch_up_is_capped(self, repository, audit_logger, usd_wallet, expense_category):
        engine = LedgerEngine(
            repository,
            settings=LedgerSettings(max_recurring_generations_per_rule=2),
            audit_logger=audit_logger,
        )
        rule = engine.create_recurring_rule(monthly_rule(usd_wallet, expense_category))

        first = engine.process_recurring_rules(now=T0)
        second = engine.process_recurring_rules(now=T0)

        assert first.generated == {rule.id: 2}
        assert first.capped == [rule.id]
        assert second.generated == {rule.id: 1}
        assert second.capped == []
        assert repository.get_wallet(usd_wallet.id).balance == Decimal("70")

    def test_future_and_inactive_rules_are_skipped(self, engine, repository, usd_wallet, expense_category):
        engine.create_recurring_rule(monthly_rule(
            usd_wallet, expense_category, next_run_date=T0 + timedelta(days=1),
        ))
        engine.create_recurring_rule(monthly_rule(usd_wallet, expense_category, is_active=False))

        report = engine.process_recurring_rules(now=T0)

        assert report.total_generated == 0
        assert repository.get_wallet(usd_wallet.id).balance == Decimal("100")

    def test_rule_without_wallet_is_deactivated(self, engine, repository, audit_storage, usd_wallet, expense_category):
        rule = engine.create_recurring_rule(monthly_rule(usd_wallet, expense_category))
        engine.delete_wallet(usd_wallet.id)

        report = engine.process_recurring_rules(now=T0)

        assert report.deactivated == [rule.id]
        assert report.total_generated == 0
        assert repository.get_recurring_rule(rule.id).is_active is False
        assert repository.list_transactions() == []
        event = audit_storage.get_events_by_entity("rule", rule.id)[-1]
        assert event.event_type == AuditEventType.RECURRING_RULE_DEACTIVATED
        assert event.details == {"reason": "wallet missing"}

    def test_transfer_rule_is_deactivated(self, engine, repository, usd_wallet):
        rule = RecurringTransactionRule(
            title="Savings",
            amount=Decimal("5"),
            type=TransactionType.TRANSFER,
            wallet_id=usd_wallet.id,
            next_run_date=T0,
        )
        repository.save_recurring_rule(rule)

        report = engine.process_recurring_rules(now=T0)

        assert report.deactivated == [rule.id]
        assert repository.get_wallet(usd_wallet.id).balance == Decimal("100")

    def test_naive_dates_are_utc(self, engine, repository, usd_wallet, expense_category):
        rule = engine.create_recurring_rule(monthly_rule(
            usd_wallet, expense_category, next_run_date=datetime(2025, 3, 1, 12, 0),
        ))

        report = engine.process_recurring_rules(now=datetime(2025, 3, 1, 12, 0))

        assert report.generated == {rule.id: 1}


class TestRuleLifecycle:
    """Tests for creating and updating rules."""

    def test_create_records_wallet_currency(self, engine, eur_wallet, expense_category):
        rule = engine.create_recurring_rule(monthly_rule(eur_wallet, expense_category))
        assert rule.currency_code == "EUR"

    def test_transfer_rule_is_rejected(self, engine, usd_wallet):
        rule = RecurringTransactionRule(
            title="Savings", amount=Decimal("5"), type=TransactionType.TRANSFER, wallet_id=usd_wallet.id,
        )

        with pytest.raises(InvalidRuleError) as exc_info:
            engine.create_recurring_rule(rule)

        assert exc_info.value.result.errors[0].field == "type"

    def test_reactivation_needs_a_wallet(self, engine, repository, usd_wallet, eur_wallet, expense_category):
        rule = engine.create_recurring_rule(monthly_rule(usd_wallet, expense_category))
        engine.delete_wallet(usd_wallet.id)
        engine.process_recurring_rules(now=T0)

        stored = repository.get_recurring_rule(rule.id)
        stored.is_active = True
        with pytest.raises(InvalidRuleError):
            engine.update_recurring_rule(stored)

        stored.wallet_id = eur_wallet.id
        updated = engine.update_recurring_rule(stored)

        assert updated.is_active
        assert updated.currency_code == "EUR"
        report = engine.process_recurring_rules(now=T0)
        assert report.generated == {rule.id: 3}

    def test_inactive_rule_saves_without_validation(self, engine, repository, usd_wallet, expense_category):
        rule = engine.create_recurring_rule(monthly_rule(usd_wallet, expense_category))
        rule.is_active = False
        rule.wallet_id = None

        engine.update_recurring_rule(rule)

        assert repository.get_recurring_rule(rule.id).wallet_id is None

    def test_update_unknown_rule(self, engine, usd_wallet, expense_category):
        with pytest.raises(NotFoundError):
            engine.update_recurring_rule(monthly_rule(usd_wallet, expense_category))
