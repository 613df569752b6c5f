"""
Main Orchestrator for the asset ledger

This module ties the components together and defines the end-to-end
flows an embedding application drives:
1. Refresh (fire due recurring rules → refresh due rate classes)
2. Record (validate → apply balance effect → persist)
3. Report (convert balances and expenses into one currency)

DESIGN DECISION: There are no ambient singletons. One LedgerApp owns
exactly one aggregator, one converter, one ledger engine and one query
layer, all sharing one repository and one audit logger.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

import httpx
import structlog

from assetledger.audit import AuditLogger
from assetledger.config import Settings, get_settings
from assetledger.ledger import LedgerEngine, run_migration
from assetledger.models.ledger import (
    ConvertedTotal,
    RecurringRunReport,
    TransactionDraft,
    TransactionType,
    utc_now,
)
from assetledger.queries import LedgerQueries
from assetledger.rates import ConversionEngine, ProviderSet, RateAggregator
from assetledger.services.storage import (
    InMemoryAuditStorage,
    InMemoryLedgerRepository,
    LedgerRepositoryInterface,
    RateCacheInterface,
)

logger = structlog.get_logger(__name__)


class LedgerApp:
    """
    Application root.

    Flow on refresh:
    1. Fire recurring rules that are due (synchronous, balances move)
    2. Refresh every due rate class for the wallets now held

    Rates can never move a balance; the ledger never waits on the network.
    """

    def __init__(
        self,
        repository: Optional[LedgerRepositoryInterface] = None,
        rate_cache: Optional[RateCacheInterface] = None,
        providers: Optional[ProviderSet] = None,
        audit_logger: Optional[AuditLogger] = None,
        base_currency: Optional[str] = None,
        settings: Optional[Settings] = None,
        clock=None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self._settings = settings or get_settings()
        self._clock = clock or utc_now
        self._base_currency = (base_currency or self._settings.app.base_currency).strip().upper()
        self._repository = repository or InMemoryLedgerRepository()
        self._audit_logger = audit_logger or AuditLogger()
        self._http_client = http_client

        if providers is None:
            providers = ProviderSet.default(
                client=http_client,
                settings=self._settings.providers,
                rate_settings=self._settings.rates,
            )

        self._aggregator = RateAggregator(
            cache=rate_cache,
            providers=providers,
            settings=self._settings.rates,
            audit_logger=self._audit_logger,
            clock=self._clock,
            default_base=self._base_currency,
        )
        self._converter = ConversionEngine(lambda: self._aggregator.snapshot)
        self._engine = LedgerEngine(
            self._repository,
            settings=self._settings.ledger,
            audit_logger=self._audit_logger,
        )
        self._queries = LedgerQueries(self._repository, self._converter)

    # Components

    @property
    def repository(self) -> LedgerRepositoryInterface:
        return self._repository

    @property
    def aggregator(self) -> RateAggregator:
        return self._aggregator

    @property
    def converter(self) -> ConversionEngine:
        return self._converter

    @property
    def engine(self) -> LedgerEngine:
        return self._engine

    @property
    def queries(self) -> LedgerQueries:
        return self._queries

    @property
    def audit_logger(self) -> AuditLogger:
        return self._audit_logger

    @property
    def base_currency(self) -> str:
        return self._base_currency

    def set_base_currency(self, code: str) -> None:
        """Change the base; the next refresh refetches FX for it."""
        self._base_currency = code.strip().upper()

    # Flows

    async def refresh(self, force: bool = False) -> RecurringRunReport:
        """
        Fire due recurring rules, then refresh due rates.

        Rate failures are absorbed by the aggregator; this returns the
        recurring report either way.
        """
        now: datetime = self._clock()
        report = self._engine.process_recurring_rules(now)
        if report.total_generated or report.deactivated:
            logger.info(
                "recurring_processed",
                generated=report.total_generated,
                deactivated=len(report.deactivated),
            )

        await self._aggregator.refresh_all_rates(
            self._base_currency,
            self._repository.list_wallets(),
            force=force,
        )
        return report

    def migrate(self) -> dict[str, int]:
        return run_migration(self._repository, self._base_currency, self._audit_logger)

    def suggest_transfer_amount(self, draft: TransactionDraft) -> Optional[Decimal]:
        """
        Propose the destination amount for a transfer draft.

        Same asset on both sides: the amount itself. Otherwise the
        converted amount, or None when a rate is missing. The caller
        decides whether to put it on the draft.
        """
        if draft.type != TransactionType.TRANSFER:
            return None
        source = self._repository.get_wallet(draft.wallet_id) if draft.wallet_id else None
        destination = (
            self._repository.get_wallet(draft.transfer_wallet_id)
            if draft.transfer_wallet_id else None
        )
        if source is None or destination is None:
            return None
        if (source.kind, source.asset_code) == (destination.kind, destination.asset_code):
            return draft.amount
        return self._converter.convert(
            draft.amount,
            source.asset_code,
            source.kind,
            destination.asset_code,
            destination.kind,
        )

    def total_balance(self, target: Optional[str] = None) -> ConvertedTotal:
        return self._queries.total_for_currency(target or self._base_currency)

    async def aclose(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()


def create_app(
    repository: Optional[LedgerRepositoryInterface] = None,
    with_audit_storage: bool = True,
) -> LedgerApp:
    """
    Factory function to create a fully wired LedgerApp.

    Providers share one HTTP client; rates persist to the configured
    cache file. Without a repository the ledger lives in memory.
    """
    settings = get_settings()
    audit_logger = AuditLogger(InMemoryAuditStorage() if with_audit_storage else None)
    http_client = httpx.AsyncClient(
        timeout=httpx.Timeout(settings.rates.provider_timeout_seconds),
    )
    return LedgerApp(
        repository=repository,
        audit_logger=audit_logger,
        settings=settings,
        http_client=http_client,
    )
