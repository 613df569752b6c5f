"""
Rate Aggregator

Owns the rate snapshot: decides when each asset class is due for a
refresh, fans provider calls out concurrently, funnels the results back
through a single write path, and persists every successful merge.

DESIGN DECISION: The aggregator is the only writer of rates.
- Every class table is published whole, as a new frozen snapshot
- A refresh that started before the last applied refresh of the same
  class is dropped when it lands, so late results never clobber newer ones
- Provider failures are logged and leave the previous values in place

refresh_all_rates() never raises.
"""

import asyncio
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional, Sequence

import httpx
import structlog

from assetledger.audit import AuditLogger
from assetledger.config import ProviderSettings, RateSettings, get_settings
from assetledger.models.audit import AuditEventBuilder
from assetledger.models.ledger import AssetKind, Wallet
from assetledger.models.rates import AssetClass, RateSnapshot
from assetledger.services.providers import (
    AlphaVantageProvider,
    BinanceProvider,
    ErApiProvider,
    ExchangerateHostMetalsProvider,
    ExchangerateHostProvider,
    FinnhubProvider,
    FrankfurterProvider,
    MetalsLiveProvider,
    ProviderChain,
    QuoteProvider,
    StooqDailyCloseProvider,
    canonical_metal,
    metal_aliases,
)
from assetledger.services.storage import (
    JSONFileRateCache,
    RateCacheInterface,
    StorageError,
)

logger = structlog.get_logger(__name__)

USD = "USD"

_KIND_TO_CLASS = {
    AssetKind.CRYPTO: AssetClass.CRYPTO,
    AssetKind.METAL: AssetClass.METAL,
    AssetKind.STOCK: AssetClass.STOCK,
}


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ProviderSet:
    """
    Providers for every asset class, each list in fallback order.

    fx_primary: returns the whole table for a base
    fx_fallbacks: tried per missing mandatory code, in order
    """

    def __init__(
        self,
        fx_primary: QuoteProvider,
        fx_fallbacks: Sequence[QuoteProvider],
        crypto: Sequence[QuoteProvider],
        metal: Sequence[QuoteProvider],
        stock: Sequence[QuoteProvider],
    ):
        self.fx_primary = fx_primary
        self.fx_fallbacks = list(fx_fallbacks)
        self.crypto = list(crypto)
        self.metal = list(metal)
        self.stock = list(stock)

    @classmethod
    def default(
        cls,
        client: Optional[httpx.AsyncClient] = None,
        settings: Optional[ProviderSettings] = None,
        rate_settings: Optional[RateSettings] = None,
    ) -> "ProviderSet":
        args = (client, settings, rate_settings)
        return cls(
            fx_primary=FrankfurterProvider(*args),
            fx_fallbacks=[ExchangerateHostProvider(*args), ErApiProvider(*args)],
            crypto=[BinanceProvider(*args)],
            metal=[MetalsLiveProvider(*args), ExchangerateHostMetalsProvider(*args)],
            stock=[
                AlphaVantageProvider(*args),
                FinnhubProvider(*args),
                StooqDailyCloseProvider(*args),
            ],
        )


class RateAggregator:
    """
    Fetches, caches and serves the rate snapshot.

    Consumers read `snapshot` (or the convenience accessors); only
    refresh_all_rates() and its per-class helpers write.
    """

    def __init__(
        self,
        cache: Optional[RateCacheInterface] = None,
        providers: Optional[ProviderSet] = None,
        settings: Optional[RateSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
        clock: Optional[Callable[[], datetime]] = None,
        default_base: Optional[str] = None,
    ):
        """
        Initialize the aggregator and load the persisted snapshot.

        Args:
            cache: Where snapshots persist. Defaults to the JSON file at
                   RATES_CACHE_PATH.
            providers: Price sources. Defaults to the public endpoints.
            settings: TTL / timeout policy
            audit_logger: Receives refresh outcomes, if given
            clock: Returns the current aware UTC time
            default_base: FX base to report before the first refresh
        """
        self._settings = settings or get_settings().rates
        self._cache = cache or JSONFileRateCache(self._settings.cache_path)
        self._providers = providers or ProviderSet.default(rate_settings=self._settings)
        self._audit = audit_logger
        self._clock = clock or _utc_now

        timeout = self._settings.provider_timeout_seconds
        self._fx_primary_chain = ProviderChain([self._providers.fx_primary], timeout, AssetClass.FX.value)
        self._fx_fallback_chain = ProviderChain(self._providers.fx_fallbacks, timeout, AssetClass.FX.value)
        self._chains = {
            AssetClass.CRYPTO: ProviderChain(self._providers.crypto, timeout, AssetClass.CRYPTO.value),
            AssetClass.METAL: ProviderChain(self._providers.metal, timeout, AssetClass.METAL.value),
            AssetClass.STOCK: ProviderChain(self._providers.stock, timeout, AssetClass.STOCK.value),
        }
        self._applied_started: dict[AssetClass, datetime] = {}

        cached = self._cache.load()
        if cached is not None:
            self._snapshot = cached
        else:
            base = default_base or get_settings().app.base_currency
            self._snapshot = RateSnapshot(fx_base=base)

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def snapshot(self) -> RateSnapshot:
        """The current published snapshot. Never partially updated."""
        return self._snapshot

    @property
    def fx_base(self) -> str:
        return self._snapshot.fx_base

    @property
    def fx_rates(self) -> dict[str, float]:
        return dict(self._snapshot.fx_rates)

    def last_update(self, asset_class: AssetClass) -> Optional[datetime]:
        """When a class was last refreshed, for "stale as of" display."""
        return self._snapshot.last_update(asset_class)

    def ttl_seconds(self, asset_class: AssetClass) -> int:
        return {
            AssetClass.FX: self._settings.fx_ttl_seconds,
            AssetClass.CRYPTO: self._settings.crypto_ttl_seconds,
            AssetClass.METAL: self._settings.metal_ttl_seconds,
            AssetClass.STOCK: self._settings.stock_ttl_seconds,
        }[asset_class]

    def is_refresh_due(
        self,
        asset_class: AssetClass,
        base: Optional[str] = None,
        force: bool = False,
    ) -> bool:
        if force:
            return True
        snapshot = self._snapshot
        if asset_class == AssetClass.FX and base and base.upper() != snapshot.fx_base:
            return True
        last = snapshot.last_update(asset_class)
        if last is None:
            return True
        age = (self._clock() - last).total_seconds()
        return age > self.ttl_seconds(asset_class)

    @staticmethod
    def held_symbols(wallets: Iterable[Wallet]) -> dict[AssetClass, list[str]]:
        """Distinct non-fiat symbols actually held, per class."""
        held: dict[AssetClass, set[str]] = {cls: set() for cls in _KIND_TO_CLASS.values()}
        for wallet in wallets:
            asset_class = _KIND_TO_CLASS.get(wallet.kind)
            if asset_class is None:
                continue
            code = wallet.asset_code.strip().upper()
            if not code:
                continue
            if asset_class == AssetClass.METAL:
                code = canonical_metal(code)
            held[asset_class].add(code)
        return {cls: sorted(codes) for cls, codes in held.items()}

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    async def refresh_all_rates(
        self,
        base: str,
        wallets: Iterable[Wallet],
        force: bool = False,
    ) -> None:
        """
        Refresh every class that is due, concurrently.

        Classes with no held symbols are never fetched. Failures leave the
        previous values in place; this method does not raise.
        """
        base = base.strip().upper()
        held = self.held_symbols(wallets)

        jobs = []
        if self.is_refresh_due(AssetClass.FX, base=base, force=force):
            jobs.append(("fx", self.refresh_fx(base)))
        for asset_class, symbols in held.items():
            if symbols and self.is_refresh_due(asset_class, force=force):
                jobs.append((asset_class.value, self.refresh_asset_class(asset_class, symbols)))

        if not jobs:
            logger.debug("rates_fresh", base=base)
            return

        outcomes = await asyncio.gather(*(job for _, job in jobs), return_exceptions=True)
        for (label, _), outcome in zip(jobs, outcomes):
            if isinstance(outcome, Exception):
                logger.error(
                    "rate_refresh_crashed",
                    asset_class=label,
                    error=str(outcome),
                    exc_info=outcome,
                )

    async def refresh_fx(self, base: str) -> bool:
        """
        Refresh the FX table for `base`.

        Mandatory fallback codes missing from the primary answer are tried
        on the secondary source, then on the USD-anchored source rebased
        through the fresh USD rate. Codes no source could price stay absent.

        Returns True if a new table was applied.
        """
        base = base.strip().upper()
        started = self._clock()

        primary = await self._fx_primary_chain.call(self._providers.fx_primary, [], base)
        if not primary:
            self._log_failure(AssetClass.FX, "primary FX provider failed")
            return False

        rates = {code.upper(): rate for code, rate in primary.items()}
        rates[base] = 1.0

        missing = [
            code for code in self._settings.fx_fallback_codes_list
            if code not in rates
        ]
        if missing:
            anchor_rates = {USD: rates[USD]} if USD in rates else {}
            found = await self._fx_fallback_chain.resolve(missing, base, anchor_rates)
            rates.update(found)
            unresolved = [code for code in missing if code not in found]
            if unresolved:
                logger.warning("fx_codes_unresolved", base=base, codes=unresolved)

        return self._apply(AssetClass.FX, started, rates, fx_base=base)

    async def refresh_asset_class(
        self,
        asset_class: AssetClass,
        symbols: Sequence[str],
    ) -> bool:
        """
        Refresh USD prices for crypto, metal or stock symbols.

        Crypto and stock symbols resolve independently and concurrently;
        metals resolve as one batch so a fallback only fills gaps.

        Returns True if a new table was applied.
        """
        if asset_class == AssetClass.FX:
            raise ValueError("use refresh_fx for FX rates")
        started = self._clock()
        chain = self._chains[asset_class]

        if asset_class == AssetClass.METAL:
            found = await chain.resolve(symbols, USD)
            for code, price in list(found.items()):
                for alias in metal_aliases(code):
                    found[alias] = price
        else:
            per_symbol = await asyncio.gather(
                *(chain.resolve([symbol], USD) for symbol in symbols),
                return_exceptions=True,
            )
            found = {}
            for symbol, outcome in zip(symbols, per_symbol):
                if isinstance(outcome, Exception):
                    logger.error(
                        "symbol_refresh_crashed",
                        asset_class=asset_class.value,
                        symbol=symbol,
                        error=str(outcome),
                        exc_info=outcome,
                    )
                elif isinstance(outcome, BaseException):
                    raise outcome
                else:
                    found.update(outcome)

        if not found:
            self._log_failure(asset_class, f"no prices for {', '.join(symbols)}")
            return False

        table = dict(self._snapshot.table(asset_class))
        table.update(found)
        return self._apply(asset_class, started, table)

    # ------------------------------------------------------------------
    # Single write path
    # ------------------------------------------------------------------

    def _apply(
        self,
        asset_class: AssetClass,
        started: datetime,
        table: dict[str, float],
        **extra,
    ) -> bool:
        last_started = self._applied_started.get(asset_class)
        if last_started is not None and started < last_started:
            logger.info(
                "stale_refresh_dropped",
                asset_class=asset_class.value,
                started=started.isoformat(),
                applied=last_started.isoformat(),
            )
            return False

        self._applied_started[asset_class] = started
        self._snapshot = self._snapshot.with_table(asset_class, table, self._clock(), **extra)
        self._persist()

        logger.info(
            "rates_refreshed",
            asset_class=asset_class.value,
            count=len(table),
        )
        if self._audit:
            self._audit.log(AuditEventBuilder.rates_refreshed(asset_class.value, sorted(table)))
        return True

    def _persist(self) -> None:
        try:
            self._cache.save(self._snapshot)
        except StorageError as e:
            logger.error("rate_cache_write_failed", error=str(e))

    def _log_failure(self, asset_class: AssetClass, message: str) -> None:
        logger.warning("rate_refresh_failed", asset_class=asset_class.value, error=message)
        if self._audit:
            self._audit.log(AuditEventBuilder.rate_refresh_failed(asset_class.value, message))
