"""
Ordered fallback over quote providers.

Each provider in the chain is asked only for the symbols still missing.
A value resolved earlier in the chain is never overwritten by a later
provider. A failing or hung provider is logged and skipped.
"""

import asyncio
from typing import Iterable, Mapping, Optional, Sequence

import structlog

from assetledger.services.providers.base import ProviderError, QuoteProvider

logger = structlog.get_logger(__name__)


class ProviderChain:
    """An asset class's providers, in the order they are tried."""

    def __init__(
        self,
        providers: Sequence[QuoteProvider],
        timeout: float,
        label: str = "",
    ):
        self._providers = list(providers)
        self._timeout = timeout
        self._label = label

    @property
    def providers(self) -> list[QuoteProvider]:
        return list(self._providers)

    async def call(
        self,
        provider: QuoteProvider,
        symbols: Sequence[str],
        base: str,
    ) -> Optional[dict[str, float]]:
        """Run one provider under the timeout; None on any provider failure."""
        try:
            return await asyncio.wait_for(provider.fetch(symbols, base), self._timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "provider_failed",
                provider=provider.name,
                asset_class=self._label,
                symbols=list(symbols),
                error="timeout",
            )
        except ProviderError as e:
            logger.warning(
                "provider_failed",
                provider=provider.name,
                asset_class=self._label,
                symbols=list(symbols),
                error=str(e),
            )
        return None

    async def resolve(
        self,
        symbols: Iterable[str],
        base: str,
        anchor_rates: Optional[Mapping[str, float]] = None,
    ) -> dict[str, float]:
        """
        Resolve as many symbols as the chain can.

        Args:
            symbols: Upper-case symbols to price
            base: Currency results must be expressed in
            anchor_rates: Rates of anchor currencies relative to `base`,
                          used to rebase providers with a fixed anchor.
                          An anchored provider whose anchor rate is unknown
                          is skipped.

        Returns:
            symbol -> value for every symbol some provider could price
        """
        remaining = sorted({s.upper() for s in symbols})
        resolved: dict[str, float] = {}
        anchor_rates = anchor_rates or {}

        for provider in self._providers:
            if not remaining:
                break

            factor = 1.0
            anchor = provider.anchor
            if anchor and anchor.upper() != base.upper():
                anchor_rate = anchor_rates.get(anchor.upper())
                if not anchor_rate or anchor_rate <= 0:
                    logger.info(
                        "provider_skipped",
                        provider=provider.name,
                        asset_class=self._label,
                        reason=f"no {anchor} rate to rebase with",
                    )
                    continue
                factor = anchor_rate

            quotes = await self.call(provider, remaining, base)
            if not quotes:
                continue

            for symbol in remaining:
                value = quotes.get(symbol)
                if value is not None and value > 0:
                    resolved[symbol] = value * factor
            remaining = [s for s in remaining if s not in resolved]

        return resolved
