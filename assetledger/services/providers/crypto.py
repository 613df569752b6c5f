"""
Crypto spot provider.

Prices come from the Binance public market data API as a ticker pair
against a USD stable coin (USDT by default), read as a USD price.
"""

from typing import Optional, Sequence

import httpx

from assetledger.config import ProviderSettings, RateSettings
from assetledger.services.providers.base import (
    HTTPQuoteProvider,
    ProviderResponseError,
    positive_float,
)


class BinanceProvider(HTTPQuoteProvider):
    """One ticker request per symbol, e.g. BTC -> BTCUSDT."""

    name = "binance"

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        settings: Optional[ProviderSettings] = None,
        rate_settings: Optional[RateSettings] = None,
        quote: Optional[str] = None,
    ):
        super().__init__(client, settings, rate_settings)
        self._quote = (quote or self._rate_settings.crypto_quote_asset).upper()

    async def ticker_price(self, symbol: str, quote: Optional[str] = None) -> float:
        pair = f"{symbol.upper()}{(quote or self._quote).upper()}"
        payload = await self._get_json(self._settings.binance_url, {"symbol": pair})
        price = positive_float(payload.get("price")) if isinstance(payload, dict) else None
        if price is None:
            raise ProviderResponseError(self.name, f"no usable price for {pair}")
        return price

    async def fetch(self, symbols: Sequence[str], base: str) -> dict[str, float]:
        return await self._fetch_each(symbols, self.ticker_price)
