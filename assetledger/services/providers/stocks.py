"""
Equity quote providers, in fallback order.

1. AlphaVantageProvider - intraday global quote (API key required)
2. FinnhubProvider - intraday quote (API token required)
3. StooqDailyCloseProvider - last daily close, used as a last resort
"""

from typing import Sequence

from assetledger.services.providers.base import (
    HTTPQuoteProvider,
    MissingAPIKeyError,
    ProviderResponseError,
    positive_float,
)


class AlphaVantageProvider(HTTPQuoteProvider):
    name = "alpha_vantage"

    def _api_key(self) -> str:
        key = self._settings.alpha_vantage_api_key
        if not key:
            raise MissingAPIKeyError(self.name, "PROVIDER_ALPHA_VANTAGE_API_KEY is not set")
        return key

    async def global_quote_price(self, symbol: str) -> float:
        params = {
            "function": "GLOBAL_QUOTE",
            "symbol": symbol,
            "apikey": self._api_key(),
        }
        payload = await self._get_json(self._settings.alpha_vantage_url, params)
        if not isinstance(payload, dict):
            raise ProviderResponseError(self.name, "expected a JSON object")
        # Throttled responses carry a "Note" or "Information" message instead
        if "Note" in payload or "Information" in payload:
            raise ProviderResponseError(self.name, "rate limited")
        quote = payload.get("Global Quote") or {}
        price = positive_float(quote.get("05. price")) if isinstance(quote, dict) else None
        if price is None:
            raise ProviderResponseError(self.name, f"no usable price for {symbol}")
        return price

    async def fetch(self, symbols: Sequence[str], base: str) -> dict[str, float]:
        self._api_key()
        return await self._fetch_each(symbols, self.global_quote_price)


class FinnhubProvider(HTTPQuoteProvider):
    name = "finnhub"

    def _token(self) -> str:
        token = self._settings.finnhub_api_key
        if not token:
            raise MissingAPIKeyError(self.name, "PROVIDER_FINNHUB_API_KEY is not set")
        return token

    async def quote_price(self, symbol: str) -> float:
        payload = await self._get_json(
            self._settings.finnhub_url,
            {"symbol": symbol, "token": self._token()},
        )
        # Unknown symbols come back as all-zero quotes
        price = positive_float(payload.get("c")) if isinstance(payload, dict) else None
        if price is None:
            raise ProviderResponseError(self.name, f"no usable price for {symbol}")
        return price

    async def fetch(self, symbols: Sequence[str], base: str) -> dict[str, float]:
        self._token()
        return await self._fetch_each(symbols, self.quote_price)


class StooqDailyCloseProvider(HTTPQuoteProvider):
    """Previous session close for US listings; no credentials needed."""

    name = "stooq"

    async def daily_close(self, symbol: str) -> float:
        params = {
            "s": f"{symbol.lower()}.us",
            "f": "sd2t2ohlcv",
            "h": "",
            "e": "json",
        }
        payload = await self._get_json(self._settings.stooq_url, params)
        rows = payload.get("symbols") if isinstance(payload, dict) else None
        if not rows or not isinstance(rows, list) or not isinstance(rows[0], dict):
            raise ProviderResponseError(self.name, f"no daily data for {symbol}")
        # Missing data is reported as the string "N/D"
        price = positive_float(rows[0].get("close"))
        if price is None:
            raise ProviderResponseError(self.name, f"no usable close for {symbol}")
        return price

    async def fetch(self, symbols: Sequence[str], base: str) -> dict[str, float]:
        return await self._fetch_each(symbols, self.daily_close)
