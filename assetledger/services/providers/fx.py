"""
FX rate providers.

- FrankfurterProvider: primary table of ECB rates for any base
- ExchangerateHostProvider: secondary source, queried for specific symbols
- ErApiProvider: USD-anchored table, rebased by the aggregator
"""

from typing import Sequence

from assetledger.services.providers.base import (
    HTTPQuoteProvider,
    ProviderResponseError,
    rates_table,
    select_positive,
)


class FrankfurterProvider(HTTPQuoteProvider):
    """Primary FX source. An empty symbol list returns the whole table."""

    name = "frankfurter"

    async def fetch(self, symbols: Sequence[str], base: str) -> dict[str, float]:
        params = {"base": base.upper()}
        if symbols:
            params["symbols"] = ",".join(symbols)
        payload = await self._get_json(self._settings.frankfurter_url, params)
        return select_positive(rates_table(self.name, payload), symbols)


class ExchangerateHostProvider(HTTPQuoteProvider):
    """Secondary FX source, used per symbol for codes the primary lacks."""

    name = "exchangerate_host"

    async def fetch(self, symbols: Sequence[str], base: str) -> dict[str, float]:
        params = {"base": base.upper(), "symbols": ",".join(symbols)}
        payload = await self._get_json(self._settings.exchangerate_host_url, params)
        if isinstance(payload, dict) and payload.get("success") is False:
            error = payload.get("error")
            if isinstance(error, dict):
                error = error.get("info") or error.get("type")
            raise ProviderResponseError(self.name, f"request rejected: {error}")
        return select_positive(rates_table(self.name, payload), symbols)


class ErApiProvider(HTTPQuoteProvider):
    """Open ER-API table, always quoted per one USD."""

    name = "er_api"
    anchor = "USD"

    async def fetch(self, symbols: Sequence[str], base: str) -> dict[str, float]:
        payload = await self._get_json(self._settings.er_api_url)
        if isinstance(payload, dict) and payload.get("result") not in (None, "success"):
            raise ProviderResponseError(self.name, f"result={payload.get('result')}")
        return select_positive(rates_table(self.name, payload), symbols)
