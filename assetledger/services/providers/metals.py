"""
Precious metal providers.

Metals are known under two names ("GOLD" and "XAU", "SILVER" and "XAG",
...). Requests always use the ISO-style code; the aggregator writes the
price under every alias so either one converts.
"""

from typing import Any, Sequence

from assetledger.services.providers.base import (
    HTTPQuoteProvider,
    ProviderResponseError,
    positive_float,
    rates_table,
)


METAL_ALIASES: dict[str, str] = {
    "GOLD": "XAU",
    "SILVER": "XAG",
    "PLATINUM": "XPT",
    "PALLADIUM": "XPD",
}


def canonical_metal(code: str) -> str:
    """Map a metal name or code to its ISO-style code."""
    code = code.strip().upper()
    return METAL_ALIASES.get(code, code)


def metal_aliases(code: str) -> list[str]:
    """Every code the same metal is known by, canonical first."""
    canonical = canonical_metal(code)
    names = [name for name, iso in METAL_ALIASES.items() if iso == canonical]
    return [canonical] + names


class MetalsLiveProvider(HTTPQuoteProvider):
    """
    Primary metals source: USD spot prices.

    The endpoint answers either as pairs ``[["gold", 2031.5], ...]`` or as
    single-key objects ``[{"gold": 2031.5}, ...]``; both are accepted.
    """

    name = "metals_live"

    @staticmethod
    def _entries(payload: Any):
        if not isinstance(payload, list):
            raise ProviderResponseError(MetalsLiveProvider.name, "expected a JSON array")
        for entry in payload:
            if isinstance(entry, (list, tuple)) and len(entry) >= 2:
                yield entry[0], entry[1]
            elif isinstance(entry, dict):
                yield from entry.items()

    async def fetch(self, symbols: Sequence[str], base: str) -> dict[str, float]:
        payload = await self._get_json(self._settings.metals_live_url)
        wanted = {canonical_metal(s) for s in symbols}
        spot: dict[str, float] = {}
        for raw_name, raw_value in self._entries(payload):
            if not isinstance(raw_name, str):
                continue
            price = positive_float(raw_value)
            if price is None:
                continue
            code = canonical_metal(raw_name)
            if wanted and code not in wanted:
                continue
            spot[code] = price
        return spot


class ExchangerateHostMetalsProvider(HTTPQuoteProvider):
    """
    Fallback metals source built on a USD-based FX table.

    The table quotes ounces per USD, so prices are the reciprocal.
    """

    name = "exchangerate_host_metals"

    async def fetch(self, symbols: Sequence[str], base: str) -> dict[str, float]:
        codes = sorted({canonical_metal(s) for s in symbols})
        params = {"base": "USD", "symbols": ",".join(codes)}
        payload = await self._get_json(self._settings.exchangerate_host_url, params)
        if isinstance(payload, dict) and payload.get("success") is False:
            raise ProviderResponseError(self.name, "request rejected")
        prices: dict[str, float] = {}
        for code, raw in rates_table(self.name, payload).items():
            key = canonical_metal(str(code))
            per_usd = positive_float(raw)
            if per_usd is None or (codes and key not in codes):
                continue
            prices[key] = 1.0 / per_usd
        return prices
