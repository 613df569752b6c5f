"""
Quote Provider Base

Every external price source implements one capability: given symbols
and a base, return positive numbers for the symbols it could price, or
fail. Fallback chains are ordered lists of these providers, so adding
or reordering a source is a data change.

IMPORTANT BOUNDARIES:
1. Providers only fetch and normalize - they never touch the rate cache
2. Every request has a network timeout
3. Non-positive or non-numeric values are treated as absent
"""

import asyncio
import math
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Mapping, Optional, Sequence

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from assetledger.config import ProviderSettings, RateSettings, get_settings

logger = structlog.get_logger(__name__)


class ProviderError(Exception):
    """Base exception for price source failures."""

    def __init__(self, provider: str, message: str):
        self.provider = provider
        super().__init__(f"[{provider}] {message}")


class ProviderTimeoutError(ProviderError):
    """Provider did not answer in time."""
    pass


class ProviderResponseError(ProviderError):
    """Non-2xx status or a payload we can't use."""
    pass


class MissingAPIKeyError(ProviderError):
    """Provider needs credentials that aren't configured."""
    pass


def positive_float(value: Any) -> Optional[float]:
    """Parse a provider number; None unless finite and > 0."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or number <= 0:
        return None
    return number


class QuoteProvider(ABC):
    """
    A single external price source.

    `anchor` is the currency a provider always quotes against, regardless
    of the requested base (None means it honours the requested base).
    """

    name: str = "provider"
    anchor: Optional[str] = None

    @abstractmethod
    async def fetch(self, symbols: Sequence[str], base: str) -> dict[str, float]:
        """
        Fetch quotes.

        Args:
            symbols: Upper-case symbols to price. Empty means "everything
                     the source offers" where that makes sense.
            base: Currency the quotes should be expressed in

        Returns:
            symbol -> positive rate or price, for the symbols it could price

        Raises:
            ProviderError: If the source failed entirely
        """
        pass

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


class HTTPQuoteProvider(QuoteProvider):
    """
    Quote provider backed by JSON-over-GET.

    An httpx.AsyncClient may be shared across providers; when none is
    given, each request opens its own short-lived client.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        settings: Optional[ProviderSettings] = None,
        rate_settings: Optional[RateSettings] = None,
    ):
        self._client = client
        self._settings = settings or get_settings().providers
        self._rate_settings = rate_settings or get_settings().rates

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self._rate_settings.retry_attempts),
            wait=wait_exponential(
                multiplier=1,
                min=self._rate_settings.retry_min_wait_seconds,
                max=self._rate_settings.retry_max_wait_seconds,
            ),
            # Timeouts are not retried; ProviderChain bounds the whole call
            retry=(
                retry_if_exception_type(httpx.TransportError)
                & retry_if_not_exception_type(httpx.TimeoutException)
            ),
            reraise=True,
        )

    async def _send(self, client: httpx.AsyncClient, url: str, params: Optional[dict]) -> httpx.Response:
        async for attempt in self._retrying():
            with attempt:
                return await client.get(url, params=params)
        raise ProviderError(self.name, "retry loop exited without a response")

    async def _get_json(self, url: str, params: Optional[dict] = None) -> Any:
        """
        GET a JSON document.

        Raises:
            ProviderTimeoutError: On network timeout
            ProviderResponseError: On non-2xx status or invalid JSON
            ProviderError: On other transport failures
        """
        timeout = httpx.Timeout(self._rate_settings.provider_timeout_seconds)
        try:
            if self._client is not None:
                response = await self._send(self._client, url, params)
            else:
                async with httpx.AsyncClient(timeout=timeout) as client:
                    response = await self._send(client, url, params)
            response.raise_for_status()
            return response.json()
        except httpx.TimeoutException as e:
            raise ProviderTimeoutError(self.name, f"timed out: {e}")
        except httpx.HTTPStatusError as e:
            raise ProviderResponseError(self.name, f"HTTP {e.response.status_code}")
        except httpx.TransportError as e:
            raise ProviderError(self.name, f"transport error: {e}")
        except ValueError as e:
            raise ProviderResponseError(self.name, f"invalid JSON: {e}")

    async def _fetch_each(
        self,
        symbols: Sequence[str],
        fetch_one: Callable[[str], Awaitable[float]],
    ) -> dict[str, float]:
        """
        Price symbols one request each, concurrently.

        Individual failures are dropped; the call fails only if every
        symbol failed.
        """
        if not symbols:
            return {}
        outcomes = await asyncio.gather(
            *(fetch_one(symbol) for symbol in symbols),
            return_exceptions=True,
        )
        quotes: dict[str, float] = {}
        errors: list[str] = []
        for symbol, outcome in zip(symbols, outcomes):
            if isinstance(outcome, ProviderError):
                errors.append(str(outcome))
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                quotes[symbol] = outcome
        if not quotes:
            raise ProviderError(self.name, "; ".join(errors) or "no quotes")
        return quotes


def rates_table(provider: str, payload: Any, key: str = "rates") -> Mapping[str, Any]:
    """Pull the rates mapping out of an FX style payload."""
    if not isinstance(payload, dict):
        raise ProviderResponseError(provider, "expected a JSON object")
    table = payload.get(key)
    if not isinstance(table, dict):
        raise ProviderResponseError(provider, f"missing '{key}' table")
    return table


def select_positive(
    table: Mapping[str, Any],
    symbols: Sequence[str],
) -> dict[str, float]:
    """Upper-case codes, drop unusable values, keep requested symbols only."""
    wanted = {s.upper() for s in symbols}
    result: dict[str, float] = {}
    for code, raw in table.items():
        key = str(code).upper()
        if wanted and key not in wanted:
            continue
        value = positive_float(raw)
        if value is not None:
            result[key] = value
    return result
