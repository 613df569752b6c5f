"""Rate provider package."""

from assetledger.services.providers.base import (
    HTTPQuoteProvider,
    MissingAPIKeyError,
    ProviderError,
    ProviderResponseError,
    ProviderTimeoutError,
    QuoteProvider,
    positive_float,
)
from assetledger.services.providers.chain import ProviderChain
from assetledger.services.providers.crypto import BinanceProvider
from assetledger.services.providers.fx import (
    ErApiProvider,
    ExchangerateHostProvider,
    FrankfurterProvider,
)
from assetledger.services.providers.metals import (
    METAL_ALIASES,
    ExchangerateHostMetalsProvider,
    MetalsLiveProvider,
    canonical_metal,
    metal_aliases,
)
from assetledger.services.providers.stocks import (
    AlphaVantageProvider,
    FinnhubProvider,
    StooqDailyCloseProvider,
)

__all__ = [
    # Base
    "HTTPQuoteProvider",
    "ProviderChain",
    "QuoteProvider",
    "positive_float",
    # Exceptions
    "MissingAPIKeyError",
    "ProviderError",
    "ProviderResponseError",
    "ProviderTimeoutError",
    # FX
    "ErApiProvider",
    "ExchangerateHostProvider",
    "FrankfurterProvider",
    # Crypto
    "BinanceProvider",
    # Metals
    "METAL_ALIASES",
    "ExchangerateHostMetalsProvider",
    "MetalsLiveProvider",
    "canonical_metal",
    "metal_aliases",
    # Stocks
    "AlphaVantageProvider",
    "FinnhubProvider",
    "StooqDailyCloseProvider",
]
