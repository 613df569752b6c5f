"""Services package."""

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
    ProviderError,
    QuoteProvider,
    StooqDailyCloseProvider,
)
from assetledger.services.storage import (
    AuditStorageInterface,
    InMemoryAuditStorage,
    InMemoryLedgerRepository,
    InMemoryRateCache,
    JSONFileRateCache,
    LedgerRepositoryInterface,
    NotFoundError,
    RateCacheInterface,
    StorageError,
)

__all__ = [
    # Rate providers
    "AlphaVantageProvider",
    "BinanceProvider",
    "ErApiProvider",
    "ExchangerateHostMetalsProvider",
    "ExchangerateHostProvider",
    "FinnhubProvider",
    "FrankfurterProvider",
    "MetalsLiveProvider",
    "ProviderChain",
    "ProviderError",
    "QuoteProvider",
    "StooqDailyCloseProvider",
    # Storage services
    "AuditStorageInterface",
    "InMemoryAuditStorage",
    "InMemoryLedgerRepository",
    "InMemoryRateCache",
    "JSONFileRateCache",
    "LedgerRepositoryInterface",
    "NotFoundError",
    "RateCacheInterface",
    "StorageError",
]
