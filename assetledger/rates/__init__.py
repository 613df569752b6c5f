"""Rate aggregation and conversion."""

from assetledger.rates.aggregator import ProviderSet, RateAggregator
from assetledger.rates.conversion import ConversionEngine

__all__ = [
    "ConversionEngine",
    "ProviderSet",
    "RateAggregator",
]
