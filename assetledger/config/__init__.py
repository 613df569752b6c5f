"""Configuration package."""

from assetledger.config.settings import (
    AppSettings,
    LedgerSettings,
    ProviderSettings,
    RateSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "LedgerSettings",
    "ProviderSettings",
    "RateSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
