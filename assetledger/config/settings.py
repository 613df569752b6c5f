"""
Configuration Management for the asset ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Every external price source, every TTL and every ledger limit can be
inspected in one place and is validated when first loaded.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RateSettings(BaseSettings):
    """Rate aggregation policy: TTLs, timeouts, retries and the disk cache."""

    model_config = SettingsConfigDict(
        env_prefix="RATES_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Per asset class TTLs
    fx_ttl_seconds: int = Field(
        default=60 * 60 * 12,
        ge=0,
        description="How long FX rates stay fresh"
    )
    crypto_ttl_seconds: int = Field(
        default=60 * 5,
        ge=0,
        description="How long crypto prices stay fresh"
    )
    metal_ttl_seconds: int = Field(
        default=60 * 60 * 12,
        ge=0,
        description="How long metal prices stay fresh"
    )
    stock_ttl_seconds: int = Field(
        default=60 * 60 * 12,
        ge=0,
        description="How long stock prices stay fresh"
    )

    # Network behaviour
    provider_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        le=120,
        description="Upper bound for a single provider call"
    )
    retry_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts per provider request on transport errors"
    )
    retry_min_wait_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Minimum backoff between retries"
    )
    retry_max_wait_seconds: float = Field(
        default=5.0,
        ge=0,
        description="Maximum backoff between retries"
    )

    crypto_quote_asset: str = Field(
        default="USDT",
        description="Quote asset used for crypto ticker pairs"
    )
    fx_fallback_codes: str = Field(
        default="UAH,RUB",
        description="Comma-separated FX codes resolved through fallback providers"
    )

    cache_path: str = Field(
        default=".cache/rates.json",
        description="Where the rate snapshot is persisted"
    )

    @field_validator('crypto_quote_asset')
    @classmethod
    def upper_quote(cls, v: str) -> str:
        return v.strip().upper()

    @property
    def fx_fallback_codes_list(self) -> list[str]:
        """Get fallback FX codes as a list."""
        return [
            code.strip().upper()
            for code in self.fx_fallback_codes.split(",")
            if code.strip()
        ]


class ProviderSettings(BaseSettings):
    """External price source endpoints and credentials."""

    model_config = SettingsConfigDict(
        env_prefix="PROVIDER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    frankfurter_url: str = Field(
        default="https://api.frankfurter.dev/v1/latest",
        description="Primary FX table endpoint"
    )
    exchangerate_host_url: str = Field(
        default="https://api.exchangerate.host/latest",
        description="Secondary FX / metals endpoint"
    )
    er_api_url: str = Field(
        default="https://open.er-api.com/v6/latest/USD",
        description="USD anchored FX endpoint"
    )
    binance_url: str = Field(
        default="https://data-api.binance.vision/api/v3/ticker/price",
        description="Crypto ticker endpoint"
    )
    metals_live_url: str = Field(
        default="https://api.metals.live/v1/spot",
        description="Metals spot endpoint"
    )
    alpha_vantage_url: str = Field(
        default="https://www.alphavantage.co/query",
        description="Primary equity quote endpoint"
    )
    finnhub_url: str = Field(
        default="https://finnhub.io/api/v1/quote",
        description="Secondary equity quote endpoint"
    )
    stooq_url: str = Field(
        default="https://stooq.com/q/l/",
        description="Daily close endpoint used as last resort for equities"
    )

    alpha_vantage_api_key: Optional[str] = Field(
        default=None,
        description="Alpha Vantage API key"
    )
    finnhub_api_key: Optional[str] = Field(
        default=None,
        description="Finnhub API token"
    )


class LedgerSettings(BaseSettings):
    """Ledger limits and defaults."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    max_recurring_generations_per_rule: int = Field(
        default=120,
        ge=1,
        le=10000,
        description="Catch-up cap for one rule in one firing pass"
    )
    recurring_note_prefix: str = Field(
        default="Recurring",
        description="Prefix for notes of generated transactions"
    )
    default_wallet_color: str = Field(
        default="FFFFFFFF"
    )
    default_category_color: str = Field(
        default="2F80EDFF"
    )


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    base_currency: str = Field(
        default="EUR",
        min_length=3,
        max_length=3,
        description="Currency used for totals and the FX table base"
    )

    @field_validator('base_currency')
    @classmethod
    def upper_base(cls, v: str) -> str:
        return v.strip().upper()


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Note: These are loaded lazily to allow partial configuration

    @property
    def rates(self) -> RateSettings:
        return RateSettings()

    @property
    def providers(self) -> ProviderSettings:
        return ProviderSettings()

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("rates", "providers", "ledger", "app"):
        try:
            _ = getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
