"""
Rate Models

A RateSnapshot is the complete, last-known state of every rate and
price the ledger can convert with.

DESIGN DECISION: Snapshots are frozen. A refresh never edits a table
in place; it builds a new snapshot and publishes it, so a reader always
sees a whole table from before or after a refresh.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from assetledger.models.ledger import ensure_aware


class AssetClass(str, Enum):
    """Rate tables refreshed independently, each with its own TTL."""
    FX = "fx"
    CRYPTO = "crypto"
    METAL = "metal"
    STOCK = "stock"


_TABLE_FIELDS = {
    AssetClass.FX: ("fx_rates", "last_fx_update"),
    AssetClass.CRYPTO: ("crypto_usd_prices", "last_crypto_update"),
    AssetClass.METAL: ("metal_usd_prices", "last_metal_update"),
    AssetClass.STOCK: ("stock_usd_prices", "last_stock_update"),
}


class RateSnapshot(BaseModel):
    """
    Last-known rates.

    fx_rates: code -> units of that currency per one unit of fx_base.
    *_usd_prices: symbol -> USD price of one unit.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    fx_base: str = Field(default="EUR", alias="fxBase")
    fx_rates: dict[str, float] = Field(default_factory=dict, alias="fxRates")
    crypto_usd_prices: dict[str, float] = Field(default_factory=dict, alias="cryptoUSDPrices")
    metal_usd_prices: dict[str, float] = Field(default_factory=dict, alias="metalUSDPrices")
    stock_usd_prices: dict[str, float] = Field(default_factory=dict, alias="stockUSDPrices")

    last_fx_update: Optional[datetime] = Field(default=None, alias="lastFXUpdate")
    last_crypto_update: Optional[datetime] = Field(default=None, alias="lastCryptoUpdate")
    last_metal_update: Optional[datetime] = Field(default=None, alias="lastMetalUpdate")
    last_stock_update: Optional[datetime] = Field(default=None, alias="lastStockUpdate")

    @field_validator(
        'fx_rates', 'crypto_usd_prices', 'metal_usd_prices', 'stock_usd_prices',
    )
    @classmethod
    def upper_codes(cls, v: dict[str, float]) -> dict[str, float]:
        return {str(code).upper(): float(rate) for code, rate in v.items()}

    @field_validator(
        'last_fx_update', 'last_crypto_update', 'last_metal_update', 'last_stock_update',
    )
    @classmethod
    def assume_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_aware(v) if v is not None else None

    @field_validator('fx_base')
    @classmethod
    def upper_base(cls, v: str) -> str:
        return v.strip().upper()

    def table(self, asset_class: AssetClass) -> dict[str, float]:
        return getattr(self, _TABLE_FIELDS[asset_class][0])

    def last_update(self, asset_class: AssetClass) -> Optional[datetime]:
        return getattr(self, _TABLE_FIELDS[asset_class][1])

    def with_table(
        self,
        asset_class: AssetClass,
        table: Mapping[str, float],
        updated_at: datetime,
        **extra: Any,
    ) -> "RateSnapshot":
        """Return a new snapshot with one class table replaced wholesale."""
        field, stamp = _TABLE_FIELDS[asset_class]
        data = self.model_dump()
        data[field] = dict(table)
        data[stamp] = updated_at
        data.update(extra)
        return RateSnapshot.model_validate(data)

    def to_cache_dict(self) -> dict[str, Any]:
        """Serialize with the persisted cache's key names."""
        return self.model_dump(mode="json", by_alias=True)
