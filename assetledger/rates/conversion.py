"""
Conversion Engine

Converts amounts between assets using the last published rate snapshot.

Fiat amounts pivot through the FX base. Crypto, metal and stock amounts
pivot through their USD price, then through the FX rate of USD.

A conversion that lacks a rate returns None - never zero, never an
exception - so totals can omit what they cannot price.
"""

from decimal import Decimal, InvalidOperation
from typing import Callable, Optional

from assetledger.models.ledger import AssetKind
from assetledger.models.rates import AssetClass, RateSnapshot

USD = "USD"

_PRICE_CLASS = {
    AssetKind.CRYPTO: AssetClass.CRYPTO,
    AssetKind.METAL: AssetClass.METAL,
    AssetKind.STOCK: AssetClass.STOCK,
}


def _to_decimal(value: float) -> Optional[Decimal]:
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


class ConversionEngine:
    """
    Read-only converter.

    `snapshot_source` is called once per conversion, so every conversion
    sees one consistent snapshot even while a refresh is publishing.
    """

    def __init__(self, snapshot_source: Callable[[], RateSnapshot]):
        self._snapshot_source = snapshot_source

    @classmethod
    def from_snapshot(cls, snapshot: RateSnapshot) -> "ConversionEngine":
        return cls(lambda: snapshot)

    def convert(
        self,
        amount: Decimal,
        from_code: str,
        kind: AssetKind,
        to_code: str,
        to_kind: AssetKind = AssetKind.FIAT,
    ) -> Optional[Decimal]:
        """
        Convert `amount` of `from_code` into `to_code`.

        Args:
            amount: Quantity in the source asset
            from_code: Source currency code or ticker
            kind: What the source asset is
            to_code: Target currency code or ticker
            to_kind: What the target asset is (fiat unless stated)

        Returns:
            The converted amount, or None if a needed rate is missing
        """
        snapshot = self._snapshot_source()
        from_code = from_code.strip().upper()
        to_code = to_code.strip().upper()

        if kind == to_kind and from_code == to_code:
            return amount

        if to_kind == AssetKind.FIAT:
            if kind == AssetKind.FIAT:
                return self._fiat_to_fiat(snapshot, amount, from_code, to_code)
            return self._asset_to_fiat(snapshot, amount, from_code, kind, to_code)

        # Non-fiat target: value the source in USD, then divide by the target's price
        target_price = self._usd_price(snapshot, to_code, to_kind)
        if target_price is None:
            return None
        usd_value = self.convert(amount, from_code, kind, USD)
        if usd_value is None:
            return None
        return usd_value / target_price

    def can_convert(self, from_code: str, kind: AssetKind, to_code: str) -> bool:
        return self.convert(Decimal("1"), from_code, kind, to_code) is not None

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _fx_rate(snapshot: RateSnapshot, code: str) -> Optional[Decimal]:
        if code == snapshot.fx_base:
            return Decimal("1")
        rate = snapshot.fx_rates.get(code)
        if rate is None or rate <= 0:
            return None
        return _to_decimal(rate)

    @staticmethod
    def _usd_price(snapshot: RateSnapshot, code: str, kind: AssetKind) -> Optional[Decimal]:
        asset_class = _PRICE_CLASS.get(kind)
        if asset_class is None:
            return None
        price = snapshot.table(asset_class).get(code)
        if price is None or price <= 0:
            return None
        return _to_decimal(price)

    def _fiat_to_fiat(
        self,
        snapshot: RateSnapshot,
        amount: Decimal,
        from_code: str,
        to_code: str,
    ) -> Optional[Decimal]:
        if from_code == to_code:
            return amount
        source_rate = self._fx_rate(snapshot, from_code)
        if source_rate is None:
            return None
        in_base = amount / source_rate
        return self._from_base(snapshot, in_base, to_code)

    def _from_base(
        self,
        snapshot: RateSnapshot,
        in_base: Decimal,
        to_code: str,
    ) -> Optional[Decimal]:
        if to_code == snapshot.fx_base:
            return in_base
        target_rate = self._fx_rate(snapshot, to_code)
        if target_rate is None:
            return None
        return in_base * target_rate

    def _asset_to_fiat(
        self,
        snapshot: RateSnapshot,
        amount: Decimal,
        code: str,
        kind: AssetKind,
        to_code: str,
    ) -> Optional[Decimal]:
        asset_class = _PRICE_CLASS.get(kind)
        if asset_class is None:
            return None
        price = snapshot.table(asset_class).get(code)
        if price is None or price <= 0:
            return None

        usd = _to_decimal(float(amount) * price)
        if usd is None:
            return None
        if to_code == USD:
            return usd

        usd_rate = self._fx_rate(snapshot, USD)
        if usd_rate is None:
            return None
        return self._from_base(snapshot, usd / usd_rate, to_code)
