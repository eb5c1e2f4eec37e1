"""Bundled extension strategies for composite assets."""

from decimal import Decimal
from typing import Any

from cellar.core.exceptions import PriceOutOfBoundsError, UnsupportedAssetError, ValidationError
from cellar.core.fixed_point import ZERO, arithmetic_guard
from cellar.providers.price_inputs import RateSource, StablePool
from cellar.services.price_cache import PriceCache
from cellar.services.price_router import PriceRouter


def _decimal_setting(config: dict[str, Any], key: str) -> Decimal:
    if key not in config:
        raise ValidationError(f"Missing extension setting: {key}")
    try:
        value = Decimal(str(config[key]))
    except ArithmeticError:
        raise ValidationError(f"Invalid extension setting {key}: {config[key]}") from None
    if not value.is_finite() or value < ZERO:
        raise ValidationError(f"Invalid extension setting {key}: {config[key]}")
    return value


class WrappedAssetExtension:
    """
    Prices a wrapped/yield-bearing token as exchange_rate * underlying price.

    Config: underlying, min_rate, max_rate. A rate outside the bounds is
    rejected the same way an out-of-bounds feed answer is.
    """

    def __init__(self, router: PriceRouter):
        self._router = router

    def setup(self, asset: str, config: dict[str, Any]) -> dict[str, Any]:
        underlying = config.get("underlying")
        if not underlying:
            raise ValidationError("Missing extension setting: underlying")
        if underlying == asset:
            raise ValidationError(f"{asset} cannot wrap itself")
        if not self._router.is_supported(underlying):
            raise UnsupportedAssetError(underlying)

        min_rate = _decimal_setting(config, "min_rate")
        max_rate = _decimal_setting(config, "max_rate")
        if min_rate >= max_rate:
            raise ValidationError(f"Rate bounds for {asset} are inverted")

        return {"underlying": underlying, "min_rate": str(min_rate), "max_rate": str(max_rate)}

    def price_in_usd(self, asset: str, cache: PriceCache) -> Decimal:
        entry = self._router.source_for(asset)
        storage = entry.extension.storage
        min_rate = Decimal(storage["min_rate"])
        max_rate = Decimal(storage["max_rate"])

        source: RateSource = self._router.resolve_source(entry.source_reference)
        rate = source.exchange_rate()
        if rate < min_rate or rate > max_rate:
            raise PriceOutOfBoundsError(asset, rate, min_rate, max_rate)

        underlying_price = self._router.price_in_usd(storage["underlying"], cache)
        with arithmetic_guard():
            return rate * underlying_price


class StablePoolExtension:
    """
    Prices a stable-pool LP token as virtual_price * cheapest constituent.

    Taking the minimum constituent price keeps a depegged coin from
    inflating the LP value. Config: min_virtual_price, max_virtual_price.
    """

    def __init__(self, router: PriceRouter):
        self._router = router

    def setup(self, asset: str, config: dict[str, Any]) -> dict[str, Any]:
        entry = self._router.source_for(asset)
        pool: StablePool = self._router.resolve_source(entry.source_reference)
        coins = pool.coins()
        if not coins:
            raise ValidationError(f"Pool for {asset} has no coins")
        for coin in coins:
            if not self._router.is_supported(coin):
                raise UnsupportedAssetError(coin)

        min_vp = _decimal_setting(config, "min_virtual_price")
        max_vp = _decimal_setting(config, "max_virtual_price")
        if min_vp >= max_vp:
            raise ValidationError(f"Virtual price bounds for {asset} are inverted")

        return {"min_virtual_price": str(min_vp), "max_virtual_price": str(max_vp)}

    def price_in_usd(self, asset: str, cache: PriceCache) -> Decimal:
        entry = self._router.source_for(asset)
        storage = entry.extension.storage
        min_vp = Decimal(storage["min_virtual_price"])
        max_vp = Decimal(storage["max_virtual_price"])

        pool: StablePool = self._router.resolve_source(entry.source_reference)
        virtual_price = pool.virtual_price()
        if virtual_price < min_vp or virtual_price > max_vp:
            raise PriceOutOfBoundsError(asset, virtual_price, min_vp, max_vp)

        lowest = min(self._router.price_in_usd(coin, cache) for coin in pool.coins())
        with arithmetic_guard():
            return virtual_price * lowest
