"""Price oracle router: one USD price interface over heterogeneous sources."""

import copy
import logging
from decimal import ROUND_DOWN, ROUND_UP, Decimal
from typing import Any, Optional, Protocol

from cellar.config.settings import Settings, get_settings
from cellar.core.clock import Clock, elapsed_seconds, now_utc
from cellar.core.exceptions import (
    NotFoundError,
    PriceOutOfBoundsError,
    PriceSanityCheckError,
    PriceSourceLoopError,
    StalePriceError,
    UnsupportedAssetError,
    ValidationError,
)
from cellar.core.fixed_point import ONE, ZERO, arithmetic_guard, checked_add, quantize
from cellar.domain.models import DerivativeKind, PriceSourceEntry
from cellar.providers.price_inputs import RateFeed, SourceResolver, TwapPool
from cellar.repositories.protocols import PriceSourceRepository
from cellar.services.price_cache import PriceCache

logger = logging.getLogger(__name__)

TICK_BASE = Decimal("1.0001")


class PriceExtension(Protocol):
    """Pluggable pricing strategy for composite or derived assets."""

    def setup(self, asset: str, config: dict[str, Any]) -> dict[str, Any]:
        """Validate config for asset and return the storage the strategy keeps for it."""
        ...

    def price_in_usd(self, asset: str, cache: PriceCache) -> Decimal:
        """Price asset, using the shared cache for any nested router lookups."""
        ...


class PriceRouter:
    """
    Resolves USD prices for configured assets.

    Every top-level call gets its own PriceCache; nested lookups (feeds
    denominated in another asset, pool quote assets, extension
    constituents) share it. Nesting deeper than the cache capacity is
    treated as a source loop.
    """

    def __init__(
        self,
        source_repo: PriceSourceRepository,
        resolver: SourceResolver,
        settings: Optional[Settings] = None,
        clock: Clock = now_utc,
    ):
        self._source_repo = source_repo
        self._resolver = resolver
        self._settings = settings or get_settings()
        self._clock = clock
        self._extensions: dict[str, PriceExtension] = {}
        # Entries under configuration, visible to lookups before they are persisted
        self._staged: dict[str, PriceSourceEntry] = {}

    # Configuration

    def register_extension(self, name: str, extension: PriceExtension) -> None:
        self._extensions[name] = extension

    def add_asset(
        self,
        entry: PriceSourceEntry,
        expected_price: Decimal,
        tolerance: Optional[Decimal] = None,
    ) -> PriceSourceEntry:
        """
        Create or replace the price source of an asset.

        The freshly computed price must land within expected_price * (1 +/- tolerance);
        nothing is persisted otherwise.

        Raises:
            ValidationError: settings missing or bounds looser than the feed allows
            PriceSanityCheckError: computed price outside the tolerance band
        """
        if expected_price <= ZERO:
            raise ValidationError("Expected price must be positive")
        if tolerance is None:
            tolerance = self._settings.price_sanity_tolerance

        entry = copy.deepcopy(entry)
        self._staged[entry.asset] = entry
        try:
            match entry.derivative_kind:
                case DerivativeKind.FIXED_RATE_FEED:
                    self._setup_feed(entry)
                case DerivativeKind.TIME_WEIGHTED_POOL:
                    self._setup_twap(entry)
                case DerivativeKind.EXTENSION:
                    self._setup_extension(entry)

            price = self.price_in_usd(entry.asset)
            with arithmetic_guard():
                lower = expected_price * (ONE - tolerance)
                upper = expected_price * (ONE + tolerance)
            if price < lower or price > upper:
                raise PriceSanityCheckError(entry.asset, price, expected_price)

            saved = self._source_repo.upsert(entry)
        finally:
            del self._staged[entry.asset]

        logger.info(f"Price source for {entry.asset} set to {entry.derivative_kind.value} ({price} USD)")
        return saved

    def _setup_feed(self, entry: PriceSourceEntry) -> None:
        if entry.feed is None:
            raise ValidationError(f"Feed settings required for {entry.asset}")
        feed: RateFeed = self.resolve_source(entry.source_reference)
        margin = self._settings.feed_bounds_margin
        with arithmetic_guard():
            derived_min = feed.min_answer() * (ONE + margin)
            derived_max = feed.max_answer() * (ONE - margin)

        settings = entry.feed
        if settings.min_price == ZERO:
            settings.min_price = derived_min
        elif settings.min_price < derived_min:
            raise ValidationError(
                f"Min price {settings.min_price} for {entry.asset} is below the feed's safe minimum {derived_min}"
            )
        if settings.max_price == ZERO:
            settings.max_price = derived_max
        elif settings.max_price > derived_max:
            raise ValidationError(
                f"Max price {settings.max_price} for {entry.asset} is above the feed's safe maximum {derived_max}"
            )
        if settings.min_price > settings.max_price:
            raise ValidationError(f"Price bounds for {entry.asset} are inverted")
        if settings.max_staleness == 0:
            settings.max_staleness = self._settings.default_max_staleness_seconds
        if settings.denomination_asset and not self.is_supported(settings.denomination_asset):
            raise UnsupportedAssetError(settings.denomination_asset)

    def _setup_twap(self, entry: PriceSourceEntry) -> None:
        if entry.twap is None:
            raise ValidationError(f"Pool settings required for {entry.asset}")
        if entry.twap.window_seconds <= 0:
            raise ValidationError("TWAP window must be positive")
        pool: TwapPool = self.resolve_source(entry.source_reference)
        if {pool.token0(), pool.token1()} != {entry.asset, entry.twap.quote_asset}:
            raise ValidationError(
                f"Pool {entry.source_reference} does not pair {entry.asset} with {entry.twap.quote_asset}"
            )
        if not self.is_supported(entry.twap.quote_asset):
            raise UnsupportedAssetError(entry.twap.quote_asset)

    def _setup_extension(self, entry: PriceSourceEntry) -> None:
        if entry.extension is None:
            raise ValidationError(f"Extension settings required for {entry.asset}")
        extension = self._get_extension(entry.extension.extension_name)
        entry.extension.storage = extension.setup(entry.asset, entry.extension.storage)

    # Lookups

    def source_for(self, asset: str) -> PriceSourceEntry:
        """Price source of an asset, including one currently being configured."""
        entry = self._staged.get(asset) or self._source_repo.get(asset)
        if entry is None:
            raise UnsupportedAssetError(asset)
        return entry

    def resolve_source(self, reference: str) -> Any:
        return self._resolver.resolve(reference)

    def is_supported(self, asset: str) -> bool:
        return asset in self._staged or self._source_repo.get(asset) is not None

    def list_sources(self) -> list[PriceSourceEntry]:
        return self._source_repo.list_all()

    def new_cache(self) -> PriceCache:
        return PriceCache(
            capacity=self._settings.price_cache_capacity,
            max_bits=self._settings.price_cache_max_bits,
        )

    def price_in_usd(self, asset: str, cache: Optional[PriceCache] = None) -> Decimal:
        """USD price of asset; a cache hit never reaches the underlying source."""
        if cache is None:
            cache = self.new_cache()

        cached = cache.get(asset)
        if cached is not None:
            return cached

        entry = self.source_for(asset)
        cache.depth += 1
        try:
            if cache.depth > cache.capacity:
                raise PriceSourceLoopError(asset, cache.depth)
            price = self._compute(entry, cache)
        finally:
            cache.depth -= 1

        cache.put(asset, price)
        return price

    def _compute(self, entry: PriceSourceEntry, cache: PriceCache) -> Decimal:
        match entry.derivative_kind:
            case DerivativeKind.FIXED_RATE_FEED:
                return self._price_from_feed(entry, cache)
            case DerivativeKind.TIME_WEIGHTED_POOL:
                return self._price_from_twap(entry, cache)
            case DerivativeKind.EXTENSION:
                extension = self._get_extension(entry.extension.extension_name)
                return extension.price_in_usd(entry.asset, cache)

    def _price_from_feed(self, entry: PriceSourceEntry, cache: PriceCache) -> Decimal:
        settings = entry.feed
        feed: RateFeed = self.resolve_source(entry.source_reference)
        latest = feed.latest_round()

        if latest.answer < settings.min_price or latest.answer > settings.max_price:
            raise PriceOutOfBoundsError(entry.asset, latest.answer, settings.min_price, settings.max_price)
        age = elapsed_seconds(latest.updated_at, self._clock())
        if age > settings.max_staleness:
            raise StalePriceError(entry.asset, age, settings.max_staleness)

        if settings.denomination_asset:
            reference_price = self.price_in_usd(settings.denomination_asset, cache)
            with arithmetic_guard():
                return latest.answer * reference_price
        return latest.answer

    def _price_from_twap(self, entry: PriceSourceEntry, cache: PriceCache) -> Decimal:
        settings = entry.twap
        pool: TwapPool = self.resolve_source(entry.source_reference)
        tick = pool.consult(settings.window_seconds)
        quote_decimals = self.source_for(settings.quote_asset).decimals

        with arithmetic_guard():
            if pool.token0() == entry.asset:
                # token0 priced in token1: 1.0001^tick raw, rescaled to whole units
                quote_per_base = (TICK_BASE ** tick).scaleb(entry.decimals - quote_decimals)
            else:
                quote_per_base = (TICK_BASE ** -tick).scaleb(entry.decimals - quote_decimals)

        quote_price = self.price_in_usd(settings.quote_asset, cache)
        with arithmetic_guard():
            return quote_per_base * quote_price

    def _get_extension(self, name: str) -> PriceExtension:
        extension = self._extensions.get(name)
        if extension is None:
            raise NotFoundError("Price extension", name)
        return extension

    # Valuation helpers

    def prices_in_usd(self, assets: list[str]) -> list[Decimal]:
        """Prices for several assets, sharing one cache."""
        cache = self.new_cache()
        return [self.price_in_usd(asset, cache) for asset in assets]

    def exchange_rate(self, base: str, quote: str, cache: Optional[PriceCache] = None) -> Decimal:
        """Units of quote per unit of base."""
        if base == quote:
            return ONE
        if cache is None:
            cache = self.new_cache()
        base_price = self.price_in_usd(base, cache)
        quote_price = self.price_in_usd(quote, cache)
        with arithmetic_guard():
            return base_price / quote_price

    def get_value(
        self,
        amount: Decimal,
        base: str,
        quote: str,
        cache: Optional[PriceCache] = None,
        decimals: Optional[int] = None,
        round_up: bool = False,
    ) -> Decimal:
        """
        Value of `amount` of base, expressed in quote units.

        Quantized to `decimals` (default: the quote asset's decimals).
        """
        if base == quote:
            return amount
        if cache is None:
            cache = self.new_cache()
        if decimals is None:
            decimals = self.source_for(quote).decimals
        rate = self.exchange_rate(base, quote, cache)
        with arithmetic_guard():
            value = amount * rate
        return quantize(value, decimals, ROUND_UP if round_up else ROUND_DOWN)

    def get_values(self, amounts: dict[str, Decimal], quote: str, decimals: Optional[int] = None) -> Decimal:
        """Total value of a basket of assets in quote units."""
        cache = self.new_cache()
        total = ZERO
        for asset, amount in amounts.items():
            total = checked_add(total, self.get_value(amount, asset, quote, cache, decimals), "basket value")
        return total
