"""Call-scoped price memo table."""

from decimal import Decimal
from typing import Optional

from cellar.core.fixed_point import fits_bits


class PriceCache:
    """
    Bounded memo of asset -> USD price for one top-level valuation call.

    Lookup is a linear scan over at most `capacity` entries. Prices too
    large for the compact representation are simply not stored and get
    recomputed on the next lookup.
    """

    def __init__(self, capacity: int = 8, max_bits: int = 96):
        self.capacity = capacity
        self._max_bits = max_bits
        self._entries: list[tuple[str, Decimal]] = []
        # Nesting level of in-flight lookups sharing this cache
        self.depth = 0

    def get(self, asset: str) -> Optional[Decimal]:
        for cached_asset, price in self._entries:
            if cached_asset == asset:
                return price
        return None

    def put(self, asset: str, price: Decimal) -> bool:
        """Store a price if it is representable and a slot is free; returns whether it was stored."""
        if self.is_full or not fits_bits(price, self._max_bits):
            return False
        if self.get(asset) is not None:
            return True
        self._entries.append((asset, price))
        return True

    @property
    def is_full(self) -> bool:
        return len(self._entries) >= self.capacity

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, asset: str) -> bool:
        return self.get(asset) is not None
