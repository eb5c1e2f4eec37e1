"""Price source configuration models."""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Optional

from cellar.domain.models.enums import DerivativeKind


@dataclass
class FeedSettings:
    """
    Settings for a FIXED_RATE_FEED source.

    min_price/max_price of zero mean "derive from the feed's own bounds".
    denomination_asset, when set, is the reference asset the feed quotes in
    (its own router price multiplies the feed answer).
    """

    min_price: Decimal = field(default_factory=lambda: Decimal("0"))
    max_price: Decimal = field(default_factory=lambda: Decimal("0"))
    max_staleness: int = 0
    denomination_asset: Optional[str] = None


@dataclass
class TwapSettings:
    """Settings for a TIME_WEIGHTED_POOL source."""

    window_seconds: int
    quote_asset: str


@dataclass
class ExtensionSettings:
    """Settings for an EXTENSION source; storage is owned by the strategy."""

    extension_name: str
    storage: dict[str, Any] = field(default_factory=dict)


@dataclass
class PriceSourceEntry:
    """
    How one asset is priced in USD.

    source_reference is an opaque handle resolved to a feed/pool/input
    object by the router's source resolver.
    """

    asset: str
    derivative_kind: DerivativeKind
    source_reference: str
    decimals: int = 18
    feed: Optional[FeedSettings] = None
    twap: Optional[TwapSettings] = None
    extension: Optional[ExtensionSettings] = None

    def __post_init__(self) -> None:
        if isinstance(self.derivative_kind, str):
            self.derivative_kind = DerivativeKind(self.derivative_kind)
