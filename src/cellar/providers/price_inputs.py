"""Protocols for raw price inputs consumed by the price router."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional, Protocol

from cellar.core.exceptions import NotFoundError


@dataclass
class FeedRound:
    """Latest answer published by a push-based rate feed."""

    answer: Decimal
    updated_at: datetime


class RateFeed(Protocol):
    """Push-based rate feed with its own stated answer bounds."""

    def latest_round(self) -> FeedRound:
        ...

    def min_answer(self) -> Decimal:
        ...

    def max_answer(self) -> Decimal:
        ...


class TwapPool(Protocol):
    """Concentrated-liquidity pool exposing time-weighted tick observations."""

    def token0(self) -> str:
        ...

    def token1(self) -> str:
        ...

    def consult(self, window_seconds: int) -> int:
        """Arithmetic mean tick (geometric mean price) over the window."""
        ...


class RateSource(Protocol):
    """Exchange rate of a wrapped asset in units of its underlying."""

    def exchange_rate(self) -> Decimal:
        ...


class StablePool(Protocol):
    """Invariant-based pool whose LP token is priced off its virtual price."""

    def virtual_price(self) -> Decimal:
        ...

    def coins(self) -> list[str]:
        ...


class SourceResolver(Protocol):
    """Maps an opaque source reference to the object it names."""

    def resolve(self, reference: str) -> Any:
        ...


class DictSourceResolver:
    """Source resolver backed by an in-process mapping."""

    def __init__(self, sources: Optional[dict[str, Any]] = None):
        self._sources: dict[str, Any] = dict(sources or {})

    def register(self, reference: str, source: Any) -> None:
        self._sources[reference] = source

    def resolve(self, reference: str) -> Any:
        try:
            return self._sources[reference]
        except KeyError:
            raise NotFoundError("Price source", reference) from None
