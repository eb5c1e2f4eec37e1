"""Position adaptor protocol."""

from decimal import Decimal
from typing import Protocol


class PositionAdaptor(Protocol):
    """
    Capability interface of one yield-bearing position.

    The vault never looks inside a position; lending-market tokens, AMM
    liquidity and plain token balances all reduce to these calls.
    Amounts are in the position's native asset units.
    """

    def deposit(self, amount: Decimal) -> Decimal:
        """Deposit native assets; returns position shares received."""
        ...

    def withdraw(self, amount: Decimal, recipient: str) -> Decimal:
        """Withdraw native assets to recipient; returns assets sent."""
        ...

    def balance_of(self, vault: str) -> Decimal:
        """Position shares held by vault."""
        ...

    def max_withdrawable(self, vault: str) -> Decimal:
        """Native assets vault could withdraw right now (live balance)."""
        ...

    def native_asset(self) -> str:
        """Asset id this position is denominated in."""
        ...
