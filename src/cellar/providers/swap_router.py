"""Swap router protocol."""

from decimal import Decimal
from typing import Protocol


class SwapRouter(Protocol):
    """Converts between assets along an explicit route."""

    def quote(self, path: list[str], amount_in: Decimal) -> Decimal:
        """Output convert() would give for amount_in right now, without swapping."""
        ...

    def convert(self, path: list[str], amount_in: Decimal, min_amount_out: Decimal) -> Decimal:
        """
        Swap amount_in of path[0] into path[-1].

        Must fail rather than return less than min_amount_out.
        """
        ...
