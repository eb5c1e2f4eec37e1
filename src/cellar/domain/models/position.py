"""Position domain model."""

from dataclasses import dataclass, field
from decimal import Decimal


@dataclass
class Position:
    """
    One trusted allocation target of the vault.

    - cached_asset_balance is in the position's native asset units and is only
      updated by accrual or explicit transfers; it may drift from the live
      balance between accruals
    - conversion_path is the full swap route from the native asset back to
      the holding asset (empty when they are the same asset)
    """

    position_id: str
    native_asset: str
    is_trusted: bool = False
    max_slippage_fraction: Decimal = field(default_factory=lambda: Decimal("0.01"))
    cached_asset_balance: Decimal = field(default_factory=lambda: Decimal("0"))
    conversion_path: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not isinstance(self.max_slippage_fraction, Decimal):
            self.max_slippage_fraction = Decimal(str(self.max_slippage_fraction))
        if not isinstance(self.cached_asset_balance, Decimal):
            self.cached_asset_balance = Decimal(str(self.cached_asset_balance))

    @property
    def is_empty(self) -> bool:
        """Return True if the ledger holds no cached balance for this position."""
        return self.cached_asset_balance == Decimal("0")

