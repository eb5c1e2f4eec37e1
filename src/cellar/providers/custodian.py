"""Asset custodian protocol (the vault's token wallet)."""

from decimal import Decimal
from typing import Protocol


class AssetCustodian(Protocol):
    """Moves assets held directly by the vault."""

    def balance_of(self, asset: str) -> Decimal:
        """Amount of asset held by the vault wallet."""
        ...

    def receive(self, asset: str, sender: str, amount: Decimal) -> None:
        """Pull amount of asset from sender into the vault wallet."""
        ...

    def transfer(self, asset: str, recipient: str, amount: Decimal) -> None:
        """Send amount of asset from the vault wallet to recipient."""
        ...
