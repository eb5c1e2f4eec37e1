"""Price source repository protocol."""

from typing import Protocol, Optional

from cellar.domain.models import PriceSourceEntry


class PriceSourceRepository(Protocol):
    """Interface for the per-asset price source configuration store."""

    def get(self, asset: str) -> Optional[PriceSourceEntry]:
        """Retrieve the price source for an asset."""
        ...

    def upsert(self, entry: PriceSourceEntry) -> PriceSourceEntry:
        """Insert or replace the price source for entry.asset."""
        ...

    def list_all(self) -> list[PriceSourceEntry]:
        """List all configured price sources."""
        ...
