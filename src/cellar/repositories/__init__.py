"""Repository layer - data access abstractions and implementations."""

from cellar.repositories.protocols import (
    VaultStateRepository,
    PriceSourceRepository,
)

__all__ = [
    "VaultStateRepository",
    "PriceSourceRepository",
]
