"""Repository protocol definitions (interfaces)."""

from cellar.repositories.protocols.vault_repo import VaultStateRepository
from cellar.repositories.protocols.price_source_repo import PriceSourceRepository

__all__ = [
    "VaultStateRepository",
    "PriceSourceRepository",
]
