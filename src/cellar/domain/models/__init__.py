"""Domain models package."""

from cellar.domain.models.enums import DerivativeKind, AccrualState
from cellar.domain.models.position import Position
from cellar.domain.models.price_source import (
    PriceSourceEntry,
    FeedSettings,
    TwapSettings,
    ExtensionSettings,
)
from cellar.domain.models.vault_state import VaultState

__all__ = [
    "DerivativeKind",
    "AccrualState",
    "Position",
    "PriceSourceEntry",
    "FeedSettings",
    "TwapSettings",
    "ExtensionSettings",
    "VaultState",
]
