"""Domain layer - pure vault models with no external dependencies."""

from cellar.domain.models import (
    DerivativeKind,
    AccrualState,
    Position,
    PriceSourceEntry,
    FeedSettings,
    TwapSettings,
    ExtensionSettings,
    VaultState,
)

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
