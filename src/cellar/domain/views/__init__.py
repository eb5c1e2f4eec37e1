"""View models package."""

from cellar.domain.views.vault import (
    PositionView,
    AccrualResult,
    SourcingResult,
    WithdrawalResult,
    RebalanceResult,
    VaultSnapshot,
)

__all__ = [
    "PositionView",
    "AccrualResult",
    "SourcingResult",
    "WithdrawalResult",
    "RebalanceResult",
    "VaultSnapshot",
]
