"""Service layer - vault accounting and price oracle logic."""

from cellar.services.price_cache import PriceCache
from cellar.services.price_router import PriceRouter, PriceExtension
from cellar.services.price_extensions import WrappedAssetExtension, StablePoolExtension
from cellar.services.position_registry import PositionRegistry
from cellar.services.ledger import AccountingLedger
from cellar.services.fees import FeeAccrual
from cellar.services.accrual import AccrualController
from cellar.services.liquidity import WithdrawalLiquiditySourcer
from cellar.services.vault_service import VaultService, vault_lock

__all__ = [
    "PriceCache",
    "PriceRouter",
    "PriceExtension",
    "WrappedAssetExtension",
    "StablePoolExtension",
    "PositionRegistry",
    "AccountingLedger",
    "FeeAccrual",
    "AccrualController",
    "WithdrawalLiquiditySourcer",
    "VaultService",
    "vault_lock",
]
