"""Application context for in-process vault management.

Holds the collaborators that outlive a single database session: position
adaptors, the swap router, the vault wallet and the raw price inputs.
Services are built per session on top of them.
"""

import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from cellar.config.settings import Settings, get_settings
from cellar.core.clock import Clock, now_utc
from cellar.domain.models import DerivativeKind, FeedSettings, PriceSourceEntry
from cellar.providers import (
    DictSourceResolver,
    PositionAdaptor,
    StubCustodian,
    StubRateFeed,
    StubSwapRouter,
)
from cellar.providers.stub_provider import STUB_DECIMALS, STUB_PRICES
from cellar.repositories.sqlalchemy import (
    SqlAlchemyPriceSourceRepository,
    SqlAlchemyVaultStateRepository,
)
from cellar.services import (
    PositionRegistry,
    PriceRouter,
    StablePoolExtension,
    VaultService,
    WrappedAssetExtension,
)

logger = logging.getLogger(__name__)

WRAPPED_EXTENSION = "wrapped"
STABLE_POOL_EXTENSION = "stable_pool"


class VaultContext:
    """Shared collaborators plus factories for session-bound services."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        clock: Clock = now_utc,
        resolver: Optional[DictSourceResolver] = None,
        swap_router: Optional[StubSwapRouter] = None,
        custodian: Optional[StubCustodian] = None,
    ):
        self.settings = settings or get_settings()
        self.clock = clock
        self.resolver = resolver or DictSourceResolver()
        self.swap_router = swap_router or StubSwapRouter()
        self.custodian = custodian or StubCustodian()
        self.adaptors: dict[str, PositionAdaptor] = {}

    def register_adaptor(self, position_id: str, adaptor: PositionAdaptor) -> None:
        self.adaptors[position_id] = adaptor

    def price_router(self, db: Session) -> PriceRouter:
        router = PriceRouter(
            source_repo=SqlAlchemyPriceSourceRepository(db),
            resolver=self.resolver,
            settings=self.settings,
            clock=self.clock,
        )
        router.register_extension(WRAPPED_EXTENSION, WrappedAssetExtension(router))
        router.register_extension(STABLE_POOL_EXTENSION, StablePoolExtension(router))
        return router

    def vault_service(self, db: Session) -> VaultService:
        return VaultService(
            vault_repo=SqlAlchemyVaultStateRepository(db),
            router=self.price_router(db),
            registry=PositionRegistry(self.adaptors),
            swap_router=self.swap_router,
            custodian=self.custodian,
            settings=self.settings,
            clock=self.clock,
        )

    def bootstrap_stub_market(self, db: Session) -> None:
        """Register fixed stub feeds and price sources for any asset not yet configured."""
        router = self.price_router(db)
        for asset, price in STUB_PRICES.items():
            reference = f"feed:{asset}"
            self.resolver.register(reference, StubRateFeed(price, clock=self.clock))
            if router.is_supported(asset):
                continue
            router.add_asset(
                PriceSourceEntry(
                    asset=asset,
                    derivative_kind=DerivativeKind.FIXED_RATE_FEED,
                    source_reference=reference,
                    decimals=STUB_DECIMALS[asset],
                    feed=FeedSettings(),
                ),
                expected_price=Decimal(price),
            )
        logger.info(f"Stub market ready for {sorted(STUB_PRICES)}")


# Global vault context (singleton per process)
_vault_context: Optional[VaultContext] = None


def get_vault_context() -> VaultContext:
    """Get or create the global vault context."""
    global _vault_context
    if _vault_context is None:
        _vault_context = VaultContext()
    return _vault_context


def set_vault_context(context: Optional[VaultContext]) -> None:
    """Set (or clear) the global vault context."""
    global _vault_context
    _vault_context = context
