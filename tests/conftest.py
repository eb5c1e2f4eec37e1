"""
Pytest configuration and fixtures for vault tests.

This module provides:
- In-memory SQLite database fixtures
- A controllable UTC clock
- Stub price inputs wired into a price router
- Position adaptor, swap router and custodian stubs
- Service and repository fixtures
"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable, Optional

import pytest
from sqlalchemy import create_engine, StaticPool
from sqlalchemy.orm import sessionmaker, Session
from fastapi.testclient import TestClient

from cellar.main import app
from cellar.repositories.sqlalchemy.database import Base, get_db, reset_database
# Import ORM models to register them with Base before creating tables
from cellar.repositories.sqlalchemy import orm_models  # noqa: F401
from cellar.repositories.sqlalchemy import (
    SqlAlchemyPriceSourceRepository,
    SqlAlchemyVaultStateRepository,
)
from cellar.providers import (
    DictSourceResolver,
    StubCustodian,
    StubPositionAdaptor,
    StubRateFeed,
    StubSwapRouter,
)
from cellar.services import (
    PositionRegistry,
    PriceRouter,
    StablePoolExtension,
    VaultService,
    WrappedAssetExtension,
)
from cellar.app_context import VaultContext, set_vault_context
from cellar.domain.models import DerivativeKind, FeedSettings, Position, PriceSourceEntry
from cellar.core.clock import UTC
from cellar.config.settings import Settings, reset_settings, set_settings


TEST_VAULT_ID = "test-vault"
FEE_RECIPIENT = "treasury"
ONE_DAY = 24 * 3600


# =============================================================================
# TIME HELPERS
# =============================================================================


def utc_datetime(
    year: int,
    month: int,
    day: int,
    hour: int = 12,
    minute: int = 0,
    second: int = 0,
) -> datetime:
    """Create a localized datetime in UTC."""
    return UTC.localize(datetime(year, month, day, hour, minute, second))


class FakeClock:
    """Clock callable that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture
def fixed_now() -> datetime:
    """Fixed 'now' timestamp for deterministic tests."""
    return utc_datetime(2024, 6, 15, 12, 0, 0)


@pytest.fixture
def clock(fixed_now) -> FakeClock:
    return FakeClock(fixed_now)


# =============================================================================
# SETTINGS FIXTURES
# =============================================================================


@pytest.fixture
def test_settings() -> Settings:
    """Settings with fees and buffer switched off; tests turn them on as needed."""
    return Settings(
        database_url="sqlite:///:memory:",
        vault_id=TEST_VAULT_ID,
        holding_asset="USDC",
        asset_decimals=6,
        target_holdings_fraction=Decimal("0"),
        accrual_period_seconds=7 * ONE_DAY,
        platform_fee_fraction=Decimal("0"),
        performance_fee_fraction=Decimal("0"),
        fee_recipient=FEE_RECIPIENT,
    )


# =============================================================================
# DATABASE FIXTURES
# =============================================================================


@pytest.fixture(scope="function")
def test_engine():
    """Create test database engine with shared in-memory SQLite."""
    # Reset settings for clean state
    reset_settings()

    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def test_session(test_engine) -> Session:
    """Create test database session."""
    TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.close()


# =============================================================================
# REPOSITORY FIXTURES
# =============================================================================


@pytest.fixture
def vault_repo(test_session) -> SqlAlchemyVaultStateRepository:
    """Provide test VaultStateRepository."""
    return SqlAlchemyVaultStateRepository(test_session)


@pytest.fixture
def price_source_repo(test_session) -> SqlAlchemyPriceSourceRepository:
    """Provide test PriceSourceRepository."""
    return SqlAlchemyPriceSourceRepository(test_session)


# =============================================================================
# PRICE FIXTURES
# =============================================================================


FIXED_FEED_ANSWERS = {
    "USDC": Decimal("1.00"),
    "DAI": Decimal("1.00"),
    "USDT": Decimal("1.00"),
    "WETH": Decimal("2000.00"),
}

FIXED_DECIMALS = {
    "USDC": 6,
    "DAI": 18,
    "USDT": 6,
    "WETH": 18,
}


@pytest.fixture
def feeds(clock) -> dict[str, StubRateFeed]:
    """One stub feed per asset, all fresh as of the test clock."""
    return {asset: StubRateFeed(answer, clock=clock) for asset, answer in FIXED_FEED_ANSWERS.items()}


@pytest.fixture
def resolver(feeds) -> DictSourceResolver:
    return DictSourceResolver({f"feed:{asset}": feed for asset, feed in feeds.items()})


@pytest.fixture
def price_router(price_source_repo, resolver, test_settings, clock) -> PriceRouter:
    """Price router with the bundled extensions and no assets configured."""
    router = PriceRouter(
        source_repo=price_source_repo,
        resolver=resolver,
        settings=test_settings,
        clock=clock,
    )
    router.register_extension("wrapped", WrappedAssetExtension(router))
    router.register_extension("stable_pool", StablePoolExtension(router))
    return router


def feed_entry(asset: str, decimals: int, **feed_kwargs) -> PriceSourceEntry:
    """Helper to build a FIXED_RATE_FEED entry pointing at feed:{asset}."""
    return PriceSourceEntry(
        asset=asset,
        derivative_kind=DerivativeKind.FIXED_RATE_FEED,
        source_reference=f"feed:{asset}",
        decimals=decimals,
        feed=FeedSettings(**feed_kwargs),
    )


@pytest.fixture
def priced_router(price_router) -> PriceRouter:
    """Price router with USDC, DAI, USDT and WETH priced off fixed feeds."""
    for asset, answer in FIXED_FEED_ANSWERS.items():
        price_router.add_asset(feed_entry(asset, FIXED_DECIMALS[asset]), expected_price=answer)
    return price_router


# =============================================================================
# COLLABORATOR FIXTURES
# =============================================================================


@pytest.fixture
def adaptors() -> dict[str, StubPositionAdaptor]:
    return {}


@pytest.fixture
def registry(adaptors) -> PositionRegistry:
    return PositionRegistry(adaptors)


@pytest.fixture
def swap_router() -> StubSwapRouter:
    return StubSwapRouter(prices=dict(FIXED_FEED_ANSWERS), decimals=dict(FIXED_DECIMALS))


@pytest.fixture
def custodian() -> StubCustodian:
    return StubCustodian()


# =============================================================================
# SERVICE FIXTURES
# =============================================================================


@pytest.fixture
def vault_factory(
    vault_repo,
    priced_router,
    registry,
    swap_router,
    custodian,
    test_settings,
    clock,
) -> Callable[..., VaultService]:
    """Factory for vault services sharing the test database, with optional overrides."""

    def _create_vault(
        swap: Optional[StubSwapRouter] = None,
        settings: Optional[Settings] = None,
    ) -> VaultService:
        return VaultService(
            vault_repo=vault_repo,
            router=priced_router,
            registry=registry,
            swap_router=swap or swap_router,
            custodian=custodian,
            settings=settings or test_settings,
            clock=clock,
        )

    return _create_vault


@pytest.fixture
def vault_service(vault_factory) -> VaultService:
    """Provide test VaultService."""
    return vault_factory()


@pytest.fixture
def position_factory(vault_service, registry) -> Callable[..., StubPositionAdaptor]:
    """Factory listing a trusted position backed by a fresh stub adaptor."""

    def _create_position(
        position_id: str,
        native_asset: str = "USDC",
        conversion_path: Optional[list[str]] = None,
        max_slippage_fraction: Decimal = Decimal("0.01"),
    ) -> StubPositionAdaptor:
        adaptor = StubPositionAdaptor(native_asset)
        registry.register_adaptor(position_id, adaptor)
        vault_service.add_position(
            Position(
                position_id=position_id,
                native_asset=native_asset,
                is_trusted=True,
                max_slippage_fraction=max_slippage_fraction,
                conversion_path=conversion_path or [],
            )
        )
        return adaptor

    return _create_position


@pytest.fixture
def funded_vault(vault_service, position_factory) -> tuple[VaultService, StubPositionAdaptor]:
    """Vault with 1,000 deposited by alice, all of it moved into one USDC position."""
    vault_service.deposit(Decimal("1000"), "alice")
    adaptor = position_factory("usdc-pool")
    vault_service.rebalance(None, "usdc-pool", Decimal("1000"), Decimal("1000"))
    return vault_service, adaptor


# =============================================================================
# API TEST CLIENT FIXTURE
# =============================================================================


@pytest.fixture
def api_context(test_settings, clock) -> VaultContext:
    """Process-wide context used by the API, isolated per test."""
    return VaultContext(settings=test_settings, clock=clock)


@pytest.fixture
def client(test_engine, test_settings, api_context) -> TestClient:
    """Provide FastAPI test client with test database."""
    TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

    def override_get_db():
        session = TestSessionLocal()
        try:
            yield session
        finally:
            session.close()

    set_settings(test_settings)
    reset_database()
    set_vault_context(api_context)
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        session = TestSessionLocal()
        try:
            api_context.bootstrap_stub_market(session)
        finally:
            session.close()
        yield c
    app.dependency_overrides.clear()
    set_vault_context(None)
    reset_database()
    reset_settings()


# =============================================================================
# HELPER FUNCTIONS (exported for use in tests)
# =============================================================================


def assert_decimal_equal(
    actual: Decimal,
    expected: Decimal,
    tolerance: Decimal = Decimal("0.000001"),
) -> None:
    """Assert two Decimals are equal within tolerance."""
    diff = abs(actual - expected)
    assert diff <= tolerance, f"Expected {expected}, got {actual} (diff={diff})"
