"""SQLAlchemy ORM model definitions."""

from decimal import Decimal

from sqlalchemy import (
    Column,
    String,
    DateTime,
    Boolean,
    Integer,
    Text,
    ForeignKey,
    Enum as SqlEnum,
)
from sqlalchemy.orm import relationship
from sqlalchemy.types import TypeDecorator

from cellar.repositories.sqlalchemy.database import Base
from cellar.domain.models.enums import DerivativeKind


class DecimalString(TypeDecorator):
    """
    Decimal stored as its exact string form.

    Amounts go up to 2**256 - 1 with 18 fractional digits, beyond what
    Numeric columns keep exactly on SQLite.
    """

    impl = String
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return str(Decimal(value))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return Decimal(value)


class VaultORM(Base):
    """SQLAlchemy model for VaultState (ledger aggregates and configuration)."""

    __tablename__ = "vaults"

    vault_id = Column(String(64), primary_key=True)
    holding_asset = Column(String(64), nullable=False)
    asset_decimals = Column(Integer, nullable=False, default=6)
    total_balance = Column(DecimalString, nullable=False, default=Decimal("0"))
    liquid_holdings = Column(DecimalString, nullable=False, default=Decimal("0"))
    total_shares = Column(DecimalString, nullable=False, default=Decimal("0"))
    target_holdings_fraction = Column(DecimalString, nullable=False, default=Decimal("0"))
    accrual_period = Column(Integer, nullable=False, default=0)
    pending_accrual_period = Column(Integer, nullable=True)
    last_accrual_time = Column(DateTime, nullable=False)
    max_locked_yield = Column(DecimalString, nullable=False, default=Decimal("0"))
    liquidity_limit = Column(DecimalString, nullable=True)
    deposit_limit = Column(DecimalString, nullable=True)
    is_shutdown = Column(Boolean, nullable=False, default=False)
    is_paused = Column(Boolean, nullable=False, default=False)
    platform_fee_fraction = Column(DecimalString, nullable=False, default=Decimal("0"))
    performance_fee_fraction = Column(DecimalString, nullable=False, default=Decimal("0"))
    fee_recipient = Column(String(64), nullable=True)

    positions = relationship(
        "PositionORM",
        back_populates="vault",
        order_by="PositionORM.sort_index",
        cascade="all, delete-orphan",
    )
    share_balances = relationship(
        "ShareBalanceORM",
        back_populates="vault",
        cascade="all, delete-orphan",
    )
    allowances = relationship(
        "AllowanceORM",
        back_populates="vault",
        cascade="all, delete-orphan",
    )


class PositionORM(Base):
    """SQLAlchemy model for Position; sort_index keeps registration order."""

    __tablename__ = "positions"

    vault_id = Column(String(64), ForeignKey("vaults.vault_id"), primary_key=True)
    position_id = Column(String(64), primary_key=True)
    sort_index = Column(Integer, nullable=False)
    native_asset = Column(String(64), nullable=False)
    is_trusted = Column(Boolean, nullable=False, default=False)
    max_slippage_fraction = Column(DecimalString, nullable=False, default=Decimal("0"))
    cached_asset_balance = Column(DecimalString, nullable=False, default=Decimal("0"))
    conversion_path = Column(Text, nullable=False, default="[]")

    vault = relationship("VaultORM", back_populates="positions")


class ShareBalanceORM(Base):
    """SQLAlchemy model for one account's share balance."""

    __tablename__ = "share_balances"

    vault_id = Column(String(64), ForeignKey("vaults.vault_id"), primary_key=True)
    account = Column(String(64), primary_key=True)
    shares = Column(DecimalString, nullable=False, default=Decimal("0"))

    vault = relationship("VaultORM", back_populates="share_balances")


class AllowanceORM(Base):
    """SQLAlchemy model for the shares a spender may move on an owner's behalf."""

    __tablename__ = "allowances"

    vault_id = Column(String(64), ForeignKey("vaults.vault_id"), primary_key=True)
    owner = Column(String(64), primary_key=True)
    spender = Column(String(64), primary_key=True)
    shares = Column(DecimalString, nullable=False, default=Decimal("0"))

    vault = relationship("VaultORM", back_populates="allowances")


class PriceSourceORM(Base):
    """SQLAlchemy model for PriceSourceEntry (flattened per-kind settings)."""

    __tablename__ = "price_sources"

    asset = Column(String(64), primary_key=True)
    derivative_kind = Column(SqlEnum(DerivativeKind), nullable=False)
    source_reference = Column(String(255), nullable=False)
    decimals = Column(Integer, nullable=False, default=18)

    # FIXED_RATE_FEED
    min_price = Column(DecimalString, nullable=True)
    max_price = Column(DecimalString, nullable=True)
    max_staleness = Column(Integer, nullable=True)
    denomination_asset = Column(String(64), nullable=True)

    # TIME_WEIGHTED_POOL
    twap_window = Column(Integer, nullable=True)
    quote_asset = Column(String(64), nullable=True)

    # EXTENSION
    extension_name = Column(String(64), nullable=True)
    extension_storage = Column(Text, nullable=True)
