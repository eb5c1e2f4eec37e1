"""View models for vault operations and queries."""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional

from cellar.domain.models.enums import AccrualState


@dataclass
class PositionView:
    """View model for a listed position."""

    position_id: str
    native_asset: str
    is_trusted: bool
    max_slippage_fraction: Decimal
    cached_asset_balance: Decimal
    conversion_path: list[str] = field(default_factory=list)


@dataclass
class AccrualResult:
    """Outcome of one accrual pass."""

    yield_earned: Decimal
    losses: Decimal
    platform_fee: Decimal
    performance_fee: Decimal
    fee_shares: Decimal
    max_locked_yield: Decimal
    total_balance: Decimal
    accrued_at: datetime


@dataclass
class SourcingResult:
    """Outcome of pulling liquidity out of positions into holdings."""

    target: Decimal = field(default_factory=lambda: Decimal("0"))
    received: Decimal = field(default_factory=lambda: Decimal("0"))
    uncovered: Decimal = field(default_factory=lambda: Decimal("0"))
    visited: list[str] = field(default_factory=list)
    # Error that stopped sourcing early; what was pulled before it stays pulled
    failure: Optional[Exception] = None


@dataclass
class WithdrawalResult:
    """Outcome of a withdraw/redeem call."""

    assets: Decimal
    shares: Decimal
    requested_assets: Decimal
    sourcing: Optional[SourcingResult] = None

    @property
    def is_partial(self) -> bool:
        return self.assets < self.requested_assets


@dataclass
class RebalanceResult:
    """Outcome of moving value between positions/holdings."""

    amount_in: Decimal
    amount_out: Decimal
    from_position: Optional[str] = None
    to_position: Optional[str] = None


@dataclass
class VaultSnapshot:
    """Point-in-time read of the vault ledger."""

    vault_id: str
    holding_asset: str
    total_balance: Decimal
    liquid_holdings: Decimal
    locked_yield: Decimal
    net_assets: Decimal
    total_shares: Decimal
    accrual_state: AccrualState
    accrual_period: int
    pending_accrual_period: Optional[int]
    last_accrual_time: datetime
    target_holdings_fraction: Decimal
    liquidity_limit: Optional[Decimal]
    deposit_limit: Optional[Decimal]
    is_shutdown: bool
    is_paused: bool
    positions: list[PositionView] = field(default_factory=list)
    as_of: Optional[datetime] = None
