"""Pydantic schemas for vault endpoints."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from cellar.domain.models import AccrualState


class PositionResponse(BaseModel):
    """Response schema for a listed position."""

    position_id: str
    native_asset: str
    is_trusted: bool
    max_slippage_fraction: Decimal
    cached_asset_balance: Decimal
    conversion_path: list[str] = []


class PositionListResponse(BaseModel):
    """Response schema for the position list (registration order)."""

    positions: list[PositionResponse]


class VaultSnapshotResponse(BaseModel):
    """Response schema for a point-in-time vault read."""

    vault_id: str
    holding_asset: str
    total_balance: Decimal
    liquid_holdings: Decimal
    locked_yield: Decimal
    net_assets: Decimal
    total_shares: Decimal
    accrual_state: AccrualState
    accrual_period: int
    pending_accrual_period: Optional[int] = None
    last_accrual_time: datetime
    target_holdings_fraction: Decimal
    liquidity_limit: Optional[Decimal] = None
    deposit_limit: Optional[Decimal] = None
    is_shutdown: bool
    is_paused: bool
    positions: list[PositionResponse] = []
    as_of: Optional[datetime] = None


class AccountResponse(BaseModel):
    """Response schema for one account's standing in the vault."""

    account: str
    shares: Decimal
    max_withdraw: Decimal
    max_redeem: Decimal
    max_deposit: Decimal


class DepositRequest(BaseModel):
    """Request schema for depositing holding assets."""

    assets: Decimal = Field(..., gt=0)
    receiver: str = Field(..., min_length=1)


class DepositResponse(BaseModel):
    """Response schema for a deposit."""

    assets: Decimal
    shares: Decimal


class WithdrawRequest(BaseModel):
    """Request schema for withdrawing holding assets."""

    assets: Decimal = Field(..., gt=0)
    receiver: str = Field(..., min_length=1)
    owner: str = Field(..., min_length=1)
    allow_partial: bool = False
    caller: Optional[str] = None


class RedeemRequest(BaseModel):
    """Request schema for redeeming shares."""

    shares: Decimal = Field(..., gt=0)
    receiver: str = Field(..., min_length=1)
    owner: str = Field(..., min_length=1)
    allow_partial: bool = False
    caller: Optional[str] = None


class WithdrawalResponse(BaseModel):
    """Response schema for withdraw/redeem."""

    assets: Decimal
    shares: Decimal
    requested_assets: Decimal
    is_partial: bool
    positions_visited: list[str] = []


class AccrualResponse(BaseModel):
    """Response schema for an accrual pass."""

    yield_earned: Decimal
    losses: Decimal
    platform_fee: Decimal
    performance_fee: Decimal
    fee_shares: Decimal
    max_locked_yield: Decimal
    total_balance: Decimal
    accrued_at: datetime


class TargetHoldingsRequest(BaseModel):
    fraction: Decimal = Field(..., ge=0, le=1)


class AccrualPeriodRequest(BaseModel):
    seconds: int = Field(..., ge=0)


class LimitRequest(BaseModel):
    """A null limit removes the restriction."""

    limit: Optional[Decimal] = Field(None, ge=0)


class ShutdownRequest(BaseModel):
    shutdown: bool
    liquidate: bool = False


class PauseRequest(BaseModel):
    paused: bool


class FeesRequest(BaseModel):
    platform_fee_fraction: Optional[Decimal] = Field(None, ge=0, le=1)
    performance_fee_fraction: Optional[Decimal] = Field(None, ge=0, le=1)
    fee_recipient: Optional[str] = None


class PositionCreateRequest(BaseModel):
    """Request schema for listing a stub-backed position."""

    position_id: str = Field(..., min_length=1)
    native_asset: str = Field(..., min_length=1)
    max_slippage_fraction: Decimal = Field(Decimal("0.01"), ge=0, le=1)
    conversion_path: list[str] = []


class RebalanceRequest(BaseModel):
    """Request schema for moving value; a null side means vault holdings."""

    from_position: Optional[str] = None
    to_position: Optional[str] = None
    amount: Decimal = Field(..., gt=0)
    min_amount_out: Decimal = Field(Decimal("0"), ge=0)
    path: list[str] = []


class RebalanceResponse(BaseModel):
    amount_in: Decimal
    amount_out: Decimal


class TransferRequest(BaseModel):
    """Request schema for moving shares between accounts."""

    sender: str = Field(..., min_length=1)
    recipient: str = Field(..., min_length=1)
    shares: Decimal = Field(..., gt=0)


class ApproveRequest(BaseModel):
    owner: str = Field(..., min_length=1)
    spender: str = Field(..., min_length=1)
    shares: Decimal = Field(..., ge=0)


class TransferFromRequest(BaseModel):
    """Request schema for a spender moving an owner's shares."""

    spender: str = Field(..., min_length=1)
    owner: str = Field(..., min_length=1)
    recipient: str = Field(..., min_length=1)
    shares: Decimal = Field(..., gt=0)


class AllowanceResponse(BaseModel):
    owner: str
    spender: str
    shares: Decimal
