"""Vault endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from cellar.api.deps import get_context, get_vault_service
from cellar.api.schemas import (
    AccountResponse,
    AccrualPeriodRequest,
    AccrualResponse,
    AllowanceResponse,
    ApproveRequest,
    DepositRequest,
    DepositResponse,
    FeesRequest,
    LimitRequest,
    PauseRequest,
    PositionCreateRequest,
    PositionListResponse,
    PositionResponse,
    RebalanceRequest,
    RebalanceResponse,
    RedeemRequest,
    ShutdownRequest,
    TargetHoldingsRequest,
    TransferFromRequest,
    TransferRequest,
    VaultSnapshotResponse,
    WithdrawalResponse,
    WithdrawRequest,
)
from cellar.app_context import VaultContext
from cellar.core.clock import parse_datetime_utc
from cellar.core.exceptions import ValidationError
from cellar.domain.models import Position
from cellar.domain.views import PositionView, WithdrawalResult
from cellar.providers import StubPositionAdaptor
from cellar.services import VaultService

router = APIRouter(prefix="/vault", tags=["vault"])


def _position_response(view: PositionView) -> PositionResponse:
    return PositionResponse(
        position_id=view.position_id,
        native_asset=view.native_asset,
        is_trusted=view.is_trusted,
        max_slippage_fraction=view.max_slippage_fraction,
        cached_asset_balance=view.cached_asset_balance,
        conversion_path=view.conversion_path,
    )


def _withdrawal_response(result: WithdrawalResult) -> WithdrawalResponse:
    return WithdrawalResponse(
        assets=result.assets,
        shares=result.shares,
        requested_assets=result.requested_assets,
        is_partial=result.is_partial,
        positions_visited=result.sourcing.visited if result.sourcing else [],
    )


@router.get("", response_model=VaultSnapshotResponse)
def get_snapshot(
    at: Optional[str] = Query(None, description="Project locked yield to this time (ISO 8601, default UTC)"),
    vault: VaultService = Depends(get_vault_service),
) -> VaultSnapshotResponse:
    """Get the current ledger state, or its projection to another moment."""
    when = None
    if at is not None:
        try:
            when = parse_datetime_utc(at)
        except (ValueError, OverflowError) as e:
            raise ValidationError(f"Invalid timestamp: {at}") from e
    snap = vault.snapshot(when)
    return VaultSnapshotResponse(
        vault_id=snap.vault_id,
        holding_asset=snap.holding_asset,
        total_balance=snap.total_balance,
        liquid_holdings=snap.liquid_holdings,
        locked_yield=snap.locked_yield,
        net_assets=snap.net_assets,
        total_shares=snap.total_shares,
        accrual_state=snap.accrual_state,
        accrual_period=snap.accrual_period,
        pending_accrual_period=snap.pending_accrual_period,
        last_accrual_time=snap.last_accrual_time,
        target_holdings_fraction=snap.target_holdings_fraction,
        liquidity_limit=snap.liquidity_limit,
        deposit_limit=snap.deposit_limit,
        is_shutdown=snap.is_shutdown,
        is_paused=snap.is_paused,
        positions=[_position_response(p) for p in snap.positions],
        as_of=snap.as_of,
    )


@router.get("/accounts/{account}", response_model=AccountResponse)
def get_account(account: str, vault: VaultService = Depends(get_vault_service)) -> AccountResponse:
    """Get an account's shares and limits."""
    return AccountResponse(
        account=account,
        shares=vault.balance_of(account),
        max_withdraw=vault.max_withdraw(account),
        max_redeem=vault.max_redeem(account),
        max_deposit=vault.max_deposit(account),
    )


# Positions


@router.get("/positions", response_model=PositionListResponse)
def list_positions(vault: VaultService = Depends(get_vault_service)) -> PositionListResponse:
    """List positions in registration order."""
    return PositionListResponse(positions=[_position_response(p) for p in vault.positions()])


@router.post("/positions", response_model=PositionResponse, status_code=status.HTTP_201_CREATED)
def add_position(
    request: PositionCreateRequest,
    vault: VaultService = Depends(get_vault_service),
    context: VaultContext = Depends(get_context),
) -> PositionResponse:
    """List a new trusted position backed by an in-memory adaptor."""
    if request.position_id not in context.adaptors:
        context.register_adaptor(request.position_id, StubPositionAdaptor(request.native_asset))
    position = Position(
        position_id=request.position_id,
        native_asset=request.native_asset,
        is_trusted=True,
        max_slippage_fraction=request.max_slippage_fraction,
        conversion_path=request.conversion_path,
    )
    vault.add_position(position)
    return _position_response(next(p for p in vault.positions() if p.position_id == request.position_id))


@router.delete("/positions/{position_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_position(position_id: str, vault: VaultService = Depends(get_vault_service)) -> None:
    """Empty a position into holdings and delist it."""
    vault.remove_position(position_id)


@router.post("/rebalance", response_model=RebalanceResponse)
def rebalance(request: RebalanceRequest, vault: VaultService = Depends(get_vault_service)) -> RebalanceResponse:
    """Move value between positions and holdings."""
    result = vault.rebalance(
        request.from_position,
        request.to_position,
        request.amount,
        request.min_amount_out,
        request.path,
    )
    return RebalanceResponse(amount_in=result.amount_in, amount_out=result.amount_out)


# Deposits and withdrawals


@router.post("/deposit", response_model=DepositResponse)
def deposit(request: DepositRequest, vault: VaultService = Depends(get_vault_service)) -> DepositResponse:
    """Deposit holding assets for shares."""
    shares = vault.deposit(request.assets, request.receiver)
    return DepositResponse(assets=request.assets, shares=shares)


@router.post("/withdraw", response_model=WithdrawalResponse)
def withdraw(request: WithdrawRequest, vault: VaultService = Depends(get_vault_service)) -> WithdrawalResponse:
    """Withdraw an exact amount of holding assets."""
    result = vault.withdraw(
        request.assets, request.receiver, request.owner, request.allow_partial, caller=request.caller
    )
    return _withdrawal_response(result)


@router.post("/redeem", response_model=WithdrawalResponse)
def redeem(request: RedeemRequest, vault: VaultService = Depends(get_vault_service)) -> WithdrawalResponse:
    """Redeem an exact number of shares."""
    result = vault.redeem(
        request.shares, request.receiver, request.owner, request.allow_partial, caller=request.caller
    )
    return _withdrawal_response(result)


# Share transfers


@router.post("/transfer", status_code=status.HTTP_204_NO_CONTENT)
def transfer(request: TransferRequest, vault: VaultService = Depends(get_vault_service)) -> None:
    vault.transfer(request.sender, request.recipient, request.shares)


@router.post("/approve", status_code=status.HTTP_204_NO_CONTENT)
def approve(request: ApproveRequest, vault: VaultService = Depends(get_vault_service)) -> None:
    vault.approve(request.owner, request.spender, request.shares)


@router.post("/transfer-from", status_code=status.HTTP_204_NO_CONTENT)
def transfer_from(request: TransferFromRequest, vault: VaultService = Depends(get_vault_service)) -> None:
    """Move an owner's shares on the spender's allowance."""
    vault.transfer_from(request.spender, request.owner, request.recipient, request.shares)


@router.get("/accounts/{owner}/allowances/{spender}", response_model=AllowanceResponse)
def get_allowance(owner: str, spender: str, vault: VaultService = Depends(get_vault_service)) -> AllowanceResponse:
    return AllowanceResponse(owner=owner, spender=spender, shares=vault.allowance(owner, spender))


@router.post("/accrue", response_model=AccrualResponse)
def accrue(vault: VaultService = Depends(get_vault_service)) -> AccrualResponse:
    """Revalue positions, lock new yield and charge fees."""
    result = vault.accrue()
    return AccrualResponse(
        yield_earned=result.yield_earned,
        losses=result.losses,
        platform_fee=result.platform_fee,
        performance_fee=result.performance_fee,
        fee_shares=result.fee_shares,
        max_locked_yield=result.max_locked_yield,
        total_balance=result.total_balance,
        accrued_at=result.accrued_at,
    )


@router.post("/fees/transfer", response_model=WithdrawalResponse)
def transfer_fees(vault: VaultService = Depends(get_vault_service)) -> WithdrawalResponse:
    """Pay accumulated fee shares out to the fee recipient."""
    return _withdrawal_response(vault.transfer_fees())


# Configuration


@router.put("/config/target-holdings", status_code=status.HTTP_204_NO_CONTENT)
def set_target_holdings(request: TargetHoldingsRequest, vault: VaultService = Depends(get_vault_service)) -> None:
    vault.set_target_holdings(request.fraction)


@router.put("/config/accrual-period", status_code=status.HTTP_204_NO_CONTENT)
def set_accrual_period(request: AccrualPeriodRequest, vault: VaultService = Depends(get_vault_service)) -> None:
    vault.set_accrual_period(request.seconds)


@router.put("/config/liquidity-limit", status_code=status.HTTP_204_NO_CONTENT)
def set_liquidity_limit(request: LimitRequest, vault: VaultService = Depends(get_vault_service)) -> None:
    if request.limit is None:
        vault.remove_liquidity_restriction()
    else:
        vault.set_liquidity_limit(request.limit)


@router.put("/config/deposit-limit", status_code=status.HTTP_204_NO_CONTENT)
def set_deposit_limit(request: LimitRequest, vault: VaultService = Depends(get_vault_service)) -> None:
    if request.limit is None:
        vault.remove_deposit_restriction()
    else:
        vault.set_deposit_limit(request.limit)


@router.put("/config/shutdown", status_code=status.HTTP_204_NO_CONTENT)
def set_shutdown(request: ShutdownRequest, vault: VaultService = Depends(get_vault_service)) -> None:
    vault.set_shutdown(request.shutdown, liquidate=request.liquidate)


@router.put("/config/pause", status_code=status.HTTP_204_NO_CONTENT)
def set_pause(request: PauseRequest, vault: VaultService = Depends(get_vault_service)) -> None:
    vault.set_pause(request.paused)


@router.put("/config/fees", status_code=status.HTTP_204_NO_CONTENT)
def set_fees(request: FeesRequest, vault: VaultService = Depends(get_vault_service)) -> None:
    vault.set_fees(
        platform_fee_fraction=request.platform_fee_fraction,
        performance_fee_fraction=request.performance_fee_fraction,
        fee_recipient=request.fee_recipient,
    )
