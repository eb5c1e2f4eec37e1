"""Pydantic schemas for API request/response."""

from cellar.api.schemas.vault import (
    PositionResponse,
    PositionListResponse,
    VaultSnapshotResponse,
    AccountResponse,
    DepositRequest,
    DepositResponse,
    WithdrawRequest,
    RedeemRequest,
    WithdrawalResponse,
    AccrualResponse,
    TargetHoldingsRequest,
    AccrualPeriodRequest,
    LimitRequest,
    ShutdownRequest,
    PauseRequest,
    FeesRequest,
    PositionCreateRequest,
    RebalanceRequest,
    RebalanceResponse,
    TransferRequest,
    ApproveRequest,
    TransferFromRequest,
    AllowanceResponse,
)
from cellar.api.schemas.prices import (
    PriceResponse,
    PriceSourceResponse,
    PriceSourceListResponse,
)

__all__ = [
    "PositionResponse",
    "PositionListResponse",
    "VaultSnapshotResponse",
    "AccountResponse",
    "DepositRequest",
    "DepositResponse",
    "WithdrawRequest",
    "RedeemRequest",
    "WithdrawalResponse",
    "AccrualResponse",
    "TargetHoldingsRequest",
    "AccrualPeriodRequest",
    "LimitRequest",
    "ShutdownRequest",
    "PauseRequest",
    "FeesRequest",
    "PositionCreateRequest",
    "RebalanceRequest",
    "RebalanceResponse",
    "TransferRequest",
    "ApproveRequest",
    "TransferFromRequest",
    "AllowanceResponse",
    "PriceResponse",
    "PriceSourceResponse",
    "PriceSourceListResponse",
]
