"""Core utilities and shared functionality."""

from cellar.core.clock import (
    UTC,
    Clock,
    now_utc,
    to_utc,
    parse_datetime_utc,
    elapsed_seconds,
)
from cellar.core.exceptions import (
    ErrorCategory,
    CellarError,
    ValidationError,
    NotFoundError,
    UntrustedPositionError,
    ContractShutdownError,
    ContractPausedError,
    DepositRestrictedError,
    InsufficientAllowanceError,
    AccrualInProgressError,
    InvalidConversionError,
    ProtectedAssetSweepError,
    ArithmeticFaultError,
    PriceOutOfBoundsError,
    StalePriceError,
    InsufficientLiquidityError,
    SlippageExceededError,
    UnsupportedAssetError,
    PriceSanityCheckError,
    PriceSourceLoopError,
    error_category,
)

__all__ = [
    "UTC",
    "Clock",
    "now_utc",
    "to_utc",
    "parse_datetime_utc",
    "elapsed_seconds",
    "ErrorCategory",
    "CellarError",
    "ValidationError",
    "NotFoundError",
    "UntrustedPositionError",
    "ContractShutdownError",
    "ContractPausedError",
    "DepositRestrictedError",
    "InsufficientAllowanceError",
    "AccrualInProgressError",
    "InvalidConversionError",
    "ProtectedAssetSweepError",
    "ArithmeticFaultError",
    "PriceOutOfBoundsError",
    "StalePriceError",
    "InsufficientLiquidityError",
    "SlippageExceededError",
    "UnsupportedAssetError",
    "PriceSanityCheckError",
    "PriceSourceLoopError",
    "error_category",
]
