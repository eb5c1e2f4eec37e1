"""Vault-level exceptions."""

from decimal import Decimal
from enum import Enum
from typing import Optional


class ErrorCategory(str, Enum):
    """How a caller should react to an error."""

    RETRY_LATER = "RETRY_LATER"  # stale price, accrual in progress, liquidity
    INVALID_INPUT = "INVALID_INPUT"  # limits, untrusted position, bad config
    INVARIANT = "INVARIANT"  # arithmetic fault, state would break


class CellarError(Exception):
    """Base exception for vault errors."""

    category = ErrorCategory.INVALID_INPUT

    def __init__(self, message: str, code: str = "CELLAR_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class ValidationError(CellarError):
    """Raised when input validation fails."""

    def __init__(self, message: str):
        super().__init__(message, code="VALIDATION_ERROR")


class NotFoundError(CellarError):
    """Raised when a requested resource is not found."""

    def __init__(self, resource: str, identifier: str):
        super().__init__(f"{resource} not found: {identifier}", code="NOT_FOUND")


class UntrustedPositionError(CellarError):
    """Raised when an operation references a position without the trust flag."""

    def __init__(self, position_id: str):
        self.position_id = position_id
        super().__init__(f"Position is not trusted: {position_id}", code="UNTRUSTED_POSITION")


class ContractShutdownError(CellarError):
    """Raised when a mutating call is attempted while the vault is shut down."""

    def __init__(self, message: str = "Vault is shut down"):
        super().__init__(message, code="CONTRACT_SHUTDOWN")


class ContractPausedError(CellarError):
    """Raised when a deposit is attempted while the vault is paused."""

    def __init__(self, message: str = "Vault is paused"):
        super().__init__(message, code="CONTRACT_PAUSED")


class DepositRestrictedError(CellarError):
    """Raised when a deposit exceeds the computed maximum."""

    def __init__(self, requested: Decimal, limit: Decimal):
        self.requested = requested
        self.limit = limit
        super().__init__(
            f"Deposit of {requested} exceeds the maximum allowed {limit}",
            code="DEPOSIT_RESTRICTED",
        )


class InsufficientAllowanceError(CellarError):
    """Raised when a spender moves more of an owner's shares than approved."""

    def __init__(self, owner: str, spender: str, requested: Decimal, allowed: Decimal):
        self.owner = owner
        self.spender = spender
        super().__init__(
            f"{spender} may move {allowed} shares of {owner}, not {requested}",
            code="INSUFFICIENT_ALLOWANCE",
        )


class AccrualInProgressError(CellarError):
    """Raised when accrue() is called while yield is still being released."""

    category = ErrorCategory.RETRY_LATER

    def __init__(self, locked_yield: Decimal):
        self.locked_yield = locked_yield
        super().__init__(
            f"Accrual in progress: {locked_yield} yield still locked",
            code="ACCRUAL_IN_PROGRESS",
        )


class InvalidConversionError(CellarError):
    """Raised when a conversion path does not start or end where expected."""

    def __init__(self, message: str):
        super().__init__(message, code="INVALID_CONVERSION")


class ProtectedAssetSweepError(CellarError):
    """Raised when attempting to sweep an asset the vault manages."""

    def __init__(self, asset: str):
        self.asset = asset
        super().__init__(f"Asset is managed by the vault: {asset}", code="PROTECTED_ASSET")


class ArithmeticFaultError(CellarError):
    """Raised on overflow, underflow or division by zero in fixed-point math."""

    category = ErrorCategory.INVARIANT

    def __init__(self, message: str):
        super().__init__(message, code="ARITHMETIC_FAULT")


class PriceOutOfBoundsError(CellarError):
    """Raised when an oracle answer falls outside its configured bounds."""

    category = ErrorCategory.RETRY_LATER

    def __init__(self, asset: str, price: Decimal, min_price: Decimal, max_price: Decimal):
        self.asset = asset
        self.price = price
        super().__init__(
            f"Price {price} for {asset} outside bounds [{min_price}, {max_price}]",
            code="PRICE_OUT_OF_BOUNDS",
        )


class StalePriceError(CellarError):
    """Raised when an oracle answer is older than its allowed staleness."""

    category = ErrorCategory.RETRY_LATER

    def __init__(self, asset: str, age_seconds: int, max_staleness: int):
        self.asset = asset
        self.age_seconds = age_seconds
        super().__init__(
            f"Price for {asset} is {age_seconds}s old (max {max_staleness}s)",
            code="STALE_PRICE",
        )


class InsufficientLiquidityError(CellarError):
    """Raised when a withdrawal could not be fully sourced."""

    category = ErrorCategory.RETRY_LATER

    def __init__(self, requested: Decimal, available: Decimal):
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient liquidity: requested {requested}, available {available}",
            code="INSUFFICIENT_LIQUIDITY",
        )


class SlippageExceededError(CellarError):
    """Raised by a swap router when output would fall below the minimum."""

    category = ErrorCategory.RETRY_LATER

    def __init__(self, amount_out: Decimal, min_amount_out: Decimal):
        self.amount_out = amount_out
        self.min_amount_out = min_amount_out
        super().__init__(
            f"Swap output {amount_out} below minimum {min_amount_out}",
            code="SLIPPAGE_EXCEEDED",
        )


class UnsupportedAssetError(CellarError):
    """Raised when pricing an asset with no configured price source."""

    def __init__(self, asset: str):
        self.asset = asset
        super().__init__(f"Asset is not supported by the price router: {asset}", code="UNSUPPORTED_ASSET")


class PriceSanityCheckError(CellarError):
    """Raised when a new price source disagrees with the caller's expected price."""

    def __init__(self, asset: str, computed: Decimal, expected: Decimal):
        self.computed = computed
        self.expected = expected
        super().__init__(
            f"Computed price {computed} for {asset} is not within tolerance of {expected}",
            code="PRICE_SANITY_CHECK",
        )


class PriceSourceLoopError(CellarError):
    """Raised when nested price lookups exceed the cache capacity."""

    def __init__(self, asset: str, depth: int):
        super().__init__(
            f"Price lookup for {asset} nested {depth} levels deep",
            code="PRICE_SOURCE_LOOP",
        )


def error_category(exc: Exception) -> Optional[ErrorCategory]:
    """Return the category of a vault error, or None for foreign exceptions."""
    if isinstance(exc, CellarError):
        return exc.category
    return None
