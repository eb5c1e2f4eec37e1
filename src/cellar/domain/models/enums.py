"""Enumerations for domain models."""

from enum import Enum


class DerivativeKind(str, Enum):
    """Pricing strategy used for a priceable asset."""

    FIXED_RATE_FEED = "FIXED_RATE_FEED"  # push-based rate feed with bounds + heartbeat
    TIME_WEIGHTED_POOL = "TIME_WEIGHTED_POOL"  # geometric-mean tick over a window
    EXTENSION = "EXTENSION"  # pluggable composite strategy


class AccrualState(str, Enum):
    """Yield-lock state of a vault."""

    IDLE = "IDLE"  # locked yield is zero; accrue() allowed
    ACCRUING = "ACCRUING"  # yield still being released
