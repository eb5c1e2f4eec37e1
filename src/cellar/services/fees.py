"""Fee accrual: platform and performance fees paid in newly minted shares."""

import logging
from decimal import Decimal

from cellar.core.fixed_point import (
    SHARE_DECIMALS,
    ZERO,
    arithmetic_guard,
    checked_add,
    checked_sub,
    mul_div,
    quantize,
)
from cellar.domain.models import VaultState

logger = logging.getLogger(__name__)


class FeeAccrual:
    """Computes fees in holding-asset terms and mints their share equivalent to the fee account."""

    def __init__(self, seconds_per_year: int = 365 * 24 * 3600):
        self._seconds_per_year = seconds_per_year

    def performance_fee(self, state: VaultState, yield_earned: Decimal) -> Decimal:
        """Cut of this pass's gains."""
        with arithmetic_guard():
            fee = yield_earned * state.performance_fee_fraction
        return quantize(fee, state.asset_decimals)

    def platform_fee(self, state: VaultState, net_assets: Decimal, elapsed: int) -> Decimal:
        """Time-proportional cut of net assets: net_assets * elapsed * fraction / one year."""
        if elapsed <= 0 or state.platform_fee_fraction == ZERO:
            return ZERO
        with arithmetic_guard():
            annual_fee = net_assets * state.platform_fee_fraction
        return mul_div(
            annual_fee,
            Decimal(elapsed),
            Decimal(self._seconds_per_year),
            state.asset_decimals,
            what="platform fee",
        )

    def fee_shares(self, state: VaultState, fees: Decimal, net_assets_after: Decimal) -> Decimal:
        """
        Shares that, once minted, redeem for exactly `fees`.

        shares = fees * S / (net_assets_after - fees), so the new holder's
        slice of net assets equals the fee and everyone else is diluted by it.
        """
        if fees == ZERO or state.total_shares == ZERO:
            return ZERO
        remaining = checked_sub(net_assets_after, fees, "assets net of fees")
        return mul_div(fees, state.total_shares, remaining, SHARE_DECIMALS, what="fee shares")

    def mint_fee_shares(self, state: VaultState, shares: Decimal) -> None:
        """Credit previously computed fee shares to the fee account."""
        if shares == ZERO:
            return
        account = state.fee_account
        state.share_balances[account] = checked_add(state.shares_of(account), shares, "fee account shares")
        state.total_shares = checked_add(state.total_shares, shares, "total shares")
        logger.info(f"Minted {shares} fee shares to {account}")
