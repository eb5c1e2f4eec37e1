"""Accrual: revalue positions, lock realised yield and charge fees."""

import logging
from datetime import datetime
from decimal import Decimal

from cellar.core.clock import elapsed_seconds
from cellar.core.exceptions import AccrualInProgressError
from cellar.core.fixed_point import ONE, ZERO, checked_add, checked_sub, floor_sub, mul_div
from cellar.domain.models import VaultState
from cellar.domain.views import AccrualResult
from cellar.services.fees import FeeAccrual
from cellar.services.ledger import AccountingLedger
from cellar.services.position_registry import PositionRegistry
from cellar.services.price_router import PriceRouter

logger = logging.getLogger(__name__)


class AccrualController:
    """
    Runs one accrual pass over a vault state.

    Gains since the last pass are locked and released linearly over the
    accrual period; losses hit total_balance at once. Everything is
    computed first and written to the state only at the end.
    """

    def __init__(
        self,
        ledger: AccountingLedger,
        registry: PositionRegistry,
        router: PriceRouter,
        fees: FeeAccrual,
    ):
        self._ledger = ledger
        self._registry = registry
        self._router = router
        self._fees = fees

    def accrue(self, state: VaultState, now: datetime) -> AccrualResult:
        locked = self._ledger.locked_yield(state, now)
        if locked > ZERO:
            raise AccrualInProgressError(locked)

        period = state.accrual_period
        if state.pending_accrual_period is not None:
            period = state.pending_accrual_period

        net_before = self._ledger.net_assets(state, now)
        elapsed = elapsed_seconds(state.last_accrual_time, now)

        # One valuation pass: every position is valued at the same rates
        cache = self._router.new_cache()
        live_balances: dict[str, Decimal] = {}
        old_total = ZERO
        new_total = ZERO
        yield_earned = ZERO
        losses = ZERO
        for position in state.positions:
            adaptor = self._registry.adaptor_for(position)
            live = adaptor.max_withdrawable(state.vault_id)
            rate = self._router.exchange_rate(position.native_asset, state.holding_asset, cache)
            old_value = mul_div(position.cached_asset_balance, rate, ONE, state.asset_decimals)
            new_value = mul_div(live, rate, ONE, state.asset_decimals)

            if new_value >= old_value:
                yield_earned = checked_add(yield_earned, checked_sub(new_value, old_value), "yield")
            else:
                losses = checked_add(losses, checked_sub(old_value, new_value), "losses")
            old_total = checked_add(old_total, old_value, "previous position value")
            new_total = checked_add(new_total, new_value, "position value")
            live_balances[position.position_id] = live

        performance_fee = self._fees.performance_fee(state, yield_earned)
        platform_fee = self._fees.platform_fee(state, net_before, elapsed)
        total_fees = checked_add(performance_fee, platform_fee, "fees")
        total_balance = checked_sub(checked_add(state.total_balance, new_total), old_total, "total balance")
        gross_after = checked_add(total_balance, state.liquid_holdings, "assets after accrual")

        # The platform fee is charged on net assets before this pass's losses
        if total_fees > ZERO and total_fees >= floor_sub(gross_after, floor_sub(yield_earned, total_fees)):
            logger.warning(
                f"Vault {state.vault_id}: fees of {total_fees} would take all remaining assets; waived"
            )
            performance_fee = platform_fee = total_fees = ZERO

        max_locked = floor_sub(yield_earned, total_fees)
        net_after = checked_sub(gross_after, max_locked, "net assets after accrual")
        fee_shares = self._fees.fee_shares(state, total_fees, net_after)

        # Commit to the state copy
        for position in state.positions:
            position.cached_asset_balance = live_balances[position.position_id]
        state.total_balance = total_balance
        state.max_locked_yield = max_locked
        state.last_accrual_time = now
        state.accrual_period = period
        state.pending_accrual_period = None
        self._fees.mint_fee_shares(state, fee_shares)

        logger.info(
            f"Accrued vault {state.vault_id}: yield={yield_earned} losses={losses} "
            f"platform_fee={platform_fee} performance_fee={performance_fee} locked={max_locked}"
        )
        return AccrualResult(
            yield_earned=yield_earned,
            losses=losses,
            platform_fee=platform_fee,
            performance_fee=performance_fee,
            fee_shares=fee_shares,
            max_locked_yield=max_locked,
            total_balance=total_balance,
            accrued_at=now,
        )
