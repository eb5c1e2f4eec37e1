"""Withdrawal liquidity sourcing: pull holdings back out of positions."""

import logging
from datetime import datetime
from decimal import Decimal
from typing import NamedTuple, Optional

from cellar.core.exceptions import (
    CellarError,
    InsufficientLiquidityError,
    InvalidConversionError,
    SlippageExceededError,
)
from cellar.core.fixed_point import (
    ONE,
    ZERO,
    checked_add,
    checked_sub,
    floor_sub,
    mul_div,
    quantize,
)
from cellar.domain.models import Position, VaultState
from cellar.domain.views import SourcingResult
from cellar.providers.position_adaptor import PositionAdaptor
from cellar.providers.swap_router import SwapRouter
from cellar.services.ledger import AccountingLedger
from cellar.services.position_registry import PositionRegistry
from cellar.services.price_cache import PriceCache
from cellar.services.price_router import PriceRouter

logger = logging.getLogger(__name__)


class Pull(NamedTuple):
    """One planned withdrawal from a position, priced before anything moves."""

    position: Position
    adaptor: PositionAdaptor
    amount: Decimal
    expected: Decimal
    min_out: Decimal


class WithdrawalLiquiditySourcer:
    """
    Tops up liquid holdings from positions when a withdrawal exceeds them.

    The pull target is the shortfall plus the target holdings buffer,
    capped at net assets. Positions are unwound newest first and empty ones
    are skipped.

    Sourcing runs in two steps. The plan prices every pull (oracle value,
    slippage floor and swap quote) without touching a position, so a
    withdrawal that cannot be served fails before the first irreversible
    call. Executing the plan never raises: a pull that fails part way hands
    its assets back to the position, and what stayed uncovered is reported
    on the result together with the error.
    """

    def __init__(
        self,
        ledger: AccountingLedger,
        registry: PositionRegistry,
        router: PriceRouter,
        swap_router: SwapRouter,
    ):
        self._ledger = ledger
        self._registry = registry
        self._router = router
        self._swap_router = swap_router

    def source(
        self,
        state: VaultState,
        requested: Decimal,
        now: datetime,
        strict: bool = False,
    ) -> SourcingResult:
        """
        Pull enough into holdings to pay `requested`.

        With strict, a plan that cannot reach `requested` raises
        InsufficientLiquidityError (or the SlippageExceededError of the
        first position it would have needed) before any position is touched.
        """
        if requested <= state.liquid_holdings:
            return SourcingResult()

        net = self._ledger.net_assets(state, now)
        shortfall = checked_sub(requested, state.liquid_holdings, "shortfall")
        buffer_target = mul_div(net, state.target_holdings_fraction, ONE, state.asset_decimals)
        to_pull = min(checked_add(shortfall, buffer_target, "pull target"), net)

        cache = self._router.new_cache()
        pulls = self._plan(state, to_pull, cache, strict)
        if strict:
            available = state.liquid_holdings
            for pull in pulls:
                available = checked_add(available, pull.expected, "available liquidity")
            if available < requested:
                raise InsufficientLiquidityError(requested, available)

        result = SourcingResult(target=to_pull)
        for pull in pulls:
            try:
                received = self._execute(state, pull, cache)
            except CellarError as e:
                logger.warning(f"Vault {state.vault_id}: pull from {pull.position.position_id} failed: {e}")
                result.failure = e
                break
            result.visited.append(pull.position.position_id)
            result.received = checked_add(result.received, received, "received")

        result.uncovered = floor_sub(to_pull, result.received)
        if result.uncovered > ZERO:
            logger.warning(
                f"Vault {state.vault_id}: positions exhausted with {result.uncovered} "
                f"{state.holding_asset} uncovered"
            )
        return result

    def _plan(self, state: VaultState, to_pull: Decimal, cache: PriceCache, strict: bool) -> list[Pull]:
        pulls: list[Pull] = []
        remaining = to_pull
        for position in self._registry.in_withdrawal_order(state):
            if remaining == ZERO:
                break
            adaptor = self._registry.adaptor_for(position)
            balance = adaptor.max_withdrawable(state.vault_id)
            if balance == ZERO:
                continue

            needed = self._router.get_value(
                remaining, state.holding_asset, position.native_asset, cache, round_up=True
            )
            pull = self.price_pull(state, position, adaptor, min(balance, needed), cache)
            if ZERO < pull.expected < remaining and pull.amount < balance:
                # Conversion costs: size the pull up by what the route really gives
                decimals = self._router.source_for(position.native_asset).decimals
                grossed = mul_div(pull.amount, remaining, pull.expected, decimals, round_up=True)
                pull = self.price_pull(state, position, adaptor, min(balance, grossed), cache)

            if pull.expected < pull.min_out:
                if strict:
                    raise SlippageExceededError(pull.expected, pull.min_out)
                logger.warning(
                    f"Skipping {position.position_id}: quote {pull.expected} below floor {pull.min_out}"
                )
                continue
            pulls.append(pull)
            remaining = floor_sub(remaining, pull.expected)
        return pulls

    def price_pull(
        self,
        state: VaultState,
        position: Position,
        adaptor: PositionAdaptor,
        amount: Decimal,
        cache: PriceCache,
    ) -> Pull:
        """Quote a withdrawal of `amount` native assets back into holdings."""
        self.check_path(state, position)
        if position.native_asset == state.holding_asset:
            return Pull(position, adaptor, amount, amount, amount)

        value = self._router.get_value(
            amount, position.native_asset, state.holding_asset, cache, decimals=state.asset_decimals
        )
        min_out = mul_div(value, ONE - position.max_slippage_fraction, ONE, state.asset_decimals)
        expected = quantize(self._swap_router.quote(position.conversion_path, amount), state.asset_decimals)
        return Pull(position, adaptor, amount, expected, min_out)

    def plan_liquidation(
        self,
        state: VaultState,
        position: Position,
        cache: PriceCache,
    ) -> Optional[Pull]:
        """
        Price emptying a position; None when it holds nothing.

        Raises SlippageExceededError when the route would pay less than the
        position's slippage floor.
        """
        adaptor = self._registry.adaptor_for(position)
        balance = adaptor.max_withdrawable(state.vault_id)
        if balance == ZERO:
            return None
        pull = self.price_pull(state, position, adaptor, balance, cache)
        if pull.expected < pull.min_out:
            raise SlippageExceededError(pull.expected, pull.min_out)
        return pull

    def liquidate_position(
        self,
        state: VaultState,
        position: Position,
        cache: Optional[PriceCache] = None,
    ) -> Decimal:
        """
        Convert a position's entire live balance into holdings.

        Any cached balance left afterwards was never really there (an
        unaccrued loss) and is written off total_balance.
        """
        if cache is None:
            cache = self._router.new_cache()
        pull = self.plan_liquidation(state, position, cache)

        received = ZERO
        if pull is not None:
            received = self._execute(state, pull, cache)

        if not position.is_empty:
            self.release_cached_balance(state, position, position.cached_asset_balance, cache)
        logger.info(f"Position {position.position_id} liquidated for {received} {state.holding_asset}")
        return received

    def empty_position(self, state: VaultState, position: Position) -> None:
        """Callback form of liquidate_position for the position registry."""
        self.liquidate_position(state, position)

    def check_path(self, state: VaultState, position: Position) -> None:
        """The conversion path must run from the native asset to the holding asset."""
        path = position.conversion_path
        if position.native_asset == state.holding_asset and not path:
            return
        if len(path) < 2 or path[0] != position.native_asset or path[-1] != state.holding_asset:
            raise InvalidConversionError(
                f"Conversion path {path} for {position.position_id} must run "
                f"from {position.native_asset} to {state.holding_asset}"
            )

    def _execute(self, state: VaultState, pull: Pull, cache: PriceCache) -> Decimal:
        position = pull.position
        withdrawn = pull.adaptor.withdraw(pull.amount, state.vault_id)

        if position.native_asset == state.holding_asset:
            received = withdrawn
        else:
            try:
                received = self._swap_router.convert(position.conversion_path, withdrawn, pull.min_out)
            except CellarError:
                # Nothing was swapped; the position takes its assets back
                pull.adaptor.deposit(withdrawn)
                raise
            received = quantize(received, state.asset_decimals)

        state.liquid_holdings = checked_add(state.liquid_holdings, received, "liquid holdings")
        self.release_cached_balance(state, position, withdrawn, cache)
        logger.info(
            f"Pulled {withdrawn} {position.native_asset} from {position.position_id} "
            f"for {received} {state.holding_asset}"
        )
        return received

    def release_cached_balance(
        self,
        state: VaultState,
        position: Position,
        withdrawn: Decimal,
        cache: PriceCache,
    ) -> None:
        reduction = min(withdrawn, position.cached_asset_balance)
        if reduction == ZERO:
            return
        position.cached_asset_balance = checked_sub(position.cached_asset_balance, reduction, "cached balance")
        value = self._router.get_value(
            reduction, position.native_asset, state.holding_asset, cache, decimals=state.asset_decimals
        )
        # total_balance was booked at older rates; never let a revaluation push it negative
        state.total_balance = checked_sub(state.total_balance, min(value, state.total_balance), "total balance")
