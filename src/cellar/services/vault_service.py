"""Vault service: the serialized, transactional surface of one vault."""

import logging
import threading
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import Iterator, Optional

from cellar.config.settings import Settings, get_settings
from cellar.core.clock import Clock, now_utc, to_utc
from cellar.core.exceptions import (
    CellarError,
    ContractShutdownError,
    InsufficientAllowanceError,
    InsufficientLiquidityError,
    InvalidConversionError,
    ProtectedAssetSweepError,
    SlippageExceededError,
    ValidationError,
    error_category,
)
from cellar.core.fixed_point import ONE, UNLIMITED, ZERO, checked_add, checked_sub
from cellar.domain.models import AccrualState, Position, VaultState
from cellar.domain.views import (
    AccrualResult,
    PositionView,
    RebalanceResult,
    SourcingResult,
    VaultSnapshot,
    WithdrawalResult,
)
from cellar.providers.custodian import AssetCustodian
from cellar.providers.swap_router import SwapRouter
from cellar.repositories.protocols import VaultStateRepository
from cellar.services.accrual import AccrualController
from cellar.services.fees import FeeAccrual
from cellar.services.ledger import AccountingLedger
from cellar.services.liquidity import WithdrawalLiquiditySourcer
from cellar.services.position_registry import PositionRegistry
from cellar.services.price_router import PriceRouter

logger = logging.getLogger(__name__)

# One lock per vault id, shared by every VaultService built for that vault
_vault_locks: dict[str, threading.RLock] = {}
_vault_locks_guard = threading.Lock()


def vault_lock(vault_id: str) -> threading.RLock:
    """Return the process-wide lock serializing operations on a vault."""
    with _vault_locks_guard:
        lock = _vault_locks.get(vault_id)
        if lock is None:
            lock = threading.RLock()
            _vault_locks[vault_id] = lock
        return lock


def _check_fraction(name: str, value: Decimal) -> None:
    if value < ZERO or value > ONE:
        raise ValidationError(f"{name} must be between 0 and 1, got {value}")


def _check_positive(name: str, value: Decimal) -> None:
    if value <= ZERO:
        raise ValidationError(f"{name} must be positive, got {value}")


class VaultService:
    """
    Service for operating a vault.

    Every mutating call is one unit of work under the vault's lock: load a
    fresh copy of the state, validate and mutate the copy, then save. Any
    error rolls the session back and the copy is dropped, so a failed call
    leaves the ledger exactly as it was.

    Calls out to positions, the swap router and the custodian are not
    undone by a rollback, so every check that can fail runs before the
    first of them. Operations that unwind several positions commit each
    one as it completes.
    """

    def __init__(
        self,
        vault_repo: VaultStateRepository,
        router: PriceRouter,
        registry: PositionRegistry,
        swap_router: SwapRouter,
        custodian: AssetCustodian,
        settings: Optional[Settings] = None,
        clock: Clock = now_utc,
        vault_id: Optional[str] = None,
    ):
        self._repo = vault_repo
        self._router = router
        self._registry = registry
        self._custodian = custodian
        self._settings = settings or get_settings()
        self._clock = clock
        self._vault_id = vault_id or self._settings.vault_id
        self._lock = vault_lock(self._vault_id)

        self._ledger = AccountingLedger()
        self._fees = FeeAccrual(seconds_per_year=self._settings.seconds_per_year)
        self._swap_router = swap_router
        self._sourcer = WithdrawalLiquiditySourcer(self._ledger, registry, router, swap_router)
        self._accrual = AccrualController(self._ledger, registry, router, self._fees)

    @property
    def vault_id(self) -> str:
        return self._vault_id

    # Unit of work

    def _new_state(self) -> VaultState:
        s = self._settings
        return VaultState(
            vault_id=self._vault_id,
            holding_asset=s.holding_asset,
            last_accrual_time=self._clock(),
            asset_decimals=s.asset_decimals,
            target_holdings_fraction=s.target_holdings_fraction,
            accrual_period=s.accrual_period_seconds,
            liquidity_limit=s.liquidity_limit,
            deposit_limit=s.deposit_limit,
            platform_fee_fraction=s.platform_fee_fraction,
            performance_fee_fraction=s.performance_fee_fraction,
            fee_recipient=s.fee_recipient,
        )

    def _load(self) -> VaultState:
        state = self._repo.get(self._vault_id)
        return state if state is not None else self._new_state()

    @contextmanager
    def _unit_of_work(self, operation: str) -> Iterator[VaultState]:
        with self._lock:
            state = self._load()
            try:
                yield state
                self._repo.save(state)
            except Exception as e:
                self._repo.rollback()
                category = error_category(e)
                reason = category.value if category else type(e).__name__
                logger.warning(f"{operation} on vault {self._vault_id} aborted ({reason}): {e}")
                raise

    def _read(self) -> VaultState:
        with self._lock:
            return self._load()

    # Deposits

    def deposit(self, assets: Decimal, receiver: str) -> Decimal:
        """
        Deposit holding assets and mint shares to receiver.

        Returns:
            Shares minted

        Raises:
            ContractShutdownError, ContractPausedError, DepositRestrictedError
        """
        _check_positive("Deposit amount", assets)
        with self._unit_of_work("deposit") as state:
            now = self._clock()
            self._ledger.before_deposit(state, receiver, assets, now)
            shares = self._ledger.preview_deposit(state, assets, now)
            if shares == ZERO:
                raise ValidationError("Deposit is too small to mint any shares")
            self._enter(state, receiver, assets, shares)
        logger.info(f"Deposit of {assets} minted {shares} shares to {receiver}")
        return shares

    def mint(self, shares: Decimal, receiver: str) -> Decimal:
        """Mint exactly `shares` to receiver; returns the holding assets taken."""
        _check_positive("Share amount", shares)
        with self._unit_of_work("mint") as state:
            now = self._clock()
            assets = self._ledger.preview_mint(state, shares, now)
            self._ledger.before_deposit(state, receiver, assets, now)
            self._enter(state, receiver, assets, shares)
        logger.info(f"Mint of {shares} shares took {assets} from {receiver}")
        return assets

    def _enter(self, state: VaultState, receiver: str, assets: Decimal, shares: Decimal) -> None:
        self._custodian.receive(state.holding_asset, receiver, assets)
        state.liquid_holdings = checked_add(state.liquid_holdings, assets, "liquid holdings")
        state.share_balances[receiver] = checked_add(state.shares_of(receiver), shares, "share balance")
        state.total_shares = checked_add(state.total_shares, shares, "total shares")

    # Withdrawals

    def withdraw(
        self,
        assets: Decimal,
        receiver: str,
        owner: str,
        allow_partial: bool = False,
        caller: Optional[str] = None,
    ) -> WithdrawalResult:
        """
        Withdraw holding assets by burning owner's shares.

        If holdings plus everything the positions can give still fall
        short, the call fails with InsufficientLiquidityError, or with
        allow_partial pays what is available and burns shares for that
        amount only. A caller other than owner spends owner's allowance.

        Sourcing and payout are separate units of work: once positions
        have been unwound, their proceeds stay booked in holdings even if
        the payout is then refused.
        """
        _check_positive("Withdrawal amount", assets)
        caller = caller or owner
        with self._lock:
            now = self._clock()
            with self._unit_of_work("withdraw") as state:
                if assets > self._ledger.max_withdraw(state, owner, now):
                    raise ValidationError(f"Withdrawal of {assets} exceeds what {owner} owns")
                self._check_allowance(state, owner, caller, self._ledger.preview_withdraw(state, assets, now))
                sourcing = self._sourcer.source(state, assets, now, strict=not allow_partial)

            with self._unit_of_work("withdraw") as state:
                paid = self._payable(state, assets, allow_partial, sourcing)
                shares = self._ledger.preview_withdraw(state, paid, now)
                if shares > state.shares_of(owner):
                    raise ValidationError(
                        f"Withdrawal of {paid} needs {shares} shares after conversion losses; {owner} has "
                        f"{state.shares_of(owner)}"
                    )
                self._spend_allowance(state, owner, caller, shares)
                self._exit(state, owner, receiver, paid, shares)
        logger.info(f"Withdrawal of {paid}/{assets} burned {shares} shares of {owner}")
        return WithdrawalResult(assets=paid, shares=shares, requested_assets=assets, sourcing=sourcing)

    def redeem(
        self,
        shares: Decimal,
        receiver: str,
        owner: str,
        allow_partial: bool = False,
        caller: Optional[str] = None,
    ) -> WithdrawalResult:
        """Burn owner's shares for holding assets; shortfall and allowance handling as in withdraw()."""
        _check_positive("Share amount", shares)
        caller = caller or owner
        with self._lock:
            now = self._clock()
            with self._unit_of_work("redeem") as state:
                if shares > state.shares_of(owner):
                    raise ValidationError(f"Redemption of {shares} shares exceeds what {owner} owns")
                self._check_allowance(state, owner, caller, shares)
                estimate = self._ledger.preview_redeem(state, shares, now)
                if estimate == ZERO:
                    raise ValidationError("Redemption is too small to pay out any assets")
                sourcing = self._sourcer.source(state, estimate, now, strict=not allow_partial)

            with self._unit_of_work("redeem") as state:
                # Re-price after sourcing so conversion losses are reflected
                assets = self._ledger.preview_redeem(state, shares, now)
                if assets == ZERO:
                    raise ValidationError("Redemption is too small to pay out any assets")
                paid = self._payable(state, assets, allow_partial, sourcing)
                burned = shares
                if paid < assets:
                    burned = min(self._ledger.preview_withdraw(state, paid, now), shares)
                self._spend_allowance(state, owner, caller, burned)
                self._exit(state, owner, receiver, paid, burned)
        logger.info(f"Redemption of {burned} shares of {owner} paid {paid}")
        return WithdrawalResult(assets=paid, shares=burned, requested_assets=assets, sourcing=sourcing)

    def _payable(
        self,
        state: VaultState,
        requested: Decimal,
        allow_partial: bool,
        sourcing: SourcingResult,
    ) -> Decimal:
        if requested <= state.liquid_holdings:
            return requested
        if sourcing.failure is not None and not allow_partial:
            raise sourcing.failure
        if not allow_partial or state.liquid_holdings == ZERO:
            raise InsufficientLiquidityError(requested, state.liquid_holdings)
        logger.warning(
            f"Vault {state.vault_id}: partial fill of {state.liquid_holdings} against {requested} requested"
        )
        return state.liquid_holdings

    def _exit(self, state: VaultState, owner: str, receiver: str, assets: Decimal, shares: Decimal) -> None:
        state.share_balances[owner] = checked_sub(state.shares_of(owner), shares, "share balance")
        state.total_shares = checked_sub(state.total_shares, shares, "total shares")
        state.liquid_holdings = checked_sub(state.liquid_holdings, assets, "liquid holdings")
        self._custodian.transfer(state.holding_asset, receiver, assets)

    # Share transfers

    def _check_allowance(self, state: VaultState, owner: str, spender: str, shares: Decimal) -> None:
        if spender == owner:
            return
        allowed = state.allowance(owner, spender)
        if shares > allowed:
            raise InsufficientAllowanceError(owner, spender, shares, allowed)

    def _spend_allowance(self, state: VaultState, owner: str, spender: str, shares: Decimal) -> None:
        """An unlimited approval is never used up."""
        self._check_allowance(state, owner, spender, shares)
        if spender == owner:
            return
        allowed = state.allowance(owner, spender)
        if allowed != UNLIMITED:
            state.allowances[(owner, spender)] = checked_sub(allowed, shares, "allowance")

    def _move_shares(self, state: VaultState, sender: str, recipient: str, shares: Decimal) -> None:
        balance = state.shares_of(sender)
        if shares > balance:
            raise ValidationError(f"Transfer of {shares} shares exceeds the {balance} {sender} holds")
        state.share_balances[sender] = checked_sub(balance, shares, "share balance")
        state.share_balances[recipient] = checked_add(state.shares_of(recipient), shares, "share balance")

    def transfer(self, sender: str, recipient: str, shares: Decimal) -> None:
        """Move shares from sender to recipient."""
        _check_positive("Share amount", shares)
        with self._unit_of_work("transfer") as state:
            self._move_shares(state, sender, recipient, shares)
        logger.info(f"Transferred {shares} shares from {sender} to {recipient}")

    def approve(self, owner: str, spender: str, shares: Decimal) -> None:
        """Let spender move up to `shares` of owner's shares; replaces any earlier approval."""
        if shares < ZERO:
            raise ValidationError("Allowance must not be negative")
        with self._unit_of_work("approve") as state:
            state.allowances[(owner, spender)] = shares
        logger.info(f"{owner} approved {spender} for {shares} shares")

    def transfer_from(self, spender: str, owner: str, recipient: str, shares: Decimal) -> None:
        """Move owner's shares to recipient on spender's allowance."""
        _check_positive("Share amount", shares)
        with self._unit_of_work("transfer_from") as state:
            self._spend_allowance(state, owner, spender, shares)
            self._move_shares(state, owner, recipient, shares)
        logger.info(f"{spender} transferred {shares} shares from {owner} to {recipient}")

    # Configuration

    def set_target_holdings(self, fraction: Decimal) -> None:
        _check_fraction("Target holdings fraction", fraction)
        with self._unit_of_work("set_target_holdings") as state:
            state.target_holdings_fraction = fraction
        logger.info(f"Target holdings of {self._vault_id} set to {fraction}")

    def set_accrual_period(self, seconds: int) -> None:
        """Takes effect at the next accrual."""
        if seconds < 0:
            raise ValidationError(f"Accrual period must not be negative, got {seconds}")
        with self._unit_of_work("set_accrual_period") as state:
            state.pending_accrual_period = seconds
        logger.info(f"Accrual period of {self._vault_id} will become {seconds}s")

    def set_liquidity_limit(self, limit: Decimal) -> None:
        if limit < ZERO:
            raise ValidationError("Liquidity limit must not be negative")
        with self._unit_of_work("set_liquidity_limit") as state:
            state.liquidity_limit = limit

    def set_deposit_limit(self, limit: Decimal) -> None:
        if limit < ZERO:
            raise ValidationError("Deposit limit must not be negative")
        with self._unit_of_work("set_deposit_limit") as state:
            state.deposit_limit = limit

    def remove_liquidity_restriction(self) -> None:
        with self._unit_of_work("remove_liquidity_restriction") as state:
            state.liquidity_limit = None

    def remove_deposit_restriction(self) -> None:
        with self._unit_of_work("remove_deposit_restriction") as state:
            state.deposit_limit = None

    def set_shutdown(self, shutdown: bool, liquidate: bool = False) -> None:
        """
        Halt or resume the vault.

        With liquidate, every position is priced first and then emptied into
        holdings, one committed unit of work per position; positions stay
        listed.
        """
        to_liquidate: list[str] = []
        with self._lock:
            with self._unit_of_work("set_shutdown") as state:
                if shutdown and state.is_shutdown:
                    raise ContractShutdownError("Vault is already shut down")
                if not shutdown and not state.is_shutdown:
                    raise ValidationError("Vault is not shut down")
                state.is_shutdown = shutdown
                if shutdown and liquidate:
                    to_liquidate = self._plan_liquidation(state, self._registry.in_withdrawal_order(state))
            self._liquidate_each(to_liquidate)
        logger.info(f"Vault {self._vault_id} shutdown={shutdown} liquidate={liquidate}")

    def _plan_liquidation(self, state: VaultState, positions: list[Position]) -> list[str]:
        """Price emptying every given position; raises before anything moves."""
        cache = self._router.new_cache()
        for position in positions:
            self._sourcer.plan_liquidation(state, position, cache)
        return [p.position_id for p in positions]

    def _liquidate_each(self, position_ids: list[str]) -> None:
        for position_id in position_ids:
            with self._unit_of_work("liquidate") as state:
                self._sourcer.liquidate_position(state, self._registry.get(state, position_id))

    def set_pause(self, paused: bool) -> None:
        with self._unit_of_work("set_pause") as state:
            state.is_paused = paused
        logger.info(f"Vault {self._vault_id} paused={paused}")

    def set_fees(
        self,
        platform_fee_fraction: Optional[Decimal] = None,
        performance_fee_fraction: Optional[Decimal] = None,
        fee_recipient: Optional[str] = None,
    ) -> None:
        if platform_fee_fraction is not None:
            _check_fraction("Platform fee", platform_fee_fraction)
        if performance_fee_fraction is not None:
            _check_fraction("Performance fee", performance_fee_fraction)
        with self._unit_of_work("set_fees") as state:
            if platform_fee_fraction is not None:
                state.platform_fee_fraction = platform_fee_fraction
            if performance_fee_fraction is not None:
                state.performance_fee_fraction = performance_fee_fraction
            if fee_recipient is not None:
                state.fee_recipient = fee_recipient

    # Accrual and fees

    def accrue(self) -> AccrualResult:
        with self._unit_of_work("accrue") as state:
            return self._accrual.accrue(state, self._clock())

    def transfer_fees(self) -> WithdrawalResult:
        """Redeem the fee account's shares and pay the proceeds to the fee recipient."""
        with self._lock:
            state = self._read()
            if not state.fee_recipient:
                raise ValidationError("No fee recipient configured")
            shares = state.shares_of(state.fee_account)
            if shares == ZERO:
                raise ValidationError("No fee shares to transfer")
            result = self.redeem(shares, state.fee_recipient, state.fee_account)
        logger.info(f"Transferred {result.assets} in fees to {state.fee_recipient}")
        return result

    # Rebalancing

    def rebalance(
        self,
        from_position: Optional[str],
        to_position: Optional[str],
        amount: Decimal,
        min_amount_out: Decimal,
        path: Optional[list[str]] = None,
    ) -> RebalanceResult:
        """
        Move value between positions; None on either side means vault holdings.

        `amount` is in the source side's asset; a path is required whenever
        the two sides hold different assets. Balances, prices and the swap
        quote are all checked before anything leaves the source.
        """
        _check_positive("Rebalance amount", amount)
        if from_position is None and to_position is None:
            raise ValidationError("Rebalance needs at least one position")
        if from_position is not None and from_position == to_position:
            raise ValidationError("Cannot rebalance a position into itself")

        with self._unit_of_work("rebalance") as state:
            if state.is_shutdown:
                raise ContractShutdownError()
            cache = self._router.new_cache()
            source = self._registry.get(state, from_position) if from_position else None
            target = self._registry.get(state, to_position) if to_position else None
            asset_in = source.native_asset if source else state.holding_asset
            asset_out = target.native_asset if target else state.holding_asset
            path = list(path or [])
            if asset_in != asset_out and (len(path) < 2 or path[0] != asset_in or path[-1] != asset_out):
                raise InvalidConversionError(f"Rebalance path {path} must run from {asset_in} to {asset_out}")

            source_adaptor = self._registry.adaptor_for(source) if source else None
            target_adaptor = self._registry.adaptor_for(target) if target else None
            available = (
                source_adaptor.max_withdrawable(state.vault_id) if source_adaptor else state.liquid_holdings
            )
            if amount > available:
                raise InsufficientLiquidityError(amount, available)
            # Warm the cache for both sides so no lookup can fail after the withdrawal
            self._router.exchange_rate(asset_in, state.holding_asset, cache)
            self._router.exchange_rate(asset_out, state.holding_asset, cache)
            expected = amount if asset_in == asset_out else self._swap_router.quote(path, amount)
            if expected < min_amount_out:
                raise SlippageExceededError(expected, min_amount_out)

            if source_adaptor is None:
                state.liquid_holdings = checked_sub(state.liquid_holdings, amount, "liquid holdings")
                withdrawn = amount
            else:
                withdrawn = source_adaptor.withdraw(amount, state.vault_id)
                self._sourcer.release_cached_balance(state, source, withdrawn, cache)

            if asset_in == asset_out:
                amount_out = withdrawn
            else:
                try:
                    amount_out = self._swap_router.convert(path, withdrawn, min_amount_out)
                except CellarError:
                    if source_adaptor is not None:
                        source_adaptor.deposit(withdrawn)
                    raise

            if target_adaptor is None:
                state.liquid_holdings = checked_add(state.liquid_holdings, amount_out, "liquid holdings")
            else:
                target_adaptor.deposit(amount_out)
                target.cached_asset_balance = checked_add(target.cached_asset_balance, amount_out, "cached balance")
                value = self._router.get_value(
                    amount_out, target.native_asset, state.holding_asset, cache, decimals=state.asset_decimals
                )
                state.total_balance = checked_add(state.total_balance, value, "total balance")

        logger.info(
            f"Rebalanced {withdrawn} {asset_in} from {from_position or 'holdings'} "
            f"into {amount_out} {asset_out} at {to_position or 'holdings'}"
        )
        return RebalanceResult(
            amount_in=withdrawn,
            amount_out=amount_out,
            from_position=from_position,
            to_position=to_position,
        )

    # Positions

    def add_position(self, position: Position) -> None:
        with self._unit_of_work("add_position") as state:
            if state.is_shutdown:
                raise ContractShutdownError()
            self._sourcer.check_path(state, position)
            self._registry.add_position(state, position)

    def remove_position(self, position_id: str) -> None:
        with self._unit_of_work("remove_position") as state:
            self._registry.remove_position(state, position_id, self._sourcer.empty_position)

    def set_trust(self, position_id: str, trusted: bool) -> None:
        with self._unit_of_work("set_trust") as state:
            self._registry.set_trust(state, position_id, trusted, self._sourcer.empty_position)

    def set_positions(self, positions: list[Position]) -> None:
        """
        Replace the position list.

        Positions dropped from the list are priced up front, emptied one
        committed unit of work at a time, and only then delisted.
        """
        with self._lock:
            with self._unit_of_work("set_positions") as state:
                if state.is_shutdown:
                    raise ContractShutdownError()
                for position in positions:
                    self._sourcer.check_path(state, position)
                keep = self._registry.check_positions(positions)
                dropped = [p for p in self._registry.in_withdrawal_order(state) if p.position_id not in keep]
                to_liquidate = self._plan_liquidation(state, dropped)
            self._liquidate_each(to_liquidate)
            with self._unit_of_work("set_positions") as state:
                self._registry.set_positions(state, positions, self._sourcer.empty_position)

    # Sweeping

    def sweep(self, asset: str, recipient: str) -> Decimal:
        """Send a stray asset held by the vault wallet to recipient."""
        with self._lock:
            state = self._load()
            protected = {state.holding_asset, state.vault_id} | state.position_assets()
            if asset in protected:
                raise ProtectedAssetSweepError(asset)
            amount = self._custodian.balance_of(asset)
            if amount > ZERO:
                self._custodian.transfer(asset, recipient, amount)
        logger.info(f"Swept {amount} {asset} to {recipient}")
        return amount

    # Queries

    @staticmethod
    def _position_view(position: Position) -> PositionView:
        return PositionView(
            position_id=position.position_id,
            native_asset=position.native_asset,
            is_trusted=position.is_trusted,
            max_slippage_fraction=position.max_slippage_fraction,
            cached_asset_balance=position.cached_asset_balance,
            conversion_path=list(position.conversion_path),
        )

    def positions(self) -> list[PositionView]:
        return [self._position_view(p) for p in self._read().positions]

    def net_assets(self) -> Decimal:
        return self._ledger.net_assets(self._read(), self._clock())

    def total_holdings(self) -> Decimal:
        """Holding assets sitting in the vault, outside any position."""
        return self._read().liquid_holdings

    def locked_yield(self) -> Decimal:
        return self._ledger.locked_yield(self._read(), self._clock())

    def accrual_state(self) -> AccrualState:
        return self._ledger.accrual_state(self._read(), self._clock())

    def balance_of(self, account: str) -> Decimal:
        return self._read().shares_of(account)

    def allowance(self, owner: str, spender: str) -> Decimal:
        return self._read().allowance(owner, spender)

    def total_shares(self) -> Decimal:
        return self._read().total_shares

    def convert_to_shares(self, assets: Decimal) -> Decimal:
        return self._ledger.convert_to_shares(self._read(), assets, self._clock())

    def convert_to_assets(self, shares: Decimal) -> Decimal:
        return self._ledger.convert_to_assets(self._read(), shares, self._clock())

    def preview_deposit(self, assets: Decimal) -> Decimal:
        return self._ledger.preview_deposit(self._read(), assets, self._clock())

    def preview_mint(self, shares: Decimal) -> Decimal:
        return self._ledger.preview_mint(self._read(), shares, self._clock())

    def preview_withdraw(self, assets: Decimal) -> Decimal:
        return self._ledger.preview_withdraw(self._read(), assets, self._clock())

    def preview_redeem(self, shares: Decimal) -> Decimal:
        return self._ledger.preview_redeem(self._read(), shares, self._clock())

    def max_deposit(self, account: str) -> Decimal:
        return self._ledger.max_deposit(self._read(), account, self._clock())

    def max_mint(self, account: str) -> Decimal:
        return self._ledger.max_mint(self._read(), account, self._clock())

    def max_withdraw(self, account: str) -> Decimal:
        return self._ledger.max_withdraw(self._read(), account, self._clock())

    def max_redeem(self, account: str) -> Decimal:
        return self._ledger.max_redeem(self._read(), account)

    def snapshot(self, at: Optional[datetime] = None) -> VaultSnapshot:
        """Ledger read; `at` projects the locked yield release to another moment."""
        state = self._read()
        now = to_utc(at) if at is not None else self._clock()
        return VaultSnapshot(
            vault_id=state.vault_id,
            holding_asset=state.holding_asset,
            total_balance=state.total_balance,
            liquid_holdings=state.liquid_holdings,
            locked_yield=self._ledger.locked_yield(state, now),
            net_assets=self._ledger.net_assets(state, now),
            total_shares=state.total_shares,
            accrual_state=self._ledger.accrual_state(state, now),
            accrual_period=state.accrual_period,
            pending_accrual_period=state.pending_accrual_period,
            last_accrual_time=state.last_accrual_time,
            target_holdings_fraction=state.target_holdings_fraction,
            liquidity_limit=state.liquidity_limit,
            deposit_limit=state.deposit_limit,
            is_shutdown=state.is_shutdown,
            is_paused=state.is_paused,
            positions=[self._position_view(p) for p in state.positions],
            as_of=now,
        )
