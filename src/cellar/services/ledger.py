"""Accounting ledger: net asset value, share conversions and deposit limits."""

from datetime import datetime
from decimal import Decimal

from cellar.core.clock import elapsed_seconds
from cellar.core.exceptions import (
    ContractPausedError,
    ContractShutdownError,
    DepositRestrictedError,
)
from cellar.core.fixed_point import (
    SHARE_DECIMALS,
    UNLIMITED,
    ZERO,
    checked_add,
    checked_sub,
    floor_sub,
    mul_div,
    quantize,
)
from cellar.domain.models import AccrualState, VaultState


class AccountingLedger:
    """
    Pure queries over a VaultState at a given instant.

    Nothing here calls out to positions or price sources; every figure is
    derived from ledger fields alone:

        net_assets = total_balance - locked_yield + liquid_holdings

    Conversions are 1:1 while no shares exist. Conversions in the
    vault's favour (mint, withdraw previews) round up; the rest round down.
    """

    # Yield smoothing

    def locked_yield(self, state: VaultState, now: datetime) -> Decimal:
        """Yield not yet released: decays linearly to exactly 0 at last_accrual_time + accrual_period."""
        period = state.accrual_period
        if period <= 0 or state.max_locked_yield == ZERO:
            return ZERO
        elapsed = elapsed_seconds(state.last_accrual_time, now)
        if elapsed >= period:
            return ZERO
        return mul_div(
            state.max_locked_yield,
            Decimal(period - elapsed),
            Decimal(period),
            state.asset_decimals,
            round_up=True,
            what="locked yield",
        )

    def accrual_state(self, state: VaultState, now: datetime) -> AccrualState:
        if self.locked_yield(state, now) > ZERO:
            return AccrualState.ACCRUING
        return AccrualState.IDLE

    def net_assets(self, state: VaultState, now: datetime) -> Decimal:
        gross = checked_add(state.total_balance, state.liquid_holdings, "gross assets")
        return checked_sub(gross, self.locked_yield(state, now), "net assets")

    # Conversions

    def convert_to_shares(
        self,
        state: VaultState,
        assets: Decimal,
        now: datetime,
        round_up: bool = False,
    ) -> Decimal:
        if state.total_shares == ZERO:
            return quantize(assets, SHARE_DECIMALS)
        return mul_div(
            assets,
            state.total_shares,
            self.net_assets(state, now),
            SHARE_DECIMALS,
            round_up=round_up,
            what="shares for assets",
        )

    def convert_to_assets(
        self,
        state: VaultState,
        shares: Decimal,
        now: datetime,
        round_up: bool = False,
    ) -> Decimal:
        if state.total_shares == ZERO:
            return quantize(shares, state.asset_decimals)
        return mul_div(
            shares,
            self.net_assets(state, now),
            state.total_shares,
            state.asset_decimals,
            round_up=round_up,
            what="assets for shares",
        )

    def preview_deposit(self, state: VaultState, assets: Decimal, now: datetime) -> Decimal:
        return self.convert_to_shares(state, assets, now)

    def preview_mint(self, state: VaultState, shares: Decimal, now: datetime) -> Decimal:
        return self.convert_to_assets(state, shares, now, round_up=True)

    def preview_withdraw(self, state: VaultState, assets: Decimal, now: datetime) -> Decimal:
        return self.convert_to_shares(state, assets, now, round_up=True)

    def preview_redeem(self, state: VaultState, shares: Decimal, now: datetime) -> Decimal:
        return self.convert_to_assets(state, shares, now)

    # Limits

    def max_deposit(self, state: VaultState, account: str, now: datetime) -> Decimal:
        """
        Largest deposit account may make right now.

        0 while shut down or paused, UNLIMITED with no limits set, otherwise
        the tighter of the per-account deposit limit (less what the account
        could already withdraw) and the vault-wide liquidity limit (less net
        assets), each floored at 0.
        """
        if state.is_shutdown or state.is_paused:
            return ZERO
        if state.deposit_limit is None and state.liquidity_limit is None:
            return UNLIMITED

        by_deposit = UNLIMITED
        if state.deposit_limit is not None:
            by_deposit = floor_sub(state.deposit_limit, self.max_withdraw(state, account, now))

        by_liquidity = UNLIMITED
        if state.liquidity_limit is not None:
            by_liquidity = floor_sub(state.liquidity_limit, self.net_assets(state, now))

        return min(by_deposit, by_liquidity)

    def max_mint(self, state: VaultState, account: str, now: datetime) -> Decimal:
        assets = self.max_deposit(state, account, now)
        if assets == UNLIMITED:
            return UNLIMITED
        return self.convert_to_shares(state, assets, now)

    def max_withdraw(self, state: VaultState, account: str, now: datetime) -> Decimal:
        return self.convert_to_assets(state, state.shares_of(account), now)

    def max_redeem(self, state: VaultState, account: str) -> Decimal:
        return state.shares_of(account)

    def before_deposit(self, state: VaultState, account: str, assets: Decimal, now: datetime) -> None:
        """Reject a deposit the vault cannot take."""
        if state.is_shutdown:
            raise ContractShutdownError()
        if state.is_paused:
            raise ContractPausedError()
        limit = self.max_deposit(state, account, now)
        if assets > limit:
            raise DepositRestrictedError(assets, limit)
