"""
Unit tests for VaultService.

Tests cover:
- Deposit, mint, withdraw and redeem
- Shutdown, pause and limits
- Withdrawal sourcing (strict vs partial)
- Rebalancing between holdings and positions
- Position management through the vault
- Sweeping stray assets and paying out fees
- Unit-of-work rollback
"""

from decimal import Decimal

import pytest

from cellar.services import VaultService, vault_lock
from cellar.providers import StubPositionAdaptor, StubSwapRouter
from cellar.domain.models import Position
from cellar.core.fixed_point import UNLIMITED
from cellar.core.exceptions import (
    ContractPausedError,
    ContractShutdownError,
    DepositRestrictedError,
    InsufficientAllowanceError,
    InsufficientLiquidityError,
    InvalidConversionError,
    ProtectedAssetSweepError,
    SlippageExceededError,
    ValidationError,
)

from tests.conftest import (
    FEE_RECIPIENT,
    FIXED_DECIMALS,
    FIXED_FEED_ANSWERS,
    TEST_VAULT_ID,
)


class IlliquidAdaptor(StubPositionAdaptor):
    """Reports its whole balance as withdrawable but only pays out up to `liquid`."""

    def __init__(self, asset: str, liquid: str):
        super().__init__(asset)
        self.liquid = Decimal(liquid)

    def withdraw(self, amount: Decimal, recipient: str) -> Decimal:
        paid = min(amount, self.liquid)
        self.liquid -= paid
        return super().withdraw(paid, recipient)


def costly_swap_router(fee_fraction: Decimal) -> StubSwapRouter:
    return StubSwapRouter(
        prices=dict(FIXED_FEED_ANSWERS),
        decimals=dict(FIXED_DECIMALS),
        fee_fraction=fee_fraction,
    )


# =============================================================================
# DEPOSIT / WITHDRAW TESTS
# =============================================================================


class TestDepositAndRedeem:
    """Tests for entering and leaving the vault."""

    def test_deposit_then_redeem_round_trip(self, vault_service: VaultService, custodian):
        """
        GIVEN an empty vault
        WHEN alice deposits 100 and redeems all her shares
        THEN she gets 100 shares, then 100 assets back, and the vault is empty again
        """
        shares = vault_service.deposit(Decimal("100"), "alice")

        assert shares == Decimal("100")
        assert vault_service.balance_of("alice") == Decimal("100")
        assert vault_service.total_holdings() == Decimal("100")
        assert custodian.receipts == [("USDC", "alice", Decimal("100"))]

        result = vault_service.redeem(shares, "alice", "alice")

        assert result.assets == Decimal("100")
        assert result.shares == Decimal("100")
        assert not result.is_partial
        assert vault_service.total_shares() == Decimal("0")
        assert vault_service.net_assets() == Decimal("0")
        assert custodian.transfers == [("USDC", "alice", Decimal("100"))]

    def test_mint_charges_assets(self, vault_service: VaultService):
        vault_service.deposit(Decimal("100"), "alice")

        assets = vault_service.mint(Decimal("50"), "bob")

        assert assets == Decimal("50")
        assert vault_service.balance_of("bob") == Decimal("50")
        assert vault_service.total_shares() == Decimal("150")

    def test_withdraw_to_other_receiver(self, vault_service: VaultService, custodian):
        vault_service.deposit(Decimal("100"), "alice")

        result = vault_service.withdraw(Decimal("40"), "bob", "alice")

        assert result.shares == Decimal("40")
        assert vault_service.balance_of("alice") == Decimal("60")
        assert custodian.transfers == [("USDC", "bob", Decimal("40"))]

    def test_non_positive_amounts_rejected(self, vault_service: VaultService):
        with pytest.raises(ValidationError):
            vault_service.deposit(Decimal("0"), "alice")
        with pytest.raises(ValidationError):
            vault_service.redeem(Decimal("-1"), "alice", "alice")

    def test_cannot_withdraw_more_than_owned(self, vault_service: VaultService):
        vault_service.deposit(Decimal("100"), "alice")

        with pytest.raises(ValidationError):
            vault_service.withdraw(Decimal("101"), "alice", "alice")
        with pytest.raises(ValidationError):
            vault_service.redeem(Decimal("1"), "bob", "bob")

    def test_deposit_after_yield_mints_fewer_shares(self, funded_vault, clock):
        """
        GIVEN 1000 shares over 1000 assets that earned 100 and fully released it
        WHEN bob deposits 110
        THEN he gets 100 shares
        """
        vault, adaptor = funded_vault
        adaptor.simulate_yield(Decimal("0.10"))
        vault.accrue()
        clock.advance(7 * 24 * 3600)

        assert vault.deposit(Decimal("110"), "bob") == Decimal("100")


# =============================================================================
# SHUTDOWN / PAUSE / LIMIT TESTS
# =============================================================================


class TestHaltsAndLimits:
    """Tests for shutdown, pause and deposit limits."""

    def test_shutdown_blocks_deposits_not_exits(self, vault_service: VaultService):
        """
        GIVEN alice holds 100 shares
        WHEN the vault is shut down
        THEN deposits fail but alice can still redeem
        AND shutting down twice fails
        """
        vault_service.deposit(Decimal("100"), "alice")
        vault_service.set_shutdown(True)

        with pytest.raises(ContractShutdownError):
            vault_service.deposit(Decimal("1"), "bob")
        with pytest.raises(ContractShutdownError):
            vault_service.set_shutdown(True)
        assert vault_service.max_deposit("bob") == Decimal("0")

        result = vault_service.redeem(Decimal("100"), "alice", "alice")
        assert result.assets == Decimal("100")

        vault_service.set_shutdown(False)
        vault_service.deposit(Decimal("1"), "bob")

    def test_resume_when_running_fails(self, vault_service: VaultService):
        with pytest.raises(ValidationError):
            vault_service.set_shutdown(False)

    def test_shutdown_with_liquidation(self, funded_vault):
        """
        GIVEN 1000 allocated to one position
        WHEN the vault is shut down with liquidate=True
        THEN the position is emptied into holdings but stays listed
        """
        vault, adaptor = funded_vault

        vault.set_shutdown(True, liquidate=True)

        snapshot = vault.snapshot()
        assert snapshot.is_shutdown
        assert snapshot.liquid_holdings == Decimal("1000")
        assert snapshot.total_balance == Decimal("0")
        assert [p.position_id for p in snapshot.positions] == ["usdc-pool"]
        assert snapshot.positions[0].cached_asset_balance == Decimal("0")
        assert adaptor.max_withdrawable(TEST_VAULT_ID) == Decimal("0")

    def test_liquidation_priced_before_any_position_moves(
        self,
        vault_service: VaultService,
        position_factory,
        feeds,
    ):
        """
        GIVEN a USDC position and a WETH position whose swap route now pays
        less than the oracle floor
        WHEN the vault is shut down with liquidate=True
        THEN SlippageExceededError is raised, neither position is touched
        AND the vault is still running
        """
        vault_service.deposit(Decimal("5000"), "alice")
        usdc = position_factory("usdc-pool")
        vault_service.rebalance(None, "usdc-pool", Decimal("1000"), Decimal("1000"))
        weth = position_factory("weth-pool", "WETH", ["WETH", "USDC"])
        vault_service.rebalance(None, "weth-pool", Decimal("4000"), Decimal("1.9"), ["USDC", "WETH"])
        feeds["WETH"].answer = Decimal("2100")

        with pytest.raises(SlippageExceededError):
            vault_service.set_shutdown(True, liquidate=True)

        assert usdc.withdrawals == []
        assert weth.withdrawals == []
        assert not vault_service.snapshot().is_shutdown
        assert [p.cached_asset_balance for p in vault_service.positions()] == [Decimal("1000"), Decimal("2")]

    def test_pause_blocks_deposits(self, vault_service: VaultService):
        vault_service.set_pause(True)

        with pytest.raises(ContractPausedError):
            vault_service.deposit(Decimal("1"), "alice")

        vault_service.set_pause(False)
        assert vault_service.deposit(Decimal("1"), "alice") == Decimal("1")

    def test_deposit_limit_and_removal(self, vault_service: VaultService, custodian):
        """
        GIVEN a per-account deposit limit of 100
        WHEN alice deposits 150
        THEN DepositRestrictedError is raised and nothing moves
        AND after removing the restriction the deposit succeeds
        """
        vault_service.set_deposit_limit(Decimal("100"))

        with pytest.raises(DepositRestrictedError):
            vault_service.deposit(Decimal("150"), "alice")
        assert custodian.receipts == []
        assert vault_service.total_shares() == Decimal("0")

        vault_service.remove_deposit_restriction()
        assert vault_service.max_deposit("alice") == UNLIMITED
        vault_service.deposit(Decimal("150"), "alice")

    def test_liquidity_limit(self, vault_service: VaultService):
        vault_service.set_liquidity_limit(Decimal("500"))
        vault_service.deposit(Decimal("400"), "alice")

        assert vault_service.max_deposit("bob") == Decimal("100")
        with pytest.raises(DepositRestrictedError):
            vault_service.deposit(Decimal("200"), "bob")

        vault_service.remove_liquidity_restriction()
        vault_service.deposit(Decimal("200"), "bob")

    def test_invalid_configuration_rejected(self, vault_service: VaultService):
        with pytest.raises(ValidationError):
            vault_service.set_target_holdings(Decimal("1.5"))
        with pytest.raises(ValidationError):
            vault_service.set_fees(platform_fee_fraction=Decimal("2"))
        with pytest.raises(ValidationError):
            vault_service.set_accrual_period(-1)
        with pytest.raises(ValidationError):
            vault_service.set_deposit_limit(Decimal("-1"))


# =============================================================================
# WITHDRAWAL SOURCING TESTS
# =============================================================================


class TestWithdrawalSourcing:
    """Tests for withdrawals that need liquidity from positions."""

    def test_buffer_scenario_pulls_from_newest(self, vault_service: VaultService, position_factory):
        """
        GIVEN 100 net assets: holdings 5, A and B at 47.5 each, 5% target holdings
        WHEN alice withdraws 10
        THEN 10 (shortfall 5 + buffer 5) comes from B and holdings end at 5
        """
        vault_service.deposit(Decimal("100"), "alice")
        adaptor_a = position_factory("A")
        adaptor_b = position_factory("B")
        vault_service.rebalance(None, "A", Decimal("47.5"), Decimal("47.5"))
        vault_service.rebalance(None, "B", Decimal("47.5"), Decimal("47.5"))
        vault_service.set_target_holdings(Decimal("0.05"))

        result = vault_service.withdraw(Decimal("10"), "alice", "alice")

        assert result.assets == Decimal("10")
        assert result.shares == Decimal("10")
        assert result.sourcing.visited == ["B"]
        assert adaptor_a.withdrawals == []
        assert adaptor_b.max_withdrawable(TEST_VAULT_ID) == Decimal("37.5")
        assert vault_service.total_holdings() == Decimal("5")
        assert vault_service.net_assets() == Decimal("90")

    def test_withdraw_covered_by_holdings(self, vault_service: VaultService, position_factory):
        vault_service.deposit(Decimal("100"), "alice")
        adaptor = position_factory("A")
        vault_service.rebalance(None, "A", Decimal("50"), Decimal("50"))

        result = vault_service.withdraw(Decimal("50"), "alice", "alice")

        assert result.sourcing.visited == []
        assert adaptor.withdrawals == []

    def test_strict_withdrawal_fails_before_touching_positions(self, funded_vault):
        """
        GIVEN 1000 booked in a position that really holds 400
        WHEN alice withdraws 500 without allow_partial
        THEN InsufficientLiquidityError is raised before anything is withdrawn
        AND the next accrual books the loss, leaving the 400 that is really there
        """
        vault, adaptor = funded_vault
        adaptor.set_balance(Decimal("400"))
        before = vault.snapshot()

        with pytest.raises(InsufficientLiquidityError):
            vault.withdraw(Decimal("500"), "alice", "alice")

        assert adaptor.withdrawals == []
        assert adaptor.max_withdrawable(TEST_VAULT_ID) == Decimal("400")
        after = vault.snapshot()
        assert after.liquid_holdings == before.liquid_holdings
        assert after.total_balance == before.total_balance
        assert vault.balance_of("alice") == Decimal("1000")

        vault.accrue()
        assert vault.net_assets() == Decimal("400")

    def test_refused_payout_keeps_what_was_sourced(self, vault_service: VaultService, registry):
        """
        GIVEN a position holding 1000 that can only pay out 300 right now
        WHEN alice withdraws 500 without allow_partial
        THEN the payout is refused, but the 300 pulled stays booked in holdings
        AND the position's cached balance matches what it still holds
        """
        vault_service.deposit(Decimal("1000"), "alice")
        adaptor = IlliquidAdaptor("USDC", liquid="300")
        registry.register_adaptor("thin", adaptor)
        vault_service.add_position(Position(position_id="thin", native_asset="USDC", is_trusted=True))
        vault_service.rebalance(None, "thin", Decimal("1000"), Decimal("1000"))

        with pytest.raises(InsufficientLiquidityError):
            vault_service.withdraw(Decimal("500"), "alice", "alice")

        snapshot = vault_service.snapshot()
        assert snapshot.liquid_holdings == Decimal("300")
        assert snapshot.positions[0].cached_asset_balance == Decimal("700")
        assert adaptor.max_withdrawable(TEST_VAULT_ID) == Decimal("700")
        assert snapshot.net_assets == Decimal("1000")
        assert vault_service.balance_of("alice") == Decimal("1000")

        vault_service.accrue()
        assert vault_service.net_assets() == Decimal("1000")

    def test_partial_withdrawal_pays_what_is_available(self, funded_vault):
        """
        GIVEN 1000 booked in a position that really holds 400
        WHEN alice withdraws 500 with allow_partial
        THEN 400 is paid and only 400 worth of shares is burned
        """
        vault, adaptor = funded_vault
        adaptor.set_balance(Decimal("400"))

        result = vault.withdraw(Decimal("500"), "alice", "alice", allow_partial=True)

        assert result.assets == Decimal("400")
        assert result.requested_assets == Decimal("500")
        assert result.is_partial
        assert result.shares == Decimal("400")
        assert result.sourcing.uncovered == Decimal("100")
        assert vault.balance_of("alice") == Decimal("600")
        assert vault.total_holdings() == Decimal("0")

    def test_partial_redeem_burns_only_paid_shares(self, funded_vault):
        vault, adaptor = funded_vault
        adaptor.set_balance(Decimal("400"))

        result = vault.redeem(Decimal("500"), "alice", "alice", allow_partial=True)

        assert result.assets == Decimal("400")
        assert result.shares == Decimal("400")
        assert vault.balance_of("alice") == Decimal("600")

    def test_partial_with_nothing_available_still_fails(self, funded_vault):
        vault, adaptor = funded_vault
        adaptor.set_balance(Decimal("0"))

        with pytest.raises(InsufficientLiquidityError):
            vault.withdraw(Decimal("100"), "alice", "alice", allow_partial=True)

    def test_cross_asset_withdrawal(self, vault_service: VaultService, position_factory):
        """
        GIVEN 6000 USDC in holdings and 2 WETH (4000 USDC) in a position
        WHEN alice withdraws 8000
        THEN 1 WETH is swapped back and she receives 8000
        """
        vault_service.deposit(Decimal("10000"), "alice")
        adaptor = position_factory("weth-pool", "WETH", ["WETH", "USDC"])
        vault_service.rebalance(None, "weth-pool", Decimal("4000"), Decimal("1.9"), ["USDC", "WETH"])

        result = vault_service.withdraw(Decimal("8000"), "alice", "alice")

        assert result.assets == Decimal("8000")
        assert result.shares == Decimal("8000")
        assert adaptor.max_withdrawable(TEST_VAULT_ID) == Decimal("1")
        snapshot = vault_service.snapshot()
        assert snapshot.total_balance == Decimal("2000")
        assert snapshot.liquid_holdings == Decimal("0")

    def test_slippage_aborts_withdrawal(self, vault_service: VaultService, vault_factory, position_factory):
        """
        GIVEN a WETH position and a swap router taking a 5% cut
        WHEN a withdrawal needs WETH swapped back with 1% max slippage
        THEN SlippageExceededError is raised from the quote, before any WETH is withdrawn
        """
        vault_service.deposit(Decimal("10000"), "alice")
        adaptor = position_factory("weth-pool", "WETH", ["WETH", "USDC"])
        vault_service.rebalance(None, "weth-pool", Decimal("4000"), Decimal("1.9"), ["USDC", "WETH"])
        router = costly_swap_router(Decimal("0.05"))
        costly = vault_factory(swap=router)
        before = costly.snapshot()

        with pytest.raises(SlippageExceededError):
            costly.withdraw(Decimal("8000"), "alice", "alice")

        assert adaptor.withdrawals == []
        assert router.swaps == []
        after = costly.snapshot()
        assert after.liquid_holdings == before.liquid_holdings
        assert after.total_balance == before.total_balance
        assert after.positions[0].cached_asset_balance == adaptor.max_withdrawable(TEST_VAULT_ID)

    def test_swap_fee_within_tolerance_is_covered(
        self, vault_service: VaultService, vault_factory, position_factory
    ):
        """
        GIVEN 6000 in holdings, 2 WETH in a position and a swap router taking 0.5%
        WHEN alice withdraws 8000 with 1% max slippage on the position
        THEN enough WETH is pulled to cover the swap cost and she receives 8000
        AND the position's cached balance matches what it still holds
        """
        vault_service.deposit(Decimal("10000"), "alice")
        adaptor = position_factory("weth-pool", "WETH", ["WETH", "USDC"])
        vault_service.rebalance(None, "weth-pool", Decimal("4000"), Decimal("1.9"), ["USDC", "WETH"])
        cheap = vault_factory(swap=costly_swap_router(Decimal("0.005")))

        result = cheap.withdraw(Decimal("8000"), "alice", "alice")

        assert result.assets == Decimal("8000")
        assert result.is_partial is False
        assert result.sourcing.visited == ["weth-pool"]
        # The withdrawer bears the swap cost
        assert result.shares > Decimal("8000")
        snapshot = cheap.snapshot()
        assert snapshot.liquid_holdings == Decimal("0")
        live = adaptor.max_withdrawable(TEST_VAULT_ID)
        assert Decimal("0.99") < live < Decimal("1")
        assert snapshot.positions[0].cached_asset_balance == live


# =============================================================================
# REBALANCE TESTS
# =============================================================================


class TestRebalance:
    """Tests for moving value between holdings and positions."""

    @pytest.fixture
    def weth_vault(self, vault_service: VaultService, position_factory):
        vault_service.deposit(Decimal("10000"), "alice")
        adaptor = position_factory("weth-pool", "WETH", ["WETH", "USDC"])
        return vault_service, adaptor

    def test_holdings_into_cross_asset_position(self, weth_vault):
        vault, adaptor = weth_vault

        result = vault.rebalance(None, "weth-pool", Decimal("4000"), Decimal("1.9"), ["USDC", "WETH"])

        assert result.amount_out == Decimal("2")
        assert adaptor.max_withdrawable(TEST_VAULT_ID) == Decimal("2")
        snapshot = vault.snapshot()
        assert snapshot.liquid_holdings == Decimal("6000")
        assert snapshot.total_balance == Decimal("4000")
        assert snapshot.net_assets == Decimal("10000")

    def test_position_back_to_holdings(self, weth_vault):
        vault, _ = weth_vault
        vault.rebalance(None, "weth-pool", Decimal("4000"), Decimal("1.9"), ["USDC", "WETH"])

        result = vault.rebalance("weth-pool", None, Decimal("1"), Decimal("1900"), ["WETH", "USDC"])

        assert result.amount_out == Decimal("2000")
        snapshot = vault.snapshot()
        assert snapshot.liquid_holdings == Decimal("8000")
        assert snapshot.total_balance == Decimal("2000")

    def test_slippage_rolls_back(self, weth_vault):
        vault, _ = weth_vault

        with pytest.raises(SlippageExceededError):
            vault.rebalance(None, "weth-pool", Decimal("4000"), Decimal("3"), ["USDC", "WETH"])

        assert vault.total_holdings() == Decimal("10000")

    def test_slippage_checked_before_position_is_touched(self, weth_vault, swap_router):
        """
        GIVEN 2 WETH in a position
        WHEN I rebalance 1 WETH back to holdings asking for more than it is worth
        THEN SlippageExceededError is raised and the position still holds 2 WETH
        """
        vault, adaptor = weth_vault
        vault.rebalance(None, "weth-pool", Decimal("4000"), Decimal("1.9"), ["USDC", "WETH"])
        swaps_before = len(swap_router.swaps)

        with pytest.raises(SlippageExceededError):
            vault.rebalance("weth-pool", None, Decimal("1"), Decimal("2100"), ["WETH", "USDC"])

        assert adaptor.withdrawals == []
        assert adaptor.max_withdrawable(TEST_VAULT_ID) == Decimal("2")
        assert len(swap_router.swaps) == swaps_before
        assert vault.positions()[0].cached_asset_balance == Decimal("2")

    def test_more_than_position_holds(self, weth_vault):
        vault, adaptor = weth_vault
        vault.rebalance(None, "weth-pool", Decimal("4000"), Decimal("1.9"), ["USDC", "WETH"])

        with pytest.raises(InsufficientLiquidityError):
            vault.rebalance("weth-pool", None, Decimal("3"), Decimal("0"), ["WETH", "USDC"])

        assert adaptor.max_withdrawable(TEST_VAULT_ID) == Decimal("2")

    def test_path_must_match_sides(self, weth_vault):
        vault, _ = weth_vault

        with pytest.raises(InvalidConversionError):
            vault.rebalance(None, "weth-pool", Decimal("4000"), Decimal("0"), ["USDC", "DAI"])

    def test_same_asset_below_minimum(self, vault_service: VaultService, position_factory):
        vault_service.deposit(Decimal("100"), "alice")
        position_factory("A")

        with pytest.raises(SlippageExceededError):
            vault_service.rebalance(None, "A", Decimal("50"), Decimal("51"))

    def test_more_than_holdings(self, vault_service: VaultService, position_factory):
        vault_service.deposit(Decimal("100"), "alice")
        position_factory("A")

        with pytest.raises(InsufficientLiquidityError):
            vault_service.rebalance(None, "A", Decimal("101"), Decimal("0"))

    def test_needs_a_position(self, vault_service: VaultService):
        with pytest.raises(ValidationError):
            vault_service.rebalance(None, None, Decimal("1"), Decimal("0"))


# =============================================================================
# POSITION MANAGEMENT TESTS
# =============================================================================


class TestPositionManagement:
    """Tests for listing and delisting positions through the vault."""

    def test_remove_position_returns_funds_to_holdings(self, funded_vault):
        vault, _ = funded_vault

        vault.remove_position("usdc-pool")

        snapshot = vault.snapshot()
        assert snapshot.positions == []
        assert snapshot.liquid_holdings == Decimal("1000")
        assert snapshot.total_balance == Decimal("0")
        assert snapshot.net_assets == Decimal("1000")

    def test_untrusting_removes_position(self, funded_vault):
        vault, _ = funded_vault

        vault.set_trust("usdc-pool", False)

        assert vault.positions() == []
        assert vault.total_holdings() == Decimal("1000")

    def test_set_positions_replaces_list(self, vault_service: VaultService, position_factory, registry):
        """
        GIVEN A holding 600 and B holding 300
        WHEN I replace the list with [B, C]
        THEN A is emptied into holdings, B keeps 300 and C is new
        """
        vault_service.deposit(Decimal("1000"), "alice")
        position_factory("A")
        position_factory("B")
        vault_service.rebalance(None, "A", Decimal("600"), Decimal("600"))
        vault_service.rebalance(None, "B", Decimal("300"), Decimal("300"))
        registry.register_adaptor("C", StubPositionAdaptor("USDC"))

        vault_service.set_positions([
            Position(position_id="B", native_asset="USDC", is_trusted=True),
            Position(position_id="C", native_asset="USDC", is_trusted=True),
        ])

        positions = vault_service.positions()
        assert [p.position_id for p in positions] == ["B", "C"]
        assert positions[0].cached_asset_balance == Decimal("300")
        assert positions[1].cached_asset_balance == Decimal("0")
        assert vault_service.total_holdings() == Decimal("700")

    def test_shutdown_blocks_new_positions(self, vault_service: VaultService, registry):
        vault_service.set_shutdown(True)
        registry.register_adaptor("A", StubPositionAdaptor("USDC"))

        with pytest.raises(ContractShutdownError):
            vault_service.add_position(Position(position_id="A", native_asset="USDC", is_trusted=True))

    def test_add_position_with_wrong_path(self, vault_service: VaultService, registry):
        registry.register_adaptor("W", StubPositionAdaptor("WETH"))

        with pytest.raises(InvalidConversionError):
            vault_service.add_position(
                Position(position_id="W", native_asset="WETH", is_trusted=True, conversion_path=["WETH", "DAI"])
            )

        assert vault_service.positions() == []


# =============================================================================
# SWEEP AND FEE TRANSFER TESTS
# =============================================================================


class TestSweepAndFees:
    """Tests for sweep and transfer_fees."""

    def test_sweep_stray_asset(self, vault_service: VaultService, custodian):
        custodian.credit("COMP", Decimal("5"))

        swept = vault_service.sweep("COMP", FEE_RECIPIENT)

        assert swept == Decimal("5")
        assert custodian.transfers[-1] == ("COMP", FEE_RECIPIENT, Decimal("5"))
        assert custodian.balance_of("COMP") == Decimal("0")

    @pytest.mark.parametrize("asset", ["USDC", "WETH", TEST_VAULT_ID])
    def test_protected_assets_cannot_be_swept(self, vault_service: VaultService, position_factory, asset):
        """
        GIVEN a WETH position listed
        WHEN I sweep the holding asset, a position asset or the share token
        THEN ProtectedAssetSweepError is raised
        """
        position_factory("weth-pool", "WETH", ["WETH", "USDC"])

        with pytest.raises(ProtectedAssetSweepError):
            vault_service.sweep(asset, FEE_RECIPIENT)

    def test_transfer_fees_pays_recipient(self, funded_vault, custodian):
        """
        GIVEN 10 fee shares minted from a 10% performance fee on 100 of yield
        WHEN I transfer fees
        THEN the recipient receives 10 and the fee account is empty
        """
        vault, adaptor = funded_vault
        vault.set_fees(performance_fee_fraction=Decimal("0.1"))
        adaptor.simulate_yield(Decimal("0.10"))
        vault.accrue()

        result = vault.transfer_fees()

        assert result.assets == Decimal("10")
        assert result.shares == Decimal("10")
        assert custodian.transfers[-1] == ("USDC", FEE_RECIPIENT, Decimal("10"))
        assert vault.balance_of(TEST_VAULT_ID) == Decimal("0")

    def test_transfer_fees_without_fees(self, vault_service: VaultService):
        with pytest.raises(ValidationError):
            vault_service.transfer_fees()


# =============================================================================
# SHARE TRANSFER TESTS
# =============================================================================


class TestShareTransfers:
    """Tests for transfer, approve and transfer_from, and allowances on withdrawals."""

    def test_transfer_swaps_balances(self, vault_service: VaultService):
        """
        GIVEN alice with 100 shares and bob with 40
        WHEN each sends their whole balance to the other through carol
        THEN the balances are swapped and total shares are unchanged
        """
        vault_service.deposit(Decimal("100"), "alice")
        vault_service.deposit(Decimal("40"), "bob")

        vault_service.transfer("alice", "carol", Decimal("100"))
        vault_service.transfer("bob", "alice", Decimal("40"))
        vault_service.transfer("carol", "bob", Decimal("100"))

        assert vault_service.balance_of("alice") == Decimal("40")
        assert vault_service.balance_of("bob") == Decimal("100")
        assert vault_service.balance_of("carol") == Decimal("0")
        assert vault_service.total_shares() == Decimal("140")

    def test_transfer_more_than_held(self, vault_service: VaultService):
        vault_service.deposit(Decimal("10"), "alice")

        with pytest.raises(ValidationError):
            vault_service.transfer("alice", "bob", Decimal("11"))

        assert vault_service.balance_of("alice") == Decimal("10")

    def test_transfer_from_needs_approval(self, vault_service: VaultService):
        """
        GIVEN alice with 100 shares and no approvals
        WHEN bob moves her shares, then again after she approves him for 100
        THEN the first call fails, the second moves them and uses up the allowance
        """
        vault_service.deposit(Decimal("100"), "alice")

        with pytest.raises(InsufficientAllowanceError):
            vault_service.transfer_from("bob", "alice", "carol", Decimal("100"))

        vault_service.approve("alice", "bob", Decimal("100"))
        vault_service.transfer_from("bob", "alice", "carol", Decimal("100"))

        assert vault_service.balance_of("carol") == Decimal("100")
        assert vault_service.balance_of("alice") == Decimal("0")
        assert vault_service.allowance("alice", "bob") == Decimal("0")
        with pytest.raises(InsufficientAllowanceError):
            vault_service.transfer_from("bob", "carol", "alice", Decimal("100"))

    def test_unlimited_approval_is_not_used_up(self, vault_service: VaultService):
        vault_service.deposit(Decimal("100"), "alice")
        vault_service.approve("alice", "bob", UNLIMITED)

        vault_service.transfer_from("bob", "alice", "carol", Decimal("60"))

        assert vault_service.allowance("alice", "bob") == UNLIMITED

    def test_negative_approval_rejected(self, vault_service: VaultService):
        with pytest.raises(ValidationError):
            vault_service.approve("alice", "bob", Decimal("-1"))

    def test_withdraw_by_another_caller_spends_allowance(self, vault_service: VaultService, custodian):
        """
        GIVEN alice with 100 shares who approved bob for 30
        WHEN bob withdraws 40 of her assets, then 30
        THEN the first call fails and the second pays bob and spends the allowance
        """
        vault_service.deposit(Decimal("100"), "alice")
        vault_service.approve("alice", "bob", Decimal("30"))

        with pytest.raises(InsufficientAllowanceError):
            vault_service.withdraw(Decimal("40"), "bob", "alice", caller="bob")

        vault_service.withdraw(Decimal("30"), "bob", "alice", caller="bob")

        assert vault_service.balance_of("alice") == Decimal("70")
        assert vault_service.allowance("alice", "bob") == Decimal("0")
        assert custodian.transfers[-1] == ("USDC", "bob", Decimal("30"))

    def test_redeem_by_another_caller_needs_allowance(self, vault_service: VaultService):
        vault_service.deposit(Decimal("100"), "alice")

        with pytest.raises(InsufficientAllowanceError):
            vault_service.redeem(Decimal("10"), "bob", "alice", caller="bob")

        vault_service.approve("alice", "bob", Decimal("25"))
        result = vault_service.redeem(Decimal("10"), "bob", "alice", caller="bob")

        assert result.assets == Decimal("10")
        assert vault_service.allowance("alice", "bob") == Decimal("15")


# =============================================================================
# LOCKING TESTS
# =============================================================================


class TestVaultLock:
    """Tests for the per-vault lock registry."""

    def test_same_vault_shares_one_lock(self):
        assert vault_lock("a") is vault_lock("a")
        assert vault_lock("a") is not vault_lock("b")
