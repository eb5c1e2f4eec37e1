"""Vault ledger state model."""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional

from cellar.domain.models.position import Position


def _zero() -> Decimal:
    return Decimal("0")


@dataclass
class VaultState:
    """
    Aggregate ledger state of one vault (singleton per vault_id).

    IMPORTANT: services mutate a detached copy loaded for a single unit of
    work; the copy is only persisted once the whole operation succeeds.

    total_balance is the value of all positions in holding-asset terms as of
    the last accrual/transfer; it is never refreshed by a live revaluation.
    """

    vault_id: str
    holding_asset: str
    last_accrual_time: datetime
    asset_decimals: int = 6
    total_balance: Decimal = field(default_factory=_zero)
    liquid_holdings: Decimal = field(default_factory=_zero)
    total_shares: Decimal = field(default_factory=_zero)
    share_balances: dict[str, Decimal] = field(default_factory=dict)
    allowances: dict[tuple[str, str], Decimal] = field(default_factory=dict)
    target_holdings_fraction: Decimal = field(default_factory=_zero)
    accrual_period: int = 0
    pending_accrual_period: Optional[int] = None
    max_locked_yield: Decimal = field(default_factory=_zero)
    liquidity_limit: Optional[Decimal] = None
    deposit_limit: Optional[Decimal] = None
    is_shutdown: bool = False
    is_paused: bool = False
    platform_fee_fraction: Decimal = field(default_factory=_zero)
    performance_fee_fraction: Decimal = field(default_factory=_zero)
    fee_recipient: Optional[str] = None
    positions: list[Position] = field(default_factory=list)

    @property
    def fee_account(self) -> str:
        """Account holding fee shares minted on accrual (the vault itself)."""
        return self.vault_id

    def shares_of(self, account: str) -> Decimal:
        """Share balance of an account."""
        return self.share_balances.get(account, Decimal("0"))

    def allowance(self, owner: str, spender: str) -> Decimal:
        """Shares spender may move out of owner's balance."""
        return self.allowances.get((owner, spender), Decimal("0"))

    def position_assets(self) -> set[str]:
        """Native assets of all listed positions."""
        return {p.native_asset for p in self.positions}
