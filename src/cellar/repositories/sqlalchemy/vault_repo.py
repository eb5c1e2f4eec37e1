"""SQLAlchemy implementation of VaultStateRepository."""

import json
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from cellar.core.clock import to_utc
from cellar.domain.models import Position, VaultState
from cellar.repositories.sqlalchemy.orm_models import (
    VaultORM,
    PositionORM,
    ShareBalanceORM,
    AllowanceORM,
)


class SqlAlchemyVaultStateRepository:
    """
    SQLAlchemy-backed vault state repository.

    get() always returns a detached copy; nothing the caller does to it
    reaches the database until save().
    """

    def __init__(self, db: Session):
        self._db = db

    def get(self, vault_id: str) -> Optional[VaultState]:
        """Load a detached copy of the vault state."""
        orm_vault = self._db.get(VaultORM, vault_id)
        return self._to_domain(orm_vault) if orm_vault else None

    def save(self, state: VaultState) -> VaultState:
        """Persist the full vault state (ledger, shares, allowances, positions) and commit."""
        orm_vault = self._db.get(VaultORM, state.vault_id)
        if orm_vault is None:
            orm_vault = VaultORM(vault_id=state.vault_id)
            self._db.add(orm_vault)

        orm_vault.holding_asset = state.holding_asset
        orm_vault.asset_decimals = state.asset_decimals
        orm_vault.total_balance = state.total_balance
        orm_vault.liquid_holdings = state.liquid_holdings
        orm_vault.total_shares = state.total_shares
        orm_vault.target_holdings_fraction = state.target_holdings_fraction
        orm_vault.accrual_period = state.accrual_period
        orm_vault.pending_accrual_period = state.pending_accrual_period
        orm_vault.last_accrual_time = to_utc(state.last_accrual_time).replace(tzinfo=None)
        orm_vault.max_locked_yield = state.max_locked_yield
        orm_vault.liquidity_limit = state.liquidity_limit
        orm_vault.deposit_limit = state.deposit_limit
        orm_vault.is_shutdown = state.is_shutdown
        orm_vault.is_paused = state.is_paused
        orm_vault.platform_fee_fraction = state.platform_fee_fraction
        orm_vault.performance_fee_fraction = state.performance_fee_fraction
        orm_vault.fee_recipient = state.fee_recipient

        self._sync_positions(orm_vault, state.positions)
        self._sync_share_balances(orm_vault, state.share_balances)
        self._sync_allowances(orm_vault, state.allowances)

        self._db.commit()
        self._db.refresh(orm_vault)
        return self._to_domain(orm_vault)

    def rollback(self) -> None:
        """Discard anything pending in the current unit of work."""
        self._db.rollback()

    def _sync_positions(self, orm_vault: VaultORM, positions: list[Position]) -> None:
        existing = {p.position_id: p for p in orm_vault.positions}
        rows = []
        for index, position in enumerate(positions):
            row = existing.get(position.position_id)
            if row is None:
                row = PositionORM(vault_id=orm_vault.vault_id, position_id=position.position_id)
            row.sort_index = index
            row.native_asset = position.native_asset
            row.is_trusted = position.is_trusted
            row.max_slippage_fraction = position.max_slippage_fraction
            row.cached_asset_balance = position.cached_asset_balance
            row.conversion_path = json.dumps(position.conversion_path)
            rows.append(row)
        # Rows missing from the new list are deleted as orphans
        orm_vault.positions = rows

    def _sync_share_balances(self, orm_vault: VaultORM, balances: dict[str, Decimal]) -> None:
        existing = {b.account: b for b in orm_vault.share_balances}
        rows = []
        for account, shares in balances.items():
            if shares == Decimal("0"):
                continue
            row = existing.get(account)
            if row is None:
                row = ShareBalanceORM(vault_id=orm_vault.vault_id, account=account)
            row.shares = shares
            rows.append(row)
        orm_vault.share_balances = rows

    def _sync_allowances(self, orm_vault: VaultORM, allowances: dict[tuple[str, str], Decimal]) -> None:
        existing = {(a.owner, a.spender): a for a in orm_vault.allowances}
        rows = []
        for (owner, spender), shares in allowances.items():
            if shares == Decimal("0"):
                continue
            row = existing.get((owner, spender))
            if row is None:
                row = AllowanceORM(vault_id=orm_vault.vault_id, owner=owner, spender=spender)
            row.shares = shares
            rows.append(row)
        orm_vault.allowances = rows

    @staticmethod
    def _to_domain(orm: VaultORM) -> VaultState:
        """Convert ORM vault (with children) to a detached domain model."""
        return VaultState(
            vault_id=orm.vault_id,
            holding_asset=orm.holding_asset,
            last_accrual_time=to_utc(orm.last_accrual_time),
            asset_decimals=orm.asset_decimals,
            total_balance=orm.total_balance,
            liquid_holdings=orm.liquid_holdings,
            total_shares=orm.total_shares,
            share_balances={b.account: b.shares for b in orm.share_balances},
            allowances={(a.owner, a.spender): a.shares for a in orm.allowances},
            target_holdings_fraction=orm.target_holdings_fraction,
            accrual_period=orm.accrual_period,
            pending_accrual_period=orm.pending_accrual_period,
            max_locked_yield=orm.max_locked_yield,
            liquidity_limit=orm.liquidity_limit,
            deposit_limit=orm.deposit_limit,
            is_shutdown=orm.is_shutdown,
            is_paused=orm.is_paused,
            platform_fee_fraction=orm.platform_fee_fraction,
            performance_fee_fraction=orm.performance_fee_fraction,
            fee_recipient=orm.fee_recipient,
            positions=[
                Position(
                    position_id=p.position_id,
                    native_asset=p.native_asset,
                    is_trusted=p.is_trusted,
                    max_slippage_fraction=p.max_slippage_fraction,
                    cached_asset_balance=p.cached_asset_balance,
                    conversion_path=json.loads(p.conversion_path or "[]"),
                )
                for p in orm.positions
            ],
        )
