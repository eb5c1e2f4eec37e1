"""Ordered registry of the vault's trusted positions."""

import logging
from typing import Callable, Optional

from cellar.core.exceptions import NotFoundError, UntrustedPositionError, ValidationError
from cellar.core.fixed_point import ZERO
from cellar.domain.models import Position, VaultState
from cellar.providers.position_adaptor import PositionAdaptor

logger = logging.getLogger(__name__)

# Converts a position's whole balance back into holdings
EmptyPosition = Callable[[VaultState, Position], None]


class PositionRegistry:
    """
    Manages the append-ordered position list of a vault state.

    Registration order matters: withdrawals unwind positions newest first,
    so removal always shifts later entries left instead of swapping.
    """

    def __init__(self, adaptors: Optional[dict[str, PositionAdaptor]] = None):
        self._adaptors: dict[str, PositionAdaptor] = adaptors if adaptors is not None else {}

    def register_adaptor(self, position_id: str, adaptor: PositionAdaptor) -> None:
        self._adaptors[position_id] = adaptor

    def adaptor_for(self, position: Position) -> PositionAdaptor:
        adaptor = self._adaptors.get(position.position_id)
        if adaptor is None:
            raise NotFoundError("Position adaptor", position.position_id)
        return adaptor

    def get(self, state: VaultState, position_id: str) -> Position:
        return state.positions[self.index_of(state, position_id)]

    def index_of(self, state: VaultState, position_id: str) -> int:
        for index, position in enumerate(state.positions):
            if position.position_id == position_id:
                return index
        raise NotFoundError("Position", position_id)

    def find(self, state: VaultState, position_id: str) -> Optional[Position]:
        for position in state.positions:
            if position.position_id == position_id:
                return position
        return None

    def _check_adaptor(self, position: Position) -> None:
        native = self.adaptor_for(position).native_asset()
        if native != position.native_asset:
            raise ValidationError(
                f"Position {position.position_id} holds {native}, not {position.native_asset}"
            )

    def in_withdrawal_order(self, state: VaultState) -> list[Position]:
        """Positions newest first."""
        return list(reversed(state.positions))

    def add_position(self, state: VaultState, position: Position) -> None:
        if not position.is_trusted:
            raise UntrustedPositionError(position.position_id)
        if self.find(state, position.position_id) is not None:
            raise ValidationError(f"Position already listed: {position.position_id}")
        self._check_adaptor(position)
        # Balance already sitting in the position is recognised at the next accrual
        position.cached_asset_balance = ZERO
        state.positions.append(position)
        logger.info(f"Position {position.position_id} added at index {len(state.positions) - 1}")

    def remove_position(self, state: VaultState, position_id: str, empty: EmptyPosition) -> Position:
        """Empty a position into holdings, then drop it keeping the order of the rest."""
        index = self.index_of(state, position_id)
        position = state.positions[index]
        empty(state, position)
        del state.positions[index]
        logger.info(f"Position {position_id} removed from index {index}")
        return position

    def set_trust(
        self,
        state: VaultState,
        position_id: str,
        trusted: bool,
        empty: EmptyPosition,
    ) -> None:
        """Distrusting a listed position removes it."""
        position = self.get(state, position_id)
        if trusted:
            position.is_trusted = True
            return
        position.is_trusted = False
        self.remove_position(state, position_id, empty)

    def check_positions(self, positions: list[Position]) -> set[str]:
        """Validate a replacement list; returns its position ids."""
        seen: set[str] = set()
        for position in positions:
            if not position.is_trusted:
                raise UntrustedPositionError(position.position_id)
            if position.position_id in seen:
                raise ValidationError(f"Position listed twice: {position.position_id}")
            seen.add(position.position_id)
            self._check_adaptor(position)
        return seen

    def set_positions(self, state: VaultState, positions: list[Position], empty: EmptyPosition) -> None:
        """
        Replace the whole position list.

        Every incoming entry must be trusted and unique; the list is checked
        before anything is emptied or replaced.
        """
        seen = self.check_positions(positions)

        for existing in list(state.positions):
            if existing.position_id not in seen:
                empty(state, existing)

        current = {p.position_id: p for p in state.positions}
        replacement = []
        for position in positions:
            survivor = current.get(position.position_id)
            if survivor is not None:
                position.cached_asset_balance = survivor.cached_asset_balance
            else:
                position.cached_asset_balance = ZERO
            replacement.append(position)
        state.positions = replacement
        logger.info(f"Position list replaced: {[p.position_id for p in replacement]}")
