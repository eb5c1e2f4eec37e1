"""Vault state repository protocol."""

from typing import Protocol, Optional

from cellar.domain.models import VaultState


class VaultStateRepository(Protocol):
    """Interface for vault ledger state access."""

    def get(self, vault_id: str) -> Optional[VaultState]:
        """Load a detached copy of the vault state."""
        ...

    def save(self, state: VaultState) -> VaultState:
        """Persist the full vault state (ledger, shares, positions) and commit."""
        ...

    def rollback(self) -> None:
        """Discard anything pending in the current unit of work."""
        ...
