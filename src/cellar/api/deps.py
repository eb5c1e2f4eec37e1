"""Dependency injection for FastAPI."""

from fastapi import Depends
from sqlalchemy.orm import Session

from cellar.app_context import VaultContext, get_vault_context
from cellar.repositories.sqlalchemy.database import get_db
from cellar.services import PriceRouter, VaultService


def get_context() -> VaultContext:
    """Provide the process-wide VaultContext."""
    return get_vault_context()


def get_price_router(
    db: Session = Depends(get_db),
    context: VaultContext = Depends(get_context),
) -> PriceRouter:
    """Provide PriceRouter instance."""
    return context.price_router(db)


def get_vault_service(
    db: Session = Depends(get_db),
    context: VaultContext = Depends(get_context),
) -> VaultService:
    """Provide VaultService instance."""
    return context.vault_service(db)
