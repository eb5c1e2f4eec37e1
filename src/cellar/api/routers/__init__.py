"""API routers package."""

from cellar.api.routers.vault import router as vault_router
from cellar.api.routers.prices import router as prices_router

__all__ = [
    "vault_router",
    "prices_router",
]
