"""SQLAlchemy repository implementations."""

from cellar.repositories.sqlalchemy.database import (
    get_engine,
    get_session_factory,
    get_db,
    get_session,
    init_db,
    reset_database,
    Base,
)
from cellar.repositories.sqlalchemy.vault_repo import SqlAlchemyVaultStateRepository
from cellar.repositories.sqlalchemy.price_source_repo import SqlAlchemyPriceSourceRepository

__all__ = [
    "get_engine",
    "get_session_factory",
    "get_db",
    "get_session",
    "init_db",
    "reset_database",
    "Base",
    "SqlAlchemyVaultStateRepository",
    "SqlAlchemyPriceSourceRepository",
]
