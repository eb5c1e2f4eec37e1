"""Vault settings and configuration."""

from decimal import Decimal
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Vault configuration loaded from environment variables (CELLAR_*)."""

    model_config = SettingsConfigDict(
        env_prefix="CELLAR_",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Cellar Vault"
    app_version: str = "0.1.0"

    database_url: str = "sqlite:///./cellar.db"
    log_level: str = "INFO"

    # Vault defaults (used when a vault row is first created)
    vault_id: str = "cellar"
    holding_asset: str = "USDC"
    asset_decimals: int = 6
    target_holdings_fraction: Decimal = Decimal("0.05")
    accrual_period_seconds: int = 7 * 24 * 3600
    platform_fee_fraction: Decimal = Decimal("0.01")
    performance_fee_fraction: Decimal = Decimal("0.10")
    fee_recipient: str = "fee-recipient"
    seconds_per_year: int = 365 * 24 * 3600
    liquidity_limit: Optional[Decimal] = None
    deposit_limit: Optional[Decimal] = None

    # Price router
    price_cache_capacity: int = 8
    price_cache_max_bits: int = 96
    feed_bounds_margin: Decimal = Decimal("0.10")
    default_max_staleness_seconds: int = 24 * 3600
    price_sanity_tolerance: Decimal = Decimal("0.02")


# Global settings instance (can be replaced at runtime)
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Return the current settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def set_settings(settings: Settings) -> None:
    """Set the global settings instance."""
    global _settings
    _settings = settings


def reset_settings() -> None:
    """Reset settings to force reload."""
    global _settings
    _settings = None
