"""Logging configuration."""

import logging
import sys
from typing import Optional

from cellar.config.settings import get_settings


def setup_logging(level: Optional[str] = None) -> None:
    """Configure logging for the vault service; `level` overrides the configured log level."""
    settings = get_settings()
    level_name = (level or settings.log_level).upper()

    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    # Ledger and oracle messages carry the detail; keep library chatter down
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
