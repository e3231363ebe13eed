"""Core utilities and configuration."""

from app.core.config import Settings, get_settings
from app.core.database import Base, create_engine_for_url, db_manager
from app.core.logging import (
    db_logger,
    get_logger,
    mask_connection_string,
    setup_logging,
)

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Database
    "Base",
    "create_engine_for_url",
    "db_manager",
    # Logging
    "db_logger",
    "get_logger",
    "mask_connection_string",
    "setup_logging",
]
