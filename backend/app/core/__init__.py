"""Core utilities and configuration."""

from app.core.config import Settings, get_settings
from app.core.database import Base, db_manager, get_session, savepoint
from app.core.logging import (
    autoblog_logger,
    db_logger,
    get_logger,
    openai_logger,
    setup_logging,
)

__all__ = [
    # Config
    "Settings",
    "get_settings",
    # Database
    "Base",
    "db_manager",
    "get_session",
    "savepoint",
    # Logging
    "autoblog_logger",
    "db_logger",
    "get_logger",
    "openai_logger",
    "setup_logging",
]
