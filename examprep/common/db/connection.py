"""
Database Connection Settings

Translates application settings into keyword arguments for the async engine.
"""

from typing import Any, Dict, Optional

from examprep.common.exceptions import ConfigurationError
from examprep.config import Settings, settings as default_settings


def get_database_settings(settings: Optional[Settings] = None) -> Dict[str, Any]:
    """
    Build the engine configuration for the configured database.

    Pool options are only passed for server databases; SQLite uses the
    driver defaults.

    Args:
        settings: Settings to read (defaults to the global settings)

    Returns:
        Dictionary with ``database_url`` and ``engine_kwargs``

    Raises:
        ConfigurationError: If no database URL is configured
    """
    settings = settings or default_settings
    database_url = (settings.DATABASE_URL or "").strip()
    if not database_url:
        raise ConfigurationError("DATABASE_URL is not set", config_key="DATABASE_URL")

    engine_kwargs: Dict[str, Any] = {"echo": settings.SQL_ECHO}
    if not database_url.startswith("sqlite"):
        engine_kwargs.update({
            "pool_size": settings.DB_POOL_SIZE,
            "max_overflow": settings.DB_MAX_OVERFLOW,
            "pool_timeout": settings.DB_POOL_TIMEOUT,
            "pool_pre_ping": True,
            "pool_recycle": 300,
        })

    return {"database_url": database_url, "engine_kwargs": engine_kwargs}
