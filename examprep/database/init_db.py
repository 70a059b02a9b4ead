"""
Database initialization and connection management.

This module provides functions for:
1. Creating the global async engine and session factory
2. Creating the schema directly or through Alembic migrations
3. Disposing of the connection pool on shutdown
"""

import asyncio
from pathlib import Path
from typing import Optional

from alembic import command
from alembic.config import Config
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.orm import sessionmaker

from examprep.common.db.connection import get_database_settings
from examprep.common.db.session import create_engine, create_session_factory
from examprep.common.logger import app_logger
from examprep.config import Settings
from examprep.database.base import Base

logger = app_logger.getChild("database.init_db")

ALEMBIC_DIR = Path(__file__).resolve().parent.parent / "alembic"

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[sessionmaker] = None


def get_engine() -> AsyncEngine:
    """Get the global async engine instance."""
    if _engine is None:
        raise RuntimeError("Database engine not initialized. Call initialize_database() first.")
    return _engine


def get_session_factory() -> sessionmaker:
    """Get the global session factory."""
    if _session_factory is None:
        raise RuntimeError("Database engine not initialized. Call initialize_database() first.")
    return _session_factory


async def initialize_database(settings: Settings) -> AsyncEngine:
    """
    Initialize the async database engine and session factory.

    Args:
        settings: Application settings

    Returns:
        AsyncEngine instance
    """
    global _engine, _session_factory

    db_settings = get_database_settings(settings)
    database_url = db_settings["database_url"]
    if database_url.startswith("sqlite") and ":///" in database_url:
        database_path = database_url.split(":///", 1)[1]
        if database_path and database_path != ":memory:":
            Path(database_path).parent.mkdir(parents=True, exist_ok=True)

    logger.info(f"Initializing database with URL: {database_url.split('://', 1)[0]}://...")
    _engine = create_engine(database_url, **db_settings["engine_kwargs"])
    _session_factory = create_session_factory(_engine)

    try:
        async with _engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

        if settings.AUTO_MIGRATE:
            await asyncio.to_thread(run_migrations, database_url)
        elif settings.AUTO_CREATE_SCHEMA:
            await create_schema(_engine)
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        await close_database()
        raise

    logger.info("Database engine initialized successfully")
    return _engine


async def create_schema(engine: AsyncEngine) -> None:
    """Create every table known to the ORM that does not exist yet."""
    # Model modules register their tables on import
    from examprep.common.auth import sessions  # noqa: F401
    from examprep.domain.questions import database_models  # noqa: F401
    from examprep.exams import database_models as exam_models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info(f"Schema ready ({len(Base.metadata.tables)} tables)")


def run_migrations(database_url: str, revision: str = "head") -> None:
    """
    Upgrade the database to ``revision`` with Alembic.

    Runs synchronously; the migration environment drives its own event loop,
    so call it from a worker thread when an event loop is already running.
    """
    config = Config()
    config.set_main_option("script_location", str(ALEMBIC_DIR))
    config.set_main_option("sqlalchemy.url", database_url.replace("%", "%%"))
    logger.info(f"Running migrations up to {revision}")
    command.upgrade(config, revision)


async def close_database() -> None:
    """Close the database engine and all connections."""
    global _engine, _session_factory

    if _engine is not None:
        await _engine.dispose()
        logger.info("Database engine closed")
    _engine = None
    _session_factory = None
