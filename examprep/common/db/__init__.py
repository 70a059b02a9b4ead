"""
Database helpers

Engine configuration and the transactional gateway used by repositories.
"""

from examprep.common.db.connection import get_database_settings
from examprep.common.db.session import PersistenceGateway, create_engine, create_session_factory

__all__ = [
    "get_database_settings",
    "PersistenceGateway",
    "create_engine",
    "create_session_factory",
]
