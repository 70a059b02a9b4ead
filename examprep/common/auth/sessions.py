"""
Anonymous Session Registry

Records the session tokens anonymous callers use so their exams can be tied
to a known owner row. Registration is idempotent and tolerates two requests
registering the same token at once.
"""

from typing import Callable

from sqlalchemy import Column, DateTime, String
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from examprep.common.exceptions import PersistenceError
from examprep.common.logger import app_logger
from examprep.common.utils import utcnow
from examprep.database.base import ModelBase

logger = app_logger.getChild("auth.sessions")


class AnonymousSessionRecord(ModelBase):
    """A session token seen from an anonymous caller."""
    __tablename__ = "anonymous_sessions"

    session_id = Column(String(128), primary_key=True)
    first_seen_at = Column(DateTime, nullable=False, default=utcnow)
    last_seen_at = Column(DateTime, nullable=False, default=utcnow)


class AnonymousSessionRegistry:
    """Get-or-create access to ``anonymous_sessions``."""

    def __init__(self, session_factory: Callable[[], AsyncSession],
                 clock: Callable = utcnow):
        self._session_factory = session_factory
        self._clock = clock

    async def ensure(self, session_id: str) -> bool:
        """
        Make sure ``session_id`` is registered.

        A uniqueness violation from a concurrent first use is resolved by
        looking the token up again instead of failing the caller.

        Args:
            session_id: The anonymous session token

        Returns:
            True if this call registered the token, False if it already existed

        Raises:
            PersistenceError: If the registry cannot be read or written
        """
        now = self._clock()
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    record = await session.get(AnonymousSessionRecord, session_id)
                    if record is not None:
                        record.last_seen_at = now
                        return False
                    session.add(AnonymousSessionRecord(
                        session_id=session_id, first_seen_at=now, last_seen_at=now
                    ))
            logger.info(f"Registered anonymous session {session_id[:8]}...")
            return True
        except IntegrityError:
            logger.info(f"Anonymous session {session_id[:8]}... registered concurrently, reusing it")
            return await self._lookup(session_id)
        except SQLAlchemyError as e:
            logger.error(f"Failed to register anonymous session: {e}")
            raise PersistenceError(str(e), original_exception=e) from e

    async def _lookup(self, session_id: str) -> bool:
        try:
            async with self._session_factory() as session:
                record = await session.get(AnonymousSessionRecord, session_id)
        except SQLAlchemyError as e:
            raise PersistenceError(str(e), original_exception=e) from e
        if record is None:
            raise PersistenceError(f"anonymous session {session_id} vanished after a duplicate insert")
        return False
