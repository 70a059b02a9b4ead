"""
Database Session Management

This module provides the async engine and session factory helpers, and the
``PersistenceGateway`` through which every unit of work runs: one session,
one transaction, committed when the work returns and rolled back when it raises.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Generic, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from examprep.common.exceptions import PersistenceError
from examprep.common.logger import app_logger

logger = app_logger.getChild("db.session")

H = TypeVar("H")
R = TypeVar("R")


def create_engine(database_url: str, **engine_kwargs: Any) -> AsyncEngine:
    """Create the async engine for ``database_url``."""
    return create_async_engine(database_url, **engine_kwargs)


def create_session_factory(engine: AsyncEngine) -> sessionmaker:
    """
    Create the session factory bound to ``engine``.

    Objects stay usable after commit so aggregates can be returned to callers.
    """
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class PersistenceGateway(Generic[H]):
    """
    Transactional gateway.

    Work runs against a handle built from the transaction's session by
    ``handle_factory`` (for example a repository class). Database failures
    surface as ``PersistenceError``; any other exception is re-raised unchanged
    after the rollback. Nothing is retried here.

    Examples:
        gateway = PersistenceGateway(session_factory, ExamRepository)

        async with gateway.transaction() as exams:
            exam = await exams.get(exam_id, for_update=True)

        page, total = await gateway.run_transaction(lambda exams: exams.list_for_owner(identity))
    """

    def __init__(self, session_factory: Callable[[], AsyncSession],
                 handle_factory: Callable[[AsyncSession], H]):
        self._session_factory = session_factory
        self._handle_factory = handle_factory

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[H]:
        """Provide a transactional scope around a series of operations."""
        session = self._session_factory()
        try:
            async with session.begin():
                yield self._handle_factory(session)
        except SQLAlchemyError as e:
            logger.error(f"Transaction failed: {e}")
            raise PersistenceError(str(e), original_exception=e) from e
        finally:
            await session.close()

    async def run_transaction(self, fn: Callable[[H], Awaitable[R]]) -> R:
        """
        Execute ``fn`` inside a single transaction.

        Args:
            fn: Coroutine function receiving the transaction handle

        Returns:
            Whatever ``fn`` returns

        Raises:
            PersistenceError: If the transaction could not be committed
        """
        async with self.transaction() as handle:
            return await fn(handle)
