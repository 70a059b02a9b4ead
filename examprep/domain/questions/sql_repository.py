"""
SQL Question Repository Module

This module provides the QuestionRepository backed by the question bank tables.
"""

from typing import Callable, List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from examprep.common.exceptions import PersistenceError
from examprep.common.logger import app_logger
from .database_models import CertificationRecord, ProviderRecord, QuestionRecord, TopicRecord
from .model import CertificationInfo, Difficulty, Question, QuestionFilters, order_by_ids
from .repository import QuestionRepository

logger = app_logger.getChild("questions.sql")


def _question_load_options():
    return (
        selectinload(QuestionRecord.options),
        selectinload(QuestionRecord.topic),
        selectinload(QuestionRecord.certification).selectinload(CertificationRecord.provider),
    )


class SqlQuestionRepository(QuestionRepository):
    """
    Question repository reading from the relational question bank.

    Only active questions of active certifications are returned.
    """

    def __init__(self, session_factory: Callable[[], AsyncSession]):
        self._session_factory = session_factory

    async def get_certification(self, provider: str, certification: str) -> Optional[CertificationInfo]:
        stmt = (
            select(CertificationRecord)
            .join(ProviderRecord, CertificationRecord.provider_id == ProviderRecord.id)
            .where(ProviderRecord.code == provider, CertificationRecord.code == certification)
            .options(selectinload(CertificationRecord.provider))
        )
        try:
            async with self._session_factory() as session:
                record = (await session.execute(stmt)).scalar_one_or_none()
                return record.to_info() if record else None
        except SQLAlchemyError as e:
            logger.error(f"Failed to load certification {provider}/{certification}: {e}")
            raise PersistenceError(str(e), original_exception=e) from e

    async def random_questions(self, count: int, filters: QuestionFilters) -> List[Question]:
        stmt = (
            select(QuestionRecord)
            .join(CertificationRecord, QuestionRecord.certification_id == CertificationRecord.id)
            .join(ProviderRecord, CertificationRecord.provider_id == ProviderRecord.id)
            .where(
                ProviderRecord.code == filters.provider,
                CertificationRecord.code == filters.certification,
                CertificationRecord.is_active.is_(True),
                QuestionRecord.is_active.is_(True),
            )
        )
        if filters.category:
            stmt = stmt.join(TopicRecord, QuestionRecord.topic_id == TopicRecord.id).where(
                TopicRecord.name == filters.category
            )
        if filters.difficulty:
            stmt = stmt.where(QuestionRecord.difficulty == Difficulty(filters.difficulty).value)
        stmt = stmt.order_by(func.random()).limit(count).options(*_question_load_options())

        try:
            async with self._session_factory() as session:
                records = (await session.execute(stmt)).scalars().all()
                return [record.to_question() for record in records]
        except SQLAlchemyError as e:
            logger.error(f"Failed to draw questions for {filters}: {e}")
            raise PersistenceError(str(e), original_exception=e) from e

    async def get_many(self, question_ids: List[str]) -> List[Question]:
        if not question_ids:
            return []
        stmt = (
            select(QuestionRecord)
            .where(QuestionRecord.id.in_(question_ids), QuestionRecord.is_active.is_(True))
            .options(*_question_load_options())
        )
        try:
            async with self._session_factory() as session:
                records = (await session.execute(stmt)).scalars().all()
                return order_by_ids((record.to_question() for record in records), question_ids)
        except SQLAlchemyError as e:
            logger.error(f"Failed to load questions {question_ids}: {e}")
            raise PersistenceError(str(e), original_exception=e) from e
