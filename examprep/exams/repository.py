"""
Exam Repository

Maps exam session aggregates to and from the exam tables. A repository is bound
to the session of one transaction; it is handed out by the persistence gateway
and never commits on its own.
"""

from typing import List, Optional, Tuple

from sqlalchemy import delete, false, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from examprep.common.auth.identity import AnonymousIdentity, Identity, UserIdentity
from examprep.common.exceptions import NotFoundError
from examprep.common.logger import app_logger
from examprep.common.utils import utcnow
from examprep.domain.questions.model import Question
from examprep.exams.answers import answer_from_storage, answer_to_storage
from examprep.exams.database_models import ExamAnswerRecord, ExamQuestionRecord, ExamRecord
from examprep.exams.models import AnswerOutcome, ExamMode, ExamSession, ExamSettings, ExamStatus

logger = app_logger.getChild("exams.repository")


def _owner_columns(owner: Identity) -> dict:
    if isinstance(owner, UserIdentity):
        return {"user_id": owner.user_id, "session_id": None}
    return {"user_id": None, "session_id": owner.session_id}


def _owner_clause(owner: Identity):
    if isinstance(owner, UserIdentity):
        return ExamRecord.user_id == owner.user_id
    return ExamRecord.session_id == owner.session_id


def _to_session(record: ExamRecord) -> ExamSession:
    """Rebuild the aggregate from a record with its questions and answers loaded."""
    if record.user_id is not None:
        owner: Identity = UserIdentity(record.user_id)
    else:
        owner = AnonymousIdentity(record.session_id)

    return ExamSession(
        exam_id=record.id,
        owner=owner,
        provider=record.provider,
        certification=record.certification,
        questions=tuple(Question.from_dict(q.snapshot) for q in record.questions),
        title=record.title,
        description=record.description or "",
        mode=ExamMode(record.mode),
        settings=ExamSettings.from_dict(record.settings),
        time_limit_minutes=record.time_limit_minutes,
        passing_score=record.passing_score,
        status=ExamStatus(record.status),
        answers={
            a.question_id: answer_from_storage(a.answer_kind, a.selected_options)
            for a in record.answers
        },
        time_spent_minutes=record.time_spent_minutes or 0,
        score=record.score,
        passed=bool(record.passed),
        correct_answers=record.correct_answers or 0,
        incorrect_answers=record.incorrect_answers or 0,
        created_at=record.created_at,
        updated_at=record.updated_at,
        started_at=record.started_at,
        completed_at=record.completed_at,
    )


def _state_columns(exam: ExamSession) -> dict:
    """Columns that change over the exam's lifetime."""
    return {
        "status": exam.status.value,
        "time_spent_minutes": exam.time_spent_minutes,
        "score": exam.score,
        "passed": exam.passed,
        "correct_answers": exam.correct_answers,
        "incorrect_answers": exam.incorrect_answers,
        "updated_at": exam.updated_at,
        "started_at": exam.started_at,
        "completed_at": exam.completed_at,
    }


class ExamRepository:
    """Exam persistence within one transaction."""

    def __init__(self, session: AsyncSession):
        self._session = session

    @property
    def session(self) -> AsyncSession:
        return self._session

    async def add(self, exam: ExamSession) -> None:
        """Insert a new exam together with its question snapshot."""
        record = ExamRecord(
            id=exam.exam_id,
            provider=exam.provider,
            certification=exam.certification,
            title=exam.title,
            description=exam.description,
            mode=exam.mode.value,
            settings=exam.settings.to_dict(),
            time_limit_minutes=exam.time_limit_minutes,
            passing_score=exam.passing_score,
            created_at=exam.created_at,
            **_owner_columns(exam.owner),
            **_state_columns(exam),
        )
        record.questions = [
            ExamQuestionRecord(position=position, question_id=question.question_id,
                               snapshot=question.to_dict(include_answers=True))
            for position, question in enumerate(exam.questions)
        ]
        self._session.add(record)
        await self._session.flush()
        logger.debug(f"Inserted exam {exam.exam_id} with {exam.total_questions} questions")

    async def get(self, exam_id: str, for_update: bool = False) -> Optional[ExamSession]:
        """
        Load an exam.

        Args:
            exam_id: Exam identifier
            for_update: Lock the exam row until the transaction ends

        Returns:
            The exam, or None if it does not exist
        """
        record = await self._load(exam_id, for_update)
        return _to_session(record) if record else None

    async def _load(self, exam_id: str, for_update: bool = False) -> Optional[ExamRecord]:
        stmt = (
            select(ExamRecord)
            .where(ExamRecord.id == exam_id)
            .options(selectinload(ExamRecord.questions), selectinload(ExamRecord.answers))
        )
        if for_update:
            stmt = stmt.with_for_update()
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def update(self, exam: ExamSession) -> None:
        """Write the exam's status, timestamps and result columns."""
        record = await self._session.get(ExamRecord, exam.exam_id)
        if record is None:
            raise NotFoundError("Exam", exam.exam_id)
        changed = record.update(_state_columns(exam))
        await self._session.flush()
        logger.debug(f"Updated exam {exam.exam_id}: {', '.join(changed) or 'no changes'}")

    async def save_answer(self, exam_id: str, outcome: AnswerOutcome, answered_at=None) -> None:
        """Insert or replace the answer to one question of an exam."""
        stored = answer_to_storage(outcome.answer)
        stmt = select(ExamAnswerRecord).where(
            ExamAnswerRecord.exam_id == exam_id,
            ExamAnswerRecord.question_id == outcome.question_id,
        )
        record = (await self._session.execute(stmt)).scalar_one_or_none()
        if record is None:
            record = ExamAnswerRecord(exam_id=exam_id, question_id=outcome.question_id)
            self._session.add(record)
        record.answer_kind = stored["kind"]
        record.selected_options = stored["indices"]
        record.is_correct = outcome.is_correct
        record.partial_score = outcome.partial_score
        record.answered_at = answered_at or utcnow()
        await self._session.flush()

    async def delete(self, exam_id: str) -> bool:
        """Delete an exam with its questions and answers; True if it existed."""
        await self._session.execute(delete(ExamAnswerRecord).where(ExamAnswerRecord.exam_id == exam_id))
        await self._session.execute(delete(ExamQuestionRecord).where(ExamQuestionRecord.exam_id == exam_id))
        result = await self._session.execute(delete(ExamRecord).where(ExamRecord.id == exam_id))
        return result.rowcount > 0

    async def list_for_owner(self,
                             owner: Identity,
                             status: Optional[ExamStatus] = None,
                             provider: Optional[str] = None,
                             limit: int = 20,
                             offset: int = 0) -> Tuple[List[ExamSession], int]:
        """
        List the exams of one owner, newest first.

        Returns:
            The requested page and the total number of matching exams
        """
        conditions = [_owner_clause(owner)]
        if status is not None:
            conditions.append(ExamRecord.status == ExamStatus(status).value)
        if provider:
            conditions.append(ExamRecord.provider == provider)

        total = (await self._session.execute(
            select(func.count()).select_from(ExamRecord).where(*conditions)
        )).scalar_one()

        stmt = (
            select(ExamRecord)
            .where(*conditions)
            .order_by(ExamRecord.created_at.desc(), ExamRecord.id)
            .limit(limit)
            .offset(offset)
            .options(selectinload(ExamRecord.questions), selectinload(ExamRecord.answers))
        )
        records = (await self._session.execute(stmt)).scalars().all()
        return [_to_session(record) for record in records], total

    async def failed_question_ids(self, user_id: str, limit: int,
                                  provider: Optional[str] = None,
                                  certification: Optional[str] = None) -> List[str]:
        """
        Questions a user answered incorrectly in completed exams.

        Ordered by how often they were missed, most missed first.
        """
        conditions = [
            ExamRecord.user_id == user_id,
            ExamRecord.status == ExamStatus.COMPLETED.value,
            ExamAnswerRecord.is_correct == false(),
        ]
        if provider:
            conditions.append(ExamRecord.provider == provider)
        if certification:
            conditions.append(ExamRecord.certification == certification)
        failures = func.count(ExamAnswerRecord.id).label("failures")
        stmt = (
            select(ExamAnswerRecord.question_id, failures)
            .join(ExamRecord, ExamAnswerRecord.exam_id == ExamRecord.id)
            .where(*conditions)
            .group_by(ExamAnswerRecord.question_id)
            .order_by(failures.desc(), ExamAnswerRecord.question_id)
            .limit(limit)
        )
        rows = (await self._session.execute(stmt)).all()
        return [row.question_id for row in rows]
