"""
Exam Service

This module provides the use-case layer for exams: creating exams from the
question bank, driving them through their lifecycle, and serving results,
analysis and review.

Every mutating operation loads the exam with a row lock, checks ownership and
the state-machine guard, applies the change and persists it inside a single
transaction. Failures are raised as the typed errors from
``examprep.common.exceptions`` with the exam id attached; nothing is retried.
"""

import math
import random
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from examprep.common.auth.identity import AnonymousIdentity, Identity, UserIdentity
from examprep.common.auth.sessions import AnonymousSessionRegistry
from examprep.common.db.session import PersistenceGateway
from examprep.common.exceptions import (
    BaseError,
    InsufficientDataError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from examprep.common.logger import app_logger, log_execution_time, with_context
from examprep.common.utils import utcnow
from examprep.config import ExamDefaults
from examprep.domain.questions.model import CertificationInfo, Difficulty, Question, QuestionFilters
from examprep.domain.questions.repository import QuestionRepository
from examprep.exams.analysis import ExamAnalysis
from examprep.exams.answers import normalize_answer
from examprep.exams.models import AnswerOutcome, ExamMode, ExamSession, ExamSettings, ExamStatus
from examprep.exams.repository import ExamRepository
from examprep.exams.scoring import ExamResults

logger = app_logger.getChild("exams.service")

FAILED_QUESTIONS_TITLE = "Failed Questions Review"
FAILED_QUESTIONS_TIME_PER_QUESTION = 1.5
MAX_PAGE_SIZE = 100


@dataclass
class ExamConfig:
    """
    Parameters for creating an exam.

    Attributes:
        provider: Provider code
        certification: Certification code
        category: Optional topic filter
        difficulty: Optional difficulty filter
        question_count: Number of questions (defaults from the certification)
        time_limit_minutes: Time budget (defaults from the certification)
        passing_score: Passing threshold (defaults from the certification)
        mode: Exam mode
        title: Title (defaults to ``{certification name} Practice Exam``)
        description: Free-text description
        settings: Explicit settings overrides
    """
    provider: Optional[str] = None
    certification: Optional[str] = None
    category: Optional[str] = None
    difficulty: Optional[str] = None
    question_count: Optional[int] = None
    time_limit_minutes: Optional[int] = None
    passing_score: Optional[int] = None
    mode: str = ExamMode.PRACTICE.value
    title: Optional[str] = None
    description: str = ""
    settings: Dict[str, Any] = field(default_factory=dict)

    def validate(self, defaults: ExamDefaults) -> None:
        """
        Check the configuration.

        Raises:
            ValidationError: With one entry per invalid field
        """
        errors: Dict[str, str] = {}
        if not self.provider:
            errors["provider"] = "Provider is required"
        if not self.certification:
            errors["certification"] = "Certification is required"
        if self.question_count is not None and not 1 <= self.question_count <= defaults.max_question_count:
            errors["question_count"] = f"Question count must be between 1 and {defaults.max_question_count}"
        if self.time_limit_minutes is not None and not 1 <= self.time_limit_minutes <= defaults.max_time_limit_minutes:
            errors["time_limit_minutes"] = (
                f"Time limit must be between 1 and {defaults.max_time_limit_minutes} minutes"
            )
        if self.passing_score is not None and not 0 <= self.passing_score <= 100:
            errors["passing_score"] = "Passing score must be between 0 and 100"
        if self.mode not in {m.value for m in ExamMode}:
            errors["mode"] = f"Mode must be one of: {', '.join(m.value for m in ExamMode)}"
        if self.difficulty is not None and self.difficulty not in {d.value for d in Difficulty}:
            errors["difficulty"] = f"Difficulty must be one of: {', '.join(d.value for d in Difficulty)}"
        if errors:
            raise ValidationError("Invalid exam configuration", errors=errors)


class ExamService:
    """
    Exam orchestration.

    Exams that do not exist and exams owned by somebody else both fail with
    ``NotFoundError``; the two cases are only told apart in the logs.
    """

    def __init__(self,
                 gateway: PersistenceGateway[ExamRepository],
                 questions: QuestionRepository,
                 anonymous_sessions: Optional[AnonymousSessionRegistry] = None,
                 defaults: Optional[ExamDefaults] = None,
                 clock: Callable[[], datetime] = utcnow,
                 rng: Optional[random.Random] = None):
        """
        Initialize the exam service.

        Args:
            gateway: Transaction gateway handing out exam repositories
            questions: Question bank
            anonymous_sessions: Registry recording anonymous session tokens
            defaults: Exam creation defaults and bounds
            clock: Source of the current time
            rng: Random source for question and option shuffling
        """
        self._gateway = gateway
        self._questions = questions
        self._anonymous_sessions = anonymous_sessions
        self._defaults = defaults or ExamDefaults()
        self._clock = clock
        self._rng = rng or random.Random()

    def now(self) -> datetime:
        return self._clock()

    # Creation

    @log_execution_time(logger)
    async def create_exam(self, identity: Identity, config: ExamConfig) -> ExamSession:
        """
        Create an exam from the question bank.

        Args:
            identity: Owner of the new exam
            config: Exam parameters

        Returns:
            The new exam, in ``not_started``

        Raises:
            ValidationError: If the configuration is invalid
            InsufficientDataError: If no question matches the filters
            PersistenceError: If the exam could not be stored
        """
        config.validate(self._defaults)
        certification = await self._questions.get_certification(config.provider, config.certification)
        if certification is None:
            certification = CertificationInfo(
                provider=config.provider, code=config.certification, name=config.certification.upper()
            )

        count = min(
            config.question_count or certification.question_count or self._defaults.question_count,
            self._defaults.max_question_count,
        )
        filters = QuestionFilters(
            provider=config.provider,
            certification=config.certification,
            category=config.category,
            difficulty=Difficulty(config.difficulty) if config.difficulty else None,
        )
        drawn = await self._questions.random_questions(count, filters)
        if not drawn:
            raise InsufficientDataError(
                f"No questions available for {config.provider}/{config.certification}",
                available=0,
                required=count,
            )
        if len(drawn) < count:
            logger.info(f"Requested {count} questions for {filters}, only {len(drawn)} available")

        mode = ExamMode(config.mode)
        settings = ExamSettings.for_mode(mode, config.settings)
        now = self._clock()
        exam = ExamSession.create(
            owner=identity,
            questions=self._arrange(drawn, settings),
            provider=config.provider,
            certification=config.certification,
            title=config.title or f"{certification.name} Practice Exam",
            description=config.description,
            mode=mode,
            settings=settings,
            time_limit_minutes=(
                config.time_limit_minutes or certification.time_limit_minutes or self._defaults.time_limit_minutes
            ),
            passing_score=(
                config.passing_score if config.passing_score is not None
                else certification.passing_score if certification.passing_score is not None
                else self._defaults.passing_score
            ),
            now=now,
        )
        await self._store_new(exam)
        return exam

    async def create_failed_questions_exam(self, identity: Identity,
                                           question_count: Optional[int] = None,
                                           provider: Optional[str] = None,
                                           certification: Optional[str] = None) -> ExamSession:
        """
        Create a practice exam from questions the user previously got wrong.

        Args:
            identity: Must be an authenticated user
            question_count: Requested size, capped at the configured maximum
            provider: Only consider exams for this provider
            certification: Only consider exams for this certification

        Returns:
            The new exam, in ``not_started``

        Raises:
            ValidationError: If the caller is anonymous or the count is invalid
            InsufficientDataError: If too few failed questions exist
        """
        if not isinstance(identity, UserIdentity):
            raise ValidationError(
                "Failed questions exams are only available to signed-in users",
                errors={"identity": "anonymous"},
            )
        if question_count is not None and question_count < 1:
            raise ValidationError(
                "Question count must be positive", errors={"question_count": "must be at least 1"}
            )

        limit = min(question_count or self._defaults.failed_questions_default,
                    self._defaults.failed_questions_max)
        async with self._gateway.transaction() as exams:
            question_ids = await exams.failed_question_ids(
                identity.user_id, limit, provider=provider, certification=certification
            )
        questions = await self._questions.get_many(question_ids)
        if len(questions) < self._defaults.failed_questions_min:
            raise InsufficientDataError(
                f"At least {self._defaults.failed_questions_min} failed questions are needed, "
                f"found {len(questions)}",
                available=len(questions),
                required=self._defaults.failed_questions_min,
            )

        settings = ExamSettings.for_mode(ExamMode.PRACTICE)
        exam = ExamSession.create(
            owner=identity,
            questions=self._arrange(questions, settings),
            provider=provider or questions[0].provider or "mixed",
            certification=certification or questions[0].certification or "mixed",
            title=FAILED_QUESTIONS_TITLE,
            description=f"Review of {len(questions)} previously missed questions",
            mode=ExamMode.PRACTICE,
            settings=settings,
            time_limit_minutes=math.ceil(len(questions) * FAILED_QUESTIONS_TIME_PER_QUESTION),
            passing_score=self._defaults.passing_score,
            now=self._clock(),
        )
        await self._store_new(exam)
        return exam

    def _arrange(self, questions: List[Question], settings: ExamSettings) -> List[Question]:
        arranged = list(questions)
        if settings.randomize_questions:
            self._rng.shuffle(arranged)
        if settings.randomize_answers:
            arranged = [question.shuffled(self._rng) for question in arranged]
        return arranged

    async def _store_new(self, exam: ExamSession) -> None:
        # The registry commits on its own so a duplicate-token retry cannot roll back
        # the exam insert; a registry row left behind by a failed insert owns nothing.
        if isinstance(exam.owner, AnonymousIdentity) and self._anonymous_sessions is not None:
            await self._anonymous_sessions.ensure(exam.owner.session_id)
        try:
            async with self._gateway.transaction() as exams:
                await exams.add(exam)
        except BaseError as e:
            e.for_exam(exam.exam_id)
            raise
        with_context(logger, exam_id=exam.exam_id, owner_kind=exam.owner.kind).info(
            f"Created exam '{exam.title}' with {exam.total_questions} questions"
        )

    # Lifecycle

    async def start_exam(self, exam_id: str, identity: Identity) -> ExamSession:
        """Start an exam; only possible from ``not_started``."""
        return await self._mutate(exam_id, identity, "start", lambda exam, now: exam.start(now))

    async def pause_exam(self, exam_id: str, identity: Identity) -> ExamSession:
        """Pause an exam in progress. The exam clock keeps running."""
        def pause(exam: ExamSession, now: datetime) -> None:
            self._ensure_time_left(exam, now)
            exam.pause(now)
        return await self._mutate(exam_id, identity, "pause", pause)

    async def resume_exam(self, exam_id: str, identity: Identity) -> ExamSession:
        """Resume a paused exam that still has time left."""
        return await self._mutate(exam_id, identity, "resume", lambda exam, now: exam.resume(now))

    async def cancel_exam(self, exam_id: str, identity: Identity) -> ExamSession:
        """Cancel an exam that has not ended yet."""
        return await self._mutate(exam_id, identity, "cancel", lambda exam, now: exam.cancel(now))

    @log_execution_time(logger)
    async def complete_exam(self, exam_id: str, identity: Identity) -> Tuple[ExamSession, ExamResults]:
        """
        Complete an exam and score it.

        Unanswered questions count as incorrect. An exam whose time has run out
        can still be completed.

        Returns:
            The completed exam and its results
        """
        outcome: Dict[str, ExamResults] = {}

        def complete(exam: ExamSession, now: datetime) -> None:
            outcome["results"] = exam.complete(now)

        exam = await self._mutate(exam_id, identity, "complete", complete)
        results = outcome["results"]
        with_context(logger, exam_id=exam_id, owner_kind=identity.kind).info(
            f"Completed exam: score {results.score}% ({'passed' if results.passed else 'failed'})"
        )
        return exam, results

    async def submit_answer(self, exam_id: str, identity: Identity,
                            question_id: str, answer: Any) -> Tuple[ExamSession, AnswerOutcome]:
        """
        Record an answer, replacing an earlier answer to the same question.

        Args:
            exam_id: Exam identifier
            identity: Caller
            question_id: Question being answered
            answer: Raw answer (index or list of indices)

        Returns:
            The exam and the recorded answer with its correctness

        Raises:
            InvalidTransitionError: If the exam is not in progress or its time is up
            ValidationError: If the question is not in the exam or the answer is malformed
        """
        now = self._clock()
        try:
            async with self._gateway.transaction() as exams:
                exam = await self._load_owned(exams, exam_id, identity, for_update=True)
                self._ensure_time_left(exam, now)
                outcome = exam.submit_answer(question_id, answer, now)
                await exams.save_answer(exam_id, outcome, answered_at=now)
                await exams.update(exam)
        except BaseError as e:
            e.for_exam(exam_id)
            raise
        logger.debug(f"Recorded answer for question {question_id} in exam {exam_id}")
        return exam, outcome

    @staticmethod
    def _ensure_time_left(exam: ExamSession, now: datetime) -> None:
        if exam.is_time_expired(now):
            raise InvalidTransitionError(
                "Exam time has expired", current_status=exam.status.value, reason="time_expired"
            )

    async def _mutate(self, exam_id: str, identity: Identity, action: str,
                      apply: Callable[[ExamSession, datetime], None]) -> ExamSession:
        now = self._clock()
        try:
            async with self._gateway.transaction() as exams:
                exam = await self._load_owned(exams, exam_id, identity, for_update=True)
                previous = exam.status
                apply(exam, now)
                await exams.update(exam)
        except BaseError as e:
            e.for_exam(exam_id)
            raise
        logger.info(f"Exam {exam_id}: {action} ({previous.value} -> {exam.status.value})")
        return exam

    async def delete_exam(self, exam_id: str, identity: Identity) -> None:
        """Delete an exam in any status, once ownership is confirmed."""
        try:
            async with self._gateway.transaction() as exams:
                exam = await self._load_owned(exams, exam_id, identity, for_update=True)
                await exams.delete(exam.exam_id)
        except BaseError as e:
            e.for_exam(exam_id)
            raise
        logger.info(f"Deleted exam {exam_id} (status {exam.status.value})")

    # Queries

    async def get_exam(self, exam_id: str, identity: Identity) -> ExamSession:
        """Load an exam owned by ``identity``."""
        try:
            async with self._gateway.transaction() as exams:
                return await self._load_owned(exams, exam_id, identity)
        except BaseError as e:
            e.for_exam(exam_id)
            raise

    async def _get_completed(self, exam_id: str, identity: Identity) -> ExamSession:
        exam = await self.get_exam(exam_id, identity)
        if exam.status != ExamStatus.COMPLETED:
            raise InvalidTransitionError(
                "Exam has not been completed yet",
                current_status=exam.status.value,
                reason="not_completed",
            ).for_exam(exam_id)
        return exam

    async def get_exam_results(self, exam_id: str, identity: Identity) -> ExamResults:
        exam = await self._get_completed(exam_id, identity)
        return exam.results()

    async def get_exam_analysis(self, exam_id: str, identity: Identity) -> ExamAnalysis:
        exam = await self._get_completed(exam_id, identity)
        return exam.analysis()

    async def get_exam_statistics(self, exam_id: str, identity: Identity) -> Dict[str, Any]:
        exam = await self._get_completed(exam_id, identity)
        return exam.statistics()

    async def get_exam_for_review(self, exam_id: str, identity: Identity) -> Tuple[ExamSession, List[Dict[str, Any]]]:
        exam = await self._get_completed(exam_id, identity)
        return exam, exam.review()

    async def get_exam_progress(self, exam_id: str, identity: Identity) -> Dict[str, Any]:
        exam = await self.get_exam(exam_id, identity)
        progress = exam.progress()
        now = self._clock()
        progress.update({
            "status": exam.status.value,
            "time_remaining_seconds": exam.time_remaining_seconds(now),
            "is_time_expired": exam.is_time_expired(now),
        })
        return progress

    async def validate_answer(self, exam_id: str, identity: Identity,
                              question_id: str, answer: Any) -> Dict[str, Any]:
        """
        Check an answer against an exam question without recording it.

        Returns:
            ``valid`` and, depending on it, the normalized answer or the errors
        """
        exam = await self.get_exam(exam_id, identity)
        question = exam.get_question(question_id)
        if question is None:
            raise ValidationError(
                f"Question {question_id} is not part of this exam",
                errors={"question_id": question_id},
            ).for_exam(exam_id)
        try:
            normalized = normalize_answer(question, answer)
        except ValidationError as e:
            return {"valid": False, "message": e.message, "errors": e.errors}
        return {
            "valid": True,
            "question_id": question_id,
            "normalized_answer": normalized.to_value(),
            "is_multi_select": question.is_multi_select,
            "expected_answers": question.expected_answers,
        }

    async def list_exams(self, identity: Identity,
                         status: Optional[str] = None,
                         provider: Optional[str] = None,
                         limit: int = 20,
                         offset: int = 0) -> Tuple[List[ExamSession], int]:
        """
        List the caller's exams, newest first.

        Returns:
            The requested page and the total number of matching exams
        """
        errors = {}
        if not 1 <= limit <= MAX_PAGE_SIZE:
            errors["limit"] = f"Limit must be between 1 and {MAX_PAGE_SIZE}"
        if offset < 0:
            errors["offset"] = "Offset must not be negative"
        if status is not None and status not in {s.value for s in ExamStatus}:
            errors["status"] = f"Status must be one of: {', '.join(s.value for s in ExamStatus)}"
        if errors:
            raise ValidationError("Invalid list parameters", errors=errors)

        return await self._gateway.run_transaction(lambda exams: exams.list_for_owner(
            identity,
            status=ExamStatus(status) if status else None,
            provider=provider,
            limit=limit,
            offset=offset,
        ))

    async def _load_owned(self, exams: ExamRepository, exam_id: str, identity: Identity,
                          for_update: bool = False) -> ExamSession:
        exam = await exams.get(exam_id, for_update=for_update)
        if exam is None:
            logger.info(f"Exam {exam_id} not found")
            raise NotFoundError("Exam", exam_id)
        if not exam.belongs_to(identity):
            with_context(logger, exam_id=exam_id, owner_kind=exam.owner.kind).warning(
                f"Exam {exam_id} requested by non-owner {identity.kind}"
            )
            raise NotFoundError("Exam", exam_id)
        return exam
