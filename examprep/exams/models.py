"""
Exam Session Models

This module defines the exam session aggregate and its state machine:

    not_started -> in_progress -> completed
                   in_progress <-> paused
    any non-terminal status -> cancelled

A session holds a frozen snapshot of its questions, the time budget and the
answers submitted so far. Transitions are methods on the aggregate that check
their guard and raise ``InvalidTransitionError`` when it does not hold.
Time is wall-clock based and evaluated on demand: expiry never changes the
status by itself, callers check ``is_time_expired`` before mutating.
"""

import enum
import uuid
from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from examprep.common.auth.identity import AnonymousIdentity, Identity, UserIdentity
from examprep.common.exceptions import InvalidTransitionError, ValidationError
from examprep.common.utils import percentage, round_half_up, serialize_datetime, utcnow
from examprep.domain.questions.model import Difficulty, Question
from examprep.exams.analysis import ExamAnalysis, analyze
from examprep.exams.answers import Answer, normalize_answer
from examprep.exams.scoring import ExamResults, aggregate, compute_partial_score, is_correct


class ExamStatus(str, enum.Enum):
    """Canonical exam status, used unchanged in storage and in the API."""
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (ExamStatus.COMPLETED, ExamStatus.CANCELLED)


class ExamMode(str, enum.Enum):
    PRACTICE = "practice"
    REALISTIC = "realistic"
    TIMED = "timed"
    SIMULATION = "simulation"
    REVIEW = "review"


@dataclass(frozen=True)
class ExamSettings:
    """Display and randomization flags, fixed when the exam is created."""
    randomize_questions: bool = True
    randomize_answers: bool = False
    show_explanations: bool = False
    allow_pause: bool = False
    allow_review: bool = False

    @classmethod
    def for_mode(cls, mode: ExamMode, overrides: Optional[Mapping[str, Any]] = None) -> "ExamSettings":
        """
        Default settings for ``mode`` with explicit ``overrides`` applied.

        Questions are shuffled and options kept in order unless overridden;
        explanations, pausing and review are on only in practice mode.
        """
        practice = ExamMode(mode) == ExamMode.PRACTICE
        values = {
            "randomize_questions": True,
            "randomize_answers": False,
            "show_explanations": practice,
            "allow_pause": practice,
            "allow_review": practice,
        }
        for key, value in (overrides or {}).items():
            if key in values and value is not None:
                values[key] = bool(value)
        return cls(**values)

    def to_dict(self) -> Dict[str, bool]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "ExamSettings":
        known = {f.name for f in fields(cls)}
        return cls(**{k: bool(v) for k, v in (data or {}).items() if k in known})


@dataclass(frozen=True)
class AnswerOutcome:
    """Result of recording an answer."""
    question_id: str
    answer: Answer
    is_correct: bool
    partial_score: float

    def to_dict(self, include_correctness: bool = True) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "question_id": self.question_id,
            "answer": self.answer.to_value(),
        }
        if include_correctness:
            data["is_correct"] = self.is_correct
            data["partial_score"] = round_half_up(self.partial_score, 2)
        return data


@dataclass
class ExamSession:
    """
    Exam session aggregate.

    Attributes:
        exam_id: Unique identifier
        owner: The user or anonymous session that owns the exam
        provider: Provider code
        certification: Certification code
        questions: Snapshot of the questions, fixed at creation
        title: Display title
        description: Free-text description
        mode: Exam mode
        settings: Display and randomization flags
        time_limit_minutes: Time budget
        passing_score: Minimum score (0-100) to pass
        status: Current status
        answers: Submitted answers by question id
        time_spent_minutes: Minutes spent, set on completion
        score: Score (0-100), set on completion
        passed: Whether the exam was passed, set on completion
        correct_answers: Correct answers, frozen on completion
        incorrect_answers: Incorrect answers, frozen on completion
    """
    exam_id: str
    owner: Identity
    provider: str
    certification: str
    questions: Tuple[Question, ...]
    title: str = ""
    description: str = ""
    mode: ExamMode = ExamMode.PRACTICE
    settings: ExamSettings = field(default_factory=ExamSettings)
    time_limit_minutes: int = 120
    passing_score: int = 70
    status: ExamStatus = ExamStatus.NOT_STARTED
    answers: Dict[str, Answer] = field(default_factory=dict)
    time_spent_minutes: int = 0
    score: Optional[int] = None
    passed: bool = False
    correct_answers: int = 0
    incorrect_answers: int = 0
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    def __post_init__(self):
        self.questions = tuple(self.questions)
        self.status = ExamStatus(self.status)
        self.mode = ExamMode(self.mode)
        self._questions_by_id = {q.question_id: q for q in self.questions}
        unknown = set(self.answers) - set(self._questions_by_id)
        if unknown:
            raise ValueError(f"Answers for questions outside exam {self.exam_id}: {sorted(unknown)}")

    @classmethod
    def create(cls,
               owner: Identity,
               questions: Sequence[Question],
               provider: str,
               certification: str,
               title: str,
               mode: ExamMode = ExamMode.PRACTICE,
               settings: Optional[ExamSettings] = None,
               time_limit_minutes: int = 120,
               passing_score: int = 70,
               description: str = "",
               now: Optional[datetime] = None) -> "ExamSession":
        """
        Create a new exam in ``not_started``.

        Raises:
            ValidationError: If there are no questions or the owner is missing
        """
        if not questions:
            raise ValidationError("An exam needs at least one question", errors={"questions": "empty"})
        if not isinstance(owner, (UserIdentity, AnonymousIdentity)):
            raise ValidationError("An exam needs an owner", errors={"owner": "missing"})
        now = now or utcnow()
        return cls(
            exam_id=str(uuid.uuid4()),
            owner=owner,
            provider=provider,
            certification=certification,
            questions=tuple(questions),
            title=title,
            description=description,
            mode=mode,
            settings=settings or ExamSettings.for_mode(mode),
            time_limit_minutes=time_limit_minutes,
            passing_score=passing_score,
            created_at=now,
            updated_at=now,
        )

    # Ownership and lookups

    def belongs_to(self, identity: Optional[Identity]) -> bool:
        """True if ``identity`` is the owner (same kind and same value)."""
        return identity is not None and self.owner == identity

    @property
    def total_questions(self) -> int:
        return len(self.questions)

    def get_question(self, question_id: str) -> Optional[Question]:
        return self._questions_by_id.get(question_id)

    # Time

    def elapsed_seconds(self, now: Optional[datetime] = None) -> float:
        """Wall-clock seconds since the exam was started (0 before that)."""
        if self.started_at is None:
            return 0.0
        end = self.completed_at if self.status == ExamStatus.COMPLETED and self.completed_at else (now or utcnow())
        return max(0.0, (end - self.started_at).total_seconds())

    def time_remaining_seconds(self, now: Optional[datetime] = None) -> int:
        """
        Seconds left in the time budget.

        The full budget before the exam starts, nothing once it has ended.
        Pausing does not stop the clock.
        """
        limit = self.time_limit_minutes * 60
        if self.status == ExamStatus.NOT_STARTED:
            return limit
        if self.status.is_terminal:
            return 0
        return max(0, int(limit - self.elapsed_seconds(now)))

    def is_time_expired(self, now: Optional[datetime] = None) -> bool:
        """True iff the exam is in progress and its time budget is used up."""
        if self.status != ExamStatus.IN_PROGRESS:
            return False
        return self.elapsed_seconds(now) >= self.time_limit_minutes * 60

    # Transitions

    def _touch(self, now: datetime) -> None:
        self.updated_at = now

    def start(self, now: Optional[datetime] = None) -> None:
        """``not_started`` -> ``in_progress``."""
        if self.status != ExamStatus.NOT_STARTED:
            raise InvalidTransitionError(
                f"Exam cannot be started from status '{self.status.value}'",
                current_status=self.status.value,
                reason="not_startable",
            )
        now = now or utcnow()
        self.status = ExamStatus.IN_PROGRESS
        self.started_at = now
        self._touch(now)

    def pause(self, now: Optional[datetime] = None) -> None:
        """``in_progress`` -> ``paused``."""
        if self.status != ExamStatus.IN_PROGRESS:
            raise InvalidTransitionError(
                f"Only exams in progress can be paused (status '{self.status.value}')",
                current_status=self.status.value,
                reason="not_in_progress",
            )
        now = now or utcnow()
        self.status = ExamStatus.PAUSED
        self._touch(now)

    def resume(self, now: Optional[datetime] = None) -> None:
        """``paused`` -> ``in_progress``, provided time is left."""
        if self.status != ExamStatus.PAUSED:
            raise InvalidTransitionError(
                f"Only paused exams can be resumed (status '{self.status.value}')",
                current_status=self.status.value,
                reason="not_paused",
            )
        now = now or utcnow()
        if self.elapsed_seconds(now) >= self.time_limit_minutes * 60:
            raise InvalidTransitionError(
                "Exam time has expired",
                current_status=self.status.value,
                reason="time_expired",
            )
        self.status = ExamStatus.IN_PROGRESS
        self._touch(now)

    def submit_answer(self, question_id: str, value: Any, now: Optional[datetime] = None) -> AnswerOutcome:
        """
        Record an answer, replacing any earlier answer to the same question.

        Args:
            question_id: Question being answered
            value: Raw answer (index or list of indices) or an ``Answer``
            now: Current time

        Returns:
            The normalized answer and its correctness

        Raises:
            InvalidTransitionError: If the exam is not in progress
            ValidationError: If the question is not part of the exam or the
                answer is malformed
        """
        if self.status != ExamStatus.IN_PROGRESS:
            raise InvalidTransitionError(
                f"Answers can only be submitted while the exam is in progress (status '{self.status.value}')",
                current_status=self.status.value,
                reason="not_in_progress",
            )
        question = self.get_question(question_id)
        if question is None:
            raise ValidationError(
                f"Question {question_id} is not part of this exam",
                errors={"question_id": question_id},
            )
        answer = normalize_answer(question, value)
        self.answers[question_id] = answer
        self._touch(now or utcnow())
        return AnswerOutcome(
            question_id=question_id,
            answer=answer,
            is_correct=is_correct(question, answer),
            partial_score=compute_partial_score(question, answer),
        )

    def complete(self, now: Optional[datetime] = None) -> ExamResults:
        """
        ``in_progress`` -> ``completed``; scores the exam and freezes the result.

        Unanswered questions count as not correct.

        Returns:
            The exam results
        """
        if self.status == ExamStatus.NOT_STARTED:
            raise InvalidTransitionError(
                "Exam has not been started", current_status=self.status.value, reason="not_started"
            )
        if self.status == ExamStatus.COMPLETED:
            raise InvalidTransitionError(
                "Exam has already been completed", current_status=self.status.value, reason="already_completed"
            )
        if self.status != ExamStatus.IN_PROGRESS:
            raise InvalidTransitionError(
                f"Only exams in progress can be completed (status '{self.status.value}')",
                current_status=self.status.value,
                reason="not_in_progress",
            )

        now = now or utcnow()
        elapsed_minutes = self.elapsed_seconds(now) / 60
        self.time_spent_minutes = min(self.time_limit_minutes, round_half_up(elapsed_minutes))
        results = aggregate(self)
        self.score = results.score
        self.passed = results.passed
        self.correct_answers = results.correct_answers
        self.incorrect_answers = results.incorrect_answers
        self.status = ExamStatus.COMPLETED
        self.completed_at = now
        self._touch(now)
        return results

    def cancel(self, now: Optional[datetime] = None) -> None:
        """Any non-terminal status -> ``cancelled``."""
        if self.status.is_terminal:
            raise InvalidTransitionError(
                f"Exam is already {self.status.value}", current_status=self.status.value, reason="terminal"
            )
        now = now or utcnow()
        self.status = ExamStatus.CANCELLED
        self._touch(now)

    # Derived views

    def results(self) -> ExamResults:
        results = aggregate(self)
        if self.status == ExamStatus.COMPLETED and self.score is not None:
            results.score = self.score
            results.passed = self.passed
        return results

    def analysis(self) -> ExamAnalysis:
        return analyze(self.results())

    def progress(self) -> Dict[str, Any]:
        """Answered/correct counts overall, by question type and by difficulty."""
        answered = correct = 0
        by_type = {
            "multi_select": {"total": 0, "answered": 0, "correct": 0},
            "single_choice": {"total": 0, "answered": 0, "correct": 0},
        }
        by_difficulty = {d.value: {"total": 0, "answered": 0, "correct": 0} for d in Difficulty}

        for question in self.questions:
            buckets = (
                by_type["multi_select" if question.is_multi_select else "single_choice"],
                by_difficulty[question.difficulty.value],
            )
            answer = self.answers.get(question.question_id)
            hit = answer is not None and is_correct(question, answer)
            for bucket in buckets:
                bucket["total"] += 1
                if answer is not None:
                    bucket["answered"] += 1
                if hit:
                    bucket["correct"] += 1
            if answer is not None:
                answered += 1
                correct += int(hit)

        return {
            "total_questions": self.total_questions,
            "answered_questions": answered,
            "correct_answers": correct,
            "incorrect_answers": answered - correct,
            "remaining_questions": self.total_questions - answered,
            "progress_percentage": percentage(answered, self.total_questions),
            "accuracy_percentage": percentage(correct, answered),
            "multi_select_progress": by_type["multi_select"],
            "single_choice_progress": by_type["single_choice"],
            "difficulty_progress": by_difficulty,
        }

    def summary(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        progress = self.progress()
        return {
            "id": self.exam_id,
            "title": self.title,
            "provider": self.provider,
            "certification": self.certification,
            "mode": self.mode.value,
            "status": self.status.value,
            "progress": progress["progress_percentage"],
            "accuracy": progress["accuracy_percentage"],
            "score": self.score,
            "passed": self.passed,
            "passing_score": self.passing_score,
            "time_limit_minutes": self.time_limit_minutes,
            "time_spent_minutes": self.time_spent_minutes,
            "time_remaining_seconds": self.time_remaining_seconds(now),
            "is_time_expired": self.is_time_expired(now),
            "created_at": _iso(self.created_at),
            "started_at": _iso(self.started_at),
            "completed_at": _iso(self.completed_at),
            "question_types": {
                "multi_select": progress["multi_select_progress"]["total"],
                "single_choice": progress["single_choice_progress"]["total"],
            },
            "statistics": {
                "total_questions": self.total_questions,
                "correct_answers": self.correct_answers if self.status == ExamStatus.COMPLETED else progress["correct_answers"],
                "incorrect_answers": self.incorrect_answers if self.status == ExamStatus.COMPLETED else progress["incorrect_answers"],
                "answered_questions": progress["answered_questions"],
                "unanswered_questions": progress["remaining_questions"],
            },
        }

    def statistics(self) -> Dict[str, Any]:
        """Overview, performance, breakdowns and time analysis of the exam."""
        results = self.results()
        progress = self.progress()
        return {
            "overview": {
                "exam_id": self.exam_id,
                "title": self.title,
                "status": self.status.value,
                "score": self.score,
                "passed": self.passed,
                "time_spent_minutes": self.time_spent_minutes,
                "time_limit_minutes": self.time_limit_minutes,
            },
            "performance": {
                "total_questions": results.total_questions,
                "correct_answers": results.correct_answers,
                "incorrect_answers": results.incorrect_answers,
                "unanswered_questions": results.unanswered_questions,
                "accuracy_rate": progress["accuracy_percentage"],
            },
            "breakdown": {
                "by_category": {k: v.to_dict() for k, v in results.category_stats.items()},
                "by_difficulty": {k: v.to_dict() for k, v in results.difficulty_stats.items()},
                "by_question_type": {
                    "multi_select": results.multi_select_stats.to_dict(),
                    "single_choice": results.single_choice_stats.to_dict(),
                },
            },
            "time_analysis": {
                "efficiency": results.efficiency,
                "average_time_per_question": (
                    round_half_up(self.time_spent_minutes * 60 / results.total_questions)
                    if self.time_spent_minutes > 0 else 0
                ),
                "time_utilization": percentage(self.time_spent_minutes, self.time_limit_minutes),
            },
        }

    def review(self) -> List[Dict[str, Any]]:
        """Every question with its correct answers, explanation and the recorded answer."""
        review = []
        for result in self.results().question_results:
            item = result.to_dict()
            item["options"] = [option.to_dict() for option in result.question.options]
            item["explanation"] = result.question.explanation or "No explanation available"
            review.append(item)
        return review

    def to_dict(self, now: Optional[datetime] = None, include_questions: bool = True) -> Dict[str, Any]:
        """
        Convert the exam to a dictionary.

        Correct answers and explanations are only included once the exam is
        completed, or while it runs when the settings show explanations.
        """
        reveal = self.status == ExamStatus.COMPLETED or self.settings.show_explanations
        data = {
            "id": self.exam_id,
            "owner_kind": self.owner.kind,
            "title": self.title,
            "description": self.description,
            "provider": self.provider,
            "certification": self.certification,
            "mode": self.mode.value,
            "status": self.status.value,
            "time_limit_minutes": self.time_limit_minutes,
            "time_spent_minutes": self.time_spent_minutes,
            "score": self.score,
            "passed": self.passed,
            "passing_score": self.passing_score,
            "settings": self.settings.to_dict(),
            "answers": {qid: answer.to_value() for qid, answer in self.answers.items()},
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
            "started_at": _iso(self.started_at),
            "completed_at": _iso(self.completed_at),
            "summary": self.summary(now),
        }
        if include_questions:
            data["questions"] = [q.to_dict(include_answers=reveal) for q in self.questions]
        else:
            data["questions"] = self.total_questions
        return data


def _iso(value: Optional[datetime]) -> Optional[str]:
    return serialize_datetime(value) if value else None
