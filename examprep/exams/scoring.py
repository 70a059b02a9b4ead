"""
Scoring Engine

Pure functions deciding whether an answer is correct, how much partial credit
a multi-select near-miss earns, and the aggregation of a whole exam into
results: counts, per-category, per-difficulty and per-type breakdowns, pacing
efficiency and a per-question detail list for rendering the review.

Pass/fail is strictly binary per question; partial scores are reported for
analytics only.
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional

from examprep.common.utils import percentage, round_half_up, safe_divide
from examprep.domain.questions.model import Difficulty, Question
from examprep.exams.answers import Answer, MultiAnswer, as_answer

if TYPE_CHECKING:
    from examprep.exams.models import ExamSession


def is_correct(question: Question, answer: Any) -> bool:
    """
    Check a submitted answer against the question's correct options.

    Multi-select questions need a list whose distinct indices are exactly the
    correct set; order and duplicates do not matter. Single-choice questions
    take an index or a list whose first element is used. A question without
    correct options is never answered correctly.

    Args:
        question: The question
        answer: An ``Answer`` or a raw index / list of indices

    Returns:
        True if the answer is correct
    """
    correct = question.correct_answers
    if not correct:
        return False

    answer = as_answer(answer)
    if answer is None:
        return False

    if question.is_multi_select:
        if not isinstance(answer, MultiAnswer):
            return False
        selected = set(answer.indices)
        return len(selected) == len(correct) and selected == correct

    if isinstance(answer, MultiAnswer):
        if not answer.indices:
            return False
        return answer.indices[0] in correct
    return answer.index in correct


def compute_partial_score(question: Question, answer: Any) -> float:
    """
    Partial credit for a multi-select answer.

    ``max(0, (correct selected - incorrect selected) / number of correct options)``;
    0 for other question types and for questions without correct options.
    """
    correct = question.correct_answers
    if not question.is_multi_select or not correct:
        return 0.0

    answer = as_answer(answer)
    if not isinstance(answer, MultiAnswer):
        return 0.0

    selected = set(answer.indices)
    hits = len(selected & correct)
    misses = len(selected - correct)
    return max(0.0, (hits - misses) / len(correct))


@dataclass(frozen=True)
class OptionRef:
    """An option as shown in the answer breakdown."""
    index: int
    label: str
    text: str
    is_correct: bool

    def to_dict(self) -> Dict[str, Any]:
        return {"index": self.index, "label": self.label, "text": self.text, "is_correct": self.is_correct}


@dataclass
class AnswerDetails:
    """Selected, correct, wrongly selected and missed options for one question."""
    selected_options: List[OptionRef] = field(default_factory=list)
    correct_options: List[OptionRef] = field(default_factory=list)
    incorrectly_selected: List[OptionRef] = field(default_factory=list)
    missed_correct: List[OptionRef] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "selected_options": [o.to_dict() for o in self.selected_options],
            "correct_options": [o.to_dict() for o in self.correct_options],
            "incorrectly_selected": [o.to_dict() for o in self.incorrectly_selected],
            "missed_correct": [o.to_dict() for o in self.missed_correct],
        }


def answer_details(question: Question, answer: Optional[Answer]) -> AnswerDetails:
    """Build the option breakdown used to render a reviewed question."""
    def ref(index: int) -> OptionRef:
        return OptionRef(
            index=index,
            label=question.option_label(index),
            text=question.options[index].text,
            is_correct=index in question.correct_answers,
        )

    selected = [] if answer is None else [i for i in answer.indices if 0 <= i < len(question.options)]
    correct = sorted(question.correct_answers)
    return AnswerDetails(
        selected_options=[ref(i) for i in selected],
        correct_options=[ref(i) for i in correct],
        incorrectly_selected=[ref(i) for i in selected if i not in question.correct_answers],
        missed_correct=[ref(i) for i in correct if i not in selected],
    )


@dataclass
class BucketStats:
    """Totals for one category or difficulty bucket."""
    total: int = 0
    correct: int = 0

    @property
    def percentage(self) -> int:
        return percentage(self.correct, self.total)

    def to_dict(self) -> Dict[str, Any]:
        return {"total": self.total, "correct": self.correct, "percentage": self.percentage}


@dataclass
class TypeStats:
    """Totals for one question type."""
    total: int = 0
    correct: int = 0
    incorrect: int = 0
    unanswered: int = 0

    @property
    def accuracy(self) -> float:
        return safe_divide(self.correct, self.total)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "correct": self.correct,
            "incorrect": self.incorrect,
            "unanswered": self.unanswered,
        }


@dataclass
class QuestionResult:
    """Outcome of one question."""
    question: Question
    answer: Optional[Answer]
    is_correct: bool
    partial_score: float
    details: AnswerDetails

    @property
    def is_answered(self) -> bool:
        return self.answer is not None

    def to_dict(self) -> Dict[str, Any]:
        question = self.question
        return {
            "question_id": question.question_id,
            "text": question.text,
            "question_type": question.question_type.value,
            "is_multi_select": question.is_multi_select,
            "difficulty": question.difficulty.value,
            "category": question.category,
            "expected_answers": question.expected_answers,
            "submitted_answer": self.answer.to_value() if self.answer else None,
            "correct_answers": sorted(question.correct_answers),
            "is_answered": self.is_answered,
            "is_correct": self.is_correct,
            "partial_score": round_half_up(self.partial_score, 2),
            "explanation": question.explanation,
            "answer_details": self.details.to_dict(),
        }


@dataclass
class ExamResults:
    """Aggregated outcome of an exam."""
    exam_id: str
    total_questions: int
    answered_questions: int
    correct_answers: int
    incorrect_answers: int
    unanswered_questions: int
    partially_correct: int
    score: int
    passing_score: int
    passed: bool
    time_spent_minutes: int
    time_limit_minutes: int
    efficiency: float
    category_stats: Dict[str, BucketStats]
    difficulty_stats: Dict[str, BucketStats]
    multi_select_stats: TypeStats
    single_choice_stats: TypeStats
    question_results: List[QuestionResult]

    def to_dict(self, include_questions: bool = True) -> Dict[str, Any]:
        data = {
            "exam_id": self.exam_id,
            "total_questions": self.total_questions,
            "answered_questions": self.answered_questions,
            "correct_answers": self.correct_answers,
            "incorrect_answers": self.incorrect_answers,
            "unanswered_questions": self.unanswered_questions,
            "partially_correct": self.partially_correct,
            "score": self.score,
            "passing_score": self.passing_score,
            "passed": self.passed,
            "time_spent_minutes": self.time_spent_minutes,
            "time_limit_minutes": self.time_limit_minutes,
            "efficiency": self.efficiency,
            "category_stats": {k: v.to_dict() for k, v in self.category_stats.items()},
            "difficulty_stats": {k: v.to_dict() for k, v in self.difficulty_stats.items()},
            "multi_select_stats": self.multi_select_stats.to_dict(),
            "single_choice_stats": self.single_choice_stats.to_dict(),
        }
        if include_questions:
            data["question_results"] = [result.to_dict() for result in self.question_results]
        return data


def calculate_score(correct: int, total: int) -> int:
    """Whole-number percentage score; unanswered questions count against it."""
    return percentage(correct, total)


def aggregate(session: "ExamSession") -> ExamResults:
    """
    Aggregate an exam's answers into results in a single pass.

    Args:
        session: The exam to aggregate

    Returns:
        The exam results
    """
    answers: Mapping[str, Answer] = session.answers
    category_stats: Dict[str, BucketStats] = {}
    difficulty_stats = {difficulty.value: BucketStats() for difficulty in Difficulty}
    multi_stats = TypeStats()
    single_stats = TypeStats()
    question_results: List[QuestionResult] = []
    correct_count = incorrect_count = unanswered_count = partial_count = 0

    for question in session.questions:
        answer = answers.get(question.question_id)
        correct = answer is not None and is_correct(question, answer)
        partial = compute_partial_score(question, answer) if answer is not None else 0.0

        category = category_stats.setdefault(question.category, BucketStats())
        difficulty = difficulty_stats[question.difficulty.value]
        type_stats = multi_stats if question.is_multi_select else single_stats
        category.total += 1
        difficulty.total += 1
        type_stats.total += 1

        if answer is None:
            unanswered_count += 1
            type_stats.unanswered += 1
        elif correct:
            correct_count += 1
            category.correct += 1
            difficulty.correct += 1
            type_stats.correct += 1
        else:
            incorrect_count += 1
            type_stats.incorrect += 1
            if partial > 0:
                partial_count += 1

        question_results.append(QuestionResult(
            question=question,
            answer=answer,
            is_correct=correct,
            partial_score=partial,
            details=answer_details(question, answer),
        ))

    total = len(session.questions)
    score = calculate_score(correct_count, total)
    return ExamResults(
        exam_id=session.exam_id,
        total_questions=total,
        answered_questions=total - unanswered_count,
        correct_answers=correct_count,
        incorrect_answers=incorrect_count,
        unanswered_questions=unanswered_count,
        partially_correct=partial_count,
        score=score,
        passing_score=session.passing_score,
        passed=score >= session.passing_score,
        time_spent_minutes=session.time_spent_minutes,
        time_limit_minutes=session.time_limit_minutes,
        efficiency=round_half_up(safe_divide(correct_count, session.time_spent_minutes), 2),
        category_stats=category_stats,
        difficulty_stats=difficulty_stats,
        multi_select_stats=multi_stats,
        single_choice_stats=single_stats,
        question_results=question_results,
    )
