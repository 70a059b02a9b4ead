"""
Question Domain Model Module

This module defines the read-only question entities consumed by the exam core:
questions with their options and correct-answer indices, certification
metadata, and the filter set used to draw questions from the bank.
"""

import enum
import random
import string
from dataclasses import dataclass, replace
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Tuple

DEFAULT_CATEGORY = "General"


class Difficulty(str, enum.Enum):
    """Difficulty level of a question."""
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"
    EXPERT = "expert"


class QuestionType(str, enum.Enum):
    """How a question is answered."""
    SINGLE_CHOICE = "single_choice"
    MULTI_SELECT = "multi_select"
    TRUE_FALSE = "true_false"


def default_label(index: int) -> str:
    """Letter label for the option at ``index`` (A, B, C, ...)."""
    letters = string.ascii_uppercase
    if index < len(letters):
        return letters[index]
    return f"{letters[index % len(letters)]}{index // len(letters)}"


@dataclass(frozen=True)
class Option:
    """An answer option. ``label`` is display-only; options are identified by position."""
    text: str
    label: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"text": self.text, "label": self.label}


@dataclass(frozen=True)
class Question:
    """
    A question as seen by the exam core.

    Attributes:
        question_id: Unique identifier for the question
        text: The question text
        options: Ordered answer options
        correct_answers: Zero-based indices of the correct options
        question_type: Single-choice, multi-select or true/false
        difficulty: Difficulty bucket
        category: Topic the question belongs to
        provider: Provider code (e.g. ``aws``)
        certification: Certification code (e.g. ``saa-c03``)
        expected_answers: Number of options the candidate must select
        points: Point value
        explanation: Explanation shown after answering or in review
    """
    question_id: str
    text: str
    options: Tuple[Option, ...]
    correct_answers: FrozenSet[int]
    question_type: QuestionType = QuestionType.SINGLE_CHOICE
    difficulty: Difficulty = Difficulty.MEDIUM
    category: str = DEFAULT_CATEGORY
    provider: Optional[str] = None
    certification: Optional[str] = None
    expected_answers: Optional[int] = None
    points: int = 1
    explanation: Optional[str] = None

    def __post_init__(self):
        # Normalize containers and enums so instances are hashable and comparable
        options = tuple(
            option if isinstance(option, Option) else Option(text=str(option))
            for option in self.options
        )
        options = tuple(
            option if option.label else replace(option, label=default_label(i))
            for i, option in enumerate(options)
        )
        object.__setattr__(self, "options", options)
        object.__setattr__(self, "correct_answers", frozenset(self.correct_answers))
        object.__setattr__(self, "question_type", QuestionType(self.question_type))
        object.__setattr__(self, "difficulty", Difficulty(self.difficulty))
        object.__setattr__(self, "category", self.category or DEFAULT_CATEGORY)

        out_of_range = [i for i in self.correct_answers if not 0 <= i < len(options)]
        if out_of_range:
            raise ValueError(
                f"Question {self.question_id}: correct answer indices {sorted(out_of_range)} "
                f"outside of {len(options)} options"
            )

        if self.expected_answers is None:
            if self.question_type == QuestionType.MULTI_SELECT:
                expected = max(1, len(self.correct_answers))
            else:
                expected = 1
            object.__setattr__(self, "expected_answers", expected)

        if self.expected_answers < 1:
            raise ValueError(f"Question {self.question_id}: expected_answers must be at least 1")
        if self.correct_answers:
            if self.is_multi_select and self.expected_answers != len(self.correct_answers):
                raise ValueError(
                    f"Question {self.question_id}: expects {self.expected_answers} answers "
                    f"but has {len(self.correct_answers)} correct options"
                )
            if not self.is_multi_select and len(self.correct_answers) != 1:
                raise ValueError(
                    f"Question {self.question_id}: single-choice questions need exactly one correct option"
                )

    @property
    def is_multi_select(self) -> bool:
        """Whether the candidate has to select a set of options."""
        return self.question_type == QuestionType.MULTI_SELECT or self.expected_answers > 1

    def option_label(self, index: int) -> str:
        return self.options[index].label or default_label(index)

    def shuffled(self, rng: Optional[random.Random] = None) -> "Question":
        """
        Return a copy with the options in a random order.

        Correct-answer indices are remapped to the new positions; labels follow
        the new positions so the first option is always ``A``.
        """
        rng = rng or random.Random()
        order = list(range(len(self.options)))
        rng.shuffle(order)
        options = tuple(
            Option(text=self.options[old].text, label=default_label(new))
            for new, old in enumerate(order)
        )
        correct = frozenset(new for new, old in enumerate(order) if old in self.correct_answers)
        return replace(self, options=options, correct_answers=correct)

    def to_dict(self, include_answers: bool = True) -> Dict[str, Any]:
        """
        Convert the question to a dictionary.

        Args:
            include_answers: Whether to include correct answers and the explanation

        Returns:
            Dictionary representation
        """
        data = {
            "question_id": self.question_id,
            "text": self.text,
            "options": [option.to_dict() for option in self.options],
            "question_type": self.question_type.value,
            "difficulty": self.difficulty.value,
            "category": self.category,
            "provider": self.provider,
            "certification": self.certification,
            "expected_answers": self.expected_answers,
            "is_multi_select": self.is_multi_select,
            "points": self.points,
        }
        if include_answers:
            data["correct_answers"] = sorted(self.correct_answers)
            data["explanation"] = self.explanation
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Question":
        """Create a question from its ``to_dict`` representation."""
        return cls(
            question_id=str(data["question_id"]),
            text=data["text"],
            options=tuple(
                Option(text=option["text"], label=option.get("label"))
                if isinstance(option, dict) else Option(text=str(option))
                for option in data.get("options", [])
            ),
            correct_answers=frozenset(data.get("correct_answers", [])),
            question_type=data.get("question_type", QuestionType.SINGLE_CHOICE.value),
            difficulty=data.get("difficulty", Difficulty.MEDIUM.value),
            category=data.get("category") or DEFAULT_CATEGORY,
            provider=data.get("provider"),
            certification=data.get("certification"),
            expected_answers=data.get("expected_answers"),
            points=data.get("points", 1),
            explanation=data.get("explanation"),
        )


@dataclass(frozen=True)
class CertificationInfo:
    """Certification metadata used for exam defaults."""
    provider: str
    code: str
    name: str
    question_count: Optional[int] = None
    time_limit_minutes: Optional[int] = None
    passing_score: Optional[int] = None


@dataclass(frozen=True)
class QuestionFilters:
    """Filter set for drawing questions from the bank."""
    provider: str
    certification: str
    category: Optional[str] = None
    difficulty: Optional[Difficulty] = None

    def matches(self, question: Question) -> bool:
        """Whether ``question`` satisfies every filter."""
        if question.provider != self.provider or question.certification != self.certification:
            return False
        if self.category and question.category != self.category:
            return False
        if self.difficulty and question.difficulty != Difficulty(self.difficulty):
            return False
        return True


def order_by_ids(questions: Iterable[Question], question_ids: List[str]) -> List[Question]:
    """Order ``questions`` as listed in ``question_ids``, dropping unknown ids."""
    by_id = {question.question_id: question for question in questions}
    return [by_id[question_id] for question_id in question_ids if question_id in by_id]
