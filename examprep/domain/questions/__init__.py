"""
Question bank domain.

The exam core only reads from the question bank through ``QuestionRepository``.
"""

from examprep.domain.questions.model import (
    CertificationInfo,
    Difficulty,
    Option,
    Question,
    QuestionFilters,
    QuestionType,
)
from examprep.domain.questions.repository import QuestionRepository
from examprep.domain.questions.memory_repository import MemoryQuestionRepository

__all__ = [
    "CertificationInfo",
    "Difficulty",
    "Option",
    "Question",
    "QuestionFilters",
    "QuestionType",
    "QuestionRepository",
    "MemoryQuestionRepository",
]
