"""
Question Repository Module

This module defines the read interface the exam core uses to draw questions
and certification metadata from the question bank.
"""

import abc
from typing import List, Optional

from .model import CertificationInfo, Question, QuestionFilters


class QuestionRepository(abc.ABC):
    """
    Abstract base class for question repositories.

    Implementations return fully formed ``Question`` entities; callers never
    see storage rows.
    """

    @abc.abstractmethod
    async def get_certification(self, provider: str, certification: str) -> Optional[CertificationInfo]:
        """
        Get certification metadata.

        Args:
            provider: Provider code
            certification: Certification code

        Returns:
            The certification if it exists, None otherwise
        """

    @abc.abstractmethod
    async def random_questions(self, count: int, filters: QuestionFilters) -> List[Question]:
        """
        Draw up to ``count`` random questions matching ``filters``.

        Returns fewer than ``count`` questions when not enough match; the
        result is never padded.

        Args:
            count: Maximum number of questions
            filters: Filter set

        Returns:
            List of matching questions
        """

    @abc.abstractmethod
    async def get_many(self, question_ids: List[str]) -> List[Question]:
        """
        Get questions by id, in the order the ids were given.

        Unknown ids are skipped.

        Args:
            question_ids: Question identifiers

        Returns:
            List of questions
        """
