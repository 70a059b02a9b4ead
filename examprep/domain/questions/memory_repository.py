"""
Memory Question Repository Module

This module provides an in-memory implementation of the QuestionRepository
interface for development and testing purposes.
"""

import random
from typing import Dict, Iterable, List, Optional, Tuple

from examprep.common.logger import app_logger
from .model import CertificationInfo, Question, QuestionFilters, order_by_ids
from .repository import QuestionRepository

logger = app_logger.getChild("questions.memory")


class MemoryQuestionRepository(QuestionRepository):
    """
    In-memory implementation of the QuestionRepository.

    Questions and certifications are kept in dictionaries; intended for
    development and testing only.
    """

    def __init__(self,
                 questions: Optional[Iterable[Question]] = None,
                 certifications: Optional[Iterable[CertificationInfo]] = None,
                 rng: Optional[random.Random] = None):
        """
        Initialize the repository with optional initial data.

        Args:
            questions: Questions to load
            certifications: Certifications to load
            rng: Random generator used for sampling
        """
        self._questions: Dict[str, Question] = {}
        self._certifications: Dict[Tuple[str, str], CertificationInfo] = {}
        self._rng = rng or random.Random()

        for question in questions or []:
            self.add_question(question)
        for certification in certifications or []:
            self.add_certification(certification)

    def add_question(self, question: Question) -> None:
        self._questions[question.question_id] = question

    def add_certification(self, certification: CertificationInfo) -> None:
        self._certifications[(certification.provider, certification.code)] = certification

    async def get_certification(self, provider: str, certification: str) -> Optional[CertificationInfo]:
        return self._certifications.get((provider, certification))

    async def random_questions(self, count: int, filters: QuestionFilters) -> List[Question]:
        matching = [q for q in self._questions.values() if filters.matches(q)]
        if len(matching) < count:
            logger.debug(f"Only {len(matching)} questions match {filters} (wanted {count})")
        return self._rng.sample(matching, min(count, len(matching)))

    async def get_many(self, question_ids: List[str]) -> List[Question]:
        return order_by_ids(self._questions.values(), question_ids)
