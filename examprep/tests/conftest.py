"""
Shared fixtures: a controllable clock, sample questions, an in-memory question
bank and a SQLite database per test.
"""

import datetime
import random

import pytest
import pytest_asyncio

from examprep.common.auth.sessions import AnonymousSessionRegistry
from examprep.common.db.session import PersistenceGateway, create_engine, create_session_factory
from examprep.database.init_db import create_schema
from examprep.domain.questions import (
    CertificationInfo,
    Difficulty,
    MemoryQuestionRepository,
    Question,
    QuestionType,
)
from examprep.exams.repository import ExamRepository
from examprep.exams.service import ExamService

PROVIDER = "aws"
CERTIFICATION = "saa-c03"


class FrozenClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime.datetime = datetime.datetime(2024, 5, 1, 9, 0, 0)):
        self.now = start

    def __call__(self) -> datetime.datetime:
        return self.now

    def advance(self, **delta) -> None:
        self.now += datetime.timedelta(**delta)


def make_single(question_id="q1", correct=0, category="Compute", difficulty=Difficulty.EASY, **kwargs):
    return Question(
        question_id=question_id,
        text=f"Single choice question {question_id}",
        options=("EC2", "S3", "Lambda", "RDS"),
        correct_answers=frozenset({correct}),
        question_type=QuestionType.SINGLE_CHOICE,
        difficulty=difficulty,
        category=category,
        provider=PROVIDER,
        certification=CERTIFICATION,
        **kwargs,
    )


def make_multi(question_id="q2", correct=(0, 2), category="Storage", difficulty=Difficulty.MEDIUM, **kwargs):
    return Question(
        question_id=question_id,
        text=f"Multiple answer question {question_id}",
        options=("EBS", "SQS", "EFS", "SNS", "Kinesis"),
        correct_answers=frozenset(correct),
        question_type=QuestionType.MULTI_SELECT,
        difficulty=difficulty,
        category=category,
        provider=PROVIDER,
        certification=CERTIFICATION,
        expected_answers=len(correct),
        **kwargs,
    )


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def single_question():
    return make_single(explanation="EC2 provides compute capacity.")


@pytest.fixture
def multi_question():
    return make_multi()


@pytest.fixture
def question_bank():
    questions = [make_single("q1", explanation="EC2 provides compute capacity."), make_multi("q2")]
    questions += [
        make_single(f"s{i}", correct=i % 4, category="Networking" if i % 2 else "Security",
                    difficulty=Difficulty.HARD if i % 3 == 0 else Difficulty.MEDIUM)
        for i in range(3, 11)
    ]
    return MemoryQuestionRepository(
        questions=questions,
        certifications=[CertificationInfo(
            provider=PROVIDER,
            code=CERTIFICATION,
            name="AWS Solutions Architect Associate",
            question_count=10,
            time_limit_minutes=130,
            passing_score=72,
        )],
        rng=random.Random(3),
    )


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'examprep-test.db'}")
    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def gateway(session_factory):
    return PersistenceGateway(session_factory, ExamRepository)


@pytest.fixture
def exam_service(gateway, session_factory, question_bank, clock):
    return ExamService(
        gateway=gateway,
        questions=question_bank,
        anonymous_sessions=AnonymousSessionRegistry(session_factory, clock=clock),
        clock=clock,
        rng=random.Random(11),
    )
