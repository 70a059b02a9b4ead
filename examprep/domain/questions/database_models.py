"""
SQLAlchemy ORM models for the question bank.

This module defines the read-side tables of the question bank:
- ProviderRecord: Certification vendors (AWS, Azure, ...)
- CertificationRecord: Certifications with their exam defaults
- TopicRecord: Topics (categories) within a certification
- QuestionRecord: Questions with type, difficulty and explanation
- QuestionOptionRecord: Ordered answer options, flagged when correct
"""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.schema import UniqueConstraint

from examprep.common.utils import utcnow
from examprep.database.base import ModelBase
from examprep.domain.questions.model import (
    CertificationInfo,
    DEFAULT_CATEGORY,
    Option,
    Question,
)


class ProviderRecord(ModelBase):
    """Certification vendor."""
    __tablename__ = "providers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(50), nullable=False, unique=True)
    name = Column(String(255), nullable=False)

    certifications = relationship("CertificationRecord", back_populates="provider")


class CertificationRecord(ModelBase):
    """Certification and the defaults its practice exams start from."""
    __tablename__ = "certifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    provider_id = Column(Integer, ForeignKey("providers.id"), nullable=False, index=True)
    code = Column(String(50), nullable=False)
    name = Column(String(255), nullable=False)
    question_count = Column(Integer, nullable=True)
    time_limit_minutes = Column(Integer, nullable=True)
    passing_score = Column(Integer, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    provider = relationship("ProviderRecord", back_populates="certifications")

    __table_args__ = (
        UniqueConstraint("provider_id", "code", name="uq_certifications_provider_code"),
    )

    def to_info(self) -> CertificationInfo:
        return CertificationInfo(
            provider=self.provider.code,
            code=self.code,
            name=self.name,
            question_count=self.question_count,
            time_limit_minutes=self.time_limit_minutes,
            passing_score=self.passing_score,
        )


class TopicRecord(ModelBase):
    """Topic within a certification."""
    __tablename__ = "topics"

    id = Column(Integer, primary_key=True, autoincrement=True)
    certification_id = Column(Integer, ForeignKey("certifications.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)


class QuestionRecord(ModelBase):
    """A question in the bank."""
    __tablename__ = "questions"

    id = Column(String(64), primary_key=True)
    certification_id = Column(Integer, ForeignKey("certifications.id"), nullable=False, index=True)
    topic_id = Column(Integer, ForeignKey("topics.id"), nullable=True, index=True)
    text = Column(Text, nullable=False)
    question_type = Column(String(20), nullable=False, default="single_choice")
    difficulty = Column(String(20), nullable=False, default="medium", index=True)
    expected_answers = Column(Integer, nullable=True)
    points = Column(Integer, nullable=False, default=1)
    explanation = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    certification = relationship("CertificationRecord")
    topic = relationship("TopicRecord")
    options = relationship(
        "QuestionOptionRecord",
        order_by="QuestionOptionRecord.position",
        cascade="all, delete-orphan",
    )

    def to_question(self) -> Question:
        """
        Convert the row (with certification, provider, topic and options loaded)
        to a domain question.
        """
        return Question(
            question_id=self.id,
            text=self.text,
            options=tuple(Option(text=option.text, label=option.label) for option in self.options),
            correct_answers=frozenset(i for i, option in enumerate(self.options) if option.is_correct),
            question_type=self.question_type,
            difficulty=self.difficulty,
            category=self.topic.name if self.topic else DEFAULT_CATEGORY,
            provider=self.certification.provider.code,
            certification=self.certification.code,
            expected_answers=self.expected_answers,
            points=self.points,
            explanation=self.explanation,
        )


class QuestionOptionRecord(ModelBase):
    """Answer option; ``position`` gives its zero-based index."""
    __tablename__ = "question_options"

    id = Column(Integer, primary_key=True, autoincrement=True)
    question_id = Column(String(64), ForeignKey("questions.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    label = Column(String(10), nullable=True)
    text = Column(Text, nullable=False)
    is_correct = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        UniqueConstraint("question_id", "position", name="uq_question_options_position"),
    )
