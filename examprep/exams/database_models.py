"""
SQLAlchemy ORM models for exams.

This module defines the tables behind the exam session aggregate:
- ExamRecord: The exam, its owner, configuration, status and frozen result
- ExamQuestionRecord: Ordered snapshot of the questions drawn for the exam
- ExamAnswerRecord: The latest answer per question, with its correctness

Exactly one of ``user_id`` and ``session_id`` is set on an exam; the database
enforces it.
"""

from sqlalchemy import (
    JSON, Boolean, CheckConstraint, Column, DateTime, Float, ForeignKey, Index,
    Integer, String, Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.schema import UniqueConstraint

from examprep.common.utils import utcnow
from examprep.database.base import ModelBase

EXAM_STATUSES = ("not_started", "in_progress", "paused", "completed", "cancelled")


class ExamRecord(ModelBase):
    """An exam owned by a user or an anonymous session."""
    __tablename__ = "exams"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(255), nullable=True, index=True)
    session_id = Column(String(128), ForeignKey("anonymous_sessions.session_id"), nullable=True, index=True)
    provider = Column(String(50), nullable=False)
    certification = Column(String(50), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    mode = Column(String(20), nullable=False, default="practice")
    settings = Column(JSON, nullable=False, default=dict)
    time_limit_minutes = Column(Integer, nullable=False)
    passing_score = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default="not_started", index=True)
    time_spent_minutes = Column(Integer, nullable=False, default=0)
    score = Column(Integer, nullable=True)
    passed = Column(Boolean, nullable=False, default=False)
    correct_answers = Column(Integer, nullable=False, default=0)
    incorrect_answers = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    questions = relationship(
        "ExamQuestionRecord",
        order_by="ExamQuestionRecord.position",
        cascade="all, delete-orphan",
        back_populates="exam",
    )
    answers = relationship(
        "ExamAnswerRecord",
        cascade="all, delete-orphan",
        back_populates="exam",
    )

    __table_args__ = (
        CheckConstraint("(user_id IS NULL) <> (session_id IS NULL)", name="single_owner"),
        CheckConstraint(
            "status IN ({})".format(", ".join(f"'{s}'" for s in EXAM_STATUSES)),
            name="valid_status",
        ),
        Index("ix_exams_user_created", "user_id", "created_at"),
        Index("ix_exams_session_created", "session_id", "created_at"),
    )

    def __repr__(self):
        return f"<ExamRecord(id='{self.id}', status='{self.status}')>"


class ExamQuestionRecord(ModelBase):
    """A question drawn for an exam, stored as a snapshot."""
    __tablename__ = "exam_questions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    exam_id = Column(String(36), ForeignKey("exams.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    question_id = Column(String(64), nullable=False)
    snapshot = Column(JSON, nullable=False)

    exam = relationship("ExamRecord", back_populates="questions")

    __table_args__ = (
        UniqueConstraint("exam_id", "position", name="uq_exam_questions_exam_position"),
        UniqueConstraint("exam_id", "question_id", name="uq_exam_questions_exam_question"),
    )


class ExamAnswerRecord(ModelBase):
    """The latest answer to one question of an exam."""
    __tablename__ = "exam_answers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    exam_id = Column(String(36), ForeignKey("exams.id", ondelete="CASCADE"), nullable=False, index=True)
    question_id = Column(String(64), nullable=False, index=True)
    answer_kind = Column(String(10), nullable=False)
    selected_options = Column(JSON, nullable=False)
    is_correct = Column(Boolean, nullable=False, default=False)
    partial_score = Column(Float, nullable=False, default=0.0)
    answered_at = Column(DateTime, nullable=False, default=utcnow)

    exam = relationship("ExamRecord", back_populates="answers")

    __table_args__ = (
        UniqueConstraint("exam_id", "question_id", name="uq_exam_answers_exam_question"),
    )
