"""
Request models for the exam API.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field


class ExamSettingsRequest(BaseModel):
    randomize_questions: Optional[bool] = None
    randomize_answers: Optional[bool] = None
    show_explanations: Optional[bool] = None
    allow_pause: Optional[bool] = None
    allow_review: Optional[bool] = None


class CreateExamRequest(BaseModel):
    # Range checks happen in the service so failures use the exam error format
    provider: Optional[str] = Field(None, description="Provider code, e.g. aws")
    certification: Optional[str] = Field(None, description="Certification code, e.g. saa-c03")
    category: Optional[str] = Field(None, description="Only draw questions from this topic")
    difficulty: Optional[str] = Field(None, description="Only draw questions of this difficulty")
    question_count: Optional[int] = Field(None, description="Number of questions")
    time_limit_minutes: Optional[int] = Field(None, description="Time budget in minutes")
    passing_score: Optional[int] = Field(None, description="Passing score (0-100)")
    mode: str = Field("practice", description="practice, realistic, timed, simulation or review")
    title: Optional[str] = Field(None, max_length=255)
    description: str = Field("", max_length=2000)
    settings: ExamSettingsRequest = Field(default_factory=ExamSettingsRequest)


class FailedQuestionsExamRequest(BaseModel):
    question_count: Optional[int] = Field(None, description="Number of questions (capped at 50)")
    provider: Optional[str] = None
    certification: Optional[str] = None


class SubmitAnswerRequest(BaseModel):
    question_id: str = Field(..., min_length=1)
    answer: Any = Field(..., description="Option index, or a list of indices for multi-select questions")
