"""Application configuration module."""

from dataclasses import dataclass
from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


@dataclass(frozen=True)
class ExamDefaults:
    """Defaults and bounds applied when exams are created."""

    time_limit_minutes: int = 120
    passing_score: int = 70
    question_count: int = 65
    max_question_count: int = 200
    max_time_limit_minutes: int = 480
    failed_questions_default: int = 20
    failed_questions_min: int = 5
    failed_questions_max: int = 50


class Settings(BaseSettings):
    """Application settings."""

    # Database settings
    DATABASE_URL: str = "sqlite+aiosqlite:///./data/examprep.db"
    SQL_ECHO: bool = False
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_TIMEOUT: int = 30
    AUTO_CREATE_SCHEMA: bool = True
    AUTO_MIGRATE: bool = False

    # Logging settings
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False
    LOG_FILE: Optional[str] = None

    # API settings
    API_PREFIX: str = "/api"
    PROJECT_NAME: str = "ExamPrep Certification Practice"
    CORS_ORIGINS: List[str] = ["*"]

    # Identity settings
    JWT_SECRET_KEY: str = "dev-secret-key"
    JWT_ALGORITHM: str = "HS256"
    JWT_ISSUER: str = "examprep-api"
    SESSION_HEADER: str = "X-Session-ID"
    SESSION_COOKIE: str = "sessionId"
    SESSION_COOKIE_MAX_AGE: int = 60 * 60 * 24 * 30

    # Rate limiting
    REDIS_URL: Optional[str] = None
    RATE_LIMIT_PERIOD: int = 60
    CREATE_RATE_LIMIT: int = 10
    ANSWER_RATE_LIMIT: int = 30

    # Exam defaults
    EXAM_DEFAULT_TIME_LIMIT: int = 120
    EXAM_DEFAULT_PASSING_SCORE: int = 70
    EXAM_DEFAULT_QUESTION_COUNT: int = 65
    EXAM_MAX_QUESTION_COUNT: int = 200
    EXAM_MAX_TIME_LIMIT: int = 480
    FAILED_QUESTIONS_MIN: int = 5
    FAILED_QUESTIONS_MAX: int = 50

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    @property
    def exam_defaults(self) -> ExamDefaults:
        """Exam creation defaults derived from the settings."""
        return ExamDefaults(
            time_limit_minutes=self.EXAM_DEFAULT_TIME_LIMIT,
            passing_score=self.EXAM_DEFAULT_PASSING_SCORE,
            question_count=self.EXAM_DEFAULT_QUESTION_COUNT,
            max_question_count=self.EXAM_MAX_QUESTION_COUNT,
            max_time_limit_minutes=self.EXAM_MAX_TIME_LIMIT,
            failed_questions_min=self.FAILED_QUESTIONS_MIN,
            failed_questions_max=self.FAILED_QUESTIONS_MAX,
        )


@lru_cache()
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()


settings = get_settings()
