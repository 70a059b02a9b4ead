"""
Main application entry point for the exam platform.

This module builds the FastAPI application: database lifecycle, identity
resolution, rate limiting, the exam service and its router.

Usage:
    - Direct: python -m examprep.main
    - ASGI server: uvicorn examprep.main:app
"""

import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from examprep import __version__
from examprep.api import install_exception_handlers, main_router, register_module
from examprep.common.auth.identity import IdentityResolver
from examprep.common.auth.jwt import JWTConfig, set_jwt_config
from examprep.common.auth.sessions import AnonymousSessionRegistry
from examprep.common.db.session import PersistenceGateway
from examprep.common.logger import APP_LOGGER_NAME, app_logger, configure_logger
from examprep.common.rate_limiter import RateLimiter, create_rate_limiter
from examprep.config import Settings, get_settings
from examprep.database.init_db import close_database, get_session_factory, initialize_database
from examprep.domain.questions.repository import QuestionRepository
from examprep.domain.questions.sql_repository import SqlQuestionRepository
from examprep.exams.repository import ExamRepository
from examprep.exams.router import router as exams_router
from examprep.exams.service import ExamService

# Setup module logger
logger = app_logger.getChild("main")

register_module("exams", exams_router)


def create_app(settings: Optional[Settings] = None,
               question_repository: Optional[QuestionRepository] = None,
               rate_limiter: Optional[RateLimiter] = None) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Application settings (defaults to the environment)
        question_repository: Question bank (defaults to the SQL question tables)
        rate_limiter: Rate limiter (defaults to Redis when configured, else in-process)

    Returns:
        The FastAPI application
    """
    settings = settings or get_settings()
    configure_logger(
        name=APP_LOGGER_NAME,
        level=settings.LOG_LEVEL,
        use_json=settings.LOG_JSON,
        log_file=settings.LOG_FILE,
    )
    jwt_config = JWTConfig(
        secret_key=settings.JWT_SECRET_KEY,
        algorithm=settings.JWT_ALGORITHM,
        token_issuer=settings.JWT_ISSUER,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await initialize_database(settings)
        session_factory = get_session_factory()
        set_jwt_config(jwt_config)

        app.state.exam_service = ExamService(
            gateway=PersistenceGateway(session_factory, ExamRepository),
            questions=question_repository or SqlQuestionRepository(session_factory),
            anonymous_sessions=AnonymousSessionRegistry(session_factory),
            defaults=settings.exam_defaults,
        )
        logger.info("Application startup complete")
        try:
            yield
        finally:
            await close_database()
            logger.info("Application shutdown complete")

    app = FastAPI(
        title=settings.PROJECT_NAME,
        description="API for certification exam practice",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.identity_resolver = IdentityResolver(jwt_config)
    app.state.rate_limiter = rate_limiter or create_rate_limiter(settings.REDIS_URL)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[settings.SESSION_HEADER],
    )
    install_exception_handlers(app)
    app.include_router(main_router, prefix=settings.API_PREFIX)

    @app.get("/health")
    async def health():
        """Liveness check."""
        return {"status": "ok", "version": __version__}

    logger.info(f"Application initialized with {len(app.routes)} routes")
    return app


app = create_app()

# Entry point for running the application directly
if __name__ == "__main__":
    import uvicorn

    host = os.environ.get("HOST", "0.0.0.0")
    port = int(os.environ.get("PORT", 8000))
    reload_enabled = os.environ.get("RELOAD", "false").lower() == "true"

    logger.info(f"Starting server on {host}:{port} (reload: {reload_enabled})")
    uvicorn.run(
        "examprep.main:app",
        host=host,
        port=port,
        reload=reload_enabled,
        log_level="info"
    )
