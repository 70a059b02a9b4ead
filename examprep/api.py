"""
Central API router and utilities for the exam platform.

This module provides:
- A central router that feature routers register with
- The standard response envelope
- Exception handlers mapping typed failures to HTTP responses
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from examprep.common.auth.exceptions import AuthError
from examprep.common.exceptions import (
    BaseError,
    InsufficientDataError,
    InvalidTransitionError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from examprep.common.logger import app_logger

logger = app_logger.getChild("api")

# Create main API router
main_router = APIRouter()

# Dictionary to track registered modules
registered_modules: Dict[str, APIRouter] = {}

ERROR_STATUS = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    InvalidTransitionError: status.HTTP_409_CONFLICT,
    ValidationError: status.HTTP_400_BAD_REQUEST,
    InsufficientDataError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    PersistenceError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def register_module(name: str, router: APIRouter) -> None:
    """
    Register a feature router with the main API router.

    Args:
        name: Name of the module, used as path prefix and tag
        router: FastAPI router for the module
    """
    if name in registered_modules:
        logger.warning(f"Module '{name}' already registered, overwriting")

    main_router.include_router(router, prefix=f"/{name}", tags=[name])
    registered_modules[name] = router
    logger.info(f"Registered module: {name} with {len(router.routes)} routes")


# Standard API response model
class APIResponse:
    """Standard API response structure"""

    @staticmethod
    def success(data: Any = None, message: str = "Success") -> Dict[str, Any]:
        """
        Create a success response.

        Args:
            data: Response data
            message: Success message

        Returns:
            Response dictionary
        """
        return {
            "status": "success",
            "message": message,
            "data": data
        }

    @staticmethod
    def error(message: str, details: Optional[Any] = None,
              code: Optional[str] = None) -> Dict[str, Any]:
        """
        Create an error response.

        Args:
            message: Error message
            details: Optional error details
            code: Optional error code

        Returns:
            Response dictionary
        """
        response = {
            "status": "error",
            "message": message
        }

        if details:
            response["details"] = details

        if code:
            response["code"] = code

        return response


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle request validation errors with the standard error envelope."""
    error_details = []
    for error in exc.errors():
        error_details.append({
            "location": list(error.get("loc", [])),
            "message": error.get("msg", "Unknown validation error"),
            "type": error.get("type", "")
        })

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=APIResponse.error("Validation error", details=error_details, code="request_validation")
    )


async def exam_error_handler(request: Request, exc: BaseError) -> JSONResponse:
    """Map a typed failure to its HTTP status."""
    status_code = next(
        (code for error_type, code in ERROR_STATUS.items() if isinstance(exc, error_type)),
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {status_code} ({exc.code})")

    message = exc.message
    if isinstance(exc, PersistenceError):
        # Driver messages stay in the log
        message = "The request could not be completed, please retry"
    return JSONResponse(
        status_code=status_code,
        content=APIResponse.error(message, details=exc.details() or None, code=exc.code)
    )


async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    logger.info(f"{request.method} {request.url.path} rejected: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=APIResponse.error(exc.message, code=exc.code),
        headers={"WWW-Authenticate": "Bearer"},
    )


def install_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(BaseError, exam_error_handler)
    app.add_exception_handler(AuthError, auth_error_handler)
