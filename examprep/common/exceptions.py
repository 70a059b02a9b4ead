"""
Common Exception Classes

This module defines the typed failures raised by the exam core. Each call into
the core fails with exactly one of these; the API layer maps them to HTTP
responses.
"""

from typing import Any, Dict, Optional


class BaseError(Exception):
    """Base class for all custom exceptions."""

    code = "error"

    def __init__(self, message: str, original_exception: Optional[Exception] = None):
        """
        Initialize the exception.

        Args:
            message: Error message
            original_exception: Original exception that caused this error
        """
        super().__init__(message)
        self.message = message
        self.original_exception = original_exception
        self.exam_id: Optional[str] = None

    def for_exam(self, exam_id: Optional[str]) -> "BaseError":
        """Attach the exam id the failure relates to, keeping one set earlier."""
        if self.exam_id is None:
            self.exam_id = exam_id
        return self

    def details(self) -> Dict[str, Any]:
        """Structured details exposed to API clients."""
        return {"exam_id": self.exam_id} if self.exam_id else {}


class NotFoundError(BaseError):
    """
    Exception raised when a resource is not found.

    Also raised when an exam exists but belongs to somebody else, so callers
    cannot probe for other owners' exams.
    """

    code = "not_found"

    def __init__(self, resource_type: str, resource_id: Any):
        """
        Initialize the not found error.

        Args:
            resource_type: Type of resource that wasn't found
            resource_id: ID of the resource that wasn't found
        """
        super().__init__(f"{resource_type} with ID {resource_id} not found")
        self.resource_type = resource_type
        self.resource_id = resource_id


class InvalidTransitionError(BaseError):
    """Exception raised when an exam cannot move to the requested status."""

    code = "invalid_transition"

    def __init__(self, message: str, current_status: Optional[str] = None,
                 reason: str = "not_in_progress"):
        """
        Initialize the transition error.

        Args:
            message: Error message
            current_status: Status the exam was in
            reason: Machine-readable reason (``not_startable``, ``not_in_progress``,
                ``not_paused``, ``not_started``, ``already_completed``,
                ``time_expired``, ``terminal``, ``not_completed``)
        """
        super().__init__(message)
        self.current_status = current_status
        self.reason = reason

    def details(self) -> Dict[str, Any]:
        details = super().details()
        details.update({"current_status": self.current_status, "reason": self.reason})
        return details


class ValidationError(BaseError):
    """Exception raised for malformed input, such as a badly shaped answer."""

    code = "validation_failed"

    def __init__(self, message: str, errors: Optional[dict] = None):
        """
        Initialize the validation error.

        Args:
            message: Error message
            errors: Dictionary of field-level validation errors
        """
        super().__init__(message)
        self.errors = errors or {}

    def details(self) -> Dict[str, Any]:
        details = super().details()
        if self.errors:
            details["errors"] = self.errors
        return details


class InsufficientDataError(BaseError):
    """Exception raised when the question pool cannot supply enough questions."""

    code = "insufficient_data"

    def __init__(self, message: str, available: int = 0, required: int = 1):
        super().__init__(message)
        self.available = available
        self.required = required

    def details(self) -> Dict[str, Any]:
        details = super().details()
        details.update({"available": self.available, "required": self.required})
        return details


class PersistenceError(BaseError):
    """Exception raised when a transaction could not be committed."""

    code = "persistence_failure"

    def __init__(self, message: str, original_exception: Optional[Exception] = None):
        """
        Initialize the persistence error.

        Args:
            message: Error message
            original_exception: Original database exception
        """
        super().__init__(f"Database error: {message}", original_exception)


class ConfigurationError(BaseError):
    """Exception raised for configuration-related errors."""

    code = "configuration_error"

    def __init__(self, message: str, config_key: Optional[str] = None):
        super().__init__(f"Configuration error: {message}")
        self.config_key = config_key
