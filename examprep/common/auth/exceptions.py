"""
Authentication Exceptions

This module defines exception classes for authentication errors. Each carries
the HTTP status and the error code used in the API error envelope.
"""


class AuthError(Exception):
    """Base exception for authentication errors."""

    code = "unauthorized"

    def __init__(self, message: str = "Authentication error", status_code: int = 401):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class InvalidTokenError(AuthError):
    """Bearer token is malformed, badly signed or of the wrong type."""

    code = "invalid_token"

    def __init__(self, message: str = "Invalid token"):
        super().__init__(message, status_code=401)


class ExpiredTokenError(AuthError):
    code = "token_expired"

    def __init__(self, message: str = "Token has expired"):
        super().__init__(message, status_code=401)


class MissingTokenError(AuthError):
    """The endpoint needs an authenticated user and the request is anonymous."""

    code = "authentication_required"

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message, status_code=401)
