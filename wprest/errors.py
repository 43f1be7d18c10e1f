"""Exceptions raised or captured by the WordPress REST client."""
from __future__ import annotations

import enum
from typing import Optional


class ErrorKind(enum.Enum):
    """Category of a failed request, stored on every failed response."""

    PRECONDITION = "precondition"
    AUTHORIZATION = "authorization"
    TRANSPORT = "transport"
    POLICY = "policy"
    CANCELLED = "cancelled"
    UNHANDLED = "unhandled"


class WordPressError(RuntimeError):
    """Base class for errors produced by this package."""


class ConfigurationError(WordPressError, ValueError):
    """Raised when client configuration or builder input is invalid."""


class AuthorizationFailedError(WordPressError):
    """Credential exchange or header construction failed."""


class RequestCancelledError(WordPressError):
    """The request was cancelled or exceeded its timeout."""

    def __init__(self, message: str, timeout: Optional[float] = None):
        super().__init__(message)
        self.timeout = timeout


class ResponseRejectedError(WordPressError):
    """The server response was rejected by status, size or a validator."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body
