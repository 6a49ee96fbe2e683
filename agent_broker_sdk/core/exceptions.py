"""Exceptions for the Agent Broker SDK.

Every error the SDK raises derives from :class:`AgentBrokerError`. Each error
is classified exactly once as transient (eligible for automatic retry) or
terminal by :func:`classify_error`, a fixed rule table over the error's type
and observable fields.
"""

import asyncio
from enum import Enum
from typing import Any, Dict, Optional

import httpx


class ErrorClass(Enum):
    """Retry eligibility of an error."""
    TRANSIENT = "transient"
    TERMINAL = "terminal"


class AgentBrokerError(Exception):
    """Base exception for all Agent Broker SDK errors.

    Args:
        message: Human readable description
        code: Stable machine readable error code
        details: Extra structured context (request ids, status codes, ...)
    """

    def __init__(
        self,
        message: str = "Agent broker error",
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or "BROKER_ERROR"
        self.details: Dict[str, Any] = dict(details or {})

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "error": type(self).__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(AgentBrokerError):
    """Raised when a caller argument violates a documented invariant.

    Never retried.
    """

    def __init__(self, message: str = "Invalid request", code: str = "VALIDATION_ERROR", **kwargs):
        super().__init__(message, code=code, **kwargs)


class ConfigurationError(AgentBrokerError):
    """Raised when a required capability or setting was never configured.

    This includes missing adapters, unsupported optional capabilities and
    invalid settings.
    """

    def __init__(self, message: str = "Configuration error", code: str = "CONFIG_ERROR", **kwargs):
        super().__init__(message, code=code, **kwargs)


class NetworkError(AgentBrokerError):
    """Raised for transport failures and timeouts. Transient."""

    def __init__(self, message: str = "Network error", code: str = "NETWORK_ERROR", **kwargs):
        super().__init__(message, code=code, **kwargs)


class RateLimitError(AgentBrokerError):
    """Raised when a backend explicitly throttles the caller. Transient.

    Args:
        retry_after: Seconds the backend asked us to wait, if it said so
    """

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        retry_after: Optional[float] = None,
        code: str = "RATE_LIMIT_EXCEEDED",
        **kwargs,
    ):
        if retry_after is not None:
            message = f"{message} Retry after {retry_after:g} seconds."
        super().__init__(message, code=code, **kwargs)
        self.retry_after = retry_after
        self.status = 429
        self.details["retry_after"] = retry_after


class UpstreamServiceError(AgentBrokerError):
    """Raised when a backend reports an internal failure. Transient.

    Args:
        status: HTTP status (or equivalent) reported by the backend
    """

    def __init__(
        self,
        message: str = "Upstream service error",
        status: Optional[int] = None,
        code: str = "UPSTREAM_ERROR",
        **kwargs,
    ):
        super().__init__(message, code=code, **kwargs)
        self.status = status
        self.details["status"] = status


class NotFoundError(AgentBrokerError):
    """Raised when a backend reports that a resource does not exist."""

    def __init__(self, message: str = "Resource not found", code: str = "NOT_FOUND", **kwargs):
        super().__init__(message, code=code, **kwargs)


class AuthenticationError(AgentBrokerError):
    """Raised when a backend rejects our credentials."""

    def __init__(self, message: str = "Authentication failed", code: str = "AUTH_ERROR", **kwargs):
        super().__init__(message, code=code, **kwargs)


TRANSIENT_STATUSES = frozenset({408, 429, 500, 502, 503, 504})

_TRANSIENT_TYPES = (
    NetworkError,
    RateLimitError,
    UpstreamServiceError,
    httpx.TransportError,
    asyncio.TimeoutError,
    TimeoutError,
    ConnectionError,
)


def _observable_status(error: BaseException) -> Optional[int]:
    for attr in ("status", "status_code"):
        value = getattr(error, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    response = getattr(error, "response", None)
    value = getattr(response, "status_code", None)
    if isinstance(value, int):
        return value
    return None


def classify_error(error: BaseException) -> ErrorClass:
    """Classify an error as transient or terminal.

    Rules, first match wins:

    1. SDK terminal types (validation, configuration, not found, auth).
    2. SDK transient types, raw transport errors and timeouts.
    3. Any other error exposing an HTTP-like ``status``/``status_code`` in
       :data:`TRANSIENT_STATUSES`.
    4. Everything else is terminal.
    """
    if isinstance(error, (ValidationError, ConfigurationError, NotFoundError, AuthenticationError)):
        return ErrorClass.TERMINAL
    if isinstance(error, _TRANSIENT_TYPES):
        return ErrorClass.TRANSIENT
    status = _observable_status(error)
    if status is not None and status in TRANSIENT_STATUSES:
        return ErrorClass.TRANSIENT
    return ErrorClass.TERMINAL


def is_transient(error: BaseException) -> bool:
    """Shortcut for ``classify_error(error) is ErrorClass.TRANSIENT``."""
    return classify_error(error) is ErrorClass.TRANSIENT


def error_from_status(
    status: int,
    message: Optional[str] = None,
    retry_after: Optional[float] = None,
    details: Optional[Dict[str, Any]] = None,
) -> AgentBrokerError:
    """Map a backend status code onto the SDK taxonomy."""
    details = dict(details or {})
    details.setdefault("status", status)
    if status == 429:
        return RateLimitError(message or "Rate limit exceeded", retry_after=retry_after, details=details)
    if status in (400, 422):
        return ValidationError(message or "Invalid request", details=details)
    if status in (401, 403):
        return AuthenticationError(message or "Authentication failed", details=details)
    if status == 404:
        return NotFoundError(message or "Resource not found", details=details)
    if status == 408:
        return NetworkError(message or "Request timed out", details=details)
    if status >= 500:
        return UpstreamServiceError(
            message or f"Upstream service failed with status {status}",
            status=status,
            details=details,
        )
    return AgentBrokerError(
        message or f"Request failed with status {status}",
        code="UNKNOWN_ERROR",
        details=details,
    )


__all__ = [
    "ErrorClass",
    "AgentBrokerError",
    "ValidationError",
    "ConfigurationError",
    "NetworkError",
    "RateLimitError",
    "UpstreamServiceError",
    "NotFoundError",
    "AuthenticationError",
    "TRANSIENT_STATUSES",
    "classify_error",
    "is_transient",
    "error_from_status",
]
