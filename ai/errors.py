"""Error taxonomy for perception and narration calls."""

import socket
from enum import Enum
from typing import Optional

import openai
from google.api_core import exceptions as google_exceptions

import config


class ErrorKind(Enum):
    """How the capture loop should react to a failed analysis."""
    TRANSIENT_NETWORK = "transient_network"  # Retry at the normal cadence
    RATE_LIMITED = "rate_limited"  # Retry after the long backoff
    SERVICE_UNAVAILABLE = "service_unavailable"  # Model missing/down, long backoff
    UNAUTHORIZED = "unauthorized"  # Fatal: needs a new key or config
    UNKNOWN = "unknown"  # Treated like a transient failure


class AnalysisError(Exception):
    """Raised by perception clients with an explicit error kind."""

    def __init__(self, message: str, kind: ErrorKind = ErrorKind.UNKNOWN):
        super().__init__(message)
        self.kind = kind


class NarrationError(Exception):
    """Speech synthesis or summary generation failed."""


_RATE_LIMIT_TYPES = (
    google_exceptions.ResourceExhausted,
    google_exceptions.TooManyRequests,
    openai.RateLimitError,
)

_UNAVAILABLE_TYPES = (
    google_exceptions.NotFound,
    google_exceptions.ServiceUnavailable,
    openai.NotFoundError,
    openai.InternalServerError,
)

_UNAUTHORIZED_TYPES = (
    google_exceptions.Unauthenticated,
    google_exceptions.PermissionDenied,
    openai.AuthenticationError,
    openai.PermissionDeniedError,
)

_TRANSIENT_TYPES = (
    ConnectionError,
    TimeoutError,
    socket.timeout,
    socket.gaierror,  # DNS lookup failures
    google_exceptions.DeadlineExceeded,
    openai.APIConnectionError,  # Includes APITimeoutError
)


def classify_error(error: BaseException) -> ErrorKind:
    """
    Map an exception raised during analysis onto an ErrorKind.

    Typed SDK exceptions are checked first; the message text is then
    searched for the status markers the services put in their errors
    (some SDK paths only surface a generic exception with the HTTP body).

    Args:
        error: Exception raised by a perception client

    Returns:
        The ErrorKind governing the retry reaction.
    """
    if isinstance(error, AnalysisError):
        return error.kind

    # Authorization is checked before rate limits: a bad key can also
    # surface as a 403 wrapped in a quota message on some endpoints
    if isinstance(error, _UNAUTHORIZED_TYPES):
        return ErrorKind.UNAUTHORIZED
    if isinstance(error, _RATE_LIMIT_TYPES):
        return ErrorKind.RATE_LIMITED
    if isinstance(error, _UNAVAILABLE_TYPES):
        return ErrorKind.SERVICE_UNAVAILABLE

    message = f"{type(error).__name__}: {error}"
    lowered = message.lower()

    if '429' in message or 'quota' in lowered or 'RESOURCE_EXHAUSTED' in message:
        return ErrorKind.RATE_LIMITED
    if '404' in message or 'NOT_FOUND' in message:
        return ErrorKind.SERVICE_UNAVAILABLE
    if 'api key' in lowered or 'API_KEY' in message:
        return ErrorKind.UNAUTHORIZED

    if isinstance(error, _TRANSIENT_TYPES):
        return ErrorKind.TRANSIENT_NETWORK

    return ErrorKind.UNKNOWN


def is_fatal(kind: ErrorKind) -> bool:
    """Fatal kinds stop monitoring and are never retried automatically."""
    return kind == ErrorKind.UNAUTHORIZED


def retry_delay(kind: ErrorKind, interval_seconds: float) -> Optional[float]:
    """
    Seconds until the next capture attempt after a failure.

    Returns:
        Delay in seconds, or None when the failure is fatal.
    """
    if is_fatal(kind):
        return None
    if kind in (ErrorKind.RATE_LIMITED, ErrorKind.SERVICE_UNAVAILABLE):
        return config.BACKOFF_SECONDS
    return interval_seconds


def diagnostic_for(kind: ErrorKind) -> str:
    """Short user-visible message for a failure kind."""
    messages = {
        ErrorKind.RATE_LIMITED: config.DIAGNOSTIC_RATE_LIMITED,
        ErrorKind.SERVICE_UNAVAILABLE: config.DIAGNOSTIC_SERVICE_UNAVAILABLE,
        ErrorKind.UNAUTHORIZED: config.DIAGNOSTIC_UNAUTHORIZED,
    }
    return messages.get(kind, config.DIAGNOSTIC_TRANSIENT)
