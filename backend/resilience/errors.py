"""
Error taxonomy for calls to GitHub, Resend and Supabase.

Every exception that crosses a service boundary is classified into an
ErrorKind. The kind selects the retry policy and tells the circuit breaker
whether the failure says anything about the health of the upstream service.
"""

from dataclasses import dataclass
from enum import Enum

import requests
from pydantic import ValidationError
from resend.exceptions import ResendError


class ErrorKind(str, Enum):
    AUTHENTICATION = "authentication"
    RATE_LIMIT = "rate_limit"
    ACCESS_DENIED = "access_denied"
    UPSTREAM = "upstream"
    NETWORK = "network"
    VALIDATION = "validation"
    STORAGE = "storage"
    UNKNOWN = "unknown"


# Caller-side problems: retrying cannot help and the service is not unhealthy
CLIENT_ERROR_KINDS = frozenset(
    {ErrorKind.AUTHENTICATION, ErrorKind.ACCESS_DENIED, ErrorKind.VALIDATION}
)


class StaleBotError(Exception):
    """Base class for classified service errors."""

    kind = ErrorKind.UNKNOWN
    retryable = True

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class AuthenticationError(StaleBotError):
    """Credentials were rejected (expired or revoked token)."""

    kind = ErrorKind.AUTHENTICATION
    retryable = False


class RateLimitError(StaleBotError):
    """The upstream asked us to slow down."""

    kind = ErrorKind.RATE_LIMIT

    def __init__(
        self,
        message: str,
        retry_after: float | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message, status_code)
        self.retry_after = retry_after


class RepositoryAccessError(StaleBotError):
    """Repository is gone or the token can no longer see it."""

    kind = ErrorKind.ACCESS_DENIED
    retryable = False


class InvalidRequestError(StaleBotError):
    """The upstream rejected the request as malformed."""

    kind = ErrorKind.VALIDATION
    retryable = False


class UpstreamError(StaleBotError):
    """The upstream answered with a server error."""

    kind = ErrorKind.UPSTREAM


class NetworkError(StaleBotError):
    """The upstream could not be reached."""

    kind = ErrorKind.NETWORK


class StorageError(StaleBotError):
    """A Supabase query failed."""

    kind = ErrorKind.STORAGE


class CircuitOpenError(StaleBotError):
    """Call rejected without reaching the service because its circuit is open."""

    kind = ErrorKind.UPSTREAM
    retryable = False

    def __init__(self, service: str):
        super().__init__(f"Circuit breaker for {service} is open")
        self.service = service


@dataclass(frozen=True)
class ErrorInfo:
    kind: ErrorKind
    retryable: bool
    retry_after: float | None = None


def _kind_for_status(status_code: int) -> ErrorKind:
    if status_code == 429:
        return ErrorKind.RATE_LIMIT
    if status_code == 401:
        return ErrorKind.AUTHENTICATION
    if status_code in (403, 404):
        return ErrorKind.ACCESS_DENIED
    if status_code >= 500:
        return ErrorKind.UPSTREAM
    if 400 <= status_code < 500:
        return ErrorKind.VALIDATION
    return ErrorKind.UNKNOWN


def classify_error(error: BaseException) -> ErrorInfo:
    """
    Map an exception to its ErrorKind and retryability.

    Args:
        error: Exception raised by a service call

    Returns:
        ErrorInfo with kind, retryable flag and any retry-after hint (seconds)
    """
    if isinstance(error, RateLimitError):
        return ErrorInfo(error.kind, error.retryable, error.retry_after)

    if isinstance(error, StaleBotError):
        return ErrorInfo(error.kind, error.retryable)

    if isinstance(error, ValidationError):
        return ErrorInfo(ErrorKind.VALIDATION, False)

    if isinstance(error, (requests.ConnectionError, requests.Timeout)):
        return ErrorInfo(ErrorKind.NETWORK, True)

    if isinstance(error, requests.HTTPError) and error.response is not None:
        kind = _kind_for_status(error.response.status_code)
        return ErrorInfo(kind, kind not in CLIENT_ERROR_KINDS)

    if isinstance(error, ResendError):
        try:
            status_code = int(error.code)
        except (TypeError, ValueError):
            return ErrorInfo(ErrorKind.UNKNOWN, True)
        kind = _kind_for_status(status_code)
        if kind == ErrorKind.ACCESS_DENIED:
            # Resend answers 403 for an unverified sending domain or bad key
            kind = ErrorKind.AUTHENTICATION
        return ErrorInfo(kind, kind not in CLIENT_ERROR_KINDS)

    return ErrorInfo(ErrorKind.UNKNOWN, True)


def describe_error(error: BaseException) -> str:
    """Short user-facing reason for a failed sync."""
    kind = classify_error(error).kind
    if kind == ErrorKind.AUTHENTICATION:
        return "GitHub authentication failed - please reconnect your account"
    if kind == ErrorKind.RATE_LIMIT:
        return "GitHub rate limit exceeded - try again later"
    if kind == ErrorKind.ACCESS_DENIED:
        return "Access revoked - please reconnect"
    if kind in (ErrorKind.UPSTREAM, ErrorKind.NETWORK):
        return "GitHub is temporarily unavailable - try again later"
    return f"Sync failed: {error}"
