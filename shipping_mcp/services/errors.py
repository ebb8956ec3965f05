"""
Service layer exceptions and the error normalizer.

Every failure that leaves the client is a DomainError whose `kind` comes
from the closed ErrorKind taxonomy. Callers branch on `kind`, never on
provider-specific strings.
"""

import asyncio
from enum import Enum
from typing import Any

import httpx


class ErrorKind(str, Enum):
    """Closed error taxonomy."""

    VALIDATION = "validation"
    BAD_REQUEST = "bad-request"
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not-found"
    RATE_LIMITED = "rate-limited"
    UPSTREAM_UNAVAILABLE = "upstream-unavailable"
    TRANSPORT_TIMEOUT = "transport-timeout"
    TRANSPORT_FAILURE = "transport-failure"
    CACHE_UNAVAILABLE = "cache-unavailable"

    @property
    def retryable(self) -> bool:
        return self in RETRYABLE_KINDS


RETRYABLE_KINDS = frozenset(
    {
        ErrorKind.RATE_LIMITED,
        ErrorKind.UPSTREAM_UNAVAILABLE,
        ErrorKind.TRANSPORT_TIMEOUT,
        ErrorKind.TRANSPORT_FAILURE,
    }
)

# Fallback messages when the provider body carries nothing usable
STATUS_MESSAGES: dict[int, str] = {
    400: "bad request",
    401: "unauthorized",
    402: "payment required",
    403: "forbidden",
    404: "not found",
    405: "method not allowed",
    409: "conflict",
    410: "gone",
    422: "unprocessable entity",
    429: "rate limited",
}

UPSTREAM_UNAVAILABLE_MESSAGE = "upstream unavailable"


class DomainError(Exception):
    """Base exception for every failure surfaced by the service layer."""

    kind: ErrorKind = ErrorKind.BAD_REQUEST

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        code: str | None = None,
        details: dict[str, Any] | None = None,
        service_id: str | None = None,
        retry_after: float | None = None,
    ):
        self.message = message
        self.status = status
        self.code = code or (f"HTTP_{status}" if status else self.kind.name)
        self.details = dict(details or {})
        self.service_id = service_id
        self.retry_after = retry_after
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        return self.kind.retryable

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "status": self.status,
            "code": self.code,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(kind={self.kind.value!r}, "
            f"message={self.message!r}, status={self.status!r})"
        )


class ValidationError(DomainError):
    """Caller-supplied input is malformed; raised before any I/O."""

    kind = ErrorKind.VALIDATION


class BadRequestError(DomainError):
    """Provider rejected the request content."""

    kind = ErrorKind.BAD_REQUEST


class UnauthorizedError(DomainError):
    """Credential missing, invalid or lacking permission."""

    kind = ErrorKind.UNAUTHORIZED


class NotFoundError(DomainError):
    """Target resource absent."""

    kind = ErrorKind.NOT_FOUND


class RateLimitError(DomainError):
    """Provider throttling."""

    kind = ErrorKind.RATE_LIMITED


class UpstreamUnavailableError(DomainError):
    """Provider answered with a 5xx."""

    kind = ErrorKind.UPSTREAM_UNAVAILABLE


class RequestTimeoutError(DomainError):
    """Request exceeded its timeout."""

    kind = ErrorKind.TRANSPORT_TIMEOUT


class TransportFailureError(DomainError):
    """Connection-level failure (DNS, refused, reset)."""

    kind = ErrorKind.TRANSPORT_FAILURE


class CacheUnavailableError(DomainError):
    """Shared cache unreachable. Logged and treated as a miss, never surfaced."""

    kind = ErrorKind.CACHE_UNAVAILABLE


ERROR_CLASSES: dict[ErrorKind, type[DomainError]] = {
    cls.kind: cls
    for cls in (
        ValidationError,
        BadRequestError,
        UnauthorizedError,
        NotFoundError,
        RateLimitError,
        UpstreamUnavailableError,
        RequestTimeoutError,
        TransportFailureError,
        CacheUnavailableError,
    )
}


def kind_for_status(status: int) -> ErrorKind:
    """Map a non-2xx HTTP status onto the taxonomy."""
    if status == 429:
        return ErrorKind.RATE_LIMITED
    if status >= 500:
        return ErrorKind.UPSTREAM_UNAVAILABLE
    if status in (401, 403):
        return ErrorKind.UNAUTHORIZED
    if status in (404, 410):
        return ErrorKind.NOT_FOUND
    return ErrorKind.BAD_REQUEST


def status_message(status: int) -> str:
    if status >= 500:
        return UPSTREAM_UNAVAILABLE_MESSAGE
    return STATUS_MESSAGES.get(status, f"HTTP {status} error")


def _extract_provider_error(body: Any) -> tuple[str | None, str | None]:
    """
    Pull (message, code) out of a provider error body.

    Understands:
        {"error": {"message": ..., "code": ...}}   EasyPost
        {"error": "..."}
        {"message": ..., "code": ...}
        {"errors": ["...", {"message": ...}]}      Veeqo validation
    """
    if not isinstance(body, dict):
        return None, None

    error = body.get("error")
    if isinstance(error, dict):
        message = error.get("message")
        code = error.get("code")
        return (str(message) if message else None), (str(code) if code else None)
    if isinstance(error, str) and error:
        return error, None

    code = body.get("code")
    code = str(code) if code else None

    if body.get("message"):
        return str(body["message"]), code

    errors = body.get("errors")
    if isinstance(errors, list) and errors:
        parts = []
        for item in errors:
            if isinstance(item, dict):
                parts.append(str(item.get("message") or item))
            else:
                parts.append(str(item))
        return "; ".join(parts), code

    if isinstance(errors, dict) and errors:
        # Rails-style {"field": ["is invalid"]}
        parts = [
            f"{field} {', '.join(map(str, msgs)) if isinstance(msgs, list) else msgs}"
            for field, msgs in errors.items()
        ]
        return "; ".join(parts), code

    return None, code


def normalize_response(
    status: int,
    body: Any,
    service_id: str | None = None,
    retry_after: float | None = None,
) -> DomainError:
    """Build the DomainError for an HTTP error response."""
    kind = kind_for_status(status)
    provider_message, provider_code = _extract_provider_error(body)

    details: dict[str, Any] = {}
    if body is not None and body != "":
        details["response"] = body
    if retry_after is not None:
        details["retry_after"] = retry_after

    return ERROR_CLASSES[kind](
        provider_message or status_message(status),
        status=status,
        code=provider_code,
        details=details,
        service_id=service_id,
        retry_after=retry_after,
    )


def normalize_transport_error(
    exc: Exception,
    timeout: float | None = None,
    service_id: str | None = None,
) -> DomainError:
    """
    Build the DomainError for a request that produced no usable response.

    Raw socket details go into `details` only; the message stays stable.
    Redirect loops and undecodable bodies count as transport failures.
    """
    details = {"error_type": type(exc).__name__, "error": str(exc)}

    if isinstance(exc, (httpx.TimeoutException, asyncio.TimeoutError)):
        if timeout is not None:
            details["timeout"] = timeout
            message = f"request timed out after {timeout:g}s"
        else:
            message = "request timed out"
        return RequestTimeoutError(
            message, code="REQUEST_TIMEOUT", details=details, service_id=service_id
        )

    if isinstance(exc, httpx.TooManyRedirects):
        message, code = "upstream redirected too many times", "TOO_MANY_REDIRECTS"
    elif isinstance(exc, httpx.DecodingError):
        message, code = "upstream response could not be decoded", "DECODING_FAILED"
    else:
        message, code = "connection to upstream failed", "CONNECTION_FAILED"

    return TransportFailureError(
        message, code=code, details=details, service_id=service_id
    )
