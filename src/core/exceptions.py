"""Structured failure hierarchy for the request pipeline.

Every pipeline stage either completes normally or produces exactly one
failure. Failures are modelled as one exception family with an explicit
``FailureKind`` instead of ad-hoc status attributes, so the error formatter
can classify them without duck typing.

Key components:
- **FailureKind enum**: Taxonomy of failures with their default HTTP status
- **Severity enum**: Error classification for log levels
- **FieldViolation**: One broken validation rule for one field
- **RampartError**: Base exception carrying kind, status, headers and cause
- **Specialized exceptions**: One subclass per failure kind
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any


class FailureKind(Enum):
    """Failure taxonomy for the request pipeline.

    Each member maps to the HTTP status code the error formatter uses when
    the failure does not carry an explicit status of its own.
    """

    VALIDATION_FAILED = "VALIDATION_FAILED"
    """The request did not satisfy the route schema."""

    MALFORMED_BODY = "MALFORMED_BODY"
    """The body could not be parsed as its declared content type."""

    FORBIDDEN_ORIGIN = "FORBIDDEN_ORIGIN"
    """The request Origin is not in the CORS whitelist."""

    NOT_FOUND = "NOT_FOUND"
    """No route matched the request."""

    PAYLOAD_TOO_LARGE = "PAYLOAD_TOO_LARGE"
    """The body exceeded the configured size limit."""

    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    """The client used up its request budget for the current window."""

    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    """The process is draining and refuses new work."""

    INTERNAL = "INTERNAL"
    """A programming or infrastructure fault."""

    @property
    def status_code(self) -> int:
        """Default HTTP status code for this kind."""
        return _KIND_STATUS[self]


_KIND_STATUS: dict[FailureKind, int] = {
    FailureKind.VALIDATION_FAILED: 400,
    FailureKind.MALFORMED_BODY: 400,
    FailureKind.FORBIDDEN_ORIGIN: 403,
    FailureKind.NOT_FOUND: 404,
    FailureKind.PAYLOAD_TOO_LARGE: 413,
    FailureKind.RATE_LIMIT_EXCEEDED: 429,
    FailureKind.SERVICE_UNAVAILABLE: 503,
    FailureKind.INTERNAL: 500,
}


class Severity(Enum):
    """Severity levels used to pick the log level of a failure."""

    LOW = "LOW"
    """Caller mistakes that are part of normal operation."""

    MEDIUM = "MEDIUM"
    """Operational conditions worth noticing, such as throttling."""

    HIGH = "HIGH"
    """Faults that need attention."""

    CRITICAL = "CRITICAL"
    """Faults that may leave the process in a bad state."""


@dataclass(frozen=True)
class FieldViolation:
    """A single broken rule for a single field.

    Attributes:
        field: Dotted path of the offending field (``email``, ``items.0.name``).
        message: Human readable description of the rule.
        rule: Rule category, e.g. ``required``, ``email``, ``pattern``.
        value: The submitted value. Never sent to clients in production.
    """

    field: str
    message: str
    rule: str | None = None
    value: Any = None


class RampartError(Exception):
    """Base exception class for all pipeline failures.

    Args:
        kind: The failure category.
        message: Human-readable error message
        severity: Severity level of the error (defaults to MEDIUM)
        status_code: Explicit HTTP status overriding the kind default
        headers: Response headers the failure response must carry
        cause: The original exception that caused this error
    """

    def __init__(
        self,
        kind: FailureKind,
        message: str,
        severity: Severity = Severity.MEDIUM,
        status_code: int | None = None,
        headers: dict[str, str] | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.kind = kind
        self.message = message
        self.severity = severity
        self.status_code = status_code or kind.status_code
        self.headers = headers or {}
        self.cause = cause

        super().__init__(message)
        if cause:
            self.__cause__ = cause

    @property
    def is_expected(self) -> bool:
        """Whether the failure is part of normal operation (LOW or MEDIUM)."""
        return self.severity in (Severity.LOW, Severity.MEDIUM)

    def __str__(self) -> str:
        return f"[{self.kind.value}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(kind='{self.kind.value}', "
            f"message='{self.message}', status_code={self.status_code})"
        )


class ValidationFailedError(RampartError):
    """Raised when request data violates the route schema.

    Args:
        violations: Every violated rule, not just the first one.
        message: Summary message
    """

    def __init__(
        self,
        violations: list[FieldViolation],
        message: str = "One or more fields failed validation",
    ) -> None:
        super().__init__(FailureKind.VALIDATION_FAILED, message, Severity.LOW)
        self.violations = list(violations)


class MalformedBodyError(RampartError):
    """Raised when the request body is not valid for its content type."""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(FailureKind.MALFORMED_BODY, message, Severity.LOW, cause=cause)


class ForbiddenOriginError(RampartError):
    """Raised when a cross-origin request comes from a non-whitelisted origin."""

    def __init__(self, origin: str) -> None:
        super().__init__(
            FailureKind.FORBIDDEN_ORIGIN,
            f"Origin {origin} not allowed by CORS policy",
            Severity.MEDIUM,
        )
        self.origin = origin


class PayloadTooLargeError(RampartError):
    """Raised when the request body exceeds the configured limit."""

    def __init__(self, limit: int) -> None:
        super().__init__(
            FailureKind.PAYLOAD_TOO_LARGE,
            f"Request body exceeds the {limit} byte limit",
            Severity.LOW,
        )
        self.limit = limit


class RateLimitExceededError(RampartError):
    """Raised when a client exceeds its request budget.

    Args:
        headers: Rate limit headers to attach to the 429 response.
    """

    def __init__(self, headers: dict[str, str] | None = None) -> None:
        super().__init__(
            FailureKind.RATE_LIMIT_EXCEEDED,
            "Too many requests, please try again later.",
            Severity.MEDIUM,
            headers=headers,
        )


class ServiceUnavailableError(RampartError):
    """Raised for new work that arrives while the process is draining."""

    def __init__(self) -> None:
        super().__init__(
            FailureKind.SERVICE_UNAVAILABLE,
            "Server is shutting down",
            Severity.LOW,
            headers={"Connection": "close"},
        )


class InternalError(RampartError):
    """Exception for faults that must never be described to clients."""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(FailureKind.INTERNAL, message, Severity.HIGH, cause=cause)


# Messages that may be shown verbatim to production clients, keyed by kind.
PUBLIC_MESSAGES: dict[FailureKind, str] = {
    FailureKind.FORBIDDEN_ORIGIN: "Origin not allowed by CORS policy",
    FailureKind.PAYLOAD_TOO_LARGE: "Request body is too large",
    FailureKind.RATE_LIMIT_EXCEEDED: "Too many requests, please try again later.",
    FailureKind.SERVICE_UNAVAILABLE: "Server is shutting down",
}
