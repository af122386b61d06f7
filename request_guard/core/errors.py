"""Application-level exception types.

This module defines domain errors used across the guard, its adapters and the
HTTP layer, enabling consistent error handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, NotRequired, TypedDict

if TYPE_CHECKING:
    from request_guard.core.rate_limit import RateLimitDecision


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional to keep shapes consistent without forcing every
    error to carry every field.
    """

    code: str
    message: str
    hint: str
    limit: int
    remaining: int
    reset_at: int
    retry_after: int
    policy: str
    backend: str
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input/config validation fails."""


class CounterStoreError(AppError):
    """Raised by a counter store when the backend cannot answer.

    Never reaches the HTTP layer: the rate limiter converts it into a
    fail-open decision.
    """


class CsrfValidationError(AppError):
    """Raised at the HTTP edge when a request fails the CSRF check."""

    def __init__(self) -> None:
        super().__init__(
            code="invalid_request",
            message="Invalid request, please retry.",
        )


class RateLimitExceededError(AppError):
    """Raised at the HTTP edge when a caller has exhausted its quota."""

    def __init__(self, decision: "RateLimitDecision", policy: str) -> None:
        self.decision = decision
        super().__init__(
            code="rate_limit_exceeded",
            message="Too many requests. Try again later.",
            details={
                "policy": policy,
                "limit": decision.limit,
                "remaining": decision.remaining,
                "reset_at": decision.reset_at_epoch,
                "retry_after": decision.retry_after_seconds or 1,
            },
        )
