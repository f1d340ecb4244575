"""Application-level exception types.

Every failure surfaced by the limiter is an ``AppError`` subclass so callers
can tell a failed check apart from both an admission (0) and a rejection
(positive wait). Nothing here is retried internally.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients."""

    code: str
    message: str
    hint: str
    fields: list[str]
    key_hash: str
    member: str
    backend: str
    retry_after: float
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for limiter failures.

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
    """Raised when caller input fails validation."""


class InvalidConfigurationError(ValidationAppError):
    """Raised at build time for unusable limiter or store configuration."""


class StoreAppError(AppError):
    """Base class for failures originating in the window store."""


class StoreUnavailableError(StoreAppError):
    """Raised when the store cannot be reached or a transaction fails."""


class CorruptStateError(StoreAppError):
    """Raised when a stored window member cannot be parsed as a timestamp."""
