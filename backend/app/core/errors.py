"""
Typed failures of the suggestion and workout lifecycles.

Every failure is a LifecycleError subclass with a stable `code`; `status_code`
is the HTTP status the transport layer maps it to (see app.main handler).
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from sqlalchemy.exc import SQLAlchemyError


class LifecycleError(Exception):
    code: str = "internal_error"
    status_code: int = 500
    default_message: str = "Unexpected error"

    def __init__(self, message: str | None = None, details: dict[str, Any] | None = None) -> None:
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class UnknownTrainingType(LifecycleError):
    code = "unknown_training_type"
    status_code = 400
    default_message = "Unknown training_type_code"


class QuotaExceeded(LifecycleError):
    code = "quota_exceeded"
    status_code = 429
    default_message = "Daily AI suggestion limit reached"


class GenerationError(LifecycleError):
    code = "generation_failed"
    status_code = 502
    default_message = "Suggestion generator failed"


class IncompleteGeneration(GenerationError):
    code = "incomplete_generation"
    default_message = "Generated suggestion has neither distance nor duration"


class NotFound(LifecycleError):
    code = "not_found"
    status_code = 404
    default_message = "Not found"


class InvalidState(LifecycleError):
    code = "invalid_state"
    status_code = 409
    default_message = "Operation not allowed in current state"


class AlreadyLinked(LifecycleError):
    code = "already_linked"
    status_code = 409
    default_message = "AI suggestion is already linked to a workout"


class Expired(LifecycleError):
    code = "expired"
    status_code = 410
    default_message = "AI suggestion has expired"


class PositionConflict(LifecycleError):
    code = "position_conflict"
    status_code = 409
    default_message = "Workout position already taken for this date"


class AlreadyCompleted(LifecycleError):
    code = "already_completed"
    status_code = 409
    default_message = "Workout is already completed"


class AlreadySkipped(LifecycleError):
    code = "already_skipped"
    status_code = 409
    default_message = "Workout is already skipped"


class AlreadyCanceled(LifecycleError):
    code = "already_canceled"
    status_code = 409
    default_message = "Workout is already canceled"


class NotCompleted(LifecycleError):
    code = "not_completed"
    status_code = 409
    default_message = "Only completed workouts can be rated"


class InternalError(LifecycleError):
    """Wraps an unexpected store or collaborator failure; original exception is chained."""

    code = "internal_error"
    status_code = 500


@contextmanager
def store_errors(message: str) -> Iterator[None]:
    """Re-raise store (SQLAlchemy) failures inside the block as InternalError(message)."""
    try:
        yield
    except SQLAlchemyError as e:
        raise InternalError(message) from e
