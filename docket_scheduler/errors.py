"""
Domain exceptions for the Docket Scheduling Engine.

Every error here is a per-request outcome; none is fatal to the process.
The host application maps them to its transport (400 / 404 / 409).
"""

from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

import pydantic


class SchedulingError(Exception):
    """Base exception for all scheduling errors."""

    http_status = 500

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "code": self.code,
            "details": self.details,
        }


class ValidationError(SchedulingError):
    """Malformed input. Raised before any store access."""

    http_status = 400


class InvalidTransitionError(ValidationError):
    """A status change the booking state machine does not allow."""


class NotFoundError(SchedulingError):
    """Unknown booking, block, resource or deadline id."""

    http_status = 404


class ConflictError(SchedulingError):
    """
    The requested interval collides with existing commitments.

    Carries the conflicting subjects/intervals so the caller can offer
    another slot.
    """

    http_status = 409

    def __init__(
        self,
        message: str,
        conflicts: Optional[List[Any]] = None,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.conflicts = list(conflicts or [])
        details = dict(details or {})
        details.setdefault("conflicts", [_conflict_payload(c) for c in self.conflicts])
        super().__init__(message, code=code, details=details)


class ConcurrencyConflictError(SchedulingError):
    """An optimistic version check failed at write time."""

    http_status = 409

    def __init__(self, message: str, stale_keys: Optional[List[str]] = None) -> None:
        self.stale_keys = list(stale_keys or [])
        super().__init__(message, details={"stale_keys": self.stale_keys})


def _conflict_payload(conflict: Any) -> Any:
    to_dict = getattr(conflict, "to_dict", None)
    return to_dict() if callable(to_dict) else conflict


@contextmanager
def validation_guard(context: str = "Invalid input") -> Iterator[None]:
    """Re-raise pydantic validation failures as engine ValidationErrors."""
    try:
        yield
    except pydantic.ValidationError as exc:
        errors = [
            {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
            for err in exc.errors()
        ]
        raise ValidationError(f"{context}: {errors[0]['msg'] if errors else exc}",
                              details={"errors": errors}) from exc
