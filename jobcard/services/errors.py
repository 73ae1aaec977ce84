"""Error kinds raised by the service layer.

Services raise these; the app factory maps them to JSON responses, so route
handlers never need to translate them by hand.
"""
from __future__ import annotations

from typing import Dict, Iterable, Optional


class ServiceError(RuntimeError):
    """Recoverable service error (validation/uniqueness/etc.)."""

    code = "service_error"
    status_code = 400

    def __init__(self, message: str = "", **detail):
        super().__init__(message or self.__class__.__doc__ or self.code)
        self.message = message or (self.__class__.__doc__ or self.code).strip()
        self.detail = detail

    def to_dict(self) -> dict:
        return {"error": self.code, "message": self.message, **self.detail}


class ValidationError(ServiceError):
    """Malformed or out-of-range input."""

    code = "validation_error"
    status_code = 422

    def __init__(self, fields: Dict[str, str], message: str = "Invalid input."):
        super().__init__(message, fields=dict(fields))
        self.fields = dict(fields)


class NotFound(ServiceError):
    """Referenced record does not exist or has been deleted."""

    code = "not_found"
    status_code = 404


class DuplicateEstimate(ServiceError):
    """Estimate already exists for this work order."""

    code = "duplicate_estimate"
    status_code = 409


class EstimateLocked(ServiceError):
    """Approved estimates cannot be changed."""

    code = "estimate_locked"
    status_code = 409


class AlreadyApproved(ServiceError):
    """Estimate is already approved."""

    code = "already_approved"
    status_code = 409


class InvalidTransition(ServiceError):
    code = "invalid_transition"
    status_code = 409

    def __init__(self, current: str, requested: str, allowed: Iterable[str], message: Optional[str] = None):
        allowed = list(allowed)
        super().__init__(
            message or f"Cannot transition from {current} to {requested}",
            current=current,
            requested=requested,
            allowed=allowed,
        )
        self.current = current
        self.requested = requested
        self.allowed = allowed


class ConcurrencyConflict(ServiceError):
    """A concurrent write claimed the same unique value; retry the request."""

    code = "concurrency_conflict"
    status_code = 409
