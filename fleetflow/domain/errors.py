"""
Error taxonomy for lifecycle operations.

Every error carries an HTTP-style ``status_code``, a human-readable
message and a stable machine-readable ``code`` (``DRIVER_UNAVAILABLE``,
``CAPACITY_EXCEEDED`` ...).  Raising one inside a unit of work rolls the
whole transaction back.
"""

from __future__ import annotations


class FleetError(Exception):
    """Base exception for all lifecycle failures."""

    status_code: int = 500
    default_code: str = "FLEET_ERROR"

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        status_code: int | None = None,
    ) -> None:
        self.message = message
        self.code = code or self.default_code
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.code}: {self.message})"


class NotFoundError(FleetError):
    """Referenced entity is absent."""

    status_code = 404
    default_code = "NOT_FOUND"


class InvalidStateError(FleetError):
    """Operation is not legal in the entity's current status."""

    status_code = 409
    default_code = "INVALID_TRIP_STATE"


class UnavailableError(FleetError):
    """Vehicle or driver is not eligible (busy, off duty, wrong category)."""

    status_code = 409
    default_code = "UNAVAILABLE"


class RuleViolationError(FleetError):
    """Physical or regulatory rule broken (odometer, licence, capacity)."""

    status_code = 422
    default_code = "RULE_VIOLATION"


class ConflictError(FleetError):
    """Duplicate or already-applied change."""

    status_code = 409
    default_code = "CONFLICT"
