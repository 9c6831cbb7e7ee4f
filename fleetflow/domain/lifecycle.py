"""
Pure lifecycle rules shared by the trip and maintenance services.

Nothing here touches the database: the services load rows inside a
transaction and ask these helpers what is allowed.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from .enums import (
    TRIP_TRANSITIONS,
    LicenseCategory,
    TripStatus,
    VehicleStatus,
    VehicleType,
)
from .errors import InvalidStateError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (SQLite round-trips) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4()}"


def ensure_transition(current: TripStatus, target: TripStatus, message: str) -> None:
    """Raise ``InvalidStateError`` unless *current* -> *target* is legal."""
    if target not in TRIP_TRANSITIONS.get(TripStatus(current), set()):
        raise InvalidStateError(message, code="INVALID_TRIP_STATE")


def category_matches(category: LicenseCategory, vehicle_type: VehicleType) -> bool:
    category = LicenseCategory(category)
    return category is LicenseCategory.MULTI or category.value == VehicleType(vehicle_type).value


def license_valid_for_dispatch(expires_at: datetime, now: datetime) -> bool:
    # strictly in the future at dispatch time
    return as_utc(expires_at) > as_utc(now)


def license_valid_for_assignment(expires_at: datetime, now: datetime) -> bool:
    return as_utc(expires_at) >= as_utc(now)


def released_vehicle_status(has_open_maintenance: bool) -> VehicleStatus:
    """Status a vehicle returns to when a trip stops holding it."""
    return VehicleStatus.IN_SHOP if has_open_maintenance else VehicleStatus.AVAILABLE


def may_return_to_service(
    status: VehicleStatus, *, has_dispatched_trip: bool, has_open_maintenance: bool
) -> bool:
    return (
        not has_dispatched_trip
        and not has_open_maintenance
        and VehicleStatus(status) is not VehicleStatus.RETIRED
    )


def fuel_expense_note(liters: float) -> str:
    # shortest exact form; whole litres lose the ".0"
    amount = repr(float(liters))
    if amount.endswith(".0"):
        amount = amount[:-2]
    return f"Fuel log: {amount}L"
