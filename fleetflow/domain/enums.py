"""Domain enumerations and state-transition rules."""

import enum


class TripStatus(str, enum.Enum):
    DRAFT = "draft"
    DISPATCHED = "dispatched"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# State machine: maps current status -> set of valid next statuses
TRIP_TRANSITIONS: dict[TripStatus, set[TripStatus]] = {
    TripStatus.DRAFT: {TripStatus.DISPATCHED, TripStatus.CANCELLED},
    TripStatus.DISPATCHED: {TripStatus.COMPLETED, TripStatus.CANCELLED},
    TripStatus.COMPLETED: set(),
    TripStatus.CANCELLED: set(),
}


class VehicleType(str, enum.Enum):
    TRUCK = "truck"
    VAN = "van"
    BIKE = "bike"


class VehicleStatus(str, enum.Enum):
    AVAILABLE = "available"
    ON_TRIP = "on_trip"
    IN_SHOP = "in_shop"
    RETIRED = "retired"


class DriverStatus(str, enum.Enum):
    ON_DUTY = "on_duty"
    OFF_DUTY = "off_duty"
    SUSPENDED = "suspended"


class LicenseCategory(str, enum.Enum):
    TRUCK = "truck"
    VAN = "van"
    BIKE = "bike"
    MULTI = "multi"  # matches any vehicle type


class CargoStatus(str, enum.Enum):
    PENDING = "pending"
    ASSIGNED = "assigned"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ExpenseType(str, enum.Enum):
    FUEL = "fuel"
    MAINTENANCE = "maintenance"


class UserRole(str, enum.Enum):
    MANAGER = "manager"
    DISPATCHER = "dispatcher"
    SAFETY = "safety"
    FINANCE = "finance"


class TripEventType(str, enum.Enum):
    CREATED = "trip_created"
    DISPATCHED = "trip_dispatched"
    COMPLETED = "trip_completed"
    CANCELLED = "trip_cancelled"
