"""
SQLAlchemy ORM models  (maps to PostgreSQL; SQLite in tests).

Tables
------
* ``vehicles``          -- fleet assets with load capacity and odometer
* ``drivers``           -- licensed operators
* ``cargo_shipments``   -- loads carried by trips
* ``trips``             -- dispatchable work items (the state machine)
* ``maintenance_logs``  -- open / closed shop visits per vehicle
* ``fuel_logs``         -- append-only fuel entries per trip
* ``expenses``          -- append-only fuel / maintenance spend
* ``trip_events``       -- append-only audit trail of trip transitions

Constraints
-----------
* **Partial unique** indexes ``uq_trips_dispatched_vehicle`` and
  ``uq_trips_dispatched_driver`` (``WHERE status = 'dispatched'``) make
  "one active trip per vehicle / driver" a store-enforced invariant.
* **CHECK** constraints for load, odometer, weight, cost and score ranges.
* Referential actions: trips restrict vehicle/driver deletes and null out
  cargo; fuel logs and trip events cascade with their trip.
"""

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
    text,
)

from .database import Base
from fleetflow.domain.enums import (
    CargoStatus,
    DriverStatus,
    ExpenseType,
    LicenseCategory,
    TripStatus,
    UserRole,
    VehicleStatus,
    VehicleType,
)
from fleetflow.domain.lifecycle import utcnow


def _enum(enum_cls, name: str) -> Enum:
    # persist the lower-case values, not the member names
    return Enum(
        enum_cls,
        name=name,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )


_DISPATCHED = text("status = 'dispatched'")

# one shared type so PostgreSQL creates the enum once
_USER_ROLE = _enum(UserRole, "user_role")


class VehicleModel(Base):
    __tablename__ = "vehicles"

    id = Column(String(64), primary_key=True)
    name = Column(String(120), nullable=False)
    model = Column(String(120), nullable=False)
    plate = Column(String(32), unique=True, nullable=False)
    vehicle_type = Column(_enum(VehicleType, "vehicle_type"), nullable=False)
    max_load_kg = Column(Integer, nullable=False)
    odometer_km = Column(Integer, default=0, nullable=False)
    region = Column(String(64), nullable=False)
    status = Column(
        _enum(VehicleStatus, "vehicle_status"),
        default=VehicleStatus.AVAILABLE,
        nullable=False,
    )
    acquisition_cost = Column(Float, nullable=True)
    created_at = Column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
        nullable=False,
    )

    __table_args__ = (
        Index("idx_vehicles_status", "status"),
        Index("idx_vehicles_region", "region"),
        CheckConstraint("max_load_kg > 0", name="max_load_positive"),
        CheckConstraint("odometer_km >= 0", name="odometer_non_negative"),
    )


class DriverModel(Base):
    __tablename__ = "drivers"

    id = Column(String(64), primary_key=True)
    name = Column(String(120), nullable=False)
    license_number = Column(String(64), unique=True, nullable=False)
    license_category = Column(
        _enum(LicenseCategory, "license_category"),
        default=LicenseCategory.MULTI,
        nullable=False,
    )
    license_expires_at = Column(DateTime(timezone=True), nullable=False)
    safety_score = Column(Integer, default=100, nullable=False)
    status = Column(
        _enum(DriverStatus, "driver_status"),
        default=DriverStatus.OFF_DUTY,
        nullable=False,
    )
    created_at = Column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
        nullable=False,
    )

    __table_args__ = (
        Index("idx_drivers_status", "status"),
        Index("idx_drivers_expiry", "license_expires_at"),
        CheckConstraint(
            "safety_score >= 0 AND safety_score <= 100", name="safety_score_range"
        ),
    )


class CargoShipmentModel(Base):
    __tablename__ = "cargo_shipments"

    id = Column(String(64), primary_key=True)
    reference_code = Column(String(64), unique=True, nullable=False)
    weight_kg = Column(Integer, nullable=False)
    region = Column(String(64), nullable=False)
    status = Column(
        _enum(CargoStatus, "cargo_status"),
        default=CargoStatus.PENDING,
        nullable=False,
    )
    created_at = Column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("idx_cargo_status", "status"),
        CheckConstraint("weight_kg >= 0", name="weight_non_negative"),
    )


class TripModel(Base):
    __tablename__ = "trips"

    id = Column(String(64), primary_key=True)
    vehicle_id = Column(
        String(64), ForeignKey("vehicles.id", ondelete="RESTRICT"), nullable=False
    )
    driver_id = Column(
        String(64), ForeignKey("drivers.id", ondelete="RESTRICT"), nullable=False
    )
    cargo_id = Column(
        String(64), ForeignKey("cargo_shipments.id", ondelete="SET NULL"), nullable=True
    )
    cargo_weight_kg = Column(Integer, default=0, nullable=False)
    origin = Column(String(255), nullable=False)
    destination = Column(String(255), nullable=False)
    scheduled_at = Column(DateTime(timezone=True), nullable=False)

    status = Column(_enum(TripStatus, "trip_status"), default=TripStatus.DRAFT, nullable=False)
    dispatched_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    start_odometer_km = Column(Integer, nullable=True)
    end_odometer_km = Column(Integer, nullable=True)
    distance_km = Column(Integer, nullable=True)
    revenue = Column(Float, nullable=True)

    created_at = Column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
        nullable=False,
    )

    __table_args__ = (
        Index("idx_trips_status", "status"),
        Index("idx_trips_vehicle", "vehicle_id"),
        Index("idx_trips_driver", "driver_id"),
        Index(
            "uq_trips_dispatched_vehicle",
            "vehicle_id",
            unique=True,
            postgresql_where=_DISPATCHED,
            sqlite_where=_DISPATCHED,
        ),
        Index(
            "uq_trips_dispatched_driver",
            "driver_id",
            unique=True,
            postgresql_where=_DISPATCHED,
            sqlite_where=_DISPATCHED,
        ),
        CheckConstraint("cargo_weight_kg >= 0", name="cargo_weight_non_negative"),
        CheckConstraint(
            "end_odometer_km IS NULL OR start_odometer_km IS NULL "
            "OR end_odometer_km >= start_odometer_km",
            name="odometer_order",
        ),
    )


class MaintenanceLogModel(Base):
    __tablename__ = "maintenance_logs"

    id = Column(String(64), primary_key=True)
    vehicle_id = Column(
        String(64), ForeignKey("vehicles.id", ondelete="CASCADE"), nullable=False
    )
    note = Column(Text, nullable=False)
    cost = Column(Float, default=0.0, nullable=False)
    opened_at = Column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    closed_at = Column(DateTime(timezone=True), nullable=True)  # NULL = open
    created_by_role = Column(_USER_ROLE, nullable=False)

    __table_args__ = (
        Index("idx_maintenance_vehicle", "vehicle_id"),
        Index("idx_maintenance_open", "closed_at"),
        CheckConstraint("cost >= 0", name="cost_non_negative"),
    )


class FuelLogModel(Base):
    __tablename__ = "fuel_logs"

    id = Column(String(64), primary_key=True)
    trip_id = Column(
        String(64), ForeignKey("trips.id", ondelete="CASCADE"), nullable=False
    )
    vehicle_id = Column(
        String(64), ForeignKey("vehicles.id", ondelete="RESTRICT"), nullable=False
    )
    liters = Column(Float, nullable=False)
    cost = Column(Float, nullable=False)
    logged_at = Column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("idx_fuel_trip", "trip_id"),
        Index("idx_fuel_vehicle", "vehicle_id"),
        CheckConstraint("liters > 0", name="liters_positive"),
        CheckConstraint("cost >= 0", name="cost_non_negative"),
    )


class ExpenseModel(Base):
    __tablename__ = "expenses"

    id = Column(String(64), primary_key=True)
    type = Column(_enum(ExpenseType, "expense_type"), nullable=False)
    vehicle_id = Column(
        String(64), ForeignKey("vehicles.id", ondelete="RESTRICT"), nullable=False
    )
    trip_id = Column(
        String(64), ForeignKey("trips.id", ondelete="SET NULL"), nullable=True
    )
    maintenance_log_id = Column(
        String(64),
        ForeignKey("maintenance_logs.id", ondelete="SET NULL"),
        nullable=True,
    )
    amount = Column(Float, nullable=False)
    notes = Column(Text, nullable=True)
    date = Column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("idx_expenses_vehicle", "vehicle_id"),
        Index("idx_expenses_trip", "trip_id"),
        Index("idx_expenses_type", "type"),
        CheckConstraint("amount >= 0", name="amount_non_negative"),
    )


class TripEventModel(Base):
    __tablename__ = "trip_events"

    id = Column(String(64), primary_key=True)
    trip_id = Column(
        String(64), ForeignKey("trips.id", ondelete="CASCADE"), nullable=False
    )
    event_type = Column(String(40), nullable=False)
    message = Column(Text, nullable=False)
    actor_role = Column(_USER_ROLE, nullable=True)
    created_at = Column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )

    __table_args__ = (Index("idx_trip_events_trip", "trip_id"),)
