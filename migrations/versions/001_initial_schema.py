"""Initial schema: fleet, trips, maintenance, ledger and trip events.

Revision ID: 001
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "001"
down_revision = None
branch_labels = None
depends_on = None

# enum types are created once up front; user_role is shared by two tables


def _enum(name: str, *values: str) -> postgresql.ENUM:
    return postgresql.ENUM(*values, name=name, create_type=False)


vehicle_type = _enum("vehicle_type", "truck", "van", "bike")
vehicle_status = _enum("vehicle_status", "available", "on_trip", "in_shop", "retired")
license_category = _enum("license_category", "truck", "van", "bike", "multi")
driver_status = _enum("driver_status", "on_duty", "off_duty", "suspended")
cargo_status = _enum("cargo_status", "pending", "assigned", "completed", "cancelled")
trip_status = _enum("trip_status", "draft", "dispatched", "completed", "cancelled")
expense_type = _enum("expense_type", "fuel", "maintenance")
user_role = _enum("user_role", "manager", "dispatcher", "safety", "finance")

ENUMS = (
    vehicle_type,
    vehicle_status,
    license_category,
    driver_status,
    cargo_status,
    trip_status,
    expense_type,
    user_role,
)


def _timestamps(*, updated: bool = True) -> list[sa.Column]:
    columns = [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        )
    ]
    if updated:
        columns.append(
            sa.Column(
                "updated_at",
                sa.DateTime(timezone=True),
                server_default=sa.func.now(),
                nullable=False,
            )
        )
    return columns


def upgrade() -> None:
    bind = op.get_bind()
    for enum in ENUMS:
        enum.create(bind, checkfirst=True)

    # ── vehicles ──────────────────────────────────────────────────────
    op.create_table(
        "vehicles",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("model", sa.String(120), nullable=False),
        sa.Column("plate", sa.String(32), nullable=False),
        sa.Column("vehicle_type", vehicle_type, nullable=False),
        sa.Column("max_load_kg", sa.Integer, nullable=False),
        sa.Column("odometer_km", sa.Integer, nullable=False, server_default="0"),
        sa.Column("region", sa.String(64), nullable=False),
        sa.Column(
            "status", vehicle_status, nullable=False, server_default="available"
        ),
        sa.Column("acquisition_cost", sa.Float, nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("plate", name="uq_vehicles_plate"),
        sa.CheckConstraint("max_load_kg > 0", name="ck_vehicles_max_load_positive"),
        sa.CheckConstraint(
            "odometer_km >= 0", name="ck_vehicles_odometer_non_negative"
        ),
    )
    op.create_index("idx_vehicles_status", "vehicles", ["status"])
    op.create_index("idx_vehicles_region", "vehicles", ["region"])

    # ── drivers ───────────────────────────────────────────────────────
    op.create_table(
        "drivers",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("license_number", sa.String(64), nullable=False),
        sa.Column(
            "license_category", license_category, nullable=False, server_default="multi"
        ),
        sa.Column("license_expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("safety_score", sa.Integer, nullable=False, server_default="100"),
        sa.Column("status", driver_status, nullable=False, server_default="off_duty"),
        *_timestamps(),
        sa.UniqueConstraint("license_number", name="uq_drivers_license_number"),
        sa.CheckConstraint(
            "safety_score >= 0 AND safety_score <= 100",
            name="ck_drivers_safety_score_range",
        ),
    )
    op.create_index("idx_drivers_status", "drivers", ["status"])
    op.create_index("idx_drivers_expiry", "drivers", ["license_expires_at"])

    # ── cargo_shipments ───────────────────────────────────────────────
    op.create_table(
        "cargo_shipments",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("reference_code", sa.String(64), nullable=False),
        sa.Column("weight_kg", sa.Integer, nullable=False),
        sa.Column("region", sa.String(64), nullable=False),
        sa.Column("status", cargo_status, nullable=False, server_default="pending"),
        *_timestamps(updated=False),
        sa.UniqueConstraint(
            "reference_code", name="uq_cargo_shipments_reference_code"
        ),
        sa.CheckConstraint(
            "weight_kg >= 0", name="ck_cargo_shipments_weight_non_negative"
        ),
    )
    op.create_index("idx_cargo_status", "cargo_shipments", ["status"])

    # ── trips ─────────────────────────────────────────────────────────
    op.create_table(
        "trips",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column(
            "vehicle_id",
            sa.String(64),
            sa.ForeignKey("vehicles.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column(
            "driver_id",
            sa.String(64),
            sa.ForeignKey("drivers.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column(
            "cargo_id",
            sa.String(64),
            sa.ForeignKey("cargo_shipments.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("cargo_weight_kg", sa.Integer, nullable=False, server_default="0"),
        sa.Column("origin", sa.String(255), nullable=False),
        sa.Column("destination", sa.String(255), nullable=False),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", trip_status, nullable=False, server_default="draft"),
        sa.Column("dispatched_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("start_odometer_km", sa.Integer, nullable=True),
        sa.Column("end_odometer_km", sa.Integer, nullable=True),
        sa.Column("distance_km", sa.Integer, nullable=True),
        sa.Column("revenue", sa.Float, nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "cargo_weight_kg >= 0", name="ck_trips_cargo_weight_non_negative"
        ),
        sa.CheckConstraint(
            "end_odometer_km IS NULL OR start_odometer_km IS NULL "
            "OR end_odometer_km >= start_odometer_km",
            name="ck_trips_odometer_order",
        ),
    )
    op.create_index("idx_trips_status", "trips", ["status"])
    op.create_index("idx_trips_vehicle", "trips", ["vehicle_id"])
    op.create_index("idx_trips_driver", "trips", ["driver_id"])
    # at most one dispatched trip per vehicle and per driver
    op.create_index(
        "uq_trips_dispatched_vehicle",
        "trips",
        ["vehicle_id"],
        unique=True,
        postgresql_where=sa.text("status = 'dispatched'"),
    )
    op.create_index(
        "uq_trips_dispatched_driver",
        "trips",
        ["driver_id"],
        unique=True,
        postgresql_where=sa.text("status = 'dispatched'"),
    )

    # ── maintenance_logs ──────────────────────────────────────────────
    op.create_table(
        "maintenance_logs",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column(
            "vehicle_id",
            sa.String(64),
            sa.ForeignKey("vehicles.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("note", sa.Text, nullable=False),
        sa.Column("cost", sa.Float, nullable=False, server_default="0"),
        sa.Column(
            "opened_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_by_role", user_role, nullable=False),
        sa.CheckConstraint("cost >= 0", name="ck_maintenance_logs_cost_non_negative"),
    )
    op.create_index("idx_maintenance_vehicle", "maintenance_logs", ["vehicle_id"])
    op.create_index("idx_maintenance_open", "maintenance_logs", ["closed_at"])

    # ── fuel_logs ─────────────────────────────────────────────────────
    op.create_table(
        "fuel_logs",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column(
            "trip_id",
            sa.String(64),
            sa.ForeignKey("trips.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "vehicle_id",
            sa.String(64),
            sa.ForeignKey("vehicles.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("liters", sa.Float, nullable=False),
        sa.Column("cost", sa.Float, nullable=False),
        sa.Column(
            "logged_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.CheckConstraint("liters > 0", name="ck_fuel_logs_liters_positive"),
        sa.CheckConstraint("cost >= 0", name="ck_fuel_logs_cost_non_negative"),
    )
    op.create_index("idx_fuel_trip", "fuel_logs", ["trip_id"])
    op.create_index("idx_fuel_vehicle", "fuel_logs", ["vehicle_id"])

    # ── expenses ──────────────────────────────────────────────────────
    op.create_table(
        "expenses",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("type", expense_type, nullable=False),
        sa.Column(
            "vehicle_id",
            sa.String(64),
            sa.ForeignKey("vehicles.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column(
            "trip_id",
            sa.String(64),
            sa.ForeignKey("trips.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "maintenance_log_id",
            sa.String(64),
            sa.ForeignKey("maintenance_logs.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("amount", sa.Float, nullable=False),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column(
            "date",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.CheckConstraint("amount >= 0", name="ck_expenses_amount_non_negative"),
    )
    op.create_index("idx_expenses_vehicle", "expenses", ["vehicle_id"])
    op.create_index("idx_expenses_trip", "expenses", ["trip_id"])
    op.create_index("idx_expenses_type", "expenses", ["type"])

    # ── trip_events ───────────────────────────────────────────────────
    op.create_table(
        "trip_events",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column(
            "trip_id",
            sa.String(64),
            sa.ForeignKey("trips.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("event_type", sa.String(40), nullable=False),
        sa.Column("message", sa.Text, nullable=False),
        sa.Column("actor_role", user_role, nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index("idx_trip_events_trip", "trip_events", ["trip_id"])


def downgrade() -> None:
    op.drop_table("trip_events")
    op.drop_table("expenses")
    op.drop_table("fuel_logs")
    op.drop_table("maintenance_logs")
    op.drop_table("trips")
    op.drop_table("cargo_shipments")
    op.drop_table("drivers")
    op.drop_table("vehicles")
    bind = op.get_bind()
    for enum in ENUMS:
        enum.drop(bind, checkfirst=True)
