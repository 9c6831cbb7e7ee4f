"""
Trip lifecycle tests against a real (SQLite) store.

Covers the dispatch rule order, rollback on rejection, completion
bookkeeping (odometer, fuel, expense, cargo) and cancellation.
"""

from datetime import timedelta

import pytest
from sqlalchemy import func, select

from fleetflow.domain.entities import FuelEntry, MaintenanceRequest, TripCompletion, TripDraft
from fleetflow.domain.enums import (
    CargoStatus,
    DriverStatus,
    ExpenseType,
    LicenseCategory,
    TripEventType,
    TripStatus,
    UserRole,
    VehicleStatus,
    VehicleType,
)
from fleetflow.domain.errors import (
    InvalidStateError,
    NotFoundError,
    RuleViolationError,
    UnavailableError,
)
from fleetflow.domain.lifecycle import as_utc
from fleetflow.infrastructure.models import (
    CargoShipmentModel,
    DriverModel,
    ExpenseModel,
    FuelLogModel,
    TripEventModel,
    TripModel,
    VehicleModel,
)
from fleetflow.services.maintenance import MaintenanceLifecycle
from fleetflow.services.trips import TripLifecycle

DISPATCHER = UserRole.DISPATCHER


@pytest.fixture
def trips(session_factory) -> TripLifecycle:
    return TripLifecycle(session_factory, backoff_seconds=0)


async def _count(session_factory, model, *criteria) -> int:
    query = select(func.count()).select_from(model)
    if criteria:
        query = query.where(*criteria)
    async with session_factory() as session:
        return await session.scalar(query)


# ── Create ────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_create_inserts_draft_and_event(trips, fleet, now):
    vehicle = await fleet.vehicle()
    driver = await fleet.driver()

    trip = await trips.create(
        TripDraft(
            vehicle_id=vehicle.id,
            driver_id=driver.id,
            origin="Los Angeles",
            destination="San Diego",
            scheduled_at=now + timedelta(hours=1),
            cargo_weight_kg=120,
        ),
        actor_role=DISPATCHER,
        now=now,
    )

    assert trip.id.startswith("trp-")
    assert trip.status == TripStatus.DRAFT
    events = await trips.events(trip.id)
    assert [e.event_type for e in events] == [TripEventType.CREATED.value]
    assert events[0].actor_role == UserRole.DISPATCHER


@pytest.mark.asyncio
async def test_draft_does_not_check_availability(trips, fleet, now):
    vehicle = await fleet.vehicle(status=VehicleStatus.IN_SHOP)
    driver = await fleet.driver(status=DriverStatus.SUSPENDED)

    trip = await trips.create(
        TripDraft(vehicle.id, driver.id, "Fresno", "Bakersfield", now, cargo_weight_kg=9000),
        actor_role=UserRole.MANAGER,
        now=now,
    )
    assert trip.status == TripStatus.DRAFT


@pytest.mark.asyncio
async def test_create_requires_existing_references(trips, fleet, now):
    vehicle = await fleet.vehicle()

    with pytest.raises(NotFoundError) as exc_info:
        await trips.create(
            TripDraft(vehicle.id, "drv-missing", "Fresno", "Bakersfield", now),
            actor_role=DISPATCHER,
            now=now,
        )
    assert exc_info.value.code == "DRIVER_NOT_FOUND"


# ── Dispatch: happy path ──────────────────────────────────────────────


@pytest.mark.asyncio
async def test_dispatch_marks_vehicle_on_trip(trips, fleet, scenario, now):
    trip = await trips.dispatch("trp-001", actor_role=DISPATCHER, now=now)

    assert trip.status == TripStatus.DISPATCHED
    assert trip.start_odometer_km == 78320
    assert as_utc(trip.dispatched_at) == now

    vehicle = await fleet.get(VehicleModel, "veh-001")
    driver = await fleet.get(DriverModel, "drv-001")
    assert vehicle.status == VehicleStatus.ON_TRIP
    # driver status is not a dispatch output
    assert driver.status == DriverStatus.ON_DUTY


@pytest.mark.asyncio
async def test_dispatch_assigns_cargo(trips, fleet, now):
    vehicle = await fleet.vehicle()
    driver = await fleet.driver()
    cargo = await fleet.cargo(weight_kg=300)
    trip = await fleet.trip(vehicle.id, driver.id, cargo_id=cargo.id, cargo_weight_kg=300)

    await trips.dispatch(trip.id, actor_role=DISPATCHER, now=now)

    assert (await fleet.get(CargoShipmentModel, cargo.id)).status == CargoStatus.ASSIGNED


@pytest.mark.asyncio
async def test_cargo_exactly_at_capacity_is_accepted(trips, fleet, now):
    vehicle = await fleet.vehicle(max_load_kg=500)
    driver = await fleet.driver()
    trip = await fleet.trip(vehicle.id, driver.id, cargo_weight_kg=500)

    dispatched = await trips.dispatch(trip.id, actor_role=DISPATCHER, now=now)
    assert dispatched.status == TripStatus.DISPATCHED


@pytest.mark.asyncio
async def test_matching_licence_category_is_accepted(trips, fleet, now):
    vehicle = await fleet.vehicle(vehicle_type=VehicleType.TRUCK, max_load_kg=3200)
    driver = await fleet.driver(license_category=LicenseCategory.TRUCK)
    trip = await fleet.trip(vehicle.id, driver.id)

    dispatched = await trips.dispatch(trip.id, actor_role=DISPATCHER, now=now)
    assert dispatched.status == TripStatus.DISPATCHED


# ── Dispatch: rejections ──────────────────────────────────────────────


@pytest.mark.asyncio
async def test_dispatch_unknown_trip(trips, scenario, now):
    with pytest.raises(NotFoundError) as exc_info:
        await trips.dispatch("trp-missing", actor_role=DISPATCHER, now=now)
    assert exc_info.value.code == "TRIP_NOT_FOUND"


@pytest.mark.asyncio
async def test_dispatch_twice_is_invalid_state(trips, scenario, now):
    await trips.dispatch("trp-001", actor_role=DISPATCHER, now=now)
    with pytest.raises(InvalidStateError) as exc_info:
        await trips.dispatch("trp-001", actor_role=DISPATCHER, now=now)
    assert exc_info.value.code == "INVALID_TRIP_STATE"


@pytest.mark.asyncio
async def test_dispatch_rejects_vehicle_in_shop(trips, fleet, now):
    vehicle = await fleet.vehicle(status=VehicleStatus.IN_SHOP)
    driver = await fleet.driver()
    trip = await fleet.trip(vehicle.id, driver.id)

    with pytest.raises(UnavailableError) as exc_info:
        await trips.dispatch(trip.id, actor_role=DISPATCHER, now=now)
    assert exc_info.value.code == "VEHICLE_UNAVAILABLE"
    assert exc_info.value.status_code == 409


@pytest.mark.asyncio
async def test_dispatch_rejects_off_duty_driver(trips, fleet, now):
    vehicle = await fleet.vehicle()
    driver = await fleet.driver(status=DriverStatus.OFF_DUTY)
    trip = await fleet.trip(vehicle.id, driver.id)

    with pytest.raises(UnavailableError) as exc_info:
        await trips.dispatch(trip.id, actor_role=DISPATCHER, now=now)
    assert exc_info.value.code == "DRIVER_UNAVAILABLE"


@pytest.mark.asyncio
@pytest.mark.parametrize("offset", [timedelta(0), timedelta(days=-1)])
async def test_dispatch_rejects_expired_licence(trips, fleet, now, offset):
    vehicle = await fleet.vehicle()
    driver = await fleet.driver(license_expires_at=now + offset)
    trip = await fleet.trip(vehicle.id, driver.id)

    with pytest.raises(RuleViolationError) as exc_info:
        await trips.dispatch(trip.id, actor_role=DISPATCHER, now=now)
    assert exc_info.value.code == "LICENSE_EXPIRED"
    assert exc_info.value.status_code == 422


@pytest.mark.asyncio
async def test_dispatch_rejects_category_mismatch(trips, fleet, now):
    vehicle = await fleet.vehicle(vehicle_type=VehicleType.TRUCK, max_load_kg=3200)
    driver = await fleet.driver(license_category=LicenseCategory.VAN)
    trip = await fleet.trip(vehicle.id, driver.id)

    with pytest.raises(UnavailableError) as exc_info:
        await trips.dispatch(trip.id, actor_role=DISPATCHER, now=now)
    assert exc_info.value.code == "LICENSE_CATEGORY_MISMATCH"
    assert exc_info.value.status_code == 422


@pytest.mark.asyncio
async def test_dispatch_rejects_overweight_cargo(trips, fleet, now):
    vehicle = await fleet.vehicle(max_load_kg=500)
    driver = await fleet.driver()
    trip = await fleet.trip(vehicle.id, driver.id, cargo_weight_kg=501)

    with pytest.raises(RuleViolationError) as exc_info:
        await trips.dispatch(trip.id, actor_role=DISPATCHER, now=now)
    assert exc_info.value.code == "CAPACITY_EXCEEDED"


@pytest.mark.asyncio
async def test_dispatch_checks_licence_before_capacity(trips, fleet, now):
    vehicle = await fleet.vehicle(max_load_kg=100)
    driver = await fleet.driver(license_expires_at=now - timedelta(days=3))
    trip = await fleet.trip(vehicle.id, driver.id, cargo_weight_kg=900)

    with pytest.raises(RuleViolationError) as exc_info:
        await trips.dispatch(trip.id, actor_role=DISPATCHER, now=now)
    assert exc_info.value.code == "LICENSE_EXPIRED"


@pytest.mark.asyncio
async def test_dispatch_rejects_vehicle_held_by_another_trip(trips, fleet, now):
    vehicle = await fleet.vehicle()
    first_driver = await fleet.driver()
    second_driver = await fleet.driver()
    first = await fleet.trip(vehicle.id, first_driver.id)
    second = await fleet.trip(vehicle.id, second_driver.id)
    await trips.dispatch(first.id, actor_role=DISPATCHER, now=now)

    # status forced back by hand; the dispatched trip still holds the vehicle
    async with fleet.factory() as session:
        async with session.begin():
            (await session.get(VehicleModel, vehicle.id)).status = VehicleStatus.AVAILABLE

    with pytest.raises(UnavailableError) as exc_info:
        await trips.dispatch(second.id, actor_role=DISPATCHER, now=now)
    assert exc_info.value.code == "VEHICLE_BUSY"


@pytest.mark.asyncio
async def test_dispatch_rejects_driver_held_by_another_trip(trips, fleet, now):
    driver = await fleet.driver()
    first = await fleet.trip((await fleet.vehicle()).id, driver.id)
    second = await fleet.trip((await fleet.vehicle()).id, driver.id)
    await trips.dispatch(first.id, actor_role=DISPATCHER, now=now)

    with pytest.raises(UnavailableError) as exc_info:
        await trips.dispatch(second.id, actor_role=DISPATCHER, now=now)
    assert exc_info.value.code == "DRIVER_BUSY"


@pytest.mark.asyncio
async def test_rejected_dispatch_leaves_no_trace(trips, fleet, session_factory, now):
    vehicle = await fleet.vehicle(max_load_kg=500)
    driver = await fleet.driver()
    trip = await fleet.trip(vehicle.id, driver.id, cargo_weight_kg=800)

    with pytest.raises(RuleViolationError):
        await trips.dispatch(trip.id, actor_role=DISPATCHER, now=now)

    assert (await fleet.get(TripModel, trip.id)).status == TripStatus.DRAFT
    assert (await fleet.get(VehicleModel, vehicle.id)).status == VehicleStatus.AVAILABLE
    assert await _count(session_factory, TripEventModel, TripEventModel.trip_id == trip.id) == 0


# ── Complete ──────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_complete_books_distance_fuel_and_expense(
    trips, fleet, scenario, session_factory, now
):
    await trips.dispatch("trp-001", actor_role=DISPATCHER, now=now)
    trip, fuel = await trips.complete(
        "trp-001",
        TripCompletion(final_odometer_km=78470, fuel_liters=30, fuel_cost=45),
        actor_role=DISPATCHER,
        now=now + timedelta(hours=3),
    )

    assert trip.status == TripStatus.COMPLETED
    assert trip.end_odometer_km == 78470
    assert trip.distance_km == 150
    assert fuel.liters == 30
    assert fuel.cost == 45

    vehicle = await fleet.get(VehicleModel, "veh-001")
    assert vehicle.status == VehicleStatus.AVAILABLE
    assert vehicle.odometer_km == 78470

    async with session_factory() as session:
        expenses = (
            await session.execute(select(ExpenseModel).where(ExpenseModel.trip_id == "trp-001"))
        ).scalars().all()
    assert len(expenses) == 1
    assert expenses[0].type == ExpenseType.FUEL
    assert expenses[0].amount == 45
    assert expenses[0].notes == "Fuel log: 30L"

    events = await trips.events("trp-001")
    assert [e.event_type for e in events] == [
        TripEventType.DISPATCHED.value,
        TripEventType.COMPLETED.value,
    ]
    assert events[-1].message == "Trip completed; distance 150 km"


@pytest.mark.asyncio
async def test_complete_with_zero_distance(trips, scenario, now):
    await trips.dispatch("trp-001", actor_role=DISPATCHER, now=now)
    trip, _ = await trips.complete(
        "trp-001",
        TripCompletion(final_odometer_km=78320, fuel_liters=1, fuel_cost=0),
        actor_role=DISPATCHER,
        now=now,
    )
    assert trip.distance_km == 0


@pytest.mark.asyncio
async def test_complete_draft_trip_is_invalid_state(trips, scenario, now):
    with pytest.raises(InvalidStateError) as exc_info:
        await trips.complete(
            "trp-001",
            TripCompletion(final_odometer_km=78470, fuel_liters=42, fuel_cost=180),
            actor_role=DISPATCHER,
            now=now,
        )
    assert exc_info.value.code == "INVALID_TRIP_STATE"


@pytest.mark.asyncio
async def test_complete_rejects_odometer_rollback(trips, fleet, scenario, session_factory, now):
    await trips.dispatch("trp-001", actor_role=DISPATCHER, now=now)

    with pytest.raises(RuleViolationError) as exc_info:
        await trips.complete(
            "trp-001",
            TripCompletion(final_odometer_km=78000, fuel_liters=42, fuel_cost=180),
            actor_role=DISPATCHER,
            now=now,
        )
    assert exc_info.value.code == "INVALID_ODOMETER"
    assert (await fleet.get(TripModel, "trp-001")).status == TripStatus.DISPATCHED
    assert (await fleet.get(VehicleModel, "veh-001")).odometer_km == 78320
    assert await _count(session_factory, FuelLogModel) == 0


@pytest.mark.asyncio
async def test_complete_keeps_vehicle_in_shop_when_maintenance_open(
    trips, fleet, scenario, session_factory, now
):
    await trips.dispatch("trp-001", actor_role=DISPATCHER, now=now)
    await MaintenanceLifecycle(session_factory).open(
        "veh-001", MaintenanceRequest(note="Check engine light"), UserRole.MANAGER, now=now
    )

    await trips.complete(
        "trp-001",
        TripCompletion(final_odometer_km=78400, fuel_liters=20, fuel_cost=90),
        actor_role=DISPATCHER,
        now=now,
    )
    assert (await fleet.get(VehicleModel, "veh-001")).status == VehicleStatus.IN_SHOP


@pytest.mark.asyncio
async def test_complete_closes_cargo(trips, fleet, now):
    vehicle = await fleet.vehicle()
    driver = await fleet.driver()
    cargo = await fleet.cargo()
    trip = await fleet.trip(vehicle.id, driver.id, cargo_id=cargo.id)
    await trips.dispatch(trip.id, actor_role=DISPATCHER, now=now)

    await trips.complete(
        trip.id,
        TripCompletion(final_odometer_km=1100, fuel_liters=10, fuel_cost=45),
        actor_role=DISPATCHER,
        now=now,
    )
    assert (await fleet.get(CargoShipmentModel, cargo.id)).status == CargoStatus.COMPLETED


# ── Cancel ────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_cancel_draft(trips, fleet, scenario, now):
    trip = await trips.cancel("trp-001", actor_role=DISPATCHER, now=now)

    assert trip.status == TripStatus.CANCELLED
    assert as_utc(trip.cancelled_at) == now
    assert (await fleet.get(VehicleModel, "veh-001")).status == VehicleStatus.AVAILABLE


@pytest.mark.asyncio
async def test_cancel_dispatched_releases_vehicle_and_cargo(trips, fleet, now):
    vehicle = await fleet.vehicle()
    driver = await fleet.driver()
    cargo = await fleet.cargo()
    trip = await fleet.trip(vehicle.id, driver.id, cargo_id=cargo.id)
    await trips.dispatch(trip.id, actor_role=DISPATCHER, now=now)

    await trips.cancel(trip.id, actor_role=DISPATCHER, now=now)

    assert (await fleet.get(VehicleModel, vehicle.id)).status == VehicleStatus.AVAILABLE
    assert (await fleet.get(DriverModel, driver.id)).status == DriverStatus.ON_DUTY
    assert (await fleet.get(CargoShipmentModel, cargo.id)).status == CargoStatus.PENDING


@pytest.mark.asyncio
async def test_cancel_dispatched_keeps_vehicle_in_shop_when_maintenance_open(
    trips, fleet, scenario, session_factory, now
):
    await trips.dispatch("trp-001", actor_role=DISPATCHER, now=now)
    await MaintenanceLifecycle(session_factory).open(
        "veh-001", MaintenanceRequest(note="Brake inspection"), UserRole.MANAGER, now=now
    )

    trip = await trips.cancel("trp-001", actor_role=DISPATCHER, now=now)

    assert trip.status == TripStatus.CANCELLED
    assert (await fleet.get(VehicleModel, "veh-001")).status == VehicleStatus.IN_SHOP


@pytest.mark.asyncio
async def test_cancelled_trip_frees_driver_for_next_dispatch(trips, fleet, now):
    driver = await fleet.driver()
    first = await fleet.trip((await fleet.vehicle()).id, driver.id)
    second = await fleet.trip((await fleet.vehicle()).id, driver.id)
    await trips.dispatch(first.id, actor_role=DISPATCHER, now=now)
    await trips.cancel(first.id, actor_role=DISPATCHER, now=now)

    dispatched = await trips.dispatch(second.id, actor_role=DISPATCHER, now=now)
    assert dispatched.status == TripStatus.DISPATCHED


@pytest.mark.asyncio
async def test_cancel_completed_trip_fails(trips, scenario, now):
    await trips.dispatch("trp-001", actor_role=DISPATCHER, now=now)
    await trips.complete(
        "trp-001",
        TripCompletion(final_odometer_km=78470, fuel_liters=42, fuel_cost=180),
        actor_role=DISPATCHER,
        now=now,
    )
    with pytest.raises(InvalidStateError) as exc_info:
        await trips.cancel("trp-001", actor_role=DISPATCHER, now=now)
    assert exc_info.value.code == "TRIP_ALREADY_COMPLETED"


@pytest.mark.asyncio
async def test_cancel_twice_fails(trips, scenario, now):
    await trips.cancel("trp-001", actor_role=DISPATCHER, now=now)
    with pytest.raises(InvalidStateError) as exc_info:
        await trips.cancel("trp-001", actor_role=DISPATCHER, now=now)
    assert exc_info.value.code == "TRIP_ALREADY_CANCELLED"
    assert len(await trips.events("trp-001")) == 1


@pytest.mark.asyncio
async def test_cancelled_trip_cannot_be_dispatched(trips, scenario, now):
    await trips.cancel("trp-001", actor_role=DISPATCHER, now=now)
    with pytest.raises(InvalidStateError):
        await trips.dispatch("trp-001", actor_role=DISPATCHER, now=now)


# ── Fuel log ──────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_fuel_log_is_mirrored_as_expense(trips, scenario, session_factory, now):
    fuel = await trips.add_fuel_log("trp-001", FuelEntry(liters=38.5, cost=160), now=now)

    assert fuel.vehicle_id == "veh-001"
    async with session_factory() as session:
        expense = (
            await session.execute(select(ExpenseModel).where(ExpenseModel.trip_id == "trp-001"))
        ).scalar_one()
    assert expense.notes == "Fuel log: 38.5L"
    assert expense.amount == 160


@pytest.mark.asyncio
async def test_fuel_log_for_unknown_trip(trips, now):
    with pytest.raises(NotFoundError):
        await trips.add_fuel_log("trp-missing", FuelEntry(liters=1, cost=1), now=now)