"""
Trip Lifecycle Engine
=====================

State machine::

    draft -> dispatched -> completed
      |          |
      +----------+-----> cancelled

Every transition is one unit of work (see
:func:`fleetflow.infrastructure.database.run_in_transaction`) that reads
and writes trip, vehicle, driver and cargo rows and appends exactly one
``trip_events`` row.  Any ``FleetError`` raised on the way rolls the whole
transaction back.

Concurrency safety
------------------
* Trip, vehicle and driver rows are read ``SELECT ... FOR UPDATE`` during
  dispatch, so two dispatches on the same resource serialize on the row
  lock and the second one sees the first one's writes.
* The partial unique indexes ``uq_trips_dispatched_vehicle`` /
  ``uq_trips_dispatched_driver`` reject a losing commit regardless of the
  isolation level.  Such rejections, serialization failures and deadlocks
  re-run the whole dispatch up to ``settings.dispatch_max_attempts`` times;
  the re-run normally ends in the friendly error (``VEHICLE_BUSY``,
  ``INVALID_TRIP_STATE`` ...), otherwise ``DISPATCH_CONFLICT``.

Time is injected: each operation accepts ``now`` and falls back to the
real clock once, at the start of the call.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fleetflow.config import settings
from fleetflow.domain.entities import FuelEntry, TripCompletion, TripDraft
from fleetflow.domain.enums import (
    CargoStatus,
    DriverStatus,
    ExpenseType,
    TripEventType,
    TripStatus,
    UserRole,
    VehicleStatus,
)
from fleetflow.domain.errors import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    RuleViolationError,
    UnavailableError,
)
from fleetflow.domain.lifecycle import (
    category_matches,
    ensure_transition,
    fuel_expense_note,
    license_valid_for_dispatch,
    utcnow,
)
from fleetflow.infrastructure.database import (
    async_session_factory,
    is_retryable_conflict,
    run_in_transaction,
)
from fleetflow.infrastructure.models import FuelLogModel, TripEventModel, TripModel
from fleetflow.infrastructure.repositories import (
    CargoRepository,
    DriverRepository,
    LedgerRepository,
    TripEventRepository,
    TripRepository,
    VehicleRepository,
)
from fleetflow.services.availability import AvailabilityIndex

logger = logging.getLogger(__name__)


class TripLifecycle:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] = async_session_factory,
        *,
        max_attempts: int | None = None,
        backoff_seconds: float | None = None,
    ):
        self.session_factory = session_factory
        self.max_attempts = max_attempts or settings.dispatch_max_attempts
        self.backoff_seconds = (
            settings.dispatch_retry_backoff_seconds
            if backoff_seconds is None
            else backoff_seconds
        )

    # ── Reads ─────────────────────────────────────────────────────

    async def get(self, trip_id: str) -> TripModel:
        async def work(session: AsyncSession) -> TripModel:
            return await _load_trip(TripRepository(session), trip_id)

        return await run_in_transaction(self.session_factory, work)

    async def list_all(self) -> list[TripModel]:
        async def work(session: AsyncSession) -> list[TripModel]:
            return await TripRepository(session).list_all()

        return await run_in_transaction(self.session_factory, work)

    async def events(self, trip_id: str) -> list[TripEventModel]:
        async def work(session: AsyncSession) -> list[TripEventModel]:
            await _load_trip(TripRepository(session), trip_id)
            return await TripEventRepository(session).list_for_trip(trip_id)

        return await run_in_transaction(self.session_factory, work)

    # ── Transitions ───────────────────────────────────────────────

    async def create(
        self,
        draft: TripDraft,
        actor_role: UserRole | str,
        now: Optional[datetime] = None,
    ) -> TripModel:
        """Insert a draft trip.  A draft is a plan: no availability checks."""
        now = now or utcnow()
        role = UserRole(actor_role)

        async def work(session: AsyncSession) -> TripModel:
            # references must exist; eligibility waits for dispatch
            if await VehicleRepository(session).get_by_id(draft.vehicle_id) is None:
                raise NotFoundError("Vehicle not found", code="VEHICLE_NOT_FOUND")
            if await DriverRepository(session).get_by_id(draft.driver_id) is None:
                raise NotFoundError("Driver not found", code="DRIVER_NOT_FOUND")
            if draft.cargo_id and await CargoRepository(session).get_by_id(draft.cargo_id) is None:
                raise NotFoundError("Cargo not found", code="CARGO_NOT_FOUND")

            trip = await TripRepository(session).add(
                TripModel(
                    vehicle_id=draft.vehicle_id,
                    driver_id=draft.driver_id,
                    cargo_id=draft.cargo_id,
                    cargo_weight_kg=draft.cargo_weight_kg,
                    origin=draft.origin,
                    destination=draft.destination,
                    scheduled_at=draft.scheduled_at,
                    status=TripStatus.DRAFT,
                    revenue=draft.revenue,
                    created_at=now,
                    updated_at=now,
                )
            )
            await TripEventRepository(session).append(
                trip_id=trip.id,
                event_type=TripEventType.CREATED,
                message="Trip created in draft state",
                actor_role=role,
                created_at=now,
            )
            return trip

        trip = await run_in_transaction(self.session_factory, work)
        logger.info("Trip %s created (vehicle=%s driver=%s)", trip.id, trip.vehicle_id, trip.driver_id)
        return trip

    async def dispatch(
        self,
        trip_id: str,
        actor_role: UserRole | str,
        now: Optional[datetime] = None,
    ) -> TripModel:
        """Commit the trip's vehicle and driver.  Checks run in a fixed order."""
        now = now or utcnow()
        role = UserRole(actor_role)

        async def work(session: AsyncSession) -> TripModel:
            trips = TripRepository(session)
            availability = AvailabilityIndex(session)

            # 1. trip
            trip = await _load_trip(trips, trip_id, for_update=True)
            ensure_transition(
                trip.status, TripStatus.DISPATCHED, "Only draft trips can be dispatched"
            )

            # 2. vehicle
            vehicle = await VehicleRepository(session).get_by_id(
                trip.vehicle_id, for_update=True
            )
            if vehicle is None:
                raise NotFoundError("Vehicle not found", code="VEHICLE_NOT_FOUND")
            if not availability.vehicle_is_available(vehicle):
                raise UnavailableError("Vehicle is unavailable", code="VEHICLE_UNAVAILABLE")

            # 3. driver
            driver = await DriverRepository(session).get_by_id(
                trip.driver_id, for_update=True
            )
            if driver is None:
                raise NotFoundError("Driver not found", code="DRIVER_NOT_FOUND")
            if DriverStatus(driver.status) is not DriverStatus.ON_DUTY:
                raise UnavailableError("Driver is unavailable", code="DRIVER_UNAVAILABLE")

            # 4.-6. licence, category, capacity
            if not license_valid_for_dispatch(driver.license_expires_at, now):
                raise RuleViolationError("Driver license expired", code="LICENSE_EXPIRED")
            if not category_matches(driver.license_category, vehicle.vehicle_type):
                raise UnavailableError(
                    "Driver category does not match vehicle type",
                    code="LICENSE_CATEGORY_MISMATCH",
                    status_code=422,
                )
            if trip.cargo_weight_kg > vehicle.max_load_kg:
                raise RuleViolationError(
                    "Cargo exceeds vehicle max capacity", code="CAPACITY_EXCEEDED"
                )

            # 7.-8. no other dispatched trip holds the vehicle or driver
            if await availability.vehicle_is_busy(vehicle.id, exclude_trip_id=trip.id):
                raise UnavailableError(
                    "Vehicle already on dispatched trip", code="VEHICLE_BUSY"
                )
            if await availability.driver_is_busy(driver.id, exclude_trip_id=trip.id):
                raise UnavailableError(
                    "Driver already on dispatched trip", code="DRIVER_BUSY"
                )

            trip.status = TripStatus.DISPATCHED
            trip.dispatched_at = now
            trip.start_odometer_km = vehicle.odometer_km
            trip.updated_at = now

            vehicle.status = VehicleStatus.ON_TRIP
            vehicle.updated_at = now

            if trip.cargo_id:
                cargo = await CargoRepository(session).get_by_id(trip.cargo_id)
                if cargo is not None:
                    cargo.status = CargoStatus.ASSIGNED

            await TripEventRepository(session).append(
                trip_id=trip.id,
                event_type=TripEventType.DISPATCHED,
                message="Trip dispatched",
                actor_role=role,
                created_at=now,
            )
            # surface the partial unique indexes before commit
            await session.flush()
            return trip

        try:
            trip = await run_in_transaction(
                self.session_factory,
                work,
                attempts=self.max_attempts,
                backoff_seconds=self.backoff_seconds,
            )
        except DBAPIError as exc:
            if not is_retryable_conflict(exc):
                raise
            logger.warning("Dispatch of trip %s lost a concurrent race: %s", trip_id, exc.orig)
            raise ConflictError(
                "Trip could not be dispatched due to a concurrent dispatch",
                code="DISPATCH_CONFLICT",
            ) from exc

        logger.info(
            "Trip %s dispatched (vehicle=%s driver=%s start_odometer=%s)",
            trip.id,
            trip.vehicle_id,
            trip.driver_id,
            trip.start_odometer_km,
        )
        return trip

    async def complete(
        self,
        trip_id: str,
        completion: TripCompletion,
        actor_role: UserRole | str,
        now: Optional[datetime] = None,
    ) -> tuple[TripModel, FuelLogModel]:
        """Close a dispatched trip, release its vehicle and book the fuel."""
        now = now or utcnow()
        role = UserRole(actor_role)
        completed_at = completion.completed_at or now

        async def work(session: AsyncSession) -> tuple[TripModel, FuelLogModel]:
            trip = await _load_trip(TripRepository(session), trip_id, for_update=True)
            if TripStatus(trip.status) is not TripStatus.DISPATCHED:
                raise InvalidStateError(
                    "Only dispatched trips can be completed", code="INVALID_TRIP_STATE"
                )

            vehicle = await VehicleRepository(session).get_by_id(
                trip.vehicle_id, for_update=True
            )
            if vehicle is None:
                raise NotFoundError("Vehicle not found", code="VEHICLE_NOT_FOUND")

            if trip.start_odometer_km is None:
                raise InvalidStateError(
                    "Trip start odometer missing", code="INVALID_TRIP_STATE"
                )
            if completion.final_odometer_km < trip.start_odometer_km:
                raise RuleViolationError(
                    "Final odometer cannot be lower than start", code="INVALID_ODOMETER"
                )

            distance_km = completion.final_odometer_km - trip.start_odometer_km

            trip.status = TripStatus.COMPLETED
            trip.completed_at = completed_at
            trip.end_odometer_km = completion.final_odometer_km
            trip.distance_km = distance_km
            trip.updated_at = now

            vehicle.odometer_km = completion.final_odometer_km
            vehicle.status = await AvailabilityIndex(session).release_status(vehicle.id)
            vehicle.updated_at = now

            ledger = LedgerRepository(session)
            fuel = await ledger.add_fuel_log(
                trip_id=trip.id,
                vehicle_id=trip.vehicle_id,
                liters=completion.fuel_liters,
                cost=completion.fuel_cost,
                logged_at=completed_at,
            )
            await ledger.add_expense(
                type=ExpenseType.FUEL,
                vehicle_id=trip.vehicle_id,
                trip_id=trip.id,
                amount=completion.fuel_cost,
                notes=fuel_expense_note(completion.fuel_liters),
                date=completed_at,
            )

            if trip.cargo_id:
                cargo = await CargoRepository(session).get_by_id(trip.cargo_id)
                if cargo is not None:
                    cargo.status = CargoStatus.COMPLETED

            await TripEventRepository(session).append(
                trip_id=trip.id,
                event_type=TripEventType.COMPLETED,
                message=f"Trip completed; distance {distance_km} km",
                actor_role=role,
                created_at=now,
            )
            return trip, fuel

        trip, fuel = await run_in_transaction(self.session_factory, work)
        logger.info(
            "Trip %s completed (distance=%s km, vehicle %s -> %s)",
            trip.id,
            trip.distance_km,
            trip.vehicle_id,
            trip.end_odometer_km,
        )
        return trip, fuel

    async def cancel(
        self,
        trip_id: str,
        actor_role: UserRole | str,
        now: Optional[datetime] = None,
    ) -> TripModel:
        """Cancel a draft or dispatched trip.  Driver status is not touched."""
        now = now or utcnow()
        role = UserRole(actor_role)

        async def work(session: AsyncSession) -> TripModel:
            trips = TripRepository(session)
            trip = await _load_trip(trips, trip_id, for_update=True)

            previous = TripStatus(trip.status)
            if previous is TripStatus.COMPLETED:
                raise InvalidStateError(
                    "Completed trips cannot be cancelled", code="TRIP_ALREADY_COMPLETED"
                )
            if previous is TripStatus.CANCELLED:
                raise InvalidStateError(
                    "Trip already cancelled", code="TRIP_ALREADY_CANCELLED"
                )

            trip.status = TripStatus.CANCELLED
            trip.cancelled_at = now
            trip.updated_at = now

            if previous is TripStatus.DISPATCHED:
                vehicle = await VehicleRepository(session).get_by_id(
                    trip.vehicle_id, for_update=True
                )
                if vehicle is not None:
                    vehicle.status = await AvailabilityIndex(session).release_status(
                        vehicle.id
                    )
                    vehicle.updated_at = now

            if trip.cargo_id:
                cargo = await CargoRepository(session).get_by_id(trip.cargo_id)
                if cargo is not None:
                    others = await trips.other_dispatched_trips_for_cargo(cargo.id, trip.id)
                    if others:
                        logger.warning(
                            "Cargo %s reverted to pending while still on dispatched trip(s) %s",
                            cargo.id,
                            ", ".join(others),
                        )
                    cargo.status = CargoStatus.PENDING

            await TripEventRepository(session).append(
                trip_id=trip.id,
                event_type=TripEventType.CANCELLED,
                message="Trip cancelled",
                actor_role=role,
                created_at=now,
            )
            return trip

        trip = await run_in_transaction(self.session_factory, work)
        logger.info("Trip %s cancelled", trip.id)
        return trip

    async def add_fuel_log(
        self,
        trip_id: str,
        entry: FuelEntry,
        now: Optional[datetime] = None,
    ) -> FuelLogModel:
        """Ad-hoc fuel entry, any trip status.  Mirrored as a fuel expense."""
        logged_at = entry.logged_at or now or utcnow()

        async def work(session: AsyncSession) -> FuelLogModel:
            trip = await _load_trip(TripRepository(session), trip_id)
            ledger = LedgerRepository(session)
            fuel = await ledger.add_fuel_log(
                trip_id=trip.id,
                vehicle_id=trip.vehicle_id,
                liters=entry.liters,
                cost=entry.cost,
                logged_at=logged_at,
            )
            await ledger.add_expense(
                type=ExpenseType.FUEL,
                vehicle_id=trip.vehicle_id,
                trip_id=trip.id,
                amount=entry.cost,
                notes=fuel_expense_note(entry.liters),
                date=logged_at,
            )
            return fuel

        return await run_in_transaction(self.session_factory, work)


async def _load_trip(
    trips: TripRepository, trip_id: str, *, for_update: bool = False
) -> TripModel:
    trip = await trips.get_by_id(trip_id, for_update=for_update)
    if trip is None:
        raise NotFoundError("Trip not found", code="TRIP_NOT_FOUND")
    return trip
