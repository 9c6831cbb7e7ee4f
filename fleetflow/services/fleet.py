"""
Fleet registry: vehicles, drivers and cargo outside the trip state machine.

``override_vehicle_status`` is the administrative escape hatch: it is
trusted to the caller and bypasses every trip-derived rule.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fleetflow.config import settings
from fleetflow.domain.entities import (
    CargoRegistration,
    DriverPatch,
    DriverRegistration,
    VehicleRegistration,
)
from fleetflow.domain.enums import VehicleStatus
from fleetflow.domain.errors import ConflictError, NotFoundError
from fleetflow.domain.lifecycle import utcnow
from fleetflow.infrastructure.database import async_session_factory, run_in_transaction
from fleetflow.infrastructure.models import CargoShipmentModel, DriverModel, VehicleModel
from fleetflow.infrastructure.repositories import (
    CargoRepository,
    DriverRepository,
    VehicleRepository,
)
from fleetflow.services.availability import AvailabilityIndex, DispatchSnapshot

logger = logging.getLogger(__name__)


def _names_column(exc: IntegrityError, column: str) -> bool:
    # PostgreSQL names the constraint (uq_vehicles_plate), SQLite the column
    return column in str(exc.orig)


class FleetRegistry:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] = async_session_factory,
    ):
        self.session_factory = session_factory

    # ── Vehicles ──────────────────────────────────────────────────

    async def list_vehicles(self) -> list[VehicleModel]:
        async def work(session: AsyncSession) -> list[VehicleModel]:
            return await VehicleRepository(session).list_all()

        return await run_in_transaction(self.session_factory, work)

    async def register_vehicle(self, registration: VehicleRegistration) -> VehicleModel:
        async def work(session: AsyncSession) -> VehicleModel:
            vehicles = VehicleRepository(session)
            if registration.id and await vehicles.get_by_id(registration.id):
                raise ConflictError("Vehicle id already exists", code="VEHICLE_ID_CONFLICT")
            if await vehicles.get_by_plate(registration.plate):
                raise ConflictError("Vehicle plate already exists", code="PLATE_CONFLICT")
            return await vehicles.add(
                VehicleModel(
                    id=registration.id,
                    name=registration.name,
                    model=registration.model,
                    plate=registration.plate,
                    vehicle_type=registration.vehicle_type,
                    max_load_kg=registration.max_load_kg,
                    odometer_km=registration.odometer_km,
                    region=registration.region,
                    status=VehicleStatus.AVAILABLE,
                    acquisition_cost=registration.acquisition_cost,
                )
            )

        try:
            vehicle = await run_in_transaction(self.session_factory, work)
        except IntegrityError as exc:
            # lost a race with a concurrent registration
            if _names_column(exc, "plate"):
                raise ConflictError(
                    "Vehicle plate already exists", code="PLATE_CONFLICT"
                ) from exc
            raise ConflictError(
                "Vehicle id already exists", code="VEHICLE_ID_CONFLICT"
            ) from exc
        logger.info("Vehicle %s registered (plate=%s)", vehicle.id, vehicle.plate)
        return vehicle

    async def in_shop_vehicles(self) -> list[VehicleModel]:
        async def work(session: AsyncSession) -> list[VehicleModel]:
            return await AvailabilityIndex(session).in_shop_vehicles()

        return await run_in_transaction(self.session_factory, work)

    async def override_vehicle_status(
        self,
        vehicle_id: str,
        status: VehicleStatus,
        now: Optional[datetime] = None,
    ) -> VehicleModel:
        now = now or utcnow()

        async def work(session: AsyncSession) -> VehicleModel:
            vehicle = await VehicleRepository(session).get_by_id(vehicle_id, for_update=True)
            if vehicle is None:
                raise NotFoundError("Vehicle not found", code="VEHICLE_NOT_FOUND")
            vehicle.status = VehicleStatus(status)
            vehicle.updated_at = now
            return vehicle

        vehicle = await run_in_transaction(self.session_factory, work)
        logger.warning("Vehicle %s status overridden to %s", vehicle.id, vehicle.status.value)
        return vehicle

    # ── Drivers ───────────────────────────────────────────────────

    async def list_drivers(self) -> list[DriverModel]:
        async def work(session: AsyncSession) -> list[DriverModel]:
            return await DriverRepository(session).list_all()

        return await run_in_transaction(self.session_factory, work)

    async def get_driver(self, driver_id: str) -> DriverModel:
        async def work(session: AsyncSession) -> DriverModel:
            driver = await DriverRepository(session).get_by_id(driver_id)
            if driver is None:
                raise NotFoundError("Driver not found", code="DRIVER_NOT_FOUND")
            return driver

        return await run_in_transaction(self.session_factory, work)

    async def register_driver(self, registration: DriverRegistration) -> DriverModel:
        async def work(session: AsyncSession) -> DriverModel:
            drivers = DriverRepository(session)
            if registration.id and await drivers.get_by_id(registration.id):
                raise ConflictError("Driver id already exists", code="DRIVER_ID_CONFLICT")
            if await drivers.get_by_license_number(registration.license_number):
                raise ConflictError(
                    "License number already registered", code="LICENSE_CONFLICT"
                )
            return await drivers.add(
                DriverModel(
                    id=registration.id,
                    name=registration.name,
                    license_number=registration.license_number,
                    license_category=registration.license_category,
                    license_expires_at=registration.license_expires_at,
                    status=registration.status,
                    safety_score=registration.safety_score,
                )
            )

        try:
            driver = await run_in_transaction(self.session_factory, work)
        except IntegrityError as exc:
            if _names_column(exc, "license_number"):
                raise ConflictError(
                    "License number already registered", code="LICENSE_CONFLICT"
                ) from exc
            raise ConflictError(
                "Driver id already exists", code="DRIVER_ID_CONFLICT"
            ) from exc
        logger.info("Driver %s registered", driver.id)
        return driver

    async def update_driver(
        self,
        driver_id: str,
        patch: DriverPatch,
        now: Optional[datetime] = None,
    ) -> DriverModel:
        now = now or utcnow()

        async def work(session: AsyncSession) -> DriverModel:
            driver = await DriverRepository(session).get_by_id(driver_id, for_update=True)
            if driver is None:
                raise NotFoundError("Driver not found", code="DRIVER_NOT_FOUND")
            if patch.status is not None:
                driver.status = patch.status
            if patch.license_expires_at is not None:
                driver.license_expires_at = patch.license_expires_at
            if patch.license_category is not None:
                driver.license_category = patch.license_category
            if patch.safety_score is not None:
                driver.safety_score = patch.safety_score
            driver.updated_at = now
            return driver

        return await run_in_transaction(self.session_factory, work)

    async def assignable_drivers(self, now: Optional[datetime] = None) -> list[DriverModel]:
        """On-duty drivers with a valid licence, busy or not."""
        async def work(session: AsyncSession) -> list[DriverModel]:
            return await AvailabilityIndex(session).assignable_drivers(now)

        return await run_in_transaction(self.session_factory, work)

    async def expiring_drivers(
        self,
        days: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> list[DriverModel]:
        """Drivers whose licence lapses on or before ``now + days``."""
        horizon = (now or utcnow()) + timedelta(
            days=settings.license_expiry_warning_days if days is None else days
        )

        async def work(session: AsyncSession) -> list[DriverModel]:
            return await DriverRepository(session).list_expiring(horizon)

        return await run_in_transaction(self.session_factory, work)

    # ── Dispatch board ────────────────────────────────────────────

    async def dispatch_snapshot(self, now: Optional[datetime] = None) -> DispatchSnapshot:
        async def work(session: AsyncSession) -> DispatchSnapshot:
            return await AvailabilityIndex(session).dispatch_snapshot(now)

        return await run_in_transaction(self.session_factory, work)

    # ── Cargo ─────────────────────────────────────────────────────

    async def register_cargo(self, registration: CargoRegistration) -> CargoShipmentModel:
        async def work(session: AsyncSession) -> CargoShipmentModel:
            cargo = CargoRepository(session)
            if registration.id and await cargo.get_by_id(registration.id):
                raise ConflictError("Cargo id already exists", code="CARGO_ID_CONFLICT")
            if await cargo.get_by_reference(registration.reference_code):
                raise ConflictError(
                    "Cargo reference already exists", code="CARGO_REFERENCE_CONFLICT"
                )
            return await cargo.add(
                CargoShipmentModel(
                    id=registration.id,
                    reference_code=registration.reference_code,
                    weight_kg=registration.weight_kg,
                    region=registration.region,
                )
            )

        try:
            return await run_in_transaction(self.session_factory, work)
        except IntegrityError as exc:
            if _names_column(exc, "reference_code"):
                raise ConflictError(
                    "Cargo reference already exists", code="CARGO_REFERENCE_CONFLICT"
                ) from exc
            raise ConflictError(
                "Cargo id already exists", code="CARGO_ID_CONFLICT"
            ) from exc
