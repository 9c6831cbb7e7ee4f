"""
Availability Index
==================

Not a cache: every answer is derived from the store inside the caller's
session, so lifecycle services can consult it within their own
transaction.

* vehicle available  <=>  ``status = available``
* driver assignable  <=>  ``status = on_duty`` and licence expiry >= now
* dispatch snapshot  =   available vehicles, plus assignable drivers minus
  the set of drivers already on a dispatched trip.  The two-step set
  subtraction is safe because "driver busy" is itself backed by the
  partial unique index on dispatched trips.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from fleetflow.domain.enums import DriverStatus, VehicleStatus
from fleetflow.domain.lifecycle import (
    license_valid_for_assignment,
    released_vehicle_status,
    utcnow,
)
from fleetflow.infrastructure.models import DriverModel, VehicleModel
from fleetflow.infrastructure.repositories import (
    DriverRepository,
    MaintenanceRepository,
    TripRepository,
    VehicleRepository,
)


@dataclass
class DispatchSnapshot:
    vehicles: list[VehicleModel] = field(default_factory=list)
    drivers: list[DriverModel] = field(default_factory=list)


class AvailabilityIndex:
    def __init__(self, session: AsyncSession):
        self.vehicles = VehicleRepository(session)
        self.drivers = DriverRepository(session)
        self.trips = TripRepository(session)
        self.maintenance = MaintenanceRepository(session)

    # ── Predicates ────────────────────────────────────────────────

    @staticmethod
    def vehicle_is_available(vehicle: VehicleModel) -> bool:
        return VehicleStatus(vehicle.status) is VehicleStatus.AVAILABLE

    @staticmethod
    def driver_is_assignable(driver: DriverModel, now: datetime) -> bool:
        if DriverStatus(driver.status) is not DriverStatus.ON_DUTY:
            return False
        return license_valid_for_assignment(driver.license_expires_at, now)

    async def vehicle_is_busy(
        self, vehicle_id: str, *, exclude_trip_id: str | None = None
    ) -> bool:
        return await self.trips.vehicle_has_dispatched_trip(
            vehicle_id, exclude_trip_id=exclude_trip_id
        )

    async def driver_is_busy(
        self, driver_id: str, *, exclude_trip_id: str | None = None
    ) -> bool:
        return await self.trips.driver_has_dispatched_trip(
            driver_id, exclude_trip_id=exclude_trip_id
        )

    async def vehicle_has_open_maintenance(self, vehicle_id: str) -> bool:
        return await self.maintenance.has_open_log(vehicle_id)

    async def release_status(self, vehicle_id: str) -> VehicleStatus:
        """Status for a vehicle a trip no longer holds (in_shop if any log is open)."""
        return released_vehicle_status(
            await self.maintenance.has_open_log(vehicle_id)
        )

    # ── Queries ───────────────────────────────────────────────────

    async def assignable_drivers(self, now: Optional[datetime] = None) -> list[DriverModel]:
        now = now or utcnow()
        on_duty = await self.drivers.list_by_status(DriverStatus.ON_DUTY)
        return [d for d in on_duty if self.driver_is_assignable(d, now)]

    async def in_shop_vehicles(self) -> list[VehicleModel]:
        return await self.vehicles.list_by_status(VehicleStatus.IN_SHOP)

    async def dispatch_snapshot(self, now: Optional[datetime] = None) -> DispatchSnapshot:
        now = now or utcnow()
        vehicles = await self.vehicles.list_by_status(VehicleStatus.AVAILABLE)
        pool = await self.assignable_drivers(now)
        busy = await self.trips.dispatched_driver_ids()
        return DispatchSnapshot(
            vehicles=vehicles,
            drivers=[d for d in pool if d.id not in busy],
        )
