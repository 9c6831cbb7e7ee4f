"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.  Nothing here commits; the lifecycle
services own the transaction boundary.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import (
    CargoShipmentModel,
    DriverModel,
    ExpenseModel,
    FuelLogModel,
    MaintenanceLogModel,
    TripEventModel,
    TripModel,
    VehicleModel,
)
from fleetflow.domain.enums import (
    DriverStatus,
    ExpenseType,
    TripEventType,
    TripStatus,
    UserRole,
    VehicleStatus,
)
from fleetflow.domain.lifecycle import new_id


class VehicleRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, vehicle: VehicleModel) -> VehicleModel:
        vehicle.id = vehicle.id or new_id("veh")
        self.session.add(vehicle)
        await self.session.flush()
        return vehicle

    async def get_by_id(
        self, vehicle_id: str, *, for_update: bool = False
    ) -> Optional[VehicleModel]:
        return await self.session.get(VehicleModel, vehicle_id, with_for_update=for_update)

    async def get_by_plate(self, plate: str) -> Optional[VehicleModel]:
        result = await self.session.execute(
            select(VehicleModel).where(VehicleModel.plate == plate)
        )
        return result.scalar_one_or_none()

    async def list_all(self) -> list[VehicleModel]:
        result = await self.session.execute(
            select(VehicleModel).order_by(VehicleModel.created_at.desc())
        )
        return list(result.scalars().all())

    async def list_by_status(self, status: VehicleStatus) -> list[VehicleModel]:
        result = await self.session.execute(
            select(VehicleModel)
            .where(VehicleModel.status == status)
            .order_by(VehicleModel.id)
        )
        return list(result.scalars().all())


class DriverRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, driver: DriverModel) -> DriverModel:
        driver.id = driver.id or new_id("drv")
        self.session.add(driver)
        await self.session.flush()
        return driver

    async def get_by_id(
        self, driver_id: str, *, for_update: bool = False
    ) -> Optional[DriverModel]:
        return await self.session.get(DriverModel, driver_id, with_for_update=for_update)

    async def get_by_license_number(self, license_number: str) -> Optional[DriverModel]:
        result = await self.session.execute(
            select(DriverModel).where(DriverModel.license_number == license_number)
        )
        return result.scalar_one_or_none()

    async def list_all(self) -> list[DriverModel]:
        result = await self.session.execute(select(DriverModel).order_by(DriverModel.id))
        return list(result.scalars().all())

    async def list_by_status(self, status: DriverStatus) -> list[DriverModel]:
        result = await self.session.execute(
            select(DriverModel)
            .where(DriverModel.status == status)
            .order_by(DriverModel.id)
        )
        return list(result.scalars().all())

    async def list_expiring(self, horizon: datetime) -> list[DriverModel]:
        result = await self.session.execute(
            select(DriverModel)
            .where(DriverModel.license_expires_at <= horizon)
            .order_by(DriverModel.license_expires_at)
        )
        return list(result.scalars().all())


class CargoRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, cargo: CargoShipmentModel) -> CargoShipmentModel:
        cargo.id = cargo.id or new_id("cgo")
        self.session.add(cargo)
        await self.session.flush()
        return cargo

    async def get_by_id(self, cargo_id: str) -> Optional[CargoShipmentModel]:
        return await self.session.get(CargoShipmentModel, cargo_id)

    async def get_by_reference(self, reference_code: str) -> Optional[CargoShipmentModel]:
        result = await self.session.execute(
            select(CargoShipmentModel).where(
                CargoShipmentModel.reference_code == reference_code
            )
        )
        return result.scalar_one_or_none()


class TripRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, trip: TripModel) -> TripModel:
        trip.id = trip.id or new_id("trp")
        self.session.add(trip)
        await self.session.flush()
        return trip

    async def get_by_id(
        self, trip_id: str, *, for_update: bool = False
    ) -> Optional[TripModel]:
        return await self.session.get(TripModel, trip_id, with_for_update=for_update)

    async def list_all(self) -> list[TripModel]:
        result = await self.session.execute(
            select(TripModel).order_by(TripModel.created_at.desc(), TripModel.id)
        )
        return list(result.scalars().all())

    async def vehicle_has_dispatched_trip(
        self, vehicle_id: str, *, exclude_trip_id: str | None = None
    ) -> bool:
        query = select(TripModel.id).where(
            TripModel.vehicle_id == vehicle_id,
            TripModel.status == TripStatus.DISPATCHED,
        )
        if exclude_trip_id:
            query = query.where(TripModel.id != exclude_trip_id)
        return bool(await self.session.scalar(select(query.exists())))

    async def driver_has_dispatched_trip(
        self, driver_id: str, *, exclude_trip_id: str | None = None
    ) -> bool:
        query = select(TripModel.id).where(
            TripModel.driver_id == driver_id,
            TripModel.status == TripStatus.DISPATCHED,
        )
        if exclude_trip_id:
            query = query.where(TripModel.id != exclude_trip_id)
        return bool(await self.session.scalar(select(query.exists())))

    async def dispatched_driver_ids(self) -> set[str]:
        result = await self.session.execute(
            select(TripModel.driver_id).where(TripModel.status == TripStatus.DISPATCHED)
        )
        return set(result.scalars().all())

    async def other_dispatched_trips_for_cargo(
        self, cargo_id: str, trip_id: str
    ) -> list[str]:
        result = await self.session.execute(
            select(TripModel.id).where(
                TripModel.cargo_id == cargo_id,
                TripModel.status == TripStatus.DISPATCHED,
                TripModel.id != trip_id,
            )
        )
        return list(result.scalars().all())


class MaintenanceRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, log: MaintenanceLogModel) -> MaintenanceLogModel:
        log.id = log.id or new_id("mnt")
        self.session.add(log)
        await self.session.flush()
        return log

    async def get_for_vehicle(
        self, log_id: str, vehicle_id: str
    ) -> Optional[MaintenanceLogModel]:
        result = await self.session.execute(
            select(MaintenanceLogModel).where(
                MaintenanceLogModel.id == log_id,
                MaintenanceLogModel.vehicle_id == vehicle_id,
            )
        )
        return result.scalar_one_or_none()

    async def has_open_log(self, vehicle_id: str) -> bool:
        query = select(MaintenanceLogModel.id).where(
            MaintenanceLogModel.vehicle_id == vehicle_id,
            MaintenanceLogModel.closed_at.is_(None),
        )
        return bool(await self.session.scalar(select(query.exists())))

    async def list_for_vehicle(self, vehicle_id: str) -> list[MaintenanceLogModel]:
        result = await self.session.execute(
            select(MaintenanceLogModel)
            .where(MaintenanceLogModel.vehicle_id == vehicle_id)
            .order_by(MaintenanceLogModel.opened_at.desc())
        )
        return list(result.scalars().all())


class LedgerRepository:
    """Append-only fuel and expense rows.  Never updated after insert."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def add_fuel_log(
        self,
        *,
        trip_id: str,
        vehicle_id: str,
        liters: float,
        cost: float,
        logged_at: datetime,
    ) -> FuelLogModel:
        fuel = FuelLogModel(
            id=new_id("fuel"),
            trip_id=trip_id,
            vehicle_id=vehicle_id,
            liters=liters,
            cost=cost,
            logged_at=logged_at,
        )
        self.session.add(fuel)
        await self.session.flush()
        return fuel

    async def add_expense(
        self,
        *,
        type: ExpenseType,
        vehicle_id: str,
        amount: float,
        date: datetime,
        notes: str | None = None,
        trip_id: str | None = None,
        maintenance_log_id: str | None = None,
    ) -> ExpenseModel:
        expense = ExpenseModel(
            id=new_id("exp"),
            type=type,
            vehicle_id=vehicle_id,
            trip_id=trip_id,
            maintenance_log_id=maintenance_log_id,
            amount=amount,
            notes=notes,
            date=date,
        )
        self.session.add(expense)
        await self.session.flush()
        return expense


class TripEventRepository:
    """Audit trail.  Written inside each transition, read only by observers."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def append(
        self,
        *,
        trip_id: str,
        event_type: TripEventType,
        message: str,
        actor_role: UserRole | None,
        created_at: datetime,
    ) -> TripEventModel:
        event = TripEventModel(
            id=new_id("evt"),
            trip_id=trip_id,
            event_type=event_type.value,
            message=message,
            actor_role=actor_role,
            created_at=created_at,
        )
        self.session.add(event)
        await self.session.flush()
        return event

    async def list_for_trip(self, trip_id: str) -> list[TripEventModel]:
        result = await self.session.execute(
            select(TripEventModel)
            .where(TripEventModel.trip_id == trip_id)
            .order_by(TripEventModel.created_at, TripEventModel.id)
        )
        return list(result.scalars().all())
