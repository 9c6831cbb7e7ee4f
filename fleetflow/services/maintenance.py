"""
Maintenance Lifecycle
=====================

Opening a log forces the vehicle into ``in_shop`` unconditionally (an
override, not a checked transition).  Closing a log only hands the
vehicle back to ``available`` when, re-queried in the same transaction:

* no dispatched trip holds the vehicle,
* no other log is still open,
* the vehicle is not retired.

The vehicle row is locked ``FOR UPDATE`` in both directions so a close
never races a dispatch into resurrecting availability from stale reads.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fleetflow.domain.entities import MaintenanceRequest
from fleetflow.domain.enums import ExpenseType, UserRole, VehicleStatus
from fleetflow.domain.errors import ConflictError, NotFoundError
from fleetflow.domain.lifecycle import may_return_to_service, utcnow
from fleetflow.infrastructure.database import async_session_factory, run_in_transaction
from fleetflow.infrastructure.models import MaintenanceLogModel, VehicleModel
from fleetflow.infrastructure.repositories import (
    LedgerRepository,
    MaintenanceRepository,
    VehicleRepository,
)
from fleetflow.services.availability import AvailabilityIndex

logger = logging.getLogger(__name__)


class MaintenanceLifecycle:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] = async_session_factory,
    ):
        self.session_factory = session_factory

    async def list_for_vehicle(self, vehicle_id: str) -> list[MaintenanceLogModel]:
        async def work(session: AsyncSession) -> list[MaintenanceLogModel]:
            await _load_vehicle(VehicleRepository(session), vehicle_id)
            return await MaintenanceRepository(session).list_for_vehicle(vehicle_id)

        return await run_in_transaction(self.session_factory, work)

    async def open(
        self,
        vehicle_id: str,
        request: MaintenanceRequest,
        actor_role: UserRole | str,
        now: Optional[datetime] = None,
    ) -> MaintenanceLogModel:
        now = now or utcnow()
        role = UserRole(actor_role)

        async def work(session: AsyncSession) -> MaintenanceLogModel:
            vehicle = await _load_vehicle(
                VehicleRepository(session), vehicle_id, for_update=True
            )
            log = await MaintenanceRepository(session).add(
                MaintenanceLogModel(
                    vehicle_id=vehicle.id,
                    note=request.note,
                    cost=request.cost,
                    opened_at=now,
                    created_by_role=role,
                )
            )
            vehicle.status = VehicleStatus.IN_SHOP
            vehicle.updated_at = now

            await LedgerRepository(session).add_expense(
                type=ExpenseType.MAINTENANCE,
                vehicle_id=vehicle.id,
                maintenance_log_id=log.id,
                amount=request.cost,
                notes=request.note,
                date=now,
            )
            return log

        log = await run_in_transaction(self.session_factory, work)
        logger.info("Maintenance %s opened on vehicle %s", log.id, vehicle_id)
        return log

    async def close(
        self,
        vehicle_id: str,
        log_id: str,
        now: Optional[datetime] = None,
    ) -> MaintenanceLogModel:
        now = now or utcnow()

        async def work(session: AsyncSession) -> MaintenanceLogModel:
            vehicle = await _load_vehicle(
                VehicleRepository(session), vehicle_id, for_update=True
            )
            log = await MaintenanceRepository(session).get_for_vehicle(log_id, vehicle.id)
            if log is None:
                raise NotFoundError(
                    "Maintenance log not found", code="MAINTENANCE_NOT_FOUND"
                )
            if log.closed_at is not None:
                raise ConflictError(
                    "Maintenance already completed", code="MAINTENANCE_ALREADY_CLOSED"
                )

            log.closed_at = now
            await session.flush()

            availability = AvailabilityIndex(session)
            if may_return_to_service(
                vehicle.status,
                has_dispatched_trip=await availability.vehicle_is_busy(vehicle.id),
                has_open_maintenance=await availability.vehicle_has_open_maintenance(
                    vehicle.id
                ),
            ):
                vehicle.status = VehicleStatus.AVAILABLE
                vehicle.updated_at = now
            return log

        log = await run_in_transaction(self.session_factory, work)
        logger.info("Maintenance %s closed on vehicle %s", log.id, vehicle_id)
        return log


async def _load_vehicle(
    vehicles: VehicleRepository, vehicle_id: str, *, for_update: bool = False
) -> VehicleModel:
    vehicle = await vehicles.get_by_id(vehicle_id, for_update=for_update)
    if vehicle is None:
        raise NotFoundError("Vehicle not found", code="VEHICLE_NOT_FOUND")
    return vehicle
