"""
Seed script -- populates the database with demo fleet data.

Run after migrations:
    python seed.py

Creates:
  - 2 vehicles (a van ready for dispatch, a truck in the shop)
  - 2 drivers (one on duty with a multi licence, one off duty)
  - 1 open maintenance log for the truck
  - 1 cargo shipment and 1 draft trip that can be dispatched right away
"""

import asyncio
from datetime import timedelta

from sqlalchemy import text

from fleetflow.domain.enums import (
    DriverStatus,
    ExpenseType,
    LicenseCategory,
    TripEventType,
    TripStatus,
    UserRole,
    VehicleStatus,
    VehicleType,
)
from fleetflow.domain.lifecycle import utcnow
from fleetflow.infrastructure.database import async_session_factory, engine
from fleetflow.infrastructure.models import (
    CargoShipmentModel,
    DriverModel,
    MaintenanceLogModel,
    TripModel,
    VehicleModel,
)
from fleetflow.infrastructure.repositories import LedgerRepository, TripEventRepository


VEHICLES = [
    {
        "id": "veh-001",
        "name": "City Van 1",
        "model": "Transit 350",
        "plate": "FF-1024",
        "vehicle_type": VehicleType.VAN,
        "max_load_kg": 500,
        "odometer_km": 78320,
        "region": "west",
        "status": VehicleStatus.AVAILABLE,
        "acquisition_cost": 45000,
    },
    {
        "id": "veh-002",
        "name": "Linehaul Truck 1",
        "model": "Actros 1845",
        "plate": "FF-1188",
        "vehicle_type": VehicleType.TRUCK,
        "max_load_kg": 3200,
        "odometer_km": 121402,
        "region": "west",
        "status": VehicleStatus.IN_SHOP,
        "acquisition_cost": 92000,
    },
]

DRIVERS = [
    {
        "id": "drv-001",
        "name": "Marcus Hill",
        "license_number": "CA-DL-5521",
        "license_category": LicenseCategory.MULTI,
        "status": DriverStatus.ON_DUTY,
        "safety_score": 88,
        "valid_days": 540,
    },
    {
        "id": "drv-002",
        "name": "Angela Ruiz",
        "license_number": "CA-DL-6710",
        "license_category": LicenseCategory.VAN,
        "status": DriverStatus.OFF_DUTY,
        "safety_score": 93,
        "valid_days": 30,
    },
]


async def seed():
    now = utcnow()
    async with async_session_factory() as session:
        # Check if already seeded
        result = await session.execute(text("SELECT count(*) FROM vehicles"))
        if result.scalar() > 0:
            print("Database already seeded. Skipping.")
            return

        # ── Vehicles ──────────────────────────────────────────────────
        session.add_all(VehicleModel(**v) for v in VEHICLES)
        await session.flush()
        print(f"  Created {len(VEHICLES)} vehicles")

        # ── Drivers ───────────────────────────────────────────────────
        for d in DRIVERS:
            fields = {k: v for k, v in d.items() if k != "valid_days"}
            session.add(
                DriverModel(
                    **fields,
                    license_expires_at=now + timedelta(days=d["valid_days"]),
                )
            )
        await session.flush()
        print(f"  Created {len(DRIVERS)} drivers")

        # ── Maintenance (keeps veh-002 in the shop) ──────────────────
        log = MaintenanceLogModel(
            id="mnt-001",
            vehicle_id="veh-002",
            note="Brake pads and rotor replacement",
            cost=1250.0,
            opened_at=now - timedelta(days=1),
            created_by_role=UserRole.MANAGER,
        )
        session.add(log)
        await session.flush()
        await LedgerRepository(session).add_expense(
            type=ExpenseType.MAINTENANCE,
            vehicle_id="veh-002",
            maintenance_log_id=log.id,
            amount=log.cost,
            notes=log.note,
            date=log.opened_at,
        )
        print("  Created 1 maintenance log")

        # ── Cargo and draft trip ──────────────────────────────────────
        session.add(
            CargoShipmentModel(
                id="cgo-001",
                reference_code="SHP-0001",
                weight_kg=450,
                region="west",
            )
        )
        await session.flush()
        session.add(
            TripModel(
                id="trp-001",
                vehicle_id="veh-001",
                driver_id="drv-001",
                cargo_id="cgo-001",
                cargo_weight_kg=450,
                origin="Los Angeles",
                destination="San Diego",
                scheduled_at=now + timedelta(hours=2),
                status=TripStatus.DRAFT,
                revenue=1800.0,
            )
        )
        await session.flush()
        await TripEventRepository(session).append(
            trip_id="trp-001",
            event_type=TripEventType.CREATED,
            message="Trip created in draft state",
            actor_role=UserRole.DISPATCHER,
            created_at=now,
        )
        print("  Created 1 cargo shipment and 1 draft trip")

        await session.commit()
        print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
