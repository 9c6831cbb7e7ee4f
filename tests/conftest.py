"""
Shared test fixtures.

Every test gets its own file-backed SQLite database (via aiosqlite) so
tests run without Docker / PostgreSQL / Redis.  A file rather than
``:memory:`` lets concurrent sessions share one store, which the dispatch
race tests rely on.
"""

import os

# must be set before fleetflow.config is imported
os.environ.setdefault("FLEETFLOW_DATABASE_URL", "sqlite+aiosqlite:///./fleetflow-test.db")

from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from fleetflow.domain.enums import (
    DriverStatus,
    LicenseCategory,
    TripStatus,
    VehicleStatus,
    VehicleType,
)
from fleetflow.infrastructure.database import Base, build_engine, build_session_factory
from fleetflow.infrastructure.models import (
    CargoShipmentModel,
    DriverModel,
    TripModel,
    VehicleModel,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class FleetBuilder:
    """Inserts fleet rows directly, bypassing the lifecycle services."""

    def __init__(self, factory: async_sessionmaker[AsyncSession]):
        self.factory = factory
        self._seq = 0

    def _next(self) -> int:
        self._seq += 1
        return self._seq

    async def _save(self, row):
        async with self.factory() as session:
            async with session.begin():
                session.add(row)
        return row

    async def vehicle(self, **overrides) -> VehicleModel:
        n = self._next()
        fields = dict(
            id=f"veh-t{n}",
            name=f"Test Van {n}",
            model="Transit",
            plate=f"TST-{n:04d}",
            vehicle_type=VehicleType.VAN,
            max_load_kg=500,
            odometer_km=1000,
            region="west",
            status=VehicleStatus.AVAILABLE,
        )
        fields.update(overrides)
        return await self._save(VehicleModel(**fields))

    async def driver(self, **overrides) -> DriverModel:
        n = self._next()
        fields = dict(
            id=f"drv-t{n}",
            name=f"Driver {n}",
            license_number=f"LIC-{n:05d}",
            license_category=LicenseCategory.MULTI,
            license_expires_at=NOW + timedelta(days=365),
            status=DriverStatus.ON_DUTY,
            safety_score=90,
        )
        fields.update(overrides)
        return await self._save(DriverModel(**fields))

    async def cargo(self, **overrides) -> CargoShipmentModel:
        n = self._next()
        fields = dict(
            id=f"cgo-t{n}", reference_code=f"SHP-{n:04d}", weight_kg=200, region="west"
        )
        fields.update(overrides)
        return await self._save(CargoShipmentModel(**fields))

    async def trip(self, vehicle_id: str, driver_id: str, **overrides) -> TripModel:
        n = self._next()
        fields = dict(
            id=f"trp-t{n}",
            vehicle_id=vehicle_id,
            driver_id=driver_id,
            cargo_weight_kg=100,
            origin="Los Angeles",
            destination="San Diego",
            scheduled_at=NOW + timedelta(hours=2),
            status=TripStatus.DRAFT,
        )
        fields.update(overrides)
        return await self._save(TripModel(**fields))

    async def get(self, model, row_id: str):
        async with self.factory() as session:
            return await session.get(model, row_id)


# ── Fixtures ──────────────────────────────────────────────────────────


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Create tables in a fresh SQLite file, yield the engine, then dispose."""
    test_engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'fleetflow.db'}")
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return build_session_factory(engine)


@pytest.fixture
def fleet(session_factory) -> FleetBuilder:
    return FleetBuilder(session_factory)


@pytest_asyncio.fixture
async def scenario(fleet: FleetBuilder) -> dict:
    """veh-001 van at 78320 km, drv-001 on duty, draft trp-001 with 450 kg."""
    vehicle = await fleet.vehicle(
        id="veh-001",
        name="City Van 1",
        plate="FF-1024",
        max_load_kg=500,
        odometer_km=78320,
        acquisition_cost=45000,
    )
    driver = await fleet.driver(
        id="drv-001",
        name="Marcus Hill",
        license_number="CA-DL-5521",
        safety_score=88,
    )
    trip = await fleet.trip(vehicle.id, driver.id, id="trp-001", cargo_weight_kg=450)
    return {"vehicle": vehicle, "driver": driver, "trip": trip}
