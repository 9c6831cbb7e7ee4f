"""
Domain value objects passed into the lifecycle services.

The HTTP layer validates shape with pydantic; by the time data reaches
the services it is one of these frozen dataclasses, so the core never
depends on the request schema.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .enums import DriverStatus, LicenseCategory, VehicleType


# ── Trips ─────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class TripDraft:
    vehicle_id: str
    driver_id: str
    origin: str
    destination: str
    scheduled_at: datetime
    cargo_weight_kg: int = 0
    cargo_id: Optional[str] = None
    revenue: Optional[float] = None


@dataclass(frozen=True)
class TripCompletion:
    final_odometer_km: int
    fuel_liters: float
    fuel_cost: float
    completed_at: Optional[datetime] = None


@dataclass(frozen=True)
class FuelEntry:
    liters: float
    cost: float
    logged_at: Optional[datetime] = None


# ── Maintenance ───────────────────────────────────────────────────────


@dataclass(frozen=True)
class MaintenanceRequest:
    note: str
    cost: float = 0.0


# ── Fleet registry ────────────────────────────────────────────────────


@dataclass(frozen=True)
class VehicleRegistration:
    plate: str
    name: str = "Fleet Vehicle"
    model: str = "GEN"
    vehicle_type: VehicleType = VehicleType.VAN
    max_load_kg: int = 1000
    odometer_km: int = 0
    region: str = "unspecified"
    acquisition_cost: Optional[float] = None
    id: Optional[str] = None


@dataclass(frozen=True)
class DriverRegistration:
    name: str
    license_number: str
    license_expires_at: datetime
    license_category: LicenseCategory = LicenseCategory.MULTI
    status: DriverStatus = DriverStatus.OFF_DUTY
    safety_score: int = 100
    id: Optional[str] = None


@dataclass(frozen=True)
class DriverPatch:
    status: Optional[DriverStatus] = None
    license_expires_at: Optional[datetime] = None
    license_category: Optional[LicenseCategory] = None
    safety_score: Optional[int] = None


@dataclass(frozen=True)
class CargoRegistration:
    reference_code: str
    weight_kg: int
    region: str
    id: Optional[str] = None
