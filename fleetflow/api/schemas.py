"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from fleetflow.domain.enums import (
    CargoStatus,
    DriverStatus,
    LicenseCategory,
    TripStatus,
    UserRole,
    VehicleStatus,
    VehicleType,
)


# ── Requests ──────────────────────────────────────────────────────────


class TripCreateRequest(BaseModel):
    vehicle_id: str = Field(..., min_length=1)
    driver_id: str = Field(..., min_length=1)
    cargo_weight_kg: int = Field(0, ge=0)
    cargo_id: Optional[str] = None
    origin: str = Field(..., min_length=2)
    destination: str = Field(..., min_length=2)
    scheduled_at: datetime
    revenue: Optional[float] = Field(None, ge=0)


class TripCompleteRequest(BaseModel):
    final_odometer_km: int = Field(..., ge=0)
    fuel_liters: float = Field(..., gt=0)
    fuel_cost: float = Field(..., ge=0)
    completed_at: Optional[datetime] = None


class FuelLogRequest(BaseModel):
    liters: float = Field(..., gt=0)
    cost: float = Field(..., ge=0)
    logged_at: Optional[datetime] = None


class VehicleCreateRequest(BaseModel):
    plate: str = Field(..., min_length=3)
    name: str = Field("Fleet Vehicle", min_length=2)
    model: str = Field("GEN", min_length=1)
    vehicle_type: VehicleType = VehicleType.VAN
    max_load_kg: int = Field(1000, gt=0)
    odometer_km: int = Field(0, ge=0)
    region: str = Field("unspecified", min_length=2)
    acquisition_cost: Optional[float] = Field(None, ge=0)


class VehicleStatusRequest(BaseModel):
    status: VehicleStatus


class MaintenanceCreateRequest(BaseModel):
    note: str = Field(..., min_length=3)
    cost: float = Field(0.0, ge=0)


class DriverCreateRequest(BaseModel):
    name: str = Field(..., min_length=2)
    license_number: str = Field(..., min_length=3)
    license_expires_at: datetime
    license_category: LicenseCategory = LicenseCategory.MULTI
    status: DriverStatus = DriverStatus.OFF_DUTY
    safety_score: int = Field(100, ge=0, le=100)


class DriverUpdateRequest(BaseModel):
    status: Optional[DriverStatus] = None
    license_expires_at: Optional[datetime] = None
    license_category: Optional[LicenseCategory] = None
    safety_score: Optional[int] = Field(None, ge=0, le=100)


class CargoCreateRequest(BaseModel):
    reference_code: str = Field(..., min_length=2)
    weight_kg: int = Field(..., ge=0)
    region: str = Field(..., min_length=2)


# ── Responses ─────────────────────────────────────────────────────────


class VehicleResponse(BaseModel):
    id: str
    name: str
    model: str
    plate: str
    vehicle_type: VehicleType
    max_load_kg: int
    odometer_km: int
    region: str
    status: VehicleStatus
    acquisition_cost: Optional[float] = None

    model_config = {"from_attributes": True}


class DriverResponse(BaseModel):
    id: str
    name: str
    license_number: str
    license_category: LicenseCategory
    license_expires_at: datetime
    safety_score: int
    status: DriverStatus

    model_config = {"from_attributes": True}


class CargoResponse(BaseModel):
    id: str
    reference_code: str
    weight_kg: int
    region: str
    status: CargoStatus

    model_config = {"from_attributes": True}


class TripResponse(BaseModel):
    id: str
    vehicle_id: str
    driver_id: str
    cargo_id: Optional[str] = None
    cargo_weight_kg: int
    origin: str
    destination: str
    scheduled_at: datetime
    status: TripStatus
    dispatched_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    start_odometer_km: Optional[int] = None
    end_odometer_km: Optional[int] = None
    distance_km: Optional[int] = None
    revenue: Optional[float] = None

    model_config = {"from_attributes": True}


class TripEventResponse(BaseModel):
    id: str
    trip_id: str
    event_type: str
    message: str
    actor_role: Optional[UserRole] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class FuelLogResponse(BaseModel):
    id: str
    trip_id: str
    vehicle_id: str
    liters: float
    cost: float
    logged_at: datetime

    model_config = {"from_attributes": True}


class TripCompletionResponse(BaseModel):
    trip: TripResponse
    fuel: FuelLogResponse


class MaintenanceLogResponse(BaseModel):
    id: str
    vehicle_id: str
    note: str
    cost: float
    opened_at: datetime
    closed_at: Optional[datetime] = None
    created_by_role: UserRole

    model_config = {"from_attributes": True}


class DispatchAvailabilityResponse(BaseModel):
    vehicles: list[VehicleResponse] = []
    drivers: list[DriverResponse] = []

    model_config = {"from_attributes": True}


class HealthResponse(BaseModel):
    status: str = "ok"


class ErrorResponse(BaseModel):
    detail: str
    code: str
