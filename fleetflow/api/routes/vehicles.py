"""
Vehicle endpoints
=================

GET   /api/v1/vehicles                                   -- list vehicles
GET   /api/v1/vehicles/in-shop                           -- vehicles under maintenance
POST  /api/v1/vehicles                                   -- register a vehicle
PATCH /api/v1/vehicles/{vehicle_id}/status               -- administrative override
GET   /api/v1/vehicles/{vehicle_id}/maintenance          -- maintenance history
POST  /api/v1/vehicles/{vehicle_id}/maintenance          -- open a maintenance log
PATCH /api/v1/vehicles/{vehicle_id}/maintenance/{log_id}/complete -- close it
"""

from fastapi import APIRouter, Depends, Request

from fleetflow.api.dependencies import (
    ANY_ROLE,
    get_fleet_registry,
    get_maintenance_lifecycle,
    require_role,
)
from fleetflow.api.middleware import limiter
from fleetflow.api.schemas import (
    ErrorResponse,
    MaintenanceCreateRequest,
    MaintenanceLogResponse,
    VehicleCreateRequest,
    VehicleResponse,
    VehicleStatusRequest,
)
from fleetflow.config import settings
from fleetflow.domain.entities import MaintenanceRequest, VehicleRegistration
from fleetflow.domain.enums import UserRole
from fleetflow.services.fleet import FleetRegistry
from fleetflow.services.maintenance import MaintenanceLifecycle

router = APIRouter(prefix="/vehicles", tags=["vehicles"])


@router.get("", response_model=list[VehicleResponse], summary="List vehicles")
@limiter.limit(settings.rate_limit)
async def list_vehicles(
    request: Request,
    role: UserRole = Depends(require_role(*ANY_ROLE)),
    fleet: FleetRegistry = Depends(get_fleet_registry),
):
    return await fleet.list_vehicles()


@router.get(
    "/in-shop",
    response_model=list[VehicleResponse],
    summary="Vehicles currently in the shop",
)
@limiter.limit(settings.rate_limit)
async def list_in_shop_vehicles(
    request: Request,
    role: UserRole = Depends(require_role(UserRole.MANAGER, UserRole.DISPATCHER)),
    fleet: FleetRegistry = Depends(get_fleet_registry),
):
    return await fleet.in_shop_vehicles()


@router.post(
    "",
    status_code=201,
    response_model=VehicleResponse,
    summary="Register a vehicle",
    responses={409: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
async def create_vehicle(
    request: Request,
    body: VehicleCreateRequest,
    role: UserRole = Depends(require_role(UserRole.MANAGER)),
    fleet: FleetRegistry = Depends(get_fleet_registry),
):
    return await fleet.register_vehicle(VehicleRegistration(**body.model_dump()))


@router.patch(
    "/{vehicle_id}/status",
    response_model=VehicleResponse,
    summary="Override vehicle status",
    description="Administrative override; bypasses trip and maintenance rules.",
    responses={404: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
async def override_vehicle_status(
    request: Request,
    vehicle_id: str,
    body: VehicleStatusRequest,
    role: UserRole = Depends(require_role(UserRole.MANAGER)),
    fleet: FleetRegistry = Depends(get_fleet_registry),
):
    return await fleet.override_vehicle_status(vehicle_id, body.status)


@router.get(
    "/{vehicle_id}/maintenance",
    response_model=list[MaintenanceLogResponse],
    summary="Maintenance history of a vehicle",
    responses={404: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
async def list_maintenance(
    request: Request,
    vehicle_id: str,
    role: UserRole = Depends(
        require_role(UserRole.MANAGER, UserRole.DISPATCHER, UserRole.SAFETY)
    ),
    maintenance: MaintenanceLifecycle = Depends(get_maintenance_lifecycle),
):
    return await maintenance.list_for_vehicle(vehicle_id)


@router.post(
    "/{vehicle_id}/maintenance",
    status_code=201,
    response_model=MaintenanceLogResponse,
    summary="Open a maintenance log",
    description="Forces the vehicle into in_shop and books the cost as an expense.",
    responses={404: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
async def open_maintenance(
    request: Request,
    vehicle_id: str,
    body: MaintenanceCreateRequest,
    role: UserRole = Depends(require_role(UserRole.MANAGER)),
    maintenance: MaintenanceLifecycle = Depends(get_maintenance_lifecycle),
):
    return await maintenance.open(
        vehicle_id, MaintenanceRequest(**body.model_dump()), actor_role=role
    )


@router.patch(
    "/{vehicle_id}/maintenance/{log_id}/complete",
    response_model=MaintenanceLogResponse,
    summary="Close a maintenance log",
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
async def close_maintenance(
    request: Request,
    vehicle_id: str,
    log_id: str,
    role: UserRole = Depends(require_role(UserRole.MANAGER)),
    maintenance: MaintenanceLifecycle = Depends(get_maintenance_lifecycle),
):
    return await maintenance.close(vehicle_id, log_id)
