"""
Driver endpoints
================

GET   /api/v1/drivers                     -- list drivers
GET   /api/v1/drivers/assignable          -- on duty with a valid licence
GET   /api/v1/drivers/expiring-licences   -- licences lapsing within ?days
GET   /api/v1/drivers/{driver_id}         -- fetch one driver
POST  /api/v1/drivers                     -- register a driver
PATCH /api/v1/drivers/{driver_id}         -- duty status, licence, score
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from fleetflow.api.dependencies import ANY_ROLE, get_fleet_registry, require_role
from fleetflow.api.middleware import limiter
from fleetflow.api.schemas import (
    DriverCreateRequest,
    DriverResponse,
    DriverUpdateRequest,
    ErrorResponse,
)
from fleetflow.config import settings
from fleetflow.domain.entities import DriverPatch, DriverRegistration
from fleetflow.domain.enums import UserRole
from fleetflow.services.fleet import FleetRegistry

router = APIRouter(prefix="/drivers", tags=["drivers"])

_ROSTER_ROLES = (UserRole.MANAGER, UserRole.SAFETY)


@router.get("", response_model=list[DriverResponse], summary="List drivers")
@limiter.limit(settings.rate_limit)
async def list_drivers(
    request: Request,
    role: UserRole = Depends(require_role(*ANY_ROLE)),
    fleet: FleetRegistry = Depends(get_fleet_registry),
):
    return await fleet.list_drivers()


@router.get(
    "/assignable",
    response_model=list[DriverResponse],
    summary="On-duty drivers with a valid licence",
)
@limiter.limit(settings.rate_limit)
async def list_assignable_drivers(
    request: Request,
    role: UserRole = Depends(require_role(UserRole.MANAGER, UserRole.DISPATCHER)),
    fleet: FleetRegistry = Depends(get_fleet_registry),
):
    return await fleet.assignable_drivers()


@router.get(
    "/expiring-licences",
    response_model=list[DriverResponse],
    summary="Drivers whose licence lapses soon",
)
@limiter.limit(settings.rate_limit)
async def list_expiring_licences(
    request: Request,
    days: Optional[int] = Query(None, ge=0, le=3650),
    role: UserRole = Depends(require_role(*_ROSTER_ROLES)),
    fleet: FleetRegistry = Depends(get_fleet_registry),
):
    return await fleet.expiring_drivers(days=days)


@router.get(
    "/{driver_id}",
    response_model=DriverResponse,
    summary="Get a driver",
    responses={404: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
async def get_driver(
    request: Request,
    driver_id: str,
    role: UserRole = Depends(require_role(*ANY_ROLE)),
    fleet: FleetRegistry = Depends(get_fleet_registry),
):
    return await fleet.get_driver(driver_id)


@router.post(
    "",
    status_code=201,
    response_model=DriverResponse,
    summary="Register a driver",
    responses={409: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
async def create_driver(
    request: Request,
    body: DriverCreateRequest,
    role: UserRole = Depends(require_role(*_ROSTER_ROLES)),
    fleet: FleetRegistry = Depends(get_fleet_registry),
):
    return await fleet.register_driver(DriverRegistration(**body.model_dump()))


@router.patch(
    "/{driver_id}",
    response_model=DriverResponse,
    summary="Update a driver",
    responses={404: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
async def update_driver(
    request: Request,
    driver_id: str,
    body: DriverUpdateRequest,
    role: UserRole = Depends(require_role(*_ROSTER_ROLES)),
    fleet: FleetRegistry = Depends(get_fleet_registry),
):
    return await fleet.update_driver(driver_id, DriverPatch(**body.model_dump()))
