"""
Cargo endpoints
===============

POST /api/v1/cargo -- register a shipment (starts pending)
"""

from fastapi import APIRouter, Depends, Request

from fleetflow.api.dependencies import get_fleet_registry, require_role
from fleetflow.api.middleware import limiter
from fleetflow.api.schemas import CargoCreateRequest, CargoResponse, ErrorResponse
from fleetflow.config import settings
from fleetflow.domain.entities import CargoRegistration
from fleetflow.domain.enums import UserRole
from fleetflow.services.fleet import FleetRegistry

router = APIRouter(prefix="/cargo", tags=["cargo"])


@router.post(
    "",
    status_code=201,
    response_model=CargoResponse,
    summary="Register a cargo shipment",
    responses={409: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
async def create_cargo(
    request: Request,
    body: CargoCreateRequest,
    role: UserRole = Depends(require_role(UserRole.MANAGER, UserRole.DISPATCHER)),
    fleet: FleetRegistry = Depends(get_fleet_registry),
):
    return await fleet.register_cargo(CargoRegistration(**body.model_dump()))
