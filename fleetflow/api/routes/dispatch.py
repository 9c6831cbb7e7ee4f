"""
Dispatch board
==============

GET /api/v1/dispatch/available -- vehicles and drivers a new trip may use
"""

from fastapi import APIRouter, Depends, Request

from fleetflow.api.dependencies import get_fleet_registry, require_role
from fleetflow.api.middleware import limiter
from fleetflow.api.schemas import DispatchAvailabilityResponse
from fleetflow.config import settings
from fleetflow.domain.enums import UserRole
from fleetflow.services.fleet import FleetRegistry

router = APIRouter(prefix="/dispatch", tags=["dispatch"])


@router.get(
    "/available",
    response_model=DispatchAvailabilityResponse,
    summary="Dispatchable vehicles and drivers",
    description=(
        "Available vehicles, plus on-duty drivers with a valid licence who "
        "are not already on a dispatched trip."
    ),
)
@limiter.limit(settings.rate_limit)
async def available_for_dispatch(
    request: Request,
    role: UserRole = Depends(require_role(UserRole.MANAGER, UserRole.DISPATCHER)),
    fleet: FleetRegistry = Depends(get_fleet_registry),
):
    snapshot = await fleet.dispatch_snapshot()
    return DispatchAvailabilityResponse.model_validate(snapshot)
