"""
Trip endpoints
==============

GET   /api/v1/trips                      -- list trips, newest first
POST  /api/v1/trips                      -- create a draft trip
GET   /api/v1/trips/{trip_id}            -- fetch one trip
GET   /api/v1/trips/{trip_id}/events     -- audit trail of the trip
PATCH /api/v1/trips/{trip_id}/dispatch   -- draft -> dispatched
PATCH /api/v1/trips/{trip_id}/complete   -- dispatched -> completed
PATCH /api/v1/trips/{trip_id}/cancel     -- draft | dispatched -> cancelled
POST  /api/v1/trips/{trip_id}/fuel-logs  -- ad-hoc fuel entry
"""

from fastapi import APIRouter, Depends, Request

from fleetflow.api.dependencies import ANY_ROLE, get_trip_lifecycle, require_role
from fleetflow.api.middleware import limiter
from fleetflow.api.schemas import (
    ErrorResponse,
    FuelLogRequest,
    FuelLogResponse,
    TripCompleteRequest,
    TripCompletionResponse,
    TripCreateRequest,
    TripEventResponse,
    TripResponse,
)
from fleetflow.config import settings
from fleetflow.domain.entities import FuelEntry, TripCompletion, TripDraft
from fleetflow.domain.enums import UserRole
from fleetflow.services.trips import TripLifecycle

router = APIRouter(prefix="/trips", tags=["trips"])

_OPERATORS = (UserRole.MANAGER, UserRole.DISPATCHER)


@router.get("", response_model=list[TripResponse], summary="List trips")
@limiter.limit(settings.rate_limit)
async def list_trips(
    request: Request,
    role: UserRole = Depends(require_role(*ANY_ROLE)),
    trips: TripLifecycle = Depends(get_trip_lifecycle),
):
    return await trips.list_all()


@router.post(
    "",
    status_code=201,
    response_model=TripResponse,
    summary="Create a draft trip",
    description="Drafts are plans: vehicle and driver are checked only at dispatch.",
)
@limiter.limit(settings.rate_limit)
async def create_trip(
    request: Request,
    body: TripCreateRequest,
    role: UserRole = Depends(require_role(*_OPERATORS)),
    trips: TripLifecycle = Depends(get_trip_lifecycle),
):
    draft = TripDraft(**body.model_dump())
    return await trips.create(draft, actor_role=role)


@router.get(
    "/{trip_id}",
    response_model=TripResponse,
    summary="Get a trip",
    responses={404: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
async def get_trip(
    request: Request,
    trip_id: str,
    role: UserRole = Depends(require_role(*ANY_ROLE)),
    trips: TripLifecycle = Depends(get_trip_lifecycle),
):
    return await trips.get(trip_id)


@router.get(
    "/{trip_id}/events",
    response_model=list[TripEventResponse],
    summary="Trip audit trail",
    responses={404: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
async def list_trip_events(
    request: Request,
    trip_id: str,
    role: UserRole = Depends(require_role(*ANY_ROLE)),
    trips: TripLifecycle = Depends(get_trip_lifecycle),
):
    return await trips.events(trip_id)


@router.patch(
    "/{trip_id}/dispatch",
    response_model=TripResponse,
    summary="Dispatch a draft trip",
    description=(
        "Locks the trip's vehicle and driver, verifies availability, licence, "
        "category and capacity, then marks the vehicle on_trip."
    ),
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
)
@limiter.limit(settings.rate_limit)
async def dispatch_trip(
    request: Request,
    trip_id: str,
    role: UserRole = Depends(require_role(*_OPERATORS)),
    trips: TripLifecycle = Depends(get_trip_lifecycle),
):
    return await trips.dispatch(trip_id, actor_role=role)


@router.patch(
    "/{trip_id}/complete",
    response_model=TripCompletionResponse,
    summary="Complete a dispatched trip",
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
)
@limiter.limit(settings.rate_limit)
async def complete_trip(
    request: Request,
    trip_id: str,
    body: TripCompleteRequest,
    role: UserRole = Depends(require_role(*_OPERATORS)),
    trips: TripLifecycle = Depends(get_trip_lifecycle),
):
    trip, fuel = await trips.complete(
        trip_id, TripCompletion(**body.model_dump()), actor_role=role
    )
    return TripCompletionResponse(
        trip=TripResponse.model_validate(trip),
        fuel=FuelLogResponse.model_validate(fuel),
    )


@router.patch(
    "/{trip_id}/cancel",
    response_model=TripResponse,
    summary="Cancel a trip",
    description="A dispatched trip hands its vehicle back; the driver is left as is.",
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
async def cancel_trip(
    request: Request,
    trip_id: str,
    role: UserRole = Depends(require_role(*_OPERATORS)),
    trips: TripLifecycle = Depends(get_trip_lifecycle),
):
    return await trips.cancel(trip_id, actor_role=role)


@router.post(
    "/{trip_id}/fuel-logs",
    status_code=201,
    response_model=FuelLogResponse,
    summary="Log fuel against a trip",
    responses={404: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit)
async def add_fuel_log(
    request: Request,
    trip_id: str,
    body: FuelLogRequest,
    role: UserRole = Depends(require_role(*_OPERATORS)),
    trips: TripLifecycle = Depends(get_trip_lifecycle),
):
    return await trips.add_fuel_log(trip_id, FuelEntry(**body.model_dump()))
