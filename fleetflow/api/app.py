"""
FastAPI application factory.

* Registers routes for trips, vehicles, drivers, cargo, dispatch and admin.
* Maps ``FleetError`` to ``{"detail": ..., "code": ...}`` JSON responses.
* Applies rate-limiting middleware.
* Swagger / OpenAPI UI available at ``/docs``.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from fleetflow.api.middleware import limiter
from fleetflow.api.routes import admin, cargo, dispatch, drivers, trips, vehicles
from fleetflow.config import settings
from fleetflow.domain.errors import FleetError

logging.basicConfig(level=settings.log_level)

logger = logging.getLogger(__name__)


async def fleet_error_handler(request: Request, exc: FleetError) -> JSONResponse:
    logger.warning(
        "%s %s rejected: %s (%s)", request.method, request.url.path, exc.code, exc.message
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code},
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "code": "INTERNAL_ERROR"},
    )


def create_app() -> FastAPI:
    app = FastAPI(
        title="FleetFlow Dispatch API",
        description=(
            "Trip dispatch lifecycle for a delivery fleet: drafts, dispatch "
            "with vehicle / driver eligibility checks, completion with "
            "odometer and fuel bookkeeping, cancellations and maintenance."
        ),
        version="1.0.0",
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Domain errors
    app.add_exception_handler(FleetError, fleet_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    # Routers
    for module in (trips, vehicles, drivers, cargo, dispatch, admin):
        app.include_router(module.router, prefix="/api/v1")

    return app
