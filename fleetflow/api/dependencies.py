"""FastAPI dependency injection helpers."""

from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from fleetflow.domain.enums import UserRole
from fleetflow.infrastructure.database import async_session_factory
from fleetflow.services.fleet import FleetRegistry
from fleetflow.services.maintenance import MaintenanceLifecycle
from fleetflow.services.trips import TripLifecycle

ANY_ROLE = tuple(UserRole)


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    return async_session_factory


async def get_db(
    factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> AsyncSession:  # type: ignore[misc]
    """Yield an async DB session; commit on success, rollback on error."""
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_trip_lifecycle(
    factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> TripLifecycle:
    return TripLifecycle(factory)


def get_maintenance_lifecycle(
    factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> MaintenanceLifecycle:
    return MaintenanceLifecycle(factory)


def get_fleet_registry(
    factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> FleetRegistry:
    return FleetRegistry(factory)


def require_role(*allowed_roles: UserRole):
    """
    Dependency factory for role-based access control.

    Authentication happens upstream; the gateway forwards the caller's
    role in ``X-Actor-Role``.  The resolved ``UserRole`` is returned so
    handlers can pass it on as the acting role.
    """

    async def role_checker(
        x_actor_role: Optional[str] = Header(None, alias="X-Actor-Role"),
    ) -> UserRole:
        if not x_actor_role:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Actor role missing",
            )
        try:
            role = UserRole(x_actor_role)
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Invalid actor role",
            )
        if role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required role: {', '.join(r.value for r in allowed_roles)}",
            )
        return role

    return role_checker
