"""
Async SQLAlchemy engine, session factory and unit-of-work helper.

Uses ``asyncpg`` as the PostgreSQL driver for non-blocking I/O.  Every
lifecycle transition runs through :func:`run_in_transaction`, which opens
one session, wraps the work in a single transaction and optionally
retries the whole unit when the store reports a serialization conflict.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from sqlalchemy import MetaData, event
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from fleetflow.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


def build_engine(url: str) -> AsyncEngine:
    """Create an async engine for *url*.

    PostgreSQL gets a sized pool and the configured isolation level.
    SQLite has no ``SELECT ... FOR UPDATE``, so every transaction is opened
    with ``BEGIN IMMEDIATE`` instead; writers then serialize on the
    database lock and foreign keys are switched on per connection.
    """
    if not url.startswith("sqlite"):
        return create_async_engine(
            url,
            echo=False,
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
            isolation_level=settings.isolation_level,
        )

    sqlite_engine = create_async_engine(url, echo=False, connect_args={"timeout": 15})

    @event.listens_for(sqlite_engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # let SQLAlchemy emit BEGIN itself
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(sqlite_engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return sqlite_engine


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


engine = build_engine(settings.database_url)

async_session_factory = build_session_factory(engine)

NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    """Shared declarative base for all ORM models."""

    metadata = MetaData(naming_convention=NAMING_CONVENTION)


# Markers identifying the "one dispatched trip per vehicle / driver"
# backstop in PostgreSQL and SQLite error messages.
DISPATCH_CONSTRAINT_MARKERS = (
    "uq_trips_dispatched_vehicle",
    "uq_trips_dispatched_driver",
    "trips.vehicle_id",
    "trips.driver_id",
)

_RETRYABLE_SQLSTATES = {"40001", "40P01"}  # serialization_failure, deadlock


def is_retryable_conflict(exc: DBAPIError) -> bool:
    """True when *exc* is a store-level race the dispatch engine may retry."""
    sqlstate = getattr(exc.orig, "sqlstate", None) or getattr(exc.orig, "pgcode", None)
    if sqlstate in _RETRYABLE_SQLSTATES:
        return True
    message = str(exc.orig)
    if isinstance(exc, IntegrityError):
        return any(marker in message for marker in DISPATCH_CONSTRAINT_MARKERS)
    if isinstance(exc, OperationalError):
        return "database is locked" in message
    return False


async def run_in_transaction(
    session_factory: async_sessionmaker[AsyncSession],
    work: Callable[[AsyncSession], Awaitable[T]],
    *,
    attempts: int = 1,
    backoff_seconds: float = 0.0,
) -> T:
    """Run *work* inside one transaction; commit on success, roll back on error.

    Retryable store conflicts re-run the whole unit up to *attempts* times
    with linear backoff.  The last conflict is re-raised unchanged.
    """
    attempt = 1
    while True:
        try:
            async with session_factory() as session:
                async with session.begin():
                    return await work(session)
        except DBAPIError as exc:
            if attempt >= attempts or not is_retryable_conflict(exc):
                raise
            logger.warning(
                "Store conflict on attempt %d/%d, retrying: %s",
                attempt,
                attempts,
                exc.orig,
            )
            await asyncio.sleep(backoff_seconds * attempt)
            attempt += 1
