"""
app.py — FastAPI application factory and startup lifecycle.

This is the ASGI application object imported by uvicorn.
It wires all services, registers routers, and runs startup initialization.

Usage (via launcher):
    python main.py

Usage (direct uvicorn):
    uvicorn app:app --reload
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from backend.controllers.reservation_controller import router as reservation_router
from backend.repository.data_repository import ReservationRepository
from backend.services.availability_service import AvailabilityService
from backend.services.reservation_service import ReservationService
from backend.utils.clock import Clock, SystemClock
from backend.utils.config import Settings, get_settings
from backend.utils.logger import configure_logging, get_logger


logger = get_logger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    clock: Optional[Clock] = None,
) -> FastAPI:
    """
    Build and wire the FastAPI application.

    Instantiates all services with explicit dependency injection via app.state.
    The repository is the only shared state; services hold no per-request data.
    """
    settings = settings or get_settings()
    clock = clock or SystemClock()
    configure_logging(settings)

    # --- Repository (one short-lived SQLite connection per call) ---
    repository = ReservationRepository(settings)

    # --- Services (business logic, no direct DB access) ---
    reservation_service = ReservationService(
        repository=repository,
        settings=settings,
        clock=clock,
    )
    availability_service = AvailabilityService(
        repository=repository,
        settings=settings,
        clock=clock,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Run startup initialization before accepting requests."""
        _startup(app, settings)
        yield

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )

    # --- Routers ---
    app.include_router(reservation_router)

    # --- Inject services into app.state for dependency resolution ---
    app.state.repository = repository
    app.state.reservation_service = reservation_service
    app.state.availability_service = availability_service

    return app


def _startup(app: FastAPI, settings: Settings) -> None:
    """
    Idempotent startup sequence. Safe to re-run on server restarts.

    The schema must exist before the optional demo floor is seeded.
    """
    repository: ReservationRepository = app.state.repository

    logger.info("Startup: initializing database schema")
    repository.initialize_database()

    if settings.seed_demo_data:
        logger.info("Startup: seeding demo tables and customers (skipped if present)")
        repository.seed_demo_data()

    logger.info("Startup complete — system ready")


# Module-level app object for uvicorn
app = create_app()
