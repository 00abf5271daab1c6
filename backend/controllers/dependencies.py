"""Shared FastAPI dependency providers for controller layer."""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from backend.repository.data_repository import ReservationRepository
from backend.services.availability_service import AvailabilityService
from backend.services.reservation_service import ReservationService
from backend.utils.config import get_settings


def _get_repository(request: Request) -> ReservationRepository | None:
    return getattr(request.app.state, "repository", None)


def get_reservation_service(request: Request) -> ReservationService:
    service = getattr(request.app.state, "reservation_service", None)
    if service is None:
        repository = _get_repository(request)
        if repository is not None:
            service = ReservationService(repository=repository, settings=get_settings())
            request.app.state.reservation_service = service
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Reservation service is not initialized",
        )
    return service


def get_availability_service(request: Request) -> AvailabilityService:
    service = getattr(request.app.state, "availability_service", None)
    if service is None:
        repository = _get_repository(request)
        if repository is not None:
            service = AvailabilityService(repository=repository, settings=get_settings())
            request.app.state.availability_service = service
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Availability service is not initialized",
        )
    return service
