"""HTTP controller layer for reservations and table availability."""

from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import BaseModel, Field

from backend.controllers.dependencies import get_availability_service, get_reservation_service
from backend.domain.errors import (
    BusinessRuleError,
    NotFoundError,
    ReservationConflictError,
    ReservationError,
    ReservationValidationError,
)
from backend.domain.models import AvailableTable, ReservationView
from backend.services.availability_service import AvailabilityService
from backend.services.reservation_service import ReservationService
from backend.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(prefix="/api/v1/reservations", tags=["reservations"])


class CreateReservationRequest(BaseModel):
    """Input DTO; booking rules are enforced by the service layer."""

    customer_id: int
    table_id: int
    reservation_date: date
    start_time: time
    end_time: time
    party_size: int
    special_requests: Optional[str] = Field(default=None, max_length=500)


class UpdateReservationRequest(BaseModel):
    table_id: Optional[int] = None
    reservation_date: Optional[date] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    party_size: Optional[int] = None
    special_requests: Optional[str] = Field(default=None, max_length=500)


class ReservationResponse(BaseModel):
    id: str
    customer_id: int
    table_id: int
    reservation_date: date
    start_time: time
    end_time: time
    party_size: int = Field(ge=1)
    status: str
    created_at: datetime
    special_requests: Optional[str] = None
    table_number: str
    customer_name: str


class AvailableTableResponse(BaseModel):
    id: int
    table_number: str
    seating_capacity: int = Field(ge=1)
    is_window_seat: bool
    is_accessible: bool
    hourly_rate: Decimal
    total_price: Decimal


def _to_response(view: ReservationView) -> ReservationResponse:
    reservation = view.reservation
    return ReservationResponse(
        id=reservation.reservation_id,
        customer_id=reservation.customer_id,
        table_id=reservation.table_id,
        reservation_date=reservation.reservation_date,
        start_time=reservation.start_time,
        end_time=reservation.end_time,
        party_size=reservation.party_size,
        status=reservation.status.value,
        created_at=reservation.created_at,
        special_requests=reservation.special_requests,
        table_number=view.table_number,
        customer_name=view.customer_name,
    )


def _to_available_response(item: AvailableTable) -> AvailableTableResponse:
    return AvailableTableResponse(
        id=item.table.table_id,
        table_number=item.table.table_number,
        seating_capacity=item.table.seating_capacity,
        is_window_seat=item.table.is_window_seat,
        is_accessible=item.table.is_accessible,
        hourly_rate=item.table.hourly_rate,
        total_price=item.total_price,
    )


def _http_error(exc: ReservationError) -> HTTPException:
    if isinstance(exc, NotFoundError):
        status_code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, ReservationConflictError):
        status_code = status.HTTP_409_CONFLICT
    elif isinstance(exc, (ReservationValidationError, BusinessRuleError)):
        status_code = status.HTTP_400_BAD_REQUEST
    else:  # pragma: no cover - every engine error kind is mapped above
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    return HTTPException(status_code=status_code, detail=str(exc))


@router.get(
    "/availability",
    response_model=list[AvailableTableResponse],
    status_code=status.HTTP_200_OK,
)
async def get_availability(
    query_date: date = Query(alias="date"),
    start_time: time = Query(),
    end_time: time = Query(),
    party_size: int = Query(),
    service: AvailabilityService = Depends(get_availability_service),
) -> list[AvailableTableResponse]:
    """List free tables for the window, cheapest first."""
    try:
        results = service.find_available(
            query_date=query_date,
            start_time=start_time,
            end_time=end_time,
            party_size=party_size,
        )
        return [_to_available_response(item) for item in results]
    except ReservationError as exc:
        raise _http_error(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected availability failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to query availability",
        ) from exc


@router.get(
    "/",
    response_model=list[ReservationResponse],
    status_code=status.HTTP_200_OK,
)
async def list_reservations(
    customer_id: int = Query(),
    service: ReservationService = Depends(get_reservation_service),
) -> list[ReservationResponse]:
    return [_to_response(view) for view in service.list_for_customer(customer_id)]


@router.get(
    "/{reservation_id}",
    response_model=ReservationResponse,
    status_code=status.HTTP_200_OK,
)
async def get_reservation(
    reservation_id: str,
    service: ReservationService = Depends(get_reservation_service),
) -> ReservationResponse:
    try:
        return _to_response(service.get(reservation_id))
    except ReservationError as exc:
        raise _http_error(exc) from exc


@router.post(
    "/",
    response_model=ReservationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_reservation(
    payload: CreateReservationRequest,
    service: ReservationService = Depends(get_reservation_service),
) -> ReservationResponse:
    try:
        created = service.create(
            customer_id=payload.customer_id,
            table_id=payload.table_id,
            reservation_date=payload.reservation_date,
            start_time=payload.start_time,
            end_time=payload.end_time,
            party_size=payload.party_size,
            special_requests=payload.special_requests,
        )
        return _to_response(service.get(created.reservation_id))
    except ReservationError as exc:
        raise _http_error(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected reservation create failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create reservation",
        ) from exc


@router.put(
    "/{reservation_id}",
    response_model=ReservationResponse,
    status_code=status.HTTP_200_OK,
)
async def update_reservation(
    reservation_id: str,
    payload: UpdateReservationRequest,
    service: ReservationService = Depends(get_reservation_service),
) -> ReservationResponse:
    try:
        service.update(
            reservation_id,
            table_id=payload.table_id,
            reservation_date=payload.reservation_date,
            start_time=payload.start_time,
            end_time=payload.end_time,
            party_size=payload.party_size,
            special_requests=payload.special_requests,
        )
        return _to_response(service.get(reservation_id))
    except ReservationError as exc:
        raise _http_error(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected reservation update failure")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update reservation",
        ) from exc


@router.delete(
    "/{reservation_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def cancel_reservation(
    reservation_id: str,
    service: ReservationService = Depends(get_reservation_service),
) -> Response:
    try:
        service.cancel(reservation_id)
    except ReservationError as exc:
        raise _http_error(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{reservation_id}/check-in",
    response_model=ReservationResponse,
    status_code=status.HTTP_200_OK,
)
async def check_in_reservation(
    reservation_id: str,
    service: ReservationService = Depends(get_reservation_service),
) -> ReservationResponse:
    try:
        service.check_in(reservation_id)
        return _to_response(service.get(reservation_id))
    except ReservationError as exc:
        raise _http_error(exc) from exc
