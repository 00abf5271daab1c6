"""Reservation lifecycle: create, update, cancel, check-in and lookups."""

from __future__ import annotations

from dataclasses import replace
from datetime import date, time
from typing import Optional
from uuid import uuid4

from backend.domain.conflicts import TimeInterval, find_conflicts
from backend.domain.constraints import (
    BookingPolicy,
    booking_policy_from_settings,
    validate_booking_policy,
)
from backend.domain.errors import (
    BusinessRuleError,
    CustomerNotFoundError,
    ReservationConflictError,
    ReservationNotFoundError,
    TableNotFoundError,
)
from backend.domain.models import CafeTable, Reservation, ReservationStatus, ReservationView
from backend.domain.validation import check_reservation_request, ensure_valid
from backend.repository.data_repository import ReservationRepository
from backend.utils.clock import Clock, SystemClock
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)

def _ensure_editable(reservation: Reservation) -> None:
    if reservation.status is ReservationStatus.CANCELLED:
        raise BusinessRuleError(
            "update_cancelled",
            "Cannot update a cancelled reservation",
        )
    if reservation.status is ReservationStatus.NO_SHOW:
        raise BusinessRuleError(
            "update_no_show",
            "Cannot update a reservation marked as no-show",
        )


def _ensure_cancellable(reservation: Reservation) -> None:
    if reservation.status is ReservationStatus.NO_SHOW:
        raise BusinessRuleError(
            "cancel_no_show",
            "Cannot cancel a reservation marked as no-show",
        )


def _ensure_check_in_allowed(reservation: Reservation) -> None:
    if reservation.status is ReservationStatus.CANCELLED:
        raise BusinessRuleError(
            "check_in_cancelled",
            "Cannot check in a cancelled reservation",
        )
    if reservation.status is ReservationStatus.CHECKED_IN:
        raise BusinessRuleError("check_in_repeated", "Reservation is already checked in")
    if reservation.status is ReservationStatus.NO_SHOW:
        raise BusinessRuleError(
            "check_in_no_show",
            "Cannot check in a reservation marked as no-show",
        )


def _ensure_no_show_allowed(reservation: Reservation) -> None:
    if reservation.status is not ReservationStatus.CONFIRMED:
        raise BusinessRuleError(
            "no_show_transition",
            "Only confirmed reservations can be marked as no-show "
            f"(status is {reservation.status.value})",
        )


class ReservationService:
    """Validates booking rules and drives reservation state changes."""

    def __init__(
        self,
        repository: Optional[ReservationRepository] = None,
        settings: Optional[Settings] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or ReservationRepository(self._settings)
        self._clock = clock or SystemClock()
        self._policy: BookingPolicy = booking_policy_from_settings(self._settings)
        validate_booking_policy(self._policy)

    def _require_table(self, table_id: int) -> CafeTable:
        table = self._repository.get_table(table_id)
        if table is None:
            raise TableNotFoundError(f"Table with ID {table_id} does not exist")
        return table

    def _require_reservation(self, reservation_id: str) -> Reservation:
        reservation = self._repository.get_reservation(reservation_id)
        if reservation is None:
            raise ReservationNotFoundError(f"Reservation {reservation_id} does not exist")
        return reservation

    def _validate_and_check_conflicts(self, candidate: Reservation, table: CafeTable) -> None:
        ensure_valid(
            check_reservation_request(
                table=table,
                reservation_date=candidate.reservation_date,
                start_time=candidate.start_time,
                end_time=candidate.end_time,
                party_size=candidate.party_size,
                today=self._clock.today(),
                policy=self._policy,
            )
        )
        existing = self._repository.list_active_reservations(
            candidate.table_id,
            candidate.reservation_date,
            exclude_reservation_id=candidate.reservation_id,
        )
        if find_conflicts(TimeInterval.of(candidate), existing, self._policy.buffer):
            logger.warning(
                "Conflict for table %s on %s %s-%s",
                candidate.table_id,
                candidate.reservation_date.isoformat(),
                candidate.start_time.isoformat(timespec="minutes"),
                candidate.end_time.isoformat(timespec="minutes"),
            )
            raise ReservationConflictError(
                "The requested time slot conflicts with an existing reservation for this "
                f"table (including {self._settings.reservation_buffer_minutes}-minute buffer)."
            )

    def create(
        self,
        *,
        customer_id: int,
        table_id: int,
        reservation_date: date,
        start_time: time,
        end_time: time,
        party_size: int,
        special_requests: Optional[str] = None,
    ) -> Reservation:
        if not self._repository.customer_exists(customer_id):
            raise CustomerNotFoundError(f"Customer with ID {customer_id} does not exist")
        table = self._require_table(table_id)

        candidate = Reservation(
            reservation_id=uuid4().hex,
            customer_id=customer_id,
            table_id=table_id,
            reservation_date=reservation_date,
            start_time=start_time,
            end_time=end_time,
            party_size=party_size,
            status=ReservationStatus.CONFIRMED,
            created_at=self._clock.now(),
            special_requests=special_requests,
        )
        self._validate_and_check_conflicts(candidate, table)

        created = self._repository.insert_reservation(candidate)
        logger.info(
            "Reservation %s created for customer %s on table %s",
            created.reservation_id,
            customer_id,
            table_id,
        )
        return created

    def update(
        self,
        reservation_id: str,
        *,
        table_id: Optional[int] = None,
        reservation_date: Optional[date] = None,
        start_time: Optional[time] = None,
        end_time: Optional[time] = None,
        party_size: Optional[int] = None,
        special_requests: Optional[str] = None,
    ) -> Reservation:
        """Merge the given fields over the stored reservation and save it.

        ``None`` keeps the current value and an empty ``special_requests``
        clears the note. Status is not editable here, and cancelled or no-show
        reservations reject the update.
        """
        existing = self._require_reservation(reservation_id)
        _ensure_editable(existing)

        merged = replace(
            existing,
            table_id=existing.table_id if table_id is None else table_id,
            reservation_date=(
                existing.reservation_date if reservation_date is None else reservation_date
            ),
            start_time=existing.start_time if start_time is None else start_time,
            end_time=existing.end_time if end_time is None else end_time,
            party_size=existing.party_size if party_size is None else party_size,
            special_requests=(
                existing.special_requests
                if special_requests is None
                else special_requests or None
            ),
        )
        table = self._require_table(merged.table_id)
        self._validate_and_check_conflicts(merged, table)

        updated = self._repository.update_reservation(merged, guard=_ensure_editable)
        logger.info("Reservation %s updated", reservation_id)
        return updated

    def cancel(self, reservation_id: str) -> Reservation:
        """Cancel a reservation; cancelling twice is a successful no-op."""
        reservation = self._repository.set_reservation_status(
            reservation_id,
            ReservationStatus.CANCELLED,
            guard=_ensure_cancellable,
        )
        logger.info("Reservation %s cancelled", reservation_id)
        return reservation

    def check_in(self, reservation_id: str) -> Reservation:
        reservation = self._repository.set_reservation_status(
            reservation_id,
            ReservationStatus.CHECKED_IN,
            guard=_ensure_check_in_allowed,
        )
        logger.info("Reservation %s checked in", reservation_id)
        return reservation

    def mark_no_show(self, reservation_id: str) -> Reservation:
        """Entry point for the external no-show sweep."""
        reservation = self._repository.set_reservation_status(
            reservation_id,
            ReservationStatus.NO_SHOW,
            guard=_ensure_no_show_allowed,
        )
        logger.info("Reservation %s marked as no-show", reservation_id)
        return reservation

    def get(self, reservation_id: str) -> ReservationView:
        view = self._repository.get_reservation_view(reservation_id)
        if view is None:
            raise ReservationNotFoundError(f"Reservation {reservation_id} does not exist")
        return view

    def list_for_customer(self, customer_id: int) -> list[ReservationView]:
        return self._repository.list_reservations_for_customer(customer_id)
