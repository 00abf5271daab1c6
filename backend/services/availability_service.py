"""Read-only search for tables that can seat a party in a given window."""

from __future__ import annotations

from collections import defaultdict
from datetime import date, datetime, time, timedelta
from decimal import ROUND_HALF_EVEN, Decimal
from typing import Iterable, Optional

from backend.domain.conflicts import TimeInterval, has_conflict
from backend.domain.constraints import (
    BookingPolicy,
    booking_policy_from_settings,
    validate_booking_policy,
)
from backend.domain.models import AvailableTable, CafeTable, Reservation, TableStatus
from backend.domain.validation import check_availability_query, ensure_valid
from backend.repository.data_repository import ReservationRepository
from backend.utils.clock import Clock, SystemClock
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)

_CENTS = Decimal("0.01")
_SECONDS_PER_HOUR = Decimal(3600)


def duration_hours(start_time: time, end_time: time) -> Decimal:
    anchor = date.min
    elapsed = datetime.combine(anchor, end_time) - datetime.combine(anchor, start_time)
    return Decimal(int(elapsed.total_seconds())) / _SECONDS_PER_HOUR


def total_price(hourly_rate: Decimal, start_time: time, end_time: time) -> Decimal:
    """Price a window at ``hourly_rate``, rounded half-to-even to cents."""
    return (hourly_rate * duration_hours(start_time, end_time)).quantize(
        _CENTS,
        rounding=ROUND_HALF_EVEN,
    )


def _free_tables(
    candidates: Iterable[CafeTable],
    reservations_by_table: dict[int, list[Reservation]],
    requested: TimeInterval,
    buffer: timedelta,
) -> list[CafeTable]:
    """Keep candidates with no buffered overlap against their own bookings.

    Linear in tables x same-day bookings per table.
    """
    return [
        table
        for table in candidates
        if not has_conflict(requested, reservations_by_table.get(table.table_id, ()), buffer)
    ]


class AvailabilityService:
    """Answers "which tables are free for this party in this window"."""

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

    def find_available(
        self,
        *,
        query_date: date,
        start_time: time,
        end_time: time,
        party_size: int,
    ) -> list[AvailableTable]:
        ensure_valid(
            check_availability_query(
                query_date=query_date,
                start_time=start_time,
                end_time=end_time,
                party_size=party_size,
                today=self._clock.today(),
                policy=self._policy,
            )
        )

        candidates = self._repository.list_tables(
            min_capacity=party_size,
            status=TableStatus.AVAILABLE,
        )
        reservations_by_table: dict[int, list[Reservation]] = defaultdict(list)
        for reservation in self._repository.list_active_reservations_on(query_date):
            reservations_by_table[reservation.table_id].append(reservation)

        free = _free_tables(
            candidates,
            reservations_by_table,
            TimeInterval(start=start_time, end=end_time),
            self._policy.buffer,
        )
        results = [
            AvailableTable(
                table=table,
                total_price=total_price(table.hourly_rate, start_time, end_time),
            )
            for table in free
        ]
        results.sort(key=lambda item: (item.total_price, item.table.table_id))
        logger.info(
            "Availability %s %s-%s party=%s: %s of %s tables free",
            query_date.isoformat(),
            start_time.isoformat(timespec="minutes"),
            end_time.isoformat(timespec="minutes"),
            party_size,
            len(results),
            len(candidates),
        )
        return results
