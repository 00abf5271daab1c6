"""Pure interval arithmetic for detecting double bookings on one table."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import time, timedelta
from typing import Iterable

from backend.domain.models import Reservation


_START_OF_DAY = timedelta(0)


def _offset(value: time) -> timedelta:
    return timedelta(
        hours=value.hour,
        minutes=value.minute,
        seconds=value.second,
        microseconds=value.microsecond,
    )


@dataclass(frozen=True)
class TimeInterval:
    """Half-open ``[start, end)`` window on a single calendar date."""

    start: time
    end: time

    @classmethod
    def of(cls, reservation: Reservation) -> "TimeInterval":
        return cls(start=reservation.start_time, end=reservation.end_time)

    def buffered(self, padding: timedelta) -> tuple[timedelta, timedelta]:
        """Widen both edges by ``padding``; the start never drops below midnight."""
        start = max(_START_OF_DAY, _offset(self.start) - padding)
        end = _offset(self.end) + padding
        return start, end


def overlaps(a: TimeInterval, b: TimeInterval, buffer: timedelta) -> bool:
    """Return True when two windows on the same date are closer than ``buffer``.

    Each window is widened by half the buffer on both sides, so the widened
    windows touch exactly when the gap between the unwidened windows equals
    the buffer. Touching is not a conflict.
    """
    padding = buffer / 2
    start_a, end_a = a.buffered(padding)
    start_b, end_b = b.buffered(padding)
    return start_a < end_b and start_b < end_a


def find_conflicts(
    candidate: TimeInterval,
    existing: Iterable[Reservation],
    buffer: timedelta,
    exclude_reservation_id: str | None = None,
) -> list[Reservation]:
    """Return the active reservations that collide with ``candidate``."""
    return [
        reservation
        for reservation in existing
        if reservation.is_active
        and reservation.reservation_id != exclude_reservation_id
        and overlaps(candidate, TimeInterval.of(reservation), buffer)
    ]


def has_conflict(
    candidate: TimeInterval,
    existing: Iterable[Reservation],
    buffer: timedelta,
    exclude_reservation_id: str | None = None,
) -> bool:
    return bool(
        find_conflicts(
            candidate,
            existing,
            buffer,
            exclude_reservation_id=exclude_reservation_id,
        )
    )
