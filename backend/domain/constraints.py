"""Domain-level validation rules for the booking policy."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import time, timedelta

from backend.utils.config import Settings


@dataclass(frozen=True)
class BookingPolicy:
    buffer: timedelta
    opening_time: time
    closing_time: time
    min_party_size: int
    max_party_size: int


def booking_policy_from_settings(settings: Settings) -> BookingPolicy:
    return BookingPolicy(
        buffer=timedelta(minutes=settings.reservation_buffer_minutes),
        opening_time=settings.business_hours_start,
        closing_time=settings.business_hours_end,
        min_party_size=settings.min_party_size,
        max_party_size=settings.max_party_size,
    )


def validate_booking_policy(policy: BookingPolicy) -> None:
    if policy.buffer < timedelta(0):
        raise ValueError("reservation buffer must be >= 0")
    if policy.opening_time >= policy.closing_time:
        raise ValueError("business hours start must be before business hours end")
    if policy.min_party_size < 1:
        raise ValueError("min_party_size must be >= 1")
    if policy.max_party_size < policy.min_party_size:
        raise ValueError("max_party_size must be >= min_party_size")
