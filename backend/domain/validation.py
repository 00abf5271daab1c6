"""Booking rules shared by the create, update and availability paths.

Every ``check_*`` function is pure: it returns ``None`` when the rule holds
and a :class:`RuleViolation` naming the broken rule otherwise. Callers that
want an exception pass the result through :func:`ensure_valid`.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, time
from typing import Optional

from backend.domain.constraints import BookingPolicy
from backend.domain.errors import ReservationValidationError
from backend.domain.models import CafeTable


@dataclass(frozen=True)
class RuleViolation:
    rule: str
    message: str


def check_party_size(party_size: int, policy: BookingPolicy) -> Optional[RuleViolation]:
    if policy.min_party_size <= party_size <= policy.max_party_size:
        return None
    return RuleViolation(
        "party_size",
        f"Party size must be between {policy.min_party_size} and {policy.max_party_size}",
    )


def check_future_date(reservation_date: date, today: date) -> Optional[RuleViolation]:
    # Only the date is compared; a slot earlier today is still bookable.
    if reservation_date >= today:
        return None
    return RuleViolation("future_date", "Reservation date must be today or in the future")


def check_time_precision(start_time: time, end_time: time) -> Optional[RuleViolation]:
    # Slots are booked in whole minutes.
    if all(value.second == 0 and value.microsecond == 0 for value in (start_time, end_time)):
        return None
    return RuleViolation("time_precision", "Start and end times must be whole minutes")


def check_time_range(start_time: time, end_time: time) -> Optional[RuleViolation]:
    if start_time < end_time:
        return None
    return RuleViolation("time_range", "Start time must be before end time")


def check_business_hours(
    start_time: time,
    end_time: time,
    policy: BookingPolicy,
) -> Optional[RuleViolation]:
    if start_time >= policy.opening_time and end_time <= policy.closing_time:
        return None
    return RuleViolation(
        "business_hours",
        "Reservation must be within business hours "
        f"({policy.opening_time:%H:%M} - {policy.closing_time:%H:%M})",
    )


def check_table_capacity(table: CafeTable, party_size: int) -> Optional[RuleViolation]:
    if party_size <= table.seating_capacity:
        return None
    return RuleViolation(
        "table_capacity",
        f"Table {table.table_number} has a capacity of {table.seating_capacity}, "
        f"but party size is {party_size}",
    )


def check_reservation_request(
    *,
    table: CafeTable,
    reservation_date: date,
    start_time: time,
    end_time: time,
    party_size: int,
    today: date,
    policy: BookingPolicy,
) -> Optional[RuleViolation]:
    """Run every create/update rule and return the first one that fails."""
    return (
        check_party_size(party_size, policy)
        or check_future_date(reservation_date, today)
        or check_time_precision(start_time, end_time)
        or check_time_range(start_time, end_time)
        or check_business_hours(start_time, end_time, policy)
        or check_table_capacity(table, party_size)
    )


def check_availability_query(
    *,
    query_date: date,
    start_time: time,
    end_time: time,
    party_size: int,
    today: date,
    policy: BookingPolicy,
) -> Optional[RuleViolation]:
    return (
        check_future_date(query_date, today)
        or check_time_precision(start_time, end_time)
        or check_time_range(start_time, end_time)
        or check_party_size(party_size, policy)
        or check_business_hours(start_time, end_time, policy)
    )


def ensure_valid(violation: Optional[RuleViolation]) -> None:
    if violation is not None:
        raise ReservationValidationError(violation.rule, violation.message)
