"""Domain models for café tables, reservations and availability results."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Optional


class TableStatus(str, Enum):
    AVAILABLE = "Available"
    MAINTENANCE = "Maintenance"


class ReservationStatus(str, Enum):
    CONFIRMED = "Confirmed"
    CHECKED_IN = "CheckedIn"
    CANCELLED = "Cancelled"
    NO_SHOW = "NoShow"

    @property
    def is_active(self) -> bool:
        """Active reservations are the only ones that block a table."""
        return self not in INACTIVE_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self in INACTIVE_STATUSES


INACTIVE_STATUSES = frozenset({ReservationStatus.CANCELLED, ReservationStatus.NO_SHOW})


@dataclass(frozen=True)
class CafeTable:
    table_id: int
    table_number: str
    seating_capacity: int
    hourly_rate: Decimal
    is_window_seat: bool = False
    is_accessible: bool = False
    status: TableStatus = TableStatus.AVAILABLE


@dataclass(frozen=True)
class Reservation:
    reservation_id: str
    customer_id: int
    table_id: int
    reservation_date: date
    start_time: time
    end_time: time
    party_size: int
    status: ReservationStatus
    created_at: datetime
    special_requests: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status.is_active


@dataclass(frozen=True)
class ReservationView:
    """Reservation joined with the labels callers show next to it."""

    reservation: Reservation
    table_number: str
    customer_name: str


@dataclass(frozen=True)
class AvailableTable:
    table: CafeTable
    total_price: Decimal
