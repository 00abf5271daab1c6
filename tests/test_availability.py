"""Tests for the availability search service."""

from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime, time, timezone
from decimal import Decimal

import pytest

from backend.domain.errors import ReservationValidationError
from backend.domain.models import TableStatus
from backend.repository.data_repository import ReservationRepository
from backend.services.availability_service import AvailabilityService, total_price
from backend.services.reservation_service import ReservationService
from backend.utils.clock import FixedClock
from backend.utils.config import get_settings


CLOCK = FixedClock(datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc))
TOMORROW = date(2026, 3, 3)


def _build_test_settings(tmp_path, filename: str):
    base = get_settings()
    return replace(base, database_path=tmp_path / filename, seed_demo_data=False)


def _build_services(tmp_path, filename: str):
    settings = _build_test_settings(tmp_path, filename)
    repository = ReservationRepository(settings)
    repository.initialize_database()
    customer_id = repository.add_customer("John", "Doe", "john@example.com")
    availability = AvailabilityService(repository=repository, settings=settings, clock=CLOCK)
    reservations = ReservationService(repository=repository, settings=settings, clock=CLOCK)
    return repository, availability, reservations, customer_id


def _search(service: AvailabilityService, start: str, end: str, party_size: int):
    return service.find_available(
        query_date=TOMORROW,
        start_time=time.fromisoformat(start),
        end_time=time.fromisoformat(end),
        party_size=party_size,
    )


def test_capacity_filter_returns_empty_when_party_exceeds_every_table(tmp_path):
    repository, availability, _, _ = _build_services(tmp_path, "capacity.db")
    repository.add_table("T1", 4, Decimal("15.00"))

    assert _search(availability, "14:00", "16:00", 5) == []


def test_results_never_include_undersized_tables(tmp_path):
    repository, availability, _, _ = _build_services(tmp_path, "undersized.db")
    repository.add_table("T1", 2, Decimal("10.00"))
    repository.add_table("T2", 4, Decimal("15.00"))
    repository.add_table("T3", 6, Decimal("20.00"))

    results = _search(availability, "14:00", "16:00", 3)

    assert [item.table.table_number for item in results] == ["T2", "T3"]
    assert all(item.table.seating_capacity >= 3 for item in results)


def test_results_sorted_by_price_then_table_id(tmp_path):
    repository, availability, _, _ = _build_services(tmp_path, "ordering.db")
    expensive = repository.add_table("T1", 6, Decimal("20.00"))
    cheap_a = repository.add_table("T2", 4, Decimal("15.00"))
    cheap_b = repository.add_table("T3", 4, Decimal("15.00"))

    results = _search(availability, "14:00", "16:00", 2)

    assert [item.table.table_id for item in results] == [cheap_a, cheap_b, expensive]
    assert [item.total_price for item in results] == [
        Decimal("30.00"),
        Decimal("30.00"),
        Decimal("40.00"),
    ]


def test_booked_table_is_excluded_within_buffer(tmp_path):
    repository, availability, reservations, customer_id = _build_services(tmp_path, "buffer.db")
    booked = repository.add_table("T1", 4, Decimal("15.00"))
    free = repository.add_table("T2", 4, Decimal("15.00"))
    reservations.create(
        customer_id=customer_id,
        table_id=booked,
        reservation_date=TOMORROW,
        start_time=time(14, 0),
        end_time=time(16, 0),
        party_size=4,
    )

    overlapping = _search(availability, "16:05", "18:00", 2)
    assert [item.table.table_id for item in overlapping] == [free]

    at_boundary = _search(availability, "16:15", "18:00", 2)
    assert {item.table.table_id for item in at_boundary} == {booked, free}


def test_cancelled_and_no_show_reservations_do_not_block(tmp_path):
    repository, availability, reservations, customer_id = _build_services(tmp_path, "inactive.db")
    first = repository.add_table("T1", 4, Decimal("15.00"))
    second = repository.add_table("T2", 4, Decimal("15.00"))
    cancelled = reservations.create(
        customer_id=customer_id,
        table_id=first,
        reservation_date=TOMORROW,
        start_time=time(14, 0),
        end_time=time(16, 0),
        party_size=2,
    )
    no_show = reservations.create(
        customer_id=customer_id,
        table_id=second,
        reservation_date=TOMORROW,
        start_time=time(14, 0),
        end_time=time(16, 0),
        party_size=2,
    )
    reservations.cancel(cancelled.reservation_id)
    reservations.mark_no_show(no_show.reservation_id)

    results = _search(availability, "14:00", "16:00", 2)

    assert {item.table.table_id for item in results} == {first, second}


def test_reservations_on_other_dates_do_not_block(tmp_path):
    repository, availability, reservations, customer_id = _build_services(tmp_path, "dates.db")
    table_id = repository.add_table("T1", 4, Decimal("15.00"))
    reservations.create(
        customer_id=customer_id,
        table_id=table_id,
        reservation_date=date(2026, 3, 4),
        start_time=time(14, 0),
        end_time=time(16, 0),
        party_size=2,
    )

    assert len(_search(availability, "14:00", "16:00", 2)) == 1


def test_tables_under_maintenance_are_excluded(tmp_path):
    repository, availability, _, _ = _build_services(tmp_path, "maintenance.db")
    repository.add_table("T1", 4, Decimal("15.00"), status=TableStatus.MAINTENANCE)
    open_table = repository.add_table("T2", 4, Decimal("15.00"))

    results = _search(availability, "14:00", "16:00", 2)

    assert [item.table.table_id for item in results] == [open_table]


def test_table_attributes_are_carried_through(tmp_path):
    repository, availability, _, _ = _build_services(tmp_path, "attributes.db")
    repository.add_table("T1", 6, Decimal("20.00"), is_window_seat=True, is_accessible=True)

    (result,) = _search(availability, "10:00", "11:30", 2)

    assert result.table.is_window_seat is True
    assert result.table.is_accessible is True
    assert result.total_price == Decimal("30.00")


@pytest.mark.parametrize(
    ("query_date", "start", "end", "party_size", "rule"),
    [
        (date(2026, 3, 1), "14:00", "16:00", 2, "future_date"),
        (TOMORROW, "16:00", "14:00", 2, "time_range"),
        (TOMORROW, "16:00", "16:00", 2, "time_range"),
        (TOMORROW, "14:00", "16:00", 0, "party_size"),
        (TOMORROW, "21:00", "23:00", 2, "business_hours"),
    ],
)
def test_invalid_queries_raise_validation_errors(tmp_path, query_date, start, end, party_size, rule):
    repository, availability, _, _ = _build_services(tmp_path, "invalid.db")
    repository.add_table("T1", 4, Decimal("15.00"))

    with pytest.raises(ReservationValidationError) as exc_info:
        availability.find_available(
            query_date=query_date,
            start_time=time.fromisoformat(start),
            end_time=time.fromisoformat(end),
            party_size=party_size,
        )
    assert exc_info.value.rule == rule


def test_today_is_a_valid_query_date(tmp_path):
    repository, availability, _, _ = _build_services(tmp_path, "today.db")
    repository.add_table("T1", 4, Decimal("15.00"))

    results = availability.find_available(
        query_date=CLOCK.today(),
        start_time=time(14, 0),
        end_time=time(16, 0),
        party_size=2,
    )
    assert len(results) == 1


def test_total_price_rounds_to_cents() -> None:
    assert total_price(Decimal("15.00"), time(14, 0), time(16, 0)) == Decimal("30.00")
    assert total_price(Decimal("8.50"), time(14, 0), time(15, 20)) == Decimal("11.33")
    assert total_price(Decimal("20.00"), time(10, 0), time(10, 45)) == Decimal("15.00")


def test_total_price_rounds_half_to_even() -> None:
    assert total_price(Decimal("0.05"), time(10, 0), time(11, 30)) == Decimal("0.08")
    assert total_price(Decimal("0.03"), time(10, 0), time(11, 30)) == Decimal("0.04")
