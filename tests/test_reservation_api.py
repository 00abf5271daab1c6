from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal

from fastapi import FastAPI
from fastapi.testclient import TestClient

from backend.controllers.reservation_controller import router as reservation_router
from backend.repository.data_repository import ReservationRepository
from backend.services.availability_service import AvailabilityService
from backend.services.reservation_service import ReservationService
from backend.utils.clock import FixedClock
from backend.utils.config import get_settings


CLOCK = FixedClock(datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc))
TOMORROW = "2026-03-03"
BASE_URL = "/api/v1/reservations"


def _build_test_settings(tmp_path, filename: str):
    get_settings.cache_clear()
    base = get_settings()
    return replace(base, database_path=tmp_path / filename, seed_demo_data=False)


def _build_test_app(tmp_path) -> tuple[FastAPI, ReservationRepository, dict[str, int]]:
    settings = _build_test_settings(tmp_path, "reservation_api.db")
    repository = ReservationRepository(settings)
    repository.initialize_database()
    ids = {
        "customer": repository.add_customer("John", "Doe", "test1@example.com"),
        "t1": repository.add_table("T1", 4, Decimal("15.00")),
        "t2": repository.add_table("T2", 6, Decimal("20.00"), is_window_seat=True),
    }

    app = FastAPI()
    app.include_router(reservation_router)
    app.state.repository = repository
    app.state.reservation_service = ReservationService(
        repository=repository,
        settings=settings,
        clock=CLOCK,
    )
    app.state.availability_service = AvailabilityService(
        repository=repository,
        settings=settings,
        clock=CLOCK,
    )
    return app, repository, ids


def _payload(ids: dict[str, int], **overrides) -> dict[str, object]:
    payload: dict[str, object] = {
        "customer_id": ids["customer"],
        "table_id": ids["t1"],
        "reservation_date": TOMORROW,
        "start_time": "14:00:00",
        "end_time": "16:00:00",
        "party_size": 4,
        "special_requests": "Window if possible",
    }
    payload.update(overrides)
    return payload


def test_reservation_end_to_end_flow(tmp_path):
    app, repository, ids = _build_test_app(tmp_path)
    client = TestClient(app)

    create_response = client.post(f"{BASE_URL}/", json=_payload(ids))
    assert create_response.status_code == 201
    created = create_response.json()
    assert created["status"] == "Confirmed"
    assert created["table_number"] == "T1"
    assert created["customer_name"] == "John Doe"
    assert created["special_requests"] == "Window if possible"
    reservation_id = created["id"]

    conflict_response = client.post(
        f"{BASE_URL}/",
        json=_payload(ids, start_time="16:05:00", end_time="18:00:00", party_size=2),
    )
    assert conflict_response.status_code == 409

    get_response = client.get(f"{BASE_URL}/{reservation_id}")
    assert get_response.status_code == 200
    assert get_response.json()["start_time"] == "14:00:00"

    update_response = client.put(
        f"{BASE_URL}/{reservation_id}",
        json={"start_time": "14:30:00", "end_time": "16:30:00"},
    )
    assert update_response.status_code == 200
    assert update_response.json()["end_time"] == "16:30:00"
    assert update_response.json()["party_size"] == 4

    check_in_response = client.post(f"{BASE_URL}/{reservation_id}/check-in")
    assert check_in_response.status_code == 200
    assert check_in_response.json()["status"] == "CheckedIn"

    repeat_check_in = client.post(f"{BASE_URL}/{reservation_id}/check-in")
    assert repeat_check_in.status_code == 400
    assert repeat_check_in.json()["detail"] == "Reservation is already checked in"

    cancel_response = client.delete(f"{BASE_URL}/{reservation_id}")
    assert cancel_response.status_code == 204
    repeat_cancel = client.delete(f"{BASE_URL}/{reservation_id}")
    assert repeat_cancel.status_code == 204

    list_response = client.get(f"{BASE_URL}/", params={"customer_id": ids["customer"]})
    assert list_response.status_code == 200
    listed = list_response.json()
    assert [item["id"] for item in listed] == [reservation_id]
    assert listed[0]["status"] == "Cancelled"
    assert repository.count_reservations() == 1


def test_error_kinds_map_to_distinct_status_codes(tmp_path):
    app, _, ids = _build_test_app(tmp_path)
    client = TestClient(app)

    assert client.post(f"{BASE_URL}/", json=_payload(ids, customer_id=999)).status_code == 404
    assert client.post(f"{BASE_URL}/", json=_payload(ids, table_id=999)).status_code == 404
    assert client.get(f"{BASE_URL}/missing").status_code == 404
    assert client.delete(f"{BASE_URL}/missing").status_code == 404
    assert client.post(f"{BASE_URL}/missing/check-in").status_code == 404

    too_big = client.post(f"{BASE_URL}/", json=_payload(ids, party_size=5))
    assert too_big.status_code == 400
    assert "capacity of 4" in too_big.json()["detail"]

    after_hours = client.post(
        f"{BASE_URL}/",
        json=_payload(ids, start_time="21:00:00", end_time="23:00:00"),
    )
    assert after_hours.status_code == 400

    past = client.post(f"{BASE_URL}/", json=_payload(ids, reservation_date="2026-03-01"))
    assert past.status_code == 400
    assert past.json()["detail"] == "Reservation date must be today or in the future"

    fractional = client.post(
        f"{BASE_URL}/",
        json=_payload(ids, start_time="14:00:00.1", end_time="14:00:00.9"),
    )
    assert fractional.status_code == 400
    assert fractional.json()["detail"] == "Start and end times must be whole minutes"


def test_cancelled_reservation_cannot_be_updated_or_checked_in(tmp_path):
    app, _, ids = _build_test_app(tmp_path)
    client = TestClient(app)
    reservation_id = client.post(f"{BASE_URL}/", json=_payload(ids)).json()["id"]
    client.delete(f"{BASE_URL}/{reservation_id}")

    update_response = client.put(f"{BASE_URL}/{reservation_id}", json={"party_size": 2})
    assert update_response.status_code == 400
    assert update_response.json()["detail"] == "Cannot update a cancelled reservation"

    check_in_response = client.post(f"{BASE_URL}/{reservation_id}/check-in")
    assert check_in_response.status_code == 400
    assert check_in_response.json()["detail"] == "Cannot check in a cancelled reservation"


def test_availability_endpoint_sorts_by_price_and_respects_bookings(tmp_path):
    app, _, ids = _build_test_app(tmp_path)
    client = TestClient(app)
    params = {
        "date": TOMORROW,
        "start_time": "14:00:00",
        "end_time": "16:00:00",
        "party_size": 2,
    }

    before = client.get(f"{BASE_URL}/availability", params=params)
    assert before.status_code == 200
    body = before.json()
    assert [item["table_number"] for item in body] == ["T1", "T2"]
    assert Decimal(body[0]["total_price"]) == Decimal("30.00")
    assert Decimal(body[1]["total_price"]) == Decimal("40.00")
    assert body[1]["is_window_seat"] is True

    client.post(f"{BASE_URL}/", json=_payload(ids))
    after = client.get(f"{BASE_URL}/availability", params=params)
    assert [item["table_number"] for item in after.json()] == ["T2"]

    oversized = client.get(f"{BASE_URL}/availability", params={**params, "party_size": 7})
    assert oversized.status_code == 200
    assert oversized.json() == []


def test_availability_endpoint_rejects_invalid_queries(tmp_path):
    app, _, _ = _build_test_app(tmp_path)
    client = TestClient(app)
    params = {
        "date": TOMORROW,
        "start_time": "14:00:00",
        "end_time": "16:00:00",
        "party_size": 2,
    }

    assert client.get(
        f"{BASE_URL}/availability",
        params={**params, "start_time": "16:00:00", "end_time": "14:00:00"},
    ).status_code == 400
    assert client.get(
        f"{BASE_URL}/availability",
        params={**params, "party_size": 0},
    ).status_code == 400
    assert client.get(
        f"{BASE_URL}/availability",
        params={**params, "date": "2026-03-01"},
    ).status_code == 400


def test_create_app_startup_initializes_and_seeds(tmp_path, monkeypatch):
    monkeypatch.setenv("DATABASE_PATH", str(tmp_path / "startup.db"))
    get_settings.cache_clear()
    from app import create_app

    app = create_app(clock=CLOCK)
    try:
        with TestClient(app) as client:
            response = client.get(
                f"{BASE_URL}/availability",
                params={
                    "date": TOMORROW,
                    "start_time": "10:00:00",
                    "end_time": "11:00:00",
                    "party_size": 2,
                },
            )
            assert response.status_code == 200
            assert len(response.json()) == 6
            assert response.json()[0]["table_number"] == "T6"
    finally:
        get_settings.cache_clear()
