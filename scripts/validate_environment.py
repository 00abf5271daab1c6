#!/usr/bin/env python3
"""Validate local reservation engine environment readiness."""

from __future__ import annotations

import importlib
import shutil
import sqlite3
import sys
import tempfile
from dataclasses import replace
from datetime import datetime, time, timedelta, timezone
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from backend.domain.errors import ReservationConflictError
from backend.repository.data_repository import ReservationRepository
from backend.services.availability_service import AvailabilityService
from backend.services.reservation_service import ReservationService
from backend.utils.clock import FixedClock
from backend.utils.config import get_settings

SEPARATOR_LINE = "=" * 44


def _print_result(name: str, success: bool, detail: str = "") -> tuple[bool, str]:
    if success:
        return True, f"[PASS] {name}{detail}"
    return False, f"[FAIL] {name}: {detail}"


def main() -> int:
    results: list[str] = []
    all_passed = True
    temp_dir = tempfile.mkdtemp(prefix="cafe-env-")

    # CHECK 1 — Python version >= 3.10
    if sys.version_info >= (3, 10):
        ok, line = _print_result("Python " + sys.version.split()[0], True)
    else:
        ok, line = _print_result(
            "Python version >= 3.10",
            False,
            f"found {sys.version.split()[0]}",
        )
    results.append(line)
    all_passed = all_passed and ok

    # CHECK 2 — Required packages importable with versions
    package_specs = [
        ("fastapi", "fastapi"),
        ("uvicorn", "uvicorn"),
        ("pydantic", "pydantic"),
        ("httpx", "httpx"),
        ("pytest", "pytest"),
    ]
    import_errors: list[str] = []
    from importlib.metadata import version

    for module_name, dist_name in package_specs:
        try:
            importlib.import_module(module_name)
            _ = version(dist_name)
        except Exception as exc:  # pragma: no cover - runtime guard
            import_errors.append(f"{module_name} ({exc})")
    if import_errors:
        ok, line = _print_result(
            "Required packages",
            False,
            "missing/unimportable -> " + "; ".join(import_errors),
        )
    else:
        ok, line = _print_result("Required packages: all importable", True)
    results.append(line)
    all_passed = all_passed and ok

    try:
        temp_db_path = Path(temp_dir) / "cafe_validation.db"
        validation_settings = replace(get_settings(), database_path=temp_db_path)
        repository = ReservationRepository(validation_settings)
        clock = FixedClock(datetime.now(timezone.utc))
        tomorrow = clock.today() + timedelta(days=1)

        # CHECK 3 — Database initialization
        try:
            repository.initialize_database()
            ok, line = _print_result("Database initialization", True)
        except Exception as exc:
            ok, line = _print_result("Database initialization", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        # CHECK 4 — Demo floor seeding (6 tables)
        try:
            repository.seed_demo_data()
            with sqlite3.connect(temp_db_path) as conn:
                cursor = conn.cursor()
                cursor.execute("SELECT COUNT(*) FROM CafeTables;")
                table_count = int(cursor.fetchone()[0])
            if table_count != 6:
                raise RuntimeError(f"expected 6 tables, got {table_count}")
            ok, line = _print_result("Demo floor: 6 tables", True)
        except Exception as exc:
            ok, line = _print_result("Demo floor", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        reservation_service = ReservationService(
            repository=repository,
            settings=validation_settings,
            clock=clock,
        )

        # CHECK 5 — Booking and buffered conflict rejection
        try:
            reservation_service.create(
                customer_id=1,
                table_id=1,
                reservation_date=tomorrow,
                start_time=time(14, 0),
                end_time=time(16, 0),
                party_size=4,
            )
            try:
                reservation_service.create(
                    customer_id=2,
                    table_id=1,
                    reservation_date=tomorrow,
                    start_time=time(16, 5),
                    end_time=time(18, 0),
                    party_size=2,
                )
            except ReservationConflictError:
                pass
            else:
                raise RuntimeError("buffer violation was accepted")
            ok, line = _print_result("Booking + buffer conflict", True)
        except Exception as exc:
            ok, line = _print_result("Booking + buffer conflict", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        # CHECK 6 — Availability search
        try:
            availability_service = AvailabilityService(
                repository=repository,
                settings=validation_settings,
                clock=clock,
            )
            free = availability_service.find_available(
                query_date=tomorrow,
                start_time=time(14, 0),
                end_time=time(16, 0),
                party_size=2,
            )
            if any(item.table.table_id == 1 for item in free):
                raise RuntimeError("booked table reported as free")
            ok, line = _print_result(
                "Availability search",
                True,
                f": {len(free)} tables free",
            )
        except Exception as exc:
            ok, line = _print_result("Availability search", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

    finally:
        shutil.rmtree(temp_dir, ignore_errors=True)

    print(SEPARATOR_LINE)
    print(" Reservation Engine Environment Validation")
    print(SEPARATOR_LINE)
    for line in results:
        print(f" {line}")
    print(SEPARATOR_LINE)
    if all_passed:
        print(" All checks passed. Environment is ready.")
        print(SEPARATOR_LINE)
        return 0
    print(" One or more checks failed.")
    print(SEPARATOR_LINE)
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
