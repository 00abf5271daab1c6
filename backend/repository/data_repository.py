"""Repository layer responsible for all database access."""

from __future__ import annotations

import sqlite3
from contextlib import closing, contextmanager
from dataclasses import replace
from datetime import date, datetime, time
from decimal import Decimal
from pathlib import Path
from typing import Callable, Iterator, Optional

from backend.domain.conflicts import TimeInterval, find_conflicts
from backend.domain.constraints import booking_policy_from_settings
from backend.domain.errors import ReservationConflictError, ReservationNotFoundError
from backend.domain.models import (
    CafeTable,
    Reservation,
    ReservationStatus,
    ReservationView,
    TableStatus,
)
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)

ReservationGuard = Callable[[Reservation], None]

_INACTIVE_STATUS_VALUES = (
    ReservationStatus.CANCELLED.value,
    ReservationStatus.NO_SHOW.value,
)

_RESERVATION_COLUMNS = """
    id,
    customer_id,
    table_id,
    reservation_date,
    start_time,
    end_time,
    party_size,
    status,
    created_at,
    special_requests
"""


def _format_time(value: time) -> str:
    return value.isoformat()


def _row_to_table(row: sqlite3.Row) -> CafeTable:
    return CafeTable(
        table_id=int(row["id"]),
        table_number=str(row["table_number"]),
        seating_capacity=int(row["seating_capacity"]),
        hourly_rate=Decimal(str(row["hourly_rate"])),
        is_window_seat=bool(row["is_window_seat"]),
        is_accessible=bool(row["is_accessible"]),
        status=TableStatus(row["status"]),
    )


def _row_to_reservation(row: sqlite3.Row) -> Reservation:
    return Reservation(
        reservation_id=str(row["id"]),
        customer_id=int(row["customer_id"]),
        table_id=int(row["table_id"]),
        reservation_date=date.fromisoformat(row["reservation_date"]),
        start_time=time.fromisoformat(row["start_time"]),
        end_time=time.fromisoformat(row["end_time"]),
        party_size=int(row["party_size"]),
        status=ReservationStatus(row["status"]),
        created_at=datetime.fromisoformat(row["created_at"]),
        special_requests=row["special_requests"],
    )


def _reservation_params(reservation: Reservation) -> dict[str, object]:
    return {
        "id": reservation.reservation_id,
        "customer_id": reservation.customer_id,
        "table_id": reservation.table_id,
        "reservation_date": reservation.reservation_date.isoformat(),
        "start_time": _format_time(reservation.start_time),
        "end_time": _format_time(reservation.end_time),
        "party_size": reservation.party_size,
        "status": reservation.status.value,
        "created_at": reservation.created_at.isoformat(),
        "special_requests": reservation.special_requests,
    }


class ReservationRepository:
    """Encapsulates SQLite access so business logic stays storage-agnostic.

    Writes that assign a table window run under ``BEGIN IMMEDIATE`` and repeat
    the conflict check inside the transaction, so two concurrent writers can
    never both commit overlapping bookings for the same table.
    """

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._db_path = Path(self._settings.database_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._buffer = booking_policy_from_settings(self._settings).buffer

    @property
    def database_path(self) -> Path:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(
            self._db_path,
            timeout=self._settings.database_timeout_seconds,
        )
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON;")
        return connection

    @contextmanager
    def _write_transaction(self) -> Iterator[sqlite3.Connection]:
        """Hold SQLite's write lock from the first read to the commit."""
        with closing(self._connect()) as conn:
            conn.execute("BEGIN IMMEDIATE;")
            try:
                yield conn
            except BaseException:
                conn.rollback()
                raise
            conn.commit()

    def initialize_database(self) -> None:
        """Create all persistence artifacts before API startup."""
        try:
            with closing(self._connect()) as conn:
                cursor = conn.cursor()

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Customers (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        first_name TEXT NOT NULL,
                        last_name TEXT NOT NULL,
                        email TEXT NOT NULL UNIQUE,
                        joined_at DATETIME DEFAULT CURRENT_TIMESTAMP
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS CafeTables (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        table_number TEXT NOT NULL UNIQUE,
                        seating_capacity INTEGER NOT NULL
                            CHECK (seating_capacity BETWEEN 1 AND 20),
                        is_window_seat INTEGER NOT NULL DEFAULT 0,
                        is_accessible INTEGER NOT NULL DEFAULT 0,
                        hourly_rate TEXT NOT NULL,
                        status TEXT NOT NULL DEFAULT 'Available'
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Reservations (
                        id TEXT PRIMARY KEY,
                        customer_id INTEGER NOT NULL,
                        table_id INTEGER NOT NULL,
                        reservation_date TEXT NOT NULL,
                        start_time TEXT NOT NULL,
                        end_time TEXT NOT NULL,
                        party_size INTEGER NOT NULL CHECK (party_size >= 1),
                        status TEXT NOT NULL DEFAULT 'Confirmed',
                        created_at TEXT NOT NULL,
                        special_requests TEXT,
                        CHECK (start_time < end_time),
                        FOREIGN KEY (customer_id) REFERENCES Customers(id),
                        FOREIGN KEY (table_id) REFERENCES CafeTables(id)
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_reservations_table_date_start
                    ON Reservations(table_id, reservation_date, start_time);
                    """
                )
                cursor.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_reservations_customer
                    ON Reservations(customer_id);
                    """
                )
                conn.commit()
            logger.info("Database initialized at %s", self._db_path)
        except sqlite3.Error as exc:
            raise RuntimeError(f"Database initialization failed: {exc}") from exc

    def seed_demo_data(self) -> None:
        """Seed a small café floor and two customers only when empty."""
        try:
            with closing(self._connect()) as conn:
                cursor = conn.cursor()

                cursor.execute("SELECT COUNT(*) AS count FROM CafeTables;")
                if int(cursor.fetchone()["count"]) > 0:
                    logger.info("Demo data already present; skipping seed")
                    return

                tables = [
                    ("T1", 4, 0, 0, "15.00"),
                    ("T2", 6, 1, 0, "20.00"),
                    ("T3", 2, 1, 0, "10.00"),
                    ("T4", 4, 0, 1, "15.00"),
                    ("T5", 8, 0, 1, "30.00"),
                    ("T6", 2, 0, 0, "8.50"),
                ]
                cursor.executemany(
                    """
                    INSERT INTO CafeTables (
                        table_number,
                        seating_capacity,
                        is_window_seat,
                        is_accessible,
                        hourly_rate
                    )
                    VALUES (?, ?, ?, ?, ?);
                    """,
                    tables,
                )
                cursor.executemany(
                    """
                    INSERT INTO Customers (first_name, last_name, email)
                    VALUES (?, ?, ?);
                    """,
                    [
                        ("John", "Doe", "john.doe@example.com"),
                        ("Jane", "Smith", "jane.smith@example.com"),
                    ],
                )
                conn.commit()
            logger.info("Demo seed completed with %s tables", len(tables))
        except sqlite3.Error as exc:
            raise RuntimeError(f"Demo data seeding failed: {exc}") from exc

    def add_customer(self, first_name: str, last_name: str, email: str) -> int:
        """Insert a customer row and return the created id."""
        with closing(self._connect()) as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO Customers (first_name, last_name, email)
                VALUES (?, ?, ?);
                """,
                (first_name, last_name, email),
            )
            conn.commit()
            return int(cursor.lastrowid)

    def add_table(
        self,
        table_number: str,
        seating_capacity: int,
        hourly_rate: Decimal,
        is_window_seat: bool = False,
        is_accessible: bool = False,
        status: TableStatus = TableStatus.AVAILABLE,
    ) -> int:
        """Insert a table row and return the created id."""
        with closing(self._connect()) as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO CafeTables (
                    table_number,
                    seating_capacity,
                    is_window_seat,
                    is_accessible,
                    hourly_rate,
                    status
                )
                VALUES (?, ?, ?, ?, ?, ?);
                """,
                (
                    table_number,
                    seating_capacity,
                    int(is_window_seat),
                    int(is_accessible),
                    str(hourly_rate),
                    status.value,
                ),
            )
            conn.commit()
            return int(cursor.lastrowid)

    def customer_exists(self, customer_id: int) -> bool:
        with closing(self._connect()) as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT 1 FROM Customers WHERE id = ?;", (customer_id,))
            return cursor.fetchone() is not None

    def get_table(self, table_id: int) -> Optional[CafeTable]:
        """Fetch one table from the registry, or None when unknown."""
        with closing(self._connect()) as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM CafeTables WHERE id = ?;", (table_id,))
            row = cursor.fetchone()
            if row is None:
                return None
            return _row_to_table(row)

    def list_tables(
        self,
        min_capacity: int = 1,
        status: Optional[TableStatus] = None,
    ) -> list[CafeTable]:
        """Return tables seating at least ``min_capacity``, optionally by status."""
        query = "SELECT * FROM CafeTables WHERE seating_capacity >= ?"
        params: list[object] = [min_capacity]
        if status is not None:
            query += " AND status = ?"
            params.append(status.value)
        query += " ORDER BY id ASC;"
        with closing(self._connect()) as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return [_row_to_table(row) for row in cursor.fetchall()]

    def _select_active_reservations(
        self,
        conn: sqlite3.Connection,
        table_id: int,
        reservation_date: date,
        exclude_reservation_id: Optional[str] = None,
    ) -> list[Reservation]:
        cursor = conn.cursor()
        cursor.execute(
            f"""
            SELECT {_RESERVATION_COLUMNS}
            FROM Reservations
            WHERE table_id = ?
              AND reservation_date = ?
              AND status NOT IN (?, ?)
              AND id != ?
            ORDER BY start_time ASC;
            """,
            (
                table_id,
                reservation_date.isoformat(),
                *_INACTIVE_STATUS_VALUES,
                exclude_reservation_id or "",
            ),
        )
        return [_row_to_reservation(row) for row in cursor.fetchall()]

    def list_active_reservations(
        self,
        table_id: int,
        reservation_date: date,
        exclude_reservation_id: Optional[str] = None,
    ) -> list[Reservation]:
        """Return Confirmed/CheckedIn reservations for one table and date."""
        with closing(self._connect()) as conn:
            return self._select_active_reservations(
                conn,
                table_id,
                reservation_date,
                exclude_reservation_id,
            )

    def list_active_reservations_on(self, reservation_date: date) -> list[Reservation]:
        """Return every active reservation on a date, across all tables."""
        with closing(self._connect()) as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"""
                SELECT {_RESERVATION_COLUMNS}
                FROM Reservations
                WHERE reservation_date = ?
                  AND status NOT IN (?, ?)
                ORDER BY table_id ASC, start_time ASC;
                """,
                (reservation_date.isoformat(), *_INACTIVE_STATUS_VALUES),
            )
            return [_row_to_reservation(row) for row in cursor.fetchall()]

    def _ensure_window_free(
        self,
        conn: sqlite3.Connection,
        reservation: Reservation,
    ) -> None:
        existing = self._select_active_reservations(
            conn,
            reservation.table_id,
            reservation.reservation_date,
            exclude_reservation_id=reservation.reservation_id,
        )
        conflicts = find_conflicts(TimeInterval.of(reservation), existing, self._buffer)
        if conflicts:
            logger.warning(
                "Write rejected: reservation %s collides with %s on table %s",
                reservation.reservation_id,
                [item.reservation_id for item in conflicts],
                reservation.table_id,
            )
            raise ReservationConflictError(
                "The requested time slot conflicts with an existing reservation "
                f"for this table (including {self._buffer_minutes}-minute buffer)."
            )

    @property
    def _buffer_minutes(self) -> int:
        return int(self._buffer.total_seconds() // 60)

    def _select_reservation(
        self,
        conn: sqlite3.Connection,
        reservation_id: str,
    ) -> Reservation:
        cursor = conn.cursor()
        cursor.execute(
            f"SELECT {_RESERVATION_COLUMNS} FROM Reservations WHERE id = ?;",
            (reservation_id,),
        )
        row = cursor.fetchone()
        if row is None:
            raise ReservationNotFoundError(f"Reservation {reservation_id} does not exist")
        return _row_to_reservation(row)

    def insert_reservation(self, reservation: Reservation) -> Reservation:
        """Persist a new reservation, rejecting it if its window is taken."""
        with self._write_transaction() as conn:
            if reservation.is_active:
                self._ensure_window_free(conn, reservation)
            conn.execute(
                f"""
                INSERT INTO Reservations ({_RESERVATION_COLUMNS})
                VALUES (
                    :id,
                    :customer_id,
                    :table_id,
                    :reservation_date,
                    :start_time,
                    :end_time,
                    :party_size,
                    :status,
                    :created_at,
                    :special_requests
                );
                """,
                _reservation_params(reservation),
            )
        return reservation

    def update_reservation(
        self,
        reservation: Reservation,
        guard: Optional[ReservationGuard] = None,
    ) -> Reservation:
        """Overwrite the editable fields of a stored reservation.

        ``guard`` sees the currently stored row and may raise to veto the write.
        Status is never written here; the stored status is kept and returned.
        """
        with self._write_transaction() as conn:
            current = self._select_reservation(conn, reservation.reservation_id)
            if guard is not None:
                guard(current)
            updated = replace(reservation, status=current.status)
            if updated.is_active:
                self._ensure_window_free(conn, updated)
            conn.execute(
                """
                UPDATE Reservations
                SET table_id = :table_id,
                    reservation_date = :reservation_date,
                    start_time = :start_time,
                    end_time = :end_time,
                    party_size = :party_size,
                    special_requests = :special_requests
                WHERE id = :id;
                """,
                _reservation_params(updated),
            )
        return updated

    def set_reservation_status(
        self,
        reservation_id: str,
        status: ReservationStatus,
        guard: Optional[ReservationGuard] = None,
    ) -> Reservation:
        """Move a reservation to ``status``; unchanged statuses are not rewritten."""
        with self._write_transaction() as conn:
            current = self._select_reservation(conn, reservation_id)
            if guard is not None:
                guard(current)
            if current.status is status:
                return current
            conn.execute(
                "UPDATE Reservations SET status = ? WHERE id = ?;",
                (status.value, reservation_id),
            )
        return replace(current, status=status)

    def get_reservation(self, reservation_id: str) -> Optional[Reservation]:
        with closing(self._connect()) as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"SELECT {_RESERVATION_COLUMNS} FROM Reservations WHERE id = ?;",
                (reservation_id,),
            )
            row = cursor.fetchone()
            if row is None:
                return None
            return _row_to_reservation(row)

    def _select_views(self, where: str, params: tuple[object, ...]) -> list[ReservationView]:
        with closing(self._connect()) as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"""
                SELECT
                    r.id,
                    r.customer_id,
                    r.table_id,
                    r.reservation_date,
                    r.start_time,
                    r.end_time,
                    r.party_size,
                    r.status,
                    r.created_at,
                    r.special_requests,
                    t.table_number,
                    c.first_name,
                    c.last_name
                FROM Reservations AS r
                INNER JOIN CafeTables AS t ON t.id = r.table_id
                INNER JOIN Customers AS c ON c.id = r.customer_id
                WHERE {where}
                ORDER BY r.reservation_date DESC, r.start_time DESC;
                """,
                params,
            )
            return [
                ReservationView(
                    reservation=_row_to_reservation(row),
                    table_number=str(row["table_number"]),
                    customer_name=f"{row['first_name']} {row['last_name']}",
                )
                for row in cursor.fetchall()
            ]

    def get_reservation_view(self, reservation_id: str) -> Optional[ReservationView]:
        """Return a reservation with its table number and customer name."""
        views = self._select_views("r.id = ?", (reservation_id,))
        return views[0] if views else None

    def list_reservations_for_customer(self, customer_id: int) -> list[ReservationView]:
        """Return a customer's reservations, newest date and latest start first."""
        return self._select_views("r.customer_id = ?", (customer_id,))

    def count_reservations(self) -> int:
        with closing(self._connect()) as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT COUNT(*) AS count FROM Reservations;")
            return int(cursor.fetchone()["count"])
