"""SQLite storage for users, providers, schedules and appointments.

Stands in for the hosted relational store. The invariants the engine
relies on are enforced here with real constraints:

- one availability row per (provider, day_of_week)
- at most one requested/confirmed appointment per (provider, date, time),
  via a partial unique index; a violation surfaces as ``SlotConflict``
"""

import logging
import sqlite3
import threading
import uuid
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path
from typing import Any, Iterable, Iterator

from medbook.config import DATABASE_PATH, DEFAULT_SPECIALTY
from medbook.models.errors import (
    AppointmentNotFound,
    RequestValidationError,
    SlotConflict,
)
from medbook.models.schemas import (
    Appointment,
    AppointmentStatus,
    BookedAppointment,
    BookingChannel,
    Notification,
    Patient,
    Provider,
    RecurringAvailability,
    Role,
    ScheduleEntry,
    User,
)
from medbook.utils.timefmt import normalize_time, parse_date

logger = logging.getLogger(__name__)

ACTIVE_SLOT_INDEX = "idx_appointments_active_slot"

_SCHEMA = """
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        email TEXT NOT NULL UNIQUE,
        full_name TEXT NOT NULL,
        role TEXT NOT NULL DEFAULT 'patient'
            CHECK(role IN ('patient', 'doctor', 'admin')),
        created_at TEXT NOT NULL
    );

    CREATE TABLE IF NOT EXISTS providers (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL UNIQUE REFERENCES users(id),
        specialty TEXT NOT NULL DEFAULT 'General Practice',
        created_at TEXT NOT NULL
    );

    CREATE TABLE IF NOT EXISTS patients (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL UNIQUE REFERENCES users(id),
        phone TEXT,
        date_of_birth TEXT,
        created_at TEXT NOT NULL
    );

    CREATE TABLE IF NOT EXISTS provider_availability (
        id TEXT PRIMARY KEY,
        provider_id TEXT NOT NULL REFERENCES providers(id) ON DELETE CASCADE,
        day_of_week TEXT NOT NULL CHECK(day_of_week IN (
            'Monday', 'Tuesday', 'Wednesday', 'Thursday',
            'Friday', 'Saturday', 'Sunday')),
        start_time TEXT NOT NULL,
        end_time TEXT NOT NULL,
        is_active INTEGER NOT NULL DEFAULT 1,
        created_at TEXT NOT NULL,
        UNIQUE (provider_id, day_of_week)
    );

    CREATE TABLE IF NOT EXISTS appointments (
        id TEXT PRIMARY KEY,
        provider_id TEXT NOT NULL REFERENCES providers(id),
        patient_id TEXT NOT NULL REFERENCES patients(id),
        appointment_date TEXT NOT NULL,
        appointment_time TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'requested' CHECK(status IN (
            'requested', 'confirmed', 'cancelled', 'completed', 'no_show')),
        reason TEXT,
        booking_method TEXT NOT NULL DEFAULT 'voice',
        created_at TEXT NOT NULL
    );
    CREATE UNIQUE INDEX IF NOT EXISTS idx_appointments_active_slot
        ON appointments(provider_id, appointment_date, appointment_time)
        WHERE status IN ('requested', 'confirmed');
    CREATE INDEX IF NOT EXISTS idx_appointments_patient
        ON appointments(patient_id, appointment_date);

    CREATE TABLE IF NOT EXISTS notifications (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL REFERENCES users(id),
        type TEXT NOT NULL,
        title TEXT NOT NULL,
        message TEXT NOT NULL,
        related_id TEXT,
        is_read INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL
    );
"""

_PROVIDER_SELECT = """
    SELECT p.id, p.user_id, p.specialty, u.full_name
    FROM providers p JOIN users u ON u.id = p.user_id
"""

_BOOKED_SELECT = """
    SELECT a.*, u.full_name AS provider_name, p.specialty AS provider_specialty,
           pu.full_name AS patient_name
    FROM appointments a
    JOIN providers p ON p.id = a.provider_id
    JOIN users u ON u.id = p.user_id
    LEFT JOIN patients pt ON pt.id = a.patient_id
    LEFT JOIN users pu ON pu.id = pt.user_id
"""


def generate_id(prefix: str) -> str:
    """Generate a prefixed UUID."""
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def _db_time(value: Any) -> str:
    """Store clock times the way Postgres renders ``time`` columns."""
    return f"{normalize_time(value)}:00"


def _status_values(statuses: Iterable[AppointmentStatus | str]) -> list[str]:
    return [AppointmentStatus(s).value for s in statuses]


class MedbookDB:
    """SQLite wrapper for the booking store.

    A single connection is shared and every statement runs under a lock,
    so concurrent commits are serialized and the partial unique index
    decides which one wins.

    Example:
        db = MedbookDB(":memory:")
        db.init_schema()
    """

    def __init__(self, db_path: str | Path | None = None):
        """Initialize database connection.

        Args:
            db_path: Path to SQLite file, or ":memory:" for in-memory.
                     Defaults to DATABASE_PATH from config.
        """
        if db_path is None:
            db_path = DATABASE_PATH
        if str(db_path) != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self.db_path = str(db_path)
        self._lock = threading.RLock()
        self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA foreign_keys = ON")

    def init_schema(self) -> None:
        """Create tables and indexes if they don't exist."""
        with self._lock:
            self.conn.executescript(_SCHEMA)
            self.conn.commit()

    def close(self) -> None:
        """Close database connection."""
        self.conn.close()

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Run statements atomically under the connection lock."""
        with self._lock:
            try:
                yield self.conn
                self.conn.commit()
            except Exception:
                self.conn.rollback()
                raise

    def _query(self, sql: str, params: Iterable[Any] = ()) -> list[sqlite3.Row]:
        with self._lock:
            return self.conn.execute(sql, tuple(params)).fetchall()

    def _query_one(self, sql: str, params: Iterable[Any] = ()) -> sqlite3.Row | None:
        with self._lock:
            return self.conn.execute(sql, tuple(params)).fetchone()

    # =========================================================================
    # Users, providers, patients
    # =========================================================================

    def create_user(
        self,
        email: str,
        full_name: str,
        role: Role | str = Role.PATIENT,
        specialty: str | None = None,
        user_id: str | None = None,
    ) -> User:
        """Register an identity and its role profile.

        Doctors get a provider row, patients get a patient row.
        """
        role = Role(role)
        user = User(
            id=user_id or generate_id("usr"),
            email=email,
            full_name=full_name,
            role=role,
        )
        now = user.created_at.isoformat()

        try:
            with self._transaction() as conn:
                conn.execute(
                    "INSERT INTO users (id, email, full_name, role, created_at) "
                    "VALUES (?, ?, ?, ?, ?)",
                    (user.id, user.email, user.full_name, role.value, now),
                )
                if role == Role.DOCTOR:
                    conn.execute(
                        "INSERT INTO providers (id, user_id, specialty, created_at) "
                        "VALUES (?, ?, ?, ?)",
                        (generate_id("doc"), user.id, specialty or DEFAULT_SPECIALTY, now),
                    )
                elif role == Role.PATIENT:
                    conn.execute(
                        "INSERT INTO patients (id, user_id, created_at) VALUES (?, ?, ?)",
                        (generate_id("pat"), user.id, now),
                    )
        except sqlite3.IntegrityError as e:
            raise RequestValidationError(
                f"User already exists: {email}", details={"email": email}
            ) from e

        logger.info(f"👤 Registered {role.value} {user.full_name} ({user.id})")
        return user

    def get_user(self, user_id: str) -> User | None:
        """Get user by ID."""
        row = self._query_one("SELECT * FROM users WHERE id = ?", (user_id,))
        if row is None:
            return None
        return User(
            id=row["id"],
            email=row["email"],
            full_name=row["full_name"],
            role=row["role"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    def _provider_from_row(self, row: sqlite3.Row) -> Provider:
        return Provider(
            id=row["id"],
            user_id=row["user_id"],
            name=row["full_name"],
            specialty=row["specialty"],
        )

    def get_provider(self, provider_id: str) -> Provider | None:
        """Get provider by ID."""
        row = self._query_one(f"{_PROVIDER_SELECT} WHERE p.id = ?", (provider_id,))
        return self._provider_from_row(row) if row else None

    def get_provider_by_user(self, user_id: str) -> Provider | None:
        """Get the provider profile owned by an identity."""
        row = self._query_one(f"{_PROVIDER_SELECT} WHERE p.user_id = ?", (user_id,))
        return self._provider_from_row(row) if row else None

    def list_providers(self) -> list[Provider]:
        """List all providers ordered by name."""
        rows = self._query(f"{_PROVIDER_SELECT} ORDER BY u.full_name, p.id")
        return [self._provider_from_row(row) for row in rows]

    def search_providers_by_specialty(self, term: str) -> list[Provider]:
        """Case-insensitive substring match on the specialty label."""
        rows = self._query(
            f"{_PROVIDER_SELECT} WHERE lower(p.specialty) LIKE ? "
            "ORDER BY u.full_name, p.id",
            (f"%{term.strip().lower()}%",),
        )
        return [self._provider_from_row(row) for row in rows]

    def update_provider_specialty(self, provider_id: str, specialty: str) -> Provider:
        """Administrative update of a provider's specialty."""
        with self._transaction() as conn:
            cursor = conn.execute(
                "UPDATE providers SET specialty = ? WHERE id = ?",
                (specialty, provider_id),
            )
        if cursor.rowcount == 0:
            raise RequestValidationError(f"Unknown provider: {provider_id}")
        return self.get_provider(provider_id)  # type: ignore[return-value]

    def _patient_from_row(self, row: sqlite3.Row) -> Patient:
        dob = row["date_of_birth"]
        return Patient(
            id=row["id"],
            user_id=row["user_id"],
            phone=row["phone"],
            date_of_birth=parse_date(dob) if dob else None,
            full_name=row["full_name"],
        )

    def get_patient(self, patient_id: str) -> Patient | None:
        """Get patient by ID."""
        row = self._query_one(
            "SELECT pt.*, u.full_name FROM patients pt "
            "LEFT JOIN users u ON u.id = pt.user_id WHERE pt.id = ?",
            (patient_id,),
        )
        return self._patient_from_row(row) if row else None

    def get_patient_by_user(self, user_id: str) -> Patient | None:
        """Get the patient profile owned by an identity."""
        row = self._query_one(
            "SELECT pt.*, u.full_name FROM patients pt "
            "LEFT JOIN users u ON u.id = pt.user_id WHERE pt.user_id = ?",
            (user_id,),
        )
        return self._patient_from_row(row) if row else None

    def ensure_patient(self, user_id: str) -> tuple[Patient, bool]:
        """Return the identity's patient profile, creating it if missing.

        Returns:
            Tuple of (patient, created)

        Raises:
            RequestValidationError: If the identity is unknown
        """
        existing = self.get_patient_by_user(user_id)
        if existing is not None:
            return existing, False

        if self.get_user(user_id) is None:
            raise RequestValidationError(
                f"User not found: {user_id}", details={"user_id": user_id}
            )

        with self._transaction() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO patients (id, user_id, created_at) "
                "VALUES (?, ?, ?)",
                (generate_id("pat"), user_id, datetime.now().isoformat()),
            )
        logger.info(f"🩺 Created missing patient profile for {user_id}")
        return self.get_patient_by_user(user_id), True  # type: ignore[return-value]

    # =========================================================================
    # Recurring availability
    # =========================================================================

    def _availability_from_row(self, row: sqlite3.Row) -> RecurringAvailability:
        return RecurringAvailability(
            provider_id=row["provider_id"],
            day_of_week=row["day_of_week"],
            start_time=row["start_time"],
            end_time=row["end_time"],
            is_active=bool(row["is_active"]),
        )

    def get_availability(
        self, provider_id: str, day_of_week: str
    ) -> RecurringAvailability | None:
        """Active availability row for one provider and weekday, if any."""
        row = self._query_one(
            "SELECT * FROM provider_availability "
            "WHERE provider_id = ? AND day_of_week = ? AND is_active = 1",
            (provider_id, day_of_week),
        )
        return self._availability_from_row(row) if row else None

    def list_availability(
        self, provider_id: str | None = None, active_only: bool = True
    ) -> list[RecurringAvailability]:
        """List availability rows with optional filters."""
        query = "SELECT * FROM provider_availability WHERE 1=1"
        params: list = []

        if provider_id:
            query += " AND provider_id = ?"
            params.append(provider_id)

        if active_only:
            query += " AND is_active = 1"

        rows = self._query(query, params)
        return [self._availability_from_row(row) for row in rows]

    def upsert_availability(
        self,
        provider_id: str,
        rows: Iterable[ScheduleEntry | dict],
    ) -> list[RecurringAvailability]:
        """Insert or replace weekly rows keyed on (provider, day_of_week).

        Raises:
            RequestValidationError: If a row is malformed or the provider is unknown
        """
        entries: list[RecurringAvailability] = []
        for row in rows:
            data = row.model_dump() if isinstance(row, ScheduleEntry) else dict(row)
            try:
                entries.append(RecurringAvailability(provider_id=provider_id, **data))
            except ValueError as e:
                raise RequestValidationError(f"Invalid schedule row: {e}") from e

        now = datetime.now().isoformat()
        try:
            with self._transaction() as conn:
                for entry in entries:
                    conn.execute(
                        """INSERT INTO provider_availability
                           (id, provider_id, day_of_week, start_time, end_time,
                            is_active, created_at)
                           VALUES (?, ?, ?, ?, ?, ?, ?)
                           ON CONFLICT (provider_id, day_of_week) DO UPDATE SET
                               start_time = excluded.start_time,
                               end_time = excluded.end_time,
                               is_active = excluded.is_active""",
                        (
                            generate_id("avl"),
                            provider_id,
                            entry.day_of_week,
                            _db_time(entry.start_time),
                            _db_time(entry.end_time),
                            int(entry.is_active),
                            now,
                        ),
                    )
        except sqlite3.IntegrityError as e:
            raise RequestValidationError(f"Unknown provider: {provider_id}") from e

        logger.info(f"🗓️ Upserted {len(entries)} schedule rows for {provider_id}")
        return entries

    # =========================================================================
    # Appointments
    # =========================================================================

    def _appointment_from_row(self, row: sqlite3.Row) -> Appointment:
        return Appointment(
            id=row["id"],
            provider_id=row["provider_id"],
            patient_id=row["patient_id"],
            appointment_date=date.fromisoformat(row["appointment_date"]),
            appointment_time=row["appointment_time"],
            status=row["status"],
            reason=row["reason"],
            booking_method=row["booking_method"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    def _booked_from_row(self, row: sqlite3.Row) -> BookedAppointment:
        base = self._appointment_from_row(row)
        return BookedAppointment(
            **base.model_dump(),
            provider_name=row["provider_name"],
            provider_specialty=row["provider_specialty"],
            patient_name=row["patient_name"],
        )

    def list_appointments(
        self,
        provider_id: str,
        appointment_date: date | str,
        status_in: Iterable[AppointmentStatus | str] | None = None,
    ) -> list[Appointment]:
        """Appointments for one provider and date, optionally by status."""
        query = (
            "SELECT * FROM appointments WHERE provider_id = ? AND appointment_date = ?"
        )
        params: list = [provider_id, parse_date(appointment_date).isoformat()]

        if status_in is not None:
            statuses = _status_values(status_in)
            query += f" AND status IN ({', '.join('?' * len(statuses))})"
            params.extend(statuses)

        query += " ORDER BY appointment_time"
        return [self._appointment_from_row(row) for row in self._query(query, params)]

    def find_active_appointment(
        self, provider_id: str, appointment_date: date | str, appointment_time: str
    ) -> Appointment | None:
        """Requested/confirmed appointment holding the exact slot, if any."""
        row = self._query_one(
            "SELECT * FROM appointments WHERE provider_id = ? "
            "AND appointment_date = ? AND appointment_time = ? "
            "AND status IN ('requested', 'confirmed')",
            (
                provider_id,
                parse_date(appointment_date).isoformat(),
                _db_time(appointment_time),
            ),
        )
        return self._appointment_from_row(row) if row else None

    def insert_appointment(
        self,
        provider_id: str,
        patient_id: str,
        appointment_date: date | str,
        appointment_time: str,
        reason: str | None = None,
        status: AppointmentStatus | str = AppointmentStatus.REQUESTED,
        channel: BookingChannel | str = BookingChannel.VOICE,
    ) -> Appointment:
        """Insert an appointment row.

        Raises:
            SlotConflict: If the active-slot unique index rejects the row
            RequestValidationError: If the provider or patient does not exist
        """
        appt_id = generate_id("appt")
        now = datetime.now().isoformat()
        day = parse_date(appointment_date).isoformat()
        clock = _db_time(appointment_time)

        try:
            with self._transaction() as conn:
                conn.execute(
                    """INSERT INTO appointments
                       (id, provider_id, patient_id, appointment_date,
                        appointment_time, status, reason, booking_method, created_at)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                    (
                        appt_id,
                        provider_id,
                        patient_id,
                        day,
                        clock,
                        AppointmentStatus(status).value,
                        reason,
                        BookingChannel(channel).value,
                        now,
                    ),
                )
        except sqlite3.IntegrityError as e:
            raise self._translate_integrity_error(e, provider_id, day, clock) from e

        return self.get_appointment(appt_id)  # type: ignore[return-value]

    def _translate_integrity_error(
        self, error: sqlite3.IntegrityError, provider_id: str, day: str, clock: str
    ) -> Exception:
        text = str(error).lower()
        if "unique" in text:
            return SlotConflict(
                details={
                    "provider_id": provider_id,
                    "date": day,
                    "time": normalize_time(clock),
                }
            )
        if "foreign key" in text:
            return RequestValidationError(
                "Unknown provider or patient", details={"provider_id": provider_id}
            )
        return RequestValidationError(f"Invalid appointment: {error}")

    def get_appointment(self, appointment_id: str) -> Appointment | None:
        """Get appointment by ID."""
        row = self._query_one(
            "SELECT * FROM appointments WHERE id = ?", (appointment_id,)
        )
        return self._appointment_from_row(row) if row else None

    def get_booked_appointment(self, appointment_id: str) -> BookedAppointment | None:
        """Get appointment joined with provider and patient names."""
        row = self._query_one(f"{_BOOKED_SELECT} WHERE a.id = ?", (appointment_id,))
        return self._booked_from_row(row) if row else None

    def list_provider_appointments(
        self,
        provider_id: str,
        on_date: date | None = None,
        from_date: date | None = None,
        status: AppointmentStatus | None = None,
    ) -> list[BookedAppointment]:
        """Provider dashboard listing ordered by date and time."""
        query = f"{_BOOKED_SELECT} WHERE a.provider_id = ?"
        params: list = [provider_id]

        if on_date is not None:
            query += " AND a.appointment_date = ?"
            params.append(on_date.isoformat())
        if from_date is not None:
            query += " AND a.appointment_date >= ?"
            params.append(from_date.isoformat())
        if status is not None:
            query += " AND a.status = ?"
            params.append(AppointmentStatus(status).value)

        query += " ORDER BY a.appointment_date, a.appointment_time"
        return [self._booked_from_row(row) for row in self._query(query, params)]

    def list_patient_appointments(self, patient_id: str) -> list[BookedAppointment]:
        """Patient dashboard listing ordered by date and time."""
        rows = self._query(
            f"{_BOOKED_SELECT} WHERE a.patient_id = ? "
            "ORDER BY a.appointment_date, a.appointment_time",
            (patient_id,),
        )
        return [self._booked_from_row(row) for row in rows]

    def update_appointment_status(
        self,
        appointment_id: str,
        status: AppointmentStatus | str,
        by_provider_id: str | None = None,
        by_patient_id: str | None = None,
    ) -> Appointment:
        """Change an appointment's status, scoped to the caller's rows.

        Raises:
            AppointmentNotFound: If no row matches the id and owner
            SlotConflict: If reactivating would duplicate an active slot
        """
        if by_provider_id is None and by_patient_id is None:
            raise RequestValidationError("An owning provider or patient is required")

        query = "UPDATE appointments SET status = ? WHERE id = ?"
        params: list = [AppointmentStatus(status).value, appointment_id]
        if by_provider_id is not None:
            query += " AND provider_id = ?"
            params.append(by_provider_id)
        if by_patient_id is not None:
            query += " AND patient_id = ?"
            params.append(by_patient_id)

        try:
            with self._transaction() as conn:
                cursor = conn.execute(query, params)
        except sqlite3.IntegrityError as e:
            raise SlotConflict(
                "Another appointment already holds this slot",
                details={"appointment_id": appointment_id},
            ) from e

        if cursor.rowcount == 0:
            raise AppointmentNotFound(
                f"Appointment not found: {appointment_id}",
                details={"appointment_id": appointment_id},
            )
        return self.get_appointment(appointment_id)  # type: ignore[return-value]

    # =========================================================================
    # Notifications
    # =========================================================================

    def insert_notification(self, notification: Notification) -> str:
        """Insert a notification row and return its ID."""
        notif_id = generate_id("ntf")
        with self._transaction() as conn:
            conn.execute(
                """INSERT INTO notifications
                   (id, user_id, type, title, message, related_id, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (
                    notif_id,
                    notification.user_id,
                    notification.type,
                    notification.title,
                    notification.message,
                    notification.related_id,
                    datetime.now().isoformat(),
                ),
            )
        return notif_id

    def list_notifications(self, user_id: str) -> list[Notification]:
        """Notifications addressed to one identity, newest first."""
        rows = self._query(
            "SELECT * FROM notifications WHERE user_id = ? ORDER BY created_at DESC",
            (user_id,),
        )
        return [
            Notification(
                user_id=row["user_id"],
                type=row["type"],
                title=row["title"],
                message=row["message"],
                related_id=row["related_id"],
            )
            for row in rows
        ]
