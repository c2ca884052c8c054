"""Typed errors raised by the booking core.

Every error carries the HTTP status and detail message the routes hand back
to the client, so ``Conflict`` ("pick another slot") stays distinguishable
from ``NotFound`` ("bad id").
"""

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

LOCK_NOT_AVAILABLE_PGCODE = '55P03'
QUERY_CANCELED_PGCODE = '57014'
UNIQUE_VIOLATION_PGCODE = '23505'
SQLITE_LOCKED_MESSAGE = 'database is locked'


class BookingError(Exception):
    """Base class for errors returned to callers of the booking core."""

    status_code = 500
    default_detail = 'Unexpected booking error.'

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class ValidationFailed(BookingError):
    status_code = 400
    default_detail = 'Request is missing required fields.'


class NotFound(BookingError):
    status_code = 404
    default_detail = 'Record not found.'


class SlotNotFound(NotFound):
    default_detail = 'Slot not found.'

    def __init__(self, slot_id: int):
        self.slot_id = slot_id
        super().__init__()


class AppointmentNotFound(NotFound):
    default_detail = 'Appointment not found.'

    def __init__(self, appointment_id: int):
        self.appointment_id = appointment_id
        super().__init__()


class DoctorNotFound(NotFound):
    default_detail = 'Doctor not found.'

    def __init__(self, doctor_id: int):
        self.doctor_id = doctor_id
        super().__init__()


class Conflict(BookingError):
    status_code = 409
    default_detail = 'Request conflicts with the current state.'


class SlotAlreadyBooked(Conflict):
    default_detail = 'Slot is already booked. Please select another slot.'

    def __init__(self, slot_id: int):
        self.slot_id = slot_id
        super().__init__()


class DuplicateRecord(Conflict):
    default_detail = 'A record with these details already exists.'


class AppointmentNotActive(Conflict):
    """Cancel refused: the appointment is already CANCELLED or FAILED."""

    default_detail = 'Appointment is already cancelled or expired.'

    def __init__(self, appointment_id: int):
        self.appointment_id = appointment_id
        super().__init__()


class NotFoundOrAlreadyProcessed(BookingError):
    """Lifecycle guard failed: the appointment is missing or in the wrong state."""

    status_code = 404
    default_detail = 'Appointment not found or already processed.'

    def __init__(self, appointment_id: int):
        self.appointment_id = appointment_id
        super().__init__()


class StorageUnavailable(BookingError):
    status_code = 503
    default_detail = 'Database unavailable. Verify DATABASE_URL and Postgres credentials.'


class LockTimeout(BookingError):
    status_code = 504
    default_detail = 'Timed out waiting for the slot to become available. Please try again.'


def is_lock_timeout(exc: SQLAlchemyError) -> bool:
    orig = getattr(exc, 'orig', None)
    if orig is None:
        return False

    if getattr(orig, 'pgcode', None) in {LOCK_NOT_AVAILABLE_PGCODE, QUERY_CANCELED_PGCODE}:
        return True

    return SQLITE_LOCKED_MESSAGE in str(orig).lower()


def is_unique_violation(exc: SQLAlchemyError) -> bool:
    if not isinstance(exc, IntegrityError):
        return False

    orig = getattr(exc, 'orig', None)
    if getattr(orig, 'pgcode', None) == UNIQUE_VIOLATION_PGCODE:
        return True

    # SQLite: "UNIQUE constraint failed", Postgres: "violates unique constraint"
    return 'unique constraint' in str(orig).lower()


def storage_error(exc: SQLAlchemyError) -> BookingError:
    if is_lock_timeout(exc):
        return LockTimeout()
    if is_unique_violation(exc):
        return DuplicateRecord()
    return StorageUnavailable()
