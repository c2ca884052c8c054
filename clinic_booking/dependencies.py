from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError

from clinic_booking.core.errors import BookingError, StorageUnavailable
from clinic_booking.database import ensure_booking_schema


def ensure_database_ready() -> None:
    try:
        ensure_booking_schema()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=StorageUnavailable.default_detail,
        ) from exc


def as_http_exception(exc: BookingError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.detail)
