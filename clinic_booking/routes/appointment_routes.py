from datetime import date, datetime, time
from decimal import Decimal

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_booking.core.errors import BookingError, storage_error
from clinic_booking.database import get_db
from clinic_booking.dependencies import as_http_exception, ensure_database_ready
from clinic_booking.services.booking_service import book_appointment
from clinic_booking.services.lifecycle_service import cancel_appointment, confirm_appointment
from clinic_booking.services.reporting_service import list_appointments

router = APIRouter(tags=['appointments'])

MAX_PATIENT_AGE = 150
MAX_PHONE_LENGTH = 20
MAX_REASON_LENGTH = 600
PHONE_CHARACTERS = set('0123456789+-() ')


class CreateAppointmentRequest(BaseModel):
    slot_id: int
    patient_name: str
    patient_email: str
    patient_phone: str
    patient_age: int
    reason_for_visit: str

    @field_validator('patient_name')
    @classmethod
    def validate_patient_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Patient name is required.')
        return normalized

    @field_validator('patient_email')
    @classmethod
    def validate_patient_email(cls, value: str) -> str:
        normalized = value.strip().lower()
        if not normalized:
            raise ValueError('Patient email is required.')
        if '@' not in normalized:
            raise ValueError('Patient email is invalid.')
        return normalized

    @field_validator('patient_phone')
    @classmethod
    def validate_patient_phone(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Patient phone is required.')
        if len(normalized) > MAX_PHONE_LENGTH or not set(normalized) <= PHONE_CHARACTERS:
            raise ValueError('Patient phone is invalid.')
        return normalized

    @field_validator('patient_age')
    @classmethod
    def validate_patient_age(cls, value: int) -> int:
        if value <= 0 or value > MAX_PATIENT_AGE:
            raise ValueError(f'Patient age must be between 1 and {MAX_PATIENT_AGE}.')
        return value

    @field_validator('reason_for_visit')
    @classmethod
    def validate_reason_for_visit(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Reason for visit is required.')
        if len(normalized) > MAX_REASON_LENGTH:
            raise ValueError(f'Reason for visit must be {MAX_REASON_LENGTH} characters or fewer.')
        return normalized


class AppointmentResponse(BaseModel):
    id: int
    slot_id: int
    patient_name: str
    patient_email: str
    patient_phone: str
    patient_age: int
    reason_for_visit: str
    status: str
    booking_time: datetime
    confirmation_time: datetime | None = None

    class Config:
        from_attributes = True


class AppointmentDetailResponse(AppointmentResponse):
    slot_date: date
    start_time: time
    end_time: time
    doctor_id: int
    doctor_name: str
    specialty: str
    consultation_fee: Decimal


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(data: CreateAppointmentRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return book_appointment(
            slot_id=data.slot_id,
            patient=data.model_dump(exclude={'slot_id'}),
            db=db,
        )
    except BookingError as exc:
        raise as_http_exception(exc) from exc


@router.post('/{appointment_id}/confirm', response_model=AppointmentResponse)
def confirm(appointment_id: int, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return confirm_appointment(appointment_id, db)
    except BookingError as exc:
        raise as_http_exception(exc) from exc


@router.post('/{appointment_id}/cancel', response_model=AppointmentResponse)
def cancel(appointment_id: int, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return cancel_appointment(appointment_id, db)
    except BookingError as exc:
        raise as_http_exception(exc) from exc


@router.get('', response_model=list[AppointmentDetailResponse])
def list_all_appointments(
    patient_email: str | None = Query(default=None),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return [
            AppointmentDetailResponse(**summary._asdict())
            for summary in list_appointments(db, patient_email=patient_email)
        ]
    except SQLAlchemyError as exc:
        raise as_http_exception(storage_error(exc)) from exc
