from datetime import datetime
from decimal import Decimal

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_booking.core.errors import BookingError, storage_error
from clinic_booking.database import get_db
from clinic_booking.dependencies import as_http_exception, ensure_database_ready
from clinic_booking.services.catalog_service import create_doctor, get_doctor, list_doctors

router = APIRouter(tags=['doctors'])


class CreateDoctorRequest(BaseModel):
    name: str
    email: str
    specialty: str
    consultation_fee: Decimal

    @field_validator('name', 'specialty')
    @classmethod
    def validate_required_text(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('This field is required.')
        return normalized

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        normalized = value.strip().lower()
        if '@' not in normalized:
            raise ValueError('Doctor email is invalid.')
        return normalized

    @field_validator('consultation_fee')
    @classmethod
    def validate_consultation_fee(cls, value: Decimal) -> Decimal:
        if value <= 0:
            raise ValueError('Consultation fee must be positive.')
        return value


class DoctorResponse(BaseModel):
    id: int
    name: str
    email: str
    specialty: str
    consultation_fee: Decimal
    created_at: datetime

    class Config:
        from_attributes = True


@router.post('', response_model=DoctorResponse, status_code=status.HTTP_201_CREATED)
def add_doctor(data: CreateDoctorRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return create_doctor(
            db,
            name=data.name,
            email=data.email,
            specialty=data.specialty,
            consultation_fee=data.consultation_fee,
        )
    except BookingError as exc:
        raise as_http_exception(exc) from exc


@router.get('', response_model=list[DoctorResponse])
def list_all_doctors(db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return list_doctors(db)
    except SQLAlchemyError as exc:
        raise as_http_exception(storage_error(exc)) from exc


@router.get('/{doctor_id}', response_model=DoctorResponse)
def read_doctor(doctor_id: int, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return get_doctor(db, doctor_id)
    except BookingError as exc:
        raise as_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise as_http_exception(storage_error(exc)) from exc
