from datetime import date, time
from decimal import Decimal

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_booking.core.errors import BookingError, storage_error
from clinic_booking.database import get_db
from clinic_booking.dependencies import as_http_exception, ensure_database_ready
from clinic_booking.services.catalog_service import create_slot, list_available_slots

router = APIRouter(tags=['slots'])


class CreateSlotRequest(BaseModel):
    doctor_id: int
    slot_date: date
    start_time: time
    end_time: time


class SlotResponse(BaseModel):
    id: int
    doctor_id: int
    slot_date: date
    start_time: time
    end_time: time
    is_booked: bool

    class Config:
        from_attributes = True


class AvailableSlotResponse(SlotResponse):
    doctor_name: str
    specialty: str
    consultation_fee: Decimal


@router.post('', response_model=SlotResponse, status_code=status.HTTP_201_CREATED)
def add_slot(data: CreateSlotRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return create_slot(
            db,
            doctor_id=data.doctor_id,
            slot_date=data.slot_date,
            start_time=data.start_time,
            end_time=data.end_time,
        )
    except BookingError as exc:
        raise as_http_exception(exc) from exc


@router.get('/available', response_model=list[AvailableSlotResponse])
def list_open_slots(
    doctor_id: int | None = Query(default=None),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return [
            AvailableSlotResponse(**slot._asdict())
            for slot in list_available_slots(db, doctor_id=doctor_id)
        ]
    except SQLAlchemyError as exc:
        raise as_http_exception(storage_error(exc)) from exc
