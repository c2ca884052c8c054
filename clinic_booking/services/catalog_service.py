"""Doctor and slot catalog.

Plain create/read operations around the booking core. Slots are created
free; only the booking and lifecycle services change ``is_booked``.
"""

from datetime import date, datetime, time
from decimal import Decimal
from typing import NamedTuple

from sqlalchemy.orm import Session

from clinic_booking.core.errors import DoctorNotFound, DuplicateRecord, ValidationFailed
from clinic_booking.database import write_transaction
from clinic_booking.models.doctor import Doctor
from clinic_booking.models.slot import Slot


class AvailableSlot(NamedTuple):
    """Free slot joined with its doctor."""
    id: int
    doctor_id: int
    slot_date: date
    start_time: time
    end_time: time
    is_booked: bool
    doctor_name: str
    specialty: str
    consultation_fee: Decimal


def create_doctor(
    db: Session,
    name: str,
    email: str,
    specialty: str,
    consultation_fee: Decimal,
) -> Doctor:
    normalized_email = email.strip().lower()

    with write_transaction(db):
        existing = db.query(Doctor.id).filter(Doctor.email == normalized_email).first()
        if existing:
            raise DuplicateRecord('A doctor with this email already exists.')

        doctor = Doctor(
            name=name.strip(),
            email=normalized_email,
            specialty=specialty.strip(),
            consultation_fee=consultation_fee,
            created_at=datetime.now(),
        )
        db.add(doctor)
        db.flush()

    return doctor


def list_doctors(db: Session) -> list[Doctor]:
    return db.query(Doctor).order_by(Doctor.name.asc(), Doctor.id.asc()).all()


def get_doctor(db: Session, doctor_id: int) -> Doctor:
    doctor = db.query(Doctor).filter(Doctor.id == doctor_id).first()
    if doctor is None:
        raise DoctorNotFound(doctor_id)
    return doctor


def create_slot(
    db: Session,
    doctor_id: int,
    slot_date: date,
    start_time: time,
    end_time: time,
) -> Slot:
    if end_time <= start_time:
        raise ValidationFailed('Slot end time must be after its start time.')

    with write_transaction(db):
        doctor = db.query(Doctor.id).filter(Doctor.id == doctor_id).first()
        if doctor is None:
            raise DoctorNotFound(doctor_id)

        existing = db.query(Slot.id).filter(
            Slot.doctor_id == doctor_id,
            Slot.slot_date == slot_date,
            Slot.start_time == start_time,
        ).first()
        if existing:
            raise DuplicateRecord('This doctor already has a slot starting at that time.')

        slot = Slot(
            doctor_id=doctor_id,
            slot_date=slot_date,
            start_time=start_time,
            end_time=end_time,
            is_booked=False,
            created_at=datetime.now(),
        )
        db.add(slot)
        db.flush()

    return slot


def list_available_slots(
    db: Session,
    doctor_id: int | None = None,
    today: date | None = None,
) -> list[AvailableSlot]:
    today = today or date.today()

    query = db.query(
        Slot.id,
        Slot.doctor_id,
        Slot.slot_date,
        Slot.start_time,
        Slot.end_time,
        Slot.is_booked,
        Doctor.name,
        Doctor.specialty,
        Doctor.consultation_fee,
    ).join(Doctor, Slot.doctor_id == Doctor.id).filter(
        Slot.is_booked.is_(False),
        Slot.slot_date >= today,
    )

    if doctor_id is not None:
        query = query.filter(Slot.doctor_id == doctor_id)

    rows = query.order_by(Slot.slot_date.asc(), Slot.start_time.asc(), Slot.id.asc()).all()
    return [AvailableSlot(*row) for row in rows]
