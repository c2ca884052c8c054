"""Booking transaction coordinator.

Claims a slot and creates its PENDING appointment as one atomic unit. The
slot row is locked before its ``is_booked`` flag is read, so concurrent
bookers of the same slot are serialized and every loser sees the winner's
committed claim.
"""

import logging
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from clinic_booking.core.errors import SlotAlreadyBooked, SlotNotFound, ValidationFailed
from clinic_booking.database import write_transaction
from clinic_booking.models.appointment import PENDING, Appointment
from clinic_booking.models.slot import Slot

logger = logging.getLogger(__name__)

PATIENT_FIELDS = (
    'patient_name',
    'patient_email',
    'patient_phone',
    'patient_age',
    'reason_for_visit',
)


def validate_patient_details(patient: Mapping[str, Any]) -> dict[str, Any]:
    missing = [
        field for field in PATIENT_FIELDS
        if patient.get(field) is None
        or (isinstance(patient.get(field), str) and not patient.get(field).strip())
    ]
    if missing:
        raise ValidationFailed(f"Missing required patient fields: {', '.join(missing)}.")

    age = patient['patient_age']
    if isinstance(age, bool) or not isinstance(age, int) or age <= 0:
        raise ValidationFailed('Patient age must be a positive whole number.')

    return {
        'patient_name': str(patient['patient_name']).strip(),
        'patient_email': str(patient['patient_email']).strip().lower(),
        'patient_phone': str(patient['patient_phone']).strip(),
        'patient_age': age,
        'reason_for_visit': str(patient['reason_for_visit']).strip(),
    }


def book_appointment(
    slot_id: int,
    patient: Mapping[str, Any],
    db: Session,
    now: datetime | None = None,
) -> Appointment:
    details = validate_patient_details(patient)

    with write_transaction(db):
        slot = db.query(Slot).filter(Slot.id == slot_id).with_for_update().populate_existing().one_or_none()

        if slot is None:
            raise SlotNotFound(slot_id)

        if slot.is_booked:
            logger.info('Rejected booking for slot %s: already booked', slot_id)
            raise SlotAlreadyBooked(slot_id)

        # Stamped once the slot lock is held.
        booking_time = now or datetime.now()

        appointment = Appointment(
            slot_id=slot.id,
            status=PENDING,
            booking_time=booking_time,
            **details,
        )
        db.add(appointment)
        slot.is_booked = True
        db.flush()

    logger.info('Slot %s claimed by appointment %s', slot_id, appointment.id)
    return appointment
