import logging
from datetime import datetime

from sqlalchemy.orm import Session

from clinic_booking.core.errors import AppointmentNotActive, AppointmentNotFound, NotFoundOrAlreadyProcessed
from clinic_booking.database import write_transaction
from clinic_booking.models.appointment import ACTIVE_STATUSES, CANCELLED, CONFIRMED, PENDING, Appointment
from clinic_booking.models.slot import Slot

logger = logging.getLogger(__name__)


def confirm_appointment(appointment_id: int, db: Session, now: datetime | None = None) -> Appointment:
    """Move a PENDING appointment to CONFIRMED.

    A missing id and a non-PENDING appointment fail the same way. The slot
    stays booked.
    """
    with write_transaction(db):
        appointment = db.query(Appointment).filter(
            Appointment.id == appointment_id,
            Appointment.status == PENDING,
        ).with_for_update().populate_existing().one_or_none()

        if appointment is None:
            raise NotFoundOrAlreadyProcessed(appointment_id)

        appointment.status = CONFIRMED
        appointment.confirmation_time = now or datetime.now()

    logger.info('Appointment %s confirmed', appointment_id)
    return appointment


def cancel_appointment(appointment_id: int, db: Session) -> Appointment:
    """Cancel a PENDING or CONFIRMED appointment and free its slot in the same transaction."""
    with write_transaction(db):
        appointment = db.query(Appointment).filter(
            Appointment.id == appointment_id,
        ).with_for_update().populate_existing().one_or_none()

        if appointment is None:
            raise AppointmentNotFound(appointment_id)

        # The slot of a CANCELLED or FAILED appointment may already belong to a newer booking.
        if appointment.status not in ACTIVE_STATUSES:
            raise AppointmentNotActive(appointment_id)

        slot = db.query(Slot).filter(Slot.id == appointment.slot_id).with_for_update().populate_existing().one()
        appointment.status = CANCELLED
        slot.is_booked = False

    logger.info('Appointment %s cancelled, slot %s released', appointment_id, appointment.slot_id)
    return appointment
