"""Read-only rollups over slots and appointments."""

from datetime import date, datetime, time
from decimal import Decimal
from typing import NamedTuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from clinic_booking.models.appointment import CONFIRMED, PENDING, Appointment
from clinic_booking.models.doctor import Doctor
from clinic_booking.models.slot import Slot


class DashboardStats(NamedTuple):
    """Point-in-time counts for the admin dashboard."""
    total_doctors: int
    available_slots: int
    pending_appointments: int
    confirmed_appointments: int


class AppointmentSummary(NamedTuple):
    """Appointment joined with its slot and doctor."""
    id: int
    slot_id: int
    patient_name: str
    patient_email: str
    patient_phone: str
    patient_age: int
    reason_for_visit: str
    status: str
    booking_time: datetime
    confirmation_time: datetime | None
    slot_date: date
    start_time: time
    end_time: time
    doctor_id: int
    doctor_name: str
    specialty: str
    consultation_fee: Decimal


def get_dashboard_stats(db: Session, today: date | None = None) -> DashboardStats:
    today = today or date.today()

    available_slots = db.query(func.count(Slot.id)).filter(
        Slot.is_booked.is_(False),
        Slot.slot_date >= today,
    ).scalar_subquery()
    pending_appointments = db.query(func.count(Appointment.id)).filter(
        Appointment.status == PENDING,
    ).scalar_subquery()
    confirmed_appointments = db.query(func.count(Appointment.id)).filter(
        Appointment.status == CONFIRMED,
    ).scalar_subquery()
    total_doctors = db.query(func.count(Doctor.id)).scalar_subquery()

    # One statement keeps the four counts consistent with each other.
    row = db.query(
        total_doctors,
        available_slots,
        pending_appointments,
        confirmed_appointments,
    ).one()

    return DashboardStats(*(int(value or 0) for value in row))


def list_appointments(db: Session, patient_email: str | None = None) -> list[AppointmentSummary]:
    query = db.query(
        Appointment.id,
        Appointment.slot_id,
        Appointment.patient_name,
        Appointment.patient_email,
        Appointment.patient_phone,
        Appointment.patient_age,
        Appointment.reason_for_visit,
        Appointment.status,
        Appointment.booking_time,
        Appointment.confirmation_time,
        Slot.slot_date,
        Slot.start_time,
        Slot.end_time,
        Doctor.id,
        Doctor.name,
        Doctor.specialty,
        Doctor.consultation_fee,
    ).join(Slot, Appointment.slot_id == Slot.id).join(Doctor, Slot.doctor_id == Doctor.id)

    if patient_email is not None:
        normalized_email = patient_email.strip().lower()
        if normalized_email:
            query = query.filter(Appointment.patient_email == normalized_email)

    rows = query.order_by(Appointment.booking_time.desc(), Appointment.id.desc()).all()
    return [AppointmentSummary(*row) for row in rows]
