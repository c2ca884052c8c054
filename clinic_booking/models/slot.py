"""Slot model definitions."""

from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, Time, UniqueConstraint
from sqlalchemy.orm import relationship

from clinic_booking.database import Base
from clinic_booking.models.doctor import Doctor


class Slot(Base):
    """Represents a bookable time window for one doctor.

    ``is_booked`` is true exactly while one PENDING or CONFIRMED appointment
    references the slot.
    """
    __tablename__ = "slots"
    __table_args__ = (
        UniqueConstraint("doctor_id", "slot_date", "start_time", name="uq_slots_doctor_date_start"),
    )

    id = Column(Integer, primary_key=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id", ondelete="CASCADE"), nullable=False)
    slot_date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    is_booked = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.now, nullable=False)

    doctor = relationship(Doctor)
