"""Appointment model definitions."""

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from clinic_booking.database import Base
from clinic_booking.models.slot import Slot

PENDING = "PENDING"
CONFIRMED = "CONFIRMED"
CANCELLED = "CANCELLED"
FAILED = "FAILED"

ALL_STATUSES = (PENDING, CONFIRMED, CANCELLED, FAILED)
# Statuses that hold a claim on the slot.
ACTIVE_STATUSES = (PENDING, CONFIRMED)


class Appointment(Base):
    """Represents one patient's claim on a slot."""
    __tablename__ = "appointments"
    __table_args__ = (
        CheckConstraint(
            "status IN ('PENDING', 'CONFIRMED', 'CANCELLED', 'FAILED')",
            name="valid_status",
        ),
    )

    id = Column(Integer, primary_key=True)
    slot_id = Column(Integer, ForeignKey("slots.id", ondelete="CASCADE"), nullable=False)
    patient_name = Column(String(255), nullable=False)
    patient_email = Column(String(255), nullable=False)
    patient_phone = Column(String(20), nullable=False)
    patient_age = Column(Integer, nullable=False)
    reason_for_visit = Column(Text, nullable=False)
    status = Column(String(20), default=PENDING, nullable=False)
    booking_time = Column(DateTime, nullable=False)
    confirmation_time = Column(DateTime, nullable=True)

    slot = relationship(Slot)
