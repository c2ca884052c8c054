"""Doctor model definitions."""

from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, Numeric, String

from clinic_booking.database import Base


class Doctor(Base):
    """Represents a doctor whose time can be booked."""
    __tablename__ = "doctors"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    specialty = Column(String(100), nullable=False)
    consultation_fee = Column(Numeric(10, 2), nullable=False)
    created_at = Column(DateTime, default=datetime.now, nullable=False)
