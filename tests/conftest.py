import os
from datetime import date, datetime, time
from decimal import Decimal

import pytest
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')
os.environ.setdefault('SWEEPER_ENABLED', 'false')

from clinic_booking.database import Base, build_engine  # noqa: E402
from clinic_booking.models.appointment import Appointment  # noqa: E402
from clinic_booking.models.doctor import Doctor  # noqa: E402
from clinic_booking.models.slot import Slot  # noqa: E402

SLOT_DATE = date(2026, 1, 5)


@pytest.fixture
def database_url(tmp_path) -> str:
    return f"sqlite:///{tmp_path / 'booking.db'}"


@pytest.fixture
def booking_engine(database_url):
    engine = build_engine(database_url, lock_timeout_seconds=10)
    Base.metadata.create_all(bind=engine, tables=[Doctor.__table__, Slot.__table__, Appointment.__table__])
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def session_factory(booking_engine):
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=booking_engine)


@pytest.fixture
def booking_db(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def make_slot(session_factory):
    """Create a free slot in its own committed session and return its id."""
    counter = {'value': 0}

    def _make_slot(slot_date: date = SLOT_DATE, start_hour: int = 9) -> int:
        counter['value'] += 1
        db = session_factory()
        try:
            doctor = Doctor(
                name=f'Dr. Example {counter["value"]}',
                email=f'doctor{counter["value"]}@clinic.example',
                specialty='General Physician',
                consultation_fee=Decimal('50.00'),
                created_at=datetime(2026, 1, 1, 8, 0),
            )
            db.add(doctor)
            db.flush()
            slot = Slot(
                doctor_id=doctor.id,
                slot_date=slot_date,
                start_time=time(start_hour, 0),
                end_time=time(start_hour, 30),
                is_booked=False,
                created_at=datetime(2026, 1, 1, 8, 0),
            )
            db.add(slot)
            db.commit()
            return slot.id
        finally:
            db.close()

    return _make_slot


def patient_details(name: str = 'Ada Patient', email: str = 'ada@example.com') -> dict:
    return {
        'patient_name': name,
        'patient_email': email,
        'patient_phone': '555-0100',
        'patient_age': 34,
        'reason_for_visit': 'Annual check-up',
    }


@pytest.fixture
def patient():
    return patient_details
