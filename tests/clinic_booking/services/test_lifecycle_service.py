import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime

import pytest

from clinic_booking.core.errors import (
    AppointmentNotActive,
    AppointmentNotFound,
    NotFoundOrAlreadyProcessed,
    SlotAlreadyBooked,
)
from clinic_booking.models.appointment import ACTIVE_STATUSES, CANCELLED, CONFIRMED, FAILED, PENDING, Appointment
from clinic_booking.models.slot import Slot
from clinic_booking.services.booking_service import book_appointment
from clinic_booking.services.lifecycle_service import cancel_appointment, confirm_appointment

BOOKED_AT = datetime(2026, 1, 2, 10, 0)
CONFIRMED_AT = datetime(2026, 1, 2, 10, 1)


def _slot_is_booked(db, slot_id: int) -> bool:
    return db.query(Slot).filter(Slot.id == slot_id).one().is_booked


def _set_status(db, appointment_id: int, status: str) -> None:
    db.query(Appointment).filter(Appointment.id == appointment_id).update({Appointment.status: status})
    db.commit()


def test_confirm_appointment_moves_pending_to_confirmed(booking_db, make_slot, patient) -> None:
    slot_id = make_slot()
    appointment = book_appointment(slot_id, patient(), booking_db, now=BOOKED_AT)

    confirmed = confirm_appointment(appointment.id, booking_db, now=CONFIRMED_AT)

    assert confirmed.status == CONFIRMED
    assert confirmed.confirmation_time == CONFIRMED_AT
    assert _slot_is_booked(booking_db, slot_id) is True


def test_confirm_appointment_rejects_unknown_id(booking_db) -> None:
    with pytest.raises(NotFoundOrAlreadyProcessed) as exception_info:
        confirm_appointment(404, booking_db)

    assert exception_info.value.status_code == 404
    assert exception_info.value.detail == 'Appointment not found or already processed.'


@pytest.mark.parametrize('status', [CONFIRMED, CANCELLED, FAILED])
def test_confirm_appointment_rejects_processed_appointment(booking_db, make_slot, patient, status: str) -> None:
    slot_id = make_slot()
    appointment = book_appointment(slot_id, patient(), booking_db, now=BOOKED_AT)
    _set_status(booking_db, appointment.id, status)

    with pytest.raises(NotFoundOrAlreadyProcessed):
        confirm_appointment(appointment.id, booking_db, now=CONFIRMED_AT)

    stored = booking_db.query(Appointment).filter(Appointment.id == appointment.id).one()
    assert stored.status == status
    assert stored.confirmation_time is None


@pytest.mark.parametrize('confirm_first', [False, True])
def test_cancel_appointment_releases_slot(booking_db, make_slot, patient, confirm_first: bool) -> None:
    slot_id = make_slot()
    appointment = book_appointment(slot_id, patient(), booking_db, now=BOOKED_AT)
    if confirm_first:
        confirm_appointment(appointment.id, booking_db, now=CONFIRMED_AT)

    cancelled = cancel_appointment(appointment.id, booking_db)

    assert cancelled.status == CANCELLED
    assert _slot_is_booked(booking_db, slot_id) is False


def test_cancel_appointment_returns_not_found_when_missing(booking_db) -> None:
    with pytest.raises(AppointmentNotFound) as exception_info:
        cancel_appointment(999, booking_db)

    assert exception_info.value.status_code == 404
    assert exception_info.value.detail == 'Appointment not found.'


@pytest.mark.parametrize('status', [CANCELLED, FAILED])
def test_cancel_appointment_leaves_rebooked_slot_alone(booking_db, make_slot, patient, status: str) -> None:
    slot_id = make_slot()
    stale = book_appointment(slot_id, patient(), booking_db, now=BOOKED_AT)
    _set_status(booking_db, stale.id, status)
    booking_db.query(Slot).filter(Slot.id == slot_id).update({Slot.is_booked: False})
    booking_db.commit()
    current = book_appointment(slot_id, patient(name='Bea Patient', email='bea@example.com'), booking_db)

    with pytest.raises(AppointmentNotActive) as exception_info:
        cancel_appointment(stale.id, booking_db)

    assert exception_info.value.status_code == 409
    assert _slot_is_booked(booking_db, slot_id) is True
    assert booking_db.query(Appointment).filter(Appointment.id == current.id).one().status == PENDING


def test_booking_lifecycle_scenario(booking_db, make_slot, patient) -> None:
    slot_id = make_slot()

    first = book_appointment(slot_id, patient(name='Patient A', email='a@example.com'), booking_db, now=BOOKED_AT)
    assert first.status == PENDING
    assert _slot_is_booked(booking_db, slot_id) is True

    with pytest.raises(SlotAlreadyBooked):
        book_appointment(slot_id, patient(name='Patient B', email='b@example.com'), booking_db)

    assert confirm_appointment(first.id, booking_db, now=CONFIRMED_AT).status == CONFIRMED
    assert cancel_appointment(first.id, booking_db).status == CANCELLED
    assert _slot_is_booked(booking_db, slot_id) is False

    second = book_appointment(slot_id, patient(name='Patient B', email='b@example.com'), booking_db)
    assert second.status == PENDING
    assert _slot_is_booked(booking_db, slot_id) is True


@pytest.mark.parametrize('round_number', range(3))
def test_cancel_racing_a_booking_keeps_slot_flag_consistent(
    session_factory,
    make_slot,
    patient,
    round_number: int,
) -> None:
    slot_id = make_slot()
    db = session_factory()
    try:
        current = book_appointment(slot_id, patient(), db, now=BOOKED_AT)
        confirm_appointment(current.id, db, now=CONFIRMED_AT)
    finally:
        db.close()
    barrier = threading.Barrier(3)

    def cancel() -> str:
        db = session_factory()
        try:
            barrier.wait()
            cancel_appointment(current.id, db)
            return 'cancelled'
        finally:
            db.close()

    def book() -> str:
        db = session_factory()
        try:
            barrier.wait()
            book_appointment(slot_id, patient(name='Bea Patient', email='bea@example.com'), db)
            return 'booked'
        except SlotAlreadyBooked:
            return 'conflict'
        finally:
            db.close()

    def observe() -> list[tuple[bool, int]]:
        db = session_factory()
        try:
            barrier.wait()
            observations = []
            for _ in range(20):
                slot = db.query(Slot).filter(Slot.id == slot_id).populate_existing().one()
                active = db.query(Appointment).filter(
                    Appointment.slot_id == slot_id,
                    Appointment.status.in_(ACTIVE_STATUSES),
                ).count()
                observations.append((slot.is_booked, active))
                db.rollback()
            return observations
        finally:
            db.close()

    with ThreadPoolExecutor(max_workers=3) as executor:
        cancel_future = executor.submit(cancel)
        book_future = executor.submit(book)
        observe_future = executor.submit(observe)
        outcomes = (cancel_future.result(), book_future.result())
        observations = observe_future.result()

    assert outcomes in (('cancelled', 'booked'), ('cancelled', 'conflict'))
    assert all(is_booked == (active == 1) for is_booked, active in observations)

    db = session_factory()
    try:
        active = db.query(Appointment).filter(
            Appointment.slot_id == slot_id,
            Appointment.status.in_(ACTIVE_STATUSES),
        ).count()
        assert _slot_is_booked(db, slot_id) is (active == 1)
        assert active == (1 if outcomes[1] == 'booked' else 0)
    finally:
        db.close()
