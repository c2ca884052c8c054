"""
Expiry sweeper for unconfirmed bookings.

A booking reserves its slot before the patient confirms. Appointments left
PENDING past the grace window are failed and their slots released, one
set-based transaction per tick.
"""

import logging
from datetime import datetime, timedelta

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.orm import Session, sessionmaker

from clinic_booking.core import config
from clinic_booking.core.errors import LockTimeout, StorageUnavailable
from clinic_booking.database import write_transaction
from clinic_booking.models.appointment import FAILED, PENDING, Appointment
from clinic_booking.models.slot import Slot

logger = logging.getLogger(__name__)

SWEEP_JOB_ID = 'expire_pending_appointments'
STARTUP_SWEEP_JOB_ID = 'expire_pending_appointments_startup'
STARTUP_SWEEP_DELAY_SECONDS = 10


def expire_pending_appointments(
    db: Session,
    now: datetime | None = None,
    grace_seconds: int = config.PENDING_GRACE_SECONDS,
) -> list[int]:
    """
    Fail every PENDING appointment older than the grace window and free its slot.

    Args:
        db: Session the tick runs in
        now: Reference time, defaults to the current time
        grace_seconds: How long an appointment may stay PENDING

    Returns:
        Ids of the appointments moved to FAILED, empty when nothing qualified
    """
    cutoff = (now or datetime.now()) - timedelta(seconds=grace_seconds)

    with write_transaction(db):
        expired_rows = db.query(Appointment.id, Appointment.slot_id).filter(
            Appointment.status == PENDING,
            Appointment.booking_time < cutoff,
        ).with_for_update().all()

        if not expired_rows:
            return []

        appointment_ids = [row.id for row in expired_rows]
        slot_ids = {row.slot_id for row in expired_rows}

        db.query(Appointment).filter(
            Appointment.id.in_(appointment_ids),
            Appointment.status == PENDING,
        ).update({Appointment.status: FAILED}, synchronize_session=False)

        db.query(Slot).filter(
            Slot.id.in_(slot_ids),
        ).update({Slot.is_booked: False}, synchronize_session=False)

    # Bulk updates bypass the identity map.
    db.expire_all()
    return appointment_ids


class ExpirySweeper:
    """
    Periodic job that reclaims slots held by abandoned PENDING bookings.
    Each tick is independent and idempotent; a failed tick is retried by the next one.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        interval_seconds: int = config.SWEEP_INTERVAL_SECONDS,
        grace_seconds: int = config.PENDING_GRACE_SECONDS,
    ):
        self.session_factory = session_factory
        self.interval_seconds = interval_seconds
        self.grace_seconds = grace_seconds
        self.scheduler: BackgroundScheduler | None = None
        self.is_running = False

    def run_once(self, now: datetime | None = None) -> list[int]:
        db = self.session_factory()
        try:
            expired_ids = expire_pending_appointments(db, now=now, grace_seconds=self.grace_seconds)
        except (StorageUnavailable, LockTimeout):
            logger.exception('Expiry sweep failed; retrying on the next tick.')
            return []
        finally:
            db.close()

        if expired_ids:
            logger.info('Expired %d pending bookings: %s', len(expired_ids), expired_ids)
        return expired_ids

    def start(self) -> None:
        if self.is_running:
            return

        self.scheduler = BackgroundScheduler()
        self.scheduler.add_job(
            self.run_once,
            trigger=IntervalTrigger(seconds=self.interval_seconds),
            id=SWEEP_JOB_ID,
            name='Expire pending appointments',
            coalesce=True,
            max_instances=1,
        )
        self.scheduler.add_job(
            self.run_once,
            trigger='date',
            run_date=datetime.now() + timedelta(seconds=STARTUP_SWEEP_DELAY_SECONDS),
            id=STARTUP_SWEEP_JOB_ID,
            name='Expire pending appointments (startup)',
        )
        self.scheduler.start()
        self.is_running = True
        logger.info(
            'Expiry sweeper started (every %ss, grace window %ss)',
            self.interval_seconds,
            self.grace_seconds,
        )

    def stop(self) -> None:
        if not self.is_running:
            return

        self.scheduler.shutdown(wait=False)
        self.scheduler = None
        self.is_running = False
        logger.info('Expiry sweeper stopped')
