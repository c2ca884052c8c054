from collections.abc import Iterator
from contextlib import contextmanager
from threading import Lock

from sqlalchemy import create_engine, event, inspect, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from clinic_booking.core import config
from clinic_booking.core.errors import storage_error

WRITE_LOCK_OPTION = 'clinic_booking_write_lock'


def _configure_sqlite_connection(dbapi_connection, connection_record) -> None:
    # pysqlite's own deferred BEGIN is replaced by the begin listener below.
    dbapi_connection.isolation_level = None
    cursor = dbapi_connection.cursor()
    cursor.execute('PRAGMA foreign_keys=ON')
    # Readers keep working from their snapshot while a writer holds the lock.
    cursor.execute('PRAGMA journal_mode=WAL')
    cursor.close()


def _begin(connection) -> None:
    if connection.get_execution_options().get(WRITE_LOCK_OPTION):
        connection.exec_driver_sql('BEGIN IMMEDIATE')
    else:
        connection.exec_driver_sql('BEGIN')


def build_engine(database_url: str, lock_timeout_seconds: float = config.LOCK_TIMEOUT_SECONDS) -> Engine:
    backend_name = make_url(database_url).get_backend_name()

    if backend_name == 'sqlite':
        # SQLite has no row locks; write transactions take the database write
        # lock up front with BEGIN IMMEDIATE so conflicting writers queue.
        # Everything else gets a deferred BEGIN and never waits on writers.
        engine = create_engine(
            database_url,
            connect_args={'timeout': lock_timeout_seconds, 'check_same_thread': False},
        )
        event.listen(engine, 'connect', _configure_sqlite_connection)
        event.listen(engine, 'begin', _begin)
        return engine

    if backend_name == 'postgresql':
        lock_timeout_ms = int(lock_timeout_seconds * 1000)
        return create_engine(
            database_url,
            pool_pre_ping=True,
            connect_args={'options': f'-c lock_timeout={lock_timeout_ms}'},
        )

    return create_engine(database_url, pool_pre_ping=True)


engine = build_engine(config.DATABASE_URL)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_booking_schema_checked = False


def begin_write(db: Session) -> None:
    """Open a transaction on ``db`` that holds the write lock until it ends.

    A read transaction still open on the session is committed first; the
    write lock is only ever taken when a transaction begins.
    """
    if db.in_transaction():
        db.commit()
    db.connection(execution_options={WRITE_LOCK_OPTION: True})


@contextmanager
def write_transaction(db: Session) -> Iterator[Session]:
    """Run a read-modify-write unit against both stores.

    Commits when the block finishes. Any error rolls the whole unit back;
    storage failures surface as ``StorageUnavailable`` or ``LockTimeout``.
    """
    try:
        begin_write(db)
        yield db
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise storage_error(exc) from exc
    except Exception:
        db.rollback()
        raise


def ensure_booking_schema(bind: Engine | None = None) -> None:
    global _booking_schema_checked

    if _booking_schema_checked:
        return

    with _schema_lock:
        if _booking_schema_checked:
            return

        target = bind or engine
        table_names = set(inspect(target).get_table_names())
        index_statements = []

        if 'slots' in table_names:
            index_statements.append(
                'CREATE INDEX IF NOT EXISTS idx_slots_doctor_date ON slots(doctor_id, slot_date)'
            )
        if 'appointments' in table_names:
            index_statements.extend([
                'CREATE INDEX IF NOT EXISTS idx_appointments_status ON appointments(status)',
                'CREATE INDEX IF NOT EXISTS idx_appointments_status_booking_time '
                'ON appointments(status, booking_time)',
                'CREATE INDEX IF NOT EXISTS idx_appointments_patient_email ON appointments(patient_email)',
            ])

        with target.begin() as connection:
            for statement in index_statements:
                connection.execute(text(statement))

        _booking_schema_checked = True


def get_db() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
