import logging
from datetime import datetime

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from clinic_booking.core import config
from clinic_booking.database import Base, SessionLocal, engine, ensure_booking_schema
from clinic_booking.models import appointment, doctor, slot  # noqa: F401
from clinic_booking.routes import appointment_routes, dashboard_routes, doctor_routes, slot_routes
from clinic_booking.services.expiry_sweeper import ExpirySweeper

logging.basicConfig(
    level=config.LOG_LEVEL,
    format='%(asctime)s %(levelname)s %(name)s: %(message)s',
)
logger = logging.getLogger(__name__)

app = FastAPI(title='Clinic Booking API')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

expiry_sweeper = ExpirySweeper(
    SessionLocal,
    interval_seconds=config.SWEEP_INTERVAL_SECONDS,
    grace_seconds=config.PENDING_GRACE_SECONDS,
)


@app.on_event('startup')
def initialize_database() -> None:
    config.validate_runtime_config()
    try:
        Base.metadata.create_all(bind=engine)
        ensure_booking_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and Postgres credentials.')


@app.on_event('startup')
def start_expiry_sweeper() -> None:
    if config.SWEEPER_ENABLED:
        expiry_sweeper.start()


@app.on_event('shutdown')
def stop_expiry_sweeper() -> None:
    expiry_sweeper.stop()


@app.get('/')
def root():
    return {'status': 'Clinic Booking API Running'}


@app.get('/health')
def health():
    return {'status': 'ok', 'sweeper_running': expiry_sweeper.is_running, 'timestamp': datetime.now()}


app.include_router(doctor_routes.router, prefix='/api/doctors')
app.include_router(slot_routes.router, prefix='/api/slots')
app.include_router(appointment_routes.router, prefix='/api/appointments')
app.include_router(dashboard_routes.router, prefix='/api/dashboard')
