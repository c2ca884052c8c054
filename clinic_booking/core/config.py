import os

from dotenv import load_dotenv


load_dotenv()


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int(value: str | None, default: int) -> int:
    if value is None or not value.strip():
        return default
    return int(value)


def _get_float(value: str | None, default: float) -> float:
    if value is None or not value.strip():
        return default
    return float(value)


APP_ENV = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./clinic_booking.db")

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "*").split(",")
    if origin.strip()
]

SWEEPER_ENABLED = _get_bool(os.getenv("SWEEPER_ENABLED"), default=True)
SWEEP_INTERVAL_SECONDS = _get_int(os.getenv("SWEEP_INTERVAL_SECONDS"), 60)
PENDING_GRACE_SECONDS = _get_int(os.getenv("PENDING_GRACE_SECONDS"), 120)
LOCK_TIMEOUT_SECONDS = _get_float(os.getenv("LOCK_TIMEOUT_SECONDS"), 10.0)


def validate_runtime_config() -> None:
    if SWEEP_INTERVAL_SECONDS <= 0:
        raise RuntimeError("SWEEP_INTERVAL_SECONDS must be positive.")
    if PENDING_GRACE_SECONDS <= 0:
        raise RuntimeError("PENDING_GRACE_SECONDS must be positive.")
    if LOCK_TIMEOUT_SECONDS <= 0:
        raise RuntimeError("LOCK_TIMEOUT_SECONDS must be positive.")
    if APP_ENV.lower() == "production" and DATABASE_URL.startswith("sqlite"):
        raise RuntimeError("DATABASE_URL must point at Postgres in production.")
