from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_booking.core.errors import storage_error
from clinic_booking.database import get_db
from clinic_booking.dependencies import as_http_exception, ensure_database_ready
from clinic_booking.services.reporting_service import get_dashboard_stats

router = APIRouter(tags=['dashboard'])


class DashboardStatsResponse(BaseModel):
    total_doctors: int
    available_slots: int
    pending_appointments: int
    confirmed_appointments: int


@router.get('/stats', response_model=DashboardStatsResponse)
def read_dashboard_stats(db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return DashboardStatsResponse(**get_dashboard_stats(db)._asdict())
    except SQLAlchemyError as exc:
        raise as_http_exception(storage_error(exc)) from exc
