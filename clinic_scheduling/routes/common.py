from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator
from zoneinfo import ZoneInfo

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_scheduling.core import config
from clinic_scheduling.core.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    SchedulingError,
    ValidationError,
)
from clinic_scheduling.database import SessionLocal, ensure_scheduling_schema
from clinic_scheduling.scheduling.booking import BookingOrchestrator, orchestrator

DATABASE_UNAVAILABLE_DETAIL = 'Database unavailable. Verify DATABASE_URL and database credentials.'

ERROR_STATUS_CODES = {
    ConflictError: status.HTTP_409_CONFLICT,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ValidationError: status.HTTP_400_BAD_REQUEST,
    AuthorizationError: status.HTTP_403_FORBIDDEN,
}


def ensure_database_ready() -> None:
    try:
        ensure_scheduling_schema()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_orchestrator() -> BookingOrchestrator:
    return orchestrator


def to_http_exception(exc: SchedulingError) -> HTTPException:
    status_code = ERROR_STATUS_CODES.get(type(exc), status.HTTP_400_BAD_REQUEST)
    return HTTPException(status_code=status_code, detail=exc.to_detail())


@contextmanager
def translate_errors(db: Session | None = None) -> Iterator[None]:
    try:
        yield
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        if db is not None:
            db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


def to_clinic_time(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value

    zone = timezone.utc if config.CLINIC_TIMEZONE.upper() == 'UTC' else ZoneInfo(config.CLINIC_TIMEZONE)
    return value.astimezone(zone).replace(tzinfo=None)
