from datetime import time

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, field_validator, model_validator
from sqlalchemy.orm import Session

from clinic_scheduling.auth.dependencies import get_current_caller
from clinic_scheduling.auth.permissions import CallerContext, require_admin, resolve_dentist_scope
from clinic_scheduling.core import config
from clinic_scheduling.core.errors import ValidationError
from clinic_scheduling.models.dentist import Dentist, WorkingHours
from clinic_scheduling.routes.common import ensure_database_ready, get_db, translate_errors
from clinic_scheduling.scheduling import queries
from clinic_scheduling.scheduling.locks import dentist_locks

router = APIRouter(tags=['dentists'])

WEEKDAY_NAMES = ('Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday', 'Sunday')


class WorkingHoursEntry(BaseModel):
    weekday: int
    start_time: time
    end_time: time

    @field_validator('weekday')
    @classmethod
    def validate_weekday(cls, value: int) -> int:
        if not 0 <= value <= 6:
            raise ValueError('Weekday must be between 0 (Monday) and 6 (Sunday).')
        return value

    @model_validator(mode='after')
    def validate_hours(self) -> 'WorkingHoursEntry':
        if self.end_time <= self.start_time:
            raise ValueError('Working hours must end after they start.')
        return self


class WorkingHoursRequest(BaseModel):
    days: list[WorkingHoursEntry]

    @field_validator('days')
    @classmethod
    def validate_unique_weekdays(cls, value: list[WorkingHoursEntry]) -> list[WorkingHoursEntry]:
        weekdays = [entry.weekday for entry in value]
        if len(weekdays) != len(set(weekdays)):
            raise ValueError('Each weekday may only appear once.')
        return sorted(value, key=lambda entry: entry.weekday)


class CreateDentistRequest(BaseModel):
    name: str
    email: str
    working_hours: WorkingHoursRequest | None = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Name is required.')
        return normalized

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        normalized = value.strip().lower()
        if '@' not in normalized:
            raise ValueError('A valid email is required.')
        return normalized


class UpdateDentistStatusRequest(BaseModel):
    is_active: bool


class WorkingHoursResponse(BaseModel):
    weekday: int
    weekday_name: str
    start_time: time
    end_time: time


class DentistResponse(BaseModel):
    id: int
    name: str
    email: str | None = None
    is_active: bool
    working_hours: list[WorkingHoursResponse]


def default_working_hours() -> list[WorkingHoursEntry]:
    return [
        WorkingHoursEntry(
            weekday=weekday,
            start_time=config.DEFAULT_WORK_TIME_FROM,
            end_time=config.DEFAULT_WORK_TIME_TO,
        )
        for weekday in config.DEFAULT_WORK_DAYS
    ]


def working_hours_response(rows: list[WorkingHours]) -> list[WorkingHoursResponse]:
    return [
        WorkingHoursResponse(
            weekday=row.weekday,
            weekday_name=WEEKDAY_NAMES[row.weekday],
            start_time=row.start_time,
            end_time=row.end_time,
        )
        for row in sorted(rows, key=lambda row: row.weekday)
    ]


def dentist_response(dentist: Dentist) -> DentistResponse:
    return DentistResponse(
        id=dentist.id,
        name=dentist.name,
        email=dentist.email,
        is_active=dentist.is_active,
        working_hours=working_hours_response(dentist.working_hours),
    )


@router.get('', response_model=list[DentistResponse])
def list_dentists(
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(get_current_caller),
):
    ensure_database_ready()

    with translate_errors(db):
        scoped_dentist_id = resolve_dentist_scope(caller, None)
        query = db.query(Dentist)
        if scoped_dentist_id is not None:
            query = query.filter(Dentist.id == scoped_dentist_id)
        return [dentist_response(dentist) for dentist in query.order_by(Dentist.name.asc()).all()]


@router.post('', response_model=DentistResponse, status_code=status.HTTP_201_CREATED)
def create_dentist(
    data: CreateDentistRequest,
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(get_current_caller),
):
    ensure_database_ready()

    with translate_errors(db):
        require_admin(caller)
        if db.query(Dentist).filter(Dentist.email == data.email).first():
            raise ValidationError('A dentist with this email already exists.')

        entries = data.working_hours.days if data.working_hours else default_working_hours()
        dentist = Dentist(
            name=data.name,
            email=data.email,
            is_active=True,
            working_hours=[
                WorkingHours(weekday=entry.weekday, start_time=entry.start_time, end_time=entry.end_time)
                for entry in entries
            ],
        )
        db.add(dentist)
        db.commit()
        db.refresh(dentist)

        return dentist_response(dentist)


@router.get('/{dentist_id}/working-hours', response_model=list[WorkingHoursResponse])
def get_working_hours(
    dentist_id: int,
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(get_current_caller),
):
    ensure_database_ready()

    with translate_errors(db):
        resolve_dentist_scope(caller, dentist_id)
        dentist = queries.get_dentist(db, dentist_id)
        return working_hours_response(dentist.working_hours)


@router.put('/{dentist_id}/working-hours', response_model=list[WorkingHoursResponse])
def replace_working_hours(
    dentist_id: int,
    data: WorkingHoursRequest,
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(get_current_caller),
):
    ensure_database_ready()

    with translate_errors(db):
        require_admin(caller)
        queries.get_dentist(db, dentist_id)

        # Bookings check against the template, so it changes under the same lock.
        with dentist_locks.hold(dentist_id):
            dentist = queries.get_dentist(db, dentist_id, for_update=True)
            # Old rows go first so the (dentist_id, weekday) constraint never sees duplicates.
            db.query(WorkingHours).filter(WorkingHours.dentist_id == dentist_id).delete()
            db.add_all([
                WorkingHours(
                    dentist_id=dentist_id,
                    weekday=entry.weekday,
                    start_time=entry.start_time,
                    end_time=entry.end_time,
                )
                for entry in data.days
            ])
            db.commit()
            db.refresh(dentist)

        return working_hours_response(dentist.working_hours)


@router.put('/{dentist_id}/status', response_model=DentistResponse)
def update_dentist_status(
    dentist_id: int,
    data: UpdateDentistStatusRequest,
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(get_current_caller),
):
    ensure_database_ready()

    with translate_errors(db):
        require_admin(caller)

        with dentist_locks.hold(dentist_id):
            dentist = queries.get_dentist(db, dentist_id, for_update=True)
            dentist.is_active = data.is_active
            db.commit()
            db.refresh(dentist)

        return dentist_response(dentist)
