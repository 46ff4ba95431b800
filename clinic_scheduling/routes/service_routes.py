from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from clinic_scheduling.auth.dependencies import get_current_caller
from clinic_scheduling.auth.permissions import CallerContext, require_admin
from clinic_scheduling.core import config
from clinic_scheduling.core.errors import NotFoundError, ValidationError
from clinic_scheduling.models.service import Service
from clinic_scheduling.routes.common import ensure_database_ready, get_db, translate_errors
from clinic_scheduling.scheduling import queries
from clinic_scheduling.scheduling.locks import service_locks

router = APIRouter(tags=['services'])


def _validate_duration(value: int) -> int:
    if value not in config.SERVICE_DURATIONS_MINUTES:
        allowed = ', '.join(str(minutes) for minutes in config.SERVICE_DURATIONS_MINUTES)
        raise ValueError(f'Duration must be one of: {allowed} minutes.')
    return value


class CreateServiceRequest(BaseModel):
    name: str
    duration_minutes: int

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Service name is required.')
        return normalized

    @field_validator('duration_minutes')
    @classmethod
    def validate_duration_minutes(cls, value: int) -> int:
        return _validate_duration(value)


class UpdateServiceRequest(BaseModel):
    name: str | None = None
    duration_minutes: int | None = None
    is_active: bool | None = None

    @field_validator('duration_minutes')
    @classmethod
    def validate_duration_minutes(cls, value: int | None) -> int | None:
        if value is None:
            return None
        return _validate_duration(value)


class ServiceResponse(BaseModel):
    id: int
    name: str
    duration_minutes: int
    is_active: bool

    class Config:
        from_attributes = True


@router.get('', response_model=list[ServiceResponse])
def list_services(
    include_inactive: bool = Query(default=False),
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(get_current_caller),
):
    ensure_database_ready()

    with translate_errors(db):
        query = db.query(Service)
        if not include_inactive:
            query = query.filter(Service.is_active.is_(True))
        return query.order_by(Service.name.asc()).all()


@router.post('', response_model=ServiceResponse, status_code=status.HTTP_201_CREATED)
def create_service(
    data: CreateServiceRequest,
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(get_current_caller),
):
    ensure_database_ready()

    with translate_errors(db):
        require_admin(caller)
        service = Service(name=data.name, duration_minutes=data.duration_minutes, is_active=True)
        db.add(service)
        db.commit()
        db.refresh(service)
        return service


@router.patch('/{service_id}', response_model=ServiceResponse)
def update_service(
    service_id: int,
    data: UpdateServiceRequest,
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(get_current_caller),
):
    ensure_database_ready()

    with translate_errors(db):
        require_admin(caller)
        if db.query(Service.id).filter(Service.id == service_id).first() is None:
            raise NotFoundError('Service not found.')

        # Bookings read the duration under the same lock.
        with service_locks.hold(service_id):
            service = (
                db.query(Service)
                .filter(Service.id == service_id)
                .with_for_update()
                .populate_existing()
                .one()
            )

            if data.duration_minutes is not None and data.duration_minutes != service.duration_minutes:
                if queries.service_is_referenced(db, service_id):
                    raise ValidationError('The duration of a service cannot change once it has been booked.')
                service.duration_minutes = data.duration_minutes
            if data.name is not None and data.name.strip():
                service.name = data.name.strip()
            if data.is_active is not None:
                service.is_active = data.is_active

            db.commit()

        db.refresh(service)
        return service
