from datetime import date, datetime, time, timedelta

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from clinic_scheduling.auth.dependencies import get_current_caller
from clinic_scheduling.auth.permissions import CallerContext, conceal_foreign_record, resolve_dentist_scope
from clinic_scheduling.core import config
from clinic_scheduling.core.errors import ValidationError
from clinic_scheduling.models.appointment import APPOINTMENT_STATUSES, Appointment
from clinic_scheduling.routes.common import (
    ensure_database_ready,
    get_db,
    get_orchestrator,
    to_clinic_time,
    translate_errors,
)
from clinic_scheduling.scheduling import queries
from clinic_scheduling.scheduling.booking import BookingOrchestrator
from clinic_scheduling.scheduling.views import page_offset, project_list, project_status_counts

router = APIRouter(tags=['appointments'])

MAX_PATIENT_REFERENCE_LENGTH = 64


def _normalize_status(value: str | None) -> str | None:
    if value is None:
        return None
    normalized = value.strip().lower()
    if normalized not in APPOINTMENT_STATUSES:
        raise ValueError('Invalid appointment status.')
    return normalized


class CreateAppointmentRequest(BaseModel):
    dentist_id: int
    patient_id: str
    service_id: int
    start_time: datetime
    note: str | None = None

    @field_validator('patient_id')
    @classmethod
    def validate_patient_id(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Patient is required.')
        if len(normalized) > MAX_PATIENT_REFERENCE_LENGTH:
            raise ValueError('Patient reference is too long.')
        return normalized

    @field_validator('start_time')
    @classmethod
    def validate_start_time(cls, value: datetime) -> datetime:
        return to_clinic_time(value)


class CheckAppointmentRequest(BaseModel):
    dentist_id: int
    service_id: int
    start_time: datetime
    ignore_appointment_id: int | None = None

    @field_validator('start_time')
    @classmethod
    def validate_start_time(cls, value: datetime) -> datetime:
        return to_clinic_time(value)


class RescheduleAppointmentRequest(BaseModel):
    start_time: datetime

    @field_validator('start_time')
    @classmethod
    def validate_start_time(cls, value: datetime) -> datetime:
        return to_clinic_time(value)


class UpdateStatusRequest(BaseModel):
    status: str
    cancel_note: str | None = None

    @field_validator('status')
    @classmethod
    def validate_status(cls, value: str) -> str:
        return _normalize_status(value)


class CancelAppointmentRequest(BaseModel):
    cancel_note: str | None = None


class AppointmentResponse(BaseModel):
    id: int
    dentist_id: int
    patient_id: str
    service_id: int
    start_time: datetime
    end_time: datetime
    duration_minutes: int
    status: str
    note: str | None = None
    created_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancel_note: str | None = None


class ConflictCheckResponse(BaseModel):
    accepted: bool
    reason: str | None = None
    conflicting_ids: list[int] = []
    start_time: datetime
    end_time: datetime


class AppointmentListResponse(BaseModel):
    items: list[AppointmentResponse]
    total: int
    page: int
    page_size: int
    pages: int


class AppointmentSummaryResponse(BaseModel):
    date: date
    dentist_id: int | None = None
    counts: dict[str, int]
    total: int


def appointment_response(appointment: Appointment) -> AppointmentResponse:
    return AppointmentResponse(
        id=appointment.id,
        dentist_id=appointment.dentist_id,
        patient_id=appointment.patient_id,
        service_id=appointment.service_id,
        start_time=appointment.start_time,
        end_time=appointment.end_time,
        duration_minutes=int((appointment.end_time - appointment.start_time).total_seconds() // 60),
        status=appointment.status,
        note=appointment.note,
        created_at=appointment.created_at,
        cancelled_at=appointment.cancelled_at,
        cancel_note=appointment.cancel_note,
    )


@router.get('', response_model=AppointmentListResponse)
def list_appointments(
    dentist_id: int | None = Query(default=None),
    patient_id: str | None = Query(default=None),
    appointment_status: str | None = Query(default=None, alias='status'),
    start: datetime | None = Query(default=None),
    end: datetime | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=config.LIST_DEFAULT_PAGE_SIZE, ge=1, le=config.LIST_MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(get_current_caller),
):
    ensure_database_ready()

    with translate_errors(db):
        scoped_dentist_id = resolve_dentist_scope(caller, dentist_id)
        try:
            normalized_status = _normalize_status(appointment_status)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc

        filters = {
            'dentist_id': scoped_dentist_id,
            'patient_id': patient_id.strip() if patient_id else None,
            'status': normalized_status,
            'start': to_clinic_time(start) if start else None,
            'end': to_clinic_time(end) if end else None,
        }
        try:
            offset = page_offset(page, page_size)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc

        appointments = queries.query_appointments(db, limit=page_size, offset=offset, **filters)
        listing = project_list(appointments, queries.count_appointments(db, **filters), page, page_size)

        return AppointmentListResponse(
            items=[appointment_response(appointment) for appointment in listing.items],
            total=listing.total,
            page=listing.page,
            page_size=listing.page_size,
            pages=listing.pages,
        )


@router.get('/summary', response_model=AppointmentSummaryResponse)
def summarize_appointments(
    day: date | None = Query(default=None),
    dentist_id: int | None = Query(default=None),
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(get_current_caller),
):
    ensure_database_ready()

    with translate_errors(db):
        scoped_dentist_id = resolve_dentist_scope(caller, dentist_id)
        summary_day = day or date.today()
        day_start = datetime.combine(summary_day, time.min)

        appointments = queries.query_appointments(
            db,
            dentist_id=scoped_dentist_id,
            start=day_start,
            end=day_start + timedelta(days=1),
        )
        counts = project_status_counts(appointments)

        return AppointmentSummaryResponse(
            date=summary_day,
            dentist_id=scoped_dentist_id,
            counts=counts,
            total=sum(counts.values()),
        )


@router.post('/check', response_model=ConflictCheckResponse)
def check_appointment(
    data: CheckAppointmentRequest,
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(get_current_caller),
    booking: BookingOrchestrator = Depends(get_orchestrator),
):
    ensure_database_ready()

    with translate_errors(db):
        proposed, result = booking.preview_appointment(
            db,
            caller,
            dentist_id=data.dentist_id,
            service_id=data.service_id,
            start_time=data.start_time,
            ignore_appointment_id=data.ignore_appointment_id,
        )

        return ConflictCheckResponse(
            accepted=result.accepted,
            reason=result.reason.value if result.reason else None,
            conflicting_ids=result.conflicting_ids,
            start_time=proposed.start,
            end_time=proposed.end,
        )


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: CreateAppointmentRequest,
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(get_current_caller),
    booking: BookingOrchestrator = Depends(get_orchestrator),
):
    ensure_database_ready()

    with translate_errors(db):
        appointment = booking.create_appointment(
            db,
            caller,
            dentist_id=data.dentist_id,
            patient_id=data.patient_id,
            service_id=data.service_id,
            start_time=data.start_time,
            note=data.note,
        )
        return appointment_response(appointment)


@router.get('/{appointment_id}', response_model=AppointmentResponse)
def get_appointment(
    appointment_id: int,
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(get_current_caller),
):
    ensure_database_ready()

    with translate_errors(db):
        appointment = queries.get_appointment(db, appointment_id)
        conceal_foreign_record(caller, appointment.dentist_id, 'Appointment not found.')
        return appointment_response(appointment)


@router.put('/{appointment_id}/reschedule', response_model=AppointmentResponse)
def reschedule_appointment(
    appointment_id: int,
    data: RescheduleAppointmentRequest,
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(get_current_caller),
    booking: BookingOrchestrator = Depends(get_orchestrator),
):
    ensure_database_ready()

    with translate_errors(db):
        appointment = booking.reschedule_appointment(db, caller, appointment_id, data.start_time)
        return appointment_response(appointment)


@router.post('/{appointment_id}/cancel', response_model=AppointmentResponse)
def cancel_appointment(
    appointment_id: int,
    data: CancelAppointmentRequest | None = None,
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(get_current_caller),
    booking: BookingOrchestrator = Depends(get_orchestrator),
):
    ensure_database_ready()

    with translate_errors(db):
        cancel_note = data.cancel_note if data else None
        appointment = booking.cancel_appointment(db, caller, appointment_id, cancel_note=cancel_note)
        return appointment_response(appointment)


@router.put('/{appointment_id}/status', response_model=AppointmentResponse)
def update_appointment_status(
    appointment_id: int,
    data: UpdateStatusRequest,
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(get_current_caller),
    booking: BookingOrchestrator = Depends(get_orchestrator),
):
    ensure_database_ready()

    with translate_errors(db):
        appointment = booking.transition_status(db, caller, appointment_id, data.status, cancel_note=data.cancel_note)
        return appointment_response(appointment)
