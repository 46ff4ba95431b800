from datetime import datetime

from sqlalchemy.orm import Session

from clinic_scheduling.core.errors import NotFoundError, ValidationError
from clinic_scheduling.models.appointment import Appointment
from clinic_scheduling.models.blocked_period import BlockedPeriod
from clinic_scheduling.models.dentist import Dentist, WorkingHours
from clinic_scheduling.models.service import Service
from clinic_scheduling.scheduling.calendar import (
    KIND_APPOINTMENT,
    KIND_BLOCKED,
    CalendarEntry,
    CalendarSnapshot,
)
from clinic_scheduling.scheduling.intervals import Interval
from clinic_scheduling.scheduling.slots import template_from_rows


def get_dentist(db: Session, dentist_id: int, for_update: bool = False) -> Dentist:
    query = db.query(Dentist).filter(Dentist.id == dentist_id)
    if for_update:
        # Serializes writers across processes on databases that support row locks.
        query = query.with_for_update().populate_existing()

    dentist = query.first()
    if dentist is None:
        raise NotFoundError('Dentist not found.')
    return dentist


def get_service(db: Session, service_id: int, for_update: bool = False) -> Service:
    query = db.query(Service).filter(Service.id == service_id)
    if for_update:
        query = query.with_for_update().populate_existing()

    service = query.first()
    if service is None:
        raise ValidationError('Unknown service.')
    return service


def get_appointment(db: Session, appointment_id: int) -> Appointment:
    appointment = db.query(Appointment).filter(Appointment.id == appointment_id).first()
    if appointment is None:
        raise NotFoundError('Appointment not found.')
    return appointment


def get_blocked_period(db: Session, blocked_period_id: int) -> BlockedPeriod:
    blocked_period = db.query(BlockedPeriod).filter(BlockedPeriod.id == blocked_period_id).first()
    if blocked_period is None:
        raise NotFoundError('Blocked period not found.')
    return blocked_period


def load_template(db: Session, dentist_id: int) -> dict:
    rows = db.query(WorkingHours).filter(WorkingHours.dentist_id == dentist_id).all()
    return template_from_rows(rows)


def appointment_entry(appointment: Appointment) -> CalendarEntry:
    return CalendarEntry(
        kind=KIND_APPOINTMENT,
        id=appointment.id,
        dentist_id=appointment.dentist_id,
        interval=Interval(appointment.start_time, appointment.end_time),
        status=appointment.status,
        patient_id=appointment.patient_id,
        service_id=appointment.service_id,
    )


def blocked_period_entry(blocked_period: BlockedPeriod) -> CalendarEntry:
    return CalendarEntry(
        kind=KIND_BLOCKED,
        id=blocked_period.id,
        dentist_id=blocked_period.dentist_id,
        interval=Interval(blocked_period.start_time, blocked_period.end_time),
        reason=blocked_period.reason,
    )


def load_snapshot(db: Session, dentist_id: int, window: Interval) -> CalendarSnapshot:
    """Read every appointment and blocked period of a dentist that touches ``window``."""
    appointments = db.query(Appointment).filter(
        Appointment.dentist_id == dentist_id,
        Appointment.start_time < window.end,
        Appointment.end_time > window.start,
    ).order_by(Appointment.start_time.asc(), Appointment.id.asc()).all()

    blocked_periods = db.query(BlockedPeriod).filter(
        BlockedPeriod.dentist_id == dentist_id,
        BlockedPeriod.start_time < window.end,
        BlockedPeriod.end_time > window.start,
    ).order_by(BlockedPeriod.start_time.asc(), BlockedPeriod.id.asc()).all()

    return CalendarSnapshot(
        dentist_id=dentist_id,
        window=window,
        template=load_template(db, dentist_id),
        appointments=[appointment_entry(appointment) for appointment in appointments],
        blocked_periods=[blocked_period_entry(blocked_period) for blocked_period in blocked_periods],
    )


def _filter_appointments(
    query,
    dentist_id: int | None = None,
    patient_id: str | None = None,
    status: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
):
    if dentist_id is not None:
        query = query.filter(Appointment.dentist_id == dentist_id)
    if patient_id is not None:
        query = query.filter(Appointment.patient_id == patient_id)
    if status is not None:
        query = query.filter(Appointment.status == status)
    if start is not None:
        query = query.filter(Appointment.end_time > start)
    if end is not None:
        query = query.filter(Appointment.start_time < end)
    return query


def query_appointments(
    db: Session,
    dentist_id: int | None = None,
    patient_id: str | None = None,
    status: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    limit: int | None = None,
    offset: int = 0,
) -> list[Appointment]:
    query = _filter_appointments(db.query(Appointment), dentist_id, patient_id, status, start, end)
    query = query.order_by(Appointment.start_time.asc(), Appointment.id.asc())
    if limit is not None:
        query = query.limit(limit).offset(offset)
    return query.all()


def count_appointments(
    db: Session,
    dentist_id: int | None = None,
    patient_id: str | None = None,
    status: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
) -> int:
    query = _filter_appointments(db.query(Appointment.id), dentist_id, patient_id, status, start, end)
    return query.count()


def service_is_referenced(db: Session, service_id: int) -> bool:
    return db.query(Appointment.id).filter(Appointment.service_id == service_id).first() is not None
