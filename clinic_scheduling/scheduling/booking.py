"""
Booking orchestrator.

The only code path that creates, moves, cancels or blocks time on a dentist's
calendar. Every command follows the same sequence while holding the dentist's
lock: lock the dentist row, read the overlapping calendar entries, run the
conflict checker, write, commit once. Any failure rolls the session back.
"""

import logging
from contextlib import ExitStack, contextmanager
from datetime import datetime, timedelta
from typing import Iterator

from sqlalchemy.orm import Session

from clinic_scheduling.auth.permissions import (
    CallerContext,
    authorize_calendar_write,
    conceal_foreign_record,
    resolve_dentist_scope,
)
from clinic_scheduling.core import config
from clinic_scheduling.core.errors import ValidationError
from clinic_scheduling.models.appointment import (
    APPOINTMENT_STATUSES,
    STATUS_CANCELLED,
    STATUS_COMPLETED,
    STATUS_NO_SHOW,
    STATUS_SCHEDULED,
    Appointment,
)
from clinic_scheduling.models.blocked_period import BlockedPeriod
from clinic_scheduling.models.dentist import Dentist
from clinic_scheduling.models.service import Service
from clinic_scheduling.scheduling import queries
from clinic_scheduling.scheduling.conflicts import ConflictCheck, check_interval
from clinic_scheduling.scheduling.intervals import Interval
from clinic_scheduling.scheduling.locks import LockArena, dentist_locks
from clinic_scheduling.scheduling.locks import service_locks as shared_service_locks

logger = logging.getLogger(__name__)

MAX_NOTE_LENGTH = 600
MAX_REASON_LENGTH = 300

ALLOWED_TRANSITIONS = {
    STATUS_SCHEDULED: {STATUS_COMPLETED, STATUS_CANCELLED, STATUS_NO_SHOW},
    STATUS_COMPLETED: set(),
    STATUS_CANCELLED: set(),
    STATUS_NO_SHOW: set(),
}


def bookable_service(db: Session, service_id: int, for_update: bool = False) -> Service:
    service = queries.get_service(db, service_id, for_update=for_update)
    if not service.is_active:
        raise ValidationError('This service is no longer offered.')
    if service.duration_minutes not in config.SERVICE_DURATIONS_MINUTES:
        raise ValidationError(f'Unsupported service duration: {service.duration_minutes} minutes.')
    return service


def _whole_minute(value: datetime, label: str) -> datetime:
    if value.second or value.microsecond:
        raise ValidationError(f'{label} must fall on a whole minute.')
    return value


def appointment_interval(start_time: datetime, duration_minutes: int) -> Interval:
    start = _whole_minute(start_time, 'Appointment start')
    return Interval(start, start + timedelta(minutes=duration_minutes))


def _normalize_patient(patient_id: str) -> str:
    normalized = (patient_id or '').strip()
    if not normalized:
        raise ValidationError('Patient is required.')
    return normalized


def _normalize_text(value: str | None, max_length: int, label: str) -> str | None:
    if value is None:
        return None
    normalized = value.strip()
    if not normalized:
        return None
    if len(normalized) > max_length:
        raise ValidationError(f'{label} must be {max_length} characters or fewer.')
    return normalized


def _ensure_accepting(dentist: Dentist) -> None:
    if not dentist.is_active:
        raise ValidationError('This dentist is not accepting appointments.')


class BookingOrchestrator:
    def __init__(self, locks: LockArena | None = None, service_locks: LockArena | None = None):
        self.locks = locks if locks is not None else dentist_locks
        self.service_locks = service_locks if service_locks is not None else shared_service_locks

    @contextmanager
    def _calendar_write(
        self,
        db: Session,
        caller: CallerContext,
        dentist_id: int,
        service_id: int | None = None,
    ) -> Iterator[Dentist]:
        authorize_calendar_write(caller, dentist_id)
        # Locks are only handed out for rows that exist.
        queries.get_dentist(db, dentist_id)
        if service_id is not None:
            queries.get_service(db, service_id)

        with ExitStack() as held:
            # Service before dentist, the order every writer uses.
            if service_id is not None:
                held.enter_context(self.service_locks.hold(service_id))
            held.enter_context(self.locks.hold(dentist_id))
            try:
                dentist = queries.get_dentist(db, dentist_id, for_update=True)
                yield dentist
                db.commit()
            except Exception:
                db.rollback()
                raise

    def _check_or_raise(self, db: Session, dentist_id: int, proposed: Interval, **options) -> None:
        snapshot = queries.load_snapshot(db, dentist_id, proposed)
        result = check_interval(snapshot, proposed, **options)
        if not result.accepted:
            logger.info(
                'Rejected %s-%s for dentist %s: %s',
                proposed.start.isoformat(),
                proposed.end.isoformat(),
                dentist_id,
                result.reason.value,
            )
        result.raise_for_conflict()

    def preview_appointment(
        self,
        db: Session,
        caller: CallerContext,
        dentist_id: int,
        service_id: int,
        start_time: datetime,
        ignore_appointment_id: int | None = None,
    ) -> tuple[Interval, ConflictCheck]:
        """Run the conflict checker for a prospective booking without writing anything."""
        resolve_dentist_scope(caller, dentist_id)
        dentist = queries.get_dentist(db, dentist_id)
        _ensure_accepting(dentist)
        service = bookable_service(db, service_id)

        proposed = appointment_interval(start_time, service.duration_minutes)
        snapshot = queries.load_snapshot(db, dentist_id, proposed)
        return proposed, check_interval(snapshot, proposed, ignore_appointment_id=ignore_appointment_id)

    def create_appointment(
        self,
        db: Session,
        caller: CallerContext,
        dentist_id: int,
        patient_id: str,
        service_id: int,
        start_time: datetime,
        note: str | None = None,
    ) -> Appointment:
        patient_id = _normalize_patient(patient_id)
        note = _normalize_text(note, MAX_NOTE_LENGTH, 'Notes')
        _whole_minute(start_time, 'Appointment start')

        with self._calendar_write(db, caller, dentist_id, service_id=service_id) as dentist:
            _ensure_accepting(dentist)
            # Read under the service lock so the duration cannot change before commit.
            service = bookable_service(db, service_id, for_update=True)
            proposed = appointment_interval(start_time, service.duration_minutes)
            self._check_or_raise(db, dentist_id, proposed)

            appointment = Appointment(
                dentist_id=dentist_id,
                patient_id=patient_id,
                service_id=service.id,
                start_time=proposed.start,
                end_time=proposed.end,
                status=STATUS_SCHEDULED,
                note=note,
            )
            db.add(appointment)

        db.refresh(appointment)
        logger.info(
            'Booked appointment %s for dentist %s at %s',
            appointment.id,
            dentist_id,
            appointment.start_time.isoformat(),
        )
        return appointment

    def reschedule_appointment(
        self,
        db: Session,
        caller: CallerContext,
        appointment_id: int,
        new_start: datetime,
    ) -> Appointment:
        _whole_minute(new_start, 'Appointment start')
        appointment = queries.get_appointment(db, appointment_id)
        conceal_foreign_record(caller, appointment.dentist_id, 'Appointment not found.')
        dentist_id = appointment.dentist_id

        with self._calendar_write(db, caller, dentist_id) as dentist:
            # Re-read under the lock; the first read only located the dentist.
            db.refresh(appointment)
            if appointment.status != STATUS_SCHEDULED:
                raise ValidationError(f'Only scheduled appointments can be rescheduled (status: {appointment.status}).')
            _ensure_accepting(dentist)

            service = queries.get_service(db, appointment.service_id)
            proposed = appointment_interval(new_start, service.duration_minutes)
            self._check_or_raise(db, dentist_id, proposed, ignore_appointment_id=appointment.id)

            previous_start = appointment.start_time
            appointment.start_time = proposed.start
            appointment.end_time = proposed.end

        db.refresh(appointment)
        logger.info(
            'Rescheduled appointment %s for dentist %s from %s to %s',
            appointment.id,
            dentist_id,
            previous_start.isoformat(),
            appointment.start_time.isoformat(),
        )
        return appointment

    def transition_status(
        self,
        db: Session,
        caller: CallerContext,
        appointment_id: int,
        status: str,
        cancel_note: str | None = None,
    ) -> Appointment:
        if status not in APPOINTMENT_STATUSES:
            raise ValidationError(f'Unknown appointment status: {status}.')
        cancel_note = _normalize_text(cancel_note, MAX_NOTE_LENGTH, 'Cancellation note')
        if cancel_note is not None and status != STATUS_CANCELLED:
            raise ValidationError('A cancellation note can only accompany a cancellation.')

        appointment = queries.get_appointment(db, appointment_id)
        conceal_foreign_record(caller, appointment.dentist_id, 'Appointment not found.')

        with self._calendar_write(db, caller, appointment.dentist_id):
            db.refresh(appointment)
            current = appointment.status
            if current == status:
                return appointment
            if status not in ALLOWED_TRANSITIONS.get(current, set()):
                raise ValidationError(f'Cannot change an appointment from {current} to {status}.')

            appointment.status = status
            if status == STATUS_CANCELLED:
                appointment.cancelled_at = datetime.now()
                appointment.cancel_note = cancel_note

        db.refresh(appointment)
        logger.info('Appointment %s moved from %s to %s', appointment.id, current, status)
        return appointment

    def cancel_appointment(
        self,
        db: Session,
        caller: CallerContext,
        appointment_id: int,
        cancel_note: str | None = None,
    ) -> Appointment:
        return self.transition_status(db, caller, appointment_id, STATUS_CANCELLED, cancel_note=cancel_note)

    def block_period(
        self,
        db: Session,
        caller: CallerContext,
        dentist_id: int,
        start_time: datetime,
        end_time: datetime,
        reason: str | None = None,
    ) -> BlockedPeriod:
        proposed = Interval(_whole_minute(start_time, 'Block start'), _whole_minute(end_time, 'Block end'))
        if proposed.end <= proposed.start:
            raise ValidationError('A blocked period must end after it starts.')
        reason = _normalize_text(reason, MAX_REASON_LENGTH, 'Reason')

        with self._calendar_write(db, caller, dentist_id):
            self._check_or_raise(db, dentist_id, proposed, require_working_hours=False)

            blocked_period = BlockedPeriod(
                dentist_id=dentist_id,
                start_time=proposed.start,
                end_time=proposed.end,
                reason=reason,
            )
            db.add(blocked_period)

        db.refresh(blocked_period)
        logger.info(
            'Blocked %s-%s for dentist %s',
            blocked_period.start_time.isoformat(),
            blocked_period.end_time.isoformat(),
            dentist_id,
        )
        return blocked_period

    def unblock_period(self, db: Session, caller: CallerContext, blocked_period_id: int) -> None:
        blocked_period = queries.get_blocked_period(db, blocked_period_id)
        conceal_foreign_record(caller, blocked_period.dentist_id, 'Blocked period not found.')
        dentist_id = blocked_period.dentist_id

        with self._calendar_write(db, caller, dentist_id):
            # A concurrent unblock may have removed it while we waited for the lock.
            db.expire(blocked_period)
            blocked_period = queries.get_blocked_period(db, blocked_period_id)
            db.delete(blocked_period)

        logger.info('Removed blocked period %s for dentist %s', blocked_period_id, dentist_id)


orchestrator = BookingOrchestrator()
