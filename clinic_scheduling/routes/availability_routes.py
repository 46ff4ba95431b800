from datetime import date, datetime

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from clinic_scheduling.auth.dependencies import get_current_caller
from clinic_scheduling.auth.permissions import CallerContext, resolve_dentist_scope
from clinic_scheduling.core import config
from clinic_scheduling.core.errors import ValidationError
from clinic_scheduling.routes.common import ensure_database_ready, get_db, translate_errors
from clinic_scheduling.scheduling import queries
from clinic_scheduling.scheduling.availability import availability_for_range, bookable_starts, free_intervals
from clinic_scheduling.scheduling.booking import bookable_service
from clinic_scheduling.scheduling.calendar import CalendarEntry, day_bounds
from clinic_scheduling.scheduling.intervals import Interval
from clinic_scheduling.scheduling.slots import legal_starts, working_interval
from clinic_scheduling.scheduling.views import PositionedEntry, project_schedule, project_week, week_window

router = APIRouter(tags=['availability'])


class IntervalResponse(BaseModel):
    start_time: datetime
    end_time: datetime


class CalendarEntryResponse(BaseModel):
    kind: str
    id: int
    start_time: datetime
    end_time: datetime
    status: str | None = None
    patient_id: str | None = None
    service_id: int | None = None
    reason: str | None = None


class PositionedEntryResponse(CalendarEntryResponse):
    offset_minutes: int
    duration_minutes: int


class DayAvailabilityResponse(BaseModel):
    dentist_id: int
    date: date
    working_hours: IntervalResponse | None = None
    free_windows: list[IntervalResponse]
    service_id: int | None = None
    duration_minutes: int | None = None
    legal_starts: list[datetime] = []
    bookable_starts: list[datetime] = []


class DayWindowsResponse(BaseModel):
    date: date
    free_windows: list[IntervalResponse]


class RangeAvailabilityResponse(BaseModel):
    dentist_id: int
    start_day: date
    end_day: date
    days: list[DayWindowsResponse]


class DayColumnResponse(BaseModel):
    date: date
    weekday: str
    working_hours: IntervalResponse | None = None
    entries: list[PositionedEntryResponse]


class WeekViewResponse(BaseModel):
    dentist_id: int
    week_start: date
    days: list[DayColumnResponse]


class ScheduleViewResponse(BaseModel):
    dentist_id: int
    date: date
    working_hours: IntervalResponse | None = None
    entries: list[CalendarEntryResponse]
    blocked_periods: list[CalendarEntryResponse]
    free_windows: list[IntervalResponse]


class CalendarResponse(BaseModel):
    dentist_id: int
    start_time: datetime
    end_time: datetime
    appointments: list[CalendarEntryResponse]
    blocked_periods: list[CalendarEntryResponse]


def interval_response(interval: Interval | None) -> IntervalResponse | None:
    if interval is None:
        return None
    return IntervalResponse(start_time=interval.start, end_time=interval.end)


def entry_response(entry: CalendarEntry) -> CalendarEntryResponse:
    return CalendarEntryResponse(
        kind=entry.kind,
        id=entry.id,
        start_time=entry.interval.start,
        end_time=entry.interval.end,
        status=entry.status,
        patient_id=entry.patient_id,
        service_id=entry.service_id,
        reason=entry.reason,
    )


def positioned_response(positioned: PositionedEntry) -> PositionedEntryResponse:
    return PositionedEntryResponse(
        **entry_response(positioned.entry).model_dump(),
        offset_minutes=positioned.offset_minutes,
        duration_minutes=positioned.duration_minutes,
    )


def validate_day_range(start_day: date, end_day: date) -> None:
    if end_day < start_day:
        raise ValidationError('end_day must not be before start_day.')
    if (end_day - start_day).days + 1 > config.AVAILABILITY_MAX_RANGE_DAYS:
        raise ValidationError(f'Date ranges are limited to {config.AVAILABILITY_MAX_RANGE_DAYS} days.')


@router.get('/{dentist_id}/availability', response_model=DayAvailabilityResponse)
def get_day_availability(
    dentist_id: int,
    day: date = Query(...),
    service_id: int | None = Query(default=None),
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(get_current_caller),
):
    ensure_database_ready()

    with translate_errors(db):
        resolve_dentist_scope(caller, dentist_id)
        dentist = queries.get_dentist(db, dentist_id)
        snapshot = queries.load_snapshot(db, dentist_id, day_bounds(day))
        working = working_interval(snapshot.template, day)
        free = free_intervals(working, snapshot.occupied_intervals())

        response = DayAvailabilityResponse(
            dentist_id=dentist_id,
            date=day,
            working_hours=interval_response(working),
            free_windows=[interval_response(window) for window in free],
        )

        if service_id is not None:
            service = bookable_service(db, service_id)
            starts = legal_starts(snapshot.template, day, service.duration_minutes)
            response.service_id = service.id
            response.duration_minutes = service.duration_minutes
            response.legal_starts = starts
            if dentist.is_active:
                response.bookable_starts = bookable_starts(free, starts, service.duration_minutes)

        return response


@router.get('/{dentist_id}/availability/range', response_model=RangeAvailabilityResponse)
def get_range_availability(
    dentist_id: int,
    start_day: date = Query(...),
    end_day: date = Query(...),
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(get_current_caller),
):
    ensure_database_ready()

    with translate_errors(db):
        resolve_dentist_scope(caller, dentist_id)
        validate_day_range(start_day, end_day)
        queries.get_dentist(db, dentist_id)

        window = Interval(day_bounds(start_day).start, day_bounds(end_day).end)
        snapshot = queries.load_snapshot(db, dentist_id, window)
        windows = availability_for_range(snapshot.template, start_day, end_day, snapshot.occupied_intervals())

        return RangeAvailabilityResponse(
            dentist_id=dentist_id,
            start_day=start_day,
            end_day=end_day,
            days=[
                DayWindowsResponse(date=day, free_windows=[interval_response(free) for free in day_windows])
                for day, day_windows in windows.items()
            ],
        )


@router.get('/{dentist_id}/week', response_model=WeekViewResponse)
def get_week_view(
    dentist_id: int,
    week_start: date = Query(...),
    include_cancelled: bool = Query(default=False),
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(get_current_caller),
):
    ensure_database_ready()

    with translate_errors(db):
        resolve_dentist_scope(caller, dentist_id)
        queries.get_dentist(db, dentist_id)
        snapshot = queries.load_snapshot(db, dentist_id, week_window(week_start))
        week = project_week(snapshot, week_start, include_cancelled=include_cancelled)

        return WeekViewResponse(
            dentist_id=week.dentist_id,
            week_start=week.week_start,
            days=[
                DayColumnResponse(
                    date=column.day,
                    weekday=column.weekday_name,
                    working_hours=interval_response(column.working_hours),
                    entries=[positioned_response(positioned) for positioned in column.entries],
                )
                for column in week.days
            ],
        )


@router.get('/{dentist_id}/schedule', response_model=ScheduleViewResponse)
def get_schedule_view(
    dentist_id: int,
    day: date = Query(...),
    include_cancelled: bool = Query(default=False),
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(get_current_caller),
):
    ensure_database_ready()

    with translate_errors(db):
        resolve_dentist_scope(caller, dentist_id)
        queries.get_dentist(db, dentist_id)
        snapshot = queries.load_snapshot(db, dentist_id, day_bounds(day))
        schedule = project_schedule(snapshot, day, include_cancelled=include_cancelled)

        return ScheduleViewResponse(
            dentist_id=schedule.dentist_id,
            date=schedule.day,
            working_hours=interval_response(schedule.working_hours),
            entries=[entry_response(entry) for entry in schedule.entries],
            blocked_periods=[entry_response(entry) for entry in schedule.blocked_periods],
            free_windows=[interval_response(window) for window in schedule.free_windows],
        )


@router.get('/{dentist_id}/calendar', response_model=CalendarResponse)
def get_calendar(
    dentist_id: int,
    start_day: date = Query(...),
    end_day: date = Query(...),
    db: Session = Depends(get_db),
    caller: CallerContext = Depends(get_current_caller),
):
    ensure_database_ready()

    with translate_errors(db):
        resolve_dentist_scope(caller, dentist_id)
        validate_day_range(start_day, end_day)
        queries.get_dentist(db, dentist_id)

        window = Interval(day_bounds(start_day).start, day_bounds(end_day).end)
        snapshot = queries.load_snapshot(db, dentist_id, window)

        return CalendarResponse(
            dentist_id=dentist_id,
            start_time=window.start,
            end_time=window.end,
            appointments=[entry_response(entry) for entry in snapshot.appointments],
            blocked_periods=[entry_response(entry) for entry in snapshot.blocked_periods],
        )
