"""
View projector.

Read-only shapes of a dentist's calendar. Each projection is a pure function of
one query result (a ``CalendarSnapshot`` or a list of appointments) so the
week grid, the day schedule and the list can never disagree with each other.
"""

import math
from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Sequence

from clinic_scheduling.models.appointment import APPOINTMENT_STATUSES
from clinic_scheduling.scheduling.availability import free_intervals
from clinic_scheduling.scheduling.calendar import KIND_BLOCKED, CalendarEntry, CalendarSnapshot, day_bounds
from clinic_scheduling.scheduling.intervals import Interval
from clinic_scheduling.scheduling.slots import working_interval


@dataclass(frozen=True)
class PositionedEntry:
    entry: CalendarEntry
    offset_minutes: int
    duration_minutes: int


@dataclass
class DayColumn:
    day: date
    working_hours: Interval | None
    entries: list[PositionedEntry] = field(default_factory=list)

    @property
    def weekday_name(self) -> str:
        return self.day.strftime('%A')


@dataclass
class WeekView:
    dentist_id: int
    week_start: date
    days: list[DayColumn]


@dataclass
class ScheduleView:
    dentist_id: int
    day: date
    working_hours: Interval | None
    entries: list[CalendarEntry]
    blocked_periods: list[CalendarEntry]
    free_windows: list[Interval]


@dataclass
class ListPage:
    items: list
    total: int
    page: int
    page_size: int

    @property
    def pages(self) -> int:
        return max(1, math.ceil(self.total / self.page_size))


def week_start_for(day: date) -> date:
    return day - timedelta(days=day.weekday())


def week_window(week_start: date) -> Interval:
    start = datetime.combine(week_start_for(week_start), time.min)
    return Interval(start, start + timedelta(days=7))


def _position(entry: CalendarEntry, day: date) -> PositionedEntry:
    # Entries spilling over midnight are cut to the part visible on this day.
    visible = entry.interval.clip(day_bounds(day))
    midnight = datetime.combine(day, time.min)
    return PositionedEntry(
        entry=entry,
        offset_minutes=int((visible.start - midnight).total_seconds() // 60),
        duration_minutes=int(visible.duration.total_seconds() // 60),
    )


def project_week(snapshot: CalendarSnapshot, week_start: date, include_cancelled: bool = False) -> WeekView:
    monday = week_start_for(week_start)
    days = []

    for offset in range(7):
        day = monday + timedelta(days=offset)
        days.append(
            DayColumn(
                day=day,
                working_hours=working_interval(snapshot.template, day),
                entries=[_position(entry, day) for entry in snapshot.entries_on(day, include_cancelled)],
            )
        )

    return WeekView(dentist_id=snapshot.dentist_id, week_start=monday, days=days)


def project_schedule(snapshot: CalendarSnapshot, day: date, include_cancelled: bool = False) -> ScheduleView:
    entries = snapshot.entries_on(day, include_cancelled)
    working = working_interval(snapshot.template, day)
    occupied = [entry.interval for entry in entries if entry.occupies]

    return ScheduleView(
        dentist_id=snapshot.dentist_id,
        day=day,
        working_hours=working,
        entries=entries,
        blocked_periods=[entry for entry in entries if entry.kind == KIND_BLOCKED],
        free_windows=free_intervals(working, occupied),
    )


def page_offset(page: int, page_size: int) -> int:
    if page < 1 or page_size < 1:
        raise ValueError('page and page_size must be positive')
    return (page - 1) * page_size


def project_list(items: Sequence, total: int, page: int, page_size: int) -> ListPage:
    """Shape one page already fetched in chronological order by the list query."""
    page_offset(page, page_size)
    return ListPage(items=list(items), total=total, page=page, page_size=page_size)


def project_status_counts(appointments: Sequence) -> dict[str, int]:
    counts = Counter(appointment.status for appointment in appointments)
    return {status: counts.get(status, 0) for status in APPOINTMENT_STATUSES}
