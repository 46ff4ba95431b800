"""
Slot model.

Turns a dentist's weekly working-hours template into the legal start times of
a given day for a given service duration.
"""

from datetime import date, datetime, time, timedelta
from typing import Iterable, Mapping

from clinic_scheduling.scheduling.intervals import Interval

# weekday (0 = Monday) -> (open, close)
WorkingHoursTemplate = Mapping[int, tuple[time, time]]


def template_from_rows(rows: Iterable) -> dict[int, tuple[time, time]]:
    """Build a template from ``WorkingHours`` rows (anything with weekday/start_time/end_time)."""
    return {row.weekday: (row.start_time, row.end_time) for row in rows}


def working_interval(template: WorkingHoursTemplate, day: date) -> Interval | None:
    hours = template.get(day.weekday())
    if hours is None:
        return None

    opens, closes = hours
    if opens >= closes:
        return None

    return Interval(datetime.combine(day, opens), datetime.combine(day, closes))


def legal_starts(
    template: WorkingHoursTemplate,
    day: date,
    duration_minutes: int,
    step_minutes: int | None = None,
) -> list[datetime]:
    """Every start from opening time, stepping by the duration, whose slot ends by closing time.

    With 09:00-12:00 and a 45 minute service this yields 09:00, 09:45, 10:30
    and 11:15; 11:30 would end at 12:15 and is never produced.
    """
    if duration_minutes <= 0:
        raise ValueError('duration_minutes must be positive')

    working = working_interval(template, day)
    if working is None:
        return []

    duration = timedelta(minutes=duration_minutes)
    step = timedelta(minutes=step_minutes or duration_minutes)
    starts: list[datetime] = []
    current = working.start

    while current + duration <= working.end:
        starts.append(current)
        current += step

    return starts
