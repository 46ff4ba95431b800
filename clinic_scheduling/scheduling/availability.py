"""
Availability index.

Free time for a dentist is the working-hours interval of each day minus the
union of that day's occupying appointments and blocked periods. Everything here
is a pure function of its inputs; callers re-query on every request.
"""

from datetime import date, datetime, timedelta
from typing import Iterable

from clinic_scheduling.scheduling.intervals import Interval, merge_intervals, subtract_merged
from clinic_scheduling.scheduling.slots import WorkingHoursTemplate, working_interval


def free_intervals(working: Interval | None, occupied: Iterable[Interval]) -> list[Interval]:
    if working is None:
        return []
    return subtract_merged(working, merge_intervals(occupied))


def availability_for_range(
    template: WorkingHoursTemplate,
    start_day: date,
    end_day: date,
    occupied: Iterable[Interval],
) -> dict[date, list[Interval]]:
    """Free intervals for every day in ``[start_day, end_day]``.

    The occupied set is sorted and merged once for the whole range. Days
    without working hours map to an empty list.
    """
    merged = merge_intervals(occupied)
    ends = [interval.end for interval in merged]
    windows: dict[date, list[Interval]] = {}

    current_day = start_day
    while current_day <= end_day:
        working = working_interval(template, current_day)
        windows[current_day] = subtract_merged(working, merged, ends) if working else []
        current_day += timedelta(days=1)

    return windows


def bookable_starts(
    free: list[Interval],
    candidates: Iterable[datetime],
    duration_minutes: int,
) -> list[datetime]:
    """Keep the candidate starts whose whole slot fits inside a single free window."""
    duration = timedelta(minutes=duration_minutes)
    result: list[datetime] = []
    index = 0

    for start in sorted(candidates):
        slot = Interval(start, start + duration)
        while index < len(free) and free[index].end <= slot.start:
            index += 1
        if index < len(free) and free[index].contains(slot):
            result.append(start)

    return result
