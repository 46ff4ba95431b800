from datetime import date, datetime, time
from types import SimpleNamespace

import pytest

from clinic_scheduling.scheduling.calendar import KIND_APPOINTMENT, KIND_BLOCKED, CalendarEntry, CalendarSnapshot
from clinic_scheduling.scheduling.intervals import Interval
from clinic_scheduling.scheduling.views import (
    page_offset,
    project_list,
    project_schedule,
    project_status_counts,
    project_week,
    week_start_for,
    week_window,
)

MONDAY = date(2026, 1, 5)
TEMPLATE = {weekday: (time(9, 0), time(12, 0)) for weekday in range(5)}


def at(day: int, hour: int, minute: int = 0) -> datetime:
    return datetime(2026, 1, day, hour, minute)


def week_snapshot() -> CalendarSnapshot:
    return CalendarSnapshot(
        dentist_id=1,
        window=week_window(MONDAY),
        template=TEMPLATE,
        appointments=[
            CalendarEntry(KIND_APPOINTMENT, 2, 1, Interval(at(5, 10), at(5, 10, 30)), status='scheduled', patient_id='p-2'),
            CalendarEntry(KIND_APPOINTMENT, 1, 1, Interval(at(5, 9), at(5, 9, 30)), status='completed', patient_id='p-1'),
            CalendarEntry(KIND_APPOINTMENT, 3, 1, Interval(at(5, 11), at(5, 11, 30)), status='cancelled', patient_id='p-3'),
        ],
        blocked_periods=[
            CalendarEntry(KIND_BLOCKED, 9, 1, Interval(at(6, 22), at(7, 10)), reason='Conference'),
        ],
    )


def test_week_start_for_returns_monday() -> None:
    assert week_start_for(date(2026, 1, 8)) == MONDAY
    assert week_start_for(MONDAY) == MONDAY
    assert week_window(date(2026, 1, 11)) == Interval(at(5, 0), at(12, 0))


def test_week_view_has_seven_ordered_days_without_cancelled_entries() -> None:
    view = project_week(week_snapshot(), date(2026, 1, 7))

    assert view.week_start == MONDAY
    assert [column.day for column in view.days] == [date(2026, 1, day) for day in range(5, 12)]
    assert view.days[0].weekday_name == 'Monday'
    assert [positioned.entry.id for positioned in view.days[0].entries] == [1, 2]
    assert view.days[0].entries[0].offset_minutes == 9 * 60
    assert view.days[0].entries[0].duration_minutes == 30
    assert view.days[5].working_hours is None


def test_week_view_can_include_cancelled_entries() -> None:
    view = project_week(week_snapshot(), MONDAY, include_cancelled=True)

    assert [positioned.entry.id for positioned in view.days[0].entries] == [1, 2, 3]


def test_block_crossing_midnight_is_clipped_per_day() -> None:
    view = project_week(week_snapshot(), MONDAY)

    tuesday, wednesday = view.days[1].entries, view.days[2].entries
    assert (tuesday[0].offset_minutes, tuesday[0].duration_minutes) == (22 * 60, 120)
    assert (wednesday[0].offset_minutes, wednesday[0].duration_minutes) == (0, 600)


def test_schedule_view_lists_entries_and_free_windows() -> None:
    schedule = project_schedule(week_snapshot(), MONDAY)

    assert [entry.id for entry in schedule.entries] == [1, 2]
    assert schedule.blocked_periods == []
    assert schedule.working_hours == Interval(at(5, 9), at(5, 12))
    assert schedule.free_windows == [
        Interval(at(5, 9, 30), at(5, 10)),
        Interval(at(5, 10, 30), at(5, 12)),
    ]


def test_schedule_view_free_windows_ignore_cancelled_entries_even_when_shown() -> None:
    schedule = project_schedule(week_snapshot(), MONDAY, include_cancelled=True)

    assert [entry.id for entry in schedule.entries] == [1, 2, 3]
    assert schedule.free_windows[-1] == Interval(at(5, 10, 30), at(5, 12))


def test_schedule_view_of_blocked_day() -> None:
    schedule = project_schedule(week_snapshot(), date(2026, 1, 7))

    assert [entry.id for entry in schedule.blocked_periods] == [9]
    assert schedule.free_windows == [Interval(at(7, 10), at(7, 12))]


def _appointment(appointment_id: int, hour: int, status: str = 'scheduled') -> SimpleNamespace:
    return SimpleNamespace(id=appointment_id, start_time=at(5, hour), status=status)


def test_page_offset_counts_whole_pages() -> None:
    assert page_offset(1, 20) == 0
    assert page_offset(3, 20) == 40


def test_list_shapes_the_fetched_page() -> None:
    page = [_appointment(7, 9), _appointment(8, 10)]

    listing = project_list(page, total=5, page=2, page_size=2)

    assert [item.id for item in listing.items] == [7, 8]
    assert listing.total == 5
    assert listing.pages == 3


def test_empty_list_still_has_one_page() -> None:
    assert project_list([], total=0, page=1, page_size=20).pages == 1


@pytest.mark.parametrize('page, page_size', [(0, 10), (1, 0)])
def test_list_rejects_non_positive_paging(page: int, page_size: int) -> None:
    with pytest.raises(ValueError):
        page_offset(page, page_size)
    with pytest.raises(ValueError):
        project_list([], total=0, page=page, page_size=page_size)


def test_status_counts_cover_every_status() -> None:
    counts = project_status_counts([
        _appointment(1, 9),
        _appointment(2, 10, 'completed'),
        _appointment(3, 11),
    ])

    assert counts == {'scheduled': 2, 'completed': 1, 'cancelled': 0, 'no-show': 0}
