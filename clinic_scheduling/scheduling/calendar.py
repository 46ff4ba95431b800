"""In-memory picture of one dentist's calendar over a time range."""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta

from clinic_scheduling.models.appointment import OCCUPYING_STATUSES, STATUS_CANCELLED
from clinic_scheduling.scheduling.intervals import Interval
from clinic_scheduling.scheduling.slots import WorkingHoursTemplate

KIND_APPOINTMENT = 'appointment'
KIND_BLOCKED = 'blocked'


def day_bounds(day: date) -> Interval:
    start = datetime.combine(day, time.min)
    return Interval(start, start + timedelta(days=1))


@dataclass(frozen=True)
class CalendarEntry:
    kind: str
    id: int
    dentist_id: int
    interval: Interval
    status: str | None = None
    patient_id: str | None = None
    service_id: int | None = None
    reason: str | None = None

    @property
    def occupies(self) -> bool:
        return self.kind == KIND_BLOCKED or self.status in OCCUPYING_STATUSES

    @property
    def is_cancelled(self) -> bool:
        return self.status == STATUS_CANCELLED


@dataclass
class CalendarSnapshot:
    dentist_id: int
    window: Interval
    template: WorkingHoursTemplate
    appointments: list[CalendarEntry] = field(default_factory=list)
    blocked_periods: list[CalendarEntry] = field(default_factory=list)

    def occupied_intervals(self) -> list[Interval]:
        return [
            entry.interval
            for entry in (*self.appointments, *self.blocked_periods)
            if entry.occupies
        ]

    def entries_on(self, day: date, include_cancelled: bool = False) -> list[CalendarEntry]:
        entries = [
            entry
            for entry in (*self.appointments, *self.blocked_periods)
            if entry.interval.overlaps(day_bounds(day))
            and (include_cancelled or not entry.is_cancelled)
        ]
        return sorted(entries, key=lambda entry: (entry.interval.start, entry.kind, entry.id))
