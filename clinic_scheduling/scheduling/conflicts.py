"""
Conflict checker.

Decides whether a proposed ``[start, end)`` may be committed to a dentist's
calendar. Pure: the booking orchestrator runs it under the dentist lock before
committing, and the check route runs it speculatively without writing.
"""

from dataclasses import dataclass, field

from clinic_scheduling.core.errors import ConflictError, ConflictReason
from clinic_scheduling.scheduling.calendar import CalendarSnapshot
from clinic_scheduling.scheduling.intervals import Interval
from clinic_scheduling.scheduling.slots import working_interval


@dataclass(frozen=True)
class ConflictCheck:
    reason: ConflictReason | None = None
    conflicting_ids: list[int] = field(default_factory=list)

    @property
    def accepted(self) -> bool:
        return self.reason is None

    def raise_for_conflict(self) -> None:
        if self.reason is not None:
            raise ConflictError(self.reason, self.conflicting_ids)


ACCEPTED = ConflictCheck()


def within_working_hours(snapshot: CalendarSnapshot, proposed: Interval) -> bool:
    working = working_interval(snapshot.template, proposed.start.date())
    return working is not None and working.contains(proposed)


def check_interval(
    snapshot: CalendarSnapshot,
    proposed: Interval,
    ignore_appointment_id: int | None = None,
    ignore_blocked_period_id: int | None = None,
    require_working_hours: bool = True,
) -> ConflictCheck:
    """Check ``proposed`` against working hours, then appointments, then blocked periods.

    The first failing rule decides the reason. Cancelled and no-show
    appointments do not occupy time and never conflict.
    """
    if require_working_hours and not within_working_hours(snapshot, proposed):
        return ConflictCheck(ConflictReason.OUTSIDE_WORKING_HOURS)

    overlapping_appointments = [
        entry.id
        for entry in snapshot.appointments
        if entry.occupies and entry.id != ignore_appointment_id and entry.interval.overlaps(proposed)
    ]
    if overlapping_appointments:
        return ConflictCheck(ConflictReason.OVERLAPS_APPOINTMENT, overlapping_appointments)

    overlapping_blocks = [
        entry.id
        for entry in snapshot.blocked_periods
        if entry.id != ignore_blocked_period_id and entry.interval.overlaps(proposed)
    ]
    if overlapping_blocks:
        return ConflictCheck(ConflictReason.OVERLAPS_BLOCKED_PERIOD, overlapping_blocks)

    return ACCEPTED
