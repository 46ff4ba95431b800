"""Errors raised by the scheduling core.

Routes translate these into HTTP responses; nothing in the core depends on FastAPI.
"""

from enum import Enum


class ConflictReason(str, Enum):
    OVERLAPS_APPOINTMENT = 'overlaps-appointment'
    OVERLAPS_BLOCKED_PERIOD = 'overlaps-blocked-period'
    OUTSIDE_WORKING_HOURS = 'outside-working-hours'


CONFLICT_MESSAGES = {
    ConflictReason.OVERLAPS_APPOINTMENT: 'This time overlaps an existing appointment.',
    ConflictReason.OVERLAPS_BLOCKED_PERIOD: 'This time overlaps a blocked period.',
    ConflictReason.OUTSIDE_WORKING_HOURS: "This time is outside the dentist's working hours.",
}


class SchedulingError(Exception):
    """Base class for expected, user-facing scheduling failures."""

    code = 'scheduling_error'

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_detail(self) -> dict:
        return {'error': self.code, 'message': self.message}


class ConflictError(SchedulingError):
    code = 'conflict'

    def __init__(self, reason: ConflictReason, conflicting_ids: list[int] | None = None):
        super().__init__(CONFLICT_MESSAGES[reason])
        self.reason = reason
        self.conflicting_ids = conflicting_ids or []

    def to_detail(self) -> dict:
        detail = super().to_detail()
        detail['reason'] = self.reason.value
        detail['conflicting_ids'] = self.conflicting_ids
        return detail


class NotFoundError(SchedulingError):
    code = 'not_found'


class ValidationError(SchedulingError):
    code = 'validation_error'


class AuthorizationError(SchedulingError):
    code = 'forbidden'
