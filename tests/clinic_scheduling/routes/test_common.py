from datetime import datetime, timedelta, timezone

import pytest
from fastapi import HTTPException
from sqlalchemy.exc import OperationalError

from clinic_scheduling.core.errors import (
    AuthorizationError,
    ConflictError,
    ConflictReason,
    NotFoundError,
    ValidationError,
)
from clinic_scheduling.routes.common import DATABASE_UNAVAILABLE_DETAIL, to_clinic_time, translate_errors


class _Session:
    def __init__(self):
        self.rolled_back = False

    def rollback(self):
        self.rolled_back = True


@pytest.mark.parametrize(
    ('error', 'status_code'),
    [
        (ConflictError(ConflictReason.OVERLAPS_BLOCKED_PERIOD, [4]), 409),
        (NotFoundError('Appointment not found.'), 404),
        (ValidationError('Unknown service.'), 400),
        (AuthorizationError('Dentists can only change their own calendar.'), 403),
    ],
)
def test_translate_errors_maps_scheduling_errors(error, status_code: int) -> None:
    with pytest.raises(HTTPException) as exception_info:
        with translate_errors():
            raise error

    assert exception_info.value.status_code == status_code
    assert exception_info.value.detail == error.to_detail()


def test_translate_errors_rolls_back_on_database_failure() -> None:
    session = _Session()

    with pytest.raises(HTTPException) as exception_info:
        with translate_errors(session):
            raise OperationalError('SELECT 1', {}, Exception('connection refused'))

    assert exception_info.value.status_code == 503
    assert exception_info.value.detail == DATABASE_UNAVAILABLE_DETAIL
    assert session.rolled_back


def test_to_clinic_time_keeps_naive_values() -> None:
    value = datetime(2026, 1, 5, 9, 0)

    assert to_clinic_time(value) is value


def test_to_clinic_time_converts_offset_aware_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr('clinic_scheduling.core.config.CLINIC_TIMEZONE', 'UTC')

    value = datetime(2026, 1, 5, 14, 30, tzinfo=timezone(timedelta(hours=5, minutes=30)))

    assert to_clinic_time(value) == datetime(2026, 1, 5, 9, 0)
