from datetime import datetime

import pytest
from fastapi import HTTPException
from pydantic import ValidationError

from clinic_scheduling.models.blocked_period import BlockedPeriod
from clinic_scheduling.routes.blocked_period_routes import (
    CreateBlockedPeriodRequest,
    create_blocked_period,
    remove_blocked_period,
)


@pytest.fixture(autouse=True)
def database_ready(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr('clinic_scheduling.routes.blocked_period_routes.ensure_database_ready', lambda: None)


def at(hour: int, minute: int = 0) -> datetime:
    return datetime(2026, 1, 5, hour, minute)


def test_create_blocked_period_request_rejects_inverted_interval() -> None:
    with pytest.raises(ValidationError):
        CreateBlockedPeriodRequest(dentist_id=1, start_time=at(11), end_time=at(10))


def test_create_and_remove_blocked_period(db, clinic, booking, as_dentist) -> None:
    caller = as_dentist(clinic.dentist.id)

    created = create_blocked_period(
        data=CreateBlockedPeriodRequest(dentist_id=clinic.dentist.id, start_time=at(10), end_time=at(11), reason='Lab'),
        db=db,
        caller=caller,
        booking=booking,
    )

    assert (created.start_time, created.end_time, created.reason) == (at(10), at(11), 'Lab')

    remove_blocked_period(blocked_period_id=created.id, db=db, caller=caller, booking=booking)

    assert db.query(BlockedPeriod).count() == 0


def test_block_over_appointment_maps_to_409(db, clinic, booking, receptionist) -> None:
    appointment = booking.create_appointment(
        db, receptionist, clinic.dentist.id, 'patient-1', clinic.services[30].id, at(10, 15),
    )

    with pytest.raises(HTTPException) as exception_info:
        create_blocked_period(
            data=CreateBlockedPeriodRequest(dentist_id=clinic.dentist.id, start_time=at(10), end_time=at(11)),
            db=db,
            caller=receptionist,
            booking=booking,
        )

    assert exception_info.value.status_code == 409
    assert exception_info.value.detail['reason'] == 'overlaps-appointment'
    assert exception_info.value.detail['conflicting_ids'] == [appointment.id]


def test_another_dentists_block_looks_missing_to_a_dentist(db, clinic, booking, admin, as_dentist) -> None:
    blocked = booking.block_period(db, admin, clinic.other_dentist.id, at(10), at(11))

    with pytest.raises(HTTPException) as exception_info:
        remove_blocked_period(blocked_period_id=blocked.id, db=db, caller=as_dentist(clinic.dentist.id), booking=booking)

    assert exception_info.value.status_code == 404
    assert db.query(BlockedPeriod).count() == 1


def test_remove_unknown_blocked_period_maps_to_404(db, clinic, booking, admin) -> None:
    with pytest.raises(HTTPException) as exception_info:
        remove_blocked_period(blocked_period_id=404, db=db, caller=admin, booking=booking)

    assert exception_info.value.status_code == 404
