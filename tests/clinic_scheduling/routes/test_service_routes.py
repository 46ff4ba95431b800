import threading
from datetime import datetime, timedelta

import pytest
from fastapi import HTTPException
from pydantic import ValidationError

from clinic_scheduling.models.appointment import Appointment
from clinic_scheduling.models.service import Service
from clinic_scheduling.routes.service_routes import (
    CreateServiceRequest,
    UpdateServiceRequest,
    create_service,
    list_services,
    update_service,
)
from clinic_scheduling.scheduling import booking as booking_module
from clinic_scheduling.scheduling.booking import BookingOrchestrator
from clinic_scheduling.scheduling.locks import LockArena, service_locks


@pytest.fixture(autouse=True)
def database_ready(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr('clinic_scheduling.routes.service_routes.ensure_database_ready', lambda: None)


def test_create_service_request_rejects_unsupported_duration() -> None:
    with pytest.raises(ValidationError):
        CreateServiceRequest(name='Crown fitting', duration_minutes=90)


def test_create_service_request_rejects_blank_name() -> None:
    with pytest.raises(ValidationError):
        CreateServiceRequest(name='  ', duration_minutes=30)


def test_create_and_list_services(db, admin, receptionist) -> None:
    created = create_service(data=CreateServiceRequest(name=' Scaling ', duration_minutes=45), db=db, caller=admin)

    services = list_services(include_inactive=False, db=db, caller=receptionist)

    assert created.name == 'Scaling'
    assert [(service.name, service.duration_minutes) for service in services] == [('Scaling', 45)]


def test_only_admin_can_create_service(db, receptionist) -> None:
    with pytest.raises(HTTPException) as exception_info:
        create_service(data=CreateServiceRequest(name='Scaling', duration_minutes=45), db=db, caller=receptionist)

    assert exception_info.value.status_code == 403


def test_deactivated_service_is_hidden_unless_requested(db, clinic, admin, receptionist) -> None:
    update_service(
        service_id=clinic.services[60].id,
        data=UpdateServiceRequest(is_active=False),
        db=db,
        caller=admin,
    )

    active = list_services(include_inactive=False, db=db, caller=receptionist)
    everything = list_services(include_inactive=True, db=db, caller=receptionist)

    assert clinic.services[60].id not in {service.id for service in active}
    assert len(everything) == 4


def test_duration_of_unbooked_service_can_change(db, clinic, admin) -> None:
    service = update_service(
        service_id=clinic.services[15].id,
        data=UpdateServiceRequest(duration_minutes=30, name='Check-up'),
        db=db,
        caller=admin,
    )

    assert (service.name, service.duration_minutes) == ('Check-up', 30)


def test_duration_of_booked_service_is_frozen(db, clinic, booking, admin, receptionist) -> None:
    booking.create_appointment(
        db, receptionist, clinic.dentist.id, 'patient-1', clinic.services[30].id, datetime(2026, 1, 5, 9, 0),
    )

    with pytest.raises(HTTPException) as exception_info:
        update_service(
            service_id=clinic.services[30].id,
            data=UpdateServiceRequest(duration_minutes=45),
            db=db,
            caller=admin,
        )

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail['message'] == 'The duration of a service cannot change once it has been booked.'
    renamed = update_service(
        service_id=clinic.services[30].id,
        data=UpdateServiceRequest(name='Filling'),
        db=db,
        caller=admin,
    )
    assert (renamed.name, renamed.duration_minutes) == ('Filling', 30)


def test_update_unknown_service_is_not_found(db, admin) -> None:
    with pytest.raises(HTTPException) as exception_info:
        update_service(service_id=999, data=UpdateServiceRequest(name='x'), db=db, caller=admin)

    assert exception_info.value.status_code == 404


def test_duration_change_waits_for_a_booking_in_flight(
    session_factory, clinic, admin, receptionist, monkeypatch: pytest.MonkeyPatch
) -> None:
    booking = BookingOrchestrator(locks=LockArena(), service_locks=service_locks)
    dentist_id = clinic.dentist.id
    service_id = clinic.services[30].id
    reached = threading.Event()
    release = threading.Event()
    outcomes = {}
    bookable_service = booking_module.bookable_service

    def pausing_bookable_service(db, service_id, for_update=False):
        service = bookable_service(db, service_id, for_update=for_update)
        if for_update:
            reached.set()
            release.wait(timeout=5)
        return service

    monkeypatch.setattr(booking_module, 'bookable_service', pausing_bookable_service)

    def book() -> None:
        session = session_factory()
        try:
            appointment = booking.create_appointment(
                session, receptionist, dentist_id, 'patient-1', service_id, datetime(2026, 1, 5, 9, 0),
            )
            outcomes['booked'] = (appointment.start_time, appointment.end_time)
        finally:
            session.close()

    def lengthen() -> None:
        session = session_factory()
        try:
            update_service(
                service_id=service_id,
                data=UpdateServiceRequest(duration_minutes=60),
                db=session,
                caller=admin,
            )
            outcomes['updated'] = True
        except HTTPException as exc:
            outcomes['updated'] = exc.status_code
        finally:
            session.close()

    booker = threading.Thread(target=book)
    editor = threading.Thread(target=lengthen)
    booker.start()
    assert reached.wait(timeout=5)
    editor.start()
    editor.join(timeout=0.5)
    waited_for_booking = editor.is_alive()
    release.set()
    booker.join()
    editor.join()

    assert waited_for_booking
    assert outcomes['booked'] == (datetime(2026, 1, 5, 9, 0), datetime(2026, 1, 5, 9, 30))
    assert outcomes['updated'] == 400

    check = session_factory()
    try:
        assert check.get(Service, service_id).duration_minutes == 30
        appointment = check.query(Appointment).one()
        assert appointment.end_time - appointment.start_time == timedelta(minutes=30)
    finally:
        check.close()
