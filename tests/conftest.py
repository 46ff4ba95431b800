import os
from datetime import time
from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from clinic_scheduling.auth.permissions import CallerContext  # noqa: E402
from clinic_scheduling.database import Base  # noqa: E402
from clinic_scheduling.models.appointment import Appointment  # noqa: E402,F401
from clinic_scheduling.models.blocked_period import BlockedPeriod  # noqa: E402,F401
from clinic_scheduling.models.dentist import Dentist, WorkingHours  # noqa: E402
from clinic_scheduling.models.service import Service  # noqa: E402
from clinic_scheduling.scheduling.booking import BookingOrchestrator  # noqa: E402
from clinic_scheduling.scheduling.locks import LockArena  # noqa: E402

ADMIN = CallerContext(subject='admin@clinic.test', role='admin')
RECEPTIONIST = CallerContext(subject='desk@clinic.test', role='receptionist')


def _dentist_caller(dentist_id: int) -> CallerContext:
    return CallerContext(subject=f'dentist{dentist_id}@clinic.test', role='dentist', dentist_id=dentist_id)


@pytest.fixture
def session_factory(tmp_path):
    # A file database so that concurrent tests can open one connection per thread.
    engine = create_engine(
        f"sqlite:///{tmp_path / 'scheduling.db'}",
        connect_args={'check_same_thread': False},
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clinic(db):
    """Two dentists working weekdays 09:00-12:00 and one service per bookable duration."""
    dentists = []
    for name in ('Dr. Perera', 'Dr. Silva'):
        dentist = Dentist(
            name=name,
            email=f"{name.split()[-1].lower()}@clinic.test",
            is_active=True,
            working_hours=[
                WorkingHours(weekday=weekday, start_time=time(9, 0), end_time=time(12, 0))
                for weekday in range(5)
            ],
        )
        db.add(dentist)
        dentists.append(dentist)

    services = {
        minutes: Service(name=f'{minutes} minute treatment', duration_minutes=minutes, is_active=True)
        for minutes in (15, 30, 45, 60)
    }
    db.add_all(services.values())
    db.commit()

    return SimpleNamespace(dentist=dentists[0], other_dentist=dentists[1], services=services)


@pytest.fixture
def booking():
    return BookingOrchestrator(locks=LockArena(), service_locks=LockArena())


@pytest.fixture
def admin():
    return ADMIN


@pytest.fixture
def receptionist():
    return RECEPTIONIST


@pytest.fixture
def as_dentist():
    return _dentist_caller
