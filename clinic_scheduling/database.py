import os
from dotenv import load_dotenv
from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from clinic_scheduling.core import config


load_dotenv()
DATABASE_URL = os.getenv("DATABASE_URL")


def _connect_args(url: str) -> dict:
    # Sessions are handed between the request thread pool and the lock holder.
    if url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


engine = create_engine(DATABASE_URL, echo=config.SQL_ECHO, connect_args=_connect_args(DATABASE_URL))

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_scheduling_schema_checked = False

SCHEDULING_INDEXES = [
    'CREATE INDEX IF NOT EXISTS idx_appointments_dentist_range ON appointments(dentist_id, start_time, end_time)',
    'CREATE INDEX IF NOT EXISTS idx_appointments_patient_start ON appointments(patient_id, start_time)',
    'CREATE INDEX IF NOT EXISTS idx_appointments_status_start ON appointments(status, start_time)',
    'CREATE INDEX IF NOT EXISTS idx_blocked_periods_dentist_range ON blocked_periods(dentist_id, start_time, end_time)',
]


def ensure_scheduling_schema() -> None:
    global _scheduling_schema_checked

    if _scheduling_schema_checked:
        return

    with _schema_lock:
        if _scheduling_schema_checked:
            return

        inspector = inspect(engine)
        table_names = set(inspector.get_table_names())

        if not {'appointments', 'blocked_periods'} <= table_names:
            _scheduling_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('appointments')}
        migration_steps = [
            ('note', 'ALTER TABLE appointments ADD COLUMN note VARCHAR'),
            ('cancelled_at', 'ALTER TABLE appointments ADD COLUMN cancelled_at TIMESTAMP'),
            ('updated_at', 'ALTER TABLE appointments ADD COLUMN updated_at TIMESTAMP'),
            ('cancel_note', 'ALTER TABLE appointments ADD COLUMN cancel_note VARCHAR'),
        ]

        with engine.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            for statement in SCHEDULING_INDEXES:
                connection.execute(text(statement))

        _scheduling_schema_checked = True
