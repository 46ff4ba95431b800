import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from clinic_scheduling.core import config
from clinic_scheduling.core.logging import setup_logging
from clinic_scheduling.database import Base, engine, ensure_scheduling_schema
from clinic_scheduling.models import appointment, blocked_period, dentist, service  # noqa: F401
from clinic_scheduling.routes import (
    appointment_routes,
    availability_routes,
    blocked_period_routes,
    dentist_routes,
    service_routes,
)

setup_logging()

app = FastAPI(title='Clinic Scheduling API')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

logger = logging.getLogger(__name__)


@app.on_event('startup')
def initialize_database() -> None:
    config.validate_runtime_config()
    try:
        Base.metadata.create_all(bind=engine)
        ensure_scheduling_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')


@app.get('/')
def root():
    return {'status': 'Clinic Scheduling API Running'}


app.include_router(dentist_routes.router, prefix='/dentists')
app.include_router(availability_routes.router, prefix='/dentists')
app.include_router(service_routes.router, prefix='/services')
app.include_router(appointment_routes.router, prefix='/appointments')
app.include_router(blocked_period_routes.router, prefix='/blocked-periods')
