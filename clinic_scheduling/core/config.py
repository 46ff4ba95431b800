import os
from datetime import time


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_list(value: str | None, default: tuple[int, ...]) -> tuple[int, ...]:
    if not value:
        return default
    return tuple(sorted({int(part) for part in value.split(",") if part.strip()}))


def _get_time(value: str | None, default: time) -> time:
    if not value:
        return default
    return time.fromisoformat(value.strip())


APP_ENV = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG" if APP_ENV == "development" else "INFO")
SQL_ECHO = _get_bool(os.getenv("SQL_ECHO"), default=False)

CORS_ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ALLOWED_ORIGINS", "http://localhost:3000").split(",")
    if origin.strip()
]

# Offset-aware request datetimes are converted to this zone and stored naive.
CLINIC_TIMEZONE = os.getenv("CLINIC_TIMEZONE", "UTC")

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", "60"))

# Bookable service lengths. A service whose duration is not listed here cannot be booked.
SERVICE_DURATIONS_MINUTES = _get_int_list(os.getenv("SERVICE_DURATIONS_MINUTES"), (15, 30, 45, 60))

# Template applied to a newly registered dentist (0 = Monday).
DEFAULT_WORK_DAYS = _get_int_list(os.getenv("DEFAULT_WORK_DAYS"), (0, 1, 2, 3, 4))
DEFAULT_WORK_TIME_FROM = _get_time(os.getenv("DEFAULT_WORK_TIME_FROM"), time(9, 0))
DEFAULT_WORK_TIME_TO = _get_time(os.getenv("DEFAULT_WORK_TIME_TO"), time(17, 0))

LIST_DEFAULT_PAGE_SIZE = int(os.getenv("LIST_DEFAULT_PAGE_SIZE", "20"))
LIST_MAX_PAGE_SIZE = int(os.getenv("LIST_MAX_PAGE_SIZE", "100"))
AVAILABILITY_MAX_RANGE_DAYS = int(os.getenv("AVAILABILITY_MAX_RANGE_DAYS", "31"))


def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
    if DEFAULT_WORK_TIME_FROM >= DEFAULT_WORK_TIME_TO:
        raise RuntimeError("DEFAULT_WORK_TIME_FROM must be earlier than DEFAULT_WORK_TIME_TO.")
    if any(minutes <= 0 for minutes in SERVICE_DURATIONS_MINUTES):
        raise RuntimeError("SERVICE_DURATIONS_MINUTES must only contain positive values.")
