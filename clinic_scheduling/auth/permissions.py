from dataclasses import dataclass

from clinic_scheduling.core.errors import AuthorizationError, NotFoundError

ROLE_ADMIN = "admin"
ROLE_DENTIST = "dentist"
ROLE_RECEPTIONIST = "receptionist"
ROLES = (ROLE_ADMIN, ROLE_DENTIST, ROLE_RECEPTIONIST)

# Roles that manage every dentist's calendar.
CLINIC_WIDE_ROLES = (ROLE_ADMIN, ROLE_RECEPTIONIST)


@dataclass(frozen=True)
class CallerContext:
    subject: str
    role: str
    dentist_id: int | None = None


def _ensure_known_role(caller: CallerContext) -> None:
    if caller.role not in ROLES:
        raise AuthorizationError("Unknown role.")
    if caller.role == ROLE_DENTIST and caller.dentist_id is None:
        raise AuthorizationError("Dentist account is not linked to a calendar.")


def authorize_calendar_write(caller: CallerContext, dentist_id: int) -> None:
    _ensure_known_role(caller)
    if caller.role in CLINIC_WIDE_ROLES:
        return
    if caller.dentist_id != dentist_id:
        raise AuthorizationError("Dentists can only change their own calendar.")


def resolve_dentist_scope(caller: CallerContext, requested_dentist_id: int | None) -> int | None:
    """Return the dentist id a read may cover.

    Clinic-wide roles see whatever they ask for (``None`` meaning every
    dentist). A dentist always reads their own calendar.
    """
    _ensure_known_role(caller)
    if caller.role in CLINIC_WIDE_ROLES:
        return requested_dentist_id
    if requested_dentist_id is not None and requested_dentist_id != caller.dentist_id:
        raise AuthorizationError("Dentists can only view their own calendar.")
    return caller.dentist_id


def require_admin(caller: CallerContext) -> None:
    _ensure_known_role(caller)
    if caller.role != ROLE_ADMIN:
        raise AuthorizationError("Only admins can change clinic settings.")


def conceal_foreign_record(caller: CallerContext, dentist_id: int, not_found_message: str) -> None:
    """Treat a record on another dentist's calendar as missing for a dentist caller.

    A dentist then gets the same 404 for someone else's ids as for ids that do
    not exist.
    """
    _ensure_known_role(caller)
    if caller.role == ROLE_DENTIST and caller.dentist_id != dentist_id:
        raise NotFoundError(not_found_message)
