import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials

from clinic_scheduling.auth.dependencies import caller_from_claims, get_current_caller
from clinic_scheduling.auth.jwt_handler import create_access_token, decode_access_token


def test_token_round_trip_carries_role_and_dentist() -> None:
    token = create_access_token('dentist@clinic.test', 'dentist', dentist_id=7)

    payload = decode_access_token(token)

    assert payload['sub'] == 'dentist@clinic.test'
    assert payload['role'] == 'dentist'
    assert payload['dentist_id'] == 7


def test_get_current_caller_builds_context_from_token() -> None:
    token = create_access_token('desk@clinic.test', 'Receptionist')
    credentials = HTTPAuthorizationCredentials(scheme='Bearer', credentials=token)

    caller = get_current_caller(credentials=credentials)

    assert caller.subject == 'desk@clinic.test'
    assert caller.role == 'receptionist'
    assert caller.dentist_id is None


def test_get_current_caller_rejects_garbage_token() -> None:
    credentials = HTTPAuthorizationCredentials(scheme='Bearer', credentials='not-a-token')

    with pytest.raises(HTTPException) as exception_info:
        get_current_caller(credentials=credentials)

    assert exception_info.value.status_code == 401
    assert exception_info.value.detail == 'Invalid token'


def test_get_current_caller_rejects_expired_token() -> None:
    token = create_access_token('desk@clinic.test', 'receptionist', expires_minutes=-1)
    credentials = HTTPAuthorizationCredentials(scheme='Bearer', credentials=token)

    with pytest.raises(HTTPException) as exception_info:
        get_current_caller(credentials=credentials)

    assert exception_info.value.status_code == 401


@pytest.mark.parametrize(
    ('payload', 'error_detail'),
    [
        ({'role': 'admin'}, 'Invalid token subject'),
        ({'sub': 'someone@clinic.test', 'role': 'patient'}, 'Invalid token role'),
        ({'sub': 'dentist@clinic.test', 'role': 'dentist', 'dentist_id': 'abc'}, 'Invalid token dentist'),
    ],
)
def test_caller_from_claims_rejects_bad_claims(payload: dict, error_detail: str) -> None:
    with pytest.raises(HTTPException) as exception_info:
        caller_from_claims(payload)

    assert exception_info.value.status_code == 401
    assert exception_info.value.detail == error_detail


def test_caller_from_claims_parses_dentist_id() -> None:
    caller = caller_from_claims({'sub': 'dentist@clinic.test', 'role': 'dentist', 'dentist_id': '3'})

    assert caller.dentist_id == 3
