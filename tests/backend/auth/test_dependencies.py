import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials

from backend.auth import jwt_handler
from backend.auth.dependencies import get_current_user


def bearer(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme='Bearer', credentials=token)


def test_access_token_round_trip_keeps_subject_and_organization() -> None:
    token = jwt_handler.create_access_token(subject='ana@lumina.example', organization_id='org-1')

    payload = jwt_handler.decode_access_token(token)

    assert payload['sub'] == 'ana@lumina.example'
    assert payload['org'] == 'org-1'


def test_get_current_user_resolves_staff_member(db_session, clinic) -> None:
    token = jwt_handler.create_access_token(
        subject=clinic.receptionist.email,
        organization_id=clinic.organization.id,
    )

    user = get_current_user(credentials=bearer(token), db=db_session)

    assert user.id == clinic.receptionist.id


def test_get_current_user_rejects_garbage_token(db_session) -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_current_user(credentials=bearer('not-a-jwt'), db=db_session)

    assert exception_info.value.status_code == 401
    assert exception_info.value.detail == 'Invalid token'


def test_get_current_user_rejects_token_for_another_organization(db_session, clinic) -> None:
    token = jwt_handler.create_access_token(
        subject=clinic.receptionist.email,
        organization_id=clinic.other_organization.id,
    )

    with pytest.raises(HTTPException) as exception_info:
        get_current_user(credentials=bearer(token), db=db_session)

    assert exception_info.value.detail == 'User not found'


def test_get_current_user_rejects_expired_token(db_session, clinic) -> None:
    token = jwt_handler.create_access_token(
        subject=clinic.receptionist.email,
        organization_id=clinic.organization.id,
        expires_minutes=-1,
    )

    with pytest.raises(HTTPException) as exception_info:
        get_current_user(credentials=bearer(token), db=db_session)

    assert exception_info.value.status_code == 401
