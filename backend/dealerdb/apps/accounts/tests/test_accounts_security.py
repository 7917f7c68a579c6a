from __future__ import annotations

from datetime import timedelta

import pytest
from fastapi import HTTPException

from dealerdb import security
from dealerdb.apps.accounts import schemas as account_schemas
from dealerdb.apps.accounts import services as account_services
from dealerdb.apps.accounts.router import router


def _create_user(db, email: str = "Owner@Example.com", *, is_admin: bool = False):
    user = account_services.create_user(
        db,
        payload=account_schemas.UserCreate(email=email, full_name=" Showroom Owner ", is_admin=is_admin),
    )
    db.commit()
    return user


def test_create_user_normalises_email_and_rejects_duplicates(db_session):
    user = _create_user(db_session)

    assert user.email == "owner@example.com"
    assert user.full_name == "Showroom Owner"
    assert len(user.id) == 36

    with pytest.raises(HTTPException) as exc:
        _create_user(db_session, "owner@EXAMPLE.com ")
    assert exc.value.status_code == 409


def test_token_round_trip_resolves_current_user(db_session):
    user = _create_user(db_session)
    token = security.create_access_token(data={"sub": user.id})

    assert security.decode_subject(token) == user.id
    assert security.get_current_user(token=token, db=db_session).id == user.id


def test_invalid_or_expired_token_is_rejected(db_session):
    user = _create_user(db_session)
    expired = security.create_access_token(data={"sub": user.id}, expires_delta=timedelta(minutes=-5))

    assert security.decode_subject("not-a-token") is None
    with pytest.raises(HTTPException) as exc:
        security.get_current_user(token=expired, db=db_session)
    assert exc.value.status_code == 401

    unknown = security.create_access_token(data={"sub": "missing-user"})
    with pytest.raises(HTTPException) as exc:
        security.get_current_user(token=unknown, db=db_session)
    assert exc.value.status_code == 401


def test_inactive_and_non_admin_users_are_blocked(db_session):
    user = _create_user(db_session)

    assert security.get_current_active_user(current_user=user) is user
    with pytest.raises(HTTPException) as exc:
        security.require_admin(current_user=user)
    assert exc.value.status_code == 403

    account_services.deactivate_user(db_session, user_id=user.id)
    db_session.commit()
    with pytest.raises(HTTPException) as exc:
        security.get_current_active_user(current_user=user)
    assert exc.value.status_code == 400


def test_admin_passes_admin_check(db_session):
    admin = _create_user(db_session, "admin@example.com", is_admin=True)
    assert security.require_admin(current_user=admin) is admin


def test_account_routes_registered():
    paths = {(route.path, tuple(sorted(route.methods))) for route in router.routes}
    assert ("/accounts/me", ("GET",)) in paths
    assert ("/accounts/users", ("POST",)) in paths
