import pytest
from fastapi import HTTPException

import auth, errors, models
from conftest import ADMIN_PASSWORD, USER_PASSWORD


def test_login_returns_principal(db_session):
    principal = auth.login(db_session, "admin", ADMIN_PASSWORD)
    assert principal == auth.Principal(username="admin", role=models.Role.admin)
    assert principal.is_admin

    principal = auth.login(db_session, "user", USER_PASSWORD)
    assert principal.role == models.Role.user
    assert not principal.is_admin


@pytest.mark.parametrize("username,password", [("admin", "nope"), ("ghost", ADMIN_PASSWORD)])
def test_login_rejects_bad_credentials(db_session, username, password):
    with pytest.raises(errors.AuthError):
        auth.login(db_session, username, password)


def test_passwords_are_hashed(db_session):
    hashed = auth.get_password_hash("secret")
    assert hashed != "secret"
    assert auth.verify_password("secret", hashed)
    assert not auth.verify_password("other", hashed)


def test_token_round_trip(db_session):
    token = auth.create_access_token({"sub": "user", "role": "user"})
    user = auth.get_current_user(db=db_session, token=token)
    assert user.username == "user"


def test_invalid_token_is_rejected(db_session):
    with pytest.raises(HTTPException) as excinfo:
        auth.get_current_user(db=db_session, token="not-a-token")
    assert excinfo.value.status_code == 401


def test_admin_gate(db_session):
    user = auth.get_current_user(db=db_session, token=auth.create_access_token({"sub": "user"}))
    with pytest.raises(HTTPException) as excinfo:
        auth.get_current_admin_user(current_user=user)
    assert excinfo.value.status_code == 403

    admin = auth.get_current_user(db=db_session, token=auth.create_access_token({"sub": "admin"}))
    assert auth.get_current_admin_user(current_user=admin) is admin
