# tests/test_invites.py
from datetime import timedelta

import pytest

from mindful_kids import models
from mindful_kids.core.timeutils import utcnow

from conftest import PASSWORD, make_user

URL = "/api/v1/auth/set-password-from-invite"


@pytest.fixture
def invite(db_session, make_clinic):
    clinic = make_clinic()
    invite = models.ClinicInvite(
        clinic_id=clinic.id,
        contact_email="owner@clinic.example",
        token="a" * 64,
        expires_at=utcnow() + timedelta(days=7),
    )
    db_session.add(invite)
    db_session.commit()
    return invite


def test_accept_invite_creates_clinic_admin(client, db_session, invite):
    clinic_id = invite.clinic_id
    response = client.post(URL, json={"token": invite.token, "password": "new-password-1"})
    assert response.status_code == 201
    data = response.json()
    assert data["message"] == "Password set. You can now sign in."
    assert data["user"]["role"] == "clinic_admin"
    assert data["user"]["name"] == "Clinic (owner@clinic.example)"

    user = db_session.query(models.User).filter_by(email="owner@clinic.example").one()
    assert db_session.query(models.ClinicAdmin).filter_by(user_id=user.id, clinic_id=clinic_id).count() == 1
    assert db_session.query(models.ClinicInvite).count() == 0

    login = client.post("/api/v1/auth/login", json={"email": "owner@clinic.example", "password": "new-password-1"})
    assert login.status_code == 200


def test_invite_is_single_use(client, invite):
    token = invite.token
    assert client.post(URL, json={"token": token, "password": "new-password-1"}).status_code == 201
    response = client.post(URL, json={"token": token, "password": "another-pass"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid or expired invite link. Request a new one from the admin."


def test_expired_invite(client, db_session, invite):
    invite.expires_at = utcnow() - timedelta(minutes=1)
    db_session.commit()
    response = client.post(URL, json={"token": invite.token, "password": "new-password-1"})
    assert response.status_code == 401


def test_unknown_token(client):
    response = client.post(URL, json={"token": "nope", "password": "new-password-1"})
    assert response.status_code == 401


def test_existing_account_consumes_invite(client, db_session, invite):
    make_user(db_session, "owner@clinic.example")
    response = client.post(URL, json={"token": invite.token, "password": PASSWORD})
    assert response.status_code == 409
    assert db_session.query(models.ClinicInvite).count() == 0
    assert db_session.query(models.ClinicAdmin).count() == 0


def test_short_password_rejected(client, invite):
    response = client.post(URL, json={"token": invite.token, "password": "short"})
    assert response.status_code == 400
