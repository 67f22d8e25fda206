# tests/test_credentials.py
import pytest

from mindful_kids import models
from mindful_kids.services.storage_service import CREDENTIALS_DIR

from conftest import auth_headers, make_user

URL = "/api/v1/therapist/credentials"


@pytest.fixture
def profile(make_psychologist, therapist):
    return make_psychologist(name="Dr. Rivera", user_id=therapist.id)


@pytest.fixture
def verified_credential(db_session, profile):
    credential = models.ProfessionalCredential(
        psychologist_id=profile.id,
        credential_type="license",
        issuing_country="Spain",
        verification_status=models.CredentialStatus.verified,
        document_url="http://testserver/api/v1/therapist/credential-document/old.pdf",
    )
    db_session.add(credential)
    db_session.commit()
    return credential


def test_no_profile_yet(client, therapist_headers):
    response = client.post(URL, headers=therapist_headers, json={"document_url": "http://x/doc.pdf"})
    assert response.status_code == 404
    assert response.json()["detail"] == "No public profile yet. Complete and submit your application for approval."

    profile = client.get("/api/v1/therapist/profile", headers=therapist_headers).json()
    assert profile["profile"] is None


def test_new_credential_awaits_review(client, db_session, profile, therapist, therapist_headers):
    response = client.post(URL, headers=therapist_headers, json={
        "document_url": "http://x/licence.pdf", "issuing_country": "Spain", "license_number": "M-99",
    })
    assert response.status_code == 201
    data = response.json()
    assert data["mode"] == "new"
    assert data["credential"]["status"] == "pending_review"
    assert data["credential"]["verification_status"] == "pending"

    entry = db_session.query(models.TherapistAuditLog).one()
    assert entry.therapist_user_id == therapist.id
    assert entry.action_type == "credential_uploaded"


def test_renewal_request_keeps_status(client, db_session, verified_credential, therapist_headers):
    response = client.post(URL, headers=therapist_headers,
                           json={"credential_id": verified_credential.id, "renew": True})
    assert response.status_code == 201
    data = response.json()
    assert data["mode"] == "renewal"
    assert data["credential"]["verification_status"] == "verified"
    assert data["credential"]["renewal_requested_at"] is not None
    assert db_session.query(models.TherapistAuditLog).one().action_type == "credential_renewal_requested"


def test_resubmission_returns_to_review(client, verified_credential, therapist_headers):
    response = client.post(URL, headers=therapist_headers,
                           json={"credential_id": verified_credential.id, "document_url": "http://x/new.pdf"})
    assert response.status_code == 201
    credential = response.json()["credential"]
    assert credential["status"] == "pending_review"
    assert credential["document_url"] == "http://x/new.pdf"
    assert credential["verified_at"] is None


@pytest.mark.parametrize("payload", [
    {},
    {"renew": True},
    {"credential_id": "abc"},
    {"credential_id": "abc", "renew": True, "document_url": "http://x/a.pdf"},
])
def test_submission_mode_must_be_unambiguous(client, profile, therapist_headers, payload):
    assert client.post(URL, headers=therapist_headers, json=payload).status_code == 400


def test_cannot_touch_another_therapists_credential(client, db_session, make_psychologist, verified_credential):
    other_user = make_user(db_session, "other-t@example.com", models.UserRole.therapist)
    make_psychologist(name="Dr. Other", user_id=other_user.id)
    response = client.post(URL, headers=auth_headers(other_user),
                           json={"credential_id": verified_credential.id, "renew": True})
    assert response.status_code == 404


def test_admin_review_clears_renewal_flag(client, db_session, verified_credential, therapist_headers,
                                          admin, admin_headers):
    client.post(URL, headers=therapist_headers, json={"credential_id": verified_credential.id, "renew": True})
    response = client.patch(f"/api/v1/admin/credentials/{verified_credential.id}", headers=admin_headers,
                            json={"status": "verified"})
    assert response.status_code == 200
    data = response.json()
    assert data["renewal_requested_at"] is None
    assert data["status"] == "verified"
    assert db_session.query(models.AdminAuditLog).filter_by(action_type="credential_verified").count() == 1


def test_admin_lists_credentials(client, verified_credential, profile, admin_headers):
    response = client.get(f"/api/v1/admin/psychologists/{profile.id}/credentials", headers=admin_headers)
    assert response.status_code == 200
    assert [c["id"] for c in response.json()] == [verified_credential.id]


def test_credential_document_upload_and_admin_download(client, storage, profile, therapist_headers,
                                                       admin_headers):
    response = client.post("/api/v1/therapist/credential-document", headers=therapist_headers,
                           files={"document": ("scan.png", b"\x89PNG data", "image/png")})
    assert response.status_code == 201
    url = response.json()["url"]
    assert url.startswith("http://testserver/api/v1/therapist/credential-document/")
    filename = url.rsplit("/", 1)[1]
    assert (storage.root / CREDENTIALS_DIR / filename).exists()

    path = f"/api/v1/therapist/credential-document/{filename}"
    assert client.get(path, headers=therapist_headers).status_code == 403
    download = client.get(path, headers=admin_headers)
    assert download.status_code == 200
    assert download.content == b"\x89PNG data"


def test_credential_document_filename_checks(client, admin_headers):
    response = client.get("/api/v1/therapist/credential-document/..secret.pdf", headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid filename"
    assert client.get("/api/v1/therapist/credential-document/missing.pdf",
                      headers=admin_headers).status_code == 404
