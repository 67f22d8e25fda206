# tests/test_clinic_applications.py
from datetime import timedelta
from urllib.parse import urlparse

import pytest

from mindful_kids import models, security
from mindful_kids.core.timeutils import as_utc, utcnow
from mindful_kids.limiter import limiter
from mindful_kids.services.storage_service import CLINIC_APPLICATIONS_DIR

URL = "/api/v1/clinic-applications"
ADMIN_URL = "/api/v1/admin/clinic-applications"
FORM = {"clinic_name": "Little Steps Clinic", "country": "Portugal", "contact_email": "Hello@LittleSteps.pt"}


def pdf(content=b"%PDF-1.4 licence"):
    return {"document": ("licence.pdf", content, "application/pdf")}


def submit(client, form=None, files=None):
    return client.post(URL, data=form or FORM, files=files if files is not None else pdf())


@pytest.fixture
def application(client):
    response = submit(client)
    assert response.status_code == 201
    return response.json()["application"]


def test_public_submission(client, db_session, storage, application):
    assert application["status"] == "pending"
    row = db_session.get(models.ClinicApplication, application["id"])
    assert row.clinic_name == "Little Steps Clinic"
    assert row.document_storage_path.endswith(".pdf")
    assert row.document_storage_path != "licence.pdf"
    stored = storage.root / CLINIC_APPLICATIONS_DIR / row.document_storage_path
    assert stored.read_bytes() == b"%PDF-1.4 licence"


def test_submission_requires_document(client):
    response = client.post(URL, data=FORM)
    assert response.status_code == 400
    assert response.json()["detail"] == 'No file uploaded. Send a single file in field "document".'


@pytest.mark.parametrize("form, message", [
    ({"clinic_name": "  ", "country": "Portugal", "contact_email": "a@b.pt"},
     "clinic_name, country, and contact_email are required."),
    ({"clinic_name": "X", "country": "Portugal", "contact_email": "not-an-email"},
     "contact_email must be a valid email address."),
])
def test_submission_field_validation(client, db_session, form, message):
    response = submit(client, form)
    assert response.status_code == 400
    assert response.json()["detail"] == message
    assert db_session.query(models.ClinicApplication).count() == 0


def test_submission_rejects_file_type(client, storage, db_session):
    response = submit(client, files={"document": ("notes.txt", b"hello", "text/plain")})
    assert response.status_code == 400
    assert response.json()["detail"] == "File type not allowed. Use: PDF, JPEG, PNG, or WebP."
    assert db_session.query(models.ClinicApplication).count() == 0


def test_submission_rejects_large_file(client, storage, db_session):
    response = submit(client, files=pdf(b"x" * (storage.max_bytes + 1)))
    assert response.status_code == 400
    assert response.json()["detail"] == "File too large. Maximum size is 1MB."
    assert not any((storage.root / CLINIC_APPLICATIONS_DIR).iterdir())


def test_public_submission_is_rate_limited(client):
    limiter.enabled = True
    try:
        statuses = [client.post(URL, data=FORM).status_code for _ in range(11)]
    finally:
        limiter.enabled = False
        limiter.reset()
    assert statuses[:10] == [400] * 10
    assert statuses[10] == 429


def test_admin_views_never_expose_storage_path(client, application, admin_headers):
    listing = client.get(ADMIN_URL, headers=admin_headers)
    assert listing.status_code == 200
    [row] = listing.json()
    assert row["has_document"] is True
    assert "document_storage_path" not in row

    detail = client.get(f"{ADMIN_URL}/{application['id']}", headers=admin_headers).json()
    assert detail["contact_email"] == "Hello@LittleSteps.pt"
    assert "document_storage_path" not in detail


def test_admin_endpoints_require_admin(client, application, parent_headers):
    assert client.get(ADMIN_URL, headers=parent_headers).status_code == 403
    assert client.get(f"{ADMIN_URL}/{application['id']}/document", headers=parent_headers).status_code == 403


# --- signed document links ---

def _path(url):
    parsed = urlparse(url)
    return f"{parsed.path}?{parsed.query}"


def test_document_link_serves_that_applications_file(client, application, admin_headers):
    other = submit(client, files=pdf(b"%PDF other clinic")).json()["application"]

    link = client.get(f"{ADMIN_URL}/{application['id']}/document", headers=admin_headers)
    assert link.status_code == 200
    body = link.json()
    assert body["expires_in_seconds"] == 300
    assert "/api/v1/admin/clinic-applications/document?token=" in body["url"]

    served = client.get(_path(body["url"]))
    assert served.status_code == 200
    assert served.content == b"%PDF-1.4 licence"

    other_link = client.get(f"{ADMIN_URL}/{other['id']}/document", headers=admin_headers).json()
    assert client.get(_path(other_link["url"])).content == b"%PDF other clinic"


def test_document_token_errors(client, application, parent):
    document = f"{ADMIN_URL}/document"

    missing = client.get(document)
    assert missing.status_code == 401
    assert missing.json()["detail"] == "Token required."

    expired = security.create_document_token(application["id"], expires_delta=timedelta(seconds=-5))
    response = client.get(document, params={"token": expired})
    assert response.status_code == 401
    assert response.json()["detail"] == "Link expired. Request a new document link."

    for bad in ("garbage", security.create_access_token(parent)):
        response = client.get(document, params={"token": bad})
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid token."


def test_document_for_unknown_application(client):
    token = security.create_document_token("does-not-exist")
    response = client.get(f"{ADMIN_URL}/document", params={"token": token})
    assert response.status_code == 404
    assert response.json()["detail"] == "Document not found."


def test_document_path_traversal_is_refused(client, db_session, application):
    row = db_session.get(models.ClinicApplication, application["id"])
    row.document_storage_path = "../../../etc/passwd"
    db_session.commit()

    token = security.create_document_token(application["id"])
    response = client.get(f"{ADMIN_URL}/document", params={"token": token})
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid path."


def test_document_missing_on_disk(client, db_session, storage, application):
    row = db_session.get(models.ClinicApplication, application["id"])
    (storage.root / CLINIC_APPLICATIONS_DIR / row.document_storage_path).unlink()

    token = security.create_document_token(application["id"])
    response = client.get(f"{ADMIN_URL}/document", params={"token": token})
    assert response.status_code == 404
    assert response.json()["detail"] == "File not found."


def test_no_document_link_without_document(client, db_session, application, admin_headers):
    row = db_session.get(models.ClinicApplication, application["id"])
    row.document_storage_path = None
    db_session.commit()
    response = client.get(f"{ADMIN_URL}/{application['id']}/document", headers=admin_headers)
    assert response.status_code == 404
    assert response.json()["detail"] == "No document for this application."


# --- review ---

def test_approval_creates_verified_clinic_and_invite(client, db_session, application, admin, admin_headers,
                                                     email_service):
    response = client.patch(f"{ADMIN_URL}/{application['id']}", headers=admin_headers, json={"status": "approved"})
    assert response.status_code == 200
    data = response.json()
    assert data["application"]["status"] == "approved"

    clinic = db_session.get(models.Clinic, data["clinic"]["id"])
    assert clinic.verification_status == models.ClinicVerificationStatus.verified
    assert clinic.slug == f"little-steps-clinic-{application['id'][:8]}"
    assert clinic.verified_by == admin.id

    invite = db_session.query(models.ClinicInvite).filter_by(clinic_id=clinic.id).one()
    assert invite.contact_email == "hello@littlesteps.pt"
    assert timedelta(days=6) < as_utc(invite.expires_at) - utcnow() <= timedelta(days=7)
    row = db_session.get(models.ClinicApplication, application["id"])
    assert row.invite_token == invite.token
    assert row.clinic_id == clinic.id

    # No SendGrid key: the link comes back for manual delivery
    assert data["invite"]["sent"] is False
    assert invite.token in data["invite"]["link"]
    [mail] = email_service.outbox
    assert mail["to"] == "hello@littlesteps.pt"
    assert mail["subject"] == "Your clinic has been approved – set your password"
    assert "Little Steps Clinic" in mail["body"]["text"]
    assert invite.token in mail["body"]["html"]

    entry = db_session.query(models.AdminAuditLog).filter_by(action_type="clinic_application_approved").one()
    assert entry.details == {"clinic_id": clinic.id}


def test_review_only_once(client, db_session, application, admin_headers):
    url = f"{ADMIN_URL}/{application['id']}"
    assert client.patch(url, headers=admin_headers, json={"status": "rejected"}).status_code == 200
    response = client.patch(url, headers=admin_headers, json={"status": "approved"})
    assert response.status_code == 400
    assert response.json()["detail"] == "Application has already been reviewed."
    assert db_session.query(models.Clinic).count() == 0


def test_rejection_audit_carries_reason(client, db_session, application, admin_headers):
    response = client.patch(f"{ADMIN_URL}/{application['id']}", headers=admin_headers,
                            json={"status": "rejected", "rejection_reason": "Document unreadable"})
    assert response.status_code == 200
    assert response.json()["application"]["rejection_reason"] == "Document unreadable"
    assert response.json()["clinic"] is None
    entry = db_session.query(models.AdminAuditLog).filter_by(action_type="clinic_application_rejected").one()
    assert entry.details == {"rejection_reason": "Document unreadable"}


def test_same_clinic_name_gets_distinct_slugs(client, db_session, admin_headers):
    form = {"clinic_name": "Sunrise Clinic", "country": "Spain", "contact_email": "a@sunrise.es"}
    ids = [submit(client, form).json()["application"]["id"] for _ in range(2)]
    slugs = []
    for application_id in ids:
        response = client.patch(f"{ADMIN_URL}/{application_id}", headers=admin_headers, json={"status": "approved"})
        assert response.status_code == 200
        slugs.append(response.json()["clinic"]["slug"])
    assert slugs == [f"sunrise-clinic-{application_id[:8]}" for application_id in ids]
    assert db_session.query(models.Clinic).filter_by(name="Sunrise Clinic").count() == 2
