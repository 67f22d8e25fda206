# tests/test_therapist_applications.py
import pytest

from mindful_kids import crud, models, schemas
from mindful_kids.services import therapist_application_service

DRAFT = {
    "professional_name": "Dr. Ana Rivera",
    "email": "Ana@Example.com",
    "specialty": "Child anxiety",
    "languages": ["English", "Spanish"],
    "credentials": [
        {"type": "license", "issuer": "COP Madrid", "number": "M-1234", "issuing_country": "Spain"},
    ],
}


@pytest.fixture
def submitted(client, therapist_headers, make_clinic):
    clinic = make_clinic()
    payload = dict(DRAFT, clinic_affiliations=[{"clinic_id": clinic.id, "role_label": "Lead", "is_primary": True}])
    assert client.put("/api/v1/therapist/application", headers=therapist_headers, json=payload).status_code == 200
    response = client.post("/api/v1/therapist/application/submit", headers=therapist_headers)
    assert response.status_code == 200
    return response.json(), clinic


def test_no_application_yet(client, therapist_headers):
    response = client.get("/api/v1/therapist/application", headers=therapist_headers)
    assert response.status_code == 200
    assert response.json() is None


def test_first_save_requires_name_and_email(client, therapist_headers):
    response = client.put("/api/v1/therapist/application", headers=therapist_headers, json={"specialty": "Play"})
    assert response.status_code == 400
    assert response.json()["detail"] == "professional_name and email are required"


def test_draft_can_be_edited_until_submitted(client, therapist_headers):
    client.put("/api/v1/therapist/application", headers=therapist_headers, json=DRAFT)
    response = client.put("/api/v1/therapist/application", headers=therapist_headers, json={"bio": "Ten years."})
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "draft"
    assert data["bio"] == "Ten years."
    assert data["email"] == "ana@example.com"

    client.post("/api/v1/therapist/application/submit", headers=therapist_headers)
    response = client.put("/api/v1/therapist/application", headers=therapist_headers, json={"bio": "Changed"})
    assert response.status_code == 400
    assert response.json()["detail"] == "Application already submitted; cannot edit."


def test_unknown_clinic_in_affiliations(client, therapist_headers):
    payload = dict(DRAFT, clinic_affiliations=[{"clinic_id": "nope"}])
    response = client.put("/api/v1/therapist/application", headers=therapist_headers, json=payload)
    assert response.status_code == 404


def test_submit_twice(client, submitted, therapist_headers):
    response = client.post("/api/v1/therapist/application/submit", headers=therapist_headers)
    assert response.status_code == 400
    assert response.json()["detail"] == "Application already submitted or reviewed."


def test_submit_without_draft(client, therapist_headers):
    response = client.post("/api/v1/therapist/application/submit", headers=therapist_headers)
    assert response.status_code == 404


def test_parent_cannot_use_therapist_surface(client, parent_headers):
    assert client.get("/api/v1/therapist/application", headers=parent_headers).status_code == 403


def test_approval_publishes_verified_profile(client, db_session, submitted, admin, admin_headers, therapist_headers):
    application, clinic = submitted
    response = client.patch(f"/api/v1/admin/therapist-applications/{application['id']}",
                            headers=admin_headers, json={"status": "approved"})
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "approved"
    assert data["reviewed_by"] == admin.id
    assert data["psychologist_verification_status"] == "verified"

    psychologist = db_session.get(models.Psychologist, data["psychologist_id"])
    assert psychologist.verification_status == models.VerificationStatus.verified
    assert psychologist.verified_at is not None
    assert psychologist.name == "Dr. Ana Rivera"

    credential = db_session.query(models.ProfessionalCredential).filter_by(psychologist_id=psychologist.id).one()
    assert credential.verification_status == models.CredentialStatus.verified
    assert credential.issuing_country == "Spain"

    link = db_session.query(models.TherapistClinic).filter_by(psychologist_id=psychologist.id).one()
    assert link.clinic_id == clinic.id
    assert link.status == models.AffiliationStatus.active
    assert link.is_primary is True

    entry = db_session.query(models.AdminAuditLog).filter_by(action_type="therapist_application_approved").one()
    assert entry.target_id == application["id"]

    profile = client.get("/api/v1/therapist/profile", headers=therapist_headers).json()
    assert profile["profile"]["id"] == psychologist.id
    assert [c["id"] for c in profile["profile"]["clinics"]] == [clinic.id]


def test_second_review_is_rejected_without_side_effects(client, db_session, submitted, admin_headers):
    application, _ = submitted
    url = f"/api/v1/admin/therapist-applications/{application['id']}"
    assert client.patch(url, headers=admin_headers, json={"status": "approved"}).status_code == 200

    response = client.patch(url, headers=admin_headers, json={"status": "approved"})
    assert response.status_code == 400
    assert response.json()["detail"] == "Only pending applications can be approved or rejected"
    assert db_session.query(models.Psychologist).count() == 1


def test_stale_review_loses_the_conditional_update(db_session, submitted, admin):
    """A reviewer holding an out-of-date copy cannot create a second profile."""
    application, _ = submitted
    decision = schemas.ApplicationReview(status="approved")
    therapist_application_service.review(db_session, admin, application["id"], decision)

    stale = db_session.get(models.TherapistApplication, application["id"])
    stale.status = models.ApplicationStatus.pending  # in-memory only, as another worker would see it
    with pytest.raises(crud.InvalidStateError, match="Only pending applications"):
        therapist_application_service.review(db_session, admin, application["id"], decision)
    assert db_session.query(models.Psychologist).count() == 1


def test_rejection_records_reason(client, db_session, submitted, admin_headers):
    application, _ = submitted
    response = client.patch(f"/api/v1/admin/therapist-applications/{application['id']}",
                            headers=admin_headers, json={"status": "rejected", "rejection_reason": "  Missing licence  "})
    assert response.status_code == 200
    assert response.json()["rejection_reason"] == "Missing licence"
    assert db_session.query(models.Psychologist).count() == 0
    entry = db_session.query(models.AdminAuditLog).filter_by(action_type="therapist_application_rejected").one()
    assert entry.details == {"rejection_reason": "Missing licence"}


def test_admin_list_includes_user_fields(client, submitted, admin_headers):
    response = client.get("/api/v1/admin/therapist-applications?status=pending", headers=admin_headers)
    assert response.status_code == 200
    [row] = response.json()
    assert row["user_email"] == "therapist@example.com"
    assert row["user_name"] == "Dr. Rivera"


def test_dashboard_counts(client, submitted, admin_headers):
    stats = client.get("/api/v1/admin/dashboard", headers=admin_headers).json()
    assert stats["pending_therapist_applications"] == 1
    assert stats["pending_clinic_applications"] == 0
    assert stats["verified_clinics_count"] == 1
