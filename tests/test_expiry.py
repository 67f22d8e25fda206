# tests/test_expiry.py
import json
from datetime import timedelta

import pytest

from mindful_kids import models
from mindful_kids.core.timeutils import utcnow
from mindful_kids.jobs import check_verification_expiry as job
from mindful_kids.services.expiry_service import check_verification_expiry


@pytest.fixture
def population(db_session, make_psychologist):
    now = utcnow()
    lapsed = make_psychologist(name="Dr. Lapsed", verification_expires_at=now - timedelta(days=2))
    soon = make_psychologist(name="Dr. Soon", verification_expires_at=now + timedelta(days=10))
    make_psychologist(name="Dr. Later", verification_expires_at=now + timedelta(days=90))
    make_psychologist(name="Dr. Suspended", status=models.VerificationStatus.suspended,
                      verification_expires_at=now - timedelta(days=5))
    old_licence = models.ProfessionalCredential(
        psychologist_id=soon.id, credential_type="license", issuing_country="Spain",
        verification_status=models.CredentialStatus.verified, expires_at=now - timedelta(days=1),
    )
    db_session.add(old_licence)
    db_session.commit()
    return {"lapsed": lapsed, "soon": soon, "licence": old_licence}


def test_dry_run_reports_without_changes(db_session, population):
    report = check_verification_expiry(db_session)
    assert report["applied"] is False
    assert {(e["type"], e["id"]) for e in report["expired"]} == {
        ("psychologist", population["lapsed"].id),
        ("credential", population["licence"].id),
    }
    assert [e["name"] for e in report["expiring"]] == ["Dr. Soon"]
    credential_entry = next(e for e in report["expired"] if e["type"] == "credential")
    assert credential_entry["psychologist_name"] == "Dr. Soon"

    db_session.refresh(population["lapsed"])
    assert population["lapsed"].verification_status == models.VerificationStatus.verified


def test_apply_marks_expired_once(db_session, population):
    report = check_verification_expiry(db_session, apply=True)
    assert report["applied"] is True
    assert report["errors"] == []

    db_session.refresh(population["lapsed"])
    db_session.refresh(population["licence"])
    assert population["lapsed"].verification_status == models.VerificationStatus.expired
    assert population["licence"].verification_status == models.CredentialStatus.expired

    again = check_verification_expiry(db_session, apply=True)
    assert again["expired"] == []


def test_warning_window_is_configurable(db_session, population):
    report = check_verification_expiry(db_session, warn_days=120)
    assert sorted(e["name"] for e in report["expiring"]) == ["Dr. Later", "Dr. Soon"]


def test_expired_profile_leaves_directory(client, db_session, population):
    check_verification_expiry(db_session, apply=True)
    names = [p["name"] for p in client.get("/api/v1/psychologists").json()]
    assert "Dr. Lapsed" not in names
    assert "Dr. Soon" in names


def test_admin_dry_run_endpoint(client, db_session, population, admin_headers, parent_headers):
    assert client.get("/api/v1/admin/verification-expiry", headers=parent_headers).status_code == 403
    response = client.get("/api/v1/admin/verification-expiry?warn_days=30", headers=admin_headers)
    assert response.status_code == 200
    assert len(response.json()["expired"]) == 2
    db_session.refresh(population["lapsed"])
    assert population["lapsed"].verification_status == models.VerificationStatus.verified


def test_job_entry_point(db_session, population, monkeypatch, capsys):
    lapsed_id = population["lapsed"].id
    monkeypatch.setattr(job, "SessionLocal", lambda: db_session)
    monkeypatch.setattr(job, "setup_logging", lambda: None)
    assert job.main(["--apply"]) == 0
    printed = json.loads(capsys.readouterr().out)
    assert printed["applied"] is True
    assert len(printed["expired"]) == 2
    assert db_session.get(models.Psychologist, lapsed_id).verification_status == models.VerificationStatus.expired
