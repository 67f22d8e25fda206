# tests/test_directory.py
import pytest

from mindful_kids import crud, models

from conftest import auth_headers, make_user


def add_credential(db, psychologist, country, status=models.CredentialStatus.verified):
    credential = models.ProfessionalCredential(
        psychologist_id=psychologist.id, issuing_country=country, verification_status=status,
    )
    db.add(credential)
    db.commit()
    return credential


@pytest.fixture
def directory(db_session, make_psychologist, make_clinic):
    clinic = make_clinic()
    ana = make_psychologist(name="Dr. Ana", specialty="Child anxiety", languages=["Spanish", "English"],
                            specialization=["Anxiety"])
    ben = make_psychologist(name="Dr. Ben", specialty="Sleep", languages=["Portuguese"])
    hidden = make_psychologist(name="Dr. Hidden", status=models.VerificationStatus.pending)
    retired = make_psychologist(name="Dr. Retired")
    retired.is_active = False
    db_session.commit()

    add_credential(db_session, ana, "Spain")
    add_credential(db_session, ben, "Portugal")
    add_credential(db_session, ben, "Spain", status=models.CredentialStatus.pending)
    crud.add_affiliation(db_session, ana.id, clinic.id)
    crud.add_affiliation(db_session, hidden.id, clinic.id)
    return {"clinic": clinic, "ana": ana, "ben": ben, "hidden": hidden, "retired": retired}


def test_only_active_verified_profiles_are_listed(client, directory):
    names = [p["name"] for p in client.get("/api/v1/psychologists").json()]
    assert names == ["Dr. Ana", "Dr. Ben"]
    assert client.get(f"/api/v1/psychologists/{directory['hidden'].id}").status_code == 404
    assert client.get(f"/api/v1/psychologists/{directory['retired'].id}").status_code == 404


def test_profile_detail(client, directory):
    response = client.get(f"/api/v1/psychologists/{directory['ana'].id}")
    assert response.status_code == 200
    data = response.json()
    assert data["verified_country"] == "Spain"
    assert [c["name"] for c in data["clinics"]] == ["Sunrise Clinic"]
    assert data["credentials"][0]["status"] == "verified"


def test_specialization_filter(client, directory):
    names = [p["name"] for p in client.get("/api/v1/psychologists?specialization=anxiety").json()]
    assert names == ["Dr. Ana"]


@pytest.mark.parametrize("query, expected", [
    ("country=Spain", ["Dr. Ana"]),
    ("country=portugal", ["Dr. Ben"]),
    ("language=english", ["Dr. Ana"]),
    ("specialty=sleep", ["Dr. Ben"]),
    ("country=France", []),
])
def test_therapist_search(client, directory, query, expected):
    response = client.get(f"/api/v1/search/therapists?{query}")
    assert response.status_code == 200
    assert [t["name"] for t in response.json()] == expected


def test_therapist_search_by_clinic(client, directory):
    results = client.get(f"/api/v1/search/therapists?clinic_id={directory['clinic'].id}").json()
    assert [(t["name"], t["clinic_names"], t["country"]) for t in results] == [
        ("Dr. Ana", ["Sunrise Clinic"], "Spain"),
    ]


def test_clinic_search_counts_active_therapists(client, directory, make_clinic):
    make_clinic("Pending Clinic", verification_status=models.ClinicVerificationStatus.pending)
    results = client.get("/api/v1/search/clinics?country=spain").json()
    assert [(c["name"], c["therapist_count"]) for c in results] == [("Sunrise Clinic", 1)]
    everything = client.get("/api/v1/search/clinics?verified_only=false").json()
    assert {c["name"] for c in everything} == {"Sunrise Clinic", "Pending Clinic"}


def test_clinic_search_pages_past_first_hundred(client, make_clinic):
    for n in range(105):
        make_clinic(f"Clinic {n:03d}")
    page = client.get("/api/v1/search/clinics?offset=100&limit=5").json()
    assert [c["name"] for c in page] == [f"Clinic {n}" for n in range(100, 105)]
    assert len(client.get("/api/v1/search/clinics?offset=95&limit=20").json()) == 10


def test_inactive_clinic_is_hidden(client, db_session, directory):
    clinic = directory["clinic"]
    clinic.is_active = False
    db_session.commit()
    assert client.get("/api/v1/clinics").json() == []
    assert client.get(f"/api/v1/clinics/{clinic.id}").status_code == 404


def test_reviews_upsert_and_rating(client, db_session, directory, parent, parent_headers):
    ana = directory["ana"]
    first = client.post("/api/v1/reviews", headers=parent_headers,
                        json={"psychologist_id": ana.id, "rating": 2, "comment": " meh "})
    assert first.status_code == 200
    again = client.post("/api/v1/reviews", headers=parent_headers, json={"psychologist_id": ana.id, "rating": 5})
    assert again.json()["id"] == first.json()["id"]
    assert again.json()["comment"] is None

    other = make_user(db_session, "second@example.com")
    client.post("/api/v1/reviews", headers=auth_headers(other), json={"psychologist_id": ana.id, "rating": 4})

    profile = client.get(f"/api/v1/psychologists/{ana.id}").json()
    assert profile["avg_rating"] == 4.5
    assert profile["review_count"] == 2
    assert [p["name"] for p in client.get("/api/v1/psychologists?min_rating=4").json()] == ["Dr. Ana"]


def test_review_validation_and_delete(client, directory, parent_headers, therapist_headers):
    ana = directory["ana"]
    assert client.post("/api/v1/reviews", headers=parent_headers,
                       json={"psychologist_id": ana.id, "rating": 6}).status_code == 400
    review = client.post("/api/v1/reviews", headers=parent_headers,
                         json={"psychologist_id": ana.id, "rating": 3}).json()
    assert client.delete(f"/api/v1/reviews/{review['id']}", headers=therapist_headers).status_code == 404
    assert client.delete(f"/api/v1/reviews/{review['id']}", headers=parent_headers).status_code == 204
