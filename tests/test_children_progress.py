# tests/test_children_progress.py
from datetime import date, timedelta

import pytest

from mindful_kids import crud, models

from conftest import auth_headers, make_user


@pytest.fixture
def activity(db_session):
    activity = models.Activity(title="Calm Breathing", slug="calm-breathing", age_groups=["3-5", "6-8"])
    db_session.add(activity)
    db_session.commit()
    return activity


@pytest.fixture
def child(client, parent_headers):
    response = client.post("/api/v1/children", headers=parent_headers, json={"name": "Mia", "age_group": "6-8"})
    assert response.status_code == 201
    return response.json()


def test_children_are_scoped_to_their_parent(client, db_session, child, parent_headers):
    other = auth_headers(make_user(db_session, "other@example.com"))

    assert client.get(f"/api/v1/children/{child['id']}", headers=parent_headers).status_code == 200
    response = client.get(f"/api/v1/children/{child['id']}", headers=other)
    assert response.status_code == 404
    assert response.json()["detail"] == "Child not found"
    assert client.get("/api/v1/children", headers=other).json() == []
    assert client.delete(f"/api/v1/children/{child['id']}", headers=other).status_code == 404


def test_update_and_delete_child(client, child, parent_headers):
    response = client.patch(f"/api/v1/children/{child['id']}", headers=parent_headers, json={"name": "Mia Rose"})
    assert response.status_code == 200
    assert response.json()["name"] == "Mia Rose"

    assert client.delete(f"/api/v1/children/{child['id']}", headers=parent_headers).status_code == 204
    assert client.get("/api/v1/children", headers=parent_headers).json() == []


def test_invalid_age_group_rejected(client, parent_headers):
    response = client.post("/api/v1/children", headers=parent_headers, json={"name": "Leo", "age_group": "2-3"})
    assert response.status_code == 400


def test_progress_upsert_merges_metadata(client, child, activity, parent_headers):
    url = f"/api/v1/progress/children/{child['id']}/activities/{activity.id}"
    first = client.put(url, headers=parent_headers, json={"stars": 3, "metadata": {"mood": "calm"}})
    assert first.status_code == 200
    second = client.put(url, headers=parent_headers, json={"stars": 5, "metadata": {"rounds": 4}})
    assert second.status_code == 200
    data = second.json()
    assert data["id"] == first.json()["id"]
    assert data["stars"] == 5
    assert data["metadata"] == {"mood": "calm", "rounds": 4}


def test_progress_unknown_activity(client, child, parent_headers):
    response = client.put(f"/api/v1/progress/children/{child['id']}/activities/missing",
                          headers=parent_headers, json={"stars": 1})
    assert response.status_code == 404
    assert response.json()["detail"] == "Activity not found"


def test_progress_summary(client, child, activity, parent_headers):
    client.put(f"/api/v1/progress/children/{child['id']}/activities/{activity.id}",
               headers=parent_headers, json={"stars": 4})
    summary = client.get(f"/api/v1/progress/children/{child['id']}/summary", headers=parent_headers).json()
    assert summary["total_stars"] == 4
    assert summary["completed_count"] == 1
    assert summary["current_streak"] == 1
    assert summary["recent_completions"][0]["activity_title"] == "Calm Breathing"


@pytest.mark.parametrize("days_ago, expected", [
    ([], 0),
    ([0], 1),
    ([0, 1, 2], 3),
    ([1, 2], 2),
    ([0, 2, 3], 1),
    ([2, 3, 4], 0),
])
def test_compute_streak(days_ago, expected):
    today = date(2026, 3, 10)
    days = [today - timedelta(days=n) for n in days_ago]
    assert crud.compute_streak(days, today) == expected


def test_emotion_logs(client, child, parent_headers):
    response = client.post("/api/v1/emotion-logs", headers=parent_headers,
                           json={"child_id": child["id"], "emotion_id": "happy", "intensity": 4})
    assert response.status_code == 201
    logs = client.get(f"/api/v1/emotion-logs/children/{child['id']}", headers=parent_headers).json()
    assert [log["emotion_id"] for log in logs] == ["happy"]


def test_emotion_log_for_someone_elses_child(client, db_session, child):
    other = auth_headers(make_user(db_session, "other@example.com"))
    response = client.post("/api/v1/emotion-logs", headers=other, json={"child_id": child["id"], "emotion_id": "sad"})
    assert response.status_code == 404
