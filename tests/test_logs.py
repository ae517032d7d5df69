from fastapi.testclient import TestClient

from acadigo.models import AccessLog


def test_access_logging_always_succeeds(client: TestClient, student_headers, session):
    response = client.post("/api/logs/ppt/999/view", headers=student_headers)
    assert response.status_code == 200
    assert response.json()["success"] is True
    assert session.query(AccessLog).count() == 1


def test_unknown_log_action_is_a_bad_request(client: TestClient, student_headers):
    assert client.post("/api/logs/ppt/1/delete", headers=student_headers).status_code == 400


def test_activity_feed_is_admin_only(client: TestClient, admin_headers, trainer_headers):
    assert client.get("/api/logs/activity", headers=trainer_headers).status_code == 403

    entries = client.get("/api/logs/activity", params={"action": "login"}, headers=admin_headers).json()
    assert {e["action"] for e in entries} == {"login"}
    assert len(entries) == 2


def test_health(client: TestClient):
    assert client.get("/health").json()["status"] == "ok"
