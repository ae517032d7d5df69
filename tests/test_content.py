from datetime import datetime, timedelta, timezone

from fastapi.testclient import TestClient

from acadigo.models import Assignment, PPT


def upload_ppt(client, headers, batch_id, title="Week 1"):
    return client.post(
        "/api/ppts",
        data={"title": title, "description": "Slides", "batch_id": str(batch_id)},
        files={"file": ("week1.pptx", b"pptx-bytes", "application/vnd.ms-powerpoint")},
        headers=headers,
    )


def test_create_ppt_stores_file_and_notifies_students(client: TestClient, trainer_headers, batch, student, storage, notifier):
    response = upload_ppt(client, trainer_headers, batch.id)
    assert response.status_code == 201
    data = response.json()
    assert data["file"]["file_name"] == "week1.pptx"
    assert data["file"]["file_path"].startswith("ppts/")
    assert storage.exists(data["file"]["file_path"])

    assert [m["to"] for m in notifier.sent] == [student.email]
    assert notifier.sent[0]["template_id"] == "new_ppt"


def test_ppt_requires_a_file(client: TestClient, trainer_headers, batch):
    response = client.post("/api/ppts", data={"title": "Empty", "batch_id": str(batch.id)}, headers=trainer_headers)
    assert response.status_code == 400


def test_update_without_file_keeps_descriptor(client: TestClient, trainer_headers, batch):
    created = upload_ppt(client, trainer_headers, batch.id).json()

    response = client.put(f"/api/ppts/{created['id']}", data={"title": "Renamed"}, headers=trainer_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["title"] == "Renamed"
    assert data["file"] == created["file"]


def test_update_with_file_replaces_old_object(client: TestClient, trainer_headers, batch, storage):
    created = upload_ppt(client, trainer_headers, batch.id).json()
    old_path = created["file"]["file_path"]

    response = client.put(
        f"/api/ppts/{created['id']}",
        files={"file": ("week1-v2.pptx", b"new-bytes", "application/vnd.ms-powerpoint")},
        headers=trainer_headers,
    )
    assert response.status_code == 200
    new_path = response.json()["file"]["file_path"]
    assert new_path != old_path
    assert storage.exists(new_path)
    assert not storage.exists(old_path)


def test_non_owning_trainer_cannot_update_content(client: TestClient, trainer_headers, other_trainer_headers, batch, session):
    created = upload_ppt(client, trainer_headers, batch.id).json()

    response = client.put(f"/api/ppts/{created['id']}", data={"title": "Mine now"}, headers=other_trainer_headers)
    assert response.status_code == 403
    assert session.get(PPT, created["id"]).title == "Week 1"


def test_students_see_only_their_batch(client: TestClient, trainer_headers, student_headers, batch):
    upload_ppt(client, trainer_headers, batch.id)
    other = client.post("/api/batches", json={"name": "Other"}, headers=trainer_headers).json()
    upload_ppt(client, trainer_headers, other["id"], title="Other deck")

    titles = [p["title"] for p in client.get("/api/ppts", headers=student_headers).json()]
    assert titles == ["Week 1"]
    assert client.get(f"/api/ppts/batch/{other['id']}", headers=student_headers).status_code == 403


def test_student_cannot_upload(client: TestClient, student_headers, batch):
    assert upload_ppt(client, student_headers, batch.id).status_code == 403


def test_assignment_file_is_optional(client: TestClient, trainer_headers, batch):
    deadline = (datetime.now(timezone.utc) + timedelta(days=2)).isoformat()
    response = client.post(
        "/api/assignments",
        data={"title": "Essay", "batch_id": str(batch.id), "deadline": deadline, "max_marks": "50"},
        headers=trainer_headers,
    )
    assert response.status_code == 201
    data = response.json()
    assert data["file"] is None
    assert data["max_marks"] == 50
    assert data["allow_resubmission"] is True


def test_assignment_rejects_non_positive_max_marks(client: TestClient, trainer_headers, batch):
    deadline = (datetime.now(timezone.utc) + timedelta(days=2)).isoformat()
    response = client.post(
        "/api/assignments",
        data={"title": "Essay", "batch_id": str(batch.id), "deadline": deadline, "max_marks": "0"},
        headers=trainer_headers,
    )
    assert response.status_code == 400


def test_deleting_assignment_removes_submissions(client: TestClient, trainer_headers, student_headers, batch, session, storage):
    deadline = (datetime.now(timezone.utc) + timedelta(days=2)).isoformat()
    assignment = client.post(
        "/api/assignments",
        data={"title": "Essay", "batch_id": str(batch.id), "deadline": deadline},
        headers=trainer_headers,
    ).json()
    submitted = client.post(
        f"/api/assignments/{assignment['id']}/submit",
        files=[("files", ("essay.pdf", b"%PDF", "application/pdf"))],
        headers=student_headers,
    ).json()
    stored = submitted["files"][0]["file_path"]

    response = client.delete(f"/api/assignments/{assignment['id']}", headers=trainer_headers)
    assert response.status_code == 200
    assert session.query(Assignment).count() == 0
    assert not storage.exists(stored)
