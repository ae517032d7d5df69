from fastapi.testclient import TestClient


def create_assignment(client, headers, batch_id, title="Lab"):
    return client.post(
        "/api/assignments",
        data={"title": title, "batch_id": str(batch_id), "deadline": "2099-01-01T00:00:00+00:00"},
        headers=headers,
    ).json()


def test_admin_dashboard_counts(client: TestClient, admin_headers, student, trainer):
    response = client.get("/api/dashboard", headers=admin_headers)
    assert response.status_code == 200
    data = response.json()
    stats = data["stats"]
    assert stats["total_users"] == 3
    assert stats["trainers"] == 1
    assert stats["students"] == 1
    assert stats["total_batches"] == 1
    assert len(data["recent_users"]) == 3


def test_trainer_dashboard_shows_pending_submissions(client: TestClient, trainer_headers, student_headers, batch):
    assignment = create_assignment(client, trainer_headers, batch.id)
    client.post(
        f"/api/assignments/{assignment['id']}/submit",
        files=[("files", ("a.pdf", b"%PDF", "application/pdf"))],
        headers=student_headers,
    )

    data = client.get("/api/dashboard", headers=trainer_headers).json()
    assert data["stats"]["batch_count"] == 1
    assert data["stats"]["total_students"] == 1
    assert data["stats"]["assignment_count"] == 1
    assert data["stats"]["pending_submissions"] == 1
    assert data["batches"][0]["student_count"] == 1
    assert len(data["pending_submissions"]) == 1


def test_student_dashboard(client: TestClient, trainer_headers, student_headers, batch, trainer):
    first = create_assignment(client, trainer_headers, batch.id, "First")
    create_assignment(client, trainer_headers, batch.id, "Second")
    client.post(
        f"/api/assignments/{first['id']}/submit",
        files=[("files", ("a.pdf", b"%PDF", "application/pdf"))],
        headers=student_headers,
    )

    data = client.get("/api/dashboard", headers=student_headers).json()
    assert data["stats"]["batch"]["trainer_name"] == trainer.name
    assert data["stats"]["pending_assignments"] == 1
    assert data["stats"]["completed_assignments"] == 1
    assert len(data["assignments"]) == 2


def test_student_without_batch_gets_400(client: TestClient, student, student_headers, session):
    student.batch_id = None
    session.commit()

    response = client.get("/api/dashboard", headers=student_headers)
    assert response.status_code == 400
