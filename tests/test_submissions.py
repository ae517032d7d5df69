from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from acadigo.models import Assignment, Submission, SubmissionStatus
from acadigo.services import submissions as submission_service


def pdf(name="work.pdf", content=b"%PDF-1.4"):
    return ("files", (name, content, "application/pdf"))


@pytest.fixture
def assignment(client, trainer_headers, batch, session):
    deadline = (datetime.now(timezone.utc) + timedelta(hours=1)).isoformat()
    response = client.post(
        "/api/assignments",
        data={"title": "Lab 1", "batch_id": str(batch.id), "deadline": deadline, "max_marks": "100"},
        headers=trainer_headers,
    )
    assert response.status_code == 201
    return session.get(Assignment, response.json()["id"])


def submit(client, headers, assignment_id, *files):
    return client.post(f"/api/assignments/{assignment_id}/submit", files=list(files) or None, headers=headers)


def test_end_to_end_submit_and_grade(client: TestClient, admin_headers, auth_headers, session):
    trainer = client.post(
        "/api/users",
        json={"name": "T", "email": "t@example.com", "password": "password123", "role": "trainer"},
        headers=admin_headers,
    ).json()
    trainer_headers = auth_headers("t@example.com", "password123")

    batch = client.post("/api/batches", json={"name": "B"}, headers=trainer_headers).json()
    assert batch["trainer_id"] == trainer["id"]

    client.post(
        "/api/users",
        json={"name": "S", "email": "s@example.com", "password": "password123", "role": "student", "batch_id": batch["id"]},
        headers=admin_headers,
    )
    student_headers = auth_headers("s@example.com", "password123")

    deadline = (datetime.now(timezone.utc) + timedelta(hours=1)).isoformat()
    assignment = client.post(
        "/api/assignments",
        data={"title": "A", "batch_id": str(batch["id"]), "deadline": deadline, "max_marks": "100"},
        headers=trainer_headers,
    ).json()

    submitted = submit(client, student_headers, assignment["id"], pdf())
    assert submitted.status_code == 201
    assert submitted.json()["status"] == "submitted"
    submission_id = submitted.json()["id"]

    too_high = client.put(f"/api/submissions/{submission_id}/grade", data={"marks": "110"}, headers=trainer_headers)
    assert too_high.status_code == 400
    assert session.get(Submission, submission_id).status.value == "submitted"

    graded = client.put(
        f"/api/submissions/{submission_id}/grade",
        data={"marks": "90", "feedback": "Good work"},
        headers=trainer_headers,
    )
    assert graded.status_code == 200
    assert graded.json()["status"] == "graded"
    assert graded.json()["marks"] == 90


def test_submit_requires_files(client: TestClient, student_headers, assignment):
    response = submit(client, student_headers, assignment.id)
    assert response.status_code == 400
    assert response.json()["message"] == "Please upload at least one file"


def test_student_files_land_under_submissions(client: TestClient, student, student_headers, assignment, storage):
    response = submit(client, student_headers, assignment.id, pdf("a.pdf"), pdf("b.pdf"))
    files = response.json()["files"]
    assert [f["file_name"] for f in files] == ["a.pdf", "b.pdf"]
    for descriptor in files:
        assert descriptor["file_path"].startswith(f"submissions/{student.id}-")
        assert storage.exists(descriptor["file_path"])


def test_resubmission_replaces_in_place(client: TestClient, student_headers, assignment, session, storage):
    first = submit(client, student_headers, assignment.id, pdf("v1.pdf")).json()
    second = submit(client, student_headers, assignment.id, pdf("v2.pdf")).json()

    assert first["id"] == second["id"]
    assert [f["file_name"] for f in second["files"]] == ["v2.pdf"]
    assert session.query(Submission).filter(Submission.assignment_id == assignment.id).count() == 1
    assert not storage.exists(first["files"][0]["file_path"])


def test_resubmission_clears_previous_grade(client: TestClient, student_headers, trainer_headers, assignment):
    first = submit(client, student_headers, assignment.id, pdf()).json()
    client.put(f"/api/submissions/{first['id']}/grade", data={"marks": "70"}, headers=trainer_headers)

    again = submit(client, student_headers, assignment.id, pdf("fixed.pdf")).json()
    assert again["status"] == "submitted"
    assert again["marks"] is None


def test_late_resubmission_rejected_when_disallowed(client: TestClient, student_headers, assignment, session, storage):
    first = submit(client, student_headers, assignment.id, pdf("v1.pdf")).json()

    assignment.deadline = datetime.now(timezone.utc) - timedelta(minutes=5)
    assignment.allow_resubmission = False
    session.commit()

    response = submit(client, student_headers, assignment.id, pdf("v2.pdf"))
    assert response.status_code == 400
    assert response.json()["message"] == "Resubmission is not allowed after the deadline"

    kept = session.get(Submission, first["id"])
    session.refresh(kept)
    assert [f["file_name"] for f in kept.files] == ["v1.pdf"]
    assert storage.exists(first["files"][0]["file_path"])


def test_late_submission_is_marked_late(client: TestClient, student_headers, assignment, session):
    assignment.deadline = datetime.now(timezone.utc) - timedelta(minutes=5)
    session.commit()

    response = submit(client, student_headers, assignment.id, pdf())
    assert response.status_code == 201
    assert response.json()["status"] == "late"


def test_student_outside_batch_cannot_submit(client: TestClient, auth_headers, admin_headers, trainer_headers, assignment):
    other = client.post("/api/batches", json={"name": "Other"}, headers=trainer_headers).json()
    client.post(
        "/api/users",
        json={"name": "O", "email": "o@example.com", "password": "password123", "role": "student", "batch_id": other["id"]},
        headers=admin_headers,
    )

    response = submit(client, auth_headers("o@example.com", "password123"), assignment.id, pdf())
    assert response.status_code == 403


def test_grading_is_idempotent(client: TestClient, student_headers, trainer_headers, assignment, session):
    submission_id = submit(client, student_headers, assignment.id, pdf()).json()["id"]
    payload = {"marks": "85", "feedback": "Solid"}

    first = client.put(f"/api/submissions/{submission_id}/grade", data=payload, headers=trainer_headers).json()
    second = client.put(f"/api/submissions/{submission_id}/grade", data=payload, headers=trainer_headers).json()

    for key in ("status", "marks", "feedback", "graded_by"):
        assert first[key] == second[key]


def test_grading_requires_marks_and_authority(
    client: TestClient, student_headers, other_trainer_headers, trainer_headers, assignment
):
    submission_id = submit(client, student_headers, assignment.id, pdf()).json()["id"]

    missing = client.put(f"/api/submissions/{submission_id}/grade", data={"feedback": "?"}, headers=trainer_headers)
    assert missing.status_code == 400

    negative = client.put(f"/api/submissions/{submission_id}/grade", data={"marks": "-1"}, headers=trainer_headers)
    assert negative.status_code == 400

    stranger = client.put(f"/api/submissions/{submission_id}/grade", data={"marks": "50"}, headers=other_trainer_headers)
    assert stranger.status_code == 403

    student = client.put(f"/api/submissions/{submission_id}/grade", data={"marks": "50"}, headers=student_headers)
    assert student.status_code == 403


def test_feedback_image_must_be_an_image(client: TestClient, student_headers, trainer_headers, assignment, storage):
    submission_id = submit(client, student_headers, assignment.id, pdf()).json()["id"]

    rejected = client.put(
        f"/api/submissions/{submission_id}/grade",
        data={"marks": "60"},
        files={"feedback_image": ("notes.txt", b"text", "text/plain")},
        headers=trainer_headers,
    )
    assert rejected.status_code == 400

    first = client.put(
        f"/api/submissions/{submission_id}/grade",
        data={"marks": "60"},
        files={"feedback_image": ("marks.png", b"\x89PNG", "image/png")},
        headers=trainer_headers,
    ).json()
    second = client.put(
        f"/api/submissions/{submission_id}/grade",
        data={"marks": "65"},
        files={"feedback_image": ("marks2.png", b"\x89PNG2", "image/png")},
        headers=trainer_headers,
    ).json()

    assert second["feedback_image"]["file_name"] == "marks2.png"
    assert not storage.exists(first["feedback_image"]["file_path"])


def test_grading_notifies_student(client: TestClient, student, student_headers, trainer_headers, assignment, notifier):
    submission_id = submit(client, student_headers, assignment.id, pdf()).json()["id"]
    notifier.sent.clear()

    client.put(f"/api/submissions/{submission_id}/grade", data={"marks": "77"}, headers=trainer_headers)

    assert notifier.sent == [
        {
            "to": student.email,
            "template_id": "assignment_graded",
            "data": {"title": "Lab 1", "marks": 77.0, "max_marks": 100, "feedback": None},
        }
    ]


def test_submission_reads(client: TestClient, student, student_headers, trainer_headers, assignment):
    submission_id = submit(client, student_headers, assignment.id, pdf()).json()["id"]

    own = client.get(f"/api/assignments/{assignment.id}/submission", headers=student_headers)
    assert own.json()["id"] == submission_id

    missing_student = client.get(f"/api/assignments/{assignment.id}/submission", headers=trainer_headers)
    assert missing_student.status_code == 400

    by_student = client.get(
        f"/api/assignments/{assignment.id}/submission", params={"student_id": student.id}, headers=trainer_headers
    )
    assert by_student.json()["id"] == submission_id

    listed = client.get(f"/api/assignments/{assignment.id}/submissions", headers=trainer_headers).json()
    assert [s["id"] for s in listed] == [submission_id]
    assert client.get(f"/api/assignments/{assignment.id}/submissions", headers=student_headers).status_code == 403

    mine = client.get("/api/submissions/my", headers=student_headers).json()
    assert [s["id"] for s in mine] == [submission_id]
    assert client.get(f"/api/submissions/{submission_id}", headers=trainer_headers).status_code == 200


def racing_find(monkeypatch, session, student):
    """First lookup misses while another request inserts the row underneath."""
    real_find = submission_service.find_submission
    calls = []

    def find(db, assignment_id, student_id):
        calls.append(assignment_id)
        if len(calls) == 1:
            session.add(
                Submission(
                    assignment_id=assignment_id,
                    student_id=student.id,
                    files=[{"file_name": "racer.pdf", "file_path": "submissions/racer.pdf"}],
                    submitted_at=datetime.now(timezone.utc),
                    status=SubmissionStatus.SUBMITTED,
                )
            )
            session.commit()
            return None
        return real_find(db, assignment_id, student_id)

    monkeypatch.setattr(submission_service, "find_submission", find)
    return calls


def stored_submission_files(storage):
    folder = storage.root / "submissions"
    return [p for p in folder.rglob("*") if p.is_file()] if folder.exists() else []


def test_concurrent_insert_is_retried_as_replace(
    client: TestClient, student, student_headers, assignment, session, storage, monkeypatch
):
    calls = racing_find(monkeypatch, session, student)

    response = submit(client, student_headers, assignment.id, pdf("mine.pdf"))

    assert response.status_code == 201
    assert len(calls) == 2
    session.expire_all()
    rows = session.query(Submission).filter(Submission.assignment_id == assignment.id).all()
    assert len(rows) == 1
    assert [f["file_name"] for f in rows[0].files] == ["mine.pdf"]
    assert storage.exists(rows[0].files[0]["file_path"])


def test_concurrent_insert_after_deadline_discards_uploads(
    client: TestClient, student, student_headers, assignment, session, storage, monkeypatch
):
    assignment.deadline = datetime.now(timezone.utc) - timedelta(minutes=5)
    assignment.allow_resubmission = False
    session.commit()
    racing_find(monkeypatch, session, student)

    response = submit(client, student_headers, assignment.id, pdf("mine.pdf"))

    assert response.status_code == 400
    assert response.json()["message"] == "Resubmission is not allowed after the deadline"
    session.expire_all()
    rows = session.query(Submission).filter(Submission.assignment_id == assignment.id).all()
    assert [f["file_name"] for f in rows[0].files] == ["racer.pdf"]
    assert stored_submission_files(storage) == []
