from datetime import datetime, timezone

from acadigo.config import get_settings
from acadigo.services.notifications import TEMPLATES, Notifier


class FailingNotifier(Notifier):
    def _deliver(self, to, subject, body):
        raise ConnectionRefusedError("smtp down")


def test_send_without_smtp_reports_failure_without_raising():
    notifier = Notifier(get_settings().model_copy(update={"smtp_host": None}))
    result = notifier.send("a@example.com", "Hi", "<p>Hi</p>")
    assert result.success is False
    assert result.error


def test_delivery_errors_are_swallowed():
    notifier = FailingNotifier(get_settings().model_copy(update={"smtp_host": "smtp.example.com"}))
    result = notifier.send("a@example.com", "", "", template_id="new_ppt", data={"title": "Deck"})
    assert result.success is False
    assert "smtp down" in result.error


def test_send_many_counts_successes():
    sent = []

    class Recorder(Notifier):
        def _deliver(self, to, subject, body):
            sent.append((to, subject))

    notifier = Recorder(get_settings().model_copy(update={"smtp_host": "smtp.example.com"}))
    count = notifier.new_content("assignment", ["a@example.com", "b@example.com"], {
        "title": "Essay",
        "deadline": datetime(2030, 1, 1, tzinfo=timezone.utc),
    })
    assert count == 2
    assert sent[0] == ("a@example.com", "New Assignment: Essay")


def test_templates_escape_user_content():
    subject, body = TEMPLATES["assignment_graded"](
        get_settings(), {"title": "<b>Lab</b>", "marks": 9.5, "max_marks": 10, "feedback": "<script>"}
    )
    assert "<script>" not in body
    assert "9.5/10" in body
    assert subject == 'Your Assignment "<b>Lab</b>" Has Been Graded'


def test_submission_notifies_batch_trainer(client, trainer, student_headers, trainer_headers, batch, notifier):
    assignment = client.post(
        "/api/assignments",
        data={"title": "Lab", "batch_id": str(batch.id), "deadline": "2099-01-01T00:00:00+00:00"},
        headers=trainer_headers,
    ).json()
    notifier.sent.clear()

    client.post(
        f"/api/assignments/{assignment['id']}/submit",
        files=[("files", ("a.pdf", b"%PDF", "application/pdf"))],
        headers=student_headers,
    )

    assert notifier.sent[0]["to"] == trainer.email
    assert notifier.sent[0]["template_id"] == "submission_received"
    assert notifier.sent[0]["data"]["late"] is False
