"""Best-effort email notifications.

Routers schedule these methods as background tasks after the state change has
been committed, so the response never waits on SMTP and a delivery failure
never reaches the caller.
"""

from __future__ import annotations

import logging
import smtplib
from datetime import datetime
from email.message import EmailMessage
from html import escape
from typing import Any, Callable, Dict, Iterable, Optional, Tuple

from pydantic import BaseModel

from acadigo.config import Settings

logger = logging.getLogger(__name__)


class SendResult(BaseModel):
    success: bool
    error: Optional[str] = None


def _wrap(settings: Settings, heading: str, inner: str, link_path: str, link_label: str) -> str:
    return (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">'
        f"<h2>{escape(heading)}</h2>{inner}"
        f'<a href="{settings.frontend_url.rstrip("/")}{link_path}">{escape(link_label)}</a>'
        "</div>"
    )


def _new_ppt(settings: Settings, data: Dict[str, Any]) -> Tuple[str, str]:
    inner = (
        "<p>A new PPT has been uploaded to your batch.</p>"
        f"<h3>{escape(data['title'])}</h3>"
        f"<p>{escape(data.get('description') or 'No description provided.')}</p>"
    )
    return f"New PPT Available: {data['title']}", _wrap(settings, "New PPT Available", inner, "/ppts", "View PPT")


def _new_assignment(settings: Settings, data: Dict[str, Any]) -> Tuple[str, str]:
    deadline = data.get("deadline")
    if isinstance(deadline, datetime):
        deadline = deadline.strftime("%Y-%m-%d %H:%M UTC")
    inner = (
        "<p>A new assignment has been posted to your batch.</p>"
        f"<h3>{escape(data['title'])}</h3>"
        f"<p>{escape(data.get('description') or 'No description provided.')}</p>"
        f"<p><strong>Deadline:</strong> {escape(str(deadline))}</p>"
    )
    return (
        f"New Assignment: {data['title']}",
        _wrap(settings, "New Assignment", inner, "/assignments", "View Assignment"),
    )


def _submission_received(settings: Settings, data: Dict[str, Any]) -> Tuple[str, str]:
    late = " (late)" if data.get("late") else ""
    inner = (
        f"<p>{escape(data['student_name'])} submitted "
        f"\"{escape(data['title'])}\"{late}.</p>"
    )
    return (
        f"New submission for {data['title']}",
        _wrap(settings, "New Submission", inner, "/assignments", "Review Submissions"),
    )


def _assignment_graded(settings: Settings, data: Dict[str, Any]) -> Tuple[str, str]:
    inner = (
        f"<p>Your submission for \"{escape(data['title'])}\" has been graded.</p>"
        f"<p><strong>Score:</strong> {data['marks']:g}/{data['max_marks']}</p>"
    )
    if data.get("feedback"):
        inner += f"<p><strong>Feedback:</strong> {escape(data['feedback'])}</p>"
    return (
        f'Your Assignment "{data["title"]}" Has Been Graded',
        _wrap(settings, "Assignment Graded", inner, "/assignments", "View Details"),
    )


TEMPLATES: Dict[str, Callable[[Settings, Dict[str, Any]], Tuple[str, str]]] = {
    "new_ppt": _new_ppt,
    "new_assignment": _new_assignment,
    "submission_received": _submission_received,
    "assignment_graded": _assignment_graded,
}


class Notifier:
    """SMTP notification sink. ``send`` never raises."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def send(
        self,
        to: str,
        subject: str,
        body: str,
        template_id: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> SendResult:
        try:
            if template_id:
                subject, body = TEMPLATES[template_id](self.settings, data or {})
            if not self.settings.smtp_host:
                logger.info("Email not configured; skipping '%s' to %s", subject, to)
                return SendResult(success=False, error="Email delivery is not configured")
            self._deliver(to, subject, body)
            return SendResult(success=True)
        except Exception as exc:  # noqa: BLE001 - notification failures are swallowed
            logger.warning("Error sending email '%s' to %s: %s", subject, to, exc)
            return SendResult(success=False, error=str(exc))

    def send_many(
        self, recipients: Iterable[str], template_id: str, data: Dict[str, Any]
    ) -> int:
        """Send one templated message per recipient; returns how many succeeded."""
        sent = 0
        for email in recipients:
            if self.send(email, "", "", template_id=template_id, data=data).success:
                sent += 1
        return sent

    def _deliver(self, to: str, subject: str, body: str) -> None:
        message = EmailMessage()
        message["From"] = self.settings.email_from
        message["To"] = to
        message["Subject"] = subject
        message.set_content("This message requires an HTML-capable mail client.")
        message.add_alternative(body, subtype="html")

        with smtplib.SMTP(self.settings.smtp_host, self.settings.smtp_port, timeout=15) as smtp:
            if self.settings.smtp_use_tls:
                smtp.starttls()
            if self.settings.smtp_username:
                smtp.login(self.settings.smtp_username, self.settings.smtp_password or "")
            smtp.send_message(message)

    # Event helpers scheduled by the routers

    def new_content(self, kind: str, recipients: list[str], data: Dict[str, Any]) -> int:
        return self.send_many(recipients, "new_ppt" if kind == "ppt" else "new_assignment", data)

    def submission_received(self, trainer_email: Optional[str], data: Dict[str, Any]) -> bool:
        if not trainer_email:
            return False
        return self.send(trainer_email, "", "", template_id="submission_received", data=data).success

    def assignment_graded(self, student_email: str, data: Dict[str, Any]) -> bool:
        return self.send(student_email, "", "", template_id="assignment_graded", data=data).success
