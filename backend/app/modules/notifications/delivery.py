from __future__ import annotations

import html
import logging
from datetime import datetime
from typing import Protocol

from app.modules.integrations.tracker.client import BuildTrackerClient, TrackerClient
from app.modules.notes.models import Note
from app.modules.notes.utils.dates import AsUtc

logger = logging.getLogger("notifications.delivery")

URGENT_THRESHOLD_HOURS = 6


class DeliveryChannel(Protocol):
    def Deliver(self, recipient_id: str, note: Note, hours_until_deadline: float) -> bool:
        """Deliver one reminder. Falsy return or an exception counts as a failed attempt."""
        ...


def ResolveUrgency(hours_until_deadline: float) -> str:
    if hours_until_deadline <= 0:
        return "OVERDUE"
    if hours_until_deadline <= URGENT_THRESHOLD_HOURS:
        return "URGENT - Less than 6 hours remaining"
    return "Deadline approaching within 24 hours"


def DescribeTimeLeft(hours_until_deadline: float) -> str:
    if hours_until_deadline <= 0:
        return f"{abs(round(hours_until_deadline))}h overdue"
    return f"{round(hours_until_deadline)}h remaining"


def FormatDeadline(deadline: datetime | None) -> str:
    value = AsUtc(deadline)
    if value is None:
        return "No deadline"
    return value.strftime("%A, %B %d, %Y %I:%M %p UTC")


def BuildReminderEmail(recipient_id: str, note: Note, hours_until_deadline: float) -> dict:
    urgency = ResolveUrgency(hours_until_deadline)
    deadline_text = FormatDeadline(note.Deadline)

    text_lines = [
        urgency,
        "",
        f"You have a private note with an approaching deadline on issue {note.ContainerKey}.",
        "",
        f"Note Title: {note.Title}",
        f"Deadline: {deadline_text}",
        f"Status: {note.Status}",
    ]
    if note.Content:
        text_lines += ["", "Note Content:", note.Content]
    text_lines += ["", "Please review this note in the Private Notes panel on the issue."]

    html_parts = [
        f"<p><strong>{html.escape(urgency)}</strong></p>",
        "<p>You have a private note with an approaching deadline on issue "
        f"<strong>{html.escape(note.ContainerKey)}</strong>.</p>",
        "<ul>",
        f"  <li><strong>Note Title:</strong> {html.escape(note.Title)}</li>",
        f"  <li><strong>Deadline:</strong> {html.escape(deadline_text)}</li>",
        f"  <li><strong>Status:</strong> {html.escape(note.Status)}</li>",
        "</ul>",
    ]
    if note.Content:
        content_html = html.escape(note.Content).replace("\n", "<br>")
        html_parts.append(f"<p><strong>Note Content:</strong><br>{content_html}</p>")
    html_parts.append("<p>Please review this note in the Private Notes panel on the issue.</p>")

    return {
        "subject": f"Private Note Deadline Reminder: {note.Title}",
        "textBody": "\n".join(text_lines),
        "htmlBody": "\n".join(html_parts),
        "to": {
            "users": [{"accountId": recipient_id}],
            "reporter": False,
            "assignee": False,
            "watchers": False,
            "voters": False,
        },
    }


class TrackerNotifyChannel:
    """Sends reminders as e-mail through the tracker's issue notify endpoint."""

    def __init__(self, client: TrackerClient) -> None:
        self._client = client

    def Deliver(self, recipient_id: str, note: Note, hours_until_deadline: float) -> bool:
        payload = BuildReminderEmail(recipient_id, note, hours_until_deadline)
        self._client.NotifyIssue(note.ContainerKey, payload)
        logger.info(
            "reminder delivered user_id=%s note_id=%s container=%s",
            recipient_id,
            note.Id,
            note.ContainerKey,
        )
        return True

    def Close(self) -> None:
        self._client.Close()


def ResolveDeliveryChannel() -> TrackerNotifyChannel | None:
    client = BuildTrackerClient()
    if client is None:
        logger.warning("tracker delivery is not configured; set TRACKER_BASE_URL and credentials")
        return None
    return TrackerNotifyChannel(client)
