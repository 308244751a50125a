from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session

from app.modules.auth.deps import NowUtc
from app.modules.notes.models import Note
from app.modules.notes.services.note_store import GetNoteById
from app.modules.notes.services.permission_store import ListGrants
from app.modules.notes.utils.dates import AsUtc
from app.modules.notifications.models import (
    REMINDER_STATUS_PENDING,
    REMINDER_TYPE_DEADLINE,
    Notification,
)
from app.modules.notifications.store import (
    DeleteNotificationsForNote,
    DeletePendingNotificationsForRecipient,
    InsertNotifications,
    ListNotificationsForUser,
    ListPendingNotifications,
)

logger = logging.getLogger("notifications")

DEFAULT_DUE_WINDOW_HOURS = 24.0
REMINDER_TITLE = "Note Deadline Approaching"


@dataclass
class DueReminder:
    Notification: Notification
    Note: Note
    HoursUntilDeadline: float


def _ReadDueWindowHours() -> float:
    raw = os.getenv("NOTES_REMINDER_WINDOW_HOURS", "").strip()
    if not raw:
        return DEFAULT_DUE_WINDOW_HOURS
    try:
        return float(raw)
    except ValueError:
        return DEFAULT_DUE_WINDOW_HOURS


def BuildReminderMessage(container_key: str, note_title: str) -> str:
    return f'Deadline approaching for "{note_title}" on {container_key}.'


def ResolveRecipients(db: Session, note: Note) -> list[str]:
    """Owner first, then every distinct grantee in grant order."""
    recipients = [note.OwnerUserId]
    for grant in ListGrants(db, note.Id):
        if grant.UserId not in recipients:
            recipients.append(grant.UserId)
    return recipients


def MaterializeForDeadline(
    db: Session,
    note_id: int,
    deadline: datetime | None,
    container_key: str,
    *,
    now: datetime | None = None,
) -> list[Notification]:
    deadline = AsUtc(deadline)
    now = now or NowUtc()
    if deadline is None:
        return []
    if deadline <= now:
        logger.info("deadline not in the future, no reminders note_id=%s", note_id)
        return []

    note = GetNoteById(db, note_id)
    if note is None:
        logger.warning("cannot create reminders for missing note_id=%s", note_id)
        return []

    message = BuildReminderMessage(container_key, note.Title)
    records = [
        Notification(
            UserId=user_id,
            NoteId=note_id,
            Type=REMINDER_TYPE_DEADLINE,
            Title=REMINDER_TITLE,
            Message=message,
            Status=REMINDER_STATUS_PENDING,
            Attempts=0,
            CreatedAt=now,
            UpdatedAt=now,
        )
        for user_id in ResolveRecipients(db, note)
    ]
    created = InsertNotifications(db, records)
    logger.info("created %s deadline reminder(s) note_id=%s", len(created), note_id)
    return created


def ReplaceForDeadline(
    db: Session,
    note_id: int,
    new_deadline: datetime | None,
    container_key: str,
    *,
    now: datetime | None = None,
) -> list[Notification]:
    removed = DeleteNotificationsForNote(db, note_id)
    if removed:
        logger.info("removed %s reminder(s) for deadline change note_id=%s", removed, note_id)
    if new_deadline is None:
        return []
    return MaterializeForDeadline(db, note_id, new_deadline, container_key, now=now)


def DeleteForNote(db: Session, note_id: int) -> int:
    return DeleteNotificationsForNote(db, note_id)


def ListDuePending(
    db: Session,
    *,
    now: datetime | None = None,
    window_hours: float | None = None,
) -> list[DueReminder]:
    """Pending reminders whose note deadline is within the window or already past."""
    now = now or NowUtc()
    window = _ReadDueWindowHours() if window_hours is None else window_hours

    notes: dict[int, Note | None] = {}
    due: list[DueReminder] = []
    for record in ListPendingNotifications(db):
        if record.NoteId not in notes:
            notes[record.NoteId] = GetNoteById(db, record.NoteId)
        note = notes[record.NoteId]
        if note is None or note.Deadline is None:
            continue

        hours_until_deadline = (AsUtc(note.Deadline) - now).total_seconds() / 3600
        if hours_until_deadline <= window:
            due.append(
                DueReminder(
                    Notification=record,
                    Note=note,
                    HoursUntilDeadline=hours_until_deadline,
                )
            )
    return due


def ListRemindersForUser(db: Session, user_id: str, *, limit: int = 50, offset: int = 0) -> list[Notification]:
    return ListNotificationsForUser(db, user_id, limit=limit, offset=offset)


def DeletePendingForRecipient(db: Session, note_id: int, user_id: str) -> int:
    removed = DeletePendingNotificationsForRecipient(db, note_id, user_id)
    if removed:
        logger.info("removed %s pending reminder(s) note_id=%s user_id=%s", removed, note_id, user_id)
    return removed
