from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.modules.auth.deps import NowUtc
from app.modules.notes.models import Note
from app.modules.notifications.delivery import DeliveryChannel, DescribeTimeLeft, ResolveUrgency
from app.modules.notifications.models import REMINDER_STATUS_FAILED
from app.modules.notifications.services import DueReminder, ListDuePending
from app.modules.notifications.store import (
    IsNotificationPending,
    MarkNotificationSent,
    RecordFailedAttempt,
)

logger = logging.getLogger("notifications.sweep")

DEFAULT_MAX_ATTEMPTS = 24


@dataclass
class SweepResult:
    Total: int = 0
    Sent: int = 0
    Failed: int = 0
    Abandoned: int = 0
    Skipped: int = 0


def ReadMaxAttempts() -> int:
    raw = os.getenv("NOTES_REMINDER_MAX_ATTEMPTS", "").strip()
    if not raw:
        return DEFAULT_MAX_ATTEMPTS
    try:
        return max(1, int(raw))
    except ValueError:
        return DEFAULT_MAX_ATTEMPTS


def _LogDueSummary(due: list[DueReminder]) -> None:
    by_note: dict[int, list[DueReminder]] = {}
    for item in due:
        by_note.setdefault(item.Note.Id, []).append(item)
    logger.info("found %s due reminder(s) for %s note(s)", len(due), len(by_note))
    for items in by_note.values():
        first = items[0]
        logger.info(
            "%s [%s] \"%s\" (%s) -> %s recipient(s)",
            ResolveUrgency(first.HoursUntilDeadline),
            first.Note.ContainerKey,
            first.Note.Title,
            DescribeTimeLeft(first.HoursUntilDeadline),
            len(items),
        )


@dataclass
class _SweepTarget:
    NotificationId: int
    RecipientId: str
    Note: Note
    HoursUntilDeadline: float


def _CopyNote(note: Note) -> Note:
    # Detached copy; each commit in the loop expires session-bound rows.
    return Note(
        Id=note.Id,
        ContainerKey=note.ContainerKey,
        Title=note.Title,
        Content=note.Content,
        OwnerUserId=note.OwnerUserId,
        Deadline=note.Deadline,
        IsPublic=note.IsPublic,
        Status=note.Status,
    )


def _SnapshotTargets(due: list[DueReminder]) -> list[_SweepTarget]:
    notes: dict[int, Note] = {}
    targets: list[_SweepTarget] = []
    for item in due:
        if item.Note.Id not in notes:
            notes[item.Note.Id] = _CopyNote(item.Note)
        targets.append(
            _SweepTarget(
                NotificationId=item.Notification.Id,
                RecipientId=item.Notification.UserId,
                Note=notes[item.Note.Id],
                HoursUntilDeadline=item.HoursUntilDeadline,
            )
        )
    return targets


def RunSweep(
    db: Session,
    channel: DeliveryChannel,
    *,
    now: datetime | None = None,
    max_attempts: int | None = None,
) -> SweepResult:
    """One pass over due reminders.

    Only a failure to load the due set propagates; individual delivery
    failures are counted and retried on the next pass until the attempt
    ceiling moves them to `failed`. Reminders deleted or settled by another
    request while the pass runs are skipped.
    """
    now = now or NowUtc()
    ceiling = ReadMaxAttempts() if max_attempts is None else max_attempts

    due = ListDuePending(db, now=now)
    if not due:
        logger.info("no reminders due")
        return SweepResult()

    _LogDueSummary(due)
    targets = _SnapshotTargets(due)
    result = SweepResult(Total=len(targets))

    for target in targets:
        notification_id = target.NotificationId
        recipient_id = target.RecipientId

        try:
            still_pending = IsNotificationPending(db, notification_id)
        except SQLAlchemyError:
            db.rollback()
            logger.exception("failed to recheck reminder notification_id=%s", notification_id)
            result.Failed += 1
            continue
        if not still_pending:
            result.Skipped += 1
            logger.info("reminder no longer pending, skipped notification_id=%s", notification_id)
            continue

        error: str | None = None
        try:
            delivered = bool(channel.Deliver(recipient_id, target.Note, target.HoursUntilDeadline))
        except Exception as exc:  # noqa: BLE001
            delivered = False
            error = str(exc) or exc.__class__.__name__
            logger.warning(
                "reminder delivery failed notification_id=%s user_id=%s error=%s",
                notification_id,
                recipient_id,
                error,
            )

        status = None
        try:
            if delivered:
                MarkNotificationSent(db, notification_id, now)
            else:
                status = RecordFailedAttempt(
                    db,
                    notification_id,
                    error=error or "Delivery channel reported failure",
                    max_attempts=ceiling,
                    now=now,
                )
        except SQLAlchemyError:
            db.rollback()
            logger.exception("failed to record reminder outcome notification_id=%s", notification_id)
            result.Failed += 1
            continue

        if delivered:
            result.Sent += 1
            continue

        result.Failed += 1
        if status == REMINDER_STATUS_FAILED:
            result.Abandoned += 1
            logger.warning(
                "reminder abandoned after %s attempt(s) notification_id=%s",
                ceiling,
                notification_id,
            )

    logger.info(
        "sweep complete total=%s sent=%s failed=%s abandoned=%s skipped=%s",
        result.Total,
        result.Sent,
        result.Failed,
        result.Abandoned,
        result.Skipped,
    )
    return result
