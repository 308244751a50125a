from __future__ import annotations

from datetime import datetime

from sqlalchemy.orm import Session

from app.modules.notifications.models import (
    REMINDER_STATUS_FAILED,
    REMINDER_STATUS_PENDING,
    REMINDER_STATUS_SENT,
    Notification,
)


def InsertNotifications(db: Session, records: list[Notification]) -> list[Notification]:
    if not records:
        return []
    db.add_all(records)
    db.commit()
    for record in records:
        db.refresh(record)
    return records


def ListPendingNotifications(db: Session) -> list[Notification]:
    return (
        db.query(Notification)
        .filter(Notification.Status == REMINDER_STATUS_PENDING)
        .order_by(Notification.CreatedAt.asc(), Notification.Id.asc())
        .all()
    )


def ListNotificationsForNote(db: Session, note_id: int) -> list[Notification]:
    return (
        db.query(Notification)
        .filter(Notification.NoteId == note_id)
        .order_by(Notification.Id.asc())
        .all()
    )


def ListNotificationsForUser(db: Session, user_id: str, *, limit: int, offset: int = 0) -> list[Notification]:
    return (
        db.query(Notification)
        .filter(Notification.UserId == user_id)
        .order_by(Notification.CreatedAt.desc(), Notification.Id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )


def DeleteNotificationsForNote(db: Session, note_id: int) -> int:
    deleted = (
        db.query(Notification)
        .filter(Notification.NoteId == note_id)
        .delete(synchronize_session=False)
    )
    db.commit()
    return int(deleted or 0)


def DeletePendingNotificationsForRecipient(db: Session, note_id: int, user_id: str) -> int:
    deleted = (
        db.query(Notification)
        .filter(
            Notification.NoteId == note_id,
            Notification.UserId == user_id,
            Notification.Status == REMINDER_STATUS_PENDING,
        )
        .delete(synchronize_session=False)
    )
    db.commit()
    return int(deleted or 0)


def MarkNotificationSent(db: Session, notification_id: int, now: datetime) -> bool:
    """pending -> sent. Returns False when the row was no longer pending."""
    updated = (
        db.query(Notification)
        .filter(
            Notification.Id == notification_id,
            Notification.Status == REMINDER_STATUS_PENDING,
        )
        .update(
            {
                Notification.Status: REMINDER_STATUS_SENT,
                Notification.SentAt: now,
                Notification.Attempts: Notification.Attempts + 1,
                Notification.LastError: None,
                Notification.UpdatedAt: now,
            },
            synchronize_session=False,
        )
    )
    db.commit()
    return bool(updated)


def RecordFailedAttempt(
    db: Session,
    notification_id: int,
    *,
    error: str | None,
    max_attempts: int,
    now: datetime,
) -> str | None:
    """Count a failed delivery; past the ceiling the reminder becomes terminal `failed`."""
    record = (
        db.query(Notification)
        .filter(
            Notification.Id == notification_id,
            Notification.Status == REMINDER_STATUS_PENDING,
        )
        .first()
    )
    if record is None:
        return None
    record.Attempts = int(record.Attempts or 0) + 1
    record.LastError = (error or "")[:255] or None
    if max_attempts > 0 and record.Attempts >= max_attempts:
        record.Status = REMINDER_STATUS_FAILED
    record.UpdatedAt = now
    db.add(record)
    db.commit()
    return record.Status


def IsNotificationPending(db: Session, notification_id: int) -> bool:
    return (
        db.query(Notification.Id)
        .filter(
            Notification.Id == notification_id,
            Notification.Status == REMINDER_STATUS_PENDING,
        )
        .first()
        is not None
    )
