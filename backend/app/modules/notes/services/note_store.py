from __future__ import annotations

from datetime import datetime

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from app.modules.notes.models import Note, NotePermission


def _GrantedNoteIds(user_id: str):
    return select(NotePermission.NoteId).where(NotePermission.UserId == user_id)


def GetNoteById(db: Session, note_id: int) -> Note | None:
    return db.query(Note).filter(Note.Id == note_id).first()


def InsertNote(
    db: Session,
    *,
    container_key: str,
    title: str,
    content: str,
    owner_user_id: str,
    deadline: datetime | None,
    is_public: bool,
    status: str,
    now: datetime,
) -> Note:
    note = Note(
        ContainerKey=container_key,
        Title=title,
        Content=content,
        OwnerUserId=owner_user_id,
        Deadline=deadline,
        IsPublic=is_public,
        Status=status,
        CreatedAt=now,
        UpdatedAt=now,
    )
    db.add(note)
    db.commit()
    db.refresh(note)
    return note


def UpdateNoteFields(db: Session, note: Note, values: dict, now: datetime) -> Note:
    for column, value in values.items():
        setattr(note, column, value)
    note.UpdatedAt = now
    db.add(note)
    db.commit()
    db.refresh(note)
    return note


def DeleteNoteRow(db: Session, note_id: int) -> int:
    deleted = db.query(Note).filter(Note.Id == note_id).delete(synchronize_session=False)
    db.commit()
    return int(deleted or 0)


def ListNotesForActor(db: Session, container_key: str, user_id: str) -> list[Note]:
    return (
        db.query(Note)
        .filter(
            Note.ContainerKey == container_key,
            or_(Note.OwnerUserId == user_id, Note.Id.in_(_GrantedNoteIds(user_id))),
        )
        .order_by(Note.CreatedAt.desc(), Note.Id.desc())
        .all()
    )


def ListPublicNotes(db: Session, container_key: str) -> list[Note]:
    return (
        db.query(Note)
        .filter(Note.ContainerKey == container_key, Note.IsPublic == True)  # noqa: E712
        .order_by(Note.CreatedAt.desc(), Note.Id.desc())
        .all()
    )


def ListOwnedNotes(db: Session, user_id: str) -> list[Note]:
    return (
        db.query(Note)
        .filter(Note.OwnerUserId == user_id)
        .order_by(Note.CreatedAt.desc(), Note.Id.desc())
        .all()
    )


def CountOwnedNotes(db: Session, user_id: str) -> int:
    value = db.query(func.count(Note.Id)).filter(Note.OwnerUserId == user_id).scalar()
    return int(value or 0)


def CountSharedNotes(db: Session, user_id: str) -> int:
    value = (
        db.query(func.count(Note.Id))
        .filter(Note.OwnerUserId != user_id, Note.Id.in_(_GrantedNoteIds(user_id)))
        .scalar()
    )
    return int(value or 0)


def CountUpcomingDeadlines(db: Session, user_id: str, now: datetime) -> int:
    value = (
        db.query(func.count(Note.Id))
        .filter(
            or_(Note.OwnerUserId == user_id, Note.Id.in_(_GrantedNoteIds(user_id))),
            Note.Status == "open",
            Note.Deadline != None,  # noqa: E711
            Note.Deadline > now,
        )
        .scalar()
    )
    return int(value or 0)


def ListContainerKeys(
    db: Session,
    *,
    created_after: datetime | None = None,
    created_before: datetime | None = None,
    created_from: datetime | None = None,
    created_until: datetime | None = None,
) -> list[str]:
    """Distinct container keys across all owners, filtered on CreatedAt."""
    query = db.query(Note.ContainerKey).distinct()
    if created_after is not None:
        query = query.filter(Note.CreatedAt > created_after)
    if created_before is not None:
        query = query.filter(Note.CreatedAt < created_before)
    if created_from is not None:
        query = query.filter(Note.CreatedAt >= created_from)
    if created_until is not None:
        query = query.filter(Note.CreatedAt < created_until)
    return sorted(row[0] for row in query.all())


def CountNotesByContainer(db: Session) -> list[tuple[str, int]]:
    rows = (
        db.query(Note.ContainerKey, func.count(Note.Id))
        .group_by(Note.ContainerKey)
        .order_by(Note.ContainerKey.asc())
        .all()
    )
    return [(row[0], int(row[1] or 0)) for row in rows]
