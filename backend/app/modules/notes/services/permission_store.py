from __future__ import annotations

from datetime import datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.modules.notes.models import NotePermission


def GetGrant(db: Session, note_id: int, user_id: str) -> NotePermission | None:
    return (
        db.query(NotePermission)
        .filter(NotePermission.NoteId == note_id, NotePermission.UserId == user_id)
        .first()
    )


def ListGrants(db: Session, note_id: int) -> list[NotePermission]:
    return (
        db.query(NotePermission)
        .filter(NotePermission.NoteId == note_id)
        .order_by(NotePermission.GrantedAt.asc(), NotePermission.Id.asc())
        .all()
    )


def UpsertGrant(
    db: Session,
    *,
    note_id: int,
    user_id: str,
    permission_type: str,
    granted_by_user_id: str,
    now: datetime,
) -> NotePermission:
    """Create the (note, user) grant or overwrite its level."""
    record = GetGrant(db, note_id, user_id)
    if record is None:
        record = NotePermission(NoteId=note_id, UserId=user_id)
    record.PermissionType = permission_type
    record.GrantedByUserId = granted_by_user_id
    record.GrantedAt = now
    db.add(record)
    try:
        db.commit()
    except IntegrityError:
        # A concurrent share inserted the same pair first; overwrite that row instead.
        db.rollback()
        record = GetGrant(db, note_id, user_id)
        if record is None:
            raise
        record.PermissionType = permission_type
        record.GrantedByUserId = granted_by_user_id
        record.GrantedAt = now
        db.add(record)
        db.commit()
    db.refresh(record)
    return record


def DeleteGrant(db: Session, note_id: int, user_id: str) -> int:
    deleted = (
        db.query(NotePermission)
        .filter(NotePermission.NoteId == note_id, NotePermission.UserId == user_id)
        .delete(synchronize_session=False)
    )
    db.commit()
    return int(deleted or 0)


def DeleteGrantsForNote(db: Session, note_id: int) -> int:
    deleted = (
        db.query(NotePermission)
        .filter(NotePermission.NoteId == note_id)
        .delete(synchronize_session=False)
    )
    db.commit()
    return int(deleted or 0)
