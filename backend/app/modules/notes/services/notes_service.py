from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from app.modules.auth.deps import NowUtc, UserContext
from app.modules.integrations.tracker.client import BuildTrackerClient, TrackerError
from app.modules.notes.models import Note, NotePermission
from app.modules.notes.schemas import NoteCreate, NoteStatus, NoteUpdate, PermissionLevel
from app.modules.notes.services.note_store import (
    CountOwnedNotes,
    CountSharedNotes,
    CountUpcomingDeadlines,
    DeleteNoteRow,
    GetNoteById,
    InsertNote,
    ListNotesForActor,
    ListOwnedNotes,
    ListPublicNotes,
    UpdateNoteFields,
)
from app.modules.notes.services.permission_store import (
    DeleteGrant,
    DeleteGrantsForNote,
    ListGrants,
    UpsertGrant,
)
from app.modules.notes.utils import rbac
from app.modules.notes.utils.dates import AsUtc
from app.modules.notifications.services import (
    DeleteForNote,
    DeletePendingForRecipient,
    MaterializeForDeadline,
    ReplaceForDeadline,
)

logger = logging.getLogger("notes")


class NoteValidationError(ValueError):
    pass


class NoteAccessError(ValueError):
    pass


class NoteNotFoundError(ValueError):
    pass


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


def IsSet(value: Any) -> bool:
    return not isinstance(value, _Unset)


@dataclass
class NoteChanges:
    """Partial update. A field left as UNSET is not touched; None clears it."""

    Title: Any = UNSET
    Content: Any = UNSET
    Deadline: Any = UNSET
    IsPublic: Any = UNSET
    Status: Any = UNSET

    @classmethod
    def FromPayload(cls, payload: NoteUpdate) -> "NoteChanges":
        return cls(**payload.model_dump(exclude_unset=True))

    def SetFields(self) -> dict:
        return {
            entry.name: getattr(self, entry.name)
            for entry in fields(self)
            if IsSet(getattr(self, entry.name))
        }


@dataclass
class ShareOutcome:
    UserId: str
    Success: bool
    Error: str | None = None


@dataclass
class ShareManyOutcome:
    Results: list[ShareOutcome] = field(default_factory=list)
    Total: int = 0
    Succeeded: int = 0
    Failed: int = 0


@dataclass
class NoteView:
    Note: Note
    CanRead: bool
    CanEdit: bool
    IsOwner: bool


@dataclass
class NoteStatistics:
    TotalCount: int
    MyCount: int
    SharedCount: int
    UpcomingDeadlines: int


def _NormalizeTitle(value: str | None, message: str) -> str:
    title = (value or "").strip()
    if not title:
        raise NoteValidationError(message)
    return title


def _NormalizeContainerKey(value: str | None) -> str:
    container_key = (value or "").strip()
    if not container_key:
        raise NoteValidationError("Container key is required")
    return container_key


def _NormalizePermission(value: str | None) -> str:
    normalized = (value or "").strip().lower()
    if normalized not in {level.value for level in PermissionLevel}:
        raise NoteValidationError("Invalid permission type")
    return normalized


def _NormalizeStatus(value: str | None) -> str:
    normalized = (value or "").strip().lower()
    if normalized not in {status.value for status in NoteStatus}:
        raise NoteValidationError("Invalid status")
    return normalized


def _NormalizeUserId(value: str | None) -> str:
    user_id = (value or "").strip()
    if not user_id:
        raise NoteValidationError("Target user is required")
    return user_id


def _LoadOwnedNote(db: Session, user: UserContext, note_id: int, action: str) -> Note:
    note = GetNoteById(db, note_id)
    if not note:
        raise NoteNotFoundError("Note not found")
    if not rbac.IsOwner(user.Id, note):
        raise NoteAccessError(f"Only the note owner can {action} it")
    return note


def _SyncReminders(db: Session, note: Note, deadline: datetime | None, *, replace: bool) -> None:
    # Reminders are best-effort; the note mutation has already been committed.
    note_id = note.Id
    try:
        if replace:
            ReplaceForDeadline(db, note_id, deadline, note.ContainerKey)
        else:
            MaterializeForDeadline(db, note_id, deadline, note.ContainerKey)
    except Exception:  # noqa: BLE001
        db.rollback()
        logger.exception("failed to sync deadline reminders note_id=%s", note_id)


def CreateNote(db: Session, user: UserContext, data: NoteCreate) -> Note:
    """Create a note owned by the caller, materializing reminders for a future deadline."""
    title = _NormalizeTitle(data.Title, "Title is required")
    container_key = _NormalizeContainerKey(data.ContainerKey)
    deadline = AsUtc(data.Deadline)

    note = InsertNote(
        db,
        container_key=container_key,
        title=title,
        content=data.Content or "",
        owner_user_id=user.Id,
        deadline=deadline,
        is_public=bool(data.IsPublic),
        status=NoteStatus.Open.value,
        now=NowUtc(),
    )
    logger.info("note created note_id=%s container=%s owner=%s", note.Id, container_key, user.Id)

    if deadline is not None:
        _SyncReminders(db, note, deadline, replace=False)
    return note


def GetNote(db: Session, user: UserContext, note_id: int) -> Note:
    note = GetNoteById(db, note_id)
    # A missing note and a private one look the same to the caller.
    if not rbac.CanViewNote(db, note, user.Id):
        raise NoteAccessError("Access denied")
    return note


def UpdateNote(db: Session, user: UserContext, note_id: int, changes: NoteChanges) -> Note:
    note = GetNoteById(db, note_id)
    if not rbac.CanEditNote(db, note, user.Id):
        raise NoteAccessError("Access denied - write permission required")

    requested = changes.SetFields()
    values: dict = {}
    if "Title" in requested:
        values["Title"] = _NormalizeTitle(requested["Title"], "Title cannot be empty")
    if "Content" in requested:
        values["Content"] = requested["Content"] or ""
    if "Deadline" in requested:
        values["Deadline"] = AsUtc(requested["Deadline"])
    if "IsPublic" in requested:
        if requested["IsPublic"] is None:
            raise NoteValidationError("IsPublic cannot be null")
        values["IsPublic"] = bool(requested["IsPublic"])
    if "Status" in requested:
        values["Status"] = _NormalizeStatus(requested["Status"])

    note = UpdateNoteFields(db, note, values, NowUtc())
    logger.info("note updated note_id=%s fields=%s by=%s", note.Id, sorted(values), user.Id)

    # No diff against the previous deadline: presence in the request is enough.
    if "Deadline" in values:
        _SyncReminders(db, note, values["Deadline"], replace=True)
    return note


def DeleteNote(db: Session, user: UserContext, note_id: int) -> None:
    """Delete reminders, then grants, then the note itself."""
    note = GetNoteById(db, note_id)
    if not note:
        raise NoteNotFoundError("Note not found")
    if not rbac.CanDeleteNote(user.Id, note):
        raise NoteAccessError("Only the note owner can delete it")

    try:
        DeleteForNote(db, note_id)
    except Exception:  # noqa: BLE001
        db.rollback()
        logger.exception("failed to delete reminders for note_id=%s, continuing", note_id)

    removed_grants = DeleteGrantsForNote(db, note_id)
    DeleteNoteRow(db, note_id)
    logger.info("note deleted note_id=%s grants_removed=%s by=%s", note_id, removed_grants, user.Id)


def _ShareWithUser(db: Session, user: UserContext, note: Note, target_user_id: str, level: str) -> NotePermission:
    if target_user_id == note.OwnerUserId:
        raise NoteValidationError("Cannot share a note with its owner")
    return UpsertGrant(
        db,
        note_id=note.Id,
        user_id=target_user_id,
        permission_type=level,
        granted_by_user_id=user.Id,
        now=NowUtc(),
    )


def ShareNote(
    db: Session,
    user: UserContext,
    note_id: int,
    target_user_id: str,
    permission_type: str,
) -> NotePermission:
    note = _LoadOwnedNote(db, user, note_id, "share")
    level = _NormalizePermission(permission_type)
    target = _NormalizeUserId(target_user_id)
    grant = _ShareWithUser(db, user, note, target, level)
    logger.info("note shared note_id=%s user_id=%s level=%s", note_id, target, level)
    return grant


def ShareNoteMany(
    db: Session,
    user: UserContext,
    note_id: int,
    target_user_ids: list[str],
    permission_type: str,
) -> ShareManyOutcome:
    """Share with each user independently; per-user failures are reported, not raised."""
    note = _LoadOwnedNote(db, user, note_id, "share")
    level = _NormalizePermission(permission_type)

    targets: list[str] = []
    for value in target_user_ids or []:
        cleaned = (value or "").strip()
        if cleaned and cleaned not in targets:
            targets.append(cleaned)
    if not targets:
        raise NoteValidationError("At least one user is required")

    outcome = ShareManyOutcome(Total=len(targets))
    for target in targets:
        try:
            _ShareWithUser(db, user, note, target, level)
        except NoteValidationError as exc:
            outcome.Results.append(ShareOutcome(UserId=target, Success=False, Error=str(exc)))
            outcome.Failed += 1
            continue
        except Exception:  # noqa: BLE001
            db.rollback()
            logger.exception("failed to share note_id=%s with user_id=%s", note_id, target)
            outcome.Results.append(
                ShareOutcome(UserId=target, Success=False, Error="Failed to share note")
            )
            outcome.Failed += 1
            continue
        outcome.Results.append(ShareOutcome(UserId=target, Success=True))
        outcome.Succeeded += 1

    logger.info(
        "note shared with many note_id=%s total=%s succeeded=%s failed=%s",
        note_id,
        outcome.Total,
        outcome.Succeeded,
        outcome.Failed,
    )
    return outcome


def RevokeAccess(db: Session, user: UserContext, note_id: int, target_user_id: str) -> None:
    note = _LoadOwnedNote(db, user, note_id, "revoke access to")
    target = _NormalizeUserId(target_user_id)
    removed = DeleteGrant(db, note.Id, target)
    if not removed:
        return
    logger.info("access revoked note_id=%s user_id=%s", note_id, target)
    try:
        DeletePendingForRecipient(db, note.Id, target)
    except Exception:  # noqa: BLE001
        db.rollback()
        logger.exception("failed to drop reminders for revoked user note_id=%s", note_id)


def ListNoteGrants(db: Session, user: UserContext, note_id: int) -> list[NotePermission]:
    note = _LoadOwnedNote(db, user, note_id, "view sharing for")
    return ListGrants(db, note.Id)


def BuildNoteView(db: Session, user: UserContext, note: Note) -> NoteView:
    return NoteView(
        Note=note,
        CanRead=rbac.CanViewNote(db, note, user.Id),
        CanEdit=rbac.CanEditNote(db, note, user.Id),
        IsOwner=rbac.IsOwner(user.Id, note),
    )


def ListNotesForContainer(db: Session, user: UserContext, container_key: str) -> list[NoteView]:
    """Notes on the container the caller owns or holds a grant on."""
    container_key = _NormalizeContainerKey(container_key)
    notes = ListNotesForActor(db, container_key, user.Id)
    return [BuildNoteView(db, user, note) for note in notes]


def ListPublicNotesForContainer(db: Session, container_key: str) -> list[Note]:
    return ListPublicNotes(db, _NormalizeContainerKey(container_key))


def ListMyNotes(db: Session, user: UserContext) -> list[Note]:
    return ListOwnedNotes(db, user.Id)


def GetStatistics(db: Session, user: UserContext) -> NoteStatistics:
    my_count = CountOwnedNotes(db, user.Id)
    shared_count = CountSharedNotes(db, user.Id)
    return NoteStatistics(
        TotalCount=my_count + shared_count,
        MyCount=my_count,
        SharedCount=shared_count,
        UpcomingDeadlines=CountUpcomingDeadlines(db, user.Id, NowUtc()),
    )


def ListShareUsers(container_key: str) -> list[dict]:
    """Project members eligible as share targets, looked up through the tracker."""
    container_key = _NormalizeContainerKey(container_key)
    client = BuildTrackerClient()
    if client is None:
        raise TrackerError("Issue tracker is not configured")
    with client:
        project_key = client.GetProjectKey(container_key)
        return client.ListAssignableUsers(project_key)
