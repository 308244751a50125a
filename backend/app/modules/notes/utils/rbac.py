from sqlalchemy.orm import Session

from app.modules.notes.models import Note
from app.modules.notes.schemas import PermissionLevel
from app.modules.notes.services.permission_store import GetGrant


def IsOwner(user_id: str, note: Note | None) -> bool:
    return note is not None and note.OwnerUserId == user_id


def CanAccessNote(db: Session, note: Note | None, user_id: str, required: PermissionLevel) -> bool:
    """Decide read/write access from ownership, visibility and the grant table.

    Always reads current grants, so a revoke takes effect on the next check.
    """
    if note is None:
        return False

    if note.OwnerUserId == user_id:
        return True

    if required == PermissionLevel.Read and note.IsPublic:
        return True

    grant = GetGrant(db, note.Id, user_id)
    if grant is None:
        return False

    if required == PermissionLevel.Write:
        return grant.PermissionType == PermissionLevel.Write.value
    return True


def CanViewNote(db: Session, note: Note | None, user_id: str) -> bool:
    return CanAccessNote(db, note, user_id, PermissionLevel.Read)


def CanEditNote(db: Session, note: Note | None, user_id: str) -> bool:
    return CanAccessNote(db, note, user_id, PermissionLevel.Write)


def CanDeleteNote(user_id: str, note: Note | None) -> bool:
    # Only the owner may delete, even over a write grant.
    return IsOwner(user_id, note)


def CanShareNote(user_id: str, note: Note | None) -> bool:
    return IsOwner(user_id, note)
