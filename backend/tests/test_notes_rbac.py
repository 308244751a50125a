from datetime import datetime, timezone

from app.modules.notes.schemas import PermissionLevel
from app.modules.notes.services.note_store import InsertNote
from app.modules.notes.services.permission_store import DeleteGrant, UpsertGrant
from app.modules.notes.utils.rbac import (
    CanAccessNote,
    CanDeleteNote,
    CanEditNote,
    CanShareNote,
    CanViewNote,
    IsOwner,
)

NOW = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


def _note(db, owner="U1", is_public=False):
    return InsertNote(
        db,
        container_key="PROJ-1",
        title="Plan",
        content="",
        owner_user_id=owner,
        deadline=None,
        is_public=is_public,
        status="open",
        now=NOW,
    )


def _grant(db, note, user_id, level):
    UpsertGrant(
        db,
        note_id=note.Id,
        user_id=user_id,
        permission_type=level,
        granted_by_user_id=note.OwnerUserId,
        now=NOW,
    )


def test_owner_has_every_capability(db):
    note = _note(db)
    assert IsOwner("U1", note)
    assert CanViewNote(db, note, "U1")
    assert CanEditNote(db, note, "U1")
    assert CanDeleteNote("U1", note)
    assert CanShareNote("U1", note)


def test_missing_note_denies_everything(db):
    assert not CanAccessNote(db, None, "U1", PermissionLevel.Read)
    assert not CanAccessNote(db, None, "U1", PermissionLevel.Write)
    assert not CanDeleteNote("U1", None)
    assert not IsOwner("U1", None)


def test_private_note_without_grant_is_hidden(db):
    note = _note(db)
    assert not CanViewNote(db, note, "U9")
    assert not CanEditNote(db, note, "U9")


def test_public_note_is_readable_not_writable(db):
    note = _note(db, is_public=True)
    assert CanViewNote(db, note, "U9")
    assert not CanEditNote(db, note, "U9")
    assert not CanDeleteNote("U9", note)


def test_read_grant_allows_read_only(db):
    note = _note(db)
    _grant(db, note, "U3", "read")
    assert CanViewNote(db, note, "U3")
    assert not CanEditNote(db, note, "U3")


def test_write_grant_allows_edit_but_not_delete_or_share(db):
    note = _note(db)
    _grant(db, note, "U2", "write")
    assert CanViewNote(db, note, "U2")
    assert CanEditNote(db, note, "U2")
    assert not CanDeleteNote("U2", note)
    assert not CanShareNote("U2", note)


def test_revoke_applies_on_next_check(db):
    note = _note(db)
    _grant(db, note, "U2", "write")
    assert CanEditNote(db, note, "U2")

    DeleteGrant(db, note.Id, "U2")
    assert not CanViewNote(db, note, "U2")
    assert not CanEditNote(db, note, "U2")
