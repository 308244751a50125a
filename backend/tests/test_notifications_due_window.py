from datetime import datetime, timedelta, timezone

from app.modules.notes.services.note_store import DeleteNoteRow, InsertNote
from app.modules.notes.services.permission_store import UpsertGrant
from app.modules.notifications.models import Notification
from app.modules.notifications.services import (
    BuildReminderMessage,
    ListDuePending,
    MaterializeForDeadline,
    ReplaceForDeadline,
    ResolveRecipients,
)
from app.modules.notifications.store import InsertNotifications, MarkNotificationSent

NOW = datetime(2026, 5, 10, 12, 0, tzinfo=timezone.utc)


def _note(db, deadline, owner="U1", title="Ship it"):
    return InsertNote(
        db,
        container_key="PROJ-7",
        title=title,
        content="",
        owner_user_id=owner,
        deadline=deadline,
        is_public=False,
        status="open",
        now=NOW - timedelta(days=10),
    )


def _pending(db, note, user_id="U1"):
    record = Notification(
        UserId=user_id,
        NoteId=note.Id,
        Type="deadline_reminder",
        Title="Note Deadline Approaching",
        Message=BuildReminderMessage(note.ContainerKey, note.Title),
        Status="pending",
        Attempts=0,
        CreatedAt=NOW - timedelta(days=1),
        UpdatedAt=NOW - timedelta(days=1),
    )
    return InsertNotifications(db, [record])[0]


def test_recipients_are_owner_then_distinct_grantees(db):
    note = _note(db, NOW + timedelta(days=2))
    for user_id in ("U2", "U3", "U2"):
        UpsertGrant(
            db,
            note_id=note.Id,
            user_id=user_id,
            permission_type="read",
            granted_by_user_id="U1",
            now=NOW,
        )
    assert ResolveRecipients(db, note) == ["U1", "U2", "U3"]


def test_materialize_skips_past_or_missing_deadline(db):
    note = _note(db, NOW - timedelta(hours=1))
    assert MaterializeForDeadline(db, note.Id, None, "PROJ-7", now=NOW) == []
    assert MaterializeForDeadline(db, note.Id, NOW - timedelta(hours=1), "PROJ-7", now=NOW) == []
    assert MaterializeForDeadline(db, note.Id, NOW, "PROJ-7", now=NOW) == []


def test_materialize_renders_message(db):
    note = _note(db, NOW + timedelta(days=1), title="Quarterly review")
    created = MaterializeForDeadline(db, note.Id, NOW + timedelta(days=1), "PROJ-7", now=NOW)

    assert len(created) == 1
    assert created[0].Status == "pending"
    assert created[0].Attempts == 0
    assert created[0].Message == 'Deadline approaching for "Quarterly review" on PROJ-7.'


def test_replace_with_cleared_deadline_removes_everything(db):
    note = _note(db, NOW + timedelta(days=1))
    MaterializeForDeadline(db, note.Id, NOW + timedelta(days=1), "PROJ-7", now=NOW)

    assert ReplaceForDeadline(db, note.Id, None, "PROJ-7", now=NOW) == []
    assert db.query(Notification).filter(Notification.NoteId == note.Id).count() == 0


def test_due_window_boundaries(db):
    offsets = {"h24": 24, "h1": 1, "h0": 0, "overdue": -5, "h25": 25}
    notes = {name: _note(db, NOW + timedelta(hours=hours), title=name) for name, hours in offsets.items()}
    for note in notes.values():
        _pending(db, note)

    due = ListDuePending(db, now=NOW, window_hours=24)
    due_titles = sorted(item.Note.Title for item in due)

    assert due_titles == ["h0", "h1", "h24", "overdue"]
    hours = {item.Note.Title: item.HoursUntilDeadline for item in due}
    assert hours["h24"] == 24
    assert hours["overdue"] == -5


def test_due_ignores_sent_and_orphaned_reminders(db):
    sent_note = _note(db, NOW + timedelta(hours=2), title="sent")
    sent = _pending(db, sent_note)
    MarkNotificationSent(db, sent.Id, NOW)

    orphan_note = _note(db, NOW + timedelta(hours=2), title="orphan")
    _pending(db, orphan_note)
    DeleteNoteRow(db, orphan_note.Id)

    undated = _note(db, None, title="undated")
    _pending(db, undated)

    assert ListDuePending(db, now=NOW, window_hours=24) == []


def test_due_window_reads_env(db, monkeypatch):
    note = _note(db, NOW + timedelta(hours=30))
    _pending(db, note)

    monkeypatch.delenv("NOTES_REMINDER_WINDOW_HOURS", raising=False)
    assert ListDuePending(db, now=NOW) == []
    monkeypatch.setenv("NOTES_REMINDER_WINDOW_HOURS", "48")
    assert len(ListDuePending(db, now=NOW)) == 1
