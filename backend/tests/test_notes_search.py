from datetime import datetime, timezone

import pytest

from app.modules.notes.services.note_store import InsertNote
from app.modules.notes.services.notes_service import NoteValidationError
from app.modules.notes.services.search_service import BuildJqlFragment, RunSearchFunction


def _note(db, container_key, created_at, owner="U1"):
    InsertNote(
        db,
        container_key=container_key,
        title=f"note on {container_key}",
        content="",
        owner_user_id=owner,
        deadline=None,
        is_public=False,
        status="open",
        now=created_at,
    )


@pytest.fixture
def seeded(db):
    _note(db, "ABC-1", datetime(2025, 1, 5, 10, 0, tzinfo=timezone.utc))
    _note(db, "ABC-1", datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc), owner="U2")
    _note(db, "ABC-1", datetime(2025, 3, 2, 9, 0, tzinfo=timezone.utc), owner="U3")
    _note(db, "XYZ-9", datetime(2025, 6, 30, 23, 30, tzinfo=timezone.utc))
    return db


def test_fragment_shapes():
    assert BuildJqlFragment([], "in") == 'key = "IMPOSSIBLE-MATCH"'
    assert BuildJqlFragment([], "not in") == 'key != "IMPOSSIBLE-MATCH"'
    assert BuildJqlFragment(["A-1", "B-2"], "in") == 'key in ("A-1", "B-2")'
    assert BuildJqlFragment(["A-1"], "not in") == 'key not in ("A-1")'


def test_issues_with_notes_is_not_owner_scoped(seeded):
    assert RunSearchFunction(seeded, "issuesWithNotes", "in", []) == 'key in ("ABC-1", "XYZ-9")'
    assert RunSearchFunction(seeded, "issuesWithNotes", "NOT  IN", []) == 'key not in ("ABC-1", "XYZ-9")'


def test_count_comparisons(seeded):
    assert RunSearchFunction(seeded, "issuesWithNotesCount", "in", [">", "2"]) == 'key in ("ABC-1")'
    assert RunSearchFunction(seeded, "issuesWithNotesCount", "in", ["=", "1"]) == 'key in ("XYZ-9")'
    assert RunSearchFunction(seeded, "issuesWithNotesCount", "in", [">=", "5"]) == 'key = "IMPOSSIBLE-MATCH"'


def test_count_rejects_bad_arguments(seeded):
    with pytest.raises(NoteValidationError, match="Usage"):
        RunSearchFunction(seeded, "issuesWithNotesCount", "in", ["!=", "2"])
    with pytest.raises(NoteValidationError, match="Usage"):
        RunSearchFunction(seeded, "issuesWithNotesCount", "in", [">", "three"])


def test_after_and_before_are_strict(seeded):
    assert RunSearchFunction(seeded, "issuesWithNotesAfter", "in", ["2025-03-02"]) == 'key in ("ABC-1", "XYZ-9")'
    assert RunSearchFunction(seeded, "issuesWithNotesAfter", "in", ["2025-07-01"]) == 'key = "IMPOSSIBLE-MATCH"'
    assert RunSearchFunction(seeded, "issuesWithNotesBefore", "in", ["2025-01-05"]) == 'key = "IMPOSSIBLE-MATCH"'
    assert RunSearchFunction(seeded, "issuesWithNotesBefore", "in", ["2025-01-06"]) == 'key in ("ABC-1")'


def test_date_range_includes_end_day(seeded):
    fragment = RunSearchFunction(seeded, "issuesWithNotesInDateRange", "in", ["2025-06-01", "2025-06-30"])
    assert fragment == 'key in ("XYZ-9")'


def test_date_validation(seeded):
    with pytest.raises(NoteValidationError, match="Date is required"):
        RunSearchFunction(seeded, "issuesWithNotesAfter", "in", [])
    with pytest.raises(NoteValidationError, match="YYYY-MM-DD"):
        RunSearchFunction(seeded, "issuesWithNotesBefore", "in", ["03/01/2025"])
    with pytest.raises(NoteValidationError, match="YYYY-MM-DD"):
        RunSearchFunction(seeded, "issuesWithNotesBefore", "in", ["2025-02-30"])
    with pytest.raises(NoteValidationError, match="required"):
        RunSearchFunction(seeded, "issuesWithNotesInDateRange", "in", ["2025-01-01"])


def test_unknown_function_and_operator(seeded):
    with pytest.raises(NoteValidationError, match="Unknown search function"):
        RunSearchFunction(seeded, "issuesWithTags", "in", [])
    with pytest.raises(NoteValidationError, match="Operator"):
        RunSearchFunction(seeded, "issuesWithNotes", "=", [])
