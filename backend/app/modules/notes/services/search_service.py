from __future__ import annotations

import logging
import operator
from datetime import date, datetime, time, timedelta, timezone

from sqlalchemy.orm import Session

from app.modules.notes.services.note_store import CountNotesByContainer, ListContainerKeys
from app.modules.notes.services.notes_service import NoteValidationError
from app.modules.notes.utils.dates import IsIsoDate

logger = logging.getLogger("notes.search")

NO_MATCH_KEY = "IMPOSSIBLE-MATCH"
JQL_OPERATORS = ("in", "not in")

_COMPARISONS = {
    ">": operator.gt,
    "<": operator.lt,
    ">=": operator.ge,
    "<=": operator.le,
    "=": operator.eq,
}


def _QuoteKey(key: str) -> str:
    escaped = key.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def BuildJqlFragment(container_keys: list[str], jql_operator: str) -> str:
    if not container_keys:
        if jql_operator == "in":
            return f'key = "{NO_MATCH_KEY}"'
        return f'key != "{NO_MATCH_KEY}"'
    keys = ", ".join(_QuoteKey(key) for key in container_keys)
    if jql_operator == "in":
        return f"key in ({keys})"
    return f"key not in ({keys})"


def _StartOfDay(value: str) -> datetime:
    return datetime.combine(date.fromisoformat(value), time.min, tzinfo=timezone.utc)


def _RequireDate(value: str | None, usage: str) -> datetime:
    if not value:
        raise NoteValidationError(f"Date is required. Usage: {usage}")
    if not IsIsoDate(value):
        raise NoteValidationError("Invalid date format. Use YYYY-MM-DD format.")
    return _StartOfDay(value)


def _Argument(arguments: list[str], index: int) -> str | None:
    if index >= len(arguments):
        return None
    value = arguments[index]
    return value.strip() if isinstance(value, str) else value


def IssuesWithNotes(db: Session, arguments: list[str]) -> list[str]:
    return ListContainerKeys(db)


def IssuesWithNotesCount(db: Session, arguments: list[str]) -> list[str]:
    usage = 'Invalid arguments. Usage: issuesWithNotesCount(">", 3)'
    comparison = _COMPARISONS.get(_Argument(arguments, 0) or "")
    raw_count = _Argument(arguments, 1)
    if comparison is None or raw_count is None:
        raise NoteValidationError(usage)
    try:
        target = int(raw_count)
    except (TypeError, ValueError):
        raise NoteValidationError(usage)
    return [key for key, count in CountNotesByContainer(db) if comparison(count, target)]


def IssuesWithNotesAfter(db: Session, arguments: list[str]) -> list[str]:
    after = _RequireDate(_Argument(arguments, 0), 'issuesWithNotesAfter("2025-01-01")')
    return ListContainerKeys(db, created_after=after)


def IssuesWithNotesBefore(db: Session, arguments: list[str]) -> list[str]:
    before = _RequireDate(_Argument(arguments, 0), 'issuesWithNotesBefore("2025-12-31")')
    return ListContainerKeys(db, created_before=before)


def IssuesWithNotesInDateRange(db: Session, arguments: list[str]) -> list[str]:
    start_raw = _Argument(arguments, 0)
    end_raw = _Argument(arguments, 1)
    if not start_raw or not end_raw:
        raise NoteValidationError(
            "Start and end dates are required. "
            'Usage: issuesWithNotesInDateRange("2025-01-01", "2025-12-31")'
        )
    if not IsIsoDate(start_raw) or not IsIsoDate(end_raw):
        raise NoteValidationError("Invalid date format. Use YYYY-MM-DD format for both dates.")
    start = _StartOfDay(start_raw)
    # The end date is inclusive of the whole day.
    end = _StartOfDay(end_raw) + timedelta(days=1)
    if end <= start:
        raise NoteValidationError("Start date must not be after end date.")
    return ListContainerKeys(db, created_from=start, created_until=end)


SEARCH_FUNCTIONS = {
    "issuesWithNotes": IssuesWithNotes,
    "issuesWithNotesCount": IssuesWithNotesCount,
    "issuesWithNotesAfter": IssuesWithNotesAfter,
    "issuesWithNotesBefore": IssuesWithNotesBefore,
    "issuesWithNotesInDateRange": IssuesWithNotesInDateRange,
}


def RunSearchFunction(db: Session, function_name: str, jql_operator: str, arguments: list[str] | None) -> str:
    """Evaluate one search function and render it as a JQL fragment.

    Results are not scoped to the caller; the tracker applies its own
    issue permissions to the returned keys.
    """
    handler = SEARCH_FUNCTIONS.get((function_name or "").strip())
    if handler is None:
        raise NoteValidationError(
            f"Unknown search function. Supported: {', '.join(sorted(SEARCH_FUNCTIONS))}"
        )
    normalized_operator = " ".join((jql_operator or "in").lower().split())
    if normalized_operator not in JQL_OPERATORS:
        raise NoteValidationError("Operator must be 'in' or 'not in'")

    container_keys = handler(db, list(arguments or []))
    logger.info(
        "search function=%s operator=%s matches=%s",
        function_name,
        normalized_operator,
        len(container_keys),
    )
    return BuildJqlFragment(container_keys, normalized_operator)
