from __future__ import annotations

import re
from datetime import date, datetime, timezone

_ISO_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def AsUtc(value: datetime | None) -> datetime | None:
    # Some drivers hand back naive datetimes for DATETIME2 columns; they are stored as UTC.
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def IsIsoDate(value: str | None) -> bool:
    if not value or not _ISO_DATE_PATTERN.match(value):
        return False
    try:
        date.fromisoformat(value)
        return True
    except ValueError:
        return False
