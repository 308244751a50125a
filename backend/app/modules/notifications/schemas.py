from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class ReminderOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    Id: int
    UserId: str
    NoteId: int
    Type: str
    Title: str
    Message: str | None = None
    Status: str
    Attempts: int
    LastError: str | None = None
    SentAt: datetime | None = None
    CreatedAt: datetime
    IsSent: bool


class ReminderListResult(BaseModel):
    Success: bool = True
    Reminders: list[ReminderOut] = Field(default_factory=list)


class SweepRunResult(BaseModel):
    Success: bool = True
    Total: int
    Sent: int
    Failed: int
    Abandoned: int
    Skipped: int = 0
