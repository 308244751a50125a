from datetime import datetime

from sqlalchemy import Column, DateTime, Index, Integer, String, Text, Unicode

from app.db import NOTES_SCHEMA, Base

REMINDER_STATUS_PENDING = "pending"
REMINDER_STATUS_SENT = "sent"
REMINDER_STATUS_FAILED = "failed"

REMINDER_TYPE_DEADLINE = "deadline_reminder"


class Notification(Base):
    __tablename__ = "note_notifications"
    __table_args__ = (
        Index("ix_note_notifications_status_created", "Status", "CreatedAt"),
        {"schema": NOTES_SCHEMA},
    )

    Id = Column(Integer, primary_key=True, index=True)
    UserId = Column(String(128), nullable=False, index=True)
    NoteId = Column(Integer, nullable=False, index=True)
    Type = Column(String(50), nullable=False, default=REMINDER_TYPE_DEADLINE)
    Title = Column(Unicode(500), nullable=False)
    Message = Column(Text)
    Status = Column(String(20), nullable=False, default=REMINDER_STATUS_PENDING)
    Attempts = Column(Integer, nullable=False, default=0)
    LastError = Column(String(255))
    SentAt = Column(DateTime(timezone=True))
    CreatedAt = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    UpdatedAt = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    @property
    def IsSent(self) -> bool:
        return self.Status == REMINDER_STATUS_SENT
