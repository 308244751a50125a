from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String, Text, UniqueConstraint

from app.db import NOTES_SCHEMA, Base


class Note(Base):
    __tablename__ = "notes"
    __table_args__ = (
        Index("ix_notes_container_public", "ContainerKey", "IsPublic"),
        {"schema": NOTES_SCHEMA},
    )

    Id = Column(Integer, primary_key=True, index=True)
    ContainerKey = Column(String(255), nullable=False, index=True)
    Title = Column(String(500), nullable=False)
    Content = Column(Text, nullable=False, default="")
    OwnerUserId = Column(String(128), nullable=False, index=True)
    Deadline = Column(DateTime(timezone=True), nullable=True)
    IsPublic = Column(Boolean, nullable=False, default=False)
    Status = Column(String(20), nullable=False, default="open")
    CreatedAt = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    UpdatedAt = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)


# NoteId is not a foreign key; dependents are removed by the service before the note.
class NotePermission(Base):
    __tablename__ = "note_permissions"
    __table_args__ = (
        UniqueConstraint("NoteId", "UserId", name="uq_note_permissions_note_user"),
        {"schema": NOTES_SCHEMA},
    )

    Id = Column(Integer, primary_key=True, index=True)
    NoteId = Column(Integer, nullable=False, index=True)
    UserId = Column(String(128), nullable=False, index=True)
    PermissionType = Column(String(10), nullable=False, default="read")
    GrantedByUserId = Column(String(128), nullable=False)
    GrantedAt = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
