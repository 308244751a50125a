"""create note deadline reminder table

Revision ID: 0003_note_notifications
Revises: 0002_note_permissions
Create Date: 2026-10-19 00:10:00.000000
"""

from alembic import op
import sqlalchemy as sa

revision = "0003_note_notifications"
down_revision = "0002_note_permissions"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "note_notifications",
        sa.Column("Id", sa.Integer(), primary_key=True),
        sa.Column("UserId", sa.String(length=128), nullable=False),
        sa.Column("NoteId", sa.Integer(), nullable=False),
        sa.Column("Type", sa.String(length=50), nullable=False, server_default="deadline_reminder"),
        sa.Column("Title", sa.Unicode(length=500), nullable=False),
        sa.Column("Message", sa.Text()),
        sa.Column("Status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("Attempts", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("LastError", sa.String(length=255)),
        sa.Column("SentAt", sa.DateTime(timezone=True)),
        sa.Column("CreatedAt", sa.DateTime(timezone=True), nullable=False),
        sa.Column("UpdatedAt", sa.DateTime(timezone=True), nullable=False),
        schema="notes",
    )
    op.create_index("ix_notes_note_notifications_UserId", "note_notifications", ["UserId"], schema="notes")
    op.create_index("ix_notes_note_notifications_NoteId", "note_notifications", ["NoteId"], schema="notes")
    op.create_index(
        "ix_note_notifications_status_created",
        "note_notifications",
        ["Status", "CreatedAt"],
        schema="notes",
    )


def downgrade() -> None:
    op.drop_index("ix_note_notifications_status_created", table_name="note_notifications", schema="notes")
    op.drop_index("ix_notes_note_notifications_NoteId", table_name="note_notifications", schema="notes")
    op.drop_index("ix_notes_note_notifications_UserId", table_name="note_notifications", schema="notes")
    op.drop_table("note_notifications", schema="notes")
