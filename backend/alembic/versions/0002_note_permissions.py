"""create note permissions table

Revision ID: 0002_note_permissions
Revises: 0001_notes_table
Create Date: 2026-10-19 00:05:00.000000
"""

from alembic import op
import sqlalchemy as sa

revision = "0002_note_permissions"
down_revision = "0001_notes_table"
branch_labels = None
depends_on = None


def upgrade() -> None:
    # No foreign key to notes; grants are removed by the service before the note.
    op.create_table(
        "note_permissions",
        sa.Column("Id", sa.Integer(), primary_key=True),
        sa.Column("NoteId", sa.Integer(), nullable=False),
        sa.Column("UserId", sa.String(length=128), nullable=False),
        sa.Column("PermissionType", sa.String(length=10), nullable=False, server_default="read"),
        sa.Column("GrantedByUserId", sa.String(length=128), nullable=False),
        sa.Column("GrantedAt", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("NoteId", "UserId", name="uq_note_permissions_note_user"),
        schema="notes",
    )
    op.create_index("ix_notes_note_permissions_NoteId", "note_permissions", ["NoteId"], schema="notes")
    op.create_index("ix_notes_note_permissions_UserId", "note_permissions", ["UserId"], schema="notes")


def downgrade() -> None:
    op.drop_index("ix_notes_note_permissions_UserId", table_name="note_permissions", schema="notes")
    op.drop_index("ix_notes_note_permissions_NoteId", table_name="note_permissions", schema="notes")
    op.drop_table("note_permissions", schema="notes")
