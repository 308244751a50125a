"""create notes schema and notes table

Revision ID: 0001_notes_table
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa

revision = "0001_notes_table"
down_revision = None
branch_labels = None
depends_on = None


def _ensure_schema() -> None:
    dialect = op.get_bind().dialect.name
    if dialect == "mssql":
        op.execute("IF NOT EXISTS (SELECT * FROM sys.schemas WHERE name = 'notes') EXEC('CREATE SCHEMA notes')")
    elif dialect == "postgresql":
        op.execute("CREATE SCHEMA IF NOT EXISTS notes")


def upgrade() -> None:
    _ensure_schema()

    op.create_table(
        "notes",
        sa.Column("Id", sa.Integer(), primary_key=True),
        sa.Column("ContainerKey", sa.String(length=255), nullable=False),
        sa.Column("Title", sa.String(length=500), nullable=False),
        sa.Column("Content", sa.Text(), nullable=False),
        sa.Column("OwnerUserId", sa.String(length=128), nullable=False),
        sa.Column("Deadline", sa.DateTime(timezone=True), nullable=True),
        sa.Column("IsPublic", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("Status", sa.String(length=20), nullable=False, server_default="open"),
        sa.Column("CreatedAt", sa.DateTime(timezone=True), nullable=False),
        sa.Column("UpdatedAt", sa.DateTime(timezone=True), nullable=False),
        schema="notes",
    )
    op.create_index("ix_notes_notes_ContainerKey", "notes", ["ContainerKey"], schema="notes")
    op.create_index("ix_notes_notes_OwnerUserId", "notes", ["OwnerUserId"], schema="notes")
    op.create_index("ix_notes_container_public", "notes", ["ContainerKey", "IsPublic"], schema="notes")


def downgrade() -> None:
    op.drop_index("ix_notes_container_public", table_name="notes", schema="notes")
    op.drop_index("ix_notes_notes_OwnerUserId", table_name="notes", schema="notes")
    op.drop_index("ix_notes_notes_ContainerKey", table_name="notes", schema="notes")
    op.drop_table("notes", schema="notes")
