"""baseline schema: admin, clients, knowledge bank, journals

Revision ID: 3f9c2a71d0b4
Revises:
Create Date: 2026-10-19 09:12:41.204511

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "3f9c2a71d0b4"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSONType = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")
gender_enum = sa.Enum("Male", "Female", "Other", name="client_gender")


def upgrade() -> None:
    op.create_table(
        "admin_user",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("username", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_admin_user_id", "admin_user", ["id"])
    op.create_index("ix_admin_user_username", "admin_user", ["username"], unique=True)

    op.create_table(
        "client",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("first_name", sa.String(), nullable=False),
        sa.Column("last_name", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("gender", gender_enum, nullable=False),
        sa.Column("date_of_birth", sa.Date(), nullable=True),
        sa.Column("background", sa.Text(), nullable=False),
        sa.Column("password_hash", sa.String(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("invite_token", sa.String(), nullable=True),
        sa.Column("invite_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_client_id", "client", ["id"])
    op.create_index("ix_client_email", "client", ["email"], unique=True)
    op.create_index("ix_client_invite_token", "client", ["invite_token"], unique=True)

    op.create_table(
        "client_file",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("client_id", sa.Integer(), sa.ForeignKey("client.id", ondelete="CASCADE"), nullable=False),
        sa.Column("filename", sa.String(), nullable=False),
        sa.Column("path", sa.String(), nullable=False),
        sa.Column("mimetype", sa.String(), nullable=True),
        sa.Column("size", sa.Integer(), nullable=True),
    )
    op.create_index("ix_client_file_id", "client_file", ["id"])
    op.create_index("ix_client_file_client_id", "client_file", ["client_id"])

    op.create_table(
        "client_note",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("client_id", sa.Integer(), sa.ForeignKey("client.id", ondelete="CASCADE"), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_client_note_id", "client_note", ["id"])
    op.create_index("ix_client_note_client_id", "client_note", ["client_id"])

    op.create_table(
        "knowledge_doc",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("file_url", sa.String(), nullable=False),
        sa.Column("uploaded_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_knowledge_doc_id", "knowledge_doc", ["id"])
    op.create_index("ix_knowledge_doc_uploaded_at", "knowledge_doc", ["uploaded_at"])

    op.create_table(
        "journal",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("topic", sa.Text(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("table_of_contents", JSONType, nullable=False),
        sa.Column("booking_link", sa.String(), nullable=False),
        sa.Column("owner_id", sa.Integer(), sa.ForeignKey("admin_user.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("client_id", sa.Integer(), sa.ForeignKey("client.id", ondelete="CASCADE"), nullable=False),
        sa.Column("responses", JSONType, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_journal_id", "journal", ["id"])
    op.create_index("ix_journal_owner_id", "journal", ["owner_id"])
    op.create_index("ix_journal_client_id", "journal", ["client_id"])
    op.create_index("ix_journal_created_at", "journal", ["created_at"])


def downgrade() -> None:
    op.drop_table("journal")
    op.drop_table("knowledge_doc")
    op.drop_table("client_note")
    op.drop_table("client_file")
    op.drop_table("client")
    op.drop_table("admin_user")
    gender_enum.drop(op.get_bind(), checkfirst=True)
