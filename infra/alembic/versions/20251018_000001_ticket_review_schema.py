"""Ticket review workflow schema."""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "20251018_000001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "tickets",
        sa.Column("uuid", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("ticket_number", sa.String(length=32), nullable=False),
        sa.Column("workspace_uuid", sa.String(length=36), nullable=False),
        sa.Column("created_by_uuid", sa.String(length=36), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("severity", sa.String(length=20), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("severity_change_reason", sa.Text(), nullable=True),
        sa.Column("due_date", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("deleted_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
    )
    op.create_index("ix_tickets_ticket_number", "tickets", ["ticket_number"])
    op.create_index("ix_tickets_workspace_uuid", "tickets", ["workspace_uuid"])
    op.create_index("ix_tickets_created_by_uuid", "tickets", ["created_by_uuid"])
    op.create_index("ix_tickets_status", "tickets", ["status"])

    op.create_table(
        "ticket_history",
        sa.Column("uuid", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("ticket_uuid", sa.String(length=36), nullable=False),
        sa.Column("user_uuid", sa.String(length=36), nullable=False),
        sa.Column("previous_status", sa.String(length=20), nullable=False),
        sa.Column("new_status", sa.String(length=20), nullable=False),
        sa.Column("previous_severity", sa.String(length=20), nullable=True),
        sa.Column("new_severity", sa.String(length=20), nullable=True),
        sa.Column("change_reason", sa.Text(), nullable=True),
        sa.Column("previous_title", sa.String(length=255), nullable=True),
        sa.Column("new_title", sa.String(length=255), nullable=True),
        sa.Column("previous_description", sa.Text(), nullable=True),
        sa.Column("new_description", sa.Text(), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("deleted_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
    )
    op.create_index("ix_ticket_history_ticket_uuid", "ticket_history", ["ticket_uuid"])
    op.create_index("ix_ticket_history_user_uuid", "ticket_history", ["user_uuid"])
    op.create_index("ix_ticket_history_created_at", "ticket_history", ["created_at"])


def downgrade() -> None:
    op.drop_table("ticket_history")
    op.drop_table("tickets")
