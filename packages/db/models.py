"""SQLModel table definitions for the ticketdesk data layer."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, String, Text
from sqlmodel import Field, SQLModel


def _utcnow() -> datetime:
    """Return a timezone aware UTC timestamp."""

    return datetime.now(timezone.utc)


class TicketTable(SQLModel, table=True):
    """Support tickets moving through the severity-review workflow."""

    __tablename__ = "tickets"

    uuid: str = Field(primary_key=True, index=True, max_length=36)
    ticket_number: str = Field(sa_column=Column(String(32), nullable=False, index=True))
    workspace_uuid: str = Field(sa_column=Column(String(36), nullable=False, index=True))
    created_by_uuid: str = Field(sa_column=Column(String(36), nullable=False, index=True))
    title: str = Field(sa_column=Column(String(255), nullable=False))
    description: str = Field(sa_column=Column(Text, nullable=False))
    severity: str = Field(sa_column=Column(String(20), nullable=False))
    status: str = Field(sa_column=Column(String(20), nullable=False, index=True))
    severity_change_reason: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    due_date: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
    deleted_at: datetime | None = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
    active: bool = Field(default=True, sa_column=Column(Boolean, nullable=False, default=True))


class TicketHistoryTable(SQLModel, table=True):
    """Append-only audit trail of ticket mutations.

    ``ticket_uuid`` has no cascading foreign key; history survives the ticket.
    """

    __tablename__ = "ticket_history"

    uuid: str = Field(primary_key=True, index=True, max_length=36)
    ticket_uuid: str = Field(sa_column=Column(String(36), nullable=False, index=True))
    user_uuid: str = Field(sa_column=Column(String(36), nullable=False, index=True))
    previous_status: str = Field(sa_column=Column(String(20), nullable=False))
    new_status: str = Field(sa_column=Column(String(20), nullable=False))
    previous_severity: str | None = Field(default=None, sa_column=Column(String(20), nullable=True))
    new_severity: str | None = Field(default=None, sa_column=Column(String(20), nullable=True))
    change_reason: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    previous_title: str | None = Field(default=None, sa_column=Column(String(255), nullable=True))
    new_title: str | None = Field(default=None, sa_column=Column(String(255), nullable=True))
    previous_description: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    new_description: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    created_at: datetime = Field(
        default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False, index=True)
    )
    updated_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
    deleted_at: datetime | None = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
    active: bool = Field(default=True, sa_column=Column(Boolean, nullable=False, default=True))
