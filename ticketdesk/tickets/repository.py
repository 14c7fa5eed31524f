from __future__ import annotations

from datetime import datetime, timezone
from typing import Sequence

from sqlalchemy import update as sa_update
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlmodel import SQLModel, select

from packages.db.models import TicketHistoryTable, TicketTable
from ticketdesk.core.errors import NotFoundError

from .models import TICKET_NUMBER_PREFIX, Ticket, TicketHistory, parse_ticket_sequence
from .state import TicketSeverity, TicketStatus


class _SchemaMixin:
    _engine: AsyncEngine | None

    async def ensure_schema(self) -> None:
        if self._engine is None:
            raise RuntimeError("Session factory is not bound to an async engine")
        async with self._engine.begin() as connection:
            await connection.run_sync(SQLModel.metadata.create_all)


class TicketRepository(_SchemaMixin):
    """Data access layer for the `tickets` table. Reads only see active rows."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        engine: AsyncEngine | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._engine = engine

    async def create(self, ticket: Ticket) -> Ticket:
        async with self._session_factory() as session:
            row = TicketTable(uuid=ticket.uuid)
            self._apply(row, ticket)
            session.add(row)
            await session.commit()
            await session.refresh(row)
            return self._table_to_ticket(row)

    async def find_by_uuid(self, uuid: str) -> Ticket:
        async with self._session_factory() as session:
            result = await session.execute(
                select(TicketTable).where(TicketTable.uuid == uuid, TicketTable.active == True)  # noqa: E712
            )
            row = result.scalars().first()
        if row is None:
            raise NotFoundError(f"The entity {uuid} was not found")
        return self._table_to_ticket(row)

    async def find_all(self) -> Sequence[Ticket]:
        return await self._fetch()

    async def update(self, uuid: str, ticket: Ticket) -> Ticket:
        async with self._session_factory() as session:
            row = await session.get(TicketTable, uuid)
            if row is None:
                raise NotFoundError(f"The entity {uuid} was not found")
            self._apply(row, ticket)
            await session.commit()
            await session.refresh(row)
            return self._table_to_ticket(row)

    async def find_by_status(self, workspace_uuid: str, status: TicketStatus) -> Sequence[Ticket]:
        return await self._fetch(
            TicketTable.workspace_uuid == workspace_uuid,
            TicketTable.status == status.value,
        )

    async def find_by_created_by(self, created_by_uuid: str) -> Sequence[Ticket]:
        return await self._fetch(TicketTable.created_by_uuid == created_by_uuid)

    async def find_by_workspace(self, workspace_uuid: str) -> Sequence[Ticket]:
        return await self._fetch(TicketTable.workspace_uuid == workspace_uuid)

    async def find_pending_tickets(self) -> Sequence[Ticket]:
        return await self._fetch(TicketTable.status == TicketStatus.PENDING.value)

    async def find_by_ticket_number(self, ticket_number: str) -> Ticket:
        tickets = await self._fetch(TicketTable.ticket_number == ticket_number)
        if not tickets:
            raise NotFoundError(f"Ticket {ticket_number} was not found")
        return tickets[0]

    async def get_next_sequence_number(self, year: int, workspace_uuid: str) -> int:
        prefix = f"{TICKET_NUMBER_PREFIX}-{year}-"
        async with self._session_factory() as session:
            result = await session.execute(
                select(TicketTable.ticket_number)
                .where(
                    TicketTable.ticket_number.startswith(prefix),
                    TicketTable.workspace_uuid == workspace_uuid,
                    TicketTable.active == True,  # noqa: E712
                )
                .order_by(TicketTable.ticket_number.desc())
                .limit(1)
            )
            latest = result.scalars().first()
        if latest is None:
            return 1
        return parse_ticket_sequence(latest)

    async def find_by_status_and_workspace(self, status: TicketStatus, workspace_uuid: str) -> Sequence[Ticket]:
        return await self.find_by_status(workspace_uuid, status)

    async def bulk_update_status(self, ticket_uuids: Sequence[str], new_status: TicketStatus) -> Sequence[Ticket]:
        uuids = list(ticket_uuids)
        if not uuids:
            return []
        async with self._session_factory() as session:
            await session.execute(
                sa_update(TicketTable)
                .where(TicketTable.uuid.in_(uuids), TicketTable.active == True)  # noqa: E712
                .values(status=new_status.value, updated_at=datetime.now(timezone.utc))
            )
            await session.commit()
        return await self._fetch(TicketTable.uuid.in_(uuids))

    async def find_all_by_workspace_id(self, workspace_uuid: str) -> Sequence[Ticket]:
        return await self.find_by_workspace(workspace_uuid)

    async def _fetch(self, *conditions) -> list[Ticket]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(TicketTable)
                .where(TicketTable.active == True, *conditions)  # noqa: E712
                .order_by(TicketTable.created_at.desc())
            )
            return [self._table_to_ticket(row) for row in result.scalars().all()]

    @staticmethod
    def _apply(row: TicketTable, ticket: Ticket) -> None:
        row.ticket_number = ticket.ticket_number
        row.workspace_uuid = ticket.workspace_uuid
        row.created_by_uuid = ticket.created_by_uuid
        row.title = ticket.title
        row.description = ticket.description
        row.severity = ticket.severity.value
        row.status = ticket.status.value
        row.severity_change_reason = ticket.severity_change_reason
        row.due_date = ticket.due_date
        row.created_at = ticket.created_at
        row.updated_at = ticket.updated_at
        row.deleted_at = ticket.deleted_at
        row.active = ticket.active

    @staticmethod
    def _table_to_ticket(row: TicketTable) -> Ticket:
        return Ticket(
            uuid=row.uuid,
            ticket_number=row.ticket_number,
            workspace_uuid=row.workspace_uuid,
            created_by_uuid=row.created_by_uuid,
            title=row.title,
            description=row.description,
            severity=TicketSeverity(row.severity),
            status=TicketStatus(row.status),
            severity_change_reason=row.severity_change_reason,
            due_date=_ensure_datetime(row.due_date),
            created_at=_ensure_datetime(row.created_at),
            updated_at=_ensure_datetime(row.updated_at),
            deleted_at=_ensure_datetime(row.deleted_at) if row.deleted_at is not None else None,
            active=bool(row.active),
        )


class TicketHistoryRepository(_SchemaMixin):
    """Append-only access to the `ticket_history` table."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        engine: AsyncEngine | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._engine = engine

    async def create(self, entry: TicketHistory) -> TicketHistory:
        async with self._session_factory() as session:
            row = TicketHistoryTable(
                uuid=entry.uuid,
                ticket_uuid=entry.ticket_uuid,
                user_uuid=entry.user_uuid,
                previous_status=entry.previous_status.value,
                new_status=entry.new_status.value,
                previous_severity=entry.previous_severity.value if entry.previous_severity else None,
                new_severity=entry.new_severity.value if entry.new_severity else None,
                change_reason=entry.change_reason,
                previous_title=entry.previous_title,
                new_title=entry.new_title,
                previous_description=entry.previous_description,
                new_description=entry.new_description,
                created_at=entry.created_at,
                updated_at=entry.updated_at,
                deleted_at=entry.deleted_at,
                active=entry.active,
            )
            session.add(row)
            await session.commit()
            await session.refresh(row)
            return self._table_to_history(row)

    async def find_by_ticket(self, ticket_uuid: str) -> Sequence[TicketHistory]:
        return await self._fetch(TicketHistoryTable.ticket_uuid == ticket_uuid)

    async def find_by_user(self, user_uuid: str) -> Sequence[TicketHistory]:
        return await self._fetch(TicketHistoryTable.user_uuid == user_uuid)

    async def find_recent_activity(self, limit: int = 10) -> Sequence[TicketHistory]:
        return await self._fetch(limit=limit)

    async def _fetch(self, *conditions, limit: int | None = None) -> list[TicketHistory]:
        statement = (
            select(TicketHistoryTable)
            .where(TicketHistoryTable.active == True, *conditions)  # noqa: E712
            .order_by(TicketHistoryTable.created_at.desc())
        )
        if limit is not None:
            statement = statement.limit(limit)
        async with self._session_factory() as session:
            result = await session.execute(statement)
            return [self._table_to_history(row) for row in result.scalars().all()]

    @staticmethod
    def _table_to_history(row: TicketHistoryTable) -> TicketHistory:
        return TicketHistory(
            uuid=row.uuid,
            ticket_uuid=row.ticket_uuid,
            user_uuid=row.user_uuid,
            previous_status=TicketStatus(row.previous_status),
            new_status=TicketStatus(row.new_status),
            previous_severity=TicketSeverity(row.previous_severity) if row.previous_severity else None,
            new_severity=TicketSeverity(row.new_severity) if row.new_severity else None,
            change_reason=row.change_reason,
            previous_title=row.previous_title,
            new_title=row.new_title,
            previous_description=row.previous_description,
            new_description=row.new_description,
            created_at=_ensure_datetime(row.created_at),
            updated_at=_ensure_datetime(row.updated_at),
            deleted_at=_ensure_datetime(row.deleted_at) if row.deleted_at is not None else None,
            active=bool(row.active),
        )


def _ensure_datetime(value: datetime | None) -> datetime:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
    raise TypeError("Expected datetime value from database")
