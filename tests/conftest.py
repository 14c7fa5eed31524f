from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import datetime, timezone
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

import packages.db.models  # noqa: F401  registers the tables on SQLModel.metadata
from ticketdesk.core.errors import NotFoundError
from ticketdesk.tickets.history import TicketHistoryService
from ticketdesk.tickets.models import TICKET_NUMBER_PREFIX, Ticket, TicketHistory, parse_ticket_sequence
from ticketdesk.tickets.service import TicketService
from ticketdesk.tickets.state import TicketSeverity, TicketStatus


class InMemoryTicketStore:
    """Dict-backed ticket store returning copies, like a real database would."""

    def __init__(self):
        self.tickets: dict[str, Ticket] = {}
        self.update_calls = 0

    def add(self, ticket: Ticket) -> Ticket:
        self.tickets[ticket.uuid] = replace(ticket)
        return ticket

    async def create(self, ticket: Ticket) -> Ticket:
        self.tickets[ticket.uuid] = replace(ticket)
        return replace(ticket)

    async def find_by_uuid(self, uuid: str) -> Ticket:
        await asyncio.sleep(0)
        ticket = self.tickets.get(uuid)
        if ticket is None or not ticket.active:
            raise NotFoundError(f"The entity {uuid} was not found")
        return replace(ticket)

    async def find_all(self):
        return [replace(ticket) for ticket in self.tickets.values() if ticket.active]

    async def update(self, uuid: str, ticket: Ticket) -> Ticket:
        if uuid not in self.tickets:
            raise NotFoundError(f"The entity {uuid} was not found")
        self.update_calls += 1
        self.tickets[uuid] = replace(ticket)
        return replace(ticket)

    async def find_by_status(self, workspace_uuid: str, status: TicketStatus):
        return [
            replace(ticket)
            for ticket in self.tickets.values()
            if ticket.active and ticket.workspace_uuid == workspace_uuid and ticket.status == status
        ]

    async def find_by_created_by(self, created_by_uuid: str):
        return [replace(t) for t in self.tickets.values() if t.active and t.created_by_uuid == created_by_uuid]

    async def find_by_workspace(self, workspace_uuid: str):
        return [replace(t) for t in self.tickets.values() if t.active and t.workspace_uuid == workspace_uuid]

    async def find_pending_tickets(self):
        return [replace(t) for t in self.tickets.values() if t.active and t.status == TicketStatus.PENDING]

    async def find_by_ticket_number(self, ticket_number: str) -> Ticket:
        for ticket in self.tickets.values():
            if ticket.active and ticket.ticket_number == ticket_number:
                return replace(ticket)
        raise NotFoundError(f"Ticket {ticket_number} was not found")

    async def get_next_sequence_number(self, year: int, workspace_uuid: str) -> int:
        prefix = f"{TICKET_NUMBER_PREFIX}-{year}-"
        numbers = sorted(
            t.ticket_number
            for t in self.tickets.values()
            if t.active and t.workspace_uuid == workspace_uuid and t.ticket_number.startswith(prefix)
        )
        if not numbers:
            return 1
        return parse_ticket_sequence(numbers[-1])

    async def find_by_status_and_workspace(self, status: TicketStatus, workspace_uuid: str):
        return await self.find_by_status(workspace_uuid, status)

    async def bulk_update_status(self, ticket_uuids, new_status: TicketStatus):
        updated = []
        for uuid in ticket_uuids:
            ticket = self.tickets.get(uuid)
            if ticket is not None and ticket.active:
                ticket.status = new_status
                updated.append(replace(ticket))
        return updated

    async def find_all_by_workspace_id(self, workspace_uuid: str):
        return await self.find_by_workspace(workspace_uuid)


class InMemoryHistoryStore:
    def __init__(self):
        self.entries: list[TicketHistory] = []

    async def create(self, entry: TicketHistory) -> TicketHistory:
        self.entries.append(entry)
        return entry

    async def find_by_ticket(self, ticket_uuid: str):
        return self._newest_first(e for e in self.entries if e.ticket_uuid == ticket_uuid)

    async def find_by_user(self, user_uuid: str):
        return self._newest_first(e for e in self.entries if e.user_uuid == user_uuid)

    async def find_recent_activity(self, limit: int = 10):
        return self._newest_first(self.entries)[:limit]

    @staticmethod
    def _newest_first(entries):
        return sorted((e for e in entries if e.active), key=lambda e: e.created_at, reverse=True)


def make_uuid() -> str:
    return str(uuid4())


@pytest.fixture
def workspace_uuid() -> str:
    return make_uuid()


@pytest.fixture
def associate_uuid() -> str:
    return make_uuid()


@pytest.fixture
def manager_uuid() -> str:
    return make_uuid()


@pytest.fixture
def make_ticket(workspace_uuid, associate_uuid):
    def factory(
        *,
        status: TicketStatus = TicketStatus.DRAFT,
        severity: TicketSeverity = TicketSeverity.MEDIUM,
        sequence: int = 1,
        **overrides,
    ) -> Ticket:
        values = dict(
            ticket_number=Ticket.generate_ticket_number(2025, sequence),
            workspace_uuid=workspace_uuid,
            created_by_uuid=associate_uuid,
            title="Printer on fire",
            description="The third floor printer is emitting smoke",
            severity=severity,
            status=status,
            due_date=datetime(2025, 7, 1, 12, 0, tzinfo=timezone.utc),
        )
        values.update(overrides)
        return Ticket(**values)

    return factory


@pytest.fixture
def ticket_store() -> InMemoryTicketStore:
    return InMemoryTicketStore()


@pytest.fixture
def history_store() -> InMemoryHistoryStore:
    return InMemoryHistoryStore()


@pytest.fixture
def history_service(history_store, ticket_store) -> TicketHistoryService:
    return TicketHistoryService(history_store, ticket_store)


@pytest.fixture
def oracle() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def ticket_service(ticket_store, history_service, oracle) -> TicketService:
    return TicketService(
        ticket_store,
        history_service,
        oracle,
        clock=lambda: datetime(2025, 3, 14, 9, 30, tzinfo=timezone.utc),
    )


@pytest_asyncio.fixture
async def sqlite_engine():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    async with engine.begin() as connection:
        await connection.run_sync(SQLModel.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def session_factory(sqlite_engine):
    return async_sessionmaker(sqlite_engine, expire_on_commit=False)
