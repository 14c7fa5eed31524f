"""Persistence contracts consumed by the ticket services."""

from __future__ import annotations

from typing import Protocol, Sequence

from .models import Ticket, TicketHistory
from .state import TicketStatus


class TicketStore(Protocol):
    async def create(self, ticket: Ticket) -> Ticket:
        ...

    async def find_by_uuid(self, uuid: str) -> Ticket:
        """Return the active ticket or raise ``NotFoundError``."""
        ...

    async def find_all(self) -> Sequence[Ticket]:
        ...

    async def update(self, uuid: str, ticket: Ticket) -> Ticket:
        ...

    async def find_by_status(self, workspace_uuid: str, status: TicketStatus) -> Sequence[Ticket]:
        ...

    async def find_by_created_by(self, created_by_uuid: str) -> Sequence[Ticket]:
        ...

    async def find_by_workspace(self, workspace_uuid: str) -> Sequence[Ticket]:
        ...

    async def find_pending_tickets(self) -> Sequence[Ticket]:
        ...

    async def find_by_ticket_number(self, ticket_number: str) -> Ticket:
        """Return the active ticket or raise ``NotFoundError``."""
        ...

    async def get_next_sequence_number(self, year: int, workspace_uuid: str) -> int:
        ...

    async def find_by_status_and_workspace(self, status: TicketStatus, workspace_uuid: str) -> Sequence[Ticket]:
        ...

    async def bulk_update_status(self, ticket_uuids: Sequence[str], new_status: TicketStatus) -> Sequence[Ticket]:
        ...

    async def find_all_by_workspace_id(self, workspace_uuid: str) -> Sequence[Ticket]:
        ...


class TicketHistoryStore(Protocol):
    """Append-only store; reads return active records, newest first."""

    async def create(self, entry: TicketHistory) -> TicketHistory:
        ...

    async def find_by_ticket(self, ticket_uuid: str) -> Sequence[TicketHistory]:
        ...

    async def find_by_user(self, user_uuid: str) -> Sequence[TicketHistory]:
        ...

    async def find_recent_activity(self, limit: int = 10) -> Sequence[TicketHistory]:
        ...
