from __future__ import annotations

import logging
from dataclasses import dataclass
from http import HTTPStatus
from typing import Any, Sequence

from ticketdesk.core.errors import BadRequestError, ServiceResponse

from .contracts import TicketHistoryStore, TicketStore
from .models import TicketHistory, is_valid_uuid, validate_ticket_history
from .state import TicketSeverity, TicketStatus

logger = logging.getLogger(__name__)

DEFAULT_RECENT_ACTIVITY_LIMIT = 10


@dataclass(slots=True)
class TicketHistoryRequest:
    """The "new" side of a history record; the "previous" side is read from the ticket."""

    ticket_uuid: str
    user_uuid: str
    new_status: TicketStatus
    new_severity: TicketSeverity | None = None
    change_reason: str | None = None
    new_title: str | None = None
    new_description: str | None = None


class TicketHistoryService:
    """Sole writer of the ticket audit trail.

    Previous values always come from the ticket as currently persisted, so a
    history record reflects ground truth at write time. Records are never
    updated or deleted.
    """

    def __init__(self, repository: TicketHistoryStore, ticket_repository: TicketStore) -> None:
        self._repository = repository
        self._ticket_repository = ticket_repository

    async def create(self, request: TicketHistoryRequest) -> ServiceResponse[TicketHistory]:
        if not is_valid_uuid(request.ticket_uuid) or not is_valid_uuid(request.user_uuid):
            raise BadRequestError("Invalid UUID format")

        current = await self._ticket_repository.find_by_uuid(request.ticket_uuid)
        entry = TicketHistory(
            ticket_uuid=current.uuid,
            user_uuid=request.user_uuid,
            previous_status=current.status,
            new_status=request.new_status,
            previous_severity=current.severity,
            new_severity=request.new_severity,
            change_reason=request.change_reason,
            previous_title=current.title,
            new_title=request.new_title,
            previous_description=current.description,
            new_description=request.new_description,
        )
        violations = validate_ticket_history(entry)
        if violations:
            raise BadRequestError("; ".join(violations))

        created = await self._repository.create(entry)
        logger.debug(
            "History %s recorded for ticket %s: %s -> %s",
            created.uuid,
            created.ticket_uuid,
            created.previous_status.value,
            created.new_status.value,
        )
        return ServiceResponse(HTTPStatus.CREATED, created, f"Entity {created.uuid} created successfully")

    async def update(self, uuid: str, updates: Any = None) -> ServiceResponse[TicketHistory]:
        raise BadRequestError("The ticket history cannot be updated, only created")

    async def delete(self, uuid: str) -> ServiceResponse[TicketHistory]:
        raise BadRequestError("The ticket history cannot be deleted, only created")

    async def find_by_ticket(self, ticket_uuid: str) -> ServiceResponse[Sequence[TicketHistory]]:
        if not is_valid_uuid(ticket_uuid):
            raise BadRequestError("Invalid ticket UUID format")
        histories = list(await self._repository.find_by_ticket(ticket_uuid))
        return ServiceResponse(
            HTTPStatus.OK,
            histories,
            f"Found {len(histories)} history records for ticket {ticket_uuid}",
        )

    async def find_by_user(self, user_uuid: str) -> ServiceResponse[Sequence[TicketHistory]]:
        if not is_valid_uuid(user_uuid):
            raise BadRequestError("Invalid user UUID format")
        histories = list(await self._repository.find_by_user(user_uuid))
        return ServiceResponse(
            HTTPStatus.OK,
            histories,
            f"Found {len(histories)} history records for user {user_uuid}",
        )

    async def find_recent_activity(
        self, limit: int = DEFAULT_RECENT_ACTIVITY_LIMIT
    ) -> ServiceResponse[Sequence[TicketHistory]]:
        if limit < 1:
            raise BadRequestError("Limit must be a positive integer")
        histories = list(await self._repository.find_recent_activity(limit))
        return ServiceResponse(
            HTTPStatus.OK,
            histories,
            f"Retrieved {len(histories)} recent ticket history records",
        )
