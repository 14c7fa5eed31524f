from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from http import HTTPStatus
from typing import TYPE_CHECKING, Callable, Sequence

from ticketdesk.core.errors import (
    BadRequestError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ServiceResponse,
)

from .contracts import TicketStore
from .csv_io import export_tickets_csv, parse_status_csv
from .history import TicketHistoryRequest, TicketHistoryService
from .models import Ticket, TicketHistory, is_valid_uuid, utcnow, validate_ticket
from .state import TicketSeverity, TicketStateMachine, TicketStatus

if TYPE_CHECKING:
    from ticketdesk.services.severity import SeverityOracle

logger = logging.getLogger(__name__)

CSV_IMPORT_REASON = "Updated by CSV import"
APPROVAL_REASON = "Approved without severity change"
DETAILS_REVISED_REASON = "Ticket details revised for re-review"
FIELDS_UPDATED_REASON = "Ticket fields updated"
DELETED_REASON = "Ticket deleted"
NO_PENDING_TICKETS_MESSAGE = "No pending tickets to export"


@dataclass(slots=True)
class TicketRequest:
    """Input for ticket creation. Any supplied status is ignored."""

    workspace_uuid: str
    created_by_uuid: str
    title: str
    description: str
    severity: TicketSeverity
    due_date: datetime
    status: TicketStatus | None = None
    severity_change_reason: str | None = None


@dataclass(slots=True)
class TicketUpdate:
    """Partial field update; ``None`` leaves a field unchanged."""

    title: str | None = None
    description: str | None = None
    severity: TicketSeverity | None = None
    status: TicketStatus | None = None
    severity_change_reason: str | None = None
    due_date: datetime | None = None


def _require_uuid(value: str, message: str = "Invalid UUID format") -> None:
    if not is_valid_uuid(value):
        raise BadRequestError(message)


def _coerce_severity(value: TicketSeverity | str) -> TicketSeverity:
    try:
        return TicketSeverity(value)
    except ValueError as exc:
        raise BadRequestError(f"Unknown severity: {value}") from exc


class TicketService:
    """Orchestrates the ticket review workflow.

    Every mutating operation writes exactly one history record through
    :class:`TicketHistoryService`. Except for creation, the record is written
    before the ticket is persisted so its "previous" side captures the
    pre-mutation state.
    """

    def __init__(
        self,
        repository: TicketStore,
        history_service: TicketHistoryService,
        oracle: SeverityOracle,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._repository = repository
        self._history = history_service
        self._oracle = oracle
        self._clock = clock or utcnow

    # Creation and generic CRUD

    async def create(self, request: TicketRequest) -> ServiceResponse[Ticket]:
        _require_uuid(request.workspace_uuid, "Invalid workspace UUID format")
        _require_uuid(request.created_by_uuid, "Invalid creator UUID format")

        year = self._clock().year
        sequence = await self._repository.get_next_sequence_number(year, request.workspace_uuid)
        ticket = Ticket(
            ticket_number=Ticket.generate_ticket_number(year, sequence),
            workspace_uuid=request.workspace_uuid,
            created_by_uuid=request.created_by_uuid,
            title=request.title,
            description=request.description,
            severity=_coerce_severity(request.severity),
            status=TicketStateMachine.initial_state(),
            due_date=request.due_date,
            severity_change_reason=request.severity_change_reason,
        )
        self._validate(ticket)

        created = await self._repository.create(ticket)
        # Written after persistence: the creation record's "previous" side
        # equals the initial values.
        await self._record_history(created, request.created_by_uuid, request.severity_change_reason)

        logger.info("Ticket %s created in workspace %s", created.ticket_number, created.workspace_uuid)
        return ServiceResponse(
            HTTPStatus.CREATED,
            created,
            f"Ticket {created.ticket_number} created successfully",
        )

    async def get_by_uuid(self, uuid: str) -> ServiceResponse[Ticket]:
        _require_uuid(uuid)
        ticket = await self._repository.find_by_uuid(uuid)
        return ServiceResponse(HTTPStatus.OK, ticket, "Entity retrieved successfully")

    async def get_all(self) -> ServiceResponse[list[Ticket]]:
        tickets = [ticket for ticket in await self._repository.find_all() if ticket.active]
        return ServiceResponse(HTTPStatus.OK, tickets, f"Retrieved {len(tickets)} entities successfully")

    async def update(
        self,
        uuid: str,
        updates: TicketUpdate,
        *,
        actor_uuid: str | None = None,
    ) -> ServiceResponse[Ticket]:
        _require_uuid(uuid)
        if actor_uuid is not None:
            _require_uuid(actor_uuid)

        ticket = await self._repository.find_by_uuid(uuid)
        if not ticket.active:
            raise NotFoundError("Entity not found or has been deleted")

        if updates.status is not None and updates.status != ticket.status and TicketStateMachine.is_terminal(ticket.status):
            raise ConflictError(f"Ticket {ticket.ticket_number} is {ticket.status.value} and cannot change status")
        if updates.severity is not None:
            new_severity = _coerce_severity(updates.severity)
            if new_severity != ticket.severity and not (updates.severity_change_reason or "").strip():
                raise BadRequestError("Severity change reason is required when changing severity")
            ticket.severity = new_severity
        if updates.title is not None:
            ticket.title = updates.title
        if updates.description is not None:
            ticket.description = updates.description
        if updates.status is not None:
            ticket.status = updates.status
        if updates.severity_change_reason is not None:
            ticket.severity_change_reason = updates.severity_change_reason
        if updates.due_date is not None:
            ticket.due_date = updates.due_date
        ticket.mark_updated()
        self._validate(ticket)

        await self._record_history(
            ticket,
            actor_uuid or ticket.created_by_uuid,
            updates.severity_change_reason or FIELDS_UPDATED_REASON,
        )
        saved = await self._repository.update(uuid, ticket)
        return ServiceResponse(HTTPStatus.OK, saved, f"Entity {uuid} updated successfully")

    async def delete(self, uuid: str, *, actor_uuid: str | None = None) -> ServiceResponse[Ticket]:
        _require_uuid(uuid)
        if actor_uuid is not None:
            _require_uuid(actor_uuid)

        ticket = await self._repository.find_by_uuid(uuid)
        if not ticket.active:
            raise NotFoundError("Entity not found or already deleted")

        await self._record_history(ticket, actor_uuid or ticket.created_by_uuid, DELETED_REASON)
        ticket.delete()
        deleted = await self._repository.update(uuid, ticket)
        return ServiceResponse(HTTPStatus.OK, deleted, f"Entity {uuid} deleted successfully")

    # Queries

    async def get_ticket_by_number(self, ticket_number: str) -> ServiceResponse[Ticket]:
        if not ticket_number:
            raise BadRequestError("Ticket number is required")
        ticket = await self._repository.find_by_ticket_number(ticket_number)
        return ServiceResponse(HTTPStatus.OK, ticket, "Ticket retrieved successfully")

    async def get_tickets_by_status(self, workspace_uuid: str, status: TicketStatus) -> ServiceResponse[list[Ticket]]:
        _require_uuid(workspace_uuid, "Invalid workspace UUID format")
        tickets = list(await self._repository.find_by_status(workspace_uuid, status))
        return ServiceResponse(HTTPStatus.OK, tickets, f"Found {len(tickets)} tickets with status {status.value}")

    async def get_tickets_by_creator(self, created_by_uuid: str) -> ServiceResponse[list[Ticket]]:
        _require_uuid(created_by_uuid, "Invalid creator UUID format")
        tickets = list(await self._repository.find_by_created_by(created_by_uuid))
        return ServiceResponse(
            HTTPStatus.OK,
            tickets,
            f"Found {len(tickets)} tickets created by user {created_by_uuid}",
        )

    async def get_tickets_by_workspace(self, workspace_uuid: str) -> ServiceResponse[list[Ticket]]:
        _require_uuid(workspace_uuid, "Invalid workspace UUID format")
        tickets = list(await self._repository.find_by_workspace(workspace_uuid))
        return ServiceResponse(HTTPStatus.OK, tickets, f"Found {len(tickets)} tickets in workspace {workspace_uuid}")

    async def get_all_by_workspace_id(self, workspace_uuid: str) -> ServiceResponse[list[Ticket]]:
        _require_uuid(workspace_uuid, "Invalid workspace UUID format")
        tickets = list(await self._repository.find_all_by_workspace_id(workspace_uuid))
        return ServiceResponse(HTTPStatus.OK, tickets, f"Found {len(tickets)} from the workspace {workspace_uuid}")

    async def get_ticket_history(self, ticket_uuid: str) -> ServiceResponse[Sequence[TicketHistory]]:
        _require_uuid(ticket_uuid, "Invalid ticket UUID format")
        history = await self._history.find_by_ticket(ticket_uuid)
        records = history.payload or []
        return ServiceResponse(
            HTTPStatus.OK,
            records,
            f"Retrieved {len(records)} history records for ticket {ticket_uuid}",
        )

    # Review workflow

    async def can_user_review_ticket(self, ticket_uuid: str, manager_uuid: str) -> ServiceResponse[bool]:
        _require_uuid(ticket_uuid)
        _require_uuid(manager_uuid)

        ticket = await self._repository.find_by_uuid(ticket_uuid)
        can_review = ticket.can_be_reviewed_by(manager_uuid)
        return ServiceResponse(
            HTTPStatus.OK,
            can_review,
            "Manager can review this ticket" if can_review else "Manager cannot review this ticket",
        )

    async def review_ticket(
        self,
        ticket_uuid: str,
        manager_uuid: str,
        new_severity: TicketSeverity | str,
        reason: str | None,
    ) -> ServiceResponse[Ticket]:
        _require_uuid(ticket_uuid)
        _require_uuid(manager_uuid)
        if not reason or not reason.strip():
            raise BadRequestError("Severity change reason is required when changing severity")
        severity = _coerce_severity(new_severity)

        ticket = await self._repository.find_by_uuid(ticket_uuid)
        updated = await self._apply_review(ticket, manager_uuid, severity, reason)
        return ServiceResponse(HTTPStatus.OK, updated, f"Ticket {updated.ticket_number} reviewed successfully")

    async def approve_ticket(self, ticket_uuid: str, manager_uuid: str) -> ServiceResponse[Ticket]:
        """Review a ticket keeping its severity, which always lands in PENDING."""

        _require_uuid(ticket_uuid)
        _require_uuid(manager_uuid)

        ticket = await self._repository.find_by_uuid(ticket_uuid)
        updated = await self._apply_review(ticket, manager_uuid, ticket.severity, APPROVAL_REASON)
        return ServiceResponse(HTTPStatus.OK, updated, f"Ticket {updated.ticket_number} approved successfully")

    async def update_ticket_details(
        self,
        ticket_uuid: str,
        associate_uuid: str,
        title: str | None = None,
        description: str | None = None,
    ) -> ServiceResponse[Ticket]:
        _require_uuid(ticket_uuid)
        _require_uuid(associate_uuid)

        ticket = await self._repository.find_by_uuid(ticket_uuid)
        if ticket.created_by_uuid != associate_uuid:
            raise ForbiddenError("Only the ticket creator can update ticket details")
        if not TicketStateMachine.is_revisable(ticket.status):
            raise ConflictError("Ticket details can only be updated when ticket is in REVIEW status")

        if title:
            ticket.title = title
        if description:
            ticket.description = description
        ticket.status = TicketStatus.DRAFT
        ticket.mark_updated()

        await self._record_history(
            ticket, associate_uuid, ticket.severity_change_reason or DETAILS_REVISED_REASON
        )
        updated = await self._repository.update(ticket_uuid, ticket)
        return ServiceResponse(
            HTTPStatus.OK,
            updated,
            f"Ticket {updated.ticket_number} details updated successfully",
        )

    async def suggest_severity(self, title: str, description: str) -> ServiceResponse[TicketSeverity]:
        return await self._oracle.suggest_severity(title, description)

    # CSV export / import

    async def export_pending_tickets(self, workspace_uuid: str) -> ServiceResponse[str]:
        _require_uuid(workspace_uuid, "Invalid workspace UUID format")
        pending = list(await self._repository.find_by_status(workspace_uuid, TicketStatus.PENDING))
        if not pending:
            return ServiceResponse(HTTPStatus.OK, "", NO_PENDING_TICKETS_MESSAGE)
        return await self.export_tickets_to_csv(pending)

    async def export_tickets_to_csv(self, tickets: Sequence[Ticket]) -> ServiceResponse[str]:
        if not tickets:
            return ServiceResponse(HTTPStatus.OK, "", "No tickets to export")
        return ServiceResponse(HTTPStatus.OK, export_tickets_csv(tickets), f"Exported {len(tickets)} tickets to CSV")

    async def import_ticket_statuses(
        self,
        csv_content: str | None,
        *,
        actor_uuid: str | None = None,
    ) -> ServiceResponse[int]:
        result = await self.update_csv_to_tickets(csv_content, actor_uuid=actor_uuid)
        count = len(result.payload or [])
        return ServiceResponse(HTTPStatus.OK, count, f"Successfully imported {count} ticket status updates")

    async def update_csv_to_tickets(
        self,
        csv_content: str | None,
        *,
        actor_uuid: str | None = None,
    ) -> ServiceResponse[list[Ticket]]:
        """Apply ``uuid,status`` rows; bad rows are skipped, never fatal.

        Rows commit one by one without a surrounding transaction.
        """

        if actor_uuid is not None:
            _require_uuid(actor_uuid)
        rows = parse_status_csv(csv_content)

        updated_tickets: list[Ticket] = []
        for row in rows:
            if not row.uuid or not row.status or not is_valid_uuid(row.uuid):
                logger.debug("Skipping CSV line %d: invalid uuid %r", row.line, row.uuid)
                continue
            try:
                new_status = TicketStatus(row.status)
            except ValueError:
                logger.debug("Skipping CSV line %d: unknown status %r", row.line, row.status)
                continue

            try:
                ticket = await self._repository.find_by_uuid(row.uuid)
                if not ticket.active or ticket.status == new_status:
                    continue

                ticket.status = new_status
                ticket.mark_updated()
                await self._record_history(ticket, actor_uuid or ticket.created_by_uuid, CSV_IMPORT_REASON)
                updated_tickets.append(await self._repository.update(row.uuid, ticket))
            except NotFoundError:
                logger.debug("Skipping CSV line %d: ticket %s not found", row.line, row.uuid)
            except Exception:
                logger.exception("Error updating ticket %s from CSV line %d", row.uuid, row.line)

        return ServiceResponse(
            HTTPStatus.OK,
            updated_tickets,
            f"Successfully updated {len(updated_tickets)} tickets from CSV import",
        )

    # Internals

    async def _apply_review(
        self,
        ticket: Ticket,
        manager_uuid: str,
        new_severity: TicketSeverity,
        reason: str,
    ) -> Ticket:
        if not ticket.can_be_reviewed_by(manager_uuid):
            raise ForbiddenError("Manager cannot review their own tickets or ticket is not in DRAFT status")

        ticket.status = ticket.update_severity(new_severity, reason, ticket.severity)
        ticket.mark_updated()
        await self._record_history(ticket, manager_uuid, reason)
        return await self._repository.update(ticket.uuid, ticket)

    async def _record_history(self, ticket: Ticket, user_uuid: str, reason: str | None) -> None:
        await self._history.create(
            TicketHistoryRequest(
                ticket_uuid=ticket.uuid,
                user_uuid=user_uuid,
                new_status=ticket.status,
                new_severity=ticket.severity,
                change_reason=reason,
                new_title=ticket.title,
                new_description=ticket.description,
            )
        )

    @staticmethod
    def _validate(ticket: Ticket) -> None:
        violations = validate_ticket(ticket)
        if violations:
            raise BadRequestError("; ".join(violations))
