from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Callable

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from ticketdesk.core.config import get_settings
from ticketdesk.core.errors import ServiceResponse, guard_service_call
from ticketdesk.dependencies.tickets import (
    AssociateUser,
    ManagerUser,
    get_history_service,
    get_ticket_service,
)
from ticketdesk.tickets.history import TicketHistoryService
from ticketdesk.tickets.models import Ticket, TicketHistory
from ticketdesk.tickets.service import TicketRequest, TicketService, TicketUpdate
from ticketdesk.tickets.state import TicketSeverity, TicketStatus

router = APIRouter(prefix="/tickets", tags=["tickets"])

TICKET_SERVICE = "TicketService"
HISTORY_SERVICE = "TicketHistoryService"


class TicketCreateRequest(BaseModel):
    workspace_uuid: str
    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)
    severity: TicketSeverity
    due_date: datetime
    severity_change_reason: str | None = Field(default=None)


class TicketReviewRequest(BaseModel):
    new_severity: TicketSeverity
    reason: str | None = Field(default=None, max_length=1000)


class TicketDetailsRequest(BaseModel):
    title: str | None = Field(default=None, max_length=255)
    description: str | None = Field(default=None)


class TicketUpdateRequest(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None)
    severity: TicketSeverity | None = None
    status: TicketStatus | None = None
    severity_change_reason: str | None = None
    due_date: datetime | None = None


class StatusImportRequest(BaseModel):
    csv_content: str


class SeveritySuggestionRequest(BaseModel):
    title: str
    description: str


class TicketResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    uuid: str
    ticket_number: str
    workspace_uuid: str
    created_by_uuid: str
    title: str
    description: str
    severity: TicketSeverity
    status: TicketStatus
    due_date: datetime
    severity_change_reason: str | None
    created_at: datetime
    updated_at: datetime
    deleted_at: datetime | None
    active: bool


class TicketHistoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    uuid: str
    ticket_uuid: str
    user_uuid: str
    previous_status: TicketStatus | None
    new_status: TicketStatus
    previous_severity: TicketSeverity | None
    new_severity: TicketSeverity | None
    change_reason: str | None
    previous_title: str | None
    new_title: str | None
    previous_description: str | None
    new_description: str | None
    created_at: datetime


TicketServiceDep = Annotated[TicketService, Depends(get_ticket_service)]
HistoryServiceDep = Annotated[TicketHistoryService, Depends(get_history_service)]


def _ticket_data(ticket: Ticket) -> dict[str, Any]:
    return TicketResponse.model_validate(ticket).model_dump(mode="json")


def _tickets_data(tickets: list[Ticket]) -> list[dict[str, Any]]:
    return [_ticket_data(ticket) for ticket in tickets]


def _history_data(entries: list[TicketHistory]) -> list[dict[str, Any]]:
    return [TicketHistoryResponse.model_validate(entry).model_dump(mode="json") for entry in entries]


def _envelope(response: ServiceResponse[Any], render: Callable[[Any], Any] | None = None) -> JSONResponse:
    data = response.payload
    if data is not None and render is not None:
        data = render(data)
    return JSONResponse(
        status_code=int(response.status_code),
        content={"message": response.message, "data": data},
    )


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_ticket(payload: TicketCreateRequest, service: TicketServiceDep, user: AssociateUser) -> JSONResponse:
    request = TicketRequest(
        workspace_uuid=payload.workspace_uuid,
        created_by_uuid=user.uuid,
        title=payload.title,
        description=payload.description,
        severity=payload.severity,
        due_date=payload.due_date,
        severity_change_reason=payload.severity_change_reason,
    )
    response = await guard_service_call(TICKET_SERVICE, "create", lambda: service.create(request))
    return _envelope(response, _ticket_data)


@router.post("/suggest-severity")
async def suggest_severity(
    payload: SeveritySuggestionRequest,
    service: TicketServiceDep,
    _: AssociateUser,
) -> JSONResponse:
    response = await guard_service_call(
        TICKET_SERVICE,
        "suggest_severity",
        lambda: service.suggest_severity(payload.title, payload.description),
    )
    return _envelope(response, lambda severity: severity.value)


@router.post("/export-pending/{workspace_uuid}")
async def export_pending_tickets(workspace_uuid: str, service: TicketServiceDep, _: ManagerUser) -> JSONResponse:
    response = await guard_service_call(
        TICKET_SERVICE,
        "export_pending_tickets",
        lambda: service.export_pending_tickets(workspace_uuid),
    )
    return _envelope(response)


@router.post("/import-statuses")
async def import_ticket_statuses(
    payload: StatusImportRequest,
    service: TicketServiceDep,
    user: ManagerUser,
) -> JSONResponse:
    response = await guard_service_call(
        TICKET_SERVICE,
        "import_ticket_statuses",
        lambda: service.import_ticket_statuses(payload.csv_content, actor_uuid=user.uuid),
    )
    return _envelope(response)


@router.get("/workspace/{workspace_uuid}")
async def list_workspace_tickets(workspace_uuid: str, service: TicketServiceDep, _: AssociateUser) -> JSONResponse:
    response = await guard_service_call(
        TICKET_SERVICE,
        "get_tickets_by_workspace",
        lambda: service.get_tickets_by_workspace(workspace_uuid),
    )
    return _envelope(response, _tickets_data)


@router.get("/workspace/{workspace_uuid}/status/{ticket_status}")
async def list_workspace_tickets_by_status(
    workspace_uuid: str,
    ticket_status: TicketStatus,
    service: TicketServiceDep,
    _: AssociateUser,
) -> JSONResponse:
    response = await guard_service_call(
        TICKET_SERVICE,
        "get_tickets_by_status",
        lambda: service.get_tickets_by_status(workspace_uuid, ticket_status),
    )
    return _envelope(response, _tickets_data)


@router.get("/creator/{creator_uuid}")
async def list_creator_tickets(creator_uuid: str, service: TicketServiceDep, _: AssociateUser) -> JSONResponse:
    response = await guard_service_call(
        TICKET_SERVICE,
        "get_tickets_by_creator",
        lambda: service.get_tickets_by_creator(creator_uuid),
    )
    return _envelope(response, _tickets_data)


@router.get("/number/{ticket_number}")
async def get_ticket_by_number(ticket_number: str, service: TicketServiceDep, _: AssociateUser) -> JSONResponse:
    response = await guard_service_call(
        TICKET_SERVICE,
        "get_ticket_by_number",
        lambda: service.get_ticket_by_number(ticket_number),
    )
    return _envelope(response, _ticket_data)


@router.get("/history/recent")
async def get_recent_activity(
    history: HistoryServiceDep,
    _: ManagerUser,
    limit: int | None = Query(default=None),
) -> JSONResponse:
    effective_limit = limit if limit is not None else get_settings().history_recent_limit
    response = await guard_service_call(
        HISTORY_SERVICE,
        "find_recent_activity",
        lambda: history.find_recent_activity(effective_limit),
    )
    return _envelope(response, _history_data)


@router.get("/history/user/{user_uuid}")
async def get_user_activity(user_uuid: str, history: HistoryServiceDep, _: ManagerUser) -> JSONResponse:
    response = await guard_service_call(HISTORY_SERVICE, "find_by_user", lambda: history.find_by_user(user_uuid))
    return _envelope(response, _history_data)


@router.get("/{ticket_uuid}")
async def get_ticket(ticket_uuid: str, service: TicketServiceDep, _: AssociateUser) -> JSONResponse:
    response = await guard_service_call(TICKET_SERVICE, "get_by_uuid", lambda: service.get_by_uuid(ticket_uuid))
    return _envelope(response, _ticket_data)


@router.patch("/{ticket_uuid}")
async def update_ticket(
    ticket_uuid: str,
    payload: TicketUpdateRequest,
    service: TicketServiceDep,
    user: ManagerUser,
) -> JSONResponse:
    updates = TicketUpdate(**payload.model_dump())
    response = await guard_service_call(
        TICKET_SERVICE,
        "update",
        lambda: service.update(ticket_uuid, updates, actor_uuid=user.uuid),
    )
    return _envelope(response, _ticket_data)


@router.delete("/{ticket_uuid}")
async def delete_ticket(ticket_uuid: str, service: TicketServiceDep, user: ManagerUser) -> JSONResponse:
    response = await guard_service_call(
        TICKET_SERVICE,
        "delete",
        lambda: service.delete(ticket_uuid, actor_uuid=user.uuid),
    )
    return _envelope(response, _ticket_data)


@router.post("/{ticket_uuid}/review")
async def review_ticket(
    ticket_uuid: str,
    payload: TicketReviewRequest,
    service: TicketServiceDep,
    user: ManagerUser,
) -> JSONResponse:
    response = await guard_service_call(
        TICKET_SERVICE,
        "review_ticket",
        lambda: service.review_ticket(ticket_uuid, user.uuid, payload.new_severity, payload.reason),
    )
    return _envelope(response, _ticket_data)


@router.post("/{ticket_uuid}/approve")
async def approve_ticket(ticket_uuid: str, service: TicketServiceDep, user: ManagerUser) -> JSONResponse:
    response = await guard_service_call(
        TICKET_SERVICE,
        "approve_ticket",
        lambda: service.approve_ticket(ticket_uuid, user.uuid),
    )
    return _envelope(response, _ticket_data)


@router.post("/{ticket_uuid}/details")
async def update_ticket_details(
    ticket_uuid: str,
    payload: TicketDetailsRequest,
    service: TicketServiceDep,
    user: AssociateUser,
) -> JSONResponse:
    response = await guard_service_call(
        TICKET_SERVICE,
        "update_ticket_details",
        lambda: service.update_ticket_details(ticket_uuid, user.uuid, payload.title, payload.description),
    )
    return _envelope(response, _ticket_data)


@router.get("/{ticket_uuid}/can-review")
async def can_review_ticket(ticket_uuid: str, service: TicketServiceDep, user: ManagerUser) -> JSONResponse:
    response = await guard_service_call(
        TICKET_SERVICE,
        "can_user_review_ticket",
        lambda: service.can_user_review_ticket(ticket_uuid, user.uuid),
    )
    return _envelope(response)


@router.get("/{ticket_uuid}/history")
async def get_ticket_history(ticket_uuid: str, service: TicketServiceDep, _: AssociateUser) -> JSONResponse:
    response = await guard_service_call(
        TICKET_SERVICE,
        "get_ticket_history",
        lambda: service.get_ticket_history(ticket_uuid),
    )
    return _envelope(response, _history_data)
