from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request

from ticketdesk.dependencies.auth import User, role_required
from ticketdesk.security.policy import Role
from ticketdesk.tickets.history import TicketHistoryService
from ticketdesk.tickets.service import TicketService

require_associate = role_required(Role.ASSOCIATE)
require_manager = role_required(Role.MANAGER)

AssociateUser = Annotated[User, Depends(require_associate)]
ManagerUser = Annotated[User, Depends(require_manager)]


async def get_ticket_service(request: Request) -> TicketService:
    service = getattr(request.app.state, "ticket_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Ticket service is not configured")
    return service


async def get_history_service(request: Request) -> TicketHistoryService:
    service = getattr(request.app.state, "history_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Ticket history service is not configured")
    return service
